"""A phase vocoder for time-stretching and pitch-shifting WAVE audio."""

__version__ = "0.4.0"