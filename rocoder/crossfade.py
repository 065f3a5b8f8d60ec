"""Amplitude compensation curves for overlapping windows."""

from __future__ import annotations

import numpy as np


def hanning_crossfade_compensation(length: int) -> np.ndarray:
    """Gain curve that evens out the power dip of overlapping Hann windows."""
    hinv_sqrt2 = (1.0 + np.sqrt(np.sqrt(0.5))) * 0.5
    indices = np.arange(length, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        values = 0.5 - (1.0 - hinv_sqrt2) * np.cos(indices * 2.0 * np.pi / (length - 1))
    return values.astype(np.float32)