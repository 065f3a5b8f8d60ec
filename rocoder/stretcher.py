"""Phase-vocoder time stretching and pitch shifting for one channel."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import timedelta

import numpy as np

from .audio import AudioSpec, Channel, ChannelClosed
from .crossfade import hanning_crossfade_compensation
from .fft import ReFFT
from .resampler import resample


def _seconds(value: timedelta | float) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class Stretcher:
    """Vocoder for one channel of audio, fed by chunks from ``input``."""

    def __init__(
        self,
        spec: AudioSpec,
        input: Channel,
        factor: float,
        amplitude: float,
        pitch_multiple: int,
        window: Sequence[float] | np.ndarray,
        buffer_dur: timedelta | float,
        kernel_channel: Channel | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        if pitch_multiple == 0:
            raise ValueError("pitch multiple must not be zero")
        if factor <= 0:
            raise ValueError("stretch factor must be positive")
        window = np.asarray(window, dtype=np.float32)
        window_len = len(window)
        pitch = abs(pitch_multiple)
        if pitch_multiple < 0:
            pitch_shifted_factor = factor / pitch
            samples_needed = math.ceil(window_len / pitch)
        else:
            pitch_shifted_factor = factor * pitch
            samples_needed = window_len * pitch

        self.spec = spec
        self._input = input
        self._pitch_multiple = pitch_multiple
        self._window_len = window_len
        self._half_window_len = window_len // 2
        self._samples_needed_per_window = samples_needed
        self._sample_step_len = int(window_len / (pitch_shifted_factor * 2.0))
        # Correct for power lost in resynthesis; curve found by trial and error.
        self._corrected_amp_factor = np.float32(max(4.0, pitch_shifted_factor / 4.0) * amplitude)
        self._amp_correction_envelope = hanning_crossfade_compensation(window_len // 2)
        self._re_fft = ReFFT(window, kernel_channel, rng)
        self._buffer_dur = buffer_dur
        self._done = False
        self.input_buf = np.zeros(0, dtype=np.float32)
        self._output_buf = np.zeros(self._half_window_len, dtype=np.float32)

    def is_done(self) -> bool:
        """True once the input has closed and been padded out with silence."""
        return self._done

    def channel_bound(self) -> int:
        """Capacity for the channel that carries this stretcher's windows."""
        window_secs = self._window_len / self.spec.sample_rate
        return math.ceil(window_secs / _seconds(self._buffer_dur))

    def next_window(self) -> np.ndarray:
        """Generate the next window of output audio."""
        half = self._half_window_len
        target = self._samples_needed_per_window + half
        pos = 0
        while len(self._output_buf) < target:
            # Each step produces a half window, leaving the fade-out half of
            # the windowed result for the next step to overlap with.
            self.ensure_input_samples_available(self._window_len)
            result = self._re_fft.resynth(self.input_buf[: self._window_len])
            overlap = self._output_buf[pos:pos + half]
            self._output_buf[pos:pos + half] = (
                (result[:half] + overlap)
                * self._amp_correction_envelope
                * self._corrected_amp_factor
            )
            self._output_buf = np.concatenate([self._output_buf, result[half:]])
            pos += half
            self.input_buf = self.input_buf[self._sample_step_len:]
        output = resample(
            self._output_buf[: self._samples_needed_per_window], self._pitch_multiple
        )
        self._output_buf = self._output_buf[len(self._output_buf) - half:].copy()
        return output

    def ensure_input_samples_available(self, n: int) -> None:
        """Block until ``n`` input samples are buffered.

        If the input closes first, pad with silence and mark the stretcher done.
        """
        while len(self.input_buf) < n:
            try:
                chunk = self._input.recv()
            except ChannelClosed:
                padding = np.zeros(n - len(self.input_buf), dtype=np.float32)
                self.input_buf = np.concatenate([self.input_buf, padding])
                self._done = True
            else:
                self.input_buf = np.concatenate(
                    [self.input_buf, np.asarray(chunk, dtype=np.float32)]
                )