"""Spectral resynthesis: keep each frequency's magnitude, randomise its phase."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Sequence

import numpy as np

from .audio import Channel, ChannelClosed, ChannelEmpty

log = logging.getLogger(__name__)

# Phases are drawn from [0, pi).
_PHASE_RANGE = math.pi

Kernel = Callable[[int, np.ndarray], Sequence[complex] | np.ndarray]


class ReFFT:
    """Windowed FFT resynthesiser for one fixed window.

    ``kernel_channel`` may deliver frequency kernels: callables taking the
    current time in milliseconds and the complex spectrum, and returning a
    spectrum of the same length. The newest kernel is used; a kernel that
    raises is discarded and the previous one (or none) is used instead.
    """

    def __init__(
        self,
        window: Sequence[float] | np.ndarray,
        kernel_channel: Channel | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._window = np.asarray(window, dtype=np.float32)
        self._window_len = len(self._window)
        self._kernel_channel = kernel_channel
        self._kernels: list[Kernel] = []
        self._rng = rng if rng is not None else np.random.default_rng()

    def resynth(self, samples: Sequence[float] | np.ndarray) -> np.ndarray:
        """Return a window's worth of audio with the spectrum of ``samples``."""
        spectrum = self._forward(samples)
        if self._kernel_channel is not None:
            spectrum = self._apply_kernel(spectrum)
        return self._resynth_from_spectrum(spectrum)

    def _forward(self, samples: Sequence[float] | np.ndarray) -> np.ndarray:
        values = np.asarray(samples, dtype=np.float32)[: self._window_len]
        buf = np.zeros(self._window_len, dtype=np.complex128)
        count = len(values)
        buf[:count] = values * self._window[:count]
        return np.fft.fft(buf)

    def _resynth_from_spectrum(self, spectrum: np.ndarray) -> np.ndarray:
        phases = self._rng.uniform(0.0, _PHASE_RANGE, size=len(spectrum))
        randomised = np.abs(spectrum) * np.exp(1j * phases)
        return (np.fft.ifft(randomised).real * self._window).astype(np.float32)

    def _apply_kernel(self, spectrum: np.ndarray) -> np.ndarray:
        try:
            self._kernels.append(self._kernel_channel.try_recv())
            log.info("Got new kernel")
        except (ChannelEmpty, ChannelClosed):
            pass
        while self._kernels:
            kernel = self._kernels[-1]
            time_ms = time.time_ns() // 1_000_000
            try:
                result = np.asarray(kernel(time_ms, spectrum.copy()), dtype=np.complex128)
                if result.shape != spectrum.shape:
                    raise ValueError(
                        f"kernel returned {result.shape} values, expected {spectrum.shape}"
                    )
                return result
            except Exception:
                log.warning("kernel failed, retrying with last or noop.")
                self._kernels.pop()
        return spectrum