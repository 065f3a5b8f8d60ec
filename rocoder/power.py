"""Signal level measurements."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

MIN_DECIBELS = -99999999.0


def relative_decibels(raw_amp: float) -> float:
    """Convert a linear amplitude (0-1) to decibels relative to full scale.

    Never returns below ``MIN_DECIBELS``, so silence does not give ``-inf``.
    """
    amp = abs(raw_amp)
    if amp == 0.0 or math.isnan(amp):
        return MIN_DECIBELS
    return max(math.log10(amp) * 20.0, MIN_DECIBELS)


def audio_power(samples: Sequence[float] | np.ndarray) -> float:
    """Peak level of ``samples`` in relative decibels."""
    values = np.abs(np.asarray(samples, dtype=np.float64))
    if values.size == 0:
        raise ValueError("cannot measure the power of empty audio")
    if np.isnan(values).any():
        raise ValueError("cannot measure the power of audio containing NaN")
    return relative_decibels(float(values.max()))