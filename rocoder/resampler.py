"""Integer-factor resampling used for pitch shifting."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def resample(samples: Sequence[float] | np.ndarray, factor: int) -> np.ndarray:
    """Resample by a whole factor.

    A positive factor keeps every ``factor``-th sample; a negative factor
    stretches by ``abs(factor)`` with linear interpolation. ``1`` copies.
    """
    if factor == 1:
        return np.array(samples, dtype=np.float32)
    if factor > 1:
        return resample_faster(samples, factor)
    if factor < -1:
        return resample_slower(samples, -factor)
    raise ValueError(f"invalid resample factor {factor}")


def resample_faster(samples: Sequence[float] | np.ndarray, factor: int) -> np.ndarray:
    """Keep every ``factor``-th sample."""
    if factor <= 1:
        raise ValueError(f"factor must be greater than 1, got {factor}")
    return np.array(np.asarray(samples, dtype=np.float32)[::factor])


def resample_slower(samples: Sequence[float] | np.ndarray, factor: int) -> np.ndarray:
    """Insert ``factor - 1`` linearly interpolated samples between neighbours."""
    if factor <= 1:
        raise ValueError(f"factor must be greater than 1, got {factor}")
    values = np.asarray(samples, dtype=np.float64)
    current, following = values[:-1], values[1:]
    ratios = np.arange(factor, dtype=np.float64) / factor
    stretched = current[:, None] + (following - current)[:, None] * ratios[None, :]
    return stretched.ravel().astype(np.float32)