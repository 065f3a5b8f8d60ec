"""Window functions for spectral processing."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def hanning(length: int) -> np.ndarray:
    """The upper part of a cosine period, rising from 0 to 1 and back."""
    indices = np.arange(length, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        values = 0.5 - np.cos(indices * 2.0 * np.pi / (length - 1)) * 0.5
    return values.astype(np.float32)


def rectangular(length: int) -> np.ndarray:
    """A window that is 1.0 everywhere."""
    return np.ones(length, dtype=np.float32)


def inverse(elements: Sequence[float] | np.ndarray) -> np.ndarray:
    """Element-wise reciprocal, so that each element times its original is 1.

    Assumes no element is 0.0.
    """
    return (1.0 / np.asarray(elements, dtype=np.float64)).astype(np.float32)