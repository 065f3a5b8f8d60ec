"""Small numeric helpers used for interpolation and bounds checks."""

from __future__ import annotations

import math
from typing import TypeVar

T = TypeVar("T")


def clamp(val: T, low: T, high: T) -> T:
    """Clamp ``val`` to the inclusive range ``[low, high]``.

    Values that cannot be ordered (such as NaN) come back unchanged.
    """
    if val < low:  # type: ignore[operator]
        return low
    if val > high:  # type: ignore[operator]
        return high
    return val


def partial_min(left: T, right: T) -> T:
    """Return ``left`` if it is strictly smaller than ``right``, else ``right``."""
    return left if left < right else right  # type: ignore[operator]


def lerp(start: float, end: float, ratio: float) -> float:
    """Linearly interpolate between ``start`` and ``end``."""
    return start + (end - start) * ratio


def sqrt_interp(start: float, end: float, ratio: float) -> float:
    """Interpolate between ``start`` and ``end`` along a square-root curve.

    The curve rises quickly near the low end, which gives an equal-power
    feel when used for fades in either direction.
    """
    increasing = start < end
    progress = (ratio * 2.0 - 1.0) * (1.0 if increasing else -1.0)
    if math.isnan(progress):
        progress = -1.0
    factor = math.sqrt(0.5 * (1.0 + max(progress, -1.0)))
    abs_interval = abs(end - start)
    return (start if increasing else end) + abs_interval * factor