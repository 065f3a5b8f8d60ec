"""Parse durations written as ``[[hh:]mm:]ss[.ss]``."""

from __future__ import annotations

import math
import re
from datetime import timedelta

_UNSIGNED = re.compile(r"\+?[0-9]+")


def _parse_unsigned(text: str) -> int:
    if not _UNSIGNED.fullmatch(text):
        raise ValueError(f"invalid whole-number duration field {text!r}")
    return int(text)


def _parse_seconds(text: str) -> float:
    if "_" in text or text != text.strip():
        raise ValueError(f"invalid seconds field {text!r}")
    try:
        value = float(text)
    except ValueError as exc:
        raise ValueError(f"invalid seconds field {text!r}") from exc
    if not math.isfinite(value):
        raise ValueError(f"invalid seconds field {text!r}")
    return value


def parse_duration(text: str) -> timedelta:
    """Parse ``ss``, ``mm:ss`` or ``hh:mm:ss``; seconds may be fractional.

    Raises ValueError on a malformed specification.
    """
    parts = text.split(":")[::-1]
    if len(parts) > 3:
        raise ValueError("Invalid duration specification")
    seconds_text, *larger = parts

    milliseconds = max(0, int(_parse_seconds(seconds_text) * 1000.0))
    duration = timedelta(milliseconds=milliseconds)
    for unit_seconds, field in zip((60, 60 * 60), larger):
        duration += timedelta(seconds=_parse_unsigned(field) * unit_seconds)
    return duration