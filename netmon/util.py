from __future__ import annotations

import math
import time

from .constants import MAX_INTERVAL_S, MIN_INTERVAL_S


def now_s() -> float:
    """Monotonic clock in seconds."""
    return time.monotonic()


def clamp_interval(value) -> int:
    """Coerce a poll interval to whole seconds within [MIN_INTERVAL_S, MAX_INTERVAL_S].

    Out-of-range values, infinities included, are clamped at the boundary so a
    zero or negative interval can never spin the loop. Non-numeric values and
    NaN raise ValueError.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid interval: {value!r}")
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"invalid interval: {value!r}") from None
    if math.isnan(seconds):
        raise ValueError(f"invalid interval: {value!r}")
    return int(max(MIN_INTERVAL_S, min(MAX_INTERVAL_S, seconds)))
