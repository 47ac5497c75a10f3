"""Common backoff helpers."""

from __future__ import annotations

import random
from typing import TypeVar

D = TypeVar("D")


def jitter_up(duration: D, jitter: float) -> D:
    """Add or subtract up to ``jitter`` as a fraction of ``duration``.

    Works on numbers and on ``datetime.timedelta`` values; for 10s and a jitter of
    0.1 the result lies within [9s, 11s].
    """
    multiplier = jitter * (random.random() * 2 - 1)
    return duration * (1 + multiplier)


def exponent_base2(a: int) -> int:
    """Return 2**(a-1) for a >= 1, and 0 for a == 0."""
    if a < 0:
        raise ValueError("exponent must not be negative")
    return (1 << a) >> 1