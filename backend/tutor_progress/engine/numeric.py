"""Rounding and clamping shared by every score and XP computation."""

from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; clients preview with half-up.
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def to_score(value: float) -> int:
    """Round once, then clamp into the 0..100 score range."""
    return int(clamp(round_half_up(value), 0, 100))


__all__ = ["round_half_up", "clamp", "to_score"]
