"""Time and progress-bar formatting helpers for the player view."""

from __future__ import annotations

import math

SUB_BLOCKS = (" ", "▏", "▎", "▍", "▌", "▋", "▊", "▉", "█")


def format_mins_secs(seconds: float) -> str:
    """Format whole seconds as MM:SS; minutes are not wrapped into hours."""
    total = _coerce_seconds(seconds)
    return f"{total // 60:02d}:{total % 60:02d}"


def remaining_seconds(elapsed: float, duration: int) -> int:
    return max(0, _coerce_seconds(duration) - _coerce_seconds(elapsed))


def progress_cells(value: float, maximum: int, length: int) -> tuple[int, int]:
    """Split progress into full cells plus an eighth-cell remainder.

    Returns `(full, eighths)` where `eighths` is in `0..7` and selects the
    partial block drawn after the full cells.
    """
    value_s = _coerce_seconds(value)
    if maximum <= 0 or length <= 0:
        return 0, 0
    value_s = min(value_s, maximum)
    full = length * value_s // maximum
    fraction = length * value_s - maximum * full
    return full, fraction * 8 // maximum


def render_progress(value: float, maximum: int, length: int) -> str:
    full, eighths = progress_cells(value, maximum, length)
    if full >= length:
        return SUB_BLOCKS[-1] * length
    return (SUB_BLOCKS[-1] * full + SUB_BLOCKS[eighths]).ljust(length)


def _coerce_seconds(value: float) -> int:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(numeric):
        return 0
    return max(0, int(numeric))
