"""Time-windowed boolean used for double-tap detection and overlays."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ExpiringFlag:
    """A flag that reads as set only within `window_s` of being set.

    Reading never mutates; expiry is a comparison against the stored
    timestamp.
    """

    window_s: float
    set_at: float | None = None

    def set(self, now: float) -> None:
        self.set_at = now

    def clear(self) -> None:
        self.set_at = None

    def is_active(self, now: float) -> bool:
        if self.set_at is None:
            return False
        return 0.0 <= now - self.set_at <= self.window_s
