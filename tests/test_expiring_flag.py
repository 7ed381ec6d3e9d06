"""Tests for the time-windowed flag."""

from __future__ import annotations

from tap_player.utils.expiring_flag import ExpiringFlag


def test_flag_expires_after_window() -> None:
    flag = ExpiringFlag(1.5)
    assert not flag.is_active(10.0)

    flag.set(10.0)

    assert flag.is_active(10.0)
    assert flag.is_active(11.5)
    assert not flag.is_active(11.6)


def test_reading_does_not_mutate() -> None:
    flag = ExpiringFlag(0.5, set_at=3.0)

    flag.is_active(100.0)

    assert flag.set_at == 3.0
    assert flag.is_active(3.2)


def test_clear_resets_flag() -> None:
    flag = ExpiringFlag(0.5)

    flag.set(5.0)
    assert flag.is_active(5.2)
    flag.clear()
    assert not flag.is_active(5.2)
