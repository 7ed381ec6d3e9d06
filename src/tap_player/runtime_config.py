"""Normalization of CLI flags and persisted runtime settings."""

from __future__ import annotations

BACKEND_NAMES = ("fake", "vlc")
DEFAULT_BACKEND = "vlc"
TICK_HZ_MIN = 10
TICK_HZ_MAX = 16
DEFAULT_TICK_HZ = 12


def resolve_log_level(*, verbose: bool, quiet: bool) -> str:
    """Resolve effective log level from CLI flags.

    --quiet overrides --verbose.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return "INFO"


def resolve_backend_name(cli_backend: str | None, state_backend: str | None) -> str:
    """Prefer the CLI choice, then the persisted one, then the default."""
    for candidate in (cli_backend, state_backend):
        if candidate is None:
            continue
        normalized = candidate.strip().lower()
        if normalized in BACKEND_NAMES:
            return normalized
    return DEFAULT_BACKEND


def clamp_tick_hz(value: int | float) -> int:
    """Clamp the render/poll tick rate to the supported 10-16 Hz window."""
    try:
        numeric = int(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_TICK_HZ
    return max(TICK_HZ_MIN, min(numeric, TICK_HZ_MAX))
