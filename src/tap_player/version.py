"""Project metadata shown in `--help` output."""

from __future__ import annotations

import platform

from . import __version__

__all__ = ["PROJECT_NAME", "__version__", "build_help_epilog"]

PROJECT_NAME = "tap-player"


def build_help_epilog() -> str:
    return f"Platform: {platform.platform()}\nVersion: {__version__}"
