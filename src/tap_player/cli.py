"""Command-line interface for tap-player.

Plays a file or album directory without the TUI and prints a status line on
every track change until the playlist finishes.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from . import __version__
from .app import build_backend
from .errors import TapError, format_user_error
from .logging_utils import setup_logging
from .paths import log_dir
from .runtime_config import (
    BACKEND_NAMES,
    DEFAULT_TICK_HZ,
    resolve_backend_name,
    resolve_log_level,
)
from .services.library import PlaylistLibrary
from .services.playback_backend import AudioSink, Decoder, SinkError
from .services.player_service import PlaybackController, PollOutcome
from .services.playlist import PlaylistLoader

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tap-player-cli",
        description="Play an audio file or album directory without the TUI.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("path", help="Audio file or album directory to play")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument(
        "--backend",
        choices=BACKEND_NAMES,
        help="Playback backend to use (fake or vlc).",
    )
    return parser


def play_headless(
    path: Path,
    *,
    loader: PlaylistLoader,
    sink: AudioSink,
    decoder: Decoder,
    out: TextIO | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    tick_s: float = 1 / DEFAULT_TICK_HZ,
) -> int:
    """Play `path` to the end; returns the number of tracks announced."""
    out = out if out is not None else sys.stdout
    controller = PlaybackController(loader(path), sink, decoder=decoder, clock=clock)
    announced = 0
    try:
        if controller.is_playing:
            print(controller.status_line(), file=out, flush=True)
            announced += 1
        while controller.is_playing:
            outcome = controller.poll()
            if outcome is PollOutcome.ADVANCED:
                if controller.passed_index is not None:
                    line = controller.status_line(controller.passed_index)
                    print(line, file=out, flush=True)
                    announced += 1
                print(controller.status_line(), file=out, flush=True)
                announced += 1
            elif outcome is PollOutcome.FINISHED:
                break
            sleep(tick_s)
    finally:
        controller.close()
    logger.info("Playback finished after %d track(s)", announced)
    return announced


def main(
    argv: list[str] | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
        )
        logger.info("Starting tap-player CLI")
        sink, decoder = build_backend(resolve_backend_name(args.backend, None))
        play_headless(
            Path(args.path),
            loader=PlaylistLibrary(),
            sink=sink,
            decoder=decoder,
            sleep=sleep,
        )
        return 0
    except TapError as exc:
        logger.error("Cannot play %s: %s", args.path, exc)
        print(
            format_user_error(
                what_failed=f"Cannot play '{args.path}'.",
                likely_cause=str(exc),
                next_step="pass an audio file or a directory of audio files.",
            ),
            file=sys.stderr,
        )
        return 1
    except SinkError as exc:
        logger.error("Playback backend failed: %s", exc)
        print(
            format_user_error(
                what_failed="Playback backend unavailable.",
                likely_cause=str(exc),
                next_step="install VLC/libVLC or re-run with --backend fake.",
            ),
            file=sys.stderr,
        )
        return 1
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
