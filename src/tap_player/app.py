"""Textual TUI app for tap-player."""

from __future__ import annotations

import argparse
import logging
import random
import sys
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.screen import ModalScreen
from textual.timer import Timer
from textual.widgets import Footer

from . import __version__
from .errors import NavigationError, TapError, format_user_error
from .events import TrackRowClicked
from .logging_utils import setup_logging
from .paths import log_dir, state_path
from .runtime_config import (
    BACKEND_NAMES,
    DEFAULT_TICK_HZ,
    clamp_tick_hz,
    resolve_backend_name,
    resolve_log_level,
)
from .services.fake_backend import FakeAudioSink, FakeDecoder
from .services.library import PlaylistLibrary, leaf_directories
from .services.navigation import (
    BuildKind,
    NavigationEntry,
    NavigationQueue,
    PlannedBuild,
    SessionContext,
    plan_build,
    plan_resume,
    repick_pending,
)
from .services.playback_backend import AudioSink, Decoder, SinkError
from .services.player_service import PlaybackController, PlayerOpts
from .services.playlist import PlaylistLoader
from .services.vlc_backend import VLCAudioSink
from .state_store import AppState, load_state_with_notice, save_state
from .ui.modals.error import ErrorModal
from .ui.player_view import PlayerView, RowClick
from .version import build_help_epilog

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str], tuple[AudioSink, Decoder]]

_RANDOM_KINDS = frozenset({BuildKind.RANDOM_TRACK, BuildKind.RANDOM_ALBUM})


class TapPlayerApp(App):
    TITLE = "tap-player"
    CSS = """
    Screen {
        layout: vertical;
    }

    #player-view {
        height: 1fr;
        padding: 0 1;
    }

    ModalScreen {
        align: center middle;
    }

    #modal-body {
        padding: 1 2;
        border: solid white;
        width: 60%;
        height: auto;
    }
    """
    BINDINGS = [
        Binding("h,space,left", "play_pause", "Play/Pause"),
        Binding("l,enter,right", "stop", "Stop"),
        Binding("j,n,down", "next_track", "Next"),
        Binding("k,p,up", "previous_track", "Previous"),
        Binding("right_square_bracket", "volume_up", "Vol +", show=False),
        Binding("left_square_bracket", "volume_down", "Vol -", show=False),
        Binding("m", "toggle_mute", "Mute"),
        Binding("v", "toggle_volume", "Volume", show=False),
        Binding("apostrophe", "seek_minutes", "Seek min", show=False),
        Binding("quotation_mark", "seek_seconds", "Seek sec", show=False),
        Binding("full_stop", "step_forward", "+10s", show=False),
        Binding("comma", "step_backward", "-10s", show=False),
        Binding("asterisk,r", "randomize", "Random"),
        Binding("tilde,s", "shuffle", "Shuffle"),
        Binding("g", "play_selection", "Go to", show=False),
        Binding("e,ctrl+g", "play_last_track", "Last", show=False),
        Binding("R", "random_track", "Random track", show=False),
        Binding("A", "random_album", "Random album", show=False),
        Binding("P", "previous_album", "Previous album", show=False),
        Binding("escape", "dismiss_modal", "Dismiss", show=False),
        Binding("q", "quit", "Quit"),
        *(
            Binding(str(digit), f"digit({digit})", str(digit), show=False)
            for digit in range(10)
        ),
    ]

    def __init__(
        self,
        *,
        path: Path | None = None,
        library_root: Path | None = None,
        backend_name: str | None = None,
        auto_init: bool = True,
        loader: PlaylistLoader | None = None,
        backend_factory: BackendFactory | None = None,
        state_file: Path | None = None,
        log_level: str = "INFO",
        tick_hz: int = DEFAULT_TICK_HZ,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__()
        self._path = path
        self._library_root = library_root
        self._backend_name = backend_name
        self._auto_init = auto_init
        self._rng = rng or random.Random()
        self.loader: PlaylistLoader = loader or PlaylistLibrary(rng=self._rng)
        self._backend_factory = backend_factory
        self._state_file = state_file
        self._log_level = log_level
        self._tick_hz = clamp_tick_hz(tick_hz)
        self._clock = clock
        self.state = AppState()
        self.session: SessionContext | None = None
        self.controller: PlaybackController | None = None
        self._tick_timer: Timer | None = None
        self._last_persisted: AppState | None = None
        self._view = PlayerView(clock=clock, id="player-view")

    def compose(self) -> ComposeResult:
        yield self._view
        yield Footer()

    def on_mount(self) -> None:
        if self._auto_init:
            self.initialize()

    def initialize(self) -> None:
        """Load persisted state, build the first controller and start ticking."""
        state, notice = load_state_with_notice(self._state_path())
        backend_name = resolve_backend_name(
            self._backend_name, state.playback_backend
        )
        root = self._library_root
        if root is None and state.library_root and self._path is None:
            root = Path(state.library_root)
        self.state = replace(
            state,
            playback_backend=backend_name,
            library_root=str(root) if root is not None else state.library_root,
            log_level=self._log_level,
        )
        self.player_view.showing_volume = state.showing_volume
        if notice:
            self.push_screen(ErrorModal(notice))
        try:
            self.session = self._initial_session(root)
            planned = plan_resume(self.session, self.loader)
            self.controller = self._start(planned)
        except TapError as exc:
            logger.warning("Nothing to play: %s", exc)
            self.push_screen(
                ErrorModal.from_parts(
                    what_failed="Nothing to play.",
                    likely_cause="the path has no decodable audio files.",
                    next_step="restart with a file, an album directory or --root.",
                    detail=str(exc),
                )
            )
            return
        planned.commit(self.session)
        self._tick_timer = self.set_interval(1 / self._tick_hz, self._poll_controller)
        self._refresh_view()
        self._persist_state()

    @property
    def player_view(self) -> PlayerView:
        return self._view

    def on_unmount(self) -> None:
        if self._tick_timer is not None:
            self._tick_timer.stop()
        if self.controller is not None:
            self._persist_state()
            self.controller.close()
            self.controller = None

    # Input

    def action_dismiss_modal(self) -> None:
        if isinstance(self.screen, ModalScreen):
            self.pop_screen()

    def action_play_pause(self) -> None:
        if self.controller is not None:
            self.controller.play_or_pause()
            self._after_input()

    def action_stop(self) -> None:
        if self.controller is not None:
            self.controller.stop()
            self._after_input()

    def action_next_track(self) -> None:
        if self.controller is None:
            return
        self.controller.next()
        if self.controller.needs_random_track:
            self.rebuild(BuildKind.RANDOM_TRACK)
        self._after_input()

    def action_previous_track(self) -> None:
        if self.controller is None:
            return
        if self.controller.is_randomized:
            self.rebuild(BuildKind.PREVIOUS_TRACK)
        else:
            self.controller.previous()
        self._after_input()

    def action_volume_up(self) -> None:
        if self.controller is not None:
            self.controller.increase_volume()
            self.player_view.flash_volume()
            self._after_input()

    def action_volume_down(self) -> None:
        if self.controller is not None:
            self.controller.decrease_volume()
            self.player_view.flash_volume()
            self._after_input()

    def action_toggle_mute(self) -> None:
        if self.controller is not None:
            self.controller.toggle_mute()
            self._after_input()

    def action_toggle_volume(self) -> None:
        self.player_view.toggle_volume()
        self._after_input()

    def action_seek_minutes(self) -> None:
        if self.controller is not None:
            self.controller.seek_to_min()
            self._after_input()

    def action_seek_seconds(self) -> None:
        if self.controller is not None:
            self.controller.seek_to_sec()
            self._after_input()

    def action_step_forward(self) -> None:
        if self.controller is not None:
            self.controller.step_forward()
            self._after_input()

    def action_step_backward(self) -> None:
        if self.controller is not None:
            self.controller.step_backward()
            self._after_input()

    def action_randomize(self) -> None:
        if self.controller is None or self.session is None:
            return
        if self.controller.toggle_randomize():
            self.session.queue.record_current_index(self.controller.index)
        self._after_input()

    def action_shuffle(self) -> None:
        if self.controller is not None:
            self.controller.toggle_shuffle()
            self._after_input()

    def action_play_selection(self) -> None:
        if self.controller is not None:
            self.controller.play_key_selection()
            self._after_input()

    def action_play_last_track(self) -> None:
        if self.controller is not None:
            self.controller.play_last_track()
            self._after_input()

    def action_random_track(self) -> None:
        self.rebuild(BuildKind.RANDOM_TRACK)
        self._after_input()

    def action_random_album(self) -> None:
        self.rebuild(BuildKind.RANDOM_ALBUM)
        self._after_input()

    def action_previous_album(self) -> None:
        self.rebuild(BuildKind.PREVIOUS_ALBUM)
        self._after_input()

    def action_digit(self, digit: int) -> None:
        if self.controller is not None:
            self.controller.push_digit(digit)

    def on_track_row_clicked(self, message: TrackRowClicked) -> None:
        if self.controller is None:
            return
        if message.action is RowClick.PLAY_OR_PAUSE:
            self.controller.play_or_pause()
        elif message.action is RowClick.PLAY:
            self.controller.play_index(message.index)
        self._after_input()

    # Rebuilds

    def rebuild(self, kind: BuildKind, *, source: Path | None = None) -> bool:
        """Replace the controller with one built for `kind`.

        On failure the current controller keeps playing and an error modal
        is shown.
        """
        if self.controller is None or self.session is None:
            return False
        self.session.opts = self.controller.opts
        try:
            planned = plan_build(kind, self.session, self.loader, source=source)
            sink, decoder = self._build_backend()
        except NavigationError as exc:
            logger.info("Rebuild %s skipped: %s", kind.value, exc)
            return False
        except (TapError, SinkError) as exc:
            logger.warning("Rebuild %s failed: %s", kind.value, exc)
            if isinstance(exc, TapError) and kind in _RANDOM_KINDS:
                repick_pending(self.session, self.loader)
            self._recover_from_failed_rebuild()
            self.push_screen(
                ErrorModal.from_parts(
                    what_failed="Could not switch playlists.",
                    likely_cause="the selected directory has no playable tracks.",
                    next_step="try another selection; playback continues here.",
                    detail=str(exc),
                )
            )
            return False
        self.controller.close()
        self.controller = planned.start(sink, decoder=decoder, clock=self._clock)
        planned.commit(self.session)
        logger.info(
            "Rebuilt controller (%s) for %s", kind.value, planned.playlist.source
        )
        return True

    def _recover_from_failed_rebuild(self) -> None:
        controller = self.controller
        if controller is None or not controller.needs_random_track:
            return
        # Fall back to shuffling inside the current playlist.
        controller.toggle_randomize()
        controller.toggle_shuffle()
        controller.next()

    # Ticking

    def _poll_controller(self) -> None:
        if self.controller is None:
            return
        self.controller.poll()
        if self.controller.needs_random_track:
            self.rebuild(BuildKind.RANDOM_TRACK)
        self._refresh_view()
        self._persist_state()

    def _after_input(self) -> None:
        self._refresh_view()
        self._persist_state()

    def _refresh_view(self) -> None:
        if self.controller is None or self.session is None:
            return
        self.player_view.update_snapshot(
            self.controller.snapshot(navigation_depth=self.session.navigation_depth)
        )

    # State

    def _initial_session(self, root: Path | None) -> SessionContext:
        opts = PlayerOpts.from_triple(self.state.options_triple)
        candidates = leaf_directories(root) if root is not None else []
        if self._path is not None:
            if self._path.is_dir() and _has_subdirectories(self._path):
                candidates = leaf_directories(self._path)
                return SessionContext.start(
                    candidates, self.loader, opts=opts, rng=self._rng
                )
            return SessionContext.for_source(
                self._path, candidates, opts=opts, rng=self._rng
            )
        if self.state.queue:
            entries = [NavigationEntry(Path(src), idx) for src, idx in self.state.queue]
            return SessionContext(
                opts=opts,
                candidates=candidates,
                queue=NavigationQueue(entries),
                rng=self._rng,
            )
        return SessionContext.start(candidates, self.loader, opts=opts, rng=self._rng)

    def _start(self, planned: PlannedBuild) -> PlaybackController:
        sink, decoder = self._build_backend()
        return planned.start(sink, decoder=decoder, clock=self._clock)

    def _build_backend(self) -> tuple[AudioSink, Decoder]:
        name = self.state.playback_backend
        if self._backend_factory is not None:
            return self._backend_factory(name)
        try:
            return build_backend(name, clock=self._clock)
        except SinkError as exc:
            if name == "fake":
                raise
            logger.exception("Failed to start backend %s: %s", name, exc)
            self.state = replace(self.state, playback_backend="fake")
            self.push_screen(
                ErrorModal.from_parts(
                    what_failed="VLC backend unavailable; using fake backend.",
                    likely_cause="VLC/libVLC runtime is not available.",
                    next_step="install VLC/libVLC, then restart with --backend vlc.",
                )
            )
            return build_backend("fake", clock=self._clock)

    def _state_path(self) -> Path:
        return self._state_file if self._state_file is not None else state_path()

    def _persist_state(self) -> None:
        if self.controller is None or self.session is None:
            return
        status, volume, is_muted = self.controller.opts.as_triple()
        state = replace(
            self.state,
            status=status,
            volume=volume,
            is_muted=is_muted,
            showing_volume=self.player_view.showing_volume,
            queue=tuple(
                (str(entry.source), entry.index) for entry in self.session.queue
            ),
        )
        if state == self._last_persisted:
            return
        self.state = state
        try:
            save_state(self._state_path(), state)
        except OSError as exc:
            logger.warning("Failed to save state: %s", exc)
            return
        self._last_persisted = state


def _has_subdirectories(path: Path) -> bool:
    return any(child.is_dir() for child in path.iterdir())


def build_backend(
    name: str, *, clock: Callable[[], float] = time.monotonic
) -> tuple[AudioSink, Decoder]:
    """Create a sink and its matching decoder for backend `name`."""
    logger.info("Playback backend selected: %s", name)
    if name == "vlc":
        sink = VLCAudioSink()
        return sink, sink.open_source
    return FakeAudioSink(clock=clock), FakeDecoder()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tap-player",
        description="Terminal audio player for albums and random listening.",
        epilog=build_help_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "path",
        nargs="?",
        help="Audio file or album directory to play; a directory with "
        "subdirectories is treated as a library root.",
    )
    parser.add_argument(
        "--root", help="Library root used for random track and album selection."
    )
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


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
            console=False,
        )
        logging.getLogger(__name__).info("Starting tap-player TUI")
        TapPlayerApp(
            path=Path(args.path) if args.path else None,
            library_root=Path(args.root) if args.root else None,
            backend_name=args.backend,
            log_level=level,
        ).run()
        return 0
    except Exception as exc:  # pragma: no cover - top-level safety net
        logging.getLogger(__name__).exception("Fatal startup error: %s", exc)
        print(
            format_user_error(
                what_failed="Startup failed.",
                likely_cause="backend, state or log paths are unavailable.",
                next_step="re-run with --verbose and check the log file.",
            ),
            file=sys.stderr,
        )
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
