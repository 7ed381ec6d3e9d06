"""UI tests for the Textual app driven with the fake backend."""

from __future__ import annotations

import asyncio
import json
import random
from pathlib import Path

from tap_player.app import TapPlayerApp
from tap_player.errors import EmptyPlaylistError
from tap_player.events import TrackRowClicked
from tap_player.services.fake_backend import FakeAudioSink, FakeDecoder
from tap_player.services.navigation import BuildKind, NavigationEntry
from tap_player.services.player_service import NavigationMode, PlayerStatus
from tap_player.ui.modals.error import ErrorModal
from tap_player.ui.player_view import PlayerView, RowClick

ALBUM = Path("/music/album")
OTHER = Path("/music/other")


def _run(coro):
    return asyncio.run(coro)


def _app(tmp_path, clock, make_playlist, *, loader=None) -> TapPlayerApp:
    def load(path: Path):
        return make_playlist((100, 100, 100), directory=path)

    return TapPlayerApp(
        path=ALBUM,
        loader=loader or load,
        backend_factory=lambda name: (FakeAudioSink(clock=clock), FakeDecoder()),
        state_file=tmp_path / "state.json",
        clock=clock,
        rng=random.Random(1),
    )


def _saved(tmp_path) -> dict:
    return json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))


def test_app_starts_playing_album(tmp_path, clock, make_playlist) -> None:
    app = _app(tmp_path, clock, make_playlist)

    async def run_app() -> None:
        async with app.run_test():
            await asyncio.sleep(0)
            assert app.query_one(PlayerView)
            assert app.controller is not None
            assert app.controller.status is PlayerStatus.PLAYING
            assert app.controller.index == 0
            app.exit()

    _run(run_app())
    assert _saved(tmp_path)["queue"] == [[str(ALBUM), 0]]


def test_keys_drive_controller_and_persist(tmp_path, clock, make_playlist) -> None:
    app = _app(tmp_path, clock, make_playlist)

    async def run_app() -> None:
        async with app.run_test() as pilot:
            await pilot.press("j")
            assert app.controller.index == 1
            await pilot.press("h")
            assert app.controller.status is PlayerStatus.PAUSED
            await pilot.press("right_square_bracket")
            assert app.controller.volume == 110
            await pilot.press("v")
            assert app.player_view.showing_volume
            app.exit()

    _run(run_app())
    saved = _saved(tmp_path)
    assert saved["status"] == 1
    assert saved["volume"] == 110
    assert saved["showing_volume"] is True


def test_digits_then_go_plays_track_number(tmp_path, clock, make_playlist) -> None:
    app = _app(tmp_path, clock, make_playlist)

    async def run_app() -> None:
        async with app.run_test() as pilot:
            await pilot.press("3", "g")
            assert app.controller.index == 2
            assert app.controller.status is PlayerStatus.PLAYING
            app.exit()

    _run(run_app())


def test_row_clicks_play_selected_track(tmp_path, clock, make_playlist) -> None:
    app = _app(tmp_path, clock, make_playlist)

    async def run_app() -> None:
        async with app.run_test():
            await asyncio.sleep(0)
            app.on_track_row_clicked(TrackRowClicked(0, RowClick.PLAY_OR_PAUSE))
            assert app.controller.status is PlayerStatus.PAUSED
            app.on_track_row_clicked(TrackRowClicked(1, RowClick.SELECT))
            assert app.controller.index == 0
            app.on_track_row_clicked(TrackRowClicked(1, RowClick.PLAY))
            assert app.controller.index == 1
            assert app.controller.status is PlayerStatus.PLAYING
            app.exit()

    _run(run_app())


def test_restart_restores_persisted_options(tmp_path, clock, make_playlist) -> None:
    (tmp_path / "state.json").write_text(
        json.dumps({"status": 1, "volume": 40, "is_muted": True}), encoding="utf-8"
    )
    app = _app(tmp_path, clock, make_playlist)

    async def run_app() -> None:
        async with app.run_test():
            await asyncio.sleep(0)
            assert app.controller.status is PlayerStatus.PAUSED
            assert app.controller.volume == 40
            assert app.controller.is_muted
            app.exit()

    _run(run_app())


def test_nothing_to_play_shows_error(tmp_path, clock, make_playlist) -> None:
    def load(path: Path):
        raise EmptyPlaylistError(f"no audio files in '{path}'")

    app = _app(tmp_path, clock, make_playlist, loader=load)

    async def run_app() -> None:
        async with app.run_test():
            await asyncio.sleep(0)
            assert isinstance(app.screen, ErrorModal)
            assert "Nothing to play." in app.screen.message
            assert app.controller is None
            app.exit()

    _run(run_app())
    assert not (tmp_path / "state.json").exists()


class _Library:
    """Loader over fixed album sizes that can be broken mid-test."""

    def __init__(self, make_playlist) -> None:
        self._make_playlist = make_playlist
        self.sizes = {ALBUM: 3, OTHER: 2}
        self.broken = False

    def __call__(self, path: Path):
        if self.broken or path not in self.sizes:
            raise EmptyPlaylistError(f"no audio files in '{path}'")
        return self._make_playlist((100,) * self.sizes[path], directory=path)


def test_random_and_previous_album_rebuild_controller(
    tmp_path, clock, make_playlist
) -> None:
    app = _app(tmp_path, clock, make_playlist, loader=_Library(make_playlist))

    async def run_app() -> None:
        async with app.run_test():
            await asyncio.sleep(0)
            app.session.candidates = [OTHER]
            first = app.controller

            app.action_random_track()
            assert app.controller is not first
            assert app.controller.mode is NavigationMode.RANDOMIZED
            assert app.session.navigation_depth == 3
            assert app.session.queue.back.source == OTHER

            app.action_random_album()
            assert app.controller.playlist.source == OTHER
            assert app.controller.index == 0
            assert app.controller.mode is NavigationMode.SEQUENTIAL

            app.action_previous_album()
            assert app.controller.playlist.source == ALBUM
            assert app.controller.index == 0
            assert app.controller.is_playing
            assert app.session.queue.front.source == OTHER
            app.exit()

    _run(run_app())
    queue = _saved(tmp_path)["queue"]
    assert [source for source, _index in queue][:2] == [str(OTHER), str(ALBUM)]


def test_randomized_track_end_rebuilds_controller(
    tmp_path, clock, make_playlist
) -> None:
    app = _app(tmp_path, clock, make_playlist, loader=_Library(make_playlist))

    async def run_app() -> None:
        async with app.run_test() as pilot:
            await asyncio.sleep(0)
            app.session.candidates = [OTHER]
            await pilot.press("r")
            first = app.controller
            assert first.is_randomized

            clock.advance(101)
            app._poll_controller()

            assert app.controller is not first
            assert app.controller.is_randomized
            assert app.controller.is_playing
            assert app.session.queue.back.source == OTHER
            assert app.session.navigation_depth == 3
            assert not isinstance(app.screen, ErrorModal)
            app.exit()

    _run(run_app())


def test_failed_randomized_rebuild_falls_back_to_shuffle(
    tmp_path, clock, make_playlist
) -> None:
    library = _Library(make_playlist)
    app = _app(tmp_path, clock, make_playlist, loader=library)

    async def run_app() -> None:
        async with app.run_test() as pilot:
            await asyncio.sleep(0)
            await pilot.press("r")
            first = app.controller
            library.broken = True

            clock.advance(101)
            app._poll_controller()
            await pilot.pause()

            assert app.controller is first
            assert first.mode is NavigationMode.SHUFFLED
            assert first.status is PlayerStatus.PLAYING
            assert isinstance(app.screen, ErrorModal)
            app.exit()

    _run(run_app())


def test_failed_rebuild_keeps_old_controller(tmp_path, clock, make_playlist) -> None:
    library = _Library(make_playlist)
    app = _app(tmp_path, clock, make_playlist, loader=library)

    async def run_app() -> None:
        async with app.run_test() as pilot:
            await asyncio.sleep(0)
            first = app.controller
            first.next()
            library.broken = True

            assert app.rebuild(BuildKind.RANDOM_ALBUM) is False
            await pilot.pause()

            assert app.controller is first
            assert first.index == 1
            assert first.is_playing
            assert app.session.queue.entries == (NavigationEntry(ALBUM, 0),)
            assert isinstance(app.screen, ErrorModal)
            assert "Could not switch playlists." in app.screen.message
            app.exit()

    _run(run_app())
