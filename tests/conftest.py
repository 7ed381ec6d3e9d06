"""Test configuration."""

from __future__ import annotations

import random
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tap_player.services.playlist import Playlist, Track  # noqa: E402


class ManualClock:
    """Monotonic clock that only moves when a test advances it."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


def _make_track(
    number: int,
    *,
    duration_s: int = 100,
    album: str = "Album",
    title: str | None = None,
    directory: Path = Path("/music/album"),
) -> Track:
    return Track(
        path=directory / f"{number:02d}.mp3",
        title=title or f"Song {number}",
        artist="Artist",
        album=album,
        year=2020,
        track_number=number,
        duration_s=duration_s,
    )


def _make_playlist(
    durations: Sequence[int] = (100, 100, 100),
    *,
    index: int = 0,
    directory: Path = Path("/music/album"),
    seed: int = 7,
) -> Playlist:
    tracks = [
        _make_track(i + 1, duration_s=duration, directory=directory)
        for i, duration in enumerate(durations)
    ]
    return Playlist(tracks, source=directory, index=index, rng=random.Random(seed))


@pytest.fixture
def make_track() -> Callable[..., Track]:
    return _make_track


@pytest.fixture
def make_playlist() -> Callable[..., Playlist]:
    return _make_playlist
