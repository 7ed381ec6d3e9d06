"""Track and playlist models plus cross-playlist random selection."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from tap_player.errors import EmptyPlaylistError, TapError

logger = logging.getLogger(__name__)

RANDOM_ATTEMPTS = 10


@dataclass(frozen=True)
class Track:
    """Tag metadata for one playable file."""

    path: Path
    title: str
    artist: str
    album: str
    year: int | None
    track_number: int
    duration_s: int

    def sort_key(self) -> tuple[str, int, str]:
        return (self.album, self.track_number, self.title)


class Playlist:
    """Non-empty, album-ordered track list with a current index.

    `source` identifies the directory (or file) the playlist was built from
    and is what the navigation history stores.
    """

    def __init__(
        self,
        tracks: Iterable[Track],
        *,
        source: Path | None = None,
        index: int = 0,
        rng: random.Random | None = None,
    ) -> None:
        ordered = tuple(sorted(tracks, key=Track.sort_key))
        if not ordered:
            raise EmptyPlaylistError(
                f"no audio files found in '{source}'" if source else "no tracks"
            )
        self.tracks = ordered
        self.source = source if source is not None else ordered[0].path.parent
        self._rng = rng or random.Random()
        self._index = 0
        self.index = index

    @property
    def index(self) -> int:
        return self._index

    @index.setter
    def index(self, value: int) -> None:
        if not 0 <= value < len(self.tracks):
            raise IndexError(f"track index {value} out of range 0..{len(self.tracks)}")
        self._index = value

    @property
    def current(self) -> Track:
        return self.tracks[self._index]

    def __len__(self) -> int:
        return len(self.tracks)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Playlist):
            return NotImplemented
        return self.source == other.source and self.tracks == other.tracks

    def __hash__(self) -> int:
        return hash((self.source, self.tracks))

    def __repr__(self) -> str:
        return (
            f"Playlist(source={str(self.source)!r}, tracks={len(self.tracks)}, "
            f"index={self._index})"
        )

    def next_track(self) -> Track | None:
        if self.is_last_track():
            return None
        return self.tracks[self._index + 1]

    def is_last_track(self) -> bool:
        return self._index == len(self.tracks) - 1

    def index_of_track_number(self, number: int) -> int | None:
        """Map a tagged track number to its playlist index.

        When several tracks share a number the last one wins.
        """
        found = None
        for i, track in enumerate(self.tracks):
            if track.track_number == number:
                found = i
        return found

    def pick_random_index(self) -> int:
        """Pick a random index that differs from the current one.

        Index 0 passes the exclusion filter even when it is current, so it can
        repeat on consecutive picks. Playlists shorter than two always yield 0.
        """
        size = len(self.tracks)
        if size < 2:
            return 0
        choices = [i for i in range(size) if i == 0 or i != self._index]
        return self._rng.choice(choices)

    def set_random_index(self) -> int:
        self._index = self.pick_random_index()
        return self._index


PlaylistLoader = Callable[[Path], Playlist]


def randomized(
    paths: Sequence[Path],
    loader: PlaylistLoader,
    *,
    rng: random.Random | None = None,
    attempts: int = RANDOM_ATTEMPTS,
) -> tuple[Path, int] | None:
    """Pick a random source and a random index inside it.

    Candidates that fail to load are retried up to `attempts` times in total;
    returns None if every attempt failed or `paths` is empty.
    """
    if not paths:
        return None
    rng = rng or random.Random()
    for attempt in range(attempts):
        path = rng.choice(paths)
        try:
            playlist = loader(path)
        except TapError as exc:
            logger.debug(
                "Random candidate %s rejected (attempt %d): %s", path, attempt + 1, exc
            )
            continue
        return path, rng.randrange(len(playlist))
    logger.info("No playable random candidate after %d attempts", attempts)
    return None
