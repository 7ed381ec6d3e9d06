"""Navigation history that survives controller rebuilds.

Random and "previous" navigation can land in a different playlist, which
means throwing the current `PlaybackController` away and building a new one.
`SessionContext` is the state that outlives those rebuilds: the options
triple, the random candidate sources and a short `NavigationQueue`.

The queue holds one to three `(source, index)` entries, read as
`[previous, current, pending-random]` once history exists. Planning a build
works on a copy of the queue; the copy is committed only after the new
playlist loaded, so a failed build leaves the session untouched.
"""

from __future__ import annotations

import logging
import random
import time
from collections import deque
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from tap_player.errors import NavigationError, NoCandidateFoundError, TapError

from .playback_backend import AudioSink, Decoder
from .player_service import NavigationMode, PlaybackController, PlayerOpts
from .playlist import Playlist, PlaylistLoader, randomized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NavigationEntry:
    source: Path
    index: int = 0


class NavigationQueue:
    MAX_LENGTH = 3

    def __init__(self, entries: Iterable[NavigationEntry]) -> None:
        self._entries: deque[NavigationEntry] = deque(entries)
        self._check()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[NavigationEntry]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NavigationQueue):
            return NotImplemented
        return list(self._entries) == list(other._entries)

    def __repr__(self) -> str:
        return f"NavigationQueue({list(self._entries)!r})"

    @property
    def entries(self) -> tuple[NavigationEntry, ...]:
        return tuple(self._entries)

    @property
    def front(self) -> NavigationEntry:
        return self._entries[0]

    @property
    def back(self) -> NavigationEntry:
        return self._entries[-1]

    @property
    def current(self) -> NavigationEntry:
        """The entry now playing: second once history exists, else the only one."""
        return self._entries[1] if len(self._entries) > 1 else self._entries[0]

    def copy(self) -> NavigationQueue:
        return NavigationQueue(self._entries)

    def fuzzy_jump(self, source: Path) -> NavigationEntry:
        """Record an explicit pick of `source`, starting at its first track."""
        entry = NavigationEntry(source, 0)
        if len(self._entries) == 1:
            self._entries.appendleft(entry)
            self._entries.appendleft(entry)
        else:
            self._entries.popleft()
            self._entries.insert(1, entry)
        self._check()
        return entry

    def previous(self) -> NavigationEntry:
        """Return the front entry and swap the front two.

        Calling it twice returns to where it started.
        """
        if len(self._entries) == 1:
            raise NavigationError("no previous selection")
        target = self._entries[0]
        self._entries[0], self._entries[1] = self._entries[1], self._entries[0]
        return target

    def random(
        self, pick_next: Callable[[NavigationEntry], NavigationEntry]
    ) -> NavigationEntry:
        """Return the pending entry and push a freshly picked one behind it."""
        target = self._entries[-1]
        if len(self._entries) == 1:
            self._entries.append(self._entries[0])
        else:
            self._entries.popleft()
        self._entries.append(pick_next(target))
        self._check()
        return target

    def replace_pending(self, entry: NavigationEntry) -> None:
        """Swap the pending random entry; a lone current entry is kept."""
        if len(self._entries) > 1:
            self._entries[-1] = entry

    def record_current_index(self, index: int) -> None:
        """Store the index playing when randomization was switched on."""
        if len(self._entries) > 1:
            self._entries[1] = replace(self._entries[1], index=index)

    def _check(self) -> None:
        if not 1 <= len(self._entries) <= self.MAX_LENGTH:
            raise ValueError(
                f"navigation queue must hold 1..{self.MAX_LENGTH} entries, "
                f"got {len(self._entries)}"
            )


@dataclass
class SessionContext:
    """State owned by the application loop across controller rebuilds."""

    opts: PlayerOpts
    candidates: list[Path]
    queue: NavigationQueue
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def start(
        cls,
        candidates: Sequence[Path],
        loader: PlaylistLoader,
        *,
        opts: PlayerOpts | None = None,
        rng: random.Random | None = None,
    ) -> SessionContext:
        """Seed the history with a random pick from `candidates`."""
        rng = rng or random.Random()
        first = randomized(candidates, loader, rng=rng)
        if first is None:
            raise NoCandidateFoundError("no playable directories found")
        return cls(
            opts=opts or PlayerOpts(),
            candidates=list(candidates),
            queue=NavigationQueue([NavigationEntry(*first)]),
            rng=rng,
        )

    @classmethod
    def for_source(
        cls,
        source: Path,
        candidates: Sequence[Path] = (),
        *,
        index: int = 0,
        opts: PlayerOpts | None = None,
        rng: random.Random | None = None,
    ) -> SessionContext:
        return cls(
            opts=opts or PlayerOpts(),
            candidates=list(candidates),
            queue=NavigationQueue([NavigationEntry(source, index)]),
            rng=rng or random.Random(),
        )

    @property
    def navigation_depth(self) -> int:
        return len(self.queue)


class BuildKind(Enum):
    FUZZY = "fuzzy"
    PREVIOUS_ALBUM = "previous_album"
    PREVIOUS_TRACK = "previous_track"
    RANDOM_ALBUM = "random_album"
    RANDOM_TRACK = "random_track"


_ALBUM_KINDS = frozenset({BuildKind.PREVIOUS_ALBUM, BuildKind.RANDOM_ALBUM})
_RANDOMIZED_KINDS = frozenset({BuildKind.PREVIOUS_TRACK, BuildKind.RANDOM_TRACK})


@dataclass(frozen=True)
class PlannedBuild:
    """A loaded playlist plus the queue to commit once it is playing."""

    kind: BuildKind | None
    playlist: Playlist
    opts: PlayerOpts
    mode: NavigationMode
    queue: NavigationQueue

    def start(
        self,
        sink: AudioSink,
        *,
        decoder: Decoder,
        clock: Callable[[], float] = time.monotonic,
    ) -> PlaybackController:
        return PlaybackController(
            self.playlist,
            sink,
            decoder=decoder,
            opts=self.opts,
            mode=self.mode,
            clock=clock,
        )

    def commit(self, session: SessionContext) -> None:
        session.queue = self.queue
        logger.debug("Navigation queue now %s", self.queue)


def plan_build(
    kind: BuildKind,
    session: SessionContext,
    loader: PlaylistLoader,
    *,
    source: Path | None = None,
) -> PlannedBuild:
    """Work out the next playlist for `kind` without touching `session`.

    Raises `NavigationError` when there is no history to step back to, and
    whatever `loader` raises (`InvalidPathError`, `EmptyPlaylistError`,
    `DecodeFailureError`) when the target cannot be played.
    """
    queue = session.queue.copy()
    if kind is BuildKind.FUZZY:
        if source is None:
            raise ValueError("fuzzy builds need a source")
        target = queue.fuzzy_jump(source)
    elif kind in (BuildKind.PREVIOUS_ALBUM, BuildKind.PREVIOUS_TRACK):
        target = queue.previous()
    else:
        target = queue.random(lambda current: _pick_random(session, loader, current))

    playlist = _load_at(loader, target, 0 if kind in _ALBUM_KINDS else target.index)
    mode = (
        NavigationMode.RANDOMIZED
        if kind in _RANDOMIZED_KINDS
        else NavigationMode.SEQUENTIAL
    )
    return PlannedBuild(
        kind=kind, playlist=playlist, opts=session.opts, mode=mode, queue=queue
    )


def plan_resume(session: SessionContext, loader: PlaylistLoader) -> PlannedBuild:
    """Plan the first controller of a run from the session's current entry."""
    target = session.queue.current
    playlist = _load_at(loader, target, target.index)
    return PlannedBuild(
        kind=None,
        playlist=playlist,
        opts=session.opts,
        mode=NavigationMode.SEQUENTIAL,
        queue=session.queue.copy(),
    )


def repick_pending(session: SessionContext, loader: PlaylistLoader) -> None:
    """Replace a pending random entry that failed to load with a fresh pick."""
    if session.navigation_depth < 2:
        return
    stale = session.queue.back
    session.queue.replace_pending(
        _pick_random(session, loader, session.queue.current)
    )
    logger.debug("Replaced pending %s with %s", stale, session.queue.back)


def _load_at(loader: PlaylistLoader, target: NavigationEntry, index: int) -> Playlist:
    playlist = loader(target.source)
    if not 0 <= index < len(playlist):
        logger.warning(
            "Stored index %d no longer valid for %s; starting at 0",
            index,
            target.source,
        )
        index = 0
    playlist.index = index
    return playlist


def _pick_random(
    session: SessionContext, loader: PlaylistLoader, current: NavigationEntry
) -> NavigationEntry:
    picked = randomized(session.candidates, loader, rng=session.rng)
    if picked is not None:
        return NavigationEntry(*picked)
    logger.info("No random candidate; re-randomizing within %s", current.source)
    try:
        playlist = loader(current.source)
    except TapError as exc:
        logger.warning("Cannot reload %s: %s", current.source, exc)
        return NavigationEntry(current.source, 0)
    return NavigationEntry(current.source, session.rng.randrange(len(playlist)))
