"""Playback state machine between user input and an audio sink.

`PlaybackController` owns the transport status, elapsed-time bookkeeping,
volume, digit input and gapless pre-queueing for one `Playlist`. Elapsed time
is tracked from the wall clock (`last_started` plus `last_elapsed`) instead of
asking the sink for its position, so pause/resume/seek sequences never lose
or double-count seconds.

The controller is single-threaded and poll-driven: the UI calls `poll()` once
per render tick before drawing, and dispatches input events straight to the
public methods. Switching to another playlist builds a new controller; see
`tap_player.services.navigation`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, replace
from enum import Enum, IntEnum

from tap_player.errors import DecodeFailureError
from tap_player.utils.expiring_flag import ExpiringFlag

from .playback_backend import AudioSink, AudioSource, Decoder, SinkError
from .playlist import Playlist, Track

logger = logging.getLogger(__name__)

VOLUME_MIN = 0
VOLUME_MAX = 120
VOLUME_STEP = 10
SEEK_STEP_S = 10.0
END_GUARD_S = 0.5
DOUBLE_TAP_WINDOW_S = 0.5


class PlayerStatus(IntEnum):
    """Transport status; the integer value is the persisted status code."""

    PLAYING = 0
    PAUSED = 1
    STOPPED = 2

    @classmethod
    def from_code(cls, code: int) -> PlayerStatus:
        try:
            return cls(code)
        except ValueError:
            return cls.STOPPED


class NavigationMode(Enum):
    SEQUENTIAL = "sequential"
    # Next track comes from a random playlist; the caller rebuilds the controller.
    RANDOMIZED = "randomized"
    # Next track is a random index within the current playlist.
    SHUFFLED = "shuffled"


class PollOutcome(Enum):
    IDLE = "idle"
    UNCHANGED = "unchanged"
    ADVANCED = "advanced"
    FINISHED = "finished"
    NEEDS_RANDOM = "needs_random"


def clamp_volume(volume: int) -> int:
    return max(VOLUME_MIN, min(int(volume), VOLUME_MAX))


def concatenate(digits: Sequence[int]) -> int:
    """Fold typed digits into one number, e.g. `[1, 2, 3]` -> `123`."""
    value = 0
    for digit in digits:
        value = value * 10 + digit
    return value


@dataclass(frozen=True)
class PlayerOpts:
    """Options carried from one controller to the next across rebuilds."""

    status: PlayerStatus = PlayerStatus.PLAYING
    volume: int = 100
    is_muted: bool = False

    def as_triple(self) -> tuple[int, int, bool]:
        return (int(self.status), self.volume, self.is_muted)

    @classmethod
    def from_triple(cls, triple: tuple[int, int, bool]) -> PlayerOpts:
        status, volume, is_muted = triple
        return cls(
            status=PlayerStatus.from_code(int(status)),
            volume=clamp_volume(int(volume)),
            is_muted=bool(is_muted),
        )


@dataclass(frozen=True)
class PlayerSnapshot:
    """Read-only view of the controller for renderers."""

    status: PlayerStatus
    elapsed_s: float
    duration_s: int
    volume: int
    is_muted: bool
    mode: NavigationMode
    index: int
    tracks: tuple[Track, ...]
    navigation_depth: int = 1

    @property
    def current(self) -> Track:
        return self.tracks[self.index]

    @property
    def is_randomized(self) -> bool:
        return self.mode is NavigationMode.RANDOMIZED

    @property
    def is_shuffled(self) -> bool:
        return self.mode is NavigationMode.SHUFFLED


class PlaybackController:
    """Transport state machine for a single playlist and sink."""

    def __init__(
        self,
        playlist: Playlist,
        sink: AudioSink,
        *,
        decoder: Decoder,
        opts: PlayerOpts | None = None,
        mode: NavigationMode = NavigationMode.SEQUENTIAL,
        clock: Callable[[], float] = time.monotonic,
        double_tap_window_s: float = DOUBLE_TAP_WINDOW_S,
    ) -> None:
        opts = opts or PlayerOpts()
        self.playlist = playlist
        self._sink = sink
        self._decoder = decoder
        self._clock = clock
        self.status = PlayerStatus.STOPPED
        self.volume = clamp_volume(opts.volume)
        self.is_muted = opts.is_muted
        self.mode = mode
        self.next_track_queued = False
        self.digit_buffer: list[int] = []
        self._double_tap = ExpiringFlag(double_tap_window_s)
        self._last_started = clock()
        self._last_elapsed = 0.0
        self._queued_index: int | None = None
        # Index whose upcoming tracks all failed to decode; no rescans until it moves.
        self._prequeue_exhausted_at: int | None = None
        self._previous_index = playlist.index
        self.passed_index: int | None = None
        self._apply_volume()
        self._restore_status(opts.status)

    @property
    def current_track(self) -> Track:
        return self.playlist.current

    @property
    def index(self) -> int:
        return self.playlist.index

    @property
    def is_playing(self) -> bool:
        return self.status is PlayerStatus.PLAYING

    @property
    def is_randomized(self) -> bool:
        return self.mode is NavigationMode.RANDOMIZED

    @property
    def is_shuffled(self) -> bool:
        return self.mode is NavigationMode.SHUFFLED

    @property
    def needs_random_track(self) -> bool:
        """True when the caller should rebuild against a random selection."""
        return self.is_randomized and self.next_track_queued

    @property
    def opts(self) -> PlayerOpts:
        return PlayerOpts(
            status=self.status, volume=self.volume, is_muted=self.is_muted
        )

    def elapsed(self) -> float:
        """Seconds into the current track, capped at its tagged duration."""
        elapsed = self._raw_elapsed()
        duration = self.current_track.duration_s
        if duration > 0:
            elapsed = min(elapsed, float(duration))
        return elapsed

    def _raw_elapsed(self) -> float:
        # Tags truncate durations to whole seconds, so audio may run past the cap.
        elapsed = self._last_elapsed
        if self.is_playing:
            elapsed += self._clock() - self._last_started
        return max(0.0, elapsed)

    def snapshot(self, *, navigation_depth: int = 1) -> PlayerSnapshot:
        return PlayerSnapshot(
            status=self.status,
            elapsed_s=self.elapsed(),
            duration_s=self.current_track.duration_s,
            volume=self.volume,
            is_muted=self.is_muted,
            mode=self.mode,
            index=self.index,
            tracks=self.playlist.tracks,
            navigation_depth=navigation_depth,
        )

    def status_line(self, index: int | None = None) -> str:
        index = self.index if index is None else index
        track = self.playlist.tracks[index]
        return (
            f"[tap-player]: '{track.title}' by '{track.artist}' "
            f"({index + 1}/{len(self.playlist)}) "
        )

    # Transport

    def play(self) -> None:
        """Queue the current track on the sink and start the clock.

        Tracks that fail to decode are skipped forward. If nothing from the
        current index onwards decodes, the controller stops on the last track.
        """
        while True:
            track = self.current_track
            try:
                self._sink.append(self._open(track))
            except (DecodeFailureError, SinkError) as exc:
                logger.warning("Skipping %s: %s", track.path, exc)
            else:
                try:
                    self._sink.play()
                    break
                except SinkError as exc:
                    logger.warning("Skipping %s: %s", track.path, exc)
                    # Drop the appended source so the sink head matches the index.
                    self._sink_call("stop")
            if self.playlist.is_last_track():
                self._halt()
                return
            self.playlist.index += 1
        self.status = PlayerStatus.PLAYING
        self._last_started = self._clock()
        self._last_elapsed = 0.0
        self._prequeue_exhausted_at = None
        logger.info(
            "Now playing %s",
            track.path,
            extra={"track_index": self.index, "mode": self.mode.value},
        )

    def pause(self) -> None:
        if not self.is_playing:
            return
        self._last_elapsed = self._raw_elapsed()
        self._sink_call("pause")
        self.status = PlayerStatus.PAUSED

    def resume(self) -> None:
        if self.status is not PlayerStatus.PAUSED:
            return
        self._sink_call("play")
        self.status = PlayerStatus.PLAYING
        self._last_started = self._clock()

    def play_or_pause(self) -> PlayerStatus:
        self._clear()
        if self.status is PlayerStatus.PAUSED:
            self.resume()
        elif self.status is PlayerStatus.PLAYING:
            self.pause()
        else:
            self.play()
        return self.status

    def stop(self) -> PlayerStatus:
        self._clear()
        if self.status is not PlayerStatus.STOPPED:
            self._halt()
        return self.status

    def close(self) -> None:
        """Stop playback and release the sink; the controller is unusable after."""
        self.stop()
        self._sink_call("close")

    # Track selection

    def next(self) -> None:
        """Advance one track, or to a random one when shuffled.

        In randomized mode the next track lives in another playlist, so this
        only flags `needs_random_track` for the caller.
        """
        if self.is_randomized:
            self._clear()
            self.next_track_queued = True
            return
        if self.is_shuffled and len(self.playlist) > 1:
            self._previous_index = self.index
            target = self.playlist.pick_random_index()
        elif self.playlist.is_last_track():
            target = self.index
        else:
            target = self.index + 1
        self._move_to(target)

    def previous(self) -> None:
        if self.is_shuffled and len(self.playlist) > 1:
            target, self._previous_index = self._previous_index, self.index
        else:
            target = max(0, self.index - 1)
        self._move_to(target)

    def play_index(self, index: int) -> None:
        """Stop and play the track at `index` regardless of prior status."""
        if not 0 <= index < len(self.playlist):
            raise IndexError(f"track index {index} out of range")
        self.stop()
        self.playlist.index = index
        self.play()

    def play_last_track(self) -> None:
        self.play_index(len(self.playlist) - 1)

    def push_digit(self, digit: int) -> None:
        if not 0 <= digit <= 9:
            raise ValueError(f"not a digit: {digit}")
        self.digit_buffer.append(digit)

    def play_key_selection(self) -> bool:
        """Play the track whose number was typed, or handle the double tap.

        With typed digits, plays the matching track number and returns True,
        or clears the digits and returns False on no match. Without digits, a
        second press inside the debounce window plays the first track; a
        single press only arms the window.
        """
        if self.digit_buffer:
            number = concatenate(self.digit_buffer)
            target = self.playlist.index_of_track_number(number)
            if target is None:
                logger.debug("No track numbered %d", number)
                self._clear()
                return False
        else:
            now = self._clock()
            if not self._double_tap.is_active(now):
                self._double_tap.set(now)
                return False
            target = 0
        self.stop()
        self.playlist.index = target
        self.play_or_pause()
        return True

    # Seeking

    def seek_to_time(self, target_s: float) -> None:
        if self.status is PlayerStatus.STOPPED:
            self.play()
        elif self.status is PlayerStatus.PAUSED:
            self.resume()
        if not self.is_playing:
            return
        elapsed = self._raw_elapsed()
        if target_s < elapsed:
            self._seek_backward(elapsed, elapsed - target_s)
        elif target_s > elapsed:
            self._seek_forward(elapsed, target_s - elapsed)

    def step_forward(self) -> None:
        self.seek_to_time(self.elapsed() + SEEK_STEP_S)

    def step_backward(self) -> None:
        self.seek_to_time(self.elapsed() - SEEK_STEP_S)

    def seek_to_sec(self) -> None:
        target = concatenate(self.digit_buffer)
        self.digit_buffer.clear()
        self.seek_to_time(float(target))

    def seek_to_min(self) -> None:
        target = concatenate(self.digit_buffer) * 60
        self.digit_buffer.clear()
        self.seek_to_time(float(target))

    def _seek_backward(self, elapsed: float, diff: float) -> None:
        if diff >= elapsed:
            # Seeking to or before the start restarts the track.
            self.stop()
            self.play()
            return
        if not self._try_seek(elapsed - diff):
            return
        if self._last_elapsed == 0:
            self._last_started += diff
        elif self._last_elapsed >= diff:
            self._last_elapsed -= diff
        else:
            remainder = diff - self._last_elapsed
            self._last_elapsed = 0.0
            self._last_started += remainder

    def _seek_forward(self, elapsed: float, diff: float) -> None:
        duration = self.current_track.duration_s
        if duration - elapsed < diff + END_GUARD_S:
            self.next()
            return
        if not self._try_seek(elapsed + diff):
            return
        self._last_started -= diff

    def _try_seek(self, position_s: float) -> bool:
        try:
            self._sink.try_seek(position_s)
        except SinkError as exc:
            logger.warning("Seek to %.1fs failed: %s", position_s, exc)
            return False
        return True

    # Volume

    def increase_volume(self) -> int:
        self.volume = clamp_volume(self.volume + VOLUME_STEP)
        if not self.is_muted:
            self._apply_volume()
        return self.volume

    def decrease_volume(self) -> int:
        self.volume = clamp_volume(self.volume - VOLUME_STEP)
        if not self.is_muted:
            self._apply_volume()
        return self.volume

    def toggle_mute(self) -> bool:
        self.is_muted = not self.is_muted
        self._apply_volume()
        return self.is_muted

    # Modes

    def toggle_randomize(self) -> bool:
        """Flip randomized mode; returns True when it was switched on."""
        return self._switch_mode(NavigationMode.RANDOMIZED)

    def toggle_shuffle(self) -> bool:
        """Flip shuffled mode; returns True when it was switched on."""
        enabled = self._switch_mode(NavigationMode.SHUFFLED)
        self._previous_index = self.index
        return enabled

    def _switch_mode(self, mode: NavigationMode) -> bool:
        enabling = self.mode is not mode
        self._drop_pending()
        self.next_track_queued = False
        self._prequeue_exhausted_at = None
        self.mode = mode if enabling else NavigationMode.SEQUENTIAL
        logger.debug("Navigation mode is now %s", self.mode.value)
        return enabling

    # Gapless queue

    def poll(self) -> PollOutcome:
        """Advance gapless queueing and detect track completion.

        Must run once per render tick, before the snapshot is drawn. When a
        pre-queued track also finished within the tick, its index is left in
        `passed_index` so callers can still announce it.
        """
        self.passed_index = None
        if not self.is_playing:
            return PollOutcome.IDLE
        try:
            pending = len(self._sink)
        except SinkError as exc:
            logger.warning("Sink poll failed: %s", exc)
            return PollOutcome.UNCHANGED

        if self.is_randomized:
            if pending == 0:
                self.next_track_queued = True
                return PollOutcome.NEEDS_RANDOM
            return PollOutcome.UNCHANGED

        if pending == 1:
            if self.next_track_queued:
                return self._promote_queued()
            self._prequeue_next()
            return PollOutcome.UNCHANGED

        if pending == 0:
            if self.next_track_queued:
                # The pre-queued track also ran out within a single tick.
                self._promote_queued()
                if self.is_shuffled or not self.playlist.is_last_track():
                    self.passed_index = self.index
                    self.next()
                    return PollOutcome.ADVANCED
            self.stop()
            return PollOutcome.FINISHED
        return PollOutcome.UNCHANGED

    def _upcoming_indices(self) -> Iterator[int]:
        size = len(self.playlist)
        if self.is_shuffled and size > 1:
            for _ in range(size):
                yield self.playlist.pick_random_index()
        else:
            yield from range(self.index + 1, size)

    def _prequeue_next(self) -> None:
        if self._prequeue_exhausted_at == self.index:
            return
        for candidate in self._upcoming_indices():
            track = self.playlist.tracks[candidate]
            try:
                self._sink.append(self._open(track))
            except DecodeFailureError as exc:
                logger.warning("Cannot pre-queue %s: %s", track.path, exc)
                continue
            except SinkError as exc:
                logger.warning("Sink rejected %s: %s", track.path, exc)
                return
            self._queued_index = candidate
            self.next_track_queued = True
            logger.debug("Pre-queued track %d: %s", candidate, track.path)
            return
        self._prequeue_exhausted_at = self.index

    def _promote_queued(self) -> PollOutcome:
        target = self._queued_index
        if target is None:
            target = min(self.index + 1, len(self.playlist) - 1)
        if self.is_shuffled:
            self._previous_index = self.index
        self.playlist.index = target
        self._last_started = self._clock()
        self._last_elapsed = 0.0
        self.next_track_queued = False
        self._queued_index = None
        self._prequeue_exhausted_at = None
        logger.info("Now playing %s", self.current_track.path)
        return PollOutcome.ADVANCED

    # Internals

    def _open(self, track: Track) -> AudioSource:
        source = self._decoder(track.path)
        if source.duration_s <= 0 < track.duration_s:
            source = replace(source, duration_s=track.duration_s)
        return source

    def _move_to(self, index: int) -> None:
        prior = self.status
        self.stop()
        self.playlist.index = index
        self._prequeue_exhausted_at = None
        self._restore_status(prior)

    def _restore_status(self, status: PlayerStatus) -> None:
        if status is PlayerStatus.STOPPED:
            return
        self.play()
        if status is PlayerStatus.PAUSED:
            self.pause()

    def _halt(self) -> None:
        self._sink_call("stop")
        self.status = PlayerStatus.STOPPED
        self._last_elapsed = 0.0

    def _clear(self) -> None:
        self._drop_pending()
        self.next_track_queued = False
        self.digit_buffer.clear()
        self._double_tap.clear()

    def _drop_pending(self) -> None:
        if self._queued_index is None:
            return
        self._queued_index = None
        self._sink_call("pop_pending")

    def _apply_volume(self) -> None:
        level = 0.0 if self.is_muted else self.volume / 100
        self._sink_call("set_volume", level)

    def _sink_call(self, name: str, *args: object) -> None:
        try:
            getattr(self._sink, name)(*args)
        except SinkError as exc:
            logger.warning("Sink %s failed: %s", name, exc)
