"""In-memory audio sink and decoder for deterministic runs and tests."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

from tap_player.errors import DecodeFailureError

from .playback_backend import AudioSource, SinkError


class FakeAudioSink:
    """Sink that "plays" sources by watching a clock.

    Each source lasts `duration_s` seconds of playing time; the head is
    dropped once that much time has passed and the next source starts with
    any overshoot carried over, matching a gapless hardware queue.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._queue: deque[AudioSource] = deque()
        self._playing = True
        self._position_s = 0.0
        self._mark = clock()
        self._closed = False
        self.volume = 1.0
        self.appended: list[Path] = []
        self.seeks: list[float] = []
        self.fail_seek = False

    @property
    def is_paused(self) -> bool:
        return not self._playing

    @property
    def position_s(self) -> float:
        """Playback position inside the audible source."""
        self._drain()
        return self._position_s

    def append(self, source: AudioSource) -> None:
        if self._closed:
            raise SinkError("sink is closed")
        self._drain()
        if not self._queue:
            self._position_s = 0.0
            self._mark = self._clock()
        self._queue.append(source)
        self.appended.append(source.path)

    def play(self) -> None:
        self._drain()
        if not self._playing:
            self._mark = self._clock()
            self._playing = True

    def pause(self) -> None:
        self._drain()
        self._playing = False

    def stop(self) -> None:
        self._queue.clear()
        self._position_s = 0.0
        self._mark = self._clock()

    def try_seek(self, position_s: float) -> None:
        self._drain()
        if self.fail_seek or not self._queue:
            raise SinkError("nothing to seek")
        self._position_s = max(0.0, position_s)
        self.seeks.append(self._position_s)

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def pop_pending(self) -> AudioSource | None:
        self._drain()
        if len(self._queue) > 1:
            return self._queue.pop()
        return None

    def __len__(self) -> int:
        self._drain()
        return len(self._queue)

    def empty(self) -> bool:
        return len(self) == 0

    def close(self) -> None:
        self.stop()
        self._closed = True

    def _drain(self) -> None:
        now = self._clock()
        if self._playing:
            self._position_s += now - self._mark
        self._mark = now
        while self._queue:
            duration = self._queue[0].duration_s
            if duration <= 0 or self._position_s < duration:
                break
            self._queue.popleft()
            self._position_s -= duration
        if not self._queue:
            self._position_s = 0.0


class FakeDecoder:
    """Decoder that never touches the file system.

    Paths listed in `failing` raise `DecodeFailureError`; everything else
    decodes with the duration from `durations` (0 lets the caller fill in the
    tagged duration).
    """

    def __init__(
        self,
        *,
        durations: Mapping[Path, int] | None = None,
        failing: Iterable[Path] = (),
    ) -> None:
        self._durations = dict(durations or {})
        self.failing = set(failing)
        self.opened: list[Path] = []

    def __call__(self, path: Path) -> AudioSource:
        if path in self.failing:
            raise DecodeFailureError(f"could not decode '{path}'")
        self.opened.append(path)
        return AudioSource(path=path, duration_s=self._durations.get(path, 0))
