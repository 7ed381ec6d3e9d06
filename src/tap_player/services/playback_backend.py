"""Audio sink and decoder contracts.

`PlaybackController` drives an `AudioSink` through these protocols only, so the
fake and VLC adapters are interchangeable. A sink holds an ordered queue of
sources: the head is audible, anything after it is pre-queued for gapless
playback.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol


class SinkError(Exception):
    """Audio output rejected a command."""


@dataclass(frozen=True)
class AudioSource:
    """A track that has been opened and is ready to append to a sink."""

    path: Path
    duration_s: int = 0
    handle: Any = None


class Decoder(Protocol):
    """Opens a track for playback, raising `DecodeFailureError` on failure."""

    def __call__(self, path: Path) -> AudioSource: ...


class AudioSink(Protocol):
    """Non-blocking audio output queue."""

    def append(self, source: AudioSource) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def try_seek(self, position_s: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def pop_pending(self) -> AudioSource | None: ...

    def __len__(self) -> int: ...

    def empty(self) -> bool: ...

    def close(self) -> None: ...
