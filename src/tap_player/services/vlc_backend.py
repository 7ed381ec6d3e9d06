"""Audio sink backed by python-vlc.

libVLC plays one media at a time, so the sink keeps its own queue and swaps
in the next media as soon as the player reports the head finished. The swap
happens whenever the queue is inspected, which the controller does every
render tick.
"""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Any

from tap_player.errors import DecodeFailureError

from .playback_backend import AudioSource, SinkError

logger = logging.getLogger(__name__)

_FINISHED_STATES = frozenset({"ended", "error"})


class VLCAudioSink:
    def __init__(self, *, instance: Any = None, player: Any = None) -> None:
        if instance is None:
            try:
                import vlc

                instance = vlc.Instance("--no-video", "--quiet")
            except Exception as exc:  # pragma: no cover - depends on VLC install
                raise SinkError(
                    "VLC backend unavailable. Ensure VLC/libVLC is installed."
                ) from exc
            if instance is None:  # pragma: no cover - depends on VLC install
                raise SinkError("libVLC failed to initialize.")
        self._instance = instance
        self._player = player if player is not None else instance.media_player_new()
        self._queue: deque[AudioSource] = deque()
        self._paused = False
        self._head_loaded = False

    def open_source(self, path: Path) -> AudioSource:
        """Decoder entry point: wrap `path` in a VLC media handle."""
        if not path.is_file():
            raise DecodeFailureError(f"could not open '{path}'")
        try:
            media = self._instance.media_new_path(str(path))
        except Exception as exc:
            raise DecodeFailureError(f"could not decode '{path}': {exc}") from exc
        if media is None:
            raise DecodeFailureError(f"could not decode '{path}'")
        return AudioSource(path=path, handle=media)

    def append(self, source: AudioSource) -> None:
        self._queue.append(source)
        if len(self._queue) == 1:
            self._load_head()

    def play(self) -> None:
        self._paused = False
        if not self._queue:
            return
        if not self._head_loaded:
            self._load_head()
        else:
            self._call("set_pause", 0)

    def pause(self) -> None:
        self._paused = True
        if self._head_loaded:
            self._call("set_pause", 1)

    def stop(self) -> None:
        self._queue.clear()
        self._head_loaded = False
        self._call("stop")

    def try_seek(self, position_s: float) -> None:
        if not self._queue or not self._head_loaded:
            raise SinkError("nothing to seek")
        result = self._call("set_time", int(max(0.0, position_s) * 1000))
        if isinstance(result, int) and result < 0:
            raise SinkError(f"seek to {position_s:.1f}s rejected")

    def set_volume(self, volume: float) -> None:
        result = self._call("audio_set_volume", int(round(volume * 100)))
        if isinstance(result, int) and result < 0:
            raise SinkError(f"volume {volume:.2f} rejected")

    def pop_pending(self) -> AudioSource | None:
        self._advance()
        if len(self._queue) > 1:
            return self._queue.pop()
        return None

    def __len__(self) -> int:
        self._advance()
        return len(self._queue)

    def empty(self) -> bool:
        return len(self) == 0

    def close(self) -> None:
        self.stop()
        release = getattr(self._player, "release", None)
        if callable(release):
            release()

    def _load_head(self) -> None:
        source = self._queue[0]
        self._call("set_media", source.handle)
        self._head_loaded = True
        if not self._paused:
            self._call("play")

    def _advance(self) -> None:
        if not self._queue or not self._head_loaded:
            return
        if _state_name(self._player) not in _FINISHED_STATES:
            return
        finished = self._queue.popleft()
        self._head_loaded = False
        logger.debug("VLC finished %s", finished.path)
        if self._queue:
            self._load_head()

    def _call(self, name: str, *args: Any) -> Any:
        try:
            return getattr(self._player, name)(*args)
        except Exception as exc:
            raise SinkError(f"VLC {name} failed: {exc}") from exc


def _state_name(player: Any) -> str:
    try:
        state = player.get_state()
    except Exception:
        return "error"
    name = getattr(state, "name", None) or str(state).rsplit(".", 1)[-1]
    return str(name).lower()
