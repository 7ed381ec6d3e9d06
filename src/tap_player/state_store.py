"""JSON persistence for UI state carried between runs.

Stores the playback options triple, the "show volume" preference and the
navigation history so a restarted player resumes where it left off. Invalid
or missing values degrade to defaults instead of aborting startup.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import suppress
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

logger = logging.getLogger(__name__)

MAX_QUEUE_ENTRIES = 3


@dataclass(frozen=True)
class AppState:
    """Persisted application state loaded at startup and updated during runtime."""

    status: int = 0
    volume: int = 100
    is_muted: bool = False
    showing_volume: bool = False
    queue: tuple[tuple[str, int], ...] = ()
    library_root: str | None = None
    playback_backend: str = "vlc"
    log_level: str = "INFO"

    @property
    def options_triple(self) -> tuple[int, int, bool]:
        return (self.status, self.volume, self.is_muted)


def _coerce_state(data: dict[str, Any]) -> AppState:
    """Coerce an untyped JSON object into `AppState` with safe defaults."""

    def _int_or_default(value: Any, default: int) -> int:
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        return default

    def _bool_or_default(value: Any, default: bool) -> bool:
        if isinstance(value, bool):
            return value
        return default

    def _str_or_default(value: Any, default: str) -> str:
        if isinstance(value, str):
            return value
        return default

    def _queue(value: Any) -> tuple[tuple[str, int], ...]:
        if not isinstance(value, list):
            return ()
        entries: list[tuple[str, int]] = []
        for item in value:
            if (
                isinstance(item, list)
                and len(item) == 2
                and isinstance(item[0], str)
                and item[0]
                and isinstance(item[1], int)
                and not isinstance(item[1], bool)
                and item[1] >= 0
            ):
                entries.append((item[0], item[1]))
            else:
                return ()
        if len(entries) > MAX_QUEUE_ENTRIES:
            return ()
        return tuple(entries)

    library_root = data.get("library_root")
    return AppState(
        status=_int_or_default(data.get("status"), 0),
        volume=_int_or_default(data.get("volume"), 100),
        is_muted=_bool_or_default(data.get("is_muted"), False),
        showing_volume=_bool_or_default(data.get("showing_volume"), False),
        queue=_queue(data.get("queue")),
        library_root=library_root if isinstance(library_root, str) else None,
        playback_backend=_str_or_default(data.get("playback_backend"), "vlc"),
        log_level=_str_or_default(data.get("log_level"), "INFO"),
    )


def load_state_with_notice(path: Path) -> tuple[AppState, str | None]:
    """Load state and return an optional user-facing notice."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("State file missing at %s; using defaults.", path)
        return AppState(), None
    except OSError as exc:
        logger.warning("Failed to read state file %s: %s; using defaults.", path, exc)
        return (
            AppState(),
            "State settings were reset to defaults.\n"
            "Likely cause: state file is unreadable due to permissions or IO issues.\n"
            f"Next step: verify access to '{path}' and restart.",
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("State file at %s is invalid JSON; using defaults.", path)
        return (
            AppState(),
            "State settings were reset to defaults.\n"
            "Likely cause: state file is corrupt or partially written.\n"
            f"Next step: remove or repair '{path}' and restart.",
        )

    if not isinstance(data, dict):
        logger.warning("State file at %s is not a JSON object; using defaults.", path)
        return (
            AppState(),
            "State settings were reset to defaults.\n"
            "Likely cause: state file format is invalid for this app version.\n"
            f"Next step: remove '{path}' and restart.",
        )

    return _coerce_state(data), None


def load_state(path: Path) -> AppState:
    state, _notice = load_state_with_notice(path)
    return state


def save_state(path: Path, state: AppState) -> None:
    """Persist state atomically via write-then-replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
    payload = json.dumps(asdict(state), indent=2, sort_keys=True)
    delay_s = 0.02
    try:
        for attempt in range(4):
            tmp_path.write_text(payload, encoding="utf-8")
            try:
                tmp_path.replace(path)
                return
            except OSError as exc:
                if not _is_retryable_replace_error(exc) or attempt >= 3:
                    raise
                time.sleep(delay_s)
                delay_s = min(0.25, delay_s * 2.0)
    finally:
        with suppress(OSError):
            tmp_path.unlink()


def _is_retryable_replace_error(exc: OSError) -> bool:
    """Whether a replace failure looks like a transient sharing violation."""
    winerror = getattr(exc, "winerror", None)
    if winerror in {32, 5}:
        return True
    return getattr(exc, "errno", None) in {13, 16}
