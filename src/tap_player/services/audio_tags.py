"""Tag reading with mutagen."""

from __future__ import annotations

import math
import re
from pathlib import Path

from mutagen import File as MutagenFile

from tap_player.errors import DecodeFailureError

from .playlist import Track

UNKNOWN = "None"


def read_track(path: Path) -> Track:
    """Build a `Track` from the file's tags and stream info.

    Raises `DecodeFailureError` if mutagen cannot identify the file.
    """
    audio = _open(path)
    tags = audio.tags or {}
    year_raw = _first_tag(tags, "date") or _first_tag(tags, "year")
    return Track(
        path=path,
        title=_first_tag(tags, "title") or path.stem,
        artist=_first_tag(tags, "artist") or UNKNOWN,
        album=_first_tag(tags, "album") or UNKNOWN,
        year=_parse_year(year_raw),
        track_number=_parse_track_number(_first_tag(tags, "tracknumber")),
        duration_s=_safe_duration_s(getattr(audio.info, "length", None)),
    )


def probe_decodable(path: Path) -> None:
    """Check that the audio stream of `path` can be identified."""
    audio = _open(path)
    if getattr(audio, "info", None) is None:
        raise DecodeFailureError(f"no audio stream in '{path}'")


def _open(path: Path):
    try:
        audio = MutagenFile(path, easy=True)
    except Exception as exc:
        raise DecodeFailureError(f"failed to read '{path}': {exc}") from exc
    if audio is None:
        raise DecodeFailureError(f"unsupported or unreadable file '{path}'")
    return audio


def _first_tag(tags, key: str) -> str | None:
    value = tags.get(key)
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    return str(value).strip() or None


def _parse_year(value: str | None) -> int | None:
    if not value:
        return None
    match = re.search(r"\b(\d{4})\b", value)
    return int(match.group(1)) if match else None


def _parse_track_number(value: str | None) -> int:
    # Tags store "3" or "3/12".
    if not value:
        return 0
    match = re.match(r"\s*(\d+)", value)
    return int(match.group(1)) if match else 0


def _safe_duration_s(value: object) -> int:
    if not isinstance(value, (int, float)):
        return 0
    normalized = float(value)
    if not math.isfinite(normalized) or normalized <= 0:
        return 0
    return int(normalized)
