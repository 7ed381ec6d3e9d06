"""Audio file suffixes the library scanner accepts."""

from __future__ import annotations

from pathlib import Path

AUDIO_EXTENSIONS = frozenset(
    {
        ".aac",
        ".flac",
        ".m4a",
        ".mp3",
        ".ogg",
        ".opus",
        ".wav",
        ".wma",
    }
)


def is_supported_audio_file(path: Path) -> bool:
    return path.suffix.lower() in AUDIO_EXTENSIONS
