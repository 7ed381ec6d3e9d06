"""Playlist construction from the file system.

A playlist is either a single audio file or the audio files directly inside
one directory. Random navigation samples from "leaf" directories: those that
hold audio files and no subdirectories.
"""

from __future__ import annotations

import logging
import os
import random
from collections.abc import Callable
from pathlib import Path

from tap_player.errors import (
    DecodeFailureError,
    EmptyPlaylistError,
    InvalidPathError,
    SubdirectoriesPresentError,
)
from tap_player.media_formats import is_supported_audio_file

from .audio_tags import probe_decodable, read_track
from .playlist import Playlist, Track

logger = logging.getLogger(__name__)


class PlaylistLibrary:
    """Loads playlists with injectable tag reading and decode probing."""

    def __init__(
        self,
        *,
        tag_reader: Callable[[Path], Track] = read_track,
        probe: Callable[[Path], None] = probe_decodable,
        bail_on_subdir: bool = False,
        rng: random.Random | None = None,
    ) -> None:
        self._tag_reader = tag_reader
        self._probe = probe
        self._bail_on_subdir = bail_on_subdir
        self._rng = rng

    def __call__(self, path: Path) -> Playlist:
        return self.load(path)

    def load(self, path: Path) -> Playlist:
        """Build a playlist for `path`, checking the first track decodes."""
        if path.is_file():
            tracks = [self._load_file(path)]
        elif path.is_dir():
            tracks = self._load_dir(path)
        else:
            raise InvalidPathError(f"'{path}' is not a file or directory")
        playlist = Playlist(tracks, source=path, rng=self._rng)
        self._probe(playlist.tracks[0].path)
        return playlist

    def _load_file(self, path: Path) -> Track:
        if not is_supported_audio_file(path):
            raise InvalidPathError(f"'{path}' is not a supported audio file")
        return self._tag_reader(path)

    def _load_dir(self, path: Path) -> list[Track]:
        tracks: list[Track] = []
        try:
            entries = sorted(path.iterdir())
        except OSError as exc:
            raise InvalidPathError(f"failed to read '{path}': {exc}") from exc
        for entry in entries:
            if entry.is_dir():
                if self._bail_on_subdir:
                    raise SubdirectoriesPresentError(
                        f"directory '{path}' contains subdirectories"
                    )
                continue
            if not is_supported_audio_file(entry):
                continue
            try:
                tracks.append(self._tag_reader(entry))
            except DecodeFailureError as exc:
                logger.warning("Ignoring unreadable file %s: %s", entry, exc)
        if not tracks:
            raise EmptyPlaylistError(f"no audio files detected in '{path}'")
        return tracks


def leaf_directories(root: Path) -> list[Path]:
    """Directories under `root` (inclusive) holding audio and no subdirectories."""
    leaves: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
        if dirnames:
            continue
        if any(is_supported_audio_file(Path(name)) for name in filenames):
            leaves.append(Path(dirpath))
    return leaves
