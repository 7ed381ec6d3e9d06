"""Exception types shared by playlist construction, playback and navigation.

Construction-time errors are fatal to a single controller build and must be
reported to the caller. Runtime decode errors are caught by the controller and
turned into a skip to the next track.
"""

from __future__ import annotations


class TapError(Exception):
    """Base exception for tap-player."""


class InvalidPathError(TapError):
    """Path is not a readable file or directory, or not a supported format."""


class SubdirectoriesPresentError(InvalidPathError):
    """Directory holds subdirectories where a flat album was expected."""


class EmptyPlaylistError(TapError):
    """No playable tracks were found."""


class DecodeFailureError(TapError):
    """A track could not be opened or decoded."""


class NoCandidateFoundError(TapError):
    """Random selection exhausted its attempts without a usable playlist."""


class NavigationError(TapError):
    """Requested history entry does not exist."""


def format_user_error(
    *, what_failed: str, likely_cause: str, next_step: str, detail: str | None = None
) -> str:
    message = f"{what_failed}\nLikely cause: {likely_cause}\nNext step: {next_step}"
    if detail:
        message = f"{message}\nDetails: {detail}"
    return message
