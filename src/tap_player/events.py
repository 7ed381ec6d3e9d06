"""Textual messages routed from widgets to the app."""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.message import Message

if TYPE_CHECKING:
    from tap_player.ui.player_view import RowClick


class TrackRowClicked(Message):
    """A playlist row was clicked; `action` says what the click means."""

    def __init__(self, index: int, action: RowClick) -> None:
        super().__init__()
        self.index = index
        self.action = action
