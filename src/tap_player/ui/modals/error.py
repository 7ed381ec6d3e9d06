"""Modal shown when a navigation rebuild or startup step fails."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label

from tap_player.errors import format_user_error


class ErrorModal(ModalScreen[None]):
    """Show a "what failed / likely cause / next step" message."""

    BINDINGS = [
        ("escape", "close", "Close"),
        ("enter", "close", "Close"),
        ("q", "close", "Close"),
    ]

    def __init__(self, message: str) -> None:
        super().__init__()
        self.message = message

    @classmethod
    def from_parts(
        cls,
        *,
        what_failed: str,
        likely_cause: str,
        next_step: str,
        detail: str | None = None,
    ) -> ErrorModal:
        return cls(
            format_user_error(
                what_failed=what_failed,
                likely_cause=likely_cause,
                next_step=next_step,
                detail=detail,
            )
        )

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(self.message, id="error-message"),
            Button("OK", id="ok"),
            id="modal-body",
        )

    def on_mount(self) -> None:
        self.query_one("#ok", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.action_close()

    def action_close(self) -> None:
        self.dismiss(None)
