"""Playlist view: header, track rows and progress bar for one controller."""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import Enum

from rich.text import Text
from textual.events import Click
from textual.widget import Widget

from tap_player.events import TrackRowClicked
from tap_player.services.player_service import PlayerSnapshot, PlayerStatus
from tap_player.services.playlist import Track
from tap_player.utils.expiring_flag import ExpiringFlag
from tap_player.utils.time_format import (
    format_mins_secs,
    remaining_seconds,
    render_progress,
)

VOLUME_OVERLAY_S = 1.5

STATUS_SYMBOLS = {
    PlayerStatus.PLAYING: (">", "bold #6FCF97"),
    PlayerStatus.PAUSED: ("|", "bold #F2C94C"),
    PlayerStatus.STOPPED: (".", "bold #FF5A36"),
}


class RowClick(Enum):
    PLAY_OR_PAUSE = "play_or_pause"
    PLAY = "play"
    SELECT = "select"


def row_click_action(clicked: int, *, current: int, selected: int | None) -> RowClick:
    """Decide what a click on playlist row `clicked` does.

    The current row toggles playback; any other row needs two clicks, the
    first only selects it.
    """
    if clicked == current:
        return RowClick.PLAY_OR_PAUSE
    if clicked == selected:
        return RowClick.PLAY
    return RowClick.SELECT


def update_offset(height: int, length: int, index: int) -> int:
    """First playlist index to draw so the current row stays visible.

    `height` counts the header and progress rows, which leaves
    `height - 2` rows for tracks.
    """
    if index <= 0 or height >= length + 2:
        return 0
    if height <= 3:
        return index
    if height == 4:
        return index - 1 if index == length - 1 else index
    hidden = length + 2 - height
    return index - 1 if index <= hidden else hidden


def album_and_year(track: Track) -> str:
    if track.year is not None:
        return f"{track.album} ({track.year})"
    return track.album


def volume_label(volume: int, width: int) -> str:
    if width > 14:
        return f"  vol: {volume:>3} %  "
    return f"  {volume:>3} %  "


def options_marker(snapshot: PlayerSnapshot) -> str:
    mode = "*" if snapshot.is_randomized else "~" if snapshot.is_shuffled else ""
    muted = "m" if snapshot.is_muted else ""
    flags = f"{mode}{muted}"
    return flags.rjust(3) if flags else ""


def _fit(text: str, width: int) -> str:
    if width <= 0:
        return ""
    return text[:width].ljust(width)


def render_view(
    snapshot: PlayerSnapshot,
    width: int,
    height: int,
    *,
    offset: int = 0,
    show_volume: bool = False,
    selected: int | None = None,
) -> Text:
    """Render the whole view as rich `Text`, one line per terminal row."""
    column = width - 9 if width > 9 else 0
    lines: list[Text] = []
    if height > 1:
        lines.append(_render_header(snapshot, width, column, show_volume))
    if height > 2:
        visible = snapshot.tracks[offset : offset + height - 2]
        for i, track in enumerate(visible, start=offset):
            lines.append(_render_row(snapshot, track, i, width, column, selected))
    if height > 0:
        lines.append(_render_progress(snapshot, width, column))
    return Text("\n").join(lines)


def _render_header(
    snapshot: PlayerSnapshot, width: int, column: int, show_volume: bool
) -> Text:
    track = snapshot.current
    line = Text("  ")
    line.append(track.artist, style="bold #F2C94C")
    line.append("  ")
    line.append(album_and_year(track), style="bold italic #56CCF2")
    if not show_volume:
        line.truncate(width, pad=True)
        return line
    label = volume_label(snapshot.volume, width)
    start = max(0, column - 5 if width > 14 else column)
    line.truncate(start, pad=True)
    line.append(label, style="reverse")
    line.truncate(width, pad=True)
    return line


def _render_row(
    snapshot: PlayerSnapshot,
    track: Track,
    index: int,
    width: int,
    column: int,
    selected: int | None,
) -> Text:
    title = f"{track.track_number:02}  {track.title}"
    duration = format_mins_secs(track.duration_s)
    line = Text()
    if index == snapshot.index:
        symbol, symbol_style = STATUS_SYMBOLS[snapshot.status]
        marker = options_marker(snapshot) if column > 11 else ""
        line.append("   ")
        line.append(symbol, style=symbol_style)
        line.append("  ")
        line.append(_fit(title, column - 6 - len(marker)), style="bold")
        line.append(marker, style="italic #9B9B9B")
        line.append(duration, style="bold")
    else:
        style = "underline" if index == selected else ""
        line.append("      ")
        line.append(_fit(title, column - 6), style=style)
        line.append(duration)
    line.truncate(width, pad=True)
    return line


def _render_progress(snapshot: PlayerSnapshot, width: int, column: int) -> Text:
    elapsed = snapshot.elapsed_s
    bar_length = width - 18 if width > 18 else 0
    line = Text(format_mins_secs(elapsed), style="bold")
    line.append("   ")
    bar = render_progress(elapsed, snapshot.duration_s, bar_length)
    line.append(bar, style="#6FCF97")
    line.truncate(column, pad=True)
    line.append(
        format_mins_secs(remaining_seconds(elapsed, snapshot.duration_s)), style="bold"
    )
    line.truncate(width, pad=True)
    return line


class PlayerView(Widget):
    """Render-only view of a `PlayerSnapshot` with mouse row selection."""

    DEFAULT_CSS = """
    PlayerView {
        height: 1fr;
        width: 1fr;
    }
    """

    def __init__(
        self,
        *,
        showing_volume: bool = False,
        clock: Callable[[], float] = time.monotonic,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._clock = clock
        self._snapshot: PlayerSnapshot | None = None
        self._offset = 0
        self.selected: int | None = None
        self.showing_volume = showing_volume
        self._volume_flash = ExpiringFlag(VOLUME_OVERLAY_S)

    @property
    def offset(self) -> int:
        return self._offset

    def update_snapshot(self, snapshot: PlayerSnapshot) -> None:
        if self._snapshot is not None and snapshot.tracks != self._snapshot.tracks:
            self.selected = None
        self._snapshot = snapshot
        self._offset = update_offset(
            self.size.height, len(snapshot.tracks), snapshot.index
        )
        self.refresh()

    def flash_volume(self) -> None:
        self._volume_flash.set(self._clock())

    def toggle_volume(self) -> bool:
        """Pin or unpin the volume overlay; returns the new pinned state."""
        self.showing_volume = not self.showing_volume
        self._volume_flash.clear()
        return self.showing_volume

    def is_volume_visible(self) -> bool:
        return self.showing_volume or self._volume_flash.is_active(self._clock())

    def render(self) -> Text:
        if self._snapshot is None:
            return Text("")
        return render_view(
            self._snapshot,
            max(1, self.size.width),
            max(1, self.size.height),
            offset=self._offset,
            show_volume=self.is_volume_visible(),
            selected=self.selected,
        )

    async def on_click(self, event: Click) -> None:
        if self._snapshot is None:
            return
        offset = event.get_content_offset(self)
        if offset is None:
            return
        # Row 0 is the header and the last row is the progress bar.
        if offset.y <= 0 or offset.y >= self.size.height - 1:
            return
        clicked = self._offset + offset.y - 1
        if clicked >= len(self._snapshot.tracks):
            return
        event.stop()
        action = row_click_action(
            clicked, current=self._snapshot.index, selected=self.selected
        )
        self.selected = clicked if action is RowClick.SELECT else None
        self.post_message(TrackRowClicked(clicked, action))
        self.refresh()
