"""Custom widgets: FleetDataTable, FleetTextArea, SummaryBar."""

from __future__ import annotations

from typing import ClassVar, cast

from rich.text import Text
from textual.binding import Binding
from textual.widgets import DataTable, Static, TextArea

from ..formatting import summary_counts
from ..models import FleetSnapshot


def _as_binding(spec: Binding | tuple[str, ...]) -> Binding:
    """Normalize tuple-style Textual bindings into ``Binding`` objects."""
    if isinstance(spec, Binding):
        return spec
    if len(spec) >= 3:
        return Binding(spec[0], spec[1], spec[2], show=False)
    return Binding(spec[0], spec[1], show=False)


_BASE_TEXTAREA_BINDINGS: list[Binding] = [
    _as_binding(spec) for spec in TextArea.BINDINGS
]


class FleetDataTable(DataTable):
    """DataTable subclass that overrides the cursor styling."""
    DEFAULT_CSS = """
    FleetDataTable > .datatable--cursor {
        background: #cccccc;
        color: auto;
        text-style: none;
    }
    FleetDataTable:focus > .datatable--cursor {
        background: #cccccc;
        color: auto;
        text-style: none;
    }
    """


class FleetTextArea(TextArea):
    """TextArea with emacs-style alt keybindings."""
    BINDINGS: ClassVar[
        list[Binding | tuple[str, str] | tuple[str, str, str]]
    ] = cast(
        list[Binding | tuple[str, str] | tuple[str, str, str]],
        [
            b for b in _BASE_TEXTAREA_BINDINGS
            if not any(k in b.key for k in ("ctrl+u", "ctrl+w"))
        ] + [
            Binding("alt+f", "cursor_word_right", "Word right", show=False),
            Binding("alt+b", "cursor_word_left", "Word left", show=False),
            Binding("alt+d", "delete_word_right", "Delete word right", show=False),
            Binding("alt+backspace", "delete_word_left", "Delete word left", show=False),
            Binding("ctrl+u", "clear_all", "Clear", show=False),
        ],
    )

    def action_clear_all(self) -> None:
        """Clear entire text area."""
        self.clear()


def summary_text(snapshot: FleetSnapshot | None) -> Text:
    """Online / Offline / Total line, using the counts the server reported."""
    if snapshot is None:
        return Text("Loading fleet status...", style="#447777")
    online, offline, total = summary_counts(snapshot)
    text = Text()
    text.append(f"{online}", style="bold #44cc88")
    text.append(" Online   ", style="#888888")
    text.append(f"{offline}", style="bold #ff3366")
    text.append(" Offline   ", style="#888888")
    text.append(f"{total}", style="bold #dddddd")
    text.append(" Total Agents", style="#888888")
    return text


class SummaryBar(Static):
    """Fleet-wide counts above the agent table."""

    def show(self, snapshot: FleetSnapshot | None) -> None:
        self.update(summary_text(snapshot))
