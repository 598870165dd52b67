"""Modal screens: kill confirmation, message, modal-required, inbox, terminal."""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, RichLog, Static

from ..errors import CapabilityError
from ..formatting import format_agent_id
from ..models import (
    ActionRequest,
    ActionVerb,
    Agent,
    ModalRequired,
    TerminalTranscript,
)
from ..pollers import InboxPoller, TerminalPoller
from .css import (
    AGENT_MESSAGE_CSS,
    CONFIRM_KILL_CSS,
    CREDENTIAL_CSS,
    HELP_CSS,
    INBOX_CSS,
    MODAL_REQUIRED_CSS,
    TERMINAL_CSS,
)
from .stream import transcript_to_text
from .widgets import FleetTextArea

if TYPE_CHECKING:
    from .app import FleetDeckApp


class _FleetScreenMixin:
    """Mixin providing typed access to the FleetDeckApp instance."""

    @property
    def fleet(self) -> FleetDeckApp:
        return self.app  # type: ignore[return-value, attr-defined]


# ── Kill confirmation ─────────────────────────────────────────────────

class ConfirmKillScreen(_FleetScreenMixin, ModalScreen):
    CSS = CONFIRM_KILL_CSS
    BINDINGS = [
        Binding("escape", "dismiss", "Cancel", show=False),
        Binding("y", "confirm", "Yes", show=False),
        Binding("n", "dismiss", "No", show=False),
    ]

    def __init__(self, agent: Agent) -> None:
        super().__init__()
        self.agent = agent

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-kill-dialog"):
            yield Label(f"Kill agent [bold]{format_agent_id(self.agent.id)}[/bold]?")
            with Horizontal(id="confirm-kill-buttons"):
                yield Button("Yes, kill", variant="error", id="yes-btn")
                yield Button("No", variant="default", id="no-btn")

    def on_mount(self) -> None:
        self.query_one("#yes-btn", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "yes-btn":
            self.fleet.do_action(ActionRequest(ActionVerb.KILL, self.agent.id))
        self.dismiss()
        event.stop()

    def action_confirm(self) -> None:
        self.fleet.do_action(ActionRequest(ActionVerb.KILL, self.agent.id))
        self.dismiss()


class ConfirmKillAllScreen(_FleetScreenMixin, ModalScreen):
    CSS = CONFIRM_KILL_CSS
    BINDINGS = [
        Binding("escape", "dismiss", "Cancel", show=False),
        Binding("y", "confirm", "Yes", show=False),
        Binding("n", "dismiss", "No", show=False),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-kill-dialog"):
            yield Label("Kill [bold]every[/bold] agent in the fleet?")
            with Horizontal(id="confirm-kill-buttons"):
                yield Button("Yes, kill all", variant="error", id="yes-btn")
                yield Button("No", variant="default", id="no-btn")

    def on_mount(self) -> None:
        self.query_one("#no-btn", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "yes-btn":
            self.fleet.do_action(ActionRequest(ActionVerb.KILL_ALL))
        self.dismiss()
        event.stop()

    def action_confirm(self) -> None:
        self.fleet.do_action(ActionRequest(ActionVerb.KILL_ALL))
        self.dismiss()


# ── Message ───────────────────────────────────────────────────────────

class AgentMessageScreen(_FleetScreenMixin, ModalScreen):
    CSS = AGENT_MESSAGE_CSS
    BINDINGS = [
        Binding("escape", "cancel", "Cancel", show=False),
        Binding("ctrl+s", "send", "Send", show=False),
    ]

    def __init__(self, agent: Agent, draft: str = "") -> None:
        super().__init__()
        self.agent = agent
        self.draft = draft

    def compose(self) -> ComposeResult:
        with Vertical(id="agent-message-dialog"):
            yield Label(
                f"Message [bold]{format_agent_id(self.agent.id)}[/bold]  "
                "[#888888](Control-S send | Esc keep draft)[/]",
            )
            yield FleetTextArea(self.draft, id="agent-message-input")
            with Horizontal(id="agent-message-buttons"):
                yield Button("Send", variant="primary", id="agent-message-send-btn")

    def on_mount(self) -> None:
        ta = self.query_one("#agent-message-input", FleetTextArea)
        ta.focus()
        ta.move_cursor(ta.document.end)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "agent-message-send-btn":
            self.action_send()
        event.stop()

    def action_send(self) -> None:
        text = self.query_one("#agent-message-input", FleetTextArea).text
        if self.fleet.do_send_message(self.agent, text):
            self.dismiss()

    def action_cancel(self) -> None:
        draft = self.query_one("#agent-message-input", FleetTextArea).text
        self.fleet.do_save_message_draft(self.agent, draft)
        self.dismiss()


# ── Modal-required acknowledgment ─────────────────────────────────────

class ModalRequiredScreen(_FleetScreenMixin, ModalScreen):
    """Shows a command the operator must run by hand."""

    CSS = MODAL_REQUIRED_CSS
    BINDINGS = [
        Binding("escape", "acknowledge", "Close", show=False),
        Binding("c", "copy", "Copy", show=False),
    ]

    def __init__(self, modal: ModalRequired) -> None:
        super().__init__()
        self.modal = modal

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-required-dialog"):
            yield Label(self.modal.title, id="modal-required-title", markup=False)
            yield Label(self.modal.instruction, markup=False)
            yield Static(self.modal.command, id="modal-required-command", markup=False)
            with Horizontal(id="modal-required-buttons"):
                yield Button("Copy", variant="primary", id="modal-copy-btn")
                yield Button("Done", variant="default", id="modal-done-btn")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "modal-copy-btn":
            self.action_copy()
        elif event.button.id == "modal-done-btn":
            self.action_acknowledge()
        event.stop()

    def action_copy(self) -> None:
        self.fleet.copy_to_clipboard(self.modal.command)
        self.fleet.notify("Command copied", timeout=2)

    def action_acknowledge(self) -> None:
        self.fleet.do_dismiss_modal()
        self.dismiss()


# ── Inbox ─────────────────────────────────────────────────────────────

class InboxScreen(_FleetScreenMixin, ModalScreen):
    CSS = INBOX_CSS
    BINDINGS = [
        Binding("escape", "dismiss", "Close", show=False),
        Binding("f5", "refresh", "Refresh", show=False),
    ]

    def __init__(self, agent: Agent, files: tuple[str, ...] | None = None) -> None:
        super().__init__()
        self.agent = agent
        self.files = files
        self.poller: InboxPoller | None = None

    def compose(self) -> ComposeResult:
        with Vertical(id="inbox-dialog"):
            yield Label(f"Inbox [bold]{format_agent_id(self.agent.id)}[/bold]  [#888888](F5 refresh | Esc close)[/]")
            yield Static(self._render_files(self.files), id="inbox-list", markup=False)
            yield Label("", id="inbox-error", markup=False)

    @staticmethod
    def _render_files(files: tuple[str, ...] | list[str] | None) -> str:
        if files is None:
            return "Loading..."
        if not files:
            return "(inbox empty)"
        return "\n".join(f"• {name}" for name in files)

    def on_mount(self) -> None:
        self.poller = self.fleet.make_inbox_poller(
            self.agent,
            on_update=self._apply_files,
            on_error=self._apply_error,
        )
        try:
            # Files handed over by a finished check-inbox are already current.
            self.poller.start(delay_first=self.files is not None)
        except CapabilityError as exc:
            self._apply_error(str(exc))
            self.poller = None

    def on_unmount(self) -> None:
        if self.poller is not None:
            self.poller.stop()
            self.poller = None

    def _apply_files(self, files: list[str]) -> None:
        if not self.is_attached:
            return
        self.files = tuple(files)
        self.query_one("#inbox-list", Static).update(self._render_files(files))
        self.query_one("#inbox-error", Label).update("")

    def _apply_error(self, message: str) -> None:
        if not self.is_attached:
            return
        self.query_one("#inbox-error", Label).update(f"Error: {message}")

    async def action_refresh(self) -> None:
        if self.poller is not None:
            await self.poller.refresh()


# ── Terminal ──────────────────────────────────────────────────────────

class TerminalScreen(_FleetScreenMixin, ModalScreen):
    CSS = TERMINAL_CSS
    BINDINGS = [
        Binding("escape", "dismiss", "Close", show=False),
        Binding("m", "message", "Message", show=False),
    ]

    def __init__(self, agent: Agent) -> None:
        super().__init__()
        self.agent = agent
        self.poller: TerminalPoller | None = None

    def compose(self) -> ComposeResult:
        with Vertical(id="terminal-dialog"):
            with Horizontal(id="terminal-title-row"):
                yield Label(
                    f"Terminal [bold]{format_agent_id(self.agent.id)}[/bold]",
                    id="terminal-title",
                )
                yield Label("(M message | Esc close)", id="terminal-hint")
            yield RichLog(id="terminal-stream", wrap=True, markup=False, auto_scroll=True)

    def on_mount(self) -> None:
        self.poller = self.fleet.make_terminal_poller(self.agent, on_update=self._apply_transcript)
        self.poller.start()

    def on_unmount(self) -> None:
        if self.poller is not None:
            self.poller.stop()
            self.poller = None

    def _apply_transcript(self, transcript: TerminalTranscript) -> None:
        if not self.is_attached:
            return
        stream = self.query_one("#terminal-stream", RichLog)
        stream.clear()
        if transcript.error is not None:
            stream.write(transcript.content)
            return
        if not transcript.content.strip():
            stream.write(f"[{self.agent.id}] (no output)")
            return
        stream.write(transcript_to_text(transcript.content))
        title = self.query_one("#terminal-title", Label)
        state = "live" if transcript.online else "offline"
        title.update(f"Terminal [bold]{format_agent_id(self.agent.id)}[/bold] ({state})")

    def action_message(self) -> None:
        self.fleet.action_agent_message()


# ── Credential ────────────────────────────────────────────────────────

class CredentialScreen(_FleetScreenMixin, ModalScreen):
    CSS = CREDENTIAL_CSS
    BINDINGS = [Binding("escape", "dismiss", "Cancel", show=False)]

    def compose(self) -> ComposeResult:
        with Vertical(id="credential-dialog"):
            yield Label("API key used for control actions (stored locally).")
            yield Input(password=True, placeholder="Enter API key", id="credential-input")
            with Horizontal(id="credential-buttons"):
                yield Button("Save", variant="primary", id="credential-save-btn")
                yield Button("Clear", variant="warning", id="credential-clear-btn")

    def on_mount(self) -> None:
        self.query_one("#credential-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.fleet.do_save_credential(event.value)
        self.dismiss()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "credential-save-btn":
            self.fleet.do_save_credential(self.query_one("#credential-input", Input).value)
        elif event.button.id == "credential-clear-btn":
            self.fleet.do_save_credential("")
        self.dismiss()
        event.stop()


# ── Help ──────────────────────────────────────────────────────────────

class HelpScreen(_FleetScreenMixin, ModalScreen):
    CSS = HELP_CSS
    BINDINGS = [
        Binding("escape", "dismiss", "Close", show=False),
        Binding("question_mark", "dismiss", "Close", show=False),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="help-dialog"):
            yield Label("[bold]Keys[/bold]")
            for binding in self.fleet.BINDINGS:
                if not isinstance(binding, Binding):
                    continue
                key = binding.key_display or binding.key
                yield Label(f"{key:>10}  {binding.description}", classes="help-row", markup=False)
