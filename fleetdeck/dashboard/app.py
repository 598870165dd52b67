"""Fleetdeck TUI dashboard: main App class."""

from __future__ import annotations

import argparse
import logging
import time

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import DataTable, Label, Static

from ..actions import ActionDispatcher, check_eligible, has_terminal, ineligibility_reason
from ..client import FleetClient
from ..credentials import CredentialSource, CredentialStore, mask_credential
from ..errors import ActionInFlightError, CapabilityError
from ..feed import LiveFeedController
from ..formatting import format_agent_id, kind_label, online_label, task_label
from ..models import (
    ActionRequest,
    ActionVerb,
    Agent,
    Completed,
    Failed,
    FeedState,
    FleetSnapshot,
    ModalRequired,
    Outcome,
    send_message_request,
)
from ..pollers import InboxPoller, TerminalPoller
from ..settings import SETTINGS
from ..ui_state import TransientUIState
from .css import APP_CSS
from .screens import (
    AgentMessageScreen,
    ConfirmKillAllScreen,
    ConfirmKillScreen,
    CredentialScreen,
    HelpScreen,
    InboxScreen,
    ModalRequiredScreen,
    TerminalScreen,
)
from .widgets import FleetDataTable, SummaryBar

logger = logging.getLogger(__name__)

_COLUMNS = ("Agent", "State", "Kind", "Task", "Inbox", "Last status")

_MODE_LABELS: dict[FeedState, tuple[str, str]] = {
    FeedState.STREAMING: ("● LIVE", "streaming"),
    FeedState.POLLING: ("◌ POLLING", "polling"),
    FeedState.DISCONNECTED: ("○ CONNECTING", ""),
}


def _agent_row(agent: Agent) -> tuple[Text, ...]:
    state_style = "bold #44cc88" if agent.online else "#ff3366"
    return (
        Text(format_agent_id(agent.id), style="bold #dddddd"),
        Text(online_label(agent), style=state_style),
        Text(kind_label(agent), style="#888888"),
        Text(task_label(agent)),
        Text(str(agent.inbox_count) if agent.inbox_count else "", style="#ffaf00"),
        Text(agent.last_status_line or agent.status_text or "", style="#6a9090"),
    )


class FleetDeckApp(App):
    TITLE = "Fleetdeck"
    DEFAULT_CSS = APP_CSS
    BINDINGS = [
        Binding("l", "launch", "Launch"),
        Binding("k", "kill", "Kill"),
        Binding("r", "restart", "Restart"),
        Binding("s", "save_context", "Save ctx"),
        Binding("p", "pull_context", "Pull ctx"),
        Binding("n", "nudge", "Nudge"),
        Binding("i", "check_inbox", "Inbox"),
        Binding("m", "agent_message", "Message"),
        Binding("t", "terminal", "Terminal"),

        Binding("L,shift+l", "launch_all", "Launch All", key_display="L"),
        Binding("K,shift+k", "kill_all", "Kill All", key_display="K"),
        Binding("I,shift+i", "fleet_inbox_check", "Inbox check all", key_display="I"),
        Binding("S,shift+s", "fleet_save", "Save all", key_display="S"),
        Binding("P,shift+p", "fleet_pull", "Pull all", key_display="P"),

        Binding("ctrl+k", "credential", "API key"),
        Binding("f5", "refresh", "Refresh"),
        Binding("f10", "quit", "Quit"),
        Binding("question_mark", "show_help", "?", key_display="?"),
    ]

    def __init__(
        self,
        *,
        client: FleetClient | None = None,
        credentials: CredentialSource | None = None,
    ) -> None:
        super().__init__()
        self.client = client or FleetClient(
            SETTINGS.server.base_url,
            credential_header=SETTINGS.server.credential_header,
            timeout=SETTINGS.server.request_timeout,
        )
        self.credentials = credentials if credentials is not None else CredentialStore()
        self.ui = TransientUIState(
            banner_ttl=SETTINGS.banner_ttl,
            on_change=self._on_ui_change,
        )
        self.feed = LiveFeedController(
            self.client,
            poll_interval=SETTINGS.feed.poll_interval,
            stream_retry_interval=SETTINGS.feed.stream_retry_interval,
            on_snapshot=self._on_snapshot,
            on_state=self._on_feed_state,
            on_error=self._on_feed_error,
        )
        self.dispatcher = ActionDispatcher(
            self.client,
            self.credentials,
            feed=self.feed,
            ui=self.ui,
            on_in_flight=self._on_in_flight,
        )

    def compose(self) -> ComposeResult:
        yield Vertical(
            Horizontal(
                Label("⚓ Fleetdeck", id="title-text"),
                Static(_MODE_LABELS[FeedState.DISCONNECTED][0], id="title-mode"),
                Static("", id="title-clock"),
                id="title-bar",
            ),
            SummaryBar("", id="summary-bar"),
            Static("", id="feed-error", classes="hidden", markup=False),
            FleetDataTable(id="agent-table"),
            Static("", id="banner", classes="hidden", markup=False),
        )
        yield Static("", id="status-line", markup=False)

    def on_mount(self) -> None:
        table = self.query_one("#agent-table", DataTable)
        table.show_row_labels = False
        table.cursor_type = "row"
        table.zebra_stripes = True
        for col in _COLUMNS:
            table.add_column(col)
        self.query_one("#summary-bar", SummaryBar).show(None)
        self._update_status_line()
        self.update_clock()
        self.feed.start()
        self.set_interval(1.0, self.update_clock)

    async def on_unmount(self) -> None:
        await self.feed.aclose()
        self.dispatcher.close()
        await self.client.aclose()

    def update_clock(self) -> None:
        clock = self.query_one("#title-clock", Static)
        clock.update(f"  {time.strftime('%H:%M:%S')}")

    # ── Feed callbacks ────────────────────────────────────────────────

    def _on_snapshot(self, snapshot: FleetSnapshot) -> None:
        self.query_one("#feed-error", Static).add_class("hidden")
        self.query_one("#summary-bar", SummaryBar).show(snapshot)
        self._render_table(snapshot)

    def _on_feed_state(self, state: FeedState) -> None:
        label, css_class = _MODE_LABELS[state]
        mode = self.query_one("#title-mode", Static)
        mode.remove_class("streaming", "polling")
        if css_class:
            mode.add_class(css_class)
        mode.update(label)

    def _on_feed_error(self, message: str) -> None:
        box = self.query_one("#feed-error", Static)
        box.update(f"Failed to load fleet status: {message}")
        box.remove_class("hidden")

    def _render_table(self, snapshot: FleetSnapshot) -> None:
        table = self.query_one("#agent-table", DataTable)
        selected = self.ui.selected_agent_id or self._get_selected_row_key()
        table.clear()
        cursor_row = 0
        for idx, agent in enumerate(snapshot.agents):
            table.add_row(*_agent_row(agent), key=agent.id)
            if agent.id == selected:
                cursor_row = idx
        if snapshot.agents:
            table.move_cursor(row=cursor_row)

    # ── UI state callbacks ────────────────────────────────────────────

    def _on_ui_change(self, ui: TransientUIState) -> None:
        banner = self.query_one("#banner", Static)
        banner.remove_class("success", "error")
        if ui.banner is None:
            banner.add_class("hidden")
            banner.update("")
            return
        banner.remove_class("hidden")
        banner.add_class(ui.banner.kind)
        banner.update(ui.banner.text)

    def _on_in_flight(self, action_id: str | None) -> None:
        self._update_status_line()

    def _update_status_line(self) -> None:
        line = self.query_one("#status-line", Static)
        if self.dispatcher.in_flight is not None:
            line.update(f"⏳ {self.dispatcher.in_flight} ...")
            return
        key = mask_credential(self.credentials.get())
        line.update(f"{SETTINGS.server.base_url}  |  API key {key}  |  ? help")

    # ── Selection ─────────────────────────────────────────────────────

    def _get_selected_row_key(self) -> str | None:
        table = self.query_one("#agent-table", DataTable)
        if table.row_count == 0:
            return None
        try:
            row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
            return row_key.value
        except (KeyError, IndexError, LookupError):
            return None

    def _get_selected_agent(self) -> Agent | None:
        snapshot = self.feed.snapshot
        key = self._get_selected_row_key()
        if snapshot is None or key is None:
            return None
        return snapshot.agent(key)

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        self.ui.select(event.row_key.value if event.row_key is not None else None)

    def _has_modal_open(self) -> bool:
        return len(self.screen_stack) > 1

    # ── Dispatch ──────────────────────────────────────────────────────

    def do_action(self, request: ActionRequest) -> bool:
        """Queue ``request`` on the dispatcher. False when refused."""
        if self.dispatcher.busy:
            self.notify(f"Busy: {self.dispatcher.in_flight}", timeout=2)
            return False
        try:
            check_eligible(request, self.feed.snapshot)
        except CapabilityError as exc:
            logger.debug("refused %s: %s", request.path, exc)
            self.notify(str(exc), timeout=2)
            return False
        self.run_worker(self._execute_action(request), group="action")
        return True

    async def _execute_action(self, request: ActionRequest) -> None:
        try:
            outcome = await self.dispatcher.execute(request)
        except ActionInFlightError as exc:
            self.notify(str(exc), timeout=2)
            return
        if request.verb == ActionVerb.SEND_MESSAGE and not isinstance(outcome, Failed):
            self.ui.discard_draft(request.target)
        self._present_outcome(request, outcome)

    def _present_outcome(self, request: ActionRequest, outcome: Outcome) -> None:
        if isinstance(outcome, ModalRequired):
            self.push_screen(ModalRequiredScreen(outcome))
            return
        if (
            isinstance(outcome, Completed)
            and outcome.inbox_files is not None
            and request.target is not None
            and self.feed.snapshot is not None
        ):
            agent = self.feed.snapshot.agent(request.target)
            if agent is not None:
                self.push_screen(InboxScreen(agent, outcome.inbox_files))

    def _agent_action(self, verb: ActionVerb) -> None:
        if self._has_modal_open():
            return
        agent = self._get_selected_agent()
        reason = ineligibility_reason(verb, agent)
        if reason is not None or agent is None:
            self.notify(reason or "Select an agent first", timeout=2)
            return
        self.do_action(ActionRequest(verb, agent.id))

    def _fleet_action(self, verb: ActionVerb) -> None:
        if self._has_modal_open():
            return
        self.do_action(ActionRequest(verb))

    def do_dismiss_modal(self) -> None:
        self.dispatcher.dismiss_modal()

    # ── Single-agent actions ──────────────────────────────────────────

    def action_launch(self) -> None:
        self._agent_action(ActionVerb.LAUNCH)

    def action_restart(self) -> None:
        self._agent_action(ActionVerb.RESTART)

    def action_save_context(self) -> None:
        self._agent_action(ActionVerb.SAVE_CONTEXT)

    def action_pull_context(self) -> None:
        self._agent_action(ActionVerb.PULL_CONTEXT)

    def action_nudge(self) -> None:
        self._agent_action(ActionVerb.NUDGE)

    def action_check_inbox(self) -> None:
        self._agent_action(ActionVerb.CHECK_INBOX)

    def action_kill(self) -> None:
        if self._has_modal_open():
            return
        if self.dispatcher.busy:
            self.notify(f"Busy: {self.dispatcher.in_flight}", timeout=2)
            return
        agent = self._get_selected_agent()
        reason = ineligibility_reason(ActionVerb.KILL, agent)
        if reason is not None or agent is None:
            self.notify(reason or "Select an agent first", timeout=2)
            return
        self.push_screen(ConfirmKillScreen(agent))

    # ── Message ───────────────────────────────────────────────────────

    def action_agent_message(self) -> None:
        agent = self._get_selected_agent()
        reason = ineligibility_reason(ActionVerb.SEND_MESSAGE, agent)
        if reason is not None or agent is None:
            self.notify(reason or "Select an agent first", timeout=2)
            return
        self.push_screen(AgentMessageScreen(agent, self.ui.draft_for(agent.id)))

    def do_send_message(self, agent: Agent, text: str) -> bool:
        clean = text.strip()
        if not clean:
            self.notify("Message is empty", timeout=2)
            return False
        # Kept as a draft until the send succeeds.
        self.ui.save_draft(agent.id, text)
        return self.do_action(send_message_request(agent.id, clean))

    def do_save_message_draft(self, agent: Agent, text: str) -> None:
        self.ui.save_draft(agent.id, text)

    # ── Terminal / inbox views ────────────────────────────────────────

    def action_terminal(self) -> None:
        if self._has_modal_open():
            return
        agent = self._get_selected_agent()
        if agent is None:
            self.notify("Select an agent first", timeout=2)
            return
        if not has_terminal(agent):
            self.notify(f"{format_agent_id(agent.id)} has no terminal", timeout=2)
            return
        self.push_screen(TerminalScreen(agent))

    def make_terminal_poller(self, agent: Agent, **kwargs) -> TerminalPoller:
        return TerminalPoller(
            self.client, agent, interval=SETTINGS.pollers.terminal_interval, **kwargs,
        )

    def make_inbox_poller(self, agent: Agent, **kwargs) -> InboxPoller:
        return InboxPoller(
            self.client,
            self.credentials,
            agent,
            interval=SETTINGS.pollers.inbox_interval,
            is_busy=lambda: self.dispatcher.busy,
            **kwargs,
        )

    # ── Fleet-wide actions ────────────────────────────────────────────

    def action_launch_all(self) -> None:
        self._fleet_action(ActionVerb.LAUNCH_ALL)

    def action_kill_all(self) -> None:
        if self._has_modal_open():
            return
        if self.dispatcher.busy:
            self.notify(f"Busy: {self.dispatcher.in_flight}", timeout=2)
            return
        self.push_screen(ConfirmKillAllScreen())

    def action_fleet_inbox_check(self) -> None:
        self._fleet_action(ActionVerb.FLEET_INBOX_CHECK)

    def action_fleet_save(self) -> None:
        self._fleet_action(ActionVerb.FLEET_SAVE)

    def action_fleet_pull(self) -> None:
        self._fleet_action(ActionVerb.FLEET_PULL)

    # ── Credential / misc ─────────────────────────────────────────────

    def action_credential(self) -> None:
        if self._has_modal_open():
            return
        self.push_screen(CredentialScreen())

    def do_save_credential(self, value: str) -> None:
        clean = value.strip()
        store = self.credentials
        if not isinstance(store, CredentialStore):
            self.notify("API key is not editable in this session", timeout=3)
            return
        if clean:
            store.save(clean)
            self.notify("API key saved", timeout=2)
        else:
            store.clear()
            self.notify("API key cleared", timeout=2)
        self._update_status_line()

    async def action_refresh(self) -> None:
        await self.feed.refresh()

    def action_show_help(self) -> None:
        if self._has_modal_open():
            return
        self.push_screen(HelpScreen())


def cmd_dashboard(args: argparse.Namespace | None = None) -> None:
    app = FleetDeckApp()
    app.run()
