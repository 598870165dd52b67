"""Operator actions: eligibility rules and the serialized dispatcher.

Only one action may be in flight across the whole fleet. The server does
not handle concurrent administrative operations, so every action-triggering
affordance is disabled while ``ActionDispatcher.busy`` is set.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from .client import ActionResponse
from .credentials import CredentialSource
from .errors import ActionInFlightError, CapabilityError, FleetTransportError
from .models import (
    FLEET_VERBS,
    ActionRequest,
    ActionVerb,
    Agent,
    AgentKind,
    Completed,
    Failed,
    FleetSnapshot,
    ModalRequired,
    Outcome,
)
from .ui_state import TransientUIState

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Action failed"

_OFFLINE_ONLY = frozenset({ActionVerb.LAUNCH})
_ONLINE_ONLY = frozenset({ActionVerb.KILL, ActionVerb.RESTART})
# Desktop agents take context actions even when their process is not online.
_CONTEXT = frozenset({
    ActionVerb.SAVE_CONTEXT,
    ActionVerb.PULL_CONTEXT,
    ActionVerb.NUDGE,
    ActionVerb.CHECK_INBOX,
    ActionVerb.SEND_MESSAGE,
})


# ── Eligibility ──────────────────────────────────────────────────────


def ineligibility_reason(verb: ActionVerb, agent: Agent | None) -> str | None:
    """Return why ``verb`` is not offered for ``agent``, or None if it is."""
    if verb in FLEET_VERBS:
        return None
    if agent is None:
        return "Select an agent first"
    if verb in _OFFLINE_ONLY and agent.online:
        return f"{agent.id} is already online"
    if verb in _ONLINE_ONLY and not agent.online:
        return f"{agent.id} is offline"
    if verb in _CONTEXT and not (agent.online or agent.kind == AgentKind.DESKTOP):
        return f"{agent.id} is offline"
    return None


def is_eligible(verb: ActionVerb, agent: Agent | None) -> bool:
    return ineligibility_reason(verb, agent) is None


def eligible_verbs(agent: Agent) -> frozenset[ActionVerb]:
    return frozenset(
        verb for verb in ActionVerb
        if verb not in FLEET_VERBS and is_eligible(verb, agent)
    )


def check_eligible(request: ActionRequest, snapshot: FleetSnapshot | None) -> None:
    """Raise ``CapabilityError`` when the request targets an ineligible agent."""
    if request.verb in FLEET_VERBS:
        return
    agent = snapshot.agent(request.target or "") if snapshot is not None else None
    if agent is None:
        raise CapabilityError(f"Unknown agent: {request.target}")
    reason = ineligibility_reason(request.verb, agent)
    if reason is not None:
        raise CapabilityError(reason)


def has_terminal(agent: Agent) -> bool:
    """Desktop and remote agents have no interactive terminal."""
    return agent.kind not in (AgentKind.DESKTOP, AgentKind.REMOTE)


# ── Outcome resolution ───────────────────────────────────────────────


def resolve_outcome(request: ActionRequest, response: ActionResponse) -> Outcome:
    if not response.ok:
        return Failed(response.error or GENERIC_FAILURE)

    payload = response.payload
    status = payload.get("status")
    modal = payload.get("modal")
    if status == "modal" and isinstance(modal, dict):
        return ModalRequired(
            title=str(modal.get("title") or request.label),
            instruction=str(modal.get("instruction") or ""),
            command=str(modal.get("command") or ""),
        )

    files = payload.get("inbox_files")
    if isinstance(files, list):
        items = tuple(str(f) for f in files)
        noun = "file" if len(items) == 1 else "files"
        return Completed(f"{request.label}: {len(items)} {noun}", inbox_files=items)

    return Completed(f"{request.label}: {status if status is not None else 'ok'}")


# ── Dispatcher ───────────────────────────────────────────────────────


class ActionTransport(Protocol):
    async def post_action(
        self, path: str, credential: str, body: dict | None = None,
    ) -> ActionResponse: ...


class RefreshableFeed(Protocol):
    @property
    def is_streaming(self) -> bool: ...

    async def refresh(self) -> bool: ...


class ActionDispatcher:
    """Executes one action at a time and reports structured outcomes."""

    def __init__(
        self,
        client: ActionTransport,
        credentials: CredentialSource,
        *,
        feed: RefreshableFeed | None = None,
        ui: TransientUIState | None = None,
        on_in_flight: Callable[[str | None], None] | None = None,
    ) -> None:
        self.client = client
        self.credentials = credentials
        self.feed = feed
        self.ui = ui if ui is not None else TransientUIState()
        self.on_in_flight = on_in_flight
        self.in_flight: str | None = None
        self.last_outcome: Outcome | None = None

    @property
    def busy(self) -> bool:
        return self.in_flight is not None

    def can_execute(self, verb: ActionVerb, agent: Agent | None = None) -> bool:
        return not self.busy and is_eligible(verb, agent)

    def _set_in_flight(self, action_id: str | None) -> None:
        self.in_flight = action_id
        if self.on_in_flight is not None:
            self.on_in_flight(action_id)

    async def execute(self, request: ActionRequest) -> Outcome:
        if self.in_flight is not None:
            raise ActionInFlightError(self.in_flight)

        self._set_in_flight(request.path)
        self.ui.clear_banner()
        try:
            outcome = await self._perform(request)
            self.last_outcome = outcome
            self.ui.show_outcome(outcome)
            logger.info("%s -> %s", request.path, outcome)
            if (
                isinstance(outcome, Completed)
                and self.feed is not None
                and not self.feed.is_streaming
            ):
                await self.feed.refresh()
        finally:
            self._set_in_flight(None)
        return outcome

    async def _perform(self, request: ActionRequest) -> Outcome:
        credential = self.credentials.get()
        try:
            response = await self.client.post_action(request.path, credential, request.body)
        except FleetTransportError as exc:
            logger.warning("%s transport failure: %s", request.path, exc)
            return Failed(str(exc) or GENERIC_FAILURE)
        return resolve_outcome(request, response)

    def dismiss_modal(self) -> None:
        self.ui.dismiss_modal()

    def close(self) -> None:
        self.ui.close()
