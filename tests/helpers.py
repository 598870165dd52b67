"""Shared test helpers."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from fleetdeck.client import ActionResponse
from fleetdeck.credentials import StaticCredential
from fleetdeck.models import Agent, AgentKind, FleetSnapshot, TerminalTranscript

# Marker in a stream script: the server accepted the subscription.
OPEN = object()


def agent(
    agent_id: str,
    *,
    online: bool = False,
    kind: AgentKind = AgentKind.CLI,
    inbox_count: int = 0,
) -> Agent:
    return Agent(
        id=agent_id,
        display_name=agent_id,
        online=online,
        kind=kind,
        inbox_count=inbox_count,
    )


def snapshot(*agents: Agent, online: int | None = None, total: int | None = None) -> FleetSnapshot:
    return FleetSnapshot(
        agents=tuple(agents),
        online_count=sum(1 for a in agents if a.online) if online is None else online,
        total_count=len(agents) if total is None else total,
    )


def status_payload(online: int, total: int, agents: list[dict] | None = None) -> dict:
    return {
        "agents": agents if agents is not None else [],
        "online_count": online,
        "total_count": total,
    }


def status_event(online: int, total: int, agents: list[dict] | None = None) -> str:
    return json.dumps(status_payload(online, total, agents))


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run a few steps."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeFleetClient:
    """Scripted stand-in for ``FleetClient``.

    ``status_results`` and ``action_results`` are consumed in order; the
    last entry repeats. An ``Exception`` entry is raised instead of returned.
    """

    def __init__(
        self,
        *,
        status_results: list[Any] | None = None,
        stream_script: list[Any] | None = None,
        action_results: list[Any] | None = None,
        terminal_results: list[Any] | None = None,
        inbox_results: list[Any] | None = None,
    ) -> None:
        self.status_results = list(status_results or [snapshot()])
        self.stream_script = list(stream_script or [])
        self.action_results = list(action_results or [ActionResponse(True, 200, {"status": "ok"})])
        self.terminal_results = list(terminal_results or [TerminalTranscript("", online=True)])
        self.inbox_results = list(inbox_results or [[]])

        self.status_calls = 0
        self.stream_calls = 0
        self.actions: list[tuple[str, str, dict | None]] = []
        self.terminal_calls: list[str] = []
        self.inbox_calls: list[tuple[str, str]] = []
        self.closed = False

        # Optional gates: when set, the call waits on the event first.
        self.status_gate: asyncio.Event | None = None
        self.action_gate: asyncio.Event | None = None
        self.fetch_gate: asyncio.Event | None = None
        self.stream_hold = asyncio.Event()

    @staticmethod
    def _next(results: list[Any]) -> Any:
        item = results.pop(0) if len(results) > 1 else results[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def fetch_status(self) -> FleetSnapshot:
        self.status_calls += 1
        if self.status_gate is not None:
            await self.status_gate.wait()
        return self._next(self.status_results)

    async def stream_status(self, on_open: Callable[[], None] | None = None):
        self.stream_calls += 1
        for item in self.stream_script:
            if item is OPEN:
                if on_open is not None:
                    on_open()
            elif isinstance(item, Exception):
                raise item
            else:
                yield item
            await asyncio.sleep(0)
        await self.stream_hold.wait()

    async def post_action(self, path: str, credential: str, body: dict | None = None) -> ActionResponse:
        self.actions.append((path, credential, body))
        if self.action_gate is not None:
            await self.action_gate.wait()
        return self._next(self.action_results)

    async def fetch_terminal(self, agent_id: str) -> TerminalTranscript:
        self.terminal_calls.append(agent_id)
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        return self._next(self.terminal_results)

    async def fetch_inbox(self, agent_id: str, credential: str) -> list[str]:
        self.inbox_calls.append((agent_id, credential))
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        return self._next(self.inbox_results)

    async def aclose(self) -> None:
        self.closed = True


class FakeFeed:
    def __init__(self, *, streaming: bool = False) -> None:
        self.is_streaming = streaming
        self.refreshes = 0

    async def refresh(self) -> bool:
        self.refreshes += 1
        return True


def new_app(client: FakeFleetClient | None = None, credential: str = "secret"):
    from fleetdeck.dashboard.app import FleetDeckApp

    return FleetDeckApp(
        client=client or FakeFleetClient(),  # type: ignore[arg-type]
        credentials=StaticCredential(credential),
    )


def capture_notify(app: Any, monkeypatch: Any) -> list[str]:
    """Patch app.notify and return collected messages."""
    notices: list[str] = []
    monkeypatch.setattr(app, "notify", lambda msg, timeout=3: notices.append(msg))
    return notices
