"""Core data types and server payload parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .errors import SnapshotParseError


class AgentKind(str, Enum):
    CLI = "cli"
    DESKTOP = "desktop"
    REMOTE = "remote"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> "AgentKind":
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.UNKNOWN


class TaskStateKind(str, Enum):
    ACTIVE = "active"
    OTHER = "other"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TaskState:
    kind: TaskStateKind = TaskStateKind.UNKNOWN
    raw: str = ""           # server value, kept verbatim for OTHER

    @classmethod
    def parse(cls, value: object) -> "TaskState":
        if not isinstance(value, str) or not value.strip():
            return cls()
        clean = value.strip()
        lowered = clean.lower()
        if lowered == "unknown":
            return cls()
        if lowered == "active":
            return cls(TaskStateKind.ACTIVE, clean)
        return cls(TaskStateKind.OTHER, clean)

    @property
    def label(self) -> str:
        if self.kind == TaskStateKind.UNKNOWN:
            return "unknown"
        return self.raw


class ConnectionMode(str, Enum):
    STREAMING = "streaming"
    POLLING = "polling"


class FeedState(str, Enum):
    DISCONNECTED = "disconnected"
    STREAMING = "streaming"
    POLLING = "polling"


@dataclass(frozen=True)
class Agent:
    id: str
    display_name: str
    online: bool = False
    kind: AgentKind = AgentKind.UNKNOWN
    status_text: str | None = None
    current_task: str | None = None
    task_state: TaskState = field(default_factory=TaskState)
    last_status_line: str | None = None
    inbox_count: int = 0


@dataclass(frozen=True)
class FleetSnapshot:
    agents: tuple[Agent, ...] = ()
    online_count: int = 0
    total_count: int = 0

    @property
    def offline_count(self) -> int:
        # As reported by the server, never recounted from ``agents``.
        return self.total_count - self.online_count

    def agent(self, agent_id: str) -> Agent | None:
        for a in self.agents:
            if a.id == agent_id:
                return a
        return None


# ── Actions ──────────────────────────────────────────────────────────


class ActionScope(str, Enum):
    SINGLE_AGENT = "single-agent"
    FLEET_WIDE = "fleet-wide"


class ActionVerb(str, Enum):
    LAUNCH = "launch"
    KILL = "kill"
    RESTART = "restart"
    SAVE_CONTEXT = "save-context"
    PULL_CONTEXT = "pull-context"
    NUDGE = "nudge"
    CHECK_INBOX = "check-inbox"
    SEND_MESSAGE = "send-message"
    LAUNCH_ALL = "launch-all"
    KILL_ALL = "kill-all"
    FLEET_INBOX_CHECK = "fleet-inbox-check"
    FLEET_SAVE = "fleet-save"
    FLEET_PULL = "fleet-pull"


# verb -> (path template, banner label template)
_ENDPOINTS: dict[ActionVerb, tuple[str, str]] = {
    ActionVerb.LAUNCH: ("/fleet/launch/{id}", "Launch {id}"),
    ActionVerb.KILL: ("/fleet/kill/{id}", "Kill {id}"),
    ActionVerb.RESTART: ("/fleet/restart/{id}", "Restart {id}"),
    ActionVerb.SAVE_CONTEXT: ("/fleet/context/save/{id}", "Save context {id}"),
    ActionVerb.PULL_CONTEXT: ("/fleet/context/pull/{id}", "Pull context {id}"),
    ActionVerb.NUDGE: ("/fleet/context/nudge/{id}", "Nudge {id}"),
    ActionVerb.CHECK_INBOX: ("/fleet/context/inbox/{id}", "Inbox {id}"),
    ActionVerb.SEND_MESSAGE: ("/fleet/send-message/{id}", "Message {id}"),
    ActionVerb.LAUNCH_ALL: ("/fleet/launch-all", "Launch All"),
    ActionVerb.KILL_ALL: ("/fleet/kill-all", "Kill All"),
    ActionVerb.FLEET_INBOX_CHECK: ("/fleet/inbox-check-all", "Inbox check all"),
    ActionVerb.FLEET_SAVE: ("/fleet/save-all", "Save all"),
    ActionVerb.FLEET_PULL: ("/fleet/pull-all", "Pull all"),
}

FLEET_VERBS: frozenset[ActionVerb] = frozenset({
    ActionVerb.LAUNCH_ALL,
    ActionVerb.KILL_ALL,
    ActionVerb.FLEET_INBOX_CHECK,
    ActionVerb.FLEET_SAVE,
    ActionVerb.FLEET_PULL,
})


@dataclass(frozen=True)
class ActionRequest:
    verb: ActionVerb
    target: str | None = None
    body: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.scope == ActionScope.SINGLE_AGENT and not self.target:
            raise ValueError(f"{self.verb.value} requires a target agent")
        if self.scope == ActionScope.FLEET_WIDE and self.target:
            raise ValueError(f"{self.verb.value} is fleet-wide and takes no target")

    @property
    def scope(self) -> ActionScope:
        if self.verb in FLEET_VERBS:
            return ActionScope.FLEET_WIDE
        return ActionScope.SINGLE_AGENT

    @property
    def path(self) -> str:
        """Endpoint path below ``/api``; also the action identifier."""
        return _ENDPOINTS[self.verb][0].format(id=self.target or "")

    @property
    def label(self) -> str:
        return _ENDPOINTS[self.verb][1].format(id=self.target or "")


def send_message_request(agent_id: str, message: str) -> ActionRequest:
    return ActionRequest(ActionVerb.SEND_MESSAGE, agent_id, {"message": message})


@dataclass(frozen=True)
class Completed:
    status_text: str
    inbox_files: tuple[str, ...] | None = None


@dataclass(frozen=True)
class Failed:
    message: str


@dataclass(frozen=True)
class ModalRequired:
    title: str
    instruction: str
    command: str


Outcome = Union[Completed, Failed, ModalRequired]


@dataclass(frozen=True)
class TerminalTranscript:
    content: str = ""
    online: bool = False
    error: str | None = None


# ── Payload parsing ──────────────────────────────────────────────────


def is_error_payload(payload: object) -> bool:
    return isinstance(payload, dict) and payload.get("error") is not None


def _opt_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _count(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SnapshotParseError(f"{name} must be an integer")
    return value


def parse_agent(data: object) -> Agent:
    if not isinstance(data, dict):
        raise SnapshotParseError("agent entry is not an object")
    agent_id = data.get("id")
    if not isinstance(agent_id, str) or not agent_id:
        raise SnapshotParseError("agent entry missing id")

    inbox = data.get("inbox_count")
    inbox_count = inbox if isinstance(inbox, int) and not isinstance(inbox, bool) else 0

    return Agent(
        id=agent_id,
        display_name=_opt_str(data.get("name")) or agent_id,
        online=data.get("online") is True,
        kind=AgentKind.parse(data.get("kind", data.get("type"))),
        status_text=_opt_str(data.get("status")),
        current_task=_opt_str(data.get("current_task")),
        task_state=TaskState.parse(data.get("task_state")),
        last_status_line=_opt_str(data.get("last_status_line")),
        inbox_count=max(0, inbox_count),
    )


def parse_snapshot(payload: object) -> FleetSnapshot:
    """Build a snapshot from a decoded ``/fleet/status`` payload."""
    if not isinstance(payload, dict):
        raise SnapshotParseError("snapshot is not an object")
    if is_error_payload(payload):
        raise SnapshotParseError(f"server reported error: {payload['error']}")
    raw_agents = payload.get("agents")
    if not isinstance(raw_agents, list):
        raise SnapshotParseError("snapshot missing agents list")

    agents = tuple(parse_agent(item) for item in raw_agents)
    seen: set[str] = set()
    for a in agents:
        if a.id in seen:
            raise SnapshotParseError(f"duplicate agent id: {a.id}")
        seen.add(a.id)

    return FleetSnapshot(
        agents=agents,
        online_count=_count(payload.get("online_count"), "online_count"),
        total_count=_count(payload.get("total_count"), "total_count"),
    )
