"""Display helpers shared by the dashboard and the CLI."""

from __future__ import annotations

from .models import Agent, AgentKind, FleetSnapshot, TaskStateKind

_ABBREVIATIONS = frozenset({"it", "ui", "pa", "ai", "dba"})


def format_agent_id(agent_id: str) -> str:
    """Capitalize an agent id for display.

    ``cv2-it`` -> ``CV2-IT``, ``cv2-main`` -> ``CV2-Main``.
    """
    parts = agent_id.split("-")
    out: list[str] = []
    for index, part in enumerate(parts):
        if index == 0 or part.lower() in _ABBREVIATIONS:
            out.append(part.upper())
        else:
            out.append(part[:1].upper() + part[1:].lower())
    return "-".join(out)


def inbox_label(count: int) -> str:
    return f"Inbox: {count} message{'' if count == 1 else 's'}"


def summary_counts(snapshot: FleetSnapshot) -> tuple[int, int, int]:
    """Return ``(online, offline, total)`` exactly as the server reported."""
    return snapshot.online_count, snapshot.offline_count, snapshot.total_count


def online_label(agent: Agent) -> str:
    return "Online" if agent.online else "Offline"


def kind_label(agent: Agent) -> str:
    if agent.kind == AgentKind.UNKNOWN:
        return "?"
    return agent.kind.value


def task_label(agent: Agent) -> str:
    task = agent.current_task or "—"
    if agent.task_state.kind == TaskStateKind.ACTIVE:
        return f"▶ {task}"
    if agent.task_state.kind == TaskStateKind.OTHER:
        return f"{task} ({agent.task_state.raw})"
    return task
