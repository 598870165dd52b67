"""Ephemeral per-surface state: selection, modal, banner, drafts."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from .models import Completed, Failed, ModalRequired, Outcome

BannerKind = Literal["success", "error"]


@dataclass(frozen=True)
class Banner:
    kind: BannerKind
    text: str


@dataclass
class TransientUIState:
    """Nothing here survives navigation or a restart.

    Success and failure banners clear themselves after ``banner_ttl``
    seconds; a modal stays until ``dismiss_modal``.
    """

    banner_ttl: float = 2.5
    on_change: Callable[["TransientUIState"], None] | None = None
    selected_agent_id: str | None = None
    modal: ModalRequired | None = None
    banner: Banner | None = None
    drafts: dict[str, str] = field(default_factory=dict)
    _banner_timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def awaiting_acknowledgment(self) -> bool:
        return self.modal is not None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _cancel_banner_timer(self) -> None:
        if self._banner_timer is not None:
            self._banner_timer.cancel()
            self._banner_timer = None

    # ── Outcomes ────────────────────────────────────────────────────

    def show_outcome(self, outcome: Outcome) -> None:
        """Reflect a dispatcher outcome. Needs a running event loop."""
        self._cancel_banner_timer()
        if isinstance(outcome, ModalRequired):
            self.banner = None
            self.modal = outcome
            self._changed()
            return

        if isinstance(outcome, Completed):
            banner = Banner("success", outcome.status_text)
        elif isinstance(outcome, Failed):
            banner = Banner("error", outcome.message)
        else:
            raise TypeError(f"unsupported outcome: {outcome!r}")
        self.banner = banner
        loop = asyncio.get_running_loop()
        self._banner_timer = loop.call_later(self.banner_ttl, self._expire_banner, banner)
        self._changed()

    def _expire_banner(self, banner: Banner) -> None:
        self._banner_timer = None
        if self.banner is banner:
            self.banner = None
            self._changed()

    def clear_banner(self) -> None:
        self._cancel_banner_timer()
        if self.banner is None:
            return
        self.banner = None
        self._changed()

    def dismiss_modal(self) -> None:
        if self.modal is None:
            return
        self.modal = None
        self._changed()

    # ── Selection / drafts ──────────────────────────────────────────

    def select(self, agent_id: str | None) -> None:
        if agent_id == self.selected_agent_id:
            return
        self.selected_agent_id = agent_id
        self._changed()

    def save_draft(self, agent_id: str, text: str) -> None:
        if text.strip():
            self.drafts[agent_id] = text
        else:
            self.drafts.pop(agent_id, None)

    def draft_for(self, agent_id: str) -> str:
        return self.drafts.get(agent_id, "")

    def discard_draft(self, agent_id: str) -> None:
        self.drafts.pop(agent_id, None)

    # ── Teardown ────────────────────────────────────────────────────

    def reset(self) -> None:
        """Drop everything, as on navigation away from the view."""
        self._cancel_banner_timer()
        self.selected_agent_id = None
        self.modal = None
        self.banner = None
        self.drafts.clear()
        self._changed()

    def close(self) -> None:
        self._cancel_banner_timer()
