"""Per-agent pollers behind the inbox and terminal views.

Each poller runs only while its view is open: ``start`` fetches right away
(or after one interval with ``delay_first``) and then repeats on a fixed
interval until ``stop``. Pollers do not read the fleet snapshot and never
touch the main feed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Generic, Protocol, TypeVar

from .actions import has_terminal, ineligibility_reason
from .credentials import CredentialSource
from .errors import CapabilityError, FleetError
from .models import ActionVerb, Agent, TerminalTranscript

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AncillaryPoller(Generic[T]):
    interval: float = 2.0

    def __init__(
        self,
        agent: Agent,
        *,
        interval: float | None = None,
        on_update: Callable[[T], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        self.agent = agent
        if interval is not None:
            self.interval = interval
        self.on_update = on_update
        self.on_error = on_error
        self.latest: T | None = None
        self.error: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def check_capability(self) -> None:
        """Raise ``CapabilityError`` if the agent does not support this view."""

    async def _fetch(self) -> T:
        raise NotImplementedError

    def _failed(self, exc: FleetError) -> T | None:
        """Map a fetch failure to a value to publish, or None to keep the last one."""
        return None

    def _paused(self) -> bool:
        return False

    def start(self, *, delay_first: bool = False) -> None:
        """Begin polling. With ``delay_first`` the first fetch waits one interval."""
        self.check_capability()
        if self.running:
            return
        self._generation += 1
        self._task = asyncio.create_task(self._loop(self._generation, delay_first))

    def stop(self) -> None:
        self._generation += 1
        task, self._task = self._task, None
        if task is not None:
            task.cancel()

    async def refresh(self) -> T | None:
        if self._paused():
            return self.latest
        return await self._tick(self._generation)

    async def _loop(self, generation: int, delay_first: bool = False) -> None:
        if delay_first:
            await asyncio.sleep(self.interval)
        while generation == self._generation:
            if self._paused():
                logger.debug("%s for %s skipped a tick", type(self).__name__, self.agent.id)
            else:
                await self._tick(generation)
            await asyncio.sleep(self.interval)

    async def _tick(self, generation: int) -> T | None:
        try:
            value = await self._fetch()
        except FleetError as exc:
            if generation != self._generation:
                return None
            logger.debug("%s fetch for %s failed: %s", type(self).__name__, self.agent.id, exc)
            self.error = str(exc) or "Request failed"
            if self.on_error is not None:
                self.on_error(self.error)
            fallback = self._failed(exc)
            if fallback is None:
                return None
            value = fallback
        else:
            if generation != self._generation:
                return None
            self.error = None
        self.latest = value
        if self.on_update is not None:
            self.on_update(value)
        return value


class TranscriptSource(Protocol):
    async def fetch_terminal(self, agent_id: str) -> TerminalTranscript: ...


class TerminalPoller(AncillaryPoller[TerminalTranscript]):
    """Tails an agent's terminal transcript."""

    def __init__(self, client: TranscriptSource, agent: Agent, **kwargs) -> None:
        super().__init__(agent, **kwargs)
        self.client = client

    def check_capability(self) -> None:
        if not has_terminal(self.agent):
            raise CapabilityError(f"{self.agent.id} ({self.agent.kind.value}) has no terminal")

    async def _fetch(self) -> TerminalTranscript:
        transcript = await self.client.fetch_terminal(self.agent.id)
        if transcript.error is not None:
            return TerminalTranscript(
                content=f"Error: {transcript.error}",
                online=False,
                error=transcript.error,
            )
        return transcript

    def _failed(self, exc: FleetError) -> TerminalTranscript:
        # Replace the content so a stale transcript is visibly stale.
        message = str(exc) or "Request failed"
        return TerminalTranscript(content=f"Error: {message}", online=False, error=message)


class InboxSource(Protocol):
    async def fetch_inbox(self, agent_id: str, credential: str) -> list[str]: ...


class InboxPoller(AncillaryPoller[list[str]]):
    """Lists the files waiting in an agent's inbox.

    The inbox listing goes through the check-inbox action endpoint, so a
    tick is skipped while ``is_busy`` reports an action in flight.
    """

    interval = 5.0

    def __init__(
        self,
        client: InboxSource,
        credentials: CredentialSource,
        agent: Agent,
        *,
        is_busy: Callable[[], bool] | None = None,
        **kwargs,
    ) -> None:
        super().__init__(agent, **kwargs)
        self.client = client
        self.credentials = credentials
        self.is_busy = is_busy

    def _paused(self) -> bool:
        return self.is_busy is not None and self.is_busy()

    def check_capability(self) -> None:
        reason = ineligibility_reason(ActionVerb.CHECK_INBOX, self.agent)
        if reason is not None:
            raise CapabilityError(reason)

    async def _fetch(self) -> list[str]:
        return await self.client.fetch_inbox(self.agent.id, self.credentials.get())
