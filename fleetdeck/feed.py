"""Live fleet status feed: server-sent events with polling fallback.

State machine::

    DISCONNECTED --open--> STREAMING
    DISCONNECTED --error--> POLLING
    STREAMING    --error--> POLLING
    POLLING      --open--> STREAMING   (only with stream_retry_interval > 0)
    any          --close--> DISCONNECTED (terminal)

Transitions are driven by ``on_channel_open``, ``on_channel_message``,
``on_channel_error`` and ``close``; the network tasks only call those.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Protocol

from .errors import FleetError, SnapshotParseError
from .models import (
    ConnectionMode,
    FeedState,
    FleetSnapshot,
    is_error_payload,
    parse_snapshot,
)

logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    async def fetch_status(self) -> FleetSnapshot: ...

    def stream_status(
        self, on_open: Callable[[], None] | None = None,
    ) -> AsyncIterator[str]: ...


class LiveFeedController:
    """Keeps the latest ``FleetSnapshot`` fresh for its listeners."""

    def __init__(
        self,
        client: StatusSource,
        *,
        poll_interval: float = 5.0,
        stream_retry_interval: float = 0.0,
        on_snapshot: Callable[[FleetSnapshot], None] | None = None,
        on_state: Callable[[FeedState], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.stream_retry_interval = stream_retry_interval
        self.on_snapshot = on_snapshot
        self.on_state = on_state
        self.on_error = on_error

        self.snapshot: FleetSnapshot | None = None
        self.state: FeedState = FeedState.DISCONNECTED
        self.error: str | None = None
        self.fallback_count = 0

        self._seq = itertools.count(1)
        self._applied_seq = 0
        self._stream_task: asyncio.Task[None] | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._closed = False

    # ── Introspection ───────────────────────────────────────────────

    @property
    def mode(self) -> ConnectionMode | None:
        if self.state == FeedState.STREAMING:
            return ConnectionMode.STREAMING
        if self.state == FeedState.POLLING:
            return ConnectionMode.POLLING
        return None

    @property
    def is_streaming(self) -> bool:
        return self.state == FeedState.STREAMING

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def polling_active(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # ── Lifecycle ───────────────────────────────────────────────────

    def start(self) -> None:
        """Open the streaming channel. Must run inside the event loop."""
        if self._closed:
            raise RuntimeError("feed controller has been closed")
        if self._stream_task is not None or self._poll_task is not None:
            return
        self._open_stream()

    def close(self) -> None:
        """Tear down: close the channel, cancel the poller, stop delivery."""
        if self._closed:
            return
        self._closed = True
        self._cancel_stream()
        self._cancel_poller()
        self.state = FeedState.DISCONNECTED
        logger.info("feed closed")

    async def aclose(self) -> None:
        tasks = [t for t in (self._stream_task, self._poll_task) if t is not None]
        self.close()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ── Events ──────────────────────────────────────────────────────

    def on_channel_open(self) -> None:
        if self._closed:
            return
        logger.info("status stream open")
        self._cancel_poller()
        self._set_state(FeedState.STREAMING)

    def on_channel_message(self, data: str) -> None:
        if self._closed:
            return
        seq = next(self._seq)
        try:
            payload = json.loads(data)
        except ValueError:
            logger.debug("ignoring malformed stream event: %.80r", data)
            return
        if is_error_payload(payload):
            logger.debug("ignoring stream error event: %s", payload.get("error"))
            return
        try:
            snapshot = parse_snapshot(payload)
        except SnapshotParseError as exc:
            logger.debug("ignoring unparseable stream event: %s", exc)
            return
        self._apply(snapshot, seq)

    def on_channel_error(self, exc: BaseException | None = None) -> None:
        if self._closed:
            return
        self._cancel_stream()
        if self.state == FeedState.POLLING and self.polling_active:
            logger.debug("stream reconnect failed: %s", exc)
            return
        logger.warning("status stream unavailable (%s); falling back to polling", exc)
        self.fallback_count += 1
        self._set_state(FeedState.POLLING)
        self._poll_task = asyncio.create_task(self._poll_loop())

    # ── One-shot fetch ──────────────────────────────────────────────

    async def refresh(self) -> bool:
        """Fetch one snapshot now. Returns True when it was applied."""
        if self._closed:
            return False
        seq = next(self._seq)
        try:
            snapshot = await self.client.fetch_status()
        except FleetError as exc:
            if self._closed:
                return False
            if self.snapshot is None:
                self.error = str(exc) or "Failed to fetch fleet status"
                if self.on_error is not None:
                    self.on_error(self.error)
            else:
                logger.debug("status fetch failed, keeping previous snapshot: %s", exc)
            return False
        return self._apply(snapshot, seq)

    # ── Internals ───────────────────────────────────────────────────

    def _apply(self, snapshot: FleetSnapshot, seq: int) -> bool:
        if self._closed:
            return False
        if seq <= self._applied_seq:
            logger.debug("discarding superseded snapshot #%d (applied #%d)", seq, self._applied_seq)
            return False
        self._applied_seq = seq
        self.snapshot = snapshot
        self.error = None
        if self.on_snapshot is not None:
            self.on_snapshot(snapshot)
        return True

    def _set_state(self, state: FeedState) -> None:
        if self.state == state:
            return
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    def _open_stream(self) -> None:
        self._stream_task = asyncio.create_task(self._run_stream())

    async def _run_stream(self) -> None:
        try:
            async for data in self.client.stream_status(on_open=self.on_channel_open):
                self.on_channel_message(data)
        except FleetError as exc:
            self.on_channel_error(exc)
            return
        except Exception as exc:
            logger.exception("status stream task failed")
            self.on_channel_error(exc)
            return
        self.on_channel_error(None)

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        retry_at = (
            loop.time() + self.stream_retry_interval
            if self.stream_retry_interval > 0
            else None
        )
        while not self._closed:
            await self.refresh()
            await asyncio.sleep(self.poll_interval)
            if retry_at is not None and loop.time() >= retry_at and self._stream_task is None:
                logger.info("retrying status stream")
                retry_at = loop.time() + self.stream_retry_interval
                self._open_stream()

    def _cancel_stream(self) -> None:
        task, self._stream_task = self._stream_task, None
        if task is not None and task is not _current_task():
            task.cancel()

    def _cancel_poller(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None and task is not _current_task():
            task.cancel()


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
