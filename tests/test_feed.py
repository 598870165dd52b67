"""Tests for the live fleet status feed."""

import asyncio

import pytest

from fleetdeck.errors import FleetTransportError
from fleetdeck.feed import LiveFeedController
from fleetdeck.models import ConnectionMode, FeedState
from tests.helpers import OPEN, FakeFleetClient, agent, settle, snapshot, status_event


def _feed(client: FakeFleetClient, **kwargs) -> tuple[LiveFeedController, dict[str, list]]:
    seen: dict[str, list] = {"snapshots": [], "states": [], "errors": []}
    feed = LiveFeedController(
        client,
        on_snapshot=seen["snapshots"].append,
        on_state=seen["states"].append,
        on_error=seen["errors"].append,
        **kwargs,
    )
    return feed, seen


@pytest.mark.asyncio
async def test_stream_open_moves_to_streaming_and_applies_events() -> None:
    client = FakeFleetClient(stream_script=[OPEN, status_event(2, 3)])
    feed, seen = _feed(client)

    feed.start()
    await settle()

    assert feed.state == FeedState.STREAMING
    assert feed.mode == ConnectionMode.STREAMING
    assert seen["states"] == [FeedState.STREAMING]
    assert feed.snapshot is not None
    assert feed.snapshot.online_count == 2
    assert client.status_calls == 0
    await feed.aclose()


@pytest.mark.asyncio
async def test_stream_failure_falls_back_to_polling_exactly_once() -> None:
    client = FakeFleetClient(
        stream_script=[FleetTransportError("stream refused")],
        status_results=[snapshot(agent("a1", online=True))],
    )
    feed, seen = _feed(client, poll_interval=0.01)

    feed.start()
    await settle()

    # Fallback fetches right away rather than waiting a full interval.
    assert client.status_calls >= 1
    assert feed.state == FeedState.POLLING
    assert feed.mode == ConnectionMode.POLLING

    await asyncio.sleep(0.06)

    assert client.status_calls >= 3
    assert feed.fallback_count == 1
    assert client.stream_calls == 1
    assert seen["states"] == [FeedState.POLLING]
    await feed.aclose()


@pytest.mark.asyncio
async def test_stream_error_after_open_switches_to_polling() -> None:
    client = FakeFleetClient(
        stream_script=[OPEN, status_event(1, 1), FleetTransportError("dropped")],
        status_results=[snapshot(agent("a1"), online=0, total=1)],
    )
    feed, seen = _feed(client, poll_interval=1.0)

    feed.start()
    await settle()

    assert seen["states"] == [FeedState.STREAMING, FeedState.POLLING]
    assert feed.fallback_count == 1
    assert client.status_calls == 1
    assert feed.snapshot is not None
    assert feed.snapshot.online_count == 0
    await feed.aclose()


@pytest.mark.asyncio
async def test_stream_end_is_treated_as_channel_error() -> None:
    client = FakeFleetClient(stream_script=[OPEN])
    client.stream_hold.set()
    feed, seen = _feed(client, poll_interval=1.0)

    feed.start()
    await settle()

    assert feed.state == FeedState.POLLING
    assert seen["states"] == [FeedState.STREAMING, FeedState.POLLING]
    await feed.aclose()


@pytest.mark.asyncio
async def test_unexpected_stream_exception_falls_back_to_polling() -> None:
    client = FakeFleetClient(stream_script=[OPEN, RuntimeError("stream already consumed")])
    feed, seen = _feed(client, poll_interval=1.0)

    feed.start()
    await settle()

    assert seen["states"] == [FeedState.STREAMING, FeedState.POLLING]
    assert feed.fallback_count == 1
    assert feed.polling_active
    assert client.status_calls == 1
    await feed.aclose()


@pytest.mark.asyncio
async def test_failing_snapshot_listener_does_not_strand_stream_state() -> None:
    client = FakeFleetClient(stream_script=[OPEN, status_event(1, 1)])
    calls: list[int] = []

    def on_snapshot(snap) -> None:
        calls.append(snap.online_count)
        if len(calls) == 1:
            raise ValueError("render failed")

    feed = LiveFeedController(client, on_snapshot=on_snapshot, poll_interval=1.0)

    feed.start()
    await settle()

    assert feed.state == FeedState.POLLING
    assert feed.fallback_count == 1
    assert len(calls) == 2
    await feed.aclose()


@pytest.mark.asyncio
async def test_error_and_malformed_events_are_ignored() -> None:
    client = FakeFleetClient(
        stream_script=[
            OPEN,
            '{"error": "command center restarting"}',
            "not json",
            '{"agents": "nope", "online_count": 1, "total_count": 1}',
            status_event(4, 7),
        ],
    )
    feed, seen = _feed(client)

    feed.start()
    await settle()

    assert len(seen["snapshots"]) == 1
    assert seen["snapshots"][0].total_count == 7
    assert seen["errors"] == []
    assert feed.error is None
    assert feed.state == FeedState.STREAMING
    await feed.aclose()


@pytest.mark.asyncio
async def test_superseded_fetch_result_is_discarded() -> None:
    client = FakeFleetClient(status_results=[snapshot(agent("a1"), online=0, total=1)])
    client.status_gate = asyncio.Event()
    feed, seen = _feed(client)

    pending = asyncio.create_task(feed.refresh())
    await settle()
    # Issued after the fetch above, so it wins even though it lands first.
    feed.on_channel_message(status_event(1, 1))
    client.status_gate.set()

    assert await pending is False
    assert feed.snapshot is not None
    assert feed.snapshot.online_count == 1
    assert len(seen["snapshots"]) == 1


@pytest.mark.asyncio
async def test_first_load_failure_reports_error() -> None:
    client = FakeFleetClient(status_results=[FleetTransportError("connection refused")])
    feed, seen = _feed(client)

    assert await feed.refresh() is False

    assert feed.snapshot is None
    assert feed.error == "connection refused"
    assert seen["errors"] == ["connection refused"]


@pytest.mark.asyncio
async def test_later_failure_keeps_previous_snapshot_silently() -> None:
    good = snapshot(agent("a1", online=True))
    client = FakeFleetClient(status_results=[good, FleetTransportError("timeout")])
    feed, seen = _feed(client)

    assert await feed.refresh() is True
    assert await feed.refresh() is False

    assert feed.snapshot is good
    assert feed.error is None
    assert seen["errors"] == []


@pytest.mark.asyncio
async def test_success_after_first_load_failure_clears_error() -> None:
    client = FakeFleetClient(
        status_results=[FleetTransportError("refused"), snapshot(agent("a1"))],
    )
    feed, _seen = _feed(client)

    await feed.refresh()
    assert feed.error == "refused"
    await feed.refresh()
    assert feed.error is None
    assert feed.snapshot is not None


@pytest.mark.asyncio
async def test_close_stops_polling_and_delivery() -> None:
    client = FakeFleetClient(stream_script=[FleetTransportError("refused")])
    feed, seen = _feed(client, poll_interval=0.01)

    feed.start()
    await asyncio.sleep(0.03)
    assert feed.polling_active

    feed.close()
    calls = client.status_calls
    delivered = len(seen["snapshots"])
    await asyncio.sleep(0.05)

    assert client.status_calls == calls
    assert feed.state == FeedState.DISCONNECTED
    assert feed.polling_active is False
    assert feed.closed is True

    feed.on_channel_message(status_event(9, 9))
    assert len(seen["snapshots"]) == delivered
    assert await feed.refresh() is False


@pytest.mark.asyncio
async def test_close_cancels_open_stream() -> None:
    client = FakeFleetClient(stream_script=[OPEN])
    feed, _seen = _feed(client)

    feed.start()
    await settle()
    task = feed._stream_task
    assert task is not None

    await feed.aclose()

    assert task.cancelled()
    assert feed.state == FeedState.DISCONNECTED


@pytest.mark.asyncio
async def test_start_after_close_is_rejected() -> None:
    feed, _seen = _feed(FakeFleetClient())
    await feed.aclose()

    with pytest.raises(RuntimeError):
        feed.start()


@pytest.mark.asyncio
async def test_stream_is_retried_when_retry_interval_configured() -> None:
    client = FakeFleetClient(stream_script=[FleetTransportError("refused")])
    feed, seen = _feed(client, poll_interval=0.01, stream_retry_interval=0.02)

    feed.start()
    await asyncio.sleep(0.1)

    assert client.stream_calls >= 2
    # Failed retries while polling do not count as new fallbacks.
    assert feed.fallback_count == 1
    assert seen["states"] == [FeedState.POLLING]
    await feed.aclose()


@pytest.mark.asyncio
async def test_successful_retry_stops_polling() -> None:
    client = FakeFleetClient(stream_script=[FleetTransportError("refused")])
    feed, seen = _feed(client, poll_interval=0.01, stream_retry_interval=0.02)

    feed.start()
    await settle()
    assert feed.state == FeedState.POLLING

    client.stream_script = [OPEN, status_event(1, 2)]
    await asyncio.sleep(0.08)

    assert feed.state == FeedState.STREAMING
    assert feed.polling_active is False
    assert seen["states"] == [FeedState.POLLING, FeedState.STREAMING]
    await feed.aclose()
