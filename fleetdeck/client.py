"""Async HTTP client for the fleet control API."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from .errors import FleetTransportError
from .models import FleetSnapshot, TerminalTranscript, parse_snapshot

logger = logging.getLogger(__name__)


@dataclass
class ActionResponse:
    """Raw result of a mutating call."""

    ok: bool
    status_code: int
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def error(self) -> str | None:
        value = self.payload.get("error")
        if value is None:
            return None
        return str(value)


def _decode_json(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


class FleetClient:
    """Thin wrapper over ``httpx.AsyncClient`` for ``/api/fleet`` endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        credential_header: str = "X-API-Key",
        timeout: float = 10.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.credential_header = credential_header
        self.timeout = timeout
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api{path}"

    def _auth_headers(self, credential: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            self.credential_header: credential,
        }

    # ── Status feed ─────────────────────────────────────────────────

    async def fetch_status(self) -> FleetSnapshot:
        """One-shot ``GET /api/fleet/status``."""
        try:
            resp = await self._http.get(self._url("/fleet/status"))
        except httpx.HTTPError as exc:
            raise FleetTransportError(str(exc) or exc.__class__.__name__) from exc
        if not resp.is_success:
            raise FleetTransportError(
                "Failed to fetch fleet status", status_code=resp.status_code,
            )
        try:
            payload = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise FleetTransportError("Malformed fleet status payload") from exc
        return parse_snapshot(payload)

    async def stream_status(
        self,
        on_open: Callable[[], None] | None = None,
    ) -> AsyncIterator[str]:
        """Yield the ``data`` field of each server-sent status event.

        ``on_open`` fires once the server has accepted the subscription.
        The iterator ends when the server closes the stream; transport
        failures surface as ``FleetTransportError``.
        """
        headers = {"Accept": "text/event-stream"}
        timeout = httpx.Timeout(self.timeout, read=None)
        try:
            async with self._http.stream(
                "GET",
                self._url("/fleet/status/stream"),
                headers=headers,
                timeout=timeout,
            ) as response:
                if response.status_code != 200:
                    raise FleetTransportError(
                        f"Status stream returned HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                if on_open is not None:
                    on_open()

                data_lines: list[str] = []
                async for line in response.aiter_lines():
                    if not line:
                        if data_lines:
                            yield "\n".join(data_lines)
                            data_lines = []
                        continue
                    if line.startswith(":"):
                        continue
                    if line.startswith("data:"):
                        value = line[5:]
                        data_lines.append(value[1:] if value.startswith(" ") else value)
                if data_lines:
                    yield "\n".join(data_lines)
        except httpx.HTTPError as exc:
            raise FleetTransportError(str(exc) or exc.__class__.__name__) from exc

    # ── Actions ─────────────────────────────────────────────────────

    async def post_action(
        self,
        path: str,
        credential: str,
        body: dict[str, Any] | None = None,
    ) -> ActionResponse:
        """``POST /api{path}`` with the operator credential attached."""
        try:
            resp = await self._http.post(
                self._url(path),
                headers=self._auth_headers(credential),
                json=body,
            )
        except httpx.HTTPError as exc:
            raise FleetTransportError(str(exc) or exc.__class__.__name__) from exc
        return ActionResponse(
            ok=resp.is_success,
            status_code=resp.status_code,
            payload=_decode_json(resp),
        )

    # ── Ancillary views ─────────────────────────────────────────────

    async def fetch_terminal(self, agent_id: str) -> TerminalTranscript:
        try:
            resp = await self._http.get(self._url(f"/fleet/terminal/{agent_id}"))
        except httpx.HTTPError as exc:
            raise FleetTransportError(str(exc) or exc.__class__.__name__) from exc
        payload = _decode_json(resp)
        if payload.get("error") is not None:
            return TerminalTranscript(error=str(payload["error"]))
        if not resp.is_success:
            return TerminalTranscript(error=f"HTTP {resp.status_code}")
        content = payload.get("content")
        return TerminalTranscript(
            content=content if isinstance(content, str) else "",
            online=payload.get("online") is True,
        )

    async def fetch_inbox(self, agent_id: str, credential: str) -> list[str]:
        result = await self.post_action(f"/fleet/context/inbox/{agent_id}", credential)
        if not result.ok:
            raise FleetTransportError(
                result.error or "Failed to read inbox", status_code=result.status_code,
            )
        files = result.payload.get("inbox_files")
        if not isinstance(files, list):
            return []
        return [str(item) for item in files]

    async def probe(self, url: str, timeout: float = 2.0) -> bool:
        """Health-style probe; a timeout or connection failure is unreachable."""
        try:
            resp = await self._http.get(url, timeout=timeout)
        except httpx.HTTPError as exc:
            logger.debug("probe %s failed: %s", url, exc)
            return False
        return resp.status_code < 500
