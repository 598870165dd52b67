"""CLI subcommands: ls, act, key, probe."""

from __future__ import annotations

import argparse
import asyncio
import sys

from .actions import ActionDispatcher, check_eligible
from .client import FleetClient
from .credentials import CredentialStore, mask_credential
from .errors import FleetError
from .formatting import format_agent_id, inbox_label, kind_label, online_label, task_label
from .models import (
    ActionRequest,
    ActionScope,
    ActionVerb,
    Completed,
    Failed,
    ModalRequired,
    Outcome,
    send_message_request,
)
from .settings import SETTINGS


def _make_client() -> FleetClient:
    return FleetClient(
        SETTINGS.server.base_url,
        credential_header=SETTINGS.server.credential_header,
        timeout=SETTINGS.server.request_timeout,
    )


# ── ls ────────────────────────────────────────────────────────────────


async def _ls() -> int:
    client = _make_client()
    try:
        snapshot = await client.fetch_status()
    except FleetError as exc:
        print(f"✗ Failed to fetch fleet status: {exc}")
        return 1
    finally:
        await client.aclose()

    print(
        f"{snapshot.online_count} Online   {snapshot.offline_count} Offline   "
        f"{snapshot.total_count} Total Agents"
    )
    if not snapshot.agents:
        print("  No agents reported.")
        return 0
    for a in snapshot.agents:
        icon = "●" if a.online else "○"
        inbox = f"  {inbox_label(a.inbox_count)}" if a.inbox_count else ""
        print(
            f"  {icon} {format_agent_id(a.id):20s} {online_label(a):7s} "
            f"{kind_label(a):7s} {task_label(a)}{inbox}"
        )
    return 0


def cmd_ls(args: argparse.Namespace) -> None:
    code = asyncio.run(_ls())
    if code:
        sys.exit(code)


# ── act ───────────────────────────────────────────────────────────────


def _build_request(args: argparse.Namespace) -> ActionRequest:
    verb = ActionVerb(args.verb)
    if verb == ActionVerb.SEND_MESSAGE:
        message = (args.message or "").strip()
        if not message:
            raise ValueError("send-message requires -m MESSAGE")
        return send_message_request(args.agent_id or "", message)
    return ActionRequest(verb, args.agent_id)


def _print_outcome(outcome: Outcome) -> None:
    if isinstance(outcome, ModalRequired):
        print(f"! {outcome.title}")
        if outcome.instruction:
            print(f"  {outcome.instruction}")
        print(f"  $ {outcome.command}")
    elif isinstance(outcome, Completed):
        print(f"✓ {outcome.status_text}")
        for name in outcome.inbox_files or ():
            print(f"  • {name}")
    elif isinstance(outcome, Failed):
        print(f"✗ {outcome.message}")


async def _act(request: ActionRequest) -> int:
    client = _make_client()
    dispatcher = ActionDispatcher(client, CredentialStore())
    try:
        if request.scope == ActionScope.SINGLE_AGENT:
            try:
                check_eligible(request, await client.fetch_status())
            except FleetError as exc:
                print(f"✗ {exc}")
                return 1
        outcome = await dispatcher.execute(request)
    finally:
        dispatcher.close()
        await client.aclose()
    _print_outcome(outcome)
    return 1 if isinstance(outcome, Failed) else 0


def cmd_act(args: argparse.Namespace) -> None:
    try:
        request = _build_request(args)
    except ValueError as exc:
        print(f"✗ {exc}")
        sys.exit(1)
    code = asyncio.run(_act(request))
    if code:
        sys.exit(code)


# ── key ───────────────────────────────────────────────────────────────


def cmd_key(args: argparse.Namespace) -> None:
    store = CredentialStore()
    if args.key_cmd == "set":
        value = args.value.strip()
        if not value:
            print("✗ API key must not be empty")
            sys.exit(1)
        store.save(value)
        print(f"✓ API key saved: {mask_credential(value)}")
    elif args.key_cmd == "clear":
        store.clear()
        print("✓ API key cleared")
    else:
        print(f"API key: {mask_credential(store.get())}")


# ── probe ─────────────────────────────────────────────────────────────


async def _probe() -> list[tuple[str, str, bool]]:
    client = _make_client()
    try:
        results = await asyncio.gather(*(
            client.probe(svc.url, timeout=SETTINGS.probe_timeout)
            for svc in SETTINGS.services
        ))
    finally:
        await client.aclose()
    return [
        (svc.name, svc.url, ok)
        for svc, ok in zip(SETTINGS.services, results)
    ]


def cmd_probe(args: argparse.Namespace) -> None:
    if not SETTINGS.services:
        print("No services configured.")
        return
    for name, url, ok in asyncio.run(_probe()):
        icon = "✓" if ok else "✗"
        state = "reachable" if ok else "unreachable"
        print(f"  {icon} {name:16s} {state:11s}  {url}")
