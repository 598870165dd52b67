"""Operator credential storage and accessors.

The credential is an opaque value attached to every mutating call. Callers
read it through ``CredentialSource.get()`` once per request, so a value
changed mid-flight only affects the next call.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from .config import CREDENTIAL_KEY, CREDENTIALS_FILE


class CredentialSource(Protocol):
    def get(self) -> str: ...


class StaticCredential:
    """Fixed in-memory credential."""

    def __init__(self, value: str = "") -> None:
        self.value = value

    def get(self) -> str:
        return self.value


class CredentialStore:
    """JSON-file backed credential keyed under ``CREDENTIAL_KEY``."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or CREDENTIALS_FILE

    def load(self) -> dict[str, str]:
        try:
            raw = json.loads(self.path.read_text())
        except (FileNotFoundError, json.JSONDecodeError):
            return {}
        if not isinstance(raw, dict):
            return {}
        return {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, str)}

    def get(self) -> str:
        return self.load().get(CREDENTIAL_KEY, "")

    def save(self, value: str) -> None:
        data = self.load()
        data[CREDENTIAL_KEY] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data))
        try:
            self.path.chmod(0o600)
        except OSError:
            pass

    def clear(self) -> None:
        data = self.load()
        if data.pop(CREDENTIAL_KEY, None) is None:
            return
        self.path.write_text(json.dumps(data))


def mask_credential(value: str) -> str:
    """Render a credential for display without revealing it."""
    if not value:
        return "(not set)"
    if len(value) <= 4:
        return "*" * len(value)
    return f"{'*' * (len(value) - 4)}{value[-4:]}"
