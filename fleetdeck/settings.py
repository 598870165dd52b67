"""Typed settings loaded from TOML config with env-var overrides."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path


USER_CONFIG_PATH = Path.home() / ".config" / "fleetdeck" / "config.toml"


def _load_default_toml() -> dict:
    """Load the built-in default_config.toml shipped with the package."""
    ref = resources.files("fleetdeck").joinpath("default_config.toml")
    return tomllib.loads(ref.read_text(encoding="utf-8"))


def _load_user_toml() -> dict:
    """Load user config if it exists, otherwise empty dict."""
    if USER_CONFIG_PATH.is_file():
        return tomllib.loads(USER_CONFIG_PATH.read_text(encoding="utf-8"))
    return {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base (override wins)."""
    merged = dict(base)
    for key, val in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(val, dict):
            merged[key] = _deep_merge(merged[key], val)
        else:
            merged[key] = val
    return merged


# ── Dataclasses ──────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    base_url: str
    credential_header: str
    request_timeout: float


@dataclass
class FeedConfig:
    poll_interval: float
    stream_retry_interval: float


@dataclass
class PollerConfig:
    terminal_interval: float
    inbox_interval: float


@dataclass
class ServiceEntry:
    name: str
    url: str


@dataclass
class Settings:
    server: ServerConfig
    feed: FeedConfig
    pollers: PollerConfig
    banner_ttl: float
    probe_timeout: float
    log_level: str
    services: tuple[ServiceEntry, ...]

    # Raw merged dict, for sections without a typed view
    _raw: dict = field(default_factory=dict, repr=False)


def _parse_services(data: object) -> tuple[ServiceEntry, ...]:
    if not isinstance(data, list):
        return ()
    out: list[ServiceEntry] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        url = item.get("url")
        if isinstance(name, str) and isinstance(url, str) and url.strip():
            out.append(ServiceEntry(name=name.strip(), url=url.strip()))
    return tuple(out)


def load_settings() -> Settings:
    """Load settings: defaults ← user TOML ← env vars."""
    defaults = _load_default_toml()
    user = _load_user_toml()
    raw = _deep_merge(defaults, user)

    srv = raw.get("server", {})
    feed = raw.get("feed", {})
    pol = raw.get("pollers", {})
    dash = raw.get("dashboard", {})

    server = ServerConfig(
        base_url=os.environ.get(
            "FLEETDECK_URL", srv.get("base_url", "http://localhost:8110"),
        ).rstrip("/"),
        credential_header=srv.get("credential_header", "X-API-Key"),
        request_timeout=float(srv.get("request_timeout", 10.0)),
    )

    feed_cfg = FeedConfig(
        poll_interval=float(os.environ.get(
            "FLEETDECK_POLL", feed.get("poll_interval", 5.0),
        )),
        stream_retry_interval=float(os.environ.get(
            "FLEETDECK_STREAM_RETRY", feed.get("stream_retry_interval", 0.0),
        )),
    )

    pollers = PollerConfig(
        terminal_interval=float(pol.get("terminal_interval", 2.0)),
        inbox_interval=float(pol.get("inbox_interval", 5.0)),
    )

    return Settings(
        server=server,
        feed=feed_cfg,
        pollers=pollers,
        banner_ttl=float(dash.get("banner_ttl", 2.5)),
        probe_timeout=float(raw.get("probe", {}).get("timeout", 2.0)),
        log_level=os.environ.get(
            "FLEETDECK_LOG_LEVEL", raw.get("logging", {}).get("level", "INFO"),
        ),
        services=_parse_services(raw.get("services")),
        _raw=raw,
    )


# Module-level singleton, loaded once on import.
SETTINGS = load_settings()
