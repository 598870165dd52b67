"""Global configuration: state paths, credential key, and log setup."""

from __future__ import annotations

import logging
import logging.handlers
import os
import tomllib
from pathlib import Path


FLEETDECK_HOME = Path(os.environ.get("FLEETDECK_HOME") or "~/.fleetdeck").expanduser()

_USER_CONFIG_PATHS: tuple[Path, ...] = (
    FLEETDECK_HOME / "config.toml",
    Path.home() / ".config" / "fleetdeck" / "config.toml",
)

# Fixed name the operator credential is stored under.
CREDENTIAL_KEY = "cv_api_key"


def _user_storage_table() -> dict[str, str]:
    """Return the ``[storage]`` paths of the first readable user config."""
    for config_path in _USER_CONFIG_PATHS:
        try:
            parsed = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            continue
        storage = parsed.get("storage")
        if not isinstance(storage, dict):
            return {}
        out: dict[str, str] = {}
        for key in ("state_dir", "log_dir"):
            value = storage.get(key)
            if isinstance(value, str) and value.strip():
                out[key] = value.strip()
        return out
    return {}


def _resolve_dir(raw: str) -> Path:
    return Path(raw).expanduser()


def _ensure_writable_dir(path: Path, fallback: Path) -> Path:
    """Ensure directory exists, falling back when creation is denied."""
    try:
        path.mkdir(parents=True, exist_ok=True)
        return path
    except OSError:
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def _configured_dir(env_var: str, key: str, default: Path) -> Path:
    raw = os.environ.get(env_var) or _storage.get(key)
    path = _resolve_dir(raw) if raw else default
    return _ensure_writable_dir(path, default)


_storage = _user_storage_table()
FLEETDECK_HOME = _ensure_writable_dir(FLEETDECK_HOME, Path("/tmp/fleetdeck"))

STATE_DIR = _configured_dir("FLEETDECK_STATE_DIR", "state_dir", FLEETDECK_HOME)
LOG_DIR = _configured_dir("FLEETDECK_LOG_DIR", "log_dir", FLEETDECK_HOME / "logs")

CREDENTIALS_FILE = STATE_DIR / "fleetdeck-credentials.json"
LOG_FILE = LOG_DIR / "fleetdeck.log"

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    """Route package logs to a rotating file.

    The dashboard owns the terminal, so nothing is written to stderr.
    """
    target = log_file or LOG_FILE
    root = logging.getLogger("fleetdeck")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    handler = logging.handlers.RotatingFileHandler(
        target, maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False
