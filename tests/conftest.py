"""Pytest global setup for isolated fleetdeck test state.

This prevents tests from touching the operator's real credential file or
log directory, and from picking up a live server URL from the environment.
"""

from __future__ import annotations

import atexit
import os
from pathlib import Path
import shutil
import tempfile


_TEST_ROOT = Path(tempfile.mkdtemp(prefix="fleetdeck-pytest-state-"))
_TEST_STATE_DIR = _TEST_ROOT / "state"
_TEST_LOG_DIR = _TEST_ROOT / "logs"

_TEST_STATE_DIR.mkdir(parents=True, exist_ok=True)
_TEST_LOG_DIR.mkdir(parents=True, exist_ok=True)

# Force test process (and imported fleetdeck modules) to use isolated paths.
os.environ["FLEETDECK_HOME"] = str(_TEST_ROOT)
os.environ["FLEETDECK_STATE_DIR"] = str(_TEST_STATE_DIR)
os.environ["FLEETDECK_LOG_DIR"] = str(_TEST_LOG_DIR)
for _name in ("FLEETDECK_URL", "FLEETDECK_POLL", "FLEETDECK_STREAM_RETRY", "FLEETDECK_LOG_LEVEL"):
    os.environ.pop(_name, None)


@atexit.register
def _cleanup_test_state() -> None:
    shutil.rmtree(_TEST_ROOT, ignore_errors=True)
