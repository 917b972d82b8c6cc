"""Centralised constants for weave.

Timeouts, limits, polling intervals and file-system paths live here so
they are easy to find, tune, and test. Durations are in seconds.
"""

from __future__ import annotations

import os


FAB_BIN = "fab"
"""Executable name of the Fabric CLI."""

SCRAPE_ENV = {"FORCE_COLOR": "0"}
"""Environment overrides for every command whose output is parsed."""

INTERACTIVE_ENV = {
    "TERM": "xterm-256color",
    "FORCE_COLOR": "1",
    "FABRIC_DISABLE_CPR": "1",
}
"""Environment overrides for the pass-through login shell."""


CONFIG_DIR_ENV = "WEAVE_CONFIG_DIR"
DEBUG_ENV = "WEAVE_DEBUG"


def config_dir() -> str:
    """Return the per-user config directory (``~/.weave`` unless overridden)."""
    return os.environ.get(CONFIG_DIR_ENV) or os.path.join(
        os.path.expanduser("~"), ".weave"
    )


DEFAULT_TIMEOUT = 30.0
WORKSPACE_LOAD_TIMEOUT = 15.0
JOB_RUN_TIMEOUT = 600.0
"""Synchronous job runs may legitimately take up to ten minutes."""

RETRY_DELAY = 1.0
"""Base delay of the linear retry backoff (delay * attempt number)."""

STATUS_UPDATE_INTERVAL = 1.0
"""How often a streaming run reports elapsed time."""


MAX_RETRIES = 2
HISTORY_SIZE = 50
OUTPUT_PREVIEW = 200
HISTORY_DISPLAY = 10


ACTIVE_POLL_INTERVAL = 3.0
IDLE_POLL_INTERVAL = 10.0
NAVIGATION_DEBOUNCE = 0.3
