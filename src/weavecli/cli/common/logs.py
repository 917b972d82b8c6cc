"""Logging setup.

The full-screen menu owns the terminal, so log records go to a file and
only when debugging is switched on with ``WEAVE_DEBUG``.
"""

from __future__ import annotations

import logging
import os

from weavecli.core.constants import DEBUG_ENV, config_dir

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def debug_log_path() -> str:
    return os.path.join(config_dir(), "debug.log")


def configure_logging() -> str | None:
    """
    Configure the ``weavecli`` logger.

    Returns the debug log path when file logging was enabled, else None.
    """
    root = logging.getLogger("weavecli")
    root.handlers.clear()
    root.propagate = False

    if not os.environ.get(DEBUG_ENV):
        root.addHandler(logging.NullHandler())
        return None

    path = debug_log_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    return path
