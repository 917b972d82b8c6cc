"""Command history persistence.

History is a newest-first ring buffer of recent commands. It is loaded
once at startup and rewritten wholesale on every append.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Callable

from weavecli.core.config import atomic_write_json
from weavecli.core.constants import HISTORY_SIZE, OUTPUT_PREVIEW, config_dir
from weavecli.core.models import CommandResult, HistoryEntry
from weavecli.core.parsing import parse_iso_datetime

logger = logging.getLogger(__name__)


def history_path() -> str:
    return os.path.join(config_dir(), "history.json")


def create_entry(command: str, result: CommandResult) -> HistoryEntry:
    """Build a history entry stamped with the current UTC time."""
    return HistoryEntry(
        command=command,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        success=result.success,
        output=(result.output or "")[:OUTPUT_PREVIEW],
    )


def format_timestamp(value: str) -> str:
    """Render an entry timestamp as local ``HH:MM:SS``."""
    try:
        return parse_iso_datetime(value).astimezone().strftime("%H:%M:%S")
    except (ValueError, TypeError, OverflowError):
        return value


class HistoryStore:
    """
    Persistent, bounded command history.

    Args:
        path: JSON file holding the history. Defaults to
            ``<config dir>/history.json``.
        capacity: Maximum number of entries kept.
    """

    def __init__(self, path: str | None = None, capacity: int = HISTORY_SIZE):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.path = path or history_path()
        self.capacity = capacity
        self.on_change: Callable[[list[HistoryEntry]], None] | None = None
        self._entries: list[HistoryEntry] = []

    @property
    def entries(self) -> list[HistoryEntry]:
        """Entries, newest first."""
        return list(self._entries)

    def load(self) -> list[HistoryEntry]:
        """Read the history file. A missing or corrupt file yields no history."""
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            raw = []
        except (OSError, ValueError) as exc:
            logger.warning("Could not load history from %s: %s", self.path, exc)
            raw = []

        entries = []
        for item in raw if isinstance(raw, list) else []:
            try:
                entries.append(
                    HistoryEntry(
                        command=str(item["command"]),
                        timestamp=str(item["timestamp"]),
                        success=bool(item["success"]),
                        output=str(item.get("output") or ""),
                    )
                )
            except (KeyError, TypeError, AttributeError):
                logger.debug("Skipping malformed history entry: %r", item)
        self._entries = entries[: self.capacity]
        return self.entries

    def add(self, command: str, result: CommandResult) -> HistoryEntry:
        """Record a command result and persist the history."""
        entry = create_entry(command, result)
        self._entries = [entry, *self._entries][: self.capacity]
        self._save()
        return entry

    def clear(self) -> None:
        """Drop all entries, in memory and on disk."""
        self._entries = []
        self._save()

    def _save(self) -> None:
        if self.on_change is not None:
            self.on_change(self.entries)
        try:
            atomic_write_json(self.path, [asdict(e) for e in self._entries])
        except OSError as exc:
            # history is best effort; the command itself already ran
            logger.warning("Could not save history to %s: %s", self.path, exc)
