"""User configuration.

The config is a small JSON document in the per-user config directory.
Loading never fails: anything missing or malformed falls back to the
built-in defaults.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from typing import Any

from weavecli.core.constants import MAX_RETRIES, config_dir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    """
    Persisted user settings.

    Attributes:
        max_retries: Extra attempts made by retrying commands.
        theme: Name of the UI color theme.
        cache_timeout: Seconds read-only listings may be served from cache;
            None disables caching.
        strict_stderr: Treat any stderr output as failure even on exit
            code zero.
    """

    max_retries: int = MAX_RETRIES
    theme: str = "default"
    cache_timeout: int | None = None
    strict_stderr: bool = True


_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "max_retries": (int,),
    "theme": (str,),
    "cache_timeout": (int, type(None)),
    "strict_stderr": (bool,),
}


def config_path() -> str:
    return os.path.join(config_dir(), "config.json")


def _coerce(data: Any) -> AppConfig:
    if not isinstance(data, dict):
        raise ValueError("config root must be an object")

    # accept the camelCase keys written by earlier releases
    aliases = {"maxRetries": "max_retries", "cacheTimeout": "cache_timeout"}
    values: dict[str, Any] = {}
    for key, value in data.items():
        name = aliases.get(key, key)
        expected = _FIELD_TYPES.get(name)
        if expected is None:
            continue
        mistyped = not isinstance(value, expected) or (
            isinstance(value, bool) and bool not in expected
        )
        negative = isinstance(value, int) and not isinstance(value, bool) and value < 0
        if mistyped or negative:
            logger.debug("Ignoring config field %s=%r", key, value)
            continue
        values[name] = value
    return AppConfig(**values)


def load_config(path: str | None = None) -> AppConfig:
    """Load the config from ``path``, falling back to defaults on any problem."""
    path = path or config_path()
    try:
        with open(path, encoding="utf-8") as f:
            return _coerce(json.load(f))
    except FileNotFoundError:
        return AppConfig()
    except (OSError, ValueError) as exc:
        logger.warning("Could not load config from %s: %s", path, exc)
        return AppConfig()


def atomic_write_json(path: str, data: Any) -> None:
    """Write JSON to ``path`` via a temp file in the same directory and rename."""
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def save_config(config: AppConfig, path: str | None = None) -> None:
    atomic_write_json(path or config_path(), asdict(config))
