"""Scrapers for Fabric CLI text output.

The CLI prints banners, box-drawn tables and ANSI colors meant for humans.
The functions here turn that text into typed records. They are pure and
never raise: malformed input degrades to empty lists, None, ``Unknown``
or ``N/A``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Iterable

from weavecli.core.models import ItemKind, JobStatus, StatusInfo, WorkspaceItem

logger = logging.getLogger(__name__)

DEFAULT_SKIP_PREFIXES: tuple[str, ...] = ("Listing", "ID", "─", "━", "┌", "├", "└")

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
_JOB_CREATED_RE = re.compile(r"Job instance '([a-f0-9-]+)' created", re.IGNORECASE)
_GUID_RE = re.compile(
    r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}", re.IGNORECASE
)
_STATUS_RE = re.compile(
    r"\b(NotStarted|InProgress|Completed|Succeeded|Failed)\b", re.IGNORECASE
)
_JOB_TYPE_RE = re.compile(
    r"\b(RunNotebook|RunPipeline|RunDataPipeline|RunSparkJobDefinition)\b",
    re.IGNORECASE,
)
_TIMESTAMP_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?"
)
_OFFSET_RE = re.compile(r"(?:Z|[+-]\d{2}:?\d{2})$")
_BORDER_CHARS = "│┃| "


def clean_output(raw: str) -> str:
    """
    Strip ANSI escape sequences, normalize CRLF to LF and trim.

    Repeated until stable so that sequences exposed by a removal are
    stripped as well, which makes the function idempotent.
    """
    text = raw
    while True:
        cleaned = _ANSI_RE.sub("", text).replace("\r\n", "\n").strip()
        if cleaned == text:
            return cleaned
        text = cleaned


def parse_lines(
    output: str,
    skip_prefixes: Iterable[str] | None = DEFAULT_SKIP_PREFIXES,
    *,
    skip_empty: bool = True,
) -> list[str]:
    """
    Split CLI output into trimmed data lines.

    Lines that *start* with one of ``skip_prefixes`` (banners, column
    headers, table rules) are dropped. Lines that merely contain one of
    the prefixes are kept. Pass ``skip_prefixes=None`` to keep headers.
    """
    prefixes = tuple(skip_prefixes or ())
    lines = []
    for line in output.split("\n"):
        line = line.strip()
        if skip_empty and not line:
            continue
        if prefixes and line.startswith(prefixes):
            continue
        lines.append(line)
    return lines


def parse_workspaces(output: str) -> list[str]:
    """
    Return workspace names from ``fab ls`` output.

    Everything from the first dot on is dropped, which removes the
    ``.Workspace`` type suffix.
    """
    names = []
    for line in parse_lines(output):
        name = line.split(".", 1)[0].strip() if "." in line else line
        if name:
            names.append(name)
    return names


def parse_workspace_items(output: str) -> list[WorkspaceItem]:
    """Return typed items from ``fab ls <workspace>`` output."""
    return [WorkspaceItem.from_name(line) for line in parse_lines(output)]


def extract_job_id(output: str) -> str | None:
    """
    Return the job ID from a job-start confirmation.

    None means the confirmation phrase was absent; callers must treat
    that as a failed start.
    """
    match = _JOB_CREATED_RE.search(output)
    return match.group(1) if match else None


def extract_guid(text: str) -> str | None:
    """Return the first 8-4-4-4-12 GUID anywhere in ``text``."""
    match = _GUID_RE.search(text)
    return match.group(0) if match else None


def _normalize_timestamp(value: str) -> str:
    value = value.replace(" ", "T", 1)
    if not _OFFSET_RE.search(value):
        value += "Z"
    return value


def parse_job_status(output: str) -> StatusInfo:
    """
    Parse ``fab job run-status`` output.

    The first line carrying a GUID is taken as the data row of the status
    table. Status and job type are matched against closed vocabularies;
    the first timestamp on the row is the start time and the first
    different one, if any, the end time. Timestamps without an offset are
    taken as UTC.
    """
    status = JobStatus.UNKNOWN
    job_type = None
    start_time = None
    end_time = None

    for line in clean_output(output).split("\n"):
        if not line.strip() or "─" in line or not extract_guid(line):
            continue

        row = line.strip(_BORDER_CHARS)

        status_match = _STATUS_RE.search(row)
        if status_match:
            status = JobStatus.parse(status_match.group(1))

        type_match = _JOB_TYPE_RE.search(row)
        if type_match:
            job_type = type_match.group(1)

        timestamps = _TIMESTAMP_RE.findall(row)
        if timestamps:
            start_time = _normalize_timestamp(timestamps[0])
            for candidate in timestamps[1:]:
                if candidate != timestamps[0]:
                    end_time = _normalize_timestamp(candidate)
                    break
        break

    if end_time == "None" or end_time == start_time:
        end_time = None

    return StatusInfo(
        status=status, start_time=start_time, end_time=end_time, job_type=job_type
    )


def parse_iso_datetime(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp as printed by the CLI.

    Accepts a ``Z`` suffix and fractions longer than microseconds. Naive
    values are taken as UTC. Raises ValueError on anything else.
    """
    text = value.strip().replace(" ", "T", 1)
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = re.sub(r"(\.\d{6})\d+", r"\1", text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_datetime(value: str | None) -> str:
    """
    Render a timestamp in the local timezone, 24-hour clock.

    Returns ``N/A`` for None or ``"None"`` and the input unchanged when it
    cannot be parsed.
    """
    if not value or value == "None":
        return "N/A"
    try:
        local = parse_iso_datetime(value).astimezone()
    except (ValueError, TypeError, OverflowError) as exc:
        logger.debug("Invalid date %r: %s", value, exc)
        return value
    return local.strftime("%b %d, %Y, %H:%M:%S ") + (local.tzname() or "")


def _kind_of(item: str | WorkspaceItem) -> ItemKind:
    if isinstance(item, WorkspaceItem):
        return item.kind
    return ItemKind.from_name(item)


def is_notebook(item: str | WorkspaceItem) -> bool:
    return _kind_of(item) is ItemKind.NOTEBOOK


def is_data_pipeline(item: str | WorkspaceItem) -> bool:
    return _kind_of(item) is ItemKind.DATA_PIPELINE


def is_spark_job_definition(item: str | WorkspaceItem) -> bool:
    return _kind_of(item) is ItemKind.SPARK_JOB_DEFINITION


def supports_job_actions(item: str | WorkspaceItem) -> bool:
    """True for notebooks, data pipelines and Spark job definitions."""
    return (
        is_notebook(item) or is_data_pipeline(item) or is_spark_job_definition(item)
    )
