"""Core domain models for the Fabric CLI front-end.

This module defines the data structures scraped from the external CLI
(workspace items, jobs, job status) and the records produced by running
it (command results, history entries). The models are immutable and
free of any subprocess or presentation concerns.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ItemKind(str, Enum):
    """
    Type of a workspace item, derived once from its name suffix.

    Values:
        NOTEBOOK: ``<name>.Notebook``
        DATA_PIPELINE: ``<name>.DataPipeline``
        SPARK_JOB_DEFINITION: ``<name>.SparkJobDefinition``
        OTHER: any other item; job actions are not available.
    """

    NOTEBOOK = "Notebook"
    DATA_PIPELINE = "DataPipeline"
    SPARK_JOB_DEFINITION = "SparkJobDefinition"
    OTHER = "Other"

    @classmethod
    def from_name(cls, name: str) -> "ItemKind":
        """Classify an item by the suffix of its name."""
        for kind in (cls.NOTEBOOK, cls.DATA_PIPELINE, cls.SPARK_JOB_DEFINITION):
            if name.endswith(f".{kind.value}"):
                return kind
        return cls.OTHER

    @property
    def supports_jobs(self) -> bool:
        return self is not ItemKind.OTHER


@dataclass(frozen=True)
class WorkspaceItem:
    """
    Represents one entry of a workspace listing.

    Attributes:
        name: Full item name including its type suffix (e.g. ``etl.Notebook``).
        kind: Item type derived from the suffix at parse time.
    """

    name: str
    kind: ItemKind = ItemKind.OTHER

    @classmethod
    def from_name(cls, name: str) -> "WorkspaceItem":
        return cls(name=name, kind=ItemKind.from_name(name))

    @property
    def is_notebook(self) -> bool:
        return self.kind is ItemKind.NOTEBOOK

    @property
    def is_data_pipeline(self) -> bool:
        return self.kind is ItemKind.DATA_PIPELINE

    @property
    def is_spark_job_definition(self) -> bool:
        return self.kind is ItemKind.SPARK_JOB_DEFINITION


@dataclass(frozen=True)
class ItemRef:
    """An item addressed inside a specific workspace."""

    workspace: str
    name: str

    @property
    def key(self) -> str:
        return f"{self.workspace}/{self.name}"


@dataclass(frozen=True)
class JobInfo:
    """
    A job started in the background.

    Attributes:
        job_id: GUID reported by the CLI when the job instance was created.
        workspace: Workspace the item lives in.
        item: Item name (with type suffix) the job was started for.
        start_time: Epoch milliseconds when the job was started locally.
    """

    job_id: str
    workspace: str
    item: str
    start_time: int

    @property
    def key(self) -> str:
        """Completion-tracking key; one logical job per (workspace, item)."""
        return f"{self.workspace}/{self.item}"


class JobStatus(str, Enum):
    """
    Closed vocabulary of job states reported by the CLI.

    Values:
        NOT_STARTED: The job instance exists but has not started yet.
        IN_PROGRESS: The job is running.
        COMPLETED: The job finished.
        SUCCEEDED: The job finished successfully.
        FAILED: The job finished with an error.
        UNKNOWN: The status could not be determined.
    """

    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str) -> "JobStatus":
        """Case-insensitive lookup, falling back to UNKNOWN."""
        lowered = value.lower()
        for status in cls:
            if status.value.lower() == lowered:
                return status
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.SUCCEEDED, JobStatus.FAILED}
)


@dataclass(frozen=True)
class StatusInfo:
    """
    Result of one job status query. Never cached.

    Attributes:
        status: Parsed job status.
        start_time: ISO-8601 start timestamp, or None.
        end_time: ISO-8601 end timestamp, or None while still running.
        job_type: Job type keyword such as ``RunNotebook``, or None.
    """

    status: JobStatus = JobStatus.UNKNOWN
    start_time: str | None = None
    end_time: str | None = None
    job_type: str | None = None


class ResultKind(str, Enum):
    """
    Outcome category of a command execution.

    Values:
        OK: Exit code zero and the success predicate held.
        TOOL_FAILURE: The CLI ran but reported failure (exit code or stderr).
        TIMEOUT: The command exceeded its allotted duration and was killed.
        TRANSPORT: The command could not be launched at all.
        CANCELLED: The caller cancelled the command and it was killed.
    """

    OK = "ok"
    TOOL_FAILURE = "tool_failure"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CommandResult:
    """
    Terminal result of running one command.

    Attributes:
        success: True only when ``kind`` is OK.
        output: Cleaned stdout.
        error: Stripped stderr or a generated error message, None when empty.
        command: The command line that was run.
        kind: Outcome category.
        exit_code: Process exit code, None when the process never finished.
        duration: Wall-clock seconds (streaming mode only).
    """

    success: bool
    output: str
    error: str | None
    command: str
    kind: ResultKind = ResultKind.OK
    exit_code: int | None = None
    duration: int | None = None


@dataclass(frozen=True)
class HistoryEntry:
    """
    One recorded command execution.

    Attributes:
        command: The command line that was run.
        timestamp: ISO-8601 UTC time of recording.
        success: Whether the command succeeded.
        output: First characters of the cleaned output.
    """

    command: str
    timestamp: str
    success: bool
    output: str = ""
