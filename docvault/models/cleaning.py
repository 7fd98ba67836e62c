"""Cleaning task queue models.

A cleaning task is one unit of text transformation applied to one file.
Its status only ever moves forward through the state machine::

    pending ──> running ──> completed
       │           └──────> failed
       └──────────────────> failed

:class:`CleaningTaskPatch` is the typed update used by the queue: every
field is optional and ``None`` means "leave unchanged", so the queue can
apply any patch with one fixed parameterized statement.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TaskType(str, Enum):  # noqa: UP042
    """Kinds of cleaning transform."""

    TEXT_CLEANUP = "text_cleanup"
    STRUCTURE_REPAIR = "structure_repair"
    METADATA_EXTRACTION = "metadata_extraction"
    CONTENT_NORMALIZATION = "content_normalization"
    DUPLICATE_REMOVAL = "duplicate_removal"
    FORMAT_CONVERSION = "format_conversion"


class TaskStatus(str, Enum):  # noqa: UP042
    """Lifecycle states of a cleaning task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Legal forward moves.  Same-status updates (e.g. rewriting output of a
# completed task) are allowed separately.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING, TaskStatus.FAILED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class CleaningTask(BaseModel):
    """A persisted cleaning task."""

    model_config = ConfigDict(frozen=True)

    id: int
    file_id: int = Field(description="FileRecord the task was created for.")
    task_type: TaskType
    status: TaskStatus = TaskStatus.PENDING
    priority: int = Field(default=1, description="Higher runs first.")
    input_content: str | None = None
    output_content: str | None = None
    error_message: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class CleaningTaskPatch(BaseModel):
    """Fields to change on a cleaning task; ``None`` leaves a column as is."""

    model_config = ConfigDict(frozen=True)

    status: TaskStatus | None = None
    output_content: str | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class CleaningTaskStats(BaseModel):
    """Aggregate counts over the whole cleaning queue."""

    model_config = ConfigDict(frozen=True)

    total_tasks: int = 0
    pending_tasks: int = 0
    running_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    average_processing_seconds: float | None = Field(
        default=None,
        description="Mean completed_at - started_at over completed tasks.",
    )


class ContentStatistics(BaseModel):
    """Counting half of a metadata_extraction result."""

    model_config = ConfigDict(frozen=True)

    total_lines: int = 0
    non_empty_lines: int = 0
    empty_lines: int = 0
    total_words: int = 0
    unique_words: int = 0
    total_characters: int = 0
    characters_no_spaces: int = 0
    average_words_per_line: float = 0.0
    average_characters_per_line: float = 0.0
    reading_time_minutes: int = 0


class ContentAnalysis(BaseModel):
    """Output of the ``metadata_extraction`` transform."""

    model_config = ConfigDict(frozen=True)

    statistics: ContentStatistics = Field(default_factory=ContentStatistics)
    content_type: str = "general_text"
    language: str = "unknown"
    complexity_score: float = Field(default=0.0, ge=0.0, le=1.0)
    has_numbers: bool = False
    has_special_chars: bool = False
    sentence_count: int = 0


class FormatConversionReport(BaseModel):
    """Output of the ``format_conversion`` transform."""

    model_config = ConfigDict(frozen=True)

    target_encoding: str
    encoding_valid: bool
    original_size: int = Field(description="Input size in bytes (UTF-8).")
    converted_size: int = Field(description="Output size in bytes (UTF-8).")
    non_ascii_chars: int = 0
    line_endings: str = "LF"
    content: str = ""
