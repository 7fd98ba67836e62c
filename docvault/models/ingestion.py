"""Ingestion job models.

One :class:`IngestionJob` row tracks one run of the ingestion coordinator
over a root path.  ``progress`` is monotonically non-decreasing and the
terminal states are ``completed``, ``failed`` and ``cancelled``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):  # noqa: UP042
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})


class IngestionJob(BaseModel):
    """A persisted ingestion run."""

    model_config = ConfigDict(frozen=True)

    id: int
    source_path: str
    job_type: str = Field(default="folder", description='"folder", "archive" or "file".')
    status: JobStatus = JobStatus.PENDING
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    total_files: int = 0
    processed_files: int = 0
    error_count: int = 0
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES


class IngestionJobPatch(BaseModel):
    """Fields to change on an ingestion job; ``None`` leaves a column as is."""

    model_config = ConfigDict(frozen=True)

    status: JobStatus | None = None
    progress: float | None = None
    total_files: int | None = None
    processed_files: int | None = None
    error_count: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None


class IngestionJobStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_jobs: int = 0
    pending_jobs: int = 0
    running_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    cancelled_jobs: int = 0
    total_files_processed: int = 0
    total_errors: int = 0
