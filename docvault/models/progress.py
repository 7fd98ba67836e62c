"""Progress and batch result models shared by the long-running jobs."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProgressEventType(str, Enum):  # noqa: UP042
    STARTED = "started"
    PROGRESS = "progress"
    COMPLETED = "completed"


class ProgressEvent(BaseModel):
    """A discrete progress notification emitted after each unit of work."""

    model_config = ConfigDict(frozen=True)

    type: ProgressEventType
    channel: str = Field(description='Emitter, e.g. "cleaning", "indexing", "ingestion:7".')
    total: int = 0
    processed: int = 0
    failed: int = 0
    progress_percent: float = Field(default=0.0, ge=0.0, le=100.0)
    eta_seconds: float | None = Field(
        default=None,
        description="elapsed / units done * units remaining; None before the first unit.",
    )
    current_item: str | None = None
    message: str = ""


class BatchResult(BaseModel):
    """Outcome of a batch loop (cleaning or bulk re-index)."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: bool = False
