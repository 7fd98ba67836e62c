"""File registry models.

A :class:`FileRecord` is created by the ingestion coordinator the first time
a path is seen and refreshed (size, MIME type, hash) whenever the same path
reappears.  Records are never deleted automatically; cleaning tasks and
vector records refer to them by ``id``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FileRecord(BaseModel):
    """A file discovered during ingestion."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Datastore row id.")
    filename: str = Field(description="Base name of the file.")
    # Archive members use the virtual path "<archive>!/<member>".
    path: str = Field(description="Absolute path, unique per record.")
    size: int = Field(default=0, ge=0, description="Size in bytes at last sighting.")
    mime_type: str = Field(default="application/octet-stream", description="Detected media type.")
    content_hash: str | None = Field(
        default=None,
        description="SHA-256 of the file bytes, used for change detection only.",
    )
    created_at: datetime = Field(description="First time the path was registered.")
    updated_at: datetime = Field(description="Last time the record was refreshed.")


class FileMetadata(BaseModel):
    """Lightweight metadata scraped from a readable file's text."""

    model_config = ConfigDict(frozen=True)

    file_id: int
    author: str | None = Field(default=None, description="First Author:/@author value.")
    topic: str | None = Field(default=None, description="First non-empty line, truncated.")
    tags: list[str] = Field(default_factory=list, description="Lines starting with '#', without the marker.")
