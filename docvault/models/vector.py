"""Vector store models.

A :class:`VectorRecord` holds the embedding of one chunk.  ``content_id``
plus ``content_type`` identify the logical parent (a file, a cleaned file
output, a document...), so several records share a parent, one per chunk.
All vectors produced by one ``model_name`` have the same dimensionality.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NewVectorRecord(BaseModel):
    """Insert payload for the vector store (id and timestamp are assigned on insert)."""

    model_config = ConfigDict(frozen=True)

    content_id: int
    content_type: str = Field(description='Parent kind, e.g. "file" or "cleaned_file".')
    chunk_index: int = Field(default=0, ge=0)
    text: str
    vector: list[float] = Field(min_length=1)
    model_name: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorRecord(NewVectorRecord):
    """A stored embedding."""

    id: int
    created_at: datetime

    @property
    def dimension(self) -> int:
        return len(self.vector)


class SimilarityResult(BaseModel):
    """One hit from a similarity search."""

    model_config = ConfigDict(frozen=True)

    record_id: int
    content_id: int
    content_type: str
    chunk_index: int
    text: str
    model_name: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity_score: float = Field(ge=-1.0, le=1.0)


class VectorStoreStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_vectors: int = 0
    model_names: list[str] = Field(default_factory=list)
    dimension: int | None = Field(default=None, description="Most common dimensionality.")
    last_updated: datetime | None = None
