"""Derived insight model produced by the content-quality report."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Insight(BaseModel):
    model_config = ConfigDict(frozen=True)

    insight_type: str = Field(description='Category, e.g. "content_quality" or "organization".')
    title: str
    description: str
    confidence: float = Field(ge=0.0, le=1.0)
    priority: int = Field(default=1, ge=1, le=5)
    metadata: str | None = None
