"""Content extractor output models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ContentMetadata(BaseModel):
    """Structural metadata gathered while extracting a document."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    author: str | None = None
    subject: str | None = None
    keywords: list[str] = Field(default_factory=list)
    page_count: int | None = Field(default=None, description="Pages or slides, where the format has them.")
    word_count: int = 0
    char_count: int = 0
    file_size: int = 0
    mime_type: str = "text/plain"


class ExtractedContent(BaseModel):
    """Normalized text plus metadata for one file.

    ``is_placeholder`` is set when the format was unsupported or the
    document could not be parsed; ``text`` then carries a labelled
    placeholder instead of document content.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    metadata: ContentMetadata = Field(default_factory=ContentMetadata)
    is_placeholder: bool = False


class TextChunk(BaseModel):
    """A bounded slice of a larger text, the unit embeddings are computed over."""

    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0, description="0-based order of emission.")
    text: str
