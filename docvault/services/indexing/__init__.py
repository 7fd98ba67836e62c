"""Chunking, embedding and storage of text, plus the post-cleanup handoff."""

from docvault.services.indexing.chunker import TextChunker
from docvault.services.indexing.handoff import IndexingHandoff, IndexingWorker, IndexRequest
from docvault.services.indexing.indexing_service import (
    CLEANED_FILE_CONTENT_TYPE,
    IndexingService,
    IndexResult,
)

__all__ = [
    "CLEANED_FILE_CONTENT_TYPE",
    "IndexRequest",
    "IndexResult",
    "IndexingHandoff",
    "IndexingService",
    "IndexingWorker",
    "TextChunker",
]
