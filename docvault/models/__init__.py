"""docvault domain models: re-exports all public model classes.

Submodules by concern:
    - files.py      -- FileRecord registry + scraped file metadata
    - cleaning.py   -- Cleaning tasks, patches, stats and transform outputs
    - ingestion.py  -- Ingestion jobs, patches and stats
    - vector.py     -- Vector records, similarity hits, store stats
    - content.py    -- Extractor output and text chunks
    - progress.py   -- Progress events and batch results
    - insight.py    -- Derived content-quality insights
"""

from __future__ import annotations

from docvault.models.cleaning import (
    CleaningTask,
    CleaningTaskPatch,
    CleaningTaskStats,
    ContentAnalysis,
    ContentStatistics,
    FormatConversionReport,
    TaskStatus,
    TaskType,
)
from docvault.models.content import ContentMetadata, ExtractedContent, TextChunk
from docvault.models.files import FileMetadata, FileRecord
from docvault.models.ingestion import (
    IngestionJob,
    IngestionJobPatch,
    IngestionJobStats,
    JobStatus,
)
from docvault.models.insight import Insight
from docvault.models.progress import BatchResult, ProgressEvent, ProgressEventType
from docvault.models.vector import (
    NewVectorRecord,
    SimilarityResult,
    VectorRecord,
    VectorStoreStats,
)

__all__ = [
    "BatchResult",
    "CleaningTask",
    "CleaningTaskPatch",
    "CleaningTaskStats",
    "ContentAnalysis",
    "ContentMetadata",
    "ContentStatistics",
    "ExtractedContent",
    "FileMetadata",
    "FileRecord",
    "FormatConversionReport",
    "IngestionJob",
    "IngestionJobPatch",
    "IngestionJobStats",
    "Insight",
    "JobStatus",
    "NewVectorRecord",
    "ProgressEvent",
    "ProgressEventType",
    "SimilarityResult",
    "TaskStatus",
    "TaskType",
    "TextChunk",
    "VectorRecord",
    "VectorStoreStats",
]
