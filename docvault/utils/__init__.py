"""Utility modules for docvault.

- **errors** -- Domain-specific exception hierarchy rooted at DocVaultError.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output interactively, structured JSON when ``APP_ENV=production``.
- **concurrency** -- cooperative cancellation token and batch throttle
  shared by the long-running ingestion, cleaning and indexing loops.
- **similarity** -- cosine similarity (scalar and vectorised numpy form).
- **text_normalizer** -- line-ending, trailing-whitespace and blank-line
  normalization used by extraction and the format conversion transform.
- **vector_codec** (not re-exported here) -- little-endian float32 blob
  encoding for persisted vectors.
"""

from docvault.utils.concurrency import BatchThrottle, CancellationToken
from docvault.utils.errors import (
    ConfigurationError,
    DatastoreError,
    DocVaultError,
    EmbeddingError,
    EmbeddingTimeoutError,
    ExtractionError,
    IngestionError,
    LLMError,
    ProviderUnavailableError,
    TaskNotFoundError,
    TaskStateError,
    TransformError,
    VectorEncodingError,
    VectorStoreError,
)
from docvault.utils.logging import configure_logging, get_logger
from docvault.utils.similarity import cosine_similarity
from docvault.utils.text_normalizer import normalize_text

__all__ = [
    "BatchThrottle",
    "CancellationToken",
    "ConfigurationError",
    "DatastoreError",
    "DocVaultError",
    "EmbeddingError",
    "EmbeddingTimeoutError",
    "ExtractionError",
    "IngestionError",
    "LLMError",
    "ProviderUnavailableError",
    "TaskNotFoundError",
    "TaskStateError",
    "TransformError",
    "VectorEncodingError",
    "VectorStoreError",
    "configure_logging",
    "cosine_similarity",
    "get_logger",
    "normalize_text",
]
