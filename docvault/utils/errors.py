"""Custom exception hierarchy for docvault.

All application exceptions inherit from :class:`DocVaultError`, which
carries an optional ``provider_name`` so error handlers can identify which
component or external service (e.g. "ollama", "sqlite", "pymupdf") caused
the failure.

The hierarchy is organized by pipeline stage:

    DocVaultError  (base -- catch-all for any docvault error)
    +-- ConfigurationError       (startup / missing config)
    +-- DatastoreError           (cannot open or write the local database)
    +-- ExtractionError          (path missing or unreadable)
    +-- IngestionError           (walk cannot start, e.g. bad root path)
    +-- TransformError           (a cleaning transform could not run)
    +-- TaskNotFoundError        (unknown cleaning task id)
    +-- TaskStateError           (illegal task status transition)
    +-- ProviderUnavailableError (external service down / unreachable)
    +-- LLMError                 (text-generation call failed)
    +-- EmbeddingError           (embedding call failed)
    |   +-- EmbeddingTimeoutError
    +-- VectorStoreError         (vector persistence failure)
        +-- VectorEncodingError  (malformed persisted vector blob)

Failures local to one file, task or chunk are caught by the batch loops and
folded into per-unit counters.  Only errors that stop a job from starting
(``IngestionError`` for a bad root, ``DatastoreError`` on open) reach the
caller of a job.
"""


class DocVaultError(Exception):
    """Base exception for all docvault errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which component triggered the error.
    ``__str__`` prefixes the provider name in brackets for log output,
    e.g. ``[ollama] request timed out after 30.0s``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Startup / persistence
# ---------------------------------------------------------------------------

class ConfigurationError(DocVaultError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DatastoreError(DocVaultError):
    """Raised when the local datastore cannot be opened or written."""

    def __init__(
        self,
        message: str = "Datastore operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Ingestion / extraction
# ---------------------------------------------------------------------------

class ExtractionError(DocVaultError):
    """Raised when a file cannot be read at all (missing, permission denied).

    Malformed *content* never raises this; the extractor returns a
    placeholder result instead.
    """

    def __init__(
        self,
        message: str = "Content extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(DocVaultError):
    """Raised when an ingestion job cannot start (e.g. the root path is missing)."""

    def __init__(
        self,
        message: str = "Ingestion job failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Cleaning queue
# ---------------------------------------------------------------------------

class TransformError(DocVaultError):
    """Raised by a cleaning transform that cannot produce output."""

    def __init__(
        self,
        message: str = "Cleaning transform failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TaskNotFoundError(DocVaultError):
    """Raised when a cleaning task id does not exist."""

    def __init__(
        self,
        message: str = "Cleaning task not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TaskStateError(DocVaultError):
    """Raised on an illegal cleaning task status transition.

    Tasks only move forward: ``pending -> running -> completed|failed``
    (or ``pending -> failed``).  Nothing ever returns to ``pending``.
    """

    def __init__(
        self,
        message: str = "Illegal task state transition",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External model service
# ---------------------------------------------------------------------------

class ProviderUnavailableError(DocVaultError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(DocVaultError):
    """Raised when a text-generation call fails, times out, or returns nothing."""

    def __init__(
        self,
        message: str = "Text generation call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(DocVaultError):
    """Raised when an embedding call fails or returns an unusable vector."""

    def __init__(
        self,
        message: str = "Embedding call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingTimeoutError(EmbeddingError):
    """Raised when an embedding call exceeds its timeout."""

    def __init__(
        self,
        message: str = "Embedding call timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Vector store
# ---------------------------------------------------------------------------

class VectorStoreError(DocVaultError):
    """Raised when a vector store operation fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorEncodingError(VectorStoreError):
    """Raised when a persisted vector blob is malformed (length not a multiple of 4)."""

    def __init__(
        self,
        message: str = "Malformed vector encoding",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
