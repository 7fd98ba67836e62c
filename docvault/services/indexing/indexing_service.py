"""Chunk, embed and store text in the vector store.

:meth:`IndexingService.index_content` is the single path from text to
stored vectors: chunk with :class:`TextChunker`, embed each chunk through
the embedding provider, insert one :class:`NewVectorRecord` per chunk.  A
failed embedding skips that chunk only; the others are still stored and
the failure is counted in the returned :class:`IndexResult`.  When no
chunk at all could be embedded the previously stored vectors are kept.

:meth:`IndexingService.reindex_cleaned_outputs` is the bulk variant run as
a background job over every completed ``text_cleanup`` output.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from docvault.interfaces.embedding_provider import IEmbeddingProvider
from docvault.interfaces.vector_store_provider import IVectorStoreProvider
from docvault.models.cleaning import TaskType
from docvault.models.progress import BatchResult
from docvault.models.vector import NewVectorRecord
from docvault.pipeline.progress_tracker import ProgressReporter, ProgressTracker
from docvault.services.cleaning.task_queue import CleaningTaskQueue
from docvault.services.indexing.chunker import TextChunker
from docvault.utils.concurrency import BatchThrottle, CancellationToken
from docvault.utils.errors import EmbeddingError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

CLEANED_FILE_CONTENT_TYPE = "cleaned_file"


class IndexResult(BaseModel):
    """Outcome of indexing one piece of content."""

    model_config = ConfigDict(frozen=True)

    content_id: int
    content_type: str
    chunks_total: int = 0
    chunks_indexed: int = 0
    chunks_failed: int = 0
    record_ids: list[int] = Field(default_factory=list)
    replaced: int = Field(default=0, description="Records removed before re-indexing.")


class IndexingService:
    """Turns text into stored, searchable vectors."""

    def __init__(
        self,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        task_queue: CleaningTaskQueue | None = None,
        progress_tracker: ProgressTracker | None = None,
        batch_pause_every: int = 10,
        batch_pause_seconds: float = 0.1,
    ) -> None:
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._task_queue = task_queue
        self._progress_tracker = progress_tracker
        self._batch_pause_every = batch_pause_every
        self._batch_pause_seconds = batch_pause_seconds

    async def index_content(
        self,
        content_id: int,
        content_type: str,
        text: str,
        model: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> IndexResult:
        """Replace the vectors for ``(content_id, content_type)`` with fresh ones.

        Parameters
        ----------
        content_id, content_type:
            Logical parent of the chunks.
        text:
            Text to chunk and embed.
        model:
            Embedding model; ``None`` uses the provider's canonical model.
        metadata:
            Copied into every stored record alongside ``chunk_count``.

        Raises
        ------
        VectorStoreError
            If storing the vectors fails (datastore problem); the previous
            vectors are then left in place.  Embedding failures are
            absorbed per chunk.
        """
        model_name = model or self._embedding_provider.get_model_name()
        chunks = self._chunker.chunk(text)

        # Embed everything before touching the store, so an unreachable
        # embedding service never costs the previously indexed vectors.
        pending: list[NewVectorRecord] = []
        failed = 0
        for chunk in chunks:
            try:
                vector = await self._embedding_provider.embed(chunk.text, model=model_name)
            except EmbeddingError as exc:
                failed += 1
                logger.warning(
                    "chunk_embedding_failed",
                    content_id=content_id,
                    content_type=content_type,
                    chunk_index=chunk.chunk_index,
                    error=str(exc),
                )
                continue
            pending.append(
                NewVectorRecord(
                    content_id=content_id,
                    content_type=content_type,
                    chunk_index=chunk.chunk_index,
                    text=chunk.text,
                    vector=vector,
                    model_name=model_name,
                    metadata={**(metadata or {}), "chunk_count": len(chunks)},
                )
            )

        replaced = 0
        record_ids: list[int] = []
        if chunks and not pending:
            logger.warning(
                "content_index_kept_previous",
                content_id=content_id,
                content_type=content_type,
                chunks=len(chunks),
            )
        else:
            replaced, stored = await self._vector_store.replace_content(content_id, content_type, pending)
            record_ids = [record.id for record in stored]

        result = IndexResult(
            content_id=content_id,
            content_type=content_type,
            chunks_total=len(chunks),
            chunks_indexed=len(record_ids),
            chunks_failed=failed,
            record_ids=record_ids,
            replaced=replaced,
        )
        logger.info(
            "content_indexed",
            content_id=content_id,
            content_type=content_type,
            chunks=result.chunks_total,
            indexed=result.chunks_indexed,
            failed=result.chunks_failed,
        )
        return result

    async def reindex_cleaned_outputs(self, cancel_token: CancellationToken | None = None) -> BatchResult:
        """Re-index every completed ``text_cleanup`` output as ``cleaned_file`` content.

        One file is indexed per unit; progress is published on the
        ``"indexing"`` channel and the loop pauses every
        ``batch_pause_every`` units.  A unit counts as failed when none of
        its chunks could be embedded or the store rejected a vector.
        """
        if self._task_queue is None:
            msg = "reindex_cleaned_outputs requires a task queue"
            raise RuntimeError(msg)

        outputs = await self._task_queue.completed_outputs(TaskType.TEXT_CLEANUP)
        reporter = ProgressReporter(self._progress_tracker, "indexing", total=len(outputs))
        throttle = BatchThrottle(self._batch_pause_every, self._batch_pause_seconds)
        await reporter.start(f"Re-indexing {len(outputs)} cleaned files")

        cancelled = False
        for task_id, file_id, output in outputs:
            if cancel_token is not None and cancel_token.is_cancelled():
                cancelled = True
                break
            try:
                result = await self.index_content(
                    file_id,
                    CLEANED_FILE_CONTENT_TYPE,
                    output,
                    metadata={"task_id": task_id},
                )
                unit_failed = result.chunks_total > 0 and result.chunks_indexed == 0
            except VectorStoreError as exc:
                unit_failed = True
                logger.error("reindex_unit_failed", file_id=file_id, task_id=task_id, error=str(exc))
            await reporter.advance(failed=unit_failed, current_item=f"file:{file_id}")
            await throttle.tick()

        await reporter.finish(
            "Re-indexing cancelled" if cancelled else "Re-indexing complete",
            complete=not cancelled,
        )
        logger.info(
            "reindex_finished",
            total=len(outputs),
            indexed=reporter.processed,
            failed=reporter.failed,
            cancelled=cancelled,
        )
        return BatchResult(
            total=len(outputs),
            completed=reporter.processed,
            failed=reporter.failed,
            cancelled=cancelled,
        )
