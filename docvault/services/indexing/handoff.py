"""Work channel between the cleaning processor and the indexing worker.

When a ``text_cleanup`` task completes, the processor does not index the
cleaned text itself.  It submits an :class:`IndexRequest` to the
:class:`IndexingHandoff` and moves on; an :class:`IndexingWorker` consumes
the channel and runs :meth:`IndexingService.index_content`.

# ─── WHY A CHANNEL ────────────────────────────────────────────────────
#
#   processor ──submit()──> asyncio.Queue ──get()──> IndexingWorker
#        │                                                │
#        └── holds asyncio.Future <──set_result()─────────┘
#
# ``submit`` returns immediately with a Future, so task completion never
# waits on embedding.  Anyone interested (tests, the CLI) can await that
# Future as the completion signal for the downstream indexing.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog

from docvault.services.indexing.indexing_service import IndexingService, IndexResult

logger = structlog.get_logger(logger_name=__name__)


def _retrieve_exception(future: asyncio.Future) -> None:
    # Marks a failure as seen so an unawaited ticket does not warn at GC time.
    if not future.cancelled():
        future.exception()


@dataclass
class IndexRequest:
    """One unit of downstream indexing work."""

    content_id: int
    content_type: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    completion: asyncio.Future | None = None


class IndexingHandoff:
    """FIFO channel of :class:`IndexRequest` objects."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[IndexRequest] = asyncio.Queue()

    def submit(
        self,
        content_id: int,
        content_type: str,
        text: str,
        metadata: dict[str, Any] | None = None,
    ) -> asyncio.Future:
        """Enqueue a request without blocking and return its completion future.

        The future resolves to the :class:`IndexResult`, or to the
        exception that stopped indexing.
        """
        completion = asyncio.get_running_loop().create_future()
        completion.add_done_callback(_retrieve_exception)
        request = IndexRequest(
            content_id=content_id,
            content_type=content_type,
            text=text,
            metadata=dict(metadata or {}),
            completion=completion,
        )
        self._queue.put_nowait(request)
        logger.debug("index_request_submitted", content_id=content_id, content_type=content_type)
        return completion

    def pending(self) -> int:
        return self._queue.qsize()

    async def get(self) -> IndexRequest:
        return await self._queue.get()

    def get_nowait(self) -> IndexRequest:
        return self._queue.get_nowait()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted request has been handled."""
        await self._queue.join()


class IndexingWorker:
    """Consumes :class:`IndexingHandoff` and indexes each request in order.

    Run it in the background with :meth:`start`, or process whatever is
    queued synchronously with :meth:`drain`.
    """

    def __init__(self, handoff: IndexingHandoff, indexing_service: IndexingService) -> None:
        self._handoff = handoff
        self._indexing_service = indexing_service
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if not self.is_running:
            self._task = asyncio.create_task(self.run(), name="docvault-indexing-worker")
            logger.info("indexing_worker_started")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("indexing_worker_stopped")

    async def run(self) -> None:
        """Process requests forever; cancel the task to stop."""
        while True:
            request = await self._handoff.get()
            try:
                await self._handle(request)
            finally:
                self._handoff.task_done()

    async def drain(self) -> list[IndexResult]:
        """Handle every request currently queued and return the successful results."""
        results: list[IndexResult] = []
        while True:
            try:
                request = self._handoff.get_nowait()
            except asyncio.QueueEmpty:
                return results
            try:
                result = await self._handle(request)
            finally:
                self._handoff.task_done()
            if result is not None:
                results.append(result)

    async def _handle(self, request: IndexRequest) -> IndexResult | None:
        try:
            result = await self._indexing_service.index_content(
                request.content_id,
                request.content_type,
                request.text,
                metadata=request.metadata,
            )
        except Exception as exc:
            # The worker must outlive one bad request; the error travels on the future.
            logger.error(
                "index_request_failed",
                content_id=request.content_id,
                content_type=request.content_type,
                error=str(exc),
            )
            if request.completion is not None and not request.completion.done():
                request.completion.set_exception(exc)
            return None

        if request.completion is not None and not request.completion.done():
            request.completion.set_result(result)
        return result
