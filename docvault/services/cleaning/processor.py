"""Cleaning task processor: pulls pending tasks and runs their transforms.

# ─── LIFECYCLE OF ONE TASK ────────────────────────────────────────────
#
#   pending ──mark_running()──> running ──transform ok──> completed
#                                   └────transform raised──> failed
#
# The pending to running claim is one compare-and-set write, so two callers
# racing on the same id cannot both run it.  A task cancelled mid-transform,
# or whose completion cannot be recorded, is moved to failed.
#
# The datastore guard is only held for the two short status writes; the
# transform itself (which may call the model service) runs unguarded so
# similarity queries are never blocked behind a slow generation.
#
# After a successful text_cleanup the cleaned text is submitted to the
# IndexingHandoff.  ``process_task`` returns immediately with the
# handoff's Future in ``ProcessOutcome.index_ticket``; awaiting it is
# optional and only needed to observe downstream indexing.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from docvault.models.cleaning import CleaningTask, TaskStatus, TaskType
from docvault.models.progress import BatchResult
from docvault.pipeline.progress_tracker import ProgressReporter, ProgressTracker
from docvault.services.cleaning.task_queue import CleaningTaskQueue
from docvault.services.cleaning.transforms import CleaningTransforms
from docvault.services.indexing.handoff import IndexingHandoff
from docvault.services.indexing.indexing_service import CLEANED_FILE_CONTENT_TYPE
from docvault.utils.concurrency import BatchThrottle, CancellationToken
from docvault.utils.errors import DocVaultError

logger = structlog.get_logger(logger_name=__name__)

CLEANING_CHANNEL = "cleaning"


@dataclass
class ProcessOutcome:
    """Result of processing one task.

    ``index_ticket`` is set only when a completed ``text_cleanup`` was
    handed to the indexing worker; it resolves to an ``IndexResult``.
    """

    task: CleaningTask
    index_ticket: asyncio.Future | None = None

    @property
    def succeeded(self) -> bool:
        return self.task.status is TaskStatus.COMPLETED


class CleaningProcessor:
    """Executes pending cleaning tasks one at a time.

    Parameters
    ----------
    task_queue:
        Persistence and state machine for tasks.
    transforms:
        Task-type dispatcher.
    handoff:
        Channel for post-cleanup indexing; ``None`` disables the trigger.
    progress_tracker:
        Receives batch progress on the ``"cleaning"`` channel.
    batch_pause_every, batch_pause_seconds:
        Throttle: sleep ``batch_pause_seconds`` after every
        ``batch_pause_every`` tasks in :meth:`process_pending`.
    """

    def __init__(
        self,
        task_queue: CleaningTaskQueue,
        transforms: CleaningTransforms,
        handoff: IndexingHandoff | None = None,
        progress_tracker: ProgressTracker | None = None,
        batch_pause_every: int = 10,
        batch_pause_seconds: float = 0.1,
    ) -> None:
        self._task_queue = task_queue
        self._transforms = transforms
        self._handoff = handoff
        self._progress_tracker = progress_tracker
        self._batch_pause_every = batch_pause_every
        self._batch_pause_seconds = batch_pause_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_task(self, task_id: int) -> ProcessOutcome:
        """Run one pending task to a terminal state.

        Transform failures (including model-service errors and timeouts)
        are recorded on the task as ``failed`` and returned, not raised.

        Raises
        ------
        TaskNotFoundError
            If *task_id* does not exist.
        TaskStateError
            If the task is not ``pending``.
        """
        # The claim is atomic: a second caller for the same id fails here.
        task = await self._task_queue.mark_running(task_id)
        log = logger.bind(task_id=task_id, file_id=task.file_id, task_type=task.task_type.value)
        log.info("task_started")

        try:
            output = await self._transforms.run(task.task_type, task.input_content)
        except asyncio.CancelledError:
            await self._abandon(task_id, "Cancelled while running")
            raise
        except Exception as exc:
            # Any transform error is a task failure; the batch keeps going.
            message = str(exc) or exc.__class__.__name__
            task = await self._task_queue.mark_failed(task_id, message)
            log.warning("task_failed", error=message, error_type=exc.__class__.__name__)
            return ProcessOutcome(task=task)

        try:
            task = await self._task_queue.mark_completed(task_id, output)
        except BaseException as exc:
            await self._abandon(task_id, f"Could not record completion: {str(exc) or exc.__class__.__name__}")
            raise
        log.info("task_completed", output_chars=len(output))

        ticket = None
        if task.task_type is TaskType.TEXT_CLEANUP and self._handoff is not None and output.strip():
            ticket = self._handoff.submit(
                task.file_id,
                CLEANED_FILE_CONTENT_TYPE,
                output,
                metadata={"task_id": task.id},
            )
        return ProcessOutcome(task=task, index_ticket=ticket)

    async def process_pending(
        self,
        limit: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> BatchResult:
        """Process pending tasks in priority order until none are left (or *limit*).

        Each task is independent: a failure is counted and the loop moves
        on.  The cancel flag is checked before every task.
        """
        pending = await self._task_queue.get_pending_tasks(limit=limit)
        reporter = ProgressReporter(self._progress_tracker, CLEANING_CHANNEL, total=len(pending))
        throttle = BatchThrottle(self._batch_pause_every, self._batch_pause_seconds)
        await reporter.start(f"Processing {len(pending)} cleaning tasks")

        cancelled = False
        for task in pending:
            if cancel_token is not None and cancel_token.is_cancelled():
                cancelled = True
                logger.info("cleaning_batch_cancelled", remaining=len(pending) - throttle.count)
                break

            failed = False
            try:
                outcome = await self.process_task(task.id)
                failed = not outcome.succeeded
            except DocVaultError as exc:
                # Deleted or already picked up since the batch was listed.
                failed = True
                logger.warning("task_skipped", task_id=task.id, error=str(exc))

            await reporter.advance(failed=failed, current_item=f"task:{task.id}")
            await throttle.tick()

        await reporter.finish(
            "Cleaning cancelled" if cancelled else "Cleaning complete",
            complete=not cancelled,
        )
        result = BatchResult(
            total=len(pending),
            completed=reporter.processed,
            failed=reporter.failed,
            cancelled=cancelled,
        )
        logger.info(
            "cleaning_batch_finished",
            total=result.total,
            completed=result.completed,
            failed=result.failed,
            cancelled=result.cancelled,
        )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _abandon(self, task_id: int, message: str) -> None:
        """Move a task that can no longer finish normally out of ``running``."""
        try:
            await self._task_queue.mark_failed(task_id, message)
        except DocVaultError as exc:
            logger.error("task_abandon_failed", task_id=task_id, error=str(exc))
            return
        logger.warning("task_abandoned", task_id=task_id, reason=message)
