"""Persisted cleaning task queue.

Stores :class:`~docvault.models.cleaning.CleaningTask` rows in the
``cleaning_queue`` table and enforces the task state machine.  Every status
change goes through :meth:`CleaningTaskQueue.apply_patch`, which checks the
transition against ``ALLOWED_TRANSITIONS`` and then runs one fixed
parameterized ``UPDATE``: each column is written as ``COALESCE(?, column)``
so a ``None`` patch field leaves that column untouched.  The one exception
is the pending to running claim in :meth:`CleaningTaskQueue.mark_running`,
a single ``UPDATE ... WHERE status = 'pending'`` so concurrent workers
cannot both start the same task.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime

import structlog

from docvault.models.cleaning import (
    ALLOWED_TRANSITIONS,
    CleaningTask,
    CleaningTaskPatch,
    CleaningTaskStats,
    TaskStatus,
    TaskType,
)
from docvault.services.datastore import Datastore, to_db_time, utc_now
from docvault.utils.errors import TaskNotFoundError, TaskStateError

logger = structlog.get_logger(logger_name=__name__)

_COLUMNS = (
    "id, file_id, task_type, status, priority, input_content, output_content, "
    "error_message, created_at, started_at, completed_at"
)

_INSERT_SQL = """\
INSERT INTO cleaning_queue (file_id, task_type, status, priority, input_content, created_at)
VALUES (?, ?, 'pending', ?, ?, ?);
"""

_SELECT_ONE_SQL = f"SELECT {_COLUMNS} FROM cleaning_queue WHERE id = ?;"

_SELECT_PENDING_SQL = f"""\
SELECT {_COLUMNS} FROM cleaning_queue
WHERE status = 'pending'
ORDER BY priority DESC, created_at ASC, id ASC
LIMIT ?;
"""

_PATCH_SQL = """\
UPDATE cleaning_queue SET
    status         = COALESCE(?, status),
    output_content = COALESCE(?, output_content),
    error_message  = COALESCE(?, error_message),
    started_at     = COALESCE(?, started_at),
    completed_at   = COALESCE(?, completed_at)
WHERE id = ?;
"""

_CLAIM_SQL = """\
UPDATE cleaning_queue SET status = 'running', started_at = ?
WHERE id = ? AND status = 'pending';
"""

_TYPES_FOR_FILE_SQL = "SELECT DISTINCT task_type FROM cleaning_queue WHERE file_id = ?;"

_DEFAULT_PRIORITIES: dict[str, int] = {
    TaskType.TEXT_CLEANUP.value: 3,
    TaskType.METADATA_EXTRACTION.value: 2,
    TaskType.FORMAT_CONVERSION.value: 1,
}


class CleaningTaskQueue:
    """Datastore-backed queue of cleaning tasks.

    Parameters
    ----------
    datastore:
        Shared datastore handle.
    priorities:
        Default priority per task type (from ``config.yaml``); types not
        listed default to 1.
    """

    def __init__(self, datastore: Datastore, priorities: Mapping[str, int] | None = None) -> None:
        self._datastore = datastore
        self._priorities = dict(priorities) if priorities is not None else dict(_DEFAULT_PRIORITIES)

    def default_priority(self, task_type: TaskType | str) -> int:
        return self._priorities.get(TaskType(task_type).value, 1)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_task(
        self,
        file_id: int,
        task_type: TaskType | str,
        priority: int | None = None,
        input_content: str | None = None,
    ) -> CleaningTask:
        """Insert one pending task and return it."""
        task_type = TaskType(task_type)
        if priority is None:
            priority = self.default_priority(task_type)

        async with self._datastore.session() as db:
            cursor = await db.execute(
                _INSERT_SQL,
                (file_id, task_type.value, priority, input_content, to_db_time(utc_now())),
            )
            task = await self._fetch(db, cursor.lastrowid)

        logger.info("cleaning_task_created", task_id=task.id, file_id=file_id, task_type=task_type.value)
        return task

    async def ensure_tasks(
        self,
        file_id: int,
        task_types: Iterable[TaskType | str],
        input_content: str | None,
    ) -> list[CleaningTask]:
        """Create one task per type that *file_id* does not already have.

        Runs as a single guarded operation so two ingestions of the same
        file cannot both insert the same type.

        Returns
        -------
        list[CleaningTask]
            Only the newly created tasks.
        """
        wanted = [TaskType(t) for t in task_types]
        created: list[CleaningTask] = []
        async with self._datastore.session() as db:
            cursor = await db.execute(_TYPES_FOR_FILE_SQL, (file_id,))
            existing = {row["task_type"] for row in await cursor.fetchall()}
            for task_type in wanted:
                if task_type.value in existing:
                    continue
                cursor = await db.execute(
                    _INSERT_SQL,
                    (
                        file_id,
                        task_type.value,
                        self.default_priority(task_type),
                        input_content,
                        to_db_time(utc_now()),
                    ),
                )
                existing.add(task_type.value)
                created.append(await self._fetch(db, cursor.lastrowid))

        if created:
            logger.info(
                "cleaning_tasks_enqueued",
                file_id=file_id,
                task_types=[t.task_type.value for t in created],
            )
        return created

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_task(self, task_id: int) -> CleaningTask:
        async with self._datastore.session() as db:
            return await self._fetch(db, task_id)

    async def list_tasks(
        self,
        limit: int | None = None,
        status: TaskStatus | str | None = None,
        file_id: int | None = None,
    ) -> list[CleaningTask]:
        """Return tasks newest first, optionally filtered by status and/or file."""
        sql = f"SELECT {_COLUMNS} FROM cleaning_queue WHERE 1 = 1"
        params: list[object] = []
        if status is not None:
            sql += " AND status = ?"
            params.append(TaskStatus(status).value)
        if file_id is not None:
            sql += " AND file_id = ?"
            params.append(file_id)
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(-1 if limit is None else limit)

        async with self._datastore.session() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def get_pending_tasks(self, limit: int | None = None) -> list[CleaningTask]:
        """Pending tasks in processing order: priority DESC, created_at ASC, id ASC."""
        async with self._datastore.session() as db:
            cursor = await db.execute(_SELECT_PENDING_SQL, (-1 if limit is None else limit,))
            rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def existing_task_types(self, file_id: int) -> set[TaskType]:
        async with self._datastore.session() as db:
            cursor = await db.execute(_TYPES_FOR_FILE_SQL, (file_id,))
            rows = await cursor.fetchall()
        return {TaskType(row["task_type"]) for row in rows}

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    async def apply_patch(self, task_id: int, patch: CleaningTaskPatch) -> CleaningTask:
        """Validate and apply *patch* to one task.

        Raises
        ------
        TaskNotFoundError
            If the task does not exist.
        TaskStateError
            If ``patch.status`` is not a legal move from the current status.
        """
        async with self._datastore.session() as db:
            current = await self._fetch(db, task_id)

            if patch.status is not None and (
                patch.status != current.status or current.status is not TaskStatus.PENDING
            ):
                # Re-asserting running or a terminal status is rejected too.
                if patch.status not in ALLOWED_TRANSITIONS[current.status]:
                    raise TaskStateError(
                        message=(
                            f"Task {task_id} cannot move from {current.status.value} "
                            f"to {patch.status.value}"
                        ),
                    )

            started_at = patch.started_at or current.started_at
            completed_at = patch.completed_at
            # Clocks can step backwards; never record completion before start.
            if completed_at is not None and started_at is not None and completed_at < started_at:
                completed_at = started_at

            await db.execute(
                _PATCH_SQL,
                (
                    patch.status.value if patch.status is not None else None,
                    patch.output_content,
                    patch.error_message,
                    to_db_time(patch.started_at),
                    to_db_time(completed_at),
                    task_id,
                ),
            )
            updated = await self._fetch(db, task_id)

        if patch.status is not None and patch.status != current.status:
            logger.debug(
                "cleaning_task_transition",
                task_id=task_id,
                from_status=current.status.value,
                to_status=patch.status.value,
            )
        return updated

    async def mark_running(self, task_id: int) -> CleaningTask:
        """Claim a pending task with one compare-and-set write.

        Only one caller can win the claim; everyone else gets
        :class:`TaskStateError`.
        """
        async with self._datastore.session() as db:
            cursor = await db.execute(_CLAIM_SQL, (to_db_time(utc_now()), task_id))
            if cursor.rowcount != 1:
                current = await self._fetch(db, task_id)
                raise TaskStateError(
                    message=(
                        f"Task {task_id} is {current.status.value}; only pending tasks can be processed"
                    ),
                )
            task = await self._fetch(db, task_id)

        logger.debug("cleaning_task_transition", task_id=task_id, from_status="pending", to_status="running")
        return task

    async def mark_completed(self, task_id: int, output_content: str) -> CleaningTask:
        return await self.apply_patch(
            task_id,
            CleaningTaskPatch(
                status=TaskStatus.COMPLETED,
                output_content=output_content,
                completed_at=utc_now(),
            ),
        )

    async def mark_failed(self, task_id: int, error_message: str) -> CleaningTask:
        return await self.apply_patch(
            task_id,
            CleaningTaskPatch(
                status=TaskStatus.FAILED,
                error_message=error_message or "unknown error",
                completed_at=utc_now(),
            ),
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete_task(self, task_id: int) -> bool:
        async with self._datastore.session() as db:
            cursor = await db.execute("DELETE FROM cleaning_queue WHERE id = ?;", (task_id,))
            removed = cursor.rowcount > 0
        if removed:
            logger.info("cleaning_task_deleted", task_id=task_id)
        return removed

    async def delete_all(self) -> int:
        async with self._datastore.session() as db:
            cursor = await db.execute("DELETE FROM cleaning_queue;")
            removed = cursor.rowcount
        logger.info("cleaning_tasks_cleared", removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    async def get_stats(self) -> CleaningTaskStats:
        async with self._datastore.session() as db:
            cursor = await db.execute("SELECT status, COUNT(*) AS n FROM cleaning_queue GROUP BY status;")
            counts = {row["status"]: row["n"] for row in await cursor.fetchall()}
            cursor = await db.execute(
                "SELECT started_at, completed_at FROM cleaning_queue "
                "WHERE status = 'completed' AND started_at IS NOT NULL AND completed_at IS NOT NULL;"
            )
            spans = await cursor.fetchall()

        durations = [
            (datetime.fromisoformat(row["completed_at"]) - datetime.fromisoformat(row["started_at"])).total_seconds()
            for row in spans
        ]
        return CleaningTaskStats(
            total_tasks=sum(counts.values()),
            pending_tasks=counts.get(TaskStatus.PENDING.value, 0),
            running_tasks=counts.get(TaskStatus.RUNNING.value, 0),
            completed_tasks=counts.get(TaskStatus.COMPLETED.value, 0),
            failed_tasks=counts.get(TaskStatus.FAILED.value, 0),
            average_processing_seconds=(sum(durations) / len(durations)) if durations else None,
        )

    async def count_empty_outputs(self) -> int:
        """Tasks of any status whose output is NULL or empty."""
        async with self._datastore.session() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) AS n FROM cleaning_queue WHERE output_content IS NULL OR output_content = '';"
            )
            row = await cursor.fetchone()
        return row["n"]

    async def count_completed(self) -> int:
        async with self._datastore.session() as db:
            cursor = await db.execute("SELECT COUNT(*) AS n FROM cleaning_queue WHERE status = 'completed';")
            row = await cursor.fetchone()
        return row["n"]

    async def completed_outputs(self, task_type: TaskType | str) -> list[tuple[int, int, str]]:
        """``(task_id, file_id, output_content)`` for completed tasks of one type, oldest first."""
        async with self._datastore.session() as db:
            cursor = await db.execute(
                "SELECT id, file_id, output_content FROM cleaning_queue "
                "WHERE status = 'completed' AND task_type = ? AND output_content IS NOT NULL "
                "AND output_content != '' ORDER BY id;",
                (TaskType(task_type).value,),
            )
            rows = await cursor.fetchall()
        return [(row["id"], row["file_id"], row["output_content"]) for row in rows]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch(self, db, task_id: int) -> CleaningTask:  # noqa: ANN001
        cursor = await db.execute(_SELECT_ONE_SQL, (task_id,))
        row = await cursor.fetchone()
        if row is None:
            raise TaskNotFoundError(message=f"Cleaning task {task_id} not found")
        return self._row_to_task(row)

    @staticmethod
    def _row_to_task(row) -> CleaningTask:  # noqa: ANN001
        return CleaningTask(**dict(row))
