"""Persistence for ingestion jobs (``ingestion_jobs`` table).

Updates go through :meth:`JobStore.apply_patch`, one fixed parameterized
statement where each column is ``COALESCE(?, column)``.  ``progress`` is
written as ``MAX(?, progress)`` so it can never go backwards.
"""

from __future__ import annotations

import structlog

from docvault.models.ingestion import IngestionJob, IngestionJobPatch, IngestionJobStats, JobStatus
from docvault.services.datastore import Datastore, to_db_time, utc_now
from docvault.utils.errors import IngestionError

logger = structlog.get_logger(logger_name=__name__)

_COLUMNS = (
    "id, source_path, job_type, status, progress, total_files, processed_files, "
    "error_count, created_at, started_at, completed_at, error_message"
)

_INSERT_SQL = """\
INSERT INTO ingestion_jobs (source_path, job_type, status, created_at)
VALUES (?, ?, 'pending', ?);
"""

_PATCH_SQL = """\
UPDATE ingestion_jobs SET
    status          = COALESCE(?, status),
    progress        = MAX(COALESCE(?, progress), progress),
    total_files     = COALESCE(?, total_files),
    processed_files = COALESCE(?, processed_files),
    error_count     = COALESCE(?, error_count),
    started_at      = COALESCE(?, started_at),
    completed_at    = COALESCE(?, completed_at),
    error_message   = COALESCE(?, error_message)
WHERE id = ?;
"""


class JobStore:
    """Datastore-backed repository of :class:`IngestionJob` rows."""

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    async def create_job(self, source_path: str, job_type: str = "folder") -> IngestionJob:
        async with self._datastore.session() as db:
            cursor = await db.execute(_INSERT_SQL, (source_path, job_type, to_db_time(utc_now())))
            job = await self._fetch(db, cursor.lastrowid)
        logger.info("ingestion_job_created", job_id=job.id, source_path=source_path, job_type=job_type)
        return job

    async def get_job(self, job_id: int) -> IngestionJob:
        """Raises :class:`IngestionError` when the job does not exist."""
        async with self._datastore.session() as db:
            return await self._fetch(db, job_id)

    async def list_jobs(self, limit: int | None = None, status: JobStatus | str | None = None) -> list[IngestionJob]:
        sql = f"SELECT {_COLUMNS} FROM ingestion_jobs"
        params: list[object] = []
        if status is not None:
            sql += " WHERE status = ?"
            params.append(JobStatus(status).value)
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(-1 if limit is None else limit)

        async with self._datastore.session() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [IngestionJob(**dict(row)) for row in rows]

    async def apply_patch(self, job_id: int, patch: IngestionJobPatch) -> IngestionJob:
        async with self._datastore.session() as db:
            await db.execute(
                _PATCH_SQL,
                (
                    patch.status.value if patch.status is not None else None,
                    patch.progress,
                    patch.total_files,
                    patch.processed_files,
                    patch.error_count,
                    to_db_time(patch.started_at),
                    to_db_time(patch.completed_at),
                    patch.error_message,
                    job_id,
                ),
            )
            return await self._fetch(db, job_id)

    async def get_stats(self) -> IngestionJobStats:
        async with self._datastore.session() as db:
            cursor = await db.execute(
                "SELECT status, COUNT(*) AS n, SUM(processed_files) AS files, SUM(error_count) AS errors "
                "FROM ingestion_jobs GROUP BY status;"
            )
            rows = await cursor.fetchall()

        counts = {row["status"]: row["n"] for row in rows}
        return IngestionJobStats(
            total_jobs=sum(counts.values()),
            pending_jobs=counts.get(JobStatus.PENDING.value, 0),
            running_jobs=counts.get(JobStatus.RUNNING.value, 0),
            completed_jobs=counts.get(JobStatus.COMPLETED.value, 0),
            failed_jobs=counts.get(JobStatus.FAILED.value, 0),
            cancelled_jobs=counts.get(JobStatus.CANCELLED.value, 0),
            total_files_processed=sum(row["files"] or 0 for row in rows),
            total_errors=sum(row["errors"] or 0 for row in rows),
        )

    async def _fetch(self, db, job_id: int) -> IngestionJob:  # noqa: ANN001
        cursor = await db.execute(f"SELECT {_COLUMNS} FROM ingestion_jobs WHERE id = ?;", (job_id,))
        row = await cursor.fetchone()
        if row is None:
            raise IngestionError(message=f"Ingestion job {job_id} not found")
        return IngestionJob(**dict(row))
