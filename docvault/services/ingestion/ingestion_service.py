"""Ingestion coordinator: walks a root path and feeds the cleaning queue.

# ─── HOW ONE INGESTION RUN WORKS ──────────────────────────────────────
#
#   start_job(root) ──> IngestionJob(pending)
#   run_job(id)
#     ├─ root missing ──> job failed + IngestionError
#     ├─ walk root (sorted, symlinked dirs not followed) ──> total_files
#     └─ for each file (cancel flag checked first):
#          archive?  ──> extract to a TemporaryDirectory, total_files += n,
#                        each member goes through the same per-file path
#                        under the virtual path "<archive>!/<member>"
#          hash ──> upsert FileRecord ──> readable?
#                                           ├─ no: registered, no tasks
#                                           └─ yes: extract ──> FileMetadata
#                                                    ──> one task per type
#          job patched: processed_files / error_count / progress
#
# A failure on one file is logged and counted in error_count; the walk
# goes on.  The job finishes ``completed`` (progress 100) even when some
# files failed, or ``cancelled`` when the flag was observed.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

import structlog

from docvault.models.cleaning import TaskType
from docvault.models.files import FileRecord
from docvault.models.ingestion import IngestionJob, IngestionJobPatch, IngestionJobStats, JobStatus
from docvault.pipeline.progress_tracker import ProgressReporter, ProgressTracker
from docvault.services.cleaning.task_queue import CleaningTaskQueue
from docvault.services.datastore import utc_now
from docvault.services.extraction.content_extractor import ContentExtractor
from docvault.services.ingestion import archive as archive_utils
from docvault.services.ingestion.file_registry import FileRegistry
from docvault.services.ingestion.job_store import JobStore
from docvault.services.ingestion.readability import extract_file_metadata, is_readable
from docvault.utils.concurrency import CancellationToken
from docvault.utils.errors import DocVaultError, IngestionError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_TASK_TYPES = (TaskType.TEXT_CLEANUP, TaskType.METADATA_EXTRACTION, TaskType.FORMAT_CONVERSION)


def ingestion_channel(job_id: int) -> str:
    return f"ingestion:{job_id}"


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        while chunk := fh.read(1 << 20):
            digest.update(chunk)
    return digest.hexdigest()


def _walk(root: Path) -> list[Path]:
    if root.is_file():
        return [root]
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames.sort()
        for name in sorted(filenames):
            candidate = Path(dirpath) / name
            if candidate.is_file():
                files.append(candidate)
    return files


class IngestionCoordinator:
    """Runs ingestion jobs over directories, single files and archives.

    Parameters
    ----------
    job_store, file_registry, task_queue:
        Datastore repositories.
    extractor:
        Turns readable files into text.
    progress_tracker:
        Receives events on ``ingestion:<job id>``.
    task_types:
        Cleaning task types created per readable file.
    sniff_bytes, printable_ratio:
        Readability sniffing for unknown media types.
    """

    def __init__(
        self,
        job_store: JobStore,
        file_registry: FileRegistry,
        task_queue: CleaningTaskQueue,
        extractor: ContentExtractor,
        progress_tracker: ProgressTracker | None = None,
        task_types: Iterable[TaskType | str] = DEFAULT_TASK_TYPES,
        sniff_bytes: int = 1024,
        printable_ratio: float = 0.8,
    ) -> None:
        self._jobs = job_store
        self._files = file_registry
        self._task_queue = task_queue
        self._extractor = extractor
        self._progress_tracker = progress_tracker
        self._task_types = [TaskType(t) for t in task_types]
        self._sniff_bytes = sniff_bytes
        self._printable_ratio = printable_ratio
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start_job(self, source_path: str | Path, job_type: str = "folder") -> IngestionJob:
        return await self._jobs.create_job(str(Path(source_path).expanduser().absolute()), job_type)

    async def ingest(
        self,
        source_path: str | Path,
        job_type: str = "folder",
        cancel_token: CancellationToken | None = None,
    ) -> IngestionJob:
        """Create a job for *source_path* and run it to a terminal state."""
        job = await self.start_job(source_path, job_type)
        return await self.run_job(job.id, cancel_token)

    async def spawn(
        self,
        source_path: str | Path,
        job_type: str = "folder",
        cancel_token: CancellationToken | None = None,
    ) -> tuple[IngestionJob, asyncio.Task]:
        """Create a job and run it as a background task.

        The returned task resolves to the final :class:`IngestionJob`.
        """
        job = await self.start_job(source_path, job_type)
        task = asyncio.create_task(self.run_job(job.id, cancel_token), name=f"ingestion-{job.id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return job, task

    async def run_job(self, job_id: int, cancel_token: CancellationToken | None = None) -> IngestionJob:
        """Walk the job's root and process every file.

        Raises
        ------
        IngestionError
            If the job is unknown or already finished, or if its root path
            does not exist (the job is marked ``failed`` first).  Any other
            error during the walk also marks the job ``failed`` and is
            re-raised as IngestionError.

        Cancelling the coroutine itself marks the job ``cancelled`` before
        the cancellation propagates.
        """
        job = await self._jobs.get_job(job_id)
        if job.is_terminal:
            raise IngestionError(message=f"Ingestion job {job_id} already {job.status.value}")

        log = logger.bind(job_id=job_id, source_path=job.source_path)
        job = await self._jobs.apply_patch(
            job_id, IngestionJobPatch(status=JobStatus.RUNNING, started_at=utc_now())
        )

        root = Path(job.source_path)
        if not root.exists():
            message = f"Source path does not exist: {root}"
            await self._jobs.apply_patch(
                job_id,
                IngestionJobPatch(status=JobStatus.FAILED, error_message=message, completed_at=utc_now()),
            )
            log.error("ingestion_root_missing")
            raise IngestionError(message=message)

        try:
            return await self._execute(job_id, root, cancel_token, log)
        except asyncio.CancelledError:
            await self._close_job(job_id, IngestionJobPatch(status=JobStatus.CANCELLED, completed_at=utc_now()))
            log.warning("ingestion_task_cancelled")
            raise
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            await self._close_job(
                job_id,
                IngestionJobPatch(status=JobStatus.FAILED, error_message=message, completed_at=utc_now()),
            )
            log.error("ingestion_failed", error=message, error_type=exc.__class__.__name__)
            if isinstance(exc, IngestionError):
                raise
            raise IngestionError(message=f"Ingestion job {job_id} failed: {message}") from exc

    async def _execute(
        self,
        job_id: int,
        root: Path,
        cancel_token: CancellationToken | None,
        log: structlog.stdlib.BoundLogger,
    ) -> IngestionJob:
        files = await asyncio.to_thread(_walk, root)
        reporter = ProgressReporter(self._progress_tracker, ingestion_channel(job_id), total=len(files))
        await self._jobs.apply_patch(job_id, IngestionJobPatch(total_files=len(files)))
        await reporter.start(f"Ingesting {len(files)} files from {root}")
        log.info("ingestion_started", total_files=len(files))

        cancelled = False
        for path in files:
            if cancel_token is not None and cancel_token.is_cancelled():
                cancelled = True
                break
            cancelled = await self._process_path(job_id, path, str(path), reporter, cancel_token)
            if cancelled:
                break

        if cancelled:
            await reporter.finish("Ingestion cancelled", complete=False)
            job = await self._jobs.apply_patch(
                job_id, IngestionJobPatch(status=JobStatus.CANCELLED, completed_at=utc_now())
            )
            log.info("ingestion_cancelled", processed=reporter.processed, errors=reporter.failed)
            return job

        await reporter.finish("Ingestion complete")
        job = await self._jobs.apply_patch(
            job_id,
            IngestionJobPatch(status=JobStatus.COMPLETED, progress=100.0, completed_at=utc_now()),
        )
        log.info(
            "ingestion_completed",
            total_files=job.total_files,
            processed=job.processed_files,
            errors=job.error_count,
        )
        return job

    async def _close_job(self, job_id: int, patch: IngestionJobPatch) -> None:
        """Record a terminal status after the run was interrupted."""
        try:
            await self._jobs.apply_patch(job_id, patch)
        except DocVaultError as exc:
            logger.error("ingestion_job_close_failed", job_id=job_id, error=str(exc))

    async def get_job(self, job_id: int) -> IngestionJob:
        return await self._jobs.get_job(job_id)

    async def list_jobs(self, limit: int | None = None) -> list[IngestionJob]:
        return await self._jobs.list_jobs(limit=limit)

    async def get_job_stats(self) -> IngestionJobStats:
        return await self._jobs.get_stats()

    # ------------------------------------------------------------------
    # Per-file processing
    # ------------------------------------------------------------------

    async def _process_path(
        self,
        job_id: int,
        path: Path,
        record_path: str,
        reporter: ProgressReporter,
        cancel_token: CancellationToken | None,
    ) -> bool:
        """Process one file (expanding archives); returns ``True`` if cancelled."""
        mime_type = self._extractor.detect_mime_type(path)
        failed = False
        members: list[tuple[str, Path]] = []
        tmpdir: tempfile.TemporaryDirectory | None = None

        try:
            if archive_utils.is_archive(path, mime_type):
                await self._register(path, record_path, mime_type)
                tmpdir = tempfile.TemporaryDirectory(prefix="docvault-archive-")
                members = await asyncio.to_thread(archive_utils.extract_archive, path, tmpdir.name)
                reporter.add_total(len(members))
            else:
                await self._ingest_file(path, record_path, mime_type)
        except Exception as exc:
            # One bad file never aborts the job.
            failed = True
            logger.warning("ingestion_file_failed", job_id=job_id, path=record_path, error=str(exc))

        try:
            await reporter.advance(failed=failed, current_item=record_path)
            await self._save_progress(job_id, reporter)

            for member_name, member_path in members:
                if cancel_token is not None and cancel_token.is_cancelled():
                    return True
                member_record_path = f"{record_path}!/{member_name}"
                if await self._process_path(job_id, member_path, member_record_path, reporter, cancel_token):
                    return True
        finally:
            if tmpdir is not None:
                tmpdir.cleanup()
        return False

    async def _register(self, path: Path, record_path: str, mime_type: str) -> FileRecord:
        size = (await asyncio.to_thread(path.stat)).st_size
        content_hash = await asyncio.to_thread(_sha256, path)
        record, changed = await self._files.upsert_file(
            path=record_path,
            filename=Path(record_path.rsplit("!/", 1)[-1]).name,
            size=size,
            mime_type=mime_type,
            content_hash=content_hash,
        )
        if not changed:
            logger.debug("file_unchanged", file_id=record.id, path=record_path)
        return record

    async def _ingest_file(self, path: Path, record_path: str, mime_type: str) -> None:
        record = await self._register(path, record_path, mime_type)

        readable = await asyncio.to_thread(
            is_readable, path, mime_type, self._sniff_bytes, self._printable_ratio
        )
        if not readable:
            logger.debug("file_not_readable", file_id=record.id, path=record_path, mime_type=mime_type)
            return

        content = await self._extractor.extract(path, mime_type=mime_type)
        await self._files.upsert_metadata(extract_file_metadata(record.id, content.text))
        await self._task_queue.ensure_tasks(record.id, self._task_types, input_content=content.text)

    async def _save_progress(self, job_id: int, reporter: ProgressReporter) -> None:
        await self._jobs.apply_patch(
            job_id,
            IngestionJobPatch(
                total_files=reporter.total,
                processed_files=reporter.processed,
                error_count=reporter.failed,
                progress=reporter.percent,
            ),
        )
