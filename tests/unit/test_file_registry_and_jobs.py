"""Unit tests for FileRegistry and JobStore."""

from __future__ import annotations

import pytest

from docvault.models.files import FileMetadata
from docvault.models.ingestion import IngestionJobPatch, JobStatus
from docvault.services.datastore import Datastore, utc_now
from docvault.services.ingestion.file_registry import FileRegistry
from docvault.services.ingestion.job_store import JobStore
from docvault.utils.errors import IngestionError


@pytest.fixture
def registry(datastore: Datastore) -> FileRegistry:
    return FileRegistry(datastore)


@pytest.fixture
def jobs(datastore: Datastore) -> JobStore:
    return JobStore(datastore)


# ======================================================================
# FileRegistry
# ======================================================================


class TestFileRegistry:
    @pytest.mark.asyncio
    async def test_new_path_is_changed(self, registry: FileRegistry) -> None:
        record, changed = await registry.upsert_file("/docs/a.txt", "a.txt", 12, "text/plain", "h1")
        assert changed is True
        assert record.id > 0
        assert record.filename == "a.txt"
        assert record.content_hash == "h1"

    @pytest.mark.asyncio
    async def test_same_path_refreshes_in_place(self, registry: FileRegistry) -> None:
        first, _ = await registry.upsert_file("/docs/a.txt", "a.txt", 12, "text/plain", "h1")
        same, unchanged = await registry.upsert_file("/docs/a.txt", "a.txt", 12, "text/plain", "h1")
        edited, changed = await registry.upsert_file("/docs/a.txt", "a.txt", 40, "text/plain", "h2")

        assert same.id == first.id == edited.id
        assert unchanged is False
        assert changed is True
        assert edited.size == 40
        assert len(await registry.list_files()) == 1

    @pytest.mark.asyncio
    async def test_lookup(self, registry: FileRegistry) -> None:
        record, _ = await registry.upsert_file("/docs/b.md", "b.md", 3, "text/markdown", None)
        assert (await registry.get_file(record.id)).path == "/docs/b.md"
        assert (await registry.get_by_path("/docs/b.md")).id == record.id
        assert await registry.get_file(999) is None
        assert await registry.get_by_path("/nope") is None

    @pytest.mark.asyncio
    async def test_metadata_round_trip_and_overwrite(self, registry: FileRegistry) -> None:
        record, _ = await registry.upsert_file("/docs/c.txt", "c.txt", 3, "text/plain", "h")
        assert await registry.get_metadata(record.id) is None

        await registry.upsert_metadata(FileMetadata(file_id=record.id, author="Ada", tags=["x", "y"]))
        await registry.upsert_metadata(FileMetadata(file_id=record.id, topic="Notes", tags=["z"]))

        metadata = await registry.get_metadata(record.id)
        assert metadata.author is None
        assert metadata.topic == "Notes"
        assert metadata.tags == ["z"]

    @pytest.mark.asyncio
    async def test_file_stats(self, registry: FileRegistry) -> None:
        assert (await registry.file_stats())[0] == 0

        await registry.upsert_file("/a.txt", "a.txt", 100, "text/plain", "1")
        await registry.upsert_file("/b.txt", "b.txt", 300, "text/plain", "2")
        await registry.upsert_file("/c.pdf", "c.pdf", 200, "application/pdf", "3")

        count, average, by_type = await registry.file_stats()
        assert count == 3
        assert average == pytest.approx(200.0)
        assert by_type == {"text/plain": 2, "application/pdf": 1}


# ======================================================================
# JobStore
# ======================================================================


class TestJobStore:
    @pytest.mark.asyncio
    async def test_create_defaults(self, jobs: JobStore) -> None:
        job = await jobs.create_job("/data", "folder")
        assert job.status is JobStatus.PENDING
        assert job.progress == 0.0
        assert job.total_files == 0
        assert not job.is_terminal

    @pytest.mark.asyncio
    async def test_unknown_job_raises(self, jobs: JobStore) -> None:
        with pytest.raises(IngestionError):
            await jobs.get_job(42)

    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, jobs: JobStore) -> None:
        job = await jobs.create_job("/data")
        await jobs.apply_patch(job.id, IngestionJobPatch(progress=50.0))
        updated = await jobs.apply_patch(job.id, IngestionJobPatch(progress=20.0, processed_files=3))
        assert updated.progress == 50.0
        assert updated.processed_files == 3

    @pytest.mark.asyncio
    async def test_patch_leaves_unset_columns(self, jobs: JobStore) -> None:
        job = await jobs.create_job("/data")
        started = utc_now()
        await jobs.apply_patch(job.id, IngestionJobPatch(status=JobStatus.RUNNING, started_at=started, total_files=7))
        done = await jobs.apply_patch(job.id, IngestionJobPatch(status=JobStatus.COMPLETED))

        assert done.status is JobStatus.COMPLETED
        assert done.total_files == 7
        assert done.started_at is not None
        assert done.is_terminal

    @pytest.mark.asyncio
    async def test_list_newest_first_with_filter(self, jobs: JobStore) -> None:
        first = await jobs.create_job("/one")
        second = await jobs.create_job("/two")
        await jobs.apply_patch(first.id, IngestionJobPatch(status=JobStatus.FAILED, error_message="gone"))

        assert [j.id for j in await jobs.list_jobs()] == [second.id, first.id]
        assert [j.id for j in await jobs.list_jobs(limit=1)] == [second.id]
        assert [j.id for j in await jobs.list_jobs(status="failed")] == [first.id]

    @pytest.mark.asyncio
    async def test_stats(self, jobs: JobStore) -> None:
        done = await jobs.create_job("/one")
        failed = await jobs.create_job("/two")
        await jobs.create_job("/three")
        await jobs.apply_patch(done.id, IngestionJobPatch(status=JobStatus.COMPLETED, processed_files=5, error_count=1))
        await jobs.apply_patch(failed.id, IngestionJobPatch(status=JobStatus.FAILED, error_count=2))

        stats = await jobs.get_stats()
        assert stats.total_jobs == 3
        assert stats.pending_jobs == 1
        assert stats.completed_jobs == 1
        assert stats.failed_jobs == 1
        assert stats.total_files_processed == 5
        assert stats.total_errors == 3
