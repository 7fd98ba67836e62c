"""Unit tests for CleaningProcessor: execution, failure isolation, cancel, throttle, handoff."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from docvault.models.cleaning import TaskStatus, TaskType
from docvault.models.progress import ProgressEvent, ProgressEventType
from docvault.pipeline.progress_tracker import ProgressTracker
from docvault.providers.vector_store.sqlite_vector_store import SQLiteVectorStore
from docvault.services.cleaning.processor import CleaningProcessor
from docvault.services.cleaning.task_queue import CleaningTaskQueue
from docvault.services.cleaning.transforms import CleaningTransforms
from docvault.services.indexing.chunker import TextChunker
from docvault.services.indexing.handoff import IndexingHandoff, IndexingWorker
from docvault.services.indexing.indexing_service import IndexingService, IndexResult
from docvault.utils.concurrency import CancellationToken
from docvault.utils.errors import DatastoreError, TaskStateError


@pytest.fixture
def queue(datastore) -> CleaningTaskQueue:
    return CleaningTaskQueue(datastore)


def _processor(queue: CleaningTaskQueue, llm=None, **kwargs) -> CleaningProcessor:  # noqa: ANN001
    return CleaningProcessor(queue, CleaningTransforms(llm_provider=llm), batch_pause_seconds=0.0, **kwargs)


class TestProcessTask:
    @pytest.mark.asyncio
    async def test_completes_deterministic_task(self, queue, make_file) -> None:
        task = await queue.create_task(await make_file(), TaskType.TEXT_CLEANUP, input_content="a  \n\n b")
        outcome = await _processor(queue).process_task(task.id)

        assert outcome.succeeded
        assert outcome.task.output_content == "a\n b"
        assert outcome.task.started_at <= outcome.task.completed_at
        assert outcome.index_ticket is None

    @pytest.mark.asyncio
    async def test_transform_error_marks_failed(self, queue, make_file, fake_llm) -> None:
        fake_llm.fail = True
        task = await queue.create_task(await make_file(), TaskType.STRUCTURE_REPAIR, input_content="x")
        outcome = await _processor(queue, llm=fake_llm).process_task(task.id)

        assert not outcome.succeeded
        assert outcome.task.status is TaskStatus.FAILED
        assert "fake generation failure" in outcome.task.error_message

    @pytest.mark.asyncio
    async def test_non_pending_task_rejected(self, queue, make_file) -> None:
        task = await queue.create_task(await make_file(), TaskType.TEXT_CLEANUP, input_content="x")
        processor = _processor(queue)
        await processor.process_task(task.id)
        with pytest.raises(TaskStateError):
            await processor.process_task(task.id)

    @pytest.mark.asyncio
    async def test_concurrent_calls_run_task_once(self, queue, make_file) -> None:
        handoff = IndexingHandoff()
        task = await queue.create_task(await make_file(), TaskType.TEXT_CLEANUP, input_content="body  \n")
        processor = _processor(queue, handoff=handoff)

        results = await asyncio.gather(
            processor.process_task(task.id),
            processor.process_task(task.id),
            return_exceptions=True,
        )

        outcomes = [r for r in results if not isinstance(r, BaseException)]
        errors = [r for r in results if isinstance(r, BaseException)]
        assert len(outcomes) == 1
        assert len(errors) == 1 and isinstance(errors[0], TaskStateError)
        assert handoff.pending() == 1
        assert (await queue.get_task(task.id)).output_content == "body"

    @pytest.mark.asyncio
    async def test_cancelled_mid_transform_marks_failed(self, queue, make_file) -> None:
        task = await queue.create_task(await make_file(), TaskType.TEXT_CLEANUP, input_content="x")
        started = asyncio.Event()

        async def _hang(task_type, text):  # noqa: ANN001, ANN202
            started.set()
            await asyncio.Event().wait()

        transforms = CleaningTransforms()
        transforms.run = _hang
        running = asyncio.create_task(CleaningProcessor(queue, transforms).process_task(task.id))
        await started.wait()
        running.cancel()
        with pytest.raises(asyncio.CancelledError):
            await running

        stored = await queue.get_task(task.id)
        assert stored.status is TaskStatus.FAILED
        assert "Cancelled" in stored.error_message

    @pytest.mark.asyncio
    async def test_unrecorded_completion_marks_failed(self, queue, make_file) -> None:
        task = await queue.create_task(await make_file(), TaskType.TEXT_CLEANUP, input_content="x")
        processor = _processor(queue)

        with patch.object(
            queue, "mark_completed", AsyncMock(side_effect=DatastoreError(message="disk full"))
        ), pytest.raises(DatastoreError):
            await processor.process_task(task.id)

        stored = await queue.get_task(task.id)
        assert stored.status is TaskStatus.FAILED
        assert "disk full" in stored.error_message


class TestProcessPending:
    @pytest.mark.asyncio
    async def test_failures_do_not_stop_batch(self, queue, make_file, fake_llm) -> None:
        fake_llm.fail = True
        file_id = await make_file()
        await queue.create_task(file_id, TaskType.TEXT_CLEANUP, input_content="one")
        await queue.create_task(file_id, TaskType.STRUCTURE_REPAIR, input_content="two")
        await queue.create_task(file_id, TaskType.METADATA_EXTRACTION, input_content="three")

        result = await _processor(queue, llm=fake_llm).process_pending()

        assert result.total == 3
        assert result.completed == 2
        assert result.failed == 1
        assert result.completed + result.failed == result.total
        assert not result.cancelled
        assert await queue.get_pending_tasks() == []

    @pytest.mark.asyncio
    async def test_cancel_stops_between_tasks(self, queue, make_file) -> None:
        file_id = await make_file()
        for _ in range(4):
            await queue.create_task(file_id, TaskType.TEXT_CLEANUP, input_content="text")

        token = CancellationToken()
        tracker = ProgressTracker()

        def _cancel_after_first(event: ProgressEvent) -> None:
            if event.type is ProgressEventType.PROGRESS:
                token.cancel("test")

        tracker.register_listener("cleaning", _cancel_after_first)
        result = await _processor(queue, progress_tracker=tracker).process_pending(cancel_token=token)

        assert result.cancelled is True
        assert result.completed == 1
        stats = await queue.get_stats()
        assert stats.completed_tasks == 1
        assert stats.pending_tasks == 3
        assert stats.running_tasks == 0

    @pytest.mark.asyncio
    async def test_throttle_pauses_every_n(self, queue, make_file) -> None:
        file_id = await make_file()
        for _ in range(5):
            await queue.create_task(file_id, TaskType.TEXT_CLEANUP, input_content="t")

        processor = CleaningProcessor(
            queue, CleaningTransforms(), batch_pause_every=2, batch_pause_seconds=0.25
        )
        with patch("docvault.utils.concurrency.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await processor.process_pending()

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.25)

    @pytest.mark.asyncio
    async def test_progress_reaches_100(self, queue, make_file) -> None:
        file_id = await make_file()
        await queue.create_task(file_id, TaskType.TEXT_CLEANUP, input_content="t")
        await queue.create_task(file_id, TaskType.FORMAT_CONVERSION, input_content="t")

        events: list[ProgressEvent] = []
        tracker = ProgressTracker()
        tracker.register_listener("cleaning", events.append)
        await _processor(queue, progress_tracker=tracker).process_pending()

        percents = [e.progress_percent for e in events]
        assert percents == sorted(percents)
        assert events[-1].type is ProgressEventType.COMPLETED
        assert events[-1].progress_percent == 100.0


class TestIndexingHandoff:
    @pytest.mark.asyncio
    async def test_cleanup_output_is_handed_to_indexing(self, datastore, queue, make_file, fake_embedding) -> None:
        store = SQLiteVectorStore(datastore)
        await store.initialize()
        indexing = IndexingService(TextChunker(chunk_size=200), fake_embedding, store)
        handoff = IndexingHandoff()
        worker = IndexingWorker(handoff, indexing)

        file_id = await make_file()
        cleanup = await queue.create_task(file_id, TaskType.TEXT_CLEANUP, input_content="Cleaned words here")
        metadata = await queue.create_task(file_id, TaskType.METADATA_EXTRACTION, input_content="x")
        processor = _processor(queue, handoff=handoff)

        meta_outcome = await processor.process_task(metadata.id)
        outcome = await processor.process_task(cleanup.id)

        assert meta_outcome.index_ticket is None
        assert outcome.index_ticket is not None
        assert not outcome.index_ticket.done()

        drained = await worker.drain()
        result = await outcome.index_ticket

        assert isinstance(result, IndexResult)
        assert drained == [result]
        assert result.content_id == file_id
        assert result.content_type == "cleaned_file"
        assert result.chunks_indexed == 1
        records = await store.list_records(content_id=file_id, content_type="cleaned_file")
        assert records[0].metadata["task_id"] == cleanup.id

    @pytest.mark.asyncio
    async def test_empty_cleanup_output_not_indexed(self, queue, make_file) -> None:
        handoff = IndexingHandoff()
        task = await queue.create_task(await make_file(), TaskType.TEXT_CLEANUP, input_content="  \n ")
        outcome = await _processor(queue, handoff=handoff).process_task(task.id)
        assert outcome.succeeded
        assert outcome.index_ticket is None
        assert handoff.pending() == 0
