"""Unit tests for ProgressTracker, ProgressReporter, CancellationToken and BatchThrottle."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from docvault.models.progress import ProgressEvent, ProgressEventType
from docvault.pipeline.progress_tracker import ALL_CHANNELS, ProgressReporter, ProgressTracker
from docvault.utils.concurrency import BatchThrottle, CancellationToken


def _event(channel: str = "cleaning", **overrides) -> ProgressEvent:
    defaults = {"type": ProgressEventType.PROGRESS, "channel": channel, "total": 4, "processed": 1}
    defaults.update(overrides)
    return ProgressEvent(**defaults)


# ======================================================================
# ProgressTracker
# ======================================================================


class TestProgressTracker:
    @pytest.mark.asyncio
    async def test_status_is_latest_event_per_channel(self) -> None:
        tracker = ProgressTracker()
        assert tracker.get_status("cleaning") is None

        await tracker.publish(_event(processed=1))
        await tracker.publish(_event(processed=2))
        await tracker.publish(_event(channel="indexing", processed=9))

        assert tracker.get_status("cleaning").processed == 2
        assert tracker.get_status("indexing").processed == 9

    @pytest.mark.asyncio
    async def test_listeners_only_see_their_channel(self) -> None:
        tracker = ProgressTracker()
        cleaning: list[ProgressEvent] = []
        everything: list[ProgressEvent] = []
        tracker.register_listener("cleaning", cleaning.append)
        tracker.register_listener(ALL_CHANNELS, everything.append)

        await tracker.publish(_event("cleaning"))
        await tracker.publish(_event("ingestion:1"))

        assert [e.channel for e in cleaning] == ["cleaning"]
        assert [e.channel for e in everything] == ["cleaning", "ingestion:1"]

    @pytest.mark.asyncio
    async def test_async_listener_awaited(self) -> None:
        tracker = ProgressTracker()
        received: list[ProgressEvent] = []

        async def _listener(event: ProgressEvent) -> None:
            received.append(event)

        tracker.register_listener("cleaning", _listener)
        await tracker.publish(_event())
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_listener_error_does_not_stop_others(self) -> None:
        tracker = ProgressTracker()
        received: list[ProgressEvent] = []

        def _broken(event: ProgressEvent) -> None:
            raise RuntimeError("listener bug")

        tracker.register_listener("cleaning", _broken)
        tracker.register_listener("cleaning", received.append)
        await tracker.publish(_event())

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_register_is_idempotent_and_unregister(self) -> None:
        tracker = ProgressTracker()
        received: list[ProgressEvent] = []
        tracker.register_listener("cleaning", received.append)
        tracker.register_listener("cleaning", received.append)

        await tracker.publish(_event())
        assert len(received) == 1

        tracker.unregister_listener("cleaning", received.append)
        tracker.unregister_listener("cleaning", received.append)
        await tracker.publish(_event())
        assert len(received) == 1


# ======================================================================
# ProgressReporter
# ======================================================================


class TestProgressReporter:
    @pytest.mark.asyncio
    async def test_counts_and_completion(self) -> None:
        tracker = ProgressTracker()
        events: list[ProgressEvent] = []
        tracker.register_listener("job", events.append)

        reporter = ProgressReporter(tracker, "job", total=4)
        await reporter.start("go")
        await reporter.advance(current_item="a")
        await reporter.advance(failed=True, current_item="b")
        await reporter.finish("done")

        assert [e.type for e in events] == [
            ProgressEventType.STARTED,
            ProgressEventType.PROGRESS,
            ProgressEventType.PROGRESS,
            ProgressEventType.COMPLETED,
        ]
        assert events[0].eta_seconds is None
        assert events[1].progress_percent == 25.0
        assert events[2].processed == 1
        assert events[2].failed == 1
        assert events[2].progress_percent == 50.0
        assert events[2].eta_seconds is not None
        assert events[-1].progress_percent == 100.0
        assert events[-1].message == "done"

    @pytest.mark.asyncio
    async def test_percent_never_decreases_when_total_grows(self) -> None:
        tracker = ProgressTracker()
        events: list[ProgressEvent] = []
        tracker.register_listener("job", events.append)

        reporter = ProgressReporter(tracker, "job", total=2)
        await reporter.advance()
        reporter.add_total(8)
        await reporter.advance()

        assert events[0].progress_percent == 50.0
        assert events[1].progress_percent == 50.0
        assert events[1].total == 10

    @pytest.mark.asyncio
    async def test_incomplete_finish_keeps_percent(self) -> None:
        reporter = ProgressReporter(None, "job", total=4)
        await reporter.advance()
        await reporter.finish(complete=False)
        assert reporter.percent == 25.0

    @pytest.mark.asyncio
    async def test_negative_add_total_ignored(self) -> None:
        reporter = ProgressReporter(None, "job", total=3)
        reporter.add_total(-5)
        assert reporter.total == 3

    @pytest.mark.asyncio
    async def test_zero_total_reports_zero_until_finish(self) -> None:
        reporter = ProgressReporter(None, "job")
        await reporter.advance()
        assert reporter.percent == 0.0
        await reporter.finish()
        assert reporter.percent == 100.0


# ======================================================================
# Concurrency primitives
# ======================================================================


class TestCancellationToken:
    @pytest.mark.asyncio
    async def test_first_reason_wins(self) -> None:
        token = CancellationToken()
        assert not token.is_cancelled()

        token.cancel("user pressed ctrl-c")
        token.cancel("second call")

        assert token.is_cancelled()
        assert token.reason == "user pressed ctrl-c"
        await token.wait()


class TestBatchThrottle:
    @pytest.mark.asyncio
    async def test_pauses_on_every_nth_tick(self) -> None:
        throttle = BatchThrottle(every=3, pause_seconds=0.5)
        with patch("docvault.utils.concurrency.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            paused = [await throttle.tick() for _ in range(7)]

        assert paused == [False, False, True, False, False, True, False]
        assert mock_sleep.await_count == 2
        assert throttle.count == 7

    @pytest.mark.asyncio
    async def test_disabled_below_one(self) -> None:
        throttle = BatchThrottle(every=0)
        with patch("docvault.utils.concurrency.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            for _ in range(5):
                assert await throttle.tick() is False
        mock_sleep.assert_not_awaited()
