"""Progress tracking with callback-based listener notification.

Long-running jobs (ingestion runs, batch cleaning, bulk re-indexing) emit a
:class:`~docvault.models.progress.ProgressEvent` after each unit of work.
The tracker stores the latest event per channel and broadcasts it to the
listeners registered on that channel (or on every channel).

# ─── HOW PROGRESS TRACKING WORKS ──────────────────────────────────────
#
# Observer pattern:
#
#   job loop ──ProgressReporter.advance()──> ProgressTracker.publish()
#                                               ──callback(event)──> CLI printer
#                                               ──callback(event)──> test recorder
#
#   - Channels keep jobs apart: "cleaning", "indexing", "ingestion:<job id>"
#   - Listener errors are caught and logged, so a broken listener cannot
#     stall the job loop or starve the other listeners
#   - Both sync and async callbacks are supported
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import structlog

from docvault.models.progress import ProgressEvent, ProgressEventType
from docvault.utils.logging import get_logger

ALL_CHANNELS = "*"


class ProgressTracker:
    """Stores the latest progress event per channel and notifies listeners."""

    def __init__(self) -> None:
        self._latest: dict[str, ProgressEvent] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def publish(self, event: ProgressEvent) -> None:
        """Record *event* and notify the channel's and the global listeners."""
        self._latest[event.channel] = event

        self._logger.debug(
            "progress_event",
            channel=event.channel,
            type=event.type.value,
            processed=event.processed,
            failed=event.failed,
            total=event.total,
            progress=round(event.progress_percent, 1),
        )

        listeners = [*self._listeners.get(event.channel, []), *self._listeners.get(ALL_CHANNELS, [])]
        for callback in listeners:
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    channel=event.channel,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )

    def register_listener(self, channel: str, callback: Callable) -> None:
        """Register a callback receiving every :class:`ProgressEvent` on *channel*.

        Parameters
        ----------
        channel:
            Channel name, or ``"*"`` for every channel.
        callback:
            Sync or async callable accepting one ``ProgressEvent``.
        """
        listeners = self._listeners.setdefault(channel, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug("listener_registered", channel=channel, total_listeners=len(listeners))

    def unregister_listener(self, channel: str, callback: Callable) -> None:
        listeners = self._listeners.get(channel, [])
        if callback in listeners:
            listeners.remove(callback)
            self._logger.debug("listener_unregistered", channel=channel, remaining_listeners=len(listeners))

    def get_status(self, channel: str) -> ProgressEvent | None:
        """Return the latest event published on *channel*, if any."""
        return self._latest.get(channel)


class ProgressReporter:
    """Per-job helper that turns unit completions into progress events.

    Computes ``progress_percent`` (never decreasing, even when ``total``
    grows mid-job as archives are expanded) and an ETA of
    ``elapsed / done * remaining``.

    Parameters
    ----------
    tracker:
        Destination for the events; ``None`` makes the reporter a no-op
        counter so services can run without a tracker.
    channel:
        Channel the events are published on.
    total:
        Expected number of units; may be raised later with :meth:`add_total`.
    """

    def __init__(self, tracker: ProgressTracker | None, channel: str, total: int = 0) -> None:
        self._tracker = tracker
        self._channel = channel
        self._total = total
        self._processed = 0
        self._failed = 0
        self._percent = 0.0
        self._started_at: float | None = None

    @property
    def processed(self) -> int:
        return self._processed

    @property
    def failed(self) -> int:
        return self._failed

    @property
    def total(self) -> int:
        return self._total

    @property
    def percent(self) -> float:
        return self._percent

    def add_total(self, extra: int) -> None:
        self._total += max(0, extra)

    async def start(self, message: str = "") -> None:
        self._started_at = time.monotonic()
        await self._emit(ProgressEventType.STARTED, message=message)

    async def advance(self, *, failed: bool = False, current_item: str | None = None) -> None:
        """Count one finished unit (successful unless *failed*) and emit progress."""
        if failed:
            self._failed += 1
        else:
            self._processed += 1
        await self._emit(ProgressEventType.PROGRESS, current_item=current_item)

    async def finish(self, message: str = "", *, complete: bool = True) -> None:
        """Emit the completion event; *complete* forces the percentage to 100."""
        if complete:
            self._percent = 100.0
        await self._emit(ProgressEventType.COMPLETED, message=message)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _eta_seconds(self) -> float | None:
        done = self._processed + self._failed
        if self._started_at is None or done == 0:
            return None
        remaining = max(0, self._total - done)
        elapsed = time.monotonic() - self._started_at
        return elapsed / done * remaining

    async def _emit(
        self,
        event_type: ProgressEventType,
        message: str = "",
        current_item: str | None = None,
    ) -> None:
        done = self._processed + self._failed
        if self._total > 0:
            self._percent = max(self._percent, min(100.0, done / self._total * 100.0))

        if self._tracker is None:
            return
        await self._tracker.publish(
            ProgressEvent(
                type=event_type,
                channel=self._channel,
                total=self._total,
                processed=self._processed,
                failed=self._failed,
                progress_percent=self._percent,
                eta_seconds=self._eta_seconds(),
                current_item=current_item,
                message=message,
            )
        )
