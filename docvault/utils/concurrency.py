"""Cooperative cancellation and batch throttling for long-running jobs.

Bulk ingestion, batch cleaning and bulk re-indexing all walk thousands of
units one at a time.  Two small primitives are shared between them:

1. **CancellationToken** -- a cooperative flag wrapping ``asyncio.Event``.
   Loops call :meth:`CancellationToken.is_cancelled` *between* units; a
   unit that has already started always runs to completion so no record
   is left half-written.

2. **BatchThrottle** -- inserts a short ``asyncio.sleep`` after every N
   units.  This is a resource-bounding policy, not a concurrency primitive:
   all work is still serialized through the datastore guard.
"""

from __future__ import annotations

import asyncio

import structlog

from docvault.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked between units of work."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = ""

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            _logger.info("cancellation_requested", reason=reason)

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    async def wait(self) -> None:
        """Block until :meth:`cancel` is called."""
        await self._event.wait()


class BatchThrottle:
    """Pause for ``pause_seconds`` after every ``every`` completed units.

    Parameters
    ----------
    every:
        Number of units between pauses.  Values below 1 disable throttling.
    pause_seconds:
        Length of each pause.
    """

    def __init__(self, every: int = 10, pause_seconds: float = 0.1) -> None:
        self._every = every
        self._pause_seconds = pause_seconds
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    async def tick(self) -> bool:
        """Record one finished unit; sleep if a pause is due.

        Returns
        -------
        bool
            ``True`` when this tick triggered a pause.
        """
        self._count += 1
        if self._every < 1 or self._count % self._every != 0:
            return False
        await asyncio.sleep(self._pause_seconds)
        return True
