"""Content-quality report over the cleaning queue and the file registry.

Insights are computed on demand and returned, never persisted.
"""

from __future__ import annotations

import structlog

from docvault.models.insight import Insight
from docvault.services.cleaning.task_queue import CleaningTaskQueue
from docvault.services.ingestion.file_registry import FileRegistry

logger = structlog.get_logger(logger_name=__name__)

EMPTY_CONTENT_THRESHOLD_PERCENT = 10.0
SMALL_FILE_BYTES = 1000
DOMINANT_TYPE_SHARE = 0.8


class InsightsService:
    """Derives :class:`Insight` objects from stored counts."""

    def __init__(self, task_queue: CleaningTaskQueue, file_registry: FileRegistry | None = None) -> None:
        self._task_queue = task_queue
        self._file_registry = file_registry

    async def content_quality_insights(self) -> list[Insight]:
        """Empty-output rate, overall quality and file-shape insights."""
        insights: list[Insight] = []

        empty = await self._task_queue.count_empty_outputs()
        completed = await self._task_queue.count_completed()

        if completed > 0:
            empty_percent = empty / completed * 100.0
            if empty_percent > 100.0:
                # Empty outputs are counted over every status, completions
                # only over completed tasks; the ratio is meaningless here.
                logger.warning(
                    "empty_content_ratio_out_of_range",
                    empty_outputs=empty,
                    completed=completed,
                    empty_percent=round(empty_percent, 1),
                )
            elif empty_percent > EMPTY_CONTENT_THRESHOLD_PERCENT:
                insights.append(
                    Insight(
                        insight_type="content_quality",
                        title="Empty Content Detected",
                        description=(
                            f"{empty_percent:.1f}% of processed tasks produced empty output "
                            f"({empty} of {completed})."
                        ),
                        confidence=0.9,
                        priority=4,
                    )
                )
            if empty == 0:
                insights.append(
                    Insight(
                        insight_type="content_quality",
                        title="Excellent Content Quality",
                        description=f"All {completed} completed tasks produced content.",
                        confidence=0.95,
                        priority=2,
                    )
                )

        if self._file_registry is not None:
            insights.extend(await self._file_insights())

        logger.info("content_quality_report", insights=len(insights), completed=completed, empty=empty)
        return insights

    async def _file_insights(self) -> list[Insight]:
        total, average_size, by_type = await self._file_registry.file_stats()
        if total == 0:
            return []

        insights: list[Insight] = []
        if average_size < SMALL_FILE_BYTES:
            insights.append(
                Insight(
                    insight_type="organization",
                    title="Small Average File Size",
                    description=f"Files average {average_size:.0f} bytes; consider consolidating.",
                    confidence=0.7,
                    priority=2,
                )
            )

        if len(by_type) > 1:
            mime_type, count = by_type.most_common(1)[0]
            share = count / total
            if share > DOMINANT_TYPE_SHARE:
                insights.append(
                    Insight(
                        insight_type="organization",
                        title="Dominant File Type",
                        description=f"{share:.0%} of files are {mime_type}.",
                        confidence=0.8,
                        priority=1,
                        metadata=mime_type,
                    )
                )
        return insights
