"""Progress reporting shared by the long-running jobs."""

from docvault.pipeline.progress_tracker import ALL_CHANNELS, ProgressReporter, ProgressTracker

__all__ = ["ALL_CHANNELS", "ProgressReporter", "ProgressTracker"]
