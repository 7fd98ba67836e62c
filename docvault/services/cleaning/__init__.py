"""Cleaning task queue, transforms and processor.

The processor lives in :mod:`docvault.services.cleaning.processor` and is
imported from there directly; it depends on the indexing package, which in
turn depends on the queue exported here.
"""

from docvault.services.cleaning.task_queue import CleaningTaskQueue
from docvault.services.cleaning.transforms import CleaningTransforms

__all__ = ["CleaningTaskQueue", "CleaningTransforms"]
