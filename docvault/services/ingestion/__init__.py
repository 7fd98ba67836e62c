"""Ingestion: walking sources, registering files, enqueueing cleaning tasks."""

from docvault.services.ingestion.file_registry import FileRegistry
from docvault.services.ingestion.ingestion_service import IngestionCoordinator, ingestion_channel
from docvault.services.ingestion.job_store import JobStore

__all__ = ["FileRegistry", "IngestionCoordinator", "JobStore", "ingestion_channel"]
