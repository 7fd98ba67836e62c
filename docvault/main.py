"""docvault application assembly.

Wires the datastore, providers and services together via constructor
injection.  Settings come from ``.env`` / the environment, pipeline tables
from ``config/config.yaml``.

Usage::

    app = build_application()
    async with app:
        job = await app.ingestion.ingest("/path/to/docs")
        await app.processor.process_pending()
        await app.worker.drain()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog

from docvault.config.loader import load_config
from docvault.config.settings import Settings
from docvault.interfaces.embedding_provider import IEmbeddingProvider
from docvault.pipeline.progress_tracker import ProgressTracker
from docvault.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from docvault.providers.llm.ollama_provider import OllamaLLMProvider
from docvault.providers.vector_store.sqlite_vector_store import SQLiteVectorStore
from docvault.services.cleaning.processor import CleaningProcessor
from docvault.services.cleaning.task_queue import CleaningTaskQueue
from docvault.services.cleaning.transforms import CleaningTransforms
from docvault.services.datastore import Datastore
from docvault.services.extraction.content_extractor import ContentExtractor
from docvault.services.indexing.chunker import TextChunker
from docvault.services.indexing.handoff import IndexingHandoff, IndexingWorker
from docvault.services.indexing.indexing_service import IndexingService
from docvault.services.ingestion.file_registry import FileRegistry
from docvault.services.ingestion.ingestion_service import IngestionCoordinator
from docvault.services.ingestion.job_store import JobStore
from docvault.services.insights_service import InsightsService
from docvault.services.search_service import SimilaritySearchService
from docvault.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(
    app_settings: Settings, service_lock: asyncio.Lock
) -> IEmbeddingProvider:
    """Ollama embeddings unless ``EMBEDDING_BACKEND=hash`` is set explicitly."""
    if app_settings.embedding_backend == "hash":
        _logger.warning("hash_embedding_backend_selected", dimension=app_settings.hash_embedding_dimension)
        return HashEmbeddingProvider(dimension=app_settings.hash_embedding_dimension)
    return OllamaEmbeddingProvider(settings=app_settings, service_lock=service_lock)


# ---------------------------------------------------------------------------
# Application container
# ---------------------------------------------------------------------------


@dataclass
class Application:
    """Every long-lived component, plus open/close for the shared resources."""

    settings: Settings
    config: dict[str, Any]
    datastore: Datastore
    progress: ProgressTracker
    file_registry: FileRegistry
    jobs: JobStore
    task_queue: CleaningTaskQueue
    vector_store: SQLiteVectorStore
    embedding_provider: IEmbeddingProvider
    llm_provider: OllamaLLMProvider
    extractor: ContentExtractor
    transforms: CleaningTransforms
    handoff: IndexingHandoff
    indexing: IndexingService
    worker: IndexingWorker
    processor: CleaningProcessor
    ingestion: IngestionCoordinator
    search: SimilaritySearchService
    insights: InsightsService

    async def open(self, start_worker: bool = False) -> None:
        """Open the datastore and rebuild the vector mirror.

        Raises
        ------
        DatastoreError
            If the database cannot be opened; nothing can run without it.
        """
        await self.datastore.open()
        await self.vector_store.initialize()
        if start_worker:
            self.worker.start()
        _logger.info(
            "application_ready",
            database=self.datastore.path,
            embedding_provider=self.embedding_provider.get_provider_name(),
            embedding_model=self.embedding_provider.get_model_name(),
        )

    async def close(self) -> None:
        await self.worker.stop()
        await self.datastore.close()

    async def __aenter__(self) -> Application:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def build_application(
    app_settings: Settings | None = None,
    config: dict[str, Any] | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
) -> Application:
    """Construct every provider and service; nothing is opened yet."""
    app_settings = app_settings or Settings()
    config = config if config is not None else load_config(settings=app_settings)

    # One lock serializes calls to the external model service.
    service_lock = asyncio.Lock()

    datastore = Datastore(app_settings.database_path)
    progress = ProgressTracker()
    file_registry = FileRegistry(datastore)
    jobs = JobStore(datastore)
    task_queue = CleaningTaskQueue(datastore, priorities=config["cleaning"]["task_priorities"])
    vector_store = SQLiteVectorStore(datastore)

    embedding_provider = embedding_provider or _build_embedding_provider(app_settings, service_lock)
    llm_provider = OllamaLLMProvider(settings=app_settings, service_lock=service_lock)

    extractor = ContentExtractor(
        pdf_timeout_seconds=app_settings.pdf_timeout_seconds,
        text_extensions=config["ingestion"]["text_extensions"],
    )
    transforms = CleaningTransforms(
        llm_provider=llm_provider,
        target_encoding=app_settings.target_encoding,
        generation_model=app_settings.generation_model,
    )

    chunker = TextChunker(
        chunk_size=app_settings.chunk_size,
        overlap=app_settings.chunk_overlap,
        unit=app_settings.chunk_unit,
    )
    indexing = IndexingService(
        chunker=chunker,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        task_queue=task_queue,
        progress_tracker=progress,
        batch_pause_every=app_settings.batch_pause_every,
        batch_pause_seconds=app_settings.batch_pause_seconds,
    )
    handoff = IndexingHandoff()
    worker = IndexingWorker(handoff, indexing)

    processor = CleaningProcessor(
        task_queue=task_queue,
        transforms=transforms,
        handoff=handoff,
        progress_tracker=progress,
        batch_pause_every=app_settings.batch_pause_every,
        batch_pause_seconds=app_settings.batch_pause_seconds,
    )
    ingestion = IngestionCoordinator(
        job_store=jobs,
        file_registry=file_registry,
        task_queue=task_queue,
        extractor=extractor,
        progress_tracker=progress,
        task_types=config["ingestion"]["task_types"],
        sniff_bytes=app_settings.sniff_bytes,
        printable_ratio=app_settings.printable_ratio,
    )
    search = SimilaritySearchService(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        default_limit=app_settings.search_default_limit,
        default_threshold=app_settings.search_default_threshold,
    )
    insights = InsightsService(task_queue, file_registry)

    return Application(
        settings=app_settings,
        config=config,
        datastore=datastore,
        progress=progress,
        file_registry=file_registry,
        jobs=jobs,
        task_queue=task_queue,
        vector_store=vector_store,
        embedding_provider=embedding_provider,
        llm_provider=llm_provider,
        extractor=extractor,
        transforms=transforms,
        handoff=handoff,
        indexing=indexing,
        worker=worker,
        processor=processor,
        ingestion=ingestion,
        search=search,
        insights=insights,
    )
