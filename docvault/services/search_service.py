"""Similarity search over the vector store.

Queries never touch the cleaning queue or the ingestion tables; they only
embed the query text (when given text) and read the store's in-memory
mirror, so a search issued during a long batch job waits at most for one
datastore unit.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from docvault.interfaces.embedding_provider import IEmbeddingProvider
from docvault.interfaces.vector_store_provider import IVectorStoreProvider
from docvault.models.vector import SimilarityResult
from docvault.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)


class SimilaritySearchService:
    """Text and vector similarity queries.

    Parameters
    ----------
    embedding_provider:
        Embeds query text with the same model used at indexing time.
    vector_store:
        Store to query.
    default_limit, default_threshold:
        Used when a call does not pass its own.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        default_limit: int = 10,
        default_threshold: float = 0.0,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._default_limit = default_limit
        self._default_threshold = default_threshold

    async def search_text(
        self,
        query: str,
        limit: int | None = None,
        threshold: float | None = None,
        model: str | None = None,
    ) -> list[SimilarityResult]:
        """Embed *query* and return the closest stored chunks.

        Raises
        ------
        EmbeddingError
            If the query cannot be embedded.
        """
        model_name = model or self._embedding_provider.get_model_name()
        query_vector = await self._embedding_provider.embed(query, model=model_name)
        results = await self.search_vector(query_vector, limit=limit, threshold=threshold, model_name=model_name)
        logger.info("search_text", query_chars=len(query), model=model_name, hits=len(results))
        return results

    async def search_vector(
        self,
        query_vector: Sequence[float],
        limit: int | None = None,
        threshold: float | None = None,
        model_name: str | None = None,
    ) -> list[SimilarityResult]:
        return await self._vector_store.search(
            query_vector,
            limit=self._default_limit if limit is None else limit,
            threshold=self._default_threshold if threshold is None else threshold,
            model_name=model_name,
        )

    async def find_similar(
        self,
        record_id: int,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[SimilarityResult]:
        """Records most similar to stored record *record_id*, excluding itself.

        Raises
        ------
        VectorStoreError
            If *record_id* is not in the store.
        """
        record = await self._vector_store.get(record_id)
        if record is None:
            raise VectorStoreError(message=f"Vector record {record_id} not found")

        limit = self._default_limit if limit is None else limit
        results = await self._vector_store.search(
            record.vector,
            limit=limit + 1,
            threshold=self._default_threshold if threshold is None else threshold,
            model_name=record.model_name,
        )
        return [hit for hit in results if hit.record_id != record_id][:limit]
