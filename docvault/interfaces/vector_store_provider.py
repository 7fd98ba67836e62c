"""Abstract base class for vector-store providers.

Defines the contract for storing embedded chunks and answering
nearest-neighbour queries over them.  The shipped implementation is an
exhaustive linear scan; an approximate index can be slotted in behind the
same signatures later.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from docvault.models.vector import (
    NewVectorRecord,
    SimilarityResult,
    VectorRecord,
    VectorStoreStats,
)


# Concrete implementation: SQLiteVectorStore (docvault/providers/vector_store/)
# Vectors persist as little-endian float32 blobs and are mirrored in memory.
class IVectorStoreProvider(ABC):
    """Contract for durable vector storage plus similarity search.

    All methods are async so a networked store could implement them
    without blocking the event loop.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the store and rebuild any in-memory index from persistence."""

    @abstractmethod
    async def add(self, record: NewVectorRecord) -> VectorRecord:
        """Persist *record* and return it with its assigned id and timestamp."""

    async def add_many(self, records: Sequence[NewVectorRecord]) -> list[VectorRecord]:
        return [await self.add(record) for record in records]

    @abstractmethod
    async def get(self, record_id: int) -> VectorRecord | None:
        """Return one record, or ``None`` when the id is unknown."""

    @abstractmethod
    async def delete(self, record_id: int) -> bool:
        """Delete one record.  Returns ``True`` if it existed."""

    async def replace_content(
        self,
        content_id: int,
        content_type: str,
        records: Sequence[NewVectorRecord],
    ) -> tuple[int, list[VectorRecord]]:
        """Replace every chunk of ``(content_id, content_type)`` with *records*.

        Returns the number of records removed and the stored replacements.
        Stores that can do this atomically should override it.
        """
        removed = await self.delete_by_content(content_id, content_type)
        return removed, await self.add_many(records)

    @abstractmethod
    async def delete_by_content(self, content_id: int, content_type: str) -> int:
        """Delete every chunk belonging to ``(content_id, content_type)``.

        Returns
        -------
        int
            Number of records removed.
        """

    @abstractmethod
    async def list_records(
        self,
        content_id: int | None = None,
        content_type: str | None = None,
    ) -> list[VectorRecord]:
        """Full scan, optionally narrowed to one parent, ordered by id."""

    @abstractmethod
    async def search(
        self,
        query_vector: Sequence[float],
        limit: int | None = None,
        threshold: float = 0.0,
        model_name: str | None = None,
    ) -> list[SimilarityResult]:
        """Return stored records most similar to *query_vector*.

        Parameters
        ----------
        query_vector:
            The query embedding.  Only records of the same dimensionality
            are compared.
        limit:
            Maximum number of hits; ``None`` returns every match.
        threshold:
            Minimum cosine similarity to keep a hit.
        model_name:
            Restrict to vectors produced by this model.

        Returns
        -------
        list[SimilarityResult]
            Sorted by descending similarity, ties broken by lower id.
        """

    @abstractmethod
    async def get_stats(self) -> VectorStoreStats:
        """Return aggregate counts for the store."""
