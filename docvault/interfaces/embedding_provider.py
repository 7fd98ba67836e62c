"""Abstract base class for text-embedding service providers.

Defines the narrow contract the pipeline needs from an embedding backend:
given a model identifier and a text, return a fixed-length float vector or
raise :class:`~docvault.utils.errors.EmbeddingError`.  Dimensionality is a
property of the model; it is never negotiated per call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OllamaEmbeddingProvider -- nomic-embed-text (or any pulled model) via Ollama
#   HashEmbeddingProvider   -- deterministic hash-derived vectors; offline test double
# Located in: docvault/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the indexing pipeline.

    Vectors are consumed by
    :class:`~docvault.interfaces.vector_store_provider.IVectorStoreProvider`
    for storage and query-time similarity search.
    """

    @abstractmethod
    async def embed(self, text: str, model: str | None = None) -> list[float]:
        """Generate the embedding vector for one text.

        Parameters
        ----------
        text:
            The chunk or query text to embed.
        model:
            Model identifier; ``None`` selects the provider's canonical model.

        Returns
        -------
        list[float]
            The raw vector exactly as returned by the backend.

        Raises
        ------
        EmbeddingError
            On transport/service failure, timeout, or an empty vector.
        """

    async def embed_many(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        """Embed several texts in order.

        The default implementation calls :meth:`embed` once per text so a
        failure surfaces on the first offending text.
        """
        return [await self.embed(text, model=model) for text in texts]

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the canonical model identifier used when ``model`` is omitted."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"ollama_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend looks reachable."""
