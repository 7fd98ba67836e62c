"""Embedding provider implementations.

Two implementations of IEmbeddingProvider:
    1. OllamaEmbeddingProvider -- real embeddings from a local Ollama server
       (nomic-embed-text by default), bounded by a timeout.
    2. HashEmbeddingProvider   -- deterministic hash-derived vectors for
       offline runs and tests.  Selected explicitly, never as a silent
       fallback.
"""

from docvault.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

__all__ = ["HashEmbeddingProvider", "OllamaEmbeddingProvider"]
