"""Public interface definitions for docvault's pluggable collaborators.

Every external service and every swappable heuristic is reached through
the abstract base classes defined here.  Concrete adapters implement them
and are wired together in ``docvault/main.py``, so unit tests can inject
fakes without touching a real model server.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementations (in docvault/providers/)
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider           →  OllamaLLMProvider
    IEmbeddingProvider     →  OllamaEmbeddingProvider, HashEmbeddingProvider
    IVectorStoreProvider   →  SQLiteVectorStore
    IContentClassifier     →  KeywordContentTypeClassifier,
                              StopwordLanguageClassifier
"""

from docvault.interfaces.content_classifier import IContentClassifier
from docvault.interfaces.embedding_provider import IEmbeddingProvider
from docvault.interfaces.llm_provider import ILLMProvider
from docvault.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IContentClassifier",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
