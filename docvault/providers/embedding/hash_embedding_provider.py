"""Deterministic hash-derived embeddings: an explicit offline test double.

This provider is **not** a semantic model.  Each lower-cased token is
hashed into one of ``dimension`` buckets with a signed weight (the
"hashing trick"), giving vectors where texts sharing vocabulary point in
similar directions.  Identical text always yields an identical vector.

It is only ever selected by configuration (``EMBEDDING_BACKEND=hash``) or
injected directly in tests.  Nothing in the pipeline falls back to it when
the real provider fails; vectors it produces carry the model name
``hash-fallback`` so they are never mixed with real embeddings in search.
"""

from __future__ import annotations

import hashlib
import re

import numpy as np

from docvault.interfaces.embedding_provider import IEmbeddingProvider

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)

HASH_MODEL_NAME = "hash-fallback"


class HashEmbeddingProvider(IEmbeddingProvider):
    """Bag-of-hashed-tokens vectors of a fixed dimension."""

    def __init__(self, dimension: int = 384) -> None:
        if dimension < 1:
            msg = f"dimension must be >= 1, got {dimension}"
            raise ValueError(msg)
        self._dimension = dimension

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        return self._vectorize(text).tolist()

    def get_model_name(self) -> str:
        return HASH_MODEL_NAME

    def get_provider_name(self) -> str:
        return "hash_fallback"

    def is_available(self) -> bool:
        return True

    def get_dimension(self) -> int:
        return self._dimension

    def _vectorize(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dimension, dtype=np.float32)
        tokens = _TOKEN_RE.findall(text.lower())
        if not tokens:
            # Empty text still gets a valid non-zero vector.
            tokens = ["<empty>"]
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "little") % self._dimension
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign
        norm = float(np.linalg.norm(vector))
        if norm > 0.0:
            vector /= norm
        return vector
