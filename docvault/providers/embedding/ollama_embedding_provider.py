"""Ollama embedding provider adapter (local, no API key).

Wraps the Ollama OpenAI-compatible ``/v1`` endpoint to implement
:class:`IEmbeddingProvider`.  Defaults to ``nomic-embed-text`` (768 dims)
but any embedding model pulled into Ollama can be named per call.

Every call is bounded: the openai client gets a request timeout with
retries disabled, and the whole call is additionally wrapped in
``asyncio.wait_for``.  A timeout is raised as
:class:`EmbeddingTimeoutError`; it is never retried and never papered
over with a fabricated vector.
"""

from __future__ import annotations

import asyncio

import httpx
import openai
import structlog

from docvault.config.settings import Settings
from docvault.interfaces.embedding_provider import IEmbeddingProvider
from docvault.utils.errors import EmbeddingError, EmbeddingTimeoutError

logger = structlog.get_logger(logger_name=__name__)


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a local Ollama server.

    Parameters
    ----------
    settings:
        Supplies ``ollama_base_url``, ``embedding_model`` and
        ``provider_timeout_seconds``.
    service_lock:
        Guard serializing calls to the model service.  ``main.py`` passes
        the same lock to the text-generation adapter so only one request
        is in flight against Ollama at a time.
    """

    def __init__(self, settings: Settings, service_lock: asyncio.Lock | None = None) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._timeout = settings.provider_timeout_seconds
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",  # Ollama ignores the key but the SDK requires one
            timeout=self._timeout,
            max_retries=0,
        )
        self._model = settings.embedding_model
        self._lock = service_lock or asyncio.Lock()

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        """Embed one text; see :meth:`IEmbeddingProvider.embed`."""
        model_name = model or self._model
        try:
            async with self._lock:
                response = await asyncio.wait_for(
                    self._client.embeddings.create(input=[text], model=model_name),
                    timeout=self._timeout,
                )
        except (asyncio.TimeoutError, openai.APITimeoutError) as exc:
            raise EmbeddingTimeoutError(
                message=f"Embedding request timed out after {self._timeout}s (model={model_name})",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"Ollama embedding API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not response.data or not response.data[0].embedding:
            raise EmbeddingError(
                message=f"Ollama returned an empty embedding (model={model_name})",
                provider_name=self.get_provider_name(),
            )

        vector = list(response.data[0].embedding)
        logger.debug("ollama_embedding", model=model_name, dimension=len(vector), chars=len(text))
        return vector

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return "ollama_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server answers ``/api/tags``."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
