"""Ollama text-generation provider adapter.

Wraps a local Ollama server via its OpenAI-compatible API endpoint, using
the ``openai`` client pointed at the Ollama base URL.  Used by the
model-assisted cleaning transforms (structure repair, content
normalization).

Setup: install Ollama (https://ollama.ai), ``ollama pull llama3.2``, and
set OLLAMA_BASE_URL if the server is not on localhost:11434.
"""

from __future__ import annotations

import asyncio

# httpx is only used for the /api/tags reachability check.
import httpx
import openai
import structlog

from docvault.config.settings import Settings
from docvault.interfaces.llm_provider import ILLMProvider
from docvault.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class OllamaLLMProvider(ILLMProvider):
    """Text-generation provider backed by a local Ollama server.

    Ollama exposes an OpenAI-compatible ``/v1`` API, so this adapter reuses
    ``openai.AsyncOpenAI`` with a different ``base_url``.  Calls are
    bounded by ``provider_timeout_seconds`` and serialized through
    ``service_lock`` (shared with the embedding adapter when wired by
    ``main.py``).
    """

    def __init__(self, settings: Settings, service_lock: asyncio.Lock | None = None) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._timeout = settings.provider_timeout_seconds
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",
            timeout=self._timeout,
            max_retries=0,
        )
        self._model = settings.generation_model
        self._lock = service_lock or asyncio.Lock()

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def generate(self, prompt: str, model: str | None = None) -> str:
        """Generate a completion for *prompt* via Ollama's chat endpoint."""
        model_name = model or self._model
        try:
            async with self._lock:
                response = await asyncio.wait_for(
                    self._client.chat.completions.create(
                        model=model_name,
                        messages=[{"role": "user", "content": prompt}],
                        temperature=0.2,
                    ),
                    timeout=self._timeout,
                )
        except (asyncio.TimeoutError, openai.APITimeoutError) as exc:
            raise LLMError(
                message=f"Ollama generation timed out after {self._timeout}s (model={model_name})",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info("ollama_generation", model=model_name, chars=len(content))
        return content

    def get_provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    async def validate_connection(self) -> bool:
        """Check the server is running by listing installed models."""
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False
