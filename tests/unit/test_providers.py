"""Unit tests for the Ollama embedding/LLM adapters and the hash embedding double."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from docvault.config.settings import Settings
from docvault.providers.embedding.hash_embedding_provider import HASH_MODEL_NAME, HashEmbeddingProvider
from docvault.utils.errors import EmbeddingError, EmbeddingTimeoutError, LLMError
from docvault.utils.similarity import cosine_similarity

_EMBED_TARGET = "docvault.providers.embedding.ollama_embedding_provider.openai.AsyncOpenAI"
_LLM_TARGET = "docvault.providers.llm.ollama_provider.openai.AsyncOpenAI"


def _settings(**overrides) -> Settings:
    defaults = {
        "ollama_base_url": "http://localhost:11434",
        "embedding_model": "nomic-embed-text",
        "generation_model": "llama3.2",
        "provider_timeout_seconds": 5.0,
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", "http://localhost:11434/v1/embeddings"))


# ======================================================================
# Ollama Embedding Provider
# ======================================================================


class TestOllamaEmbeddingProvider:
    def test_names(self) -> None:
        from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

        provider = OllamaEmbeddingProvider(_settings())
        assert provider.get_provider_name() == "ollama_embedding"
        assert provider.get_model_name() == "nomic-embed-text"

    def test_client_points_at_v1_without_retries(self) -> None:
        from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

        with patch(_EMBED_TARGET) as mock_cls:
            OllamaEmbeddingProvider(_settings(ollama_base_url="http://gpu-box:11434/"))
        kwargs = mock_cls.call_args.kwargs
        assert kwargs["base_url"] == "http://gpu-box:11434/v1"
        assert kwargs["max_retries"] == 0
        assert kwargs["timeout"] == 5.0

    @pytest.mark.asyncio
    async def test_embed_success(self) -> None:
        from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

        mock_response = MagicMock()
        mock_response.data = [MagicMock(embedding=[0.1, 0.2, 0.3])]
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=mock_response)

        with patch(_EMBED_TARGET, return_value=mock_client):
            provider = OllamaEmbeddingProvider(_settings())
            vector = await provider.embed("hello", model="mxbai-embed-large")

        assert vector == [0.1, 0.2, 0.3]
        mock_client.embeddings.create.assert_awaited_once_with(input=["hello"], model="mxbai-embed-large")

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self) -> None:
        from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

        async def _slow(**kwargs):  # noqa: ANN003, ANN202
            await asyncio.sleep(1.0)

        mock_client = AsyncMock()
        mock_client.embeddings.create = _slow

        with patch(_EMBED_TARGET, return_value=mock_client):
            provider = OllamaEmbeddingProvider(_settings(provider_timeout_seconds=0.05))
            with pytest.raises(EmbeddingTimeoutError) as exc_info:
                await provider.embed("slow")

        assert exc_info.value.provider_name == "ollama_embedding"

    @pytest.mark.asyncio
    async def test_sdk_timeout_raises_timeout_error(self) -> None:
        from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

        request = httpx.Request("POST", "http://localhost:11434/v1/embeddings")
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(side_effect=openai.APITimeoutError(request=request))

        with patch(_EMBED_TARGET, return_value=mock_client):
            provider = OllamaEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingTimeoutError):
                await provider.embed("x")

    @pytest.mark.asyncio
    async def test_api_error_raises_embedding_error(self) -> None:
        from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(side_effect=_connection_error())

        with patch(_EMBED_TARGET, return_value=mock_client):
            provider = OllamaEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed("x")

        assert not isinstance(exc_info.value, EmbeddingTimeoutError)

    @pytest.mark.asyncio
    async def test_empty_embedding_raises(self) -> None:
        from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

        mock_response = MagicMock()
        mock_response.data = [MagicMock(embedding=[])]
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=mock_response)

        with patch(_EMBED_TARGET, return_value=mock_client):
            provider = OllamaEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingError):
                await provider.embed("x")

    def test_is_available_checks_tags(self) -> None:
        from docvault.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider

        provider = OllamaEmbeddingProvider(_settings())
        with patch("docvault.providers.embedding.ollama_embedding_provider.httpx.get") as mock_get:
            mock_get.return_value = MagicMock(status_code=200)
            assert provider.is_available() is True
            mock_get.side_effect = httpx.ConnectError("refused")
            assert provider.is_available() is False


# ======================================================================
# Ollama LLM Provider
# ======================================================================


class TestOllamaLLMProvider:
    @pytest.mark.asyncio
    async def test_generate_success(self) -> None:
        from docvault.providers.llm.ollama_provider import OllamaLLMProvider

        mock_message = MagicMock()
        mock_message.content = "Repaired."
        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=mock_message)]
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch(_LLM_TARGET, return_value=mock_client):
            provider = OllamaLLMProvider(_settings())
            result = await provider.generate("Fix this")

        assert result == "Repaired."
        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "llama3.2"
        assert call_kwargs["messages"] == [{"role": "user", "content": "Fix this"}]

    @pytest.mark.asyncio
    async def test_timeout_raises_llm_error(self) -> None:
        from docvault.providers.llm.ollama_provider import OllamaLLMProvider

        async def _slow(**kwargs):  # noqa: ANN003, ANN202
            await asyncio.sleep(1.0)

        mock_client = AsyncMock()
        mock_client.chat.completions.create = _slow

        with patch(_LLM_TARGET, return_value=mock_client):
            provider = OllamaLLMProvider(_settings(provider_timeout_seconds=0.05))
            with pytest.raises(LLMError, match="timed out"):
                await provider.generate("slow")

    @pytest.mark.asyncio
    async def test_empty_response_raises(self) -> None:
        from docvault.providers.llm.ollama_provider import OllamaLLMProvider

        mock_response = MagicMock()
        mock_response.choices = []
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch(_LLM_TARGET, return_value=mock_client):
            provider = OllamaLLMProvider(_settings())
            with pytest.raises(LLMError):
                await provider.generate("x")

    @pytest.mark.asyncio
    async def test_shared_lock_serializes_calls(self) -> None:
        from docvault.providers.llm.ollama_provider import OllamaLLMProvider

        in_flight = 0
        peak = 0

        async def _create(**kwargs):  # noqa: ANN003, ANN202
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            message = MagicMock()
            message.content = "ok"
            return MagicMock(choices=[MagicMock(message=message)])

        mock_client = AsyncMock()
        mock_client.chat.completions.create = _create

        with patch(_LLM_TARGET, return_value=mock_client):
            provider = OllamaLLMProvider(_settings(), service_lock=asyncio.Lock())
            await asyncio.gather(*(provider.generate(f"p{i}") for i in range(4)))

        assert peak == 1

    def test_provider_name(self) -> None:
        from docvault.providers.llm.ollama_provider import OllamaLLMProvider

        provider = OllamaLLMProvider(_settings())
        assert provider.get_provider_name() == "ollama"
        assert provider.is_available() is True


# ======================================================================
# Hash embedding test double
# ======================================================================


class TestHashEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_deterministic_and_normalized(self) -> None:
        provider = HashEmbeddingProvider(dimension=64)
        a = await provider.embed("the quick brown fox")
        b = await provider.embed("the quick brown fox")
        assert a == b
        assert len(a) == 64
        assert sum(x * x for x in a) == pytest.approx(1.0, rel=1e-5)

    @pytest.mark.asyncio
    async def test_shared_vocabulary_is_closer(self) -> None:
        provider = HashEmbeddingProvider(dimension=256)
        base = await provider.embed("invoice payment due march")
        near = await provider.embed("invoice payment overdue")
        far = await provider.embed("mountain hiking trail")
        assert cosine_similarity(base, near) > cosine_similarity(base, far)

    @pytest.mark.asyncio
    async def test_empty_text_gets_valid_vector(self) -> None:
        vector = await HashEmbeddingProvider(dimension=8).embed("")
        assert any(x != 0.0 for x in vector)

    def test_identity(self) -> None:
        provider = HashEmbeddingProvider()
        assert provider.get_model_name() == HASH_MODEL_NAME
        assert provider.get_dimension() == 384
        with pytest.raises(ValueError):
            HashEmbeddingProvider(dimension=0)

    @pytest.mark.asyncio
    async def test_embed_many_keeps_order(self) -> None:
        provider = HashEmbeddingProvider(dimension=16)
        vectors = await provider.embed_many(["alpha", "beta"])
        assert vectors == [await provider.embed("alpha"), await provider.embed("beta")]
