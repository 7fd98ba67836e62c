"""Shared pytest fixtures for the docvault test suite."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from docvault.interfaces.embedding_provider import IEmbeddingProvider
from docvault.interfaces.llm_provider import ILLMProvider
from docvault.services.datastore import Datastore
from docvault.services.ingestion.file_registry import FileRegistry
from docvault.utils.errors import EmbeddingError, LLMError

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic letter-bucket embeddings; identical text gives identical vectors.

    Any text containing one of ``fail_on`` raises :class:`EmbeddingError`.
    """

    def __init__(self, dimension: int = 8, fail_on: tuple[str, ...] = (), model_name: str = "fake-embed") -> None:
        self.dimension = dimension
        self.fail_on = fail_on
        self.model_name = model_name
        self.calls: list[str] = []

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingError(message="fake embedding failure", provider_name="fake")
        vector = [0.0] * self.dimension
        for char in text.lower():
            if char.isalpha():
                vector[ord(char) % self.dimension] += 1.0
        vector[0] += 0.5
        return vector

    def get_model_name(self) -> str:
        return self.model_name

    def get_provider_name(self) -> str:
        return "fake_embedding"

    def is_available(self) -> bool:
        return True


class FakeLLMProvider(ILLMProvider):
    """Returns a canned response, or raises when ``fail`` is set."""

    def __init__(self, response: str = "generated text", fail: bool = False) -> None:
        self.response = response
        self.fail = fail
        self.prompts: list[str] = []

    async def generate(self, prompt: str, model: str | None = None) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise LLMError(message="fake generation failure", provider_name="fake")
        return self.response

    def get_provider_name(self) -> str:
        return "fake_llm"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest_asyncio.fixture
async def datastore(tmp_path: Path):
    """An open datastore in a temp directory, closed after the test."""
    store = Datastore(tmp_path / "docvault.db")
    await store.open()
    yield store
    await store.close()


@pytest.fixture
def fake_embedding() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_llm() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
def make_file(datastore: Datastore):
    """Async factory registering a file row and returning its id."""
    registry = FileRegistry(datastore)

    async def _make(path: str = "/docs/a.txt", size: int = 10, mime_type: str = "text/plain") -> int:
        record, _ = await registry.upsert_file(
            path=path, filename=Path(path).name, size=size, mime_type=mime_type, content_hash="x"
        )
        return record.id

    return _make
