"""Unit tests for Settings, the YAML config loader and the error hierarchy."""

from __future__ import annotations

import io
import logging
import sys
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError

from docvault.config.loader import DEFAULT_CONFIG, load_config
from docvault.config.settings import Settings
from docvault.utils.errors import (
    DocVaultError,
    EmbeddingError,
    EmbeddingTimeoutError,
    VectorEncodingError,
    VectorStoreError,
)
from docvault.utils.logging import configure_logging


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.ollama_base_url == "http://localhost:11434"
        assert settings.embedding_backend == "ollama"
        assert settings.chunk_size == 1000
        assert settings.chunk_unit == "characters"
        assert settings.printable_ratio == 0.8

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "250")
        monkeypatch.setenv("EMBEDDING_BACKEND", "hash")
        settings = Settings(_env_file=None)
        assert settings.chunk_size == 250
        assert settings.embedding_backend == "hash"

    def test_env_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("GENERATION_MODEL=mistral\nSNIFF_BYTES=2048\n", encoding="utf-8")
        settings = Settings(_env_file=str(env_file))
        assert settings.generation_model == "mistral"
        assert settings.sniff_bytes == 2048

    @pytest.mark.parametrize(
        "overrides",
        [
            {"chunk_size": 0},
            {"chunk_overlap": -1},
            {"chunk_unit": "sentences"},
            {"embedding_backend": "magic"},
            {"printable_ratio": 1.5},
            {"provider_timeout_seconds": 0},
        ],
    )
    def test_invalid_values_rejected(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)


class TestLoadConfig:
    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=Settings(_env_file=None))
        assert config["cleaning"]["task_priorities"] == DEFAULT_CONFIG["cleaning"]["task_priorities"]
        assert config["ingestion"]["task_types"] == ["text_cleanup", "metadata_extraction", "format_conversion"]

    def test_yaml_deep_merged(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "cleaning:\n  task_priorities:\n    duplicate_removal: 5\ningestion:\n  task_types: [text_cleanup]\n",
            encoding="utf-8",
        )

        config = load_config(str(path), settings=Settings(_env_file=None))

        priorities = config["cleaning"]["task_priorities"]
        assert priorities["duplicate_removal"] == 5
        assert priorities["text_cleanup"] == 3
        assert config["ingestion"]["task_types"] == ["text_cleanup"]
        assert ".md" in config["ingestion"]["text_extensions"]

    def test_settings_layered_on_top(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, chunk_size=64, database_path="x.db", log_level="DEBUG")
        config = load_config(str(tmp_path / "absent.yaml"), settings=settings)
        assert config["chunking"]["size"] == 64
        assert config["datastore"]["path"] == "x.db"
        assert config["logging"]["level"] == "DEBUG"

    def test_empty_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        config = load_config(str(path), settings=Settings(_env_file=None))
        assert "cleaning" in config

    def test_defaults_not_mutated(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("cleaning:\n  task_priorities:\n    text_cleanup: 99\n", encoding="utf-8")
        load_config(str(path), settings=Settings(_env_file=None))
        assert DEFAULT_CONFIG["cleaning"]["task_priorities"]["text_cleanup"] == 3

    def test_repo_config_file_loads(self, project_root: Path) -> None:
        config = load_config(str(project_root / "config" / "config.yaml"), settings=Settings(_env_file=None))
        assert config["cleaning"]["task_priorities"]["text_cleanup"] == 3


class TestErrors:
    def test_provider_prefix_in_str(self) -> None:
        assert str(EmbeddingError(message="boom", provider_name="ollama")) == "[ollama] boom"
        assert str(DocVaultError(message="plain")) == "plain"

    def test_hierarchy(self) -> None:
        assert issubclass(EmbeddingTimeoutError, EmbeddingError)
        assert issubclass(VectorEncodingError, VectorStoreError)
        assert issubclass(VectorStoreError, DocVaultError)


class TestLogging:
    @pytest.fixture(autouse=True)
    def _reset(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        structlog.reset_defaults()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_follows_replaced_stderr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = io.StringIO()
        monkeypatch.setattr(sys, "stderr", first)
        configure_logging("INFO")
        log = structlog.get_logger(logger_name="docvault.test")
        log.warning("first_event")
        assert "first_event" in first.getvalue()

        # A closed stream from an earlier capture must not break later calls.
        first.close()
        second = io.StringIO()
        monkeypatch.setattr(sys, "stderr", second)
        log.warning("second_event")
        logging.getLogger("docvault.stdlib").warning("stdlib_event")

        assert "second_event" in second.getvalue()
        assert "stdlib_event" in second.getvalue()

    def test_level_filters_events(self, monkeypatch: pytest.MonkeyPatch) -> None:
        stream = io.StringIO()
        monkeypatch.setattr(sys, "stderr", stream)
        configure_logging("WARNING")
        log = structlog.get_logger(logger_name="docvault.test")
        log.info("quiet_event")
        log.error("loud_event")
        assert "quiet_event" not in stream.getvalue()
        assert "loud_event" in stream.getvalue()
