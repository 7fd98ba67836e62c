"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources (in priority order):
#
#   1. **Environment variables** -- e.g., OLLAMA_BASE_URL=http://gpu-box:11434
#      (highest priority, always wins)
#   2. **.env file** -- key=value lines in the project root .env file
#
# Field ``chunk_size`` maps to env var ``CHUNK_SIZE`` (case-insensitive).
# Defaults below apply when neither source sets a value.
#
# Static pipeline tables (task priorities, text extensions) live in
# config/config.yaml and are merged in by docvault.config.loader.
# ──────────────────────────────────────────────────────────────────────
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docvault runtime settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Datastore ===
    database_path: str = "data/docvault.db"

    # === External model service (Ollama) ===
    ollama_base_url: str = "http://localhost:11434"
    embedding_model: str = "nomic-embed-text"
    # "hash" selects the deterministic offline test double; never chosen implicitly.
    embedding_backend: Literal["ollama", "hash"] = "ollama"
    hash_embedding_dimension: int = Field(default=384, ge=1)
    generation_model: str = "llama3.2"
    provider_timeout_seconds: float = Field(default=30.0, gt=0)

    # === Chunking ===
    chunk_size: int = Field(default=1000, ge=1)
    chunk_overlap: int = Field(default=100, ge=0)
    chunk_unit: Literal["characters", "words"] = "characters"

    # === Batch throttling ===
    batch_pause_every: int = 10
    batch_pause_seconds: float = Field(default=0.1, ge=0)

    # === Similarity search ===
    search_default_limit: int = Field(default=10, ge=1)
    search_default_threshold: float = Field(default=0.0, ge=-1.0, le=1.0)

    # === Ingestion / extraction ===
    sniff_bytes: int = Field(default=1024, ge=1)
    printable_ratio: float = Field(default=0.8, ge=0.0, le=1.0)
    target_encoding: str = "utf-8"
    pdf_timeout_seconds: float = Field(default=30.0, gt=0)

    # === App ===
    app_env: str = "development"
    log_level: str = "INFO"
