"""Runtime configuration for the studyaid services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="studyaid_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Upload limits, enforced by callers of the pipeline
    max_upload_size_mb: int = 10

    # Text extraction
    extraction_line_tolerance: float = 10.0
    extraction_gap_threshold: float = 10.0
    extraction_min_chars: int = 100
    extraction_scan_window: int = 1000

    # Chunking
    chunk_size: int = 4000
    chunk_overlap: int = 200

    # Summaries
    summary_count: int = 5
    summary_max_count: int = 10
    summary_input_limit: int = 12000

    # Generation backend
    generator_provider: Literal["template", "openai", "qwen"] = "template"
    generator_model: str = "gpt-4o"
    generator_temperature: float = 0.2
    generator_max_new_tokens: int = 1024
    generator_timeout_seconds: float = 60.0
    qwen_model: str = "Qwen/Qwen2.5-1.8B-Instruct"
    openai_api_key: str | None = None

    # Embeddings
    embedding_provider: Literal["hash", "huggingface", "openai"] = "hash"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536
    embedding_prefix_chars: int = 8000

    # Result sizes
    stored_text_chars: int = 10000
    response_text_chars: int = 5000

    # Document store
    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "studyaid-documents"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    # Callers share one generation backend; bound the parallel ingestions
    max_concurrent_ingestions: int = 4

    # CORS
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "DELETE", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    # Security
    api_key: str | None = None  # if set, required in X-API-Key header
    rate_limit_requests: int = 60  # per window per client
    rate_limit_window_seconds: int = 60

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
