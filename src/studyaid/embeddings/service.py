"""Embedding backends for studyaid."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import Protocol, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings
from langchain_openai import OpenAIEmbeddings

from studyaid.config import Settings
from studyaid.services.generation import GenerationUnavailable

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "text-embedding-3-small"
    dim: int = 1536
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None
    api_key: str | None = None


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    @property
    def dim(self) -> int:
        """Length of the vectors this backend produces."""

    def embed(self, text: str) -> Tuple[float, ...]:
        """Return the embedding vector for ``text``."""


def _normalize(vector: Tuple[float, ...]) -> Tuple[float, ...]:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(value / norm for value in vector)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding used for testing and offline runs."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    @property
    def dim(self) -> int:
        return self._config.dim

    def embed(self, text: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = tuple(byte / 255.0 for byte in raw)
        if self._config.normalize:
            vector = _normalize(vector)
        return vector


class _LangChainEmbeddingBackend:
    """Shared behaviour for backends delegating to a LangChain embeddings client."""

    def __init__(self, config: EmbeddingConfig, client: LangChainEmbeddings | None) -> None:
        self._config = config
        self._client = client

    @property
    def dim(self) -> int:
        return self._config.dim

    def embed(self, text: str) -> Tuple[float, ...]:
        if self._client is None:
            raise GenerationUnavailable(f"Embedding model {self._config.model} is not configured")
        try:
            vector = tuple(float(value) for value in self._client.embed_query(text))
        except Exception as exc:
            raise GenerationUnavailable(f"Embedding request failed: {exc}") from exc
        if len(vector) != self._config.dim:
            LOGGER.warning(
                "Embedding dim mismatch: configured=%d, actual=%d",
                self._config.dim,
                len(vector),
            )
        return _normalize(vector) if self._config.normalize else vector


class HuggingFaceEmbeddingBackend(_LangChainEmbeddingBackend):
    """Local sentence-embedding model loaded through LangChain."""

    def __init__(self, config: EmbeddingConfig | None = None, client: LangChainEmbeddings | None = None) -> None:
        config = config or EmbeddingConfig(model="BAAI/bge-small-en-v1.5", dim=384)
        if client is None:
            try:
                model_kwargs = {"device": config.device} if config.device else {}
                client = HuggingFaceEmbeddings(
                    model_name=config.model,
                    model_kwargs=model_kwargs,
                    cache_folder=config.cache_folder,
                    encode_kwargs={"normalize_embeddings": config.normalize},
                )
                LOGGER.info("Loaded embedding model %s", config.model)
            except Exception as exc:  # pragma: no cover - optional heavy dependency
                LOGGER.warning("Embedding model unavailable: %s", exc)
                client = None
        super().__init__(config, client)


class OpenAIEmbeddingBackend(_LangChainEmbeddingBackend):
    """Hosted OpenAI embeddings, 1536 dimensions by default."""

    def __init__(self, config: EmbeddingConfig | None = None, client: LangChainEmbeddings | None = None) -> None:
        config = config or EmbeddingConfig()
        if client is None:
            kwargs = {"api_key": config.api_key} if config.api_key else {}
            try:
                client = OpenAIEmbeddings(model=config.model, dimensions=config.dim, **kwargs)
                LOGGER.info("Configured embedding model %s", config.model)
            except Exception as exc:  # pragma: no cover - missing key or client misconfiguration
                LOGGER.warning("Embedding model unavailable: %s", exc)
                client = None
        super().__init__(config, client)


def build_embedding_backend(settings: Settings) -> EmbeddingBackend:
    """Construct the embedding backend selected by ``embedding_provider``."""

    config = EmbeddingConfig(
        model=settings.embedding_model,
        dim=settings.embedding_dim,
        api_key=settings.openai_api_key,
    )
    if settings.embedding_provider == "openai":
        return OpenAIEmbeddingBackend(config)
    if settings.embedding_provider == "huggingface":
        return HuggingFaceEmbeddingBackend(config)
    return HashEmbeddingBackend(config)
