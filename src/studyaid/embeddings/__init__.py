"""Embedding backends and the document store."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
    OpenAIEmbeddingBackend,
    build_embedding_backend,
)
from .store import ChromaDocumentStore, DocumentStore

__all__ = [
    "ChromaDocumentStore",
    "DocumentStore",
    "EmbeddingBackend",
    "EmbeddingConfig",
    "HashEmbeddingBackend",
    "HuggingFaceEmbeddingBackend",
    "OpenAIEmbeddingBackend",
    "build_embedding_backend",
]
