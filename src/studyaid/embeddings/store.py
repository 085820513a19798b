"""Document store keeping ingestion results alongside their embeddings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Mapping, MutableMapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI

from studyaid.embeddings.service import EmbeddingBackend
from studyaid.models import IngestionResult, StoredDocument


class DocumentStore(Protocol):
    """Protocol for persistence of ingestion results keyed by document id."""

    def save(self, document_id: str, result: IngestionResult) -> None:
        """Store or replace the result for ``document_id``."""

    def get(self, document_id: str) -> StoredDocument | None:
        """Return the stored document or ``None``."""

    def similarity_search(self, query: str, *, top_k: int = 5) -> Sequence[StoredDocument]:
        """Return stored documents most similar to ``query``."""

    def delete(self, document_id: str) -> None:
        """Remove a stored document."""

    def count(self) -> int:
        """Return total number of stored documents."""


class ChromaDocumentStore:
    """Chroma-backed document store."""

    def __init__(
        self,
        embedding_backend: EmbeddingBackend,
        collection_name: str = "studyaid-documents",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        self._backend = embedding_backend

    def save(self, document_id: str, result: IngestionResult) -> None:
        vector = result.embedding_vector
        if vector is None or len(vector) != self._backend.dim:
            vector = self._backend.embed(result.extracted_text_prefix)
        self._collection.upsert(
            ids=[document_id],
            documents=[result.extracted_text_prefix],
            embeddings=[list(vector)],
            metadatas=[self._serialize(result)],
        )

    def get(self, document_id: str) -> StoredDocument | None:
        batch = self._collection.get(ids=[document_id], include=["documents", "metadatas"])
        ids = batch.get("ids") or []
        if not ids:
            return None
        documents = batch.get("documents") or [""]
        metadatas = batch.get("metadatas") or [{}]
        return self._deserialize(ids[0], documents[0], metadatas[0], distance=None)

    def similarity_search(self, query: str, *, top_k: int = 5) -> Sequence[StoredDocument]:
        available = self.count()
        if top_k <= 0 or available == 0:
            return []
        vector = list(self._backend.embed(query))
        results = self._collection.query(query_embeddings=[vector], n_results=min(top_k, available))
        ids = self._first(results.get("ids"))
        documents = self._first(results.get("documents"))
        metadatas = self._first(results.get("metadatas"))
        distances = list(self._first(results.get("distances")))
        found: List[StoredDocument] = []
        for index, (doc_id, document, metadata) in enumerate(zip(ids, documents, metadatas, strict=False)):
            distance = distances[index] if index < len(distances) else None
            found.append(self._deserialize(doc_id, document, metadata, distance=distance))
        return found

    def delete(self, document_id: str) -> None:
        self._collection.delete(ids=[document_id])

    def count(self) -> int:
        return int(self._collection.count())

    @staticmethod
    def _serialize(result: IngestionResult) -> MutableMapping[str, object]:
        metadata: MutableMapping[str, object] = {
            "file_name": result.file_name,
            "summaries": json.dumps(list(result.summary_sections)),
            "summaries_count": len(result.summary_sections),
            "strategy_used": result.strategy_used.value,
            "decode_strategy": result.decode_strategy,
            "page_count": result.page_count,
            "character_count": result.character_count,
        }
        if result.warning:
            metadata["warning"] = result.warning
        return metadata

    def _deserialize(
        self,
        document_id: str,
        document: str | None,
        metadata: Mapping[str, object] | None,
        distance: float | None,
    ) -> StoredDocument:
        metadata = metadata or {}
        return StoredDocument(
            document_id=document_id,
            file_name=str(metadata.get("file_name", "")),
            content=document or "",
            summaries=self._loads_list(metadata.get("summaries")),
            strategy_used=str(metadata.get("strategy_used", "")),
            score=1.0 - float(distance) if distance is not None else None,
        )

    @staticmethod
    def _first(value: object) -> Iterable:
        if isinstance(value, list):
            return value[0] if value else []
        return []

    @staticmethod
    def _loads_list(value: object) -> List[str]:
        if isinstance(value, str) and value:
            try:
                loaded = json.loads(value)
            except json.JSONDecodeError:
                return []
            if isinstance(loaded, list):
                return [str(item) for item in loaded]
        return []
