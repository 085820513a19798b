from __future__ import annotations

from uuid import uuid4

import chromadb

from studyaid.embeddings.service import EmbeddingConfig, HashEmbeddingBackend
from studyaid.embeddings.store import ChromaDocumentStore
from studyaid.models import ExtractionStrategy, IngestionResult


def _result(file_name: str, text: str, *, embedding=None, warning=None) -> IngestionResult:
    return IngestionResult(
        file_name=file_name,
        extracted_text_prefix=text,
        summary_sections=("First section.", "Second section."),
        embedding_vector=embedding,
        strategy_used=ExtractionStrategy.STRUCTURED,
        page_count=2,
        character_count=len(text),
        decode_strategy="json",
        warning=warning,
    )


def _store() -> ChromaDocumentStore:
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=16))
    return ChromaDocumentStore(backend, collection_name=f"test-{uuid4().hex}", client=chromadb.EphemeralClient())


def test_save_and_get_round_trip():
    store = _store()
    store.save("doc-1", _result("biology.pdf", "alpha beta gamma", warning="flow used"))
    document = store.get("doc-1")
    assert document is not None
    assert document.file_name == "biology.pdf"
    assert document.content == "alpha beta gamma"
    assert list(document.summaries) == ["First section.", "Second section."]
    assert document.strategy_used == "structured"
    assert store.get("missing") is None


def test_save_reembeds_when_vector_missing_or_mismatched():
    store = _store()
    store.save("no-vector", _result("a.pdf", "lorem ipsum"))
    store.save("wrong-dim", _result("b.pdf", "dolor sit", embedding=(0.1, 0.2, 0.3)))
    assert store.count() == 2


def test_save_replaces_existing_document():
    store = _store()
    store.save("doc-1", _result("old.pdf", "old text"))
    store.save("doc-1", _result("new.pdf", "new text"))
    assert store.count() == 1
    assert store.get("doc-1").file_name == "new.pdf"


def test_similarity_search_and_delete():
    store = _store()
    store.save("d1", _result("d1.pdf", "alpha beta gamma"))
    store.save("d2", _result("d2.pdf", "lorem ipsum"))
    results = store.similarity_search("alpha beta gamma", top_k=2)
    assert results
    assert results[0].document_id == "d1"
    assert results[0].score is not None
    store.delete("d1")
    assert store.get("d1") is None
    assert store.count() == 1


def test_stored_embeddings_match_backend_dim():
    client = chromadb.EphemeralClient()
    name = f"test-{uuid4().hex}"
    store = ChromaDocumentStore(HashEmbeddingBackend(EmbeddingConfig(dim=16)), collection_name=name, client=client)
    store.save("given", _result("a.pdf", "lorem ipsum", embedding=tuple([0.25] * 16)))
    store.save("wrong-dim", _result("b.pdf", "dolor sit", embedding=(0.1, 0.2, 0.3)))
    stored = client.get_collection(name).get(ids=["given", "wrong-dim"], include=["embeddings"])
    assert [len(vector) for vector in stored["embeddings"]] == [16, 16]
