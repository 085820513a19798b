from __future__ import annotations

import pytest
from conftest import build_image_pdf, two_column_page

from studyaid.config import Settings
from studyaid.embeddings.service import EmbeddingConfig, HashEmbeddingBackend
from studyaid.extraction import StaticPdfSource, TextExtractor
from studyaid.ingestion import (
    ExtractionFailure,
    IngestionConfig,
    IngestionPipeline,
    PipelineCapabilities,
    UploadRejected,
    build_pipeline,
    validate_document,
)
from studyaid.models import ExtractionStrategy, RawDocument
from studyaid.services.decoding import NO_SUMMARY_MESSAGE
from studyaid.services.generation import GenerationUnavailable, TemplateGenerator


class FailingEmbedder:
    dim = 16

    def embed(self, text: str):
        raise GenerationUnavailable("embedding service down")


class FailingGenerator:
    def generate(self, prompt: str) -> str:
        raise GenerationUnavailable("model offline")


def _pipeline(*, generator=None, embedder=None, pages=None, config=None) -> IngestionPipeline:
    capabilities = PipelineCapabilities(
        generator=generator or TemplateGenerator(),
        embedder=embedder or HashEmbeddingBackend(EmbeddingConfig(dim=16)),
    )
    extractor = TextExtractor(StaticPdfSource(pages)) if pages is not None else None
    return IngestionPipeline(capabilities, config, extractor=extractor)


def _columns() -> list:
    return [two_column_page(3, tag=f"p{number}") for number in range(1, 4)]


def test_ingest_produces_sections_and_embedding():
    result = _pipeline(pages=_columns()).ingest(RawDocument(b"%PDF-1.4", file_name="notes.pdf"), 3)
    assert result.file_name == "notes.pdf"
    assert result.strategy_used is ExtractionStrategy.STRUCTURED
    assert result.page_count == 3
    assert 1 <= len(result.summary_sections) <= 3
    assert result.embedding_vector is not None
    assert len(result.embedding_vector) == 16
    assert result.character_count == len(result.extracted_text_prefix)
    assert result.warning is None


def test_ingest_real_pdf(study_pdf):
    result = _pipeline().ingest(RawDocument(study_pdf, file_name="biology.pdf"))
    assert result.page_count == 2
    assert result.summary_sections
    assert "Photosynthesis" in result.extracted_text_prefix


def test_ingest_embeds_text_prefix_only():
    captured: list[str] = []

    class RecordingEmbedder(HashEmbeddingBackend):
        def embed(self, text: str):
            captured.append(text)
            return super().embed(text)

    pipeline = _pipeline(
        pages=_columns(),
        embedder=RecordingEmbedder(EmbeddingConfig(dim=16)),
        config=IngestionConfig(embedding_prefix_chars=40, stored_text_chars=60),
    )
    result = pipeline.ingest(RawDocument(b"%PDF"))
    assert len(captured[0]) == 40
    assert len(result.extracted_text_prefix) == 60
    assert result.character_count > 60


def test_embedding_failure_is_partial_success():
    result = _pipeline(pages=_columns(), embedder=FailingEmbedder()).ingest(RawDocument(b"%PDF"))
    assert result.embedding_vector is None
    assert result.summary_sections


def test_generation_failure_is_partial_success():
    result = _pipeline(pages=_columns(), generator=FailingGenerator()).ingest(RawDocument(b"%PDF"))
    assert result.summary_sections == (NO_SUMMARY_MESSAGE,)
    assert result.embedding_vector is not None
    assert "model offline" in result.warning


def test_zero_byte_input_raises_extraction_failure():
    with pytest.raises(ExtractionFailure) as excinfo:
        _pipeline().ingest(RawDocument(b"", file_name="empty.pdf"))
    assert excinfo.value.file_name == "empty.pdf"
    assert excinfo.value.page_count == 0


def test_non_pdf_input_raises_extraction_failure():
    with pytest.raises(ExtractionFailure):
        _pipeline().ingest(RawDocument(b"plain text masquerading as a pdf", file_name="fake.pdf"))


def test_image_only_pages_mention_missing_text_layer():
    with pytest.raises(ExtractionFailure) as excinfo:
        _pipeline(pages=[[], []]).ingest(RawDocument(b"image bytes", file_name="scan.pdf"))
    assert excinfo.value.page_count == 2
    assert "text layer" in str(excinfo.value)


def test_scanned_pdf_fails_with_missing_text_layer():
    with pytest.raises(ExtractionFailure) as excinfo:
        _pipeline().ingest(RawDocument(build_image_pdf(), file_name="scan.pdf"))
    assert excinfo.value.page_count == 1
    assert "text layer" in str(excinfo.value)


@pytest.mark.parametrize("count", [0, 11])
def test_summary_count_out_of_range(count):
    with pytest.raises(ValueError):
        _pipeline(pages=_columns()).ingest(RawDocument(b"%PDF"), count)


def test_validate_document_rejections():
    with pytest.raises(UploadRejected):
        validate_document(RawDocument(b""), 100)
    with pytest.raises(UploadRejected):
        validate_document(RawDocument(b"data", mime_type="text/plain"), 100)
    with pytest.raises(UploadRejected):
        validate_document(RawDocument(b"x" * 101), 100)
    validate_document(RawDocument(b"x" * 100), 100)


def test_build_pipeline_from_settings(study_pdf):
    pipeline = build_pipeline(Settings(environment="test", summary_count=2, embedding_dim=32))
    result = pipeline.ingest(RawDocument(study_pdf))
    assert len(result.summary_sections) <= 2
    assert len(result.embedding_vector) == 32
