"""Document ingestion pipeline: extraction, summarization and embedding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from studyaid.config import Settings
from studyaid.embeddings.service import EmbeddingBackend, build_embedding_backend
from studyaid.extraction import ExtractionConfig, TextExtractor
from studyaid.metrics.observability import PipelineMetrics, TimedSection, get_logger
from studyaid.models import ExtractedText, IngestionResult, RawDocument
from studyaid.services.generation import GenerationBackend, build_generator
from studyaid.services.splitter import ChunkerConfig, TextChunker
from studyaid.services.summarizer import Summarizer, SummarizerConfig


class IngestionError(RuntimeError):
    """Raised when a document cannot be ingested."""


class UploadRejected(IngestionError):
    """Raised when an upload fails the size or type checks."""


class ExtractionFailure(IngestionError):
    """Raised when no usable text could be recovered from a document."""

    def __init__(self, message: str, *, file_name: str, page_count: int) -> None:
        super().__init__(message)
        self.file_name = file_name
        self.page_count = page_count


@dataclass(frozen=True)
class IngestionConfig:
    """Configuration for the ingestion pipeline."""

    summary_count: int = 5
    summary_max_count: int = 10
    embedding_prefix_chars: int = 8000
    stored_text_chars: int = 10000


@dataclass(frozen=True)
class PipelineCapabilities:
    """External capabilities the pipeline calls into."""

    generator: GenerationBackend
    embedder: EmbeddingBackend


def validate_document(document: RawDocument, max_bytes: int) -> None:
    """Check the caller-side preconditions of :meth:`IngestionPipeline.ingest`."""

    if document.size == 0:
        raise UploadRejected(f"File is empty: {document.file_name}")
    if "pdf" not in (document.mime_type or "").lower():
        raise UploadRejected(f"File must be a PDF: {document.file_name} ({document.mime_type or 'unknown'})")
    if document.size > max_bytes:
        raise UploadRejected(
            f"File too large: {document.file_name} ({document.size} bytes, maximum {max_bytes} bytes)",
        )


def _describe_failure(extracted: ExtractedText) -> str:
    if extracted.page_count > 0:
        return (
            f"Could not extract text from {extracted.file_name}: the PDF has no text layer "
            "(it may be scanned or image-only)"
        )
    return f"Could not extract text from {extracted.file_name}: the file could not be read as a PDF"


class IngestionPipeline:
    """Turn an uploaded PDF into text, summary sections and an embedding."""

    _logger = get_logger("ingestion")

    def __init__(
        self,
        capabilities: PipelineCapabilities,
        config: IngestionConfig | None = None,
        *,
        extractor: TextExtractor | None = None,
        summarizer: Summarizer | None = None,
    ) -> None:
        self._capabilities = capabilities
        self._config = config or IngestionConfig()
        self._extractor = extractor or TextExtractor()
        self._summarizer = summarizer or Summarizer(
            capabilities.generator,
            SummarizerConfig(target_count=self._config.summary_count),
        )

    @property
    def extractor(self) -> TextExtractor:
        return self._extractor

    @property
    def summarizer(self) -> Summarizer:
        return self._summarizer

    def ingest(self, document: RawDocument, summary_count: int | None = None) -> IngestionResult:
        count = self._config.summary_count if summary_count is None else summary_count
        if not 1 <= count <= self._config.summary_max_count:
            raise ValueError(f"summary_count must be between 1 and {self._config.summary_max_count}.")

        extracted = self._extractor.extract_document(document)
        if extracted.is_placeholder or not extracted.text.strip():
            PipelineMetrics.record_failure("extraction")
            message = _describe_failure(extracted)
            self._logger.warning("ingestion.extraction_failed", file_name=document.file_name, detail=message)
            raise ExtractionFailure(message, file_name=document.file_name, page_count=extracted.page_count)

        outcome = self._summarizer.summarize(extracted.text, count)
        embedding = self._embed(extracted.text[: self._config.embedding_prefix_chars], file_name=document.file_name)
        warnings = [warning for warning in (extracted.warning, outcome.warning) if warning]
        result = IngestionResult(
            file_name=document.file_name,
            extracted_text_prefix=extracted.text[: self._config.stored_text_chars],
            summary_sections=tuple(outcome.sections[:count]),
            embedding_vector=embedding,
            strategy_used=extracted.strategy,
            page_count=extracted.page_count,
            character_count=len(extracted.text),
            decode_strategy=outcome.decode_strategy,
            warning="; ".join(warnings) or None,
        )
        self._logger.info(
            "ingestion.complete",
            file_name=document.file_name,
            strategy=result.strategy_used.value,
            section_count=len(result.summary_sections),
            has_embedding=result.embedding_vector is not None,
            warning=result.warning,
        )
        return result

    def _embed(self, text: str, *, file_name: str) -> Tuple[float, ...] | None:
        try:
            with TimedSection(PipelineMetrics.observe_embedding):
                return tuple(self._capabilities.embedder.embed(text))
        except Exception as exc:  # noqa: BLE001 - a missing embedding never fails the upload
            PipelineMetrics.record_failure("embedding")
            self._logger.warning(
                "ingestion.embedding_failed",
                file_name=file_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None


def build_pipeline(settings: Settings, capabilities: PipelineCapabilities | None = None) -> IngestionPipeline:
    """Construct a pipeline using the provided settings."""

    capabilities = capabilities or PipelineCapabilities(
        generator=build_generator(settings),
        embedder=build_embedding_backend(settings),
    )
    extractor = TextExtractor(
        config=ExtractionConfig(
            line_tolerance=settings.extraction_line_tolerance,
            gap_threshold=settings.extraction_gap_threshold,
            min_chars=settings.extraction_min_chars,
            scan_window=settings.extraction_scan_window,
        ),
    )
    summarizer = Summarizer(
        capabilities.generator,
        SummarizerConfig(target_count=settings.summary_count, input_limit=settings.summary_input_limit),
        chunker=TextChunker(ChunkerConfig(chunk_size=settings.chunk_size, chunk_overlap=settings.chunk_overlap)),
    )
    return IngestionPipeline(
        capabilities,
        IngestionConfig(
            summary_count=settings.summary_count,
            summary_max_count=settings.summary_max_count,
            embedding_prefix_chars=settings.embedding_prefix_chars,
            stored_text_chars=settings.stored_text_chars,
        ),
        extractor=extractor,
        summarizer=summarizer,
    )
