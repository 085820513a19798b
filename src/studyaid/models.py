"""Shared domain models used across the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple


class ExtractionStrategy(str, Enum):
    """Which extraction algorithm produced a piece of text."""

    STRUCTURED = "structured"
    FLOW = "flow"
    FALLBACK_SCAN = "fallback-scan"
    PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class RawDocument:
    """Uploaded file as received from the caller."""

    data: bytes
    mime_type: str = "application/pdf"
    file_name: str = "document.pdf"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class TextFragment:
    """Positioned run of text on a PDF page.

    ``y`` grows downward from the top of the page, so sorting ascending reads
    the page top to bottom.
    """

    text: str
    x: float
    y: float
    width: float = 0.0

    @property
    def end_x(self) -> float:
        return self.x + self.width


@dataclass(frozen=True)
class ExtractedText:
    """Plain text recovered from a document."""

    text: str
    page_count: int
    strategy: ExtractionStrategy
    file_name: str
    warning: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.strategy is ExtractionStrategy.PLACEHOLDER


@dataclass(frozen=True)
class TextChunk:
    """Bounded slice of extracted text; ``start`` is its offset in the source."""

    text: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)


@dataclass(frozen=True)
class SummaryOutcome:
    """Summary sections together with how they were obtained."""

    sections: Tuple[str, ...]
    decode_strategy: str
    truncated: bool = False
    chunk_count: int = 0
    warning: str | None = None


@dataclass(frozen=True)
class IngestionResult:
    """Everything the persistence layer needs to store for one upload."""

    file_name: str
    extracted_text_prefix: str
    summary_sections: Tuple[str, ...]
    embedding_vector: Tuple[float, ...] | None
    strategy_used: ExtractionStrategy
    page_count: int
    character_count: int
    decode_strategy: str
    warning: str | None = None


@dataclass(frozen=True)
class StoredDocument:
    """Document record returned by the document store."""

    document_id: str
    file_name: str
    content: str
    summaries: Sequence[str]
    strategy_used: str
    score: float | None = None
