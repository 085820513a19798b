"""Text extraction from PDF bytes with layered fallbacks."""

from __future__ import annotations

import math
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Sequence

from studyaid.extraction.sources import PageFragments, PdfPlumberSource, PdfSource
from studyaid.metrics.observability import PipelineMetrics, TimedSection, get_logger
from studyaid.models import ExtractedText, ExtractionStrategy, RawDocument, TextFragment
from studyaid.strategies import Strategy, first_success

_STREAM_MARKER = re.compile(rb"stream")
_PAGE_OBJECT = re.compile(rb"/Type\s*/Page(?!s)")

FLOW_WARNING = "Used fallback extraction method. Results may be incomplete."
SCAN_WARNING = "Recovered text by scanning raw PDF streams. Results may be noisy."
PLACEHOLDER_WARNING = "PDF extraction encountered issues, using placeholder text"


@dataclass(frozen=True)
class ExtractionConfig:
    """Configuration for text extraction."""

    line_tolerance: float = 10.0
    gap_threshold: float = 10.0
    min_chars: int = 100
    scan_window: int = 1000


def _quantize(value: float, tolerance: float) -> float:
    # half-up rounding so that 5 lands in the 10 band, not the 0 band
    return math.floor(value / tolerance + 0.5) * tolerance


def layout_text(
    pages: Sequence[PageFragments],
    *,
    line_tolerance: float = 10.0,
    gap_threshold: float = 10.0,
) -> str:
    """Rebuild text line by line from fragment positions.

    Fragments are bucketed by their vertical offset rounded to
    ``line_tolerance``; bands are read top to bottom and each band left to
    right. A space is inserted when the horizontal gap to the previous
    fragment exceeds ``gap_threshold``. Columns sharing a baseline therefore
    merge into a single line.
    """

    rendered_pages: List[str] = []
    for fragments in pages:
        bands: Dict[float, List[TextFragment]] = defaultdict(list)
        for fragment in fragments:
            bands[_quantize(fragment.y, line_tolerance)].append(fragment)
        lines: List[str] = []
        for y in sorted(bands):
            row = sorted(bands[y], key=lambda fragment: fragment.x)
            parts: List[str] = []
            last_end: float | None = None
            for fragment in row:
                if last_end is not None and fragment.x - last_end > gap_threshold:
                    parts.append(" ")
                parts.append(fragment.text)
                last_end = fragment.end_x
            lines.append("".join(parts))
        rendered_pages.append("\n".join(lines))
    return "\n\n".join(rendered_pages)


def flow_text(pages: Sequence[PageFragments]) -> str:
    """Join fragments in natural document order, discarding layout."""

    return "\n\n".join(" ".join(fragment.text for fragment in fragments) for fragments in pages)


def scan_stream_text(data: bytes, *, window: int = 1000) -> str:
    """Recover printable ASCII following each ``stream`` marker in raw bytes."""

    pieces: List[str] = []
    for match in _STREAM_MARKER.finditer(data):
        start = match.end()
        chunk = data[start : start + window]
        printable = bytes(byte for byte in chunk if 32 <= byte <= 126)
        if printable:
            pieces.append(printable.decode("ascii"))
    return "\n".join(pieces)


def count_page_objects(data: bytes) -> int:
    return len(_PAGE_OBJECT.findall(data))


def placeholder_text(file_name: str, size: int) -> str:
    return (
        f'No extractable text was found in "{file_name}" ({size} bytes).\n\n'
        "The file may be a scanned image, encrypted, or damaged. For the best "
        "summarization results, upload PDFs that contain a selectable text layer."
    )


@dataclass(frozen=True)
class _ParsedInput:
    data: bytes
    pages: Sequence[PageFragments] | None


class TextExtractor:
    """Extract plain text from PDF bytes, degrading through simpler strategies."""

    _logger = get_logger("extraction")

    def __init__(self, source: PdfSource | None = None, config: ExtractionConfig | None = None) -> None:
        self._config = config or ExtractionConfig()
        self._source = source or PdfPlumberSource(word_gap=self._config.gap_threshold)

    def extract(self, data: bytes, mime_type: str = "application/pdf", *, file_name: str = "document.pdf") -> ExtractedText:
        with TimedSection() as timer:
            extracted = self._extract(data, file_name=file_name)
        PipelineMetrics.observe_extraction(timer.duration, len(extracted.text), extracted.strategy.value)
        self._logger.info(
            "extraction.complete",
            file_name=file_name,
            mime_type=mime_type,
            size_bytes=len(data),
            strategy=extracted.strategy.value,
            page_count=extracted.page_count,
            characters=len(extracted.text),
            duration_seconds=timer.duration,
        )
        return extracted

    def extract_document(self, document: RawDocument) -> ExtractedText:
        return self.extract(document.data, document.mime_type, file_name=document.file_name)

    def _extract(self, data: bytes, *, file_name: str) -> ExtractedText:
        parsed = _ParsedInput(data=data, pages=self._read_pages(data, file_name=file_name))
        strategies: Sequence[Strategy] = (
            (ExtractionStrategy.STRUCTURED.value, self._structured),
            (ExtractionStrategy.FLOW.value, self._flow),
            (ExtractionStrategy.FALLBACK_SCAN.value, self._scan),
        )
        outcome = first_success(strategies, parsed, accept=self._long_enough)
        page_count = len(parsed.pages) if parsed.pages is not None else 0
        if outcome is None:
            return ExtractedText(
                text=placeholder_text(file_name, len(data)),
                page_count=page_count,
                strategy=ExtractionStrategy.PLACEHOLDER,
                file_name=file_name,
                warning=PLACEHOLDER_WARNING,
            )
        strategy = ExtractionStrategy(outcome.name)
        if strategy is ExtractionStrategy.FALLBACK_SCAN:
            page_count = page_count or count_page_objects(data)
        return ExtractedText(
            text=outcome.value,
            page_count=page_count,
            strategy=strategy,
            file_name=file_name,
            warning={ExtractionStrategy.FLOW: FLOW_WARNING, ExtractionStrategy.FALLBACK_SCAN: SCAN_WARNING}.get(strategy),
        )

    def _read_pages(self, data: bytes, *, file_name: str) -> Sequence[PageFragments] | None:
        try:
            return self._source.read_pages(data)
        except Exception as exc:  # noqa: BLE001 - malformed input falls through to the byte scan
            self._logger.warning(
                "extraction.parse_failed",
                file_name=file_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None

    def _structured(self, parsed: _ParsedInput) -> str | None:
        if parsed.pages is None:
            return None
        return layout_text(
            parsed.pages,
            line_tolerance=self._config.line_tolerance,
            gap_threshold=self._config.gap_threshold,
        )

    def _flow(self, parsed: _ParsedInput) -> str | None:
        if parsed.pages is None:
            return None
        return flow_text(parsed.pages)

    def _scan(self, parsed: _ParsedInput) -> str | None:
        # Parsed pages without text mean a scanned or image-only document;
        # raw streams are only read when the container itself is unreadable.
        if parsed.pages is not None:
            return None
        return scan_stream_text(parsed.data, window=self._config.scan_window)

    def _long_enough(self, text: str) -> bool:
        return len(text.strip()) >= self._config.min_chars
