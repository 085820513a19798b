"""PDF text extraction."""

from .service import ExtractionConfig, TextExtractor, flow_text, layout_text, placeholder_text, scan_stream_text
from .sources import PdfPlumberSource, PdfSource, StaticPdfSource, merge_word_runs

__all__ = [
    "ExtractionConfig",
    "PdfPlumberSource",
    "PdfSource",
    "StaticPdfSource",
    "TextExtractor",
    "flow_text",
    "layout_text",
    "merge_word_runs",
    "placeholder_text",
    "scan_stream_text",
]
