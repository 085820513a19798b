"""PDF parsing backends that yield positioned text fragments."""

from __future__ import annotations

from io import BytesIO
from typing import Any, List, Mapping, Protocol, Sequence

import pdfplumber

from studyaid.models import TextFragment

PageFragments = Sequence[TextFragment]


class PdfSource(Protocol):
    """Parse PDF bytes into pages of positioned text fragments."""

    def read_pages(self, data: bytes) -> Sequence[PageFragments]:
        """Return one fragment list per page, in natural content order."""


def merge_word_runs(
    words: Sequence[Mapping[str, Any]],
    *,
    max_gap: float,
    y_tolerance: float,
) -> List[TextFragment]:
    """Join consecutive pdfplumber words on one line into space-separated runs.

    pdfplumber splits words wherever the horizontal gap exceeds its
    ``x_tolerance``, and documents without space glyphs (TeX output, for
    instance) carry no blank between those words. Words that follow each other
    on the same line with a gap of at most ``max_gap`` are joined with a single
    space, so the layout step only has to space the wider gaps it sees between
    runs. Content order is preserved.
    """

    runs: List[TextFragment] = []
    for word in words:
        text = str(word["text"])
        x0, x1, top = float(word["x0"]), float(word["x1"]), float(word["top"])
        if runs:
            previous = runs[-1]
            gap = x0 - previous.end_x
            if abs(top - previous.y) <= y_tolerance and 0 <= gap <= max_gap:
                separator = "" if previous.text.endswith(" ") or text.startswith(" ") else " "
                runs[-1] = TextFragment(
                    text=previous.text + separator + text,
                    x=previous.x,
                    y=previous.y,
                    width=x1 - previous.x,
                )
                continue
        runs.append(TextFragment(text=text, x=x0, y=top, width=x1 - x0))
    return runs


class PdfPlumberSource:
    """Fragment source backed by pdfplumber word extraction.

    Words keep their embedded blanks and follow the content stream order, so
    callers can choose between layout reconstruction and plain reading order.
    ``word_gap`` should match the layout gap threshold: words closer than it
    are merged into runs with a single space between them.
    """

    def __init__(self, *, x_tolerance: float = 3.0, y_tolerance: float = 3.0, word_gap: float = 10.0) -> None:
        self._x_tolerance = x_tolerance
        self._y_tolerance = y_tolerance
        self._word_gap = word_gap

    def read_pages(self, data: bytes) -> Sequence[PageFragments]:
        pages: List[List[TextFragment]] = []
        with pdfplumber.open(BytesIO(data)) as pdf:
            for page in pdf.pages:
                words = page.extract_words(
                    x_tolerance=self._x_tolerance,
                    y_tolerance=self._y_tolerance,
                    keep_blank_chars=True,
                    use_text_flow=True,
                )
                pages.append(merge_word_runs(words, max_gap=self._word_gap, y_tolerance=self._y_tolerance))
        return pages


class StaticPdfSource:
    """Source returning pre-built pages; used for tests and replaying parses."""

    def __init__(self, pages: Sequence[PageFragments]) -> None:
        self._pages = [list(page) for page in pages]

    def read_pages(self, data: bytes) -> Sequence[PageFragments]:
        return self._pages
