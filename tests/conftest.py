"""Shared fixtures: hand-built PDFs and synthetic fragment layouts."""

from __future__ import annotations

import random
from typing import Callable, Sequence, Tuple

import pytest

from studyaid.models import TextFragment

FONT = b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>"


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _stream(body: bytes, extra: bytes = b"") -> bytes:
    return b"<< " + extra + b"/Length %d >>\nstream\n" % len(body) + body + b"\nendstream"


def _assemble(page_contents: Sequence[bytes], resources: bytes, shared: Sequence[bytes] = ()) -> bytes:
    """Lay out catalog, page tree, one page plus content stream per entry, then ``shared`` objects."""

    page_count = len(page_contents)
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        (
            "<< /Type /Pages /Kids ["
            + " ".join(f"{3 + 2 * index} 0 R" for index in range(page_count))
            + f"] /Count {page_count} >>"
        ).encode("ascii"),
    ]
    for index, content in enumerate(page_contents):
        objects.append(
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents %d 0 R /Resources %s >>"
            % (4 + 2 * index, resources),
        )
        objects.append(_stream(content))
    objects.extend(shared)

    output = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(output))
        output += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_offset = len(output)
    output += b"xref\n0 %d\n" % (len(objects) + 1)
    output += b"0000000000 65535 f \n"
    for offset in offsets:
        output += b"%010d 00000 n \n" % offset
    output += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_offset)
    return bytes(output)


def build_placed_pdf(pages: Sequence[Sequence[Tuple[float, float, str]]]) -> bytes:
    """PDF whose pages show each ``(x, baseline, text)`` run with 12pt Helvetica."""

    font_id = 3 + 2 * len(pages)
    contents = [
        "".join(f"BT /F1 12 Tf {x:.2f} {y:.2f} Td ({_escape(text)}) Tj ET\n" for x, y, text in runs).encode("latin-1")
        for runs in pages
    ]
    return _assemble(contents, b"<< /Font << /F1 %d 0 R >> >>" % font_id, [FONT])


def build_pdf(pages: Sequence[Sequence[str]]) -> bytes:
    """Return an uncompressed PDF with one Helvetica text line per entry."""

    return build_placed_pdf([[(72.0, 720.0 - 20 * number, line) for number, line in enumerate(lines)] for lines in pages])


def build_image_pdf(width: int = 50, height: int = 60, seed: int = 7) -> bytes:
    """One page showing a grayscale image of random bytes and no text at all."""

    pixels = random.Random(seed).randbytes(width * height)
    image = _stream(
        pixels,
        b"/Type /XObject /Subtype /Image /Width %d /Height %d /ColorSpace /DeviceGray /BitsPerComponent 8 "
        % (width, height),
    )
    return _assemble([b"q 600 0 0 780 0 0 cm /Im1 Do Q"], b"<< /XObject << /Im1 5 0 R >> >>", [image])


def two_column_page(rows: int, *, tag: str) -> list[TextFragment]:
    """Fragments for a page whose left and right columns share baselines.

    Fragments are listed right column first to mimic interleaved raw order.
    """

    fragments: list[TextFragment] = []
    for row in range(rows):
        y = 100.0 + 20 * row
        fragments.append(TextFragment(f"{tag} right column line {row}", x=300.0, y=y, width=50.0))
        fragments.append(TextFragment(f"{tag} left column line {row}", x=0.0, y=y, width=50.0))
    return fragments


@pytest.fixture
def pdf_factory() -> Callable[[Sequence[Sequence[str]]], bytes]:
    return build_pdf


@pytest.fixture
def study_pdf() -> bytes:
    return build_pdf(
        [
            [
                "Photosynthesis converts light energy into chemical energy.",
                "Chlorophyll absorbs mostly blue and red wavelengths of light.",
                "The Calvin cycle fixes carbon dioxide into sugar molecules.",
            ],
            [
                "Cellular respiration releases energy stored in glucose.",
                "Mitochondria host the citric acid cycle and electron transport.",
            ],
        ],
    )
