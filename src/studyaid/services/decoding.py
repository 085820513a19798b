"""Decoding of free-text model output into summary sections.

The backend is asked for ``{"summaries": [...]}`` but its output is treated as
untrusted text. Each decoder below is an independent pure function; they are
tried in order and the first one that yields sections wins.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import partial
from typing import Any, Mapping, Sequence, Tuple

from langchain_core.utils.json import parse_json_markdown

from studyaid.strategies import Strategy, first_success

NO_SUMMARY_MESSAGE = "No summary could be generated for this document. Please try again with a different PDF."

STRICT_JSON = "json"
FALLBACK = "fallback"

MIN_SPLIT_CHARS = 30
MIN_PARAGRAPH_CHARS = 50
MIN_NUMBERED_SECTIONS = 3
MIN_PARAGRAPHS = 2

_FENCE = "```"
_BLANK_LINES = re.compile(r"\n\s*\n")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
_NUMBERED_SECTION = re.compile(
    r"^[ \t]*\d+[.)][ \t]+(.+?)(?=^[ \t]*\d+[.)][ \t]+|\Z)",
    re.MULTILINE | re.DOTALL,
)

Sections = Tuple[str, ...]


@dataclass(frozen=True)
class DecodedSummaries:
    """Sections recovered from backend output and the decoder that produced them."""

    sections: Sections
    strategy: str

    @property
    def degraded(self) -> bool:
        return self.strategy != STRICT_JSON


def _clean(items: Sequence[Any]) -> Sections:
    return tuple(item.strip() for item in items if isinstance(item, str) and item.strip())


def _load_object(text: str) -> Mapping[str, Any] | None:
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return payload if isinstance(payload, Mapping) else None


def _fenced_object(content: str) -> Mapping[str, Any] | None:
    start = content.find(_FENCE)
    if start < 0:
        return None
    try:
        payload = parse_json_markdown(content[start:])
    except ValueError:
        return None
    return payload if isinstance(payload, Mapping) else None


def _embedded_object(content: str) -> Mapping[str, Any] | None:
    start, end = content.find("{"), content.rfind("}")
    if start < 0 or end <= start:
        return None
    return _load_object(content[start : end + 1])


def _summaries_list(payload: Mapping[str, Any] | None) -> Sections | None:
    if payload is None:
        return None
    summaries = payload.get("summaries")
    if not isinstance(summaries, list):
        return None
    return _clean(summaries) or None


def decode_json(content: str) -> Sections | None:
    """Strict decode: the whole response is a JSON object with a ``summaries`` list."""

    return _summaries_list(_load_object(content.strip()))


def decode_fenced_json(content: str) -> Sections | None:
    """Decode the JSON object inside the first fenced code block.

    Unterminated fences and objects cut off mid-array are closed by LangChain's
    partial JSON parser, so a response truncated by the token limit still
    yields the sections it completed.
    """

    return _summaries_list(_fenced_object(content))


def decode_embedded_json(content: str) -> Sections | None:
    """Decode the outermost ``{...}`` span of a response wrapped in prose."""

    return _summaries_list(_embedded_object(content))


def split_joined_summary(text: str) -> Sections | None:
    """Split one long summary string into pieces on blank lines, else sentences."""

    for pattern in (_BLANK_LINES, _SENTENCE_BOUNDARY):
        pieces = tuple(piece.strip() for piece in pattern.split(text) if len(piece.strip()) >= MIN_SPLIT_CHARS)
        if len(pieces) >= 2:
            return pieces
    return None


def decode_joined_string(content: str) -> Sections | None:
    """Handle ``summaries`` decoded as a single string instead of a list."""

    for payload in (_load_object(content.strip()), _fenced_object(content), _embedded_object(content)):
        if payload is None:
            continue
        summaries = payload.get("summaries")
        if isinstance(summaries, str):
            pieces = split_joined_summary(summaries)
            if pieces:
                return pieces
    return None


def decode_numbered(content: str) -> Sections | None:
    """Extract ``1.``, ``2.``, ... enumerated spans; needs at least three."""

    sections = _clean([match.group(1) for match in _NUMBERED_SECTION.finditer(content)])
    if len(sections) < MIN_NUMBERED_SECTIONS:
        return None
    return tuple(" ".join(section.split()) for section in sections)


def decode_paragraphs(content: str, *, limit: int) -> Sections | None:
    """Last resort: blank-line separated paragraphs longer than 50 characters.

    A single paragraph is the unsplit response itself, so at least two are
    required before the output counts as sections.
    """

    paragraphs = tuple(p.strip() for p in _BLANK_LINES.split(content) if len(p.strip()) > MIN_PARAGRAPH_CHARS)
    if len(paragraphs) < MIN_PARAGRAPHS:
        return None
    return paragraphs[:limit]


def decode_summaries(content: str, target_count: int) -> DecodedSummaries:
    """Run the decoders in order and return the first non-empty result."""

    strategies: Sequence[Strategy] = (
        (STRICT_JSON, decode_json),
        ("fenced-json", decode_fenced_json),
        ("embedded-json", decode_embedded_json),
        ("joined-string", decode_joined_string),
        ("numbered", decode_numbered),
        ("paragraphs", partial(decode_paragraphs, limit=target_count)),
    )
    outcome = first_success(strategies, content or "")
    if outcome is None:
        return DecodedSummaries(sections=(NO_SUMMARY_MESSAGE,), strategy=FALLBACK)
    return DecodedSummaries(sections=outcome.value, strategy=outcome.name)


__all__ = [
    "DecodedSummaries",
    "FALLBACK",
    "NO_SUMMARY_MESSAGE",
    "STRICT_JSON",
    "decode_embedded_json",
    "decode_fenced_json",
    "decode_joined_string",
    "decode_json",
    "decode_numbered",
    "decode_paragraphs",
    "decode_summaries",
    "split_joined_summary",
]
