from __future__ import annotations

import json

from studyaid.services.decoding import (
    FALLBACK,
    NO_SUMMARY_MESSAGE,
    STRICT_JSON,
    decode_numbered,
    decode_paragraphs,
    decode_summaries,
    split_joined_summary,
)

SECTIONS = [
    "Photosynthesis turns light into chemical energy stored as glucose.",
    "Cellular respiration releases that energy inside the mitochondria.",
    "Enzymes speed up both processes by lowering activation energy.",
]


def test_well_formed_json_is_returned_in_order():
    decoded = decode_summaries(json.dumps({"summaries": SECTIONS}), 3)
    assert decoded.sections == tuple(SECTIONS)
    assert decoded.strategy == STRICT_JSON
    assert not decoded.degraded


def test_single_section_json_is_accepted():
    decoded = decode_summaries(json.dumps({"summaries": [SECTIONS[0]]}), 5)
    assert decoded.sections == (SECTIONS[0],)
    assert decoded.strategy == STRICT_JSON


def test_blank_entries_are_dropped():
    decoded = decode_summaries(json.dumps({"summaries": ["", SECTIONS[0], "   ", 7]}), 3)
    assert decoded.sections == (SECTIONS[0],)


def test_fenced_json_block():
    content = "Here are your summaries:\n```json\n" + json.dumps({"summaries": SECTIONS}) + "\n```\nEnjoy!"
    decoded = decode_summaries(content, 3)
    assert decoded.sections == tuple(SECTIONS)
    assert decoded.strategy == "fenced-json"
    assert decoded.degraded


def test_json_wrapped_in_prose_is_recovered():
    content = "Sure! Here is the JSON you asked for: " + json.dumps({"summaries": SECTIONS}) + " Let me know if you need more."
    decoded = decode_summaries(content, 3)
    assert decoded.sections == tuple(SECTIONS)
    assert decoded.strategy == "embedded-json"
    assert decoded.degraded


def test_fenced_json_cut_off_mid_array_keeps_complete_sections():
    content = '```json\n{"summaries": [' + json.dumps(SECTIONS[0]) + ", " + json.dumps(SECTIONS[1])
    decoded = decode_summaries(content, 3)
    assert decoded.strategy == "fenced-json"
    assert decoded.sections == tuple(SECTIONS[:2])


def test_joined_string_inside_prose():
    content = "Output: " + json.dumps({"summaries": "\n\n".join(SECTIONS[:2])})
    decoded = decode_summaries(content, 5)
    assert decoded.strategy == "joined-string"
    assert decoded.sections == tuple(SECTIONS[:2])


def test_single_unstructured_blob_yields_the_fallback_message():
    blob = " ".join(SECTIONS) + " The model ignored the requested format entirely."
    decoded = decode_summaries(blob, 5)
    assert decoded.sections == (NO_SUMMARY_MESSAGE,)
    assert decoded.strategy == FALLBACK
    assert decode_paragraphs(blob, limit=5) is None


def test_joined_string_splits_on_blank_lines():
    content = json.dumps({"summaries": "\n\n".join(SECTIONS[:2])})
    decoded = decode_summaries(content, 5)
    assert decoded.sections == tuple(SECTIONS[:2])
    assert decoded.strategy == "joined-string"


def test_joined_string_splits_on_sentences():
    pieces = split_joined_summary(" ".join(SECTIONS))
    assert pieces == tuple(SECTIONS)


def test_numbered_list_with_three_items():
    content = "Summary:\n1. " + SECTIONS[0] + "\n2) " + SECTIONS[1] + "\n3. " + SECTIONS[2]
    decoded = decode_summaries(content, 5)
    assert decoded.strategy == "numbered"
    assert decoded.sections == tuple(SECTIONS)


def test_numbered_needs_three_items():
    assert decode_numbered("1. first point here\n2. second point here") is None


def test_numbered_items_join_wrapped_lines():
    content = "1. Alpha topic\n   continues here\n2. Beta topic\n3. Gamma topic"
    assert decode_numbered(content) == ("Alpha topic continues here", "Beta topic", "Gamma topic")


def test_paragraphs_are_limited_to_target():
    paragraphs = [section + " It is covered in detail in chapter two." for section in SECTIONS]
    decoded = decode_summaries("\n\n".join(paragraphs), 2)
    assert decoded.strategy == "paragraphs"
    assert decoded.sections == tuple(paragraphs[:2])


def test_noise_yields_the_fallback_message():
    decoded = decode_summaries("{not json at all", 5)
    assert decoded.sections == (NO_SUMMARY_MESSAGE,)
    assert decoded.strategy == FALLBACK


def test_empty_output_yields_the_fallback_message():
    decoded = decode_summaries("", 5)
    assert decoded.sections == (NO_SUMMARY_MESSAGE,)
