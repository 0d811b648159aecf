"""Tests for structured payload extraction.

These tests exercise the three extraction stages (direct, stripped and
scanned) against the kinds of wrapping that text generators produce in
practice: markdown fences, leading commentary and trailing
explanations.  They also check that failures retain the raw text and
that extraction is deterministic.
"""

from __future__ import annotations

import logging

import pytest

from biogrid.llm.extractor import (
    ExtractedPayload,
    ExtractionFailure,
    extract_payload,
    iter_balanced_spans,
)


def test_direct_parse_of_pure_json() -> None:
    """A response that is already JSON should parse at the first stage."""
    result = extract_payload('{"predictedPrice": 11.2, "confidence": 80}')
    assert isinstance(result, ExtractedPayload)
    assert result.stage == "direct"
    assert result.value == {"predictedPrice": 11.2, "confidence": 80}


def test_fenced_block_is_stripped() -> None:
    """A fenced ```json block should be recovered by the stripped stage."""
    text = 'Sure! Here is the forecast:\n```json\n{"predictedPrice": 12}\n```\nHope this helps.'
    result = extract_payload(text)
    assert isinstance(result, ExtractedPayload)
    assert result.stage == "stripped"
    assert result.value == {"predictedPrice": 12}


def test_unlabelled_fence_and_array_payload() -> None:
    """Fences without a language tag and array payloads are both accepted."""
    text = '```\n[{"region": "North"}, {"region": "South"}]\n```'
    result = extract_payload(text)
    assert isinstance(result, ExtractedPayload)
    assert result.value == [{"region": "North"}, {"region": "South"}]


def test_prose_around_object_is_removed() -> None:
    """Commentary before and after a bare object should not block parsing."""
    text = 'Based on the data, {"riskLevel": "low", "riskScore": 20} is my assessment.'
    result = extract_payload(text)
    assert isinstance(result, ExtractedPayload)
    assert result.value == {"riskLevel": "low", "riskScore": 20}


def test_scan_finds_object_after_unparseable_braces() -> None:
    """When stripping fails, the scan should try each balanced span in turn."""
    text = 'Note {this is not json} but {"action": "buy", "amount": 100} is.'
    result = extract_payload(text)
    assert isinstance(result, ExtractedPayload)
    assert result.stage == "scanned"
    assert result.value == {"action": "buy", "amount": 100}


def test_braces_inside_strings_do_not_break_scanning() -> None:
    """Brackets inside string literals must be ignored when balancing."""
    text = 'prefix {"reasoning": "price {high} ] now", "action": "sell"} suffix } trailing'
    result = extract_payload(text)
    assert isinstance(result, ExtractedPayload)
    assert result.value == {"reasoning": "price {high} ] now", "action": "sell"}


def test_trailing_commas_are_repaired() -> None:
    """A trailing comma before a closing bracket should be tolerated."""
    result = extract_payload('{"terms": ["a", "b",], "validityPeriod": 24,}')
    assert isinstance(result, ExtractedPayload)
    assert result.value == {"terms": ["a", "b"], "validityPeriod": 24}


def test_no_bracketed_span_is_a_failure(caplog: pytest.LogCaptureFixture) -> None:
    """Plain prose yields a failure that keeps the raw text and is logged."""
    text = "I cannot provide a forecast right now."
    with caplog.at_level(logging.WARNING, logger="biogrid.llm.extractor"):
        result = extract_payload(text)
    assert isinstance(result, ExtractionFailure)
    assert result.raw_text == text
    assert result.reason == "no balanced bracketed span"
    assert "Extraction failed" in caplog.text


def test_unparseable_spans_are_a_failure() -> None:
    """Balanced spans that are not JSON are reported distinctly."""
    result = extract_payload("values {not: json} and [also, not]")
    assert isinstance(result, ExtractionFailure)
    assert result.reason == "no parseable bracketed span"


@pytest.mark.parametrize("value", ["", "   \n", None, 42])
def test_empty_or_non_text_responses_fail(value) -> None:
    """Empty and non-string responses never raise."""
    assert isinstance(extract_payload(value), ExtractionFailure)


def test_extraction_is_deterministic() -> None:
    """Extracting the same text twice yields equal results."""
    text = 'Here:\n```json\n{"sentiment": "bullish", "score": 0.4}\n```'
    assert extract_payload(text) == extract_payload(text)


def test_iter_balanced_spans_skips_unclosed_opener() -> None:
    """An opener that never closes is abandoned and scanning continues."""
    spans = list(iter_balanced_spans('{ "a": 1 [2, 3]'))
    assert spans == ["[2, 3]"]
