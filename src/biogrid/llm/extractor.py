"""Recover structured payloads from free-form model output.

Text generators are not obliged to return pure JSON: they wrap it in
fenced code blocks, prepend commentary or append explanations.  The
extractor makes three ordered attempts and returns the first success:

1. ``direct``   - parse the entire text;
2. ``stripped`` - take the body of the first fenced code block (or
   drop stray fence markers and the prose around the outermost
   brackets) and parse that;
3. ``scanned``  - walk the text for top-level ``{...}`` / ``[...]``
   spans whose nesting balances to zero and parse each in order.

Every candidate is retried once with trailing commas removed.  When no
attempt succeeds an :class:`ExtractionFailure` carrying the original
text is returned and a warning is logged.  The functions here are pure
so extraction of the same text always yields the same result.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator, Literal, Optional, Union

logger = logging.getLogger(__name__)

Stage = Literal["direct", "stripped", "scanned"]

_FENCED_BLOCK = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)
_FENCE_MARKER = re.compile(r"```[ \t]*(?:json|JSON)?")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")

_OPENERS = {"{": "}", "[": "]"}

# Maximum number of characters of raw text echoed into log records.
LOG_EXCERPT_CHARS = 300


@dataclass(frozen=True)
class ExtractedPayload:
    """JSON value recovered from raw text and the stage that found it."""

    value: Any
    stage: Stage


@dataclass(frozen=True)
class ExtractionFailure:
    """No parseable structured span was found in ``raw_text``."""

    raw_text: str
    reason: str


ExtractionResult = Union[ExtractedPayload, ExtractionFailure]


def _loads(candidate: str) -> tuple[bool, Any]:
    """Parse ``candidate`` as JSON, retrying without trailing commas."""
    candidate = candidate.strip()
    if not candidate:
        return False, None
    try:
        return True, json.loads(candidate)
    except ValueError:
        pass
    repaired = _TRAILING_COMMA.sub(r"\1", candidate)
    if repaired == candidate:
        return False, None
    try:
        return True, json.loads(repaired)
    except ValueError:
        return False, None


def _strip_wrapping(text: str) -> Optional[str]:
    """Remove code fences and surrounding prose.

    Returns ``None`` when there is nothing to strip, i.e. the stripped
    candidate would equal the original text.
    """
    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        body = fenced.group(1)
    else:
        body = _FENCE_MARKER.sub("", text)
        starts = [i for i in (body.find("{"), body.find("[")) if i != -1]
        if starts:
            end = max(body.rfind("}"), body.rfind("]"))
            start = min(starts)
            if end > start:
                body = body[start : end + 1]
    body = body.strip()
    if not body or body == text.strip():
        return None
    return body


def iter_balanced_spans(text: str) -> Iterator[str]:
    """Yield top-level bracketed spans whose nesting balances to zero.

    Brackets inside JSON string literals are ignored.  When a span is
    never closed, or is closed by a bracket of the wrong type, it is
    abandoned and scanning resumes just after its opening bracket.
    """
    pos = 0
    length = len(text)
    while pos < length:
        start = -1
        for idx in range(pos, length):
            if text[idx] in _OPENERS:
                start = idx
                break
        if start == -1:
            return
        stack = [_OPENERS[text[start]]]
        in_string = False
        escaped = False
        end = None
        for idx in range(start + 1, length):
            ch = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch in _OPENERS:
                stack.append(_OPENERS[ch])
            elif ch in "}]":
                if ch != stack[-1]:
                    break
                stack.pop()
                if not stack:
                    end = idx + 1
                    break
        if end is None:
            pos = start + 1
            continue
        yield text[start:end]
        pos = end


def extract_payload(text: Any) -> ExtractionResult:
    """Recover a JSON value from raw model output.

    Args:
        text: Raw text returned by the gateway.  Non-string input is
            reported as a failure rather than raising.

    Returns:
        An :class:`ExtractedPayload` on success, otherwise an
        :class:`ExtractionFailure` retaining the original text.
    """
    if not isinstance(text, str):
        return _fail("" if text is None else repr(text), "response is not text")
    if not text.strip():
        return _fail(text, "empty response")

    ok, value = _loads(text)
    if ok:
        return ExtractedPayload(value=value, stage="direct")

    stripped = _strip_wrapping(text)
    if stripped is not None:
        ok, value = _loads(stripped)
        if ok:
            return ExtractedPayload(value=value, stage="stripped")

    found_span = False
    for span in iter_balanced_spans(text):
        found_span = True
        ok, value = _loads(span)
        if ok:
            return ExtractedPayload(value=value, stage="scanned")

    reason = "no parseable bracketed span" if found_span else "no balanced bracketed span"
    return _fail(text, reason)


def _fail(text: str, reason: str) -> ExtractionFailure:
    excerpt = text if len(text) <= LOG_EXCERPT_CHARS else text[:LOG_EXCERPT_CHARS] + "..."
    logger.warning("Extraction failed (%s); raw text: %r", reason, excerpt)
    return ExtractionFailure(raw_text=text, reason=reason)


__all__ = [
    "ExtractedPayload",
    "ExtractionFailure",
    "ExtractionResult",
    "extract_payload",
    "iter_balanced_spans",
]
