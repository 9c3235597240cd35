"""Split a free-text model reply into explanation, document and preference.

The model is asked to answer as::

    <explanation>
    ---HTML_START---
    <!DOCTYPE html> ... </html>
    ---PREFERENCE---          (optional, refinements only)
    <rule>

``parse_response`` classifies what actually came back; ``resolve_analysis``
and ``resolve_refinement`` turn that classification into the values a turn
persists, each with its own fallbacks.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

HTML_START_MARKER = "---HTML_START---"
PREFERENCE_MARKER = "---PREFERENCE---"

ANALYSIS_FALLBACK_EXPLANATION = "Your CV has been optimized for the target position."
REFINEMENT_FALLBACK_EXPLANATION = "Changes applied."

_DOCUMENT_ANCHORS = ("<!DOCTYPE html>", "<html")
_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)


@dataclass(frozen=True)
class Parsed:
    """The reply used the sentinel markers."""

    explanation: str
    document: str
    preference_rule: Optional[str] = None


@dataclass(frozen=True)
class Degraded:
    """No markers, but an HTML document was found in the reply."""

    document: str
    remainder: str


@dataclass(frozen=True)
class Unparseable:
    """Nothing recognisable as a document."""

    raw: str


ParseResult = Union[Parsed, Degraded, Unparseable]


def _unfence(document: str) -> str:
    match = _CODE_FENCE.match(document)
    return match.group("body").strip() if match else document


def _find_document(text: str) -> Optional[str]:
    for anchor in _DOCUMENT_ANCHORS:
        index = text.find(anchor)
        if index != -1:
            return text[index:]
    return None


def parse_response(text: str) -> ParseResult:
    text = text or ""

    head, sep, rest = text.partition(HTML_START_MARKER)
    if sep:
        explanation = head.strip()
        rest = rest.strip()
        document, pref_sep, preference = rest.partition(PREFERENCE_MARKER)
        if pref_sep:
            return Parsed(
                explanation=explanation,
                document=_unfence(document.strip()),
                preference_rule=preference.strip() or None,
            )
        return Parsed(explanation=explanation, document=_unfence(rest))

    document = _find_document(text)
    if document is not None:
        remainder = text.replace(document, "").strip()
        return Degraded(document=document, remainder=remainder)

    return Unparseable(raw=text)


def resolve_analysis(result: ParseResult, raw: str) -> Parsed:
    """First turn: there is no previous document, so the raw reply is the last resort."""
    if isinstance(result, Parsed):
        if result.document:
            return result
        return Parsed(explanation=result.explanation or ANALYSIS_FALLBACK_EXPLANATION, document=raw)
    if isinstance(result, Degraded):
        return Parsed(explanation=ANALYSIS_FALLBACK_EXPLANATION, document=result.document)
    return Parsed(explanation=ANALYSIS_FALLBACK_EXPLANATION, document=result.raw)


def resolve_refinement(result: ParseResult, previous_document: str) -> Parsed:
    """Later turns never produce an empty document; the previous one is kept instead."""
    if isinstance(result, Parsed):
        if result.document:
            return result
        return Parsed(
            explanation=result.explanation or REFINEMENT_FALLBACK_EXPLANATION,
            document=previous_document,
            preference_rule=result.preference_rule,
        )
    if isinstance(result, Degraded):
        return Parsed(
            explanation=result.remainder or REFINEMENT_FALLBACK_EXPLANATION,
            document=result.document,
        )
    return Parsed(
        explanation=result.raw.strip() or REFINEMENT_FALLBACK_EXPLANATION,
        document=previous_document,
    )
