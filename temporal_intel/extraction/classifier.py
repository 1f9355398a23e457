"""
Source Classifier

Guesses where a blob of text came from (calendar export, email, chat message,
voice transcript, plain document) so downstream callers can pick how much to
trust it. Pure regex marker checks, most specific first.

Usage:
    from temporal_intel.extraction.classifier import classify_input, process_ingestion_trigger

    result = classify_input(content)
    if meets_classification_threshold(result):
        ...
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from temporal_intel.logging_config import get_logger
from temporal_intel.models import SourceType
from temporal_intel.schemas import ContentIngestionTrigger, parse_trigger

logger = get_logger(__name__)

# Minimum confidence before a guessed source type is trusted
CLASSIFICATION_THRESHOLDS: dict[SourceType, float] = {
    SourceType.CALENDAR: 0.9,
    SourceType.MANUAL: 0.95,
    SourceType.EMAIL: 0.7,
    SourceType.VOICE: 0.8,
    SourceType.TEXT: 0.75,
    SourceType.DOCUMENT: 0.6,
}


# =============================================================================
# Marker Patterns
# =============================================================================

_CALENDAR_MARKERS = [
    re.compile(r"BEGIN:VCALENDAR"),
    re.compile(r"BEGIN:VEVENT"),
    re.compile(r"^DTSTART[:;]", re.M),
]
_INVITE_WHEN = re.compile(r"^\s*When:", re.M | re.I)
_INVITE_WHERE = re.compile(r"^\s*Where:", re.M | re.I)

_VOICE_MARKERS = [
    re.compile(r"\[Transcription\]", re.I),
    re.compile(r"\[Transcript\]", re.I),
    re.compile(r"^Speaker \d+:", re.M),
    re.compile(r"\bvoice memo\b", re.I),
]

_TEXT_MARKERS = [
    re.compile(r"\bMessage from:", re.I),
    re.compile(r"\bSMS from\b", re.I),
    re.compile(r"\biMessage\b", re.I),
    re.compile(r"\bText from\b", re.I),
]

_EMAIL_HEADER = re.compile(r"^(From|To|Cc|Subject|Date|Reply-To):", re.M | re.I)

# Cheap pre-gate for commitment language, no extraction
_COMMITMENT_SIGNALS = [
    re.compile(r"\b(?:I'll|I will|we'll|we will|I'm going to|we're going to)\b", re.I),
    re.compile(r"\b(?:need to|have to|must|should)\b", re.I),
    re.compile(r"\b(?:remind me|don't forget|remember to)\b", re.I),
    re.compile(
        r"\bby\s+(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday|"
        r"tomorrow|tonight|next week|the end of)\b",
        re.I,
    ),
    re.compile(r"\b(?:deadline|due)\b", re.I),
    re.compile(r"\b(?:let's|let us)\b", re.I),
]


@dataclass
class ClassificationResult:
    """Guessed provenance of a piece of content."""
    source_type: SourceType
    confidence: float
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_type": self.source_type.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


# =============================================================================
# Classification
# =============================================================================

def _is_calendar(content: str) -> bool:
    if any(p.search(content) for p in _CALENDAR_MARKERS):
        return True
    return bool(_INVITE_WHEN.search(content) and _INVITE_WHERE.search(content))


def classify_input(content: str) -> ClassificationResult:
    """Classify content by its markers. Falls back to document at low confidence."""
    if _is_calendar(content):
        return ClassificationResult(SourceType.CALENDAR, 0.95, "Contains calendar event markers")

    if any(p.search(content) for p in _VOICE_MARKERS):
        return ClassificationResult(SourceType.VOICE, 0.9, "Contains voice transcription markers")

    if any(p.search(content) for p in _TEXT_MARKERS):
        return ClassificationResult(SourceType.TEXT, 0.85, "Contains text message markers")

    header_count = len(_EMAIL_HEADER.findall(content))
    if header_count >= 2:
        return ClassificationResult(
            SourceType.EMAIL, 0.9, f"Contains {header_count} email headers"
        )
    if header_count == 1:
        return ClassificationResult(SourceType.EMAIL, 0.7, "Contains one email header")

    return ClassificationResult(SourceType.DOCUMENT, 0.5, "No specific markers found")


def process_ingestion_trigger(
    trigger: ContentIngestionTrigger | dict[str, Any],
) -> ClassificationResult:
    """
    Resolve the source type of an ingestion trigger.

    A caller-asserted source type is trusted outright. Only the generic
    "document" fallback is sent through classify_input.

    Raises:
        IngestionError: If the trigger is missing required fields.
    """
    trigger = parse_trigger(trigger)

    if trigger.source_type != SourceType.DOCUMENT:
        return ClassificationResult(
            trigger.source_type, 1.0, f"Source type provided: {trigger.source_type.value}"
        )

    result = classify_input(trigger.content)
    logger.debug(
        "source_classified",
        source_id=trigger.source_id,
        source_type=result.source_type.value,
        confidence=result.confidence,
    )
    return result


def contains_commitment_signals(text: str) -> bool:
    """Check for commitment language without running the extractor."""
    return any(p.search(text) for p in _COMMITMENT_SIGNALS)


def get_classification_threshold(source_type: SourceType | str) -> float:
    return CLASSIFICATION_THRESHOLDS[SourceType(source_type)]


def meets_classification_threshold(result: ClassificationResult) -> bool:
    return result.confidence >= get_classification_threshold(result.source_type)


__all__ = [
    "CLASSIFICATION_THRESHOLDS",
    "ClassificationResult",
    "classify_input",
    "contains_commitment_signals",
    "get_classification_threshold",
    "meets_classification_threshold",
    "process_ingestion_trigger",
]
