"""
Commitment Extractor

Pattern-matches sentences into structured commitments: who is responsible,
what the action is, and when it is due. No LLM involved; every decision is a
regex in one of the ordered tables below, first match wins.

Usage:
    from temporal_intel.extraction.extractor import extract_commitments, merge_commitments

    source = CommitmentSource(type=SourceType.EMAIL, source_id="msg-1")
    commitments = merge_commitments(extract_commitments(content, source, user_id="alice"))

Misses and low-confidence candidates are not errors. They are dropped and
logged at debug level so the pattern tables can be improved later.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta
from typing import Optional

from temporal_intel.logging_config import get_logger
from temporal_intel.models import (
    Commitment,
    CommitmentSource,
    TemporalReference,
    UrgencyCategory,
)

logger = get_logger(__name__)

MIN_WHAT_LENGTH = 5
MIN_EXTRACTION_CONFIDENCE = 0.3
FINGERPRINT_LENGTH = 20

_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]
_WEEKDAY_ALT = "|".join(_WEEKDAYS)
_MONTH_ALT = "|".join(_MONTHS)


# =============================================================================
# Pattern Tables
# =============================================================================

# Urgency buckets, checked top to bottom
_URGENCY_PATTERNS: list[tuple[UrgencyCategory, re.Pattern]] = [
    (UrgencyCategory.TODAY, re.compile(r"\b(?:today|tonight|this evening)\b", re.I)),
    (UrgencyCategory.TOMORROW, re.compile(r"\btomorrow\b", re.I)),
    (
        UrgencyCategory.THIS_WEEK,
        re.compile(rf"\b(?:this week|next few days|by (?:{_WEEKDAY_ALT}))\b", re.I),
    ),
    (
        UrgencyCategory.THIS_MONTH,
        re.compile(
            r"\b(?:this month|next week|by the end of the month|within the month)\b", re.I
        ),
    ),
]

_VAGUE_PATTERNS = [
    re.compile(r"\bsoon\b", re.I),
    re.compile(r"\blater\b", re.I),
    re.compile(r"\bsometime\b", re.I),
    re.compile(r"\beventually\b", re.I),
    re.compile(r"\bnext week\b", re.I),
    re.compile(r"\bnext month\b", re.I),
    re.compile(r"\bwhen I get a chance\b", re.I),
    re.compile(r"\bwhen possible\b", re.I),
]

# Temporal phrases, most specific first. The first hit becomes raw_text.
_TEMPORAL_PHRASES = [
    re.compile(rf"\b(?:by |on )?(?:{_MONTH_ALT})\s+\d{{1,2}}(?:,?\s*\d{{4}})?\b", re.I),
    re.compile(
        rf"\bby\s+(?:the end of (?:the )?(?:day|week|month)|next week|tomorrow|tonight|"
        rf"{_WEEKDAY_ALT})\b",
        re.I,
    ),
    re.compile(rf"\b(?:next\s+|on\s+|this\s+)?(?:{_WEEKDAY_ALT})\b", re.I),
    re.compile(r"\bin\s+\d+\s+(?:days?|weeks?|months?)\b", re.I),
    re.compile(
        r"\b(?:today|tonight|this evening|tomorrow|this week|next few days|this month|"
        r"next week|next month|within the month|(?:the )?end of the month)\b",
        re.I,
    ),
    re.compile(r"\b(?:soon|later|sometime|eventually|when I get a chance|when possible)\b", re.I),
]

_MONTH_DAY = re.compile(rf"\b({_MONTH_ALT})\s+(\d{{1,2}})(?:,?\s*(\d{{4}}))?\b", re.I)
_WEEKDAY = re.compile(rf"\b(next\s+)?({_WEEKDAY_ALT})\b", re.I)
_TOMORROW = re.compile(r"\btomorrow\b", re.I)
_RELATIVE = re.compile(r"\bin\s+(\d+)\s+(days?|weeks?|months?)\b", re.I)

# Commitment language, first match wins and its name goes into the reasoning
COMMITMENT_PATTERNS: list[tuple[str, re.Pattern]] = [
    (
        "will_do",
        re.compile(
            r"\b(?:I'll|I will|we'll|we will|I'm going to|we're going to)\s+(.+?)(?:[.,]|$)",
            re.I,
        ),
    ),
    (
        "by_date",
        re.compile(
            rf"\b(.+?)\s+by\s+(?:{_WEEKDAY_ALT}|tomorrow|next week|the end of|[a-z]+ \d{{1,2}})",
            re.I,
        ),
    ),
    (
        "need_to",
        re.compile(r"\b(?:I |we )?(?:need to|have to|must|should)\s+(.+?)(?:[.,]|$)", re.I),
    ),
    ("scheduled", re.compile(r"\b(?:meeting|call|appointment)\s+(?:on|at)\s+(.+?)(?:[.,]|$)", re.I)),
    (
        "reminder",
        re.compile(r"\b(?:remind me to|don't forget to|remember to)\s+(.+?)(?:[.,]|$)", re.I),
    ),
    ("lets_do", re.compile(r"\b(?:let's|let us)\s+(.+?)(?:[.,]|$)", re.I)),
]

# Prefixes stripped from the action text, in order
_WHAT_PREFIXES = [
    re.compile(r"\b(?:I'll|I will|we'll|we will|I'm going to|we're going to)\b\s*", re.I),
    re.compile(r"\b(?:I |we )?(?:need to|have to|must|should)\b\s*", re.I),
    re.compile(r"\b(?:remind me to|don't forget to|remember to)\b\s*", re.I),
    re.compile(r"\b(?:let's|let us)\b\s*", re.I),
]
_WHAT_DEADLINE_SUFFIX = re.compile(
    rf"\s+by\s+(?:{_WEEKDAY_ALT}|tomorrow|next week|the end of|[a-z]+ \d{{1,2}}).*$", re.I
)
_TRAILING_PUNCTUATION = re.compile(r"[.,!?]+$")

_WHO_SINGULAR = re.compile(r"\b(?:I(?:'ll| will|'m going)|my)\b")
_WHO_PLURAL = re.compile(r"\b(?:[Ww]e(?:'ll| will|'re going)|[Oo]ur)\b")
_WHO_NAMED = re.compile(r"\b([A-Z][a-z]+)(?:\s+will|\s+is going to|'ll)\b")

_CLEAR_COMMITMENT = re.compile(r"\b(?:I'll|will|must|need to|have to)\b", re.I)

_SENTENCE_SPLIT = re.compile(r"[.!?\n]+")


# =============================================================================
# Temporal Reference
# =============================================================================

def determine_urgency_category(text: str) -> UrgencyCategory:
    for category, pattern in _URGENCY_PATTERNS:
        if pattern.search(text):
            return category
    return UrgencyCategory.LATER


def is_vague_reference(text: str) -> bool:
    return any(p.search(text) for p in _VAGUE_PATTERNS)


def find_temporal_phrase(text: str) -> str:
    """Return the most specific temporal phrase in text, or "" when there is none."""
    for pattern in _TEMPORAL_PHRASES:
        match = pattern.search(text)
        if match:
            return match.group(0).strip()
    return ""


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def parse_date(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Resolve a temporal phrase to an absolute date.

    Handles "June 15" / "June 15, 2027", "[next] Monday", "tomorrow" and
    "in N days/weeks/months". Anything else, including impossible dates
    such as "February 30", returns None rather than raising.
    """
    now = now or datetime.now()

    month_match = _MONTH_DAY.search(text)
    if month_match:
        month = _MONTHS.index(month_match.group(1).lower()) + 1
        day = int(month_match.group(2))
        year = int(month_match.group(3)) if month_match.group(3) else now.year
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    day_match = _WEEKDAY.search(text)
    if day_match:
        target = _WEEKDAYS.index(day_match.group(2).lower())
        days_ahead = target - now.weekday()
        if days_ahead <= 0 or day_match.group(1):
            days_ahead += 7
        return now + timedelta(days=days_ahead)

    if _TOMORROW.search(text):
        return now + timedelta(days=1)

    relative = _RELATIVE.search(text)
    if relative:
        amount = int(relative.group(1))
        unit = relative.group(2).lower()
        if unit.startswith("day"):
            return now + timedelta(days=amount)
        if unit.startswith("week"):
            return now + timedelta(weeks=amount)
        return _add_months(now, amount)

    return None


def extract_temporal_reference(text: str, now: Optional[datetime] = None) -> TemporalReference:
    """Build a TemporalReference for a sentence. The bucket and vagueness look at the whole sentence."""
    return TemporalReference(
        raw_text=find_temporal_phrase(text),
        parsed_date=parse_date(text, now),
        is_vague=is_vague_reference(text),
        urgency_category=determine_urgency_category(text),
    )


# =============================================================================
# Who / What
# =============================================================================

def extract_who(text: str) -> str:
    if _WHO_SINGULAR.search(text):
        return "user"

    if _WHO_PLURAL.search(text):
        return "user + others"

    name_match = _WHO_NAMED.search(text)
    if name_match:
        return name_match.group(1)

    return "user"


def extract_what(text: str) -> str:
    """Strip commitment language and any trailing "by <when>" from a sentence."""
    action = text
    for prefix in _WHAT_PREFIXES:
        action = prefix.sub("", action, count=1)
    action = action.strip()

    action = _WHAT_DEADLINE_SUFFIX.sub("", action)
    action = _TRAILING_PUNCTUATION.sub("", action)
    return action.strip()


def calculate_extraction_confidence(
    text: str,
    who: str,
    what: str,
    when: TemporalReference,
) -> float:
    confidence = 0.0

    if who:
        confidence += 0.2
    if what and len(what) > MIN_WHAT_LENGTH:
        confidence += 0.3
    if when.raw_text:
        confidence += 0.2

    # Resolved, specific date
    if not when.is_vague and when.parsed_date:
        confidence += 0.15

    # Unambiguous commitment language
    if _CLEAR_COMMITMENT.search(text):
        confidence += 0.15

    return min(1.0, round(confidence, 4))


def match_commitment_pattern(sentence: str) -> Optional[str]:
    """Name of the first commitment pattern the sentence matches."""
    for name, pattern in COMMITMENT_PATTERNS:
        if pattern.search(sentence):
            return name
    return None


# =============================================================================
# Extraction
# =============================================================================

def split_sentences(content: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(content) if s.strip()]


def extract_commitments(
    content: str,
    source: CommitmentSource,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[Commitment]:
    """
    Extract commitments from free text, one candidate per sentence.

    Args:
        content: Raw text (email body, transcript, note...)
        source: Provenance recorded on every commitment
        user_id: Owner of the extracted commitments
        now: Evaluation instant used for relative dates

    Returns:
        Commitments that passed the length and confidence floors
    """
    now = now or datetime.now()
    commitments = []

    for sentence in split_sentences(content):
        pattern_name = match_commitment_pattern(sentence)
        if pattern_name is None:
            continue

        who = extract_who(sentence)
        what = extract_what(sentence)
        when = extract_temporal_reference(sentence, now)
        confidence = calculate_extraction_confidence(sentence, who, what, when)

        if len(what) < MIN_WHAT_LENGTH:
            logger.debug(
                "commitment_candidate_rejected",
                sentence=sentence,
                pattern=pattern_name,
                reason="action_too_short",
            )
            continue
        if confidence < MIN_EXTRACTION_CONFIDENCE:
            logger.debug(
                "commitment_candidate_rejected",
                sentence=sentence,
                pattern=pattern_name,
                reason="low_confidence",
                confidence=confidence,
            )
            continue

        commitments.append(
            Commitment(
                id=Commitment.generate_id(),
                user_id=user_id,
                commitment_text=sentence,
                who=who,
                what=what,
                when=when,
                source=source,
                confidence=confidence,
                reasoning=(
                    f"Matched {pattern_name} pattern. Who: {who}, "
                    f"What: {what[:30]}..., When: {when.raw_text or 'unspecified'}"
                ),
                created_at=now,
            )
        )

    return commitments


def _fingerprint(commitment: Commitment) -> str:
    return f"{commitment.who}:{commitment.what.lower()[:FINGERPRINT_LENGTH]}"


def merge_commitments(commitments: list[Commitment]) -> list[Commitment]:
    """Collapse near-duplicates, keeping the higher-confidence record in first-seen position."""
    merged: list[Commitment] = []
    positions: dict[str, int] = {}

    for commitment in commitments:
        key = _fingerprint(commitment)
        if key not in positions:
            positions[key] = len(merged)
            merged.append(commitment)
        elif commitment.confidence > merged[positions[key]].confidence:
            merged[positions[key]] = commitment

    return merged


__all__ = [
    "COMMITMENT_PATTERNS",
    "calculate_extraction_confidence",
    "determine_urgency_category",
    "extract_commitments",
    "extract_temporal_reference",
    "extract_what",
    "extract_who",
    "find_temporal_phrase",
    "is_vague_reference",
    "match_commitment_pattern",
    "merge_commitments",
    "parse_date",
    "split_sentences",
]
