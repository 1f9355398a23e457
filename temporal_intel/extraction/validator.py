"""
Commitment Validator

Second, stricter pass over extracted commitments. Classifies the temporal
framing (past / hypothetical / future), rejects what is not actionable and
blends four independent signals into an overall confidence:

    hedging      self-doubt phrases in the extractor's reasoning trace
    schema       fraction of {who, what, temporal text, resolved date} present
    retrieval    0.85 when an external grounding lookup matched, else 0.40
    judge        the framing-adjusted confidence

Usage:
    from temporal_intel.extraction.validator import validate_commitments, filter_actionable

    results = validate_commitments(commitments, retrieval_matches={"comm_abc": True})
"""

from __future__ import annotations

import re
from typing import Optional

from temporal_intel.models import Commitment, TimeReference, ValidationResult

MIN_HYPOTHETICAL_CONFIDENCE = 0.7

RETRIEVAL_MATCH_SCORE = 0.85
RETRIEVAL_MISS_SCORE = 0.40

HEDGING_WEIGHT = 0.25
SCHEMA_WEIGHT = 0.25
RETRIEVAL_WEIGHT = 0.25
JUDGE_WEIGHT = 0.25

_PAST_PATTERNS = [
    re.compile(r"\b(?:did|was|were|had|went|sent|met|finished|completed)\b", re.I),
    re.compile(r"\b(?:yesterday|last week|last month)\b", re.I),
    re.compile(r"\b(?:already|previously)\b", re.I),
]

_HYPOTHETICAL_PATTERNS = [
    re.compile(r"\b(?:would|could|might|may|if)\b", re.I),
    re.compile(r"\b(?:perhaps|maybe|possibly)\b", re.I),
    re.compile(r"\b(?:thinking about|considering)\b", re.I),
]

_HEDGING = re.compile(r"might be|possibly|not sure|unclear|maybe|could be", re.I)


def determine_time_reference(text: str) -> TimeReference:
    if any(p.search(text) for p in _PAST_PATTERNS):
        return TimeReference.PAST

    if any(p.search(text) for p in _HYPOTHETICAL_PATTERNS):
        return TimeReference.HYPOTHETICAL

    return TimeReference.FUTURE


def is_actionable(commitment: Commitment) -> bool:
    if not commitment.what or len(commitment.what) < 5:
        return False

    time_reference = determine_time_reference(commitment.commitment_text)
    if time_reference == TimeReference.PAST:
        return False

    if (
        time_reference == TimeReference.HYPOTHETICAL
        and commitment.confidence < MIN_HYPOTHETICAL_CONFIDENCE
    ):
        return False

    return True


def _has_specific_date(commitment: Commitment) -> bool:
    return bool(commitment.when and not commitment.when.is_vague and commitment.when.parsed_date)


def validate_commitment(commitment: Commitment) -> ValidationResult:
    time_reference = determine_time_reference(commitment.commitment_text)
    actionable = is_actionable(commitment)

    adjusted = commitment.confidence
    if time_reference == TimeReference.HYPOTHETICAL:
        adjusted *= 0.7
    elif time_reference == TimeReference.PAST:
        adjusted *= 0.1
    elif _has_specific_date(commitment):
        adjusted = min(1.0, adjusted * 1.2)

    if not actionable:
        if time_reference == TimeReference.PAST:
            reasoning = "Commitment refers to past event, not actionable"
        elif time_reference == TimeReference.HYPOTHETICAL and len(commitment.what or "") >= 5:
            reasoning = "Commitment is hypothetical with low confidence"
        else:
            reasoning = "Commitment lacks clear actionable content"
    else:
        detail = "detailed" if len(commitment.what) > 30 else "brief"
        reasoning = f"Commitment validated as {time_reference.value} with {detail} action"

    return ValidationResult(
        is_actionable=actionable,
        time_reference=time_reference,
        adjusted_confidence=round(adjusted, 4),
        judge_reasoning=reasoning,
    )


# =============================================================================
# Composite confidence
# =============================================================================

def calculate_hedging_score(reasoning: str) -> float:
    """1.0 for confident reasoning, minus 0.15 per hedging phrase, floored at 0."""
    matches = len(_HEDGING.findall(reasoning or ""))
    return max(0.0, round(1.0 - matches * 0.15, 4))


def calculate_schema_completeness(commitment: Commitment) -> float:
    score = 0.0
    if commitment.who and commitment.who.strip():
        score += 0.25
    if commitment.what and commitment.what.strip():
        score += 0.25
    if commitment.when and commitment.when.raw_text:
        score += 0.25
    if _has_specific_date(commitment):
        score += 0.25
    return score


def calculate_overall_confidence(
    commitment: Commitment,
    validation: ValidationResult,
    retrieval_match: bool,
) -> float:
    hedging = calculate_hedging_score(commitment.reasoning)
    schema = calculate_schema_completeness(commitment)
    retrieval = RETRIEVAL_MATCH_SCORE if retrieval_match else RETRIEVAL_MISS_SCORE
    judge = validation.adjusted_confidence

    return round(
        hedging * HEDGING_WEIGHT
        + schema * SCHEMA_WEIGHT
        + retrieval * RETRIEVAL_WEIGHT
        + judge * JUDGE_WEIGHT,
        4,
    )


def validate_commitments(
    commitments: list[Commitment],
    retrieval_matches: Optional[dict[str, bool]] = None,
) -> dict[str, ValidationResult]:
    """Validate a batch. Results are keyed by commitment id and carry overall_confidence."""
    retrieval_matches = retrieval_matches or {}
    results = {}

    for commitment in commitments:
        validation = validate_commitment(commitment)
        validation.overall_confidence = calculate_overall_confidence(
            commitment,
            validation,
            retrieval_matches.get(commitment.id, False),
        )
        results[commitment.id] = validation

    return results


def filter_actionable(commitments: list[Commitment]) -> list[Commitment]:
    return [c for c in commitments if validate_commitment(c).is_actionable]


def filter_by_confidence(commitments: list[Commitment], min_confidence: float) -> list[Commitment]:
    """Keep commitments whose framing-adjusted confidence reaches min_confidence."""
    return [c for c in commitments if validate_commitment(c).adjusted_confidence >= min_confidence]


__all__ = [
    "calculate_hedging_score",
    "calculate_overall_confidence",
    "calculate_schema_completeness",
    "determine_time_reference",
    "filter_actionable",
    "filter_by_confidence",
    "is_actionable",
    "validate_commitment",
    "validate_commitments",
]
