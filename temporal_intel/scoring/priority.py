"""
Priority Scorer

Combines four components into one score in [0, 1]:

    total = 0.4 * urgency + 0.3 * importance + 0.2 * decay + 0.1 * user_affinity

Urgency comes from the resolved due date when there is one, otherwise from
the coarse urgency bucket. Importance comes from a keyword-inferred category.
Decay rewards freshly noticed items and pushes stale ones down. Affinity is
the user's learned engagement rate for the category.

All functions are pure. Callers pass the preference snapshot they read at the
start of the scoring pass, so a learning write that lands mid-pass is picked
up on the next pass rather than half-way through this one.

Usage:
    from temporal_intel.scoring.priority import calculate_priority_score, sort_by_priority

    score = calculate_priority_score(commitment, prefs, now)
    ranked = sort_by_priority(commitments, prefs, now)
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from temporal_intel.models import (
    DEFAULT_CATEGORY_IMPORTANCE,
    Commitment,
    CommitmentCategory,
    PriorityComponents,
    PriorityScore,
    TemporalPreferences,
    TemporalReference,
    UrgencyCategory,
)

URGENCY_WEIGHT = 0.4
IMPORTANCE_WEIGHT = 0.3
DECAY_WEIGHT = 0.2
AFFINITY_WEIGHT = 0.1

DEFAULT_AFFINITY = 0.5
UNKNOWN_URGENCY = 0.3

_SECONDS_PER_DAY = 86400.0

# (days until due, urgency) bands, first band that holds wins
_DUE_DATE_BANDS = [
    (0, 1.0),
    (1, 0.95),
    (3, 0.8),
    (7, 0.65),
    (14, 0.5),
    (30, 0.35),
]
_BEYOND_BANDS = 0.1

_BUCKET_URGENCY = {
    UrgencyCategory.TODAY: 1.0,
    UrgencyCategory.TOMORROW: 0.85,
    UrgencyCategory.THIS_WEEK: 0.7,
    UrgencyCategory.THIS_MONTH: 0.4,
    UrgencyCategory.LATER: 0.1,
}

# (days since detection, decay) bands, strict upper bounds
_DECAY_BANDS = [
    (1, 1.0),
    (3, 0.7),
    (7, 0.4),
]
_STALE_DECAY = 0.1

# Ordered keyword table: first category whose pattern matches wins
CATEGORY_PATTERNS: list[tuple[CommitmentCategory, re.Pattern]] = [
    (
        CommitmentCategory.FINANCIAL,
        re.compile(r"\b(?:pay|bill|invoice|tax|bank|money|salary|payment|debt|loan)\b"),
    ),
    (
        CommitmentCategory.LEGAL,
        re.compile(r"\b(?:contract|legal|lawyer|court|lawsuit|document|sign|agreement)\b"),
    ),
    (
        CommitmentCategory.FAMILY,
        re.compile(r"\b(?:mom|dad|parent|child|kid|family|wedding|birthday|anniversary)\b"),
    ),
    (
        CommitmentCategory.HEALTH,
        re.compile(r"\b(?:doctor|hospital|medicine|health|appointment|medical|dentist|checkup)\b"),
    ),
    (
        CommitmentCategory.WORK_CLIENT,
        re.compile(r"\b(?:client|customer|deadline|deliverable|project|presentation|meeting)\b"),
    ),
    (
        CommitmentCategory.WORK_INTERNAL,
        re.compile(r"\b(?:team|standup|sync|internal|sprint|review)\b"),
    ),
    (
        CommitmentCategory.SOCIAL,
        re.compile(r"\b(?:party|dinner|lunch|drinks|hangout|friend|gathering)\b"),
    ),
    (
        CommitmentCategory.PERSONAL,
        re.compile(r"\b(?:gym|exercise|hobby|personal|self)\b"),
    ),
]


# =============================================================================
# Components
# =============================================================================

def calculate_urgency(when: TemporalReference, now: Optional[datetime] = None) -> float:
    """Urgency from a resolved date (days until due), else from the bucket."""
    now = now or datetime.now()

    if when.parsed_date:
        days_until = (when.parsed_date - now).total_seconds() / _SECONDS_PER_DAY
        for limit, urgency in _DUE_DATE_BANDS:
            if days_until <= limit:
                return urgency
        return _BEYOND_BANDS

    return _BUCKET_URGENCY.get(when.urgency_category, UNKNOWN_URGENCY)


def infer_category(commitment: Commitment) -> CommitmentCategory:
    text = f"{commitment.what} {commitment.commitment_text}".lower()
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return CommitmentCategory.UNKNOWN


def calculate_importance(
    commitment: Commitment,
    prefs: Optional[TemporalPreferences] = None,
) -> float:
    """Learned per-category weight when the user has one, else the default table."""
    category = infer_category(commitment)
    if prefs is not None and category.value in prefs.category_weights:
        return prefs.category_weights[category.value]
    return DEFAULT_CATEGORY_IMPORTANCE.get(category, 0.3)


def calculate_decay(created_at: datetime, now: Optional[datetime] = None) -> float:
    now = now or datetime.now()
    days_since = (now - created_at).total_seconds() / _SECONDS_PER_DAY
    for limit, decay in _DECAY_BANDS:
        if days_since < limit:
            return decay
    return _STALE_DECAY


def affinity_key(category: CommitmentCategory | str) -> str:
    value = category.value if isinstance(category, CommitmentCategory) else category
    return f"{value}_affinity"


def calculate_affinity(
    commitment: Commitment,
    prefs: Optional[TemporalPreferences] = None,
) -> float:
    key = affinity_key(infer_category(commitment))
    if prefs is not None and key in prefs.category_weights:
        return prefs.category_weights[key]
    return DEFAULT_AFFINITY


# =============================================================================
# Scores
# =============================================================================

def calculate_priority_score(
    commitment: Commitment,
    prefs: Optional[TemporalPreferences] = None,
    now: Optional[datetime] = None,
) -> PriorityScore:
    now = now or datetime.now()

    components = PriorityComponents(
        urgency=calculate_urgency(commitment.when, now),
        importance=calculate_importance(commitment, prefs),
        decay=calculate_decay(commitment.created_at, now),
        user_affinity=calculate_affinity(commitment, prefs),
    )
    total = (
        components.urgency * URGENCY_WEIGHT
        + components.importance * IMPORTANCE_WEIGHT
        + components.decay * DECAY_WEIGHT
        + components.user_affinity * AFFINITY_WEIGHT
    )

    return PriorityScore(
        commitment_id=commitment.id,
        total_score=round(total, 4),
        components=components,
        calculated_at=now,
    )


def calculate_priority_scores(
    commitments: list[Commitment],
    prefs: Optional[TemporalPreferences] = None,
    now: Optional[datetime] = None,
) -> list[PriorityScore]:
    now = now or datetime.now()
    return [calculate_priority_score(c, prefs, now) for c in commitments]


def sort_by_priority(
    commitments: list[Commitment],
    prefs: Optional[TemporalPreferences] = None,
    now: Optional[datetime] = None,
) -> list[tuple[Commitment, PriorityScore]]:
    """Highest score first. Equal scores keep their input order."""
    now = now or datetime.now()
    scored = [(c, calculate_priority_score(c, prefs, now)) for c in commitments]
    return sorted(scored, key=lambda pair: pair[1].total_score, reverse=True)


def filter_by_priority(
    commitments: list[Commitment],
    min_score: float,
    prefs: Optional[TemporalPreferences] = None,
    now: Optional[datetime] = None,
) -> list[Commitment]:
    return [c for c, score in sort_by_priority(commitments, prefs, now) if score.total_score >= min_score]


def get_top_priority(
    commitments: list[Commitment],
    count: int,
    prefs: Optional[TemporalPreferences] = None,
    now: Optional[datetime] = None,
) -> list[Commitment]:
    return [c for c, _ in sort_by_priority(commitments, prefs, now)[:count]]


def format_priority_breakdown(score: PriorityScore) -> str:
    c = score.components
    return (
        f"Priority: {score.total_score * 100:.0f}% "
        f"(U:{c.urgency * 100:.0f}% "
        f"I:{c.importance * 100:.0f}% "
        f"D:{c.decay * 100:.0f}% "
        f"A:{c.user_affinity * 100:.0f}%)"
    )


__all__ = [
    "AFFINITY_WEIGHT",
    "CATEGORY_PATTERNS",
    "DECAY_WEIGHT",
    "IMPORTANCE_WEIGHT",
    "URGENCY_WEIGHT",
    "affinity_key",
    "calculate_affinity",
    "calculate_decay",
    "calculate_importance",
    "calculate_priority_score",
    "calculate_priority_scores",
    "calculate_urgency",
    "filter_by_priority",
    "format_priority_breakdown",
    "get_top_priority",
    "infer_category",
    "sort_by_priority",
]
