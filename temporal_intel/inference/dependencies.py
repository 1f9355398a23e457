"""
Dependency Inference

Works out the preparatory sub-tasks a commitment implies. A wedding means
travel and a gift; an interview means research and an outfit. Archetypes are
a plain ordered table, first keyword match wins.

Each suggested deadline is the event date minus the lead time. A deadline
that would not land strictly after the computation instant is left unset
instead of showing up overdue on arrival.

Usage:
    from temporal_intel.inference.dependencies import infer_dependencies, format_dependency_chain

    chain = infer_dependencies(commitment, now=now)
    print(format_dependency_chain(chain))
"""

from __future__ import annotations

import dataclasses
import re
from datetime import datetime, timedelta
from typing import Optional

from temporal_intel.models import (
    Commitment,
    Dependency,
    DependencyChain,
    DependencyStatus,
)

DEFAULT_MIN_CONFIDENCE = 0.7
DEFAULT_DUE_SOON_DAYS = 7

GENERIC_ACTION = "Prepare for this"
GENERIC_CONFIDENCE = 0.5
GENERIC_LEAD_DAYS = 1

# (keywords, [(action, confidence, lead days)]), checked top to bottom
ARCHETYPES: list[tuple[re.Pattern, list[tuple[str, float, int]]]] = [
    (
        re.compile(r"\b(?:wedding|wedding ceremony)\b", re.I),
        [
            ("Book travel", 0.95, 30),
            ("Book accommodation", 0.9, 30),
            ("Buy wedding gift", 0.85, 14),
            ("Get outfit ready", 0.8, 7),
            ("RSVP", 0.95, 21),
        ],
    ),
    (
        re.compile(r"\b(?:conference|summit|convention)\b", re.I),
        [
            ("Book travel", 0.9, 21),
            ("Book hotel", 0.9, 21),
            ("Register for conference", 0.85, 14),
            ("Prepare presentation", 0.6, 7),
        ],
    ),
    (
        re.compile(r"\b(?:vacation|trip|holiday|travel)\b", re.I),
        [
            ("Book flights", 0.85, 30),
            ("Book accommodation", 0.85, 21),
            ("Pack bags", 0.95, 1),
            ("Arrange pet/plant care", 0.5, 7),
            ("Request time off", 0.7, 14),
        ],
    ),
    (
        re.compile(r"\b(?:meeting|presentation|pitch)\b", re.I),
        [
            ("Prepare materials", 0.9, 3),
            ("Review agenda", 0.7, 1),
            ("Send calendar invite", 0.6, 7),
        ],
    ),
    (
        re.compile(r"\b(?:deadline|deliverable|submission)\b", re.I),
        [
            ("Review requirements", 0.8, 7),
            ("Complete first draft", 0.7, 3),
            ("Get feedback", 0.6, 2),
            ("Final review", 0.9, 1),
        ],
    ),
    (
        re.compile(r"\b(?:birthday|anniversary)\b", re.I),
        [
            ("Buy gift", 0.85, 7),
            ("Make reservation", 0.6, 7),
            ("Send card", 0.7, 5),
        ],
    ),
    (
        re.compile(r"\b(?:doctor|dentist|medical|checkup|appointment)\b", re.I),
        [
            ("Prepare insurance info", 0.7, 1),
            ("Fast if required", 0.4, 1),
            ("List symptoms/questions", 0.6, 1),
        ],
    ),
    (
        re.compile(r"\b(?:interview|job interview)\b", re.I),
        [
            ("Research company", 0.9, 3),
            ("Prepare answers", 0.85, 2),
            ("Prepare outfit", 0.8, 1),
            ("Print resume copies", 0.7, 1),
        ],
    ),
    (
        re.compile(r"\b(?:exam|test|certification)\b", re.I),
        [
            ("Study materials", 0.95, 14),
            ("Practice tests", 0.8, 7),
            ("Rest before exam", 0.7, 1),
        ],
    ),
]


def calculate_deadline(
    event_date: Optional[datetime],
    lead_days: int,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Event date minus lead time, or None when that is not after now."""
    if event_date is None:
        return None

    deadline = event_date - timedelta(days=lead_days)
    if deadline <= (now or datetime.now()):
        return None
    return deadline


def infer_dependencies(commitment: Commitment, now: Optional[datetime] = None) -> DependencyChain:
    now = now or datetime.now()
    text = f"{commitment.what} {commitment.commitment_text}"
    event_date = commitment.when.parsed_date
    dependencies = []

    for keywords, templates in ARCHETYPES:
        if keywords.search(text):
            dependencies = [
                Dependency(
                    action=action,
                    confidence=confidence,
                    suggested_deadline=calculate_deadline(event_date, lead_days, now),
                )
                for action, confidence, lead_days in templates
            ]
            break

    if not dependencies and event_date is not None:
        dependencies = [
            Dependency(
                action=GENERIC_ACTION,
                confidence=GENERIC_CONFIDENCE,
                suggested_deadline=calculate_deadline(event_date, GENERIC_LEAD_DAYS, now),
            )
        ]

    return DependencyChain(primary_event=commitment.what, inferred_dependencies=dependencies)


# =============================================================================
# Chain queries
# =============================================================================

def get_high_confidence_dependencies(
    chain: DependencyChain,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> list[Dependency]:
    return [d for d in chain.inferred_dependencies if d.confidence >= min_confidence]


def get_dependencies_due_soon(
    chain: DependencyChain,
    within_days: int = DEFAULT_DUE_SOON_DAYS,
    now: Optional[datetime] = None,
) -> list[Dependency]:
    cutoff = (now or datetime.now()) + timedelta(days=within_days)
    return [
        d for d in chain.inferred_dependencies
        if d.suggested_deadline is not None and d.suggested_deadline <= cutoff
    ]


def get_pending_dependencies(chain: DependencyChain) -> list[Dependency]:
    return [d for d in chain.inferred_dependencies if d.status == DependencyStatus.PENDING]


# =============================================================================
# Chain updates (return new chains, the input is left untouched)
# =============================================================================

def _with_status(chain: DependencyChain, action: str, status: DependencyStatus) -> DependencyChain:
    return DependencyChain(
        primary_event=chain.primary_event,
        inferred_dependencies=[
            dataclasses.replace(d, status=status) if d.action == action else dataclasses.replace(d)
            for d in chain.inferred_dependencies
        ],
    )


def mark_dependency_completed(chain: DependencyChain, action: str) -> DependencyChain:
    return _with_status(chain, action, DependencyStatus.COMPLETED)


def mark_dependency_dismissed(chain: DependencyChain, action: str) -> DependencyChain:
    return _with_status(chain, action, DependencyStatus.DISMISSED)


def format_dependency_chain(chain: DependencyChain) -> str:
    lines = [f"Dependencies for: {chain.primary_event}"]
    for dep in chain.inferred_dependencies:
        deadline = f" (by {dep.suggested_deadline.date().isoformat()})" if dep.suggested_deadline else ""
        lines.append(
            f"  - {dep.action}{deadline} [{round(dep.confidence * 100)}%] [{dep.status.value}]"
        )
    return "\n".join(lines)


def enrich_with_dependencies(commitment: Commitment, now: Optional[datetime] = None) -> Commitment:
    """Copy of the commitment with its inferred dependency chain attached."""
    return dataclasses.replace(commitment, dependencies=infer_dependencies(commitment, now))


def enrich_all_with_dependencies(
    commitments: list[Commitment],
    now: Optional[datetime] = None,
) -> list[Commitment]:
    now = now or datetime.now()
    return [enrich_with_dependencies(c, now) for c in commitments]


__all__ = [
    "ARCHETYPES",
    "calculate_deadline",
    "enrich_all_with_dependencies",
    "enrich_with_dependencies",
    "format_dependency_chain",
    "get_dependencies_due_soon",
    "get_high_confidence_dependencies",
    "get_pending_dependencies",
    "infer_dependencies",
    "mark_dependency_completed",
    "mark_dependency_dismissed",
]
