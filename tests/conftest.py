"""Shared test fixtures for Temporal Intelligence tests.

This module provides common fixtures used across all test modules:
- Store and config isolation (fresh MemoryStore, built-in defaults)
- A fixed evaluation instant
- Commitment and priority score factories

Usage:
    def test_something(store, now, make_commitment):
        commitment = make_commitment(what="send the report")
        ...
"""

from collections.abc import Callable, Generator
from datetime import datetime
from pathlib import Path

import pytest

from temporal_intel.config_models import reset_global_config
from temporal_intel.models import (
    Commitment,
    CommitmentSource,
    PriorityComponents,
    PriorityScore,
    SourceType,
    TemporalPreferences,
    TemporalReference,
    UrgencyCategory,
)
from temporal_intel.store import MemoryStore, set_store


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE_DIR = PROJECT_ROOT / "temporal_intel"


# ─────────────────────────────────────────────────────────────────────────────
# Isolation Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def store() -> Generator[MemoryStore, None, None]:
    """Fresh in-memory store installed as the process default.

    Config is reset to the built-in defaults so args/temporal.yaml never
    leaks into a test.
    """
    reset_global_config()
    fresh = MemoryStore()
    set_store(fresh)

    yield fresh

    set_store(None)
    reset_global_config()


# ─────────────────────────────────────────────────────────────────────────────
# Time Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation instant: Wednesday 2026-02-04 10:00 (local, naive)."""
    return datetime(2026, 2, 4, 10, 0)


# ─────────────────────────────────────────────────────────────────────────────
# User Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_user_id() -> str:
    """Standard test user ID."""
    return "test_user_123"


@pytest.fixture
def prefs(mock_user_id: str) -> TemporalPreferences:
    """Default preferences for the test user."""
    return TemporalPreferences(user_id=mock_user_id)


# ─────────────────────────────────────────────────────────────────────────────
# Commitment Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def make_commitment(mock_user_id: str, now: datetime) -> Callable[..., Commitment]:
    """Factory for commitments with sensible defaults.

    Any Commitment field can be overridden; temporal fields are passed
    flat (parsed_date, urgency_category, raw_text, is_vague).
    """

    def _make(
        what: str = "send the report",
        commitment_text: str | None = None,
        who: str = "user",
        parsed_date: datetime | None = None,
        urgency_category: UrgencyCategory = UrgencyCategory.LATER,
        raw_text: str = "",
        is_vague: bool = False,
        confidence: float = 0.8,
        created_at: datetime | None = None,
        user_id: str | None = mock_user_id,
        id: str | None = None,
    ) -> Commitment:
        return Commitment(
            id=id or Commitment.generate_id(),
            user_id=user_id,
            commitment_text=commitment_text or f"I'll {what}",
            who=who,
            what=what,
            when=TemporalReference(
                raw_text=raw_text,
                parsed_date=parsed_date,
                is_vague=is_vague,
                urgency_category=urgency_category,
            ),
            source=CommitmentSource(type=SourceType.MANUAL, source_id="test", extracted_at=now),
            confidence=confidence,
            reasoning="test fixture",
            created_at=created_at or now,
        )

    return _make


@pytest.fixture
def make_score(now: datetime) -> Callable[..., PriorityScore]:
    """Factory for priority scores with explicit components."""

    def _make(
        commitment_id: str,
        total: float,
        urgency: float = 0.5,
        importance: float = 0.5,
        decay: float = 1.0,
        user_affinity: float = 0.5,
    ) -> PriorityScore:
        return PriorityScore(
            commitment_id=commitment_id,
            total_score=total,
            components=PriorityComponents(urgency, importance, decay, user_affinity),
            calculated_at=now,
        )

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Sample Content
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def sample_email() -> str:
    """Email with two commitments and a past-tense sentence."""
    return (
        "From: sarah@example.com\n"
        "To: me@example.com\n"
        "Subject: Quarterly report\n"
        "\n"
        "Thanks for the call yesterday.\n"
        "I'll send the report by Friday.\n"
        "We need to book the venue for the offsite next month.\n"
        "I already sent the invoice last week."
    )
