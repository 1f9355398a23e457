"""Tests for temporal_intel/inference/dependencies.py

Key behaviors:
- The first matching archetype supplies the preparatory actions
- Deadlines are event date minus lead time, and only when still in the future
- Unmatched dated commitments get one generic action
- Status updates return new chains and leave siblings untouched
"""

from datetime import timedelta

import pytest

from temporal_intel.inference.dependencies import (
    GENERIC_ACTION,
    calculate_deadline,
    enrich_all_with_dependencies,
    format_dependency_chain,
    get_dependencies_due_soon,
    get_high_confidence_dependencies,
    get_pending_dependencies,
    infer_dependencies,
    mark_dependency_completed,
    mark_dependency_dismissed,
)
from temporal_intel.models import Dependency, DependencyChain, DependencyStatus


# ─────────────────────────────────────────────────────────────────────────────
# Deadlines
# ─────────────────────────────────────────────────────────────────────────────


class TestCalculateDeadline:
    """Tests for lead-time deadlines."""

    def test_event_minus_lead(self, now):
        event = now + timedelta(days=40)
        assert calculate_deadline(event, 30, now) == now + timedelta(days=10)

    def test_past_deadline_is_unset(self, now):
        assert calculate_deadline(now + timedelta(days=10), 30, now) is None

    def test_deadline_equal_to_now_is_unset(self, now):
        assert calculate_deadline(now + timedelta(days=7), 7, now) is None

    def test_no_event_date(self, now):
        assert calculate_deadline(None, 7, now) is None


# ─────────────────────────────────────────────────────────────────────────────
# Inference
# ─────────────────────────────────────────────────────────────────────────────


class TestInferDependencies:
    """Tests for archetype matching."""

    def test_wedding(self, make_commitment, now):
        """Should suggest booking travel 30 days before the wedding."""
        event = now + timedelta(days=40)
        commitment = make_commitment(
            what="Sarah's wedding on June 15",
            commitment_text="I'm going to Sarah's wedding on June 15",
            parsed_date=event,
        )

        chain = infer_dependencies(commitment, now)

        assert chain.primary_event == "Sarah's wedding on June 15"
        travel = next(d for d in chain.inferred_dependencies if d.action == "Book travel")
        assert travel.confidence >= 0.9
        assert travel.suggested_deadline == event - timedelta(days=30)
        assert travel.status == DependencyStatus.PENDING
        assert [d.action for d in chain.inferred_dependencies] == [
            "Book travel",
            "Book accommodation",
            "Buy wedding gift",
            "Get outfit ready",
            "RSVP",
        ]

    def test_close_event_leaves_long_leads_unset(self, make_commitment, now):
        event = now + timedelta(days=10)
        chain = infer_dependencies(make_commitment(what="the wedding", parsed_date=event), now)

        deadlines = {d.action: d.suggested_deadline for d in chain.inferred_dependencies}
        assert deadlines["Book travel"] is None
        assert deadlines["Get outfit ready"] == event - timedelta(days=7)

    def test_first_archetype_wins(self, make_commitment, now):
        """Should use the wedding table even when 'travel' also appears."""
        chain = infer_dependencies(make_commitment(what="travel to the wedding"), now)
        assert chain.inferred_dependencies[0].action == "Book travel"
        assert len(chain.inferred_dependencies) == 5

    @pytest.mark.parametrize(
        "what,first_action",
        [
            ("present at the tech conference", "Book travel"),
            ("the family vacation", "Book flights"),
            ("prepare for the pitch", "Prepare materials"),
            ("hit the grant deadline", "Review requirements"),
            ("dad's birthday", "Buy gift"),
            ("the dentist appointment", "Prepare insurance info"),
            ("the job interview", "Research company"),
            ("the certification exam", "Study materials"),
        ],
    )
    def test_archetypes(self, make_commitment, now, what, first_action):
        chain = infer_dependencies(make_commitment(what=what, commitment_text=what), now)
        assert chain.inferred_dependencies[0].action == first_action

    def test_generic_for_unmatched_dated(self, make_commitment, now):
        event = now + timedelta(days=5)
        chain = infer_dependencies(make_commitment(what="water the plants", parsed_date=event), now)

        assert len(chain.inferred_dependencies) == 1
        generic = chain.inferred_dependencies[0]
        assert generic.action == GENERIC_ACTION
        assert generic.confidence == 0.5
        assert generic.suggested_deadline == event - timedelta(days=1)

    def test_empty_for_unmatched_undated(self, make_commitment, now):
        chain = infer_dependencies(make_commitment(what="water the plants"), now)
        assert chain.inferred_dependencies == []

    def test_undated_archetype_has_no_deadlines(self, make_commitment, now):
        chain = infer_dependencies(make_commitment(what="the job interview"), now)
        assert all(d.suggested_deadline is None for d in chain.inferred_dependencies)


# ─────────────────────────────────────────────────────────────────────────────
# Chain Queries / Updates
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def chain(now):
    return DependencyChain(
        primary_event="Conference",
        inferred_dependencies=[
            Dependency("Book travel", 0.9, now + timedelta(days=3)),
            Dependency("Register", 0.85, now + timedelta(days=10)),
            Dependency("Prepare talk", 0.6, None),
        ],
    )


class TestChainQueries:
    """Tests for filtering a chain."""

    def test_high_confidence(self, chain):
        assert [d.action for d in get_high_confidence_dependencies(chain)] == ["Book travel", "Register"]
        assert len(get_high_confidence_dependencies(chain, 0.5)) == 3

    def test_due_soon(self, chain, now):
        assert [d.action for d in get_dependencies_due_soon(chain, now=now)] == ["Book travel"]
        assert len(get_dependencies_due_soon(chain, within_days=14, now=now)) == 2

    def test_pending(self, chain):
        updated = mark_dependency_completed(chain, "Register")
        assert [d.action for d in get_pending_dependencies(updated)] == ["Book travel", "Prepare talk"]


class TestChainUpdates:
    """Tests for immutable status updates."""

    def test_completed_returns_new_chain(self, chain):
        updated = mark_dependency_completed(chain, "Book travel")

        assert updated is not chain
        assert updated.inferred_dependencies[0].status == DependencyStatus.COMPLETED
        assert chain.inferred_dependencies[0].status == DependencyStatus.PENDING

    def test_siblings_and_primary_untouched(self, chain):
        updated = mark_dependency_dismissed(chain, "Register")

        assert updated.primary_event == chain.primary_event
        assert updated.inferred_dependencies[0] == chain.inferred_dependencies[0]
        assert updated.inferred_dependencies[1].status == DependencyStatus.DISMISSED
        assert updated.inferred_dependencies[2] == chain.inferred_dependencies[2]

    def test_unknown_action_changes_nothing(self, chain):
        assert mark_dependency_completed(chain, "Nope") == chain

    def test_format(self, chain, now):
        text = format_dependency_chain(mark_dependency_completed(chain, "Register"))

        assert text.splitlines() == [
            "Dependencies for: Conference",
            "  - Book travel (by 2026-02-07) [90%] [pending]",
            "  - Register (by 2026-02-14) [85%] [completed]",
            "  - Prepare talk [60%] [pending]",
        ]


class TestEnrichment:
    def test_enrich_all(self, make_commitment, now):
        commitments = [make_commitment(what="the job interview"), make_commitment(what="water the plants")]

        enriched = enrich_all_with_dependencies(commitments, now)

        assert enriched[0].dependencies.inferred_dependencies[0].action == "Research company"
        assert enriched[1].dependencies.inferred_dependencies == []
        assert commitments[0].dependencies is None
