"""
Integration tests for temporal_intel/service.py.

Runs the engine end to end over an in-memory store:
- ingestion through extraction, validation and dependency inference
- evaluation against the shared daily budget
- digests, outcome recording and the learning loop
"""

from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from temporal_intel.budget.manager import budget_key
from temporal_intel.models import (
    CommitmentCategory,
    CommitmentStatus,
    DependencyStatus,
    EngagementType,
    ExplicitFeedback,
    InterruptAction,
    NotificationType,
    UrgencyCategory,
)
from temporal_intel.preferences.settings import set_evening_review, set_quiet_hours
from temporal_intel.schemas import FeedbackRequest, IngestionError
from temporal_intel.service import CommitmentNotFoundError


# ─────────────────────────────────────────────────────────────────────────────
# Ingestion
# ─────────────────────────────────────────────────────────────────────────────


class TestIngest:
    """Tests for the ingestion pipeline."""

    def test_email_yields_actionable_commitments(self, engine, now, mock_user_id, sample_email):
        stored = engine.ingest(
            {
                "user_id": mock_user_id,
                "source_type": "email",
                "source_id": "msg-42",
                "content": sample_email,
                "received_at": now.isoformat(),
            }
        )

        assert {c.what for c in stored} == {
            "send the report",
            "book the venue for the offsite next month",
        }
        assert all(c.validated for c in stored)
        assert all(c.dependencies is not None for c in stored)
        assert {c.id for c in engine.list_commitments(mock_user_id)} == {c.id for c in stored}

    def test_dated_commitment_gets_generic_dependency(self, engine, now, mock_user_id):
        stored = engine.ingest(
            {
                "user_id": mock_user_id,
                "source_id": "note-1",
                "content": "I'll send the report by Friday.",
            },
            now=now,
        )

        assert len(stored) == 1
        report = stored[0]
        assert report.when.parsed_date == now + timedelta(days=2)
        assert [d.action for d in report.dependencies.inferred_dependencies] == ["Prepare for this"]

    def test_offset_aware_received_at(self, engine, mock_user_id):
        received = datetime(2026, 2, 4, 10, 0, tzinfo=timezone.utc)

        stored = engine.ingest(
            {
                "user_id": mock_user_id,
                "source_id": "note-utc",
                "content": "I'll send the report by Friday.",
                "received_at": received.isoformat(),
            }
        )

        assert len(stored) == 1
        assert stored[0].created_at == received.astimezone().replace(tzinfo=None)
        assert stored[0].when.parsed_date.tzinfo is None
        assert len(engine.evaluate(mock_user_id, received)) == 1

    def test_content_without_commitments(self, engine, now, mock_user_id):
        stored = engine.ingest(
            {"user_id": mock_user_id, "source_id": "n", "content": "The weather is lovely."},
            now=now,
        )
        assert stored == []
        assert engine.list_commitments(mock_user_id) == []

    @pytest.mark.parametrize(
        "payload",
        [
            {"source_id": "x", "content": "I'll send it"},
            {"user_id": "u", "source_id": "x", "content": "   "},
            {"user_id": "u", "content": "I'll send it"},
            {"user_id": "u", "source_id": "x", "content": "I'll send it", "source_type": "fax"},
        ],
    )
    def test_malformed_trigger(self, engine, payload):
        with pytest.raises(IngestionError):
            engine.ingest(payload)


# ─────────────────────────────────────────────────────────────────────────────
# Commitments / Dependencies
# ─────────────────────────────────────────────────────────────────────────────


class TestCommitments:
    """Tests for stored commitments and dependency updates."""

    def test_save_requires_user(self, engine, make_commitment):
        with pytest.raises(ValueError):
            engine.save_commitment(make_commitment(user_id=None))

    def test_users_are_isolated(self, engine, saved):
        saved(what="pay the rent")
        saved(what="call mom", user_id="someone_else")

        assert [c.what for c in engine.list_commitments("someone_else")] == ["call mom"]

    def test_complete_dependency(self, engine, saved, mock_user_id):
        interview = saved(what="the job interview")

        updated = engine.complete_dependency(mock_user_id, interview.id, "Research company")

        statuses = {d.action: d.status for d in updated.dependencies.inferred_dependencies}
        assert statuses["Research company"] == DependencyStatus.COMPLETED
        assert statuses["Prepare answers"] == DependencyStatus.PENDING
        stored = engine.require_commitment(mock_user_id, interview.id)
        assert stored.dependencies == updated.dependencies

    def test_dismiss_dependency(self, engine, saved, mock_user_id):
        interview = saved(what="the job interview")

        updated = engine.dismiss_dependency(mock_user_id, interview.id, "Print resume copies")

        assert updated.dependencies.inferred_dependencies[-1].status == DependencyStatus.DISMISSED

    def test_unknown_commitment(self, engine, mock_user_id):
        with pytest.raises(CommitmentNotFoundError):
            engine.complete_dependency(mock_user_id, "comm_missing", "Book travel")

    def test_unknown_dependency(self, engine, saved, mock_user_id):
        interview = saved(what="the job interview")
        with pytest.raises(CommitmentNotFoundError):
            engine.complete_dependency(mock_user_id, interview.id, "Book travel")


# ─────────────────────────────────────────────────────────────────────────────
# Evaluation
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def queue(saved, now):
    """Three urgent financial items (oldest first) and one calm one."""
    return [
        saved(what="pay the rent", parsed_date=now),
        saved(what="pay the tax bill", parsed_date=now),
        saved(what="pay the phone bill", parsed_date=now),
        saved(what="water the plants"),
    ]


class TestEvaluate:
    """Tests for interrupt evaluation against the daily budget."""

    def test_budget_caps_realtime(self, engine, queue, now, mock_user_id):
        decisions = engine.evaluate(mock_user_id, now)

        assert [(d.commitment_id, d.action) for d in decisions] == [
            (queue[0].id, InterruptAction.REALTIME_INTERRUPT),
            (queue[1].id, InterruptAction.REALTIME_INTERRUPT),
            (queue[2].id, InterruptAction.FORCED_INTERRUPT),
            (queue[3].id, InterruptAction.STORE_SILENT),
        ]
        budget = engine.budget(mock_user_id, now)
        assert budget.realtime_interrupts_used == 2
        assert budget.forced_interrupts == [queue[2].id]

    def test_second_pass_bundles(self, engine, queue, now, mock_user_id):
        engine.evaluate(mock_user_id, now)

        decisions = engine.evaluate(mock_user_id, now + timedelta(hours=1))

        assert decisions[0].action == InterruptAction.BUNDLED_URGENT
        assert decisions[0].commitment_id == ",".join(c.id for c in queue[:3])
        assert [d.action for d in decisions[1:]] == [InterruptAction.STORE_SILENT]

    def test_budget_resets_next_day(self, engine, queue, now, mock_user_id):
        engine.evaluate(mock_user_id, now)

        decisions = engine.evaluate(mock_user_id, now + timedelta(days=1))

        counts = Counter(d.action for d in decisions)
        assert counts[InterruptAction.REALTIME_INTERRUPT] == 2

    def test_quiet_hours_hold_non_critical(self, engine, queue, now, mock_user_id):
        decisions = engine.evaluate(mock_user_id, now.replace(hour=22))

        assert decisions[-1].commitment_id == queue[3].id
        assert decisions[-1].action == InterruptAction.STORE_SILENT
        assert decisions[-1].reason == "Quiet hours active, not critical"
        assert decisions[0].action == InterruptAction.REALTIME_INTERRUPT

    def test_quiet_hours_without_exception(self, engine, queue, now, mock_user_id):
        set_quiet_hours(mock_user_id, "21:00", "07:00", critical_exception=False, store=engine.store)

        decisions = engine.evaluate(mock_user_id, now.replace(hour=22))

        assert {d.action for d in decisions} == {InterruptAction.STORE_SILENT}
        assert engine.budget(mock_user_id, now).realtime_interrupts_used == 0

    def test_focus_session_holds_suggestions(self, engine, saved, now, mock_user_id):
        sync = saved(what="book the team sync", urgency_category=UrgencyCategory.TOMORROW)

        decisions = engine.evaluate(mock_user_id, now, in_focus_session=True)

        assert [(d.commitment_id, d.action) for d in decisions] == [
            (sync.id, InterruptAction.BATCH_UNTIL_FOCUS_END)
        ]

    def test_passive_queue_filters(self, engine, queue, now, mock_user_id):
        everything = engine.passive_queue(mock_user_id, now=now)
        financial = engine.passive_queue(mock_user_id, category=CommitmentCategory.FINANCIAL, now=now)
        later = engine.passive_queue(mock_user_id, urgency=UrgencyCategory.LATER, now=now)
        high = engine.passive_queue(mock_user_id, min_priority=0.9, now=now)

        assert len(everything) == 4
        assert len(financial) == 3
        assert len(later) == 4
        assert [c.id for c, _ in high] == [c.id for c in queue[:3]]


# ─────────────────────────────────────────────────────────────────────────────
# Digests
# ─────────────────────────────────────────────────────────────────────────────


class TestDigests:
    """Tests for the morning digest and evening review through the engine."""

    def test_morning_digest_is_stable(self, engine, queue, saved, now, mock_user_id):
        first = engine.morning_digest(mock_user_id, now)
        saved(what="pay the water bill", parsed_date=now)
        second = engine.morning_digest(mock_user_id, now + timedelta(hours=2))

        assert [i.commitment.id for i in first.items] == [c.id for c in queue]
        assert [i.commitment.id for i in second.items] == [i.commitment.id for i in first.items]

    def test_evening_review_skips_acted(self, engine, queue, now, mock_user_id):
        set_evening_review(mock_user_id, True, store=engine.store)
        engine.morning_digest(mock_user_id, now)
        engine.record_engagement(
            mock_user_id, queue[0].id, NotificationType.DIGEST, EngagementType.ACTED, now=now
        )
        engine.record_engagement(
            mock_user_id, queue[1].id, NotificationType.DIGEST, EngagementType.OPENED, now=now
        )

        review = engine.evening_review(mock_user_id, now.replace(hour=19, minute=30))

        assert [i.commitment.id for i in review.items] == [c.id for c in queue[1:]]
        assert engine.evening_review(mock_user_id, now.replace(hour=20)) is None

    def test_evening_review_disabled(self, engine, queue, now, mock_user_id):
        engine.morning_digest(mock_user_id, now)
        assert engine.evening_review(mock_user_id, now.replace(hour=19, minute=30)) is None

    def test_morning_digest_waits_for_digest_time(self, engine, queue, now, mock_user_id):
        early = now.replace(hour=3)

        assert engine.morning_digest(mock_user_id, early) is None
        assert engine.store.get(budget_key(mock_user_id, early)) is None

        digest = engine.morning_digest(mock_user_id, now)
        assert [i.commitment.id for i in digest.items] == [c.id for c in queue]

    def test_evening_review_waits_for_morning_digest(self, engine, queue, now, mock_user_id):
        set_evening_review(mock_user_id, True, store=engine.store)

        assert engine.evening_review(mock_user_id, now.replace(hour=8)) is None
        assert engine.budget(mock_user_id, now).evening_review_sent is False

        engine.morning_digest(mock_user_id, now)
        assert engine.evening_review(mock_user_id, now.replace(hour=12)) is None
        assert engine.evening_review(mock_user_id, now.replace(hour=20)) is not None


# ─────────────────────────────────────────────────────────────────────────────
# Feedback / Learning
# ─────────────────────────────────────────────────────────────────────────────


class TestFeedbackLoop:
    """Tests for outcome routing and the learning pass."""

    def test_outcomes_carry_category(self, engine, saved, now, mock_user_id):
        mom = saved(what="call mom")

        outcome = engine.record_dismissal(mock_user_id, mom.id, NotificationType.REALTIME, now=now)

        assert outcome.category == "family"
        assert outcome.user_id == mock_user_id

    def test_apply_feedback_routes(self, engine, saved, now, mock_user_id):
        mom = saved(what="call mom")

        dismissed = engine.apply_feedback(
            FeedbackRequest(
                user_id=mock_user_id,
                commitment_id=mom.id,
                notification_type=NotificationType.REALTIME,
                engagement_type=EngagementType.DISMISSED,
            ),
            now,
        )
        acted = engine.apply_feedback(
            FeedbackRequest(
                user_id=mock_user_id,
                commitment_id=mom.id,
                notification_type=NotificationType.DIGEST,
                engagement_type=EngagementType.ACTED,
                time_to_engagement_ms=1200,
            ),
            now,
        )
        liked = engine.apply_feedback(
            FeedbackRequest(
                user_id=mock_user_id,
                commitment_id=mom.id,
                notification_type=NotificationType.DIGEST,
                explicit_feedback=ExplicitFeedback.MORE_LIKE_THIS,
            ),
            now,
        )

        assert dismissed.user_engaged is False
        assert acted.time_to_engagement_ms == 1200
        assert liked.explicit_feedback == ExplicitFeedback.MORE_LIKE_THIS

    def test_apply_feedback_needs_a_signal(self, engine, now, mock_user_id):
        request = FeedbackRequest(
            user_id=mock_user_id, commitment_id="c", notification_type=NotificationType.DIGEST
        )
        with pytest.raises(ValueError):
            engine.apply_feedback(request, now)

    def test_learning_lowers_tolerance_and_affinity(self, engine, saved, now, mock_user_id):
        mom = saved(what="call mom")
        for hours in range(5):
            engine.record_dismissal(
                mock_user_id, mom.id, NotificationType.REALTIME, now=now - timedelta(hours=hours)
            )

        result = engine.run_learning(now=now)

        assert result.users_processed == 1
        assert result.users_adjusted == 1
        prefs = engine.preferences(mock_user_id)
        assert prefs.realtime_tolerance == 0.4
        assert prefs.category_weights == {"family_affinity": 0.0}
        (_, score), = engine.score(mock_user_id, now)
        assert score.components.user_affinity == 0.0


# ─────────────────────────────────────────────────────────────────────────────
# Commitment Lifecycle
# ─────────────────────────────────────────────────────────────────────────────


class TestCommitmentLifecycle:
    """Tests for closing and expiring commitments."""

    def test_closed_commitment_drops_out(self, engine, queue, now, mock_user_id):
        closed = engine.set_commitment_status(mock_user_id, queue[0].id, CommitmentStatus.COMPLETED)

        assert closed.status == CommitmentStatus.COMPLETED
        assert queue[0].id not in {c.id for c in engine.list_commitments(mock_user_id)}
        assert queue[0].id in {c.id for c in engine.list_commitments(mock_user_id, include_closed=True)}
        assert queue[0].id not in {d.commitment_id for d in engine.evaluate(mock_user_id, now)}

    def test_status_of_missing_commitment(self, engine, mock_user_id):
        with pytest.raises(CommitmentNotFoundError):
            engine.set_commitment_status(mock_user_id, "nope", CommitmentStatus.DISMISSED)

    def test_expire_old_commitments(self, engine, saved, now, mock_user_id):
        stale = saved(what="fix the fence", created_at=now - timedelta(days=31))
        fresh = saved(what="water the plants")

        assert engine.expire_old_commitments(now=now) == 1

        assert [c.id for c in engine.list_commitments(mock_user_id)] == [fresh.id]
        assert engine.get_commitment(mock_user_id, stale.id).status == CommitmentStatus.EXPIRED
        assert [d.commitment_id for d in engine.evaluate(mock_user_id, now)] == [fresh.id]
        assert engine.expire_old_commitments(now=now) == 0

    def test_expire_leaves_closed_alone(self, engine, saved, now, mock_user_id):
        done = saved(what="fix the fence", created_at=now - timedelta(days=40))
        engine.set_commitment_status(mock_user_id, done.id, CommitmentStatus.COMPLETED)

        assert engine.expire_old_commitments(days_old=7, now=now) == 0
        assert engine.get_commitment(mock_user_id, done.id).status == CommitmentStatus.COMPLETED

    def test_run_learning_expires_and_prunes(self, engine, saved, now, mock_user_id):
        stale = saved(what="fix the fence", created_at=now - timedelta(days=31))
        engine.record_dismissal(
            mock_user_id, stale.id, NotificationType.REALTIME, now=now - timedelta(days=100)
        )

        result = engine.run_learning(now=now)

        assert result.commitments_expired == 1
        assert result.outcomes_deleted == 1
        assert engine.list_commitments(mock_user_id) == []
