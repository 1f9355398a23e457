"""
Tool: Temporal Engine
Purpose: One entry point that wires extraction, scoring, budgeting, digests and learning together

Usage:
    from temporal_intel.service import TemporalEngine

    engine = TemporalEngine()
    engine.ingest({
        "user_id": "alice",
        "source_type": "email",
        "source_id": "msg-42",
        "content": "I'll send the report by Friday.",
    })
    decisions = engine.evaluate("alice")
    digest = engine.morning_digest("alice")

Design:
    - Every pass takes one snapshot of the user's preferences at its start.
    - Commitments persist as "commitment:{user_id}:{id}" with their
      dependency chain embedded. Chain updates happen under that key's lock.
    - Outcomes get the commitment's inferred category attached so learning
      can build per-category affinity.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta
from typing import Any, Optional

from temporal_intel.budget.manager import find_budget, get_budget, process_interrupt_queue
from temporal_intel.config_models import TemporalConfig, resolve_config
from temporal_intel.digest.generator import (
    generate_evening_review,
    generate_morning_digest,
    should_send_digest,
    should_send_evening_review,
)
from temporal_intel.extraction.classifier import process_ingestion_trigger
from temporal_intel.extraction.extractor import extract_commitments, merge_commitments
from temporal_intel.extraction.validator import validate_commitments
from temporal_intel.inference.dependencies import (
    enrich_with_dependencies,
    mark_dependency_completed,
    mark_dependency_dismissed,
)
from temporal_intel.learning.outcomes import (
    LearningJobResult,
    get_all_outcomes,
    get_learning_stats,
    record_dismissal,
    record_engagement,
    record_feedback,
    run_daily_learning,
)
from temporal_intel.logging_config import get_logger
from temporal_intel.models import (
    Commitment,
    CommitmentCategory,
    CommitmentSource,
    CommitmentStatus,
    EngagementType,
    EveningReview,
    ExplicitFeedback,
    InterruptBudget,
    InterruptDecision,
    MorningDigest,
    NotificationOutcome,
    NotificationType,
    PriorityScore,
    TemporalPreferences,
    UrgencyCategory,
    local_naive,
)
from temporal_intel.preferences.settings import get_preferences
from temporal_intel.schemas import ContentIngestionTrigger, FeedbackRequest, parse_trigger
from temporal_intel.scoring.priority import calculate_priority_scores, infer_category, sort_by_priority
from temporal_intel.store import KeyValueStore, resolve_store

logger = get_logger(__name__)


class CommitmentNotFoundError(LookupError):
    """Raised when a commitment id does not exist for the user."""


def commitment_key(user_id: str, commitment_id: str) -> str:
    return f"commitment:{user_id}:{commitment_id}"


def _instant(now: Optional[datetime]) -> datetime:
    return local_naive(now) or datetime.now()


class TemporalEngine:
    """Per-process facade over the temporal pipeline."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        config: Optional[TemporalConfig] = None,
    ):
        self.store = resolve_store(store)
        self._config = config

    @property
    def config(self) -> TemporalConfig:
        return resolve_config(self._config)

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest(
        self,
        trigger: ContentIngestionTrigger | dict[str, Any],
        now: Optional[datetime] = None,
    ) -> list[Commitment]:
        """
        Run one piece of content through the extraction pipeline.

        Classify, extract, merge near-duplicates, validate, keep what is
        actionable, infer dependencies and persist.

        Args:
            trigger: Ingestion trigger (model or raw dict)
            now: Evaluation instant for relative dates; defaults to received_at

        Returns:
            The commitments that were stored

        Raises:
            IngestionError: If the trigger is malformed
        """
        trigger = parse_trigger(trigger)
        now = local_naive(now) or trigger.received_at
        classification = process_ingestion_trigger(trigger)
        source = CommitmentSource(
            type=classification.source_type,
            source_id=trigger.source_id,
            extracted_at=now,
        )

        extracted = merge_commitments(
            extract_commitments(trigger.content, source, trigger.user_id, now)
        )
        matches = {
            c.id: trigger.retrieval_matches.get(c.id, trigger.retrieval_matches.get(c.what, False))
            for c in extracted
        }
        validations = validate_commitments(extracted, matches)

        stored = []
        for commitment in extracted:
            validation = validations[commitment.id]
            if not validation.is_actionable:
                logger.debug(
                    "commitment_not_actionable",
                    commitment_id=commitment.id,
                    reason=validation.judge_reasoning,
                )
                continue

            commitment = enrich_with_dependencies(
                dataclasses.replace(commitment, validated=True, validation=validation),
                now,
            )
            self.save_commitment(commitment)
            stored.append(commitment)

        logger.info(
            "content_ingested",
            user_id=trigger.user_id,
            source_type=classification.source_type.value,
            extracted=len(extracted),
            stored=len(stored),
        )
        return stored

    # =========================================================================
    # Commitments
    # =========================================================================

    def save_commitment(self, commitment: Commitment) -> None:
        if not commitment.user_id:
            raise ValueError("Commitment has no user_id")
        self.store.set(commitment_key(commitment.user_id, commitment.id), commitment.to_dict())

    def list_commitments(self, user_id: str, include_closed: bool = False) -> list[Commitment]:
        """Pending commitments, oldest first; with include_closed also completed, dismissed and expired."""
        commitments = [
            Commitment.from_dict(d) for d in self.store.values(f"commitment:{user_id}:")
        ]
        if not include_closed:
            commitments = [c for c in commitments if c.status == CommitmentStatus.PENDING]
        return sorted(commitments, key=lambda c: c.created_at)

    def get_commitment(self, user_id: str, commitment_id: str) -> Optional[Commitment]:
        data = self.store.get(commitment_key(user_id, commitment_id))
        return Commitment.from_dict(data) if data else None

    def require_commitment(self, user_id: str, commitment_id: str) -> Commitment:
        commitment = self.get_commitment(user_id, commitment_id)
        if commitment is None:
            raise CommitmentNotFoundError(f"Commitment not found: {commitment_id}")
        return commitment

    def _set_dependency_status(
        self,
        user_id: str,
        commitment_id: str,
        action: str,
        completed: bool,
    ) -> Commitment:
        with self.store.locked(commitment_key(user_id, commitment_id)):
            commitment = self.require_commitment(user_id, commitment_id)
            if commitment.dependencies is None:
                raise CommitmentNotFoundError(f"No dependencies on commitment: {commitment_id}")
            if action not in {d.action for d in commitment.dependencies.inferred_dependencies}:
                raise CommitmentNotFoundError(f"Unknown dependency: {action}")

            mark = mark_dependency_completed if completed else mark_dependency_dismissed
            commitment = dataclasses.replace(
                commitment, dependencies=mark(commitment.dependencies, action)
            )
            self.save_commitment(commitment)
        return commitment

    def complete_dependency(self, user_id: str, commitment_id: str, action: str) -> Commitment:
        return self._set_dependency_status(user_id, commitment_id, action, completed=True)

    def dismiss_dependency(self, user_id: str, commitment_id: str, action: str) -> Commitment:
        return self._set_dependency_status(user_id, commitment_id, action, completed=False)

    def set_commitment_status(
        self,
        user_id: str,
        commitment_id: str,
        status: CommitmentStatus,
    ) -> Commitment:
        """Close (or reopen) a commitment. Closed commitments are no longer scored."""
        with self.store.locked(commitment_key(user_id, commitment_id)):
            commitment = self.require_commitment(user_id, commitment_id)
            commitment = dataclasses.replace(commitment, status=CommitmentStatus(status))
            self.save_commitment(commitment)
        logger.info(
            "commitment_status_changed",
            user_id=user_id,
            commitment_id=commitment_id,
            status=commitment.status.value,
        )
        return commitment

    def expire_old_commitments(
        self,
        days_old: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Mark pending commitments first seen more than days_old ago as expired.

        Covers every user. Returns the number of commitments expired.
        """
        if days_old is None:
            days_old = self.config.learning.commitment_expiry_days
        cutoff = _instant(now) - timedelta(days=days_old)

        expired = 0
        for key in self.store.keys("commitment:"):
            with self.store.locked(key):
                data = self.store.get(key)
                if data is None:
                    continue
                commitment = Commitment.from_dict(data)
                if commitment.status != CommitmentStatus.PENDING or commitment.created_at >= cutoff:
                    continue
                commitment = dataclasses.replace(commitment, status=CommitmentStatus.EXPIRED)
                self.store.set(key, commitment.to_dict())
                expired += 1

        if expired:
            logger.info("old_commitments_expired", expired=expired, days_old=days_old)
        return expired

    # =========================================================================
    # Scoring and surfacing
    # =========================================================================

    def preferences(self, user_id: str) -> TemporalPreferences:
        return get_preferences(user_id, self.store)

    def budget(self, user_id: str, now: Optional[datetime] = None) -> InterruptBudget:
        return get_budget(user_id, now, self.config, self.store)

    def score(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> list[tuple[Commitment, PriorityScore]]:
        """Every stored commitment for the user, highest priority first."""
        return sort_by_priority(self.list_commitments(user_id), self.preferences(user_id), now)

    def evaluate(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        in_focus_session: bool = False,
    ) -> list[InterruptDecision]:
        """Score the user's commitments and decide how each gets surfaced."""
        now = _instant(now)
        prefs = self.preferences(user_id)
        scores = calculate_priority_scores(self.list_commitments(user_id), prefs, now)
        return process_interrupt_queue(
            user_id,
            scores,
            prefs=prefs,
            config=self.config,
            now=now,
            store=self.store,
            in_focus_session=in_focus_session,
        )

    def passive_queue(
        self,
        user_id: str,
        category: Optional[CommitmentCategory] = None,
        urgency: Optional[UrgencyCategory] = None,
        min_priority: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> list[tuple[Commitment, PriorityScore]]:
        """The user-browsable list of everything tracked, with optional filters."""
        items = self.score(user_id, _instant(now))
        if category is not None:
            items = [(c, s) for c, s in items if infer_category(c) == category]
        if urgency is not None:
            items = [(c, s) for c, s in items if c.when.urgency_category == urgency]
        if min_priority is not None:
            items = [(c, s) for c, s in items if s.total_score >= min_priority]
        return items

    def morning_digest(self, user_id: str, now: Optional[datetime] = None) -> Optional[MorningDigest]:
        """
        Today's morning digest, or None before the digest time.

        Once sent, later calls the same day return the same items.
        """
        now = _instant(now)
        prefs = self.preferences(user_id)
        budget = find_budget(user_id, now, self.store)
        sent = budget is not None and budget.morning_digest_sent
        if not sent and not should_send_digest(user_id, now, prefs, self.config, self.store):
            logger.debug("morning_digest_not_due", user_id=user_id)
            return None

        return generate_morning_digest(
            user_id,
            self.list_commitments(user_id),
            now=now,
            prefs=prefs,
            config=self.config,
            store=self.store,
        )

    def acted_today(self, user_id: str, now: Optional[datetime] = None) -> set[str]:
        today = _instant(now).date()
        return {
            o.commitment_id
            for o in get_all_outcomes(user_id, self.store)
            if o.surfaced_at.date() == today and o.engagement_type == EngagementType.ACTED
        }

    def evening_review(self, user_id: str, now: Optional[datetime] = None) -> Optional[EveningReview]:
        """
        The evening review, or None when it is disabled, not yet due, has no
        morning digest to follow up, or already went out today.
        """
        now = _instant(now)
        prefs = self.preferences(user_id)
        if not should_send_evening_review(user_id, now, prefs, self.config, self.store):
            logger.debug("evening_review_not_due", user_id=user_id)
            return None

        return generate_evening_review(
            user_id,
            self.list_commitments(user_id),
            self.acted_today(user_id, now),
            now=now,
            prefs=prefs,
            config=self.config,
            store=self.store,
        )

    # =========================================================================
    # Outcomes and learning
    # =========================================================================

    def _category(self, user_id: str, commitment_id: str) -> Optional[str]:
        commitment = self.get_commitment(user_id, commitment_id)
        return infer_category(commitment).value if commitment else None

    def record_engagement(
        self,
        user_id: str,
        commitment_id: str,
        notification_type: NotificationType,
        engagement_type: EngagementType,
        time_to_engagement_ms: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> NotificationOutcome:
        return record_engagement(
            commitment_id,
            notification_type,
            engagement_type,
            time_to_engagement_ms=time_to_engagement_ms,
            user_id=user_id,
            category=self._category(user_id, commitment_id),
            now=now,
            store=self.store,
        )

    def record_dismissal(
        self,
        user_id: str,
        commitment_id: str,
        notification_type: NotificationType,
        now: Optional[datetime] = None,
    ) -> NotificationOutcome:
        return record_dismissal(
            commitment_id,
            notification_type,
            user_id=user_id,
            category=self._category(user_id, commitment_id),
            now=now,
            store=self.store,
        )

    def record_feedback(
        self,
        user_id: str,
        commitment_id: str,
        feedback: ExplicitFeedback,
        notification_type: NotificationType = NotificationType.DIGEST,
        now: Optional[datetime] = None,
    ) -> NotificationOutcome:
        return record_feedback(
            commitment_id,
            feedback,
            notification_type=notification_type,
            user_id=user_id,
            category=self._category(user_id, commitment_id),
            now=now,
            store=self.store,
        )

    def apply_feedback(
        self,
        request: FeedbackRequest,
        now: Optional[datetime] = None,
    ) -> NotificationOutcome:
        """Route an inbound feedback payload to the matching recorder."""
        if request.explicit_feedback is not None:
            return self.record_feedback(
                request.user_id,
                request.commitment_id,
                request.explicit_feedback,
                request.notification_type,
                now,
            )
        if request.engagement_type == EngagementType.DISMISSED:
            return self.record_dismissal(
                request.user_id, request.commitment_id, request.notification_type, now
            )
        if request.engagement_type is not None:
            return self.record_engagement(
                request.user_id,
                request.commitment_id,
                request.notification_type,
                request.engagement_type,
                request.time_to_engagement_ms,
                now,
            )
        raise ValueError("Feedback needs engagement_type or explicit_feedback")

    def run_learning(
        self,
        user_ids: Optional[list[str]] = None,
        now: Optional[datetime] = None,
    ) -> LearningJobResult:
        """Daily job: learn from outcomes, prune old outcomes, expire stale commitments."""
        now = _instant(now)
        result = run_daily_learning(user_ids, now, self.config, self.store)
        result.commitments_expired = self.expire_old_commitments(now=now)
        return result

    def learning_stats(self, now: Optional[datetime] = None) -> dict[str, Any]:
        return get_learning_stats(_instant(now), self.config, self.store)


__all__ = [
    "CommitmentNotFoundError",
    "TemporalEngine",
    "commitment_key",
]
