"""
Tool: Outcome Learning
Purpose: Record how users respond to surfaced commitments and adapt their preferences

This closes the loop. Every surfacing event gets an outcome record (engaged,
dismissed, explicit feedback). A conservative controller then nudges the
user's realtime tolerance from the rolling dismissal rate:

    dismissal rate > 0.5   tolerance - 0.10 (floor 0.2)
    dismissal rate < 0.2   tolerance + 0.05 (ceiling 0.8)
    otherwise              unchanged

Nothing moves until there are at least 5 outcomes in the lookback window
(14 days by default). Small steps and a wide dead zone keep noisy samples
from making the tolerance oscillate. Categories with enough samples also
get a learned "<category>_affinity" weight equal to their engagement rate,
which the priority scorer reads.

Usage:
    from temporal_intel.learning.outcomes import record_engagement, run_daily_learning

    record_engagement("comm_abc", NotificationType.DIGEST, EngagementType.ACTED,
                      time_to_engagement_ms=3000, user_id="alice")
    result = run_daily_learning()

Storage:
    outcome:{user_id}:{surfaced_at}:{id}   append-only, pruned after 90 days
"""

from __future__ import annotations

import dataclasses
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from temporal_intel.config_models import TemporalConfig, resolve_config
from temporal_intel.logging_config import get_logger
from temporal_intel.models import (
    EngagementType,
    ExplicitFeedback,
    NotificationOutcome,
    NotificationType,
    TemporalPreferences,
)
from temporal_intel.preferences.settings import list_preferences, modify_preferences
from temporal_intel.scoring.priority import affinity_key
from temporal_intel.store import KeyValueStore, resolve_store

logger = get_logger(__name__)

UNKNOWN_USER = "unknown"


# =============================================================================
# Recording (append-only)
# =============================================================================

def outcome_key(outcome: NotificationOutcome) -> str:
    return f"outcome:{outcome.user_id or UNKNOWN_USER}:{outcome.surfaced_at.isoformat()}:{outcome.id}"


def record_outcome(
    outcome: NotificationOutcome,
    store: Optional[KeyValueStore] = None,
) -> NotificationOutcome:
    resolve_store(store).set(outcome_key(outcome), outcome.to_dict())
    logger.debug(
        "outcome_recorded",
        user_id=outcome.user_id,
        commitment_id=outcome.commitment_id,
        notification_type=outcome.notification_type.value,
        engagement_type=outcome.engagement_type.value if outcome.engagement_type else None,
    )
    return outcome


def record_engagement(
    commitment_id: str,
    notification_type: NotificationType,
    engagement_type: EngagementType,
    time_to_engagement_ms: Optional[int] = None,
    user_id: Optional[str] = None,
    category: Optional[str] = None,
    now: Optional[datetime] = None,
    store: Optional[KeyValueStore] = None,
) -> NotificationOutcome:
    return record_outcome(
        NotificationOutcome(
            commitment_id=commitment_id,
            notification_type=NotificationType(notification_type),
            surfaced_at=now or datetime.now(),
            user_engaged=EngagementType(engagement_type) != EngagementType.DISMISSED,
            engagement_type=EngagementType(engagement_type),
            time_to_engagement_ms=time_to_engagement_ms,
            user_id=user_id,
            category=category,
        ),
        store,
    )


def record_dismissal(
    commitment_id: str,
    notification_type: NotificationType,
    user_id: Optional[str] = None,
    category: Optional[str] = None,
    now: Optional[datetime] = None,
    store: Optional[KeyValueStore] = None,
) -> NotificationOutcome:
    return record_outcome(
        NotificationOutcome(
            commitment_id=commitment_id,
            notification_type=NotificationType(notification_type),
            surfaced_at=now or datetime.now(),
            user_engaged=False,
            engagement_type=EngagementType.DISMISSED,
            user_id=user_id,
            category=category,
        ),
        store,
    )


def record_feedback(
    commitment_id: str,
    feedback: ExplicitFeedback,
    notification_type: NotificationType = NotificationType.DIGEST,
    user_id: Optional[str] = None,
    category: Optional[str] = None,
    now: Optional[datetime] = None,
    store: Optional[KeyValueStore] = None,
) -> NotificationOutcome:
    return record_outcome(
        NotificationOutcome(
            commitment_id=commitment_id,
            notification_type=NotificationType(notification_type),
            surfaced_at=now or datetime.now(),
            user_engaged=True,
            explicit_feedback=ExplicitFeedback(feedback),
            user_id=user_id,
            category=category,
        ),
        store,
    )


def clear_outcomes(store: Optional[KeyValueStore] = None) -> int:
    return resolve_store(store).clear("outcome:")


# =============================================================================
# Queries
# =============================================================================

def get_all_outcomes(
    user_id: Optional[str] = None,
    store: Optional[KeyValueStore] = None,
) -> list[NotificationOutcome]:
    """Outcomes for one user (or everyone), oldest first."""
    prefix = f"outcome:{user_id}:" if user_id else "outcome:"
    outcomes = [NotificationOutcome.from_dict(d) for d in resolve_store(store).values(prefix)]
    return sorted(outcomes, key=lambda o: o.surfaced_at)


def get_outcomes_for_commitment(
    commitment_id: str,
    user_id: Optional[str] = None,
    store: Optional[KeyValueStore] = None,
) -> list[NotificationOutcome]:
    return [o for o in get_all_outcomes(user_id, store) if o.commitment_id == commitment_id]


def filter_recent(
    outcomes: list[NotificationOutcome],
    days: int,
    now: Optional[datetime] = None,
) -> list[NotificationOutcome]:
    cutoff = (now or datetime.now()) - timedelta(days=days)
    return [o for o in outcomes if o.surfaced_at >= cutoff]


def get_recent_outcomes(
    days: int = 14,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
    store: Optional[KeyValueStore] = None,
) -> list[NotificationOutcome]:
    return filter_recent(get_all_outcomes(user_id, store), days, now)


def get_outcomes_by_engagement(
    outcomes: list[NotificationOutcome],
    engagement_type: EngagementType,
) -> list[NotificationOutcome]:
    return [o for o in outcomes if o.engagement_type == engagement_type]


# =============================================================================
# Metrics (pure, over a list of outcomes)
# =============================================================================

def calculate_engagement_rate(
    outcomes: list[NotificationOutcome],
    notification_type: Optional[NotificationType] = None,
) -> float:
    """Fraction of outcomes where the user engaged. 0.0 when there are none."""
    if notification_type is not None:
        outcomes = [o for o in outcomes if o.notification_type == notification_type]
    if not outcomes:
        return 0.0
    return sum(1 for o in outcomes if o.user_engaged) / len(outcomes)


def calculate_dismissal_rate(outcomes: list[NotificationOutcome]) -> float:
    if not outcomes:
        return 0.0
    return len(get_outcomes_by_engagement(outcomes, EngagementType.DISMISSED)) / len(outcomes)


def get_average_time_to_engagement(outcomes: list[NotificationOutcome]) -> Optional[float]:
    """Mean time-to-engagement in ms over outcomes that carry timing, else None."""
    timings = [o.time_to_engagement_ms for o in outcomes if o.time_to_engagement_ms is not None]
    if not timings:
        return None
    return sum(timings) / len(timings)


def count_positive_feedback(outcomes: list[NotificationOutcome]) -> int:
    return sum(1 for o in outcomes if o.explicit_feedback == ExplicitFeedback.MORE_LIKE_THIS)


def count_negative_feedback(outcomes: list[NotificationOutcome]) -> int:
    return sum(1 for o in outcomes if o.explicit_feedback == ExplicitFeedback.STOP_THIS_TYPE)


# =============================================================================
# Adjustment
# =============================================================================

def adjust_preferences_from_outcomes(
    prefs: TemporalPreferences,
    outcomes: list[NotificationOutcome],
    lookback_days: Optional[int] = None,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
) -> TemporalPreferences:
    """
    Return a copy of prefs adjusted from the outcomes in the lookback window.

    Args:
        prefs: Current preferences (not modified)
        outcomes: The user's outcome history
        lookback_days: Window size; the configured default when omitted
        now: End of the window
        config: Controller parameters (config.learning)

    Returns:
        New TemporalPreferences; equal to prefs when the sample is too small
    """
    learning = resolve_config(config).learning
    days = lookback_days if lookback_days is not None else learning.lookback_days
    window = filter_recent(outcomes, days, now)

    if len(window) < learning.min_sample_size:
        return dataclasses.replace(prefs)

    tolerance = prefs.realtime_tolerance
    dismissal_rate = calculate_dismissal_rate(window)
    if dismissal_rate > learning.high_dismissal_rate:
        tolerance = max(learning.tolerance_floor, tolerance - learning.tolerance_step_down)
    elif dismissal_rate < learning.low_dismissal_rate:
        tolerance = min(learning.tolerance_ceiling, tolerance + learning.tolerance_step_up)

    weights = dict(prefs.category_weights)
    if learning.learn_category_affinity:
        by_category: dict[str, list[NotificationOutcome]] = defaultdict(list)
        for outcome in window:
            if outcome.category:
                by_category[outcome.category].append(outcome)
        for category, samples in by_category.items():
            if len(samples) >= learning.min_sample_size:
                weights[affinity_key(category)] = round(calculate_engagement_rate(samples), 4)

    return dataclasses.replace(
        prefs,
        realtime_tolerance=round(tolerance, 4),
        category_weights=weights,
    )


def _diff(before: TemporalPreferences, after: TemporalPreferences) -> dict[str, Any]:
    changes = {}
    if after.realtime_tolerance != before.realtime_tolerance:
        changes["realtime_tolerance"] = after.realtime_tolerance
    if after.category_weights != before.category_weights:
        changes["category_weights"] = after.category_weights
    return changes


def run_learning_for_user(
    user_id: str,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> dict[str, Any]:
    """
    Adjust one user's stored preferences from their outcome log.

    The read and the write happen under the preference record's lock, so a
    settings change made at the same moment is not lost.

    Returns:
        {"success": True, "user_id": str, "adjustments": dict}
    """
    now = now or datetime.now()
    store = resolve_store(store)
    outcomes = get_all_outcomes(user_id, store)
    adjustments: dict[str, Any] = {}

    def _compute(prefs: TemporalPreferences) -> dict[str, Any]:
        adjusted = adjust_preferences_from_outcomes(prefs, outcomes, now=now, config=config)
        adjustments.update(_diff(prefs, adjusted))
        return {**adjustments, "last_learning_run_at": now}

    modify_preferences(user_id, _compute, store)

    if adjustments:
        logger.info("preferences_learned", user_id=user_id, adjustments=adjustments)
    return {"success": True, "user_id": user_id, "adjustments": adjustments}


@dataclass
class LearningJobResult:
    success: bool
    users_processed: int = 0
    users_adjusted: int = 0
    errors: list[str] = field(default_factory=list)
    outcomes_deleted: int = 0
    commitments_expired: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def find_eligible_users(
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> list[str]:
    """Users with enough outcomes in the lookback window to learn from."""
    learning = resolve_config(config).learning
    counts: dict[str, int] = defaultdict(int)
    for outcome in filter_recent(get_all_outcomes(store=store), learning.lookback_days, now):
        if outcome.user_id:
            counts[outcome.user_id] += 1
    return sorted(u for u, n in counts.items() if n >= learning.min_sample_size)


def run_daily_learning(
    user_ids: Optional[list[str]] = None,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
    cleanup: bool = True,
) -> LearningJobResult:
    """
    Run the learning pass for every eligible user (or the given ones).

    A failure for one user is recorded in the result and the run moves on.
    With cleanup, outcomes past the retention window are deleted afterwards.
    """
    started = time.monotonic()
    now = now or datetime.now()
    result = LearningJobResult(success=True)

    if user_ids is None:
        user_ids = find_eligible_users(now, config, store)
    logger.info("learning_job_started", eligible_users=len(user_ids))

    for user_id in user_ids:
        result.users_processed += 1
        try:
            outcome = run_learning_for_user(user_id, now, config, store)
        except Exception as e:
            message = f"Failed to process user {user_id}: {e}"
            logger.error("learning_user_failed", user_id=user_id, error=str(e))
            result.errors.append(message)
            continue
        if outcome["adjustments"]:
            result.users_adjusted += 1

    if cleanup:
        result.outcomes_deleted = cleanup_old_outcomes(now=now, config=config, store=store)

    result.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "learning_job_completed",
        users_processed=result.users_processed,
        users_adjusted=result.users_adjusted,
        errors=len(result.errors),
        outcomes_deleted=result.outcomes_deleted,
        duration_ms=result.duration_ms,
    )
    return result


# =============================================================================
# Maintenance and monitoring
# =============================================================================

def cleanup_old_outcomes(
    days_to_keep: Optional[int] = None,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> int:
    """Delete outcomes surfaced before the retention cutoff (90 days by default)."""
    if days_to_keep is None:
        days_to_keep = resolve_config(config).learning.outcome_retention_days
    store = resolve_store(store)
    cutoff = (now or datetime.now()) - timedelta(days=days_to_keep)

    deleted = 0
    for key in store.keys("outcome:"):
        data = store.get(key)
        if data is None:
            continue
        if NotificationOutcome.from_dict(data).surfaced_at < cutoff and store.delete(key):
            deleted += 1

    if deleted:
        logger.info("old_outcomes_deleted", deleted=deleted, days_to_keep=days_to_keep)
    return deleted


def get_learning_stats(
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> dict[str, Any]:
    """Counts for monitoring the learning loop."""
    learning = resolve_config(config).learning
    store = resolve_store(store)
    outcomes = get_all_outcomes(store=store)
    runs = [p.last_learning_run_at for p in list_preferences(store) if p.last_learning_run_at]

    return {
        "users_with_commitments": len({k.split(":")[1] for k in store.keys("commitment:")}),
        "users_with_outcomes": len({o.user_id for o in outcomes if o.user_id}),
        "users_eligible_for_learning": len(find_eligible_users(now, config, store)),
        "total_outcomes": len(outcomes),
        "recent_outcomes": len(filter_recent(outcomes, learning.lookback_days, now)),
        "lookback_days": learning.lookback_days,
        "last_learning_run": max(runs).isoformat() if runs else None,
    }


__all__ = [
    "LearningJobResult",
    "adjust_preferences_from_outcomes",
    "calculate_dismissal_rate",
    "calculate_engagement_rate",
    "cleanup_old_outcomes",
    "clear_outcomes",
    "count_negative_feedback",
    "count_positive_feedback",
    "filter_recent",
    "find_eligible_users",
    "get_all_outcomes",
    "get_average_time_to_engagement",
    "get_learning_stats",
    "get_outcomes_by_engagement",
    "get_outcomes_for_commitment",
    "get_recent_outcomes",
    "record_dismissal",
    "record_engagement",
    "record_feedback",
    "record_outcome",
    "run_daily_learning",
    "run_learning_for_user",
]
