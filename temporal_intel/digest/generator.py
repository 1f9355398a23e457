"""
Tool: Digest Generator
Purpose: Batch top-priority commitments into one morning digest and an optional evening review

Usage:
    from temporal_intel.digest.generator import should_send_digest, generate_morning_digest

    if should_send_digest("alice", now=now, prefs=prefs):
        digest = generate_morning_digest("alice", pending, now=now, prefs=prefs)

Design:
    - One digest per user per day. The budget record remembers which ids went
      out, so a second call the same day returns the same item set and leaves
      the record alone.
    - The evening review re-surfaces only digest items the user never acted
      on, and only when the user opted in. One shot per day.
    - Each item carries a single call to action and a dismiss action.
"""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta
from typing import Optional

from temporal_intel.budget.manager import budget_key, get_budget, save_budget
from temporal_intel.config_models import TemporalConfig, resolve_config
from temporal_intel.logging_config import get_logger
from temporal_intel.models import (
    BubbleSuggestion,
    CalendarEvent,
    Commitment,
    EveningReview,
    MorningDigest,
    PriorityScore,
    TemporalPreferences,
)
from temporal_intel.scoring.priority import calculate_priority_score, sort_by_priority
from temporal_intel.store import KeyValueStore, resolve_store

logger = get_logger(__name__)

DISMISS_ACTION = "dismiss_commitment"
CALENDAR_EVENT_DURATION = timedelta(minutes=30)

ACTION_ADD_TO_CALENDAR = "Add to calendar"
ACTION_DEADLINE_REMINDER = "Set deadline reminder"
ACTION_REMINDER = "Set reminder"
ACTION_REVIEW = "Review and plan"

_DEADLINE_LANGUAGE = re.compile(
    r"\b(?:deadline|due|submit|submission|by the end of|no later than)\b", re.I
)
_COMMUNICATION_LANGUAGE = re.compile(r"\b(?:call|email|send|reply|text|message)\b", re.I)


# =============================================================================
# Suggestions
# =============================================================================

def choose_suggested_action(commitment: Commitment) -> str:
    """Pick one call to action for a commitment."""
    if commitment.when.parsed_date:
        return ACTION_ADD_TO_CALENDAR

    text = f"{commitment.what} {commitment.commitment_text}"
    if _DEADLINE_LANGUAGE.search(text):
        return ACTION_DEADLINE_REMINDER

    if _COMMUNICATION_LANGUAGE.search(text):
        return ACTION_REMINDER

    return ACTION_REVIEW


def build_calendar_event(
    commitment: Commitment,
    config: Optional[TemporalConfig] = None,
) -> Optional[CalendarEvent]:
    """Pre-filled calendar entry for a dated commitment, or None when writes are off."""
    config = resolve_config(config)
    if not commitment.when.parsed_date or not config.calendar_write_enabled:
        return None

    start = commitment.when.parsed_date
    return CalendarEvent(
        title=commitment.what,
        start=start,
        end=start + CALENDAR_EVENT_DURATION,
        source_commitment_id=commitment.id,
        auto_created=commitment.confidence > config.auto_execute_threshold,
        description=commitment.commitment_text,
    )


def create_bubble_suggestion(
    commitment: Commitment,
    score: PriorityScore | float,
    suggestion_type: str = "digest_item",
    config: Optional[TemporalConfig] = None,
) -> BubbleSuggestion:
    total = score.total_score if isinstance(score, PriorityScore) else score
    return BubbleSuggestion(
        id=BubbleSuggestion.generate_id(),
        type=suggestion_type,
        commitment=commitment,
        priority_score=total,
        suggested_action=choose_suggested_action(commitment),
        dismiss_action=DISMISS_ACTION,
        one_tap_payload=build_calendar_event(commitment, config),
    )


def build_summary(items: list[BubbleSuggestion], evening: bool = False) -> str:
    if not items:
        return "Nothing left open from this morning" if evening else "Nothing needs your attention today"

    noun = "item" if len(items) == 1 else "items"
    if evening:
        return f"{len(items)} {noun} from this morning still open. Top: {items[0].commitment.what}"
    return f"{len(items)} {noun} for today. Top priority: {items[0].commitment.what}"


# =============================================================================
# Morning digest
# =============================================================================

def _digest_time(prefs: Optional[TemporalPreferences], config: TemporalConfig) -> time:
    if prefs is not None and prefs.preferred_digest_time:
        return time.fromisoformat(prefs.preferred_digest_time)
    return time.fromisoformat(config.digest_time)


def should_send_digest(
    user_id: str,
    now: Optional[datetime] = None,
    prefs: Optional[TemporalPreferences] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> bool:
    """True once the digest time has passed and today's digest has not gone out."""
    now = now or datetime.now()
    config = resolve_config(config)

    if now.time() < _digest_time(prefs, config):
        return False

    return not get_budget(user_id, now, config, store).morning_digest_sent


def generate_morning_digest(
    user_id: str,
    commitments: list[Commitment],
    now: Optional[datetime] = None,
    prefs: Optional[TemporalPreferences] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> MorningDigest:
    """
    Build today's digest from the top-N commitments by priority.

    Marks the budget record on the first call of the day. Later calls the
    same day rebuild the digest from the recorded item ids without touching
    the record.
    """
    now = now or datetime.now()
    config = resolve_config(config)
    store = resolve_store(store)

    with store.locked(budget_key(user_id, now)):
        budget = get_budget(user_id, now, config, store, prefs)

        if budget.morning_digest_sent:
            by_id = {c.id: c for c in commitments}
            items = [
                create_bubble_suggestion(
                    by_id[cid], calculate_priority_score(by_id[cid], prefs, now), config=config
                )
                for cid in budget.morning_digest_items
                if cid in by_id
            ]
            logger.debug("morning_digest_already_sent", user_id=user_id, date=budget.date)
            return MorningDigest(user_id, budget.date, items, build_summary(items))

        ranked = sort_by_priority(commitments, prefs, now)[: config.default_digest_size]
        items = [create_bubble_suggestion(c, score, config=config) for c, score in ranked]

        budget.morning_digest_sent = True
        budget.morning_digest_items = [item.commitment.id for item in items]
        save_budget(budget, store)

    logger.info("morning_digest_sent", user_id=user_id, date=budget.date, items=len(items))
    return MorningDigest(user_id, budget.date, items, build_summary(items))


def get_undigested(
    user_id: str,
    commitments: list[Commitment],
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> list[Commitment]:
    """Commitments that did not go out in today's digest."""
    digested = set(get_budget(user_id, now, config, store).morning_digest_items)
    return [c for c in commitments if c.id not in digested]


# =============================================================================
# Evening review
# =============================================================================

def should_send_evening_review(
    user_id: str,
    now: Optional[datetime] = None,
    prefs: Optional[TemporalPreferences] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> bool:
    now = now or datetime.now()
    config = resolve_config(config)

    if now.time() < time.fromisoformat(config.evening_review_time):
        return False

    budget = get_budget(user_id, now, config, store, prefs)
    return (
        budget.evening_review_enabled
        and budget.morning_digest_sent
        and not budget.evening_review_sent
    )


def generate_evening_review(
    user_id: str,
    commitments: list[Commitment],
    acted_ids: set[str] | list[str],
    now: Optional[datetime] = None,
    prefs: Optional[TemporalPreferences] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> Optional[EveningReview]:
    """
    Re-surface this morning's digest items the user never acted on.

    Returns None when the user has not enabled the evening review, no
    morning digest went out today, or the review already went out.
    """
    now = now or datetime.now()
    config = resolve_config(config)
    store = resolve_store(store)
    acted = set(acted_ids)

    with store.locked(budget_key(user_id, now)):
        budget = get_budget(user_id, now, config, store, prefs)
        if (
            not budget.evening_review_enabled
            or not budget.morning_digest_sent
            or budget.evening_review_sent
        ):
            return None

        by_id = {c.id: c for c in commitments}
        items = [
            create_bubble_suggestion(
                by_id[cid], calculate_priority_score(by_id[cid], prefs, now), config=config
            )
            for cid in budget.morning_digest_items
            if cid in by_id and cid not in acted
        ]

        budget.evening_review_sent = True
        save_budget(budget, store)

    logger.info("evening_review_sent", user_id=user_id, date=budget.date, items=len(items))
    return EveningReview(user_id, budget.date, items, build_summary(items, evening=True))


__all__ = [
    "ACTION_ADD_TO_CALENDAR",
    "ACTION_DEADLINE_REMINDER",
    "ACTION_REMINDER",
    "ACTION_REVIEW",
    "DISMISS_ACTION",
    "build_calendar_event",
    "build_summary",
    "choose_suggested_action",
    "create_bubble_suggestion",
    "generate_evening_review",
    "generate_morning_digest",
    "get_undigested",
    "should_send_digest",
    "should_send_evening_review",
]
