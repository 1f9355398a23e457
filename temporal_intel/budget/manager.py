"""
Tool: Interrupt Budget Manager
Purpose: Decide how each commitment gets surfaced under a strict daily interrupt budget

Usage:
    from temporal_intel.budget.manager import process_interrupt_queue, get_budget

    decisions = process_interrupt_queue("alice", scores, prefs=prefs, now=now)
    for decision in decisions:
        dispatch(decision.commitment_id, decision.action)

Decision ladder (after quiet-hours gating, highest score first):
    REALTIME_INTERRUPT   score >= 0.85, urgency >= 0.95, budget left (spends one)
    FORCED_INTERRUPT     same bar, budget exhausted (safety valve, logged apart)
    SUGGEST_ONE_TAP      score >= suggest_threshold
    BUBBLE_NOTIFICATION  score >= bubble_threshold
    STORE_SILENT         everything else, passive queue / digest candidate

More than two forced items in one pass collapse into a single BUNDLED_URGENT.

Budget state lives in one record per (user, day) under "budget:{user}:{date}".
A batch reads it, decides, and writes it back once while holding the key's
lock, so two racing evaluations for the same user cannot both spend the last
interrupt.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, time
from typing import Optional

from temporal_intel.config_models import TemporalConfig, resolve_config
from temporal_intel.logging_config import get_logger
from temporal_intel.models import (
    InterruptAction,
    InterruptBudget,
    InterruptDecision,
    PriorityScore,
    TemporalPreferences,
)
from temporal_intel.store import KeyValueStore, resolve_store

logger = get_logger(__name__)

REALTIME_SCORE_THRESHOLD = 0.85
URGENT_COMPONENT_THRESHOLD = 0.95
CRITICAL_SCORE_THRESHOLD = 0.9
BUNDLE_AFTER = 2

REASONS = {
    InterruptAction.REALTIME_INTERRUPT: "High priority, urgent today",
    InterruptAction.FORCED_INTERRUPT: "Budget exceeded but urgency requires surfacing",
    InterruptAction.SUGGEST_ONE_TAP: "High confidence, suggest with easy action",
    InterruptAction.BUBBLE_NOTIFICATION: "Medium confidence, surface in bubble",
    InterruptAction.STORE_SILENT: "Low confidence, keep in passive queue",
    InterruptAction.BATCH_UNTIL_FOCUS_END: "Focus session active, held until it ends",
}
QUIET_HOURS_REASON = "Quiet hours active, no exception enabled"
QUIET_HOURS_NOT_CRITICAL_REASON = "Quiet hours active, not critical"
FOCUS_REDUCED_REASON = "Focus session active, suggestion reduced to bubble"


# =============================================================================
# Predicates
# =============================================================================

def is_in_quiet_hours(now: datetime, prefs: Optional[TemporalPreferences] = None) -> bool:
    """
    Check whether now falls inside the user's quiet window.

    Start is inclusive, end exclusive. A start later than the end means the
    window runs overnight (21:00-07:00 covers 23:30 and 06:59, not 07:00).
    """
    prefs = prefs or TemporalPreferences(user_id="")
    start = time.fromisoformat(prefs.quiet_hours_start)
    end = time.fromisoformat(prefs.quiet_hours_end)
    current = now.time().replace(second=0, microsecond=0)

    if start > end:
        return current >= start or current < end
    return start <= current < end


def is_urgent(score: PriorityScore) -> bool:
    return (
        score.total_score >= REALTIME_SCORE_THRESHOLD
        and score.components.urgency >= URGENT_COMPONENT_THRESHOLD
    )


def is_critical(score: PriorityScore) -> bool:
    """Critical items may break through quiet hours when the user allows it."""
    return (
        score.total_score >= CRITICAL_SCORE_THRESHOLD
        and score.components.urgency >= URGENT_COMPONENT_THRESHOLD
    )


# =============================================================================
# Budget records
# =============================================================================

def day_key(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).date().isoformat()


def budget_key(user_id: str, now: Optional[datetime] = None) -> str:
    return f"budget:{user_id}:{day_key(now)}"


def get_budget(
    user_id: str,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
    prefs: Optional[TemporalPreferences] = None,
) -> InterruptBudget:
    """
    Get or lazily create the budget record for the user's current day.

    When prefs are given, the record's evening_review_enabled mirrors the
    user's preference.
    """
    config = resolve_config(config)
    store = resolve_store(store)
    date = day_key(now)

    def _load(existing: Optional[dict]) -> dict:
        if existing is None:
            budget = InterruptBudget(
                user_id=user_id,
                date=date,
                realtime_interrupt_max=config.default_realtime_max,
            )
            logger.debug("budget_created", user_id=user_id, date=date)
        else:
            budget = InterruptBudget.from_dict(existing)
        if prefs is not None:
            budget.evening_review_enabled = prefs.evening_review_enabled
        return budget.to_dict()

    return InterruptBudget.from_dict(store.update(f"budget:{user_id}:{date}", _load))


def find_budget(
    user_id: str,
    now: Optional[datetime] = None,
    store: Optional[KeyValueStore] = None,
) -> Optional[InterruptBudget]:
    """The stored record for the user's current day, without creating one."""
    data = resolve_store(store).get(budget_key(user_id, now))
    return InterruptBudget.from_dict(data) if data is not None else None


def save_budget(budget: InterruptBudget, store: Optional[KeyValueStore] = None) -> None:
    resolve_store(store).set(budget.key, budget.to_dict())


def _mutate_budget(
    user_id: str,
    now: Optional[datetime],
    config: Optional[TemporalConfig],
    store: Optional[KeyValueStore],
    fn: Callable[[InterruptBudget], None],
) -> InterruptBudget:
    store = resolve_store(store)
    with store.locked(budget_key(user_id, now)):
        budget = get_budget(user_id, now, config, store)
        fn(budget)
        save_budget(budget, store)
    return budget


def record_realtime_interrupt(
    user_id: str,
    commitment_id: str,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> InterruptBudget:
    def _spend(budget: InterruptBudget) -> None:
        budget.realtime_interrupts_used += 1

    budget = _mutate_budget(user_id, now, config, store, _spend)
    logger.info(
        "realtime_interrupt_spent",
        user_id=user_id,
        commitment_id=commitment_id,
        used=budget.realtime_interrupts_used,
        max=budget.realtime_interrupt_max,
    )
    return budget


def record_forced_interrupt(
    user_id: str,
    commitment_id: str,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> InterruptBudget:
    def _force(budget: InterruptBudget) -> None:
        budget.forced_interrupts.append(commitment_id)

    budget = _mutate_budget(user_id, now, config, store, _force)
    logger.warning("forced_interrupt", user_id=user_id, commitment_id=commitment_id)
    return budget


def mark_digest_sent(
    user_id: str,
    item_ids: list[str],
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> InterruptBudget:
    def _mark(budget: InterruptBudget) -> None:
        budget.morning_digest_sent = True
        budget.morning_digest_items = list(item_ids)

    return _mutate_budget(user_id, now, config, store, _mark)


def mark_evening_review_sent(
    user_id: str,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> InterruptBudget:
    def _mark(budget: InterruptBudget) -> None:
        budget.evening_review_sent = True

    return _mutate_budget(user_id, now, config, store, _mark)


def can_send_realtime_interrupt(
    user_id: str,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> bool:
    budget = get_budget(user_id, now, config, store)
    return budget.realtime_interrupts_used < budget.realtime_interrupt_max


def get_remaining_interrupts(
    user_id: str,
    now: Optional[datetime] = None,
    config: Optional[TemporalConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> int:
    budget = get_budget(user_id, now, config, store)
    return max(0, budget.realtime_interrupt_max - budget.realtime_interrupts_used)


def reset_budget(
    user_id: str,
    now: Optional[datetime] = None,
    store: Optional[KeyValueStore] = None,
) -> bool:
    """Drop today's record for a user. Test and admin use only."""
    return resolve_store(store).delete(budget_key(user_id, now))


def clear_all_budgets(store: Optional[KeyValueStore] = None) -> int:
    return resolve_store(store).clear("budget:")


# =============================================================================
# Decisions
# =============================================================================

def determine_interrupt_action(
    score: PriorityScore,
    budget: InterruptBudget,
    prefs: Optional[TemporalPreferences] = None,
    config: Optional[TemporalConfig] = None,
) -> InterruptAction:
    config = resolve_config(config)

    if is_urgent(score):
        if budget.realtime_interrupts_used < budget.realtime_interrupt_max:
            return InterruptAction.REALTIME_INTERRUPT
        return InterruptAction.FORCED_INTERRUPT

    if score.total_score >= config.suggest_threshold:
        return InterruptAction.SUGGEST_ONE_TAP

    if score.total_score >= config.bubble_threshold:
        return InterruptAction.BUBBLE_NOTIFICATION

    return InterruptAction.STORE_SILENT


def _apply_focus_mode(
    decision: InterruptDecision,
    prefs: TemporalPreferences,
) -> InterruptDecision:
    """Hold or soften suggestions while the user is in a focus session."""
    if decision.action not in (
        InterruptAction.SUGGEST_ONE_TAP,
        InterruptAction.BUBBLE_NOTIFICATION,
    ):
        return decision

    if prefs.focus_mode_batch_until_end:
        return InterruptDecision(
            decision.commitment_id,
            InterruptAction.BATCH_UNTIL_FOCUS_END,
            REASONS[InterruptAction.BATCH_UNTIL_FOCUS_END],
        )

    if prefs.focus_mode_reduce_suggestions and decision.action == InterruptAction.SUGGEST_ONE_TAP:
        return InterruptDecision(
            decision.commitment_id,
            InterruptAction.BUBBLE_NOTIFICATION,
            FOCUS_REDUCED_REASON,
        )

    return decision


def bundle_interrupts(
    decisions: list[InterruptDecision],
    forced_ids: list[str],
) -> list[InterruptDecision]:
    """Replace the individual forced decisions with one BUNDLED_URGENT at the first one's position."""
    forced = set(forced_ids)
    result = []
    bundled = False

    for decision in decisions:
        if decision.commitment_id in forced:
            if not bundled:
                result.append(
                    InterruptDecision(
                        commitment_id=",".join(forced_ids),
                        action=InterruptAction.BUNDLED_URGENT,
                        reason=f"{len(forced_ids)} urgent items bundled",
                    )
                )
                bundled = True
        else:
            result.append(decision)

    return result


def process_interrupt_queue(
    user_id: str,
    scores: list[PriorityScore],
    prefs: Optional[TemporalPreferences] = None,
    config: Optional[TemporalConfig] = None,
    now: Optional[datetime] = None,
    store: Optional[KeyValueStore] = None,
    in_focus_session: bool = False,
) -> list[InterruptDecision]:
    """
    Assign an interrupt action to every scored commitment.

    Args:
        user_id: Owner of the budget being spent
        scores: Priority scores from one scoring pass
        prefs: Preference snapshot taken at the start of the pass
        config: Thresholds; the process default when omitted
        now: Evaluation instant (selects the budget day and quiet hours)
        store: Budget storage; the process default when omitted
        in_focus_session: Caller-signalled focus session

    Returns:
        One decision per input score, except that more than two forced
        interrupts collapse into a single BUNDLED_URGENT decision.
    """
    now = now or datetime.now()
    config = resolve_config(config)
    store = resolve_store(store)
    prefs = prefs or TemporalPreferences(user_id=user_id)

    if is_in_quiet_hours(now, prefs) and not prefs.quiet_hours_critical_exception:
        logger.info("quiet_hours_hold", user_id=user_id, items=len(scores))
        return [
            InterruptDecision(s.commitment_id, InterruptAction.STORE_SILENT, QUIET_HOURS_REASON)
            for s in scores
        ]

    held: list[InterruptDecision] = []
    candidates = scores
    if is_in_quiet_hours(now, prefs):
        candidates = [s for s in scores if is_critical(s)]
        held = [
            InterruptDecision(
                s.commitment_id, InterruptAction.STORE_SILENT, QUIET_HOURS_NOT_CRITICAL_REASON
            )
            for s in scores
            if not is_critical(s)
        ]

    ranked = sorted(candidates, key=lambda s: s.total_score, reverse=True)

    with store.locked(budget_key(user_id, now)):
        budget = get_budget(user_id, now, config, store)
        used_at_start = budget.realtime_interrupts_used
        decisions: list[InterruptDecision] = []
        forced_ids: list[str] = []

        for score in ranked:
            action = determine_interrupt_action(score, budget, prefs, config)
            if action == InterruptAction.REALTIME_INTERRUPT:
                budget.realtime_interrupts_used += 1
            elif action == InterruptAction.FORCED_INTERRUPT:
                forced_ids.append(score.commitment_id)

            decision = InterruptDecision(score.commitment_id, action, REASONS[action])
            if in_focus_session:
                decision = _apply_focus_mode(decision, prefs)
            decisions.append(decision)

        budget.forced_interrupts.extend(forced_ids)
        save_budget(budget, store)

    spent = budget.realtime_interrupts_used - used_at_start
    if spent:
        logger.info(
            "realtime_interrupts_spent",
            user_id=user_id,
            spent=spent,
            used=budget.realtime_interrupts_used,
            max=budget.realtime_interrupt_max,
        )
    if forced_ids:
        logger.warning("forced_interrupts", user_id=user_id, commitment_ids=forced_ids)

    if len(forced_ids) > BUNDLE_AFTER:
        decisions = bundle_interrupts(decisions, forced_ids)

    return decisions + held


__all__ = [
    "bundle_interrupts",
    "budget_key",
    "can_send_realtime_interrupt",
    "clear_all_budgets",
    "day_key",
    "determine_interrupt_action",
    "find_budget",
    "get_budget",
    "get_remaining_interrupts",
    "is_critical",
    "is_in_quiet_hours",
    "is_urgent",
    "mark_digest_sent",
    "mark_evening_review_sent",
    "process_interrupt_queue",
    "record_forced_interrupt",
    "record_realtime_interrupt",
    "reset_budget",
    "save_budget",
]
