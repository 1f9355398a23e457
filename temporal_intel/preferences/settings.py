"""
Tool: Temporal Preferences
Purpose: Per-user temporal settings (quiet hours, critical categories, focus mode, learned weights)

Usage:
    from temporal_intel.preferences.settings import (
        get_preferences,
        update_preferences,
        set_quiet_hours,
        enable_focus_mode,
    )

    prefs = get_preferences("alice")
    set_quiet_hours("alice", "22:00", "06:30", critical_exception=False)

Design:
    - A user with no record gets the defaults; nothing is written until the
      first change.
    - Every write is a read-modify-write under the record's lock, so a
      settings change and a learning adjustment landing together both stick.
    - Bad input (unknown field, bad HH:MM, unknown category) raises ValueError.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, Optional

from temporal_intel.config_models import validate_hhmm
from temporal_intel.logging_config import get_logger
from temporal_intel.models import CommitmentCategory, TemporalPreferences, local_naive
from temporal_intel.store import KeyValueStore, resolve_store

logger = get_logger(__name__)

_TIME_FIELDS = {"quiet_hours_start", "quiet_hours_end", "preferred_digest_time"}
UPDATABLE_FIELDS = {
    f.name for f in dataclasses.fields(TemporalPreferences) if f.name not in ("user_id", "updated_at")
}


def prefs_key(user_id: str) -> str:
    return f"prefs:{user_id}"


def get_preferences(user_id: str, store: Optional[KeyValueStore] = None) -> TemporalPreferences:
    """Stored preferences for a user, or the defaults when there are none."""
    data = resolve_store(store).get(prefs_key(user_id))
    if data is None:
        return TemporalPreferences(user_id=user_id)
    return TemporalPreferences.from_dict(data)


def list_preferences(store: Optional[KeyValueStore] = None) -> list[TemporalPreferences]:
    """Every stored preference record (users still on defaults have none)."""
    return [TemporalPreferences.from_dict(d) for d in resolve_store(store).values("prefs:")]


def _validate_categories(categories: Iterable[Any]) -> list[str]:
    values = []
    for category in categories:
        try:
            values.append(CommitmentCategory(category).value)
        except ValueError:
            raise ValueError(f"Unknown category: {category}") from None
    return values


def _validate_updates(updates: dict[str, Any]) -> dict[str, Any]:
    invalid = set(updates) - UPDATABLE_FIELDS
    if invalid:
        raise ValueError(f"Invalid fields: {sorted(invalid)}")

    cleaned = dict(updates)
    for name in _TIME_FIELDS & set(cleaned):
        validate_hhmm(cleaned[name])
    if "critical_categories" in cleaned:
        cleaned["critical_categories"] = _validate_categories(cleaned["critical_categories"])
    if "realtime_tolerance" in cleaned:
        cleaned["realtime_tolerance"] = max(0.0, min(1.0, float(cleaned["realtime_tolerance"])))
    if isinstance(cleaned.get("last_learning_run_at"), str):
        cleaned["last_learning_run_at"] = local_naive(
            datetime.fromisoformat(cleaned["last_learning_run_at"])
        )
    return cleaned


def update_preferences(
    user_id: str,
    store: Optional[KeyValueStore] = None,
    **updates: Any,
) -> TemporalPreferences:
    """
    Merge field updates into a user's preferences.

    Args:
        user_id: The user ID
        store: Preference storage; the process default when omitted
        **updates: TemporalPreferences fields to change

    Returns:
        The updated preferences

    Raises:
        ValueError: Unknown field, malformed HH:MM or unknown category
    """
    cleaned = _validate_updates(updates)
    return modify_preferences(user_id, lambda _: cleaned, store)


def modify_preferences(
    user_id: str,
    compute: Callable[[TemporalPreferences], dict[str, Any]],
    store: Optional[KeyValueStore] = None,
) -> TemporalPreferences:
    """
    Read-modify-write under the preference record's lock.

    compute receives the current preferences and returns the field updates
    to apply; returning an empty dict leaves the record unchanged.
    """
    store = resolve_store(store)
    changed: list[str] = []

    def _merge(existing: Optional[dict]) -> dict:
        prefs = (
            TemporalPreferences.from_dict(existing)
            if existing is not None
            else TemporalPreferences(user_id=user_id)
        )
        updates = _validate_updates(compute(prefs))
        changed.extend(sorted(updates))
        if updates:
            prefs = dataclasses.replace(prefs, **updates, updated_at=datetime.now())
        return prefs.to_dict()

    result = TemporalPreferences.from_dict(store.update(prefs_key(user_id), _merge))
    if changed:
        logger.info("preferences_updated", user_id=user_id, fields=changed)
    return result


def set_quiet_hours(
    user_id: str,
    start: str,
    end: str,
    critical_exception: bool = True,
    store: Optional[KeyValueStore] = None,
) -> TemporalPreferences:
    return update_preferences(
        user_id,
        store,
        quiet_hours_start=start,
        quiet_hours_end=end,
        quiet_hours_critical_exception=critical_exception,
    )


def set_critical_categories(
    user_id: str,
    categories: list[str],
    store: Optional[KeyValueStore] = None,
) -> TemporalPreferences:
    return update_preferences(user_id, store, critical_categories=list(categories))


def enable_focus_mode(
    user_id: str,
    sync_calendar: bool = True,
    batch_until_end: bool = True,
    store: Optional[KeyValueStore] = None,
) -> TemporalPreferences:
    return update_preferences(
        user_id,
        store,
        focus_mode_reduce_suggestions=True,
        focus_mode_sync_calendar=sync_calendar,
        focus_mode_batch_until_end=batch_until_end,
    )


def disable_focus_mode(user_id: str, store: Optional[KeyValueStore] = None) -> TemporalPreferences:
    return update_preferences(
        user_id,
        store,
        focus_mode_reduce_suggestions=False,
        focus_mode_sync_calendar=False,
        focus_mode_batch_until_end=False,
    )


def set_evening_review(
    user_id: str,
    enabled: bool,
    store: Optional[KeyValueStore] = None,
) -> TemporalPreferences:
    return update_preferences(user_id, store, evening_review_enabled=enabled)


# =============================================================================
# Learned values
# =============================================================================

def update_category_weight(
    user_id: str,
    category: str,
    weight: float,
    store: Optional[KeyValueStore] = None,
) -> TemporalPreferences:
    """Set a learned weight. Keys are category names or "<category>_affinity"."""
    clamped = max(0.0, min(1.0, weight))
    return modify_preferences(
        user_id,
        lambda prefs: {"category_weights": {**prefs.category_weights, category: clamped}},
        store,
    )


def update_typical_action_delay(
    user_id: str,
    action_type: str,
    hours: float,
    store: Optional[KeyValueStore] = None,
) -> TemporalPreferences:
    return modify_preferences(
        user_id,
        lambda prefs: {"typical_action_delay": {**prefs.typical_action_delay, action_type: hours}},
        store,
    )


def update_realtime_tolerance(
    user_id: str,
    tolerance: float,
    store: Optional[KeyValueStore] = None,
) -> TemporalPreferences:
    """Clamped to [0, 1]."""
    return update_preferences(user_id, store, realtime_tolerance=tolerance)


def update_preferred_digest_time(
    user_id: str,
    digest_time: str,
    store: Optional[KeyValueStore] = None,
) -> TemporalPreferences:
    return update_preferences(user_id, store, preferred_digest_time=digest_time)


def reset_preferences(user_id: str, store: Optional[KeyValueStore] = None) -> TemporalPreferences:
    resolve_store(store).delete(prefs_key(user_id))
    logger.info("preferences_reset", user_id=user_id)
    return TemporalPreferences(user_id=user_id)


def clear_all_preferences(store: Optional[KeyValueStore] = None) -> int:
    return resolve_store(store).clear("prefs:")


__all__ = [
    "UPDATABLE_FIELDS",
    "clear_all_preferences",
    "disable_focus_mode",
    "enable_focus_mode",
    "get_preferences",
    "list_preferences",
    "modify_preferences",
    "prefs_key",
    "reset_preferences",
    "set_critical_categories",
    "set_evening_review",
    "set_quiet_hours",
    "update_category_weight",
    "update_preferences",
    "update_preferred_digest_time",
    "update_realtime_tolerance",
    "update_typical_action_delay",
]
