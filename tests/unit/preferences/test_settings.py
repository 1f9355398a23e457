"""Tests for temporal_intel/preferences/settings.py

Key behaviors:
- Users without a record get defaults and nothing is written on read
- Updates validate field names, HH:MM strings and categories
- Concurrent writers to the same user never lose an update
"""

import threading

import pytest

from temporal_intel.models import TemporalPreferences
from temporal_intel.preferences.settings import (
    clear_all_preferences,
    disable_focus_mode,
    enable_focus_mode,
    get_preferences,
    modify_preferences,
    prefs_key,
    reset_preferences,
    set_critical_categories,
    set_evening_review,
    set_quiet_hours,
    update_category_weight,
    update_preferences,
    update_preferred_digest_time,
    update_realtime_tolerance,
    update_typical_action_delay,
)


# ─────────────────────────────────────────────────────────────────────────────
# Reading
# ─────────────────────────────────────────────────────────────────────────────


class TestGetPreferences:
    """Tests for default handling."""

    def test_defaults(self, store, mock_user_id):
        prefs = get_preferences(mock_user_id)

        assert prefs.quiet_hours_start == "21:00"
        assert prefs.quiet_hours_end == "07:00"
        assert prefs.critical_categories == ["financial", "health", "family"]
        assert prefs.realtime_tolerance == 0.5
        assert prefs.evening_review_enabled is False
        assert store.get(prefs_key(mock_user_id)) is None

    def test_round_trip_through_store(self, mock_user_id):
        update_preferences(mock_user_id, quiet_hours_start="22:30")
        assert get_preferences(mock_user_id).quiet_hours_start == "22:30"


# ─────────────────────────────────────────────────────────────────────────────
# Updates
# ─────────────────────────────────────────────────────────────────────────────


class TestUpdatePreferences:
    """Tests for validated updates."""

    def test_unknown_field(self, mock_user_id):
        with pytest.raises(ValueError, match="Invalid fields"):
            update_preferences(mock_user_id, loudness=11)

    def test_updated_at_is_not_updatable(self, mock_user_id):
        with pytest.raises(ValueError):
            update_preferences(mock_user_id, updated_at="2026-01-01T00:00:00")

    @pytest.mark.parametrize("value", ["25:00", "7:00", "07:60", "noon"])
    def test_bad_time(self, mock_user_id, value):
        with pytest.raises(ValueError, match="Invalid time format"):
            update_preferences(mock_user_id, preferred_digest_time=value)

    def test_unknown_category(self, mock_user_id):
        with pytest.raises(ValueError, match="Unknown category"):
            set_critical_categories(mock_user_id, ["financial", "hobbies"])

    def test_failed_update_writes_nothing(self, store, mock_user_id):
        with pytest.raises(ValueError):
            update_preferences(mock_user_id, quiet_hours_start="late")
        assert store.get(prefs_key(mock_user_id)) is None

    def test_tolerance_is_clamped(self, mock_user_id):
        assert update_realtime_tolerance(mock_user_id, 1.7).realtime_tolerance == 1.0
        assert update_realtime_tolerance(mock_user_id, -0.3).realtime_tolerance == 0.0

    def test_updated_at_advances(self, mock_user_id):
        before = get_preferences(mock_user_id).updated_at
        after = update_preferred_digest_time(mock_user_id, "08:15")

        assert after.preferred_digest_time == "08:15"
        assert after.updated_at >= before


class TestConvenienceSetters:
    """Tests for the named setters."""

    def test_quiet_hours(self, mock_user_id):
        prefs = set_quiet_hours(mock_user_id, "22:00", "06:30", critical_exception=False)

        assert prefs.quiet_hours_start == "22:00"
        assert prefs.quiet_hours_end == "06:30"
        assert prefs.quiet_hours_critical_exception is False

    def test_critical_categories(self, mock_user_id):
        prefs = set_critical_categories(mock_user_id, ["legal", "health"])
        assert prefs.critical_categories == ["legal", "health"]

    def test_focus_mode(self, mock_user_id):
        disabled = disable_focus_mode(mock_user_id)
        assert disabled.focus_mode_reduce_suggestions is False
        assert disabled.focus_mode_batch_until_end is False

        enabled = enable_focus_mode(mock_user_id, sync_calendar=False)
        assert enabled.focus_mode_reduce_suggestions is True
        assert enabled.focus_mode_sync_calendar is False
        assert enabled.focus_mode_batch_until_end is True

    def test_evening_review(self, mock_user_id):
        assert set_evening_review(mock_user_id, True).evening_review_enabled is True


# ─────────────────────────────────────────────────────────────────────────────
# Learned Values
# ─────────────────────────────────────────────────────────────────────────────


class TestLearnedValues:
    """Tests for weights and delays."""

    def test_category_weight_merges_and_clamps(self, mock_user_id):
        update_category_weight(mock_user_id, "family_affinity", 0.9)
        prefs = update_category_weight(mock_user_id, "financial", 1.4)

        assert prefs.category_weights == {"family_affinity": 0.9, "financial": 1.0}

    def test_typical_action_delay(self, mock_user_id):
        prefs = update_typical_action_delay(mock_user_id, "calendar", 2.5)
        assert prefs.typical_action_delay == {"calendar": 2.5}

    def test_modify_with_no_changes(self, mock_user_id):
        prefs = modify_preferences(mock_user_id, lambda current: {})
        assert prefs.realtime_tolerance == TemporalPreferences(user_id=mock_user_id).realtime_tolerance

    def test_concurrent_writers_keep_every_update(self, mock_user_id):
        """Should keep all twenty weights when written from twenty threads."""
        threads = [
            threading.Thread(target=update_category_weight, args=(mock_user_id, f"cat_{i}", 0.5))
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(get_preferences(mock_user_id).category_weights) == 20


class TestReset:
    def test_reset(self, store, mock_user_id):
        set_evening_review(mock_user_id, True)

        prefs = reset_preferences(mock_user_id)

        assert prefs.evening_review_enabled is False
        assert store.get(prefs_key(mock_user_id)) is None

    def test_clear_all(self):
        set_evening_review("alice", True)
        set_evening_review("bob", True)
        assert clear_all_preferences() == 2
