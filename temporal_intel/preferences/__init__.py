"""Per-user temporal preferences."""

from temporal_intel.preferences.settings import (
    get_preferences,
    modify_preferences,
    set_quiet_hours,
    update_preferences,
)

__all__ = [
    "get_preferences",
    "modify_preferences",
    "set_quiet_hours",
    "update_preferences",
]
