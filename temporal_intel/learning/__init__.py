"""Outcome tracking and preference learning."""

from temporal_intel.learning.outcomes import (
    LearningJobResult,
    adjust_preferences_from_outcomes,
    calculate_dismissal_rate,
    calculate_engagement_rate,
    cleanup_old_outcomes,
    get_learning_stats,
    record_dismissal,
    record_engagement,
    record_feedback,
    run_daily_learning,
    run_learning_for_user,
)

__all__ = [
    "LearningJobResult",
    "adjust_preferences_from_outcomes",
    "calculate_dismissal_rate",
    "calculate_engagement_rate",
    "cleanup_old_outcomes",
    "get_learning_stats",
    "record_dismissal",
    "record_engagement",
    "record_feedback",
    "run_daily_learning",
    "run_learning_for_user",
]
