"""Priority scoring for commitments."""

from temporal_intel.scoring.priority import (
    calculate_priority_score,
    calculate_priority_scores,
    format_priority_breakdown,
    infer_category,
    sort_by_priority,
)

__all__ = [
    "calculate_priority_score",
    "calculate_priority_scores",
    "format_priority_breakdown",
    "infer_category",
    "sort_by_priority",
]
