"""Dependency inference for commitments that imply preparatory work."""

from temporal_intel.inference.dependencies import (
    enrich_all_with_dependencies,
    format_dependency_chain,
    infer_dependencies,
    mark_dependency_completed,
    mark_dependency_dismissed,
)

__all__ = [
    "enrich_all_with_dependencies",
    "format_dependency_chain",
    "infer_dependencies",
    "mark_dependency_completed",
    "mark_dependency_dismissed",
]
