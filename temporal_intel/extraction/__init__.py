"""
Extraction layer: classify the source, pull commitments out of text, validate them.

Usage:
    from temporal_intel.extraction import classify_input, extract_commitments, validate_commitment
"""

from temporal_intel.extraction.classifier import (
    ClassificationResult,
    classify_input,
    contains_commitment_signals,
    get_classification_threshold,
    meets_classification_threshold,
    process_ingestion_trigger,
)
from temporal_intel.extraction.extractor import (
    extract_commitments,
    extract_temporal_reference,
    merge_commitments,
    parse_date,
)
from temporal_intel.extraction.validator import (
    calculate_overall_confidence,
    filter_actionable,
    filter_by_confidence,
    is_actionable,
    validate_commitment,
    validate_commitments,
)

__all__ = [
    "ClassificationResult",
    "calculate_overall_confidence",
    "classify_input",
    "contains_commitment_signals",
    "extract_commitments",
    "extract_temporal_reference",
    "filter_actionable",
    "filter_by_confidence",
    "get_classification_threshold",
    "is_actionable",
    "meets_classification_threshold",
    "merge_commitments",
    "parse_date",
    "process_ingestion_trigger",
    "validate_commitment",
    "validate_commitments",
]
