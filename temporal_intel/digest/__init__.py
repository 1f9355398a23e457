"""Morning digest and evening review generation."""

from temporal_intel.digest.generator import (
    generate_evening_review,
    generate_morning_digest,
    get_undigested,
    should_send_digest,
    should_send_evening_review,
)

__all__ = [
    "generate_evening_review",
    "generate_morning_digest",
    "get_undigested",
    "should_send_digest",
    "should_send_evening_review",
]
