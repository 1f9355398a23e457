"""Per-user daily interrupt budget and surfacing decisions."""

from temporal_intel.budget.manager import (
    get_budget,
    get_remaining_interrupts,
    is_in_quiet_hours,
    process_interrupt_queue,
)

__all__ = [
    "get_budget",
    "get_remaining_interrupts",
    "is_in_quiet_hours",
    "process_interrupt_queue",
]
