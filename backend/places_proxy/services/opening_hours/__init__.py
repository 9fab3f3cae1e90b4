"""Opening hours engine.

Pure functions deciding whether a place is open and when it next opens or
closes.
"""

from .engine import (
    calculate_next_relevant_time,
    compute_next_label,
    is_open_now,
    next_occurrence,
    parse_hhmm,
    refresh_open_now,
)

__all__ = [
    "calculate_next_relevant_time",
    "compute_next_label",
    "is_open_now",
    "next_occurrence",
    "parse_hhmm",
    "refresh_open_now",
]
