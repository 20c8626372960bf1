"""Conversion Estimator — waitlist-to-enrollment ratio over window history.

Informational only: no transition reads conversion_rate.
"""

from app.core.domain_types import DEFAULT_CONVERSION_RATE
from app.core.recruitment_state import WindowRecord


def estimate_conversion_rate(
    window_history: list[WindowRecord],
    default: float = DEFAULT_CONVERSION_RATE,
) -> float:
    """Σenrolled / Σwaitlist_at_open, or `default` with no usable history."""
    if not window_history:
        return default
    total_waitlist = sum(w.waitlist_at_open for w in window_history)
    if total_waitlist == 0:
        return default
    total_enrolled = sum(w.enrolled for w in window_history)
    return total_enrolled / total_waitlist
