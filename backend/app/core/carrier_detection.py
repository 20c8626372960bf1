"""Carrier Detection — best-effort classification of tracking numbers by format.

Invariants:
    - Input is trimmed and uppercased before matching
    - First matching rule wins, in _CARRIER_PATTERNS order
    - No match returns None; detection failure never blocks saving a code
"""

import re

from app.core.domain_types import Carrier

_CARRIER_PATTERNS: tuple[tuple[Carrier, tuple[re.Pattern, ...]], ...] = (
    (Carrier.UPS, (re.compile(r"^1Z[A-Z0-9]{16}$"),)),
    (Carrier.FEDEX, (re.compile(r"^\d{12,15}$"), re.compile(r"^\d{20,}$"))),
    (Carrier.USPS, (re.compile(r"^\d{20,22}$"), re.compile(r"^94\d{18,}$"))),
    (Carrier.DHL, (re.compile(r"^\d{10}$"),)),
)


def normalize_tracking_number(tracking_number: str) -> str:
    return tracking_number.strip().upper()


def detect_carrier(tracking_number: str | None) -> Carrier | None:
    """Return the first carrier whose format matches, or None."""
    if not tracking_number:
        return None
    code = normalize_tracking_number(tracking_number)
    for carrier, patterns in _CARRIER_PATTERNS:
        if any(p.match(code) for p in patterns):
            return carrier
    return None
