"""Domain Types — identity types, lifecycle enums and constants for recruitment.

Invariants:
    - StudyId, CohortId, ParticipantId wrap str — never pass bare ids through core logic
    - Every lifecycle state is an Enum member — no raw string matching
    - CohortId format is "{study_id}-cohort-{n}" (see cohort_id_for)

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (snapshots, API responses)
"""

from datetime import timedelta
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

StudyId = NewType("StudyId", str)
CohortId = NewType("CohortId", str)
ParticipantId = NewType("ParticipantId", str)


# ─── Constants ───────────────────────────────────────────────────

DEFAULT_WINDOW_DURATION = timedelta(hours=24)
DEFAULT_WAITLIST_COUNT = 50
DEFAULT_CONVERSION_RATE = 0.35


def cohort_id_for(study_id: StudyId, cohort_number: int) -> CohortId:
    """Build the cohort id for the n-th cohort of a study."""
    return CohortId(f"{study_id}-cohort-{cohort_number}")


# ─── Enums ───────────────────────────────────────────────────────

class RecruitmentStatus(str, Enum):
    """Study recruitment lifecycle — maps to DB `status` column."""
    WAITLIST_ONLY = "waitlist_only"
    WINDOW_OPEN = "window_open"
    WINDOW_CLOSED = "window_closed"
    READY_TO_OPEN = "ready_to_open"
    COMPLETE = "complete"


class CohortStatus(str, Enum):
    """Cohort fulfillment lifecycle. COMPLETE is terminal and freezes the cohort."""
    PENDING_SHIPMENT = "pending_shipment"
    SHIPPING = "shipping"
    COMPLETE = "complete"


class ShippingStatus(str, Enum):
    """Per-participant shipment state."""
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class Carrier(str, Enum):
    """Carriers recognised by the tracking-number classifier."""
    UPS = "UPS"
    FEDEX = "FedEx"
    USPS = "USPS"
    DHL = "DHL"


class CommandOutcome(str, Enum):
    """Tagged outcome of every recruitment command."""
    OK = "ok"
    INVALID_TRANSITION = "invalid_transition"
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"


class RecruitmentCommand(str, Enum):
    """Commands that drive the recruitment state machine."""
    GO_LIVE = "go_live"
    OPEN_WINDOW = "open_window"
    CLOSE_WINDOW = "close_window"
    RECORD_ENROLLMENT = "record_enrollment"
    ENTER_TRACKING = "enter_tracking_code"
