"""Recruitment State — pure dataclasses for studies, cohorts and participant shipments.

Invariants:
    - total_enrolled <= target_participants
    - current_window_enrolled <= target_participants - total_enrolled
    - len(window_history) == number of windows ever opened
    - Cohort.tracking_codes_entered <= len(participant_ids), and
      all_tracking_entered iff they are equal
    - ParticipantShipping.tracking_number set iff status in {shipped, delivered}

Design Decisions:
    - Dataclasses, not ORM: the state machine runs without a database
    - Cohort counters are refreshed from participant records (see refresh_counts),
      never incremented in place
"""

from dataclasses import dataclass, field
from datetime import datetime

from app.core.domain_types import (
    CohortId, CohortStatus, ParticipantId, RecruitmentStatus,
    ShippingStatus, StudyId, DEFAULT_CONVERSION_RATE,
)


@dataclass
class ShippingAddress:
    """Postal address a participant's product ships to."""
    full_name: str
    street1: str
    city: str
    state: str
    zip_code: str
    street2: str | None = None


@dataclass
class WindowRecord:
    """Waitlist size when a window opened and how many enrolled during it."""
    waitlist_at_open: int
    enrolled: int = 0


@dataclass
class ParticipantShipping:
    """Shipping record for one enrolled participant."""
    participant_id: ParticipantId
    study_id: StudyId
    cohort_id: CohortId
    display_name: str
    initials: str
    enrolled_at: datetime
    status: ShippingStatus = ShippingStatus.READY_TO_SHIP
    address: ShippingAddress | None = None
    tracking_number: str | None = None
    tracking_carrier: str | None = None
    shipped_at: datetime | None = None

    @property
    def has_tracking(self) -> bool:
        return bool(self.tracking_number)


@dataclass
class Cohort:
    """Participants enrolled during one closed window, shipped together."""
    id: CohortId
    study_id: StudyId
    cohort_number: int
    window_opened_at: datetime | None
    window_closed_at: datetime
    participant_ids: list[ParticipantId]
    status: CohortStatus = CohortStatus.PENDING_SHIPMENT
    addresses_collected: int = 0
    tracking_codes_entered: int = 0
    all_tracking_entered: bool = False
    delivered_count: int = 0

    @property
    def size(self) -> int:
        return len(self.participant_ids)

    @property
    def is_complete(self) -> bool:
        return self.status == CohortStatus.COMPLETE

    def refresh_counts(self, participants: list[ParticipantShipping]) -> None:
        """Recount tracking/delivery from the cohort's participant records.

        Only records whose id is in participant_ids are counted, so the
        tracking count can never exceed the cohort size.
        """
        members = set(self.participant_ids)
        owned = [p for p in participants if p.participant_id in members]
        self.tracking_codes_entered = sum(1 for p in owned if p.has_tracking)
        self.delivered_count = sum(
            1 for p in owned if p.status == ShippingStatus.DELIVERED
        )
        self.all_tracking_entered = self.tracking_codes_entered == self.size
        self.status = (
            CohortStatus.COMPLETE if self.all_tracking_entered
            else CohortStatus.SHIPPING
        )


@dataclass
class StudyRecruitmentState:
    """Per-study recruitment state — pure dataclass, no IO."""

    study_id: StudyId
    target_participants: int
    waitlist_count: int
    status: RecruitmentStatus = RecruitmentStatus.WAITLIST_ONLY
    total_enrolled: int = 0

    # === Current window ===
    current_window_opened_at: datetime | None = None
    current_window_ends_at: datetime | None = None
    current_window_enrolled: int = 0

    # === Cohorts (append-only) ===
    current_cohort: Cohort | None = None
    cohorts: list[Cohort] = field(default_factory=list)

    # === Conversion history ===
    window_history: list[WindowRecord] = field(default_factory=list)
    conversion_rate: float = DEFAULT_CONVERSION_RATE

    # --- Computed properties ---------------------------------------------------

    @property
    def remaining_capacity(self) -> int:
        """Seats left once the current window's enrollees are counted."""
        return max(
            0,
            self.target_participants - self.total_enrolled
            - self.current_window_enrolled,
        )

    @property
    def is_full(self) -> bool:
        return self.total_enrolled >= self.target_participants

    @property
    def next_cohort_number(self) -> int:
        return len(self.cohorts) + 1

    # --- Mutation methods --------------------------------------------------------

    def open_window(self, opened_at: datetime, ends_at: datetime) -> None:
        """Start a recruitment window and record the waitlist it opens against."""
        self.status = RecruitmentStatus.WINDOW_OPEN
        self.current_window_opened_at = opened_at
        self.current_window_ends_at = ends_at
        self.current_window_enrolled = 0
        self.window_history.append(
            WindowRecord(waitlist_at_open=self.waitlist_count),
        )

    def finalize_window(self, enrolled: int) -> None:
        """Write the enrolled count into the latest history entry and clear the window."""
        if self.window_history:
            self.window_history[-1].enrolled = enrolled
        self.current_window_enrolled = 0
        self.current_window_ends_at = None
        self.current_window_opened_at = None

    def find_cohort(self, cohort_id: CohortId) -> Cohort | None:
        return next((c for c in self.cohorts if c.id == cohort_id), None)
