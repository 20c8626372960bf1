"""Shipment Tracker — records tracking codes and derives cohort completion.

Invariants:
    - Only participants of the study's current cohort accept tracking codes;
      a completed cohort is immutable
    - tracking_codes_entered is a recount of participants with a tracking
      number, so re-saving a code never double-counts
    - Stored tracking numbers are trimmed and non-empty
    - Carrier is derived on every save; an unknown format leaves it None

Design Decisions:
    - The tracker reports completion (TrackingUpdate.cohort_completed) and the
      controller decides the study's next status
    - validate() returns an error dict (None on success) like enforce_transitions,
      record() assumes validation passed
"""

from dataclasses import dataclass, replace

from app.core.carrier_detection import detect_carrier
from app.core.domain_types import (
    CohortId, CommandOutcome, ParticipantId, RecruitmentCommand, ShippingStatus,
)
from app.core.enforce_transitions import (
    command_error, check_command_allowed, check_has_current_cohort,
    check_tracking_number,
)
from app.core.recruitment_state import (
    Cohort, ParticipantShipping, StudyRecruitmentState,
)
from app.core.repository_protocols import Clock, utc_now
from app.core.shipping_registry import ParticipantShippingRegistry


@dataclass(frozen=True)
class TrackingUpdate:
    participant: ParticipantShipping
    cohort: Cohort
    cohort_completed: bool


@dataclass(frozen=True)
class CohortProgress:
    """Fulfillment pipeline for one cohort: enrolled -> addresses -> shipped -> delivered."""
    cohort_id: CohortId
    enrolled: int
    addresses_collected: int
    shipped: int
    delivered: int

    @property
    def needs_tracking(self) -> int:
        return self.enrolled - self.shipped

    @property
    def all_addresses_collected(self) -> bool:
        return self.addresses_collected == self.enrolled

    @property
    def can_ship(self) -> bool:
        return self.all_addresses_collected and self.shipped < self.enrolled


class ShipmentTracker:
    """Applies tracking codes to participant records and refreshes cohort counts."""

    def __init__(self, registry: ParticipantShippingRegistry, clock: Clock = utc_now):
        self._registry = registry
        self._clock = clock

    def validate(
        self,
        state: StudyRecruitmentState,
        participant_id: ParticipantId,
        tracking_number: str,
    ) -> dict | None:
        participant = self._registry.get(participant_id)
        if participant is None or participant.study_id != state.study_id:
            return command_error(
                CommandOutcome.NOT_FOUND, "PARTICIPANT_NOT_FOUND",
                f"Participant '{participant_id}' is not enrolled in "
                f"study '{state.study_id}'.",
            )
        error = (
            check_command_allowed(state, RecruitmentCommand.ENTER_TRACKING)
            or check_has_current_cohort(state)
        )
        if error:
            return error
        if participant.cohort_id != state.current_cohort.id:
            return command_error(
                CommandOutcome.INVALID_TRANSITION, "COHORT_NOT_ACTIVE",
                f"Participant '{participant_id}' belongs to {participant.cohort_id}, "
                f"not the active cohort {state.current_cohort.id}.",
            )
        return check_tracking_number(tracking_number)

    def record(
        self,
        state: StudyRecruitmentState,
        participant_id: ParticipantId,
        tracking_number: str,
    ) -> TrackingUpdate:
        cohort = state.current_cohort
        code = tracking_number.strip()
        carrier = detect_carrier(code)
        updated = replace(
            self._registry.get(participant_id),
            tracking_number=code,
            tracking_carrier=carrier.value if carrier else None,
            status=ShippingStatus.SHIPPED,
            shipped_at=self._clock(),
        )
        self._registry.replace(updated)

        cohort.refresh_counts(self._registry.in_cohort(cohort.id))
        return TrackingUpdate(
            participant=updated,
            cohort=cohort,
            cohort_completed=cohort.all_tracking_entered,
        )

    def progress(self, cohort_id: CohortId) -> CohortProgress:
        participants = self._registry.in_cohort(cohort_id)
        return CohortProgress(
            cohort_id=cohort_id,
            enrolled=len(participants),
            addresses_collected=sum(1 for p in participants if p.address),
            shipped=sum(1 for p in participants if p.has_tracking),
            delivered=sum(
                1 for p in participants if p.status == ShippingStatus.DELIVERED
            ),
        )
