"""Cohort Factory — builds a Cohort and its shipping records when a window closes.

Invariants:
    - cohort_id is "{study_id}-cohort-{cohort_number}"
    - Participant ids are "{cohort_id}-p{index}", index from 0
    - Every record starts READY_TO_SHIP with no tracking number
    - Cohort starts PENDING_SHIPMENT with zero tracking codes entered
    - addresses_collected counts records that carry an address

Design Decisions:
    - Enrollee identity/address comes from the injected EnrolleeSource;
      the factory only allocates ids and assembles records
    - Caller owns cohort numbering (len(cohorts) + 1); the factory only rejects
      values that can never be valid
"""

from datetime import datetime

from app.core.domain_types import (
    CohortStatus, ParticipantId, ShippingStatus, StudyId, cohort_id_for,
)
from app.core.recruitment_state import Cohort, ParticipantShipping
from app.core.repository_protocols import Clock, EnrolleeSource, utc_now


class CohortFactory:
    """Allocates cohort ids and materialises participant shipping records."""

    def __init__(self, source: EnrolleeSource, clock: Clock = utc_now):
        self._source = source
        self._clock = clock

    def create_cohort(
        self,
        study_id: StudyId,
        cohort_number: int,
        enrolled_count: int,
        window_opened_at: datetime | None = None,
    ) -> tuple[Cohort, list[ParticipantShipping]]:
        if cohort_number < 1:
            raise ValueError(f"cohort_number must be >= 1, got {cohort_number}")
        if enrolled_count < 1:
            raise ValueError(f"enrolled_count must be >= 1, got {enrolled_count}")

        cohort_id = cohort_id_for(study_id, cohort_number)
        profiles = self._source.enrollees_for_window(
            study_id, cohort_id, enrolled_count,
        )
        if len(profiles) != enrolled_count:
            raise ValueError(
                f"Enrollee source returned {len(profiles)} profiles "
                f"for {enrolled_count} enrollments ({cohort_id})",
            )

        now = self._clock()
        participants = [
            ParticipantShipping(
                participant_id=ParticipantId(f"{cohort_id}-p{index}"),
                study_id=study_id,
                cohort_id=cohort_id,
                display_name=profile.display_name,
                initials=profile.initials,
                enrolled_at=now,
                status=ShippingStatus.READY_TO_SHIP,
                address=profile.address,
            )
            for index, profile in enumerate(profiles)
        ]
        cohort = Cohort(
            id=cohort_id,
            study_id=study_id,
            cohort_number=cohort_number,
            window_opened_at=window_opened_at,
            window_closed_at=now,
            participant_ids=[p.participant_id for p in participants],
            status=CohortStatus.PENDING_SHIPMENT,
            addresses_collected=sum(1 for p in participants if p.address),
        )
        return cohort, participants
