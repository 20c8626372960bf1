"""Recruitment Snapshot — serialization / deserialization for recruitment dataclasses.

Invariants:
    - *_to_snapshot produces JSON-safe dicts (no Enums, no datetimes)
    - *_from_snapshot reconstructs the dataclass from any valid snapshot dict
    - Missing optional keys fall back to dataclass defaults (forward-compatible)
    - A restored study's current_cohort is the same object as its entry in cohorts

Design Decisions:
    - current_cohort is stored by id, not duplicated, so the two never diverge
    - Datetimes as ISO-8601 strings; None stays None
"""

from datetime import datetime

from app.core.domain_types import (
    CohortId, CohortStatus, ParticipantId, RecruitmentStatus,
    ShippingStatus, StudyId, DEFAULT_CONVERSION_RATE,
)
from app.core.recruitment_state import (
    Cohort, ParticipantShipping, ShippingAddress,
    StudyRecruitmentState, WindowRecord,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# --- Address ------------------------------------------------------------------

def address_to_snapshot(address: ShippingAddress | None) -> dict | None:
    if address is None:
        return None
    return {
        "full_name": address.full_name,
        "street1": address.street1,
        "street2": address.street2,
        "city": address.city,
        "state": address.state,
        "zip_code": address.zip_code,
    }


def address_from_snapshot(data: dict | None) -> ShippingAddress | None:
    if not data:
        return None
    return ShippingAddress(
        full_name=data["full_name"],
        street1=data["street1"],
        street2=data.get("street2"),
        city=data["city"],
        state=data["state"],
        zip_code=data["zip_code"],
    )


# --- Participant --------------------------------------------------------------

def participant_to_snapshot(p: ParticipantShipping) -> dict:
    return {
        "participant_id": p.participant_id,
        "study_id": p.study_id,
        "cohort_id": p.cohort_id,
        "status": p.status.value,
        "display_name": p.display_name,
        "initials": p.initials,
        "address": address_to_snapshot(p.address),
        "tracking_number": p.tracking_number,
        "tracking_carrier": p.tracking_carrier,
        "enrolled_at": _iso(p.enrolled_at),
        "shipped_at": _iso(p.shipped_at),
    }


def participant_from_snapshot(data: dict) -> ParticipantShipping:
    return ParticipantShipping(
        participant_id=ParticipantId(data["participant_id"]),
        study_id=StudyId(data["study_id"]),
        cohort_id=CohortId(data["cohort_id"]),
        status=ShippingStatus(data.get("status", ShippingStatus.READY_TO_SHIP.value)),
        display_name=data.get("display_name", ""),
        initials=data.get("initials", ""),
        address=address_from_snapshot(data.get("address")),
        tracking_number=data.get("tracking_number"),
        tracking_carrier=data.get("tracking_carrier"),
        enrolled_at=_parse(data.get("enrolled_at")),
        shipped_at=_parse(data.get("shipped_at")),
    )


# --- Cohort -------------------------------------------------------------------

def cohort_to_snapshot(cohort: Cohort) -> dict:
    return {
        "id": cohort.id,
        "study_id": cohort.study_id,
        "cohort_number": cohort.cohort_number,
        "status": cohort.status.value,
        "window_opened_at": _iso(cohort.window_opened_at),
        "window_closed_at": _iso(cohort.window_closed_at),
        "participant_ids": list(cohort.participant_ids),
        "addresses_collected": cohort.addresses_collected,
        "tracking_codes_entered": cohort.tracking_codes_entered,
        "all_tracking_entered": cohort.all_tracking_entered,
        "delivered_count": cohort.delivered_count,
    }


def cohort_from_snapshot(data: dict) -> Cohort:
    return Cohort(
        id=CohortId(data["id"]),
        study_id=StudyId(data["study_id"]),
        cohort_number=data["cohort_number"],
        status=CohortStatus(data.get("status", CohortStatus.PENDING_SHIPMENT.value)),
        window_opened_at=_parse(data.get("window_opened_at")),
        window_closed_at=_parse(data.get("window_closed_at")),
        participant_ids=[ParticipantId(pid) for pid in data.get("participant_ids", [])],
        addresses_collected=data.get("addresses_collected", 0),
        tracking_codes_entered=data.get("tracking_codes_entered", 0),
        all_tracking_entered=data.get("all_tracking_entered", False),
        delivered_count=data.get("delivered_count", 0),
    )


# --- Study --------------------------------------------------------------------

def study_state_to_snapshot(state: StudyRecruitmentState) -> dict:
    """Serialize a study, its cohorts and window history. Pure, no IO."""
    return {
        "study_id": state.study_id,
        "status": state.status.value,
        "total_enrolled": state.total_enrolled,
        "target_participants": state.target_participants,
        "waitlist_count": state.waitlist_count,
        "current_window_opened_at": _iso(state.current_window_opened_at),
        "current_window_ends_at": _iso(state.current_window_ends_at),
        "current_window_enrolled": state.current_window_enrolled,
        "current_cohort_id": (
            state.current_cohort.id if state.current_cohort else None
        ),
        "cohorts": [cohort_to_snapshot(c) for c in state.cohorts],
        "window_history": [
            {"waitlist_at_open": w.waitlist_at_open, "enrolled": w.enrolled}
            for w in state.window_history
        ],
        "conversion_rate": state.conversion_rate,
    }


def study_state_from_snapshot(data: dict) -> StudyRecruitmentState:
    """Reconstruct a study from a snapshot dict. Pure, no IO."""
    cohorts = [cohort_from_snapshot(c) for c in data.get("cohorts", [])]
    current_id = data.get("current_cohort_id")
    return StudyRecruitmentState(
        study_id=StudyId(data["study_id"]),
        status=RecruitmentStatus(
            data.get("status", RecruitmentStatus.WAITLIST_ONLY.value),
        ),
        total_enrolled=data.get("total_enrolled", 0),
        target_participants=data["target_participants"],
        waitlist_count=data.get("waitlist_count", 0),
        current_window_opened_at=_parse(data.get("current_window_opened_at")),
        current_window_ends_at=_parse(data.get("current_window_ends_at")),
        current_window_enrolled=data.get("current_window_enrolled", 0),
        current_cohort=next((c for c in cohorts if c.id == current_id), None),
        cohorts=cohorts,
        window_history=[
            WindowRecord(w["waitlist_at_open"], w.get("enrolled", 0))
            for w in data.get("window_history", [])
        ],
        conversion_rate=data.get("conversion_rate", DEFAULT_CONVERSION_RATE),
    )
