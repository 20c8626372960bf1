"""Boundary Protocols — contracts between the recruitment core and its collaborators.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Time and enrollee data reach the core only through these Protocols
    - Implementations are injected into RecruitmentController

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Clock is a bare callable so tests can pass a lambda
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from app.core.domain_types import CohortId, StudyId
from app.core.recruitment_state import ShippingAddress


@dataclass(frozen=True)
class EnrolleeProfile:
    """Identity and address data for one enrollee, as supplied by the source."""
    display_name: str
    initials: str
    address: ShippingAddress | None = None


class Clock(Protocol):
    """Returns the current time as an aware UTC datetime."""
    def __call__(self) -> datetime: ...


class EnrolleeSource(Protocol):
    """Contract for the enrollment/address data feed — implemented by shell."""
    def enrollees_for_window(
        self, study_id: StudyId, cohort_id: CohortId, count: int,
    ) -> list[EnrolleeProfile]: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
