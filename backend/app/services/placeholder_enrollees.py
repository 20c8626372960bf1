"""Placeholder Enrollees — deterministic stand-in for the enrollment/address feed.

Invariants:
    - Returns exactly `count` profiles, each with an address
    - Output depends only on (cohort_id, index): repeatable across runs

Design Decisions:
    - Used until a real enrollment query is wired in; names and addresses are
      cosmetic and carry no business meaning
"""

from app.core.domain_types import CohortId, StudyId
from app.core.recruitment_state import ShippingAddress
from app.core.repository_protocols import EnrolleeProfile

_FIRST_NAMES = (
    "Sarah", "Mike", "Emily", "James", "Lisa", "David", "Anna", "Chris",
    "Rachel", "Kevin", "Jennifer", "Brian", "Michelle", "Steven", "Laura",
)
_LAST_INITIALS = ("M", "T", "R", "K", "W", "H", "P", "L", "S", "C", "N", "B")
_CITIES = (
    ("Austin", "TX"), ("Seattle", "WA"), ("Denver", "CO"), ("Portland", "OR"),
    ("Phoenix", "AZ"), ("San Diego", "CA"), ("Miami", "FL"), ("Chicago", "IL"),
)
_STREETS = ("Main", "Oak", "Pine", "Elm", "Maple")


def placeholder_profile(index: int) -> EnrolleeProfile:
    first = _FIRST_NAMES[index % len(_FIRST_NAMES)]
    last_initial = _LAST_INITIALS[index % len(_LAST_INITIALS)]
    display_name = f"{first} {last_initial}."
    city, state = _CITIES[index % len(_CITIES)]
    return EnrolleeProfile(
        display_name=display_name,
        initials=f"{first[0]}{last_initial}",
        address=ShippingAddress(
            full_name=display_name,
            street1=f"{100 + index * 111} {_STREETS[index % len(_STREETS)]} St",
            city=city,
            state=state,
            zip_code=f"{70000 + index * 1234:05d}"[-5:],
        ),
    )


class PlaceholderEnrolleeSource:
    """EnrolleeSource that fabricates repeatable profiles."""

    def enrollees_for_window(
        self, study_id: StudyId, cohort_id: CohortId, count: int,
    ) -> list[EnrolleeProfile]:
        return [placeholder_profile(i) for i in range(count)]
