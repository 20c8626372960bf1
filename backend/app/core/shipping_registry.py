"""Participant Shipping Registry — keyed store of shipping records with a cohort index.

Invariants:
    - participant_id is unique across the registry
    - The cohort index lists participant ids in insertion order
    - Records leave only through discard_study (eviction) or reset()
"""

from app.core.domain_types import CohortId, ParticipantId
from app.core.recruitment_state import ParticipantShipping


class ParticipantShippingRegistry:
    """participant_id -> ParticipantShipping, plus cohort_id -> [participant_id]."""

    def __init__(self):
        self._records: dict[ParticipantId, ParticipantShipping] = {}
        self._by_cohort: dict[CohortId, list[ParticipantId]] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._records

    def get(self, participant_id: ParticipantId) -> ParticipantShipping | None:
        return self._records.get(participant_id)

    def put_many(self, records: list[ParticipantShipping]) -> None:
        """Insert new records. Re-putting a known id replaces it in place."""
        for record in records:
            if record.participant_id not in self._records:
                self._by_cohort.setdefault(record.cohort_id, []).append(
                    record.participant_id,
                )
            self._records[record.participant_id] = record

    def replace(self, record: ParticipantShipping) -> None:
        """Overwrite an existing record; its cohort membership cannot change."""
        existing = self._records.get(record.participant_id)
        if existing is None:
            raise KeyError(record.participant_id)
        if existing.cohort_id != record.cohort_id:
            raise ValueError(
                f"Participant {record.participant_id} cannot move from "
                f"{existing.cohort_id} to {record.cohort_id}",
            )
        self._records[record.participant_id] = record

    def in_cohort(self, cohort_id: CohortId) -> list[ParticipantShipping]:
        return [self._records[pid] for pid in self._by_cohort.get(cohort_id, [])]

    def discard_study(self, study_id: str) -> int:
        """Drop every record (and cohort index entry) of one study. Returns the count."""
        doomed = [pid for pid, r in self._records.items() if r.study_id == study_id]
        for pid in doomed:
            cohort_ids = self._by_cohort.get(self._records.pop(pid).cohort_id)
            if cohort_ids is not None:
                cohort_ids.remove(pid)
        for cohort_id in [c for c, ids in self._by_cohort.items() if not ids]:
            del self._by_cohort[cohort_id]
        return len(doomed)

    def reset(self) -> None:
        self._records.clear()
        self._by_cohort.clear()
