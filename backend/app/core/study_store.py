"""Study Store — keyed repository of StudyRecruitmentState with per-study locks.

Invariants:
    - At most one state per study_id; states leave only via discard() or reset()
    - StudyLocks holds an entry only while some thread holds or waits on it,
      so the table is bounded by concurrent callers, not by ids ever seen
    - Locks for different studies never block each other

Design Decisions:
    - threading.Lock per key: controller commands are synchronous reducers,
      so a plain mutex gives single-writer semantics per study
    - _guard protects the entry table and its holder counts, never held
      during a command
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from app.core.domain_types import StudyId
from app.core.recruitment_state import StudyRecruitmentState


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class StudyLocks:
    """Mutex per study, created on first use and dropped when the last holder leaves."""

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, study_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(study_id)
            if entry is None:
                entry = self._entries[study_id] = _LockEntry()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[study_id]


class StudyStateStore:
    """study_id -> StudyRecruitmentState behind an explicit get/put interface."""

    def __init__(self):
        self._states: dict[StudyId, StudyRecruitmentState] = {}

    def __contains__(self, study_id: object) -> bool:
        return study_id in self._states

    def get(self, study_id: StudyId) -> StudyRecruitmentState | None:
        return self._states.get(study_id)

    def put(self, state: StudyRecruitmentState) -> None:
        self._states[state.study_id] = state

    def discard(self, study_id: StudyId) -> bool:
        return self._states.pop(study_id, None) is not None

    def study_ids(self) -> list[StudyId]:
        return list(self._states)

    def reset(self) -> None:
        self._states.clear()
