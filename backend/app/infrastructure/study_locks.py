"""Async Study Locks — one asyncio.Lock per study for request-level serialization.

Invariants:
    - Requests for the same study run load -> command -> persist one at a time
    - Requests for different studies never wait on each other
    - An entry exists only while a request holds or waits on it; requests for
      unknown study ids leave nothing behind

Design Decisions:
    - Entries are holder-counted (holders + waiters) and deleted at zero, so a
      queued waiter always finds the same lock its predecessor released
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class AsyncStudyLocks:
    """asyncio.Lock per study_id, released from the table with its last holder."""

    def __init__(self):
        self._entries: dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, study_id: str) -> AsyncIterator[None]:
        entry = self._entries.get(study_id)
        if entry is None:
            entry = self._entries[study_id] = _LockEntry()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[study_id]

    def locked(self, study_id: str) -> bool:
        entry = self._entries.get(study_id)
        return entry is not None and entry.lock.locked()
