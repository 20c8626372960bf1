"""Root conftest — shared test configuration and core fixtures."""

import os
from datetime import datetime, timedelta, timezone

import pytest

# Tests never reach a real PostgreSQL instance
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)

from app.core.recruitment_controller import RecruitmentController  # noqa: E402
from app.core.recruitment_state import ShippingAddress  # noqa: E402
from app.core.repository_protocols import EnrolleeProfile  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class StubEnrolleeSource:
    """Returns `count` numbered profiles; every `missing_address_every`-th has no address."""

    def __init__(self, missing_address_every: int = 0):
        self.calls: list[tuple[str, str, int]] = []
        self._missing_every = missing_address_every

    def enrollees_for_window(self, study_id, cohort_id, count):
        self.calls.append((study_id, cohort_id, count))
        profiles = []
        for i in range(count):
            skip = self._missing_every and (i + 1) % self._missing_every == 0
            profiles.append(EnrolleeProfile(
                display_name=f"Enrollee {i}",
                initials=f"E{i % 10}",
                address=None if skip else ShippingAddress(
                    full_name=f"Enrollee {i}", street1=f"{i} Test St",
                    city="Austin", state="TX", zip_code="78701",
                ),
            ))
        return profiles


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def source():
    return StubEnrolleeSource()


@pytest.fixture
def controller(clock, source):
    return RecruitmentController(source, clock=clock)


@pytest.fixture
def make_controller(clock):
    """Build a controller with a custom source or settings on the shared clock."""
    def _make(source=None, **kwargs):
        return RecruitmentController(
            source or StubEnrolleeSource(), clock=clock, **kwargs,
        )
    return _make


@pytest.fixture
def stub_source_cls():
    return StubEnrolleeSource
