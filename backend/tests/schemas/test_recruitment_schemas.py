"""Recruitment schema validation — request bodies reject bad input before routing.

Invariants:
    - target_participants is positive, counts are non-negative
    - Single tracking codes are stripped and must not be blank
    - Bulk entries allow blank codes (skipped downstream)
"""

import pytest
from pydantic import ValidationError

from app.schemas.recruitment import (
    BulkTrackingEntry,
    CountUpdate,
    StudyCreate,
    TrackingCodeEntry,
)


# --- StudyCreate --------------------------------------------------------------

def test_study_create_defaults_waitlist_to_none():
    body = StudyCreate(study_id="study-1", target_participants=50)
    assert body.waitlist_count is None


@pytest.mark.parametrize("kwargs", [
    {"study_id": "s", "target_participants": 0},
    {"study_id": "s", "target_participants": 5, "waitlist_count": -1},
    {"study_id": "", "target_participants": 5},
    {"study_id": "has space", "target_participants": 5},
])
def test_study_create_rejects(kwargs):
    with pytest.raises(ValidationError):
        StudyCreate(**kwargs)


# --- CountUpdate --------------------------------------------------------------

def test_count_update_accepts_zero():
    assert CountUpdate(count=0).count == 0


def test_count_update_rejects_negative():
    with pytest.raises(ValidationError):
        CountUpdate(count=-3)


# --- Tracking -----------------------------------------------------------------

def test_tracking_code_is_stripped():
    entry = TrackingCodeEntry(participant_id="p", tracking_number="  1234567890 ")
    assert entry.tracking_number == "1234567890"


def test_tracking_code_rejects_whitespace():
    with pytest.raises(ValidationError):
        TrackingCodeEntry(participant_id="p", tracking_number="   ")


def test_bulk_allows_blank_codes():
    bulk = BulkTrackingEntry(entries=[
        {"participant_id": "p0", "tracking_number": "1234567890"},
        {"participant_id": "p1"},
    ])
    assert bulk.entries[1].tracking_number == ""


def test_bulk_requires_entries():
    with pytest.raises(ValidationError):
        BulkTrackingEntry(entries=[])
