"""Recruitment Schemas — Pydantic models with field-level validation for API boundaries.

Invariants:
    - StudyCreate.study_id: 1-128 chars, stripped, URL-safe
    - Counts are non-negative; target_participants is positive
    - TrackingCodeEntry.tracking_number is stripped and non-empty
    - BulkTrackingEntry tolerates blank codes (skipped by the controller)

Design Decisions:
    - field_validator for side-effect-free transforms (strip)
"""

from pydantic import BaseModel, Field, field_validator


class StudyCreate(BaseModel):
    """Study initialization — target and starting waitlist."""
    study_id: str = Field(min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_.-]+$")
    target_participants: int = Field(ge=1, le=100_000)
    waitlist_count: int | None = Field(None, ge=0)


class CountUpdate(BaseModel):
    """Enrollment or waitlist increment."""
    count: int = Field(ge=0, le=100_000)


class TrackingCodeEntry(BaseModel):
    """One participant's tracking code."""
    participant_id: str = Field(min_length=1, max_length=200)
    tracking_number: str = Field(min_length=1, max_length=64)

    @field_validator("tracking_number")
    @classmethod
    def strip_tracking_number(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("tracking_number cannot be empty or whitespace")
        return v


class BulkTrackingItem(BaseModel):
    participant_id: str = Field(min_length=1, max_length=200)
    tracking_number: str = Field("", max_length=64)


class BulkTrackingEntry(BaseModel):
    """Tracking codes saved together from the cohort entry sheet."""
    entries: list[BulkTrackingItem] = Field(min_length=1, max_length=10_000)


class CohortProgressResponse(BaseModel):
    """Fulfillment pipeline counts for one cohort."""
    cohort_id: str
    enrolled: int
    addresses_collected: int
    shipped: int
    delivered: int
    needs_tracking: int
    all_addresses_collected: bool
    can_ship: bool
