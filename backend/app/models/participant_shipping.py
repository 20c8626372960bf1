"""ParticipantShipping ORM — persists one enrolled participant's shipment.

Invariants:
    - participant_id is the primary key (unique across studies)
    - Always belongs to a Cohort (cohort_id FK)
    - tracking_number is set iff status is shipped or delivered

Design Decisions:
    - study_id denormalized: study-wide lookups without a JOIN through cohorts
    - JSON column for address: read and written whole
"""

from datetime import datetime

from sqlalchemy import String, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ParticipantShipping(Base):
    """Shipping record for one participant."""
    __tablename__ = "participant_shipping"

    participant_id: Mapped[str] = mapped_column(String(200), primary_key=True)
    study_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("study_recruitment.study_id"),
        nullable=False, index=True,
    )
    cohort_id: Mapped[str] = mapped_column(
        String(160), ForeignKey("cohorts.id"), nullable=False, index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="ready_to_ship",
    )
    display_name: Mapped[str] = mapped_column(String(120), nullable=False)
    initials: Mapped[str] = mapped_column(String(8), nullable=False)
    address: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tracking_carrier: Mapped[str | None] = mapped_column(String(16), nullable=True)
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    shipped_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
