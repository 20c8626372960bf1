"""Cohort ORM — persists one closed window's batch of participants.

Invariants:
    - id is "{study_id}-cohort-{cohort_number}"
    - (study_id, cohort_number) is unique
    - participant_ids is fixed at creation

Design Decisions:
    - cohort_number as Integer (not auto-increment): allocated by the controller
"""

from datetime import datetime

from sqlalchemy import (
    String, Integer, Boolean, DateTime, JSON, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class Cohort(Base):
    """Cohort entity — participants enrolled in one window."""
    __tablename__ = "cohorts"
    __table_args__ = (
        UniqueConstraint("study_id", "cohort_number", name="uq_cohort_study_number"),
    )

    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    study_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("study_recruitment.study_id"), nullable=False,
    )
    cohort_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending_shipment",
    )
    window_opened_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    window_closed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    participant_ids: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    addresses_collected: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    tracking_codes_entered: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    all_tracking_entered: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    delivered_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )

    study: Mapped["StudyRecruitment"] = relationship(
        "StudyRecruitment", back_populates="cohorts",
    )
