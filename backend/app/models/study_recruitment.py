"""StudyRecruitment ORM — persists one study's recruitment state.

Invariants:
    - study_id is the primary key (one row per study, never deleted)
    - status holds a RecruitmentStatus value
    - window_history stores [{waitlist_at_open, enrolled}, ...] in window order
    - current_cohort_id, when set, names a row in cohorts for this study

Design Decisions:
    - JSON column for window_history: small, always read whole
    - cohorts relationship ordered by cohort_number so restore preserves order
"""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, Float, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class StudyRecruitment(Base):
    """Study recruitment aggregate root — owns cohorts."""
    __tablename__ = "study_recruitment"

    study_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="waitlist_only",
    )
    total_enrolled: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    target_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    waitlist_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    current_window_opened_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    current_window_ends_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    current_window_enrolled: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    current_cohort_id: Mapped[str | None] = mapped_column(
        String(160), nullable=True,
    )
    window_history: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    conversion_rate: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.35,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    cohorts: Mapped[list["Cohort"]] = relationship(
        "Cohort", back_populates="study",
        order_by="Cohort.cohort_number", lazy="selectin",
    )
