"""Recruitment Persistence — loads and saves study aggregates through SQLAlchemy.

Invariants:
    - One row per study, per (study, cohort_number), per participant
    - save_study never commits: the caller owns the transaction
    - load_study returns None for unknown studies (no row is created)
    - A restored study's current_cohort is the same object as its cohorts entry

Design Decisions:
    - session.merge() as upsert: every row is keyed by its natural id
    - Only the newest cohort's participants are written per command: close_window
      creates them and tracking entry only touches the active (newest) cohort
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.domain_types import (
    CohortId, CohortStatus, ParticipantId, RecruitmentStatus,
    ShippingStatus, StudyId,
)
from app.core.errors import ErrorContext
from app.core.recruitment_controller import RecruitmentController
from app.core.recruitment_snapshot import (
    address_from_snapshot, address_to_snapshot,
)
from app.core.recruitment_state import (
    Cohort, ParticipantShipping, StudyRecruitmentState, WindowRecord,
)
from app.infrastructure.database import map_database_error
from app.models.cohort import Cohort as CohortModel
from app.models.participant_shipping import (
    ParticipantShipping as ParticipantShippingModel,
)
from app.models.study_recruitment import StudyRecruitment as StudyModel

logger = logging.getLogger(__name__)


# -- Domain -> rows ------------------------------------------------------------

def _study_row(state: StudyRecruitmentState) -> StudyModel:
    return StudyModel(
        study_id=state.study_id,
        status=state.status.value,
        total_enrolled=state.total_enrolled,
        target_participants=state.target_participants,
        waitlist_count=state.waitlist_count,
        current_window_opened_at=state.current_window_opened_at,
        current_window_ends_at=state.current_window_ends_at,
        current_window_enrolled=state.current_window_enrolled,
        current_cohort_id=state.current_cohort.id if state.current_cohort else None,
        window_history=[
            {"waitlist_at_open": w.waitlist_at_open, "enrolled": w.enrolled}
            for w in state.window_history
        ],
        conversion_rate=state.conversion_rate,
    )


def _cohort_row(cohort: Cohort) -> CohortModel:
    return CohortModel(
        id=cohort.id,
        study_id=cohort.study_id,
        cohort_number=cohort.cohort_number,
        status=cohort.status.value,
        window_opened_at=cohort.window_opened_at,
        window_closed_at=cohort.window_closed_at,
        participant_ids=list(cohort.participant_ids),
        addresses_collected=cohort.addresses_collected,
        tracking_codes_entered=cohort.tracking_codes_entered,
        all_tracking_entered=cohort.all_tracking_entered,
        delivered_count=cohort.delivered_count,
    )


def _participant_row(p: ParticipantShipping) -> ParticipantShippingModel:
    return ParticipantShippingModel(
        participant_id=p.participant_id,
        study_id=p.study_id,
        cohort_id=p.cohort_id,
        status=p.status.value,
        display_name=p.display_name,
        initials=p.initials,
        address=address_to_snapshot(p.address),
        tracking_number=p.tracking_number,
        tracking_carrier=p.tracking_carrier,
        enrolled_at=p.enrolled_at,
        shipped_at=p.shipped_at,
    )


# -- Rows -> domain ------------------------------------------------------------

def _cohort_from_row(row: CohortModel) -> Cohort:
    return Cohort(
        id=CohortId(row.id),
        study_id=StudyId(row.study_id),
        cohort_number=row.cohort_number,
        status=CohortStatus(row.status),
        window_opened_at=row.window_opened_at,
        window_closed_at=row.window_closed_at,
        participant_ids=[ParticipantId(pid) for pid in row.participant_ids],
        addresses_collected=row.addresses_collected,
        tracking_codes_entered=row.tracking_codes_entered,
        all_tracking_entered=row.all_tracking_entered,
        delivered_count=row.delivered_count,
    )


def _study_from_row(row: StudyModel) -> StudyRecruitmentState:
    cohorts = [_cohort_from_row(c) for c in row.cohorts]
    return StudyRecruitmentState(
        study_id=StudyId(row.study_id),
        status=RecruitmentStatus(row.status),
        total_enrolled=row.total_enrolled,
        target_participants=row.target_participants,
        waitlist_count=row.waitlist_count,
        current_window_opened_at=row.current_window_opened_at,
        current_window_ends_at=row.current_window_ends_at,
        current_window_enrolled=row.current_window_enrolled,
        current_cohort=next(
            (c for c in cohorts if c.id == row.current_cohort_id), None,
        ),
        cohorts=cohorts,
        window_history=[
            WindowRecord(w["waitlist_at_open"], w.get("enrolled", 0))
            for w in row.window_history
        ],
        conversion_rate=row.conversion_rate,
    )


def _participant_from_row(row: ParticipantShippingModel) -> ParticipantShipping:
    return ParticipantShipping(
        participant_id=ParticipantId(row.participant_id),
        study_id=StudyId(row.study_id),
        cohort_id=CohortId(row.cohort_id),
        status=ShippingStatus(row.status),
        display_name=row.display_name,
        initials=row.initials,
        address=address_from_snapshot(row.address),
        tracking_number=row.tracking_number,
        tracking_carrier=row.tracking_carrier,
        enrolled_at=row.enrolled_at,
        shipped_at=row.shipped_at,
    )


# -- Public API ----------------------------------------------------------------

async def load_study(
    db: AsyncSession, study_id: str,
) -> tuple[StudyRecruitmentState, list[ParticipantShipping]] | None:
    """Read a study and all its shipping records, or None if unknown."""
    result = await db.execute(
        select(StudyModel)
        .where(StudyModel.study_id == study_id)
        .execution_options(populate_existing=True),
    )
    row = result.scalar_one_or_none()
    if row is None:
        return None
    shipments = await db.execute(
        select(ParticipantShippingModel)
        .where(ParticipantShippingModel.study_id == study_id)
        .execution_options(populate_existing=True),
    )
    participants = [_participant_from_row(p) for p in shipments.scalars().all()]
    return _study_from_row(row), _ordered_by_cohort(row, participants)


def _ordered_by_cohort(
    row: StudyModel, participants: list[ParticipantShipping],
) -> list[ParticipantShipping]:
    """Restore cohort participant order (participant_ids order, cohort by cohort)."""
    by_id = {p.participant_id: p for p in participants}
    return [
        by_id[pid]
        for cohort in row.cohorts
        for pid in cohort.participant_ids
        if pid in by_id
    ]


async def save_study(
    db: AsyncSession,
    state: StudyRecruitmentState,
    participants: list[ParticipantShipping],
) -> None:
    """Upsert the study row, its cohorts and the given shipping records. No commit."""
    await db.merge(_study_row(state))
    for cohort in state.cohorts:
        await db.merge(_cohort_row(cohort))
    for participant in participants:
        await db.merge(_participant_row(participant))
    await db.flush()


async def ensure_loaded(
    db: AsyncSession, controller: RecruitmentController, study_id: str,
) -> bool:
    """Make sure the controller holds the study; restore from DB if needed.

    Lookup order: controller memory -> database row -> absent (False).
    """
    if controller.has_study(study_id):
        return True
    loaded = await load_study(db, study_id)
    if loaded is None:
        return False
    state, participants = loaded
    controller.hydrate(state, participants)
    return True


async def persist_study(
    db: AsyncSession, controller: RecruitmentController, study_id: str,
) -> None:
    """Write the study and its newest cohort's shipping records, then commit.

    On failure the study is evicted from the controller, so memory never runs
    ahead of the database: the next request reloads the last committed state
    and the client can retry the same command.
    """
    state = controller.get_recruitment_state(study_id)
    if state is None:
        return
    participants = (
        controller.get_cohort_participants(state.cohorts[-1].id)
        if state.cohorts else []
    )
    try:
        await save_study(db, state, participants)
        await db.commit()
    except SQLAlchemyError as e:
        await _discard_unsaved(db, controller, study_id)
        logger.error(
            f"Write-back failed, study evicted: {e}", extra={"study_id": study_id},
        )
        raise map_database_error(e, ErrorContext(study_id=study_id)) from e
    except Exception:
        await _discard_unsaved(db, controller, study_id)
        raise
    logger.debug(
        "Persisted study (%d cohorts)", len(state.cohorts),
        extra={"study_id": study_id, "status": state.status.value},
    )


async def _discard_unsaved(
    db: AsyncSession, controller: RecruitmentController, study_id: str,
) -> None:
    controller.evict(study_id)
    await db.rollback()
