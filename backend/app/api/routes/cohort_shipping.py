"""Cohort Shipping Routes — tracking-code entry and cohort fulfillment views.

Invariants:
    - Tracking codes are accepted only for the study's active cohort
    - Bulk entry applies codes in order under one lock and persists once
    - Cohort reads 404 when the cohort is not part of the study
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ErrorContext, ResourceNotFoundError
from app.core.recruitment_snapshot import (
    participant_to_snapshot, study_state_to_snapshot,
)
from app.core.recruitment_state import StudyRecruitmentState
from app.infrastructure.database import get_db
from app.api.routes.study_recruitment import (
    get_controller, get_study_or_404, run_study_command, study_locks,
)
from app.schemas.recruitment import (
    BulkTrackingEntry, CohortProgressResponse, TrackingCodeEntry,
)
from app.services.recruitment_persistence import ensure_loaded, persist_study

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/studies", tags=["shipping"])


@router.post("/{study_id}/tracking")
async def enter_tracking_code(
    study_id: str, body: TrackingCodeEntry, db: AsyncSession = Depends(get_db),
):
    """Save one participant's tracking code."""
    state = await run_study_command(
        db, study_id,
        lambda c: c.enter_tracking_code(
            study_id, body.participant_id, body.tracking_number,
        ),
        ErrorContext(study_id=study_id, participant_id=body.participant_id),
    )
    return {
        "participant": participant_to_snapshot(
            get_controller().get_participant(body.participant_id),
        ),
        "study": study_state_to_snapshot(state),
    }


@router.post("/{study_id}/tracking/bulk")
async def enter_tracking_codes(
    study_id: str, body: BulkTrackingEntry, db: AsyncSession = Depends(get_db),
):
    """Save a batch of tracking codes. Blank codes are skipped, rejections reported per entry."""
    controller = get_controller()
    updates = [(e.participant_id, e.tracking_number) for e in body.entries]
    async with study_locks().hold(study_id):
        if not await ensure_loaded(db, controller, study_id):
            raise ResourceNotFoundError.for_resource(
                "Study", study_id, ErrorContext(study_id=study_id),
            )
        applied = [pid for pid, code in updates if code.strip()]
        results = controller.enter_tracking_codes(study_id, updates)
        saved = sum(1 for r in results if r.ok)
        if saved:
            await persist_study(db, controller, study_id)
        if saved < len(results):
            logger.warning(
                f"Bulk tracking: {len(results) - saved} of {len(results)} entries rejected",
                extra={"study_id": study_id},
            )
        state = controller.get_recruitment_state(study_id)

    return {
        "saved": saved,
        "skipped": len(updates) - len(applied),
        "results": [
            {"participant_id": pid, **result.to_dict()}
            for pid, result in zip(applied, results)
        ],
        "study": study_state_to_snapshot(state),
    }


def _cohort_or_404(state: StudyRecruitmentState, cohort_id: str):
    cohort = state.find_cohort(cohort_id)
    if cohort is None:
        raise ResourceNotFoundError.for_resource(
            "Cohort", cohort_id,
            ErrorContext(study_id=state.study_id, cohort_id=cohort_id),
        )
    return cohort


@router.get("/{study_id}/cohorts/{cohort_id}/participants")
async def get_cohort_participants(
    study_id: str, cohort_id: str, db: AsyncSession = Depends(get_db),
):
    """List a cohort's shipping records in enrollment order."""
    state = await get_study_or_404(study_id, db)
    cohort = _cohort_or_404(state, cohort_id)
    return {
        "cohort_id": cohort.id,
        "cohort_number": cohort.cohort_number,
        "status": cohort.status.value,
        "participants": [
            participant_to_snapshot(p)
            for p in get_controller().get_cohort_participants(cohort.id)
        ],
    }


@router.get(
    "/{study_id}/cohorts/{cohort_id}/progress",
    response_model=CohortProgressResponse,
)
async def get_cohort_progress(
    study_id: str, cohort_id: str, db: AsyncSession = Depends(get_db),
):
    """Fulfillment pipeline counts for one cohort."""
    state = await get_study_or_404(study_id, db)
    cohort = _cohort_or_404(state, cohort_id)
    progress = get_controller().cohort_progress(cohort.id)
    return CohortProgressResponse(
        cohort_id=progress.cohort_id,
        enrolled=progress.enrolled,
        addresses_collected=progress.addresses_collected,
        shipped=progress.shipped,
        delivered=progress.delivered,
        needs_tracking=progress.needs_tracking,
        all_addresses_collected=progress.all_addresses_collected,
        can_ship=progress.can_ship,
    )
