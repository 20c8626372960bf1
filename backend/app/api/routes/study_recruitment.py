"""Study Recruitment Routes — lifecycle commands over the in-process RecruitmentController.

Invariants:
    - Every mutating request runs load -> command -> persist under the study's asyncio lock
    - A rejected command raises the matching RecruitmentError (404 / 409 / 400)
      and nothing is written
    - Responses carry the study snapshot AFTER the command

Design Decisions:
    - _controller as module-level singleton: the controller is the in-memory
      authority and the database is its durable copy (restored on first access)
    - run_study_command exported for reuse by cohort_shipping (DRY over duplication)
"""

import logging
from typing import Callable

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.command_result import CommandResult
from app.core.errors import ErrorContext, ResourceNotFoundError, error_for_result
from app.core.recruitment_controller import RecruitmentController
from app.core.recruitment_snapshot import study_state_to_snapshot
from app.core.recruitment_state import StudyRecruitmentState
from app.infrastructure.database import get_db
from app.infrastructure.study_locks import AsyncStudyLocks
from app.schemas.recruitment import CountUpdate, StudyCreate
from app.services.placeholder_enrollees import PlaceholderEnrolleeSource
from app.services.recruitment_persistence import ensure_loaded, persist_study

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/studies", tags=["studies"])

# ADR: controller state is in-memory, mirrored to the DB after every command
# Context: single-process uvicorn; per-study asyncio locks serialize requests
# Trade-off: multi-worker deployments would need a shared lock (not supported)
_controller: RecruitmentController | None = None
_locks = AsyncStudyLocks()


def get_controller() -> RecruitmentController:
    """Lazily build the process-wide controller from settings."""
    global _controller
    if _controller is None:
        settings = get_settings()
        _controller = RecruitmentController(
            PlaceholderEnrolleeSource(),
            window_duration=settings.recruitment_window,
            default_waitlist_count=settings.default_waitlist_count,
            default_conversion_rate=settings.default_conversion_rate,
        )
    return _controller


def study_locks() -> AsyncStudyLocks:
    return _locks


async def run_study_command(
    db: AsyncSession,
    study_id: str,
    command: Callable[[RecruitmentController], CommandResult],
    context: ErrorContext | None = None,
) -> StudyRecruitmentState:
    """Apply one controller command for a study and persist the result.

    Raises the RecruitmentError matching a rejected CommandResult.
    """
    controller = get_controller()
    async with _locks.hold(study_id):
        await ensure_loaded(db, controller, study_id)
        result = command(controller)
        if not result.ok:
            raise error_for_result(
                result, context or ErrorContext(study_id=study_id),
            )
        await persist_study(db, controller, study_id)
        return result.state


async def get_study_or_404(
    study_id: str, db: AsyncSession,
) -> StudyRecruitmentState:
    """Get study state (restoring it if needed) or raise 404. Exported for cohort_shipping."""
    controller = get_controller()
    async with _locks.hold(study_id):
        if not await ensure_loaded(db, controller, study_id):
            raise ResourceNotFoundError.for_resource(
                "Study", study_id, ErrorContext(study_id=study_id),
            )
        return controller.get_recruitment_state(study_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def initialize_study(
    body: StudyCreate, db: AsyncSession = Depends(get_db),
):
    """Create a study's recruitment state. Re-posting an existing study returns it unchanged."""
    state = await run_study_command(
        db, body.study_id,
        lambda c: c.initialize_study(
            body.study_id, body.target_participants, body.waitlist_count,
        ),
    )
    return study_state_to_snapshot(state)


@router.get("/{study_id}")
async def get_study(study_id: str, db: AsyncSession = Depends(get_db)):
    """Get a study's recruitment state."""
    return study_state_to_snapshot(await get_study_or_404(study_id, db))


@router.post("/{study_id}/go-live")
async def go_live(study_id: str, db: AsyncSession = Depends(get_db)):
    """Open the first recruitment window."""
    state = await run_study_command(db, study_id, lambda c: c.go_live(study_id))
    return study_state_to_snapshot(state)


@router.post("/{study_id}/open-window")
async def open_window(study_id: str, db: AsyncSession = Depends(get_db)):
    """Open the next window, or complete the study if it is full."""
    state = await run_study_command(db, study_id, lambda c: c.open_window(study_id))
    return study_state_to_snapshot(state)


@router.post("/{study_id}/close-window")
async def close_window(study_id: str, db: AsyncSession = Depends(get_db)):
    """Close the open window. Enrollees become the next cohort."""
    state = await run_study_command(db, study_id, lambda c: c.close_window(study_id))
    return study_state_to_snapshot(state)


@router.post("/{study_id}/enrollments")
async def record_enrollment(
    study_id: str, body: CountUpdate, db: AsyncSession = Depends(get_db),
):
    state = await run_study_command(
        db, study_id, lambda c: c.record_enrollment(study_id, body.count),
    )
    return study_state_to_snapshot(state)


@router.post("/{study_id}/waitlist")
async def grow_waitlist(
    study_id: str, body: CountUpdate, db: AsyncSession = Depends(get_db),
):
    state = await run_study_command(
        db, study_id, lambda c: c.grow_waitlist(study_id, body.count),
    )
    return study_state_to_snapshot(state)
