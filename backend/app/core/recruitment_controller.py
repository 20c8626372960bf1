"""Recruitment Controller — per-study state machine over windows and cohorts.

Invariants:
    - Every command runs under its study's lock (single writer per study)
    - A command either applies fully or changes nothing and returns a rejection
    - total_enrolled <= target_participants after every command
    - current_cohort, when set, is the same object as cohorts[-1]
    - Window expiry is advisory: nothing here closes a window on a timer

Design Decisions:
    - Transitions are table-checked (enforce_transitions.ALLOWED_FROM) before
      any mutation; rejections are CommandResult values, never exceptions
    - Cohort construction, tracking and conversion live in their own modules;
      the controller sequences them and owns status changes
    - Clock and EnrolleeSource are injected so tests run without wall time
"""

import logging
from datetime import timedelta

from app.core.cohort_factory import CohortFactory
from app.core.command_result import CommandResult, ok, rejected
from app.core.conversion_estimator import estimate_conversion_rate
from app.core.domain_types import (
    CohortId, CommandOutcome, ParticipantId, RecruitmentCommand,
    RecruitmentStatus, StudyId,
    DEFAULT_CONVERSION_RATE, DEFAULT_WAITLIST_COUNT, DEFAULT_WINDOW_DURATION,
)
from app.core.enforce_transitions import (
    check_non_negative, check_study_exists, command_error, validate_command,
)
from app.core.recruitment_state import ParticipantShipping, StudyRecruitmentState
from app.core.repository_protocols import Clock, EnrolleeSource, utc_now
from app.core.shipment_tracker import CohortProgress, ShipmentTracker
from app.core.shipping_registry import ParticipantShippingRegistry
from app.core.study_store import StudyLocks, StudyStateStore

logger = logging.getLogger(__name__)


class RecruitmentController:
    """Drives recruitment windows and cohort fulfillment for every study."""

    def __init__(
        self,
        enrollee_source: EnrolleeSource,
        clock: Clock = utc_now,
        window_duration: timedelta = DEFAULT_WINDOW_DURATION,
        default_waitlist_count: int = DEFAULT_WAITLIST_COUNT,
        default_conversion_rate: float = DEFAULT_CONVERSION_RATE,
    ):
        self._clock = clock
        self._window_duration = window_duration
        self._default_waitlist_count = default_waitlist_count
        self._default_conversion_rate = default_conversion_rate
        self._states = StudyStateStore()
        self._registry = ParticipantShippingRegistry()
        self._locks = StudyLocks()
        self._factory = CohortFactory(enrollee_source, clock)
        self._tracker = ShipmentTracker(self._registry, clock)

    # --- Lifecycle commands -----------------------------------------------------

    def initialize_study(
        self,
        study_id: StudyId,
        target_participants: int,
        waitlist_count: int | None = None,
    ) -> CommandResult:
        """Create the study's recruitment state. Existing studies are left as-is."""
        if waitlist_count is None:
            waitlist_count = self._default_waitlist_count
        with self._locks.hold(study_id):
            existing = self._states.get(study_id)
            if existing is not None:
                return ok(existing)
            if target_participants < 1:
                return rejected(command_error(
                    CommandOutcome.INVALID_INPUT, "INVALID_TARGET",
                    f"target_participants must be >= 1, got {target_participants}.",
                ))
            error = check_non_negative(waitlist_count, "waitlist_count")
            if error:
                return rejected(error)

            state = StudyRecruitmentState(
                study_id=study_id,
                target_participants=target_participants,
                waitlist_count=waitlist_count,
                conversion_rate=self._default_conversion_rate,
            )
            self._states.put(state)
            logger.info(
                "Study initialized (target=%d, waitlist=%d)",
                target_participants, waitlist_count,
                extra={"study_id": study_id, "status": state.status.value},
            )
            return ok(state)

    def go_live(self, study_id: StudyId) -> CommandResult:
        """Open the first recruitment window."""
        with self._locks.hold(study_id):
            state = self._states.get(study_id)
            error = validate_command(state, study_id, RecruitmentCommand.GO_LIVE)
            if error:
                return self._reject(error, state, study_id)
            self._open(state)
            return ok(state)

    def open_window(self, study_id: StudyId) -> CommandResult:
        """Open the next window, or complete the study if it is already full."""
        with self._locks.hold(study_id):
            state = self._states.get(study_id)
            error = validate_command(state, study_id, RecruitmentCommand.OPEN_WINDOW)
            if error:
                return self._reject(error, state, study_id)
            if state.is_full:
                self._set_status(state, RecruitmentStatus.COMPLETE)
                return ok(state)
            self._open(state)
            return ok(state)

    def close_window(self, study_id: StudyId) -> CommandResult:
        """Close the open window; enrollees (if any) become the next cohort."""
        with self._locks.hold(study_id):
            state = self._states.get(study_id)
            error = validate_command(state, study_id, RecruitmentCommand.CLOSE_WINDOW)
            if error:
                return self._reject(error, state, study_id)

            enrolled = state.current_window_enrolled
            if enrolled == 0:
                self._finalize_window(state, 0)
                self._set_status(state, RecruitmentStatus.READY_TO_OPEN)
                return ok(state)

            cohort, participants = self._factory.create_cohort(
                study_id, state.next_cohort_number, enrolled,
                window_opened_at=state.current_window_opened_at,
            )
            self._registry.put_many(participants)
            state.cohorts.append(cohort)
            state.current_cohort = cohort
            state.total_enrolled += enrolled
            self._finalize_window(state, enrolled)
            logger.info(
                "Cohort %d created with %d participants",
                cohort.cohort_number, enrolled,
                extra={"study_id": study_id, "cohort_id": cohort.id},
            )
            self._set_status(state, RecruitmentStatus.WINDOW_CLOSED)
            return ok(state)

    # --- Enrollment and waitlist ------------------------------------------------

    def record_enrollment(self, study_id: StudyId, count: int) -> CommandResult:
        """Count new enrollees in the open window, capped at remaining capacity."""
        with self._locks.hold(study_id):
            state = self._states.get(study_id)
            error = (
                validate_command(state, study_id, RecruitmentCommand.RECORD_ENROLLMENT)
                or check_non_negative(count, "count")
            )
            if error:
                return self._reject(error, state, study_id)

            accepted = min(count, state.remaining_capacity)
            if accepted < count:
                logger.warning(
                    "Enrollment capped at remaining capacity (%d of %d)",
                    accepted, count, extra={"study_id": study_id},
                )
            state.current_window_enrolled += accepted
            state.waitlist_count = max(0, state.waitlist_count - accepted)
            return ok(state)

    def grow_waitlist(self, study_id: StudyId, count: int) -> CommandResult:
        with self._locks.hold(study_id):
            state = self._states.get(study_id)
            error = (
                check_study_exists(state, study_id)
                or check_non_negative(count, "count")
            )
            if error:
                return self._reject(error, state, study_id)
            state.waitlist_count += count
            return ok(state)

    # --- Tracking entry ---------------------------------------------------------

    def enter_tracking_code(
        self, study_id: StudyId, participant_id: ParticipantId, tracking_number: str,
    ) -> CommandResult:
        """Save one participant's tracking code and advance the study if the cohort is done."""
        with self._locks.hold(study_id):
            return self._enter_tracking(study_id, participant_id, tracking_number)

    def enter_tracking_codes(
        self, study_id: StudyId, updates: list[tuple[ParticipantId, str]],
    ) -> list[CommandResult]:
        """Apply (participant_id, tracking_number) pairs in order; blank codes are skipped."""
        with self._locks.hold(study_id):
            return [
                self._enter_tracking(study_id, participant_id, code)
                for participant_id, code in updates
                if code and code.strip()
            ]

    def _enter_tracking(
        self, study_id: StudyId, participant_id: ParticipantId, tracking_number: str,
    ) -> CommandResult:
        state = self._states.get(study_id)
        error = (
            check_study_exists(state, study_id)
            or self._tracker.validate(state, participant_id, tracking_number)
        )
        if error:
            return self._reject(error, state, study_id)

        update = self._tracker.record(state, participant_id, tracking_number)
        if update.cohort_completed:
            logger.info(
                "All tracking codes entered for cohort %d",
                update.cohort.cohort_number,
                extra={"study_id": study_id, "cohort_id": update.cohort.id},
            )
            state.current_cohort = None
            state.current_window_ends_at = None
            self._set_status(
                state,
                RecruitmentStatus.COMPLETE if state.is_full
                else RecruitmentStatus.READY_TO_OPEN,
            )
        return ok(state)

    # --- Queries ----------------------------------------------------------------

    def get_recruitment_state(self, study_id: StudyId) -> StudyRecruitmentState | None:
        return self._states.get(study_id)

    def get_participant(self, participant_id: ParticipantId) -> ParticipantShipping | None:
        return self._registry.get(participant_id)

    def get_cohort_participants(self, cohort_id: CohortId) -> list[ParticipantShipping]:
        return self._registry.in_cohort(cohort_id)

    def cohort_progress(self, cohort_id: CohortId) -> CohortProgress:
        return self._tracker.progress(cohort_id)

    def has_study(self, study_id: StudyId) -> bool:
        return study_id in self._states

    # --- Persistence hooks --------------------------------------------------------

    def hydrate(
        self, state: StudyRecruitmentState, participants: list[ParticipantShipping],
    ) -> None:
        """Install a study loaded from storage. Ignored if the study is already live."""
        with self._locks.hold(state.study_id):
            if state.study_id in self._states:
                return
            self._states.put(state)
            self._registry.put_many(participants)
            logger.info(
                "Restored study from storage (%d participants)", len(participants),
                extra={"study_id": state.study_id, "status": state.status.value},
            )

    def evict(self, study_id: StudyId) -> bool:
        """Forget a study and its shipping records so the next access reloads it.

        Used when a write-back fails: the in-memory state is ahead of storage.
        """
        with self._locks.hold(study_id):
            if not self._states.discard(study_id):
                return False
            dropped = self._registry.discard_study(study_id)
        logger.warning(
            "Evicted study from memory (%d shipping records)", dropped,
            extra={"study_id": study_id},
        )
        return True

    def reset(self) -> None:
        """Drop every study and shipping record."""
        self._states.reset()
        self._registry.reset()

    # --- Helpers ----------------------------------------------------------------

    def _open(self, state: StudyRecruitmentState) -> None:
        now = self._clock()
        state.open_window(now, now + self._window_duration)
        logger.info(
            "Recruitment window %d opened (waitlist=%d)",
            len(state.window_history), state.waitlist_count,
            extra={"study_id": state.study_id, "status": state.status.value},
        )

    def _finalize_window(self, state: StudyRecruitmentState, enrolled: int) -> None:
        state.finalize_window(enrolled)
        state.conversion_rate = estimate_conversion_rate(
            state.window_history, self._default_conversion_rate,
        )

    def _set_status(
        self, state: StudyRecruitmentState, status: RecruitmentStatus,
    ) -> None:
        previous = state.status
        state.status = status
        logger.info(
            "Recruitment status %s -> %s", previous.value, status.value,
            extra={"study_id": state.study_id, "status": status.value},
        )

    def _reject(
        self, error: dict, state: StudyRecruitmentState | None, study_id: str,
    ) -> CommandResult:
        logger.debug(
            "Command rejected: %s", error["message"],
            extra={"study_id": study_id, "error_code": error["error_code"]},
        )
        return rejected(error, state)
