"""Transition Enforcement — the recruitment transition table and its guards.

Invariants:
    - All functions are PURE: no IO, no side effects
    - Return error dict on violation, None on success
    - Every (status, command) pair not listed in ALLOWED_FROM is rejected
    - COMPLETE accepts no command (terminal)

Design Decisions:
    - Table-driven: ALLOWED_FROM is the single source for which status a command
      may start from; the controller consults it before mutating anything
    - Error dicts carry the CommandOutcome value so command_result.rejected can
      lift them into a CommandResult without a lookup
"""

from app.core.domain_types import (
    CommandOutcome, RecruitmentCommand, RecruitmentStatus,
)
from app.core.recruitment_state import StudyRecruitmentState


ALLOWED_FROM: dict[RecruitmentCommand, frozenset[RecruitmentStatus]] = {
    RecruitmentCommand.GO_LIVE: frozenset({RecruitmentStatus.WAITLIST_ONLY}),
    RecruitmentCommand.OPEN_WINDOW: frozenset({RecruitmentStatus.READY_TO_OPEN}),
    RecruitmentCommand.CLOSE_WINDOW: frozenset({RecruitmentStatus.WINDOW_OPEN}),
    RecruitmentCommand.RECORD_ENROLLMENT: frozenset({RecruitmentStatus.WINDOW_OPEN}),
    RecruitmentCommand.ENTER_TRACKING: frozenset({RecruitmentStatus.WINDOW_CLOSED}),
}


# --- Study-level guards -------------------------------------------------------

def check_study_exists(
    state: StudyRecruitmentState | None, study_id: str,
) -> dict | None:
    if state is None:
        return command_error(
            CommandOutcome.NOT_FOUND, "STUDY_NOT_FOUND",
            f"Study '{study_id}' has not been initialized.",
        )
    return None


def check_command_allowed(
    state: StudyRecruitmentState, command: RecruitmentCommand,
) -> dict | None:
    """Reject a command whose source status is not in the transition table."""
    allowed = ALLOWED_FROM[command]
    if state.status not in allowed:
        expected = ", ".join(sorted(s.value for s in allowed))
        return command_error(
            CommandOutcome.INVALID_TRANSITION, "INVALID_TRANSITION",
            f"Cannot {command.value} while study is {state.status.value} "
            f"(expected {expected}).",
        )
    return None


def check_non_negative(count: int, field: str) -> dict | None:
    if count < 0:
        return command_error(
            CommandOutcome.INVALID_INPUT, "INVALID_COUNT",
            f"{field} cannot be negative, got {count}.",
        )
    return None


# --- Tracking guards ----------------------------------------------------------

def check_has_current_cohort(state: StudyRecruitmentState) -> dict | None:
    if state.current_cohort is None:
        return command_error(
            CommandOutcome.INVALID_TRANSITION, "NO_ACTIVE_COHORT",
            f"Study '{state.study_id}' has no cohort awaiting shipment.",
        )
    return None


def check_tracking_number(tracking_number: str) -> dict | None:
    if not tracking_number.strip():
        return command_error(
            CommandOutcome.INVALID_INPUT, "EMPTY_TRACKING_NUMBER",
            "Tracking number cannot be empty.",
        )
    return None


# --- Composite validator ------------------------------------------------------

def validate_command(
    state: StudyRecruitmentState | None,
    study_id: str,
    command: RecruitmentCommand,
) -> dict | None:
    """Existence check followed by the transition-table check."""
    return (
        check_study_exists(state, study_id)
        or check_command_allowed(state, command)
    )


# --- Helper -------------------------------------------------------------------

def command_error(outcome: CommandOutcome, code: str, message: str) -> dict:
    """Construct a standard error dict."""
    return {
        "status": "error",
        "outcome": outcome.value,
        "error_code": code,
        "message": f"ERROR: {message}",
    }
