"""Command Result — tagged outcome returned by every recruitment command.

Invariants:
    - outcome is OK iff error_code is None
    - state is the study state AFTER the command (unchanged on rejection),
      or None when the study does not exist
    - Rejections never raise: callers branch on outcome

Design Decisions:
    - Result value over exceptions: double-clicks and retries are expected,
      so "already done" and "wrong input" are data, not control flow
    - to_dict mirrors the error dict shape used by enforce_transitions
"""

from dataclasses import dataclass

from app.core.domain_types import CommandOutcome
from app.core.recruitment_state import StudyRecruitmentState


@dataclass(frozen=True)
class CommandResult:
    outcome: CommandOutcome
    state: StudyRecruitmentState | None = None
    error_code: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == CommandOutcome.OK

    def to_dict(self) -> dict:
        if self.ok:
            return {"status": "ok"}
        return {
            "status": "error",
            "outcome": self.outcome.value,
            "error_code": self.error_code,
            "message": self.message,
        }


def ok(state: StudyRecruitmentState) -> CommandResult:
    return CommandResult(CommandOutcome.OK, state)


def rejected(
    error: dict, state: StudyRecruitmentState | None = None,
) -> CommandResult:
    """Wrap an enforcement error dict (see enforce_transitions.command_error)."""
    return CommandResult(
        outcome=CommandOutcome(error["outcome"]),
        state=state,
        error_code=error["error_code"],
        message=error["message"],
    )
