"""Error Hierarchy — typed, categorized exceptions for the recruitment API boundary.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Core commands return CommandResult; these exceptions exist for the shell,
      which raises them via error_for_result when a command is rejected
    - Single hierarchy with RecruitmentError base: one FastAPI handler catches all
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from app.core.command_result import CommandResult
from app.core.domain_types import CommandOutcome


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    study_id: str | None = None
    cohort_id: str | None = None
    participant_id: str | None = None
    debug_info: dict[str, Any] | None = None


class RecruitmentError(Exception):
    """Base exception for all recruitment service errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "study_id": self.context.study_id,
                    "cohort_id": self.context.cohort_id,
                    "participant_id": self.context.participant_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class CommandValidationError(RecruitmentError):
    """Command arguments are out of range (negative counts, blank tracking code)."""
    def __init__(self, message: str, code: str = "VALIDATION_ERROR",
                 context: ErrorContext | None = None):
        super().__init__(
            message, code, ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class InvalidTransitionError(RecruitmentError):
    """Command not allowed from the study's current status."""
    def __init__(self, message: str, code: str = "INVALID_TRANSITION",
                 context: ErrorContext | None = None):
        super().__init__(
            message, code, ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )


class ResourceNotFoundError(RecruitmentError):
    """Requested resource does not exist."""
    def __init__(self, message: str, code: str = "RESOURCE_NOT_FOUND",
                 context: ErrorContext | None = None):
        super().__init__(
            message, code, ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )

    @classmethod
    def for_resource(
        cls, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ) -> "ResourceNotFoundError":
        return cls(f"{resource_type} '{resource_id}' not found", context=context)


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(RecruitmentError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


# ─── Result mapping ─────────────────────────────────────────────

def error_for_result(
    result: CommandResult, context: ErrorContext | None = None,
) -> RecruitmentError:
    """Lift a rejected CommandResult into the matching exception."""
    message = (result.message or "").removeprefix("ERROR: ")
    if result.outcome == CommandOutcome.NOT_FOUND:
        return ResourceNotFoundError(message, result.error_code, context)
    if result.outcome == CommandOutcome.INVALID_INPUT:
        return CommandValidationError(message, result.error_code, context)
    if result.outcome == CommandOutcome.INVALID_TRANSITION:
        return InvalidTransitionError(message, result.error_code, context)
    raise ValueError(f"CommandResult is not a rejection: {result.outcome.value}")
