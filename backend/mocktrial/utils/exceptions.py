"""
Custom exception classes

Every error carries a machine-readable ``code`` next to the human message so
the client can branch on it; FastAPI renders ``detail`` as-is.
"""
from typing import Any, List, Optional

from fastapi import HTTPException


class MockTrialError(HTTPException):
    """Base class for domain errors surfaced over HTTP"""
    status_code_default = 500
    code_default = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        **extra: Any,
    ):
        self.message = message
        self.code = code or self.code_default
        detail = {"code": self.code, "message": message}
        detail.update({k: v for k, v in extra.items() if v is not None})
        super().__init__(
            status_code=status_code or self.status_code_default,
            detail=detail,
        )

    def __str__(self) -> str:
        return self.message


# ============================================================================
# 400
# ============================================================================

class ValidationError(MockTrialError):
    """Raised with the full list of failed checks"""
    status_code_default = 400
    code_default = "VALIDATION_ERROR"

    def __init__(self, errors: List[str], prefix: str = "Validation failed"):
        self.errors = list(errors)
        super().__init__(f"{prefix}: {', '.join(self.errors)}", errors=self.errors)


class BusinessRuleError(MockTrialError):
    """Request is well-formed but not allowed in the current state"""
    status_code_default = 400
    code_default = "BUSINESS_RULE_VIOLATION"


# ============================================================================
# 403 / 404
# ============================================================================

class ForbiddenError(MockTrialError):
    """Raised when the caller doesn't own the resource"""
    status_code_default = 403
    code_default = "FORBIDDEN"

    def __init__(self, message: str = "You don't have permission to access this resource"):
        super().__init__(message)


class NotFoundError(MockTrialError):
    status_code_default = 404
    code_default = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} {resource_id} not found" if resource_id else f"{resource} not found"
        super().__init__(message)


class CaseNotFoundError(NotFoundError):
    """Raised when case doesn't exist"""
    def __init__(self, case_id: Any = None):
        super().__init__("Case", case_id)


# ============================================================================
# 409
# ============================================================================

class ConflictError(MockTrialError):
    status_code_default = 409
    code_default = "CONFLICT"


class SlotUnavailableError(ConflictError):
    """Another live case already holds the (date, time) slot"""
    code_default = "SLOT_UNAVAILABLE"

    def __init__(
        self,
        message: str = "Selected time slot is no longer available. Please choose another slot.",
        conflicting_case_id: Optional[str] = None,
    ):
        self.conflicting_case_id = conflicting_case_id
        super().__init__(message, conflicting_case_id=conflicting_case_id)


class DuplicateApplicationError(ConflictError):
    code_default = "DUPLICATE_APPLICATION"

    def __init__(self):
        super().__init__("You have already applied to this case")


class VerdictAlreadySubmittedError(ConflictError):
    code_default = "VERDICT_ALREADY_SUBMITTED"

    def __init__(self, message: str = "Verdict already submitted for this juror"):
        super().__init__(message)


class ActiveMeetingExistsError(ConflictError):
    code_default = "ACTIVE_MEETING_EXISTS"

    def __init__(self):
        super().__init__("Active meeting already exists for this case")


class SlotAlreadyBlockedError(ConflictError):
    code_default = "SLOT_ALREADY_BLOCKED"

    def __init__(self):
        super().__init__("This time slot is already blocked")


class DuplicateTeamMemberError(ConflictError):
    code_default = "DUPLICATE_TEAM_MEMBER"

    def __init__(self):
        super().__init__("Team member with this email already exists")


# ============================================================================
# 429
# ============================================================================

class RateLimitedError(MockTrialError):
    status_code_default = 429
    code_default = "RATE_LIMITED"
