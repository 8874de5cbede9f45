"""
Custom Exceptions for the DRD Portal
====================================

Every failure the workflow engine reports carries a specific kind, a human
message and a details dict. The API layer turns them into JSON error bodies
with `error_response`.

Usage:
    from drd_portal.core.exceptions import SubmissionNotFoundError, InvalidTransitionError

    if not submission:
        raise SubmissionNotFoundError(submission_id)

    try:
        await workflow.transition(submission_id, WorkflowEvent.approve, actor)
    except PolicyNotFoundError as e:
        logger.warning(f"Approval blocked: {e}")
        raise
"""

from typing import Optional, Any, Dict, List


class DrdError(Exception):
    """Base exception for all workflow engine errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Workflow Errors (409-type)
# ============================================

class InvalidTransitionError(DrdError):
    """Event is not valid from the submission's current status"""

    status_code = 409

    def __init__(self, event: str, current_status: str, submission_id: Optional[str] = None):
        super().__init__(
            f"Cannot '{event}' a submission in status '{current_status}'",
            code="INVALID_TRANSITION",
            details={"event": event, "current_status": current_status}
        )
        if submission_id:
            self.details["submission_id"] = submission_id


class ConflictError(DrdError):
    """Concurrent update won the compare-and-swap race"""

    status_code = 409

    def __init__(self, message: str = "The record was changed by someone else. Reload and try again.",
                 expected_status: Optional[str] = None, actual_status: Optional[str] = None):
        super().__init__(message, code="CONFLICT")
        if expected_status:
            self.details["expected_status"] = expected_status
        if actual_status:
            self.details["actual_status"] = actual_status


class UnresolvedSuggestionsError(DrdError):
    """Resubmission blocked by pending edit suggestions"""

    status_code = 409

    def __init__(self, pending_count: int):
        super().__init__(
            f"{pending_count} edit suggestion(s) must be accepted or rejected before resubmitting",
            code="UNRESOLVED_SUGGESTIONS",
            details={"pending_count": pending_count}
        )


class InvalidStateError(DrdError):
    """Record is not in a state that allows the requested operation"""

    status_code = 409

    def __init__(self, message: str, state: Optional[str] = None):
        super().__init__(message, code="INVALID_STATE")
        if state:
            self.details["state"] = state


# ============================================
# Authorization Errors (403-type)
# ============================================

class ForbiddenError(DrdError):
    """Actor lacks the role or scope for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized", action: Optional[str] = None):
        super().__init__(message, code="FORBIDDEN")
        if action:
            self.details["action"] = action


# ============================================
# Resource Errors (404-type)
# ============================================

class NotFoundError(DrdError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class SubmissionNotFoundError(NotFoundError):
    """Submission not found"""

    def __init__(self, submission_id: str):
        super().__init__("Submission", submission_id)


class SuggestionNotFoundError(NotFoundError):
    """Edit suggestion not found"""

    def __init__(self, suggestion_id: str):
        super().__init__("Suggestion", suggestion_id)


class IncentivePolicyNotFoundError(NotFoundError):
    """Incentive policy not found by ID"""

    def __init__(self, policy_id: str):
        super().__init__("Policy", policy_id)


class PolicyNotFoundError(DrdError):
    """No active incentive policy for category/sub-type at the given time"""

    status_code = 422

    def __init__(self, category: str, sub_type: str, at_time: Optional[str] = None):
        super().__init__(
            f"No active incentive policy found for {category}/{sub_type}",
            code="POLICY_NOT_FOUND",
            details={"category": category, "sub_type": sub_type}
        )
        if at_time:
            self.details["at_time"] = at_time


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(DrdError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class IncompleteSubmissionError(ValidationError):
    """Required fields missing when submitting"""

    def __init__(self, missing_fields: List[str]):
        super().__init__(f"Missing required fields: {', '.join(missing_fields)}")
        self.code = "INCOMPLETE_SUBMISSION"
        self.details = {"missing_fields": missing_fields}


class UnknownFieldError(ValidationError):
    """Field is not addressable for this submission kind"""

    def __init__(self, field_name: str, kind: str):
        super().__init__(f"Field '{field_name}' cannot be edited on {kind} submissions", field=field_name)
        self.code = "UNKNOWN_FIELD"
        self.details["kind"] = kind


class InvalidPolicyError(ValidationError):
    """Incentive policy definition is inconsistent"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.code = "INVALID_POLICY"


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: DrdError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
