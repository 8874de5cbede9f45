# Re-export all models for convenient imports
from drd_portal.models.submission import (
    Submission,
    Investigator,
    SubmissionKind,
    SubmissionStatus,
    TERMINAL_STATUSES,
    EDITABLE_STATUSES,
    REVIEW_CAPABLE_STATUSES,
)
from drd_portal.models.suggestion import EditSuggestion, SuggestionStatus, SuggestionAction
from drd_portal.models.status_history import StatusHistoryEntry
from drd_portal.models.policy import IncentivePolicy, SplitPolicy
from drd_portal.models.finance import FinanceRecord, FinanceRecordStatus
from drd_portal.models.permission import DepartmentPermission

__all__ = [
    # Submission
    "Submission",
    "Investigator",
    "SubmissionKind",
    "SubmissionStatus",
    "TERMINAL_STATUSES",
    "EDITABLE_STATUSES",
    "REVIEW_CAPABLE_STATUSES",
    # Suggestions
    "EditSuggestion",
    "SuggestionStatus",
    "SuggestionAction",
    # History
    "StatusHistoryEntry",
    # Policy
    "IncentivePolicy",
    "SplitPolicy",
    # Finance
    "FinanceRecord",
    "FinanceRecordStatus",
    # Permissions
    "DepartmentPermission",
]
