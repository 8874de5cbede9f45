from drd_portal.services.workflow_service import WorkflowService
from drd_portal.services.suggestion_ledger import SuggestionLedger
from drd_portal.services.submission_service import SubmissionService
from drd_portal.services.policy_store import PolicyStore
from drd_portal.services.status_history import StatusHistoryService
from drd_portal.services.capability_provider import AssignmentCapabilityProvider
from drd_portal.services.transitions import WorkflowEvent

__all__ = [
    "WorkflowService",
    "SuggestionLedger",
    "SubmissionService",
    "PolicyStore",
    "StatusHistoryService",
    "AssignmentCapabilityProvider",
    "WorkflowEvent",
]
