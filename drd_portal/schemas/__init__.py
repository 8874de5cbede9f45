# Pydantic schemas
from drd_portal.schemas.payloads import (
    SubmissionPayload,
    IprPayload,
    ResearchPayload,
    GrantPayload,
)
from drd_portal.schemas.submission import (
    InvestigatorIn,
    SubmissionCreate,
    SubmissionUpdate,
    RosterReplace,
    InvestigatorResponse,
    SubmissionResponse,
    SubmissionListResponse,
    TransitionRequest,
    HistoryEntryResponse,
    AvailableEventsResponse,
)
from drd_portal.schemas.suggestion import (
    SuggestionProposal,
    BatchProposal,
    BatchProposalResponse,
    SuggestionRespond,
    BatchRespondItem,
    BatchRespondRequest,
    BatchRespondResult,
    SuggestionResponse,
    SuggestionSummary,
)
from drd_portal.schemas.policy import (
    RolePercentage,
    PolicyCreate,
    PolicyResponse,
    PolicyListResponse,
    ParticipantIn,
    IncentivePreviewRequest,
    IncentivePreviewResponse,
    ShareResponse,
)
