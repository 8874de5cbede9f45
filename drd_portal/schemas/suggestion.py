from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime

from drd_portal.models.submission import SubmissionStatus
from drd_portal.schemas.submission import SubmissionResponse
from drd_portal.models.suggestion import SuggestionStatus, SuggestionAction


class SuggestionProposal(BaseModel):
    """One reviewer-proposed field edit"""
    field_name: str = Field(..., min_length=1, max_length=100)
    suggested_value: Any = None
    note: Optional[str] = Field(None, max_length=2000)


class BatchProposal(BaseModel):
    """Suggestions recorded together with the request_changes transition"""
    suggestions: List[SuggestionProposal] = Field(..., min_length=1)
    overall_comment: Optional[str] = Field(None, max_length=5000)
    expected_status: Optional[SubmissionStatus] = None


class SuggestionRespond(BaseModel):
    action: SuggestionAction
    response: Optional[str] = Field(None, max_length=2000)


class BatchRespondItem(BaseModel):
    suggestion_id: str
    action: SuggestionAction
    response: Optional[str] = Field(None, max_length=2000)


class BatchRespondRequest(BaseModel):
    items: List[BatchRespondItem] = Field(..., min_length=1)


class BatchRespondResult(BaseModel):
    """Outcome of one item in a batch response"""
    suggestion_id: str
    ok: bool
    status: Optional[SuggestionStatus] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


class SuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    submission_id: str
    reviewer_id: str
    field_name: str
    field_path: str
    original_value: Any = None
    suggested_value: Any = None
    suggestion_note: Optional[str] = None
    status: SuggestionStatus
    applicant_response: Optional[str] = None
    superseded_by_id: Optional[str] = None
    created_at: datetime
    responded_at: Optional[datetime] = None


class SuggestionSummary(BaseModel):
    """Counts per status, overall and per field path"""
    submission_id: str
    total: int
    counts: Dict[str, int]
    by_field: Dict[str, Dict[str, int]]


class BatchProposalResponse(BaseModel):
    suggestions: List[SuggestionResponse]
    submission: SubmissionResponse
