from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal

from drd_portal.models.submission import SubmissionKind, SubmissionStatus


class InvestigatorIn(BaseModel):
    """Roster entry supplied by the applicant"""
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    role: str = Field(..., min_length=1, max_length=50)
    is_internal: bool = True
    is_applicant: bool = False
    user_id: Optional[str] = None


class SubmissionCreate(BaseModel):
    """Schema for creating a draft"""
    kind: SubmissionKind
    title: str = Field(..., min_length=1, max_length=500)
    school_id: Optional[str] = Field(None, max_length=64)
    mentor_id: Optional[str] = None
    applicant_is_student: bool = False
    applicant_name: Optional[str] = Field(None, max_length=255)
    applicant_email: Optional[str] = Field(None, max_length=255)
    payload: Dict[str, Any] = Field(default_factory=dict)
    investigators: List[InvestigatorIn] = Field(default_factory=list)


class SubmissionUpdate(BaseModel):
    """Schema for editing title/payload; payload keys are merged"""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    payload: Optional[Dict[str, Any]] = None


class RosterReplace(BaseModel):
    investigators: List[InvestigatorIn]


class InvestigatorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    role: str
    is_internal: bool
    is_applicant: bool
    ordering: int
    incentive_share: Optional[Decimal] = None
    points_share: Optional[int] = None


class SubmissionResponse(BaseModel):
    """Schema for submission response"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    application_number: Optional[str] = None
    kind: SubmissionKind
    title: str
    payload: Dict[str, Any]
    applicant_id: str
    school_id: Optional[str] = None
    mentor_id: Optional[str] = None
    requires_mentor_approval: bool
    status: SubmissionStatus
    current_reviewer_id: Optional[str] = None
    approved_by_id: Optional[str] = None
    calculated_incentive_amount: Optional[Decimal] = None
    calculated_points: Optional[int] = None
    incentive_policy_id: Optional[str] = None
    credited_amount: Optional[Decimal] = None
    credited_points: Optional[int] = None
    credited_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    investigators: List[InvestigatorResponse] = Field(default_factory=list)


class SubmissionListResponse(BaseModel):
    submissions: List[SubmissionResponse]
    total: int


class TransitionRequest(BaseModel):
    """Body for POST /submissions/{id}/transitions/{event}"""
    comment: Optional[str] = Field(None, max_length=5000)
    expected_status: Optional[SubmissionStatus] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    # credit only
    credited_amount: Optional[Decimal] = None
    credited_points: Optional[int] = None
    audit_note: Optional[str] = Field(None, max_length=2000)


class HistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sequence: int
    event: str
    from_status: Optional[str] = None
    to_status: str
    actor_id: str
    comment: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="details")
    created_at: datetime


class AvailableEventsResponse(BaseModel):
    status: SubmissionStatus
    events: List[str]
