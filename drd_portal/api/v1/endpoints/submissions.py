"""
Submission API

- Draft create / edit / roster / delete
- Workflow transitions
- Status history
- Incentive preview
"""
from fastapi import APIRouter, Depends, Query, status
from typing import Optional, List
from datetime import datetime

from drd_portal.api.deps import (
    get_current_actor,
    get_submission_service,
    get_workflow_service,
)
from drd_portal.core.capabilities import Actor
from drd_portal.models.submission import SubmissionKind, SubmissionStatus
from drd_portal.schemas.policy import IncentivePreviewResponse
from drd_portal.schemas.submission import (
    SubmissionCreate,
    SubmissionUpdate,
    SubmissionResponse,
    SubmissionListResponse,
    RosterReplace,
    TransitionRequest,
    HistoryEntryResponse,
    AvailableEventsResponse,
)
from drd_portal.services.submission_service import SubmissionService
from drd_portal.services.transitions import WorkflowEvent
from drd_portal.services.workflow_service import WorkflowService

router = APIRouter()


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    data: SubmissionCreate,
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
):
    """Create a draft owned by the acting user"""
    return await service.create_draft(actor, data)


@router.get("", response_model=SubmissionListResponse)
async def list_my_submissions(
    kind: Optional[SubmissionKind] = Query(None),
    status_filter: Optional[SubmissionStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
):
    submissions = await service.list_for_applicant(actor.user_id, kind=kind, status=status_filter)
    return SubmissionListResponse(
        submissions=[SubmissionResponse.model_validate(s) for s in submissions],
        total=len(submissions),
    )


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: str,
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
):
    return await service.get(submission_id)


@router.patch("/{submission_id}", response_model=SubmissionResponse)
async def update_submission(
    submission_id: str,
    data: SubmissionUpdate,
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
):
    return await service.update_draft(submission_id, actor, data)


@router.put("/{submission_id}/investigators", response_model=SubmissionResponse)
async def replace_investigators(
    submission_id: str,
    data: RosterReplace,
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
):
    return await service.replace_roster(submission_id, actor, data.investigators)


@router.delete("/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(
    submission_id: str,
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
):
    await service.delete_draft(submission_id, actor)


@router.post("/{submission_id}/transitions/{event}", response_model=SubmissionResponse)
async def run_transition(
    submission_id: str,
    event: WorkflowEvent,
    data: Optional[TransitionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    """Fire a workflow event; request_changes is also reachable via the batch suggestion endpoint"""
    data = data or TransitionRequest()
    return await workflow.transition(
        submission_id,
        event,
        actor,
        comment=data.comment,
        expected_status=data.expected_status,
        metadata=data.metadata,
        credited_amount=data.credited_amount,
        credited_points=data.credited_points,
        audit_note=data.audit_note,
    )


@router.get("/{submission_id}/transitions", response_model=AvailableEventsResponse)
async def available_transitions(
    submission_id: str,
    actor: Actor = Depends(get_current_actor),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    submission = await workflow.get_submission(submission_id)
    events = await workflow.available_events(submission_id, actor)
    return AvailableEventsResponse(status=submission.status, events=[e.value for e in events])


@router.get("/{submission_id}/history", response_model=List[HistoryEntryResponse])
async def get_history(
    submission_id: str,
    actor: Actor = Depends(get_current_actor),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return await workflow.get_history(submission_id)


@router.get("/{submission_id}/incentive-preview", response_model=IncentivePreviewResponse)
async def preview_incentive(
    submission_id: str,
    at_time: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_current_actor),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    breakdown = await workflow.preview_incentive(submission_id, at_time)
    return IncentivePreviewResponse.from_breakdown(breakdown)
