from fastapi import APIRouter, Depends, Query, status
from typing import Optional, List

from drd_portal.api.deps import get_current_actor, get_suggestion_ledger
from drd_portal.core.capabilities import Actor
from drd_portal.models.suggestion import SuggestionStatus
from drd_portal.schemas.submission import SubmissionResponse
from drd_portal.schemas.suggestion import (
    SuggestionProposal,
    BatchProposal,
    BatchProposalResponse,
    SuggestionRespond,
    BatchRespondRequest,
    BatchRespondResult,
    SuggestionResponse,
    SuggestionSummary,
)
from drd_portal.services.suggestion_ledger import SuggestionLedger

router = APIRouter()


@router.post(
    "/submissions/{submission_id}/suggestions",
    response_model=SuggestionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def propose_suggestion(
    submission_id: str,
    data: SuggestionProposal,
    actor: Actor = Depends(get_current_actor),
    ledger: SuggestionLedger = Depends(get_suggestion_ledger),
):
    return await ledger.propose(submission_id, data.field_name, data.suggested_value, actor, note=data.note)


@router.post(
    "/submissions/{submission_id}/suggestions/batch",
    response_model=BatchProposalResponse,
    status_code=status.HTTP_201_CREATED,
)
async def propose_batch(
    submission_id: str,
    data: BatchProposal,
    actor: Actor = Depends(get_current_actor),
    ledger: SuggestionLedger = Depends(get_suggestion_ledger),
):
    """Record suggestions and move the submission to changes_required in one step"""
    suggestions, submission = await ledger.batch_propose(
        submission_id,
        data.suggestions,
        actor,
        overall_comment=data.overall_comment,
        expected_status=data.expected_status,
    )
    return BatchProposalResponse(
        suggestions=[SuggestionResponse.model_validate(s) for s in suggestions],
        submission=SubmissionResponse.model_validate(submission),
    )


@router.get("/submissions/{submission_id}/suggestions", response_model=List[SuggestionResponse])
async def list_suggestions(
    submission_id: str,
    status_filter: Optional[SuggestionStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    ledger: SuggestionLedger = Depends(get_suggestion_ledger),
):
    return await ledger.list(submission_id, status=status_filter)


@router.get("/submissions/{submission_id}/suggestions/summary", response_model=SuggestionSummary)
async def suggestion_summary(
    submission_id: str,
    actor: Actor = Depends(get_current_actor),
    ledger: SuggestionLedger = Depends(get_suggestion_ledger),
):
    return await ledger.summary(submission_id)


@router.post("/submissions/{submission_id}/suggestions/respond", response_model=List[BatchRespondResult])
async def respond_batch(
    submission_id: str,
    data: BatchRespondRequest,
    actor: Actor = Depends(get_current_actor),
    ledger: SuggestionLedger = Depends(get_suggestion_ledger),
):
    """Resolve several suggestions; each item succeeds or fails on its own"""
    return await ledger.batch_respond(submission_id, data.items, actor)


@router.post("/suggestions/{suggestion_id}/respond", response_model=SuggestionResponse)
async def respond_to_suggestion(
    suggestion_id: str,
    data: SuggestionRespond,
    actor: Actor = Depends(get_current_actor),
    ledger: SuggestionLedger = Depends(get_suggestion_ledger),
):
    return await ledger.respond(suggestion_id, data.action, actor, response=data.response)
