"""
Suggestion Ledger

Reviewers propose replacement values for individual fields instead of editing
applicant data. Applicants accept or reject each suggestion on its own;
accepted values are written through the kind's field registry.

At most one suggestion per (submission, field) is pending at any time: a new
proposal supersedes the live one with a conditional update, and the partial
unique index on pending rows catches concurrent duplicates.
"""
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from drd_portal.core.capabilities import Actor
from drd_portal.core.database import atomic
from drd_portal.core.events import EventBus, DomainEvent, SuggestionProposed, SuggestionResolved, event_bus
from drd_portal.core.exceptions import (
    ConflictError,
    DrdError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    SuggestionNotFoundError,
    ValidationError,
)
from drd_portal.core.logging_config import logger, set_submission_id
from drd_portal.core.types import generate_uuid
from drd_portal.models.submission import Submission, SubmissionStatus, REVIEW_CAPABLE_STATUSES
from drd_portal.models.suggestion import EditSuggestion, SuggestionStatus, SuggestionAction
from drd_portal.schemas.suggestion import BatchRespondItem, BatchRespondResult, SuggestionProposal
from drd_portal.services.kinds import get_profile
from drd_portal.services.transitions import WorkflowEvent
from drd_portal.services.workflow_service import WorkflowService, count_pending_suggestions


class SuggestionLedger:
    def __init__(
        self,
        db: AsyncSession,
        workflow: Optional[WorkflowService] = None,
        events: Optional[EventBus] = None,
    ):
        self.db = db
        self.events = events or event_bus
        self.workflow = workflow or WorkflowService(db, events=self.events)

    # ==========================================
    # Proposing
    # ==========================================

    async def propose(
        self,
        submission_id: str,
        field_name: str,
        suggested_value: Any,
        actor: Actor,
        note: Optional[str] = None,
    ) -> EditSuggestion:
        async with atomic(self.db):
            submission = await self.workflow.get_submission(submission_id)
            suggestion, proposed = await self._propose(submission, field_name, suggested_value, note, actor)

        await self.events.publish(proposed)
        return suggestion

    async def batch_propose(
        self,
        submission_id: str,
        proposals: Iterable[SuggestionProposal],
        actor: Actor,
        overall_comment: Optional[str] = None,
        expected_status=None,
    ) -> Tuple[List[EditSuggestion], Submission]:
        """All suggestions plus the request_changes transition, or nothing"""
        proposals = list(proposals)
        if not proposals:
            raise ValidationError("At least one suggestion is required", field="suggestions")

        seen = set()
        for proposal in proposals:
            if proposal.field_name in seen:
                raise ValidationError(
                    f"Field '{proposal.field_name}' appears more than once in the batch",
                    field=proposal.field_name,
                )
            seen.add(proposal.field_name)

        published: List[DomainEvent] = []
        async with atomic(self.db):
            submission = await self.workflow.get_submission(submission_id)
            profile = get_profile(submission.kind)

            # Transition guards first, so nothing is written for a doomed batch
            if not profile.transitions.allows(submission.status, WorkflowEvent.request_changes):
                raise InvalidTransitionError(
                    WorkflowEvent.request_changes.value, submission.status.value, submission.id,
                )
            if expected_status is not None and SubmissionStatus(expected_status) != submission.status:
                raise ConflictError(
                    expected_status=SubmissionStatus(expected_status).value,
                    actual_status=submission.status.value,
                )

            suggestions = []
            for proposal in proposals:
                suggestion, proposed = await self._propose(
                    submission, proposal.field_name, proposal.suggested_value, proposal.note, actor,
                )
                suggestions.append(suggestion)
                published.append(proposed)

            submission, occurred = await self.workflow._transition(
                submission_id,
                WorkflowEvent.request_changes,
                actor,
                comment=overall_comment,
                expected_status=expected_status,
                metadata={
                    "suggestion_count": len(suggestions),
                    "fields": [s.field_name for s in suggestions],
                },
            )
            published.append(occurred)

        await self.events.publish_all(published)
        return suggestions, submission

    async def _propose(
        self,
        submission: Submission,
        field_name: str,
        suggested_value: Any,
        note: Optional[str],
        actor: Actor,
    ) -> Tuple[EditSuggestion, SuggestionProposed]:
        set_submission_id(str(submission.id))

        if submission.status not in REVIEW_CAPABLE_STATUSES:
            raise InvalidStateError(
                "Suggestions can only be proposed while under review or awaiting changes",
                state=submission.status.value,
            )

        profile = get_profile(submission.kind)
        if not actor.is_admin and not actor.capabilities.can_review(self.workflow.scope_for(submission, profile)):
            raise ForbiddenError("Not authorized to review this submission", action="propose")

        field = profile.fields.get(field_name)
        value = field.validate(suggested_value)

        new_id = generate_uuid()
        prior = await self._pending_for_field(submission.id, field.name)
        if prior is not None:
            result = await self.db.execute(
                update(EditSuggestion)
                .where(EditSuggestion.id == prior.id, EditSuggestion.status == SuggestionStatus.pending)
                .values(status=SuggestionStatus.superseded, superseded_by_id=new_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError("The suggestion for this field changed concurrently. Reload and try again.")
            await self.db.refresh(prior)

        suggestion = EditSuggestion(
            id=new_id,
            submission_id=submission.id,
            reviewer_id=actor.user_id,
            field_name=field.name,
            field_path=field.path,
            original_value=field.read(submission),
            suggested_value=value,
            suggestion_note=note,
            status=SuggestionStatus.pending,
        )
        self.db.add(suggestion)
        try:
            await self.db.flush()
        except IntegrityError:
            raise ConflictError("Another reviewer proposed a change to this field concurrently. Reload and try again.")

        return suggestion, SuggestionProposed(
            submission_id=submission.id,
            actor_id=actor.user_id,
            suggestion_id=suggestion.id,
            field_name=field.name,
            superseded_id=prior.id if prior is not None else None,
        )

    async def _pending_for_field(self, submission_id: str, field_name: str) -> Optional[EditSuggestion]:
        result = await self.db.execute(
            select(EditSuggestion).where(
                EditSuggestion.submission_id == submission_id,
                EditSuggestion.field_name == field_name,
                EditSuggestion.status == SuggestionStatus.pending,
            )
        )
        return result.scalar_one_or_none()

    # ==========================================
    # Responding
    # ==========================================

    async def get(self, suggestion_id: str) -> EditSuggestion:
        suggestion = await self.db.get(EditSuggestion, suggestion_id)
        if suggestion is None:
            raise SuggestionNotFoundError(suggestion_id)
        return suggestion

    async def respond(
        self,
        suggestion_id: str,
        action: SuggestionAction,
        actor: Actor,
        response: Optional[str] = None,
    ) -> EditSuggestion:
        """Accept or reject one suggestion; never changes the submission status"""
        async with atomic(self.db):
            suggestion, resolved = await self._respond(suggestion_id, action, actor, response)

        await self.events.publish(resolved)
        return suggestion

    async def batch_respond(
        self,
        submission_id: str,
        items: Iterable[BatchRespondItem],
        actor: Actor,
    ) -> List[BatchRespondResult]:
        """Each item stands alone: one failure does not undo the others"""
        results: List[BatchRespondResult] = []
        resolved_events: List[SuggestionResolved] = []

        async with atomic(self.db):
            await self.workflow.get_submission(submission_id)
            for item in items:
                try:
                    async with self.db.begin_nested():
                        suggestion, resolved = await self._respond(
                            item.suggestion_id, item.action, actor, item.response, submission_id=submission_id,
                        )
                except DrdError as e:
                    logger.warning(
                        f"Batch response item {item.suggestion_id} failed: {e.code}",
                        extra={"event_type": "suggestion_batch_item_failed", "error_code": e.code},
                    )
                    results.append(BatchRespondResult(
                        suggestion_id=item.suggestion_id,
                        ok=False,
                        error_code=e.code,
                        message=e.message,
                    ))
                    continue

                resolved_events.append(resolved)
                results.append(BatchRespondResult(
                    suggestion_id=item.suggestion_id,
                    ok=True,
                    status=suggestion.status,
                ))

        await self.events.publish_all(resolved_events)
        return results

    async def _respond(
        self,
        suggestion_id: str,
        action: SuggestionAction,
        actor: Actor,
        response: Optional[str],
        submission_id: Optional[str] = None,
    ) -> Tuple[EditSuggestion, SuggestionResolved]:
        action = SuggestionAction(action)
        suggestion = await self.get(suggestion_id)
        if submission_id is not None and suggestion.submission_id != submission_id:
            raise SuggestionNotFoundError(suggestion_id)

        submission = await self.workflow.get_submission(suggestion.submission_id)
        set_submission_id(str(submission.id))

        if actor.user_id != submission.applicant_id:
            raise ForbiddenError("Only the applicant can respond to suggestions", action="respond")
        if suggestion.status != SuggestionStatus.pending:
            raise InvalidStateError(
                f"Suggestion is already {suggestion.status.value}",
                state=suggestion.status.value,
            )
        if submission.status not in REVIEW_CAPABLE_STATUSES:
            raise InvalidStateError(
                "Suggestions can only be resolved while the submission is under review or awaiting changes",
                state=submission.status.value,
            )

        new_status = SuggestionStatus.accepted if action == SuggestionAction.accept else SuggestionStatus.rejected
        if new_status == SuggestionStatus.accepted:
            field = get_profile(submission.kind).fields.get(suggestion.field_name)
            field.write(submission, suggestion.suggested_value)

        result = await self.db.execute(
            update(EditSuggestion)
            .where(EditSuggestion.id == suggestion.id, EditSuggestion.status == SuggestionStatus.pending)
            .values(status=new_status, applicant_response=response, responded_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError("The suggestion was resolved concurrently. Reload and try again.")
        await self.db.refresh(suggestion)
        await self.db.flush()

        return suggestion, SuggestionResolved(
            submission_id=submission.id,
            actor_id=actor.user_id,
            suggestion_id=suggestion.id,
            field_name=suggestion.field_name,
            status=new_status.value,
            applicant_response=response,
        )

    # ==========================================
    # Queries
    # ==========================================

    async def pending_count(self, submission_id: str) -> int:
        return await count_pending_suggestions(self.db, submission_id)

    async def list(self, submission_id: str, status: Optional[SuggestionStatus] = None) -> List[EditSuggestion]:
        await self.workflow.get_submission(submission_id)
        query = select(EditSuggestion).where(EditSuggestion.submission_id == submission_id)
        if status is not None:
            query = query.where(EditSuggestion.status == SuggestionStatus(status))
        result = await self.db.execute(query.order_by(EditSuggestion.created_at.asc()))
        return list(result.scalars().all())

    async def summary(self, submission_id: str) -> Dict[str, Any]:
        suggestions = await self.list(submission_id)
        counts = {status.value: 0 for status in SuggestionStatus}
        by_field: Dict[str, Dict[str, int]] = {}
        for suggestion in suggestions:
            counts[suggestion.status.value] += 1
            per_field = by_field.setdefault(suggestion.field_path, {status.value: 0 for status in SuggestionStatus})
            per_field[suggestion.status.value] += 1
        return {
            "submission_id": submission_id,
            "total": len(suggestions),
            "counts": counts,
            "by_field": by_field,
        }
