"""
Workflow State Machine
======================

Validates and executes submission status transitions.

Every transition is one unit of work:

    guard checks -> conditional UPDATE (compare-and-swap on the status read)
    -> side effects -> history entry -> commit -> publish event

Guards run in a fixed order so callers always get the most specific error:

    1. InvalidTransitionError   event not defined from the current status
    2. ConflictError            caller's expected status is stale
    3. ForbiddenError           actor lacks authority
    4. UnresolvedSuggestionsError  resubmit with pending suggestions
    5. ValidationError          missing input

A failed guard leaves no trace: no status change and no history entry.
"""
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from drd_portal.core.capabilities import Actor, ReviewScope
from drd_portal.core.config import WorkflowConfig, settings
from drd_portal.core.database import atomic
from drd_portal.core.events import EventBus, TransitionOccurred, event_bus
from drd_portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    IncompleteSubmissionError,
    InvalidStateError,
    InvalidTransitionError,
    SubmissionNotFoundError,
    UnresolvedSuggestionsError,
    ValidationError,
)
from drd_portal.core.logging_config import logger, set_submission_id
from drd_portal.models.finance import FinanceRecord, FinanceRecordStatus
from drd_portal.models.status_history import StatusHistoryEntry
from drd_portal.models.submission import Submission, SubmissionStatus
from drd_portal.models.suggestion import EditSuggestion, SuggestionStatus
from drd_portal.services.application_numbers import ApplicationNumberGenerator
from drd_portal.services.incentive_calculator import (
    BonusContext,
    IncentiveBreakdown,
    Participant,
    PolicyTerms,
    calculate_incentive,
)
from drd_portal.services.kinds import KindProfile, get_profile
from drd_portal.services.policy_store import PolicyStore
from drd_portal.services.status_history import StatusHistoryService
from drd_portal.services.transitions import Authority, TransitionRule, WorkflowEvent


async def count_pending_suggestions(db: AsyncSession, submission_id: str) -> int:
    result = await db.execute(
        select(func.count(EditSuggestion.id)).where(
            EditSuggestion.submission_id == submission_id,
            EditSuggestion.status == SuggestionStatus.pending,
        )
    )
    return result.scalar() or 0


class WorkflowService:
    def __init__(
        self,
        db: AsyncSession,
        config: Optional[WorkflowConfig] = None,
        events: Optional[EventBus] = None,
    ):
        self.db = db
        self.config = config or settings.workflow_config()
        self.events = events or event_bus
        self.history = StatusHistoryService(db)
        self.policies = PolicyStore(db)
        self.numbers = ApplicationNumberGenerator(db, self.config.numbering)

    # ==========================================
    # Loading
    # ==========================================

    async def get_submission(self, submission_id: str) -> Submission:
        result = await self.db.execute(select(Submission).where(Submission.id == submission_id))
        submission = result.scalar_one_or_none()
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission

    def scope_for(self, submission: Submission, profile: Optional[KindProfile] = None) -> ReviewScope:
        profile = profile or get_profile(submission.kind)
        return ReviewScope(profile.review_category(submission.payload), submission.school_id)

    # ==========================================
    # Authority
    # ==========================================

    def is_authorized(self, submission: Submission, rule: TransitionRule, actor: Actor) -> bool:
        if actor.is_admin:
            return True

        caps = actor.capabilities
        scope = self.scope_for(submission)

        if rule.authority == Authority.applicant:
            return actor.user_id == submission.applicant_id
        if rule.authority == Authority.mentor:
            return submission.mentor_id is not None and actor.user_id == submission.mentor_id
        if rule.authority == Authority.reviewer:
            return caps.can_review(scope)
        if rule.authority == Authority.approver:
            return caps.can_approve(scope)
        if rule.authority == Authority.finance:
            return caps.can_credit(scope)
        if rule.authority == Authority.rejector:
            # Before DRD sees it, only the mentor may turn it down
            if submission.status == SubmissionStatus.pending_mentor_approval:
                return submission.mentor_id is not None and actor.user_id == submission.mentor_id
            return caps.can_reject(scope)
        return False

    # ==========================================
    # Transition
    # ==========================================

    async def transition(
        self,
        submission_id: str,
        event: WorkflowEvent,
        actor: Actor,
        comment: Optional[str] = None,
        expected_status: Optional[SubmissionStatus] = None,
        metadata: Optional[Dict[str, Any]] = None,
        credited_amount: Optional[Decimal] = None,
        credited_points: Optional[int] = None,
        audit_note: Optional[str] = None,
    ) -> Submission:
        """Run one transition as its own unit of work and publish the result"""
        async with atomic(self.db):
            submission, occurred = await self._transition(
                submission_id,
                event,
                actor,
                comment=comment,
                expected_status=expected_status,
                metadata=metadata,
                credited_amount=credited_amount,
                credited_points=credited_points,
                audit_note=audit_note,
            )

        await self.events.publish(occurred)
        return submission

    async def _transition(
        self,
        submission_id: str,
        event: WorkflowEvent,
        actor: Actor,
        comment: Optional[str] = None,
        expected_status: Optional[SubmissionStatus] = None,
        metadata: Optional[Dict[str, Any]] = None,
        credited_amount: Optional[Decimal] = None,
        credited_points: Optional[int] = None,
        audit_note: Optional[str] = None,
    ) -> Tuple[Submission, TransitionOccurred]:
        """Transition inside the caller's unit of work; never commits"""
        event = WorkflowEvent(event)
        set_submission_id(str(submission_id))

        submission = await self.get_submission(submission_id)
        profile = get_profile(submission.kind)
        read_status = submission.status
        rule = profile.transitions.rule_for(event)

        if rule is None or read_status not in rule.sources:
            logger.log_transition_rejected(submission_id, event.value, "invalid_transition", actor.user_id)
            raise InvalidTransitionError(event.value, read_status.value, submission_id)

        if expected_status is not None and SubmissionStatus(expected_status) != read_status:
            logger.log_transition_rejected(submission_id, event.value, "stale_status", actor.user_id)
            raise ConflictError(
                expected_status=SubmissionStatus(expected_status).value,
                actual_status=read_status.value,
            )

        if not self.is_authorized(submission, rule, actor):
            logger.log_transition_rejected(submission_id, event.value, "forbidden", actor.user_id)
            raise ForbiddenError(
                f"Not authorized to '{event.value}' this submission",
                action=event.value,
            )

        now = datetime.utcnow()
        target = rule.target_for(submission.requires_mentor_approval)
        values: Dict[str, Any] = {"status": target}
        details: Dict[str, Any] = dict(metadata or {})
        breakdown: Optional[IncentiveBreakdown] = None
        finance: Optional[FinanceRecord] = None

        if event == WorkflowEvent.submit:
            await self._prepare_submit(submission, profile, values, details, now)

        elif event == WorkflowEvent.start_review:
            values["current_reviewer_id"] = actor.user_id

        elif event == WorkflowEvent.request_changes:
            pending = await count_pending_suggestions(self.db, submission.id)
            if pending == 0:
                raise ValidationError("Propose at least one edit suggestion before requesting changes")
            details.setdefault("pending_suggestions", pending)

        elif event == WorkflowEvent.resubmit:
            pending = await count_pending_suggestions(self.db, submission.id)
            if pending:
                logger.log_transition_rejected(submission_id, event.value, "unresolved_suggestions", actor.user_id)
                raise UnresolvedSuggestionsError(pending)

        elif event == WorkflowEvent.approve:
            breakdown = await self._calculate_authoritative(submission, profile)
            values.update(
                calculated_incentive_amount=breakdown.total_amount,
                calculated_points=breakdown.total_points,
                incentive_policy_id=breakdown.policy_id,
                approved_at=now,
                approved_by_id=actor.user_id,
                current_reviewer_id=None,
            )
            details["incentive"] = breakdown.to_dict()

        elif event == WorkflowEvent.credit:
            finance = await self._prepare_credit(
                submission, actor, values, details, now, credited_amount, credited_points, audit_note,
            )

        await self._compare_and_swap(submission, read_status, values)

        if breakdown is not None:
            self._persist_shares(submission, breakdown)
        if finance is not None:
            finance.status = FinanceRecordStatus.credited
            finance.credited_amount = values["credited_amount"]
            finance.credited_points = values["credited_points"]
            finance.audit_note = audit_note
            finance.credited_by_id = actor.user_id
            finance.credited_at = now

        await self.history.append(
            submission.id,
            event.value,
            read_status.value,
            target.value,
            actor.user_id,
            comment=comment,
            metadata=details,
        )

        occurred = TransitionOccurred(
            submission_id=submission.id,
            actor_id=actor.user_id,
            kind=submission.kind.value,
            workflow_event=event.value,
            from_status=read_status.value,
            to_status=target.value,
            comment=comment,
            metadata=details,
        )
        return submission, occurred

    async def _compare_and_swap(
        self,
        submission: Submission,
        read_status: SubmissionStatus,
        values: Dict[str, Any],
    ) -> None:
        """UPDATE ... WHERE id = ? AND status = <status read>"""
        try:
            result = await self.db.execute(
                update(Submission)
                .where(Submission.id == submission.id, Submission.status == read_status)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        except IntegrityError:
            # Duplicate application number from a concurrent submit
            raise ConflictError("Application number was taken by a concurrent submission. Try again.")

        if result.rowcount == 0:
            current = await self.db.execute(select(Submission.status).where(Submission.id == submission.id))
            actual = current.scalar_one_or_none()
            raise ConflictError(
                expected_status=read_status.value,
                actual_status=actual.value if actual is not None else None,
            )

        await self.db.refresh(submission)

    async def _prepare_submit(
        self,
        submission: Submission,
        profile: KindProfile,
        values: Dict[str, Any],
        details: Dict[str, Any],
        now: datetime,
    ) -> None:
        payload = profile.parse_payload(submission.payload)
        missing = payload.missing_for_submit()
        if not (submission.title or "").strip():
            missing.insert(0, "title")
        if missing:
            raise IncompleteSubmissionError(missing)
        if submission.applicant is None:
            raise ValidationError("The applicant must be on the investigator roster", field="investigators")

        values["submitted_at"] = now
        if submission.application_number is None:
            values["application_number"] = await self.numbers.next_number(profile, payload)
            details["application_number"] = values["application_number"]
        if submission.requires_mentor_approval:
            details["mentor_id"] = submission.mentor_id

    async def _prepare_credit(
        self,
        submission: Submission,
        actor: Actor,
        values: Dict[str, Any],
        details: Dict[str, Any],
        now: datetime,
        credited_amount: Optional[Decimal],
        credited_points: Optional[int],
        audit_note: Optional[str],
    ) -> FinanceRecord:
        result = await self.db.execute(select(FinanceRecord).where(FinanceRecord.submission_id == submission.id))
        finance = result.scalar_one_or_none()
        if finance is None:
            raise InvalidStateError("Submission has no finance record to credit", state=submission.status.value)

        amount = submission.calculated_incentive_amount if credited_amount is None else Decimal(str(credited_amount))
        points = submission.calculated_points if credited_points is None else int(credited_points)
        if amount is not None and amount < 0:
            raise ValidationError("Credited amount cannot be negative", field="credited_amount")
        if points is not None and points < 0:
            raise ValidationError("Credited points cannot be negative", field="credited_points")

        overridden = amount != submission.calculated_incentive_amount or points != submission.calculated_points
        if overridden and not (audit_note or "").strip():
            raise ValidationError("An audit note is required when overriding the calculated incentive", field="audit_note")

        values.update(
            credited_amount=amount,
            credited_points=points,
            credited_at=now,
            completed_at=now,
        )
        details["credited_amount"] = str(amount) if amount is not None else None
        details["credited_points"] = points
        details["overridden"] = overridden
        if audit_note:
            details["audit_note"] = audit_note
        return finance

    # ==========================================
    # Incentives
    # ==========================================

    def _participants(self, submission: Submission) -> List[Participant]:
        return [Participant.from_investigator(inv) for inv in submission.investigators]

    async def _calculate(
        self,
        submission: Submission,
        profile: KindProfile,
        at_time: Optional[datetime] = None,
        authoritative: bool = False,
    ) -> IncentiveBreakdown:
        payload = profile.parse_payload(submission.payload)
        category, sub_type = payload.policy_key()
        policy = await self.policies.find_active_policy(category, sub_type, at_time)

        breakdown = calculate_incentive(
            PolicyTerms.from_policy(policy),
            self._participants(submission),
            BonusContext(
                is_international=payload.is_international,
                consortium_members=payload.consortium_member_count,
            ),
        )
        logger.log_incentive_calculation(
            category,
            sub_type,
            breakdown.total_amount,
            breakdown.total_points,
            breakdown.internal_count,
            authoritative=authoritative,
            residual_amount=str(breakdown.residual_amount),
        )
        return breakdown

    async def _calculate_authoritative(self, submission: Submission, profile: KindProfile) -> IncentiveBreakdown:
        return await self._calculate(submission, profile, authoritative=True)

    def _persist_shares(self, submission: Submission, breakdown: IncentiveBreakdown) -> None:
        for investigator in submission.investigators:
            share = breakdown.share_for(investigator.id)
            investigator.incentive_share = share.amount if share else Decimal("0")
            investigator.points_share = share.points if share else 0

        self.db.add(FinanceRecord(
            submission_id=submission.id,
            policy_id=breakdown.policy_id,
            calculated_amount=breakdown.total_amount,
            calculated_points=breakdown.total_points,
            distributed_amount=breakdown.distributed_amount,
            distributed_points=breakdown.distributed_points,
        ))

    async def preview_incentive(self, submission_id: str, at_time: Optional[datetime] = None) -> IncentiveBreakdown:
        """Read-only estimate; never writes and takes no locks"""
        submission = await self.get_submission(submission_id)
        return await self._calculate(submission, get_profile(submission.kind), at_time)

    # ==========================================
    # Queries
    # ==========================================

    async def get_history(self, submission_id: str) -> List[StatusHistoryEntry]:
        await self.get_submission(submission_id)
        return await self.history.history(submission_id)

    async def available_events(self, submission_id: str, actor: Actor) -> List[WorkflowEvent]:
        """Events the actor could fire from the current status"""
        submission = await self.get_submission(submission_id)
        table = get_profile(submission.kind).transitions
        events = []
        for event in table.events_from(submission.status):
            if self.is_authorized(submission, table.rule_for(event), actor):
                events.append(event)
        return events

    # ==========================================
    # Convenience wrappers
    # ==========================================

    async def submit(self, submission_id: str, actor: Actor, comment: Optional[str] = None, **kwargs) -> Submission:
        return await self.transition(submission_id, WorkflowEvent.submit, actor, comment=comment, **kwargs)

    async def mentor_approve(self, submission_id: str, actor: Actor, comment: Optional[str] = None, **kwargs) -> Submission:
        return await self.transition(submission_id, WorkflowEvent.mentor_approve, actor, comment=comment, **kwargs)

    async def start_review(self, submission_id: str, actor: Actor, comment: Optional[str] = None, **kwargs) -> Submission:
        return await self.transition(submission_id, WorkflowEvent.start_review, actor, comment=comment, **kwargs)

    async def resubmit(self, submission_id: str, actor: Actor, comment: Optional[str] = None, **kwargs) -> Submission:
        return await self.transition(submission_id, WorkflowEvent.resubmit, actor, comment=comment, **kwargs)

    async def recommend(self, submission_id: str, actor: Actor, comment: Optional[str] = None, **kwargs) -> Submission:
        return await self.transition(submission_id, WorkflowEvent.recommend, actor, comment=comment, **kwargs)

    async def approve(self, submission_id: str, actor: Actor, comment: Optional[str] = None, **kwargs) -> Submission:
        return await self.transition(submission_id, WorkflowEvent.approve, actor, comment=comment, **kwargs)

    async def reject(self, submission_id: str, actor: Actor, comment: Optional[str] = None, **kwargs) -> Submission:
        return await self.transition(submission_id, WorkflowEvent.reject, actor, comment=comment, **kwargs)

    async def cancel(self, submission_id: str, actor: Actor, comment: Optional[str] = None, **kwargs) -> Submission:
        return await self.transition(submission_id, WorkflowEvent.cancel, actor, comment=comment, **kwargs)

    async def credit(
        self,
        submission_id: str,
        actor: Actor,
        credited_amount: Optional[Decimal] = None,
        credited_points: Optional[int] = None,
        audit_note: Optional[str] = None,
        **kwargs,
    ) -> Submission:
        return await self.transition(
            submission_id,
            WorkflowEvent.credit,
            actor,
            credited_amount=credited_amount,
            credited_points=credited_points,
            audit_note=audit_note,
            **kwargs,
        )
