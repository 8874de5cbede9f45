"""
Submission Service

Applicant-side CRUD for the submission aggregate: drafts, payload edits and
the investigator roster. Status changes go through the WorkflowService.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from drd_portal.core.capabilities import Actor
from drd_portal.core.config import WorkflowConfig, settings
from drd_portal.core.database import atomic
from drd_portal.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    SubmissionNotFoundError,
    ValidationError,
)
from drd_portal.core.logging_config import logger
from drd_portal.models.submission import (
    Submission,
    Investigator,
    SubmissionKind,
    SubmissionStatus,
    EDITABLE_STATUSES,
)
from drd_portal.schemas.submission import SubmissionCreate, SubmissionUpdate, InvestigatorIn
from drd_portal.services.kinds import KindProfile, get_profile


class SubmissionService:
    def __init__(self, db: AsyncSession, config: Optional[WorkflowConfig] = None):
        self.db = db
        self.config = config or settings.workflow_config()

    async def get(self, submission_id: str) -> Submission:
        result = await self.db.execute(select(Submission).where(Submission.id == submission_id))
        submission = result.scalar_one_or_none()
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission

    async def list_for_applicant(
        self,
        applicant_id: str,
        kind: Optional[SubmissionKind] = None,
        status: Optional[SubmissionStatus] = None,
    ) -> List[Submission]:
        query = select(Submission).where(Submission.applicant_id == applicant_id)
        if kind is not None:
            query = query.where(Submission.kind == SubmissionKind(kind))
        if status is not None:
            query = query.where(Submission.status == SubmissionStatus(status))
        result = await self.db.execute(query.order_by(Submission.created_at.desc()))
        return list(result.scalars().all())

    def _build_roster(
        self,
        profile: KindProfile,
        actor: Actor,
        entries: List[InvestigatorIn],
        applicant_name: Optional[str] = None,
        applicant_email: Optional[str] = None,
    ) -> List[Investigator]:
        """Validate roles and make sure the applicant is on the roster exactly once"""
        applicants = [e for e in entries if e.is_applicant]
        if len(applicants) > 1:
            raise ValidationError("Only one investigator can be marked as the applicant", field="investigators")

        for entry in entries:
            profile.check_role(entry.role)

        if not applicants:
            entries = [InvestigatorIn(
                name=applicant_name or actor.display_name or "Applicant",
                email=applicant_email,
                role=profile.applicant_role,
                is_internal=True,
                is_applicant=True,
                user_id=actor.user_id,
            )] + list(entries)

        roster = []
        for ordering, entry in enumerate(entries):
            roster.append(Investigator(
                user_id=actor.user_id if entry.is_applicant else entry.user_id,
                name=entry.name,
                email=entry.email,
                role=entry.role,
                is_internal=entry.is_internal,
                is_applicant=entry.is_applicant,
                ordering=ordering,
            ))
        return roster

    def _check_applicant(self, submission: Submission, actor: Actor, action: str) -> None:
        if actor.user_id != submission.applicant_id:
            raise ForbiddenError("Only the applicant can change this submission", action=action)

    async def create_draft(self, actor: Actor, data: SubmissionCreate) -> Submission:
        profile = get_profile(data.kind)
        payload = profile.parse_payload(data.payload)
        roster = self._build_roster(profile, actor, data.investigators, data.applicant_name, data.applicant_email)

        # Students who name a mentor go through the mentor first
        gated = bool(self.config.mentor_gate_enabled and data.applicant_is_student and data.mentor_id)

        async with atomic(self.db):
            submission = Submission(
                kind=profile.kind,
                title=data.title,
                payload=profile.dump_payload(payload),
                applicant_id=actor.user_id,
                school_id=data.school_id,
                mentor_id=data.mentor_id,
                requires_mentor_approval=gated,
                status=SubmissionStatus.draft,
                investigators=roster,
            )
            self.db.add(submission)

        logger.info(
            f"Draft {profile.kind.value} submission created: {submission.id}",
            extra={"event_type": "draft_created", "actor_id": actor.user_id, "submission_kind": profile.kind.value},
        )
        return submission

    async def update_draft(self, submission_id: str, actor: Actor, data: SubmissionUpdate) -> Submission:
        async with atomic(self.db):
            submission = await self.get(submission_id)
            self._check_applicant(submission, actor, "update")
            if submission.status not in EDITABLE_STATUSES:
                raise InvalidStateError(
                    f"Submission cannot be edited in status '{submission.status.value}'",
                    state=submission.status.value,
                )

            if data.title is not None:
                submission.title = data.title
            if data.payload is not None:
                profile = get_profile(submission.kind)
                merged = {**(submission.payload or {}), **data.payload}
                submission.payload = profile.dump_payload(profile.parse_payload(merged))

        return submission

    async def replace_roster(self, submission_id: str, actor: Actor, entries: List[InvestigatorIn]) -> Submission:
        async with atomic(self.db):
            submission = await self.get(submission_id)
            self._check_applicant(submission, actor, "replace_roster")
            if submission.roster_locked:
                raise InvalidStateError("The investigator roster is locked after the first submit", state=submission.status.value)

            current = submission.applicant
            roster = self._build_roster(
                get_profile(submission.kind),
                actor,
                entries,
                current.name if current else None,
                current.email if current else None,
            )
            submission.investigators = roster

        await self.db.refresh(submission)
        return submission

    async def delete_draft(self, submission_id: str, actor: Actor) -> None:
        async with atomic(self.db):
            submission = await self.get(submission_id)
            self._check_applicant(submission, actor, "delete")
            if submission.status != SubmissionStatus.draft:
                raise InvalidStateError("Only drafts can be deleted", state=submission.status.value)
            await self.db.delete(submission)

        logger.info(
            f"Draft submission deleted: {submission_id}",
            extra={"event_type": "draft_deleted", "actor_id": actor.user_id},
        )
