"""
Request-scoped dependencies

Identity is an opaque seam: the `X-User-Id` header names the acting user and
the capability provider turns it into an Actor. Authentication itself lives
in front of this service.
"""
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from drd_portal.core.capabilities import Actor
from drd_portal.core.config import WorkflowConfig, settings
from drd_portal.core.database import get_db
from drd_portal.core.events import EventBus, event_bus
from drd_portal.core.exceptions import ForbiddenError
from drd_portal.services.capability_provider import AssignmentCapabilityProvider
from drd_portal.services.policy_store import PolicyStore
from drd_portal.services.submission_service import SubmissionService
from drd_portal.services.suggestion_ledger import SuggestionLedger
from drd_portal.services.workflow_service import WorkflowService


def get_workflow_config() -> WorkflowConfig:
    return settings.workflow_config()


def get_event_bus() -> EventBus:
    return event_bus


async def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    if not x_user_id:
        raise ForbiddenError("Missing X-User-Id header", action="identify")
    return await AssignmentCapabilityProvider(db).resolve(x_user_id, display_name=x_user_name)


def get_workflow_service(
    db: AsyncSession = Depends(get_db),
    config: WorkflowConfig = Depends(get_workflow_config),
    events: EventBus = Depends(get_event_bus),
) -> WorkflowService:
    return WorkflowService(db, config=config, events=events)


def get_suggestion_ledger(
    db: AsyncSession = Depends(get_db),
    workflow: WorkflowService = Depends(get_workflow_service),
    events: EventBus = Depends(get_event_bus),
) -> SuggestionLedger:
    return SuggestionLedger(db, workflow=workflow, events=events)


def get_submission_service(
    db: AsyncSession = Depends(get_db),
    config: WorkflowConfig = Depends(get_workflow_config),
) -> SubmissionService:
    return SubmissionService(db, config=config)


def get_policy_store(db: AsyncSession = Depends(get_db)) -> PolicyStore:
    return PolicyStore(db)


def get_capability_provider(db: AsyncSession = Depends(get_db)) -> AssignmentCapabilityProvider:
    return AssignmentCapabilityProvider(db)
