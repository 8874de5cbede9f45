from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from drd_portal.api.deps import get_current_actor, get_policy_store
from drd_portal.core.capabilities import Actor
from drd_portal.schemas.policy import (
    PolicyCreate,
    PolicyResponse,
    PolicyListResponse,
    IncentivePreviewRequest,
    IncentivePreviewResponse,
)
from drd_portal.services.incentive_calculator import Participant, PolicyTerms, BonusContext, calculate_incentive
from drd_portal.services.policy_store import PolicyStore

router = APIRouter()


@router.post("", response_model=PolicyResponse, status_code=status.HTTP_201_CREATED)
async def create_policy(
    data: PolicyCreate,
    actor: Actor = Depends(get_current_actor),
    store: PolicyStore = Depends(get_policy_store),
):
    return await store.create_policy(data, actor)


@router.get("", response_model=PolicyListResponse)
async def list_policies(
    category: Optional[str] = Query(None),
    sub_type: Optional[str] = Query(None),
    active_only: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    store: PolicyStore = Depends(get_policy_store),
):
    policies = await store.list_policies(category, sub_type, active_only)
    return PolicyListResponse(
        policies=[PolicyResponse.model_validate(p) for p in policies],
        total=len(policies),
    )


@router.post("/{policy_id}/deactivate", response_model=PolicyResponse)
async def deactivate_policy(
    policy_id: str,
    actor: Actor = Depends(get_current_actor),
    store: PolicyStore = Depends(get_policy_store),
):
    return await store.deactivate_policy(policy_id, actor)


@router.post("/preview", response_model=IncentivePreviewResponse)
async def preview_split(
    data: IncentivePreviewRequest,
    actor: Actor = Depends(get_current_actor),
    store: PolicyStore = Depends(get_policy_store),
):
    """Estimate a split for an ad-hoc roster against the currently active policy"""
    policy = await store.find_active_policy(data.category, data.sub_type, data.at_time)
    participants = [
        Participant(key=str(index), name=p.name, role=p.role, is_internal=p.is_internal)
        for index, p in enumerate(data.participants)
    ]
    breakdown = calculate_incentive(
        PolicyTerms.from_policy(policy),
        participants,
        BonusContext(is_international=data.is_international, consortium_members=data.consortium_members),
    )
    return IncentivePreviewResponse.from_breakdown(breakdown)
