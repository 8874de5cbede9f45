from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from drd_portal.api.deps import get_current_actor, get_capability_provider
from drd_portal.core.capabilities import Actor, ReviewCategory
from drd_portal.services.capability_provider import AssignmentCapabilityProvider

router = APIRouter()


# ==================== Schemas ====================

class SchoolAssignment(BaseModel):
    school_ids: List[str] = Field(default_factory=list)


class PermissionGrant(BaseModel):
    category: Optional[ReviewCategory] = None
    can_review: bool = False
    can_approve: bool = False
    can_assign_school: bool = False
    can_credit: bool = False
    is_admin: bool = False


class PermissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    category: Optional[str] = None
    can_review: bool
    can_approve: bool
    can_assign_school: bool
    can_credit: bool
    is_admin: bool
    assigned_school_ids: List[str] = Field(default_factory=list)


class CapabilitiesResponse(BaseModel):
    user_id: str
    is_admin: bool
    review_scopes: List[dict]
    approve_categories: List[str]
    assign_categories: List[str]
    credit_categories: List[str]


# ==================== Endpoints ====================

@router.get("/me", response_model=CapabilitiesResponse)
async def my_capabilities(actor: Actor = Depends(get_current_actor)):
    caps = actor.capabilities
    return CapabilitiesResponse(
        user_id=actor.user_id,
        is_admin=caps.is_admin,
        review_scopes=sorted(
            ({"category": s.category.value, "school_id": s.school_id} for s in caps.review_scopes),
            key=lambda s: (s["category"], s["school_id"] or ""),
        ),
        approve_categories=sorted(c.value for c in caps.approve_categories),
        assign_categories=sorted(c.value for c in caps.assign_categories),
        credit_categories=sorted(c.value for c in caps.credit_categories),
    )


@router.put("/reviewers/{reviewer_id}/{category}", response_model=PermissionResponse)
async def assign_reviewer_schools(
    reviewer_id: str,
    category: ReviewCategory,
    data: SchoolAssignment,
    actor: Actor = Depends(get_current_actor),
    provider: AssignmentCapabilityProvider = Depends(get_capability_provider),
):
    """Department heads assign reviewers to schools per review category"""
    return await provider.assign_schools(actor, reviewer_id, category, data.school_ids)


@router.put("/permissions/{user_id}", response_model=PermissionResponse)
async def grant_permission(
    user_id: str,
    data: PermissionGrant,
    actor: Actor = Depends(get_current_actor),
    provider: AssignmentCapabilityProvider = Depends(get_capability_provider),
):
    return await provider.grant_permission(
        actor,
        user_id,
        category=data.category,
        can_review=data.can_review,
        can_approve=data.can_approve,
        can_assign_school=data.can_assign_school,
        can_credit=data.can_credit,
        is_admin=data.is_admin,
    )
