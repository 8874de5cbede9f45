from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from drd_portal.models.policy import SplitPolicy


class RolePercentage(BaseModel):
    role: str = Field(..., min_length=1, max_length=50)
    percentage: Decimal = Field(..., ge=0, le=100)


class PolicyCreate(BaseModel):
    """Schema for creating an incentive policy"""
    policy_name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=50)
    sub_type: str = Field(default="default", min_length=1, max_length=50)
    base_amount: Decimal = Field(..., ge=0)
    base_points: int = Field(default=0, ge=0)
    split_policy: SplitPolicy = SplitPolicy.equal
    role_percentages: List[RolePercentage] = Field(default_factory=list)
    international_bonus: Optional[Decimal] = Field(default=None, ge=0)
    consortium_bonus: Optional[Decimal] = Field(default=None, ge=0)
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None


class PolicyResponse(BaseModel):
    """Schema for policy response"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    policy_name: str
    category: str
    sub_type: str
    base_amount: Decimal
    base_points: int
    split_policy: SplitPolicy
    role_percentages: List[RolePercentage] = Field(default_factory=list)
    international_bonus: Optional[Decimal] = None
    consortium_bonus: Optional[Decimal] = None
    is_active: bool
    effective_from: datetime
    effective_to: Optional[datetime] = None
    created_by_id: Optional[str] = None
    created_at: Optional[datetime] = None


class PolicyListResponse(BaseModel):
    policies: List[PolicyResponse]
    total: int


class ParticipantIn(BaseModel):
    """Roster entry for an ad-hoc incentive preview"""
    name: str = Field(..., min_length=1, max_length=255)
    role: str = Field(..., min_length=1, max_length=50)
    is_internal: bool = True


class IncentivePreviewRequest(BaseModel):
    """Preview a split against the policy active for (category, sub_type)"""
    category: str
    sub_type: str = "default"
    participants: List[ParticipantIn] = Field(default_factory=list)
    is_international: bool = False
    consortium_members: int = Field(default=0, ge=0)
    at_time: Optional[datetime] = None


class ShareResponse(BaseModel):
    key: str
    name: str
    role: str
    is_internal: bool
    amount: Decimal
    points: int


class IncentivePreviewResponse(BaseModel):
    policy_id: Optional[str] = None
    category: str
    sub_type: str
    split_policy: SplitPolicy
    base_amount: Decimal
    base_points: int
    international_bonus_applied: Decimal
    consortium_bonus_applied: Decimal
    total_amount: Decimal
    total_points: int
    distributed_amount: Decimal
    distributed_points: int
    residual_amount: Decimal
    residual_points: int
    shares: List[ShareResponse]

    @classmethod
    def from_breakdown(cls, breakdown) -> "IncentivePreviewResponse":
        return cls(
            policy_id=breakdown.policy_id,
            category=breakdown.category,
            sub_type=breakdown.sub_type,
            split_policy=breakdown.split_policy,
            base_amount=breakdown.base_amount,
            base_points=breakdown.base_points,
            international_bonus_applied=breakdown.international_bonus_applied,
            consortium_bonus_applied=breakdown.consortium_bonus_applied,
            total_amount=breakdown.total_amount,
            total_points=breakdown.total_points,
            distributed_amount=breakdown.distributed_amount,
            distributed_points=breakdown.distributed_points,
            residual_amount=breakdown.residual_amount,
            residual_points=breakdown.residual_points,
            shares=[ShareResponse(**vars(share)) for share in breakdown.shares],
        )
