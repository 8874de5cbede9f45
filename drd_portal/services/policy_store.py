"""
Incentive Policy Store

Versioned, effective-dated policies keyed by (category, sub_type). The
workflow engine only reads from here; the administrative operations are
used by the DRD office and by installation seeding.
"""
from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from drd_portal.core.capabilities import Actor
from drd_portal.core.config import PolicyDefaults
from drd_portal.core.database import atomic
from drd_portal.core.exceptions import (
    ForbiddenError,
    InvalidPolicyError,
    IncentivePolicyNotFoundError,
    PolicyNotFoundError,
)
from drd_portal.core.logging_config import logger
from drd_portal.models.policy import IncentivePolicy, SplitPolicy
from drd_portal.schemas.policy import PolicyCreate, RolePercentage
from drd_portal.services.incentive_calculator import role_table
from drd_portal.services.kinds import ALL_ROLES


def validate_policy_terms(
    split_policy: Any,
    role_percentages: Iterable[Any],
    base_amount: Decimal,
    base_points: int,
    international_bonus: Optional[Decimal] = None,
    consortium_bonus: Optional[Decimal] = None,
    effective_from: Optional[datetime] = None,
    effective_to: Optional[datetime] = None,
) -> None:
    """Raise InvalidPolicyError when a policy definition is inconsistent"""
    try:
        split = SplitPolicy(split_policy)
    except ValueError:
        raise InvalidPolicyError(
            f"Split policy must be 'equal' or 'percentage_based', got '{split_policy}'",
            field="split_policy",
        )

    if Decimal(str(base_amount)) < 0:
        raise InvalidPolicyError("Base amount cannot be negative", field="base_amount")
    if int(base_points) < 0:
        raise InvalidPolicyError("Base points cannot be negative", field="base_points")
    for name, bonus in (("international_bonus", international_bonus), ("consortium_bonus", consortium_bonus)):
        if bonus is not None and Decimal(str(bonus)) < 0:
            raise InvalidPolicyError(f"{name} cannot be negative", field=name)

    if effective_from and effective_to and effective_to <= effective_from:
        raise InvalidPolicyError("effective_to must be after effective_from", field="effective_to")

    entries = list(role_percentages)
    if split == SplitPolicy.percentage_based:
        if not entries:
            raise InvalidPolicyError("Percentage-based policies need a role percentage table", field="role_percentages")
        table = role_table(entries)
        unknown = sorted(role for role in table if role not in ALL_ROLES)
        if unknown:
            raise InvalidPolicyError(f"Unknown roles: {', '.join(unknown)}", field="role_percentages")
        total = sum(table.values(), Decimal("0"))
        if total != 100:
            raise InvalidPolicyError(f"Role percentages must total 100, got {total}", field="role_percentages")


class PolicyStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_active_policy(
        self,
        category: str,
        sub_type: str,
        at_time: Optional[datetime] = None,
    ) -> IncentivePolicy:
        """Most recent active policy whose effective window contains `at_time`"""
        at_time = at_time or datetime.utcnow()
        result = await self.db.execute(
            select(IncentivePolicy)
            .where(
                and_(
                    IncentivePolicy.category == category,
                    IncentivePolicy.sub_type == sub_type,
                    IncentivePolicy.is_active.is_(True),
                    IncentivePolicy.effective_from <= at_time,
                    or_(IncentivePolicy.effective_to.is_(None), IncentivePolicy.effective_to >= at_time),
                )
            )
            .order_by(IncentivePolicy.effective_from.desc())
            .limit(1)
        )
        policy = result.scalar_one_or_none()
        if policy is None:
            raise PolicyNotFoundError(category, sub_type, at_time.isoformat())
        return policy

    async def get(self, policy_id: str) -> IncentivePolicy:
        policy = await self.db.get(IncentivePolicy, policy_id)
        if policy is None:
            raise IncentivePolicyNotFoundError(policy_id)
        return policy

    async def list_policies(
        self,
        category: Optional[str] = None,
        sub_type: Optional[str] = None,
        active_only: bool = False,
    ) -> List[IncentivePolicy]:
        query = select(IncentivePolicy)
        if category:
            query = query.where(IncentivePolicy.category == category)
        if sub_type:
            query = query.where(IncentivePolicy.sub_type == sub_type)
        if active_only:
            query = query.where(IncentivePolicy.is_active.is_(True))
        query = query.order_by(
            IncentivePolicy.category, IncentivePolicy.sub_type, IncentivePolicy.effective_from.desc()
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    def _new_policy(self, data: PolicyCreate, created_by_id: Optional[str]) -> IncentivePolicy:
        validate_policy_terms(
            data.split_policy,
            data.role_percentages,
            data.base_amount,
            data.base_points,
            data.international_bonus,
            data.consortium_bonus,
            data.effective_from,
            data.effective_to,
        )
        return IncentivePolicy(
            policy_name=data.policy_name,
            category=data.category,
            sub_type=data.sub_type,
            base_amount=data.base_amount,
            base_points=data.base_points,
            split_policy=data.split_policy,
            role_percentages=[
                {"role": entry.role, "percentage": str(entry.percentage)} for entry in data.role_percentages
            ],
            international_bonus=data.international_bonus,
            consortium_bonus=data.consortium_bonus,
            is_active=True,
            effective_from=data.effective_from or datetime.utcnow(),
            effective_to=data.effective_to,
            created_by_id=created_by_id,
        )

    async def create_policy(self, data: PolicyCreate, actor: Actor) -> IncentivePolicy:
        if not actor.is_admin:
            raise ForbiddenError("Only DRD administrators can manage incentive policies", action="create_policy")

        async with atomic(self.db):
            policy = self._new_policy(data, actor.user_id)
            self.db.add(policy)

        logger.info(
            f"Incentive policy created: {policy.category}/{policy.sub_type} '{policy.policy_name}'",
            extra={"event_type": "policy_created", "policy_id": policy.id, "actor_id": actor.user_id},
        )
        return policy

    async def deactivate_policy(self, policy_id: str, actor: Actor) -> IncentivePolicy:
        if not actor.is_admin:
            raise ForbiddenError("Only DRD administrators can manage incentive policies", action="deactivate_policy")

        async with atomic(self.db):
            policy = await self.get(policy_id)
            policy.is_active = False

        logger.info(
            f"Incentive policy deactivated: {policy.category}/{policy.sub_type} '{policy.policy_name}'",
            extra={"event_type": "policy_deactivated", "policy_id": policy.id, "actor_id": actor.user_id},
        )
        return policy

    async def seed_default_policies(self, defaults: PolicyDefaults) -> List[IncentivePolicy]:
        """Insert configured defaults for (category, sub_type) pairs that have no policy yet"""
        created = []
        async with atomic(self.db):
            for default in defaults.policies:
                existing = await self.list_policies(default.category, default.sub_type)
                if existing:
                    continue
                data = PolicyCreate(
                    policy_name=f"Default {default.category}/{default.sub_type}",
                    category=default.category,
                    sub_type=default.sub_type,
                    base_amount=default.base_amount,
                    base_points=default.base_points,
                    split_policy=SplitPolicy(default.split_policy),
                    role_percentages=[RolePercentage(**entry) for entry in default.role_percentages],
                    international_bonus=default.international_bonus,
                    consortium_bonus=default.consortium_bonus,
                )
                policy = self._new_policy(data, None)
                self.db.add(policy)
                created.append(policy)

        if created:
            logger.info(f"Seeded {len(created)} default incentive policies")
        return created
