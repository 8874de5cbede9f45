"""
Capability Provider

Resolves the acting user into an `Actor` with `Capabilities`, built from the
active DepartmentPermission rows. This is the only place that knows how DRD
permissions are stored.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Iterable, List, Optional

from drd_portal.core.capabilities import Actor, Capabilities, ReviewCategory, ReviewScope
from drd_portal.core.database import atomic
from drd_portal.core.exceptions import ForbiddenError
from drd_portal.core.logging_config import logger, set_user_id
from drd_portal.models.permission import DepartmentPermission


class AssignmentCapabilityProvider:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _active_rows(self, user_id: str) -> List[DepartmentPermission]:
        result = await self.db.execute(
            select(DepartmentPermission).where(
                DepartmentPermission.user_id == user_id,
                DepartmentPermission.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def capabilities_for(self, user_id: str) -> Capabilities:
        review_scopes = set()
        approve, assign, credit = set(), set(), set()
        is_admin = False

        for row in await self._active_rows(user_id):
            is_admin = is_admin or row.is_admin
            categories = [ReviewCategory(row.category)] if row.category else list(ReviewCategory)
            for category in categories:
                if row.can_review:
                    # No assigned schools means no review scope
                    review_scopes.update(ReviewScope(category, school) for school in row.assigned_school_ids or [])
                if row.can_approve:
                    approve.add(category)
                if row.can_assign_school:
                    assign.add(category)
                if row.can_credit:
                    credit.add(category)

        return Capabilities(
            user_id=user_id,
            review_scopes=frozenset(review_scopes),
            approve_categories=frozenset(approve),
            assign_categories=frozenset(assign),
            credit_categories=frozenset(credit),
            is_admin=is_admin,
        )

    async def resolve(self, user_id: str, display_name: Optional[str] = None) -> Actor:
        set_user_id(str(user_id))
        return Actor(
            user_id=user_id,
            capabilities=await self.capabilities_for(user_id),
            display_name=display_name,
        )

    async def _row_for(self, user_id: str, category: Optional[ReviewCategory]) -> Optional[DepartmentPermission]:
        query = select(DepartmentPermission).where(DepartmentPermission.user_id == user_id)
        if category is None:
            query = query.where(DepartmentPermission.category.is_(None))
        else:
            query = query.where(DepartmentPermission.category == ReviewCategory(category).value)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def assign_schools(
        self,
        actor: Actor,
        reviewer_id: str,
        category: ReviewCategory,
        school_ids: Iterable[str],
    ) -> DepartmentPermission:
        """Make `reviewer_id` a reviewer for `category` in exactly these schools"""
        category = ReviewCategory(category)
        if not actor.capabilities.can_assign_school(ReviewScope(category)):
            raise ForbiddenError(f"Not authorized to assign {category.value} reviewers", action="assign_schools")

        schools = sorted({str(s) for s in school_ids})
        async with atomic(self.db):
            row = await self._row_for(reviewer_id, category)
            if row is None:
                row = DepartmentPermission(user_id=reviewer_id, category=category.value)
                self.db.add(row)
            row.can_review = True
            row.is_active = True
            row.assigned_school_ids = schools
            row.assigned_by_id = actor.user_id

        logger.info(
            f"Assigned {category.value} reviewer {reviewer_id} to {len(schools)} school(s)",
            extra={"event_type": "schools_assigned", "actor_id": actor.user_id, "review_category": category.value},
        )
        return row

    async def grant_permission(
        self,
        actor: Actor,
        user_id: str,
        category: Optional[ReviewCategory] = None,
        can_review: bool = False,
        can_approve: bool = False,
        can_assign_school: bool = False,
        can_credit: bool = False,
        is_admin: bool = False,
    ) -> DepartmentPermission:
        """Upsert a user's department permission flags (administrators only)"""
        if not actor.is_admin:
            raise ForbiddenError("Only DRD administrators can grant permissions", action="grant_permission")

        category = ReviewCategory(category) if category else None
        async with atomic(self.db):
            row = await self._row_for(user_id, category)
            if row is None:
                row = DepartmentPermission(
                    user_id=user_id,
                    category=category.value if category else None,
                    assigned_school_ids=[],
                )
                self.db.add(row)
            row.can_review = can_review
            row.can_approve = can_approve
            row.can_assign_school = can_assign_school
            row.can_credit = can_credit
            row.is_admin = is_admin
            row.is_active = True
            row.assigned_by_id = actor.user_id

        logger.info(
            f"Permissions updated for {user_id} ({category.value if category else 'all categories'})",
            extra={"event_type": "permission_granted", "actor_id": actor.user_id},
        )
        return row
