"""
Unit Tests for resolving actors from department permissions
"""
import pytest

from drd_portal.core.capabilities import ReviewCategory, ReviewScope
from drd_portal.core.exceptions import ForbiddenError
from drd_portal.core.types import generate_uuid


class TestResolve:

    async def test_user_without_rows_has_no_capabilities(self, provider):
        actor = await provider.resolve(generate_uuid(), display_name="Nobody")

        caps = actor.capabilities
        assert actor.display_name == "Nobody"
        assert not caps.is_admin
        assert not caps.can_review(ReviewScope(ReviewCategory.ipr, "SOE"))
        assert not caps.can_approve(ReviewScope(ReviewCategory.ipr, "SOE"))

    async def test_null_category_covers_every_category(self, provider, grant_permission):
        user_id = generate_uuid()
        await grant_permission(user_id, None, can_approve=True)

        caps = await provider.capabilities_for(user_id)

        assert caps.approve_categories == frozenset(ReviewCategory)

    async def test_school_scoped_reviewer(self, provider, grant_permission):
        user_id = generate_uuid()
        await grant_permission(user_id, "grant", can_review=True, assigned_school_ids=["SOE", "SOS"])

        caps = await provider.capabilities_for(user_id)

        assert caps.can_review(ReviewScope(ReviewCategory.grant, "SOS"))
        assert not caps.can_review(ReviewScope(ReviewCategory.grant, "SOM"))
        assert not caps.can_review(ReviewScope(ReviewCategory.ipr, "SOE"))

    async def test_reviewer_without_schools_reviews_nothing(self, provider, grant_permission):
        user_id = generate_uuid()
        await grant_permission(user_id, "book", can_review=True)

        caps = await provider.capabilities_for(user_id)

        assert caps.review_scopes == frozenset()
        assert not caps.can_review(ReviewScope(ReviewCategory.book, "SOM"))
        assert not caps.can_review(ReviewScope(ReviewCategory.book, None))

    async def test_inactive_rows_ignored(self, provider, grant_permission):
        user_id = generate_uuid()
        await grant_permission(user_id, "ipr", can_credit=True, is_active=False)
        await grant_permission(user_id, "research", can_credit=True)

        caps = await provider.capabilities_for(user_id)

        assert caps.credit_categories == frozenset({ReviewCategory.research})

    async def test_rows_accumulate(self, provider, grant_permission):
        user_id = generate_uuid()
        await grant_permission(user_id, "ipr", can_approve=True, can_assign_school=True)
        await grant_permission(user_id, "conference", can_review=True, assigned_school_ids=["SOE"])

        caps = await provider.capabilities_for(user_id)

        assert caps.approve_categories == frozenset({ReviewCategory.ipr})
        assert caps.assign_categories == frozenset({ReviewCategory.ipr})
        assert caps.review_scopes == frozenset({ReviewScope(ReviewCategory.conference, "SOE")})


class TestAssignSchools:

    async def test_head_assigns_reviewer(self, provider, head):
        reviewer_id = generate_uuid()

        row = await provider.assign_schools(head, reviewer_id, ReviewCategory.ipr, ["SOM", "SOE", "SOE"])

        assert row.assigned_school_ids == ["SOE", "SOM"]
        assert row.assigned_by_id == head.user_id
        caps = await provider.capabilities_for(reviewer_id)
        assert caps.can_review(ReviewScope(ReviewCategory.ipr, "SOM"))

    async def test_reassignment_replaces_schools(self, provider, head):
        reviewer_id = generate_uuid()
        await provider.assign_schools(head, reviewer_id, ReviewCategory.grant, ["SOE"])

        await provider.assign_schools(head, reviewer_id, ReviewCategory.grant, ["SOM"])

        caps = await provider.capabilities_for(reviewer_id)
        assert caps.review_scopes == frozenset({ReviewScope(ReviewCategory.grant, "SOM")})

    async def test_empty_school_list_removes_access(self, provider, head):
        reviewer_id = generate_uuid()
        await provider.assign_schools(head, reviewer_id, ReviewCategory.grant, ["SOE"])

        row = await provider.assign_schools(head, reviewer_id, ReviewCategory.grant, [])

        assert row.assigned_school_ids == []
        caps = await provider.capabilities_for(reviewer_id)
        assert caps.review_scopes == frozenset()
        assert not caps.can_review(ReviewScope(ReviewCategory.grant, "SOE"))

    async def test_categories_assigned_independently(self, provider, actor_factory):
        ipr_head = actor_factory(assign=("ipr",))

        await provider.assign_schools(ipr_head, generate_uuid(), ReviewCategory.ipr, ["SOE"])
        with pytest.raises(ForbiddenError):
            await provider.assign_schools(ipr_head, generate_uuid(), ReviewCategory.research, ["SOE"])

    async def test_reviewer_cannot_assign(self, provider, reviewer):
        with pytest.raises(ForbiddenError):
            await provider.assign_schools(reviewer, generate_uuid(), ReviewCategory.ipr, ["SOE"])


class TestGrantPermission:

    async def test_admin_grants(self, provider, admin):
        user_id = generate_uuid()

        await provider.grant_permission(admin, user_id, ReviewCategory.grant, can_credit=True)

        caps = await provider.capabilities_for(user_id)
        assert caps.can_credit(ReviewScope(ReviewCategory.grant))
        assert not caps.can_credit(ReviewScope(ReviewCategory.ipr))

    async def test_grant_upserts(self, provider, admin):
        user_id = generate_uuid()
        first = await provider.grant_permission(admin, user_id, None, can_approve=True)

        second = await provider.grant_permission(admin, user_id, None, can_review=True)

        assert second.id == first.id
        caps = await provider.capabilities_for(user_id)
        assert caps.approve_categories == frozenset()
        assert caps.review_scopes == frozenset()

    async def test_non_admin_cannot_grant(self, provider, head):
        with pytest.raises(ForbiddenError):
            await provider.grant_permission(head, generate_uuid(), None, is_admin=True)
