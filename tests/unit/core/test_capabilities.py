"""
Unit Tests for the capability model
"""
from drd_portal.core.capabilities import Actor, Capabilities, ReviewCategory, ReviewScope


class TestCapabilities:
    """Scope checks used by the workflow guards"""

    def test_reviewer_limited_to_assigned_school(self):
        caps = Capabilities(
            user_id="r1",
            review_scopes=frozenset({ReviewScope(ReviewCategory.ipr, "SOE")}),
        )

        assert caps.can_review(ReviewScope(ReviewCategory.ipr, "SOE"))
        assert not caps.can_review(ReviewScope(ReviewCategory.ipr, "SOM"))
        assert not caps.can_review(ReviewScope(ReviewCategory.grant, "SOE"))

    def test_scope_without_school_grants_nothing(self):
        caps = Capabilities(
            user_id="r1",
            review_scopes=frozenset({ReviewScope(ReviewCategory.book, None)}),
        )

        assert not caps.can_review(ReviewScope(ReviewCategory.book, "SOE"))
        assert not caps.can_review(ReviewScope(ReviewCategory.book, None))

    def test_submission_without_school_is_for_the_head(self):
        reviewer = Capabilities(
            user_id="r1",
            review_scopes=frozenset({ReviewScope(ReviewCategory.book, "SOE")}),
        )
        head = Capabilities(user_id="h1", approve_categories=frozenset({ReviewCategory.book}))

        assert not reviewer.can_review(ReviewScope(ReviewCategory.book, None))
        assert head.can_review(ReviewScope(ReviewCategory.book, None))

    def test_head_can_review_and_approve_category(self):
        caps = Capabilities(user_id="h1", approve_categories=frozenset({ReviewCategory.grant}))

        scope = ReviewScope(ReviewCategory.grant, "ANY")
        assert caps.can_review(scope)
        assert caps.can_approve(scope)
        assert caps.can_reject(scope)
        assert not caps.can_approve(ReviewScope(ReviewCategory.ipr, "ANY"))

    def test_reviewer_can_reject_but_not_approve(self):
        caps = Capabilities(
            user_id="r1",
            review_scopes=frozenset({ReviewScope(ReviewCategory.conference, "SOE")}),
        )
        scope = ReviewScope(ReviewCategory.conference, "SOE")

        assert caps.can_reject(scope)
        assert not caps.can_approve(scope)
        assert not caps.can_credit(scope)

    def test_admin_overrides_everything(self):
        caps = Capabilities(user_id="a1", is_admin=True)
        scope = ReviewScope(ReviewCategory.research, "SOE")

        assert caps.can_review(scope)
        assert caps.can_approve(scope)
        assert caps.can_assign_school(scope)
        assert caps.can_credit(scope)

    def test_assign_and_credit_flags_are_independent(self):
        caps = Capabilities(
            user_id="u1",
            assign_categories=frozenset({ReviewCategory.ipr}),
            credit_categories=frozenset({ReviewCategory.grant}),
        )

        assert caps.can_assign_school(ReviewScope(ReviewCategory.ipr))
        assert not caps.can_assign_school(ReviewScope(ReviewCategory.grant))
        assert caps.can_credit(ReviewScope(ReviewCategory.grant))
        assert not caps.can_credit(ReviewScope(ReviewCategory.ipr))


class TestActor:

    def test_default_capabilities_are_empty(self):
        actor = Actor(user_id="u1")

        assert actor.capabilities.user_id == "u1"
        assert not actor.is_admin
        assert not actor.capabilities.can_review(ReviewScope(ReviewCategory.ipr, "SOE"))

    def test_is_admin_reads_capabilities(self):
        actor = Actor(user_id="u1", capabilities=Capabilities(user_id="u1", is_admin=True))
        assert actor.is_admin
