"""
Actor capabilities

The identity provider resolves the acting user once per request into a
`Capabilities` value. The state machine only ever asks it questions such as
`can_review(scope)`; it never looks at how permissions are stored.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional
import enum


class ReviewCategory(str, enum.Enum):
    """Independently assignable review categories"""
    ipr = "ipr"
    research = "research"
    book = "book"
    conference = "conference"
    grant = "grant"


@dataclass(frozen=True)
class ReviewScope:
    """A (category, school) pair a reviewer can be assigned to"""
    category: ReviewCategory
    school_id: Optional[str] = None


@dataclass(frozen=True)
class Capabilities:
    user_id: str
    review_scopes: FrozenSet[ReviewScope] = frozenset()
    approve_categories: FrozenSet[ReviewCategory] = frozenset()
    assign_categories: FrozenSet[ReviewCategory] = frozenset()
    credit_categories: FrozenSet[ReviewCategory] = frozenset()
    is_admin: bool = False

    def can_review(self, scope: ReviewScope) -> bool:
        """Assigned to the scope's school, or head of the category"""
        if self.is_admin or scope.category in self.approve_categories:
            return True
        # Reviewer scopes always name a school; a submission without one is for the head
        return scope.school_id is not None and scope in self.review_scopes

    def can_approve(self, scope: ReviewScope) -> bool:
        return self.is_admin or scope.category in self.approve_categories

    def can_reject(self, scope: ReviewScope) -> bool:
        return self.can_approve(scope) or self.can_review(scope)

    def can_assign_school(self, scope: ReviewScope) -> bool:
        return self.is_admin or scope.category in self.assign_categories

    def can_credit(self, scope: ReviewScope) -> bool:
        return self.is_admin or scope.category in self.credit_categories


@dataclass(frozen=True)
class Actor:
    """The acting user for one request"""
    user_id: str
    capabilities: Capabilities = field(default=None)
    display_name: Optional[str] = None

    def __post_init__(self):
        if self.capabilities is None:
            object.__setattr__(self, "capabilities", Capabilities(user_id=self.user_id))

    @property
    def is_admin(self) -> bool:
        return self.capabilities.is_admin
