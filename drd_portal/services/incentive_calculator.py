"""
Incentive Calculator

Pure computation: given a policy snapshot, a roster and the bonus-relevant
attributes of a submission, produce each participant's (amount, points)
share. Nothing here touches the database.

All arithmetic is Decimal with floor rounding, so the distributed shares
never add up to more than the policy total. The undistributed remainder is
reported as the residual and stays with the institution.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, Iterable, List, Optional

from drd_portal.core.exceptions import InvalidPolicyError
from drd_portal.models.policy import IncentivePolicy, SplitPolicy
from drd_portal.models.submission import Investigator

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _floor(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_FLOOR)


def _decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class PolicyTerms:
    """Snapshot of the policy fields the calculator needs"""
    category: str
    sub_type: str
    base_amount: Decimal
    base_points: int
    split_policy: SplitPolicy = SplitPolicy.equal
    role_percentages: Dict[str, Decimal] = field(default_factory=dict)
    international_bonus: Optional[Decimal] = None
    consortium_bonus: Optional[Decimal] = None
    policy_id: Optional[str] = None

    @classmethod
    def from_policy(cls, policy: IncentivePolicy) -> "PolicyTerms":
        return cls(
            category=policy.category,
            sub_type=policy.sub_type,
            base_amount=_decimal(policy.base_amount),
            base_points=policy.base_points or 0,
            split_policy=SplitPolicy(policy.split_policy),
            role_percentages=role_table(policy.role_percentages or []),
            international_bonus=_decimal(policy.international_bonus) if policy.international_bonus is not None else None,
            consortium_bonus=_decimal(policy.consortium_bonus) if policy.consortium_bonus is not None else None,
            policy_id=policy.id,
        )


def role_table(entries: Iterable[Any]) -> Dict[str, Decimal]:
    """[{"role": "pi", "percentage": 45}, ...] -> {"pi": Decimal("45")}"""
    table: Dict[str, Decimal] = {}
    for entry in entries:
        if isinstance(entry, dict):
            role, percentage = entry["role"], entry["percentage"]
        else:
            role, percentage = entry.role, entry.percentage
        table[role] = table.get(role, ZERO) + _decimal(percentage)
    return table


@dataclass(frozen=True)
class Participant:
    key: str
    name: str
    role: str
    is_internal: bool = True

    @classmethod
    def from_investigator(cls, investigator: Investigator) -> "Participant":
        return cls(
            key=investigator.id,
            name=investigator.name,
            role=investigator.role,
            is_internal=bool(investigator.is_internal),
        )


@dataclass(frozen=True)
class BonusContext:
    is_international: bool = False
    consortium_members: int = 0


@dataclass(frozen=True)
class Share:
    key: str
    name: str
    role: str
    is_internal: bool
    amount: Decimal
    points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "role": self.role,
            "is_internal": self.is_internal,
            "amount": str(self.amount),
            "points": self.points,
        }


@dataclass
class IncentiveBreakdown:
    """Calculator output: pre-split totals plus every participant's share"""
    category: str
    sub_type: str
    split_policy: SplitPolicy
    base_amount: Decimal
    base_points: int
    international_bonus_applied: Decimal
    consortium_bonus_applied: Decimal
    total_amount: Decimal
    total_points: int
    shares: List[Share] = field(default_factory=list)
    policy_id: Optional[str] = None

    @property
    def internal_count(self) -> int:
        return sum(1 for share in self.shares if share.is_internal)

    @property
    def distributed_amount(self) -> Decimal:
        return sum((share.amount for share in self.shares), ZERO)

    @property
    def distributed_points(self) -> int:
        return sum(share.points for share in self.shares)

    @property
    def residual_amount(self) -> Decimal:
        return self.total_amount - self.distributed_amount

    @property
    def residual_points(self) -> int:
        return self.total_points - self.distributed_points

    def share_for(self, key: str) -> Optional[Share]:
        for share in self.shares:
            if share.key == key:
                return share
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "category": self.category,
            "sub_type": self.sub_type,
            "split_policy": self.split_policy.value,
            "total_amount": str(self.total_amount),
            "total_points": self.total_points,
            "distributed_amount": str(self.distributed_amount),
            "distributed_points": self.distributed_points,
            "residual_amount": str(self.residual_amount),
            "residual_points": self.residual_points,
        }


def _equal_split(total: Decimal, total_points: int, internal: List[Participant]) -> Dict[str, tuple]:
    n = len(internal)
    amount = _floor(total / n)
    points = int(_floor(Decimal(total_points) / n))
    return {p.key: (amount, points) for p in internal}


def _percentage_split(
    total: Decimal,
    total_points: int,
    internal: List[Participant],
    percentages: Dict[str, Decimal],
) -> Dict[str, tuple]:
    by_role: Dict[str, List[Participant]] = {}
    for participant in internal:
        by_role.setdefault(participant.role, []).append(participant)

    result: Dict[str, tuple] = {p.key: (ZERO, 0) for p in internal}
    for role, percentage in percentages.items():
        holders = by_role.get(role)
        # Unfilled roles forfeit their portion
        if not holders:
            continue
        count = len(holders)
        amount = _floor(total * percentage / HUNDRED / count)
        points = int(_floor(Decimal(total_points) * percentage / HUNDRED / count))
        for holder in holders:
            result[holder.key] = (amount, points)
    return result


def calculate_incentive(
    terms: PolicyTerms,
    participants: Iterable[Participant],
    bonuses: Optional[BonusContext] = None,
) -> IncentiveBreakdown:
    bonuses = bonuses or BonusContext()
    participants = list(participants)

    total = _decimal(terms.base_amount)
    total_points = int(terms.base_points or 0)

    international_bonus = ZERO
    if bonuses.is_international and terms.international_bonus is not None:
        international_bonus = _decimal(terms.international_bonus)

    consortium_bonus = ZERO
    if bonuses.consortium_members > 0 and terms.consortium_bonus is not None:
        consortium_bonus = _decimal(terms.consortium_bonus) * bonuses.consortium_members

    total = total + international_bonus + consortium_bonus

    internal = [p for p in participants if p.is_internal]
    allocations: Dict[str, tuple] = {}

    if internal:
        if terms.split_policy == SplitPolicy.percentage_based:
            if sum(terms.role_percentages.values(), ZERO) > HUNDRED:
                raise InvalidPolicyError(
                    f"Role percentages for {terms.category}/{terms.sub_type} exceed 100",
                    field="role_percentages",
                )
            allocations = _percentage_split(total, total_points, internal, terms.role_percentages)
        else:
            allocations = _equal_split(total, total_points, internal)

    shares = []
    for participant in participants:
        amount, points = allocations.get(participant.key, (ZERO, 0)) if participant.is_internal else (ZERO, 0)
        shares.append(Share(
            key=participant.key,
            name=participant.name,
            role=participant.role,
            is_internal=participant.is_internal,
            amount=amount,
            points=points,
        ))

    return IncentiveBreakdown(
        category=terms.category,
        sub_type=terms.sub_type,
        split_policy=terms.split_policy,
        base_amount=_decimal(terms.base_amount),
        base_points=int(terms.base_points or 0),
        international_bonus_applied=international_bonus,
        consortium_bonus_applied=consortium_bonus,
        total_amount=total,
        total_points=total_points,
        shares=shares,
        policy_id=terms.policy_id,
    )
