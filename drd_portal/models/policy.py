from sqlalchemy import Column, String, Integer, Boolean, DateTime, Enum as SQLEnum, JSON, Index
from datetime import datetime
import enum

from drd_portal.core.database import Base
from drd_portal.core.types import GUID, Money, generate_uuid


class SplitPolicy(str, enum.Enum):
    equal = "equal"
    percentage_based = "percentage_based"


class IncentivePolicy(Base):
    """Versioned, effective-dated incentive rule set for a (category, sub-type) pair"""
    __tablename__ = "incentive_policies"
    __table_args__ = (
        Index("ix_incentive_policies_lookup", "category", "sub_type", "is_active", "effective_from"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    policy_name = Column(String(255), nullable=False)

    # e.g. ("ipr", "patent"), ("govt", "international"), ("research_paper", "q1")
    category = Column(String(50), nullable=False)
    sub_type = Column(String(50), nullable=False, default="default")

    base_amount = Column(Money, nullable=False)
    base_points = Column(Integer, nullable=False, default=0)
    split_policy = Column(
        SQLEnum(SplitPolicy, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=SplitPolicy.equal,
    )
    # [{"role": "pi", "percentage": 45}, {"role": "co_pi", "percentage": 55}]
    role_percentages = Column(JSON, nullable=False, default=list)
    international_bonus = Column(Money, nullable=True)
    consortium_bonus = Column(Money, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    effective_from = Column(DateTime, nullable=False, default=datetime.utcnow)
    effective_to = Column(DateTime, nullable=True)

    created_by_id = Column(GUID, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<IncentivePolicy {self.category}/{self.sub_type} {self.policy_name}>"
