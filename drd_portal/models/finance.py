from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from drd_portal.core.database import Base
from drd_portal.core.types import GUID, Money, generate_uuid


class FinanceRecordStatus(str, enum.Enum):
    pending = "pending"
    credited = "credited"


class FinanceRecord(Base):
    """Payout record created at approval and settled by the finance office"""
    __tablename__ = "finance_records"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    submission_id = Column(GUID, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, unique=True)
    policy_id = Column(GUID, nullable=True)

    calculated_amount = Column(Money, nullable=False)
    calculated_points = Column(Integer, nullable=False)
    distributed_amount = Column(Money, nullable=False)
    distributed_points = Column(Integer, nullable=False)

    credited_amount = Column(Money, nullable=True)
    credited_points = Column(Integer, nullable=True)
    audit_note = Column(Text, nullable=True)

    status = Column(
        SQLEnum(FinanceRecordStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=FinanceRecordStatus.pending,
        nullable=False,
    )
    credited_by_id = Column(GUID, nullable=True)
    credited_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    submission = relationship("Submission")

    def __repr__(self):
        return f"<FinanceRecord {self.submission_id} [{self.status.value if self.status else '?'}]>"
