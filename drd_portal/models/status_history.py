from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, JSON
from datetime import datetime

from drd_portal.core.database import Base
from drd_portal.core.types import GUID, generate_uuid


class StatusHistoryEntry(Base):
    """Append-only record of one status transition"""
    __tablename__ = "status_history"
    __table_args__ = (
        UniqueConstraint("submission_id", "sequence", name="uq_status_history_sequence"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    submission_id = Column(GUID, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    event = Column(String(50), nullable=False)
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=False)
    actor_id = Column(GUID, nullable=False)
    comment = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<StatusHistoryEntry #{self.sequence} {self.from_status} -> {self.to_status}>"
