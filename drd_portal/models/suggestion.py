from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, Enum as SQLEnum, JSON, text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from drd_portal.core.database import Base
from drd_portal.core.types import GUID, generate_uuid


class SuggestionStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    superseded = "superseded"


class SuggestionAction(str, enum.Enum):
    accept = "accept"
    reject = "reject"


class EditSuggestion(Base):
    """Reviewer-proposed replacement value for one field of a submission"""
    __tablename__ = "edit_suggestions"
    __table_args__ = (
        # At most one live suggestion per field
        Index(
            "uq_edit_suggestions_pending_field",
            "submission_id",
            "field_name",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    submission_id = Column(GUID, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(GUID, nullable=False)

    field_name = Column(String(100), nullable=False)
    field_path = Column(String(255), nullable=False)
    original_value = Column(JSON, nullable=True)
    suggested_value = Column(JSON, nullable=True)
    suggestion_note = Column(Text, nullable=True)

    status = Column(
        SQLEnum(SuggestionStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=SuggestionStatus.pending,
        nullable=False,
        index=True,
    )
    applicant_response = Column(Text, nullable=True)
    superseded_by_id = Column(GUID, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    responded_at = Column(DateTime, nullable=True)

    submission = relationship("Submission")

    def __repr__(self):
        return f"<EditSuggestion {self.field_name} [{self.status.value if self.status else '?'}]>"
