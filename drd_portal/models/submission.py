"""
Submission aggregate

One table serves IPR applications, research contributions and grant
applications. Kind-specific fields live in the `payload` JSON column and are
validated by the kind's pydantic payload model.
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Enum as SQLEnum, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from drd_portal.core.database import Base
from drd_portal.core.types import GUID, Money, generate_uuid


class SubmissionKind(str, enum.Enum):
    ipr = "ipr"
    research = "research"
    grant = "grant"


class SubmissionStatus(str, enum.Enum):
    draft = "draft"
    pending_mentor_approval = "pending_mentor_approval"
    submitted = "submitted"
    under_review = "under_review"
    changes_required = "changes_required"
    resubmitted = "resubmitted"
    recommended = "recommended"
    approved = "approved"
    # IPR only
    submitted_to_govt = "submitted_to_govt"
    govt_application_filed = "govt_application_filed"
    # Terminal
    completed = "completed"
    rejected = "rejected"
    cancelled = "cancelled"


TERMINAL_STATUSES = frozenset({
    SubmissionStatus.completed,
    SubmissionStatus.rejected,
    SubmissionStatus.cancelled,
})

# Applicant may change title/payload
EDITABLE_STATUSES = frozenset({
    SubmissionStatus.draft,
    SubmissionStatus.changes_required,
})

# Reviewers may propose edits
REVIEW_CAPABLE_STATUSES = frozenset({
    SubmissionStatus.under_review,
    SubmissionStatus.changes_required,
})


def _enum_values(obj):
    return [e.value for e in obj]


class Submission(Base):
    """IPR application, research contribution or grant application"""
    __tablename__ = "submissions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    application_number = Column(String(32), unique=True, nullable=True, index=True)

    kind = Column(SQLEnum(SubmissionKind, values_callable=_enum_values), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)

    # Applicant
    applicant_id = Column(GUID, nullable=False, index=True)
    school_id = Column(String(64), nullable=True, index=True)
    mentor_id = Column(GUID, nullable=True)
    requires_mentor_approval = Column(Boolean, default=False, nullable=False)

    # Workflow
    status = Column(
        SQLEnum(SubmissionStatus, values_callable=_enum_values),
        default=SubmissionStatus.draft,
        nullable=False,
        index=True,
    )
    current_reviewer_id = Column(GUID, nullable=True)
    approved_by_id = Column(GUID, nullable=True)

    # Incentive (calculated at approval, credited by finance)
    calculated_incentive_amount = Column(Money, nullable=True)
    calculated_points = Column(Integer, nullable=True)
    incentive_policy_id = Column(GUID, ForeignKey("incentive_policies.id"), nullable=True)
    credited_amount = Column(Money, nullable=True)
    credited_points = Column(Integer, nullable=True)
    credited_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    investigators = relationship(
        "Investigator",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="Investigator.ordering",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Submission {self.application_number or self.id} {self.kind.value if self.kind else '?'}:{self.status.value if self.status else '?'}>"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    @property
    def roster_locked(self) -> bool:
        """Roster is read-only once the submission has been submitted"""
        return self.application_number is not None or self.status != SubmissionStatus.draft

    @property
    def applicant(self):
        for investigator in self.investigators:
            if investigator.is_applicant:
                return investigator
        return None


class Investigator(Base):
    """Investigator / author / inventor credited on a submission"""
    __tablename__ = "investigators"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    submission_id = Column(GUID, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, nullable=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False)
    is_internal = Column(Boolean, default=True, nullable=False)
    is_applicant = Column(Boolean, default=False, nullable=False)
    ordering = Column(Integer, default=0, nullable=False)

    # Written at approval
    incentive_share = Column(Money, nullable=True)
    points_share = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    submission = relationship("Submission", back_populates="investigators")

    def __repr__(self):
        return f"<Investigator {self.name} ({self.role})>"
