from sqlalchemy import Column, String, Boolean, DateTime, UniqueConstraint, JSON
from datetime import datetime

from drd_portal.core.database import Base
from drd_portal.core.types import GUID, generate_uuid


class DepartmentPermission(Base):
    """
    DRD permission record for one user and review category.

    A NULL category applies to every category (department-wide grants such as
    admin).
    """
    __tablename__ = "department_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "category", name="uq_department_permissions_user_category"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, nullable=False, index=True)
    category = Column(String(20), nullable=True)

    can_review = Column(Boolean, default=False, nullable=False)
    can_approve = Column(Boolean, default=False, nullable=False)
    can_assign_school = Column(Boolean, default=False, nullable=False)
    can_credit = Column(Boolean, default=False, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)

    assigned_school_ids = Column(JSON, nullable=False, default=list)
    assigned_by_id = Column(GUID, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<DepartmentPermission {self.user_id} {self.category or '*'}>"
