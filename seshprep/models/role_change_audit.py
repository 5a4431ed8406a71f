"""Role change audit trail"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from seshprep.database import Base


class RoleChangeAudit(Base):
    __tablename__ = "role_change_audit"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    scope = Column(String(20), nullable=False, default="project")  # project, collection
    target_id = Column(Integer, nullable=False, index=True)
    member_id = Column(Integer, nullable=False)
    old_role = Column(String(50), nullable=True)
    new_role = Column(String(50), nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    reason = Column(String(255), nullable=True)
    changed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
