"""
Project Member Model
"""
import enum

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from seshprep.database import Base


class ProjectRole(str, enum.Enum):
    # producer is implicit (Project.producer_id) and never stored as a row
    PRODUCER = "producer"
    MANAGER = "manager"
    ARTIST = "artist"
    EDITOR = "editor"


class ProjectMember(Base):
    __tablename__ = "project_members"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    email = Column(String(254), nullable=False, index=True)
    role = Column(String(50), nullable=False)
    invited_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    project = relationship("Project", back_populates="members")
    user = relationship("User", foreign_keys=[user_id])
    inviter = relationship("User", foreign_keys=[invited_by])

    __table_args__ = (
        UniqueConstraint("project_id", "email", name="unique_project_member_email"),
    )

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None
