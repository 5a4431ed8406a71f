"""
Collection Member Model
"""
import enum

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from seshprep.database import Base


class CollectionRole(str, enum.Enum):
    MANAGER = "manager"
    EDITOR = "editor"
    ARTIST = "artist"


class CollectionMember(Base):
    __tablename__ = "collection_members"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    collection_id = Column(Integer, ForeignKey("collections.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    email = Column(String(254), nullable=False, index=True)
    role = Column(String(50), nullable=False)
    invited_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    collection = relationship("Collection", back_populates="members")
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("collection_id", "email", name="unique_collection_member_email"),
    )

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None
