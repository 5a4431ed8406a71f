"""
Collection Model
"""
import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from seshprep.database import Base


class ReleaseType(str, enum.Enum):
    SINGLE = "Single"
    EP = "EP"
    ALBUM = "Album"


class Collection(Base):
    __tablename__ = "collections"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=True)
    release_type = Column(String(20), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    owner = relationship("User", back_populates="owned_collections", foreign_keys=[owner_id])
    projects = relationship("Project", back_populates="collection")
    members = relationship("CollectionMember", back_populates="collection", cascade="all, delete-orphan")
