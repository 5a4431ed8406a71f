"""
File upload, version counter and upload session Models
"""
import enum

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from seshprep.database import Base


class FileCategory(str, enum.Enum):
    STEMS = "stems"
    MIXES = "mixes"
    SESSIONS = "sessions"
    NOTES = "notes"


class FileUpload(Base):
    __tablename__ = "file_uploads"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    category = Column(String(20), nullable=False)
    file_path = Column(String(1024), nullable=False)
    filename = Column(String(255), nullable=False)
    original_filename = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=False)
    version = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="files")
    uploader = relationship("User", foreign_keys=[uploaded_by])

    __table_args__ = (
        UniqueConstraint("project_id", "category", "version", name="unique_file_version"),
    )


class FileVersionCounter(Base):
    """Last version handed out per (project, category); only ever incremented in SQL."""

    __tablename__ = "file_version_counters"

    project_id = Column(Integer, ForeignKey("projects.id"), primary_key=True)
    category = Column(String(20), primary_key=True)
    last_version = Column(Integer, nullable=False, default=0)


class UploadStatus(str, enum.Enum):
    OPEN = "open"
    COMPLETING = "completing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class UploadSession(Base):
    __tablename__ = "upload_sessions"

    id = Column(String(64), primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    category = Column(String(20), nullable=False)
    original_filename = Column(String(255), nullable=False)
    sanitized_filename = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    staging_path = Column(String(1024), nullable=False)
    received_bytes = Column(BigInteger, nullable=False, default=0)
    next_chunk_index = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=UploadStatus.OPEN.value)
    file_upload_id = Column(Integer, ForeignKey("file_uploads.id"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
