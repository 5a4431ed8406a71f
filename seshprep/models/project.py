"""
Project Model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from seshprep.database import Base

SAMPLE_RATES = (44100, 48000, 88200, 96000)

SONG_KEYS = tuple(
    f"{tonic} {mode}"
    for tonic in ("C", "C♯", "D", "E♭", "E", "F", "F♯", "G", "A♭", "A", "B♭", "B")
    for mode in ("major", "minor")
)

MIN_BPM = 40
MAX_BPM = 300


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=False)
    bpm = Column(Integer, nullable=False)
    sample_rate = Column(Integer, nullable=False)
    song_key = Column(String(20), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    producer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    collection_id = Column(Integer, ForeignKey("collections.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    producer = relationship("User", back_populates="produced_projects", foreign_keys=[producer_id])
    collection = relationship("Collection", back_populates="projects")
    members = relationship("ProjectMember", back_populates="project", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan", order_by="Task.created_at")
    files = relationship("FileUpload", back_populates="project")
