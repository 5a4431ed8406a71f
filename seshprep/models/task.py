"""
Task Model
"""
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from seshprep.database import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskCategory(str, enum.Enum):
    PRE_PRODUCTION = "pre-production"
    RECORDING = "recording"
    MIXING = "mixing"
    MASTERING = "mastering"
    OTHER = "other"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        SQLEnum(TaskStatus, values_callable=_enum_values, name="task_status"),
        default=TaskStatus.PENDING,
        nullable=False,
    )
    priority = Column(
        SQLEnum(TaskPriority, values_callable=_enum_values, name="task_priority"),
        default=TaskPriority.MEDIUM,
        nullable=False,
    )
    category = Column(
        SQLEnum(TaskCategory, values_callable=_enum_values, name="task_category"),
        nullable=True,
    )
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    external_link = Column(String(2048), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="tasks")
    assignee = relationship("User", foreign_keys=[assigned_to])
