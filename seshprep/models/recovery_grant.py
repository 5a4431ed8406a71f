"""Password recovery grant Model"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from seshprep.database import Base


class RecoveryGrant(Base):
    """A pending password recovery; every secret is stored as a SHA-256 digest."""

    __tablename__ = "recovery_grants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    link_digest = Column(String(64), unique=True, nullable=False, index=True)
    otp_digest = Column(String(64), nullable=False)
    code_digest = Column(String(64), unique=True, nullable=False, index=True)
    refresh_digest = Column(String(64), nullable=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User")
