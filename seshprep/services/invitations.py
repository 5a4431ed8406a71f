"""Invitation tokens and the invitation rate limit."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from seshprep.config import settings
from seshprep.errors import InvitationError, RateLimited
from seshprep.models import InvitationRateLimit, InvitationToken
from seshprep.security import generate_token
from seshprep.utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def enforce_invitation_rate_limit(
    db: Session, inviter_id: int, project_id: int, email: str, now: Optional[datetime] = None
) -> None:
    """Record one invitation, failing once the trailing window is full."""
    now = now or utcnow()
    window_start = now - timedelta(minutes=settings.INVITATION_RATE_WINDOW_MINUTES)
    recent = (
        db.query(func.count(InvitationRateLimit.id))
        .filter(
            InvitationRateLimit.user_id == inviter_id,
            InvitationRateLimit.project_id == project_id,
            InvitationRateLimit.created_at > window_start,
        )
        .scalar()
    )
    if recent >= settings.INVITATION_RATE_LIMIT:
        logger.warning("Invitation rate limit hit by user %s on project %s", inviter_id, project_id)
        raise RateLimited(
            f"Too many invitations: at most {settings.INVITATION_RATE_LIMIT} per "
            f"{settings.INVITATION_RATE_WINDOW_MINUTES} minutes for a project"
        )

    db.add(InvitationRateLimit(user_id=inviter_id, project_id=project_id, invited_email=email, created_at=now))


def issue_invitation_token(
    db: Session, inviter_id: int, project_id: int, email: str, now: Optional[datetime] = None
) -> InvitationToken:
    now = now or utcnow()
    invitation = InvitationToken(
        token=generate_token(32),
        email=email,
        project_id=project_id,
        created_by=inviter_id,
        expires_at=now + timedelta(days=settings.INVITATION_TTL_DAYS),
        created_at=now,
    )
    db.add(invitation)
    db.flush()
    return invitation


def accept_url(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/auth?token={token}"


def lookup_invitation_token(db: Session, token: str, now: Optional[datetime] = None) -> InvitationToken:
    """Check a token without consuming it."""
    invitation = db.query(InvitationToken).filter(InvitationToken.token == token).first() if token else None
    if invitation is None:
        raise InvitationError("invalid")
    if invitation.used_at is not None:
        raise InvitationError("already-used")
    if (now or utcnow()) > ensure_utc(invitation.expires_at):
        raise InvitationError("expired")
    return invitation


def redeem_invitation_token(db: Session, token: str, now: Optional[datetime] = None) -> InvitationToken:
    """Consume a token exactly once."""
    now = now or utcnow()
    invitation = lookup_invitation_token(db, token, now=now)

    claimed = (
        db.query(InvitationToken)
        .filter(InvitationToken.id == invitation.id, InvitationToken.used_at.is_(None))
        .update({InvitationToken.used_at: now}, synchronize_session=False)
    )
    if claimed != 1:
        raise InvitationError("already-used")

    db.refresh(invitation)
    return invitation
