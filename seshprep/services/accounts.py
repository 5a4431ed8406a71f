"""Account registration, sign-in and profile updates."""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from seshprep.errors import AlreadyExists, NotAuthenticated, ValidationFailed
from seshprep.models import ProjectMember, User
from seshprep.security import MIN_PASSWORD_LENGTH, get_password_hash, verify_password
from seshprep.services.invitations import lookup_invitation_token, redeem_invitation_token
from seshprep.services.memberships import link_pending_memberships
from seshprep.services.validation import sanitize_html, validate_email, validate_url
from seshprep.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_PREFS: Dict[str, Any] = {
    "theme": "system",
    "date_format": "YYYY-MM-DD",
    "email_notifications": True,
    "push_notifications": False,
    "webhook_url": None,
}
THEMES = ("light", "dark", "system")
DATE_FORMATS = ("YYYY-MM-DD", "DD/MM/YYYY", "MM/DD/YYYY")


def validate_password(password: str) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def register_account(
    db: Session,
    email: str,
    password: str,
    display_name: Optional[str] = None,
    invitation_token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> User:
    """Create an account. With an invitation token, the token's email wins."""
    now = now or utcnow()
    invitation = None
    if invitation_token:
        invitation = lookup_invitation_token(db, invitation_token, now=now)
        email = invitation.email

    email = validate_email(email)
    validate_password(password)

    user = User(
        email=email,
        password_hash=get_password_hash(password),
        display_name=sanitize_html(display_name or "") or email.split("@")[0],
        prefs=dict(DEFAULT_PREFS),
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise AlreadyExists("Email already registered")

    if invitation is not None:
        invitation = redeem_invitation_token(db, invitation_token, now=now)

    link_pending_memberships(db, user)

    if invitation is not None:
        db.query(ProjectMember).filter(
            ProjectMember.project_id == invitation.project_id,
            func.lower(ProjectMember.email) == email,
            ProjectMember.accepted_at.is_(None),
        ).update({ProjectMember.accepted_at: now}, synchronize_session=False)

    db.flush()
    logger.info("Registered account %s%s", user.id, " via invitation" if invitation else "")
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(func.lower(User.email) == (email or "").strip().lower()).first()
    if user is None or not user.is_active or not verify_password(password or "", user.password_hash):
        raise NotAuthenticated("Invalid credentials")
    user.last_login_at = utcnow()
    return user


def merge_prefs(current: Optional[Dict[str, Any]], changes: Dict[str, Any]) -> Dict[str, Any]:
    prefs = dict(DEFAULT_PREFS)
    prefs.update(current or {})
    for key, value in changes.items():
        if key not in DEFAULT_PREFS:
            raise ValidationFailed(f"Unknown preference {key!r}")
        if key == "theme" and value not in THEMES:
            raise ValidationFailed(f"Theme must be one of: {', '.join(THEMES)}")
        if key == "date_format" and value not in DATE_FORMATS:
            raise ValidationFailed(f"Date format must be one of: {', '.join(DATE_FORMATS)}")
        if key in ("email_notifications", "push_notifications") and not isinstance(value, bool):
            raise ValidationFailed(f"{key} must be true or false")
        if key == "webhook_url":
            value = validate_url(value)
        prefs[key] = value
    return prefs


def update_profile(db: Session, user: User, changes: Dict[str, Any]) -> User:
    if "display_name" in changes:
        display_name = sanitize_html(changes["display_name"] or "")
        if not display_name:
            raise ValidationFailed("Display name is required")
        if len(display_name) > 100:
            raise ValidationFailed("Display name must be less than 100 characters")
        user.display_name = display_name
    if "bio" in changes:
        bio = sanitize_html(changes["bio"] or "")
        if len(bio) > 500:
            raise ValidationFailed("Bio must be less than 500 characters")
        user.bio = bio or None
    if "avatar_url" in changes:
        user.avatar_url = validate_url(changes["avatar_url"])
    if changes.get("prefs") is not None:
        user.prefs = merge_prefs(user.prefs, changes["prefs"])
    db.flush()
    return user
