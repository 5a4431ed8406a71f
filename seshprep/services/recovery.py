"""Password recovery.

A recovery request stores a grant with three one-time secrets: the link
token sent as ``token_hash``, the exchange ``code`` and a 6-digit OTP typed
by the user. Presenting any of them (or the token pair minted by an earlier
exchange) yields a ``RecoverySession`` that may set a new password once.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import singledispatch
from typing import Optional, Union
from urllib.parse import urlencode

from sqlalchemy import func
from sqlalchemy.orm import Session

from seshprep.config import settings
from seshprep.errors import InvalidRecoveryCredential, NotAuthenticated
from seshprep.mailer import Mailer, recovery_email
from seshprep.models import RecoveryGrant, User
from seshprep.security import create_access_token, decode_access_token, digest, generate_token, get_password_hash
from seshprep.services.accounts import validate_password
from seshprep.utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

RECOVERY_PURPOSE = "recovery"
INVALID_CREDENTIAL = "Invalid or expired recovery token"


@dataclass(frozen=True)
class Code:
    code: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Otp:
    token: str
    email: str


@dataclass(frozen=True)
class TokenHash:
    token_hash: str


RecoveryCredential = Union[Code, TokenPair, Otp, TokenHash]


@dataclass
class RecoverySession:
    user: User
    grant: RecoveryGrant
    access_token: str
    refresh_token: str


@dataclass
class RecoveryIssue:
    """Plain secrets of a fresh grant; only ever sent to the account's inbox."""

    grant: RecoveryGrant
    token_hash: str
    code: str
    otp: str

    @property
    def reset_url(self) -> str:
        query = urlencode({"token_hash": self.token_hash, "code": self.code, "type": "recovery"})
        return f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?{query}"


def credential_from_params(
    token_hash: Optional[str] = None,
    token: Optional[str] = None,
    email: Optional[str] = None,
    code: Optional[str] = None,
    access_token: Optional[str] = None,
    refresh_token: Optional[str] = None,
) -> RecoveryCredential:
    """Pick the credential variant from request fields; token pair wins, then token_hash."""
    if access_token and refresh_token:
        return TokenPair(access_token, refresh_token)
    if token_hash:
        return TokenHash(token_hash)
    if token and email:
        return Otp(token, email)
    if code:
        return Code(code)
    raise InvalidRecoveryCredential("Missing or invalid recovery credentials")


def request_recovery(
    db: Session, mailer: Mailer, email: str, now: Optional[datetime] = None
) -> Optional[RecoveryIssue]:
    """Create and send a grant when ``email`` belongs to an account.

    Callers answer the same way whether or not the account exists.
    """
    now = now or utcnow()
    normalized = (email or "").strip().lower()
    user = db.query(User).filter(func.lower(User.email) == normalized).first()
    if user is None or not user.is_active:
        logger.info("Password reset requested for unknown account")
        return None

    issue = RecoveryIssue(
        grant=None,
        token_hash=generate_token(32),
        code=generate_token(24),
        otp=f"{secrets.randbelow(10 ** 6):06d}",
    )
    grant = RecoveryGrant(
        user_id=user.id,
        link_digest=digest(issue.token_hash),
        code_digest=digest(issue.code),
        otp_digest=digest(issue.otp),
        expires_at=now + timedelta(minutes=settings.RECOVERY_TTL_MINUTES),
    )
    db.add(grant)
    db.flush()
    issue.grant = grant

    mailer.send(recovery_email(user.email, issue.reset_url, issue.otp, settings.RECOVERY_TTL_MINUTES))
    logger.info("Recovery grant %s issued for user %s", grant.id, user.id)
    return issue


def _usable(grant: Optional[RecoveryGrant], now: datetime) -> RecoveryGrant:
    if grant is None or grant.completed_at is not None:
        raise InvalidRecoveryCredential(INVALID_CREDENTIAL)
    if now > ensure_utc(grant.expires_at):
        raise InvalidRecoveryCredential(INVALID_CREDENTIAL)
    return grant


def _exchange(db: Session, grant: RecoveryGrant, now: datetime) -> RecoverySession:
    """Consume a one-time secret and mint the recovery token pair."""
    grant = _usable(grant, now)
    refresh_token = generate_token(32)
    claimed = (
        db.query(RecoveryGrant)
        .filter(RecoveryGrant.id == grant.id, RecoveryGrant.consumed_at.is_(None))
        .update(
            {RecoveryGrant.consumed_at: now, RecoveryGrant.refresh_digest: digest(refresh_token)},
            synchronize_session=False,
        )
    )
    if claimed != 1:
        raise InvalidRecoveryCredential(INVALID_CREDENTIAL)
    db.refresh(grant)

    access_token = create_access_token(
        grant.user_id,
        expires_delta=ensure_utc(grant.expires_at) - now,
        extra_claims={"purpose": RECOVERY_PURPOSE, "grant": grant.id},
    )
    return RecoverySession(user=grant.user, grant=grant, access_token=access_token, refresh_token=refresh_token)


@singledispatch
def resolve_credential(credential, db: Session, now: datetime) -> RecoverySession:
    raise InvalidRecoveryCredential("Unsupported recovery credential")


@resolve_credential.register
def _(credential: TokenHash, db: Session, now: datetime) -> RecoverySession:
    grant = db.query(RecoveryGrant).filter(RecoveryGrant.link_digest == digest(credential.token_hash)).first()
    return _exchange(db, grant, now)


@resolve_credential.register
def _(credential: Code, db: Session, now: datetime) -> RecoverySession:
    grant = db.query(RecoveryGrant).filter(RecoveryGrant.code_digest == digest(credential.code)).first()
    return _exchange(db, grant, now)


@resolve_credential.register
def _(credential: Otp, db: Session, now: datetime) -> RecoverySession:
    user = db.query(User).filter(func.lower(User.email) == credential.email.strip().lower()).first()
    if user is None:
        raise InvalidRecoveryCredential(INVALID_CREDENTIAL)
    grant = (
        db.query(RecoveryGrant)
        .filter(
            RecoveryGrant.user_id == user.id,
            RecoveryGrant.otp_digest == digest(credential.token.strip()),
            RecoveryGrant.consumed_at.is_(None),
        )
        .order_by(RecoveryGrant.id.desc())
        .first()
    )
    return _exchange(db, grant, now)


@resolve_credential.register
def _(credential: TokenPair, db: Session, now: datetime) -> RecoverySession:
    """Re-establish a session from tokens minted by an earlier exchange."""
    try:
        payload = decode_access_token(credential.access_token)
    except NotAuthenticated:
        raise InvalidRecoveryCredential(INVALID_CREDENTIAL)
    if payload.get("purpose") != RECOVERY_PURPOSE or not payload.get("grant"):
        raise InvalidRecoveryCredential(INVALID_CREDENTIAL)

    grant = _usable(db.get(RecoveryGrant, int(payload["grant"])), now)
    if str(grant.user_id) != payload["sub"] or grant.refresh_digest != digest(credential.refresh_token):
        raise InvalidRecoveryCredential(INVALID_CREDENTIAL)
    return RecoverySession(
        user=grant.user,
        grant=grant,
        access_token=credential.access_token,
        refresh_token=credential.refresh_token,
    )


def open_recovery_session(
    db: Session, credential: RecoveryCredential, now: Optional[datetime] = None
) -> RecoverySession:
    return resolve_credential(credential, db, now or utcnow())


def update_password(
    db: Session, credential: RecoveryCredential, password: str, now: Optional[datetime] = None
) -> User:
    now = now or utcnow()
    validate_password(password)
    session = open_recovery_session(db, credential, now=now)

    completed = (
        db.query(RecoveryGrant)
        .filter(RecoveryGrant.id == session.grant.id, RecoveryGrant.completed_at.is_(None))
        .update({RecoveryGrant.completed_at: now}, synchronize_session=False)
    )
    if completed != 1:
        raise InvalidRecoveryCredential(INVALID_CREDENTIAL)

    session.user.password_hash = get_password_hash(password)
    db.flush()
    logger.info("Password updated through recovery grant %s", session.grant.id)
    return session.user
