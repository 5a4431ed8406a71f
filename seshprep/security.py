"""Password hashing and access tokens"""
import hashlib
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt  # PyJWT
from passlib.context import CryptContext

from seshprep.config import settings
from seshprep.errors import NotAuthenticated
from seshprep.utils.timeutils import utcnow

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(
    subject: int,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    now = utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    payload: Dict[str, Any] = {"sub": str(subject), "iat": now, "exp": expire}
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise NotAuthenticated("Session expired, please sign in again")
    except jwt.PyJWTError:
        raise NotAuthenticated("Could not validate credentials")
    if not payload.get("sub"):
        raise NotAuthenticated("Could not validate credentials")
    return payload


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


def digest(value: str) -> str:
    """SHA-256 hex digest used to store one-time secrets."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
