"""Password recovery endpoints"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from seshprep.database import get_db
from seshprep.dependencies import get_mailer
from seshprep.errors import EmailDeliveryError, ValidationFailed
from seshprep.mailer import Mailer
from seshprep.schemas import (
    MessageResponse,
    PasswordResetRequest,
    PasswordResetUpdate,
    RecoverySessionResponse,
)
from seshprep.services import recovery

logger = logging.getLogger(__name__)

router = APIRouter()

GENERIC_REQUEST_MESSAGE = "If an account exists for this email, a reset link has been sent"


@router.post("/request", response_model=MessageResponse)
def request_password_reset(
    payload: PasswordResetRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Same answer whether or not the account exists."""
    if not payload.email or not payload.email.strip():
        raise ValidationFailed("Email is required")
    try:
        recovery.request_recovery(db, mailer, payload.email)
    except EmailDeliveryError as exc:
        db.rollback()
        logger.error("Password reset email could not be sent: %s", exc.message)
    else:
        db.commit()
    return MessageResponse(message=GENERIC_REQUEST_MESSAGE)


@router.get("/session", response_model=RecoverySessionResponse)
def open_session(
    token_hash: Optional[str] = Query(None),
    token: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    credential = recovery.credential_from_params(token_hash=token_hash, token=token, email=email, code=code)
    session = recovery.open_recovery_session(db, credential)
    db.commit()
    return RecoverySessionResponse(
        user_id=session.user.id,
        email=session.user.email,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
    )


@router.post("/update", response_model=MessageResponse)
def update_password(payload: PasswordResetUpdate, db: Session = Depends(get_db)):
    if not payload.password:
        raise ValidationFailed("New password is required")
    credential = recovery.credential_from_params(
        token_hash=payload.token_hash,
        token=payload.token,
        email=payload.email,
        code=payload.code,
        access_token=payload.access_token,
        refresh_token=payload.refresh_token,
    )
    recovery.update_password(db, credential, payload.password)
    db.commit()
    return MessageResponse(message="Password updated successfully")
