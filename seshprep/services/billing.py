"""Workspace plans, trials and the billing webhook."""
import json
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import stripe
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from seshprep.config import settings
from seshprep.errors import AccessDenied, AlreadyExists, ValidationFailed
from seshprep.models import FileUpload, PlanType, Project, User, Workspace
from seshprep.utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

UPGRADE_EVENTS = frozenset({"checkout.session.completed"})
DOWNGRADE_EVENTS = frozenset({"invoice.payment_failed", "customer.subscription.deleted"})


class WebhookSignatureError(ValidationFailed):
    pass


def is_pro_access(workspace: Workspace, now: Optional[datetime] = None) -> bool:
    if workspace.plan == PlanType.PRO.value:
        return True
    expires_at = ensure_utc(workspace.trial_expires_at)
    if expires_at is None:
        return False
    return expires_at > (now or utcnow())


def trial_days_left(workspace: Workspace, now: Optional[datetime] = None) -> int:
    expires_at = ensure_utc(workspace.trial_expires_at)
    if expires_at is None:
        return 0
    remaining = (expires_at - (now or utcnow())).total_seconds()
    return max(0, math.ceil(remaining / SECONDS_PER_DAY))


def is_trial_active(workspace: Workspace, now: Optional[datetime] = None) -> bool:
    expires_at = ensure_utc(workspace.trial_expires_at)
    return expires_at is not None and expires_at > (now or utcnow())


def get_or_create_workspace(db: Session, user: User, now: Optional[datetime] = None) -> Workspace:
    """Return the account's workspace, creating it with a fresh trial on first access."""
    workspace = db.query(Workspace).filter(Workspace.owner_id == user.id).first()
    if workspace is not None:
        return workspace

    now = now or utcnow()
    workspace = Workspace(
        name="My Workspace",
        owner_id=user.id,
        plan=PlanType.FREE.value,
        trial_start_at=now,
        trial_expires_at=now + timedelta(days=settings.TRIAL_DAYS),
    )
    try:
        with db.begin_nested():
            db.add(workspace)
    except IntegrityError:
        # another request created it first
        workspace = db.query(Workspace).filter(Workspace.owner_id == user.id).one()
    return workspace


def start_trial(db: Session, workspace: Workspace, now: Optional[datetime] = None) -> Workspace:
    """Start the workspace's one trial. A used trial is never restarted, even after a downgrade."""
    if workspace.trial_start_at is not None:
        raise AlreadyExists("The free trial has already been used")
    now = now or utcnow()
    workspace.trial_start_at = now
    workspace.trial_expires_at = now + timedelta(days=settings.TRIAL_DAYS)
    db.flush()
    return workspace


def storage_usage_gb(db: Session, workspace: Workspace) -> float:
    total_bytes = (
        db.query(func.coalesce(func.sum(FileUpload.file_size), 0))
        .join(Project, FileUpload.project_id == Project.id)
        .filter(Project.producer_id == workspace.owner_id)
        .scalar()
    )
    return round(int(total_bytes or 0) / (1024 ** 3), 3)


def require_pro_access(db: Session, project: Project, now: Optional[datetime] = None) -> Workspace:
    """Storage-heavy features follow the plan of the project's producer."""
    workspace = get_or_create_workspace(db, project.producer, now=now)
    if not is_pro_access(workspace, now=now):
        raise AccessDenied("File uploads require a premium account")
    return workspace


# -- webhook -------------------------------------------------------------------


def verify_webhook(payload: bytes, signature: Optional[str], secret: Optional[str] = None) -> Dict[str, Any]:
    """Verify the ``Stripe-Signature`` header and return the decoded event."""
    secret = secret if secret is not None else settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        raise WebhookSignatureError("Webhook secret is not configured")
    if not signature:
        raise WebhookSignatureError("Missing Stripe-Signature header")

    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    try:
        stripe.WebhookSignature.verify_header(
            text, signature, secret, tolerance=settings.STRIPE_WEBHOOK_TOLERANCE
        )
    except stripe.SignatureVerificationError as exc:
        raise WebhookSignatureError(f"Webhook Error: {exc}") from exc

    try:
        event = json.loads(text)
    except ValueError as exc:
        raise WebhookSignatureError("Webhook Error: payload is not valid JSON") from exc
    if not isinstance(event, dict) or "type" not in event:
        raise WebhookSignatureError("Webhook Error: payload is not an event")
    return event


def _event_object(event: Dict[str, Any]) -> Dict[str, Any]:
    return (event.get("data") or {}).get("object") or {}


def _workspace_for_customer(db: Session, obj: Dict[str, Any]) -> Optional[Workspace]:
    customer_id = obj.get("customer")
    if customer_id:
        workspace = db.query(Workspace).filter(Workspace.stripe_customer_id == customer_id).first()
        if workspace is not None:
            return workspace

    email = obj.get("customer_email") or (obj.get("customer_details") or {}).get("email")
    if not email:
        return None
    user = db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
    if user is None:
        return None
    return get_or_create_workspace(db, user)


def apply_billing_event(db: Session, event: Dict[str, Any]) -> Optional[Workspace]:
    """Apply a verified billing event; returns the workspace it changed, if any."""
    event_type = event.get("type")
    obj = _event_object(event)

    if event_type in UPGRADE_EVENTS:
        user_id = (obj.get("metadata") or {}).get("user_id")
        if not user_id:
            logger.error("No user_id in checkout session metadata (event %s)", event.get("id"))
            return None
        try:
            account_id = int(user_id)
        except (TypeError, ValueError):
            logger.error("Invalid user_id %r in checkout session metadata (event %s)", user_id, event.get("id"))
            return None
        user = db.query(User).filter(User.id == account_id).first()
        if user is None:
            logger.error("Checkout completed for unknown user %s", user_id)
            return None
        workspace = get_or_create_workspace(db, user)
        workspace.plan = PlanType.PRO.value
        workspace.trial_expires_at = None
        if obj.get("customer"):
            workspace.stripe_customer_id = obj["customer"]
        db.flush()
        logger.info("Upgraded workspace %s to pro for user %s", workspace.id, user.id)
        return workspace

    if event_type in DOWNGRADE_EVENTS:
        workspace = _workspace_for_customer(db, obj)
        if workspace is None:
            logger.error("Could not find workspace for customer %s (event %s)", obj.get("customer"), event_type)
            return None
        workspace.plan = PlanType.FREE.value
        db.flush()
        logger.info("Downgraded workspace %s to free after %s", workspace.id, event_type)
        return workspace

    logger.info("Unhandled billing event type: %s", event_type)
    return None
