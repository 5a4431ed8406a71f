"""Billing provider webhook"""
import logging

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from seshprep.database import get_db
from seshprep.schemas import WebhookAck
from seshprep.services.billing import WebhookSignatureError, apply_billing_event, verify_webhook

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook", response_model=WebhookAck)
async def billing_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
):
    """Apply subscription changes. The raw body is needed for the signature."""
    payload = await request.body()
    try:
        event = verify_webhook(payload, stripe_signature)
    except WebhookSignatureError as exc:
        logger.warning("Webhook signature verification failed: %s", exc.message)
        raise

    logger.info("Billing webhook received: %s", event.get("type"))
    apply_billing_event(db, event)
    db.commit()
    return WebhookAck(received=True)
