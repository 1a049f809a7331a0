"""
Applies payment-processor subscription events to broker records.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from models import Broker
from services.errors import ValidationFailed
from services.tenants import SUBSCRIPTION_TIERS
from utils.log import audit_logger, get_logger

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


def verify_event(payload: bytes, signature: Optional[str], secret: Optional[str]) -> dict[str, Any]:
    """Check the webhook signature and return the decoded event."""
    if not secret:
        raise ValidationFailed("Webhook secret is not configured")
    if not signature:
        raise ValidationFailed("Missing signature header")
    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise ValidationFailed("Invalid signature") from e
    return json.loads(payload)


def subscription_payment_status(stripe_status: Optional[str]) -> str:
    if stripe_status == "active":
        return "active"
    if stripe_status == "past_due":
        return "past_due"
    return "cancelled"


async def apply_event(session: AsyncSession, event: dict[str, Any]) -> Optional[Broker]:
    """
    Update the broker an event refers to. Returns the broker touched, or None
    when the event type is not handled or names no known broker.
    """
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    metadata = obj.get("metadata") or {}
    broker_id = metadata.get("broker_id")
    if event_type not in (CHECKOUT_COMPLETED, SUBSCRIPTION_UPDATED, SUBSCRIPTION_DELETED) or not broker_id:
        logger.info("Ignoring billing event %s", event_type)
        return None

    broker = await session.get(Broker, broker_id)
    if broker is None:
        logger.warning("Billing event %s for unknown broker %s", event_type, broker_id)
        return None

    if event_type == CHECKOUT_COMPLETED:
        if not obj.get("subscription"):
            return None
        broker.payment_status = "active"
        broker.stripe_subscription_id = obj["subscription"]
        if obj.get("customer"):
            broker.stripe_customer_id = obj["customer"]
        tier = metadata.get("subscription_tier")
        if tier in SUBSCRIPTION_TIERS:
            broker.subscription_tier = tier
    elif event_type == SUBSCRIPTION_UPDATED:
        broker.payment_status = subscription_payment_status(obj.get("status"))
    else:
        broker.payment_status = "cancelled"

    broker.updated_at = datetime.now(timezone.utc)
    await session.flush()
    audit_logger.log(
        "billing." + event_type,
        broker_id=broker.id,
        entity_type="broker",
        entity_id=broker.id,
        details={"payment_status": broker.payment_status, "tier": broker.subscription_tier},
    )
    return broker
