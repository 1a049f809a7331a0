"""
Brokers, the vendors they invite, and subscription tier limits.
"""
from __future__ import annotations

import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import Broker, Deal, Vendor
from schemas.tenant import BrokerSignup, VendorInvite
from services import access
from services.errors import LimitReached, NotFound, PermissionDenied, ValidationFailed
from utils.log import audit_logger

SUBSCRIPTION_TIERS = ("starter", "professional", "premium")
PAYMENT_STATUSES = ("active", "past_due", "cancelled")

TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%"
TEMP_PASSWORD_LENGTH = 12


@dataclass(frozen=True)
class TierLimits:
    max_vendors: int  # -1 = unlimited
    max_deals_per_month: int  # -1 = unlimited
    document_storage_gb: int


TIER_LIMITS: dict[str, TierLimits] = {
    "starter": TierLimits(max_vendors=3, max_deals_per_month=50, document_storage_gb=1),
    "professional": TierLimits(max_vendors=10, max_deals_per_month=200, document_storage_gb=10),
    "premium": TierLimits(max_vendors=-1, max_deals_per_month=-1, document_storage_gb=100),
}


def tier_limits(tier: Optional[str]) -> TierLimits:
    """Unknown or missing tiers get starter limits."""
    return TIER_LIMITS.get(tier or "starter", TIER_LIMITS["starter"])


@dataclass
class InviteResult:
    vendor: Vendor
    temp_password: str


def generate_temporary_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))


async def load_context(
    session: AsyncSession,
    user_id: str,
    email: Optional[str] = None,
) -> access.RequestContext:
    """Resolve an authenticated identity to its broker or vendor record."""
    broker = await session.get(Broker, user_id)
    if broker is not None:
        return access.RequestContext(
            user_id=user_id,
            email=broker.email,
            role=access.Role.BROKER,
            broker_id=broker.id,
            payment_status=broker.payment_status,
            subscription_tier=broker.subscription_tier,
        )
    vendor = await session.get(Vendor, user_id)
    if vendor is not None:
        return access.RequestContext(
            user_id=user_id,
            email=vendor.email,
            role=access.Role.VENDOR,
            broker_id=vendor.broker_id,
            must_change_password=bool(vendor.must_change_password),
        )
    return access.RequestContext(user_id=user_id, email=email)


async def _email_taken(session: AsyncSession, email: str) -> bool:
    email = email.lower()
    for model in (Broker, Vendor):
        result = await session.execute(select(model.id).where(func.lower(model.email) == email))
        if result.first() is not None:
            return True
    return False


async def _id_taken(session: AsyncSession, user_id: str) -> bool:
    return await session.get(Broker, user_id) is not None or await session.get(Vendor, user_id) is not None


async def signup_broker(session: AsyncSession, ctx: access.RequestContext, body: BrokerSignup) -> Broker:
    if ctx.role is not None:
        raise ValidationFailed(f"Account is already registered as a {ctx.role.value}")
    email = body.email or ctx.email
    if not email:
        raise ValidationFailed("email is required")
    if await _email_taken(session, email):
        raise ValidationFailed("Email already registered")
    now = datetime.now(timezone.utc)
    broker = Broker(
        id=ctx.user_id,
        email=email,
        company_name=body.company_name,
        subscription_tier=body.subscription_tier,
        payment_status="active",
        created_at=now,
        updated_at=now,
    )
    session.add(broker)
    await session.flush()
    audit_logger.log("broker.signup", user_id=ctx.user_id, broker_id=broker.id, entity_type="broker", entity_id=broker.id)
    return broker


async def count_vendors(session: AsyncSession, broker_id: str) -> int:
    result = await session.execute(select(func.count(Vendor.id)).where(Vendor.broker_id == broker_id))
    return int(result.scalar_one())


async def invite_vendor(session: AsyncSession, ctx: access.RequestContext, body: VendorInvite) -> InviteResult:
    """
    Create a vendor under the calling broker with a temporary password.

    The password is handed back to the broker to pass on; the vendor must
    change it before using the rest of the app.
    """
    access.require_paid_broker(ctx)
    limit = tier_limits(ctx.subscription_tier).max_vendors
    if limit != -1 and await count_vendors(session, ctx.user_id) >= limit:
        raise LimitReached(f"Vendor limit of {limit} reached for the '{ctx.subscription_tier}' plan")
    if await _email_taken(session, body.email):
        raise ValidationFailed("Email already registered")
    if body.user_id and await _id_taken(session, body.user_id):
        raise ValidationFailed("User id already registered")

    now = datetime.now(timezone.utc)
    vendor = Vendor(
        id=body.user_id or str(uuid.uuid4()),
        broker_id=ctx.user_id,
        email=body.email,
        company_name=body.company_name,
        first_name=body.first_name,
        last_name=body.last_name,
        must_change_password=True,
        created_at=now,
        updated_at=now,
    )
    session.add(vendor)
    await session.flush()
    audit_logger.log(
        "vendor.invite",
        user_id=ctx.user_id,
        broker_id=ctx.user_id,
        entity_type="vendor",
        entity_id=vendor.id,
        details={"email": vendor.email},
    )
    return InviteResult(vendor=vendor, temp_password=generate_temporary_password())


async def list_vendors(session: AsyncSession, ctx: access.RequestContext) -> list[Vendor]:
    access.require_broker(ctx)
    result = await session.execute(
        select(Vendor).where(Vendor.broker_id == ctx.user_id).order_by(Vendor.created_at.desc())
    )
    return list(result.scalars().all())


async def remove_vendor(session: AsyncSession, ctx: access.RequestContext, vendor_id: str) -> None:
    """Delete a vendor of the calling broker together with its deals, notes and documents."""
    access.require_broker(ctx)
    result = await session.execute(
        select(Vendor)
        .options(
            selectinload(Vendor.deals).selectinload(Deal.notes),
            selectinload(Vendor.deals).selectinload(Deal.documents),
        )
        .where(Vendor.id == vendor_id, Vendor.broker_id == ctx.user_id)
    )
    vendor = result.scalar_one_or_none()
    if vendor is None:
        raise NotFound("Vendor not found or does not belong to this broker")
    await session.delete(vendor)
    await session.flush()
    audit_logger.log("vendor.remove", user_id=ctx.user_id, broker_id=ctx.user_id, entity_type="vendor", entity_id=vendor_id)


async def acknowledge_password_change(session: AsyncSession, ctx: access.RequestContext) -> Vendor:
    if not ctx.is_vendor:
        raise PermissionDenied("Only vendors have a temporary password")
    vendor = await session.get(Vendor, ctx.user_id)
    if vendor is None:
        raise NotFound("Vendor not found")
    vendor.must_change_password = False
    vendor.updated_at = datetime.now(timezone.utc)
    await session.flush()
    return vendor
