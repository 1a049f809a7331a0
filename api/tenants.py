from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.auth import get_context, get_member_context
from database import get_db
from models import Broker, Vendor
from schemas.tenant import BrokerSignup, VendorInvite
from services import tenants
from services.access import RequestContext

router = APIRouter(prefix="/api", tags=["tenants"])


def _broker_to_response(b: Broker) -> dict[str, Any]:
    return {
        "id": b.id,
        "email": b.email,
        "companyName": b.company_name,
        "subscriptionTier": b.subscription_tier,
        "paymentStatus": b.payment_status,
        "createdAt": b.created_at.isoformat() if b.created_at else None,
    }


def _vendor_to_response(v: Vendor) -> dict[str, Any]:
    return {
        "id": v.id,
        "brokerId": v.broker_id,
        "email": v.email,
        "companyName": v.company_name,
        "firstName": v.first_name,
        "lastName": v.last_name,
        "mustChangePassword": v.must_change_password,
        "createdAt": v.created_at.isoformat() if v.created_at else None,
    }


@router.get("/me")
async def me(ctx: RequestContext = Depends(get_context)):
    return {
        "id": ctx.user_id,
        "email": ctx.email,
        "userType": ctx.role.value if ctx.role else None,
        "brokerId": ctx.broker_id,
        "mustChangePassword": ctx.must_change_password,
        "paymentStatus": ctx.payment_status,
        "subscriptionTier": ctx.subscription_tier,
    }


@router.post("/brokers", status_code=201)
async def signup_broker(
    body: BrokerSignup,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    broker = await tenants.signup_broker(db, ctx, body)
    return _broker_to_response(broker)


@router.get("/vendors")
async def list_vendors(
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return [_vendor_to_response(v) for v in await tenants.list_vendors(db, ctx)]


@router.post("/vendors", status_code=201)
async def invite_vendor(
    body: VendorInvite,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    result = await tenants.invite_vendor(db, ctx, body)
    return {
        "vendor": _vendor_to_response(result.vendor),
        # Shown once to the broker; the vendor must change it at first login.
        "tempPassword": result.temp_password,
        "emailSent": False,
    }


@router.delete("/vendors/{vendor_id}", status_code=204)
async def remove_vendor(
    vendor_id: str,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await tenants.remove_vendor(db, ctx, vendor_id)
    return Response(status_code=204)


@router.post("/vendors/me/password-changed")
async def acknowledge_password_change(
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    vendor = await tenants.acknowledge_password_change(db, ctx)
    return _vendor_to_response(vendor)
