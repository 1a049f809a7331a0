"""
Who may do what to a deal.

The request context is built once per request (api/auth.py) and every
service call checks its capabilities here instead of branching on the user
type in each handler.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from models import Deal
from services.errors import NotFound, PaymentRequired, PermissionDenied
from services.stages import VENDOR_EDITABLE_STAGES, Stage


class Role(str, Enum):
    BROKER = "broker"
    VENDOR = "vendor"


@dataclass(frozen=True)
class RequestContext:
    user_id: str
    email: Optional[str] = None
    role: Optional[Role] = None
    # A broker's own id, or the owning broker of a vendor
    broker_id: Optional[str] = None
    must_change_password: bool = False
    payment_status: Optional[str] = None
    subscription_tier: Optional[str] = None

    @property
    def is_broker(self) -> bool:
        return self.role == Role.BROKER

    @property
    def is_vendor(self) -> bool:
        return self.role == Role.VENDOR


def owns_as_broker(ctx: RequestContext, deal: Deal) -> bool:
    return ctx.is_broker and deal.broker_id == ctx.user_id


def owns_as_vendor(ctx: RequestContext, deal: Deal) -> bool:
    return ctx.is_vendor and deal.vendor_id == ctx.user_id


def can_view_deal(ctx: RequestContext, deal: Deal) -> bool:
    return owns_as_broker(ctx, deal) or owns_as_vendor(ctx, deal)


def can_change_stage(ctx: RequestContext, deal: Deal) -> bool:
    return owns_as_broker(ctx, deal)


def can_edit_deal(ctx: RequestContext, deal: Deal) -> bool:
    if owns_as_broker(ctx, deal):
        return True
    return owns_as_vendor(ctx, deal) and Stage(deal.current_stage) in VENDOR_EDITABLE_STAGES


def can_delete_deal(ctx: RequestContext, deal: Deal) -> bool:
    return owns_as_broker(ctx, deal)


def ensure_visible(ctx: RequestContext, deal: Optional[Deal]) -> Deal:
    """Deals the caller cannot see are reported as missing, not forbidden."""
    if deal is None or not can_view_deal(ctx, deal):
        raise NotFound("Deal not found")
    return deal


def require_broker(ctx: RequestContext) -> None:
    if not ctx.is_broker:
        raise PermissionDenied("Broker account required")


def require_vendor(ctx: RequestContext) -> None:
    if not ctx.is_vendor:
        raise PermissionDenied("Vendor account required")


def require_paid_broker(ctx: RequestContext) -> None:
    require_broker(ctx)
    if ctx.payment_status != "active":
        raise PaymentRequired(f"Subscription payment status is '{ctx.payment_status}'")
