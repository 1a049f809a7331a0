from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

SubscriptionTier = Literal["starter", "professional", "premium"]

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class BrokerSignup(BaseModel):
    company_name: str = Field(..., alias="companyName", min_length=2, max_length=256)
    subscription_tier: SubscriptionTier = Field("starter", alias="subscriptionTier")
    # Defaults to the email carried by the identity token
    email: Optional[str] = Field(None, pattern=_EMAIL_PATTERN)

    model_config = {"populate_by_name": True}


class VendorInvite(BaseModel):
    email: str = Field(..., pattern=_EMAIL_PATTERN)
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=128)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=128)
    company_name: str = Field(..., alias="companyName", min_length=1, max_length=256)
    # Identity-provider user id when the account was created there first
    user_id: Optional[str] = Field(None, alias="userId")

    model_config = {"populate_by_name": True}
