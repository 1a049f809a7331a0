from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

Verdict = Literal["green", "yellow", "red"]


class PrequalificationInput(BaseModel):
    fico_score: int = Field(..., alias="ficoScore", ge=300, le=850)
    years_in_business: float = Field(..., alias="yearsInBusiness", ge=0, le=100)
    has_public_records: bool = Field(..., alias="hasPublicRecords")
    annual_revenue: Decimal = Field(..., alias="annualRevenue", ge=0)
    deal_amount: Decimal = Field(..., alias="dealAmount", gt=0)
    customer_name: Optional[str] = Field(None, alias="customerName")
    equipment_type: Optional[str] = Field(None, alias="equipmentType")

    model_config = {"populate_by_name": True}

    @field_validator("has_public_records", mode="before")
    @classmethod
    def _yes_no(cls, v):
        # The intake form posts "yes" / "no"
        if isinstance(v, str) and v.strip().lower() in ("yes", "no"):
            return v.strip().lower() == "yes"
        return v


class PrequalificationResult(BaseModel):
    verdict: Verdict
    title: str
    message: str
    factors: list[str] = Field(default_factory=list)
    can_proceed: bool = True
    customer_name: Optional[str] = None
    equipment_type: Optional[str] = None
    deal_amount: Optional[Decimal] = None
