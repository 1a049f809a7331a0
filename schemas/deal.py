from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from schemas.prequalification import PrequalificationInput
from services.stages import Stage


class ApplicationForm(BaseModel):
    """Fields a vendor must complete before an application leaves draft."""

    # Equipment
    equipment_type: str = Field(..., alias="equipmentType", min_length=2)
    equipment_description: str = Field(..., alias="equipmentDescription", min_length=10)
    equipment_condition: Literal["new", "used"] = Field(..., alias="equipmentCondition")
    equipment_cost: Decimal = Field(..., alias="equipmentCost", ge=1)
    vendor_company: str = Field(..., alias="vendorCompany", min_length=2)

    # Customer business
    business_legal_name: str = Field(..., alias="businessLegalName", min_length=2)
    business_dba: Optional[str] = Field(None, alias="businessDBA")
    business_type: Literal["llc", "corporation", "partnership", "sole_proprietorship", "other"] = Field(
        ..., alias="businessType"
    )
    tax_id: str = Field(..., alias="taxId", min_length=9, max_length=10)
    years_in_business: float = Field(..., alias="yearsInBusiness", ge=0, le=100)
    industry_type: str = Field(..., alias="industryType", min_length=2)

    # Contact & location
    contact_name: str = Field(..., alias="contactName", min_length=2)
    contact_title: str = Field(..., alias="contactTitle", min_length=2)
    business_address: str = Field(..., alias="businessAddress", min_length=5)
    business_city: str = Field(..., alias="businessCity", min_length=2)
    business_state: str = Field(..., alias="businessState", min_length=2)
    business_zip: str = Field(..., alias="businessZip", min_length=5)
    business_phone: str = Field(..., alias="businessPhone", min_length=10)
    business_email: str = Field(..., alias="businessEmail", pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    business_website: Optional[str] = Field(None, alias="businessWebsite")

    # Financials
    annual_revenue: Decimal = Field(..., alias="annualRevenue", ge=1)
    credit_score: Optional[int] = Field(None, alias="creditScore", ge=300, le=850)
    bank_name: str = Field(..., alias="bankName", min_length=2)
    bank_account_type: Literal["checking", "savings", "business_checking"] = Field(..., alias="bankAccountType")

    # Deal structure
    down_payment: Decimal = Field(..., alias="downPayment", ge=0)
    desired_term: int = Field(..., alias="desiredTerm", ge=12, le=84)
    monthly_budget: Decimal = Field(..., alias="monthlyBudget", ge=1)
    end_of_term_option: Literal["purchase", "return", "upgrade", "fair_market_value"] = Field(
        ..., alias="endOfTermOption"
    )

    model_config = {"populate_by_name": True}


class DealCreate(BaseModel):
    customer_name: str = Field(..., alias="customerName", min_length=1, max_length=256)
    equipment_type: str = Field(..., alias="equipmentType", min_length=1, max_length=256)
    deal_amount: Decimal = Field(..., alias="dealAmount", ge=0)
    # Accepted for compatibility; must match the vendor's own broker if sent.
    broker_id: Optional[str] = Field(None, alias="brokerId")
    application_data: Optional[dict[str, Any]] = Field(None, alias="applicationData")
    submit: bool = False
    prequalification: Optional[PrequalificationInput] = None

    model_config = {"populate_by_name": True}


class DealUpdate(BaseModel):
    customer_name: Optional[str] = Field(None, alias="customerName", min_length=1, max_length=256)
    equipment_type: Optional[str] = Field(None, alias="equipmentType", min_length=1, max_length=256)
    deal_amount: Optional[Decimal] = Field(None, alias="dealAmount", ge=0)
    application_data: Optional[dict[str, Any]] = Field(None, alias="applicationData")

    # Stage and prequalification verdict are not editable through this model.
    model_config = {"populate_by_name": True, "extra": "forbid"}


class StageChange(BaseModel):
    stage: Stage
    override: bool = False
    expected_stage: Optional[Stage] = Field(None, alias="expectedStage")

    model_config = {"populate_by_name": True}


class NoteCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)
