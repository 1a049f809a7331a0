"""
Shared fixtures for the test modules: an in-memory database, seeded tenants,
a complete application payload, and bearer tokens.
"""
from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (registers tables on Base.metadata)
from config import settings
from database import Base
from models import Broker, Vendor
from services.access import RequestContext, Role

BROKER_ID = "broker-1"
OTHER_BROKER_ID = "broker-2"
VENDOR_ID = "vendor-1"
OTHER_VENDOR_ID = "vendor-2"


async def make_sessionmaker():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def seed_tenants(session: AsyncSession, tier: str = "professional") -> None:
    """Two brokers, each with one vendor who has already changed their password."""
    session.add_all([
        Broker(id=BROKER_ID, email="broker1@example.com", company_name="Summit Capital",
               subscription_tier=tier, payment_status="active"),
        Broker(id=OTHER_BROKER_ID, email="broker2@example.com", company_name="Ridge Leasing",
               subscription_tier=tier, payment_status="active"),
    ])
    await session.flush()
    session.add_all([
        Vendor(id=VENDOR_ID, broker_id=BROKER_ID, email="vendor1@example.com", company_name="NorthLift",
               first_name="Dana", last_name="Reyes", must_change_password=False),
        Vendor(id=OTHER_VENDOR_ID, broker_id=OTHER_BROKER_ID, email="vendor2@example.com",
               company_name="Prairie Ag", first_name="Sam", last_name="Okafor", must_change_password=False),
    ])
    await session.commit()


def broker_ctx(broker_id: str = BROKER_ID, tier: str = "professional", payment_status: str = "active") -> RequestContext:
    return RequestContext(
        user_id=broker_id,
        role=Role.BROKER,
        broker_id=broker_id,
        payment_status=payment_status,
        subscription_tier=tier,
    )


def vendor_ctx(vendor_id: str = VENDOR_ID, broker_id: str = BROKER_ID) -> RequestContext:
    return RequestContext(user_id=vendor_id, role=Role.VENDOR, broker_id=broker_id)


def sample_application(**overrides) -> dict:
    data = {
        "equipmentType": "Forklift",
        "equipmentDescription": "Electric 5,000 lb warehouse forklift",
        "equipmentCondition": "new",
        "equipmentCost": 42000,
        "vendorCompany": "NorthLift",
        "businessLegalName": "Harbor Logistics LLC",
        "businessType": "llc",
        "taxId": "123456789",
        "yearsInBusiness": 6,
        "industryType": "Warehousing",
        "contactName": "Jordan Lee",
        "contactTitle": "Owner",
        "businessAddress": "100 Dock Street",
        "businessCity": "Tacoma",
        "businessState": "WA",
        "businessZip": "98402",
        "businessPhone": "2535550100",
        "businessEmail": "ops@harborlogistics.example.com",
        "annualRevenue": 850000,
        "creditScore": 712,
        "bankName": "First Harbor Bank",
        "bankAccountType": "business_checking",
        "downPayment": 4000,
        "desiredTerm": 48,
        "monthlyBudget": 1100,
        "endOfTermOption": "purchase",
    }
    data.update(overrides)
    return data


def make_token(user_id: str, email: str = None) -> str:
    now = datetime.now(timezone.utc)
    claims = {"sub": user_id, "iat": now, "exp": now + timedelta(hours=1)}
    if email:
        claims["email"] = email
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user_id: str, email: str = None) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}
