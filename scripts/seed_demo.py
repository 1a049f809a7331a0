"""
Seed a demo broker, two vendors and a few deals across the pipeline.
Run: python -m scripts.seed_demo (from the project root, with DB running).
"""
import asyncio
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from database import AsyncSessionLocal, init_db
from models import Broker, Deal, Note, Vendor

BROKER = {
    "id": "demo-broker",
    "email": "broker@example.com",
    "company_name": "Summit Equipment Capital",
    "subscription_tier": "professional",
}

VENDORS = [
    {
        "id": "demo-vendor-1",
        "email": "sales@northlift.example.com",
        "company_name": "NorthLift Forklifts",
        "first_name": "Dana",
        "last_name": "Reyes",
    },
    {
        "id": "demo-vendor-2",
        "email": "orders@prairieag.example.com",
        "company_name": "Prairie Ag Supply",
        "first_name": "Sam",
        "last_name": "Okafor",
    },
]

DEALS = [
    ("demo-deal-1", "demo-vendor-1", "Harbor Logistics LLC", "Forklift", "42000", "new", "green"),
    ("demo-deal-2", "demo-vendor-1", "Baymark Foods Inc", "Pallet Jack Fleet", "118500", "review", "yellow"),
    ("demo-deal-3", "demo-vendor-2", "Cedar Row Farms", "Combine Harvester", "185000", "application", "red"),
    ("demo-deal-4", "demo-vendor-2", "Hollis Orchards", "Compact Tractor", "64000", "funded", "green"),
]


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        existing = await session.execute(select(Broker).where(Broker.id == BROKER["id"]))
        if existing.scalar_one_or_none():
            print(f"Broker {BROKER['id']} already exists, skipping")
            return
        session.add(Broker(**BROKER, payment_status="active"))
        await session.flush()
        for v in VENDORS:
            session.add(Vendor(**v, broker_id=BROKER["id"], must_change_password=False))
            print(f"Seeded vendor: {v['company_name']}")
        await session.flush()
        now = datetime.now(timezone.utc)
        for deal_id, vendor_id, customer, equipment, amount, stage, verdict in DEALS:
            session.add(Deal(
                id=deal_id,
                vendor_id=vendor_id,
                broker_id=BROKER["id"],
                customer_name=customer,
                equipment_type=equipment,
                deal_amount=Decimal(amount),
                current_stage=stage,
                prequalification_score=verdict,
                application_data={"businessLegalName": customer, "equipmentType": equipment},
                last_activity=now,
                created_at=now,
                updated_at=now,
            ))
            if stage != "new":
                session.add(Note(
                    id=f"{deal_id}-note",
                    deal_id=deal_id,
                    author_id=BROKER["id"],
                    author_type="broker",
                    message=f"Status updated from 'new' to '{stage}'",
                    created_at=now,
                ))
            print(f"Seeded deal: {customer} ({stage})")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
