from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from services import billing

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.post("/webhook")
async def billing_webhook(request: Request, db: AsyncSession = Depends(get_db, scope="function")):
    payload = await request.body()
    event = billing.verify_event(payload, request.headers.get("stripe-signature"), settings.stripe_webhook_secret)
    await billing.apply_event(db, event)
    return {"received": True}
