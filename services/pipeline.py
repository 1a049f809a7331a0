"""
Deal pipeline: creation, edits, stage transitions, and the note/document logs.

All functions take the request's session and context. They flush but never
commit: the request's session (database.get_db) commits everything a call
wrote in one transaction, so a stage change and its audit note land together
or not at all.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import Broker, Deal, Document, Note, Vendor
from schemas.deal import ApplicationForm, DealCreate, DealUpdate
from services import access
from services.errors import IllegalTransition, LimitReached, NotFound, PermissionDenied, StageConflict, ValidationFailed
from services.prequalification import score_prequalification
from services.stages import PICKER_STAGES, Stage, is_legal_transition
from services.tenants import tier_limits
from utils.log import audit_logger, get_logger

logger = get_logger(__name__)


@dataclass
class StageChangeResult:
    deal: Deal
    changed: bool
    note: Optional[Note] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _touch(deal: Deal) -> None:
    now = _now()
    deal.updated_at = now
    deal.last_activity = now


def _validate_application(application_data: Optional[dict]) -> None:
    try:
        ApplicationForm.model_validate(application_data or {})
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise ValidationFailed(
            f"Application incomplete. Missing or invalid: {', '.join(fields)}"
        ) from e


def status_note_message(old: str, new: str) -> str:
    return f"Status updated from '{old}' to '{new}'"


async def _load_deal(session: AsyncSession, deal_id: str, *relations) -> Optional[Deal]:
    stmt = select(Deal).where(Deal.id == deal_id)
    if relations:
        stmt = stmt.options(*(selectinload(r) for r in relations))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_deal(session: AsyncSession, ctx: access.RequestContext, deal_id: str) -> Deal:
    return access.ensure_visible(ctx, await _load_deal(session, deal_id))


async def list_deals(
    session: AsyncSession,
    ctx: access.RequestContext,
    stage: Optional[Stage] = None,
) -> list[Deal]:
    stmt = select(Deal)
    if ctx.is_broker:
        stmt = stmt.where(Deal.broker_id == ctx.user_id)
    elif ctx.is_vendor:
        stmt = stmt.where(Deal.vendor_id == ctx.user_id)
    else:
        raise PermissionDenied("Account is not registered as a broker or vendor")
    if stage is not None:
        stmt = stmt.where(Deal.current_stage == stage.value)
    result = await session.execute(stmt.order_by(Deal.last_activity.desc()))
    return list(result.scalars().all())


async def pipeline_board(session: AsyncSession, ctx: access.RequestContext) -> dict[str, list[Deal]]:
    """Deals grouped by picker stage for the kanban board. Drafts are not shown."""
    deals = await list_deals(session, ctx)
    board: dict[str, list[Deal]] = {s.value: [] for s in PICKER_STAGES}
    for deal in deals:
        if deal.current_stage in board:
            board[deal.current_stage].append(deal)
    return board


async def _count_deals_this_month(session: AsyncSession, broker_id: str) -> int:
    now = _now()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    result = await session.execute(
        select(func.count(Deal.id)).where(Deal.broker_id == broker_id, Deal.created_at >= month_start)
    )
    return int(result.scalar_one())


async def create_deal(session: AsyncSession, ctx: access.RequestContext, body: DealCreate) -> Deal:
    """
    Create a deal for the calling vendor, as a draft or submitted at "new".

    The broker is taken from the vendor's own record; a different brokerId in the
    request is rejected. If prequalification inputs are supplied, the verdict is
    computed here and stored once.
    """
    access.require_vendor(ctx)
    vendor = await session.get(Vendor, ctx.user_id)
    if vendor is None:
        raise NotFound("Vendor not found")
    if body.broker_id is not None and body.broker_id != vendor.broker_id:
        raise ValidationFailed("brokerId does not match the vendor's broker")

    broker = await session.get(Broker, vendor.broker_id)
    if broker is None:
        raise NotFound("Broker not found")
    limit = tier_limits(broker.subscription_tier).max_deals_per_month
    if limit != -1 and await _count_deals_this_month(session, broker.id) >= limit:
        raise LimitReached(f"Monthly deal limit of {limit} reached for the '{broker.subscription_tier}' plan")

    if body.submit:
        if body.deal_amount <= 0:
            raise ValidationFailed("dealAmount must be greater than 0")
        _validate_application(body.application_data)

    verdict = None
    if body.prequalification is not None:
        verdict = score_prequalification(body.prequalification).verdict

    now = _now()
    deal = Deal(
        id=_new_id("deal"),
        vendor_id=vendor.id,
        broker_id=vendor.broker_id,
        customer_name=body.customer_name,
        equipment_type=body.equipment_type,
        deal_amount=body.deal_amount,
        current_stage=(Stage.NEW if body.submit else Stage.DRAFT).value,
        prequalification_score=verdict,
        application_data=body.application_data,
        last_activity=now,
        created_at=now,
        updated_at=now,
    )
    session.add(deal)
    await session.flush()
    audit_logger.log(
        "deal.create",
        user_id=ctx.user_id,
        broker_id=deal.broker_id,
        entity_type="deal",
        entity_id=deal.id,
        details={"stage": deal.current_stage, "prequalification": verdict},
    )
    return deal


async def update_deal(
    session: AsyncSession,
    ctx: access.RequestContext,
    deal_id: str,
    body: DealUpdate,
) -> Deal:
    deal = await get_deal(session, ctx, deal_id)
    if not access.can_edit_deal(ctx, deal):
        raise PermissionDenied(f"Deal can no longer be edited by the vendor (stage '{deal.current_stage}')")
    if body.customer_name is not None:
        deal.customer_name = body.customer_name
    if body.equipment_type is not None:
        deal.equipment_type = body.equipment_type
    if body.deal_amount is not None:
        deal.deal_amount = body.deal_amount
    if body.application_data is not None:
        deal.application_data = body.application_data
    # Past draft the deal is in the broker's pipeline and must stay submittable.
    if deal.current_stage != Stage.DRAFT.value:
        if Decimal(deal.deal_amount) <= 0:
            raise ValidationFailed("dealAmount must be greater than 0")
        _validate_application(deal.application_data)
    _touch(deal)
    await session.flush()
    return deal


async def change_stage(
    session: AsyncSession,
    ctx: access.RequestContext,
    deal_id: str,
    target: Stage,
    override: bool = False,
    expected_stage: Optional[Stage] = None,
) -> StageChangeResult:
    """
    Move a deal to another pipeline stage and record an audit note.

    Only the owning broker may do this. Moving to the current stage is a no-op:
    nothing is written and changed is False. When expected_stage is given and
    the stored stage differs, the move is refused so a stale board cannot
    overwrite another session's change.
    """
    deal = await get_deal(session, ctx, deal_id)
    if not access.can_change_stage(ctx, deal):
        raise PermissionDenied("Only the deal's broker can change its stage")

    current = Stage(deal.current_stage)
    if expected_stage is not None and expected_stage != current:
        raise StageConflict(
            f"Deal is at stage '{current.value}', not '{expected_stage.value}'; reload and retry"
        )
    if target == current:
        return StageChangeResult(deal=deal, changed=False)
    if not override and not is_legal_transition(current, target):
        raise IllegalTransition(
            f"Cannot move deal from '{current.value}' to '{target.value}' without override"
        )

    deal.current_stage = target.value
    _touch(deal)
    note = Note(
        id=_new_id("note"),
        deal_id=deal.id,
        author_id=ctx.user_id,
        author_type=access.Role.BROKER.value,
        message=status_note_message(current.value, target.value),
        created_at=deal.updated_at,
    )
    session.add(note)
    await session.flush()
    audit_logger.log(
        "deal.stage_change",
        user_id=ctx.user_id,
        broker_id=deal.broker_id,
        entity_type="deal",
        entity_id=deal.id,
        details={"from": current.value, "to": target.value, "override": override},
    )
    return StageChangeResult(deal=deal, changed=True, note=note)


async def submit_draft(session: AsyncSession, ctx: access.RequestContext, deal_id: str) -> Deal:
    """Vendor completes a saved draft: draft -> new, with a vendor note."""
    deal = await get_deal(session, ctx, deal_id)
    if not access.owns_as_vendor(ctx, deal):
        raise PermissionDenied("Only the deal's vendor can submit it")
    if deal.current_stage != Stage.DRAFT.value:
        raise IllegalTransition(f"Only drafts can be submitted (stage is '{deal.current_stage}')")
    if Decimal(deal.deal_amount) <= 0:
        raise ValidationFailed("dealAmount must be greater than 0")
    _validate_application(deal.application_data)

    deal.current_stage = Stage.NEW.value
    _touch(deal)
    session.add(Note(
        id=_new_id("note"),
        deal_id=deal.id,
        author_id=ctx.user_id,
        author_type=access.Role.VENDOR.value,
        message="Application submitted",
        created_at=deal.updated_at,
    ))
    await session.flush()
    audit_logger.log("deal.submit", user_id=ctx.user_id, broker_id=deal.broker_id, entity_type="deal", entity_id=deal.id)
    return deal


async def delete_deal(session: AsyncSession, ctx: access.RequestContext, deal_id: str) -> None:
    deal = access.ensure_visible(ctx, await _load_deal(session, deal_id, Deal.notes, Deal.documents))
    if not access.can_delete_deal(ctx, deal):
        raise PermissionDenied("Only the deal's broker can delete it")
    await session.delete(deal)
    await session.flush()
    audit_logger.log("deal.delete", user_id=ctx.user_id, broker_id=ctx.user_id, entity_type="deal", entity_id=deal_id)


async def add_note(session: AsyncSession, ctx: access.RequestContext, deal_id: str, message: str) -> Note:
    deal = await get_deal(session, ctx, deal_id)
    note = Note(
        id=_new_id("note"),
        deal_id=deal.id,
        author_id=ctx.user_id,
        author_type=ctx.role.value,
        message=message,
        created_at=_now(),
    )
    session.add(note)
    _touch(deal)
    await session.flush()
    return note


async def list_notes(session: AsyncSession, ctx: access.RequestContext, deal_id: str) -> list[Note]:
    await get_deal(session, ctx, deal_id)
    result = await session.execute(
        select(Note).where(Note.deal_id == deal_id).order_by(Note.created_at.desc())
    )
    return list(result.scalars().all())


async def add_document(
    session: AsyncSession,
    ctx: access.RequestContext,
    deal_id: str,
    file_name: str,
    file_path: str,
    file_type: str,
) -> Document:
    deal = await get_deal(session, ctx, deal_id)
    doc = Document(
        id=_new_id("doc"),
        deal_id=deal.id,
        file_name=file_name,
        file_path=file_path,
        file_type=file_type,
        uploaded_by=ctx.user_id,
        created_at=_now(),
    )
    session.add(doc)
    _touch(deal)
    await session.flush()
    logger.info("Document %s attached to deal %s", doc.id, deal.id)
    return doc


async def list_documents(session: AsyncSession, ctx: access.RequestContext, deal_id: str) -> list[Document]:
    await get_deal(session, ctx, deal_id)
    result = await session.execute(
        select(Document).where(Document.deal_id == deal_id).order_by(Document.created_at.desc())
    )
    return list(result.scalars().all())
