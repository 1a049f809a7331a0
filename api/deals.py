from __future__ import annotations

import re
import time
import uuid
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from api.auth import get_member_context
from config import settings
from database import get_db
from models import Deal, Document, Note
from schemas.deal import DealCreate, DealUpdate, NoteCreate, StageChange
from services import pipeline
from services.access import RequestContext
from services.stages import Stage

router = APIRouter(prefix="/api/deals", tags=["deals"])

ALLOWED_DOCUMENT_TYPES = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "text/csv": ".csv",
}


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def _deal_to_response(d: Deal) -> dict[str, Any]:
    return {
        "id": d.id,
        "vendorId": d.vendor_id,
        "brokerId": d.broker_id,
        "customerName": d.customer_name,
        "equipmentType": d.equipment_type,
        "dealAmount": float(d.deal_amount) if d.deal_amount is not None else None,
        "currentStage": d.current_stage,
        "prequalificationScore": d.prequalification_score,
        "applicationData": d.application_data,
        "lastActivity": _iso(d.last_activity),
        "createdAt": _iso(d.created_at),
        "updatedAt": _iso(d.updated_at),
    }


def _note_to_response(n: Note) -> dict[str, Any]:
    return {
        "id": n.id,
        "dealId": n.deal_id,
        "authorId": n.author_id,
        "authorType": n.author_type,
        "message": n.message,
        "createdAt": _iso(n.created_at),
    }


def _document_to_response(doc: Document) -> dict[str, Any]:
    return {
        "id": doc.id,
        "dealId": doc.deal_id,
        "fileName": doc.file_name,
        "filePath": doc.file_path,
        "fileType": doc.file_type,
        "uploadedBy": doc.uploaded_by,
        "createdAt": _iso(doc.created_at),
    }


def _safe_file_name(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", Path(name).name) or "upload"


@router.get("")
async def list_deals(
    stage: Optional[Stage] = None,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    deals = await pipeline.list_deals(db, ctx, stage)
    return [_deal_to_response(d) for d in deals]


@router.get("/board")
async def pipeline_board(
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    board = await pipeline.pipeline_board(db, ctx)
    return [
        {"stage": stage, "deals": [_deal_to_response(d) for d in deals]}
        for stage, deals in board.items()
    ]


@router.post("", status_code=201)
async def create_deal(
    body: DealCreate,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    deal = await pipeline.create_deal(db, ctx, body)
    return _deal_to_response(deal)


@router.get("/{deal_id}")
async def get_deal(
    deal_id: str,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return _deal_to_response(await pipeline.get_deal(db, ctx, deal_id))


@router.patch("/{deal_id}")
async def update_deal(
    deal_id: str,
    body: DealUpdate,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return _deal_to_response(await pipeline.update_deal(db, ctx, deal_id, body))


@router.post("/{deal_id}/stage")
async def change_stage(
    deal_id: str,
    body: StageChange,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    result = await pipeline.change_stage(
        db, ctx, deal_id, body.stage, override=body.override, expected_stage=body.expected_stage
    )
    return {
        "changed": result.changed,
        "deal": _deal_to_response(result.deal),
        "note": _note_to_response(result.note) if result.note else None,
    }


@router.post("/{deal_id}/submit")
async def submit_draft(
    deal_id: str,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return _deal_to_response(await pipeline.submit_draft(db, ctx, deal_id))


@router.delete("/{deal_id}", status_code=204)
async def delete_deal(
    deal_id: str,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await pipeline.delete_deal(db, ctx, deal_id)
    return Response(status_code=204)


@router.get("/{deal_id}/notes")
async def list_notes(
    deal_id: str,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return [_note_to_response(n) for n in await pipeline.list_notes(db, ctx, deal_id)]


@router.post("/{deal_id}/notes", status_code=201)
async def add_note(
    deal_id: str,
    body: NoteCreate,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return _note_to_response(await pipeline.add_note(db, ctx, deal_id, body.message))


@router.get("/{deal_id}/documents")
async def list_documents(
    deal_id: str,
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return [_document_to_response(doc) for doc in await pipeline.list_documents(db, ctx, deal_id)]


@router.post("/{deal_id}/documents", status_code=201)
async def upload_document(
    deal_id: str,
    file: UploadFile = File(..., description="Invoice, quote, financials or other supporting file"),
    ctx: RequestContext = Depends(get_member_context),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """
    Store an uploaded file under the upload root and attach it to the deal.
    """
    await pipeline.get_deal(db, ctx, deal_id)
    content_type = (file.content_type or "").split(";")[0].strip()
    if content_type not in ALLOWED_DOCUMENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"File type not allowed. Allowed types: {', '.join(ALLOWED_DOCUMENT_TYPES.values())}",
        )
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="File is empty.")
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(status_code=400, detail=f"File size too large. Maximum size: {settings.max_upload_mb}MB")

    original_name = file.filename or "upload"
    stored_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{_safe_file_name(original_name)}"
    relative = Path("applications") / ctx.user_id / stored_name
    target = Path(settings.upload_dir) / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)

    # The file only survives if its document row commits.
    try:
        doc = await pipeline.add_document(db, ctx, deal_id, original_name, relative.as_posix(), content_type)
        await db.commit()
    except Exception:
        target.unlink(missing_ok=True)
        raise
    return _document_to_response(doc)
