"""Receipts API – OCR status callback from the remote worker."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from genba.api.deps import ServiceDep, http_error
from genba.chat.ocr import mark_ocr_status
from genba.errors import GenbaError
from genba.storage.database import transaction

router = APIRouter()


class OcrStatusRequest(BaseModel):
    status: Literal["done", "failed"]


class ReceiptOut(BaseModel):
    id: str
    ocr_status: str


@router.post("/{receipt_id}/ocr", response_model=ReceiptOut)
async def post_ocr_status(receipt_id: str, body: OcrStatusRequest, svc: ServiceDep) -> ReceiptOut:
    try:
        async with transaction(svc.session_factory) as session:
            r = await mark_ocr_status(session, receipt_id, body.status)
            out = ReceiptOut(id=r.id, ocr_status=r.ocr_status)
            project_id = r.project_id
    except GenbaError as exc:
        raise http_error(exc) from exc
    if body.status == "failed":
        await svc.telemetry.log_intent("upload_doc", "failure", "OCR_FAIL", project_id=project_id)
    return out
