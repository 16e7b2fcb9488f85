"""Receipt / delivery-slip capture."""

from __future__ import annotations

import re
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from genba.chat.drafts import ReceiptDraft, ReceiptKind
from genba.storage.repository import ReceiptRepo

RECEIPT_CURRENCY = "JPY"

_DELIVERY_HINT = re.compile(r"納品|delivery|搬入")
_RECEIPT_HINT = re.compile(r"領収|receipt|レシート")


@dataclass(frozen=True, slots=True)
class ReceiptCommit:
    receipt_id: str


def guess_receipt_kind(file_name: str = "", mime_type: str = "") -> ReceiptKind:
    s = f"{file_name} {mime_type}".lower()
    if _DELIVERY_HINT.search(s):
        return "delivery"
    if _RECEIPT_HINT.search(s):
        return "receipt"
    return "other"


async def commit_receipt_draft(session: AsyncSession, draft: ReceiptDraft) -> ReceiptCommit:
    """Insert one capture event; OCR is started separately and never blocks this."""
    r = await ReceiptRepo(session).create(
        project_id=draft.project_id,
        kind=draft.kind,
        amount=draft.amount,
        currency=RECEIPT_CURRENCY,
        account=draft.account,
        vendor=draft.vendor or None,
        file_refs=list(draft.file_refs),
        occurred_on=draft.occurred_on,
        ocr_status="pending",
    )
    logger.info(f"Receipt registered: project={draft.project_id} kind={draft.kind} amount={draft.amount}")
    return ReceiptCommit(receipt_id=r.id)
