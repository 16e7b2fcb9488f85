"""Receipt OCR trigger (fire-and-forget) and status callback."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from genba.errors import DraftValidationError, NotFoundError
from genba.providers.functions import FunctionsClient
from genba.settings import GenbaSettings
from genba.storage.models import Receipt
from genba.storage.repository import ReceiptRepo

OCR_FUNCTION = "ocr-receipt"
_FINAL_STATUSES = frozenset({"done", "failed"})


class OcrTrigger:
    """Start OCR for a freshly registered receipt.

    ``trigger`` never raises; ``schedule`` runs it as a background task so the
    receipt commit returns without waiting for the remote call.
    """

    def __init__(self, functions: FunctionsClient | None) -> None:
        self._functions = functions
        self._tasks: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(cls, settings: GenbaSettings) -> OcrTrigger:
        if settings.mock_enabled:
            return cls(None)
        return cls(FunctionsClient(settings.functions_url, settings.functions_key, settings.functions_timeout))

    async def trigger(self, receipt_id: str, files: list[Any]) -> None:
        if self._functions is None:
            logger.debug(f"OCR skipped (mock mode): receipt={receipt_id}")
            return
        try:
            await self._functions.invoke(OCR_FUNCTION, {"receiptId": receipt_id, "files": files})
            logger.debug(f"OCR requested: receipt={receipt_id} files={len(files)}")
        except Exception as exc:
            logger.warning(f"OCR trigger failed for receipt={receipt_id}: {exc}")

    def schedule(self, receipt_id: str, files: list[Any]) -> asyncio.Task[None]:
        task = asyncio.create_task(self.trigger(receipt_id, files))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for OCR requests still in flight."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


async def mark_ocr_status(session: AsyncSession, receipt_id: str, status: str) -> Receipt:
    """Record the OCR outcome reported by the remote worker (pending → done | failed)."""
    if status not in _FINAL_STATUSES:
        raise DraftValidationError(f"invalid ocr status: {status!r}")
    r = await ReceiptRepo(session).set_ocr_status(receipt_id, status)
    if r is None:
        raise NotFoundError(f"receipt not found: {receipt_id}")
    logger.info(f"Receipt OCR {status}: receipt={receipt_id}")
    return r
