"""Best-effort intent / business-outcome logging.

``TelemetrySink`` writes in its own session so a failed or rolled-back
business transaction still gets its failure row, and a broken telemetry
table never reaches the caller: every method returns a ``SinkResult``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from genba.storage.models import IntentLog
from genba.storage.repository import IntentLogRepo

FailureReason = Literal["NETWORK", "PERMISSION", "VALIDATION", "CANCELLED", "OCR_FAIL", "UNKNOWN"]


@dataclass(frozen=True, slots=True)
class SinkResult:
    ok: bool
    error: str | None = None


class TelemetrySink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def log_intent(
        self,
        intent: str,
        status: Literal["success", "failure"],
        failure_reason: FailureReason | None = None,
        message: str | None = None,
        project_id: str | None = None,
        duration_ms: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SinkResult:
        try:
            async with self._sessions() as session:
                await IntentLogRepo(session).append(
                    IntentLog(
                        intent=intent,
                        status=status,
                        failure_reason=failure_reason,
                        message=message,
                        project_id=project_id,
                        duration_ms=duration_ms,
                        meta=metadata or {},
                    )
                )
                await session.commit()
        except Exception as exc:
            logger.warning(f"Telemetry dropped ({intent}/{status}): {exc}")
            return SinkResult(ok=False, error=str(exc))
        return SinkResult(ok=True)

    async def log_receipt_registered(
        self,
        project_id: str,
        amount: int,
        kind: str,
        count_files: int,
        duration_ms: int | None = None,
    ) -> SinkResult:
        return await self.log_intent(
            "receipt_registered",
            "success",
            project_id=project_id,
            duration_ms=duration_ms,
            metadata={"amount": amount, "kind": kind, "source": "chat", "count_files": count_files},
        )

    async def log_estimate_committed(self, project_id: str, total: int, lines: int) -> SinkResult:
        return await self.log_intent(
            "estimate_committed", "success", project_id=project_id, metadata={"total": total, "lines": lines},
        )

    async def log_invoice_issued(self, project_id: str, total: int, due_date: date) -> SinkResult:
        return await self.log_intent(
            "invoice_issued",
            "success",
            project_id=project_id,
            metadata={"total": total, "due_date": due_date.isoformat()},
        )
