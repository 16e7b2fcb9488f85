"""Thin data-access helpers on top of SQLAlchemy async sessions.

Each repository is instantiated with a scoped AsyncSession and provides
typed CRUD for one domain aggregate.  Business logic stays in the handlers.
Nothing here commits: the caller owns the transaction.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from genba.errors import PersistenceError
from genba.storage.models import (
    Estimate,
    EstimateItem,
    IntentLog,
    Invoice,
    InvoiceItem,
    LaborEntry,
    Receipt,
    Report,
    SiteBillingSettings,
    WorkerRate,
)

_UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def _upsert_insert(s: AsyncSession):
    """The dialect ``insert`` that supports ``ON CONFLICT`` for this session's database."""
    dialect = s.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise PersistenceError(f"upsert not supported on dialect {dialect!r}")
    return insert


# ── reports & labor ───────────────────────────────────────────────────────


class ReportRepo:
    def __init__(self, s: AsyncSession) -> None:
        self._s = s

    async def get_by_natural_key(self, project_id: str, work_date: date) -> Report | None:
        return await self._s.scalar(
            select(Report).where(and_(Report.project_id == project_id, Report.work_date == work_date))
        )

    async def upsert(self, project_id: str, work_date: date) -> Report:
        """Return the report for (project_id, work_date), creating it on first reference.

        A single ``INSERT .. ON CONFLICT`` statement, so a report committed
        concurrently by another device is reused instead of failing the commit.
        """
        stmt = _upsert_insert(self._s)(Report).values(project_id=project_id, work_date=work_date)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Report.project_id, Report.work_date],
            set_={"work_date": stmt.excluded.work_date},
        ).returning(Report)
        return await self._s.scalar(stmt, execution_options={"populate_existing": True})


class LaborRepo:
    def __init__(self, s: AsyncSession) -> None:
        self._s = s

    async def get_by_natural_key(self, site_id: str, worker_id: str, entry_date: date) -> LaborEntry | None:
        return await self._s.scalar(
            select(LaborEntry).where(
                and_(
                    LaborEntry.site_id == site_id,
                    LaborEntry.worker_id == worker_id,
                    LaborEntry.entry_date == entry_date,
                )
            )
        )

    async def upsert(
        self,
        report_id: str,
        site_id: str,
        worker_id: str,
        entry_date: date,
        unit: float,
        daily_rate_at_entry: int,
    ) -> LaborEntry:
        """Write one labor entry keyed on (site_id, worker_id, date); a resubmission overwrites it."""
        stmt = _upsert_insert(self._s)(LaborEntry).values(
            report_id=report_id,
            site_id=site_id,
            worker_id=worker_id,
            entry_date=entry_date,
            unit=unit,
            daily_rate_at_entry=daily_rate_at_entry,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LaborEntry.site_id, LaborEntry.worker_id, LaborEntry.entry_date],
            set_={
                "report_id": stmt.excluded.report_id,
                "unit": stmt.excluded.unit,
                "daily_rate_at_entry": stmt.excluded.daily_rate_at_entry,
                "updated_at": datetime.now(tz=UTC),
            },
        ).returning(LaborEntry)
        return await self._s.scalar(stmt, execution_options={"populate_existing": True})

    async def list_in_period(self, site_id: str, start: date, end: date) -> list[LaborEntry]:
        stmt = (
            select(LaborEntry)
            .where(
                and_(
                    LaborEntry.site_id == site_id,
                    LaborEntry.entry_date >= start,
                    LaborEntry.entry_date <= end,
                )
            )
            .order_by(LaborEntry.entry_date)
        )
        return list(await self._s.scalars(stmt))


class RateRepo:
    def __init__(self, s: AsyncSession) -> None:
        self._s = s

    async def latest_as_of(
        self,
        worker_id: str,
        scope: str,
        as_of: date,
        site_id: str | None = None,
    ) -> WorkerRate | None:
        """Most recent rate row with ``effective_from <= as_of`` for one scope."""
        conds = [
            WorkerRate.worker_id == worker_id,
            WorkerRate.scope == scope,
            WorkerRate.effective_from <= as_of,
        ]
        if site_id is not None:
            conds.append(WorkerRate.site_id == site_id)
        stmt = (
            select(WorkerRate)
            .where(and_(*conds))
            .order_by(WorkerRate.effective_from.desc())
            .limit(1)
        )
        return await self._s.scalar(stmt)

    async def add(
        self,
        worker_id: str,
        daily_rate: int,
        effective_from: date,
        site_id: str | None = None,
    ) -> WorkerRate:
        scope = "site" if site_id else "company"
        rate = WorkerRate(
            worker_id=worker_id,
            scope=scope,
            site_id=site_id,
            daily_rate=daily_rate,
            effective_from=effective_from,
        )
        self._s.add(rate)
        await self._s.flush()
        return rate


# ── billing settings ──────────────────────────────────────────────────────


class BillingSettingsRepo:
    def __init__(self, s: AsyncSession) -> None:
        self._s = s

    async def get(self, site_id: str) -> SiteBillingSettings | None:
        return await self._s.get(SiteBillingSettings, site_id)

    async def insert(self, site_id: str, values: dict[str, Any]) -> SiteBillingSettings:
        row = SiteBillingSettings(site_id=site_id, **values)
        self._s.add(row)
        await self._s.flush()
        return row

    async def update(self, row: SiteBillingSettings, patch: dict[str, Any]) -> SiteBillingSettings:
        """Apply only the keys present in *patch*."""
        for key, value in patch.items():
            setattr(row, key, value)
        await self._s.flush()
        return row


# ── estimates & invoices ──────────────────────────────────────────────────


class EstimateRepo:
    def __init__(self, s: AsyncSession) -> None:
        self._s = s

    async def create(
        self,
        project_id: str,
        title: str,
        billing_mode: str | None,
        subtotal: int,
        tax: int,
        total: int,
    ) -> Estimate:
        est = Estimate(
            project_id=project_id,
            title=title,
            billing_mode=billing_mode,
            subtotal=subtotal,
            tax=tax,
            total=total,
        )
        self._s.add(est)
        await self._s.flush()
        return est

    async def add_item(self, estimate_id: str, position: int, **fields: Any) -> EstimateItem:
        item = EstimateItem(estimate_id=estimate_id, position=position, **fields)
        self._s.add(item)
        await self._s.flush()
        return item

    async def get(self, estimate_id: str) -> Estimate | None:
        return await self._s.get(Estimate, estimate_id)

    async def list_items(self, estimate_id: str) -> list[EstimateItem]:
        stmt = select(EstimateItem).where(EstimateItem.estimate_id == estimate_id).order_by(EstimateItem.position)
        return list(await self._s.scalars(stmt))


class InvoiceRepo:
    def __init__(self, s: AsyncSession) -> None:
        self._s = s

    async def create(
        self,
        project_id: str,
        issue_date: date,
        closing_date: date,
        due_date: date,
        bill_to: str | None,
        subtotal: int,
        tax: int,
        total: int,
    ) -> Invoice:
        inv = Invoice(
            project_id=project_id,
            issue_date=issue_date,
            closing_date=closing_date,
            due_date=due_date,
            bill_to=bill_to,
            subtotal=subtotal,
            tax=tax,
            total=total,
        )
        self._s.add(inv)
        await self._s.flush()
        return inv

    async def add_item(self, invoice_id: str, position: int, **fields: Any) -> InvoiceItem:
        item = InvoiceItem(invoice_id=invoice_id, position=position, **fields)
        self._s.add(item)
        await self._s.flush()
        return item

    async def get(self, invoice_id: str) -> Invoice | None:
        return await self._s.get(Invoice, invoice_id)

    async def list_items(self, invoice_id: str) -> list[InvoiceItem]:
        stmt = select(InvoiceItem).where(InvoiceItem.invoice_id == invoice_id).order_by(InvoiceItem.position)
        return list(await self._s.scalars(stmt))


# ── receipts ──────────────────────────────────────────────────────────────


class ReceiptRepo:
    def __init__(self, s: AsyncSession) -> None:
        self._s = s

    async def create(self, **fields: Any) -> Receipt:
        r = Receipt(**fields)
        self._s.add(r)
        await self._s.flush()
        return r

    async def get(self, receipt_id: str) -> Receipt | None:
        return await self._s.get(Receipt, receipt_id)

    async def set_ocr_status(self, receipt_id: str, status: str) -> Receipt | None:
        r = await self._s.get(Receipt, receipt_id)
        if r is None:
            return None
        r.ocr_status = status
        await self._s.flush()
        return r


# ── telemetry ─────────────────────────────────────────────────────────────


class IntentLogRepo:
    def __init__(self, s: AsyncSession) -> None:
        self._s = s

    async def append(self, log: IntentLog) -> IntentLog:
        self._s.add(log)
        await self._s.flush()
        return log

    async def list_recent(self, limit: int = 50) -> list[IntentLog]:
        stmt = select(IntentLog).order_by(IntentLog.created_at.desc()).limit(limit)
        return list(await self._s.scalars(stmt))
