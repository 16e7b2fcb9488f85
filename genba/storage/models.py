"""SQLAlchemy ORM models – all tables for genba."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


# ---------------------------------------------------------------------------
# base
# ---------------------------------------------------------------------------


class Base(AsyncAttrs, DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# daily reports & labor
# ---------------------------------------------------------------------------


class Report(Base):
    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(String(64), index=True)
    work_date: Mapped[date] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    labor_entries: Mapped[list[LaborEntry]] = relationship(back_populates="report")

    __table_args__ = (
        Index("uq_report_project_date", "project_id", "work_date", unique=True),
    )


class LaborEntry(Base):
    __tablename__ = "labor_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    report_id: Mapped[str] = mapped_column(ForeignKey("reports.id"), index=True)
    site_id: Mapped[str] = mapped_column(String(64), index=True)
    worker_id: Mapped[str] = mapped_column(String(64), index=True)
    entry_date: Mapped[date] = mapped_column("date", Date)
    unit: Mapped[float] = mapped_column(Float)  # man-day fraction: 0.5 | 1
    daily_rate_at_entry: Mapped[int] = mapped_column(Integer, default=0)  # snapshot, never recomputed
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    report: Mapped[Report] = relationship(back_populates="labor_entries")

    __table_args__ = (
        Index("uq_labor_site_worker_date", "site_id", "worker_id", "date", unique=True),
    )


class WorkerRate(Base):
    __tablename__ = "worker_rates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    worker_id: Mapped[str] = mapped_column(String(64), index=True)
    scope: Mapped[str] = mapped_column(String(16))  # "site" | "company"
    site_id: Mapped[str | None] = mapped_column(String(64), nullable=True)  # set iff scope == "site"
    daily_rate: Mapped[int] = mapped_column(Integer)
    effective_from: Mapped[date] = mapped_column(Date)

    __table_args__ = (
        Index("ix_rate_worker_scope_from", "worker_id", "scope", "site_id", "effective_from"),
    )


# ---------------------------------------------------------------------------
# billing settings (one row per site)
# ---------------------------------------------------------------------------


class SiteBillingSettings(Base):
    __tablename__ = "site_billing_settings"

    site_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    billing_mode: Mapped[str] = mapped_column(String(16), default="daily")
    tax_rule: Mapped[str] = mapped_column(String(16), default="inclusive")
    tax_rate: Mapped[float] = mapped_column(Float, default=10)
    closing_day: Mapped[str] = mapped_column(String(8), default="end")
    payment_term_days: Mapped[int] = mapped_column(Integer, default=30)
    rounding: Mapped[str] = mapped_column(String(8), default="round")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


# ---------------------------------------------------------------------------
# estimates
# ---------------------------------------------------------------------------


class Estimate(Base):
    __tablename__ = "estimates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    billing_mode: Mapped[str | None] = mapped_column(String(16), nullable=True)
    subtotal: Mapped[int] = mapped_column(Integer, default=0)
    tax: Mapped[int] = mapped_column(Integer, default=0)
    total: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    items: Mapped[list[EstimateItem]] = relationship(
        back_populates="estimate", order_by="EstimateItem.position",
    )


class EstimateItem(Base):
    __tablename__ = "estimate_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    estimate_id: Mapped[str] = mapped_column(ForeignKey("estimates.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str] = mapped_column(Text, default="")
    qty: Mapped[float] = mapped_column(Float, default=0)
    unit: Mapped[str] = mapped_column(String(16), default="")
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[int] = mapped_column(Integer, default=0)

    estimate: Mapped[Estimate] = relationship(back_populates="items")


# ---------------------------------------------------------------------------
# invoices
# ---------------------------------------------------------------------------


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(String(64), index=True)
    issue_date: Mapped[date] = mapped_column(Date)
    closing_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[date] = mapped_column(Date)
    bill_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subtotal: Mapped[int] = mapped_column(Integer, default=0)
    tax: Mapped[int] = mapped_column(Integer, default=0)
    total: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    items: Mapped[list[InvoiceItem]] = relationship(
        back_populates="invoice", order_by="InvoiceItem.position",
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    invoice_id: Mapped[str] = mapped_column(ForeignKey("invoices.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str] = mapped_column(Text, default="")
    qty: Mapped[float] = mapped_column(Float, default=0)
    unit: Mapped[str] = mapped_column(String(16), default="")
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[int] = mapped_column(Integer, default=0)

    invoice: Mapped[Invoice] = relationship(back_populates="items")


# ---------------------------------------------------------------------------
# receipts / delivery slips
# ---------------------------------------------------------------------------


class Receipt(Base):
    __tablename__ = "receipts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(String(64), index=True)
    kind: Mapped[str] = mapped_column(String(16))  # receipt | delivery | other
    amount: Mapped[int] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(8), default="JPY")
    account: Mapped[str] = mapped_column(String(64), default="")
    vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    occurred_on: Mapped[date] = mapped_column(Date)
    file_refs: Mapped[list] = mapped_column(JSON, default=list)
    ocr_status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


# ---------------------------------------------------------------------------
# telemetry
# ---------------------------------------------------------------------------


class IntentLog(Base):
    __tablename__ = "intent_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    intent: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(16))  # success | failure
    failure_reason: Mapped[str | None] = mapped_column(String(16), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
