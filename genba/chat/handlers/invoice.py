"""Invoices: draft a labor line from progress, then commit header + items."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from genba.chat.drafts import InvoiceDraft, LineItem
from genba.chat.finance import compute_totals, line_total
from genba.chat.handlers.billing import load_tax_settings
from genba.storage.repository import InvoiceRepo, LaborRepo


def month_bounds(d: date) -> tuple[date, date]:
    last = calendar.monthrange(d.year, d.month)[1]
    return date(d.year, d.month, 1), date(d.year, d.month, last)


@dataclass(frozen=True, slots=True)
class InvoiceDates:
    issue_date: date
    closing_date: date
    due_date: date


def invoice_dates(today: date, closing: str = "end", payment_term_days: int = 30) -> InvoiceDates:
    """Issue today, close at month end or on the given day, due *payment_term_days* later."""
    start, end = month_bounds(today)
    if closing == "end":
        closing_date = end
    else:
        day = min(max(int(closing), 1), end.day)
        closing_date = date(start.year, start.month, day)
    return InvoiceDates(
        issue_date=today,
        closing_date=closing_date,
        due_date=closing_date + timedelta(days=payment_term_days),
    )


@dataclass(frozen=True, slots=True)
class InvoiceProgressDraft:
    items: list[LineItem]
    subtotal: int
    period_start: date
    period_end: date


async def draft_invoice_from_progress(
    session: AsyncSession,
    project_id: str,
    today: date,
    period_start: date | None = None,
    period_end: date | None = None,
) -> InvoiceProgressDraft:
    """Sum labor cost (unit × rate snapshot) over the period into one line item.

    The period defaults to the calendar month containing *today*.
    """
    default_start, default_end = month_bounds(today)
    ps = period_start or default_start
    pe = period_end or default_end

    entries = await LaborRepo(session).list_in_period(project_id, ps, pe)
    amount = sum(line_total(e.unit, e.daily_rate_at_entry) for e in entries)
    item = LineItem(description=f"人件費（{ps:%Y-%m}）", qty=1, unit="式", unit_price=amount)
    logger.debug(f"Invoice draft: project={project_id} period={ps}..{pe} entries={len(entries)} amount={amount}")
    return InvoiceProgressDraft(items=[item], subtotal=amount, period_start=ps, period_end=pe)


@dataclass(frozen=True, slots=True)
class InvoiceCommit:
    invoice_id: str
    subtotal: int
    tax: int
    total: int
    due_date: date


async def commit_invoice_draft(session: AsyncSession, draft: InvoiceDraft) -> InvoiceCommit:
    """Insert the invoice header and its items.

    ``draft.rounding`` overrides the site's configured rounding for the tax
    amount; without it the configured policy applies.  Line totals are
    recomputed from qty × unit_price.
    """
    tax = await load_tax_settings(session, draft.project_id)
    rounding = draft.rounding or tax.rounding
    totals = compute_totals(draft.items, tax.tax_rule, tax.tax_rate, rounding)

    repo = InvoiceRepo(session)
    inv = await repo.create(
        project_id=draft.project_id,
        issue_date=draft.issue_date,
        closing_date=draft.closing_date,
        due_date=draft.due_date,
        bill_to=draft.bill_to or None,
        subtotal=totals.subtotal,
        tax=totals.tax,
        total=totals.total,
    )
    for pos, it in enumerate(draft.items):
        await repo.add_item(
            inv.id,
            pos,
            description=it.description,
            qty=it.qty,
            unit=it.unit,
            unit_price=it.unit_price,
            line_total=line_total(it.qty, it.unit_price),
        )

    logger.info(
        f"Invoice committed: project={draft.project_id} rule={tax.tax_rule} "
        f"rounding={rounding} total={totals.total} due={draft.due_date}"
    )
    return InvoiceCommit(
        invoice_id=inv.id,
        subtotal=totals.subtotal,
        tax=totals.tax,
        total=totals.total,
        due_date=draft.due_date,
    )
