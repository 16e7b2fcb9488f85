"""Estimate commit: totals from the site's tax settings, then header + items."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from genba.chat.drafts import EstimateDraft
from genba.chat.finance import compute_totals, line_total
from genba.chat.handlers.billing import load_tax_settings
from genba.storage.repository import EstimateRepo


@dataclass(frozen=True, slots=True)
class EstimateCommit:
    estimate_id: str
    subtotal: int
    tax: int
    total: int
    lines: int


async def commit_estimate_draft(session: AsyncSession, draft: EstimateDraft) -> EstimateCommit:
    tax = await load_tax_settings(session, draft.project_id)
    totals = compute_totals(draft.items, tax.tax_rule, tax.tax_rate, tax.rounding)

    repo = EstimateRepo(session)
    est = await repo.create(
        project_id=draft.project_id,
        title=draft.title,
        billing_mode=draft.billing_mode,
        subtotal=totals.subtotal,
        tax=totals.tax,
        total=totals.total,
    )
    for pos, it in enumerate(draft.items):
        await repo.add_item(
            est.id,
            pos,
            description=it.description,
            qty=it.qty,
            unit=it.unit,
            unit_price=it.unit_price,
            line_total=line_total(it.qty, it.unit_price),
        )

    logger.info(
        f"Estimate committed: project={draft.project_id} lines={len(draft.items)} "
        f"rule={tax.tax_rule} total={totals.total}"
    )
    return EstimateCommit(
        estimate_id=est.id,
        subtotal=totals.subtotal,
        tax=totals.tax,
        total=totals.total,
        lines=len(draft.items),
    )
