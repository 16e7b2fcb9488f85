"""Daily report commit: report header upsert plus per-worker labor entries."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from genba.chat.drafts import ReportDraft
from genba.chat.rates import RateResolver
from genba.storage.repository import LaborRepo, ReportRepo


@dataclass(frozen=True, slots=True)
class ReportCommit:
    report_id: str
    total_man_day: float
    unrated_workers: list[str] = field(default_factory=list)


async def commit_report_draft(session: AsyncSession, draft: ReportDraft) -> ReportCommit:
    """Upsert the report for (site, date) and one labor entry per worker.

    Workers are written one at a time in input order.  Each entry stores the
    rate resolved now; later rate changes never touch it.  ``total_man_day``
    counts this submission only.
    """
    report = await ReportRepo(session).upsert(draft.site_id, draft.work_date)
    labor = LaborRepo(session)
    resolver = RateResolver(session)

    total = 0.0
    unrated: list[str] = []
    for w in draft.workers:
        total += w.man_day
        rate = await resolver.resolve(w.worker_id, draft.site_id, draft.work_date)
        if rate.scope is None:
            unrated.append(w.worker_id)
        await labor.upsert(
            report_id=report.id,
            site_id=draft.site_id,
            worker_id=w.worker_id,
            entry_date=draft.work_date,
            unit=w.man_day,
            daily_rate_at_entry=rate.daily_rate,
        )

    logger.info(
        f"Report committed: site={draft.site_id} date={draft.work_date} "
        f"workers={len(draft.workers)} man_day={total}"
    )
    return ReportCommit(report_id=report.id, total_man_day=total, unrated_workers=unrated)
