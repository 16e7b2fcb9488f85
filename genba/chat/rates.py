"""Daily-rate resolution: site-scoped rate first, company rate as fallback."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from genba.storage.repository import RateRepo


@dataclass(frozen=True, slots=True)
class RateResolution:
    daily_rate: int
    scope: Literal["site", "company"] | None  # None: no rate on record


class RateResolver:
    """As-of rate lookup for one worker on one work date.

    A site rate always wins over a company rate, even a newer one.  Rows
    effective after the work date are never considered.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._repo = RateRepo(session)

    async def resolve(self, worker_id: str, site_id: str, work_date: date) -> RateResolution:
        site_rate = await self._repo.latest_as_of(worker_id, "site", work_date, site_id=site_id)
        if site_rate is not None:
            return RateResolution(daily_rate=site_rate.daily_rate, scope="site")

        company_rate = await self._repo.latest_as_of(worker_id, "company", work_date)
        if company_rate is not None:
            return RateResolution(daily_rate=company_rate.daily_rate, scope="company")

        logger.warning(f"No rate on record for worker={worker_id} site={site_id} as of {work_date}")
        return RateResolution(daily_rate=0, scope=None)
