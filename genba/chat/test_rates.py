from datetime import date

from genba.chat.rates import RateResolver
from genba.storage.repository import RateRepo


async def test_site_rate_beats_newer_company_rate(session_factory) -> None:
    async with session_factory() as session:
        rates = RateRepo(session)
        await rates.add("w1", 20000, date(2024, 1, 1), site_id="S")
        await rates.add("w1", 15000, date(2024, 6, 1))

        resolved = await RateResolver(session).resolve("w1", "S", date(2024, 7, 1))

    assert resolved.daily_rate == 20000
    assert resolved.scope == "site"


async def test_company_rate_used_when_site_has_none(session_factory) -> None:
    async with session_factory() as session:
        rates = RateRepo(session)
        await rates.add("w1", 12000, date(2023, 4, 1))
        await rates.add("w1", 15000, date(2024, 4, 1))
        await rates.add("w1", 30000, date(2024, 1, 1), site_id="OTHER")

        resolved = await RateResolver(session).resolve("w1", "S", date(2024, 7, 1))

    assert resolved.daily_rate == 15000
    assert resolved.scope == "company"


async def test_rates_effective_after_the_work_date_are_ignored(session_factory) -> None:
    async with session_factory() as session:
        rates = RateRepo(session)
        await rates.add("w1", 20000, date(2024, 8, 1), site_id="S")
        await rates.add("w1", 15000, date(2024, 8, 1))

        resolved = await RateResolver(session).resolve("w1", "S", date(2024, 7, 1))

    assert resolved.daily_rate == 0
    assert resolved.scope is None


async def test_zero_site_rate_still_wins(session_factory) -> None:
    async with session_factory() as session:
        rates = RateRepo(session)
        await rates.add("w1", 0, date(2024, 1, 1), site_id="S")
        await rates.add("w1", 15000, date(2024, 1, 1))

        resolved = await RateResolver(session).resolve("w1", "S", date(2024, 7, 1))

    assert resolved.daily_rate == 0
    assert resolved.scope == "site"
