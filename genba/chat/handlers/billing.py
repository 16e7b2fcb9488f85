"""Per-site billing settings: free-text patch parsing and partial updates."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from genba.chat.drafts import BillingPatch
from genba.chat.finance import Rounding, TaxRule
from genba.storage.models import SiteBillingSettings
from genba.storage.repository import BillingSettingsRepo

DEFAULT_BILLING_SETTINGS: dict[str, Any] = {
    "billing_mode": "daily",
    "tax_rule": "inclusive",
    "tax_rate": 10,
    "closing_day": "end",
    "payment_term_days": 30,
    "rounding": "round",
}

# Later rules override earlier ones within the same field.
_TAX_EXCLUSIVE = re.compile(r"税抜(に|へ|で|でお願い|でお願いね|にして)")
_TAX_INCLUSIVE = re.compile(r"税込(に|へ|で|でお願い|でお願いね|にして)")
_MODE_DAILY = re.compile(r"(常用|日当)")
_MODE_PROGRESS = re.compile(r"出来高")
_MODE_MILESTONE = re.compile(r"マイルストーン")
_CLOSING_END = re.compile(r"締日(を)?(月末|末|end)")
_CLOSING_DAY = re.compile(r"締日(を)?\s*([0-9]{1,2})\s*日?")
_PAYMENT_TERM = re.compile(r"(支払|支払い|サイト)[^0-9]{0,3}([0-9]{1,3})\s*日")
_TAX_RATE = re.compile(r"税率(を|は)?\s*([0-9]{1,2})\s*%?")
_ROUND_CUT = re.compile(r"(切り捨て|切捨て)")
_ROUND_HALF = re.compile(r"四捨五入")
_ROUND_CEIL = re.compile(r"(切り上げ|切上げ)")


def parse_billing_command(text: str) -> BillingPatch:
    """Turn a chat command like 「税抜にして」 into a partial settings patch.

    Only fields the text mentions are set, so the patch never overwrites
    anything else.
    """
    t = (text or "").strip()
    fields: dict[str, Any] = {}

    if _TAX_EXCLUSIVE.search(t):
        fields["tax_rule"] = "exclusive"
    if _TAX_INCLUSIVE.search(t):
        fields["tax_rule"] = "inclusive"

    if _MODE_DAILY.search(t):
        fields["billing_mode"] = "daily"
    if _MODE_PROGRESS.search(t):
        fields["billing_mode"] = "progress"
    if _MODE_MILESTONE.search(t):
        fields["billing_mode"] = "milestone"

    if _CLOSING_END.search(t):
        fields["closing_day"] = "end"
    if m := _CLOSING_DAY.search(t):
        fields["closing_day"] = str(int(m.group(2)))

    if m := _PAYMENT_TERM.search(t):
        fields["payment_term_days"] = int(m.group(2))

    if m := _TAX_RATE.search(t):
        fields["tax_rate"] = int(m.group(2))

    if _ROUND_CUT.search(t):
        fields["rounding"] = "cut"
    if _ROUND_HALF.search(t):
        fields["rounding"] = "round"
    if _ROUND_CEIL.search(t):
        fields["rounding"] = "ceil"

    return BillingPatch(**fields)


async def update_site_billing_settings(
    session: AsyncSession,
    project_id: str,
    patch: BillingPatch,
) -> SiteBillingSettings:
    """Apply *patch* to the site's settings row, creating it with defaults if absent."""
    repo = BillingSettingsRepo(session)
    changes = patch.changes()
    existing = await repo.get(project_id)
    if existing is not None:
        row = await repo.update(existing, changes)
        logger.info(f"Billing settings patched: site={project_id} fields={sorted(changes)}")
        return row

    row = await repo.insert(project_id, {**DEFAULT_BILLING_SETTINGS, **changes})
    logger.info(f"Billing settings created: site={project_id} fields={sorted(changes)}")
    return row


@dataclass(frozen=True, slots=True)
class TaxSettings:
    tax_rule: TaxRule
    tax_rate: float
    rounding: Rounding
    payment_term_days: int
    closing_day: str


async def load_tax_settings(session: AsyncSession, project_id: str) -> TaxSettings:
    """Read the site's tax rule/rate/rounding, falling back to the documented defaults."""
    row = await BillingSettingsRepo(session).get(project_id)
    d = DEFAULT_BILLING_SETTINGS
    if row is None:
        return TaxSettings(
            tax_rule=d["tax_rule"],
            tax_rate=float(d["tax_rate"]),
            rounding=d["rounding"],
            payment_term_days=d["payment_term_days"],
            closing_day=d["closing_day"],
        )
    return TaxSettings(
        tax_rule=row.tax_rule or d["tax_rule"],
        tax_rate=float(row.tax_rate) if row.tax_rate is not None else float(d["tax_rate"]),
        rounding=row.rounding or d["rounding"],
        payment_term_days=row.payment_term_days if row.payment_term_days is not None else d["payment_term_days"],
        closing_day=row.closing_day or d["closing_day"],
    )


_MODE_LABELS = {"daily": "常用（日当）", "progress": "出来高", "milestone": "マイルストーン"}
_ROUNDING_LABELS = {"cut": "切り捨て", "ceil": "切り上げ", "round": "四捨五入"}


def describe_billing_settings(row: SiteBillingSettings) -> str:
    """One-line Japanese summary shown after a settings change."""
    mode = _MODE_LABELS.get(row.billing_mode, str(row.billing_mode))
    tax = "税込" if row.tax_rule == "inclusive" else "税抜"
    rate = _fmt_number(row.tax_rate or 0)
    closing = "月末" if row.closing_day == "end" else f"{row.closing_day}日"
    rounding = _ROUNDING_LABELS.get(row.rounding, "四捨五入")
    return (
        f"請求設定を更新：形態={mode} / 税={tax}({rate}%) / 締日={closing}"
        f" / サイト={int(row.payment_term_days or 0)}日 / 端数={rounding}"
    )


def _fmt_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
