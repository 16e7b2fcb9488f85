"""Form blocks the chat replies with, and parsing of their submitted values.

Form fields travel as strings; ``parse_workers`` / ``parse_line_items`` also
accept the already-structured lists API clients send.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from genba.chat.blocks import ActionItem, FormBlock, FormField, FormFieldOption
from genba.chat.handlers.billing import TaxSettings
from genba.errors import DraftValidationError

RECEIPT_CATEGORIES = ("材料", "消耗品", "交通費", "高速", "駐車", "雑費")

_SPLIT = re.compile(r"[,、\n]+")
_WORKER = re.compile(r"^\s*([^:：\s]+)\s*(?:[:：]\s*([0-9.]+))?\s*$")


def _opts(*pairs: tuple[str, str]) -> list[FormFieldOption]:
    return [FormFieldOption(label=label, value=value) for label, value in pairs]


def _submit(label: str, action: str, project_id: str) -> ActionItem:
    return ActionItem(kind="primary", label=label, action=action, params={"projectId": project_id})


def report_form(project_id: str, today: date) -> FormBlock:
    return FormBlock(
        title="日報",
        description="作業員と人工（1 または 0.5）を入力してください。",
        fields=[
            FormField(id="work_date", label="作業日", type="text", value=today.isoformat(), required=True),
            FormField(id="workers", label="作業員", type="text", placeholder="w1:1, w2:0.5", required=True),
        ],
        submit=_submit("日報を登録", "report.commit", project_id),
    )


def receipt_form(project_id: str, today: date, kind: str = "other") -> FormBlock:
    return FormBlock(
        title="レシート・納品書",
        fields=[
            FormField(
                id="kind",
                label="種別",
                type="select",
                value=kind,
                options=_opts(("レシート", "receipt"), ("納品書", "delivery"), ("その他", "other")),
            ),
            FormField(id="amount", label="金額", type="number", required=True),
            FormField(
                id="account",
                label="科目",
                type="select",
                value=RECEIPT_CATEGORIES[0],
                options=_opts(*((c, c) for c in RECEIPT_CATEGORIES)),
            ),
            FormField(id="vendor", label="取引先", type="text"),
            FormField(id="occurred_on", label="日付", type="text", value=today.isoformat()),
        ],
        submit=_submit("登録", "receipt.commit", project_id),
    )


def estimate_form(project_id: str) -> FormBlock:
    return FormBlock(
        title="見積",
        fields=[
            FormField(id="title", label="件名", type="text", required=True),
            FormField(
                id="items",
                label="明細",
                type="text",
                placeholder="品名,数量,単位,単価（1行1明細）",
                required=True,
            ),
            FormField(
                id="billing_mode",
                label="請求形態",
                type="select",
                options=_opts(("常用（日当）", "daily"), ("出来高", "progress"), ("マイルストーン", "milestone")),
            ),
        ],
        submit=_submit("見積を保存", "estimate.commit", project_id),
    )


def invoice_form(project_id: str, tax: TaxSettings) -> FormBlock:
    return FormBlock(
        title="請求書",
        description="今月の日報から人件費を集計して発行します。",
        fields=[
            FormField(id="bill_to", label="請求先", type="text"),
            FormField(
                id="closing",
                label="締日",
                type="select",
                value=tax.closing_day,
                options=_opts(("月末", "end"), ("15日", "15")),
            ),
            FormField(id="due_in_days", label="支払サイト（日）", type="number", value=str(tax.payment_term_days)),
            FormField(
                id="rounding",
                label="端数処理",
                type="select",
                value=tax.rounding,
                options=_opts(("四捨五入", "round"), ("切り捨て", "cut"), ("切り上げ", "ceil")),
            ),
        ],
        submit=_submit("請求書を発行", "invoice.commit", project_id),
    )


# ── submitted values ────────────────────────────────────────────────────────


def parse_workers(value: Any) -> list[dict[str, Any]]:
    """``"w1:1, w2:0.5"`` → ``[{"worker_id": "w1", "man_day": 1.0}, ...]``."""
    if isinstance(value, list):
        return value
    if not isinstance(value, str) or not value.strip():
        raise DraftValidationError("no workers given")
    workers = []
    for chunk in _SPLIT.split(value):
        if not chunk.strip():
            continue
        m = _WORKER.match(chunk)
        if m is None:
            raise DraftValidationError(f"unreadable worker entry: {chunk!r}")
        workers.append({"worker_id": m.group(1), "man_day": float(m.group(2) or 1)})
    return workers


def parse_line_items(value: Any) -> list[dict[str, Any]]:
    """One item per line: ``description,qty,unit,unit_price``."""
    if isinstance(value, list):
        return value
    if not isinstance(value, str):
        return []
    items = []
    for line in value.splitlines():
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split(",")]
        if len(parts) != 4:
            raise DraftValidationError(f"line item needs 4 columns: {line!r}")
        description, qty, unit, unit_price = parts
        items.append({"description": description, "qty": qty, "unit": unit, "unit_price": unit_price})
    return items
