"""Draft payloads accepted by the commit handlers.

Drafts come from chat forms or API bodies; ``load_draft`` turns pydantic
validation failures into ``DraftValidationError`` before anything is written.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from genba.chat.finance import Rounding, TaxRule
from genba.errors import DraftValidationError

BillingMode = Literal["progress", "daily", "milestone"]
ReceiptKind = Literal["receipt", "delivery", "other"]
OcrStatus = Literal["pending", "done", "failed"]

MAN_DAY_UNITS = (0.5, 1.0)

D = TypeVar("D", bound=BaseModel)


class _Draft(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class DraftWorker(_Draft):
    worker_id: str = Field(min_length=1)
    man_day: float = 1

    @field_validator("man_day")
    @classmethod
    def _half_or_full(cls, v: float) -> float:
        if v not in MAN_DAY_UNITS:
            raise ValueError(f"man_day must be one of {MAN_DAY_UNITS}")
        return v


class ReportDraft(_Draft):
    site_id: str = Field(min_length=1)
    work_date: date
    workers: list[DraftWorker]


class LineItem(_Draft):
    description: str = ""
    qty: float = Field(default=0, ge=0)
    unit: str = ""
    unit_price: float = Field(default=0, ge=0)


class EstimateDraft(_Draft):
    project_id: str = Field(min_length=1)
    title: str = ""
    items: list[LineItem] = Field(default_factory=list)
    billing_mode: BillingMode | None = None


class InvoiceDraft(_Draft):
    project_id: str = Field(min_length=1)
    issue_date: date
    closing_date: date
    due_date: date
    bill_to: str | None = None
    items: list[LineItem] = Field(default_factory=list)
    rounding: Rounding | None = None


class ReceiptDraft(_Draft):
    project_id: str = Field(min_length=1)
    kind: ReceiptKind = "other"
    amount: int = Field(ge=0)
    account: str = ""
    vendor: str | None = None
    occurred_on: date
    file_refs: list[Any] = Field(default_factory=list)


class BillingPatch(_Draft):
    """Partial billing settings; only explicitly set fields are applied."""

    billing_mode: BillingMode | None = None
    tax_rule: TaxRule | None = None
    tax_rate: float | None = Field(default=None, ge=0)
    closing_day: str | None = None
    payment_term_days: int | None = Field(default=None, ge=0)
    rounding: Rounding | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


def load_draft(model: type[D], data: Any) -> D:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise DraftValidationError(f"invalid {model.__name__}: {exc.error_count()} error(s): {exc}") from exc
