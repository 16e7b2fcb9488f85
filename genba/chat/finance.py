"""Subtotal / tax / total derivation for estimates and invoices.

All amounts are integer yen.  Line totals are rounded half-up per line
before aggregation; the rounding policy applies to the tax amount only.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Literal, Protocol

TaxRule = Literal["inclusive", "exclusive"]
Rounding = Literal["cut", "round", "ceil"]

_ROUNDING_MODES: dict[str, str] = {
    "cut": ROUND_DOWN,  # truncate toward zero
    "round": ROUND_HALF_UP,
    "ceil": ROUND_CEILING,
}


class PricedLine(Protocol):
    qty: float
    unit_price: float


@dataclass(frozen=True, slots=True)
class Totals:
    subtotal: int
    tax: int
    total: int


def _dec(value: float | int | Decimal) -> Decimal:
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    return value if isinstance(value, Decimal) else Decimal(str(value))


def apply_rounding(value: float | Decimal, policy: Rounding) -> int:
    try:
        mode = _ROUNDING_MODES[policy]
    except KeyError:
        raise ValueError(f"unknown rounding policy: {policy!r}") from None
    return int(_dec(value).quantize(Decimal("1"), rounding=mode))


def line_total(qty: float, unit_price: float) -> int:
    return int((_dec(qty or 0) * _dec(unit_price or 0)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_totals(
    lines: Iterable[PricedLine] | int,
    tax_rule: TaxRule,
    tax_rate: float,
    rounding: Rounding,
) -> Totals:
    """Derive subtotal/tax/total from priced lines or one aggregate amount.

    exclusive: the sum is the net subtotal, tax is added on top.
    inclusive: the sum already contains tax, which is carved out of it.
    """
    if isinstance(lines, int):
        amount = lines
    else:
        amount = sum(line_total(ln.qty, ln.unit_price) for ln in lines)

    rate = _dec(tax_rate)
    if tax_rule == "exclusive":
        subtotal = amount
        tax = apply_rounding(_dec(subtotal) * rate / Decimal(100), rounding)
        return Totals(subtotal=subtotal, tax=tax, total=subtotal + tax)
    if tax_rule == "inclusive":
        total = amount
        tax = apply_rounding(_dec(total) * rate / (Decimal(100) + rate), rounding)
        return Totals(subtotal=total - tax, tax=tax, total=total)
    raise ValueError(f"unknown tax rule: {tax_rule!r}")
