from datetime import date

import pytest
from pydantic import ValidationError

from genba.chat.blocks import FormBlock, TextBlock, dump_blocks, parse_blocks
from genba.chat.forms import invoice_form, parse_line_items, parse_workers, report_form
from genba.chat.handlers.billing import TaxSettings
from genba.errors import DraftValidationError


def test_parse_workers_from_form_text() -> None:
    assert parse_workers("w1:1, w2:0.5、w3") == [
        {"worker_id": "w1", "man_day": 1.0},
        {"worker_id": "w2", "man_day": 0.5},
        {"worker_id": "w3", "man_day": 1.0},
    ]
    assert parse_workers([{"worker_id": "w1", "man_day": 1}]) == [{"worker_id": "w1", "man_day": 1}]
    with pytest.raises(DraftValidationError):
        parse_workers("")


def test_parse_line_items_one_per_line() -> None:
    items = parse_line_items("ALCパネル,24,枚,3200\n\nアンカー, 2, 箱, 980")

    assert items[1] == {"description": "アンカー", "qty": "2", "unit": "箱", "unit_price": "980"}
    with pytest.raises(DraftValidationError):
        parse_line_items("only,three,columns")


def test_invoice_form_is_prefilled_from_site_settings() -> None:
    tax = TaxSettings(tax_rule="exclusive", tax_rate=10, rounding="ceil", payment_term_days=45, closing_day="15")

    form = invoice_form("S", tax)

    values = {f.id: f.value for f in form.fields}
    assert values["rounding"] == "ceil"
    assert values["closing"] == "15"
    assert values["due_in_days"] == "45"


def test_blocks_round_trip_through_the_tagged_union() -> None:
    raw = dump_blocks([TextBlock(md="hi"), report_form("S", date(2025, 1, 20))])

    blocks = parse_blocks(raw)

    assert isinstance(blocks[0], TextBlock)
    assert isinstance(blocks[1], FormBlock)
    with pytest.raises(ValidationError):
        parse_blocks([{"type": "chart"}])
