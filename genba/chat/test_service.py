import json
from datetime import date

import httpx
import pytest
from sqlalchemy import text as sql
from sqlalchemy.exc import OperationalError

from genba.ai.assist import AssistClient
from genba.ai.mock import MOCK_BLOCKS
from genba.ai.tools import ToolDispatcher
from genba.chat.blocks import ActionsBlock, FileBlock, FormBlock, TextBlock
from genba.chat.ocr import OcrTrigger
from genba.chat.service import (
    BILLING_HELP_MESSAGE,
    FALLBACK_MESSAGE,
    NO_SITE_MESSAGE,
    ChatService,
)
from genba.chat.telemetry import TelemetrySink
from genba.errors import DraftValidationError, NotFoundError, PersistenceError
from genba.providers.functions import FunctionsClient
from genba.storage.database import transaction
from genba.storage.repository import EstimateRepo, IntentLogRepo, RateRepo

TODAY = date(2025, 1, 20)


def _service(session_factory, assist: AssistClient | None = None, ocr: OcrTrigger | None = None) -> ChatService:
    return ChatService(
        session_factory=session_factory,
        telemetry=TelemetrySink(session_factory),
        dispatcher=ToolDispatcher(mock=True),
        assist=assist or AssistClient(mock=True),
        ocr=ocr or OcrTrigger(None),
        clock=lambda: TODAY,
    )


async def _logs(session_factory) -> list:
    async with session_factory() as session:
        return await IntentLogRepo(session).list_recent()


def _only_text(blocks) -> str:
    [block] = blocks
    assert isinstance(block, TextBlock)
    return block.md


# ── handle_message ──────────────────────────────────────────────────────────


async def test_report_request_replies_with_a_report_form(session_factory) -> None:
    reply = await _service(session_factory).handle_message("今日の日報お願い", "S")

    assert reply.intent == "create_report"
    [form] = reply.blocks
    assert isinstance(form, FormBlock)
    assert form.submit.action == "report.commit"
    assert form.submit.params == {"projectId": "S"}
    assert {f.id: f.value for f in form.fields}["work_date"] == "2025-01-20"


async def test_form_intents_map_to_their_commit_actions(session_factory) -> None:
    svc = _service(session_factory)
    expected = {
        "レシート登録": "receipt.commit",
        "見積つくって": "estimate.commit",
        "今月の請求書": "invoice.commit",
    }
    for message, action in expected.items():
        [form] = (await svc.handle_message(message, "S")).blocks
        assert form.submit.action == action, message


async def test_site_is_required_for_paperwork(session_factory) -> None:
    reply = await _service(session_factory).handle_message("今日の日報お願い", None)

    assert _only_text(reply.blocks) == NO_SITE_MESSAGE


async def test_negative_hit_asks_before_acting(session_factory) -> None:
    svc = _service(session_factory)

    reply = await svc.handle_message("明日の段取りを報告", "S")

    assert isinstance(reply.blocks[1], ActionsBlock)
    confirm, cancel = reply.blocks[1].items
    assert confirm.action == "chat.confirm"
    assert cancel.action == "chat.cancel"

    [form] = await svc.submit(confirm.action, confirm.params)
    assert isinstance(form, FormBlock)

    assert _only_text(await svc.submit(cancel.action, cancel.params)) == "キャンセルしました。"
    assert [(log.intent, log.failure_reason) for log in await _logs(session_factory)] == [
        ("create_report", "CANCELLED")
    ]


async def test_billing_command_updates_settings_and_logs(session_factory) -> None:
    svc = _service(session_factory)

    reply = await svc.handle_message("税抜にして", "S")

    assert reply.intent == "set_billing_mode"
    assert "税=税抜(10%)" in _only_text(reply.blocks)
    [log] = await _logs(session_factory)
    assert (log.intent, log.status, log.meta) == ("set_billing_mode", "success", {"tax_rule": "exclusive"})


async def test_billing_without_a_recognised_setting_explains_usage(session_factory) -> None:
    svc = _service(session_factory)

    blocks = await svc.submit("chat.confirm", {"intent": "set_billing_mode", "message": "よろしく"}, "S")

    assert _only_text(blocks) == BILLING_HELP_MESSAGE


async def test_progress_and_site_manager_open_pages(session_factory) -> None:
    svc = _service(session_factory)

    [progress] = (await svc.handle_message("進捗を更新", "S")).blocks
    [sites] = (await svc.handle_message("現場一覧", None)).blocks

    assert progress.items[0].params == {"page": "progress", "projectId": "S"}
    assert sites.items[0].params == {"page": "sites"}


async def test_unknown_text_goes_to_the_assistant(session_factory) -> None:
    reply = await _service(session_factory).handle_message("雨の日の段取りは？", "S")

    assert reply.intent == "unknown"
    assert reply.blocks == list(MOCK_BLOCKS)


async def test_assistant_failure_falls_back_to_a_plain_reply(session_factory) -> None:
    down = FunctionsClient("https://fn.example", transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    svc = _service(session_factory, assist=AssistClient(mock=False, functions=down))

    reply = await svc.handle_message("雨の日の段取りは？", "S")

    assert _only_text(reply.blocks) == FALLBACK_MESSAGE


# ── submit ──────────────────────────────────────────────────────────────────


async def test_report_commit_reports_the_man_day_total(session_factory) -> None:
    svc = _service(session_factory)

    blocks = await svc.submit("report.commit", {"workers": "w1:1, w2:0.5"}, "S")
    assert _only_text(blocks) == "本日の日報を登録しました（合計 1.5 人工）"

    blocks = await svc.submit("report.commit", {"workers": [{"worker_id": "w3", "man_day": 1}]}, "S")
    assert _only_text(blocks) == "本日の日報を登録しました（合計 1 人工）"


async def test_estimate_commit_from_form_text(session_factory) -> None:
    blocks = await _service(session_factory).submit(
        "estimate.commit", {"title": "改修", "items": "ALCパネル,2,枚,3200"}, "S",
    )

    assert _only_text(blocks) == "見積を保存しました：行1件／税込¥6,400"
    [log] = await _logs(session_factory)
    assert (log.intent, log.meta) == ("estimate_committed", {"total": 6400, "lines": 1})


async def test_invoice_commit_bills_this_months_labor(session_factory) -> None:
    async with transaction(session_factory) as session:
        await RateRepo(session).add("w1", 15000, date(2024, 1, 1))
    svc = _service(session_factory)
    await svc.submit("report.commit", {"workers": "w1:1", "work_date": "2025-01-10"}, "S")

    blocks = await svc.submit("invoice.commit", {"closing": "end", "due_in_days": "30", "rounding": "cut"}, "S")

    assert _only_text(blocks) == "請求書を発行しました：税込¥15,000／期日 2025-03-02"
    intents = {log.intent for log in await _logs(session_factory)}
    assert {"invoice_issued", "create_invoice"} <= intents


async def test_receipt_commit_triggers_ocr_in_the_background(session_factory) -> None:
    calls: list[httpx.Request] = []

    def _ocr(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"ok": True})

    fn = FunctionsClient("https://fn.example", transport=httpx.MockTransport(_ocr))
    svc = _service(session_factory, ocr=OcrTrigger(fn))

    blocks = await svc.submit(
        "receipt.commit",
        {"kind": "receipt", "amount": "3980", "account": "消耗品", "file_refs": [{"uri": "r.jpg"}]},
        "S",
    )
    await svc.ocr.drain()

    assert _only_text(blocks) == "登録：¥3,980 / 消耗品 / receipt（2025-01-20）"
    [req] = calls
    assert req.url.path == "/ocr-receipt"
    assert json.loads(req.content)["files"] == [{"uri": "r.jpg"}]
    intents = sorted(log.intent for log in await _logs(session_factory))
    assert intents == ["receipt_registered", "upload_doc"]


async def test_ocr_failure_does_not_fail_the_receipt(session_factory) -> None:
    fn = FunctionsClient("https://fn.example", transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    svc = _service(session_factory, ocr=OcrTrigger(fn))

    blocks = await svc.submit("receipt.commit", {"amount": 100}, "S")
    await svc.ocr.drain()

    assert _only_text(blocks).startswith("登録：¥100")


async def test_invalid_draft_returns_the_validation_message(session_factory) -> None:
    svc = _service(session_factory)

    blocks = await svc.submit("report.commit", {"workers": "w1:3"}, "S")

    assert _only_text(blocks) == "入力内容を確認してください。"
    [log] = await _logs(session_factory)
    assert (log.status, log.failure_reason) == ("failure", "VALIDATION")


async def test_store_failure_returns_the_save_message(session_factory, monkeypatch) -> None:
    async def _boom(self, *args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("permission denied"))

    monkeypatch.setattr(EstimateRepo, "add_item", _boom)

    blocks = await _service(session_factory).submit("estimate.commit", {"items": "x,1,式,100"}, "S")

    assert _only_text(blocks) == PersistenceError.user_message
    [log] = await _logs(session_factory)
    assert (log.intent, log.failure_reason) == ("optimize_estimate", "UNKNOWN")


async def test_store_failure_while_preparing_the_invoice_form(session_factory) -> None:
    async with transaction(session_factory) as session:
        await session.execute(sql("DROP TABLE site_billing_settings"))

    reply = await _service(session_factory).handle_message("請求書つくって", "S")

    assert reply.intent == "create_invoice"
    assert _only_text(reply.blocks) == PersistenceError.user_message


async def test_confirm_rejects_an_unknown_intent(session_factory) -> None:
    svc = _service(session_factory)

    with pytest.raises(DraftValidationError):
        await svc.submit("chat.confirm", {"intent": "delete_site", "message": "消して"}, "S")
    with pytest.raises(DraftValidationError):
        await svc.submit("chat.confirm", {"message": "はい"}, "S")


async def test_submit_without_site_and_unknown_actions(session_factory) -> None:
    svc = _service(session_factory)

    assert _only_text(await svc.submit("report.commit", {"workers": "w1:1"}, None)) == NO_SITE_MESSAGE
    with pytest.raises(NotFoundError):
        await svc.submit("report.delete", {}, "S")


async def test_tool_actions_render_as_blocks(session_factory) -> None:
    [file_block] = await _service(session_factory).submit("export_csv", {"month": "2025-01"})

    assert isinstance(file_block, FileBlock)
    assert file_block.files[0].name == "export_2025-01.csv"
