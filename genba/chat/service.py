"""Chat orchestration: free text in, blocks out.

``handle_message`` classifies a message and answers with a form, a summary
line or assistant blocks.  ``submit`` receives the form (or button) action,
commits the draft in one transaction and records telemetry for the outcome.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from genba.ai.assist import AssistClient
from genba.ai.tools import (
    ALLOWED_ACTIONS,
    BlocksResult,
    CsvResult,
    ErrorResult,
    OpenPageResult,
    ToolDispatcher,
    ToolRunResult,
)
from genba.chat import forms
from genba.chat.blocks import ActionItem, ActionsBlock, Block, FileBlock, FileItem, text
from genba.chat.drafts import EstimateDraft, InvoiceDraft, ReceiptDraft, ReportDraft, load_draft
from genba.chat.handlers.billing import (
    describe_billing_settings,
    load_tax_settings,
    parse_billing_command,
    update_site_billing_settings,
)
from genba.chat.handlers.estimate import commit_estimate_draft
from genba.chat.handlers.invoice import commit_invoice_draft, draft_invoice_from_progress, invoice_dates
from genba.chat.handlers.receipt import commit_receipt_draft
from genba.chat.handlers.report import commit_report_draft
from genba.chat.intents import INTENT_TYPES, IntentType, ParsedIntent, route_intent
from genba.chat.ocr import OcrTrigger
from genba.chat.telemetry import TelemetrySink
from genba.errors import DraftValidationError, GenbaError, NotFoundError
from genba.settings import GenbaSettings
from genba.storage.database import get_session_factory, transaction

NO_SITE_MESSAGE = "現場が未選択です。どの現場で進めますか？"
BILLING_HELP_MESSAGE = "何を変更しますか？例：「税抜にして」「締日を15日に」「常用（日当）に」"
FALLBACK_MESSAGE = "了解しました。次に何をしますか？"
CONFIRM_MESSAGE = "「{label}」でよろしいですか？"
CANCELLED_MESSAGE = "キャンセルしました。"

INTENT_LABELS: dict[str, str] = {
    "create_report": "日報の作成",
    "upload_doc": "書類の登録",
    "create_invoice": "請求書の作成",
    "optimize_estimate": "見積の作成",
    "set_billing_mode": "請求設定の変更",
    "update_progress": "進捗の更新",
    "open_site_manager": "現場管理",
}

# Intents that only make sense with a site selected.
_SITE_INTENTS = frozenset({"create_report", "upload_doc", "create_invoice", "optimize_estimate", "set_billing_mode"})

# submit action → intent name recorded in telemetry
SUBMIT_ACTIONS: dict[str, str] = {
    "report.commit": "create_report",
    "receipt.commit": "upload_doc",
    "estimate.commit": "optimize_estimate",
    "invoice.commit": "create_invoice",
}


@dataclass(frozen=True, slots=True)
class ChatReply:
    intent: IntentType
    blocks: list[Block] = field(default_factory=list)
    confidence: float = 0.0


def _yen(amount: int) -> str:
    return f"¥{amount:,}"


def _man_day(total: float) -> str:
    return f"{total:g}"


def tool_result_blocks(result: ToolRunResult) -> list[Block]:
    """Render a tool result the way the chat shows it."""
    if isinstance(result, BlocksResult):
        return list(result.blocks)
    if isinstance(result, ErrorResult):
        return [text(result.message)]
    if isinstance(result, CsvResult):
        return [FileBlock(files=[FileItem(name=result.filename, meta=f"{len(result.content.encode())} bytes")])]
    if isinstance(result, OpenPageResult):
        return [ActionsBlock(items=[ActionItem(kind="primary", label="開く", action="open_page", params={"url": result.url})])]
    return [text(FALLBACK_MESSAGE)]


class ChatService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        telemetry: TelemetrySink,
        dispatcher: ToolDispatcher,
        assist: AssistClient,
        ocr: OcrTrigger,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._sessions = session_factory
        self.telemetry = telemetry
        self.dispatcher = dispatcher
        self.assist = assist
        self.ocr = ocr
        self._today = clock

    @classmethod
    def from_settings(
        cls,
        settings: GenbaSettings,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> ChatService:
        factory = session_factory or get_session_factory(settings)
        return cls(
            session_factory=factory,
            telemetry=TelemetrySink(factory),
            dispatcher=ToolDispatcher.from_settings(settings),
            assist=AssistClient.from_settings(settings),
            ocr=OcrTrigger.from_settings(settings),
        )

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._sessions

    # ── messages ────────────────────────────────────────────────────────

    async def handle_message(self, message: str, project_id: str | None = None) -> ChatReply:
        parsed = route_intent(message)
        logger.debug(f"Intent {parsed.intent} ({parsed.confidence}) for {message!r}")

        if parsed.needs_confirmation:
            label = INTENT_LABELS.get(parsed.intent, parsed.intent)
            blocks: list[Block] = [
                text(CONFIRM_MESSAGE.format(label=label)),
                ActionsBlock(
                    items=[
                        ActionItem(
                            kind="primary",
                            label="はい",
                            action="chat.confirm",
                            params={"intent": parsed.intent, "message": message, "projectId": project_id},
                        ),
                        ActionItem(
                            kind="ghost",
                            label="いいえ",
                            action="chat.cancel",
                            params={"intent": parsed.intent, "projectId": project_id},
                        ),
                    ]
                ),
            ]
            return ChatReply(intent=parsed.intent, blocks=blocks, confidence=parsed.confidence)

        blocks = await self._reply_for(parsed.intent, message, project_id)
        return ChatReply(intent=parsed.intent, blocks=blocks, confidence=parsed.confidence)

    async def _reply_for(self, intent: IntentType, message: str, project_id: str | None) -> list[Block]:
        if intent in _SITE_INTENTS and not project_id:
            return [text(NO_SITE_MESSAGE)]

        today = self._today()
        if intent == "create_report":
            return [forms.report_form(project_id, today)]
        if intent == "upload_doc":
            return [forms.receipt_form(project_id, today)]
        if intent == "optimize_estimate":
            return [forms.estimate_form(project_id)]
        if intent == "create_invoice":
            try:
                async with transaction(self._sessions) as session:
                    tax = await load_tax_settings(session, project_id)
            except GenbaError as exc:
                logger.warning(f"Invoice form unavailable for project={project_id}: {exc}")
                return [text(exc.user_message)]
            return [forms.invoice_form(project_id, tax)]
        if intent == "set_billing_mode":
            return await self._set_billing(message, project_id)
        if intent == "update_progress":
            return [_open_page("進捗を更新", "progress", project_id)]
        if intent == "open_site_manager":
            return [_open_page("現場管理を開く", "sites", project_id)]
        return await self._assist(message, project_id)

    async def _set_billing(self, message: str, project_id: str) -> list[Block]:
        patch = parse_billing_command(message)
        if not patch.changes():
            return [text(BILLING_HELP_MESSAGE)]
        try:
            async with transaction(self._sessions) as session:
                row = await update_site_billing_settings(session, project_id, patch)
                summary = describe_billing_settings(row)
        except GenbaError as exc:
            await self.telemetry.log_intent(
                "set_billing_mode", "failure", exc.failure_reason, message=str(exc), project_id=project_id,
            )
            return [text(exc.user_message)]
        await self.telemetry.log_intent("set_billing_mode", "success", project_id=project_id, metadata=patch.changes())
        return [text(summary)]

    async def _assist(self, message: str, project_id: str | None) -> list[Block]:
        try:
            return await self.assist.invoke(message, project_id)
        except GenbaError as exc:
            logger.warning(f"Assistant unavailable: {exc}")
            return [text(FALLBACK_MESSAGE)]

    # ── actions ─────────────────────────────────────────────────────────

    async def submit(self, action: str, params: dict[str, Any] | None = None, project_id: str | None = None) -> list[Block]:
        params = dict(params or {})
        project_id = project_id or params.get("projectId") or None

        if action == "chat.confirm":
            intent = params.get("intent")
            if intent not in INTENT_TYPES:
                raise DraftValidationError(f"unknown intent to confirm: {intent!r}")
            return await self._reply_for(intent, str(params.get("message") or ""), project_id)
        if action == "chat.cancel":
            await self.telemetry.log_intent(
                str(params.get("intent") or "unknown"), "failure", "CANCELLED", project_id=project_id,
            )
            return [text(CANCELLED_MESSAGE)]
        if action in ALLOWED_ACTIONS:
            return tool_result_blocks(await self.dispatcher.run(action, params))

        intent = SUBMIT_ACTIONS.get(action)
        if intent is None:
            raise NotFoundError(f"unknown action: {action}")
        if not project_id:
            return [text(NO_SITE_MESSAGE)]

        t0 = time.monotonic()
        try:
            reply = await self._commit(action, params, project_id, t0)
        except GenbaError as exc:
            logger.warning(f"{action} failed for project={project_id}: {exc}")
            await self.telemetry.log_intent(
                intent, "failure", exc.failure_reason, message=str(exc), project_id=project_id,
            )
            return [text(exc.user_message)]
        return [text(reply)]

    async def _commit(self, action: str, params: dict[str, Any], project_id: str, t0: float) -> str:
        today = self._today()

        if action == "report.commit":
            draft = load_draft(ReportDraft, {
                "site_id": project_id,
                "work_date": params.get("work_date") or today,
                "workers": forms.parse_workers(params.get("workers")),
            })
            async with transaction(self._sessions) as session:
                res = await commit_report_draft(session, draft)
            await self.telemetry.log_intent(
                "create_report",
                "success",
                project_id=project_id,
                duration_ms=_elapsed_ms(t0),
                metadata={"workers": len(draft.workers), "total_man_day": res.total_man_day},
            )
            return f"本日の日報を登録しました（合計 {_man_day(res.total_man_day)} 人工）"

        if action == "estimate.commit":
            draft = load_draft(EstimateDraft, {
                "project_id": project_id,
                "title": params.get("title") or "",
                "items": forms.parse_line_items(params.get("items")),
                "billing_mode": params.get("billing_mode") or None,
            })
            async with transaction(self._sessions) as session:
                res = await commit_estimate_draft(session, draft)
            await self.telemetry.log_estimate_committed(project_id, res.total, res.lines)
            return f"見積を保存しました：行{res.lines}件／税込{_yen(res.total)}"

        if action == "invoice.commit":
            closing = str(params.get("closing") or "end")
            if closing != "end" and not closing.isdigit():
                raise DraftValidationError(f"invalid closing day: {closing!r}")
            due_in_days = _int_param(params, "due_in_days", 30)
            dates = invoice_dates(today, closing, due_in_days)
            async with transaction(self._sessions) as session:
                progress = await draft_invoice_from_progress(session, project_id, today)
                draft = load_draft(InvoiceDraft, {
                    "project_id": project_id,
                    "issue_date": dates.issue_date,
                    "closing_date": dates.closing_date,
                    "due_date": dates.due_date,
                    "bill_to": params.get("bill_to") or None,
                    "items": [it.model_dump() for it in progress.items],
                    "rounding": params.get("rounding") or None,
                })
                res = await commit_invoice_draft(session, draft)
            await self.telemetry.log_invoice_issued(project_id, res.total, res.due_date)
            await self.telemetry.log_intent(
                "create_invoice",
                "success",
                project_id=project_id,
                metadata={"total": res.total, "due_date": res.due_date.isoformat()},
            )
            return f"請求書を発行しました：税込{_yen(res.total)}／期日 {res.due_date.isoformat()}"

        # receipt.commit
        draft = load_draft(ReceiptDraft, {
            "project_id": project_id,
            "kind": params.get("kind") or "other",
            "amount": params.get("amount"),
            "account": params.get("account") or "",
            "vendor": params.get("vendor") or None,
            "occurred_on": params.get("occurred_on") or today,
            "file_refs": params.get("file_refs") or [],
        })
        async with transaction(self._sessions) as session:
            res = await commit_receipt_draft(session, draft)
        files = max(len(draft.file_refs), 1)
        await self.telemetry.log_intent(
            "upload_doc",
            "success",
            project_id=project_id,
            metadata={"source": "chat", "files": files, "amount": draft.amount, "kind": draft.kind,
                      "occurred_on": draft.occurred_on.isoformat()},
        )
        await self.telemetry.log_receipt_registered(
            project_id, draft.amount, draft.kind, files, duration_ms=_elapsed_ms(t0),
        )
        self.ocr.schedule(res.receipt_id, list(draft.file_refs))
        return f"登録：{_yen(draft.amount)} / {draft.account} / {draft.kind}（{draft.occurred_on.isoformat()}）"


def _open_page(label: str, page: str, project_id: str | None) -> ActionsBlock:
    params: dict[str, Any] = {"page": page}
    if project_id:
        params["projectId"] = project_id
    return ActionsBlock(items=[ActionItem(kind="primary", label=label, action="open_page", params=params)])


def _int_param(params: dict[str, Any], key: str, default: int) -> int:
    value = params.get(key)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise DraftValidationError(f"{key} must be an integer, got {value!r}") from None


def _elapsed_ms(t0: float) -> int:
    return int((time.monotonic() - t0) * 1000)


def parsed_to_dict(parsed: ParsedIntent) -> dict[str, Any]:
    return {
        "intent": parsed.intent,
        "confidence": parsed.confidence,
        "matched": parsed.matched,
        "needs_confirmation": parsed.needs_confirmation,
        "reason": parsed.reason,
    }
