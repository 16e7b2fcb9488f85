"""Tool dispatch for actions coming from UI buttons or AI-suggested blocks.

``ToolDispatcher.run`` accepts only allow-listed actions, then either answers
from canned data (mock mode) or calls one remote function, and normalises the
answer into one of five result kinds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from loguru import logger
from pydantic import ValidationError

from genba.ai.mock import MOCK_BLOCKS, MOCK_CSV, MOCK_PREVIEW_URL
from genba.chat.blocks import Block, dump_blocks, parse_blocks
from genba.errors import ExternalServiceError
from genba.providers.functions import FunctionsClient
from genba.settings import GenbaSettings

ALLOWED_ACTIONS = frozenset({
    "open_page",
    "export_csv",
    "preview_pdf",
    "materials.ingest",
    "estimate.draft",
    "invoice.create",
})

UNSUPPORTED_ACTION_MESSAGE = "未対応の操作です。"
TOOL_FAILED_MESSAGE = "ツールを実行できませんでした。時間をおいて再度お試しください。"


# ── result kinds ────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class CsvResult:
    filename: str
    content: str
    kind: Literal["csv"] = "csv"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "filename": self.filename, "content": self.content}


@dataclass(frozen=True, slots=True)
class OpenPageResult:
    url: str
    kind: Literal["open_page"] = "open_page"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "url": self.url}


@dataclass(frozen=True, slots=True)
class BlocksResult:
    blocks: list[Block] = field(default_factory=list)
    kind: Literal["blocks"] = "blocks"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "blocks": dump_blocks(self.blocks)}


@dataclass(frozen=True, slots=True)
class ErrorResult:
    message: str
    kind: Literal["error"] = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


@dataclass(frozen=True, slots=True)
class UnknownResult:
    data: Any = None
    kind: Literal["unknown"] = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "data": self.data}


ToolRunResult = CsvResult | OpenPageResult | BlocksResult | ErrorResult | UnknownResult


# ── helpers ─────────────────────────────────────────────────────────────────


def _str_param(params: dict[str, Any], key: str, default: str = "") -> str:
    value = params.get(key)
    return value if isinstance(value, str) else default


def csv_filename(params: dict[str, Any]) -> str:
    month = params.get("month")
    return f"export_{month}.csv" if month else "export.csv"


def normalize_result(data: Any) -> ToolRunResult:
    """Map a JSON answer onto a result kind: error, then blocks, then url."""
    if isinstance(data, dict):
        if isinstance(data.get("error"), str):
            return ErrorResult(message=data["error"])
        if isinstance(data.get("blocks"), list):
            try:
                return BlocksResult(blocks=parse_blocks(data["blocks"]))
            except ValidationError as exc:
                logger.warning(f"Remote blocks failed schema validation: {exc.error_count()} error(s)")
                return UnknownResult(data=data)
        if isinstance(data.get("url"), str):
            return OpenPageResult(url=data["url"])
    return UnknownResult(data=data)


# ── dispatcher ──────────────────────────────────────────────────────────────


class ToolDispatcher:
    """Route one action to canned data or a remote function.

    Holds no state between calls; *mock* is fixed at construction.
    """

    def __init__(self, mock: bool, functions: FunctionsClient | None = None) -> None:
        if not mock and functions is None:
            raise ValueError("live mode needs a FunctionsClient")
        self.mock = mock
        self._functions = functions

    @classmethod
    def from_settings(cls, settings: GenbaSettings) -> ToolDispatcher:
        if settings.mock_enabled:
            return cls(mock=True)
        functions = FunctionsClient(settings.functions_url, settings.functions_key, settings.functions_timeout)
        return cls(mock=False, functions=functions)

    async def run(self, action: str, params: dict[str, Any] | None = None) -> ToolRunResult:
        params = params or {}
        if action not in ALLOWED_ACTIONS:
            logger.warning(f"Rejected tool action: {action!r}")
            return ErrorResult(message=UNSUPPORTED_ACTION_MESSAGE)

        if self.mock:
            return self._mock(action, params)

        try:
            return await self._live(action, params)
        except ExternalServiceError as exc:
            logger.warning(f"Tool {action} failed: {exc}")
            return ErrorResult(message=TOOL_FAILED_MESSAGE)

    # -- mock ------------------------------------------------------------

    def _mock(self, action: str, params: dict[str, Any]) -> ToolRunResult:
        if action == "export_csv":
            return CsvResult(filename=csv_filename(params), content=MOCK_CSV)
        if action == "open_page":
            return OpenPageResult(url=f"/{params.get('page') or 'invoice'}")
        if action in ("materials.ingest", "estimate.draft", "invoice.create"):
            return BlocksResult(blocks=list(MOCK_BLOCKS))
        if action == "preview_pdf":
            return OpenPageResult(url=_str_param(params, "url", MOCK_PREVIEW_URL))
        return UnknownResult(data={"action": action, "params": params})

    # -- live ------------------------------------------------------------

    async def _live(self, action: str, params: dict[str, Any]) -> ToolRunResult:
        fn = self._functions

        if action == "invoice.create":
            data = await fn.invoke("invoice-create", {
                "projectId": _str_param(params, "projectId"),
                "templateKey": _str_param(params, "templateKey", "standard"),
                "periodFrom": _str_param(params, "periodFrom"),
                "periodTo": _str_param(params, "periodTo"),
            })
            return normalize_result(data)

        if action == "estimate.draft":
            data = await fn.invoke("estimate-draft", {
                "projectId": _str_param(params, "projectId"),
                "clientId": _str_param(params, "clientId"),
                "files": params.get("files"),
            })
            return normalize_result(data)

        if action == "materials.ingest":
            body: dict[str, Any] = {
                "projectId": _str_param(params, "projectId"),
                "imageUrl": _str_param(params, "imageUrl"),
            }
            if provider := _str_param(params, "provider"):
                body["provider"] = provider
            return normalize_result(await fn.invoke("materials-ingest", body))

        payload = {"action": action, "params": params}
        if action == "export_csv":
            content = await fn.invoke("tools-run", payload, response_type="text")
            return CsvResult(filename=csv_filename(params), content=content if isinstance(content, str) else "")
        return normalize_result(await fn.invoke("tools-run", payload))
