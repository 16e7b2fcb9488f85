import json

import httpx
import pytest

from genba.ai.assist import AssistClient
from genba.ai.mock import MOCK_BLOCKS, MOCK_CSV, MOCK_PREVIEW_URL
from genba.ai.tools import (
    TOOL_FAILED_MESSAGE,
    UNSUPPORTED_ACTION_MESSAGE,
    BlocksResult,
    CsvResult,
    ErrorResult,
    OpenPageResult,
    ToolDispatcher,
    UnknownResult,
    normalize_result,
)
from genba.errors import ExternalServiceError
from genba.providers.functions import FunctionsClient


def _live(handler, calls: list[httpx.Request] | None = None) -> FunctionsClient:
    def _record(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return handler(request)

    return FunctionsClient("https://fn.example/functions/v1", "k3y", transport=httpx.MockTransport(_record))


async def test_unknown_action_is_rejected_without_a_network_call() -> None:
    calls: list[httpx.Request] = []
    dispatcher = ToolDispatcher(mock=False, functions=_live(lambda r: httpx.Response(200, json={}), calls))

    result = await dispatcher.run("delete_everything", {})

    assert result == ErrorResult(message=UNSUPPORTED_ACTION_MESSAGE)
    assert result.to_dict()["kind"] == "error"
    assert calls == []


async def test_mock_mode_answers_from_canned_data() -> None:
    dispatcher = ToolDispatcher(mock=True)

    csv = await dispatcher.run("export_csv", {"month": "2025-01"})
    assert csv == CsvResult(filename="export_2025-01.csv", content=MOCK_CSV)
    assert (await dispatcher.run("export_csv")).filename == "export.csv"

    assert await dispatcher.run("open_page", {}) == OpenPageResult(url="/invoice")
    assert await dispatcher.run("open_page", {"page": "sites"}) == OpenPageResult(url="/sites")
    assert await dispatcher.run("preview_pdf", {}) == OpenPageResult(url=MOCK_PREVIEW_URL)

    blocks = await dispatcher.run("materials.ingest", {"imageUrl": "x"})
    assert isinstance(blocks, BlocksResult)
    assert [b.type for b in blocks.blocks] == ["text", "stats", "table", "actions", "suggest"]


def test_live_mode_requires_a_client() -> None:
    with pytest.raises(ValueError):
        ToolDispatcher(mock=False)


async def test_invoice_create_calls_its_own_function() -> None:
    calls: list[httpx.Request] = []
    fn = _live(lambda r: httpx.Response(200, json={"blocks": [{"type": "text", "md": "作成しました"}]}), calls)

    result = await ToolDispatcher(mock=False, functions=fn).run("invoice.create", {"projectId": "S"})

    assert isinstance(result, BlocksResult)
    assert result.blocks[0].md == "作成しました"
    [req] = calls
    assert req.url.path == "/functions/v1/invoice-create"
    assert req.headers["authorization"] == "Bearer k3y"
    assert req.headers["apikey"] == "k3y"
    body = json.loads(req.content)
    assert body == {"projectId": "S", "templateKey": "standard", "periodFrom": "", "periodTo": ""}


async def test_materials_ingest_sends_provider_only_when_given() -> None:
    calls: list[httpx.Request] = []
    fn = _live(lambda r: httpx.Response(200, json={"url": "/materials/1"}), calls)
    dispatcher = ToolDispatcher(mock=False, functions=fn)

    assert await dispatcher.run("materials.ingest", {"projectId": "S", "imageUrl": "u"}) == OpenPageResult(
        url="/materials/1"
    )
    await dispatcher.run("materials.ingest", {"projectId": "S", "imageUrl": "u", "provider": "ocr-x"})

    assert "provider" not in json.loads(calls[0].content)
    assert json.loads(calls[1].content)["provider"] == "ocr-x"


async def test_export_csv_reads_a_text_body() -> None:
    calls: list[httpx.Request] = []
    fn = _live(lambda r: httpx.Response(200, text="a,b\n1,2\n"), calls)

    result = await ToolDispatcher(mock=False, functions=fn).run("export_csv", {"month": "2025-02"})

    assert result == CsvResult(filename="export_2025-02.csv", content="a,b\n1,2\n")
    assert calls[0].url.path.endswith("/tools-run")
    assert json.loads(calls[0].content) == {"action": "export_csv", "params": {"month": "2025-02"}}


async def test_remote_failure_becomes_an_error_result() -> None:
    fn = _live(lambda r: httpx.Response(500, json={"message": "boom"}))

    result = await ToolDispatcher(mock=False, functions=fn).run("open_page", {"page": "x"})

    assert result == ErrorResult(message=TOOL_FAILED_MESSAGE)


def test_normalize_result_precedence() -> None:
    assert normalize_result({"error": "nope", "url": "/x"}) == ErrorResult(message="nope")
    assert isinstance(normalize_result({"blocks": [], "url": "/x"}), BlocksResult)
    assert normalize_result({"url": "/x"}) == OpenPageResult(url="/x")
    assert normalize_result({"blocks": [{"type": "chart"}]}) == UnknownResult(data={"blocks": [{"type": "chart"}]})
    assert normalize_result([1, 2]) == UnknownResult(data=[1, 2])


async def test_functions_client_wraps_transport_errors() -> None:
    def _down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ExternalServiceError):
        await _live(_down).invoke("ai-assist", {})
    with pytest.raises(ExternalServiceError):
        await _live(lambda r: httpx.Response(200, text="not json")).invoke("ai-assist", {})


async def test_assist_mock_and_live() -> None:
    assert await AssistClient(mock=True).invoke("hi") == list(MOCK_BLOCKS)

    fn = _live(lambda r: httpx.Response(200, json={"blocks": [{"type": "suggest", "chips": ["日報"]}]}))
    [block] = await AssistClient(mock=False, functions=fn).invoke("hi", "S")
    assert block.chips == ["日報"]

    broken = _live(lambda r: httpx.Response(200, json={"text": "no blocks"}))
    with pytest.raises(ExternalServiceError):
        await AssistClient(mock=False, functions=broken).invoke("hi")


def test_live_assist_requires_a_client() -> None:
    with pytest.raises(ValueError):
        AssistClient(mock=False)
