"""HTTP client for named remote functions (AI assist, tools, OCR).

Every remote capability is one POST to ``<base_url>/<name>`` with a JSON
body; the answer is JSON or, for CSV exports, plain text.
"""

from __future__ import annotations

from typing import Any, Literal

import httpx
from loguru import logger

from genba.errors import ExternalServiceError

ResponseType = Literal["json", "text"]


class FunctionsClient:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
            headers["apikey"] = self._api_key
        return headers

    async def invoke(
        self,
        name: str,
        body: dict[str, Any] | None = None,
        response_type: ResponseType = "json",
    ) -> Any:
        """Call remote function *name*; raise ``ExternalServiceError`` on any failure."""
        url = f"{self.base_url}/{name}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.post(url, json=body or {}, headers=self._headers())
                r.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(f"Remote function {name} answered {exc.response.status_code}")
            raise ExternalServiceError(f"{name}_failed: HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Remote function {name} unreachable: {exc}")
            raise ExternalServiceError(f"{name}_failed: {exc}") from exc

        if response_type == "text":
            return r.text
        try:
            return r.json()
        except ValueError as exc:
            raise ExternalServiceError(f"{name}_failed: invalid JSON") from exc
