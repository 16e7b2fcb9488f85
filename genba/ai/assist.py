"""Free-form assistant replies rendered as blocks."""

from __future__ import annotations

from loguru import logger
from pydantic import ValidationError

from genba.ai.mock import MOCK_BLOCKS
from genba.chat.blocks import Block, parse_blocks
from genba.errors import ExternalServiceError
from genba.providers.functions import FunctionsClient
from genba.settings import GenbaSettings


class AssistClient:
    """Ask the ``ai-assist`` remote function for a reply; canned blocks in mock mode."""

    def __init__(self, mock: bool, functions: FunctionsClient | None = None) -> None:
        if not mock and functions is None:
            raise ValueError("live mode needs a FunctionsClient")
        self.mock = mock
        self._functions = functions

    @classmethod
    def from_settings(cls, settings: GenbaSettings) -> AssistClient:
        if settings.mock_enabled:
            return cls(mock=True)
        functions = FunctionsClient(settings.functions_url, settings.functions_key, settings.functions_timeout)
        return cls(mock=False, functions=functions)

    async def invoke(self, message: str, project_id: str | None = None) -> list[Block]:
        if self.mock:
            return list(MOCK_BLOCKS)

        data = await self._functions.invoke("ai-assist", {"projectId": project_id, "message": message})
        raw = data.get("blocks") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            raise ExternalServiceError("invalid_blocks_payload")
        try:
            return parse_blocks(raw)
        except ValidationError as exc:
            logger.warning(f"ai-assist returned malformed blocks: {exc.error_count()} error(s)")
            raise ExternalServiceError("invalid_blocks_payload") from exc
