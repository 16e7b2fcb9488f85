"""Chat API – messages in, blocks out; form/button actions; parsers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from genba.api.deps import ServiceDep, http_error
from genba.chat.blocks import dump_blocks
from genba.chat.handlers.billing import parse_billing_command
from genba.chat.intents import parse_intent
from genba.chat.service import parsed_to_dict
from genba.errors import GenbaError

router = APIRouter()


class MessageRequest(BaseModel):
    message: str
    project_id: str | None = None


class MessageResponse(BaseModel):
    intent: str
    confidence: float
    blocks: list[dict[str, Any]]


class ActionRequest(BaseModel):
    action: str
    params: dict[str, Any] = Field(default_factory=dict)
    project_id: str | None = None


class BlocksResponse(BaseModel):
    blocks: list[dict[str, Any]]


class TextRequest(BaseModel):
    text: str


# ── routes ───────────────────────────────────────────────────────────────


@router.post("/chat/messages", response_model=MessageResponse)
async def post_message(body: MessageRequest, svc: ServiceDep) -> MessageResponse:
    try:
        reply = await svc.handle_message(body.message, body.project_id)
    except GenbaError as exc:
        raise http_error(exc) from exc
    return MessageResponse(intent=reply.intent, confidence=reply.confidence, blocks=dump_blocks(reply.blocks))


@router.post("/chat/actions", response_model=BlocksResponse)
async def post_action(body: ActionRequest, svc: ServiceDep) -> BlocksResponse:
    try:
        blocks = await svc.submit(body.action, body.params, body.project_id)
    except GenbaError as exc:
        raise http_error(exc) from exc
    return BlocksResponse(blocks=dump_blocks(blocks))


@router.post("/intents/parse")
async def post_parse_intent(body: TextRequest) -> dict[str, Any]:
    return parsed_to_dict(parse_intent(body.text))


@router.post("/billing/parse")
async def post_parse_billing(body: TextRequest) -> dict[str, Any]:
    return parse_billing_command(body.text).changes()
