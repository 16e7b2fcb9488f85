"""Tools API – run one allow-listed action."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from genba.api.deps import ServiceDep

router = APIRouter()


class ToolRunRequest(BaseModel):
    action: str
    params: dict[str, Any] = Field(default_factory=dict)


@router.post("/run")
async def run_tool(body: ToolRunRequest, svc: ServiceDep) -> dict[str, Any]:
    result = await svc.dispatcher.run(body.action, body.params)
    return result.to_dict()
