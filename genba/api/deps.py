"""Request-scoped dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from genba.chat.service import ChatService
from genba.errors import DraftValidationError, ExternalServiceError, GenbaError, NotFoundError


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat


ServiceDep = Annotated[ChatService, Depends(get_chat_service)]


def http_error(exc: GenbaError) -> HTTPException:
    """Map a domain error onto an HTTP status; the body carries the user-facing line."""
    if isinstance(exc, DraftValidationError):
        status = 422
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, ExternalServiceError):
        status = 502
    else:
        status = 500
    return HTTPException(status_code=status, detail=exc.user_message)
