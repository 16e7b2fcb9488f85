"""FastAPI application factory with lifespan for genba."""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from genba import __version__
from genba.chat.service import ChatService
from genba.settings import get_settings
from genba.storage.database import create_all_tables, dispose_engine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: ensure DB schema, build the chat service. Shutdown: wait for OCR, dispose engine."""
    owned = getattr(app.state, "chat", None) is None
    if owned:
        await create_all_tables()
        app.state.chat = ChatService.from_settings(get_settings())
    yield
    await app.state.chat.ocr.drain()
    if owned:
        await dispose_engine()


def create_app(service: ChatService | None = None) -> FastAPI:
    """Build the app; an injected *service* brings its own database and is not disposed."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )
    if service is not None:
        app.state.chat = service

    # ── mount routers ──
    from genba.api.routes import chat, health, receipts, tools

    app.include_router(health.router)
    app.include_router(chat.router, prefix="/api/v1", tags=["chat"])
    app.include_router(tools.router, prefix="/api/v1/tools", tags=["tools"])
    app.include_router(receipts.router, prefix="/api/v1/receipts", tags=["receipts"])

    return app
