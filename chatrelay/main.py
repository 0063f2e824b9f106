"""FastAPI application factory for the chat relay."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Mapping, Optional

import httpx
from fastapi import FastAPI

from .api.routes import chat, get_chat, list_chats
from .core.client import CompletionClient
from .logging import setup_logging
from .sessions import InMemorySessionStore, SessionAdapter, SessionStore
from .settings import RelaySettings, load_settings, missing_required_settings

logger = logging.getLogger("chatrelay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: RelaySettings = app.state.settings
    logger.info("chatrelay starting up...")
    logger.info("Configured bind address %s:%s", settings.server.host, settings.server.port)
    logger.info(
        "Upstream: %s (default model %s)",
        settings.upstream.base_url,
        settings.upstream.default_model,
    )
    for missing in missing_required_settings(settings):
        logger.warning(
            "Missing setting %s: %s (e.g. %s). User-provided keys will be required.",
            missing.name,
            missing.description,
            missing.example,
        )
    logger.info("chatrelay ready to handle requests")
    yield
    logger.info(
        "chatrelay shutting down; %d in-memory chats will be discarded",
        len(app.state.session_store),
    )


def create_app(
    config: Optional[Mapping[str, Any]] = None,
    *,
    settings: Optional[RelaySettings] = None,
    store: Optional[SessionStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the relay application.

    Args:
        config: Raw config mapping. Loaded from disk when neither this nor
            `settings` is given.
        settings: Pre-resolved settings (wins over `config`).
        store: Session store to use; a fresh in-memory store by default.
        transport: Optional httpx transport for upstream calls (tests).
    """
    setup_logging()
    if settings is None:
        settings = load_settings(config)

    store = store if store is not None else InMemorySessionStore()
    client = CompletionClient(settings.upstream, transport=transport)
    adapter = SessionAdapter(client, store, settings)

    app = FastAPI(title="chatrelay", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_store = store
    app.state.session_adapter = adapter

    app.post("/api/chat")(chat)
    app.get("/api/chats")(list_chats)
    app.get("/api/chats/{chat_id}")(get_chat)
    logger.info("FastAPI application created")
    return app
