"""Read-only session endpoints."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ...core.exceptions import SessionNotFoundError
from .chat import get_session_adapter, raise_http_error

logger = logging.getLogger("chatrelay")


async def list_chats(request: Request) -> JSONResponse:
    """Handle `GET /api/chats`: every session, oldest first."""
    chats = get_session_adapter(request).list_sessions()
    logger.info(f"Chats fetched successfully: {len(chats)} chats")
    return JSONResponse({"data": chats})


async def get_chat(chat_id: str, request: Request) -> JSONResponse:
    """Handle `GET /api/chats/{chat_id}`."""
    try:
        chat = get_session_adapter(request).require_session(chat_id)
    except SessionNotFoundError as exc:
        logger.info(f"Chat not found: {chat_id}")
        raise_http_error(exc, "Chat not found")
    return JSONResponse(chat)
