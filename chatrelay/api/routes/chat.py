"""Chat endpoint: create a session or continue one, sync or streamed."""

import json
import logging
from typing import Any, Mapping, NoReturn, Optional

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from ...core.exceptions import (
    InvalidRequestError,
    MissingCredentialError,
    RelayError,
    SessionNotFoundError,
    UpstreamConnectionError,
    UpstreamStatusError,
)
from ...sessions import ResponseMode, SessionAdapter, SessionEventStream

logger = logging.getLogger("chatrelay")

API_KEY_HEADER = "x-openrouter-api-key"
MODEL_HEADER = "x-openrouter-model"

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def get_session_adapter(request: Request) -> SessionAdapter:
    return request.app.state.session_adapter


def raise_http_error(exc: RelayError, summary: str) -> NoReturn:
    """Translate a relay error into an HTTPException with a structured payload."""
    status_code = 500
    details: Optional[str] = exc.message
    upstream_status: Optional[int] = None

    if isinstance(exc, InvalidRequestError):
        status_code = 400
    elif isinstance(exc, MissingCredentialError):
        status_code = 401
    elif isinstance(exc, SessionNotFoundError):
        status_code = 404
    elif isinstance(exc, UpstreamStatusError):
        status_code = 502
        upstream_status = exc.status_code
        details = exc.body or exc.message
    elif isinstance(exc, UpstreamConnectionError):
        status_code = 502

    raise HTTPException(
        status_code=status_code,
        detail={
            "error": summary,
            "message": exc.message,
            "details": details,
            "upstream_status": upstream_status,
        },
    ) from exc


async def _read_payload(request: Request) -> Mapping[str, Any]:
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as exc:
        logger.error(f"Invalid JSON payload: {exc}")
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid JSON payload", "details": str(exc)},
        ) from exc
    if not isinstance(payload, Mapping):
        logger.error("Payload must be a JSON object")
        raise HTTPException(
            status_code=400,
            detail={"error": "Request body must be a JSON object", "details": None},
        )
    return payload


async def chat(request: Request) -> Response:
    """Handle `POST /api/chat`.

    Body: `{"message": str, "chatId": str | null, "streaming": bool}`.
    Headers `x-openrouter-api-key` and `x-openrouter-model` override the
    configured credential and model for this call.
    """
    payload = await _read_payload(request)

    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        raise HTTPException(
            status_code=400,
            detail={"error": "Message is required", "details": None},
        )

    chat_id = payload.get("chatId") or None
    mode = ResponseMode.STREAM if payload.get("streaming") else ResponseMode.SYNC
    api_key = request.headers.get(API_KEY_HEADER) or None
    model = request.headers.get(MODEL_HEADER) or None

    logger.info(
        "Chat request: chatId=%s streaming=%s model=%s userKey=%s",
        chat_id,
        mode is ResponseMode.STREAM,
        model or "default",
        bool(api_key),
    )

    adapter = get_session_adapter(request)
    try:
        if chat_id:
            result = await adapter.send_message(
                str(chat_id), message, mode, model=model, api_key=api_key
            )
        else:
            result = await adapter.create_session(message, mode, model=model, api_key=api_key)
    except RelayError as exc:
        logger.error(f"Chat request failed: {exc.message}")
        raise_http_error(exc, "Failed to process request")

    if isinstance(result, SessionEventStream):
        return StreamingResponse(
            result,
            media_type=SessionEventStream.media_type,
            headers=STREAM_HEADERS,
            background=BackgroundTask(result.aclose),
        )

    return JSONResponse(
        {
            "id": result["id"],
            "demo": result["demo"],
            "messages": result["messages"],
        }
    )
