"""Stream adapter for converting chat completion SSE to session events.

Converts the OpenAI chat completion streaming format into the two-event
vocabulary of the chat-session model, and commits the finished turn to the
session store once upstream closes the stream.

OpenAI Chat Completion Events:
    : OPENROUTER PROCESSING
    data: {"choices":[{"delta":{"role":"assistant"},"index":0}]}
    data: {"choices":[{"delta":{"content":"Hello"},"index":0}]}
    data: {"choices":[{"delta":{},"finish_reason":"stop","index":0}]}
    data: [DONE]

Session Events:
    data: {"type":"message_delta","content":"Hello","messageId":"..."}

    data: {"type":"chat_complete","chat":{"id":"...","messages":[...]}}
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, AsyncIterator, Callable, Optional

from ..core.client import CompletionStream
from ..core.exceptions import UpstreamStreamError
from ..core.sse import DONE_SENTINEL, SSELineDecoder, detect_sse_stream_error, format_sse_data
from ..types import ChatCompleteEvent, ChatMessage, ChatSession, MessageDeltaEvent
from .store import SessionStore

logger = logging.getLogger("chatrelay")


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex


class ChatToSessionStreamAdapter:
    """Converts a chat completion SSE stream into session events.

    This adapter maintains state during streaming to:
    - Reassemble records split across upstream reads
    - Accumulate the assistant reply
    - Append the finished reply to the session and store it exactly once
    """

    def __init__(
        self,
        chat: ChatSession,
        store: SessionStore,
        message_id: Optional[str] = None,
    ):
        """Initialize the stream adapter.

        Args:
            chat: Working copy of the session, already holding the new user
                message. The adapter appends the assistant message to it.
            store: Where the finished session is committed.
            message_id: Id for the assistant message (generated if omitted).
        """
        self.chat = chat
        self.store = store
        self.message_id = message_id or new_id()

        self.decoder = SSELineDecoder()
        self.accumulated_text = ""

        # Diagnostics
        self.malformed_records = 0
        self.finish_reason: Optional[str] = None
        self.usage: Optional[dict[str, Any]] = None

        # State flags
        self.saw_done = False
        self.finalized = False

    async def adapt_stream(
        self,
        chat_stream: AsyncIterator[bytes],
    ) -> AsyncIterator[bytes]:
        """Transform a chat completion stream into session SSE events.

        Args:
            chat_stream: The incoming chat completion SSE byte stream

        Yields:
            `message_delta` events, then a single `chat_complete` event

        Raises:
            UpstreamStreamError: If upstream fails or reports an error
                mid-stream. Nothing is committed in that case.
        """
        async for chunk in chat_stream:
            for data_str in self.decoder.feed(chunk):
                event = self._process_record(data_str)
                if event is not None:
                    yield event

        for data_str in self.decoder.flush():
            event = self._process_record(data_str)
            if event is not None:
                yield event

        yield self._finalize()

    def _process_record(self, data_str: str) -> Optional[bytes]:
        """Handle one `data:` payload; return an outbound event if it carries content."""
        if data_str == DONE_SENTINEL:
            self.saw_done = True
            return None
        if not data_str:
            return None

        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            self._record_malformed(data_str)
            return None
        if not isinstance(data, dict):
            self._record_malformed(data_str)
            return None

        error = detect_sse_stream_error(data)
        if error:
            logger.warning(f"SessionStreamAdapter: {error}")
            raise UpstreamStreamError(error)

        usage = data.get("usage")
        if isinstance(usage, dict):
            self.usage = usage

        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            return None
        choice = choices[0]
        if not isinstance(choice, dict):
            return None

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            self.finish_reason = finish_reason

        delta = choice.get("delta") or {}
        content = delta.get("content") if isinstance(delta, dict) else None
        if not content or not isinstance(content, str):
            return None

        self.accumulated_text += content
        return self._emit_message_delta(content)

    def _record_malformed(self, data_str: str) -> None:
        self.malformed_records += 1
        logger.debug(f"SessionStreamAdapter: Failed to parse: {data_str[:100]}")

    def _finalize(self) -> bytes:
        """Append the assistant message, commit the session, build `chat_complete`."""
        if self.finalized:
            raise RuntimeError("stream already finalized")
        self.finalized = True

        timestamp = now_ms()
        assistant_message: ChatMessage = {
            "id": self.message_id,
            "role": "assistant",
            "content": self.accumulated_text,
            "created_at": timestamp,
        }
        self.chat["messages"].append(assistant_message)
        self.chat["updated_at"] = timestamp
        self.store.put(self.chat["id"], self.chat)

        if self.malformed_records:
            logger.warning(
                "SessionStreamAdapter: Skipped %d malformed record(s) in chat %s",
                self.malformed_records,
                self.chat["id"],
            )
        logger.info(
            "Stream for chat %s completed: %d chars, finish_reason=%s, saw_done=%s",
            self.chat["id"],
            len(self.accumulated_text),
            self.finish_reason,
            self.saw_done,
        )
        return self._emit_chat_complete()

    def _emit_message_delta(self, content: str) -> bytes:
        event: MessageDeltaEvent = {
            "type": "message_delta",
            "content": content,
            "messageId": self.message_id,
        }
        return format_sse_data(event)

    def _emit_chat_complete(self) -> bytes:
        event: ChatCompleteEvent = {"type": "chat_complete", "chat": self.chat}
        return format_sse_data(event)


class SessionEventStream:
    """The outbound event stream handed to callers in stream mode.

    Iterating yields encoded SSE events. Completion or an upstream error
    closes the upstream response and runs `on_close` exactly once. A
    consumer that stops early should call `aclose()` or use `async with`;
    otherwise cleanup waits until the event loop finalizes the abandoned
    iterator. A stream that is never iterated must be closed explicitly.
    """

    media_type = "text/event-stream"

    def __init__(
        self,
        adapter: ChatToSessionStreamAdapter,
        upstream: CompletionStream,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self.adapter = adapter
        self.upstream = upstream
        self._on_close = on_close
        self._iterated = False
        self._closed = False

    @property
    def chat_id(self) -> str:
        return self.adapter.chat["id"]

    @property
    def message_id(self) -> str:
        return self.adapter.message_id

    @property
    def completed(self) -> bool:
        return self.adapter.finalized

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._iterated:
            raise RuntimeError("SessionEventStream can only be iterated once")
        self._iterated = True
        # Not retained, so an abandoned iterator gets finalized and closes us
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        try:
            async for event in self.adapter.adapt_stream(self.upstream.aiter_bytes()):
                yield event
        except UpstreamStreamError:
            logger.warning("Stream for chat %s ended in error; turn not committed", self.chat_id)
            raise
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if not self.adapter.finalized:
                logger.info("Stream for chat %s closed before completion", self.chat_id)
            await self.upstream.aclose()
        finally:
            if self._on_close is not None:
                self._on_close()

    async def __aenter__(self) -> "SessionEventStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
