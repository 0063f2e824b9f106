"""Session adapter: chat-session semantics on top of a chat completion API.

Every turn is staged on a working copy of the session. The user message and
the assistant reply are committed to the store together, and only once the
completion has fully resolved (for streams: once upstream closes the
stream). A failed turn leaves the stored session exactly as it was.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Union

from ..core.client import CompletionClient, CompletionOptions, CompletionStream
from ..core.exceptions import InvalidRequestError, SessionNotFoundError
from ..settings import DEFAULT_SYSTEM_PROMPT, RelaySettings
from ..types import ChatCompletionResponse, ChatMessage, ChatSession, UpstreamMessage
from .locks import SessionLease, SessionLockRegistry
from .store import SessionStore
from .stream_adapter import ChatToSessionStreamAdapter, SessionEventStream, new_id, now_ms

logger = logging.getLogger("chatrelay")

EMPTY_REPLY_FALLBACK = "No response generated"

SessionResult = Union[ChatSession, SessionEventStream]


class ResponseMode(str, Enum):
    SYNC = "sync"
    STREAM = "stream"

    @classmethod
    def parse(cls, value: Union["ResponseMode", str]) -> "ResponseMode":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        # Wire value used by clients of the hosted session service
        if normalized == "experimental_stream":
            return cls.STREAM
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidRequestError(
                f"Unknown response mode: {value!r}", code="invalid_response_mode"
            ) from None


class SessionAdapter:
    """Maintains chat sessions and turns them into completion requests."""

    def __init__(
        self,
        client: CompletionClient,
        store: SessionStore,
        settings: Optional[RelaySettings] = None,
        locks: Optional[SessionLockRegistry] = None,
    ) -> None:
        self.client = client
        self.store = store
        self.locks = locks or SessionLockRegistry()
        self.system_prompt = settings.system_prompt if settings else DEFAULT_SYSTEM_PROMPT

    async def create_session(
        self,
        message: str,
        mode: Union[ResponseMode, str] = ResponseMode.SYNC,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> SessionResult:
        """Start a new session with `message` as its first user turn.

        Returns the stored session in sync mode, or a SessionEventStream in
        stream mode (the session is stored when the stream completes).
        """
        mode = ResponseMode.parse(mode)
        self._validate_message(message)

        timestamp = now_ms()
        chat: ChatSession = {
            "id": new_id(),
            "created_at": timestamp,
            "updated_at": timestamp,
            "demo": True,
            "messages": [self._user_message(message, timestamp)],
        }
        logger.info(f"Creating chat {chat['id']} (mode={mode.value})")
        return await self._run_turn(chat, mode, model, api_key, lease=None)

    async def send_message(
        self,
        session_id: str,
        message: str,
        mode: Union[ResponseMode, str] = ResponseMode.SYNC,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> SessionResult:
        """Append a user turn to an existing session and get the reply.

        An unknown `session_id` is not an error: the call behaves exactly like
        `create_session` with the same arguments and returns a new session.
        """
        mode = ResponseMode.parse(mode)
        self._validate_message(message)

        lease = await self.locks.acquire(session_id)
        handed_off = False
        try:
            chat = self.store.get(session_id)
            if chat is None:
                lease.release()
                logger.info(f"Chat {session_id} not found; starting a new chat instead")
                return await self.create_session(message, mode, model=model, api_key=api_key)

            chat["messages"].append(self._user_message(message, now_ms()))
            result = await self._run_turn(chat, mode, model, api_key, lease=lease)
            # The event stream releases the lease when it ends
            handed_off = isinstance(result, SessionEventStream)
            return result
        finally:
            if not handed_off:
                lease.release()

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        return self.store.get(session_id)

    def require_session(self, session_id: str) -> ChatSession:
        chat = self.store.get(session_id)
        if chat is None:
            raise SessionNotFoundError(session_id)
        return chat

    def list_sessions(self) -> list[ChatSession]:
        return self.store.list()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _run_turn(
        self,
        chat: ChatSession,
        mode: ResponseMode,
        model: Optional[str],
        api_key: Optional[str],
        lease: Optional[SessionLease],
    ) -> SessionResult:
        options = CompletionOptions(
            model=model,
            stream=mode is ResponseMode.STREAM,
            api_key=api_key,
        )
        result = await self.client.create_chat_completion(self._build_request(chat), options)

        if mode is ResponseMode.STREAM:
            if not isinstance(result, CompletionStream):
                raise TypeError("Expected a CompletionStream for a streaming request")
            adapter = ChatToSessionStreamAdapter(chat, self.store)
            return SessionEventStream(
                adapter,
                result,
                on_close=lease.release if lease is not None else None,
            )

        if isinstance(result, CompletionStream):
            await result.aclose()
            raise TypeError("Expected a completion object for a sync request")
        return self._commit_sync_reply(chat, result)

    def _commit_sync_reply(self, chat: ChatSession, response: ChatCompletionResponse) -> ChatSession:
        timestamp = now_ms()
        chat["messages"].append(
            {
                "id": new_id(),
                "role": "assistant",
                "content": _extract_reply(response) or EMPTY_REPLY_FALLBACK,
                "created_at": timestamp,
            }
        )
        chat["updated_at"] = timestamp
        self.store.put(chat["id"], chat)
        logger.info(f"Chat {chat['id']} now has {len(chat['messages'])} messages")
        return chat

    def _build_request(self, chat: ChatSession) -> list[UpstreamMessage]:
        """Full history, prefixed by the fixed system instruction."""
        request: list[UpstreamMessage] = [{"role": "system", "content": self.system_prompt}]
        request.extend(
            {"role": msg["role"], "content": msg["content"]} for msg in chat["messages"]
        )
        return request

    @staticmethod
    def _user_message(content: str, timestamp: int) -> ChatMessage:
        return {"id": new_id(), "role": "user", "content": content, "created_at": timestamp}

    @staticmethod
    def _validate_message(message: str) -> None:
        if not isinstance(message, str) or not message.strip():
            raise InvalidRequestError("Message is required", code="missing_message")


def _extract_reply(response: ChatCompletionResponse) -> str:
    choices = response.get("choices") if isinstance(response, dict) else None
    if not isinstance(choices, list) or not choices:
        return ""
    choice = choices[0]
    if not isinstance(choice, dict):
        return ""
    message = choice.get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""
