"""Type definitions for the relay."""

from .chat import (
    ChatCompleteEvent,
    ChatCompletionChunk,
    ChatCompletionResponse,
    ChatMessage,
    ChatSession,
    Choice,
    Delta,
    MessageDeltaEvent,
    Role,
    UpstreamMessage,
    Usage,
)

__all__ = [
    "ChatCompleteEvent",
    "ChatCompletionChunk",
    "ChatCompletionResponse",
    "ChatMessage",
    "ChatSession",
    "Choice",
    "Delta",
    "MessageDeltaEvent",
    "Role",
    "UpstreamMessage",
    "Usage",
]
