"""Types for chat sessions and the completion wire format.

This module defines type schemas in two groups:
- Session types: the chat-session model the relay exposes to its callers,
  including the outbound stream events
- Upstream types: the subset of the OpenAI-compatible chat completion format
  the relay sends and reads
"""

from typing import Any, Literal

from typing_extensions import TypedDict


Role = Literal["system", "user", "assistant"]


# =============================================================================
# Session Types
# =============================================================================
# These types are stored in the session store and serialized verbatim into
# sync responses and `chat_complete` events.


class ChatMessage(TypedDict, total=False):
    """A message inside a chat session.

    Messages are append-only: once a message is in a stored session it is
    never modified, removed or reordered.

    Attributes:
        id: Unique identifier for the message.
        role: Role of the message sender:
            - "user": User message
            - "assistant": Model response
            - "system": System instruction (never stored, request-only)
        content: Text content of the message.
        created_at: Creation time in epoch milliseconds.
    """
    id: str
    role: Role
    content: str
    created_at: int


class ChatSession(TypedDict):
    """A persistent multi-turn conversation.

    Attributes:
        id: Opaque, globally unique session identifier.
        created_at: Creation time in epoch milliseconds.
        updated_at: Time of the last committed turn in epoch milliseconds.
        demo: Compatibility marker expected by clients of the hosted
            session service. Always True.
        messages: Conversation in order, starting with the first user message.
    """
    id: str
    created_at: int
    updated_at: int
    demo: bool
    messages: list[ChatMessage]


class MessageDeltaEvent(TypedDict):
    """Outbound stream event carrying one content fragment."""
    type: Literal["message_delta"]
    content: str
    messageId: str


class ChatCompleteEvent(TypedDict):
    """Outbound stream event carrying the finalized session."""
    type: Literal["chat_complete"]
    chat: ChatSession


# =============================================================================
# Upstream Types
# =============================================================================
# OpenAI-compatible chat completion format (OpenRouter and friends).


class UpstreamMessage(TypedDict):
    """A message sent to the completion endpoint.

    Attributes:
        role: "system", "user" or "assistant".
        content: Text content.
    """
    role: Role
    content: str


class Delta(TypedDict, total=False):
    """A streamed delta of a choice.

    Attributes:
        role: Role indicator, typically "assistant" on the first chunk.
        content: Incremental text content. Concatenated in order it forms
            the complete reply.
    """
    role: str | None
    content: str | None


class Choice(TypedDict, total=False):
    """A choice in a chat completion response.

    Attributes:
        index: Zero-based index of this choice.
        delta: The incremental content for streaming responses.
        message: The complete message for non-streaming responses.
        finish_reason: Why generation stopped ("stop", "length", ...).
    """
    index: int
    delta: Delta | None
    message: dict[str, Any] | None
    finish_reason: str | None


class Usage(TypedDict, total=False):
    """Token usage information."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionChunk(TypedDict, total=False):
    """A streamed chunk of a chat completion response."""
    id: str
    object: str
    created: int
    model: str
    choices: list[Choice]
    usage: Usage | None


class ChatCompletionResponse(TypedDict, total=False):
    """A complete (non-streaming) chat completion response."""
    id: str
    object: str
    created: int
    model: str
    choices: list[Choice]
    usage: Usage | None
