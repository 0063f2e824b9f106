"""chatrelay - chat sessions on top of any chat completion API

Lets a client written against a hosted assistant's chat-session model talk to
an OpenAI-compatible chat completion endpoint instead, keeping persistent
multi-turn chats, sync or streamed replies, and the `message_delta` /
`chat_complete` stream events.

This module provides:
- SessionAdapter: create and continue chats, sync or streamed
- CompletionClient: single requests to the completion endpoint
- InMemorySessionStore: process-local session storage
- create_app: a FastAPI application exposing the adapter

Example:
    >>> from chatrelay.main import create_app
    >>> import uvicorn
    >>> uvicorn.run(create_app(), host="127.0.0.1", port=3001)
"""

from .config_loader import load_config
from .core import (
    CompletionClient,
    CompletionOptions,
    CompletionStream,
    MissingCredentialError,
    RelayError,
    SessionNotFoundError,
    UpstreamStatusError,
    UpstreamStreamError,
)
from .logging import setup_logging
from .sessions import InMemorySessionStore, ResponseMode, SessionAdapter, SessionEventStream
from .settings import RelaySettings, load_settings

__version__ = "0.1.0"

__all__ = [
    "CompletionClient",
    "CompletionOptions",
    "CompletionStream",
    "InMemorySessionStore",
    "MissingCredentialError",
    "RelayError",
    "RelaySettings",
    "ResponseMode",
    "SessionAdapter",
    "SessionEventStream",
    "SessionNotFoundError",
    "UpstreamStatusError",
    "UpstreamStreamError",
    "load_config",
    "load_settings",
    "setup_logging",
]
