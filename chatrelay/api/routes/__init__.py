"""API routes for the relay."""

from .chat import chat
from .chats import get_chat, list_chats

__all__ = [
    "chat",
    "get_chat",
    "list_chats",
]
