"""API module for the relay."""

from .routes import chat, get_chat, list_chats

__all__ = [
    "chat",
    "get_chat",
    "list_chats",
]
