"""Chat session support.

Key components:
- store: injected session storage (in-memory implementation)
- locks: per-session serialization of read-append-write sequences
- stream_adapter: convert chat completion SSE to session events
- adapter: create/continue sessions in sync or stream mode
"""

from .adapter import EMPTY_REPLY_FALLBACK, ResponseMode, SessionAdapter
from .locks import SessionLease, SessionLockRegistry
from .store import InMemorySessionStore, SessionStore
from .stream_adapter import ChatToSessionStreamAdapter, SessionEventStream

__all__ = [
    "ChatToSessionStreamAdapter",
    "EMPTY_REPLY_FALLBACK",
    "InMemorySessionStore",
    "ResponseMode",
    "SessionAdapter",
    "SessionEventStream",
    "SessionLease",
    "SessionLockRegistry",
    "SessionStore",
]
