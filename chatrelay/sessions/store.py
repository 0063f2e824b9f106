"""Session storage for chat sessions.

The store is a plain key-value map from session id to session. It does no
locking of its own: callers serialize read-append-write sequences per session
id through `SessionLockRegistry`.
"""

from __future__ import annotations

import copy
import logging
from collections import OrderedDict
from typing import Optional, Protocol, runtime_checkable

from ..types import ChatSession

logger = logging.getLogger("chatrelay")


@runtime_checkable
class SessionStore(Protocol):
    """Interface the session adapter depends on."""

    def get(self, session_id: str) -> Optional[ChatSession]: ...

    def put(self, session_id: str, session: ChatSession) -> None: ...

    def list(self) -> list[ChatSession]: ...

    def __contains__(self, session_id: object) -> bool: ...

    def __len__(self) -> int: ...


class InMemorySessionStore:
    """Process-local session store.

    Sessions are copied on the way in and on the way out, so a caller holding
    a session can mutate it freely without touching what is stored. Nothing
    survives the process.
    """

    def __init__(self) -> None:
        self._sessions: OrderedDict[str, ChatSession] = OrderedDict()

    def get(self, session_id: str) -> Optional[ChatSession]:
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return copy.deepcopy(session)

    def put(self, session_id: str, session: ChatSession) -> None:
        if not session_id:
            raise ValueError("session_id is required")
        # Replacing keeps the original insertion position
        self._sessions[session_id] = copy.deepcopy(session)
        logger.debug(
            f"InMemorySessionStore: Stored session {session_id} "
            f"({len(session['messages'])} messages)"
        )

    def list(self) -> list[ChatSession]:
        """Return every session in insertion order."""
        return [copy.deepcopy(session) for session in self._sessions.values()]

    def clear(self) -> None:
        self._sessions.clear()
        logger.info("InMemorySessionStore: Cleared all sessions")

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
