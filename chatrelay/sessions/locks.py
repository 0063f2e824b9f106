"""Per-session serialization for read-append-write sequences."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

logger = logging.getLogger("chatrelay")


@dataclass
class _KeyLockState:
    """Lock plus the number of tasks holding or waiting for it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SessionLease:
    """Exclusive right to mutate one session until released.

    A lease may outlive the call that acquired it (stream mode keeps it until
    the event stream ends), so release is explicit and idempotent.
    """

    def __init__(self, registry: "SessionLockRegistry", session_id: str) -> None:
        self._registry = registry
        self.session_id = session_id
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._registry._release(self.session_id)


class SessionLockRegistry:
    """One asyncio.Lock per session id.

    Locks are created on first use and discarded once no task holds or waits
    for them, so the registry does not grow with the number of sessions.
    """

    def __init__(self) -> None:
        self._states: dict[str, _KeyLockState] = {}

    async def acquire(self, session_id: str) -> SessionLease:
        state = self._states.get(session_id)
        if state is None:
            state = _KeyLockState()
            self._states[session_id] = state
        state.users += 1
        try:
            await state.lock.acquire()
        except BaseException:
            # Cancelled while waiting
            self._forget(session_id, state)
            raise
        logger.debug("SessionLockRegistry: Acquired lock for %s", session_id)
        return SessionLease(self, session_id)

    def _release(self, session_id: str) -> None:
        state = self._states.get(session_id)
        if state is None:
            return
        state.lock.release()
        self._forget(session_id, state)
        logger.debug("SessionLockRegistry: Released lock for %s", session_id)

    def _forget(self, session_id: str, state: _KeyLockState) -> None:
        state.users -= 1
        if state.users <= 0 and self._states.get(session_id) is state:
            del self._states[session_id]

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[SessionLease]:
        lease = await self.acquire(session_id)
        try:
            yield lease
        finally:
            lease.release()

    def is_locked(self, session_id: str) -> bool:
        state = self._states.get(session_id)
        return state is not None and state.lock.locked()

    def __len__(self) -> int:
        return len(self._states)
