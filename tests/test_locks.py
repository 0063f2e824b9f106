"""Tests for per-session locking."""

import asyncio

import pytest

from chatrelay.sessions import SessionLockRegistry


class TestSessionLockRegistry:
    """Tests for SessionLockRegistry."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self):
        """Test that a lease holds the lock until released."""
        registry = SessionLockRegistry()
        lease = await registry.acquire("chat-1")

        assert registry.is_locked("chat-1")
        assert not lease.released

        lease.release()
        assert lease.released
        assert not registry.is_locked("chat-1")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self):
        """Test that calling release multiple times is safe."""
        registry = SessionLockRegistry()
        lease = await registry.acquire("chat-1")
        lease.release()
        lease.release()

        # Would raise if the lock had been released twice
        second = await registry.acquire("chat-1")
        second.release()

    @pytest.mark.asyncio
    async def test_same_session_is_serialized(self):
        """Test that a second acquire waits for the first release."""
        registry = SessionLockRegistry()
        order = []

        first = await registry.acquire("chat-1")

        async def second_writer():
            async with registry.hold("chat-1"):
                order.append("second")

        task = asyncio.create_task(second_writer())
        await asyncio.sleep(0.01)
        assert order == []

        order.append("first")
        first.release()
        await task

        assert order == ["first", "second"]
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_different_sessions_do_not_block(self):
        """Test that locks are independent per session id."""
        registry = SessionLockRegistry()
        lease_a = await registry.acquire("a")
        lease_b = await asyncio.wait_for(registry.acquire("b"), timeout=1)

        assert registry.is_locked("a")
        assert registry.is_locked("b")
        lease_a.release()
        lease_b.release()

    @pytest.mark.asyncio
    async def test_cancelled_waiter_is_forgotten(self):
        """Test that cancelling a waiting task does not leak state."""
        registry = SessionLockRegistry()
        lease = await registry.acquire("chat-1")

        waiter = asyncio.create_task(registry.acquire("chat-1"))
        await asyncio.sleep(0.01)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        lease.release()
        assert len(registry) == 0
