"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, AsyncIterator, Iterable

import httpx
import pytest

# Make the package importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatrelay.core.client import CompletionClient
from chatrelay.sessions import InMemorySessionStore, SessionAdapter
from chatrelay.settings import RelaySettings, UpstreamSettings
from chatrelay.testing import FakeUpstream

UPSTREAM_BASE_URL = "http://upstream.local/api/v1"
TEST_SYSTEM_PROMPT = "You are a test assistant."


# =============================================================================
# Helpers
# =============================================================================


async def aiter_chunks(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    """Helper to create async iterator from list of bytes."""
    for chunk in chunks:
        yield chunk


def parse_session_events(raw: bytes | Iterable[bytes]) -> list[dict[str, Any]]:
    """Parse outbound `data: <json>\\n\\n` records into payload dicts."""
    if not isinstance(raw, (bytes, bytearray)):
        raw = b"".join(raw)
    events = []
    for block in raw.decode("utf-8").split("\n\n"):
        if not block:
            continue
        assert block.startswith("data: "), block
        events.append(json.loads(block[len("data: "):]))
    return events


def build_settings(
    *,
    api_key: str | None = "test-key",
    base_url: str = UPSTREAM_BASE_URL,
    default_model: str = "test/default-model",
) -> RelaySettings:
    return RelaySettings(
        upstream=UpstreamSettings(
            base_url=base_url,
            api_key=api_key,
            default_model=default_model,
            site_url="http://relay.test",
            site_name="relay-tests",
        ),
        system_prompt=TEST_SYSTEM_PROMPT,
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def settings() -> RelaySettings:
    return build_settings()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def client(upstream: FakeUpstream, settings: RelaySettings) -> CompletionClient:
    return CompletionClient(settings.upstream, transport=httpx.ASGITransport(app=upstream.app))


@pytest.fixture
def adapter(
    client: CompletionClient,
    store: InMemorySessionStore,
    settings: RelaySettings,
) -> SessionAdapter:
    return SessionAdapter(client, store, settings)
