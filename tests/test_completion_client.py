"""Tests for the completion client."""

import json

import httpx
import pytest

from chatrelay.core.client import CompletionClient, CompletionOptions, CompletionStream
from chatrelay.core.exceptions import (
    InvalidRequestError,
    MissingCredentialError,
    UpstreamConnectionError,
    UpstreamStatusError,
    UpstreamStreamError,
)
from chatrelay.testing import build_chat_completion, build_stream_chunks, encode_sse_event

from conftest import UPSTREAM_BASE_URL, build_settings

MESSAGES = [{"role": "user", "content": "hello"}]


class _RecordingHandler:
    """MockTransport handler that remembers requests and replays one response."""

    def __init__(self, response_factory):
        self.requests = []
        self._factory = response_factory

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._factory(request)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


class _FailingByteStream(httpx.AsyncByteStream):
    """Yields one chunk, then fails the way a dropped connection does."""

    def __init__(self, first: bytes):
        self.first = first
        self.closed = False

    async def __aiter__(self):
        yield self.first
        raise httpx.ReadError("connection reset by peer")

    async def aclose(self) -> None:
        self.closed = True


def _client(handler, **settings_kwargs) -> CompletionClient:
    settings = build_settings(**settings_kwargs)
    return CompletionClient(settings.upstream, transport=httpx.MockTransport(handler))


class TestCredentials:
    """Tests for API key resolution."""

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_any_io(self):
        """Test that no request is sent when no credential exists."""
        handler = _RecordingHandler(lambda r: httpx.Response(200, json=build_chat_completion("x")))
        client = _client(handler, api_key=None)

        with pytest.raises(MissingCredentialError):
            await client.create_chat_completion(MESSAGES)
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_caller_key_overrides_default(self):
        """Test that a per-call key wins over the configured one."""
        handler = _RecordingHandler(lambda r: httpx.Response(200, json=build_chat_completion("x")))
        client = _client(handler, api_key="process-key")

        await client.create_chat_completion(MESSAGES, CompletionOptions(api_key="caller-key"))
        assert handler.requests[-1].headers["authorization"] == "Bearer caller-key"

        await client.create_chat_completion(MESSAGES)
        assert handler.requests[-1].headers["authorization"] == "Bearer process-key"

    def test_blank_override_falls_back_to_default(self):
        """Test that a whitespace-only override is ignored."""
        client = _client(lambda r: httpx.Response(200), api_key="process-key")
        assert client.resolve_api_key("   ") == "process-key"


class TestRequestShape:
    """Tests for the outbound request."""

    @pytest.mark.asyncio
    async def test_body_uses_configured_defaults(self):
        """Test that model, temperature and max_tokens default from settings."""
        handler = _RecordingHandler(lambda r: httpx.Response(200, json=build_chat_completion("x")))
        client = _client(handler)

        await client.create_chat_completion(MESSAGES)

        request = handler.requests[-1]
        assert str(request.url) == f"{UPSTREAM_BASE_URL}/chat/completions"
        assert handler.last_json == {
            "model": "test/default-model",
            "messages": MESSAGES,
            "stream": False,
            "temperature": 0.7,
            "max_tokens": 4000,
        }

    @pytest.mark.asyncio
    async def test_options_override_defaults(self):
        """Test that per-call options are forwarded."""
        handler = _RecordingHandler(lambda r: httpx.Response(200, json=build_chat_completion("x")))
        client = _client(handler)

        await client.create_chat_completion(
            MESSAGES,
            CompletionOptions(model="other/model", temperature=0.0, max_tokens=12),
        )

        body = handler.last_json
        assert body["model"] == "other/model"
        assert body["temperature"] == 0.0
        assert body["max_tokens"] == 12

    @pytest.mark.asyncio
    async def test_sends_attribution_headers(self):
        """Test that referer and title headers are attached."""
        handler = _RecordingHandler(lambda r: httpx.Response(200, json=build_chat_completion("x")))
        client = _client(handler)

        await client.create_chat_completion(MESSAGES)

        headers = handler.requests[-1].headers
        assert headers["http-referer"] == "http://relay.test"
        assert headers["x-title"] == "relay-tests"
        assert headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_rejects_empty_messages(self):
        """Test that an empty conversation is refused."""
        client = _client(lambda r: httpx.Response(200))
        with pytest.raises(InvalidRequestError) as exc_info:
            await client.create_chat_completion([])
        assert exc_info.value.code == "missing_messages"


class TestSyncCompletion:
    """Tests for non-streaming calls."""

    @pytest.mark.asyncio
    async def test_returns_parsed_completion(self):
        """Test that the JSON body is returned as-is."""
        payload = build_chat_completion("hi there")
        client = _client(lambda r: httpx.Response(200, json=payload))

        result = await client.create_chat_completion(MESSAGES)
        assert result == payload

    @pytest.mark.asyncio
    async def test_non_success_status_raises(self):
        """Test that upstream error statuses surface with body text."""
        client = _client(lambda r: httpx.Response(401, text='{"error":"bad key"}'))

        with pytest.raises(UpstreamStatusError) as exc_info:
            await client.create_chat_completion(MESSAGES)

        assert exc_info.value.status_code == 401
        assert exc_info.value.body == '{"error":"bad key"}'
        assert "401" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_invalid_json_body_raises(self):
        """Test that a 200 with a non-JSON body is reported."""
        client = _client(lambda r: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(UpstreamStatusError) as exc_info:
            await client.create_chat_completion(MESSAGES)
        assert exc_info.value.body == "<html>oops</html>"

    @pytest.mark.asyncio
    async def test_connection_failure_raises(self):
        """Test that transport errors become UpstreamConnectionError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(UpstreamConnectionError, match="ConnectError"):
            await client.create_chat_completion(MESSAGES)


class TestStreamingCompletion:
    """Tests for streaming calls."""

    @pytest.mark.asyncio
    async def test_returns_open_stream(self):
        """Test that the raw SSE bytes are exposed unchanged."""
        raw = b"".join(encode_sse_event(c) for c in build_stream_chunks(["a", "b"]))
        handler = _RecordingHandler(
            lambda r: httpx.Response(200, content=raw, headers={"content-type": "text/event-stream"})
        )
        client = _client(handler)

        stream = await client.create_chat_completion(MESSAGES, CompletionOptions(stream=True))

        assert isinstance(stream, CompletionStream)
        assert handler.last_json["stream"] is True
        received = b"".join([chunk async for chunk in stream.aiter_bytes()])
        assert received == raw
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_non_success_status_raises_before_streaming(self):
        """Test that an error status is raised instead of returning a stream."""
        client = _client(lambda r: httpx.Response(429, text="slow down"))

        with pytest.raises(UpstreamStatusError) as exc_info:
            await client.create_chat_completion(MESSAGES, CompletionOptions(stream=True))

        assert exc_info.value.status_code == 429
        assert exc_info.value.body == "slow down"

    @pytest.mark.asyncio
    async def test_connection_failure_raises(self):
        """Test that transport errors while opening a stream are mapped."""

        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = _client(handler)
        with pytest.raises(UpstreamConnectionError):
            await client.create_chat_completion(MESSAGES, CompletionOptions(stream=True))

    @pytest.mark.asyncio
    async def test_read_error_mid_stream_raises_stream_error(self):
        """Test that a dropped connection surfaces as UpstreamStreamError."""
        first = encode_sse_event(build_stream_chunks(["partial"])[1])
        body = _FailingByteStream(first)
        client = _client(lambda r: httpx.Response(200, stream=body))

        stream = await client.create_chat_completion(MESSAGES, CompletionOptions(stream=True))

        received = []
        with pytest.raises(UpstreamStreamError, match="ReadError"):
            async for chunk in stream.aiter_bytes():
                received.append(chunk)

        assert received == [first]
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self):
        """Test that closing an unread stream twice is harmless."""
        client = _client(lambda r: httpx.Response(200, content=b"data: [DONE]\n\n"))

        stream = await client.create_chat_completion(MESSAGES, CompletionOptions(stream=True))
        async with stream:
            pass
        await stream.aclose()
        assert stream.closed is True
