"""Client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Sequence

import httpx

from ..settings import UpstreamSettings
from ..types import ChatCompletionResponse, UpstreamMessage
from .exceptions import (
    InvalidRequestError,
    MissingCredentialError,
    UpstreamConnectionError,
    UpstreamStatusError,
    UpstreamStreamError,
)

logger = logging.getLogger("chatrelay")


@dataclass
class CompletionOptions:
    """Per-call generation parameters. Unset fields fall back to settings."""

    model: Optional[str] = None
    stream: bool = False
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    api_key: Optional[str] = None


def format_httpx_error(exc: httpx.HTTPError, url: str, timeout: Optional[float]) -> str:
    """Produce a detailed, user-facing description of an httpx error."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)
    parts.append(f"url={url}")
    if isinstance(exc, httpx.TimeoutException):
        parts.append(f"timeout={timeout}s")
    return "; ".join(parts)


class CompletionStream:
    """An open upstream token stream.

    The caller owns the stream: it must either read `aiter_bytes()` to
    exhaustion or call `aclose()`. Closing releases both the HTTP response
    and the client that produced it.
    """

    def __init__(self, response: httpx.Response, client: httpx.AsyncClient, url: str) -> None:
        self._response = response
        self._client = client
        self._url = url
        self._closed = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def closed(self) -> bool:
        return self._closed

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Yield raw upstream bytes; transport failures become UpstreamStreamError."""
        try:
            async for chunk in self._response.aiter_bytes():
                if chunk:
                    yield chunk
        except httpx.HTTPError as exc:
            logger.error(f"Upstream stream from {self._url} failed: {exc.__class__.__name__}: {exc}")
            raise UpstreamStreamError(
                f"Upstream stream failed: {format_httpx_error(exc, self._url, None)}"
            ) from exc
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug(f"Closing stream for {self._url}")
        await self._response.aclose()
        await self._client.aclose()

    async def __aenter__(self) -> "CompletionStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class CompletionClient:
    """Issues single chat completion requests to the configured endpoint.

    The client never retries and never touches session state. A transport can
    be injected for tests (e.g. `httpx.ASGITransport` over a fake upstream).
    """

    def __init__(
        self,
        settings: UpstreamSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._transport = transport
        if not settings.api_key:
            logger.warning("No upstream API key configured. User-provided keys will be required.")

    def resolve_api_key(self, override: Optional[str]) -> str:
        """Return the effective credential: caller override, then process default."""
        effective = (override or "").strip() or (self.settings.api_key or "")
        if not effective:
            raise MissingCredentialError()
        return effective

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.settings.site_url,
            "X-Title": self.settings.site_name,
        }

    def _build_timeout(self) -> httpx.Timeout:
        if self.settings.timeout_seconds is None:
            return httpx.Timeout(None)
        return httpx.Timeout(self.settings.timeout_seconds)

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._build_timeout(),
            transport=self._transport,
            follow_redirects=True,
        )

    async def create_chat_completion(
        self,
        messages: Sequence[UpstreamMessage],
        options: Optional[CompletionOptions] = None,
    ) -> ChatCompletionResponse | CompletionStream:
        """Send one chat completion request.

        Args:
            messages: Ordered conversation, at least one entry.
            options: Generation parameters and optional credential override.

        Returns:
            The parsed completion when `options.stream` is false, otherwise an
            open CompletionStream positioned at the start of upstream output.

        Raises:
            InvalidRequestError: If `messages` is empty.
            MissingCredentialError: If no API key is available (no I/O happens).
            UpstreamStatusError: On a non-2xx upstream status.
            UpstreamConnectionError: If the endpoint cannot be reached.
        """
        options = options or CompletionOptions()
        if not messages:
            raise InvalidRequestError("At least one message is required", code="missing_messages")

        api_key = self.resolve_api_key(options.api_key)
        model = options.model or self.settings.default_model
        body: dict[str, Any] = {
            "model": model,
            "messages": list(messages),
            "stream": options.stream,
            "temperature": (
                self.settings.temperature if options.temperature is None else options.temperature
            ),
            "max_tokens": options.max_tokens or self.settings.max_tokens,
        }
        url = self.settings.completions_url

        logger.info(
            "Upstream API request: url=%s model=%s messageCount=%d stream=%s",
            url,
            model,
            len(body["messages"]),
            options.stream,
        )

        if options.stream:
            return await self._stream_request(url, self._build_headers(api_key), body)
        return await self._request(url, self._build_headers(api_key), body)

    async def _request(
        self, url: str, headers: dict[str, str], body: dict[str, Any]
    ) -> ChatCompletionResponse:
        try:
            async with self._new_client() as client:
                resp = await client.post(url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            detail = format_httpx_error(exc, url, self.settings.timeout_seconds)
            logger.error(f"Upstream request to {url} failed: {detail}")
            raise UpstreamConnectionError(f"Upstream request failed: {detail}") from exc

        logger.debug(f"Received response from {url}: status {resp.status_code}")
        if not resp.is_success:
            self._raise_status_error(url, resp.status_code, resp.reason_phrase, resp.text)

        try:
            return resp.json()
        except json.JSONDecodeError as exc:
            logger.error(f"Upstream returned invalid JSON from {url}: {exc}")
            raise UpstreamStatusError(resp.status_code, resp.text, "invalid JSON body") from exc

    async def _stream_request(
        self, url: str, headers: dict[str, str], body: dict[str, Any]
    ) -> CompletionStream:
        client = self._new_client()
        try:
            request = client.build_request("POST", url, headers=headers, json=body)
            resp = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            detail = format_httpx_error(exc, url, self.settings.timeout_seconds)
            logger.error(f"Failed to send streaming request to {url}: {detail}")
            raise UpstreamConnectionError(f"Upstream request failed: {detail}") from exc
        except BaseException:
            await client.aclose()
            raise

        if not resp.is_success:
            try:
                data = await resp.aread()
            finally:
                await resp.aclose()
                await client.aclose()
            self._raise_status_error(
                url, resp.status_code, resp.reason_phrase, data.decode("utf-8", errors="replace")
            )

        logger.info(f"Streaming request to {url} successful, status {resp.status_code}")
        return CompletionStream(resp, client, url)

    @staticmethod
    def _raise_status_error(url: str, status_code: int, reason: str, body_text: str) -> None:
        logger.error(
            "Upstream API error: url=%s status=%s statusText=%s body=%s",
            url,
            status_code,
            reason,
            body_text,
        )
        raise UpstreamStatusError(status_code, body_text, reason or None)
