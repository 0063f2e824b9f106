"""Core functionality for the relay."""

from .client import CompletionClient, CompletionOptions, CompletionStream, format_httpx_error
from .exceptions import (
    InvalidRequestError,
    MissingCredentialError,
    RelayError,
    SessionNotFoundError,
    UpstreamConnectionError,
    UpstreamStatusError,
    UpstreamStreamError,
)
from .sse import DONE_SENTINEL, SSELineDecoder, detect_sse_stream_error, format_sse_data

__all__ = [
    "CompletionClient",
    "CompletionOptions",
    "CompletionStream",
    "DONE_SENTINEL",
    "InvalidRequestError",
    "MissingCredentialError",
    "RelayError",
    "SSELineDecoder",
    "SessionNotFoundError",
    "UpstreamConnectionError",
    "UpstreamStatusError",
    "UpstreamStreamError",
    "detect_sse_stream_error",
    "format_httpx_error",
    "format_sse_data",
]
