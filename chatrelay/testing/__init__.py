"""Testing utilities for in-process relay simulations."""

from .fake_upstream import DEFAULT_ROUTE, FakeUpstream, UpstreamResponse
from .response_builders import build_chat_completion, build_stream_chunks, encode_sse_event

__all__ = [
    "DEFAULT_ROUTE",
    "FakeUpstream",
    "UpstreamResponse",
    "build_chat_completion",
    "build_stream_chunks",
    "encode_sse_event",
]
