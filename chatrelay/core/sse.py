"""SSE (Server-Sent Events) stream utilities and error detection."""

import codecs
import json
from typing import Any, Mapping, Optional

DONE_SENTINEL = "[DONE]"
DATA_PREFIX = "data:"


class SSELineDecoder:
    """Incrementally split an SSE byte stream into `data:` payloads.

    Upstream chunks do not respect line boundaries: a single record may
    arrive across several reads, and a multi-byte UTF-8 character may be cut
    in half. The decoder keeps the unterminated tail of the last read and
    only hands out payloads of complete lines.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Consume a chunk and return the payloads of every completed data line."""
        if not chunk:
            return []
        self._buffer += self._decoder.decode(chunk)

        payloads: list[str] = []
        while True:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            payload = _extract_data(line)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def flush(self) -> list[str]:
        """Return the payload of a trailing line that never got its newline."""
        self._buffer += self._decoder.decode(b"", final=True)
        leftover = self._buffer
        self._buffer = ""
        payload = _extract_data(leftover)
        return [payload] if payload is not None else []

    @property
    def pending(self) -> str:
        return self._buffer


def _extract_data(line: str) -> Optional[str]:
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):].strip()


def format_sse_data(payload: Mapping[str, Any]) -> bytes:
    """Format a payload as a bare `data: <json>\\n\\n` SSE record."""
    json_str = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return f"data: {json_str}\n\n".encode("utf-8")


def detect_sse_stream_error(payload: Mapping[str, Any]) -> Optional[str]:
    """
    Check if a parsed SSE record is an error report instead of a chunk.

    Returns an error message if an error is detected, None otherwise.

    Detects patterns like:
    - MiniMax: {"type":"error","error":{...}}
    - Generic: {"error":{...}}
    """
    if not isinstance(payload, Mapping):
        return None

    # Pattern 1: MiniMax-style {"type":"error", "error":{...}}
    if payload.get("type") == "error":
        error_obj = payload.get("error") or {}
        if isinstance(error_obj, Mapping):
            error_msg = error_obj.get("message") or str(dict(error_obj)) or "unknown error"
            http_code = error_obj.get("http_code", error_obj.get("code", "unknown"))
        else:
            error_msg = str(error_obj)
            http_code = "unknown"
        return f"SSE stream error: {error_msg} (http_code={http_code})"

    # Pattern 2: Generic OpenAI-style {"error":{...}} in stream
    error_obj = payload.get("error")
    if isinstance(error_obj, Mapping):
        error_msg = error_obj.get("message") or str(dict(error_obj))
        error_type = error_obj.get("type", error_obj.get("code", "unknown"))
        return f"SSE stream error: {error_msg} (type={error_type})"

    return None
