"""Core exceptions for the relay."""

from typing import Optional


class RelayError(Exception):
    """Base exception for relay errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingCredentialError(RelayError):
    """Raised when neither the caller nor the process supplies an API key."""

    def __init__(
        self,
        message: str = "An upstream API key is required. Please configure an API key in settings.",
    ) -> None:
        super().__init__(message)


class UpstreamStatusError(RelayError):
    """Raised when the completion endpoint answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str, reason: Optional[str] = None) -> None:
        message = f"Upstream API error: {status_code}"
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UpstreamConnectionError(RelayError):
    """Raised when the completion endpoint cannot be reached at all."""

    pass


class UpstreamStreamError(RelayError):
    """Raised when an open upstream stream fails or reports an error mid-generation."""

    pass


class SessionNotFoundError(RelayError):
    """Raised by read operations when a session id is unknown."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Chat not found: {session_id}")
        self.session_id = session_id


class InvalidRequestError(RelayError):
    """Raised when caller input is invalid."""

    def __init__(self, message: str, code: str = "invalid_request") -> None:
        super().__init__(message)
        self.code = code
