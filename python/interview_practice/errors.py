"""
Exception taxonomy for the interview practice client.

Every failure that crosses the HTTP boundary is converted into one of these
types so the session controller only ever has to catch PracticeClientError.

Hierarchy:
    PracticeClientError
        TransportError  - connection failures and non-2xx statuses
        BackendError    - tRPC error envelopes returned by the backend
        ProtocolError   - 2xx payloads that fail validation
        StreamError     - follow-up stream reported an error or ended early
"""

from __future__ import annotations


class PracticeClientError(Exception):
    """Base exception for all practice client failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TransportError(PracticeClientError):
    """Raised when the backend cannot be reached or answers with a bad status."""

    def __init__(
        self,
        operation: str,
        cause: str,
        status_code: int | None = None,
    ) -> None:
        self.operation = operation
        self.status_code = status_code
        if status_code is None:
            message = f"{operation}: {cause}"
        else:
            message = f"{operation}: HTTP {status_code} - {cause}"
        super().__init__(message)


class BackendError(PracticeClientError):
    """Raised when the backend returns a tRPC error envelope."""

    def __init__(self, operation: str, code: str, message: str) -> None:
        self.operation = operation
        self.code = code
        self.backend_message = message
        super().__init__(f"{operation}: [{code}] {message}")


class ProtocolError(PracticeClientError):
    """Raised when a successful response does not match the expected shape."""

    def __init__(self, operation: str, cause: str) -> None:
        self.operation = operation
        super().__init__(f"{operation}: malformed payload - {cause}")


class StreamError(PracticeClientError):
    """Raised when the optimized follow-up stream fails."""
