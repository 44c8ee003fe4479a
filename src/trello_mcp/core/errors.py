from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx


class ErrorCode(str, Enum):
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVER_ERROR = "SERVER_ERROR"
    API_ERROR = "API_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


NETWORK_MESSAGE = "Network error - unable to reach the API"
TIMEOUT_MESSAGE = "Request timeout - API did not respond in time"
UNKNOWN_MESSAGE = "Unknown error occurred"

_STATUS_ERRORS: Dict[int, tuple[ErrorCode, str]] = {
    401: (
        ErrorCode.INVALID_CREDENTIALS,
        "Invalid or expired Trello credentials. Please update your API key and "
        "token in the MCP connection settings.",
    ),
    403: (
        ErrorCode.INSUFFICIENT_PERMISSIONS,
        "Insufficient permissions. Your Trello token may need additional "
        "permissions, or the resource may be private. Please check your Trello "
        "settings or update your token.",
    ),
    404: (ErrorCode.NOT_FOUND, "Resource not found"),
    429: (ErrorCode.RATE_LIMIT_EXCEEDED, "Rate limit exceeded"),
}


class TrelloError(Exception):
    """The single error shape surfaced by the client for a failed call."""

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        status: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status
        self.detail = detail

    def __repr__(self) -> str:
        return (
            f"TrelloError(code={self.code.value!r}, status={self.status!r}, "
            f"message={self.message!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"message": self.message, "code": self.code.value}
        if self.status is not None:
            out["status"] = self.status
        if self.detail is not None:
            out["detail"] = self.detail
        return out


# A failure is either an exception raised while talking to the backend or the
# HTTP status of a non-2xx response.
Failure = Union[BaseException, int]


def _is_timeout(exc: BaseException) -> bool:
    # anyio.fail_after raises the builtin TimeoutError on expiry
    return isinstance(exc, (httpx.TimeoutException, TimeoutError))


def _is_network(exc: BaseException) -> bool:
    return isinstance(exc, httpx.TransportError) and not _is_timeout(exc)


def is_retryable(failure: Failure) -> bool:
    """Network failures, timeouts, 5xx and 429 are transient; the rest is terminal."""
    if isinstance(failure, int):
        return failure >= 500 or failure == 429
    return _is_timeout(failure) or _is_network(failure)


def normalize_error(failure: Failure, *, detail: Optional[str] = None) -> TrelloError:
    """Map a raw failure onto a TrelloError with a fixed code."""
    if isinstance(failure, int):
        status = failure
        if status in _STATUS_ERRORS:
            code, message = _STATUS_ERRORS[status]
        elif status >= 500:
            code, message = ErrorCode.SERVER_ERROR, "Server error"
        else:
            code, message = ErrorCode.API_ERROR, f"HTTP {status} error"
        return TrelloError(message, code=code, status=status, detail=detail)

    text = detail if detail is not None else (str(failure) or type(failure).__name__)
    if _is_timeout(failure):
        return TrelloError(TIMEOUT_MESSAGE, code=ErrorCode.TIMEOUT_ERROR, detail=text)
    if _is_network(failure):
        return TrelloError(NETWORK_MESSAGE, code=ErrorCode.NETWORK_ERROR, detail=text)
    return TrelloError(UNKNOWN_MESSAGE, code=ErrorCode.UNKNOWN_ERROR, detail=text)


__all__ = [
    "ErrorCode",
    "Failure",
    "TrelloError",
    "is_retryable",
    "normalize_error",
]
