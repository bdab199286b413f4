"""
Failure classification for remote calls

Decides whether a failure is transient (worth retrying) or permanent.
Decision order, first match wins:

1. HTTP status code carried by the failure
2. Message patterns, permanent patterns before retryable ones
3. Machine-readable network error code
4. Anything else is permanent, so unexpected bugs are not retried as if transient
"""

import errno
import socket
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type

import httpx


class ErrorClassification(str, Enum):
    RETRYABLE = "retryable"
    PERMANENT = "permanent"


RETRYABLE_HTTP_STATUS_CODES: FrozenSet[int] = frozenset({
    429,  # Too Many Requests
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
})

NON_RETRYABLE_HTTP_STATUS_CODES: FrozenSet[int] = frozenset({
    400,  # Bad Request
    401,  # Unauthorized
    403,  # Forbidden
    404,  # Not Found
    405,  # Method Not Allowed
    422,  # Unprocessable Entity
})

NON_RETRYABLE_ERROR_PATTERNS: Tuple[str, ...] = (
    "invalid api key",
    "authentication failed",
    "unauthorized",
    "forbidden",
    "not found",
    "bad request",
    "invalid request",
    "malformed",
)

RETRYABLE_ERROR_PATTERNS: Tuple[str, ...] = (
    "timeout",
    "etimedout",
    "ehostunreach",
    "econnrefused",
    "econnreset",
    "epipe",
    "rate limit",
    "service unavailable",
    "gateway timeout",
    "too many requests",
    "network error",
)

RETRYABLE_ERROR_CODES: FrozenSet[str] = frozenset({
    "ETIMEDOUT",
    "EHOSTUNREACH",
    "ECONNREFUSED",
    "ECONNRESET",
    "EPIPE",
    "ENOTFOUND",
    "EAI_AGAIN",
})

# Exception types that carry no code of their own; checked in order, subclasses first
_EXCEPTION_TYPE_CODES: Tuple[Tuple[Type[BaseException], str], ...] = (
    (httpx.TimeoutException, "ETIMEDOUT"),
    (httpx.ConnectError, "ECONNREFUSED"),
    (httpx.RemoteProtocolError, "ECONNRESET"),
    (httpx.NetworkError, "ECONNRESET"),
    (socket.gaierror, "ENOTFOUND"),
    (ConnectionRefusedError, "ECONNREFUSED"),
    (ConnectionResetError, "ECONNRESET"),
    (ConnectionAbortedError, "ECONNRESET"),
    (BrokenPipeError, "EPIPE"),
    (TimeoutError, "ETIMEDOUT"),
)

_GAI_ERRNO_CODES: Dict[int, str] = {
    getattr(socket, "EAI_AGAIN", -3): "EAI_AGAIN",
    getattr(socket, "EAI_NONAME", -2): "ENOTFOUND",
}

_MAX_CAUSE_DEPTH = 5


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def get_status_code(error: BaseException) -> Optional[int]:
    """HTTP-like status code from the failure or its attached response"""
    for attr in ("status_code", "status"):
        code = _as_int(getattr(error, attr, None))
        if code is not None:
            return code

    response = getattr(error, "response", None)
    if response is not None:
        for attr in ("status_code", "status"):
            code = _as_int(getattr(response, attr, None))
            if code is not None:
                return code

    return None


def get_error_code(error: BaseException) -> Optional[str]:
    """Machine-readable network error code, following the ``__cause__`` chain"""
    current: Optional[BaseException] = error
    depth = 0

    while current is not None and depth < _MAX_CAUSE_DEPTH:
        code = getattr(current, "code", None)
        if isinstance(code, str) and code.upper() in RETRYABLE_ERROR_CODES:
            return code.upper()

        if isinstance(current, socket.gaierror) and current.errno in _GAI_ERRNO_CODES:
            return _GAI_ERRNO_CODES[current.errno]

        err_no = getattr(current, "errno", None)
        if isinstance(err_no, int) and err_no in errno.errorcode:
            name = errno.errorcode[err_no]
            if name in RETRYABLE_ERROR_CODES:
                return name

        for exc_type, type_code in _EXCEPTION_TYPE_CODES:
            if isinstance(current, exc_type):
                return type_code

        current = current.__cause__
        depth += 1

    return None


def get_error_message(error: BaseException) -> str:
    """Concise message: API body message, then the exception text, then its type"""
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(body.get("error"), dict):
            message = body["error"].get("message") or message
        if message:
            return str(message)

    message = str(error)
    if message:
        return message

    return type(error).__name__


def classify_error(error: Optional[BaseException]) -> ErrorClassification:
    """Classify a failure as retryable or permanent"""
    if error is None:
        return ErrorClassification.PERMANENT

    # 1. HTTP status codes
    status_code = get_status_code(error)
    if status_code is not None:
        if status_code in NON_RETRYABLE_HTTP_STATUS_CODES:
            return ErrorClassification.PERMANENT
        if status_code in RETRYABLE_HTTP_STATUS_CODES:
            return ErrorClassification.RETRYABLE

    # 2. Message patterns, permanent first
    message = get_error_message(error).lower()

    if any(pattern in message for pattern in NON_RETRYABLE_ERROR_PATTERNS):
        return ErrorClassification.PERMANENT

    if any(pattern in message for pattern in RETRYABLE_ERROR_PATTERNS):
        return ErrorClassification.RETRYABLE

    # 3. Network error codes
    if get_error_code(error) is not None:
        return ErrorClassification.RETRYABLE

    # 4. Unknown
    return ErrorClassification.PERMANENT


def is_retryable_error(error: Optional[BaseException]) -> bool:
    return classify_error(error) is ErrorClassification.RETRYABLE


def create_error_context(error: BaseException, attempt: int, max_retries: int) -> Dict[str, Any]:
    """Details of a failed attempt for log records (attempt numbers are 1-indexed)"""
    return {
        "error": get_error_message(error),
        "error_type": type(error).__name__,
        "status_code": get_status_code(error),
        "error_code": get_error_code(error),
        "attempt": attempt + 1,
        "max_attempts": max_retries + 1,
        "retryable": is_retryable_error(error),
    }
