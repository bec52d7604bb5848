"""Known numeric error codes returned by batchexecute RPCs.

The server reports failures as bare integers: its own application codes,
gRPC canonical codes (1-16) or HTTP statuses. Each entry records whether a
retry can help.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorType(str, Enum):
    """Broad error category for an RPC error code."""

    UNKNOWN = "unknown"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    SERVER_ERROR = "server_error"
    PERMISSION_DENIED = "permission_denied"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ErrorCode:
    code: int
    type: ErrorType
    message: str
    retryable: bool


def _table(*entries: tuple[int, ErrorType, str, bool]) -> dict[int, ErrorCode]:
    return {code: ErrorCode(code, kind, message, retryable) for code, kind, message, retryable in entries}


ERROR_CODES: dict[int, ErrorCode] = _table(
    # Application codes
    (277566, ErrorType.AUTHENTICATION, "Authentication required", False),
    (277567, ErrorType.AUTHENTICATION, "Authentication token expired", False),
    (80620, ErrorType.AUTHORIZATION, "Access denied", False),
    (324934, ErrorType.RATE_LIMIT, "Rate limit exceeded", True),
    (143, ErrorType.NOT_FOUND, "Resource not found", False),
    # gRPC canonical codes
    (1, ErrorType.INVALID_INPUT, "Invalid request", False),
    (2, ErrorType.SERVER_ERROR, "Internal server error", True),
    (3, ErrorType.UNAVAILABLE, "Service unavailable", True),
    (4, ErrorType.PERMISSION_DENIED, "Permission denied", False),
    (5, ErrorType.NOT_FOUND, "Not found", False),
    (6, ErrorType.INVALID_INPUT, "Invalid argument", False),
    (7, ErrorType.PERMISSION_DENIED, "Permission denied", False),
    (8, ErrorType.RESOURCE_EXHAUSTED, "Resource exhausted", True),
    (9, ErrorType.INVALID_INPUT, "Failed precondition", False),
    (10, ErrorType.SERVER_ERROR, "Aborted", True),
    (11, ErrorType.INVALID_INPUT, "Out of range", False),
    (12, ErrorType.SERVER_ERROR, "Unimplemented", False),
    (13, ErrorType.SERVER_ERROR, "Internal error", True),
    (14, ErrorType.UNAVAILABLE, "Unavailable", True),
    (15, ErrorType.SERVER_ERROR, "Data loss", False),
    (16, ErrorType.AUTHENTICATION, "Unauthenticated", False),
    # HTTP statuses
    (400, ErrorType.INVALID_INPUT, "Bad Request", False),
    (401, ErrorType.AUTHENTICATION, "Unauthorized", False),
    (403, ErrorType.PERMISSION_DENIED, "Forbidden", False),
    (404, ErrorType.NOT_FOUND, "Not Found", False),
    (429, ErrorType.RATE_LIMIT, "Too Many Requests", True),
    (500, ErrorType.SERVER_ERROR, "Internal Server Error", True),
    (502, ErrorType.SERVER_ERROR, "Bad Gateway", True),
    (503, ErrorType.UNAVAILABLE, "Service Unavailable", True),
    (504, ErrorType.SERVER_ERROR, "Gateway Timeout", True),
)

RETRYABLE_HTTP_STATUSES = frozenset({429, 500, 502, 503, 504})


def lookup(code: int) -> ErrorCode | None:
    return ERROR_CODES.get(code)


def describe(code: int) -> ErrorCode:
    """Dictionary entry for ``code``, or an UNKNOWN placeholder."""
    return ERROR_CODES.get(code) or ErrorCode(code, ErrorType.UNKNOWN, f"Unknown error code: {code}", False)
