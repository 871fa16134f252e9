"""
Error types for the Spanner database admin client.

Every failure surfaced to callers is an AdminError carrying the canonical
error code, the server (or local) message, and whether it may be retried.
"""

from enum import Enum
from typing import Dict, Optional


class ErrorCode(Enum):
    """Canonical error codes surfaced to callers."""

    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    CANCELLED = "CANCELLED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNAVAILABLE = "UNAVAILABLE"
    UNKNOWN = "UNKNOWN"


RETRYABLE_CODES = {ErrorCode.UNAVAILABLE, ErrorCode.DEADLINE_EXCEEDED}

# google.rpc.Code numeric values, as found in Operation.error.code
_RPC_CODES: Dict[int, ErrorCode] = {
    1: ErrorCode.CANCELLED,
    2: ErrorCode.UNKNOWN,
    3: ErrorCode.INVALID_ARGUMENT,
    4: ErrorCode.DEADLINE_EXCEEDED,
    5: ErrorCode.NOT_FOUND,
    6: ErrorCode.ALREADY_EXISTS,
    7: ErrorCode.PERMISSION_DENIED,
    14: ErrorCode.UNAVAILABLE,
}

_HTTP_CODES: Dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_ARGUMENT,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.ALREADY_EXISTS,
    499: ErrorCode.CANCELLED,
    503: ErrorCode.UNAVAILABLE,
    504: ErrorCode.DEADLINE_EXCEEDED,
}


def code_from_rpc(value: Optional[int]) -> ErrorCode:
    """Map a google.rpc numeric status code to an ErrorCode."""
    return _RPC_CODES.get(value or 0, ErrorCode.UNKNOWN)


def code_to_rpc(code: ErrorCode) -> int:
    """Map an ErrorCode back to its google.rpc numeric value."""
    for value, mapped in _RPC_CODES.items():
        if mapped is code:
            return value
    return 2


def code_from_status(status: Optional[str], http_status: Optional[int] = None) -> ErrorCode:
    """
    Map a REST error to an ErrorCode.

    Args:
        status: The ``error.status`` string of a Google REST error body
        http_status: HTTP status code, used only when status is missing

    Returns:
        Matching ErrorCode, UNKNOWN if nothing matches
    """
    if status:
        try:
            return ErrorCode(status.upper())
        except ValueError:
            return ErrorCode.UNKNOWN
    if http_status is not None:
        return _HTTP_CODES.get(http_status, ErrorCode.UNKNOWN)
    return ErrorCode.UNKNOWN


class AdminError(Exception):
    """Base exception for all database admin errors."""

    default_code = ErrorCode.UNKNOWN

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        self.code = code or self.default_code
        self.message = message
        super().__init__(f"{self.code.value}: {message}")

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES


class ServiceError(AdminError):
    """An RPC against the admin service failed."""


class InvalidArgumentError(AdminError):
    """A request was rejected before it was sent."""

    default_code = ErrorCode.INVALID_ARGUMENT


class MalformedIdentifierError(InvalidArgumentError):
    """A resource name did not match the expected segment pattern."""


class InvalidMetadataTypeError(AdminError):
    """An operation metadata envelope was decoded against the wrong schema."""

    default_code = ErrorCode.INVALID_ARGUMENT

    def __init__(self, expected: str, actual: Optional[str]):
        self.expected = expected
        self.actual = actual
        super().__init__(f"expected metadata of type {expected}, got {actual}")


class OperationFailedError(AdminError):
    """A long-running operation finished with an error reported by the server."""

    def __init__(self, operation_name: str, code: ErrorCode, message: str):
        self.operation_name = operation_name
        super().__init__(message, code)


class OperationCancelledError(OperationFailedError):
    """A long-running operation was observed as cancelled by the server."""

    def __init__(self, operation_name: str, message: str = "operation was cancelled"):
        super().__init__(operation_name, ErrorCode.CANCELLED, message)


class DeadlineExceededError(AdminError):
    """
    The client gave up waiting for an operation.

    This is a local timeout; the operation may still be running server-side
    and can be awaited again later by name.
    """

    default_code = ErrorCode.DEADLINE_EXCEEDED

    def __init__(self, operation_name: str, waited: float):
        self.operation_name = operation_name
        self.waited = waited
        super().__init__(
            f"gave up waiting for {operation_name} after {waited:.1f}s"
        )

    @property
    def retryable(self) -> bool:
        return True
