"""OpenAM error taxonomy and HTTP status classification."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Caller-facing category of an OpenAM failure."""

    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    NOT_IMPLEMENTED = "not_implemented"
    SERVICE_UNAVAILABLE = "service_unavailable"
    TRANSPORT_ERROR = "transport_error"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_LOCKED = "account_locked"
    UNKNOWN = "unknown"


STATUS_KINDS = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    500: ErrorKind.SERVER_ERROR,
    501: ErrorKind.NOT_IMPLEMENTED,
    503: ErrorKind.SERVICE_UNAVAILABLE,
}


def classify_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code to its error kind (UNKNOWN when unlisted)."""
    return STATUS_KINDS.get(status_code, ErrorKind.UNKNOWN)


class OpenAMError(Exception):
    """
    Base exception for all classified OpenAM failures.

    Attributes:
        kind: Error category
        http_status: HTTP status code, when a response was received
        message: Error message (usually the OpenAM response body)
        cause: Underlying transport/HTTP exception
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        http_status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.kind = kind
        self.message = message
        self.http_status = http_status
        self.cause = cause
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.http_status is not None:
            return f"[{self.http_status} {self.kind.value}] {self.message}"
        return f"[{self.kind.value}] {self.message}"


class HttpStatusError(OpenAMError):
    """OpenAM answered with a non-2xx status."""

    def __init__(self, http_status: int, message: str, cause: Optional[BaseException] = None):
        super().__init__(classify_status(http_status), message, http_status, cause)


class TransportError(OpenAMError):
    """No response was received (connect failure, timeout, protocol error)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(ErrorKind.TRANSPORT_ERROR, message, None, cause)


class InvalidCredentialsError(OpenAMError):
    """OpenAM rejected the username/password pair."""

    def __init__(self, error: OpenAMError):
        super().__init__(ErrorKind.INVALID_CREDENTIALS, error.message, error.http_status, error)


class AccountLockedError(OpenAMError):
    """The account has been locked by OpenAM."""

    def __init__(self, error: OpenAMError):
        super().__init__(ErrorKind.ACCOUNT_LOCKED, error.message, error.http_status, error)


class UnknownOperationError(KeyError):
    """No operation with this name is configured."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown OpenAM operation: '{self.name}'"
