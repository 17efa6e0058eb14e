"""
Error taxonomy for fetch_coordinator.

Every failure a caller can observe is a RequestError subclass carrying a
stable ErrorKind, a human-readable message and, when a response was
received, the HTTP status code.
"""
from enum import Enum
from typing import Any, Dict, Optional, Type

from .types import TransportResponse


class ErrorKind(str, Enum):
    """Closed set of classified failure kinds."""

    CANCELLED = "cancelled"
    TIMEOUT = "timeout"
    NETWORK_UNAVAILABLE = "network_unavailable"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    OTHER_HTTP_STATUS = "other_http_status"
    BUSINESS_FAILURE = "business_failure"


class RequestError(Exception):
    """Base class for classified request failures."""

    kind: ErrorKind = ErrorKind.NETWORK_UNAVAILABLE

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        fingerprint: Optional[str] = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.fingerprint = fingerprint
        self.data = data

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"message={self.message!r}, status_code={self.status_code!r})"
        )


class RequestCancelledError(RequestError):
    """The request was superseded by a newer one or cancelled in bulk."""

    kind = ErrorKind.CANCELLED


class RequestTimeoutError(RequestError):
    kind = ErrorKind.TIMEOUT


class NetworkUnavailableError(RequestError):
    kind = ErrorKind.NETWORK_UNAVAILABLE


class BadRequestError(RequestError):
    kind = ErrorKind.BAD_REQUEST


class UnauthorizedError(RequestError):
    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(RequestError):
    kind = ErrorKind.FORBIDDEN


class NotFoundError(RequestError):
    kind = ErrorKind.NOT_FOUND


class ServerError(RequestError):
    kind = ErrorKind.SERVER_ERROR


class HttpStatusError(RequestError):
    """Response received with a status outside the mapped set."""

    kind = ErrorKind.OTHER_HTTP_STATUS


class BusinessFailureError(RequestError):
    """Transport succeeded but the envelope reports a domain failure."""

    kind = ErrorKind.BUSINESS_FAILURE


ERROR_TYPES: Dict[ErrorKind, Type[RequestError]] = {
    ErrorKind.CANCELLED: RequestCancelledError,
    ErrorKind.TIMEOUT: RequestTimeoutError,
    ErrorKind.NETWORK_UNAVAILABLE: NetworkUnavailableError,
    ErrorKind.BAD_REQUEST: BadRequestError,
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.FORBIDDEN: ForbiddenError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.SERVER_ERROR: ServerError,
    ErrorKind.OTHER_HTTP_STATUS: HttpStatusError,
    ErrorKind.BUSINESS_FAILURE: BusinessFailureError,
}


class RequestAborted(Exception):
    """Abort signal raised when a cancellation handle fires.

    Internal to the dispatch path; callers only ever see it classified as
    RequestCancelledError.
    """

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(f"request aborted: {reason}")
        self.reason = reason


class TransportStatusError(Exception):
    """Transport completed with a non-2xx status."""

    def __init__(self, response: TransportResponse) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response
