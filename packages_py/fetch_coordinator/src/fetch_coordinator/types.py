"""
Type definitions for fetch_coordinator.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Literal,
    Mapping,
    Optional,
    Protocol,
    TypeVar,
    get_args,
)

T = TypeVar("T")

# HTTP methods the coordinator dispatches
HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

SUPPORTED_METHODS = frozenset(get_args(HttpMethod))


@dataclass(frozen=True)
class RequestDescriptor:
    """Logical description of an outbound request.

    Two descriptors with the same method, url, params and body describe the
    same logical request, whatever their headers or timeout.
    """

    url: str
    method: HttpMethod = "GET"
    params: Optional[Mapping[str, Any]] = None
    body: Optional[Any] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout_ms: Optional[int] = None

    def __post_init__(self) -> None:
        method = str(self.method).upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(
                f"Unsupported method: {self.method}. Must be one of: {sorted(SUPPORTED_METHODS)}"
            )
        if self.timeout_ms is not None and (
            isinstance(self.timeout_ms, bool)
            or not isinstance(self.timeout_ms, int)
            or self.timeout_ms <= 0
        ):
            raise ValueError(f"timeout_ms must be a positive integer, got: {self.timeout_ms!r}")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "headers", dict(self.headers or {}))
        if self.params is not None:
            object.__setattr__(self, "params", dict(self.params))


@dataclass(frozen=True)
class PreparedRequest:
    """Derived copy of a descriptor, ready for the transport."""

    method: HttpMethod
    url: str
    fingerprint: str
    params: Optional[Dict[str, Any]] = None
    body: Optional[Any] = None
    headers: Dict[str, str] = field(default_factory=dict)
    timeout_seconds: Optional[float] = None


@dataclass
class TransportResponse:
    """Raw response handed back by a transport."""

    status_code: int
    reason_phrase: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class ResponseEnvelope(Generic[T]):
    """Normalized ``{code, data, message, success}`` server reply."""

    code: int
    data: T
    message: str = ""
    success: bool = False

    @property
    def is_business_success(self) -> bool:
        return self.success is True or self.code == 200

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "data": self.data,
            "message": self.message,
            "success": self.success,
        }


class EventPhase(str, Enum):
    """Observability event phases."""

    PRE = "pre"
    POST = "post"
    ERROR = "error"


@dataclass
class ObservabilityEvent:
    """Structured event emitted around each dispatch."""

    phase: EventPhase
    method: str
    url: str
    params: Optional[Dict[str, Any]] = None
    data: Any = None
    message: Optional[str] = None
    status_code: Optional[int] = None
    error_kind: Optional[str] = None
    fingerprint: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


ObservabilityListener = Callable[[ObservabilityEvent], None]
"""Event listener type."""


class ObservabilitySink(Protocol):
    """Receiver of observability events. Must not block."""

    def emit(self, event: ObservabilityEvent) -> None:
        ...


class TokenStore(Protocol):
    """Source of the bearer token injected into outbound requests."""

    def get_token(self) -> Optional[str]:
        ...

    def clear_token(self) -> None:
        ...


FingerprintGenerator = Callable[[RequestDescriptor], str]
"""Custom fingerprint generator type."""
