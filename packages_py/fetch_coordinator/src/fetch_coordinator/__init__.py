"""
Deduplicating, cancellable HTTP request coordinator.

Turns request descriptors into tracked in-flight operations (at most one per
request fingerprint), classifies every failure into a closed error taxonomy
and normalizes server replies into ``{code, data, message, success}``
envelopes.
"""
from .types import (
    HttpMethod,
    RequestDescriptor,
    PreparedRequest,
    TransportResponse,
    ResponseEnvelope,
    EventPhase,
    ObservabilityEvent,
    ObservabilityListener,
    ObservabilitySink,
    TokenStore,
    FingerprintGenerator,
)
from .errors import (
    ErrorKind,
    RequestError,
    RequestCancelledError,
    RequestTimeoutError,
    NetworkUnavailableError,
    BadRequestError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    ServerError,
    HttpStatusError,
    BusinessFailureError,
    RequestAborted,
    TransportStatusError,
)
from .config import (
    ConfigSnapshot,
    HttpConfigProvider,
    HttpClientSettings,
    validate_config,
    load_config_from_env,
    load_config_from_yaml,
)
from .core.fingerprint import generate_fingerprint
from .core.registry import CancellationHandle, PendingRegistry
from .core.classifier import ErrorClassifier
from .core.coordinator import RequestCoordinator
from .interceptors import RequestInterceptor, ResponseInterceptor
from .transport import Transport, HttpxTransport
from .auth import FileTokenStore, MemoryTokenStore
from .observability import CompositeSink, ConsoleSink, LoggingSink, NullSink
from .factory import (
    create_coordinator,
    create_coordinator_from_provider,
    create_coordinator_from_env,
)

__all__ = [
    # Types
    "HttpMethod",
    "RequestDescriptor",
    "PreparedRequest",
    "TransportResponse",
    "ResponseEnvelope",
    "EventPhase",
    "ObservabilityEvent",
    "ObservabilityListener",
    "ObservabilitySink",
    "TokenStore",
    "FingerprintGenerator",
    # Errors
    "ErrorKind",
    "RequestError",
    "RequestCancelledError",
    "RequestTimeoutError",
    "NetworkUnavailableError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ServerError",
    "HttpStatusError",
    "BusinessFailureError",
    "RequestAborted",
    "TransportStatusError",
    # Config
    "ConfigSnapshot",
    "HttpConfigProvider",
    "HttpClientSettings",
    "validate_config",
    "load_config_from_env",
    "load_config_from_yaml",
    # Core
    "generate_fingerprint",
    "CancellationHandle",
    "PendingRegistry",
    "ErrorClassifier",
    "RequestCoordinator",
    "RequestInterceptor",
    "ResponseInterceptor",
    # Transport
    "Transport",
    "HttpxTransport",
    # Auth
    "FileTokenStore",
    "MemoryTokenStore",
    # Observability
    "CompositeSink",
    "ConsoleSink",
    "LoggingSink",
    "NullSink",
    # Factory
    "create_coordinator",
    "create_coordinator_from_provider",
    "create_coordinator_from_env",
]

__version__ = "0.1.0"
