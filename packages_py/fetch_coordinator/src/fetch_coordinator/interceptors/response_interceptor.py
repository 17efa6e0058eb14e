"""
Response interceptor: settles a dispatched request.

Both paths deregister the request's own registry entry first, so an entry
is removed exactly once whatever the outcome.
"""
import logging
from typing import Any, Callable, Optional

from ..core.classifier import ErrorClassifier
from ..core.registry import CancellationHandle, PendingRegistry
from ..errors import RequestError
from ..types import (
    EventPhase,
    ObservabilityEvent,
    PreparedRequest,
    ResponseEnvelope,
    TransportResponse,
)

logger = logging.getLogger("fetch_coordinator.response_interceptor")


def _coerce_code(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return 0


def to_envelope(data: Any) -> Optional[ResponseEnvelope]:
    """Normalize a decoded body into a ResponseEnvelope; None if it is not a mapping."""
    if not isinstance(data, dict):
        return None
    message = data.get("message")
    return ResponseEnvelope(
        code=_coerce_code(data.get("code")),
        data=data.get("data"),
        message=message if isinstance(message, str) else "",
        success=data.get("success") is True,
    )


class ResponseInterceptor:
    """Validate successful responses and classify failed ones."""

    def __init__(
        self,
        registry: PendingRegistry,
        classifier: ErrorClassifier,
        emit: Callable[[ObservabilityEvent], None],
    ) -> None:
        self._registry = registry
        self._classifier = classifier
        self._emit = emit

    def resolve(
        self,
        request: PreparedRequest,
        handle: CancellationHandle,
        response: TransportResponse,
    ) -> ResponseEnvelope:
        """Return the envelope of a 2xx response, or raise BusinessFailureError."""
        self._registry.deregister(request.fingerprint, handle)

        self._emit(
            ObservabilityEvent(
                phase=EventPhase.POST,
                method=request.method,
                url=request.url,
                params=request.params,
                data=response.data,
                status_code=response.status_code,
                fingerprint=request.fingerprint,
            )
        )

        envelope = to_envelope(response.data)
        if envelope is not None and envelope.is_business_success:
            return envelope

        error = self._classifier.business_failure(
            response.data, request.fingerprint, response.status_code
        )
        self._emit_error(request, error)
        raise error

    def reject(
        self,
        request: PreparedRequest,
        handle: CancellationHandle,
        failure: BaseException,
    ) -> RequestError:
        """Classify ``failure`` and return the error to raise to the caller."""
        self._registry.deregister(request.fingerprint, handle)

        error = self._classifier.classify(failure, request.fingerprint)
        logger.debug(
            f"ResponseInterceptor.reject: {request.method} {request.url} -> "
            f"{error.kind.value} ({failure!r})"
        )
        self._emit_error(request, error)
        return error

    def _emit_error(self, request: PreparedRequest, error: RequestError) -> None:
        self._emit(
            ObservabilityEvent(
                phase=EventPhase.ERROR,
                method=request.method,
                url=request.url,
                params=request.params,
                data=error.data,
                message=error.message,
                status_code=error.status_code,
                error_kind=error.kind.value,
                fingerprint=request.fingerprint,
            )
        )
