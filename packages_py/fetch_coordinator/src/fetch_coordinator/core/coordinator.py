"""
Request coordinator facade.
"""
import asyncio
import logging
from typing import Any, Mapping, Optional, Set

from ..config import ConfigSnapshot, resolve_config
from .classifier import ErrorClassifier
from .fingerprint import generate_fingerprint
from .registry import CancellationHandle, PendingRegistry
from ..errors import TransportStatusError
from ..interceptors.request_interceptor import RequestInterceptor
from ..interceptors.response_interceptor import ResponseInterceptor
from ..observability.sinks import NullSink
from ..transport.base import Transport
from ..transport.httpx_transport import HttpxTransport
from ..types import (
    FingerprintGenerator,
    HttpMethod,
    ObservabilityEvent,
    ObservabilityListener,
    ObservabilitySink,
    PreparedRequest,
    RequestDescriptor,
    ResponseEnvelope,
    TokenStore,
    TransportResponse,
)

logger = logging.getLogger("fetch_coordinator.coordinator")


class RequestCoordinator:
    """
    Deduplicating, cancellable HTTP request coordinator.

    At most one request per fingerprint is in flight: dispatching a request
    whose fingerprint is already pending aborts the earlier one, which then
    fails with RequestCancelledError. Every outcome is either a validated
    ResponseEnvelope or a RequestError subclass.

    Example:
        async with RequestCoordinator(ConfigSnapshot(base_url="https://api.example.com")) as http:
            envelope = await http.get("/users", {"page": 1})
            print(envelope.data)
    """

    def __init__(
        self,
        config: Optional[ConfigSnapshot] = None,
        *,
        transport: Optional[Transport] = None,
        token_store: Optional[TokenStore] = None,
        sink: Optional[ObservabilitySink] = None,
        registry: Optional[PendingRegistry] = None,
        fingerprint_generator: Optional[FingerprintGenerator] = None,
    ) -> None:
        self._config = resolve_config(config)
        self._transport: Transport = transport or HttpxTransport()
        self._token_store = token_store
        self._sink: ObservabilitySink = sink or NullSink()
        self._registry = registry or PendingRegistry()
        self._fingerprint = fingerprint_generator or generate_fingerprint
        self._listeners: Set[ObservabilityListener] = set()
        self._classifier = ErrorClassifier(token_store)
        self._request_interceptor = RequestInterceptor(
            self._registry,
            self._emit,
            token_store=token_store,
            fingerprint_generator=self._fingerprint,
        )
        self._response_interceptor = ResponseInterceptor(
            self._registry, self._classifier, self._emit
        )
        self._closed = False

    # === Configuration ===

    def update_config(self, config: ConfigSnapshot) -> None:
        """Replace the stored configuration.

        Requests already dispatched keep the settings captured at dispatch.
        """
        self._config = resolve_config(config)
        logger.debug(
            f"RequestCoordinator.update_config: base_url={self._config.base_url}, "
            f"timeout_ms={self._config.timeout_ms}"
        )

    def get_config(self) -> ConfigSnapshot:
        return self._config.copy()

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def registry(self) -> PendingRegistry:
        return self._registry

    # === Dispatch ===

    async def request(self, descriptor: RequestDescriptor) -> ResponseEnvelope:
        """Dispatch ``descriptor`` and return its validated envelope."""
        if self._closed:
            raise RuntimeError("Coordinator has been closed")

        prepared, handle = self._request_interceptor.intercept(descriptor, self._config)
        try:
            response = await self._send(prepared, handle)
        except asyncio.CancelledError:
            # Cancellation of the caller's own task, not of this request
            self._registry.deregister(prepared.fingerprint, handle)
            raise
        except Exception as failure:
            raise self._response_interceptor.reject(prepared, handle, failure) from failure

        return self._response_interceptor.resolve(prepared, handle, response)

    async def _send(
        self,
        prepared: PreparedRequest,
        handle: CancellationHandle,
    ) -> TransportResponse:
        response = await handle.run(self._transport.send(prepared, handle))
        if not response.ok:
            raise TransportStatusError(response)
        return response

    async def get(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        **extra: Any,
    ) -> ResponseEnvelope:
        """GET request."""
        return await self.request(self._describe("GET", url, params=params, **extra))

    async def delete(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        **extra: Any,
    ) -> ResponseEnvelope:
        """DELETE request."""
        return await self.request(self._describe("DELETE", url, params=params, **extra))

    async def post(self, url: str, body: Any = None, **extra: Any) -> ResponseEnvelope:
        """POST request."""
        return await self.request(self._describe("POST", url, body=body, **extra))

    async def put(self, url: str, body: Any = None, **extra: Any) -> ResponseEnvelope:
        """PUT request."""
        return await self.request(self._describe("PUT", url, body=body, **extra))

    async def patch(self, url: str, body: Any = None, **extra: Any) -> ResponseEnvelope:
        """PATCH request."""
        return await self.request(self._describe("PATCH", url, body=body, **extra))

    @staticmethod
    def _describe(method: HttpMethod, url: str, **fields: Any) -> RequestDescriptor:
        unknown = set(fields) - {"params", "body", "headers", "timeout_ms"}
        if unknown:
            raise TypeError(f"Unexpected request option(s): {sorted(unknown)}")
        if fields.get("headers") is None:
            fields.pop("headers", None)
        return RequestDescriptor(url=url, method=method, **fields)

    # === Cancellation and inspection ===

    def cancel_all(self) -> int:
        """Abort every in-flight request. Each fails with RequestCancelledError."""
        count = self._registry.cancel_all()
        logger.debug(f"RequestCoordinator.cancel_all: cancelled {count} request(s)")
        return count

    def pending_count(self) -> int:
        return self._registry.size()

    def is_pending(self, descriptor: RequestDescriptor) -> bool:
        return self._registry.has(self._fingerprint(descriptor))

    # === Observability ===

    def on(self, listener: ObservabilityListener):
        """Add event listener. Returns a function removing it."""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: ObservabilityListener) -> None:
        """Remove event listener."""
        self._listeners.discard(listener)

    def _emit(self, event: ObservabilityEvent) -> None:
        """Emit an event to the sink and all listeners."""
        try:
            self._sink.emit(event)
        except Exception:
            logger.debug("RequestCoordinator: observability sink failed", exc_info=True)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.debug("RequestCoordinator: event listener failed", exc_info=True)

    # === Lifecycle ===

    async def aclose(self) -> None:
        """Cancel pending requests and close the transport."""
        if self._closed:
            return
        self._closed = True
        self.cancel_all()
        await self._transport.aclose()

    async def __aenter__(self) -> "RequestCoordinator":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.aclose()
