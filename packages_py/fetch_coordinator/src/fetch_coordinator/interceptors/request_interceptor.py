"""
Outbound request interceptor.
"""
import logging
import time
from typing import Callable, Optional, Tuple

from ..config import ConfigSnapshot
from ..core.fingerprint import generate_fingerprint
from ..core.registry import CancellationHandle, PendingRegistry
from ..core.request_builder import build_request_headers, build_url, with_cache_nonce
from ..types import (
    EventPhase,
    FingerprintGenerator,
    ObservabilityEvent,
    PreparedRequest,
    RequestDescriptor,
    TokenStore,
)

logger = logging.getLogger("fetch_coordinator.request_interceptor")


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class RequestInterceptor:
    """
    Turn a descriptor into a registered, prepared request.

    ``intercept`` is synchronous so registration and supersession happen
    before the caller reaches the transport call.
    """

    def __init__(
        self,
        registry: PendingRegistry,
        emit: Callable[[ObservabilityEvent], None],
        token_store: Optional[TokenStore] = None,
        fingerprint_generator: Optional[FingerprintGenerator] = None,
        clock_ms: Callable[[], int] = _epoch_ms,
    ) -> None:
        self._registry = registry
        self._emit = emit
        self._token_store = token_store
        self._fingerprint = fingerprint_generator or generate_fingerprint
        self._clock_ms = clock_ms

    def intercept(
        self,
        descriptor: RequestDescriptor,
        config: ConfigSnapshot,
    ) -> Tuple[PreparedRequest, CancellationHandle]:
        """Register ``descriptor`` and derive the request to transmit."""
        fingerprint = self._fingerprint(descriptor)
        handle = self._registry.register(fingerprint)
        try:
            prepared = self._prepare(descriptor, config, fingerprint)
        except BaseException:
            self._registry.deregister(fingerprint, handle)
            raise

        logger.debug(
            f"RequestInterceptor.intercept: method={prepared.method}, url={prepared.url}, "
            f"fingerprint={fingerprint[:12]}"
        )
        self._emit(
            ObservabilityEvent(
                phase=EventPhase.PRE,
                method=prepared.method,
                url=prepared.url,
                params=prepared.params,
                data=prepared.body,
                fingerprint=fingerprint,
            )
        )
        return prepared, handle

    def _prepare(
        self,
        descriptor: RequestDescriptor,
        config: ConfigSnapshot,
        fingerprint: str,
    ) -> PreparedRequest:
        params = dict(descriptor.params) if descriptor.params is not None else None
        if descriptor.method == "GET":
            params = with_cache_nonce(params, self._clock_ms())

        headers = build_request_headers(
            config.default_headers, descriptor.headers, self._get_token()
        )

        timeout_ms = descriptor.timeout_ms if descriptor.timeout_ms is not None else config.timeout_ms
        return PreparedRequest(
            method=descriptor.method,
            url=build_url(config.base_url, descriptor.url),
            fingerprint=fingerprint,
            params=params,
            body=descriptor.body,
            headers=headers,
            timeout_seconds=timeout_ms / 1000.0,
        )

    def _get_token(self) -> Optional[str]:
        if self._token_store is None:
            return None
        try:
            return self._token_store.get_token()
        except Exception as e:
            logger.warning(f"RequestInterceptor: token store failed, sending without token: {e!r}")
            return None
