"""
Default transport using httpx.
"""
import json
import logging
import os
from typing import Any, Dict, Optional

import httpx

from ..core.registry import CancellationHandle
from ..types import PreparedRequest, TransportResponse

logger = logging.getLogger("fetch_coordinator.httpx_transport")


def _is_ssl_verify_disabled_by_env() -> bool:
    """
    Check if SSL verification is disabled via environment variables.

    Returns True if any of these are set:
    - NODE_TLS_REJECT_UNAUTHORIZED=0
    - SSL_CERT_VERIFY=0
    """
    node_tls = os.environ.get("NODE_TLS_REJECT_UNAUTHORIZED", "")
    ssl_cert_verify = os.environ.get("SSL_CERT_VERIFY", "")
    return node_tls == "0" or ssl_cert_verify == "0"


def encode_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert params into values httpx can put on a query string."""
    if not params:
        return None
    encoded: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        elif isinstance(value, (dict, list, tuple)) and not _is_flat_sequence(value):
            encoded[key] = json.dumps(value, separators=(",", ":"), default=str)
        else:
            encoded[key] = value
    return encoded


def _is_flat_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(
        isinstance(item, (str, int, float)) and not isinstance(item, bool) for item in value
    )


def build_content(body: Any) -> Dict[str, Any]:
    """Pick the httpx keyword for a request body."""
    if body is None:
        return {}
    if isinstance(body, (bytes, str)):
        return {"content": body}
    return {"json": body}


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``."""

    def __init__(self, httpx_client: Optional[httpx.AsyncClient] = None) -> None:
        if httpx_client is not None:
            self._client = httpx_client
        else:
            # NODE_TLS_REJECT_UNAUTHORIZED=0 or SSL_CERT_VERIFY=0 disables SSL verification
            self._client = httpx.AsyncClient(verify=not _is_ssl_verify_disabled_by_env())
        self._closed = False

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def send(
        self,
        request: PreparedRequest,
        handle: CancellationHandle,
    ) -> TransportResponse:
        """Send ``request`` and decode the body as JSON, falling back to text."""
        if self._closed:
            raise RuntimeError("Transport has been closed")

        # None would disable httpx timeouts entirely; fall back to the client default
        timeout: Any = httpx.USE_CLIENT_DEFAULT
        if request.timeout_seconds is not None:
            timeout = httpx.Timeout(request.timeout_seconds)

        logger.debug(
            f"HttpxTransport.send: method={request.method}, url={request.url}, "
            f"timeout={request.timeout_seconds}"
        )

        response = await self._client.request(
            method=request.method,
            url=request.url,
            params=encode_params(request.params),
            headers=request.headers,
            timeout=timeout,
            **build_content(request.body),
        )

        text = response.text
        try:
            data = json.loads(text) if text else None
        except ValueError:
            data = text

        return TransportResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase or "",
            headers=dict(response.headers),
            data=data,
        )

    async def aclose(self) -> None:
        """Close the underlying client."""
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()
