"""
Failure classification.

Maps abort signals, transport failures and HTTP status codes onto the closed
ErrorKind set. Classification is total: every exception yields a RequestError
and nothing here raises.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import (
    ERROR_TYPES,
    ErrorKind,
    RequestAborted,
    RequestError,
    TransportStatusError,
)
from ..types import TokenStore, TransportResponse

logger = logging.getLogger("fetch_coordinator.classifier")

MESSAGE_CANCELLED = "request superseded or cancelled"
MESSAGE_TIMEOUT = "request timed out"
MESSAGE_NETWORK = "network connection error"
MESSAGE_BUSINESS_FAILURE = "request failed"

STATUS_KINDS: Dict[int, ErrorKind] = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    500: ErrorKind.SERVER_ERROR,
}

STATUS_MESSAGES: Dict[int, str] = {
    400: "bad request parameters",
    401: "unauthorized, please log in again",
    403: "access denied",
    404: "requested resource not found",
    500: "internal server error",
}


def server_message(data: Any) -> Optional[str]:
    """Extract a non-empty ``message`` from a response body, if any."""
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


def is_timeout(failure: BaseException) -> bool:
    return isinstance(failure, (httpx.TimeoutException, TimeoutError, asyncio.TimeoutError))


class ErrorClassifier:
    """
    Classify request failures into RequestError instances.

    A 401 additionally clears the stored auth token.
    """

    def __init__(self, token_store: Optional[TokenStore] = None) -> None:
        self._token_store = token_store

    def classify(
        self,
        failure: BaseException,
        fingerprint: Optional[str] = None,
    ) -> RequestError:
        """Classify ``failure``. Already-classified errors pass through."""
        if isinstance(failure, RequestError):
            if failure.fingerprint is None:
                failure.fingerprint = fingerprint
            return failure

        if isinstance(failure, RequestAborted):
            return self._build(ErrorKind.CANCELLED, MESSAGE_CANCELLED, fingerprint)

        if isinstance(failure, TransportStatusError):
            return self.classify_status(failure.response, fingerprint)

        if is_timeout(failure):
            return self._build(ErrorKind.TIMEOUT, MESSAGE_TIMEOUT, fingerprint)

        if not isinstance(failure, (httpx.TransportError, OSError)):
            logger.debug(f"ErrorClassifier.classify: unrecognized failure {failure!r}")
        return self._build(ErrorKind.NETWORK_UNAVAILABLE, MESSAGE_NETWORK, fingerprint)

    def classify_status(
        self,
        response: TransportResponse,
        fingerprint: Optional[str] = None,
    ) -> RequestError:
        """Classify a response received with a non-2xx status."""
        status = response.status_code
        override = server_message(response.data)

        kind = STATUS_KINDS.get(status)
        if kind is None:
            message = (
                f"{override} (status {status})"
                if override
                else f"request failed with status {status}"
            )
            return self._build(
                ErrorKind.OTHER_HTTP_STATUS, message, fingerprint, status, response.data
            )

        if kind is ErrorKind.UNAUTHORIZED:
            self._clear_token()

        return self._build(
            kind, override or STATUS_MESSAGES[status], fingerprint, status, response.data
        )

    def business_failure(
        self,
        data: Any,
        fingerprint: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> RequestError:
        """Build the error for a 2xx response whose envelope reports failure."""
        return self._build(
            ErrorKind.BUSINESS_FAILURE,
            server_message(data) or MESSAGE_BUSINESS_FAILURE,
            fingerprint,
            status_code,
            data,
        )

    def _clear_token(self) -> None:
        if self._token_store is None:
            return
        try:
            self._token_store.clear_token()
        except Exception as e:
            logger.warning(f"ErrorClassifier: failed to clear token after 401: {e!r}")

    @staticmethod
    def _build(
        kind: ErrorKind,
        message: str,
        fingerprint: Optional[str],
        status_code: Optional[int] = None,
        data: Any = None,
    ) -> RequestError:
        return ERROR_TYPES[kind](
            message,
            status_code=status_code,
            fingerprint=fingerprint,
            data=data,
        )
