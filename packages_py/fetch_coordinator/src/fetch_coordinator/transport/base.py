"""
Transport interface.
"""
from typing import Protocol

from ..core.registry import CancellationHandle
from ..types import PreparedRequest, TransportResponse


class Transport(Protocol):
    """Performs the network call for a prepared request.

    Implementations return a TransportResponse for every status code and
    raise only when no response was received. Timeouts must surface as
    ``httpx.TimeoutException`` or ``TimeoutError``. The coordinator cancels
    the call through its handle; ``handle.aborted`` may also be polled.
    """

    async def send(
        self,
        request: PreparedRequest,
        handle: CancellationHandle,
    ) -> TransportResponse:
        ...

    async def aclose(self) -> None:
        ...
