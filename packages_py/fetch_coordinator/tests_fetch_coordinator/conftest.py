"""
Shared fixtures for fetch_coordinator tests.
"""
import asyncio
from typing import Any, List, Optional, Union

import pytest

from fetch_coordinator.auth.token_store import MemoryTokenStore
from fetch_coordinator.config import ConfigSnapshot
from fetch_coordinator.core.coordinator import RequestCoordinator
from fetch_coordinator.core.registry import CancellationHandle
from fetch_coordinator.types import (
    ObservabilityEvent,
    PreparedRequest,
    TransportResponse,
)

OK_BODY = {"code": 200, "data": {"id": 1}, "message": "ok", "success": True}


class ScriptedTransport:
    """
    Transport double.

    With ``hold=False`` every call yields once and returns ``response``
    (or raises it when it is an exception). With ``hold=True`` every call
    parks on a future until the test releases it.
    """

    def __init__(
        self,
        response: Union[TransportResponse, BaseException, None] = None,
        hold: bool = False,
    ) -> None:
        self.response = response if response is not None else TransportResponse(200, data=OK_BODY)
        self.hold = hold
        self.requests: List[PreparedRequest] = []
        self.handles: List[CancellationHandle] = []
        self.waiters: List[asyncio.Future] = []
        self.closed = False

    async def send(self, request: PreparedRequest, handle: CancellationHandle) -> TransportResponse:
        self.requests.append(request)
        self.handles.append(handle)
        if self.hold:
            waiter = asyncio.get_running_loop().create_future()
            self.waiters.append(waiter)
            outcome = await waiter
        else:
            await asyncio.sleep(0)
            outcome = self.response
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def release_all(self, outcome: Any = None) -> int:
        released = 0
        for waiter in self.waiters:
            if not waiter.done():
                waiter.set_result(outcome if outcome is not None else self.response)
                released += 1
        return released

    async def aclose(self) -> None:
        self.closed = True


class RecordingSink:
    """Sink collecting every event."""

    def __init__(self) -> None:
        self.events: List[ObservabilityEvent] = []

    def emit(self, event: ObservabilityEvent) -> None:
        self.events.append(event)

    def phases(self) -> List[str]:
        return [event.phase.value for event in self.events]


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def config() -> ConfigSnapshot:
    return ConfigSnapshot(base_url="https://api.example.com", timeout_ms=5000)


@pytest.fixture
def token_store() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def held_transport() -> ScriptedTransport:
    return ScriptedTransport(hold=True)


@pytest.fixture
def make_coordinator(config, token_store, sink):
    """Build a coordinator around a given transport."""

    def _make(transport: Any, **kwargs: Any) -> RequestCoordinator:
        kwargs.setdefault("token_store", token_store)
        kwargs.setdefault("sink", sink)
        return RequestCoordinator(config, transport=transport, **kwargs)

    return _make
