"""
Tests for RequestCoordinator.
Logic testing: State Transition (pending -> settled), supersession, bulk cancel,
envelope acceptance, error classification end to end
"""
import asyncio

import httpx
import pytest

from .conftest import OK_BODY, RecordingSink, ScriptedTransport, settle
from fetch_coordinator.config import ConfigSnapshot
from fetch_coordinator.errors import (
    BusinessFailureError,
    NetworkUnavailableError,
    RequestCancelledError,
    RequestError,
    RequestTimeoutError,
    ServerError,
    UnauthorizedError,
)
from fetch_coordinator.types import RequestDescriptor, TransportResponse


class TestSupersession:
    """Last-writer-wins deduplication."""

    @pytest.mark.asyncio
    async def test_duplicate_get_cancels_first(self, make_coordinator, transport):
        coordinator = make_coordinator(transport)

        first = asyncio.create_task(coordinator.get("/a", {"x": 1}))
        second = asyncio.create_task(coordinator.get("/a", {"x": 1}))
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert isinstance(results[0], RequestCancelledError)
        assert results[0].message == "request superseded or cancelled"
        assert results[1].data == OK_BODY["data"]
        assert coordinator.pending_count() == 0

    @pytest.mark.asyncio
    async def test_superseded_while_in_flight(self, make_coordinator, held_transport, sink):
        coordinator = make_coordinator(held_transport)

        first = asyncio.create_task(coordinator.get("/a", {"x": 1}))
        await settle()
        assert coordinator.pending_count() == 1

        second = asyncio.create_task(coordinator.get("/a", {"x": 1}))
        await settle()

        assert first.done()
        with pytest.raises(RequestCancelledError):
            await first
        assert held_transport.handles[0].aborted
        assert coordinator.pending_count() == 1

        held_transport.release_all()
        envelope = await second

        assert envelope.success is True
        assert coordinator.pending_count() == 0
        assert sink.phases().count("error") == 1

    @pytest.mark.asyncio
    async def test_distinct_requests_do_not_interfere(self, make_coordinator, held_transport):
        coordinator = make_coordinator(held_transport)

        tasks = [
            asyncio.create_task(coordinator.get("/a", {"x": 1})),
            asyncio.create_task(coordinator.get("/a", {"x": 2})),
            asyncio.create_task(coordinator.post("/a", {"x": 1})),
        ]
        await settle()
        assert coordinator.pending_count() == 3

        held_transport.release_all()
        results = await asyncio.gather(*tasks)

        assert all(envelope.success for envelope in results)
        assert coordinator.pending_count() == 0

    # State: registry returns to empty after many interleavings
    @pytest.mark.asyncio
    async def test_no_leak_after_interleaved_cycles(self, make_coordinator, transport):
        coordinator = make_coordinator(transport)

        for i in range(100):
            await asyncio.gather(
                coordinator.get("/a", {"x": 1}),
                coordinator.get("/a", {"x": 1}),
                coordinator.put(f"/items/{i % 7}", {"v": i}),
                return_exceptions=True,
            )

        assert coordinator.pending_count() == 0

    @pytest.mark.asyncio
    async def test_is_pending(self, make_coordinator, held_transport):
        coordinator = make_coordinator(held_transport)
        descriptor = RequestDescriptor(url="/a", params={"x": 1})

        task = asyncio.create_task(coordinator.request(descriptor))
        await settle()
        assert coordinator.is_pending(descriptor)

        held_transport.release_all()
        await task
        assert not coordinator.is_pending(descriptor)


class TestCancelAll:
    """Bulk cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_all_in_flight(self, make_coordinator, held_transport):
        coordinator = make_coordinator(held_transport)

        tasks = [asyncio.create_task(coordinator.get(f"/items/{i}")) for i in range(5)]
        await settle()
        assert coordinator.pending_count() == 5

        assert coordinator.cancel_all() == 5
        assert coordinator.pending_count() == 0

        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, RequestCancelledError) for r in results)
        assert coordinator.pending_count() == 0

    @pytest.mark.asyncio
    async def test_cancel_all_empty(self, make_coordinator, transport):
        assert make_coordinator(transport).cancel_all() == 0

    @pytest.mark.asyncio
    async def test_requests_after_cancel_all_succeed(self, make_coordinator, transport):
        coordinator = make_coordinator(transport)
        coordinator.cancel_all()

        envelope = await coordinator.get("/a")

        assert envelope.code == 200

    # Path: the caller's own task cancellation is not classified
    @pytest.mark.asyncio
    async def test_outer_task_cancel_propagates(self, make_coordinator, held_transport):
        coordinator = make_coordinator(held_transport)

        task = asyncio.create_task(coordinator.get("/a"))
        await settle()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert coordinator.pending_count() == 0

    # State: transport already failed, caller not yet resumed when cancel_all runs
    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", [httpx.ReadTimeout("slow"), httpx.ConnectError("refused")])
    async def test_cancel_all_after_transport_failure(self, make_coordinator, held_transport, failure):
        coordinator = make_coordinator(held_transport)

        task = asyncio.create_task(coordinator.get("/a"))
        await settle()

        held_transport.waiters[0].set_exception(failure)
        asyncio.get_running_loop().call_soon(coordinator.cancel_all)

        with pytest.raises(RequestCancelledError):
            await task
        assert held_transport.handles[0].aborted
        assert coordinator.pending_count() == 0

    @pytest.mark.asyncio
    async def test_supersede_after_transport_failure(self, make_coordinator, held_transport, sink):
        coordinator = make_coordinator(held_transport)

        task = asyncio.create_task(coordinator.get("/a", {"x": 1}))
        await settle()
        fingerprint = held_transport.requests[0].fingerprint

        held_transport.waiters[0].set_exception(httpx.ReadTimeout("slow"))
        asyncio.get_running_loop().call_soon(coordinator.registry.register, fingerprint)

        with pytest.raises(RequestCancelledError):
            await task
        assert sink.events[-1].error_kind == "cancelled"
        # The successor entry is left untouched
        assert coordinator.registry.has(fingerprint)


class TestEnvelope:
    """Envelope acceptance."""

    @pytest.mark.asyncio
    async def test_code_200_success_false_resolves(self, make_coordinator):
        body = {"code": 200, "data": {"n": 1}, "message": "", "success": False}
        coordinator = make_coordinator(ScriptedTransport(TransportResponse(200, data=body)))

        envelope = await coordinator.get("/a")

        assert envelope.code == 200
        assert envelope.success is False
        assert envelope.data == {"n": 1}

    @pytest.mark.asyncio
    async def test_success_true_any_code_resolves(self, make_coordinator):
        body = {"code": 0, "data": [], "message": "ok", "success": True}
        coordinator = make_coordinator(ScriptedTransport(TransportResponse(200, data=body)))

        envelope = await coordinator.post("/a", {"v": 1})

        assert envelope.to_dict() == body

    # Decision: HTTP 200 + failing envelope -> business failure
    @pytest.mark.asyncio
    async def test_business_failure(self, make_coordinator, sink):
        body = {"code": 500, "data": None, "message": "quota exceeded", "success": False}
        coordinator = make_coordinator(ScriptedTransport(TransportResponse(200, data=body)))

        with pytest.raises(BusinessFailureError) as exc_info:
            await coordinator.get("/a")

        assert exc_info.value.message == "quota exceeded"
        assert coordinator.pending_count() == 0
        assert sink.phases() == ["pre", "post", "error"]


class TestFailures:
    """Transport and status failures."""

    @pytest.mark.asyncio
    async def test_http_500_is_server_error(self, make_coordinator, sink):
        body = {"code": 500, "data": None, "message": "", "success": False}
        coordinator = make_coordinator(ScriptedTransport(TransportResponse(500, data=body)))

        with pytest.raises(ServerError) as exc_info:
            await coordinator.get("/a")

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "internal server error"
        assert sink.phases() == ["pre", "error"]

    @pytest.mark.asyncio
    async def test_401_clears_token_once(self, make_coordinator, token_store):
        token_store.set_token("abc")
        transport = ScriptedTransport(TransportResponse(401, data={"message": "expired"}))
        coordinator = make_coordinator(transport)

        with pytest.raises(UnauthorizedError) as exc_info:
            await coordinator.get("/me")

        assert exc_info.value.message == "expired"
        assert transport.requests[0].headers["Authorization"] == "Bearer abc"
        assert token_store.get_token() is None

        # Next request goes out without a token
        transport.response = TransportResponse(200, data=OK_BODY)
        await coordinator.get("/me")
        assert "Authorization" not in transport.requests[1].headers

    @pytest.mark.asyncio
    async def test_timeout(self, make_coordinator, sink):
        coordinator = make_coordinator(ScriptedTransport(httpx.ReadTimeout("slow")))

        with pytest.raises(RequestTimeoutError) as exc_info:
            await coordinator.get("/slow")

        assert exc_info.value.message == "request timed out"
        assert exc_info.value.status_code is None
        assert coordinator.pending_count() == 0
        assert sink.phases() == ["pre", "error"]

    @pytest.mark.asyncio
    async def test_network_error(self, make_coordinator):
        coordinator = make_coordinator(ScriptedTransport(httpx.ConnectError("refused")))

        with pytest.raises(NetworkUnavailableError) as exc_info:
            await coordinator.delete("/a", {"id": 1})

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert coordinator.pending_count() == 0

    @pytest.mark.asyncio
    async def test_every_failure_is_request_error(self, make_coordinator):
        for outcome in (
            TransportResponse(404),
            TransportResponse(502, data="Bad Gateway"),
            httpx.ReadError("reset"),
            RuntimeError("unexpected"),
        ):
            coordinator = make_coordinator(ScriptedTransport(outcome))
            with pytest.raises(RequestError):
                await coordinator.patch("/a", {"v": 1})
            assert coordinator.pending_count() == 0


class TestFacade:
    """Verb shortcuts, config and lifecycle."""

    @pytest.mark.asyncio
    async def test_verb_shortcuts(self, make_coordinator, transport):
        coordinator = make_coordinator(transport)

        await coordinator.get("/r", {"q": 1})
        await coordinator.delete("/r", {"id": 2})
        await coordinator.post("/r", {"a": 1})
        await coordinator.put("/r", {"b": 2})
        await coordinator.patch("/r", {"c": 3}, headers={"X-Op": "patch"})

        methods = [r.method for r in transport.requests]
        assert methods == ["GET", "DELETE", "POST", "PUT", "PATCH"]
        assert transport.requests[1].params == {"id": 2}
        assert transport.requests[2].body == {"a": 1}
        assert transport.requests[4].headers["X-Op"] == "patch"

    @pytest.mark.asyncio
    async def test_unknown_option_rejected(self, make_coordinator, transport):
        coordinator = make_coordinator(transport)

        with pytest.raises(TypeError):
            await coordinator.get("/a", retries=3)

        assert transport.requests == []

    def test_invalid_method_rejected(self):
        with pytest.raises(ValueError):
            RequestDescriptor(url="/a", method="TRACE")

    # State: config changes apply only to later dispatches
    @pytest.mark.asyncio
    async def test_update_config_does_not_affect_in_flight(self, make_coordinator, held_transport):
        coordinator = make_coordinator(held_transport)

        in_flight = asyncio.create_task(coordinator.get("/a"))
        await settle()
        coordinator.update_config(ConfigSnapshot(base_url="https://other.example.com", timeout_ms=1000))
        held_transport.release_all()
        await in_flight

        later = asyncio.create_task(coordinator.get("/a"))
        await settle()
        held_transport.release_all()
        await later

        assert held_transport.requests[0].url == "https://api.example.com/a"
        assert held_transport.requests[0].timeout_seconds == 5.0
        assert held_transport.requests[1].url == "https://other.example.com/a"
        assert held_transport.requests[1].timeout_seconds == 1.0

    def test_update_config_validates(self, make_coordinator, transport):
        coordinator = make_coordinator(transport)

        with pytest.raises(ValueError):
            coordinator.update_config(ConfigSnapshot(base_url="", timeout_ms=1000))

        assert coordinator.get_config().base_url == "https://api.example.com"

    def test_get_config_returns_copy(self, make_coordinator, transport):
        coordinator = make_coordinator(transport)
        snapshot = coordinator.get_config()
        snapshot.default_headers["X-Mutated"] = "1"
        assert "X-Mutated" not in coordinator.get_config().default_headers

    @pytest.mark.asyncio
    async def test_aclose(self, make_coordinator, held_transport):
        coordinator = make_coordinator(held_transport)
        task = asyncio.create_task(coordinator.get("/a"))
        await settle()

        await coordinator.aclose()

        with pytest.raises(RequestCancelledError):
            await task
        assert held_transport.closed
        with pytest.raises(RuntimeError):
            await coordinator.get("/a")

    @pytest.mark.asyncio
    async def test_async_context_manager(self, make_coordinator, transport):
        async with make_coordinator(transport) as coordinator:
            await coordinator.get("/a")
        assert transport.closed


class TestObservability:
    """Events, listeners and sink isolation."""

    @pytest.mark.asyncio
    async def test_success_phases(self, make_coordinator, transport, sink):
        await make_coordinator(transport).get("/a", {"x": 1})

        assert sink.phases() == ["pre", "post"]
        assert sink.events[0].url == "https://api.example.com/a"
        assert sink.events[0].params["x"] == 1
        assert sink.events[1].status_code == 200

    @pytest.mark.asyncio
    async def test_error_event_fields(self, make_coordinator, sink):
        coordinator = make_coordinator(ScriptedTransport(TransportResponse(404)))

        with pytest.raises(RequestError):
            await coordinator.get("/missing")

        error = sink.events[-1]
        assert error.error_kind == "not_found"
        assert error.status_code == 404
        assert error.message == "requested resource not found"

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_break_requests(self, make_coordinator, transport):
        class BrokenSink:
            def emit(self, event):
                raise RuntimeError("sink down")

        coordinator = make_coordinator(transport, sink=BrokenSink())

        envelope = await coordinator.get("/a")

        assert envelope.success

    @pytest.mark.asyncio
    async def test_listeners(self, make_coordinator, transport):
        coordinator = make_coordinator(transport, sink=RecordingSink())
        seen = []
        unsubscribe = coordinator.on(seen.append)

        await coordinator.get("/a")
        unsubscribe()
        await coordinator.get("/b")

        assert [e.phase.value for e in seen] == ["pre", "post"]

    @pytest.mark.asyncio
    async def test_failing_listener_is_isolated(self, make_coordinator, transport, sink):
        coordinator = make_coordinator(transport)

        def broken(event):
            raise ValueError("listener bug")

        coordinator.on(broken)
        await coordinator.get("/a")
        coordinator.off(broken)

        assert sink.phases() == ["pre", "post"]
