"""
Pending request registry.

Maps each fingerprint to the cancellation handle of its live request and
enforces at most one in-flight request per fingerprint. The most recently
dispatched request wins: registering a fingerprint that is already pending
aborts the earlier request.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from ..errors import RequestAborted

logger = logging.getLogger("fetch_coordinator.registry")

T = TypeVar("T")

REASON_SUPERSEDED = "superseded"
REASON_CANCELLED = "cancelled"


class CancellationHandle:
    """
    Capability to abort one in-flight transport call.

    The transport call runs as a task bound to the handle through ``run``.
    Once aborted, ``run`` raises RequestAborted, even when the transport had
    already finished (with a result or an exception) but the caller had not
    yet resumed.
    """

    def __init__(self, fingerprint: str) -> None:
        self.fingerprint = fingerprint
        self._reason: Optional[str] = None
        self._task: Optional[asyncio.Future] = None
        self._callbacks: List[Callable[[str], None]] = []

    @property
    def aborted(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def add_abort_callback(self, callback: Callable[[str], None]) -> None:
        """Register a callback invoked with the reason when the handle aborts."""
        if self.aborted:
            callback(self._reason)
            return
        self._callbacks.append(callback)

    def abort(self, reason: str = REASON_CANCELLED) -> None:
        """Abort the bound operation. Idempotent."""
        if self.aborted:
            return
        self._reason = reason
        if self._task is not None and not self._task.done():
            self._task.cancel()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(reason)
            except Exception as e:
                logger.debug(f"CancellationHandle.abort: callback failed: {e!r}")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` as a task that ``abort`` can cancel."""
        if self.aborted:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RequestAborted(self._reason)

        task = asyncio.ensure_future(awaitable)
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self.aborted:
                raise RequestAborted(self._reason) from None
            raise
        except Exception:
            # Aborted after the transport failed but before the caller resumed
            if self.aborted:
                raise RequestAborted(self._reason) from None
            raise
        finally:
            if not task.done():
                task.cancel()
            self._task = None

        if self.aborted:
            raise RequestAborted(self._reason)
        return result

    def __repr__(self) -> str:
        return f"CancellationHandle(fingerprint={self.fingerprint[:12]!r}, reason={self._reason!r})"


class PendingRegistry:
    """
    Registry of in-flight requests keyed by fingerprint.

    Mutated only by register, deregister and cancel_all, each a single
    synchronous step on the event loop thread.

    Example:
        registry = PendingRegistry()
        handle = registry.register(fingerprint)
        try:
            response = await handle.run(transport.send(request, handle))
        finally:
            registry.deregister(fingerprint, handle)
    """

    def __init__(self) -> None:
        self._pending: Dict[str, CancellationHandle] = {}

    def register(self, fingerprint: str) -> CancellationHandle:
        """Register a new in-flight request, superseding any pending one."""
        existing = self._pending.get(fingerprint)
        if existing is not None:
            logger.debug(f"PendingRegistry.register: superseding {fingerprint[:12]}")
            existing.abort(REASON_SUPERSEDED)

        handle = CancellationHandle(fingerprint)
        self._pending[fingerprint] = handle
        return handle

    def deregister(
        self,
        fingerprint: str,
        handle: Optional[CancellationHandle] = None,
    ) -> bool:
        """
        Remove the entry for ``fingerprint``.

        When ``handle`` is given, the entry is only removed if it still
        belongs to that handle. Returns whether an entry was removed.
        """
        current = self._pending.get(fingerprint)
        if current is None:
            return False
        if handle is not None and current is not handle:
            return False
        del self._pending[fingerprint]
        return True

    def cancel_all(self) -> int:
        """Abort every pending request and clear the registry."""
        handles = list(self._pending.values())
        self._pending.clear()
        for handle in handles:
            handle.abort(REASON_CANCELLED)
        if handles:
            logger.debug(f"PendingRegistry.cancel_all: aborted {len(handles)} request(s)")
        return len(handles)

    def get(self, fingerprint: str) -> Optional[CancellationHandle]:
        return self._pending.get(fingerprint)

    def has(self, fingerprint: str) -> bool:
        return fingerprint in self._pending

    def size(self) -> int:
        return len(self._pending)

    def fingerprints(self) -> List[str]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._pending
