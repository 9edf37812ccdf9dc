"""Lifecycle shared by transport adapters."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Coroutine, Dict, Optional, Set

from zkpret_mcp.config import DEFAULT_DRAIN_TIMEOUT
from zkpret_mcp.protocol import McpProtocol

logger = logging.getLogger(__name__)


class AdapterState(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


_TRANSITIONS: Dict[AdapterState, Set[AdapterState]] = {
    AdapterState.IDLE: {AdapterState.CONNECTED, AdapterState.CLOSING},
    AdapterState.CONNECTED: {AdapterState.ACTIVE, AdapterState.CLOSING},
    AdapterState.ACTIVE: {AdapterState.CONNECTED, AdapterState.CLOSING},
    AdapterState.CLOSING: {AdapterState.CLOSED},
    AdapterState.CLOSED: set(),
}


class AdapterClosedError(RuntimeError):
    """Raised when work is submitted to an adapter that is shutting down."""


class TransportAdapter:
    """
    Base class holding the adapter state machine and in-flight request tasks.

    ``Active`` means at least one request is being handled; the adapter drops
    back to ``Connected`` when the last one finishes. ``close`` drains
    in-flight requests before reaching ``Closed``.
    """

    name = "transport"

    def __init__(self, protocol: McpProtocol, *, drain_timeout: float = DEFAULT_DRAIN_TIMEOUT) -> None:
        self.protocol = protocol
        self.drain_timeout = drain_timeout
        self.state = AdapterState.IDLE
        self._inflight: Set["asyncio.Task[Any]"] = set()
        self._closed = asyncio.Event()

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def _transition(self, target: AdapterState) -> None:
        if target is self.state:
            return
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"{self.name} adapter cannot move from {self.state.value} to {target.value}")
        logger.debug("%s adapter %s -> %s", self.name, self.state.value, target.value)
        self.state = target

    def mark_connected(self) -> None:
        self._transition(AdapterState.CONNECTED)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        """Run one request handler as a tracked task."""
        if self.state in (AdapterState.CLOSING, AdapterState.CLOSED, AdapterState.IDLE):
            coro.close()
            raise AdapterClosedError(f"{self.name} adapter is {self.state.value}")
        task = asyncio.ensure_future(coro)
        self._inflight.add(task)
        self._transition(AdapterState.ACTIVE)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: "asyncio.Task[Any]") -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "%s adapter request task failed",
                self.name,
                exc_info=task.exception(),
            )
        if not self._inflight and self.state is AdapterState.ACTIVE:
            self._transition(AdapterState.CONNECTED)

    async def drain(self, timeout: Optional[float] = None) -> int:
        """Wait for in-flight requests; returns how many were abandoned at the deadline."""
        limit = self.drain_timeout if timeout is None else timeout
        pending = set(self._inflight)
        if not pending:
            return 0
        _done, still_pending = await asyncio.wait(pending, timeout=limit)
        if still_pending:
            logger.warning("%s adapter abandoned %d in-flight requests at shutdown", self.name, len(still_pending))
            for task in still_pending:
                task.cancel()
        return len(still_pending)

    async def close(self) -> None:
        if self.state is AdapterState.CLOSED:
            return
        if self.state is not AdapterState.CLOSING:
            self._transition(AdapterState.CLOSING)
            await self.drain()
            await self._release()
            self._transition(AdapterState.CLOSED)
            self._closed.set()
            logger.info("%s adapter closed", self.name)
        else:
            await self._closed.wait()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def _release(self) -> None:
        """Hook for adapter-specific resource cleanup after drain."""
