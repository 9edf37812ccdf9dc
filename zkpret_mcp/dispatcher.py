"""
Dispatcher: validate and route one tool invocation, normalizing the outcome.

Every call returns a ``ResponseEnvelope`` in one of three shapes:

* success: ``{"ok": true, "result": ...}``
* domain failure: ``{"ok": true, "result": ..., "isError": true, "message": ...}``
* dispatch failure: ``{"ok": false, "errorKind": ..., "message": ...}``

Lookup and argument validation always finish before any handler code runs.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Set

from zkpret_mcp.catalog import CatalogEntry, ToolCatalog
from zkpret_mcp.config import DEFAULT_TOOL_TIMEOUT
from zkpret_mcp.context import ContextSnapshot, NetworkContext
from zkpret_mcp.errors import ContextError, ErrorKind, ToolExecutionError
from zkpret_mcp.logging_config import redact_arguments
from zkpret_mcp.metrics import MetricsRecorder, default_metrics
from zkpret_mcp.schema import apply_defaults, validate_arguments

logger = logging.getLogger(__name__)

INTERNAL_FAULT_MESSAGE = "Internal error while executing tool."


@dataclass(frozen=True, slots=True)
class ResponseEnvelope:
    ok: bool
    result: Any = None
    is_error: bool = False
    message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def success(cls, result: Any) -> "ResponseEnvelope":
        return cls(ok=True, result=result)

    @classmethod
    def domain_failure(cls, message: str, result: Any = None) -> "ResponseEnvelope":
        return cls(ok=True, result=result, is_error=True, message=message)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ResponseEnvelope":
        return cls(ok=False, error_kind=kind, message=message)

    @property
    def outcome(self) -> str:
        if not self.ok:
            return self.error_kind.value if self.error_kind else ErrorKind.INTERNAL_FAULT.value
        return "domain_error" if self.is_error else "success"

    def to_dict(self) -> Dict[str, Any]:
        if not self.ok:
            kind = self.error_kind or ErrorKind.INTERNAL_FAULT
            return {"ok": False, "errorKind": kind.value, "message": self.message}
        payload: Dict[str, Any] = {"ok": True, "result": self.result}
        if self.is_error:
            payload["isError"] = True
            payload["message"] = self.message
        return payload


async def _invoke(entry: CatalogEntry, arguments: Dict[str, Any], snapshot: ContextSnapshot) -> Any:
    result = entry.handler(arguments, snapshot)
    if inspect.isawaitable(result):
        result = await result
    return result


def _is_serializable(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def _consume_abandoned(tool_name: str, task: "asyncio.Task[Any]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None and not isinstance(exc, ToolExecutionError):
        logger.warning(
            "tool=%s abandoned handler finished with %s",
            tool_name,
            type(exc).__name__,
            extra={"tool": tool_name, "error": type(exc).__name__},
        )


class Dispatcher:
    def __init__(
        self,
        catalog: ToolCatalog,
        context: NetworkContext,
        *,
        timeout: float = DEFAULT_TOOL_TIMEOUT,
        metrics: MetricsRecorder = default_metrics,
    ) -> None:
        self.catalog = catalog
        self.context = context
        self.timeout = timeout
        self.metrics = metrics
        self._abandoned: Set["asyncio.Task[Any]"] = set()

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    async def dispatch(
        self,
        tool_name: str,
        raw_args: Optional[Mapping[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
        request_id: Optional[str] = None,
    ) -> ResponseEnvelope:
        start = time.perf_counter()
        arguments = {} if raw_args is None else raw_args
        logger.info(
            "tool=%s dispatch start request_id=%s",
            tool_name,
            request_id,
            extra={
                "tool": tool_name,
                "request_id": request_id,
                "arguments": redact_arguments(arguments) if isinstance(arguments, Mapping) else "<invalid>",
            },
        )
        envelope = await self._dispatch(tool_name, arguments, timeout, request_id)
        duration_ms = (time.perf_counter() - start) * 1000
        self.metrics.record_dispatch(tool_name, envelope.outcome, duration_ms)
        logger.info(
            "tool=%s outcome=%s duration_ms=%.2f request_id=%s",
            tool_name,
            envelope.outcome,
            duration_ms,
            request_id,
            extra={
                "tool": tool_name,
                "request_id": request_id,
                "outcome": envelope.outcome,
                "duration_ms": round(duration_ms, 3),
            },
        )
        return envelope

    async def _dispatch(
        self,
        tool_name: str,
        arguments: Any,
        timeout: Optional[float],
        request_id: Optional[str],
    ) -> ResponseEnvelope:
        entry = self.catalog.lookup(tool_name) if isinstance(tool_name, str) else None
        if entry is None:
            return ResponseEnvelope.failure(ErrorKind.UNKNOWN_TOOL, f"Unknown tool: {tool_name}")

        shape = entry.definition.input_shape
        violations = validate_arguments(shape, arguments)
        if violations:
            return ResponseEnvelope.failure(ErrorKind.INVALID_ARGUMENTS, violations[0].describe())
        validated = apply_defaults(shape, arguments)

        snapshot = self.context.current()
        limit = self.timeout if timeout is None else timeout
        task = asyncio.ensure_future(_invoke(entry, validated, snapshot))
        try:
            done, _pending = await asyncio.wait({task}, timeout=limit)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task not in done:
            return self._abandon(tool_name, task, limit, request_id)

        if task.cancelled():
            logger.error(
                "tool=%s handler was cancelled request_id=%s",
                tool_name,
                request_id,
                extra={"tool": tool_name, "request_id": request_id, "error": ErrorKind.INTERNAL_FAULT.value},
            )
            return ResponseEnvelope.failure(ErrorKind.INTERNAL_FAULT, INTERNAL_FAULT_MESSAGE)

        try:
            result = task.result()
        except ToolExecutionError as exc:
            partial = exc.partial_result
            if partial is not None and not _is_serializable(partial):
                logger.error(
                    "tool=%s reported a non-JSON-serializable partial result %s; dropping it",
                    tool_name,
                    type(partial).__name__,
                    extra={"tool": tool_name, "request_id": request_id},
                )
                partial = None
            return ResponseEnvelope.domain_failure(exc.message, partial)
        except ContextError as exc:
            return ResponseEnvelope.failure(exc.kind, exc.message)
        except Exception:
            logger.exception(
                "tool=%s handler raised an unexpected error request_id=%s",
                tool_name,
                request_id,
                extra={"tool": tool_name, "request_id": request_id},
            )
            return ResponseEnvelope.failure(ErrorKind.INTERNAL_FAULT, INTERNAL_FAULT_MESSAGE)

        if not _is_serializable(result):
            logger.error(
                "tool=%s returned a non-JSON-serializable %s",
                tool_name,
                type(result).__name__,
                extra={"tool": tool_name, "request_id": request_id},
            )
            return ResponseEnvelope.failure(ErrorKind.INTERNAL_FAULT, INTERNAL_FAULT_MESSAGE)
        return ResponseEnvelope.success(result)

    def _abandon(
        self,
        tool_name: str,
        task: "asyncio.Task[Any]",
        limit: float,
        request_id: Optional[str],
    ) -> ResponseEnvelope:
        # The handler keeps running; we only stop waiting for it.
        self._abandoned.add(task)
        task.add_done_callback(self._abandoned.discard)
        task.add_done_callback(lambda finished: _consume_abandoned(tool_name, finished))
        count = self.metrics.record_timeout(tool_name)
        logger.warning(
            "tool=%s timed out after %.2fs (timeouts so far: %d) request_id=%s",
            tool_name,
            limit,
            count,
            request_id,
            extra={"tool": tool_name, "request_id": request_id, "error": ErrorKind.TIMEOUT.value},
        )
        return ResponseEnvelope.failure(ErrorKind.TIMEOUT, f"Tool {tool_name} timed out after {limit:g}s")
