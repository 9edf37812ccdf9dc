"""
JSON-RPC 2.0 surface for MCP clients, shared by every transport adapter.

Adapters hand decoded messages to ``McpProtocol.handle`` and write back
whatever it returns (``None`` for notifications). Tool calls go through the
dispatcher; this module only translates envelopes into MCP results and errors.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Union

from zkpret_mcp.catalog import ToolCatalog
from zkpret_mcp.config import SERVER_NAME, SERVER_VERSION
from zkpret_mcp.dispatcher import Dispatcher, ResponseEnvelope
from zkpret_mcp.errors import ErrorKind
from zkpret_mcp.metrics import MetricsRecorder, default_metrics
from zkpret_mcp.rate_limiter import PerKeyRateLimiter

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
RATE_LIMITED = 429

ERROR_CODES: Dict[ErrorKind, int] = {
    ErrorKind.UNKNOWN_TOOL: METHOD_NOT_FOUND,
    ErrorKind.INVALID_ARGUMENTS: INVALID_PARAMS,
    ErrorKind.UNKNOWN_NETWORK: INVALID_PARAMS,
    ErrorKind.NETWORK_MISMATCH: INVALID_PARAMS,
    ErrorKind.UNKNOWN_SESSION: -32001,
    ErrorKind.TIMEOUT: -32002,
    ErrorKind.INTERNAL_FAULT: INTERNAL_ERROR,
}

NOTIFICATION_METHODS = ("notifications/initialized", "initialized", "notifications/cancelled")

# Calls naming tools outside the catalog share one rate-limit bucket.
UNKNOWN_TOOL_LIMIT_KEY = "unknown_tool"


def jsonrpc_success_payload(rpc_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rpc_id, "result": result}


def jsonrpc_error_payload(rpc_id: Any, code: int, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": rpc_id, "error": error}


def wrap_tool_result(envelope: ResponseEnvelope) -> Dict[str, Any]:
    """
    Shape a successful or domain-failed envelope into an MCP tool result.
    """
    if envelope.is_error:
        wrapped: Dict[str, Any] = {
            "content": [{"type": "text", "text": envelope.message or "Error"}],
            "isError": True,
        }
        if envelope.result is not None:
            wrapped["structuredContent"] = envelope.result
        wrapped["envelope"] = envelope.to_dict()
        return wrapped

    result = envelope.result
    if isinstance(result, str):
        text_repr = result
    else:
        text_repr = json.dumps(result, ensure_ascii=True)
    wrapped = {"content": [{"type": "text", "text": text_repr}], "envelope": envelope.to_dict()}
    if isinstance(result, dict):
        wrapped["structuredContent"] = result
    return wrapped


def envelope_error_payload(rpc_id: Any, envelope: ResponseEnvelope) -> Dict[str, Any]:
    kind = envelope.error_kind or ErrorKind.INTERNAL_FAULT
    return jsonrpc_error_payload(
        rpc_id,
        ERROR_CODES.get(kind, INTERNAL_ERROR),
        envelope.message or kind.value,
        data={"errorKind": kind.value},
    )


class McpProtocol:
    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        rate_limiter: Optional[PerKeyRateLimiter] = None,
        metrics: MetricsRecorder = default_metrics,
        server_name: str = SERVER_NAME,
        server_version: str = SERVER_VERSION,
    ) -> None:
        self.dispatcher = dispatcher
        self.rate_limiter = rate_limiter
        self.metrics = metrics
        self.server_name = server_name
        self.server_version = server_version

    @property
    def catalog(self) -> ToolCatalog:
        return self.dispatcher.catalog

    def list_tools(self) -> list:
        tools = []
        for definition in self.catalog.list():
            described = definition.to_dict()
            tools.append(
                {
                    "name": described["name"],
                    "description": described["description"],
                    "category": described["category"],
                    "inputSchema": described["inputShape"],
                }
            )
        return tools

    async def _rate_limited(self, key: str) -> bool:
        if self.rate_limiter is None:
            return False
        if await self.rate_limiter.allow(key):
            return False
        logger.warning("tool=%s outcome=rate_limited", key, extra={"tool": key, "outcome": "rate_limited"})
        self.metrics.incr_rate_limited()
        return True

    async def handle_raw(self, raw: Union[str, bytes], *, request_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            return jsonrpc_error_payload(None, PARSE_ERROR, "Parse error")
        return await self.handle(message, request_id=request_id)

    async def handle(self, message: Any, *, request_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Answer one decoded JSON-RPC message, or return ``None`` for notifications."""
        if not isinstance(message, dict):
            return jsonrpc_error_payload(None, INVALID_REQUEST, "Invalid request")

        method = message.get("method")
        rpc_id = message.get("id")
        is_notification = "id" not in message
        if not isinstance(method, str) or not method:
            return None if is_notification else jsonrpc_error_payload(rpc_id, INVALID_REQUEST, "Invalid request")

        if method in NOTIFICATION_METHODS:
            logger.debug("mcp notification %s request_id=%s", method, request_id, extra={"request_id": request_id})
            return None

        response = await self._handle_method(method, rpc_id, message.get("params"), request_id)
        return None if is_notification else response

    async def _handle_method(
        self, method: str, rpc_id: Any, raw_params: Any, request_id: Optional[str]
    ) -> Dict[str, Any]:
        if raw_params is None:
            params: Dict[str, Any] = {}
        elif isinstance(raw_params, dict):
            params = raw_params
        else:
            return jsonrpc_error_payload(rpc_id, INVALID_PARAMS, "Invalid params")

        if method == "initialize":
            protocol_version = params.get("protocolVersion")
            if not isinstance(protocol_version, str) or not protocol_version:
                return jsonrpc_error_payload(rpc_id, INVALID_PARAMS, "Invalid params")
            logger.debug(
                "mcp initialize requested protocol=%s request_id=%s",
                protocol_version,
                request_id,
                extra={"request_id": request_id},
            )
            result = {
                "protocolVersion": protocol_version,
                "serverInfo": {"name": self.server_name, "version": self.server_version},
                "capabilities": {"tools": {"listChanged": False}},
            }
            return jsonrpc_success_payload(rpc_id, result)

        if method == "ping":
            return jsonrpc_success_payload(rpc_id, {})

        if method in ("tools/list", "list_tools"):
            if await self._rate_limited("list_tools"):
                return jsonrpc_error_payload(rpc_id, RATE_LIMITED, "Rate limit exceeded")
            return jsonrpc_success_payload(rpc_id, {"tools": self.list_tools()})

        if method in ("tools/call", "call_tool"):
            tool_name = params.get("name") or params.get("tool")
            arguments = params.get("arguments")
            if arguments is None:
                arguments = params.get("params") or {}
            if not isinstance(tool_name, str) or not tool_name.strip():
                return jsonrpc_error_payload(rpc_id, INVALID_PARAMS, "Invalid params")
            if not isinstance(arguments, dict):
                return jsonrpc_error_payload(rpc_id, INVALID_PARAMS, "Invalid params")
            limit_key = tool_name if tool_name in self.catalog else UNKNOWN_TOOL_LIMIT_KEY
            if await self._rate_limited(limit_key):
                return jsonrpc_error_payload(rpc_id, RATE_LIMITED, "Rate limit exceeded")
            envelope = await self.dispatcher.dispatch(tool_name, arguments, request_id=request_id)
            if not envelope.ok:
                return envelope_error_payload(rpc_id, envelope)
            return jsonrpc_success_payload(rpc_id, wrap_tool_result(envelope))

        return jsonrpc_error_payload(rpc_id, METHOD_NOT_FOUND, "Method not found")
