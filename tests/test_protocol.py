import json

import pytest

from conftest import make_definition
from zkpret_mcp.catalog import ToolCatalog
from zkpret_mcp.config import SERVER_NAME, SERVER_VERSION
from zkpret_mcp.context import NetworkContext
from zkpret_mcp.dispatcher import Dispatcher
from zkpret_mcp.errors import ToolExecutionError
from zkpret_mcp.metrics import default_metrics
from zkpret_mcp.rate_limiter import PerKeyRateLimiter
from zkpret_mcp.protocol import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    RATE_LIMITED,
    UNKNOWN_TOOL_LIMIT_KEY,
    McpProtocol,
)


async def _echo(args, snapshot):
    return {"text": args["text"], "network": snapshot.network.value}


async def _fails(args, snapshot):
    raise ToolExecutionError("Nothing to verify", partial_result={"checked": 0})


def _protocol(rate_limiter=None):
    catalog = ToolCatalog()
    catalog.register_many(
        [
            (make_definition("server_echo", {"text": {"type": "string"}}, ["text"]), _echo),
            (make_definition("proof_verify"), _fails),
            (make_definition("server_version"), lambda args, snapshot: "0.1.0"),
        ]
    )
    return McpProtocol(Dispatcher(catalog, NetworkContext("devnet")), rate_limiter=rate_limiter)


def _call(rpc_id, name, arguments=None, method="tools/call"):
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return {"jsonrpc": "2.0", "id": rpc_id, "method": method, "params": params}


@pytest.mark.asyncio
async def test_initialize_echoes_protocol_version():
    response = await _protocol().handle(
        {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2025-03-26"}}
    )
    assert response["id"] == 1
    result = response["result"]
    assert result["protocolVersion"] == "2025-03-26"
    assert result["serverInfo"] == {"name": SERVER_NAME, "version": SERVER_VERSION}
    assert result["capabilities"]["tools"]["listChanged"] is False


@pytest.mark.asyncio
async def test_initialize_requires_protocol_version():
    response = await _protocol().handle({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
    assert response["error"]["code"] == INVALID_PARAMS


@pytest.mark.asyncio
async def test_tools_list_maps_shape_to_input_schema():
    for method in ("tools/list", "list_tools"):
        response = await _protocol().handle({"jsonrpc": "2.0", "id": 2, "method": method})
        tools = response["result"]["tools"]
        assert [tool["name"] for tool in tools] == ["server_echo", "proof_verify", "server_version"]
        echo = tools[0]
        assert echo["category"] == "server"
        assert echo["inputSchema"]["required"] == ["text"]


@pytest.mark.asyncio
async def test_tools_call_success_wraps_result():
    response = await _protocol().handle(_call(3, "server_echo", {"text": "hi"}))
    result = response["result"]
    assert result["structuredContent"] == {"text": "hi", "network": "devnet"}
    assert json.loads(result["content"][0]["text"]) == {"text": "hi", "network": "devnet"}
    assert result["envelope"]["ok"] is True
    assert "isError" not in result


@pytest.mark.asyncio
async def test_tools_call_string_result_is_plain_text():
    response = await _protocol().handle(_call(4, "server_version"))
    assert response["result"]["content"] == [{"type": "text", "text": "0.1.0"}]
    assert "structuredContent" not in response["result"]


@pytest.mark.asyncio
async def test_tools_call_domain_failure_is_tool_error_not_rpc_error():
    response = await _protocol().handle(_call(5, "proof_verify", {}))
    assert "error" not in response
    result = response["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "Nothing to verify"
    assert result["structuredContent"] == {"checked": 0}
    assert result["envelope"] == {"ok": True, "result": {"checked": 0}, "isError": True, "message": "Nothing to verify"}


@pytest.mark.asyncio
async def test_unknown_tool_maps_to_method_not_found():
    response = await _protocol().handle(_call(6, "nope_tool", {}))
    assert response["error"]["code"] == METHOD_NOT_FOUND
    assert response["error"]["data"] == {"errorKind": "UnknownTool"}


@pytest.mark.asyncio
async def test_invalid_arguments_map_to_invalid_params():
    response = await _protocol().handle(_call(7, "server_echo", {"text": 5}))
    assert response["error"]["code"] == INVALID_PARAMS
    assert response["error"]["data"] == {"errorKind": "InvalidArguments"}
    assert response["error"]["message"].startswith("$.text:")


@pytest.mark.asyncio
async def test_call_tool_alias_accepts_tool_and_params_keys():
    message = {
        "jsonrpc": "2.0",
        "id": 8,
        "method": "call_tool",
        "params": {"tool": "server_echo", "params": {"text": "alias"}},
    }
    response = await _protocol().handle(message)
    assert response["result"]["structuredContent"]["text"] == "alias"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params",
    [{}, {"name": "   "}, {"name": "server_echo", "arguments": ["x"]}],
)
async def test_tools_call_rejects_malformed_params(params):
    response = await _protocol().handle({"jsonrpc": "2.0", "id": 9, "method": "tools/call", "params": params})
    assert response["error"]["code"] == INVALID_PARAMS


@pytest.mark.asyncio
async def test_non_object_params_rejected():
    response = await _protocol().handle({"jsonrpc": "2.0", "id": 10, "method": "tools/list", "params": [1]})
    assert response["error"]["code"] == INVALID_PARAMS


@pytest.mark.asyncio
async def test_unknown_method():
    response = await _protocol().handle({"jsonrpc": "2.0", "id": 11, "method": "resources/list"})
    assert response["error"]["code"] == METHOD_NOT_FOUND


@pytest.mark.asyncio
async def test_ping():
    response = await _protocol().handle({"jsonrpc": "2.0", "id": "p", "method": "ping"})
    assert response == {"jsonrpc": "2.0", "id": "p", "result": {}}


@pytest.mark.asyncio
async def test_notifications_get_no_response():
    protocol = _protocol()
    assert await protocol.handle({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None
    # A call without an id still runs but is never answered.
    assert await protocol.handle({"jsonrpc": "2.0", "method": "tools/call", "params": {"name": "server_echo", "arguments": {"text": "x"}}}) is None
    assert default_metrics.snapshot()["tool_success"] == {"server_echo": 1}


@pytest.mark.asyncio
async def test_invalid_requests():
    protocol = _protocol()
    assert (await protocol.handle([1, 2]))["error"]["code"] == INVALID_REQUEST
    assert (await protocol.handle({"jsonrpc": "2.0", "id": 1}))["error"]["code"] == INVALID_REQUEST
    assert (await protocol.handle_raw("{not json"))["error"]["code"] == PARSE_ERROR


@pytest.mark.asyncio
async def test_rate_limited_call_skips_dispatch():
    class DenyAll:
        async def allow(self, key):
            return False

    protocol = _protocol(rate_limiter=DenyAll())
    response = await protocol.handle(_call(12, "server_echo", {"text": "x"}))
    assert response["error"] == {"code": RATE_LIMITED, "message": "Rate limit exceeded"}
    snapshot = default_metrics.snapshot()
    assert snapshot["rate_limited"] == 1
    assert snapshot["tool_success"] == {}


@pytest.mark.asyncio
async def test_tools_list_rate_limited_under_list_tools_key():
    keys = []

    class Recording:
        async def allow(self, key):
            keys.append(key)
            return True

    protocol = _protocol(rate_limiter=Recording())
    await protocol.handle({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
    await protocol.handle(_call(2, "server_echo", {"text": "x"}))
    assert keys == ["list_tools", "server_echo"]


@pytest.mark.asyncio
async def test_unknown_tool_names_share_one_rate_limit_bucket():
    limiter = PerKeyRateLimiter(1000.0, burst=1000.0)
    protocol = _protocol(rate_limiter=limiter)
    for index in range(50):
        response = await protocol.handle(_call(index, f"junk_{index}"))
        assert response["error"]["code"] == METHOD_NOT_FOUND
    await protocol.handle(_call(99, "server_echo", {"text": "x"}))
    assert set(limiter._limiters) == {UNKNOWN_TOOL_LIMIT_KEY, "server_echo"}
