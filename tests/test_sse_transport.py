import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import make_definition
from zkpret_mcp.catalog import ToolCatalog
from zkpret_mcp.context import NetworkContext
from zkpret_mcp.dispatcher import Dispatcher
from zkpret_mcp.metrics import default_metrics
from zkpret_mcp.protocol import McpProtocol
from zkpret_mcp.transports import AdapterState, SseTransport
from zkpret_mcp.transports.sse import format_event

CALL = {"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"name": "server_echo", "arguments": {"text": "hi"}}}


def _transport(**kwargs):
    async def echo(args, snapshot):
        return {"text": args["text"]}

    catalog = ToolCatalog()
    catalog.register(make_definition("server_echo", {"text": {"type": "string"}}, ["text"]), echo)
    context = NetworkContext("devnet")
    protocol = McpProtocol(Dispatcher(catalog, context))
    return SseTransport(protocol, context=context, **kwargs)


def test_health_reports_state_and_network():
    transport = _transport()
    with TestClient(transport.app) as client:
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["network"] == "devnet"
        assert body["state"] == "connected"
        assert body["sessions"] == 0
        assert "X-Request-ID" in resp.headers
    assert transport.state is AdapterState.CLOSED


def test_metrics_endpoint_counts_requests():
    transport = _transport()
    with TestClient(transport.app) as client:
        client.get("/health")
        data = client.get("/metrics").json()
    assert data["requests"] >= 1
    assert "tool_timeouts" in data


def test_stateless_gateway_returns_rpc_response():
    transport = _transport()
    with TestClient(transport.app) as client:
        resp = client.post("/mcp", json=CALL)
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == 7
        assert data["result"]["structuredContent"] == {"text": "hi"}
        assert resp.headers["X-Request-ID"]

        notification = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert notification.status_code == 204

        bad = client.post("/mcp", content=b"{nope", headers={"Content-Type": "application/json"})
        assert bad.status_code == 400
        assert bad.json()["error"]["code"] == -32700


def test_unknown_session_is_rejected_before_dispatch():
    transport = _transport()
    with TestClient(transport.app) as client:
        resp = client.post("/messages", params={"sessionId": "missing"}, json=CALL)
        assert resp.status_code == 404
        assert resp.json() == {
            "ok": False,
            "errorKind": "UnknownSession",
            "message": "Unknown or expired session: missing",
        }
        no_id = client.post("/messages", json=CALL)
        assert no_id.status_code == 404
    assert default_metrics.snapshot()["tool_success"] == {}


def test_delete_session():
    transport = _transport()
    with TestClient(transport.app) as client:
        session = transport.open_session()
        assert client.delete(f"/sse/{session.session_id}").status_code == 204
        assert session.closed is True
        assert client.delete(f"/sse/{session.session_id}").status_code == 404


@pytest.mark.asyncio
async def test_posted_message_is_delivered_on_session_queue():
    transport = _transport()
    transport.mark_connected()
    session = transport.open_session()
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=transport.app), base_url="http://test") as client:
        resp = await client.post("/messages", params={"sessionId": session.session_id}, json=CALL)
    assert resp.status_code == 202
    assert resp.json() == {"status": "accepted"}
    delivered = await asyncio.wait_for(session.queue.get(), 1.0)
    assert delivered["id"] == 7
    assert delivered["result"]["structuredContent"] == {"text": "hi"}
    await transport.close()


@pytest.mark.asyncio
async def test_event_stream_sends_endpoint_then_messages():
    transport = _transport()
    transport.mark_connected()
    session = transport.open_session()
    stream = transport.event_stream(session)

    first = await stream.__anext__()
    assert first == f"event: endpoint\ndata: /messages?sessionId={session.session_id}\n\n"

    session.deliver({"jsonrpc": "2.0", "id": 1, "result": {}})
    message = await stream.__anext__()
    assert message.startswith("event: message\n")
    assert json.loads(message.split("data: ", 1)[1]) == {"jsonrpc": "2.0", "id": 1, "result": {}}

    session.close()
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()
    assert session.session_id not in transport.sessions


@pytest.mark.asyncio
async def test_close_releases_sessions_and_refuses_new_ones():
    transport = _transport()
    transport.mark_connected()
    session = transport.open_session()
    await transport.close()
    assert session.closed is True
    assert transport.sessions == {}
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=transport.app), base_url="http://test") as client:
        resp = await client.get("/sse")
    assert resp.status_code == 503


def test_format_event_splits_multiline_data():
    assert format_event("message", "a\nb") == "event: message\ndata: a\ndata: b\n\n"
