"""
Event-stream transport: FastAPI application serving MCP over Server-Sent Events.

``GET /sse`` opens a session and streams responses back to the client.
``POST /messages?sessionId=...`` submits one JSON-RPC message for that session;
the answer is delivered on the stream. ``POST /mcp`` is a stateless variant that
returns the JSON-RPC response directly in the HTTP body.

Run standalone with: uvicorn zkpret_mcp.bootstrap:create_sse_app --factory
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from zkpret_mcp.config import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_SSE_KEEPALIVE
from zkpret_mcp.context import NetworkContext
from zkpret_mcp.errors import ErrorKind
from zkpret_mcp.metrics import MetricsRecorder, default_metrics
from zkpret_mcp.protocol import INVALID_REQUEST, PARSE_ERROR, McpProtocol, jsonrpc_error_payload
from zkpret_mcp.transports.base import AdapterClosedError, AdapterState, TransportAdapter

logger = logging.getLogger(__name__)

MESSAGES_PATH = "/messages"
POLL_INTERVAL = 1.0


@dataclass(slots=True)
class SseSession:
    session_id: str
    queue: "asyncio.Queue[Optional[Dict[str, Any]]]" = field(default_factory=asyncio.Queue)
    created_at: float = field(default_factory=time.time)
    closed: bool = False

    def deliver(self, payload: Dict[str, Any]) -> bool:
        if self.closed:
            return False
        self.queue.put_nowait(payload)
        return True

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(None)


def unknown_session_response(session_id: Optional[str]) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "ok": False,
            "errorKind": ErrorKind.UNKNOWN_SESSION.value,
            "message": f"Unknown or expired session: {session_id}",
        },
    )


def format_event(event: str, data: str) -> str:
    lines = "".join(f"data: {line}\n" for line in data.splitlines() or [""])
    return f"event: {event}\n{lines}\n"


class SseTransport(TransportAdapter):
    name = "sse"

    def __init__(
        self,
        protocol: McpProtocol,
        *,
        context: Optional[NetworkContext] = None,
        keepalive: float = DEFAULT_SSE_KEEPALIVE,
        metrics: MetricsRecorder = default_metrics,
        **kwargs: Any,
    ) -> None:
        super().__init__(protocol, **kwargs)
        self.context = context
        self.keepalive = keepalive
        self.metrics = metrics
        self.sessions: Dict[str, SseSession] = {}
        self._server: Optional[uvicorn.Server] = None
        self.app = self._build_app()

    # Sessions

    def open_session(self) -> SseSession:
        if self.state in (AdapterState.CLOSING, AdapterState.CLOSED):
            raise AdapterClosedError("sse adapter is shutting down")
        session = SseSession(session_id=uuid.uuid4().hex)
        self.sessions[session.session_id] = session
        logger.info("SSE session opened", extra={"session_id": session.session_id})
        return session

    def close_session(self, session_id: str) -> bool:
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info("SSE session closed", extra={"session_id": session_id})
        return True

    async def submit(self, session: SseSession, message: Any, request_id: Optional[str] = None) -> None:
        response = await self.protocol.handle(message, request_id=request_id)
        if response is not None and not session.deliver(response):
            logger.info(
                "Dropped response for closed session",
                extra={"session_id": session.session_id, "request_id": request_id},
            )

    def _stopping(self) -> bool:
        if self.state in (AdapterState.CLOSING, AdapterState.CLOSED):
            return True
        return self._server is not None and self._server.should_exit

    async def event_stream(self, session: SseSession, request: Optional[Request] = None) -> AsyncIterator[str]:
        yield format_event("endpoint", f"{MESSAGES_PATH}?sessionId={session.session_id}")
        last_sent = time.monotonic()
        try:
            while True:
                try:
                    payload = await asyncio.wait_for(session.queue.get(), timeout=POLL_INTERVAL)
                except asyncio.TimeoutError:
                    if self._stopping() or (request is not None and await request.is_disconnected()):
                        break
                    if time.monotonic() - last_sent >= self.keepalive:
                        last_sent = time.monotonic()
                        yield ": keepalive\n\n"
                    continue
                if payload is None:
                    break
                last_sent = time.monotonic()
                yield format_event("message", json.dumps(payload, ensure_ascii=True))
        finally:
            self.close_session(session.session_id)

    async def _release(self) -> None:
        for session_id in list(self.sessions):
            self.close_session(session_id)

    # HTTP surface

    def health(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": "ok",
            "server": self.protocol.server_name,
            "version": self.protocol.server_version,
            "state": self.state.value,
            "sessions": len(self.sessions),
        }
        if self.context is not None:
            payload["network"] = self.context.current().network.value
        return payload

    def _build_app(self) -> FastAPI:
        transport = self

        @asynccontextmanager
        async def lifespan(_app: FastAPI):
            # Startup
            if transport.state is AdapterState.IDLE:
                transport.mark_connected()
            yield
            # Shutdown
            await transport.close()

        app = FastAPI(
            title="ZK-PRET MCP Server",
            description="MCP tool surface for ZK-PRET compliance and proof operations.",
            version=self.protocol.server_version,
            lifespan=lifespan,
        )

        @app.middleware("http")
        async def add_request_context(request: Request, call_next):
            request_id = str(uuid.uuid4())
            request.state.request_id = request_id
            transport.metrics.incr_request()
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        @app.get("/health")
        async def health() -> JSONResponse:
            """Lightweight health endpoint for monitoring."""
            return JSONResponse(content=transport.health())

        @app.get("/metrics")
        async def metrics() -> JSONResponse:
            """Return in-process metrics snapshot."""
            return JSONResponse(content=transport.metrics.snapshot())

        @app.get("/sse")
        async def open_stream(request: Request) -> Response:
            try:
                session = transport.open_session()
            except AdapterClosedError:
                return JSONResponse(status_code=503, content={"status": "closing"})
            return StreamingResponse(
                transport.event_stream(session, request),
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache", "X-Session-ID": session.session_id},
            )

        @app.delete("/sse/{session_id}")
        async def close_stream(session_id: str) -> Response:
            if not transport.close_session(session_id):
                return unknown_session_response(session_id)
            return Response(status_code=204)

        @app.post(MESSAGES_PATH)
        async def post_message(request: Request, sessionId: Optional[str] = Query(None)) -> JSONResponse:
            session = transport.sessions.get(sessionId) if sessionId else None
            if session is None:
                return unknown_session_response(sessionId)
            try:
                body = await request.json()
            except ValueError:
                return JSONResponse(status_code=400, content=jsonrpc_error_payload(None, PARSE_ERROR, "Parse error"))
            try:
                transport.spawn(transport.submit(session, body, request.state.request_id))
            except AdapterClosedError:
                return JSONResponse(status_code=503, content={"status": "closing"})
            return JSONResponse(status_code=202, content={"status": "accepted"})

        @app.post("/mcp")
        async def mcp_gateway(request: Request) -> Response:
            """Stateless JSON-RPC gateway; the response is returned in the HTTP body."""
            request_id = request.state.request_id
            try:
                body = await request.json()
            except ValueError:
                return JSONResponse(status_code=400, content=jsonrpc_error_payload(None, PARSE_ERROR, "Parse error"))
            if not isinstance(body, dict):
                return JSONResponse(status_code=400, content=jsonrpc_error_payload(None, INVALID_REQUEST, "Invalid request"))
            try:
                task = transport.spawn(transport.protocol.handle(body, request_id=request_id))
            except AdapterClosedError:
                return JSONResponse(status_code=503, content={"status": "closing"})
            response = await task
            if response is None:
                # Notifications should not return a JSON-RPC response body.
                return Response(status_code=204)
            return JSONResponse(content=response)

        return app

    async def serve(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_config=None,
            lifespan="on",
            timeout_graceful_shutdown=int(self.drain_timeout),
        )
        self._server = uvicorn.Server(config)
        logger.info("SSE transport listening on http://%s:%d/sse", host, port)
        await self._server.serve()
        if self.state is not AdapterState.CLOSED:
            await self.close()

    def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
