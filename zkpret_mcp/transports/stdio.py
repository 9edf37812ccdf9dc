"""
Interactive-session transport: newline-delimited JSON-RPC over stdin/stdout.

Each incoming line is handled in its own task, so several requests can be in
flight on the one channel; responses are matched by the caller's JSON-RPC id.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import uuid
from typing import Any, Optional, Protocol, Tuple

from zkpret_mcp.protocol import McpProtocol
from zkpret_mcp.transports.base import AdapterState, TransportAdapter

logger = logging.getLogger(__name__)

MAX_LINE_BYTES = 4 * 1024 * 1024


class LineWriter(Protocol):
    def write(self, data: bytes) -> Any: ...

    async def drain(self) -> None: ...


class StdioTransport(TransportAdapter):
    name = "stdio"

    def __init__(self, protocol: McpProtocol, reader: asyncio.StreamReader, writer: LineWriter, **kwargs: Any) -> None:
        super().__init__(protocol, **kwargs)
        self.reader = reader
        self.writer = writer
        self._write_lock = asyncio.Lock()
        self._stop = asyncio.Event()

    async def serve(self) -> None:
        """Read requests until EOF or ``stop()``, then drain and close."""
        self.mark_connected()
        logger.info("stdio transport ready")
        read_task = asyncio.ensure_future(self._read_loop())
        stop_task = asyncio.ensure_future(self._stop.wait())
        try:
            await asyncio.wait({read_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (read_task, stop_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(read_task, stop_task, return_exceptions=True)
            await self.close()

    def stop(self) -> None:
        self._stop.set()

    async def _read_loop(self) -> None:
        while True:
            try:
                line = await self.reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as exc:
                if not exc.partial:
                    logger.info("stdio input closed")
                    return
                line = exc.partial
            except asyncio.LimitOverrunError as exc:
                logger.warning("stdio frame exceeded the reader limit, dropping")
                await self._skip_frame(exc.consumed)
                await self._write({"jsonrpc": "2.0", "id": None, "error": {"code": -32600, "message": "Invalid request"}})
                continue
            line = line.strip()
            if not line:
                continue
            if self.state in (AdapterState.CLOSING, AdapterState.CLOSED):
                return
            self.spawn(self._handle_line(line))

    async def _skip_frame(self, consumed: int) -> None:
        """Discard an oversized frame up to and including its terminating newline."""
        while True:
            try:
                await self.reader.readexactly(consumed)
                await self.reader.readuntil(b"\n")
                return
            except asyncio.LimitOverrunError as exc:
                consumed = exc.consumed
            except asyncio.IncompleteReadError:
                return

    async def _handle_line(self, line: bytes) -> None:
        request_id = str(uuid.uuid4())
        response = await self.protocol.handle_raw(line, request_id=request_id)
        if response is not None:
            await self._write(response)

    async def _write(self, payload: dict) -> None:
        data = json.dumps(payload, ensure_ascii=True).encode("utf-8") + b"\n"
        async with self._write_lock:
            self.writer.write(data)
            await self.writer.drain()


async def open_stdio_streams(
    stdin: Optional[Any] = None, stdout: Optional[Any] = None
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Wrap the process stdin/stdout pipes as asyncio streams."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=MAX_LINE_BYTES)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), stdin or sys.stdin)
    write_transport, write_protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, stdout or sys.stdout
    )
    writer = asyncio.StreamWriter(write_transport, write_protocol, reader, loop)
    return reader, writer
