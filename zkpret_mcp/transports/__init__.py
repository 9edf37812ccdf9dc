"""Transport adapters: framing only, all tool logic lives behind the dispatcher."""

from .base import AdapterClosedError, AdapterState, TransportAdapter
from .sse import SseSession, SseTransport
from .stdio import StdioTransport, open_stdio_streams

__all__ = [
    "AdapterClosedError",
    "AdapterState",
    "TransportAdapter",
    "SseSession",
    "SseTransport",
    "StdioTransport",
    "open_stdio_streams",
]
