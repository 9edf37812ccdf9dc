"""
Process wiring: build the catalog, context, dispatcher and protocol, then serve
them over one transport until a signal or end of input.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI

from zkpret_mcp.catalog import ToolCatalog
from zkpret_mcp.config import ServerConfig, default_config
from zkpret_mcp.context import NetworkContext
from zkpret_mcp.dispatcher import Dispatcher
from zkpret_mcp.errors import RegistrationError
from zkpret_mcp.logging_config import configure_logging
from zkpret_mcp.metrics import MetricsRecorder, default_metrics
from zkpret_mcp.protocol import McpProtocol
from zkpret_mcp.rate_limiter import PerKeyRateLimiter
from zkpret_mcp.services import Services
from zkpret_mcp.tools import build_tool_entries
from zkpret_mcp.transports import SseTransport, StdioTransport, TransportAdapter, open_stdio_streams

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass
class Application:
    config: ServerConfig
    context: NetworkContext
    catalog: ToolCatalog
    dispatcher: Dispatcher
    protocol: McpProtocol
    services: Services


def build_application(
    config: Optional[ServerConfig] = None,
    *,
    services: Optional[Services] = None,
    metrics: MetricsRecorder = default_metrics,
) -> Application:
    """
    Assemble the server core.

    All tools are registered with a single ``register_many`` call, so a bad
    definition leaves the catalog empty and raises ``RegistrationError``.
    """
    config = config or default_config
    services = services or Services()
    context = NetworkContext(config.network)
    catalog = ToolCatalog()
    catalog.register_many(build_tool_entries(services, context, catalog))
    dispatcher = Dispatcher(catalog, context, timeout=config.tool_timeout, metrics=metrics)
    rate_limiter = PerKeyRateLimiter(config.rate_limit_qps, per_tool=config.per_tool_rate_limits)
    protocol = McpProtocol(dispatcher, rate_limiter=rate_limiter, metrics=metrics)
    return Application(
        config=config,
        context=context,
        catalog=catalog,
        dispatcher=dispatcher,
        protocol=protocol,
        services=services,
    )


def build_sse_transport(application: Application) -> SseTransport:
    config = application.config
    return SseTransport(
        application.protocol,
        context=application.context,
        keepalive=config.sse_keepalive,
        metrics=application.protocol.metrics,
        drain_timeout=config.drain_timeout,
    )


def create_sse_app() -> FastAPI:
    """Application factory for running the event-stream binding under uvicorn directly."""
    configure_logging(default_config)
    return build_sse_transport(build_application(default_config)).app


def _install_signal_handlers(transport: TransportAdapter) -> None:
    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, transport.stop)
        except (NotImplementedError, RuntimeError):
            # Not available on this platform/loop; Ctrl+C still raises KeyboardInterrupt.
            logger.debug("Signal handler for %s not installed", sig)


def _remove_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError):
            pass


async def serve(application: Application) -> None:
    """Serve on the configured transport until it stops; in-flight requests are drained on the way out."""
    config = application.config
    logger.info(
        "Starting %s transport on %s with %d tools",
        config.transport,
        application.context.current().network.value,
        len(application.catalog),
    )
    if config.transport == "sse":
        sse = build_sse_transport(application)
        _install_signal_handlers(sse)
        try:
            await sse.serve(config.host, config.port)
        finally:
            _remove_signal_handlers()
        return

    reader, writer = await open_stdio_streams()
    stdio = StdioTransport(application.protocol, reader, writer, drain_timeout=config.drain_timeout)
    _install_signal_handlers(stdio)
    try:
        await stdio.serve()
    finally:
        _remove_signal_handlers()


def run(config: Optional[ServerConfig] = None) -> int:
    """Run the server to completion and return the process exit status."""
    config = config or default_config
    configure_logging(config)
    try:
        application = build_application(config)
    except RegistrationError as exc:
        logger.error("Tool registration failed: %s", exc.message, extra={"error": exc.kind.value})
        return 1
    try:
        asyncio.run(serve(application))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except (OSError, SystemExit) as exc:
        # uvicorn exits the process on bind failure; report it as a startup error.
        logger.error("Transport failed: %s", exc)
        return 1
    logger.info("Server stopped")
    return 0
