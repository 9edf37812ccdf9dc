"""
Configuration helpers for the ZK-PRET MCP server.

This module centralizes transport and network selection, the event-stream bind
address, dispatch timeouts, rate limits and logging options. Every value can be
overridden through the environment; command line flags (see ``cli.py``) win
over the environment when both are present.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "sse")
NETWORKS = ("local", "devnet", "testnet", "mainnet")

DEFAULT_TRANSPORT = "stdio"
DEFAULT_NETWORK = "testnet"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_TOOL_TIMEOUT = 30.0
DEFAULT_RATE_LIMIT_QPS = 5.0
DEFAULT_SSE_KEEPALIVE = 15.0
DEFAULT_DRAIN_TIMEOUT = 10.0
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "json"  # json or plain

SERVER_NAME = "zkpret-mcp-server"
SERVER_VERSION = "0.1.0"

ENV_PREFIX = "ZKPRET_MCP_"


def _env(name: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    source = os.environ if environ is None else environ
    value = source.get(ENV_PREFIX + name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_float(raw: Optional[str], default: float, *, minimum: float = 0.0) -> float:
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    if parsed <= minimum:
        return default
    return parsed


def parse_port(raw: Optional[str], default: int = DEFAULT_PORT) -> int:
    if raw is None:
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    if not 0 < parsed < 65536:
        return default
    return parsed


def choose(value: Optional[str], allowed: tuple[str, ...], default: str, *, label: str) -> str:
    """Return ``value`` if it is an allowed selector, otherwise the default."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in allowed:
        return normalized
    logger.warning("Unrecognized %s %r, falling back to %s", label, value, default)
    return default


def parse_tool_rate_limits(raw: Optional[str]) -> Dict[str, float]:
    """Parse ``name=qps,name=qps`` into a mapping, skipping malformed items."""
    limits: Dict[str, float] = {}
    if not raw:
        return limits
    for item in raw.split(","):
        name, sep, rate = item.partition("=")
        name = name.strip()
        if not sep or not name:
            continue
        try:
            parsed = float(rate)
        except ValueError:
            continue
        if parsed > 0:
            limits[name] = parsed
    return limits


@dataclass(slots=True)
class ServerConfig:
    """Runtime configuration for one server process."""

    transport: str = DEFAULT_TRANSPORT
    network: str = DEFAULT_NETWORK
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT
    rate_limit_qps: float = DEFAULT_RATE_LIMIT_QPS
    per_tool_rate_limits: Dict[str, float] = field(default_factory=dict)
    sse_keepalive: float = DEFAULT_SSE_KEEPALIVE
    drain_timeout: float = DEFAULT_DRAIN_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: str = DEFAULT_LOG_FORMAT


def load_config(environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Build a ``ServerConfig`` from environment variables."""
    return ServerConfig(
        transport=choose(_env("TRANSPORT", environ), TRANSPORTS, DEFAULT_TRANSPORT, label="transport"),
        network=choose(_env("NETWORK", environ), NETWORKS, DEFAULT_NETWORK, label="network"),
        host=_env("HOST", environ) or DEFAULT_HOST,
        port=parse_port(_env("PORT", environ)),
        tool_timeout=parse_float(_env("TOOL_TIMEOUT", environ), DEFAULT_TOOL_TIMEOUT),
        rate_limit_qps=parse_float(_env("RATE_LIMIT_QPS", environ), DEFAULT_RATE_LIMIT_QPS),
        per_tool_rate_limits=parse_tool_rate_limits(_env("TOOL_RATE_LIMITS", environ)),
        sse_keepalive=parse_float(_env("SSE_KEEPALIVE", environ), DEFAULT_SSE_KEEPALIVE),
        drain_timeout=parse_float(_env("DRAIN_TIMEOUT", environ), DEFAULT_DRAIN_TIMEOUT),
        log_level=(_env("LOG_LEVEL", environ) or DEFAULT_LOG_LEVEL).upper(),
        log_format=(_env("LOG_FORMAT", environ) or DEFAULT_LOG_FORMAT).lower(),
    )


default_config = load_config()
