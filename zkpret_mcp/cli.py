"""Command line entry point; flags override the ``ZKPRET_MCP_*`` environment."""

from __future__ import annotations

import argparse
import dataclasses
import sys
from typing import Mapping, Optional, Sequence

from zkpret_mcp.config import (
    DEFAULT_NETWORK,
    DEFAULT_TRANSPORT,
    NETWORKS,
    SERVER_NAME,
    SERVER_VERSION,
    TRANSPORTS,
    ServerConfig,
    choose,
    load_config,
    parse_float,
    parse_port,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zkpret-mcp", description="ZK-PRET MCP tool server.")
    parser.add_argument("--transport", help=f"Transport binding ({', '.join(TRANSPORTS)}).")
    parser.add_argument("--network", help=f"Initial network ({', '.join(NETWORKS)}).")
    parser.add_argument("--host", help="Bind address for the sse transport.")
    parser.add_argument("--port", help="Bind port for the sse transport.")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    parser.add_argument("--tool-timeout", help="Per-dispatch timeout in seconds.")
    parser.add_argument("--version", action="version", version=f"{SERVER_NAME} {SERVER_VERSION}")
    return parser


def resolve_config(
    argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None
) -> ServerConfig:
    """Environment first, then any flag that was given on the command line."""
    args = build_parser().parse_args(argv)
    config = load_config(environ)
    overrides = {}
    if args.transport is not None:
        overrides["transport"] = choose(args.transport, TRANSPORTS, DEFAULT_TRANSPORT, label="transport")
    if args.network is not None:
        overrides["network"] = choose(args.network, NETWORKS, DEFAULT_NETWORK, label="network")
    if args.host:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = parse_port(args.port, config.port)
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if args.tool_timeout is not None:
        overrides["tool_timeout"] = parse_float(args.tool_timeout, config.tool_timeout)
    return dataclasses.replace(config, **overrides)


def main(argv: Optional[Sequence[str]] = None) -> int:
    # Imported here so that --help and --version stay fast.
    from zkpret_mcp.bootstrap import run

    return run(resolve_config(argv))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
