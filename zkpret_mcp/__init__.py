"""
ZK-PRET MCP server package.

A tool catalog, a shared network/wallet context and a dispatcher that validates
arguments and runs handlers, exposed over stdio or Server-Sent Events. See
DESIGN.md for full details.
"""

__all__ = ["bootstrap", "catalog", "config", "context", "dispatcher", "errors", "protocol"]
