"""Server introspection tools."""

from __future__ import annotations

import functools
import time
from typing import Any, Dict, List, Tuple

from zkpret_mcp.catalog import ToolCatalog, ToolDefinition, ToolHandler
from zkpret_mcp.config import SERVER_NAME, SERVER_VERSION
from zkpret_mcp.context import ContextSnapshot
from zkpret_mcp.errors import ToolExecutionError
from zkpret_mcp.tools.validators import object_schema

DEFAULT_PING_MESSAGE = "Hello ZK-PRET!"


async def server_info(args: Dict[str, Any], snapshot: ContextSnapshot, *, catalog: ToolCatalog) -> Dict[str, Any]:
    return {
        "name": SERVER_NAME,
        "version": SERVER_VERSION,
        "network": snapshot.network.value,
        "walletAttached": snapshot.wallet is not None,
        "tools": catalog.statistics(),
    }


async def echo_connection(args: Dict[str, Any], snapshot: ContextSnapshot) -> Dict[str, Any]:
    return {
        "status": "connected",
        "echo": args["message"],
        "network": snapshot.network.value,
        "timestamp": time.time(),
    }


async def list_categories(args: Dict[str, Any], snapshot: ContextSnapshot, *, catalog: ToolCatalog) -> Dict[str, Any]:
    category = args.get("category")
    if category is None:
        return {
            "categories": [
                {"name": name, "tools": [definition.name for definition in catalog.list_by_category(name)]}
                for name in catalog.categories()
            ]
        }
    tools = catalog.list_by_category(category)
    if not tools:
        raise ToolExecutionError(
            f"No tools in category '{category}'. Known categories: {', '.join(catalog.categories())}"
        )
    return {"category": category, "tools": [definition.to_dict() for definition in tools]}


def tool_entries(catalog: ToolCatalog) -> List[Tuple[ToolDefinition, ToolHandler]]:
    return [
        (
            ToolDefinition(
                name="server_info",
                description="Report server version, current network and catalog statistics.",
                input_shape=object_schema({}),
            ),
            functools.partial(server_info, catalog=catalog),
        ),
        (
            ToolDefinition(
                name="server_test_connection",
                description="Echo a message back to confirm the server is reachable.",
                input_shape=object_schema(
                    {"message": {"type": "string", "default": DEFAULT_PING_MESSAGE, "maxLength": 1024}}
                ),
            ),
            echo_connection,
        ),
        (
            ToolDefinition(
                name="server_list_categories",
                description="List tool categories, or the tools of a single category.",
                input_shape=object_schema({"category": {"type": "string", "minLength": 1}}),
            ),
            functools.partial(list_categories, catalog=catalog),
        ),
    ]
