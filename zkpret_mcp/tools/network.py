"""Network tools: discovery of the enumerated networks and the explicit switch."""

from __future__ import annotations

import functools
from typing import Any, Dict, List, Tuple

from zkpret_mcp.catalog import ToolDefinition, ToolHandler
from zkpret_mcp.context import NETWORK_PROFILES, ContextSnapshot, NetworkContext
from zkpret_mcp.tools.validators import NETWORK_NAMES, object_schema


async def list_networks(args: Dict[str, Any], snapshot: ContextSnapshot) -> Dict[str, Any]:
    return {
        "networks": [profile.to_dict() for profile in NETWORK_PROFILES.values()],
        "currentNetwork": snapshot.network.value,
    }


async def current_network(args: Dict[str, Any], snapshot: ContextSnapshot) -> Dict[str, Any]:
    return {
        "network": snapshot.network.value,
        "profile": snapshot.profile.to_dict(),
        "wallet": snapshot.wallet.to_dict() if snapshot.wallet else None,
    }


async def switch_network(args: Dict[str, Any], snapshot: ContextSnapshot, *, context: NetworkContext) -> Dict[str, Any]:
    """
    Switch the process-wide network.

    Unknown names surface as ``UnknownNetwork`` from the context; a wallet bound
    to another network is detached by the switch.
    """
    before = context.current()
    after = context.switch_network(args["network"])
    return {
        "previousNetwork": before.network.value,
        "network": after.network.value,
        "profile": after.profile.to_dict(),
        "walletCleared": before.wallet is not None and after.wallet is None,
        "message": f"Switched to {after.profile.name}",
    }


def tool_entries(context: NetworkContext) -> List[Tuple[ToolDefinition, ToolHandler]]:
    return [
        (
            ToolDefinition(
                name="network_list_all",
                description="List all available Mina networks and the current selection.",
                input_shape=object_schema({}),
            ),
            list_networks,
        ),
        (
            ToolDefinition(
                name="network_current",
                description="Return the current network, its endpoints and the active wallet.",
                input_shape=object_schema({}),
            ),
            current_network,
        ),
        (
            ToolDefinition(
                name="network_switch",
                description="Switch to a different Mina network. Clears a wallet bound to another network.",
                input_shape=object_schema(
                    {
                        "network": {
                            "type": "string",
                            "description": f"Network to switch to ({', '.join(NETWORK_NAMES)})",
                        }
                    },
                    required=["network"],
                ),
            ),
            functools.partial(switch_network, context=context),
        ),
    ]
