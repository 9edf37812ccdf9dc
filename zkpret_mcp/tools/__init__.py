"""Tool modules exposed through the catalog."""

from __future__ import annotations

from typing import List, Tuple

from zkpret_mcp.catalog import ToolCatalog, ToolDefinition, ToolHandler
from zkpret_mcp.context import NetworkContext
from zkpret_mcp.services import Services

from . import compliance, contract, network, proof, server, verification, wallet


def build_tool_entries(
    services: Services, context: NetworkContext, catalog: ToolCatalog
) -> List[Tuple[ToolDefinition, ToolHandler]]:
    """Collect every tool definition with its bound handler, in catalog order."""
    entries: List[Tuple[ToolDefinition, ToolHandler]] = []
    entries.extend(network.tool_entries(context))
    entries.extend(wallet.tool_entries(services.wallets, context))
    entries.extend(contract.tool_entries(services.contracts))
    entries.extend(compliance.tool_entries(services.compliance, services.gleif, services.exim))
    entries.extend(verification.tool_entries(services.bpmn, services.actus, services.integrity))
    entries.extend(proof.tool_entries(services.proofs))
    entries.extend(server.tool_entries(catalog))
    return entries


__all__ = ["build_tool_entries"]
