"""Compliance and identifier verification tools (multi-level compliance, GLEIF LEI, EXIM trade documents)."""

from __future__ import annotations

import functools
from typing import Any, Dict, List, Tuple

from zkpret_mcp.catalog import ToolDefinition, ToolHandler
from zkpret_mcp.context import ContextSnapshot
from zkpret_mcp.services import ComplianceService, EximService, GleifService
from zkpret_mcp.tools.validators import object_schema, string_list_schema, text_schema

COMPLIANCE_LEVELS = ["local", "corridor", "global"]


async def verify_multi_level(
    args: Dict[str, Any], snapshot: ContextSnapshot, *, compliance: ComplianceService
) -> Dict[str, Any]:
    result = await compliance.verify_multi_level(args["entityId"], args["complianceLevel"], args["documents"])
    result["network"] = snapshot.network.value
    return result


async def verify_lei(args: Dict[str, Any], snapshot: ContextSnapshot, *, gleif: GleifService) -> Dict[str, Any]:
    return await gleif.verify_lei(args["lei"])


async def verify_trade(args: Dict[str, Any], snapshot: ContextSnapshot, *, exim: EximService) -> Dict[str, Any]:
    return await exim.verify_trade(args["shipmentId"], args["documents"])


def tool_entries(
    compliance: ComplianceService, gleif: GleifService, exim: EximService
) -> List[Tuple[ToolDefinition, ToolHandler]]:
    return [
        (
            ToolDefinition(
                name="compliance_verify_multi_level",
                description="Verify multi-level compliance for an entity using ZK proofs.",
                input_shape=object_schema(
                    {
                        "entityId": text_schema("Entity identifier for compliance verification"),
                        "complianceLevel": {
                            "type": "string",
                            "enum": COMPLIANCE_LEVELS,
                            "description": "Level of compliance verification",
                        },
                        "documents": {**string_list_schema("Document hashes for verification"), "default": []},
                    },
                    required=["entityId", "complianceLevel"],
                ),
            ),
            functools.partial(verify_multi_level, compliance=compliance),
        ),
        (
            ToolDefinition(
                name="gleif_verify_lei",
                description="Verify a Legal Entity Identifier (ISO 17442 format and checksum).",
                input_shape=object_schema(
                    {"lei": text_schema("20-character LEI", max_length=20, pattern="^[A-Za-z0-9]{20}$")},
                    required=["lei"],
                ),
            ),
            functools.partial(verify_lei, gleif=gleif),
        ),
        (
            ToolDefinition(
                name="exim_verify_trade",
                description="Check export/import shipment documentation for completeness.",
                input_shape=object_schema(
                    {
                        "shipmentId": text_schema("Shipment identifier"),
                        "documents": {
                            "type": "object",
                            "description": "Map of document type to document reference",
                            "additionalProperties": {"type": "string"},
                            "default": {},
                        },
                    },
                    required=["shipmentId"],
                ),
            ),
            functools.partial(verify_trade, exim=exim),
        ),
    ]
