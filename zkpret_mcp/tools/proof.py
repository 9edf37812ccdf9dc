"""Generic proof generation, verification and history tools."""

from __future__ import annotations

import functools
from typing import Any, Dict, List, Tuple

from zkpret_mcp.catalog import ToolDefinition, ToolHandler
from zkpret_mcp.context import ContextSnapshot
from zkpret_mcp.services import ProofService
from zkpret_mcp.tools.validators import object_schema, string_list_schema, text_schema

PROOF_TYPES = ["compliance", "integrity", "process", "actus"]
DEFAULT_CIRCUIT = "default_circuit"
DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 100


async def generate_proof(args: Dict[str, Any], snapshot: ContextSnapshot, *, proofs: ProofService) -> Dict[str, Any]:
    return await proofs.generate(args["proofType"], args["circuit"], args["publicInputs"], snapshot.network)


async def verify_proof(args: Dict[str, Any], snapshot: ContextSnapshot, *, proofs: ProofService) -> Dict[str, Any]:
    result = await proofs.verify(args["proof"], args["verificationKey"], args["publicInputs"])
    result["network"] = snapshot.network.value
    return result


async def proof_history(args: Dict[str, Any], snapshot: ContextSnapshot, *, proofs: ProofService) -> Dict[str, Any]:
    entries = await proofs.history(args.get("proofType"), args["limit"])
    return {"proofs": entries, "count": len(entries)}


def tool_entries(proofs: ProofService) -> List[Tuple[ToolDefinition, ToolHandler]]:
    public_inputs = {**string_list_schema("Public inputs bound into the proof"), "default": []}
    return [
        (
            ToolDefinition(
                name="proof_generate",
                description="Generate a zero-knowledge proof for a supported verification type.",
                input_shape=object_schema(
                    {
                        "proofType": {"type": "string", "enum": PROOF_TYPES, "description": "Kind of proof"},
                        "circuit": {**text_schema("Circuit identifier"), "default": DEFAULT_CIRCUIT},
                        "publicInputs": public_inputs,
                    },
                    required=["proofType"],
                ),
            ),
            functools.partial(generate_proof, proofs=proofs),
        ),
        (
            ToolDefinition(
                name="proof_verify",
                description="Verify a proof against its verification key and public inputs.",
                input_shape=object_schema(
                    {
                        "proof": text_schema("Proof to verify"),
                        "verificationKey": text_schema("Verification key"),
                        "publicInputs": public_inputs,
                    },
                    required=["proof", "verificationKey"],
                ),
            ),
            functools.partial(verify_proof, proofs=proofs),
        ),
        (
            ToolDefinition(
                name="proof_history",
                description="List proofs generated by this server, newest first.",
                input_shape=object_schema(
                    {
                        "proofType": {"type": "string", "enum": PROOF_TYPES, "description": "Only this kind of proof"},
                        "limit": {
                            "type": "integer",
                            "minimum": 1,
                            "maximum": MAX_HISTORY_LIMIT,
                            "default": DEFAULT_HISTORY_LIMIT,
                            "description": "Maximum number of entries",
                        },
                    }
                ),
            ),
            functools.partial(proof_history, proofs=proofs),
        ),
    ]
