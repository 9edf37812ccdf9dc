"""Process verification, risk assessment and data-integrity tools."""

from __future__ import annotations

import functools
from typing import Any, Dict, List, Tuple

from zkpret_mcp.catalog import ToolDefinition, ToolHandler
from zkpret_mcp.context import ContextSnapshot
from zkpret_mcp.errors import ToolExecutionError
from zkpret_mcp.services import ActusService, BpmnService, DataIntegrityService
from zkpret_mcp.tools.validators import object_schema, string_list_schema, text_schema

MAX_PROCESS_DEFINITION = 500_000


async def verify_process(args: Dict[str, Any], snapshot: ContextSnapshot, *, bpmn: BpmnService) -> Dict[str, Any]:
    result = await bpmn.verify_process(args["processId"], args["processDefinition"], args["expectedPath"])
    if not result["valid"]:
        raise ToolExecutionError(
            f"Process {args['processId']} failed verification: {'; '.join(result['issues'])}",
            partial_result=result,
        )
    return result


async def verify_basel3(args: Dict[str, Any], snapshot: ContextSnapshot, *, actus: ActusService) -> Dict[str, Any]:
    return await actus.verify_basel3(args["contractId"], args["riskParameters"])


async def verify_integrity(
    args: Dict[str, Any], snapshot: ContextSnapshot, *, integrity: DataIntegrityService
) -> Dict[str, Any]:
    return await integrity.verify(args["data"], args.get("expectedHash"))


def tool_entries(
    bpmn: BpmnService, actus: ActusService, integrity: DataIntegrityService
) -> List[Tuple[ToolDefinition, ToolHandler]]:
    return [
        (
            ToolDefinition(
                name="bpmn_verify_process",
                description="Verify a BPMN process definition against an expected path.",
                input_shape=object_schema(
                    {
                        "processId": text_schema("Process identifier"),
                        "processDefinition": text_schema("BPMN XML definition", max_length=MAX_PROCESS_DEFINITION),
                        "expectedPath": {**string_list_schema("Step ids expected in the process"), "default": []},
                    },
                    required=["processId", "processDefinition"],
                ),
            ),
            functools.partial(verify_process, bpmn=bpmn),
        ),
        (
            ToolDefinition(
                name="actus_verify_basel3",
                description="Assess an ACTUS contract against Basel III capital and liquidity thresholds.",
                input_shape=object_schema(
                    {
                        "contractId": text_schema("ACTUS contract identifier"),
                        "riskParameters": {
                            "type": "object",
                            "description": "Ratios such as capitalRatio and liquidityCoverageRatio",
                            "additionalProperties": {"type": "number"},
                            "default": {},
                        },
                    },
                    required=["contractId"],
                ),
            ),
            functools.partial(verify_basel3, actus=actus),
        ),
        (
            ToolDefinition(
                name="data_integrity_verify",
                description="Hash data and compare it with an expected SHA-256 digest.",
                input_shape=object_schema(
                    {
                        "data": {"type": "string", "description": "Data to hash"},
                        "expectedHash": {
                            "type": "string",
                            "pattern": "^[0-9a-fA-F]{64}$",
                            "description": "Expected SHA-256 hex digest",
                        },
                    },
                    required=["data"],
                ),
            ),
            functools.partial(verify_integrity, integrity=integrity),
        ),
    ]
