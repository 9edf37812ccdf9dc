"""Smart-contract lifecycle tools (deploy, call, inspect, verify, compile, list, load)."""

from __future__ import annotations

import functools
import logging
from typing import Any, Dict, List, Tuple

from zkpret_mcp.catalog import ToolDefinition, ToolHandler
from zkpret_mcp.context import ContextSnapshot, Network
from zkpret_mcp.errors import ToolExecutionError
from zkpret_mcp.services import ContractService, ServiceError
from zkpret_mcp.tools.validators import address_schema, object_schema, string_list_schema, text_schema

logger = logging.getLogger(__name__)

CONTRACT_TYPES = ["compliance", "gleif", "exim", "bpmn", "actus", "data_integrity", "custom"]
DEFAULT_CONTRACT_TYPE = "custom"
NETWORK_NAMES = [network.value for network in Network]


async def deploy_contract(args: Dict[str, Any], snapshot: ContextSnapshot, *, contracts: ContractService) -> Dict[str, Any]:
    if snapshot.wallet is None:
        raise ToolExecutionError("Deploying a contract requires an active wallet to pay fees.")
    result = await contracts.deploy(
        args["contractName"],
        args["constructorArgs"],
        snapshot.network,
        snapshot.wallet.address,
        args.get("contractType", DEFAULT_CONTRACT_TYPE),
    )
    result["contractName"] = args["contractName"]
    logger.info("Deployed contract %s at %s on %s", args["contractName"], result["address"], snapshot.network.value)
    return result


async def call_contract(args: Dict[str, Any], snapshot: ContextSnapshot, *, contracts: ContractService) -> Dict[str, Any]:
    try:
        return await contracts.call(args["contractAddress"], args["methodName"], args["args"], snapshot.network)
    except ServiceError as exc:
        raise ToolExecutionError(f"Contract call failed: {exc}") from exc


async def get_contract_state(args: Dict[str, Any], snapshot: ContextSnapshot, *, contracts: ContractService) -> Dict[str, Any]:
    try:
        return await contracts.get_state(args["contractAddress"], snapshot.network)
    except ServiceError as exc:
        raise ToolExecutionError(f"Failed to get state: {exc}") from exc


async def verify_contract(args: Dict[str, Any], snapshot: ContextSnapshot, *, contracts: ContractService) -> Dict[str, Any]:
    try:
        return await contracts.verify(args["contractAddress"], args["sourceCode"], snapshot.network)
    except ServiceError as exc:
        raise ToolExecutionError(f"Contract verification failed: {exc}") from exc


async def compile_contract(args: Dict[str, Any], snapshot: ContextSnapshot, *, contracts: ContractService) -> Dict[str, Any]:
    try:
        return await contracts.compile(
            args["sourceCode"], args["contractName"], args["optimize"], args.get("contractType", DEFAULT_CONTRACT_TYPE)
        )
    except ServiceError as exc:
        raise ToolExecutionError(f"Compilation failed: {exc}") from exc


async def list_deployed(args: Dict[str, Any], snapshot: ContextSnapshot, *, contracts: ContractService) -> Dict[str, Any]:
    deployed = await contracts.list_deployed(args.get("network"), args.get("contractType"))
    return {"contracts": deployed, "count": len(deployed)}


async def get_compiled(args: Dict[str, Any], snapshot: ContextSnapshot, *, contracts: ContractService) -> Dict[str, Any]:
    compiled = await contracts.list_compiled(args.get("contractType"))
    return {"contracts": compiled, "count": len(compiled)}


async def load_existing(args: Dict[str, Any], snapshot: ContextSnapshot, *, contracts: ContractService) -> Dict[str, Any]:
    network = Network.parse(args["network"]) if "network" in args else snapshot.network
    try:
        return await contracts.load(args["contractAddress"], args["contractType"], network)
    except ServiceError as exc:
        raise ToolExecutionError(f"Failed to load contract: {exc}") from exc


def tool_entries(contracts: ContractService) -> List[Tuple[ToolDefinition, ToolHandler]]:
    contract_address = address_schema("Deployed contract address")
    contract_type = {"type": "string", "enum": CONTRACT_TYPES, "description": "ZK-PRET contract family"}
    network = {"type": "string", "enum": NETWORK_NAMES, "description": "Network name"}
    return [
        (
            ToolDefinition(
                name="contract_deploy",
                description="Deploy a ZK-PRET smart contract to the current network from the active wallet.",
                input_shape=object_schema(
                    {
                        "contractName": text_schema("Contract class name", max_length=128),
                        "constructorArgs": {**string_list_schema("Constructor arguments"), "default": []},
                        "contractType": {**contract_type, "default": DEFAULT_CONTRACT_TYPE},
                    },
                    required=["contractName"],
                ),
            ),
            functools.partial(deploy_contract, contracts=contracts),
        ),
        (
            ToolDefinition(
                name="contract_call",
                description="Call a method on a deployed contract.",
                input_shape=object_schema(
                    {
                        "contractAddress": contract_address,
                        "methodName": text_schema("Method to invoke", max_length=128),
                        "args": {**string_list_schema("Method arguments"), "default": []},
                    },
                    required=["contractAddress", "methodName"],
                ),
            ),
            functools.partial(call_contract, contracts=contracts),
        ),
        (
            ToolDefinition(
                name="contract_get_state",
                description="Read the on-chain state of a deployed contract.",
                input_shape=object_schema({"contractAddress": contract_address}, required=["contractAddress"]),
            ),
            functools.partial(get_contract_state, contracts=contracts),
        ),
        (
            ToolDefinition(
                name="contract_verify",
                description="Check that source code matches a deployed contract.",
                input_shape=object_schema(
                    {"contractAddress": contract_address, "sourceCode": text_schema("Contract source code")},
                    required=["contractAddress", "sourceCode"],
                ),
            ),
            functools.partial(verify_contract, contracts=contracts),
        ),
        (
            ToolDefinition(
                name="contract_compile",
                description="Compile contract source and return its verification key hash.",
                input_shape=object_schema(
                    {
                        "sourceCode": text_schema("Contract source code"),
                        "contractName": text_schema("Contract class name", max_length=128),
                        "optimize": {"type": "boolean", "default": False},
                        "contractType": {**contract_type, "default": DEFAULT_CONTRACT_TYPE},
                    },
                    required=["sourceCode", "contractName"],
                ),
            ),
            functools.partial(compile_contract, contracts=contracts),
        ),
        (
            ToolDefinition(
                name="contract_list_deployed",
                description="List deployed ZK-PRET contracts, optionally filtered by network and contract type.",
                input_shape=object_schema({"network": network, "contractType": contract_type}),
            ),
            functools.partial(list_deployed, contracts=contracts),
        ),
        (
            ToolDefinition(
                name="contract_get_compiled",
                description="List compiled contract artifacts, optionally filtered by contract type.",
                input_shape=object_schema({"contractType": contract_type}),
            ),
            functools.partial(get_compiled, contracts=contracts),
        ),
        (
            ToolDefinition(
                name="contract_load_existing",
                description="Load an existing deployed contract for interaction (defaults to the current network).",
                input_shape=object_schema(
                    {"contractAddress": contract_address, "contractType": contract_type, "network": network},
                    required=["contractAddress", "contractType"],
                ),
            ),
            functools.partial(load_existing, contracts=contracts),
        ),
    ]
