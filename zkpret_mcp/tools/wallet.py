"""Wallet tools backed by the simulated wallet service."""

from __future__ import annotations

import functools
import logging
from typing import Any, Dict, List, Tuple

from zkpret_mcp.catalog import ToolDefinition, ToolHandler
from zkpret_mcp.context import ContextSnapshot, Network, NetworkContext, WalletHandle
from zkpret_mcp.errors import ToolExecutionError
from zkpret_mcp.services import ServiceError, WalletService
from zkpret_mcp.tools.validators import NETWORK_NAMES, address_schema, object_schema, text_schema

logger = logging.getLogger(__name__)

MAX_MEMO_LENGTH = 32
DEFAULT_FEE = 0.1


def _require_wallet(snapshot: ContextSnapshot) -> WalletHandle:
    if snapshot.wallet is None:
        raise ToolExecutionError(
            f"No wallet attached on {snapshot.network.value}; create or import one first."
        )
    return snapshot.wallet


def _target_address(args: Dict[str, Any], snapshot: ContextSnapshot) -> str:
    address = args.get("address")
    if address:
        return address
    return _require_wallet(snapshot).address


async def create_wallet(
    args: Dict[str, Any], snapshot: ContextSnapshot, *, wallets: WalletService, context: NetworkContext
) -> Dict[str, Any]:
    handle = await wallets.create_wallet(snapshot.network)
    context.attach_wallet(handle)
    logger.info("Created wallet %s on %s", handle.address, handle.network.value)
    return {"wallet": handle.to_dict(), "attached": True}


async def import_wallet(
    args: Dict[str, Any], snapshot: ContextSnapshot, *, wallets: WalletService, context: NetworkContext
) -> Dict[str, Any]:
    network = Network.parse(args["network"]) if args.get("network") else snapshot.network
    try:
        handle = await wallets.import_wallet(args["privateKey"], network)
    except ServiceError as exc:
        raise ToolExecutionError(f"Wallet import failed: {exc}") from exc
    context.attach_wallet(handle)
    return {"wallet": handle.to_dict(), "attached": True}


async def get_wallet_info(args: Dict[str, Any], snapshot: ContextSnapshot, *, wallets: WalletService) -> Dict[str, Any]:
    address = _target_address(args, snapshot)
    info = await wallets.get_info(address, snapshot.network)
    info["explorerUrl"] = f"{snapshot.profile.explorer_url}/account/{address}" if snapshot.profile.explorer_url else None
    return info


async def get_wallet_balance(args: Dict[str, Any], snapshot: ContextSnapshot, *, wallets: WalletService) -> Dict[str, Any]:
    address = _target_address(args, snapshot)
    info = await wallets.get_info(address, snapshot.network)
    return {"address": address, "balance": info["balance"], "unit": "MINA", "network": snapshot.network.value}


async def send_transaction(args: Dict[str, Any], snapshot: ContextSnapshot, *, wallets: WalletService) -> Dict[str, Any]:
    wallet = _require_wallet(snapshot)
    try:
        return await wallets.send_transaction(wallet, args["to"], args["amount"], args["fee"], args.get("memo"))
    except ServiceError as exc:
        raise ToolExecutionError(f"Transaction failed: {exc}", partial_result={"from": wallet.address}) from exc


async def sign_message(args: Dict[str, Any], snapshot: ContextSnapshot, *, wallets: WalletService) -> Dict[str, Any]:
    wallet = _require_wallet(snapshot)
    signature = await wallets.sign_message(wallet, args["message"])
    return {"signature": signature, "publicKey": wallet.public_key, "address": wallet.address}


async def verify_signature(args: Dict[str, Any], snapshot: ContextSnapshot, *, wallets: WalletService) -> Dict[str, Any]:
    valid = await wallets.verify_signature(args["message"], args["signature"], args["publicKey"])
    return {"valid": valid}


def tool_entries(wallets: WalletService, context: NetworkContext) -> List[Tuple[ToolDefinition, ToolHandler]]:
    return [
        (
            ToolDefinition(
                name="wallet_create",
                description="Create a new wallet on the current network and make it the active wallet.",
                input_shape=object_schema({}),
            ),
            functools.partial(create_wallet, wallets=wallets, context=context),
        ),
        (
            ToolDefinition(
                name="wallet_import",
                description="Import a wallet from a private key and make it the active wallet.",
                input_shape=object_schema(
                    {
                        "privateKey": text_schema("Private key (never logged or returned)"),
                        "network": {
                            "type": "string",
                            "description": f"Network the key belongs to ({', '.join(NETWORK_NAMES)}); defaults to current",
                        },
                    },
                    required=["privateKey"],
                ),
            ),
            functools.partial(import_wallet, wallets=wallets, context=context),
        ),
        (
            ToolDefinition(
                name="wallet_get_info",
                description="Get wallet information for an address or the active wallet.",
                input_shape=object_schema({"address": address_schema()}),
            ),
            functools.partial(get_wallet_info, wallets=wallets),
        ),
        (
            ToolDefinition(
                name="wallet_get_balance",
                description="Get the MINA balance for an address or the active wallet.",
                input_shape=object_schema({"address": address_schema()}),
            ),
            functools.partial(get_wallet_balance, wallets=wallets),
        ),
        (
            ToolDefinition(
                name="wallet_send_transaction",
                description="Send MINA from the active wallet.",
                input_shape=object_schema(
                    {
                        "to": address_schema("Recipient Mina address"),
                        "amount": {"type": "number", "exclusiveMinimum": 0, "description": "Amount in MINA"},
                        "fee": {"type": "number", "minimum": 0, "default": DEFAULT_FEE, "description": "Fee in MINA"},
                        "memo": {"type": "string", "maxLength": MAX_MEMO_LENGTH},
                    },
                    required=["to", "amount"],
                ),
            ),
            functools.partial(send_transaction, wallets=wallets),
        ),
        (
            ToolDefinition(
                name="wallet_sign_message",
                description="Sign a message with the active wallet.",
                input_shape=object_schema({"message": text_schema("Message to sign")}, required=["message"]),
            ),
            functools.partial(sign_message, wallets=wallets),
        ),
        (
            ToolDefinition(
                name="wallet_verify_signature",
                description="Verify a message signature against a public key.",
                input_shape=object_schema(
                    {
                        "message": text_schema("Signed message"),
                        "signature": text_schema("Signature to check"),
                        "publicKey": text_schema("Signer public key"),
                    },
                    required=["message", "signature", "publicKey"],
                ),
            ),
            functools.partial(verify_signature, wallets=wallets),
        ),
    ]
