"""Shared validation helpers and schema fragments for ZK-PRET tools."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from zkpret_mcp.context import Network

# Mina addresses are Base58, 55 characters, prefixed with "B62q".
MINA_ADDRESS_REGEX = re.compile(r"^B62q[1-9A-HJ-NP-Za-km-z]{51}$")
HEX_REGEX = re.compile(r"^(0x)?[0-9a-fA-F]+$")

ADDRESS_PATTERN = MINA_ADDRESS_REGEX.pattern
NETWORK_NAMES = [network.value for network in Network]


def is_valid_mina_address(address: Optional[str]) -> bool:
    """Basic format validation for Mina addresses."""
    if not address or not isinstance(address, str):
        return False
    return bool(MINA_ADDRESS_REGEX.fullmatch(address.strip()))


def is_hex_string(value: Optional[str], *, length: Optional[int] = None) -> bool:
    if not value or not isinstance(value, str) or not HEX_REGEX.fullmatch(value):
        return False
    digits = value[2:] if value.startswith("0x") else value
    return length is None or len(digits) == length


def object_schema(properties: Dict[str, Any], *, required: Optional[list] = None) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": properties,
        "required": list(required or []),
        "additionalProperties": False,
    }


def address_schema(description: str = "Mina address (B62q...)") -> Dict[str, Any]:
    return {
        "type": "string",
        "description": description,
        "pattern": ADDRESS_PATTERN,
        "minLength": 55,
        "maxLength": 55,
    }


def text_schema(description: str, *, max_length: Optional[int] = None, **extra: Any) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "string", "minLength": 1, "description": description}
    if max_length is not None:
        schema["maxLength"] = max_length
    schema.update(extra)
    return schema


def string_list_schema(description: str) -> Dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}
