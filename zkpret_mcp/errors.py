"""
Error taxonomy for the ZK-PRET MCP server.

Registration-time errors abort bootstrap. Dispatch-time errors are turned into
response envelopes by the dispatcher and never cross the transport boundary as
raw exceptions.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    UNKNOWN_TOOL = "UnknownTool"
    INVALID_ARGUMENTS = "InvalidArguments"
    UNKNOWN_NETWORK = "UnknownNetwork"
    NETWORK_MISMATCH = "NetworkMismatch"
    DUPLICATE_TOOL_NAME = "DuplicateToolName"
    INVALID_DEFINITION = "InvalidDefinition"
    UNKNOWN_SESSION = "UnknownSession"
    TIMEOUT = "Timeout"
    DOMAIN_FAILURE = "DomainFailure"
    INTERNAL_FAULT = "InternalFault"


class ZkPretMcpError(Exception):
    """Base exception for server errors."""

    kind: ErrorKind = ErrorKind.INTERNAL_FAULT

    def __init__(self, message: str, *, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class RegistrationError(ZkPretMcpError):
    """Raised when a tool cannot be added to the catalog."""


class DuplicateToolNameError(RegistrationError):
    kind = ErrorKind.DUPLICATE_TOOL_NAME


class InvalidDefinitionError(RegistrationError):
    kind = ErrorKind.INVALID_DEFINITION


class ContextError(ZkPretMcpError):
    """Raised when a network/wallet context change is rejected."""


class UnknownNetworkError(ContextError):
    kind = ErrorKind.UNKNOWN_NETWORK


class NetworkMismatchError(ContextError):
    kind = ErrorKind.NETWORK_MISMATCH


class ToolExecutionError(ZkPretMcpError):
    """
    Raised by a tool handler when the operation ran but did not succeed.

    Carries an optional partial result that is still returned to the caller.
    """

    kind = ErrorKind.DOMAIN_FAILURE

    def __init__(self, message: str, *, partial_result: Any = None) -> None:
        super().__init__(message)
        self.partial_result = partial_result
