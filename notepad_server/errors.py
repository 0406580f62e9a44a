"""Centralized error codes and helper utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR as RPC_INTERNAL_ERROR
from mcp.types import INVALID_PARAMS as RPC_INVALID_PARAMS
from mcp.types import METHOD_NOT_FOUND as RPC_METHOD_NOT_FOUND
from mcp.types import ErrorData

__all__ = [
    "NOT_FOUND",
    "METHOD_NOT_FOUND",
    "VALIDATION_ERROR",
    "TIMEOUT",
    "CONFIG_ERROR",
    "INTERNAL_ERROR",
    "RPC_CODES",
    "NotepadError",
    "error_payload",
]

NOT_FOUND = "NOT_FOUND"
METHOD_NOT_FOUND = "METHOD_NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
TIMEOUT = "TIMEOUT"
CONFIG_ERROR = "CONFIG_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"

# Server-defined codes live in the JSON-RPC -32000..-32099 range.
RPC_NOT_FOUND = -32002
RPC_TIMEOUT = -32001

RPC_CODES: dict[str, int] = {
    NOT_FOUND: RPC_NOT_FOUND,
    METHOD_NOT_FOUND: RPC_METHOD_NOT_FOUND,
    VALIDATION_ERROR: RPC_INVALID_PARAMS,
    TIMEOUT: RPC_TIMEOUT,
    CONFIG_ERROR: RPC_INTERNAL_ERROR,
    INTERNAL_ERROR: RPC_INTERNAL_ERROR,
}


@dataclass(slots=True)
class NotepadError(Exception):
    """Domain-specific exception carrying an error code and message."""

    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def __str__(self) -> str:  # pragma: no cover - delegation to message
        return self.message

    @property
    def rpc_code(self) -> int:
        return RPC_CODES.get(self.code, RPC_INTERNAL_ERROR)

    def to_dict(self) -> dict[str, Any]:
        return error_payload(self.code, self.message, details=self.details)

    def to_mcp_error(self) -> McpError:
        """Convert into the protocol-level error understood by the MCP SDK."""

        return McpError(ErrorData(code=self.rpc_code, message=self.message, data=self.to_dict()))


def error_payload(code: str, message: str, *, details: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Build a structured error payload used in tool responses."""

    payload: dict[str, Any] = {
        "code": code,
        "message": message,
    }
    if details:
        payload["details"] = dict(details)
    return payload
