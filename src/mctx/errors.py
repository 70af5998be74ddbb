"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error hierarchy shared by the mctx protocol, security and execution layers.
"""

from __future__ import annotations

from typing import Any

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603


class MCTXError(Exception):
    """Base error for all mctx failures."""


class JSONRPCError(MCTXError):
    """Error that carries its own JSON-RPC error code."""

    code: int = INTERNAL_ERROR

    def __init__(self, message: str, *, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class ParseError(JSONRPCError):
    """Raised when a request body cannot be read or parsed."""

    code = PARSE_ERROR


class InvalidRequestError(JSONRPCError):
    """Raised when the JSON-RPC envelope is malformed."""

    code = INVALID_REQUEST


class MethodNotFoundError(JSONRPCError):
    """Raised for methods outside the supported MCP surface."""

    code = METHOD_NOT_FOUND

    def __init__(self, method: str) -> None:
        super().__init__("Method not found", data={"method": method})
        self.method = method


class InternalError(JSONRPCError):
    """Operational failure surfaced with the internal-error code."""

    code = INTERNAL_ERROR


class HandlerNotFoundError(InternalError):
    """Raised when no tool, resource or prompt is registered under a key."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f'{kind} "{key}" not found')
        self.kind = kind
        self.key = key


class InvalidParamsError(InternalError):
    """Raised when required request params are missing or malformed."""


class InvalidSchemeError(InternalError):
    """Raised when a resource URI uses a scheme that is not allowed."""


class SecurityError(MCTXError, ValueError):
    """Base error for security-layer rejections."""


class PayloadTooLargeError(SecurityError):
    """Raised when a body or string exceeds its configured size ceiling."""

    def __init__(self, what: str, size: int, max_size: int, *, unit: str = "bytes") -> None:
        super().__init__(f"{what} too large: {size} {unit} (max: {max_size} {unit})")
        self.size = size
        self.max_size = max_size


class PathTraversalError(SecurityError):
    """Raised when a URI contains traversal or null-byte sequences."""


class InvalidTemplateError(MCTXError, ValueError):
    """Raised when a URI template declares an invalid variable name."""


class GuardrailError(MCTXError, RuntimeError):
    """Raised when a stepwise handler breaches a step or time ceiling."""


class SamplingError(MCTXError, RuntimeError):
    """Raised when a sampling request fails or times out."""
