"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

mctx: a stateless Model Context Protocol server core.

Exposes tools, resources and prompts over a JSON-RPC 2.0 HTTP endpoint
served by FastAPI.

Quick start::

    from mctx import T, create_server

    server = create_server()
    server.tool(
        "add",
        lambda args, ask: args["a"] + args["b"],
        description="Add two numbers",
        input={"a": T.number(required=True), "b": T.number(required=True)},
    )
    server.run()  # starts on http://127.0.0.1:8000/mcp
"""

from .conversation import RoleHelper, conversation
from .errors import (
    GuardrailError,
    HandlerNotFoundError,
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    InvalidSchemeError,
    InvalidTemplateError,
    JSONRPCError,
    MCTXError,
    MethodNotFoundError,
    ParseError,
    PathTraversalError,
    PayloadTooLargeError,
    SamplingError,
    SecurityError,
)
from .log import LogBuffer, log
from .progress import GuardrailExecutor, complete, create_progress
from .registry import HandlerKind, HandlerRegistry, RegisteredHandler
from .sampling import create_ask
from .security import (
    canonicalize_path,
    redact_secrets,
    sanitize_error,
    sanitize_input,
    validate_request_size,
    validate_response_size,
    validate_string_input,
    validate_uri_scheme,
)
from .serialization import safe_serialize
from .server import MCPServer, MCPServerConfig, create_server
from .types import T, build_input_schema
from .uri import match_uri

__all__ = [
    "T",
    "build_input_schema",
    "MCPServer",
    "MCPServerConfig",
    "create_server",
    "HandlerKind",
    "HandlerRegistry",
    "RegisteredHandler",
    "conversation",
    "RoleHelper",
    "create_progress",
    "complete",
    "GuardrailExecutor",
    "log",
    "LogBuffer",
    "create_ask",
    "match_uri",
    "safe_serialize",
    "canonicalize_path",
    "redact_secrets",
    "sanitize_error",
    "sanitize_input",
    "validate_request_size",
    "validate_response_size",
    "validate_string_input",
    "validate_uri_scheme",
    "MCTXError",
    "JSONRPCError",
    "ParseError",
    "InvalidRequestError",
    "MethodNotFoundError",
    "InternalError",
    "InvalidParamsError",
    "HandlerNotFoundError",
    "InvalidSchemeError",
    "SecurityError",
    "PayloadTooLargeError",
    "PathTraversalError",
    "InvalidTemplateError",
    "GuardrailError",
    "SamplingError",
]
