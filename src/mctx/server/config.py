"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Server configuration and explicit environment loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from ..progress import PROGRESS_DEFAULTS
from ..security import DEFAULT_ALLOWED_SCHEMES, DEFAULT_MAX_BODY_BYTES


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _debug_from_env() -> bool:
    # Fail secure: unset or "production" means no stack traces in output.
    env = os.getenv("MCTX_ENV")
    return bool(env) and env != "production"


@dataclass
class MCPServerConfig:
    """
    Configuration for the MCP server.

    Attributes:
        name: Server name advertised during ``initialize``.
        version: Server version string.
        host: Bind host for uvicorn.
        port: Bind port for uvicorn.
        instructions: Optional instructions describing the server's purpose.
        mcp_path: JSON-RPC endpoint path.
        health_path: Health endpoint path.
        enable_health: Whether to expose the health endpoint.
        cors_origins: Allowed CORS origins; empty disables CORS middleware.
        max_request_bytes: Ceiling for request bodies.
        max_response_bytes: Ceiling for serialized response bodies.
        allowed_schemes: URI schemes accepted by ``resources/read`` in
            addition to the schemes of registered resource URIs.
        max_yields: Step ceiling for stepwise handlers.
        max_execution_ms: Wall-clock ceiling for stepwise handlers.
        debug: Include redacted tracebacks in error output.
    """

    name: str = "mctx-server"
    version: str = "1.0.0"
    host: str = "127.0.0.1"
    port: int = 8000
    instructions: str | None = None
    mcp_path: str = "/mcp"
    health_path: str = "/health"
    enable_health: bool = True
    cors_origins: list[str] = field(default_factory=list)
    max_request_bytes: int = DEFAULT_MAX_BODY_BYTES
    max_response_bytes: int = DEFAULT_MAX_BODY_BYTES
    allowed_schemes: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_SCHEMES))
    max_yields: int = PROGRESS_DEFAULTS["max_yields"]
    max_execution_ms: int = PROGRESS_DEFAULTS["max_execution_ms"]
    debug: bool = False

    @staticmethod
    def from_env() -> "MCPServerConfig":
        """Load configuration from ``MCTX_*`` environment variables."""
        return MCPServerConfig(
            name=os.getenv("MCTX_SERVER_NAME", "mctx-server"),
            version=os.getenv("MCTX_SERVER_VERSION", "1.0.0"),
            host=os.getenv("MCTX_HOST", "127.0.0.1"),
            port=int(os.getenv("MCTX_PORT", "8000")),
            instructions=os.getenv("MCTX_INSTRUCTIONS"),
            mcp_path=os.getenv("MCTX_MCP_PATH", "/mcp"),
            cors_origins=_env_list("MCTX_CORS_ORIGINS", []),
            max_request_bytes=int(
                os.getenv("MCTX_MAX_REQUEST_BYTES", str(DEFAULT_MAX_BODY_BYTES))
            ),
            max_response_bytes=int(
                os.getenv("MCTX_MAX_RESPONSE_BYTES", str(DEFAULT_MAX_BODY_BYTES))
            ),
            allowed_schemes=_env_list("MCTX_ALLOWED_SCHEMES", list(DEFAULT_ALLOWED_SCHEMES)),
            max_yields=int(os.getenv("MCTX_MAX_YIELDS", str(PROGRESS_DEFAULTS["max_yields"]))),
            max_execution_ms=int(
                os.getenv(
                    "MCTX_MAX_EXECUTION_MS", str(PROGRESS_DEFAULTS["max_execution_ms"])
                )
            ),
            debug=_debug_from_env(),
        )
