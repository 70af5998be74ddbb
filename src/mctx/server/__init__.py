"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

MCP server package.

Contains HTTP app wiring and JSON-RPC protocol handling for stateless MCP serving.
"""

from .config import MCPServerConfig
from .protocol import HTTPReply, MCPProtocolHandler
from .runtime import MCPServer, create_server

__all__ = [
    "HTTPReply",
    "MCPProtocolHandler",
    "MCPServer",
    "MCPServerConfig",
    "create_server",
]
