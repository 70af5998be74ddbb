"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

MCP (Model Context Protocol) server built on FastAPI.

Exposes registered tools, resources and prompts over a single JSON-RPC 2.0
POST endpoint, following the stateless HTTP wire format of the MCP standard.

Supports:
- ``tools/list``, ``tools/call``
- ``resources/list``, ``resources/templates/list``, ``resources/read``
- ``prompts/list``, ``prompts/get``
- ``completion/complete``, ``logging/setLevel``
- ``initialize``, ``ping`` and client notifications
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from ..log import LogBuffer, default_buffer
from ..registry import HandlerKind, HandlerRegistry, RegisteredHandler, accepts_ask
from ..security import SECURITY_HEADERS
from ..uri import extract_template_vars
from .config import MCPServerConfig
from .protocol import HTTPReply, MCPProtocolHandler

Handler = Callable[..., Any]

_ENDPOINT_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


class MCPServer:
    """
    MCP server exposing registered handlers via FastAPI.

    Usage::

        from mctx import MCPServer, T

        server = MCPServer()

        @server.tool("add", input={"a": T.number(required=True), "b": T.number(required=True)})
        def add(args, ask):
            return args["a"] + args["b"]

        server.resource("user://{id}", lambda params, ask: {"id": params["id"]})
        server.run()  # starts uvicorn on http://127.0.0.1:8000

    Endpoints:
        ``POST /mcp``: JSON-RPC 2.0 endpoint (other verbs answer 405)
        ``GET /health``: health check

    Registration is expected to happen before serving; registries tolerate
    concurrent reads during re-registration.

    Args:
        config: Server configuration.
        log_buffer: Buffer receiving handler log entries.
        app: Existing FastAPI app to mount routes into.
    """

    def __init__(
        self,
        config: MCPServerConfig | None = None,
        *,
        log_buffer: LogBuffer | None = None,
        app: Any | None = None,
    ) -> None:
        self._config = config if config is not None else MCPServerConfig()
        self._log_buffer = log_buffer if log_buffer is not None else default_buffer
        self._tools = HandlerRegistry("Tool")
        self._resources = HandlerRegistry("Resource")
        self._prompts = HandlerRegistry("Prompt")
        self._protocol_handler = self._create_protocol_handler()
        self._app = app if app is not None else self._create_app()
        if app is not None:
            self.mount(app)

    @property
    def app(self) -> FastAPI:
        """
        The FastAPI application instance.

        Use this to mount the MCP server into an existing app or for testing::

            from fastapi.testclient import TestClient
            client = TestClient(server.app)
        """
        return self._app

    @property
    def config(self) -> MCPServerConfig:
        """Server configuration."""
        return self._config

    @property
    def protocol(self) -> MCPProtocolHandler:
        return self._protocol_handler

    @property
    def tools(self) -> HandlerRegistry:
        return self._tools

    @property
    def resources(self) -> HandlerRegistry:
        return self._resources

    @property
    def prompts(self) -> HandlerRegistry:
        return self._prompts

    # ''''''''''''
    # Registration
    # ''''''''''''

    def _register(
        self,
        registry: HandlerRegistry,
        key: str,
        handler: Handler | None,
        **attrs: Any,
    ) -> Any:
        def add(fn: Handler) -> Handler:
            if not callable(fn):
                raise TypeError(f'{registry.kind} handler for "{key}" must be callable')
            registry.register(
                RegisteredHandler(key=key, handler=fn, accepts_ask=accepts_ask(fn), **attrs)
            )
            return fn

        if handler is None:
            return add
        add(handler)
        return self

    def tool(
        self,
        name: str,
        handler: Handler | None = None,
        *,
        description: str = "",
        input: Mapping[str, Any] | None = None,
        kind: HandlerKind = HandlerKind.DIRECT,
    ) -> Any:
        """
        Register a tool under ``name``.

        Called with a handler, returns the server for chaining; called
        without one, returns a decorator. Stepwise handlers must be
        registered with ``kind=HandlerKind.STEPWISE``.
        """
        return self._register(
            self._tools,
            name,
            handler,
            kind=HandlerKind(kind),
            description=description,
            input=input,
        )

    def resource(
        self,
        uri: str,
        handler: Handler | None = None,
        *,
        name: str | None = None,
        description: str = "",
        mime_type: str | None = None,
        complete: Handler | None = None,
    ) -> Any:
        """
        Register a static or templated resource.

        Raises:
            InvalidTemplateError: if a ``{placeholder}`` name is invalid.
        """
        extract_template_vars(uri)
        return self._register(
            self._resources,
            uri,
            handler,
            name=name,
            description=description,
            mime_type=mime_type,
            complete=complete,
        )

    def prompt(
        self,
        name: str,
        handler: Handler | None = None,
        *,
        description: str = "",
        input: Mapping[str, Any] | None = None,
        complete: Handler | None = None,
    ) -> Any:
        """Register a prompt producing role-tagged messages."""
        return self._register(
            self._prompts,
            name,
            handler,
            description=description,
            input=input,
            complete=complete,
        )

    # '''''''''
    # Transport
    # '''''''''

    async def handle_http(self, method: str, body: bytes | str = b"") -> HTTPReply:
        """Handle one HTTP delivery without going through FastAPI."""
        return await self._protocol_handler.handle_http(method, body)

    def _create_protocol_handler(self) -> MCPProtocolHandler:
        return MCPProtocolHandler(
            tools=self._tools,
            resources=self._resources,
            prompts=self._prompts,
            config=self._config,
            log_buffer=self._log_buffer,
        )

    async def _read_body(self, request: Request) -> bytes:
        # Stop reading once the ceiling is passed; the size guard then rejects it.
        limit = self._config.max_request_bytes
        chunks: list[bytes] = []
        size = 0
        async for chunk in request.stream():
            chunks.append(chunk)
            size += len(chunk)
            if size > limit:
                break
        return b"".join(chunks)

    def _create_router(self) -> APIRouter:
        """Build an APIRouter containing MCP routes."""
        router = APIRouter()

        if self._config.enable_health:

            @router.get(self._config.health_path)
            async def health():
                return JSONResponse(
                    {
                        "status": "ok",
                        "server": self._config.name,
                        "version": self._config.version,
                        "tools_count": len(self._tools),
                        "resources_count": len(self._resources),
                        "prompts_count": len(self._prompts),
                    },
                    headers={k: v for k, v in SECURITY_HEADERS.items() if k != "Content-Type"},
                )

        @router.api_route(self._config.mcp_path, methods=_ENDPOINT_METHODS)
        async def mcp_endpoint(request: Request):
            """Main JSON-RPC 2.0 endpoint for MCP."""
            body = b""
            if request.method == "POST":
                body = await self._read_body(request)
            reply = await self._protocol_handler.handle_http(request.method, body)
            return Response(
                content=reply.body,
                status_code=reply.status,
                headers=reply.headers,
            )

        return router

    def _create_app(self) -> FastAPI:
        """Build the FastAPI application with MCP routes."""
        app = FastAPI(
            title=self._config.name,
            version=self._config.version,
            description="mctx MCP server (Model Context Protocol)",
        )
        if self._config.cors_origins:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=self._config.cors_origins,
                allow_methods=["POST"],
                allow_headers=["*"],
            )
        app.include_router(self._create_router())
        return app

    def mount(self, app: Any) -> Any:
        """
        Mount MCP routes into an existing FastAPI app.

        Returns the provided app for fluent usage.
        """
        app.include_router(self._create_router())
        return app

    def run(self, **kwargs: Any) -> None:
        """
        Start the MCP server using uvicorn.

        Args:
            **kwargs: Additional arguments passed to ``uvicorn.run()``.
        """
        import uvicorn

        uvicorn.run(
            self._app,
            host=kwargs.pop("host", self._config.host),
            port=kwargs.pop("port", self._config.port),
            **kwargs,
        )


def create_server(
    config: MCPServerConfig | None = None,
    *,
    log_buffer: LogBuffer | None = None,
    app: Any | None = None,
) -> MCPServer:
    """DX-first constructor for MCP servers."""
    return MCPServer(config=config, log_buffer=log_buffer, app=app)
