"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Protocol-layer helpers for MCP JSON-RPC request handling.
"""

from __future__ import annotations

import base64
import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..completion import REF_PROMPT_ARGUMENT, REF_RESOURCE, generate_completions
from ..errors import (
    INTERNAL_ERROR,
    HandlerNotFoundError,
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    InvalidSchemeError,
    JSONRPCError,
    MethodNotFoundError,
    ParseError,
    PayloadTooLargeError,
    SecurityError,
)
from ..log import LogBuffer
from ..progress import GuardrailExecutor
from ..registry import HandlerKind, HandlerRegistry, RegisteredHandler
from ..security import (
    DANGEROUS_SCHEMES,
    SECURITY_HEADERS,
    canonicalize_path,
    redact_secrets,
    sanitize_error,
    sanitize_input,
    uri_scheme,
    validate_request_size,
    validate_response_size,
    validate_uri_scheme,
)
from ..serialization import safe_serialize
from ..types import REQUIRED_MARKER, build_input_schema
from ..uri import is_template, match_uri, template_specificity
from .config import MCPServerConfig

logger = logging.getLogger("mctx.server")

MCP_PROTOCOL_VERSION = "2025-06-18"
PAGE_SIZE = 50
SNIPPET_CHARS = 100
DEFAULT_MIME_TYPE = "text/plain"
BINARY_MIME_TYPE = "application/octet-stream"


def jsonrpc_response(id: Any, result: Any) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 success response."""
    return {"jsonrpc": "2.0", "id": id, "result": result}


def jsonrpc_error(
    id: Any,
    code: int,
    message: str,
    data: Any = None,
) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 error response."""
    return error_response(id, JSONRPCError(message, code=code, data=data))


def error_response(id: Any, error: JSONRPCError) -> dict[str, Any]:
    """Serialise a raised ``JSONRPCError`` as a JSON-RPC 2.0 error response."""
    return {"jsonrpc": "2.0", "id": id, "error": error.to_dict()}


def encode_cursor(offset: int) -> str:
    return base64.b64encode(str(offset).encode("utf-8")).decode("ascii")


def decode_cursor(cursor: Any) -> int:
    """Decode a pagination cursor; anything malformed means offset 0."""
    if not cursor or not isinstance(cursor, str):
        return 0
    try:
        offset = int(base64.b64decode(cursor, validate=True).decode("utf-8"))
    except ValueError:
        return 0
    return offset if offset >= 0 else 0


def paginate(
    items: list[Any],
    cursor: Any = None,
    page_size: int = PAGE_SIZE,
) -> tuple[list[Any], str | None]:
    """Return one page of ``items`` and the cursor of the next page, if any."""
    offset = decode_cursor(cursor)
    page = items[offset : offset + page_size]
    next_cursor = encode_cursor(offset + page_size) if offset + page_size < len(items) else None
    return page, next_cursor


def _with_cursor(result: dict[str, Any], next_cursor: str | None) -> dict[str, Any]:
    if next_cursor:
        result["nextCursor"] = next_cursor
    return result


def text_content(value: Any) -> dict[str, Any]:
    """Wrap a handler value as MCP text content."""
    text = value if isinstance(value, str) else safe_serialize(value)
    return {"type": "text", "text": text}


@dataclass(slots=True)
class HTTPReply:
    """Transport-neutral HTTP response produced by ``handle_http``."""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


class MCPProtocolHandler:
    """
    Handles MCP methods and JSON-RPC envelope validation.

    This class keeps protocol and handler-execution behavior independent
    from HTTP routing concerns so it can be reused by different transports.
    ``handle_http`` covers the stateless POST contract; ``handle_message``
    routes one already-parsed JSON-RPC message.
    """

    def __init__(
        self,
        *,
        tools: HandlerRegistry,
        resources: HandlerRegistry,
        prompts: HandlerRegistry,
        config: MCPServerConfig,
        log_buffer: LogBuffer,
    ) -> None:
        self._tools = tools
        self._resources = resources
        self._prompts = prompts
        self._config = config
        self._log_buffer = log_buffer
        self._executor = GuardrailExecutor(
            max_yields=config.max_yields,
            max_execution_ms=config.max_execution_ms,
        )
        self._methods = {
            "initialize": self.handle_initialize,
            "ping": self.handle_ping,
            "notifications/initialized": self.handle_notification,
            "notifications/cancelled": self.handle_notification,
            "tools/list": self.handle_tools_list,
            "tools/call": self.handle_tools_call,
            "resources/list": self.handle_resources_list,
            "resources/templates/list": self.handle_resource_templates_list,
            "resources/read": self.handle_resources_read,
            "prompts/list": self.handle_prompts_list,
            "prompts/get": self.handle_prompts_get,
            "completion/complete": self.handle_completion_complete,
            "logging/setLevel": self.handle_logging_set_level,
        }

    # ''''''''''''''''''
    # Transport boundary
    # ''''''''''''''''''

    async def handle_http(self, http_method: str, body: bytes | str) -> HTTPReply:
        """Handle one HTTP delivery of a JSON-RPC message."""
        if http_method.upper() != "POST":
            return self._reply(
                405,
                error_response(
                    None,
                    InvalidRequestError("Invalid Request - Only POST method is supported"),
                ),
            )

        try:
            message = self.parse_body(body)
            self._check_envelope(message)
        except ParseError as exc:
            return self._reply(400, error_response(None, exc))
        except InvalidRequestError as exc:
            msg_id = message.get("id") if isinstance(message, dict) else None
            return self._reply(400, error_response(msg_id, exc))

        response = await self.handle_message(message)
        if response is None:
            headers = {k: v for k, v in SECURITY_HEADERS.items() if k != "Content-Type"}
            return HTTPReply(status=204, headers=headers)

        try:
            encoded = safe_serialize(response).encode("utf-8")
            validate_response_size(encoded, self._config.max_response_bytes)
        except Exception as exc:
            logger.warning("Response for MCP request dropped: %s", self._sanitize(exc))
            response = jsonrpc_error(
                response.get("id"), INTERNAL_ERROR, self._sanitize(exc)
            )
            encoded = safe_serialize(response).encode("utf-8")
        return HTTPReply(status=200, body=encoded, headers=dict(SECURITY_HEADERS))

    def parse_body(self, body: bytes | str) -> Any:
        """Apply the size guard, then decode and parse ``body``.

        Raises:
            ParseError: on oversized, undecodable or invalid JSON bodies.
        """
        raw = body.encode("utf-8") if isinstance(body, str) else bytes(body)
        snippet = redact_secrets(raw[:SNIPPET_CHARS].decode("utf-8", errors="replace"))
        try:
            validate_request_size(raw, self._config.max_request_bytes)
        except PayloadTooLargeError as exc:
            raise ParseError(f"Parse error - {exc}", data={"snippet": snippet}) from exc
        try:
            return json.loads(raw.decode("utf-8"))
        except (ValueError, RecursionError) as exc:
            # ValueError covers JSONDecodeError and UnicodeDecodeError;
            # RecursionError comes from pathologically nested bodies.
            raise ParseError(
                "Parse error - Invalid JSON", data={"snippet": snippet}
            ) from exc

    @staticmethod
    def _check_envelope(message: Any) -> None:
        """Raise ``InvalidRequestError`` unless ``message`` is a routable request."""
        if not isinstance(message, dict):
            raise InvalidRequestError("Invalid Request - Expected a JSON object")
        method = message.get("method")
        if not method or not isinstance(method, str):
            raise InvalidRequestError("Invalid Request - Missing or invalid method")

    @staticmethod
    def _reply(status: int, payload: dict[str, Any]) -> HTTPReply:
        return HTTPReply(
            status=status,
            body=safe_serialize(payload).encode("utf-8"),
            headers=dict(SECURITY_HEADERS),
        )

    # ''''''''
    # Dispatch
    # ''''''''

    async def handle_message(self, message: Any) -> dict[str, Any] | None:
        """Route one JSON-RPC 2.0 message to the appropriate MCP method.

        Returns None for notifications (no ``id`` key), whatever the outcome.
        """
        try:
            self._check_envelope(message)
        except InvalidRequestError as exc:
            msg_id = message.get("id") if isinstance(message, dict) else None
            return error_response(msg_id, exc)

        method: str = message["method"]
        params = message.get("params")
        if params is None:
            params = {}
        msg_id = message.get("id")
        is_notification = "id" not in message

        try:
            if not isinstance(params, dict):
                raise InvalidParamsError("'params' must be an object")
            handler = self._methods.get(method)
            if handler is None:
                raise MethodNotFoundError(method)
            result = handler(params, message)
            if inspect.isawaitable(result):
                result = await result
        except JSONRPCError as exc:
            if is_notification:
                return None
            return jsonrpc_error(msg_id, exc.code, self._sanitize(exc.message), exc.data)
        except SecurityError as exc:
            logger.warning("Rejected MCP method %s: %s", method, self._sanitize(exc))
            if is_notification:
                return None
            return jsonrpc_error(msg_id, INTERNAL_ERROR, self._sanitize(exc))
        except Exception as exc:
            logger.exception("Error handling MCP method %s", method)
            if is_notification:
                return None
            return jsonrpc_error(msg_id, INTERNAL_ERROR, self._sanitize(exc))
        finally:
            self._flush_logs()

        if is_notification:
            return None
        return jsonrpc_response(msg_id, result)

    def _flush_logs(self) -> None:
        # Entries cannot be pushed mid-request on a stateless transport;
        # they were mirrored to the stdlib logger when emitted.
        entries = self._log_buffer.drain()
        if entries:
            logger.debug("Dropped %d buffered handler log entries", len(entries))

    def _sanitize(self, error: BaseException | str) -> str:
        return sanitize_error(error, debug=self._config.debug)

    # '''''''''
    # Lifecycle
    # '''''''''

    def handle_initialize(self, params: dict[str, Any], message: Mapping[str, Any]) -> dict[str, Any]:
        """Handle ``initialize`` and return server capabilities."""
        _ = params
        _ = message
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"subscribe": False, "listChanged": False},
                "prompts": {"listChanged": False},
                "completions": {},
                "logging": {},
            },
            "serverInfo": {
                "name": self._config.name,
                "version": self._config.version,
            },
            **({"instructions": self._config.instructions} if self._config.instructions else {}),
        }

    def handle_ping(self, params: dict[str, Any], message: Mapping[str, Any]) -> dict[str, Any]:
        _ = params
        _ = message
        return {}

    def handle_notification(self, params: dict[str, Any], message: Mapping[str, Any]) -> None:
        _ = params
        _ = message
        return None

    # '''''
    # Tools
    # '''''

    def handle_tools_list(self, params: dict[str, Any], message: Mapping[str, Any]) -> dict[str, Any]:
        """Handle ``tools/list`` and return MCP tool schemas."""
        _ = message
        tools = [
            {
                "name": entry.key,
                "description": entry.description,
                "inputSchema": build_input_schema(entry.input),
            }
            for entry in self._tools.list()
        ]
        page, next_cursor = paginate(tools, params.get("cursor"))
        return _with_cursor({"tools": page}, next_cursor)

    async def handle_tools_call(self, params: dict[str, Any], message: Mapping[str, Any]) -> dict[str, Any]:
        """Handle ``tools/call`` and return MCP content result.

        Handler failures become ``isError`` results rather than JSON-RPC
        errors; unknown tools and missing params are JSON-RPC errors.
        """
        name = params.get("name")
        if not name:
            raise InvalidParamsError("Tool name is required")

        entry = self._tools.get(name)
        if entry is None:
            raise HandlerNotFoundError("Tool", name)

        arguments = params.get("arguments")
        if arguments is None:
            raise InvalidParamsError("Tool arguments are required")
        arguments = sanitize_input(arguments)

        try:
            if entry.kind is HandlerKind.STEPWISE:
                outcome = await self._executor.run(
                    entry.invoke(arguments, None),
                    progress_token=self._progress_token(params, message),
                )
                value = outcome.value
            else:
                value = entry.invoke(arguments, None)
                if inspect.isawaitable(value):
                    value = await value
            content = text_content(value)
        except Exception as exc:
            sanitized = self._sanitize(exc)
            logger.warning("Tool %s failed: %s", name, sanitized)
            return {"content": [{"type": "text", "text": sanitized}], "isError": True}

        return {"content": [content]}

    @staticmethod
    def _progress_token(params: Mapping[str, Any], message: Mapping[str, Any]) -> Any:
        for meta in (params.get("_meta"), message.get("_meta")):
            if isinstance(meta, Mapping) and meta.get("progressToken") is not None:
                return meta["progressToken"]
        return None

    # '''''''''
    # Resources
    # '''''''''

    @staticmethod
    def _resource_projection(entry: RegisteredHandler, uri_field: str) -> dict[str, Any]:
        return {
            uri_field: entry.key,
            "name": entry.name or entry.key,
            "description": entry.description,
            "mimeType": entry.mime_type or DEFAULT_MIME_TYPE,
        }

    def handle_resources_list(self, params: dict[str, Any], message: Mapping[str, Any]) -> dict[str, Any]:
        _ = message
        resources = [
            self._resource_projection(entry, "uri")
            for entry in self._resources.list()
            if not is_template(entry.key)
        ]
        page, next_cursor = paginate(resources, params.get("cursor"))
        return _with_cursor({"resources": page}, next_cursor)

    def handle_resource_templates_list(
        self, params: dict[str, Any], message: Mapping[str, Any]
    ) -> dict[str, Any]:
        _ = message
        templates = [
            self._resource_projection(entry, "uriTemplate")
            for entry in self._resources.list()
            if is_template(entry.key)
        ]
        page, next_cursor = paginate(templates, params.get("cursor"))
        return _with_cursor({"resourceTemplates": page}, next_cursor)

    def allowed_schemes(self) -> set[str]:
        """Configured schemes plus the schemes of registered resource URIs."""
        schemes = {s.lower() for s in self._config.allowed_schemes}
        for key in self._resources.keys():
            scheme = uri_scheme(key)
            if scheme is not None:
                schemes.add(scheme)
        return schemes - DANGEROUS_SCHEMES

    def resolve_resource(self, uri: str) -> tuple[RegisteredHandler, dict[str, str]] | None:
        """Find the resource for a canonical URI.

        Static URIs match first; templates are then tried from most to least
        specific.
        """
        snapshot = self._resources.snapshot()
        entry = snapshot.get(uri)
        if entry is not None and not is_template(entry.key):
            return entry, {}

        templates = [e for e in snapshot.values() if is_template(e.key)]
        for candidate in sorted(templates, key=lambda e: template_specificity(e.key), reverse=True):
            found = match_uri(candidate.key, uri)
            if found is not None:
                return candidate, found.params
        return None

    async def handle_resources_read(self, params: dict[str, Any], message: Mapping[str, Any]) -> dict[str, Any]:
        _ = message
        uri = params.get("uri")
        if not uri or not isinstance(uri, str):
            raise InvalidParamsError("Resource URI is required")

        allowed = self.allowed_schemes()
        if not validate_uri_scheme(uri, allowed):
            raise InvalidSchemeError(
                f"Invalid URI scheme: only {', '.join(sorted(allowed))} are allowed"
            )

        canonical = canonicalize_path(uri)
        resolved = self.resolve_resource(canonical)
        if resolved is None:
            raise HandlerNotFoundError("Resource", uri)
        entry, extracted = resolved

        try:
            value = entry.invoke(sanitize_input(extracted), None)
            if inspect.isawaitable(value):
                value = await value
        except Exception as exc:
            raise InternalError(
                f'Failed to read resource "{uri}": {self._sanitize(exc)}'
            ) from exc

        mime_type = entry.mime_type or DEFAULT_MIME_TYPE
        if isinstance(value, str):
            content: dict[str, Any] = {"uri": uri, "mimeType": mime_type, "text": value}
        elif isinstance(value, (bytes, bytearray, memoryview)):
            content = {
                "uri": uri,
                "mimeType": entry.mime_type or BINARY_MIME_TYPE,
                "blob": base64.b64encode(bytes(value)).decode("ascii"),
            }
        else:
            content = {"uri": uri, "mimeType": "application/json", "text": safe_serialize(value)}
        return {"contents": [content]}

    # '''''''
    # Prompts
    # '''''''

    def handle_prompts_list(self, params: dict[str, Any], message: Mapping[str, Any]) -> dict[str, Any]:
        _ = message
        prompts = []
        for entry in self._prompts.list():
            arguments = [
                {
                    "name": arg_name,
                    "description": schema.get("description", "") if isinstance(schema, Mapping) else "",
                    "required": isinstance(schema, Mapping) and schema.get(REQUIRED_MARKER) is True,
                }
                for arg_name, schema in (entry.input or {}).items()
            ]
            prompts.append(
                {"name": entry.key, "description": entry.description, "arguments": arguments}
            )
        page, next_cursor = paginate(prompts, params.get("cursor"))
        return _with_cursor({"prompts": page}, next_cursor)

    async def handle_prompts_get(self, params: dict[str, Any], message: Mapping[str, Any]) -> dict[str, Any]:
        _ = message
        name = params.get("name")
        if not name:
            raise InvalidParamsError("Prompt name is required")

        entry = self._prompts.get(name)
        if entry is None:
            raise HandlerNotFoundError("Prompt", name)

        try:
            value = entry.invoke(sanitize_input(params.get("arguments") or {}), None)
            if inspect.isawaitable(value):
                value = await value
        except Exception as exc:
            raise InternalError(
                f'Failed to get prompt "{name}": {self._sanitize(exc)}'
            ) from exc

        if isinstance(value, str):
            return {"messages": [{"role": "user", "content": {"type": "text", "text": value}}]}
        if isinstance(value, list):
            return {"messages": value}
        if isinstance(value, Mapping) and value.get("messages"):
            return dict(value)
        return {"messages": [{"role": "user", "content": text_content(value)}]}

    # ''''''''''
    # Completion
    # ''''''''''

    def handle_completion_complete(
        self, params: dict[str, Any], message: Mapping[str, Any]
    ) -> dict[str, Any]:
        _ = message
        ref = params.get("ref")
        argument = params.get("argument")
        if not isinstance(argument, Mapping):
            argument = {}
        if not isinstance(ref, Mapping):
            return generate_completions({}, None, None)

        ref = dict(ref)
        # MCP clients send "ref/prompt" with the argument name on ``argument``.
        if ref.get("type") == "ref/prompt":
            ref["type"] = REF_PROMPT_ARGUMENT
        if ref.get("type") == REF_PROMPT_ARGUMENT and not ref.get("argumentName"):
            ref["argumentName"] = argument.get("name")

        if ref.get("type") == REF_PROMPT_ARGUMENT:
            registered = self._prompts.snapshot()
        elif ref.get("type") == REF_RESOURCE:
            registered = self._resources.snapshot()
        else:
            registered = {}
        return generate_completions(registered, ref, argument.get("value"))

    # '''''''
    # Logging
    # '''''''

    def handle_logging_set_level(self, params: dict[str, Any], message: Mapping[str, Any]) -> dict[str, Any]:
        _ = message
        level = params.get("level")
        if not level:
            raise InvalidParamsError("Log level is required")
        self._log_buffer.set_level(level)
        return {}


__all__ = [
    "HTTPReply",
    "MCPProtocolHandler",
    "MCP_PROTOCOL_VERSION",
    "PAGE_SIZE",
    "decode_cursor",
    "encode_cursor",
    "error_response",
    "jsonrpc_error",
    "jsonrpc_response",
    "paginate",
    "text_content",
]
