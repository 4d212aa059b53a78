from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
import json
import logging
from typing import Any

from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    LATEST_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    CallToolResult,
    ErrorData,
    Implementation,
    InitializeResult,
    ListToolsResult,
    ServerCapabilities,
    TextContent,
    ToolsCapability,
)
from pydantic import BaseModel, ValidationError

from .. import __version__
from ..errors import ProtocolError, UpstageMcpError
from .context import ToolContext
from .progress import ProgressReporter, ProgressSink
from .tools import TOOL_SPECS, ToolSpec

logger = logging.getLogger(__name__)

SERVER_NAME = "upstage-mcp"

Notify = Callable[[dict[str, Any]], Awaitable[None]]
RequestId = str | int

# Failures rendered as tool output instead of JSON-RPC errors.
TOOL_FAILURES: tuple[type[Exception], ...] = (UpstageMcpError, OSError, ValueError)


class ToolResult(BaseModel):
    """Text outcome of one tool call."""

    text: str
    is_error: bool = False

    def to_call_tool_result(self) -> CallToolResult:
        return CallToolResult(
            content=[TextContent(type="text", text=self.text)],
            isError=self.is_error,
        )


class McpDispatcher:
    """Transport-agnostic JSON-RPC router for the MCP tool surface.

    Both the stdio and HTTP bindings feed decoded messages into ``handle`` and
    write back whatever it returns. ``None`` means no response is due.
    """

    def __init__(
        self,
        context: ToolContext,
        tools: Mapping[str, ToolSpec] = TOOL_SPECS,
        *,
        server_name: str = SERVER_NAME,
        version: str = __version__,
    ) -> None:
        self._context = context
        self._tools = dict(tools)
        self._server_name = server_name
        self._version = version

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    async def handle_text(
        self, text: str | bytes, notify: Notify | None = None
    ) -> dict[str, Any] | None:
        """Decode a raw message and dispatch it.

        Args:
            text: Raw JSON text.
            notify: Optional callable used to push notifications to the peer.

        Returns:
            JSON-RPC response object, or None for notifications.
        """
        try:
            message = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            return error_response(None, PARSE_ERROR, "Parse error", str(exc))
        return await self.handle(message, notify)

    async def handle(
        self, message: object, notify: Notify | None = None
    ) -> dict[str, Any] | None:
        """Dispatch a decoded JSON-RPC message.

        Args:
            message: Decoded JSON value.
            notify: Optional callable used to push notifications to the peer.

        Returns:
            JSON-RPC response object, or None for notifications.
        """
        request_id = _request_id(message)
        try:
            method, params, is_notification = decode_envelope(message)
            if is_notification:
                logger.debug("Notification received: %s", method)
                return None
            result = await self._route(method, params, notify)
        except ProtocolError as exc:
            logger.info("JSON-RPC error %s: %s", exc.code, exc.message)
            return error_response(request_id, exc.code, exc.message, exc.data)
        except Exception as exc:  # pragma: no cover - surfaced as JSON-RPC error
            logger.exception("Unhandled error while dispatching request %r", request_id)
            return error_response(request_id, INTERNAL_ERROR, str(exc) or "Internal error")
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    async def call_tool(
        self,
        spec: ToolSpec,
        payload: BaseModel,
        progress: ProgressReporter | None = None,
    ) -> ToolResult:
        """Run a tool handler, turning known failures into error results.

        Args:
            spec: Routing entry of the tool.
            payload: Validated tool input.
            progress: Optional progress reporter.

        Returns:
            Tool result; ``is_error`` is set when the handler failed.
        """
        try:
            text = await spec.handler(payload, context=self._context, progress=progress)
        except TOOL_FAILURES as exc:
            logger.warning("Tool %s failed: %s", spec.name, exc)
            return ToolResult(text=f"Error: {exc}", is_error=True)
        return ToolResult(text=text)

    async def _route(
        self, method: str, params: dict[str, Any], notify: Notify | None
    ) -> dict[str, Any]:
        if method == "initialize":
            return self._initialize(params)
        if method == "ping":
            return {}
        if method == "tools/list":
            return _dump(ListToolsResult(tools=[spec.descriptor() for spec in self._tools.values()]))
        if method == "tools/call":
            return await self._tools_call(params, notify)
        raise ProtocolError(METHOD_NOT_FOUND, "Method not found", method)

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        result = InitializeResult(
            protocolVersion=requested if isinstance(requested, str) else LATEST_PROTOCOL_VERSION,
            capabilities=ServerCapabilities(tools=ToolsCapability(listChanged=False)),
            serverInfo=Implementation(name=self._server_name, version=self._version),
        )
        return _dump(result)

    async def _tools_call(
        self, params: dict[str, Any], notify: Notify | None
    ) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ProtocolError(INVALID_PARAMS, "Tool name is required")
        spec = self._tools.get(name)
        if spec is None:
            raise ProtocolError(METHOD_NOT_FOUND, f"Unknown tool: {name}")
        arguments = params.get("arguments") or {}
        try:
            payload = spec.input_model.model_validate(arguments)
        except ValidationError as exc:
            raise ProtocolError(
                INVALID_PARAMS, f"Invalid arguments for tool {name}", str(exc)
            ) from exc

        reporter = ProgressReporter(_progress_sink(params, notify))
        result = await self.call_tool(spec, payload, reporter)
        return _dump(result.to_call_tool_result())


def decode_envelope(message: object) -> tuple[str, dict[str, Any], bool]:
    """Validate a JSON-RPC 2.0 request or notification envelope.

    Args:
        message: Decoded JSON value.

    Returns:
        Tuple of (method, params, is_notification).

    Raises:
        ProtocolError: If the envelope is malformed.
    """
    if not isinstance(message, dict):
        raise ProtocolError(INVALID_REQUEST, "Invalid Request")
    method = message.get("method")
    if message.get("jsonrpc") != "2.0" or not isinstance(method, str) or not method:
        raise ProtocolError(INVALID_REQUEST, "Invalid Request")
    if "id" in message and _request_id(message) is None:
        raise ProtocolError(INVALID_REQUEST, "Invalid Request", "id must be a string or integer")
    params = message.get("params")
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ProtocolError(INVALID_PARAMS, "params must be an object")
    return method, params, "id" not in message


def error_response(
    request_id: RequestId | None,
    code: int,
    message: str,
    data: object | None = None,
) -> dict[str, Any]:
    """Build a JSON-RPC error response object."""
    error = ErrorData(code=code, message=message, data=data)
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": error.model_dump(mode="json", exclude_none=True),
    }


def _request_id(message: object) -> RequestId | None:
    if not isinstance(message, dict):
        return None
    value = message.get("id")
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    return value


def _progress_sink(params: dict[str, Any], notify: Notify | None) -> ProgressSink | None:
    meta = params.get("_meta")
    token = meta.get("progressToken") if isinstance(meta, dict) else None
    if token is None or notify is None:
        return None

    async def sink(progress: float, total: float) -> None:
        await notify(
            {
                "jsonrpc": "2.0",
                "method": "notifications/progress",
                "params": {"progressToken": token, "progress": progress, "total": total},
            }
        )

    return sink


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
