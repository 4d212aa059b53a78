from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
import json
import logging

import anyio
from mcp.types import INVALID_REQUEST, PARSE_ERROR
from sse_starlette.sse import EventSourceResponse
from starlette.applications import Starlette
from starlette.datastructures import Headers, MutableHeaders
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.types import ASGIApp, Message, Receive, Scope, Send
import uvicorn

from .. import __version__
from .dispatch import McpDispatcher

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
KEEPALIVE_SECONDS = 15

_JSON = "application/json"
_EVENT_STREAM = "text/event-stream"


def cors_headers(origin: str | None) -> dict[str, str]:
    """Return the permissive CORS headers echoing the request origin."""
    return {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": f"Content-Type, Authorization, Accept, {SESSION_HEADER}",
        "Access-Control-Expose-Headers": SESSION_HEADER,
    }


class CorsEchoMiddleware:
    """Adds CORS headers to every response and answers preflights with 200."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        cors = cors_headers(Headers(scope=scope).get("origin"))
        if scope["method"] == "OPTIONS":
            await Response(status_code=200, headers=cors)(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in cors.items():
                    headers[key] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)


async def connection_events(
    idle: Callable[[], Awaitable[None]] = anyio.sleep_forever,
) -> AsyncIterator[dict[str, str]]:
    """Yield the initial ``connected`` event, then idle until disconnect.

    The stream ends when ``idle`` returns.
    """
    yield {
        "event": "connected",
        "data": json.dumps({"type": "connection", "status": "connected"}),
    }
    await idle()


def create_http_app(dispatcher: McpDispatcher, *, version: str = __version__) -> Starlette:
    """Create the Starlette application for the HTTP transport.

    Args:
        dispatcher: Shared request router.
        version: Version reported by the health check.

    Returns:
        ASGI application.
    """

    async def health(_request: Request) -> Response:
        return JSONResponse({"status": "ok", "transport": "http", "version": version})

    async def mcp_endpoint(request: Request) -> Response:
        accept = request.headers.get("accept", "")
        if request.method == "GET":
            if _EVENT_STREAM not in accept:
                return JSONResponse(
                    {"error": "Invalid Accept header. Must include text/event-stream for SSE"},
                    status_code=400,
                )
            return EventSourceResponse(connection_events(), ping=KEEPALIVE_SECONDS)

        if _JSON not in accept and _EVENT_STREAM not in accept:
            return JSONResponse(
                {
                    "error": "Invalid Accept header. "
                    "Must include application/json or text/event-stream"
                },
                status_code=400,
            )
        session_id = request.headers.get(SESSION_HEADER)
        headers = {SESSION_HEADER: session_id} if session_id else {}

        response = await dispatcher.handle_text(await request.body())
        if response is None:
            return Response(status_code=202, headers=headers)
        error = response.get("error")
        status_code = (
            400 if error and error.get("code") in (PARSE_ERROR, INVALID_REQUEST) else 200
        )
        return JSONResponse(response, status_code=status_code, headers=headers)

    return Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route("/mcp", mcp_endpoint, methods=["GET", "POST"]),
        ],
        middleware=[Middleware(CorsEchoMiddleware)],
    )


async def serve_http(
    dispatcher: McpDispatcher,
    *,
    host: str = "127.0.0.1",
    port: int = 3000,
    log_level: str = "info",
) -> None:
    """Serve the HTTP transport with uvicorn until interrupted.

    Args:
        dispatcher: Shared request router.
        host: Bind address.
        port: Bind port.
        log_level: uvicorn log level.
    """
    app = create_http_app(dispatcher)
    config = uvicorn.Config(app, host=host, port=port, log_level=log_level.lower())
    logger.info("MCP server with HTTP transport running at http://%s:%d/mcp", host, port)
    logger.info("Health check: http://%s:%d/health", host, port)
    await uvicorn.Server(config).serve()
