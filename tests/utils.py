from collections.abc import Callable, Iterable, Sequence
import json
from typing import Any, ParamSpec, TypeVar, cast

import httpx
import pytest

from upstage_mcp.config import UpstageSettings
from upstage_mcp.mcp.context import ToolContext

P = ParamSpec("P")
R = TypeVar("R")

Reply = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


def parametrize(
    argnames: str | Sequence[str],
    argvalues: Iterable[object],
    *,
    ids: Iterable[str | float | int | bool | None]
    | Callable[[object], object | None]
    | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Return a typed ``pytest.mark.parametrize`` decorator.

    Parameters:
        argnames: One or more parameter names to inject into the test callable.
        argvalues: Values or value-tuples for each generated test case.
        ids: Optional case identifiers or a callable producing them.
    """
    return cast(
        Callable[[Callable[P, R]], Callable[P, R]],
        pytest.mark.parametrize(argnames, argvalues, ids=ids),
    )


def chat_completion(content: str) -> dict[str, Any]:
    """Return a minimal chat-completion body carrying ``content``."""
    return {
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}}
        ]
    }


def json_reply(body: object, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=body)


class FakeUpstage:
    """
    Replays queued replies for a mock transport and records every request.

    Replies are consumed in order; the last one repeats once the queue is down
    to a single entry. ``routes`` maps exact URLs to dedicated reply queues.
    """

    def __init__(
        self,
        *replies: Reply,
        routes: dict[str, list[Reply]] | None = None,
    ) -> None:
        self.replies = list(replies)
        self.routes = {url: list(queue) for url, queue in (routes or {}).items()}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get(str(request.url), self.replies)
        if not queue:
            raise AssertionError(f"Unexpected request to {request.url}")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply) and not isinstance(reply, httpx.Response):
            return reply(request)
        return reply

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def json_bodies(self) -> list[Any]:
        return [json.loads(request.content) for request in self.requests]


def make_context(settings: UpstageSettings, fake: FakeUpstage) -> ToolContext:
    """Build a tool context whose HTTP calls go to ``fake``."""
    return ToolContext.from_settings(settings, transport=fake.transport)


GENERATED_SCHEMA: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "document_schema",
        "schema": {
            "type": "object",
            "properties": {
                "invoice_number": {"type": "string", "description": "Invoice number"},
                "total_amount": {"type": "number", "description": "Total amount"},
            },
        },
    },
}
