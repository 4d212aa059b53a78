from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any, Literal

import anyio
import httpx

from .config import CLIENT_HEADER, RetryPolicy, UpstageSettings
from .encoding import mime_type_for
from .errors import ApiError, InvalidApiResponseError

logger = logging.getLogger(__name__)

RetryStatus = Literal["attempting", "succeeded", "failed_terminal"]
Sender = Callable[[httpx.AsyncClient], Awaitable[httpx.Response]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RetryState:
    """Request-scoped retry bookkeeping.

    ``attempt`` counts attempts started so far. ``status`` moves from
    ``attempting`` to either ``succeeded`` or ``failed_terminal``.
    """

    policy: RetryPolicy
    attempt: int = 0
    status: RetryStatus = "attempting"
    last_error: ApiError | None = None

    @property
    def remaining(self) -> int:
        return self.policy.attempts - self.attempt

    def start_attempt(self) -> int:
        self.attempt += 1
        return self.attempt

    def succeed(self) -> None:
        self.status = "succeeded"

    def fail(self, error: ApiError, *, retryable: bool) -> float | None:
        """Record a failed attempt.

        Args:
            error: Error raised by the attempt.
            retryable: Whether the error class allows another attempt.

        Returns:
            Delay before the next attempt, or None when the state is terminal.
        """
        self.last_error = error
        if not retryable or self.remaining <= 0:
            self.status = "failed_terminal"
            return None
        return self.policy.delay_for(self.attempt)


def is_retryable_status(status_code: int) -> bool:
    """Return True unless the status is a client error other than 429."""
    return not (400 <= status_code < 500 and status_code != 429)


class UpstageClient:
    """Async HTTP client for the Upstage API with bounded retry."""

    def __init__(
        self,
        settings: UpstageSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = anyio.sleep,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._sleep = sleep

    @property
    def headers(self) -> dict[str, str]:
        name, value = CLIENT_HEADER
        return {
            "Authorization": f"Bearer {self._settings.api_key}",
            name: value,
        }

    async def post_json(
        self, url: str, payload: Mapping[str, Any], *, operation: str
    ) -> Any:
        """POST a JSON body and return the decoded JSON response.

        Args:
            url: Endpoint URL.
            payload: JSON body.
            operation: Human-readable operation name used in errors and logs.

        Returns:
            Decoded response body.
        """

        async def send(client: httpx.AsyncClient) -> httpx.Response:
            return await client.post(url, json=dict(payload))

        return await self._request_with_retry(send, operation=operation)

    async def post_multipart(
        self,
        url: str,
        *,
        file_path: Path,
        data: Mapping[str, Any] | None = None,
        operation: str,
        field: str = "document",
    ) -> Any:
        """POST a file as multipart form data alongside scalar fields.

        The file is re-opened and streamed from disk on every attempt.

        Args:
            url: Endpoint URL.
            file_path: File to upload.
            data: Extra form fields; mappings and lists are JSON-encoded.
            operation: Human-readable operation name used in errors and logs.
            field: Form field name for the file.

        Returns:
            Decoded response body.
        """
        form = _encode_form(data or {})

        async def send(client: httpx.AsyncClient) -> httpx.Response:
            with file_path.open("rb") as handle:
                files = {field: (file_path.name, handle, mime_type_for(file_path))}
                return await client.post(url, data=form, files=files)

        return await self._request_with_retry(send, operation=operation)

    async def _request_with_retry(self, send: Sender, *, operation: str) -> Any:
        state = RetryState(policy=self._settings.retry)
        async with httpx.AsyncClient(
            headers=self.headers,
            timeout=self._settings.timeout,
            transport=self._transport,
        ) as client:
            while True:
                attempt = state.start_attempt()
                try:
                    response = await send(client)
                    response.raise_for_status()
                except httpx.HTTPStatusError as exc:
                    status_code = exc.response.status_code
                    error = ApiError(
                        f"{operation} failed: {_error_message(exc.response)}",
                        status_code=status_code,
                        attempts=attempt,
                    )
                    delay = state.fail(error, retryable=is_retryable_status(status_code))
                except httpx.HTTPError as exc:
                    error = ApiError(
                        f"{operation} failed: {str(exc) or type(exc).__name__}",
                        attempts=attempt,
                    )
                    delay = state.fail(error, retryable=True)
                else:
                    state.succeed()
                    return _decode_json(response, operation)

                if delay is None:
                    logger.error("%s attempt %d failed: %s", operation, attempt, error)
                    raise error
                logger.warning(
                    "%s attempt %d failed. %d attempts left.",
                    operation,
                    attempt,
                    state.remaining,
                )
                await self._sleep(delay)


def build_chat_payload(
    model: str,
    data_uri: str,
    response_format: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a chat-completion style request embedding a document.

    Args:
        model: Remote model name.
        data_uri: Document encoded as a data URI.
        response_format: Optional ``response_format`` member.

    Returns:
        JSON request body.
    """
    payload: dict[str, Any] = {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [{"type": "image_url", "image_url": {"url": data_uri}}],
            }
        ],
    }
    if response_format is not None:
        payload["response_format"] = dict(response_format)
    return payload


def chat_content(result: object, operation: str) -> str:
    """Return ``choices[0].message.content`` from a chat-completion response.

    Raises:
        InvalidApiResponseError: If the response does not have that shape.
    """
    choices = result.get("choices") if isinstance(result, dict) else None
    if not isinstance(choices, list) or not choices:
        raise InvalidApiResponseError(f"Invalid response from {operation.lower()} API")
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise InvalidApiResponseError(
            f"Invalid response from {operation.lower()} API: missing message content"
        )
    return content


def parse_json_content(content: str, operation: str) -> Any:
    """Decode JSON message content.

    Raises:
        InvalidApiResponseError: If the content is not JSON.
    """
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise InvalidApiResponseError(
            f"{operation} returned content that is not valid JSON: {exc}"
        ) from exc


def _decode_json(response: httpx.Response, operation: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise InvalidApiResponseError(
            f"{operation} returned a body that is not valid JSON",
            status_code=response.status_code,
        ) from exc


def _error_message(response: httpx.Response) -> str:
    """Return the upstream error message when the body carries one."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if isinstance(body.get("message"), str):
            return body["message"]
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return f"HTTP {response.status_code} {response.reason_phrase}".rstrip()


def _encode_form(data: Mapping[str, Any]) -> dict[str, str]:
    return {
        key: json.dumps(value) if isinstance(value, (dict, list)) else str(value)
        for key, value in data.items()
    }
