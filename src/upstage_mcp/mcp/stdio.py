from __future__ import annotations

import json
import logging
import sys
from typing import Any, BinaryIO, TextIO

import anyio

from .dispatch import McpDispatcher

logger = logging.getLogger(__name__)


def ensure_utf8_stdio() -> None:
    """Reconfigure stdout to UTF-8 when supported.

    JSON-RPC lines are UTF-8; consoles with a legacy code page would otherwise
    fail on non-ASCII document names. Input is read as bytes by ``run_stdio``.
    """
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="strict")  # type: ignore[union-attr]
    except (AttributeError, ValueError):
        return


async def run_stdio(
    dispatcher: McpDispatcher,
    *,
    stdin: BinaryIO | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Serve newline-delimited JSON-RPC read from a byte stream.

    Each incoming line is decoded and handled in its own task, so slow tool
    calls do not block later requests. Bytes that are not valid UTF-8 are
    replaced, which turns such a line into a parse error reply. Returns once
    the input stream is exhausted and all in-flight requests have answered.

    Args:
        dispatcher: Shared request router.
        stdin: Binary input stream (defaults to ``sys.stdin.buffer``).
        stdout: Output stream (defaults to ``sys.stdout``).
    """
    reader = anyio.wrap_file(stdin or sys.stdin.buffer)
    writer = anyio.wrap_file(stdout or sys.stdout)
    lock = anyio.Lock()

    async def send(message: dict[str, Any]) -> None:
        line = json.dumps(message, ensure_ascii=False, separators=(",", ":"))
        async with lock:
            await writer.write(line + "\n")
            await writer.flush()

    async def process(line: bytes) -> None:
        text = line.decode("utf-8", errors="replace")
        response = await dispatcher.handle_text(text, notify=send)
        if response is not None:
            await send(response)

    logger.info("MCP server running on stdio")
    async with anyio.create_task_group() as tg:
        async for line in reader:
            if not line.strip():
                continue
            tg.start_soon(process, line)
    logger.info("stdin closed; stdio transport stopped")
