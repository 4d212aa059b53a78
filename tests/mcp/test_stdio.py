from __future__ import annotations

import functools
import io
import json
from pathlib import Path
from typing import Any

import anyio

from tests.utils import FakeUpstage, chat_completion, json_reply, make_context
from upstage_mcp.config import UpstageSettings
from upstage_mcp.mcp.dispatch import McpDispatcher
from upstage_mcp.mcp.stdio import run_stdio


def _serve(
    settings: UpstageSettings,
    data: bytes,
    fake: FakeUpstage | None = None,
) -> list[dict[str, Any]]:
    dispatcher = McpDispatcher(make_context(settings, fake or FakeUpstage()))
    stdin = io.BytesIO(data)
    stdout = io.StringIO()
    anyio.run(functools.partial(run_stdio, dispatcher, stdin=stdin, stdout=stdout))
    return [json.loads(line) for line in stdout.getvalue().splitlines()]


def _lines(*messages: object) -> bytes:
    return b"".join(
        (message if isinstance(message, bytes) else json.dumps(message).encode()) + b"\n"
        for message in messages
    )


def test_stdio_answers_each_request(settings: UpstageSettings) -> None:
    responses = _serve(
        settings,
        _lines(
            {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
            b"",
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": 2, "method": "ping"},
        ),
    )
    by_id = {response["id"]: response for response in responses}
    assert set(by_id) == {1, 2}
    assert len(by_id[1]["result"]["tools"]) == 4
    assert by_id[2]["result"] == {}


def test_stdio_reports_parse_errors(settings: UpstageSettings) -> None:
    responses = _serve(settings, _lines(b"not json at all"))
    assert len(responses) == 1
    assert responses[0]["error"]["code"] == -32700


def test_stdio_survives_invalid_utf8(settings: UpstageSettings) -> None:
    responses = _serve(
        settings,
        _lines(b"\xff\xfe garbage", {"jsonrpc": "2.0", "id": 1, "method": "ping"}),
    )
    assert len(responses) == 2
    errors = [response for response in responses if "error" in response]
    assert len(errors) == 1
    assert errors[0]["error"]["code"] == -32700
    assert {"jsonrpc": "2.0", "id": 1, "result": {}} in responses


def test_stdio_tools_call(settings: UpstageSettings, sample_pdf: Path) -> None:
    fake = FakeUpstage(json_reply(chat_completion("invoice")))
    responses = _serve(
        settings,
        _lines(
            {
                "jsonrpc": "2.0",
                "id": 5,
                "method": "tools/call",
                "params": {
                    "name": "classify_document",
                    "arguments": {"file_path": str(sample_pdf)},
                },
            }
        ),
        fake,
    )
    assert len(responses) == 1
    result = responses[0]["result"]
    assert result["isError"] is False
    output = json.loads(result["content"][0]["text"])
    assert output["classification"] == "invoice"
    assert Path(output["metadata"]["result_saved_to"]).exists()
    assert len(fake.requests) == 1


def test_stdio_tools_call_failure_is_error_result(
    settings: UpstageSettings, tmp_path: Path
) -> None:
    responses = _serve(
        settings,
        _lines(
            {
                "jsonrpc": "2.0",
                "id": 6,
                "method": "tools/call",
                "params": {
                    "name": "parse_document",
                    "arguments": {"file_path": str(tmp_path / "missing.pdf")},
                },
            }
        ),
    )
    result = responses[0]["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"].startswith("Error: File not found")
