from __future__ import annotations

import json
from pathlib import Path

import anyio
import pytest

from tests.utils import (
    GENERATED_SCHEMA as GENERATED,
    FakeUpstage,
    chat_completion,
    json_reply,
    make_context,
)
from upstage_mcp.config import UpstageSettings
from upstage_mcp.errors import (
    InvalidSchemaResponseError,
    MalformedJsonError,
    NoSchemaAvailableError,
)
from upstage_mcp.mcp import tools
from upstage_mcp.mcp.extract_runner import (
    ExtractRequest,
    ExtractResult,
    resolve_explicit_schema,
    run_extract,
)
from upstage_mcp.mcp.progress import ProgressReporter
from upstage_mcp.schemas import build_extraction_schema, schema_to_json

_JSON_SCHEMA = schema_to_json(
    build_extraction_schema({"vendor": {"type": "string", "description": "Vendor"}})
)
_FILE_SCHEMA = build_extraction_schema(
    {"ignored": {"type": "string", "description": "From file"}}
)


def _extraction_reply(data: dict[str, object]) -> object:
    return json_reply(chat_completion(json.dumps(data)))


def test_schema_json_wins_over_schema_path(
    settings: UpstageSettings, sample_pdf: Path, tmp_path: Path
) -> None:
    schema_file = tmp_path / "schema.json"
    schema_file.write_text(schema_to_json(_FILE_SCHEMA), encoding="utf-8")
    fake = FakeUpstage(_extraction_reply({"vendor": "ACME"}))
    context = make_context(settings, fake)
    request = ExtractRequest(
        file_path=sample_pdf,
        schema_path=schema_file,
        schema_json=_JSON_SCHEMA,
        auto_generate_schema=True,
    )

    result = anyio.run(lambda: run_extract(request, context=context))

    assert result.extracted_data == {"vendor": "ACME"}
    assert result.schema_used == "custom"
    assert len(fake.requests) == 1
    body = fake.json_bodies()[0]
    assert body["model"] == "information-extract"
    assert body["response_format"] == json.loads(_JSON_SCHEMA)


def test_schema_path_is_reported(
    settings: UpstageSettings, sample_pdf: Path, tmp_path: Path
) -> None:
    schema_file = tmp_path / "schema.json"
    schema_file.write_text(schema_to_json(_FILE_SCHEMA), encoding="utf-8")
    fake = FakeUpstage(_extraction_reply({"ignored": "x"}))
    context = make_context(settings, fake)
    request = ExtractRequest(file_path=sample_pdf, schema_path=schema_file)

    result = anyio.run(lambda: run_extract(request, context=context))

    assert result.schema_used == str(schema_file)
    saved = json.loads(Path(result.out_path).read_text(encoding="utf-8"))
    assert saved == {
        "extracted_data": {"ignored": "x"},
        "metadata": {
            "file": "invoice.pdf",
            "result_saved_to": result.out_path,
            "schema_used": str(schema_file),
        },
    }


def test_no_schema_and_no_auto_generate_makes_no_request(
    settings: UpstageSettings, sample_pdf: Path
) -> None:
    fake = FakeUpstage()
    context = make_context(settings, fake)
    request = ExtractRequest(file_path=sample_pdf, auto_generate_schema=False)
    with pytest.raises(NoSchemaAvailableError, match="No schema provided or generated"):
        anyio.run(lambda: run_extract(request, context=context))
    assert fake.requests == []


def test_malformed_schema_json_fails_before_network(
    settings: UpstageSettings, sample_pdf: Path
) -> None:
    fake = FakeUpstage()
    context = make_context(settings, fake)
    request = ExtractRequest(file_path=sample_pdf, schema_json="{oops")
    with pytest.raises(MalformedJsonError):
        anyio.run(lambda: run_extract(request, context=context))
    assert fake.requests == []


def test_auto_generated_schema_is_saved_and_used(
    settings: UpstageSettings, sample_pdf: Path
) -> None:
    endpoints = settings.endpoints
    fake = FakeUpstage(
        routes={
            endpoints.schema_generation: [
                json_reply(chat_completion(json.dumps(GENERATED)))
            ],
            endpoints.information_extraction: [
                _extraction_reply({"invoice_number": "INV-1", "total_amount": 12.5})
            ],
        }
    )
    context = make_context(settings, fake)
    seen: list[float] = []
    reporter = ProgressReporter(lambda progress, _total: seen.append(progress))

    result = anyio.run(
        lambda: run_extract(
            ExtractRequest(file_path=sample_pdf), context=context, progress=reporter
        )
    )

    assert result.schema_used == "auto-generated"
    assert result.extracted_data == {"invoice_number": "INV-1", "total_amount": 12.5}
    assert [str(request.url) for request in fake.requests] == [
        endpoints.schema_generation,
        endpoints.information_extraction,
    ]
    assert fake.json_bodies()[1]["response_format"] == GENERATED
    schemas = list(
        (settings.output_base / "information_extraction" / "schemas").glob(
            "invoice_*_schema.json"
        )
    )
    assert len(schemas) == 1
    assert json.loads(schemas[0].read_text(encoding="utf-8")) == GENERATED["json_schema"]
    assert seen == [10, 20, 40, 60, 90, 100]


def test_unusable_generated_schema(
    settings: UpstageSettings, sample_pdf: Path
) -> None:
    empty = {
        "type": "json_schema",
        "json_schema": {"name": "s", "schema": {"type": "object", "properties": {}}},
    }
    fake = FakeUpstage(json_reply(chat_completion(json.dumps(empty))))
    context = make_context(settings, fake)
    with pytest.raises(InvalidSchemaResponseError, match="not usable"):
        anyio.run(lambda: run_extract(ExtractRequest(file_path=sample_pdf), context=context))
    assert len(fake.requests) == 1


def test_resolve_explicit_schema_none() -> None:
    assert resolve_explicit_schema(ExtractRequest(file_path=Path("a.pdf"))) is None


def test_run_extract_tool_builds_request(
    monkeypatch: pytest.MonkeyPatch, settings: UpstageSettings
) -> None:
    captured: dict[str, object] = {}

    async def _fake_run_extract(
        request: ExtractRequest, *, context: object, progress: object = None
    ) -> object:
        captured["request"] = request
        return ExtractResult(
            extracted_data={}, out_path="out.json", file="a.pdf", schema_used="custom"
        )

    monkeypatch.setattr(tools, "run_extract", _fake_run_extract)
    payload = tools.ExtractInformationToolInput(
        file_path="a.pdf", schema_path="s.json", auto_generate_schema=False
    )
    context = make_context(settings, FakeUpstage())
    text = anyio.run(lambda: tools.run_extract_information_tool(payload, context=context))

    request = captured["request"]
    assert isinstance(request, ExtractRequest)
    assert request.schema_path == Path("s.json")
    assert request.auto_generate_schema is False
    assert json.loads(text)["metadata"] == {
        "file": "a.pdf",
        "result_saved_to": "out.json",
        "schema_used": "custom",
    }


def test_custom_schema_is_sent_unchanged(
    settings: UpstageSettings, sample_pdf: Path
) -> None:
    custom = {
        "type": "json_schema",
        "json_schema": {
            "name": "inv",
            "strict": True,
            "schema": {
                "type": "object",
                "description": "Invoice totals",
                "properties": {"total": {"type": "number"}},
                "required": ["total"],
                "additionalProperties": False,
            },
        },
    }
    fake = FakeUpstage(_extraction_reply({"total": 3}))
    context = make_context(settings, fake)
    request = ExtractRequest(file_path=sample_pdf, schema_json=json.dumps(custom))

    anyio.run(lambda: run_extract(request, context=context))

    assert fake.json_bodies()[0]["response_format"] == custom
