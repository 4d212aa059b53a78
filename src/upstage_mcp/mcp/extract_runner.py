from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Any

import anyio
from pydantic import BaseModel

from ..api_client import build_chat_payload, chat_content, parse_json_content
from ..config import EXTRACT_MODEL
from ..encoding import to_data_uri
from ..errors import InvalidSchemaResponseError, NoSchemaAvailableError, SchemaShapeError
from ..schemas import (
    JSON_SCHEMA_TYPE,
    ExtractionSchema,
    extraction_schema_from_json_schema,
    load_extraction_schema,
    parse_schema_json,
    validate_schema_shape,
)
from ..validators import validate_document_file
from .context import ToolContext
from .io import EXTRACTION_DIR, SCHEMAS_DIR
from .progress import ProgressReporter
from .schema_runner import fetch_generated_schema

logger = logging.getLogger(__name__)

_OPERATION = "Information extraction"


class ExtractRequest(BaseModel):
    """Input model for information extraction."""

    file_path: Path
    schema_path: Path | None = None
    schema_json: str | None = None
    auto_generate_schema: bool = True


class ExtractResult(BaseModel):
    """Output model for information extraction."""

    extracted_data: Any
    out_path: str
    file: str
    schema_used: str


def resolve_explicit_schema(request: ExtractRequest) -> tuple[ExtractionSchema, str] | None:
    """Resolve a caller-supplied schema.

    ``schema_json`` wins over ``schema_path``.

    Args:
        request: Extraction request payload.

    Returns:
        Tuple of (schema, schema-used label), or None when neither is given.

    Raises:
        SchemaError: If the supplied schema is malformed.
    """
    if request.schema_json:
        return parse_schema_json(request.schema_json), "custom"
    if request.schema_path:
        return load_extraction_schema(request.schema_path), str(request.schema_path)
    return None


async def run_extract(
    request: ExtractRequest,
    *,
    context: ToolContext,
    progress: ProgressReporter | None = None,
) -> ExtractResult:
    """Extract structured information from a document.

    Args:
        request: Extraction request payload.
        context: Shared tool collaborators.
        progress: Optional progress reporter.

    Returns:
        Extracted data with save metadata.

    Raises:
        FileValidationError: If the input file is rejected.
        SchemaError: If no usable schema is available.
        ApiError: If a remote call fails or answers with an unexpected shape.
    """
    reporter = progress or ProgressReporter()
    resolved = validate_document_file(
        request.file_path, "extraction", max_size=context.settings.max_file_size
    )
    await reporter.report(10)

    data_uri: str | None = None
    explicit = resolve_explicit_schema(request)
    if explicit is not None:
        schema, schema_used = explicit
        await reporter.report(20)
    elif request.auto_generate_schema:
        await reporter.report(20)
        data_uri = await anyio.to_thread.run_sync(to_data_uri, resolved)
        generated = await fetch_generated_schema(data_uri, context=context)
        schema = _usable_generated_schema(generated)
        save_schema = functools.partial(
            context.writer.save,
            SCHEMAS_DIR,
            resolved,
            "schema",
            lambda _path: generated["json_schema"],
        )
        schema_path = await anyio.to_thread.run_sync(save_schema)
        logger.info("Auto-generated schema for %s saved to %s", resolved.name, schema_path)
        schema_used = "auto-generated"
        await reporter.report(40)
    else:
        raise NoSchemaAvailableError(
            "No schema provided or generated. "
            "Please provide a schema or enable auto_generate_schema."
        )

    await reporter.report(60)
    if data_uri is None:
        data_uri = await anyio.to_thread.run_sync(to_data_uri, resolved)
    result = await context.client.post_json(
        context.settings.endpoints.information_extraction,
        build_chat_payload(EXTRACT_MODEL, data_uri, schema.response_format()),
        operation=_OPERATION,
    )
    extracted = parse_json_content(chat_content(result, _OPERATION), _OPERATION)
    await reporter.report(90)

    def build(path: Path) -> dict[str, Any]:
        return {
            "extracted_data": extracted,
            "metadata": {
                "file": resolved.name,
                "result_saved_to": str(path),
                "schema_used": schema_used,
            },
        }

    save = functools.partial(context.writer.save, EXTRACTION_DIR, resolved, "extraction", build)
    out_path = await anyio.to_thread.run_sync(save)
    await reporter.report(100)
    logger.info("Extracted information from %s; saved to %s", resolved.name, out_path)
    return ExtractResult(
        extracted_data=extracted,
        out_path=str(out_path),
        file=resolved.name,
        schema_used=schema_used,
    )


def _usable_generated_schema(generated: dict[str, Any]) -> ExtractionSchema:
    json_schema = generated["json_schema"]
    try:
        validate_schema_shape({"type": JSON_SCHEMA_TYPE, "json_schema": json_schema})
        return extraction_schema_from_json_schema(json_schema)
    except SchemaShapeError as exc:
        raise InvalidSchemaResponseError(f"Generated schema is not usable: {exc}") from exc
