from __future__ import annotations

from datetime import datetime, timezone
import functools
import logging
from pathlib import Path
from typing import Any

import anyio
from pydantic import BaseModel

from ..api_client import build_chat_payload, chat_content, parse_json_content
from ..config import EXTRACT_MODEL
from ..encoding import to_data_uri
from ..errors import InvalidSchemaResponseError
from ..validators import validate_document_file
from .context import ToolContext
from .io import SCHEMAS_DIR
from .progress import ProgressReporter

logger = logging.getLogger(__name__)

_OPERATION = "Schema generation"


class GenerateSchemaRequest(BaseModel):
    """Input model for schema generation."""

    file_path: Path


class GenerateSchemaResult(BaseModel):
    """Output model for schema generation."""

    generated: dict[str, Any]
    out_path: str
    source_file: str


async def fetch_generated_schema(data_uri: str, *, context: ToolContext) -> dict[str, Any]:
    """Ask the schema-generation endpoint for a schema describing a document.

    Args:
        data_uri: Document encoded as a data URI.
        context: Shared tool collaborators.

    Returns:
        Generated ``response_format`` (always carries ``json_schema``).

    Raises:
        ApiError: If the remote call fails.
        InvalidApiResponseError: If the response is not a chat completion.
        InvalidSchemaResponseError: If the content has no ``json_schema``.
    """
    result = await context.client.post_json(
        context.settings.endpoints.schema_generation,
        build_chat_payload(EXTRACT_MODEL, data_uri),
        operation=_OPERATION,
    )
    schema = parse_json_content(chat_content(result, _OPERATION), _OPERATION)
    if not isinstance(schema, dict) or not isinstance(schema.get("json_schema"), dict):
        raise InvalidSchemaResponseError("Invalid schema format returned")
    return schema


async def run_generate_schema(
    request: GenerateSchemaRequest,
    *,
    context: ToolContext,
    progress: ProgressReporter | None = None,
) -> GenerateSchemaResult:
    """Generate and save an extraction schema for a document.

    Args:
        request: Schema generation request payload.
        context: Shared tool collaborators.
        progress: Optional progress reporter.

    Returns:
        Generated schema and the path it was saved to.
    """
    reporter = progress or ProgressReporter()
    resolved = validate_document_file(
        request.file_path, "extraction", max_size=context.settings.max_file_size
    )
    await reporter.report(10)

    data_uri = await anyio.to_thread.run_sync(to_data_uri, resolved)
    await reporter.report(30)

    await reporter.report(50)
    schema = await fetch_generated_schema(data_uri, context=context)
    await reporter.report(80)

    def build(path: Path) -> dict[str, Any]:
        return {
            "generated_schema": schema,
            "metadata": {
                "source_file": resolved.name,
                "generated_at": datetime.now(timezone.utc).isoformat(),
                "schema_saved_to": str(path),
            },
        }

    save = functools.partial(
        context.writer.save, SCHEMAS_DIR, resolved, "generated_schema", build
    )
    out_path = await anyio.to_thread.run_sync(save)
    await reporter.report(100)
    logger.info("Generated schema for %s; saved to %s", resolved.name, out_path)
    return GenerateSchemaResult(
        generated=schema, out_path=str(out_path), source_file=resolved.name
    )
