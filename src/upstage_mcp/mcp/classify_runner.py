from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import Any

import anyio
from pydantic import BaseModel

from ..api_client import build_chat_payload, chat_content
from ..config import CLASSIFY_MODEL
from ..encoding import to_data_uri
from ..schemas import (
    DEFAULT_CLASSIFICATION_SCHEMA,
    ClassificationSchema,
    load_classification_schema,
    parse_classification_schema_json,
)
from ..validators import validate_document_file
from .context import ToolContext
from .io import CLASSIFICATION_DIR
from .progress import ProgressReporter

logger = logging.getLogger(__name__)

_OPERATION = "Document classification"


class ClassifyRequest(BaseModel):
    """Input model for document classification."""

    file_path: Path
    schema_path: Path | None = None
    schema_json: str | None = None


class ClassifyResult(BaseModel):
    """Output model for document classification."""

    classification: str
    out_path: str
    file: str
    schema_used: str


def resolve_classification_schema(
    request: ClassifyRequest,
) -> tuple[ClassificationSchema, str]:
    """Pick the classification schema: ``schema_json``, ``schema_path``, default.

    Raises:
        SchemaError: If a supplied schema is malformed.
    """
    if request.schema_json:
        return parse_classification_schema_json(request.schema_json), "custom"
    if request.schema_path:
        return load_classification_schema(request.schema_path), str(request.schema_path)
    return DEFAULT_CLASSIFICATION_SCHEMA, "default"


def classification_label(content: str) -> str:
    """Return the label from message content, decoding a JSON string if present."""
    try:
        decoded = json.loads(content)
    except json.JSONDecodeError:
        return content.strip()
    return decoded if isinstance(decoded, str) else content.strip()


async def run_classify(
    request: ClassifyRequest,
    *,
    context: ToolContext,
    progress: ProgressReporter | None = None,
) -> ClassifyResult:
    """Classify a document into one of the schema's categories.

    The saved file keeps the raw API response; the result does not.

    Args:
        request: Classification request payload.
        context: Shared tool collaborators.
        progress: Optional progress reporter.

    Returns:
        Classification label with save metadata.
    """
    reporter = progress or ProgressReporter()
    resolved = validate_document_file(
        request.file_path, "extraction", max_size=context.settings.max_file_size
    )
    await reporter.report(10)

    schema, schema_used = resolve_classification_schema(request)
    if schema_used != "default":
        await reporter.report(20)

    data_uri = await anyio.to_thread.run_sync(to_data_uri, resolved)
    await reporter.report(40)

    payload = build_chat_payload(CLASSIFY_MODEL, data_uri, schema.response_format())
    await reporter.report(60)
    result = await context.client.post_json(
        context.settings.endpoints.document_classification,
        payload,
        operation=_OPERATION,
    )
    label = classification_label(chat_content(result, _OPERATION))
    await reporter.report(90)

    def build(path: Path) -> dict[str, Any]:
        return {
            "classification": label,
            "metadata": {
                "file": resolved.name,
                "result_saved_to": str(path),
                "schema_used": schema_used,
                "api_response": result,
            },
        }

    save = functools.partial(
        context.writer.save, CLASSIFICATION_DIR, resolved, "classification", build
    )
    out_path = await anyio.to_thread.run_sync(save)
    await reporter.report(100)
    logger.info("Classified %s as %r; saved to %s", resolved.name, label, out_path)
    return ClassifyResult(
        classification=label,
        out_path=str(out_path),
        file=resolved.name,
        schema_used=schema_used,
    )
