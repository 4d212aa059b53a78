from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Any

import anyio
from pydantic import BaseModel, Field

from ..config import PARSE_MODEL
from ..validators import validate_document_file
from .context import ToolContext
from .io import PARSING_DIR
from .progress import ProgressReporter

logger = logging.getLogger(__name__)


class ParseRequest(BaseModel):
    """Input model for document parsing."""

    file_path: Path
    output_formats: list[str] | None = None


class ParseResult(BaseModel):
    """Output model for document parsing."""

    content: Any = Field(default_factory=dict, description="Response content field.")
    out_path: str


async def run_parse(
    request: ParseRequest,
    *,
    context: ToolContext,
    progress: ProgressReporter | None = None,
) -> ParseResult:
    """Parse a document with the document-digitization endpoint.

    Args:
        request: Parse request payload.
        context: Shared tool collaborators.
        progress: Optional progress reporter.

    Returns:
        Parsed content and the path of the saved raw response.

    Raises:
        FileValidationError: If the input file is rejected.
        ApiError: If the remote call fails.
    """
    reporter = progress or ProgressReporter()
    resolved = validate_document_file(
        request.file_path, "parsing", max_size=context.settings.max_file_size
    )
    await reporter.report(10)

    form: dict[str, Any] = {
        "ocr": "force",
        "base64_encoding": "['table']",
        "model": PARSE_MODEL,
    }
    if request.output_formats:
        form["output_formats"] = list(request.output_formats)
    await reporter.report(30)

    result = await context.client.post_multipart(
        context.settings.endpoints.document_digitization,
        file_path=resolved,
        data=form,
        operation="Document parsing",
    )
    await reporter.report(80)

    save = functools.partial(
        context.writer.save, PARSING_DIR, resolved, "upstage", lambda _path: result
    )
    out_path = await anyio.to_thread.run_sync(save)
    await reporter.report(100)
    logger.info("Parsed %s; full response saved to %s", resolved.name, out_path)

    content = result.get("content") if isinstance(result, dict) else None
    return ParseResult(content=content or {}, out_path=str(out_path))
