from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from mcp.types import Tool
from pydantic import BaseModel, Field

from ..config import MAX_FILE_SIZE, MAX_PAGES
from ..schemas import DEFAULT_CLASSIFICATION_SCHEMA
from .classify_runner import ClassifyRequest, ClassifyResult, run_classify
from .context import ToolContext
from .extract_runner import ExtractRequest, ExtractResult, run_extract
from .parse_runner import ParseRequest, ParseResult, run_parse
from .progress import ProgressReporter
from .schema_runner import GenerateSchemaRequest, GenerateSchemaResult, run_generate_schema

SCHEMA_USAGE_HINT = (
    "Copy the 'schema_json' value to use with extract_information tool "
    "when auto_generate_schema is false"
)


class ParseDocumentToolInput(BaseModel):
    """MCP tool input for document parsing."""

    file_path: str = Field(..., description="Path to the document file to be processed")
    output_formats: list[str] | None = Field(
        default=None, description="Output formats (e.g., 'html', 'text', 'markdown')"
    )


class ExtractInformationToolInput(BaseModel):
    """MCP tool input for information extraction."""

    file_path: str = Field(..., description="Path to the document file to process")
    schema_path: str | None = Field(
        default=None,
        description="Path to JSON file containing the extraction schema (optional)",
    )
    schema_json: str | None = Field(
        default=None,
        description="JSON string containing the extraction schema (optional)",
    )
    auto_generate_schema: bool = Field(
        default=True, description="Whether to automatically generate a schema"
    )


class GenerateSchemaToolInput(BaseModel):
    """MCP tool input for schema generation."""

    file_path: str = Field(
        ..., description="Path to the document file to analyze for schema generation"
    )


class ClassifyDocumentToolInput(BaseModel):
    """MCP tool input for document classification."""

    file_path: str = Field(..., description="Path to the document file to classify")
    schema_path: str | None = Field(
        default=None,
        description="Path to JSON file containing custom classification schema (optional)",
    )
    schema_json: str | None = Field(
        default=None,
        description="JSON string containing custom classification schema (optional)",
    )


async def run_parse_document_tool(
    payload: ParseDocumentToolInput,
    *,
    context: ToolContext,
    progress: ProgressReporter | None = None,
) -> str:
    """Run the parse_document tool handler.

    Args:
        payload: Tool input payload.
        context: Shared tool collaborators.
        progress: Optional progress reporter.

    Returns:
        Tool output text.
    """
    request = ParseRequest(
        file_path=Path(payload.file_path), output_formats=payload.output_formats
    )
    result = await run_parse(request, context=context, progress=progress)
    return _format_parse(result)


async def run_extract_information_tool(
    payload: ExtractInformationToolInput,
    *,
    context: ToolContext,
    progress: ProgressReporter | None = None,
) -> str:
    """Run the extract_information tool handler.

    Args:
        payload: Tool input payload.
        context: Shared tool collaborators.
        progress: Optional progress reporter.

    Returns:
        Tool output text.
    """
    request = ExtractRequest(
        file_path=Path(payload.file_path),
        schema_path=Path(payload.schema_path) if payload.schema_path else None,
        schema_json=payload.schema_json,
        auto_generate_schema=payload.auto_generate_schema,
    )
    result = await run_extract(request, context=context, progress=progress)
    return _format_extract(result)


async def run_generate_schema_tool(
    payload: GenerateSchemaToolInput,
    *,
    context: ToolContext,
    progress: ProgressReporter | None = None,
) -> str:
    """Run the generate_schema tool handler.

    Args:
        payload: Tool input payload.
        context: Shared tool collaborators.
        progress: Optional progress reporter.

    Returns:
        Tool output text.
    """
    request = GenerateSchemaRequest(file_path=Path(payload.file_path))
    result = await run_generate_schema(request, context=context, progress=progress)
    return _format_generate_schema(result)


async def run_classify_document_tool(
    payload: ClassifyDocumentToolInput,
    *,
    context: ToolContext,
    progress: ProgressReporter | None = None,
) -> str:
    """Run the classify_document tool handler.

    Args:
        payload: Tool input payload.
        context: Shared tool collaborators.
        progress: Optional progress reporter.

    Returns:
        Tool output text.
    """
    request = ClassifyRequest(
        file_path=Path(payload.file_path),
        schema_path=Path(payload.schema_path) if payload.schema_path else None,
        schema_json=payload.schema_json,
    )
    result = await run_classify(request, context=context, progress=progress)
    return _format_classify(result)


def _format_parse(result: ParseResult) -> str:
    text = json.dumps(result.content, ensure_ascii=False)
    return (
        f"{text}\n\nThe full response has been saved to {result.out_path} "
        "for your reference."
    )


def _format_generate_schema(result: GenerateSchemaResult) -> str:
    return _dumps(
        {
            "schema": result.generated,
            "schema_json": json.dumps(result.generated, ensure_ascii=False),
            "metadata": {
                "source_file": result.source_file,
                "schema_saved_to": result.out_path,
                "usage_instructions": SCHEMA_USAGE_HINT,
            },
        }
    )


def _format_extract(result: ExtractResult) -> str:
    return _dumps(
        {
            "extracted_data": result.extracted_data,
            "metadata": {
                "file": result.file,
                "result_saved_to": result.out_path,
                "schema_used": result.schema_used,
            },
        }
    )


def _format_classify(result: ClassifyResult) -> str:
    return _dumps(
        {
            "classification": result.classification,
            "metadata": {
                "file": result.file,
                "result_saved_to": result.out_path,
                "schema_used": result.schema_used,
            },
        }
    )


def _dumps(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


ToolHandler = Callable[..., Awaitable[str]]


@dataclass(frozen=True)
class ToolSpec:
    """Routing entry binding a tool name to its input model and handler."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    def descriptor(self) -> Tool:
        """Return the MCP tool descriptor."""
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_model.model_json_schema(),
        )


_FORMATS_NOTE = f"""Supported file formats: JPEG, PNG, BMP, PDF, TIFF, HEIC, DOCX, PPTX, XLSX
Max file size: {MAX_FILE_SIZE // (1024 * 1024)}MB
Max pages: {MAX_PAGES}"""

_PARSE_DESCRIPTION = """Parse a document using Upstage AI's document digitization API.

This tool extracts the structure and content from various document types,
including PDFs and images. It preserves the original formatting and layout
while converting the document into a structured format.

Supported file formats include: PDF, JPEG, PNG, TIFF, BMP, GIF and WEBP."""

_EXTRACT_DESCRIPTION = f"""Extract structured information from documents using Upstage Universal Information Extraction.

This tool can extract key information from any document type without pre-training.
You can either provide a schema defining what information to extract, or let the system
automatically generate an appropriate schema based on the document content.

{_FORMATS_NOTE}

SCHEMA FORMAT: When auto_generate_schema is false, provide schema in this exact format:
{{
  "type": "json_schema",
  "json_schema": {{
    "name": "document_schema",
    "schema": {{
      "type": "object",
      "properties": {{
        "field_name": {{
          "type": "string|number|array|object",
          "description": "What to extract"
        }}
      }}
    }}
  }}
}}

Example schema_json:
{{"type":"json_schema","json_schema":{{"name":"document_schema","schema":{{"type":"object","properties":{{"company_name":{{"type":"string","description":"Company name"}},"invoice_number":{{"type":"string","description":"Invoice number"}},"total_amount":{{"type":"number","description":"Total amount"}}}}}}}}}}"""

_GENERATE_DESCRIPTION = f"""Generate an extraction schema for a document using Upstage AI's schema generation API.

This tool analyzes a document and automatically generates a JSON schema that defines the structure
and fields that can be extracted from similar documents. The generated schema can then be used
with the extract_information tool when auto_generate_schema is set to false.

This is useful when you want to:
- Create a reusable schema for multiple similar documents
- Have more control over the extraction fields
- Ensure consistent field naming and structure across extractions

{_FORMATS_NOTE}

The tool returns both a readable schema object and a schema_json string that can be directly
copied and used with the extract_information tool."""


def _classify_description() -> str:
    categories = "\n".join(
        f"- {category.value}: {category.description}"
        for category in DEFAULT_CLASSIFICATION_SCHEMA.categories
    )
    return f"""Classify a document into predefined categories using Upstage AI's document classification API.

This tool analyzes a document and classifies it into one of several predefined categories such as
invoice, receipt, contract, CV, bank statement, and others. You can use the default classification
schema or provide your own custom classification categories.

{_FORMATS_NOTE}

DEFAULT CATEGORIES:
{categories}

CUSTOM SCHEMA FORMAT: For custom classification, provide schema in this exact format:
{{
  "type": "json_schema",
  "json_schema": {{
    "name": "document-classify",
    "schema": {{
      "type": "string",
      "oneOf": [
        {{"const": "category1", "description": "Description of category 1"}},
        {{"const": "category2", "description": "Description of category 2"}},
        {{"const": "others", "description": "Other"}}
      ]
    }}
  }}
}}"""


TOOL_SPECS: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            name="parse_document",
            description=_PARSE_DESCRIPTION,
            input_model=ParseDocumentToolInput,
            handler=run_parse_document_tool,
        ),
        ToolSpec(
            name="extract_information",
            description=_EXTRACT_DESCRIPTION,
            input_model=ExtractInformationToolInput,
            handler=run_extract_information_tool,
        ),
        ToolSpec(
            name="generate_schema",
            description=_GENERATE_DESCRIPTION,
            input_model=GenerateSchemaToolInput,
            handler=run_generate_schema_tool,
        ),
        ToolSpec(
            name="classify_document",
            description=_classify_description(),
            input_model=ClassifyDocumentToolInput,
            handler=run_classify_document_tool,
        ),
    )
}
