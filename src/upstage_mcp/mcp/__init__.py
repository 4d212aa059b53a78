"""MCP server integration for Upstage document tools."""

from __future__ import annotations

from .classify_runner import ClassifyRequest, ClassifyResult, run_classify
from .context import ToolContext
from .dispatch import McpDispatcher, ToolResult
from .extract_runner import ExtractRequest, ExtractResult, run_extract
from .io import OutputWriter
from .parse_runner import ParseRequest, ParseResult, run_parse
from .progress import ProgressReporter
from .schema_runner import GenerateSchemaRequest, GenerateSchemaResult, run_generate_schema
from .tools import (
    TOOL_SPECS,
    ClassifyDocumentToolInput,
    ExtractInformationToolInput,
    GenerateSchemaToolInput,
    ParseDocumentToolInput,
    ToolSpec,
    run_classify_document_tool,
    run_extract_information_tool,
    run_generate_schema_tool,
    run_parse_document_tool,
)

__all__ = [
    "ClassifyDocumentToolInput",
    "ClassifyRequest",
    "ClassifyResult",
    "ExtractInformationToolInput",
    "ExtractRequest",
    "ExtractResult",
    "GenerateSchemaRequest",
    "GenerateSchemaResult",
    "GenerateSchemaToolInput",
    "McpDispatcher",
    "OutputWriter",
    "ParseDocumentToolInput",
    "ParseRequest",
    "ParseResult",
    "ProgressReporter",
    "TOOL_SPECS",
    "ToolContext",
    "ToolResult",
    "ToolSpec",
    "run_classify",
    "run_classify_document_tool",
    "run_extract",
    "run_extract_information_tool",
    "run_generate_schema",
    "run_generate_schema_tool",
    "run_parse",
    "run_parse_document_tool",
]
