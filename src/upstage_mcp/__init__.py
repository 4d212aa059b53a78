"""Upstage document AI exposed as MCP tools."""

from __future__ import annotations

__version__ = "0.2.0"

from .api_client import RetryState, UpstageClient
from .config import RetryPolicy, UpstageSettings
from .errors import (
    ApiError,
    ConfigError,
    FileValidationError,
    InvalidApiResponseError,
    InvalidSchemaResponseError,
    OutputError,
    ProtocolError,
    SchemaError,
    UpstageMcpError,
)
from .schemas import (
    DEFAULT_CLASSIFICATION_SCHEMA,
    ClassificationSchema,
    ExtractionSchema,
    FieldSpec,
    build_extraction_schema,
)
from .validators import validate_document_file

__all__ = [
    "__version__",
    "ApiError",
    "ClassificationSchema",
    "ConfigError",
    "DEFAULT_CLASSIFICATION_SCHEMA",
    "ExtractionSchema",
    "FieldSpec",
    "FileValidationError",
    "InvalidApiResponseError",
    "InvalidSchemaResponseError",
    "OutputError",
    "ProtocolError",
    "RetryPolicy",
    "RetryState",
    "SchemaError",
    "UpstageClient",
    "UpstageMcpError",
    "UpstageSettings",
    "build_extraction_schema",
    "validate_document_file",
]
