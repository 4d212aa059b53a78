from __future__ import annotations

"""Project-specific exception hierarchy for the Upstage MCP server."""

from pathlib import Path


class UpstageMcpError(Exception):
    """Base exception for the Upstage MCP server."""


class ConfigError(UpstageMcpError):
    """Raised when startup configuration is missing or invalid."""


class FileValidationError(UpstageMcpError, ValueError):
    """Raised when an input document fails local validation."""


class DocumentNotFoundError(FileValidationError):
    """Raised when the input path does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"File not found: {path}")
        self.path = path


class NotAFileError(FileValidationError):
    """Raised when the input path exists but is not a regular file."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Path is not a file: {path}")
        self.path = path


class UnsupportedFormatError(FileValidationError):
    """Raised when the file extension is outside the allow-list."""

    def __init__(self, extension: str, allowed: tuple[str, ...]) -> None:
        super().__init__(
            f"Unsupported file format: {extension}. "
            f"Supported formats: {', '.join(allowed)}"
        )
        self.extension = extension
        self.allowed = allowed


class FileTooLargeError(FileValidationError):
    """Raised when the file exceeds the size ceiling."""

    def __init__(self, size: int, max_size: int) -> None:
        size_mb = size / (1024 * 1024)
        max_mb = max_size / (1024 * 1024)
        super().__init__(
            f"File size ({size_mb:.2f}MB) exceeds maximum allowed size ({max_mb:.0f}MB)"
        )
        self.size = size
        self.max_size = max_size


class SchemaError(UpstageMcpError, ValueError):
    """Raised when a caller-supplied schema cannot be used."""


class MalformedJsonError(SchemaError):
    """Raised when schema text is not valid JSON."""


class SchemaShapeError(SchemaError):
    """Raised when a schema object does not match the expected structure."""


class NoSchemaAvailableError(SchemaError):
    """Raised when extraction has no schema and auto-generation is disabled."""


class ApiError(UpstageMcpError):
    """Raised when a remote API call fails (after retries where applicable)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts


class InvalidApiResponseError(ApiError):
    """Raised when the API answered but the payload has an unexpected shape."""


class InvalidSchemaResponseError(InvalidApiResponseError):
    """Raised when schema generation returns content without a json_schema."""


class ProtocolError(UpstageMcpError):
    """Raised for malformed JSON-RPC envelopes or unroutable requests."""

    def __init__(self, code: int, message: str, data: object | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


class OutputError(UpstageMcpError):
    """Raised when writing a result file fails."""
