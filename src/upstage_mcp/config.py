from __future__ import annotations

from collections.abc import Mapping
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from .errors import ConfigError

FilePurpose = Literal["parsing", "extraction"]

API_KEY_ENV = "UPSTAGE_API_KEY"
OUTPUT_DIR_ENV = "UPSTAGE_MCP_OUTPUT_DIR"

MAX_FILE_SIZE = 50 * 1024 * 1024
MAX_PAGES = 100

ALLOWED_EXTENSIONS: dict[FilePurpose, tuple[str, ...]] = {
    "parsing": (
        ".pdf",
        ".jpeg",
        ".jpg",
        ".png",
        ".tiff",
        ".tif",
        ".bmp",
        ".gif",
        ".webp",
    ),
    "extraction": (
        ".jpeg",
        ".jpg",
        ".png",
        ".bmp",
        ".pdf",
        ".tiff",
        ".tif",
        ".heic",
        ".docx",
        ".pptx",
        ".xlsx",
    ),
}

PARSE_MODEL = "document-parse"
EXTRACT_MODEL = "information-extract"
CLASSIFY_MODEL = "document-classify"

CLIENT_HEADER = ("x-upstage-client", "mcp")


def default_output_base() -> Path:
    """Return the per-user directory that holds all tool outputs."""
    return Path.home() / ".mcp-upstage" / "outputs"


class ApiEndpoints(BaseModel):
    """Remote endpoints used by the four tools."""

    document_digitization: str = "https://api.upstage.ai/v1/document-digitization"
    information_extraction: str = "https://api.upstage.ai/v1/information-extraction"
    schema_generation: str = (
        "https://api.upstage.ai/v1/information-extraction/schema-generation"
    )
    document_classification: str = "https://api.upstage.ai/v1/document-classification"


class RetryPolicy(BaseModel):
    """Bounded exponential backoff for outbound requests."""

    attempts: int = Field(default=3, ge=1, description="Total attempts per call.")
    initial_delay: float = Field(
        default=1.0, ge=0, description="Delay before the second attempt (seconds)."
    )
    factor: float = Field(default=2.0, ge=1, description="Backoff multiplier.")
    max_delay: float = Field(
        default=4.0, ge=0, description="Upper bound for a single delay (seconds)."
    )

    def delay_for(self, failed_attempt: int) -> float:
        """Return the sleep before the attempt following ``failed_attempt``.

        Args:
            failed_attempt: 1-based number of the attempt that just failed.

        Returns:
            Delay in seconds.
        """
        delay = self.initial_delay * (self.factor ** (failed_attempt - 1))
        return min(delay, self.max_delay)


class UpstageSettings(BaseModel):
    """Process-wide configuration, built once at startup and passed down."""

    api_key: str = Field(..., min_length=1, description="Upstage API bearer token.")
    endpoints: ApiEndpoints = Field(default_factory=ApiEndpoints)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    timeout: float = Field(
        default=300.0, gt=0, description="Per-attempt request timeout (seconds)."
    )
    output_base: Path = Field(
        default_factory=default_output_base,
        description="Base directory for saved JSON results.",
    )
    max_file_size: int = Field(default=MAX_FILE_SIZE, gt=0)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> UpstageSettings:
        """Build settings from environment variables.

        Args:
            environ: Optional mapping used instead of ``os.environ``.

        Returns:
            Settings instance.

        Raises:
            ConfigError: If the API key is not set.
        """
        env = os.environ if environ is None else environ
        api_key = (env.get(API_KEY_ENV) or "").strip()
        if not api_key:
            raise ConfigError(f"{API_KEY_ENV} not set in environment variables")
        output_dir = env.get(OUTPUT_DIR_ENV)
        if output_dir:
            return cls(api_key=api_key, output_base=Path(output_dir).expanduser())
        return cls(api_key=api_key)
