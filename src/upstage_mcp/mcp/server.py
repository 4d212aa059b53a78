from __future__ import annotations

import argparse
import functools
import logging
from pathlib import Path

import anyio
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ..config import API_KEY_ENV, UpstageSettings
from ..errors import ConfigError
from .context import ToolContext
from .dispatch import McpDispatcher
from .http_app import serve_http
from .stdio import ensure_utf8_stdio, run_stdio

logger = logging.getLogger(__name__)

_EPILOG = f"""examples:
  upstage-mcp                      start with the stdio transport
  upstage-mcp --http               start the HTTP server on port 3000
  upstage-mcp --http --port 8080   start the HTTP server on port 8080

environment variables:
  {API_KEY_ENV}  required Upstage API key
"""


class ServerConfig(BaseModel):
    """Configuration for the MCP server process."""

    http: bool = Field(default=False, description="Serve HTTP instead of stdio.")
    host: str = Field(default="127.0.0.1", description="HTTP bind address.")
    port: int = Field(default=3000, ge=1, le=65535, description="HTTP port.")
    log_level: str = Field(default="INFO", description="Logging level.")
    log_file: Path | None = Field(default=None, description="Optional log file path.")


def main(argv: list[str] | None = None) -> int:
    """Run the MCP server entrypoint.

    Args:
        argv: Optional CLI arguments for testing.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    config = _parse_args(argv)
    _configure_logging(config)
    load_dotenv()
    try:
        settings = UpstageSettings.from_env()
    except ConfigError as exc:
        logger.error("Error: %s", exc)
        return 1
    try:
        run_server(config, settings)
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down.")
    except Exception as exc:  # pragma: no cover - surface runtime errors
        logger.exception("MCP server failed: %s", exc)
        return 1
    return 0


def run_server(config: ServerConfig, settings: UpstageSettings) -> None:
    """Start the MCP server on the configured transport.

    Args:
        config: Server configuration.
        settings: API and output configuration.
    """
    context = ToolContext.from_settings(settings)
    context.writer.ensure_directories()
    logger.info("Output directories ready under %s", settings.output_base)
    dispatcher = McpDispatcher(context)
    if config.http:
        anyio.run(
            functools.partial(
                serve_http,
                dispatcher,
                host=config.host,
                port=config.port,
                log_level=config.log_level,
            )
        )
        return
    ensure_utf8_stdio()
    anyio.run(run_stdio, dispatcher)


def _parse_args(argv: list[str] | None) -> ServerConfig:
    """Parse CLI arguments into server config.

    Args:
        argv: Optional CLI argument list.

    Returns:
        Parsed server configuration.
    """
    parser = argparse.ArgumentParser(
        prog="upstage-mcp",
        description="MCP server for Upstage document parsing, extraction and classification.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--http", action="store_true", help="Start HTTP server (default: stdio)."
    )
    parser.add_argument(
        "--port", type=int, default=3000, help="HTTP server port (default: 3000)."
    )
    parser.add_argument(
        "--host", default="127.0.0.1", help="HTTP bind address (default: 127.0.0.1)."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    parser.add_argument("--log-file", type=Path, help="Optional log file path.")
    args = parser.parse_args(argv)
    return ServerConfig(
        http=bool(args.http),
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        log_file=args.log_file,
    )


def _configure_logging(config: ServerConfig) -> None:
    """Configure logging for the server process.

    Logs go to stderr so they never mix with stdio JSON-RPC traffic.

    Args:
        config: Server configuration.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file is not None:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=config.log_level.upper(),
        handlers=handlers,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
