from __future__ import annotations

from dataclasses import dataclass

import httpx

from ..api_client import UpstageClient
from ..config import UpstageSettings
from .io import OutputWriter


@dataclass(frozen=True)
class ToolContext:
    """Read-only collaborators shared by every tool run."""

    settings: UpstageSettings
    client: UpstageClient
    writer: OutputWriter

    @classmethod
    def from_settings(
        cls,
        settings: UpstageSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ToolContext:
        """Build the default context for a settings object.

        Args:
            settings: Process configuration.
            transport: Optional HTTP transport override (tests).

        Returns:
            Tool context.
        """
        return cls(
            settings=settings,
            client=UpstageClient(settings, transport=transport),
            writer=OutputWriter(base=settings.output_base),
        )
