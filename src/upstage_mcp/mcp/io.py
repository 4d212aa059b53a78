from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from ..errors import OutputError

PARSING_DIR = "document_parsing"
EXTRACTION_DIR = "information_extraction"
SCHEMAS_DIR = "information_extraction/schemas"
CLASSIFICATION_DIR = "document_classification"

OUTPUT_SUBDIRS = (PARSING_DIR, EXTRACTION_DIR, SCHEMAS_DIR, CLASSIFICATION_DIR)


class OutputWriter(BaseModel):
    """Derives output paths under a fixed base directory and writes JSON."""

    base: Path = Field(..., description="Base directory for all tool outputs.")

    def directory(self, subdir: str) -> Path:
        """Return the directory for an output category."""
        return self.base / subdir

    def ensure_directories(self) -> list[Path]:
        """Create every output directory.

        Returns:
            Created (or existing) directories.
        """
        created: list[Path] = []
        for subdir in OUTPUT_SUBDIRS:
            path = self.directory(subdir)
            path.mkdir(parents=True, exist_ok=True)
            created.append(path)
        return created

    def reserve(
        self,
        subdir: str,
        source: Path,
        suffix: str,
        *,
        now: datetime | None = None,
    ) -> Path:
        """Claim a fresh timestamped output path for a source document.

        The file is created empty so that concurrent calls within the same
        second receive distinct paths.

        Args:
            subdir: Output category directory.
            source: Input document the result belongs to.
            suffix: Trailing name component (e.g. "extraction").
            now: Optional clock override.

        Returns:
            Reserved output path.
        """
        directory = self.directory(subdir)
        directory.mkdir(parents=True, exist_ok=True)
        return _create_exclusive(directory / timestamped_filename(source, suffix, now=now))

    def save(
        self,
        subdir: str,
        source: Path,
        suffix: str,
        build: Callable[[Path], Any],
    ) -> Path:
        """Reserve an output path and write the document built for it.

        Args:
            subdir: Output category directory.
            source: Input document the result belongs to.
            suffix: Trailing name component.
            build: Callable receiving the final path and returning the JSON data.

        Returns:
            Path of the written file.

        The reserved file is removed again when building or writing fails.
        """
        path = self.reserve(subdir, source, suffix)
        try:
            return write_json(build(path), path)
        except Exception:
            path.unlink(missing_ok=True)
            raise


def timestamped_filename(
    source: Path | str, suffix: str = "upstage", *, now: datetime | None = None
) -> str:
    """Return ``<stem>_<YYYY-MM-DDTHH-MM-SS>_<suffix>.json`` for a source path."""
    moment = now or datetime.now(timezone.utc)
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%S")
    return f"{Path(source).stem}_{stamp}_{suffix}.json"


def write_json(data: Any, path: Path, *, indent: int = 2) -> Path:
    """Write a JSON document.

    Raises:
        OutputError: If the file cannot be written.
    """
    text = json.dumps(data, ensure_ascii=False, indent=indent)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise OutputError(f"Failed to write output file {path}: {exc}") from exc
    return path


def _create_exclusive(path: Path) -> Path:
    """Create ``path`` exclusively, appending a numeric suffix on collision."""
    candidate = path
    for idx in range(1, 10_000):
        try:
            with candidate.open("x", encoding="utf-8"):
                return candidate
        except FileExistsError:
            candidate = path.with_name(f"{path.stem}_{idx}{path.suffix}")
        except OSError as exc:
            raise OutputError(f"Failed to create output file {candidate}: {exc}") from exc
    raise OutputError(f"Failed to resolve unique path for {path}")
