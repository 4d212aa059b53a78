from __future__ import annotations

import base64
from pathlib import Path

_MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".bmp": "image/bmp",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".heic": "image/heic",
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


def mime_type_for(path: Path) -> str:
    """Return the MIME type for a document path (octet-stream if unknown)."""
    return _MIME_TYPES.get(path.suffix.lower(), "application/octet-stream")


def read_base64(path: Path) -> str:
    """Read a whole file and return its base64 text."""
    return base64.b64encode(path.read_bytes()).decode("ascii")


def to_data_uri(path: Path) -> str:
    """Encode a file as a ``data:<mime>;base64,<payload>`` URI.

    Args:
        path: File to embed.

    Returns:
        Data URI string.
    """
    return f"data:{mime_type_for(path)};base64,{read_base64(path)}"
