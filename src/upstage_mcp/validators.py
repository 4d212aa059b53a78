from __future__ import annotations

from pathlib import Path

from .config import ALLOWED_EXTENSIONS, MAX_FILE_SIZE, FilePurpose
from .errors import (
    DocumentNotFoundError,
    FileTooLargeError,
    NotAFileError,
    UnsupportedFormatError,
)


def validate_document_file(
    path: Path | str,
    purpose: FilePurpose,
    *,
    max_size: int = MAX_FILE_SIZE,
) -> Path:
    """Validate an input document before any network call.

    Args:
        path: Candidate document path.
        purpose: Which allow-list applies ("parsing" or "extraction").
        max_size: Size ceiling in bytes.

    Returns:
        Resolved path of the validated file.

    Raises:
        DocumentNotFoundError: If the path does not exist.
        NotAFileError: If the path is not a regular file.
        UnsupportedFormatError: If the extension is not allowed for the purpose.
        FileTooLargeError: If the file exceeds ``max_size``.
    """
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise DocumentNotFoundError(resolved)
    if not resolved.is_file():
        raise NotAFileError(resolved)

    allowed = ALLOWED_EXTENSIONS[purpose]
    extension = resolved.suffix.lower()
    if extension not in allowed:
        raise UnsupportedFormatError(extension, allowed)

    size = resolved.stat().st_size
    if size > max_size:
        raise FileTooLargeError(size, max_size)
    return resolved
