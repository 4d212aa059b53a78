from __future__ import annotations

from pathlib import Path

import pytest

from tests.utils import parametrize
from upstage_mcp.errors import (
    DocumentNotFoundError,
    FileTooLargeError,
    FileValidationError,
    NotAFileError,
    UnsupportedFormatError,
)
from upstage_mcp.validators import validate_document_file


def test_validate_missing_file(tmp_path: Path) -> None:
    with pytest.raises(DocumentNotFoundError, match="File not found"):
        validate_document_file(tmp_path / "missing.pdf", "parsing")


def test_validate_rejects_directory(tmp_path: Path) -> None:
    path = tmp_path / "folder.pdf"
    path.mkdir()
    with pytest.raises(NotAFileError):
        validate_document_file(path, "parsing")


def test_validate_unsupported_extension_lists_allowed(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("x", encoding="utf-8")
    with pytest.raises(UnsupportedFormatError) as excinfo:
        validate_document_file(path, "extraction")
    message = str(excinfo.value)
    assert "Unsupported file format: .txt" in message
    assert ".docx" in message


@parametrize(
    ("name", "purpose", "accepted"),
    [
        ("scan.gif", "parsing", True),
        ("scan.gif", "extraction", False),
        ("deck.pptx", "extraction", True),
        ("deck.pptx", "parsing", False),
        ("PHOTO.JPG", "parsing", True),
        ("photo.heic", "extraction", True),
    ],
)
def test_validate_extension_allow_lists(
    tmp_path: Path, name: str, purpose: str, accepted: bool
) -> None:
    path = tmp_path / name
    path.write_bytes(b"data")
    if accepted:
        assert validate_document_file(path, purpose) == path.resolve()  # type: ignore[arg-type]
    else:
        with pytest.raises(UnsupportedFormatError):
            validate_document_file(path, purpose)  # type: ignore[arg-type]


def test_validate_too_large_reports_sizes(tmp_path: Path) -> None:
    path = tmp_path / "big.pdf"
    with path.open("wb") as handle:
        handle.truncate(51 * 1024 * 1024)
    with pytest.raises(FileTooLargeError) as excinfo:
        validate_document_file(path, "parsing")
    assert str(excinfo.value) == (
        "File size (51.00MB) exceeds maximum allowed size (50MB)"
    )
    assert excinfo.value.size == 51 * 1024 * 1024


def test_validate_custom_ceiling(tmp_path: Path) -> None:
    path = tmp_path / "small.png"
    path.write_bytes(b"x" * 11)
    with pytest.raises(FileTooLargeError):
        validate_document_file(path, "parsing", max_size=10)
    assert validate_document_file(path, "parsing", max_size=11) == path.resolve()


def test_validation_errors_are_value_errors(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        validate_document_file(tmp_path / "missing.pdf", "parsing")
    assert issubclass(FileTooLargeError, FileValidationError)
