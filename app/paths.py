"""Path validation utilities for keeping note access inside the journal."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from app.errors import McpError
from app.mcp_constants import ALLOWED_MARKDOWN_EXTENSIONS


def validate_note_path(journal_root: Path, raw_path: str) -> str:
    """Validate a caller-supplied note path and return its journal-relative id."""
    if not isinstance(raw_path, str):
        raise McpError(
            "INVALID_TYPE",
            "Path must be a string.",
            {"path": str(raw_path), "type": type(raw_path).__name__},
        )

    normalized = raw_path.replace("\\", "/")
    candidate = PurePosixPath(normalized)

    if candidate.is_absolute():
        raise McpError(
            "ABSOLUTE_PATH",
            "Absolute paths are not allowed.",
            {"path": raw_path},
        )

    if ".." in candidate.parts:
        raise McpError(
            "PATH_TRAVERSAL",
            "Path traversal is not allowed.",
            {"path": raw_path},
        )

    if candidate.suffix.lower() not in ALLOWED_MARKDOWN_EXTENSIONS:
        raise McpError(
            "NOT_MARKDOWN",
            "Only markdown notes can hold tasks.",
            {"path": raw_path},
        )

    if _contains_symlink(journal_root, candidate):
        raise McpError(
            "PATH_SYMLINK",
            "Symlinked paths are not allowed.",
            {"path": raw_path},
        )

    return candidate.as_posix()


def _contains_symlink(journal_root: Path, relative_path: PurePosixPath) -> bool:
    current = journal_root
    for segment in relative_path.parts:
        current = current / segment
        if current.is_symlink():
            return True
    return False
