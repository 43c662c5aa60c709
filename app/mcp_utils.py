"""Shared filesystem and line helpers for note endpoints."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path


def _atomic_write(target_path: Path, content: str) -> None:
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=target_path.parent, delete=False, newline=""
        ) as temp_file:
            temp_path = Path(temp_file.name)
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, target_path)
    finally:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass


LINE_BREAK_PATTERN = re.compile(r"\r\n|\r|\n")


def _split_lines(content: str) -> tuple[list[str], list[str]]:
    """Split note text into lines and the terminator that ended each one.

    Only CRLF, CR and LF end a line; form feeds and Unicode separators stay
    inside the line, as an editor shows them. An unterminated last line has
    an empty terminator.
    """
    lines: list[str] = []
    endings: list[str] = []
    start = 0
    for match in LINE_BREAK_PATTERN.finditer(content):
        lines.append(content[start : match.start()])
        endings.append(match.group())
        start = match.end()
    if start < len(content):
        lines.append(content[start:])
        endings.append("")
    return lines, endings


def split_note_lines(content: str) -> list[str]:
    return _split_lines(content)[0]


def _join_lines(lines: list[str], endings: list[str]) -> str:
    return "".join(line + ending for line, ending in zip(lines, endings))
