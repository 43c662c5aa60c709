"""Journal note storage: enumeration, versioned reads and line-level edits."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from datetime import date
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Protocol, Sequence

from app.mcp_utils import _atomic_write, _join_lines, _split_lines, split_note_lines
from app.task_dates import format_note_date, note_relative_path

logger = logging.getLogger(__name__)

NOTE_GLOB = "**/*.md"
NOTE_TEMPLATE = "# Notes for {date}\n\n"

SaveListener = Callable[[str], None]


@dataclass(frozen=True)
class NoteDocument:
    text: str
    version: int

    @property
    def lines(self) -> list[str]:
        return split_note_lines(self.text)


@dataclass(frozen=True)
class LineEdit:
    """Replace the line at ``line`` (or insert before it) with ``new_lines``."""

    line: int
    new_lines: tuple[str, ...]
    replace: bool = True

    @classmethod
    def replace_line(cls, line: int, text: str) -> "LineEdit":
        return cls(line=line, new_lines=(text,), replace=True)

    @classmethod
    def insert(cls, line: int, texts: Sequence[str]) -> "LineEdit":
        return cls(line=line, new_lines=tuple(texts), replace=False)


def splice_lines(lines: Sequence[str], edits: Iterable[LineEdit]) -> list[str]:
    """Apply ``edits`` one after another, in the order given.

    Each edit addresses the document as left by the previous edits; callers
    that compute positions up front must order edits bottom-up.
    """
    rows = _splice_rows([(line, "") for line in lines], edits, "")
    return [text for text, _ in rows]


def _splice_rows(
    rows: Sequence[tuple[str, str]], edits: Iterable[LineEdit], newline: str
) -> list[tuple[str, str]]:
    # rows are (text, terminator); a replaced line keeps its own terminator
    result = list(rows)
    for edit in edits:
        if edit.replace:
            if not 0 <= edit.line < len(result):
                raise IndexError(f"Line {edit.line} is out of range.")
            new_rows = [(text, newline) for text in edit.new_lines]
            if new_rows:
                new_rows[-1] = (new_rows[-1][0], result[edit.line][1])
            result[edit.line : edit.line + 1] = new_rows
        else:
            if not 0 <= edit.line <= len(result):
                raise IndexError(f"Line {edit.line} is out of range.")
            result[edit.line : edit.line] = [(text, newline) for text in edit.new_lines]
    # only the last line may be unterminated
    for index in range(len(result) - 1):
        if not result[index][1]:
            result[index] = (result[index][0], newline)
    return result


def _dominant_newline(endings: Sequence[str]) -> str:
    counts = Counter(ending for ending in endings if ending)
    if not counts:
        return "\n"
    return counts.most_common(1)[0][0]


class NoteStore(Protocol):
    """File collaborators the scan cache and rollover depend on."""

    def list_notes(self) -> list[str]: ...

    def modified_time(self, note: str) -> float: ...

    def document_version(self, note: str) -> int: ...

    def read_document(self, note: str) -> NoteDocument: ...

    def apply_edits(self, note: str, edits: Sequence[LineEdit]) -> NoteDocument: ...


class FileNoteStore:
    """Markdown notes under a journal folder on the local filesystem.

    Note identifiers are journal-relative POSIX paths. The store keeps a
    monotonic version per note, bumped by every write it performs, and tells
    subscribers whenever it saves a note.
    """

    def __init__(self, root: Path, pattern: str = NOTE_GLOB) -> None:
        self._root = Path(root)
        self._pattern = pattern
        self._versions: dict[str, int] = {}
        self._listeners: list[SaveListener] = []
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def set_root(self, root: Path) -> None:
        with self._lock:
            self._root = Path(root)
            self._versions.clear()

    def subscribe(self, listener: SaveListener) -> None:
        self._listeners.append(listener)

    def resolve(self, note: str) -> Path:
        return self._root.joinpath(*PurePosixPath(note).parts)

    def note_id(self, path: Path) -> str:
        return path.relative_to(self._root).as_posix()

    def exists(self, note: str) -> bool:
        return self.resolve(note).is_file()

    def list_notes(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            self.note_id(path)
            for path in self._root.glob(self._pattern)
            if path.is_file()
        )

    def modified_time(self, note: str) -> float:
        return self.resolve(note).stat().st_mtime

    def document_version(self, note: str) -> int:
        with self._lock:
            return self._versions.get(note, 0)

    def read_document(self, note: str) -> NoteDocument:
        version = self.document_version(note)
        text = self._read_text(note)
        return NoteDocument(text=text, version=version)

    def write_document(self, note: str, text: str) -> NoteDocument:
        target = self.resolve(note)
        target.parent.mkdir(parents=True, exist_ok=True)
        _atomic_write(target, text)
        with self._lock:
            version = self._versions.get(note, 0) + 1
            self._versions[note] = version
        logger.debug("Saved %s (version %d)", note, version)
        self._notify_saved(note)
        return NoteDocument(text=text, version=version)

    def apply_edits(self, note: str, edits: Sequence[LineEdit]) -> NoteDocument:
        """Apply line edits to one note and persist it in a single write."""
        current = self._read_text(note)
        lines, endings = _split_lines(current)
        rows = _splice_rows(list(zip(lines, endings)), edits, _dominant_newline(endings))
        return self.write_document(
            note, _join_lines([text for text, _ in rows], [ending for _, ending in rows])
        )

    def _read_text(self, note: str) -> str:
        # newline="" keeps CRLF line endings intact
        with self.resolve(note).open(encoding="utf-8", newline="") as handle:
            return handle.read()

    def _notify_saved(self, note: str) -> None:
        for listener in list(self._listeners):
            listener(note)


class DailyNoteCreator:
    """Guarantees the note for a given day exists and returns its identifier."""

    def __init__(self, store: FileNoteStore) -> None:
        self._store = store

    def note_for(self, day: date) -> str:
        return note_relative_path(day).as_posix()

    def ensure_note(self, day: date) -> str:
        note = self.note_for(day)
        if self._store.exists(note):
            return note
        self._store.write_document(note, NOTE_TEMPLATE.format(date=format_note_date(day)))
        logger.info("Created daily note %s", note)
        return note
