from __future__ import annotations

import threading
from datetime import date

from app.mcp_utils import split_note_lines
from app.note_store import NoteDocument, splice_lines


class FakeNoteStore:
    """In-memory note store that counts reads and can simulate failures."""

    def __init__(self, notes: dict[str, str] | None = None) -> None:
        self.texts: dict[str, str] = {}
        self.mtimes: dict[str, float] = {}
        self.versions: dict[str, int] = {}
        self.reads: list[str] = []
        self.list_calls = 0
        self.unreadable: set[str] = set()
        self.unwritable: set[str] = set()
        self.read_gate: threading.Event | None = None
        self.read_started = threading.Event()
        self._tick = 0.0
        for note, text in (notes or {}).items():
            self.put(note, text)

    def put(self, note: str, text: str) -> None:
        """Create or change a note the way an external editor would."""
        self._tick += 1.0
        self.texts[note] = text
        self.mtimes[note] = self._tick

    def remove(self, note: str) -> None:
        self.texts.pop(note, None)
        self.mtimes.pop(note, None)

    def list_notes(self) -> list[str]:
        self.list_calls += 1
        return sorted(self.texts)

    def modified_time(self, note: str) -> float:
        if note not in self.mtimes:
            raise FileNotFoundError(note)
        return self.mtimes[note]

    def document_version(self, note: str) -> int:
        return self.versions.get(note, 0)

    def read_document(self, note: str) -> NoteDocument:
        self.read_started.set()
        if self.read_gate is not None:
            self.read_gate.wait(timeout=5)
        self.reads.append(note)
        if note in self.unreadable:
            raise PermissionError(f"cannot read {note}")
        if note not in self.texts:
            raise FileNotFoundError(note)
        return NoteDocument(text=self.texts[note], version=self.document_version(note))

    def apply_edits(self, note: str, edits) -> NoteDocument:
        if note in self.unwritable:
            raise PermissionError(f"cannot write {note}")
        updated = splice_lines(split_note_lines(self.texts[note]), edits)
        text = "\n".join(updated) + "\n"
        self.texts[note] = text
        self.versions[note] = self.versions.get(note, 0) + 1
        return NoteDocument(text=text, version=self.versions[note])


class FakeNoteCreator:
    def __init__(self, store: FakeNoteStore, note: str = "today.md") -> None:
        self.store = store
        self.note = note
        self.fail = False

    def note_for(self, day: date) -> str:
        return self.note

    def ensure_note(self, day: date) -> str:
        if self.fail:
            raise PermissionError("journal is read-only")
        if self.note not in self.store.texts:
            self.store.put(self.note, f"# Notes for {day.isoformat()}\n\n")
        return self.note


class ManualClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def write_note(root, relative: str, content: str):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
