"""Incrementally maintained cache of tasks parsed from journal notes."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from app.mcp_utils import split_note_lines
from app.note_store import NoteStore
from app.task_model import Task, parse_task

logger = logging.getLogger(__name__)

DEFAULT_STALENESS_SECONDS = 30.0
DEFAULT_WAIT_TIMEOUT_SECONDS = 5.0
DEFAULT_BATCH_SIZE = 20
DEFAULT_BATCH_PAUSE_SECONDS = 0.01


@dataclass(frozen=True)
class ScanCacheEntry:
    """Parsed tasks of one note plus the stamps they were parsed against."""

    tasks: tuple[Task, ...]
    content_version: int
    last_known_modified_time: float

    def matches(self, content_version: int, modified_time: float) -> bool:
        return (
            self.content_version == content_version
            and self.last_known_modified_time == modified_time
        )


def parse_note_tasks(note: str, text: str) -> tuple[Task, ...]:
    tasks = []
    for line_number, line in enumerate(split_note_lines(text)):
        task = parse_task(line, note, line_number)
        if task is not None:
            tasks.append(task)
    return tuple(tasks)


class TaskScanCache:
    """Answers "which tasks are open?" without re-parsing unchanged notes.

    At most one reconciliation pass runs at a time. Callers arriving while a
    pass is running wait on a condition (bounded by ``wait_timeout_seconds``)
    and are then served whatever the cache holds.
    """

    def __init__(
        self,
        store: NoteStore,
        *,
        staleness_seconds: float = DEFAULT_STALENESS_SECONDS,
        wait_timeout_seconds: float = DEFAULT_WAIT_TIMEOUT_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause_seconds: float = DEFAULT_BATCH_PAUSE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive.")
        self._store = store
        self._staleness = staleness_seconds
        self._wait_timeout = wait_timeout_seconds
        self._batch_size = batch_size
        self._batch_pause = batch_pause_seconds
        self._clock = clock
        self._sleep = sleep

        self._condition = threading.Condition()
        self._entries: dict[str, ScanCacheEntry] = {}
        self._last_scan_time: float | None = None
        self._scan_in_progress = False
        self._generation = 0
        self._invalidated_during_scan: set[str] = set()

    @property
    def store(self) -> NoteStore:
        return self._store

    @property
    def scan_in_progress(self) -> bool:
        with self._condition:
            return self._scan_in_progress

    @property
    def last_scan_time(self) -> float | None:
        with self._condition:
            return self._last_scan_time

    def entry(self, note: str) -> ScanCacheEntry | None:
        with self._condition:
            return self._entries.get(note)

    def entries(self) -> dict[str, ScanCacheEntry]:
        with self._condition:
            return dict(self._entries)

    def all_tasks(self) -> list[Task]:
        with self._condition:
            return [task for entry in self._entries.values() for task in entry.tasks]

    def get_open_tasks(self) -> list[Task]:
        """Return open tasks, reconciling with the note tree when stale."""
        return self._serve(force=False)

    def refresh(self) -> list[Task]:
        """Run a reconciliation pass now, unless one is already running."""
        return self._serve(force=True)

    def invalidate_file(self, note: str) -> None:
        """Drop one note's entry so the next request re-parses it."""
        with self._condition:
            removed = self._entries.pop(note, None)
            if self._scan_in_progress:
                self._invalidated_during_scan.add(note)
            self._last_scan_time = None
        if removed is not None:
            logger.debug("Invalidated cached tasks for %s", note)

    def invalidate_all(self) -> None:
        with self._condition:
            self._reset_locked()
        logger.info("Task cache cleared")

    def set_root(self, root: Path) -> None:
        """Point the store at a new journal root; every entry is discarded."""
        with self._condition:
            set_store_root = getattr(self._store, "set_root", None)
            if set_store_root is not None:
                set_store_root(root)
            self._reset_locked()
        logger.info("Journal root changed to %s; task cache cleared", root)

    def _reset_locked(self) -> None:
        self._entries = {}
        self._last_scan_time = None
        self._generation += 1
        self._invalidated_during_scan.clear()

    def _is_fresh_locked(self) -> bool:
        if self._last_scan_time is None:
            return False
        return self._clock() - self._last_scan_time < self._staleness

    def _open_tasks_locked(self) -> list[Task]:
        return [
            task
            for entry in self._entries.values()
            for task in entry.tasks
            if task.is_open
        ]

    def _serve(self, *, force: bool) -> list[Task]:
        with self._condition:
            if self._scan_in_progress:
                finished = self._condition.wait_for(
                    lambda: not self._scan_in_progress, timeout=self._wait_timeout
                )
                if not finished:
                    logger.warning(
                        "Task scan still running after %.1fs; serving cached tasks",
                        self._wait_timeout,
                    )
                return self._open_tasks_locked()
            if not force and self._is_fresh_locked():
                return self._open_tasks_locked()
            self._scan_in_progress = True
            self._invalidated_during_scan.clear()
            generation = self._generation
            previous = dict(self._entries)

        entries: dict[str, ScanCacheEntry] | None = None
        try:
            entries = self._reconcile(previous)
        except Exception:
            logger.exception("Task scan failed; keeping previous cache")
        finally:
            with self._condition:
                if entries is not None and generation == self._generation:
                    for note in self._invalidated_during_scan:
                        entries.pop(note, None)
                    self._entries = entries
                    self._last_scan_time = (
                        None if self._invalidated_during_scan else self._clock()
                    )
                self._invalidated_during_scan.clear()
                self._scan_in_progress = False
                self._condition.notify_all()

        with self._condition:
            return self._open_tasks_locked()

    def _reconcile(
        self, previous: dict[str, ScanCacheEntry]
    ) -> dict[str, ScanCacheEntry]:
        notes = self._store.list_notes()
        entries: dict[str, ScanCacheEntry] = {}
        reparsed = 0
        for start in range(0, len(notes), self._batch_size):
            for note in notes[start : start + self._batch_size]:
                cached = previous.get(note)
                entry = self._scan_note(note, cached)
                if entry is None:
                    continue
                if entry is not cached:
                    reparsed += 1
                entries[note] = entry
            if start + self._batch_size < len(notes):
                self._sleep(self._batch_pause)

        dropped = previous.keys() - entries.keys()
        logger.debug(
            "Task scan: %d notes, %d re-parsed, %d dropped",
            len(notes),
            reparsed,
            len(dropped),
        )
        return entries

    def _scan_note(
        self, note: str, cached: ScanCacheEntry | None
    ) -> ScanCacheEntry | None:
        try:
            modified_time = self._store.modified_time(note)
            version = self._store.document_version(note)
            if cached is not None and cached.matches(version, modified_time):
                return cached
            document = self._store.read_document(note)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not scan %s for tasks: %s", note, exc)
            return None
        return ScanCacheEntry(
            tasks=parse_note_tasks(note, document.text),
            content_version=document.version,
            last_known_modified_time=modified_time,
        )
