"""Roll unfinished past tasks into today's note.

One invocation walks ``INIT -> DISCOVER -> CREATE_TARGET -> INSERT ->
MARK_SOURCES -> COMMIT``; any fatal problem before source files are touched
ends in ``FAILED``. Once today's note has been written there is no rollback:
source files that cannot be rewritten are reported, not retried.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Protocol, Sequence

from app.note_store import LineEdit, NoteStore
from app.task_dates import TaskDateError, parse_task_date
from app.task_model import MarkerState, Task, format_task_line, mark_line_rolled
from app.task_scanner import TaskScanCache

logger = logging.getLogger(__name__)

ROLLED_SECTION_HEADING = "## Rolled Over Tasks"
ROLLED_SECTION_HEADINGS = (ROLLED_SECTION_HEADING, "## Rollovered Tasks")


class RolloverState(str, Enum):
    INIT = "init"
    DISCOVER = "discover"
    CREATE_TARGET = "create_target"
    INSERT = "insert"
    MARK_SOURCES = "mark_sources"
    COMMIT = "commit"
    FAILED = "failed"


class RolloverError(RuntimeError):
    """Raised when a rollover fails before any source note was rewritten."""

    def __init__(self, message: str, state: RolloverState, target_note: str | None = None) -> None:
        super().__init__(message)
        self.state = state
        self.target_note = target_note


class NoteCreator(Protocol):
    def note_for(self, day: date) -> str: ...

    def ensure_note(self, day: date) -> str: ...


class ProgressNotifier(Protocol):
    def progress(self, percent: int, message: str) -> None: ...


class LoggingNotifier:
    def progress(self, percent: int, message: str) -> None:
        logger.info("Rollover %d%%: %s", percent, message)


@dataclass
class RolloverBatch:
    target_note: str
    target_date: date
    tasks: list[Task]
    tasks_by_source: "OrderedDict[str, list[Task]]"


@dataclass
class RolloverReport:
    status: str
    target_note: str | None = None
    rolled_count: int = 0
    skipped_count: int = 0
    already_in_target: int = 0
    stale_tasks: list[dict[str, Any]] = field(default_factory=list)
    updated_files: list[str] = field(default_factory=list)
    failed_files: dict[str, str] = field(default_factory=dict)
    cancelled_files: list[str] = field(default_factory=list)
    unmarked_tasks: list[dict[str, Any]] = field(default_factory=list)

    @property
    def touched_files(self) -> list[str]:
        touched = [self.target_note] if self.target_note and self.rolled_count else []
        return touched + [path for path in self.updated_files if path not in touched]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "targetNote": self.target_note,
            "rolledCount": self.rolled_count,
            "skippedCount": self.skipped_count,
            "alreadyInTarget": self.already_in_target,
            "staleTasks": list(self.stale_tasks),
            "updatedFiles": list(self.updated_files),
            "failedFiles": dict(self.failed_files),
            "cancelledFiles": list(self.cancelled_files),
            "unmarkedTasks": list(self.unmarked_tasks),
        }


def is_due(task: Task, today: date) -> bool:
    """True when the task's own due date is today or earlier.

    Raises ``TaskDateError`` for dates that cannot be decoded.
    """
    return parse_task_date(task.due_date) <= today


def group_by_source(tasks: Sequence[Task]) -> "OrderedDict[str, list[Task]]":
    """Group tasks by note, each group ordered bottom-up by line number."""
    grouped: OrderedDict[str, list[Task]] = OrderedDict()
    for task in tasks:
        grouped.setdefault(task.note, []).append(task)
    for note_tasks in grouped.values():
        note_tasks.sort(key=lambda task: task.line, reverse=True)
    return grouped


def _heading_level(line: str) -> int | None:
    stripped = line.lstrip()
    if not stripped.startswith("#"):
        return None
    level = len(stripped) - len(stripped.lstrip("#"))
    if len(stripped) > level and stripped[level] != " ":
        return None
    return level


def _is_rolled_section(line: str) -> bool:
    return line.startswith(ROLLED_SECTION_HEADINGS)


def find_insert_position(lines: Sequence[str]) -> tuple[int, bool]:
    """Locate where rolled tasks go in a note.

    Returns the line index to insert before and whether a rolled-over
    section already exists.
    """
    for index, line in enumerate(lines):
        if not _is_rolled_section(line):
            continue
        for next_index in range(index + 1, len(lines)):
            level = _heading_level(lines[next_index])
            if level is not None and level <= 2:
                return next_index, True
        return len(lines), True

    for index, line in enumerate(lines):
        if _heading_level(line) != 1:
            continue
        for next_index in range(index + 1, len(lines)):
            if lines[next_index].strip() == "":
                return next_index + 1, False
        return index + 1, False

    return len(lines), False


def build_insertion(lines: Sequence[str], tasks: Sequence[Task]) -> LineEdit:
    """Build the single ordered insertion of rolled tasks into a note."""
    position, section_exists = find_insert_position(lines)
    new_lines: list[str] = []
    if not section_exists:
        new_lines.extend([ROLLED_SECTION_HEADING, ""])
    new_lines.extend(format_task_line(task, MarkerState.TODO) for task in tasks)
    return LineEdit.insert(position, new_lines)


def build_source_edits(
    lines: Sequence[str], tasks: Sequence[Task]
) -> tuple[list[LineEdit], list[Task]]:
    """Rewrite each task's line to the rolled marker, bottom-up.

    Tasks whose line no longer holds the text they were parsed from are
    returned as stale instead of being edited.
    """
    edits: list[LineEdit] = []
    stale: list[Task] = []
    for task in sorted(tasks, key=lambda item: item.line, reverse=True):
        if not 0 <= task.line < len(lines) or lines[task.line] != task.raw:
            stale.append(task)
            continue
        edits.append(LineEdit.replace_line(task.line, mark_line_rolled(task.raw)))
    return edits, stale


def _stale_entry(task: Task) -> dict[str, Any]:
    return {"path": task.note, "line": task.line, "text": task.text}


class RolloverOrchestrator:
    def __init__(
        self,
        cache: TaskScanCache,
        store: NoteStore,
        note_creator: NoteCreator,
        *,
        today: Callable[[], date] = date.today,
        notifier: ProgressNotifier | None = None,
    ) -> None:
        self._cache = cache
        self._store = store
        self._note_creator = note_creator
        self._today = today
        self._notifier = notifier or LoggingNotifier()
        self.state = RolloverState.INIT

    def run(self, cancel_event: threading.Event | None = None) -> RolloverReport:
        self.state = RolloverState.INIT
        try:
            return self._run(cancel_event)
        except RolloverError:
            self.state = RolloverState.FAILED
            raise

    def _run(self, cancel_event: threading.Event | None) -> RolloverReport:
        today = self._today()
        report = RolloverReport(status="nothing_to_roll")

        self.state = RolloverState.DISCOVER
        self._progress(10, "Finding uncompleted tasks...")
        due_tasks = self._discover(today, report)
        target_note = self._note_creator.note_for(today)
        candidates = [task for task in due_tasks if task.note != target_note]
        report.already_in_target = len(due_tasks) - len(candidates)
        candidates = self._verify_sources(candidates, report)
        if not candidates:
            logger.info("No past uncompleted tasks to roll over")
            return report

        self.state = RolloverState.CREATE_TARGET
        self._progress(30, f"Found {len(candidates)} tasks to roll over")
        try:
            target_note = self._note_creator.ensure_note(today)
        except OSError as exc:
            raise RolloverError(
                f"Today's note could not be created: {exc}", self.state, target_note
            ) from exc
        report.target_note = target_note
        batch = RolloverBatch(
            target_note=target_note,
            target_date=today,
            tasks=candidates,
            tasks_by_source=group_by_source(candidates),
        )

        self.state = RolloverState.INSERT
        self._progress(50, "Moving tasks to today's note...")
        self._insert(batch)
        report.rolled_count = len(batch.tasks)

        self.state = RolloverState.MARK_SOURCES
        self._progress(70, "Marking original tasks as moved...")
        stale_before_marking = len(report.stale_tasks)
        pending = self._mark_sources(batch, report)
        # already copied into today's note, still open at the source
        report.unmarked_tasks = report.stale_tasks[stale_before_marking:]

        self.state = RolloverState.COMMIT
        self._commit(pending, report, cancel_event)

        report.status = (
            "complete"
            if not (report.failed_files or report.cancelled_files or report.unmarked_tasks)
            else "partial"
        )
        self._progress(100, "Done!")
        logger.info(
            "Rolled %d tasks into %s (%d files updated, %d failed)",
            report.rolled_count,
            target_note,
            len(report.updated_files),
            len(report.failed_files),
        )
        return report

    def _discover(self, today: date, report: RolloverReport) -> list[Task]:
        open_tasks = self._cache.get_open_tasks()
        due: list[Task] = []
        for task in open_tasks:
            try:
                if is_due(task, today):
                    due.append(task)
            except TaskDateError:
                report.skipped_count += 1
                logger.debug("Skipping %s:%d with bad date %r", task.note, task.line, task.due_date)
        logger.info("Open tasks: %d, due for rollover: %d", len(open_tasks), len(due))
        return due

    def _verify_sources(self, tasks: list[Task], report: RolloverReport) -> list[Task]:
        """Drop tasks whose source line changed since the cache parsed it."""
        verified: list[Task] = []
        stale_ids: set[tuple[str, int]] = set()
        for note, note_tasks in group_by_source(tasks).items():
            try:
                lines = self._store.read_document(note).lines
            except (OSError, UnicodeDecodeError) as exc:
                report.failed_files[note] = str(exc)
                stale_ids.update((task.note, task.line) for task in note_tasks)
                continue
            _, stale = build_source_edits(lines, note_tasks)
            for task in stale:
                report.stale_tasks.append(_stale_entry(task))
                stale_ids.add((task.note, task.line))
            if stale:
                self._cache.invalidate_file(note)
        for task in tasks:
            if (task.note, task.line) not in stale_ids:
                verified.append(task)
        return verified

    def _insert(self, batch: RolloverBatch) -> None:
        try:
            lines = self._store.read_document(batch.target_note).lines
            edit = build_insertion(lines, batch.tasks)
            self._store.apply_edits(batch.target_note, [edit])
        except (OSError, UnicodeDecodeError, IndexError) as exc:
            raise RolloverError(
                f"Tasks could not be added to {batch.target_note}: {exc}",
                self.state,
                batch.target_note,
            ) from exc
        self._cache.invalidate_file(batch.target_note)

    def _mark_sources(
        self, batch: RolloverBatch, report: RolloverReport
    ) -> "OrderedDict[str, list[LineEdit]]":
        pending: OrderedDict[str, list[LineEdit]] = OrderedDict()
        for note, note_tasks in batch.tasks_by_source.items():
            try:
                lines = self._store.read_document(note).lines
            except (OSError, UnicodeDecodeError) as exc:
                report.failed_files[note] = str(exc)
                continue
            edits, stale = build_source_edits(lines, note_tasks)
            report.stale_tasks.extend(_stale_entry(task) for task in stale)
            if edits:
                pending[note] = edits
        return pending

    def _commit(
        self,
        pending: "OrderedDict[str, list[LineEdit]]",
        report: RolloverReport,
        cancel_event: threading.Event | None,
    ) -> None:
        notes = list(pending)
        for index, note in enumerate(notes):
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled_files.extend(notes[index:])
                logger.warning("Rollover cancelled; %d source notes left unmarked", len(notes) - index)
                return
            try:
                self._store.apply_edits(note, pending[note])
            except (OSError, UnicodeDecodeError, IndexError) as exc:
                logger.warning("Failed to mark tasks as moved in %s: %s", note, exc)
                report.failed_files[note] = str(exc)
                continue
            finally:
                self._cache.invalidate_file(note)
            report.updated_files.append(note)

    def _progress(self, percent: int, message: str) -> None:
        try:
            self._notifier.progress(percent, message)
        except Exception:
            logger.debug("Progress notifier failed", exc_info=True)
