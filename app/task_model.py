"""Task marker grammar: parsing, formatting and state transitions.

A marker looks like ``-=TODO 2 3 240101=- write report``: a state keyword,
priority, difficulty and a YYMMDD date between the ``-=`` and ``=-``
delimiters, followed by the free-form description.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, MutableMapping

from app.task_dates import format_task_date


class MarkerState(str, Enum):
    TODO = "TODO"
    COMPLETE = "COMPLETE"
    ROLLED = "ROLLED"


MARKER_PATTERN = re.compile(
    r"-=(?P<state>TODO|COMPLETE|ROLLED) "
    r"(?P<priority>\d+) (?P<difficulty>\d+) (?P<date>\d{6})"
    r"=-(?P<rest>.*)$"
)

DEFAULT_PRIORITY = 1
DEFAULT_DIFFICULTY = 1
MAX_REMEMBERED_COMPLETIONS = 1000


@dataclass(frozen=True)
class Task:
    """One marker occurrence, valid only against the exact line it came from."""

    text: str
    priority: int
    difficulty: int
    due_date: str
    status: MarkerState
    note: str
    line: int
    raw: str

    @property
    def is_open(self) -> bool:
        return self.status is MarkerState.TODO

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "priority": self.priority,
            "difficulty": self.difficulty,
            "dueDate": self.due_date,
            "status": self.status.value,
            "path": self.note,
            "line": self.line,
        }


def parse_task(line: str, note: str, line_number: int) -> Task | None:
    """Parse one line into a task, or return ``None`` when it has no marker."""
    if not isinstance(line, str):
        return None
    match = MARKER_PATTERN.search(line)
    if match is None:
        return None
    return Task(
        text=match.group("rest").strip(),
        priority=int(match.group("priority")),
        difficulty=int(match.group("difficulty")),
        due_date=match.group("date"),
        status=MarkerState(match.group("state")),
        note=note,
        line=line_number,
        raw=line,
    )


def format_marker(
    state: MarkerState, priority: int, difficulty: int, due_date: str, text: str = ""
) -> str:
    marker = f"-={state.value} {priority} {difficulty} {due_date}=-"
    if text:
        return f"{marker} {text}"
    return marker


def format_task_line(task: Task, state: MarkerState | None = None) -> str:
    """Emit a fresh marker line for ``task``, optionally in another state."""
    return format_marker(
        state or task.status, task.priority, task.difficulty, task.due_date, task.text
    )


def toggle_line(
    line: str,
    today: date,
    completed_from: MutableMapping[str, str] | None = None,
) -> str:
    """Return the toggled form of ``line``.

    TODO becomes COMPLETE stamped with today; COMPLETE goes back to TODO with
    the date it had before completion; ROLLED is terminal and left alone.
    Plain text gains a ``TODO 1 1 <today>`` marker.

    ``completed_from`` maps completed line text to the date it replaced, so a
    COMPLETE line can be restored to its original date rather than today's.
    """
    stamp = format_task_date(today)
    match = MARKER_PATTERN.search(line)
    if match is None:
        if line.strip() == "":
            return format_marker(
                MarkerState.TODO, DEFAULT_PRIORITY, DEFAULT_DIFFICULTY, stamp
            )
        return format_marker(
            MarkerState.TODO, DEFAULT_PRIORITY, DEFAULT_DIFFICULTY, stamp, line
        )

    state = MarkerState(match.group("state"))
    prefix = line[: match.start()]
    priority = match.group("priority")
    difficulty = match.group("difficulty")
    rest = match.group("rest")

    if state is MarkerState.TODO:
        toggled = (
            f"{prefix}-={MarkerState.COMPLETE.value} {priority} {difficulty} {stamp}=-{rest}"
        )
        if completed_from is not None:
            completed_from[toggled] = match.group("date")
        return toggled

    if state is MarkerState.COMPLETE:
        original_date = match.group("date")
        if completed_from is not None:
            original_date = completed_from.pop(line, original_date)
        return (
            f"{prefix}-={MarkerState.TODO.value} {priority} {difficulty} {original_date}=-{rest}"
        )

    return line


class MarkerToggler:
    """Toggles lines while remembering the dates replaced by completion.

    Memory is keyed by note and completed line text, oldest entries are
    dropped beyond ``max_entries``.
    """

    def __init__(self, max_entries: int = MAX_REMEMBERED_COMPLETIONS) -> None:
        self._completed_from: OrderedDict[tuple[str, str], str] = OrderedDict()
        self._max_entries = max_entries

    def toggle(self, line: str, today: date, note: str = "") -> str:
        remembered: dict[str, str] = {}
        original_date = self._completed_from.pop((note, line), None)
        if original_date is not None:
            remembered[line] = original_date
        toggled = toggle_line(line, today, remembered)
        replaced_date = remembered.get(toggled)
        if toggled != line and replaced_date is not None:
            self._completed_from[(note, toggled)] = replaced_date
            while len(self._completed_from) > self._max_entries:
                self._completed_from.popitem(last=False)
        return toggled

    def forget(self) -> None:
        self._completed_from.clear()


def mark_line_rolled(line: str) -> str:
    """Swap the marker's ``-=TODO `` token for ``-=ROLLED `` and nothing else.

    Lines without an open marker are returned unchanged.
    """
    match = MARKER_PATTERN.search(line)
    if match is None or match.group("state") != MarkerState.TODO.value:
        return line
    token = f"-={MarkerState.TODO.value} "
    start = match.start()
    return (
        line[:start]
        + f"-={MarkerState.ROLLED.value} "
        + line[start + len(token) :]
    )
