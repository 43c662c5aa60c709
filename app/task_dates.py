"""Date helpers for task markers and journal note paths."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

TASK_DATE_FORMAT = "%y%m%d"
NOTE_DATE_FORMAT = "%Y-%m-%d"

# English names regardless of process locale; note paths must be stable.
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class TaskDateError(ValueError):
    """Raised when a marker date is not a valid YYMMDD value."""


def format_task_date(day: date) -> str:
    """Encode a date as the six-digit YYMMDD marker field."""
    return day.strftime(TASK_DATE_FORMAT)


def parse_task_date(raw_date: str) -> date:
    """Decode a YYMMDD marker field.

    Two-digit years pivot the way ``strptime`` does: 69-99 map to the 1900s,
    00-68 to the 2000s.
    """
    if not isinstance(raw_date, str) or len(raw_date) != 6 or not raw_date.isdigit():
        raise TaskDateError(f"Invalid task date: {raw_date!r}")
    try:
        return datetime.strptime(raw_date, TASK_DATE_FORMAT).date()
    except ValueError as exc:
        raise TaskDateError(f"Invalid task date: {raw_date!r}") from exc


def format_note_date(day: date) -> str:
    return day.strftime(NOTE_DATE_FORMAT)


def iso_week(day: date) -> int:
    return day.isocalendar()[1]


def note_relative_path(day: date) -> Path:
    """Return the journal-relative path of the note for ``day``."""
    month_folder = f"{day.month:02d}-{MONTH_NAMES[day.month - 1]}"
    week_folder = f"Week-{iso_week(day):02d}"
    return Path(str(day.year), month_folder, week_folder, f"{format_note_date(day)}.md")


def format_task_date_for_display(raw_date: str) -> str:
    """Render YYMMDD as MM-DD-YY, or return the input unchanged if malformed."""
    if not isinstance(raw_date, str) or len(raw_date) != 6:
        return raw_date
    return f"{raw_date[2:4]}-{raw_date[4:6]}-{raw_date[0:2]}"


def format_long_date(day: date) -> str:
    return f"{MONTH_NAMES[day.month - 1]} {day.day}, {day.year}"


def relative_due_description(raw_date: str, today: date) -> str:
    """Describe a due date relative to ``today`` (e.g. "Due Tomorrow")."""
    try:
        due = parse_task_date(raw_date)
    except TaskDateError:
        return format_task_date_for_display(raw_date)

    diff_days = (due - today).days
    if diff_days < 0:
        if diff_days == -1:
            return "Due Yesterday"
        return f"{abs(diff_days)} days overdue"
    if diff_days == 0:
        return "Due Today"
    if diff_days == 1:
        return "Due Tomorrow"
    if diff_days < 7:
        return f"Due in {diff_days} days"
    if diff_days < 30:
        weeks = diff_days // 7
        return f"Due in {weeks} week{'s' if weeks > 1 else ''}"
    return f"Due on {format_long_date(due)}"
