"""Task-related tool endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request

from app.errors import McpError, line_out_of_range, note_io_error, success_response
from app.mcp_activity import _append_activity_log, _build_activity_entry
from app.mcp_constants import TASK_SORT_KEYS
from app.mcp_git import _record_history
from app.mcp_payload import (
    _ensure_payload_dict,
    _read_line_number,
    _read_optional_date,
    _reject_unknown_fields,
    _require_fields,
)
from app.mcp_router import mcp_router
from app.note_store import LineEdit
from app.paths import validate_note_path
from app.services import JournalServices, get_services
from app.task_dates import format_task_date_for_display, relative_due_description
from app.task_model import Task, parse_task
from app.task_rollover import RolloverError

logger = logging.getLogger(__name__)


@mcp_router.post("/tool:list_open_tasks")
def list_open_tasks(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """List open tasks across the journal, optionally filtered and sorted."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"query", "sort"})

    query = payload.get("query")
    if query is not None and not isinstance(query, str):
        raise McpError("INVALID_TYPE", "query must be a string.", {"query": str(query)})
    sort_key = payload.get("sort")
    if sort_key is not None and sort_key not in TASK_SORT_KEYS:
        raise McpError(
            "INVALID_SORT",
            "sort must be one of priority, difficulty or date.",
            {"sort": sort_key, "allowed": sorted(TASK_SORT_KEYS)},
        )

    services = get_services(request)
    tasks = _filter_and_sort(services.cache.get_open_tasks(), query, sort_key)
    today = services.today()
    return success_response(
        {
            "tasks": [_serialize_task(task, today) for task in tasks],
            "count": len(tasks),
        }
    )


@mcp_router.post("/tool:refresh_tasks")
def refresh_tasks(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Rescan the journal now instead of waiting for the cache to go stale."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, set())

    services = get_services(request)
    tasks = services.cache.refresh()
    return success_response(
        {"count": len(tasks), "notes": len(services.cache.entries())}
    )


@mcp_router.post("/tool:toggle_task")
def toggle_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Toggle the task marker on one line of a note."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"path", "line"})
    _require_fields(payload, ["path", "line"])

    services = get_services(request)
    note = validate_note_path(services.journal_root, payload["path"])
    line_number = _read_line_number(payload)
    lines = _read_note_lines(services, note)

    if line_number > len(lines):
        raise line_out_of_range(note, line_number, len(lines))
    appending = line_number == len(lines)
    before = "" if appending else lines[line_number]
    after = services.toggler.toggle(before, services.today(), note)
    edit = (
        LineEdit.insert(line_number, [after])
        if appending
        else LineEdit.replace_line(line_number, after)
    )
    try:
        services.store.apply_edits(note, [edit])
    except OSError as exc:
        raise note_io_error(
            "WRITE_FAILED", "The note could not be saved.", exc, path=note
        ) from exc

    commit_sha = None
    if services.config.git_history:
        commit_sha = _record_history(services.journal_root, [note], "toggle_task", note)
    task = parse_task(after, note, line_number)
    summary = f"toggle task: {task.status.value if task else 'cleared'}"
    _append_activity_log(
        services.journal_root,
        _build_activity_entry("toggle_task", note, summary, commit_sha),
    )
    return success_response(
        {
            "path": note,
            "line": line_number,
            "before": before,
            "after": after,
            "task": _serialize_task(task, services.today()) if task else None,
            "commitSha": commit_sha,
        }
    )


@mcp_router.post("/tool:locate_task")
def locate_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Return the task parsed from one line of a note, if there is one."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"path", "line"})
    _require_fields(payload, ["path", "line"])

    services = get_services(request)
    note = validate_note_path(services.journal_root, payload["path"])
    line_number = _read_line_number(payload)
    lines = _read_note_lines(services, note)
    if line_number >= len(lines):
        raise line_out_of_range(note, line_number, len(lines))
    task = parse_task(lines[line_number], note, line_number)
    return success_response(
        {"task": _serialize_task(task, services.today()) if task else None}
    )


@mcp_router.post("/tool:roll_tasks")
def roll_tasks(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Move unfinished tasks due today or earlier into today's note."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, set())

    services = get_services(request)
    if not services.rollover_lock.acquire(blocking=False):
        raise McpError(
            "ROLLOVER_IN_PROGRESS",
            "Another rollover is already running.",
        )
    try:
        orchestrator = services.rollover()
        try:
            report = orchestrator.run()
        except RolloverError as exc:
            raise McpError(
                "ROLLOVER_FAILED",
                str(exc),
                {"state": exc.state.value, "targetNote": exc.target_note},
            ) from exc
    finally:
        services.rollover_lock.release()

    commit_sha = None
    touched = report.touched_files
    if touched and services.config.git_history:
        commit_sha = _record_history(
            services.journal_root, touched, "roll_tasks", report.target_note or ""
        )
    if touched:
        summary = f"rolled {report.rolled_count} tasks ({report.status})"
        _append_activity_log(
            services.journal_root,
            _build_activity_entry("roll_tasks", report.target_note, summary, commit_sha),
        )
    data = report.to_dict()
    data["commitSha"] = commit_sha
    return success_response(data)


@mcp_router.post("/tool:ensure_note")
def ensure_note(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Create the daily note for a date (default today) if it is missing."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"date"})

    services = get_services(request)
    day = _read_optional_date(payload) or services.today()
    existed = services.store.exists(services.note_creator.note_for(day))
    try:
        note = services.note_creator.ensure_note(day)
    except OSError as exc:
        raise note_io_error(
            "WRITE_FAILED", "The note could not be created.", exc, date=day.isoformat()
        ) from exc
    return success_response({"path": note, "created": not existed})


@mcp_router.post("/tool:notify_saved")
def notify_saved(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Tell the task cache a note was changed outside the service."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"path"})
    _require_fields(payload, ["path"])

    services = get_services(request)
    note = validate_note_path(services.journal_root, payload["path"])
    services.cache.invalidate_file(note)
    return success_response({"path": note, "invalidated": True})


@mcp_router.post("/tool:set_journal_folder")
def set_journal_folder(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Point the service at another journal folder inside the workspace."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"folder"})
    _require_fields(payload, ["folder"])

    folder = payload["folder"]
    if not isinstance(folder, str):
        raise McpError("INVALID_TYPE", "folder must be a string.", {"folder": str(folder)})
    normalized = folder.replace("\\", "/").strip("/")
    if not normalized or folder.startswith("/") or ".." in normalized.split("/"):
        raise McpError(
            "INVALID_PATH",
            "folder must be a relative path inside the workspace.",
            {"folder": folder},
        )

    services = get_services(request)
    root = services.set_journal_folder(normalized)
    logger.info("Journal folder set to %s", root)
    return success_response({"folder": normalized})


def _read_note_lines(services: JournalServices, note: str) -> list[str]:
    if not services.store.exists(note):
        raise McpError("FILE_NOT_FOUND", "Note does not exist.", {"path": note})
    try:
        return services.store.read_document(note).lines
    except (OSError, UnicodeDecodeError) as exc:
        raise note_io_error(
            "READ_FAILED", "The note could not be read.", exc, path=note
        ) from exc


def _filter_and_sort(
    tasks: list[Task], query: str | None, sort_key: str | None
) -> list[Task]:
    if query:
        needle = query.lower()
        tasks = [task for task in tasks if needle in task.text.lower()]
    if sort_key == "priority":
        return sorted(tasks, key=lambda task: task.priority, reverse=True)
    if sort_key == "difficulty":
        return sorted(tasks, key=lambda task: task.difficulty, reverse=True)
    if sort_key == "date":
        return sorted(tasks, key=lambda task: task.due_date)
    return list(tasks)


def _serialize_task(task: Task, today) -> dict[str, Any]:
    data = task.to_dict()
    data["dueDisplay"] = format_task_date_for_display(task.due_date)
    data["dueDescription"] = relative_due_description(task.due_date, today)
    return data
