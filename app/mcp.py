"""Tool handler registration."""

# ruff: noqa: F401

from __future__ import annotations

from fastapi import FastAPI

from app.mcp_constants import ACTIVITY_LOG_FILENAME
from app.mcp_router import mcp_router

# Import modules to register routes with the shared router.
from app import mcp_activity, mcp_tasks, mcp_tools_endpoint

# Re-export endpoints for tests and direct imports.
from app.mcp_activity import read_activity_log
from app.mcp_tasks import (
    ensure_note,
    list_open_tasks,
    locate_task,
    notify_saved,
    refresh_tasks,
    roll_tasks,
    set_journal_folder,
    toggle_task,
)
from app.mcp_tools_endpoint import list_tool_schemas


def register_mcp_handlers(app: FastAPI) -> None:
    """Attach tool routes to the FastAPI application."""
    app.include_router(mcp_router)
