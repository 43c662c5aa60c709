"""Shared constants for tool endpoints."""

from __future__ import annotations

ALLOWED_MARKDOWN_EXTENSIONS = {".md"}
ACTIVITY_LOG_FILENAME = "activity.log"
SERVICE_TOKEN_HEADER = "X-Calmdown-Service-Token"
AUTH_EXEMPT_PATHS = {"/health"}
TASK_SORT_KEYS = {"priority", "difficulty", "date"}
