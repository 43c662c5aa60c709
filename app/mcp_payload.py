"""Payload validation helpers for tool endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any

from app.errors import McpError


def _ensure_payload_dict(payload: Any) -> dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise McpError(
            "INVALID_TYPE",
            "Payload must be an object.",
            {"type": type(payload).__name__},
        )
    return payload


def _reject_unknown_fields(payload: dict[str, Any], allowed_fields: set[str]) -> None:
    unknown_fields = sorted(set(payload) - allowed_fields)
    if unknown_fields:
        raise McpError(
            "UNKNOWN_FIELD",
            "Unknown fields are not allowed.",
            {"fields": unknown_fields},
        )


def _require_fields(payload: dict[str, Any], required_fields: list[str]) -> None:
    missing = [name for name in required_fields if name not in payload]
    if missing:
        raise McpError(
            "MISSING_FIELDS",
            f"{' and '.join(required_fields)} {'is' if len(required_fields) == 1 else 'are'} required.",
            {"fields": missing},
        )


def _read_line_number(payload: dict[str, Any]) -> int:
    line = payload["line"]
    # bool is an int subclass
    if not isinstance(line, int) or isinstance(line, bool) or line < 0:
        raise McpError(
            "INVALID_TYPE",
            "line must be a non-negative integer.",
            {"line": str(line)},
        )
    return line


def _read_optional_date(payload: dict[str, Any], key: str = "date") -> date | None:
    raw_value = payload.get(key)
    if raw_value is None:
        return None
    try:
        return date.fromisoformat(str(raw_value))
    except ValueError as exc:
        raise McpError(
            "INVALID_DATE",
            f"{key} must be an ISO date (YYYY-MM-DD).",
            {key: raw_value},
        ) from exc
