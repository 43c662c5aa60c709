import copy
import importlib
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from app import paths
from app.errors import McpError
from app.main import create_app
import app.mcp as mcp
from tools.mcp_tools import load_tool_definitions


@dataclass(frozen=True)
class ToolCase:
    name: str
    func: Callable[[dict[str, Any], SimpleNamespace], dict[str, Any]]
    payload: dict[str, Any]


TOOL_CASES = [
    ToolCase("list_open_tasks", mcp.list_open_tasks, {"sort": "date"}),
    ToolCase("refresh_tasks", mcp.refresh_tasks, {}),
    ToolCase("toggle_task", mcp.toggle_task, {"path": "a.md", "line": 0}),
    ToolCase("locate_task", mcp.locate_task, {"path": "a.md", "line": 0}),
    ToolCase("roll_tasks", mcp.roll_tasks, {}),
    ToolCase("ensure_note", mcp.ensure_note, {"date": "2024-01-15"}),
    ToolCase("notify_saved", mcp.notify_saved, {"path": "a.md"}),
    ToolCase("set_journal_folder", mcp.set_journal_folder, {"folder": "Journal"}),
    ToolCase("read_activity_log", mcp.read_activity_log, {"limit": 1}),
]

PATH_CASES = [case for case in TOOL_CASES if "path" in case.payload]


def test_every_defined_tool_has_a_case():
    names = {tool["function"]["name"] for tool in load_tool_definitions()}

    assert names == {case.name for case in TOOL_CASES}


@pytest.mark.parametrize("case", TOOL_CASES, ids=lambda case: case.name)
def test_schema_properties_match_accepted_fields(case):
    tool = next(
        tool for tool in load_tool_definitions() if tool["function"]["name"] == case.name
    )
    properties = tool["function"]["parameters"].get("properties", {})

    assert set(case.payload) <= set(properties)
    for name in tool["function"]["parameters"].get("required", []):
        assert name in case.payload


@pytest.mark.parametrize("case", TOOL_CASES, ids=lambda case: case.name)
def test_unknown_fields_rejected_before_touching_the_journal(
    journal_request, monkeypatch, case
):
    payload = copy.deepcopy(case.payload)
    payload["extra"] = "nope"

    def _fail_get_services(*_args, **_kwargs):
        raise AssertionError("get_services should not be called")

    handler_module = importlib.import_module(case.func.__module__)
    monkeypatch.setattr(handler_module, "get_services", _fail_get_services)

    with pytest.raises(McpError) as excinfo:
        case.func(payload, journal_request)

    assert excinfo.value.error.code == "UNKNOWN_FIELD"


@pytest.mark.parametrize("case", PATH_CASES, ids=lambda case: case.name)
def test_invalid_path_type_rejected_without_filesystem_access(
    journal_request, monkeypatch, case
):
    payload = copy.deepcopy(case.payload)
    payload["path"] = 123

    def _fail_symlink_check(*_args, **_kwargs):
        raise AssertionError("_contains_symlink should not be called")

    monkeypatch.setattr(paths, "_contains_symlink", _fail_symlink_check)

    with pytest.raises(McpError) as excinfo:
        case.func(payload, journal_request)

    assert excinfo.value.error.code == "INVALID_TYPE"


def test_tools_endpoint_returns_tool_definitions(tmp_path, monkeypatch):
    monkeypatch.setenv("CALMDOWN_WORKSPACE_PATH", str(tmp_path))
    monkeypatch.delenv("CALMDOWN_SERVICE_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)

    with TestClient(create_app()) as client:
        response = client.get("/tools")
        routes = {getattr(route, "path", None) for route in client.app.routes}

    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    for tool in payload["data"]["tools"]:
        assert f"/tool:{tool['function']['name']}" in routes
