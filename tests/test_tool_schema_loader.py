import pytest

from app.mcp_tools_endpoint import list_tool_schemas
from tools.mcp_tools import ToolSchemaError, load_tool_definitions, tool_names


def test_load_tool_definitions_rejects_missing_file(tmp_path):
    missing = tmp_path / "missing.json"
    with pytest.raises(ToolSchemaError):
        load_tool_definitions(missing)


def test_load_tool_definitions_rejects_invalid_json(tmp_path):
    path = tmp_path / "tools.json"
    path.write_text("{not valid json", encoding="utf-8")
    with pytest.raises(ToolSchemaError):
        load_tool_definitions(path)


def test_load_tool_definitions_rejects_non_list(tmp_path):
    path = tmp_path / "tools.json"
    path.write_text("{\"type\":\"function\"}", encoding="utf-8")
    with pytest.raises(ToolSchemaError):
        load_tool_definitions(path)


def test_load_tool_definitions_rejects_duplicate_names(tmp_path):
    path = tmp_path / "tools.json"
    tool = '{"type":"function","function":{"name":"ping","parameters":{}}}'
    path.write_text(f"[{tool},{tool}]", encoding="utf-8")
    with pytest.raises(ToolSchemaError) as excinfo:
        load_tool_definitions(path)
    assert "ping" in str(excinfo.value)


def test_bundled_definitions_cover_every_tool_route():
    tools = load_tool_definitions()

    assert sorted(tool_names(tools)) == [
        "ensure_note",
        "list_open_tasks",
        "locate_task",
        "notify_saved",
        "read_activity_log",
        "refresh_tasks",
        "roll_tasks",
        "set_journal_folder",
        "toggle_task",
    ]
    response = list_tool_schemas()
    assert response["data"]["count"] == len(tools)
    assert response["data"]["names"] == tool_names(tools)
