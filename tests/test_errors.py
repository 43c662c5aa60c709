from app.errors import (
    ErrorResponse,
    McpError,
    error_response,
    line_out_of_range,
    note_io_error,
    success_response,
)


def test_error_response_serializes_details():
    error = ErrorResponse(code="PATH_TRAVERSAL", message="Nope", details={"path": ".."})

    assert error.to_dict() == {
        "code": "PATH_TRAVERSAL",
        "message": "Nope",
        "details": {"path": ".."},
    }


def test_mcp_error_defaults_details():
    exc = McpError("INVALID_TYPE", "Bad path")

    assert exc.error.to_dict() == {
        "code": "INVALID_TYPE",
        "message": "Bad path",
        "details": {},
    }


def test_envelopes_wrap_payloads():
    error = McpError("LINE_OUT_OF_RANGE", "Too far", {"line": 9}).error

    assert success_response({"count": 0}) == {"ok": True, "data": {"count": 0}}
    assert error_response(error) == {
        "ok": False,
        "error": {"code": "LINE_OUT_OF_RANGE", "message": "Too far", "details": {"line": 9}},
    }


def test_note_error_builders():
    out_of_range = line_out_of_range("a.md", 7, 3)
    write_failed = note_io_error(
        "WRITE_FAILED", "Not saved", PermissionError("read-only"), path="a.md"
    )

    assert out_of_range.error.code == "LINE_OUT_OF_RANGE"
    assert out_of_range.error.details == {"path": "a.md", "line": 7, "lineCount": 3}
    assert write_failed.error.to_dict() == {
        "code": "WRITE_FAILED",
        "message": "Not saved",
        "details": {"path": "a.md", "error": "read-only"},
    }
