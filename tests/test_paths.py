import os

import pytest

from app.errors import McpError
from app.paths import validate_note_path


def test_validate_note_path_normalizes_separators(tmp_path):
    result = validate_note_path(tmp_path, "2024\\01-January\\2024-01-02.md")

    assert result == "2024/01-January/2024-01-02.md"


@pytest.mark.parametrize(
    "raw_path,code",
    [
        ("/etc/notes.md", "ABSOLUTE_PATH"),
        ("../outside.md", "PATH_TRAVERSAL"),
        ("notes/../../outside.md", "PATH_TRAVERSAL"),
        ("notes.txt", "NOT_MARKDOWN"),
        (42, "INVALID_TYPE"),
    ],
)
def test_validate_note_path_rejects(tmp_path, raw_path, code):
    with pytest.raises(McpError) as excinfo:
        validate_note_path(tmp_path, raw_path)

    assert excinfo.value.error.code == code


def test_validate_note_path_rejects_traversal_without_fs_access(tmp_path, monkeypatch):
    def _unexpected_call(*_args, **_kwargs):
        raise AssertionError("symlink check should not run for traversal paths")

    monkeypatch.setattr("app.paths._contains_symlink", _unexpected_call)

    with pytest.raises(McpError) as excinfo:
        validate_note_path(tmp_path, "../../etc/passwd.md")

    assert excinfo.value.error.code == "PATH_TRAVERSAL"


def test_validate_note_path_rejects_symlinked_folder(tmp_path):
    target = tmp_path / "real"
    target.mkdir()
    os.symlink(target, tmp_path / "link")

    with pytest.raises(McpError) as excinfo:
        validate_note_path(tmp_path, "link/day.md")

    assert excinfo.value.error.code == "PATH_SYMLINK"
