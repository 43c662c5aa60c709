from datetime import date

import pytest

from app.task_model import (
    MarkerState,
    MarkerToggler,
    format_marker,
    mark_line_rolled,
    parse_task,
    toggle_line,
)

TODAY = date(2024, 1, 16)


def test_parse_task_reads_all_fields():
    task = parse_task("-=TODO 2 3 240101=- write report", "2024-01-01.md", 4)

    assert task is not None
    assert task.status is MarkerState.TODO
    assert task.priority == 2
    assert task.difficulty == 3
    assert task.due_date == "240101"
    assert task.text == "write report"
    assert (task.note, task.line) == ("2024-01-01.md", 4)
    assert task.raw == "-=TODO 2 3 240101=- write report"
    assert task.is_open


@pytest.mark.parametrize(
    "line",
    [
        "",
        "plain text",
        "-=DONE 1 1 240101=- unknown state",
        "-=TODO 1 1 2401=- short date",
        "-=TODO 1 1 2401011=- long date",
        "-=TODO x 1 240101=- bad priority",
        "-=TODO 1  1 240101=- double space",
        "-=todo 1 1 240101=- lowercase",
        "-=TODO 1 1 240101 missing close",
    ],
)
def test_parse_task_returns_none_for_non_markers(line):
    assert parse_task(line, "note.md", 0) is None


def test_parse_task_is_total_for_odd_input():
    assert parse_task(None, "note.md", 0) is None
    assert parse_task("-=" * 500, "note.md", 0) is None
    assert parse_task("\x00\udcff", "note.md", 0) is None


def test_parse_task_accepts_huge_digit_groups():
    task = parse_task("-=TODO 99999999999999999999 0 991231=-x", "n.md", 0)

    assert task.priority == 99999999999999999999
    assert task.difficulty == 0


def test_parse_task_finds_marker_after_list_bullet():
    task = parse_task("- -=COMPLETE 1 2 240105=-  done thing ", "n.md", 7)

    assert task.status is MarkerState.COMPLETE
    assert task.text == "done thing"
    assert not task.is_open


@pytest.mark.parametrize(
    "state,priority,difficulty,due,text",
    [
        (MarkerState.TODO, 1, 1, "240101", "write report"),
        (MarkerState.COMPLETE, 10, 2, "991231", "with  inner  spaces"),
        (MarkerState.ROLLED, 3, 7, "300101", ""),
    ],
)
def test_format_then_parse_preserves_fields(state, priority, difficulty, due, text):
    task = parse_task(format_marker(state, priority, difficulty, due, text), "n.md", 0)

    assert (task.status, task.priority, task.difficulty, task.due_date, task.text) == (
        state,
        priority,
        difficulty,
        due,
        text,
    )


def test_toggle_completes_and_restores_original_date():
    toggler = MarkerToggler()

    completed = toggler.toggle("-=TODO 2 3 240101=- write report", TODAY)
    assert completed == "-=COMPLETE 2 3 240116=- write report"

    reopened = toggler.toggle(completed, date(2024, 1, 20))
    assert reopened == "-=TODO 2 3 240101=- write report"


def test_toggle_without_history_keeps_marker_date():
    assert (
        toggle_line("-=COMPLETE 2 3 240110=- write report", TODAY)
        == "-=TODO 2 3 240110=- write report"
    )


def test_toggle_adds_marker_to_plain_and_blank_lines():
    assert toggle_line("call the bank", TODAY) == "-=TODO 1 1 240116=- call the bank"
    assert toggle_line("", TODAY) == "-=TODO 1 1 240116=-"
    assert toggle_line("   ", TODAY) == "-=TODO 1 1 240116=-"


def test_toggle_keeps_prefix_and_leaves_rolled_alone():
    assert (
        toggle_line("* -=TODO 1 1 240101=-task", TODAY)
        == "* -=COMPLETE 1 1 240116=-task"
    )
    rolled = "-=ROLLED 1 1 240101=- moved"
    assert toggle_line(rolled, TODAY) == rolled


def test_mark_line_rolled_only_swaps_state_token():
    line = "- -=TODO 12 4 231130=- keep -=TODO in text"

    assert mark_line_rolled(line) == "- -=ROLLED 12 4 231130=- keep -=TODO in text"
    assert mark_line_rolled("-=COMPLETE 1 1 240101=- done") == "-=COMPLETE 1 1 240101=- done"
    assert mark_line_rolled("no marker") == "no marker"


def test_identical_lines_in_two_notes_restore_their_own_dates():
    toggler = MarkerToggler()

    first = toggler.toggle("-=TODO 1 1 240101=- call bob", TODAY, "monday.md")
    second = toggler.toggle("-=TODO 1 1 231201=- call bob", TODAY, "friday.md")
    assert first == second == "-=COMPLETE 1 1 240116=- call bob"

    assert toggler.toggle(first, TODAY, "monday.md") == "-=TODO 1 1 240101=- call bob"
    assert toggler.toggle(second, TODAY, "friday.md") == "-=TODO 1 1 231201=- call bob"


def test_toggle_memory_is_bounded():
    toggler = MarkerToggler(max_entries=2)
    completed = [
        toggler.toggle(f"-=TODO 1 1 2401{day:02d}=- task {day}", TODAY, "a.md")
        for day in (1, 2, 3)
    ]

    # The oldest completion was forgotten, so its marker date is kept.
    assert toggler.toggle(completed[0], TODAY, "a.md") == "-=TODO 1 1 240116=- task 1"
    assert toggler.toggle(completed[2], TODAY, "a.md") == "-=TODO 1 1 240103=- task 3"
