"""Tests for the board state and drag gesture machine."""

import pytest

from taskflow.client.board import COLUMN_IDS, BoardState, array_move


def _task(task_id: int, status: str = "todo", **extra) -> dict:
    task = {
        "id": task_id,
        "title": f"Task {task_id}",
        "description": None,
        "priority": "medium",
        "dueDate": None,
        "status": status,
        "tags": [],
        "attachments": 0,
    }
    task.update(extra)
    return task


@pytest.fixture
def board():
    return BoardState([
        _task(1, "todo"),
        _task(2, "todo"),
        _task(3, "in-progress"),
        _task(4, "done", tags=["x"]),
    ])


class TestColumns:
    def test_columns_filter_by_status(self, board):
        assert [t["id"] for t in board.column("todo")] == [1, 2]
        assert [t["id"] for t in board.column("in-progress")] == [3]
        assert board.column("review") == []

    def test_snapshot_has_every_column(self, board):
        snap = board.snapshot()
        assert list(snap["columns"]) == COLUMN_IDS
        assert snap["active_id"] is None

    def test_reads_are_copies(self, board):
        board.tasks[0]["status"] = "done"
        board.column("todo")[0]["title"] = "changed"
        assert board.get(1)["status"] == "todo"
        assert board.get(1)["title"] == "Task 1"

    def test_find_container(self, board):
        assert board.find_container("review") == "review"
        assert board.find_container(3) == "in-progress"
        assert board.find_container(99) is None
        assert board.find_container(None) is None


class TestDragAcrossColumns:
    def test_drag_todo_to_done_changes_only_that_task(self, board):
        before = board.tasks

        board.start_drag(1)
        assert board.drag_over("done") is True
        persisted = board.drop("done")

        after = board.tasks
        assert persisted == {**before[0], "status": "done"}
        assert after[0] == {**before[0], "status": "done"}
        assert after[1:] == before[1:]
        assert not board.is_dragging

    def test_hover_over_task_in_other_column(self, board):
        board.start_drag(2)
        assert board.drag_over(3) is True
        assert board.get(2)["status"] == "in-progress"

    def test_hover_within_same_column_is_noop(self, board):
        board.start_drag(1)
        assert board.drag_over(2) is False
        assert board.drag_over("todo") is False
        assert board.drag_over(1) is False
        assert board.drag_over(None) is False
        assert board.get(1)["status"] == "todo"

    def test_hover_moves_locally_before_drop(self, board):
        board.start_drag(1)
        board.drag_over("review")
        assert board.is_dragging
        assert [t["id"] for t in board.column("review")] == [1]

    def test_hover_back_to_origin(self, board):
        board.start_drag(1)
        board.drag_over("review")
        board.drag_over("todo")
        assert board.drop("todo")["status"] == "todo"


class TestDrop:
    def test_reorder_within_column(self, board):
        board.start_drag(1)
        persisted = board.drop(2)
        assert [t["id"] for t in board.column("todo")] == [2, 1]
        assert persisted["status"] == "todo"

    def test_drop_on_itself_keeps_order(self, board):
        board.start_drag(1)
        assert board.drop(1)["id"] == 1
        assert [t["id"] for t in board.tasks] == [1, 2, 3, 4]

    def test_drop_outside_any_column_still_persists(self, board):
        board.start_drag(3)
        assert board.drop(None)["id"] == 3
        assert board.get(3)["status"] == "in-progress"

    def test_drop_when_idle_returns_none(self, board):
        assert board.drop("done") is None

    def test_cancel_drag(self, board):
        board.start_drag(1)
        board.cancel_drag()
        assert board.drop("done") is None

    def test_start_drag_unknown_task(self, board):
        with pytest.raises(ValueError):
            board.start_drag(99)


class TestListUpdates:
    def test_add_puts_new_task_first(self, board):
        board.add(_task(5))
        assert [t["id"] for t in board.column("todo")] == [5, 1, 2]

    def test_replace_and_remove(self, board):
        board.replace(_task(3, "review", title="Renamed"))
        assert board.get(3)["title"] == "Renamed"
        board.start_drag(3)
        board.remove(3)
        assert board.get(3) is None
        assert not board.is_dragging

    def test_load_resets_drag(self, board):
        board.start_drag(1)
        board.load([_task(9)])
        assert not board.is_dragging
        assert [t["id"] for t in board.tasks] == [9]


def test_array_move():
    assert array_move([1, 2, 3, 4], 0, 2) == [2, 3, 1, 4]
    assert array_move([1, 2, 3, 4], 3, 0) == [4, 1, 2, 3]
