"""Kanban board state and the drag-and-drop gesture machine.

The board holds the full task list; the four columns are filters over each
task's ``status``. A drag moves through idle -> dragging -> (hover) -> drop.
Hovering over another column reassigns the dragged task's status locally so
the card shows up there immediately. Dropping inside the same column
reorders locally. Ordering is never persisted, so it is lost on reload.

Tasks are plain dicts in the API's wire shape. ``self._tasks`` is replaced,
never mutated in place, and readers get deep copies.
"""

import copy
from typing import Optional, Union

COLUMNS = [
    {"id": "todo", "title": "To Do"},
    {"id": "in-progress", "title": "In Progress"},
    {"id": "review", "title": "Review"},
    {"id": "done", "title": "Done"},
]
COLUMN_IDS = [c["id"] for c in COLUMNS]

DropTarget = Union[str, int, None]


def array_move(items: list, from_index: int, to_index: int) -> list:
    """Return a copy of ``items`` with one element moved."""
    result = list(items)
    result.insert(to_index, result.pop(from_index))
    return result


class BoardState:
    def __init__(self, tasks: Optional[list[dict]] = None) -> None:
        self._tasks: list[dict] = copy.deepcopy(tasks or [])
        self._active_id: Optional[int] = None

    # -- reads ---------------------------------------------------------------

    @property
    def tasks(self) -> list[dict]:
        return copy.deepcopy(self._tasks)

    @property
    def active_id(self) -> Optional[int]:
        return self._active_id

    @property
    def is_dragging(self) -> bool:
        return self._active_id is not None

    def get(self, task_id: int) -> Optional[dict]:
        for task in self._tasks:
            if task["id"] == task_id:
                return copy.deepcopy(task)
        return None

    def column(self, status: str) -> list[dict]:
        """Tasks shown in the ``status`` column, in board order."""
        return [copy.deepcopy(t) for t in self._tasks if t.get("status") == status]

    def snapshot(self) -> dict:
        return {
            "active_id": self._active_id,
            "columns": {cid: self.column(cid) for cid in COLUMN_IDS},
        }

    def find_container(self, item_id: DropTarget) -> Optional[str]:
        """Column id for a column id or a task id; None for anything else."""
        if item_id is None:
            return None
        if item_id in COLUMN_IDS:
            return item_id
        task = self.get(item_id)
        return task["status"] if task else None

    def _index_of(self, task_id: DropTarget) -> int:
        for index, task in enumerate(self._tasks):
            if task["id"] == task_id:
                return index
        return -1

    # -- list updates --------------------------------------------------------

    def load(self, tasks: list[dict]) -> None:
        self._tasks = copy.deepcopy(tasks)
        self._active_id = None

    def add(self, task: dict) -> None:
        """Show a newly created task first."""
        self._tasks = [copy.deepcopy(task), *self._tasks]

    def replace(self, task: dict) -> None:
        self._tasks = [
            copy.deepcopy(task) if t["id"] == task["id"] else t for t in self._tasks
        ]

    def remove(self, task_id: int) -> None:
        self._tasks = [t for t in self._tasks if t["id"] != task_id]
        if self._active_id == task_id:
            self._active_id = None

    # -- drag gesture --------------------------------------------------------

    def start_drag(self, task_id: int) -> None:
        if self._index_of(task_id) < 0:
            raise ValueError(f"Unknown task id: {task_id}")
        self._active_id = task_id

    def drag_over(self, over_id: DropTarget) -> bool:
        """Hover the dragged card over a column or task.

        Returns True when the hover moved the card into another column.
        """
        if self._active_id is None or over_id is None or over_id == self._active_id:
            return False

        source = self.find_container(self._active_id)
        destination = self.find_container(over_id)
        if not source or not destination or source == destination:
            return False

        self._tasks = [
            {**t, "status": destination} if t["id"] == self._active_id else t
            for t in self._tasks
        ]
        return True

    def drop(self, over_id: DropTarget) -> Optional[dict]:
        """Finish the drag and return the dragged task to persist.

        Returns None when no drag is in progress.
        """
        if self._active_id is None:
            return None

        active_id = self._active_id
        source = self.find_container(active_id)
        destination = self.find_container(over_id)
        if source and destination and source == destination:
            from_index = self._index_of(active_id)
            to_index = self._index_of(over_id)
            if to_index >= 0 and from_index != to_index:
                self._tasks = array_move(self._tasks, from_index, to_index)

        self._active_id = None
        return self.get(active_id)

    def cancel_drag(self) -> None:
        self._active_id = None
