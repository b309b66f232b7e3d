"""Persisting board changes to the API.

Drag results are written back with a per-task update queue: at most one PUT
per task is in flight, newer submits replace the pending payload, and a
response is applied only if nothing newer was submitted for that task since.
Rapid repeated drags therefore end with the server holding the last drag,
not whichever response happened to arrive last. Failed writes are logged and
dropped; the board keeps its optimistic state.
"""

import asyncio
import copy
import logging
from typing import Awaitable, Callable, Optional

import httpx

from taskflow.client.board import BoardState, DropTarget
from taskflow.client.http import ApiError, TaskflowClient

logger = logging.getLogger(__name__)

SendFn = Callable[[dict], Awaitable[dict]]


class UpdateQueue:
    def __init__(
        self,
        send: SendFn,
        on_applied: Optional[Callable[[dict], None]] = None,
    ) -> None:
        self._send = send
        self._on_applied = on_applied
        self._latest: dict[int, int] = {}
        self._pending: dict[int, tuple[int, dict]] = {}
        self._workers: dict[int, asyncio.Task] = {}
        self.failures = 0
        self.superseded = 0

    def submit(self, task: dict) -> None:
        """Queue ``task``'s full field set for a PUT. Needs a running loop."""
        task_id = task["id"]
        generation = self._latest.get(task_id, 0) + 1
        self._latest[task_id] = generation
        self._pending[task_id] = (generation, copy.deepcopy(task))
        if task_id not in self._workers:
            self._workers[task_id] = asyncio.create_task(self._run(task_id))

    def in_flight(self, task_id: int) -> bool:
        return task_id in self._workers

    async def _run(self, task_id: int) -> None:
        try:
            while task_id in self._pending:
                generation, payload = self._pending.pop(task_id)
                try:
                    result = await self._send(payload)
                except (ApiError, httpx.HTTPError) as exc:
                    self.failures += 1
                    logger.warning("Persisting task %s failed: %s", task_id, exc)
                    continue
                if generation != self._latest[task_id]:
                    self.superseded += 1
                    continue
                if self._on_applied is not None:
                    self._on_applied(result)
        finally:
            self._workers.pop(task_id, None)

    async def drain(self) -> None:
        """Wait until every queued update has been sent."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()))


class BoardController:
    """Board state wired to the API: load, create, delete, and drag."""

    def __init__(self, client: TaskflowClient, board: Optional[BoardState] = None) -> None:
        self.client = client
        self.board = board or BoardState()
        self.queue = UpdateQueue(client.update_task, on_applied=self._apply)

    def _apply(self, task: dict) -> None:
        # a new drag of the same card owns its status until it drops
        if self.board.active_id != task["id"]:
            self.board.replace(task)

    async def load(self) -> list[dict]:
        """Fetch the task list; an unreachable API shows an empty board."""
        try:
            tasks = await self.client.list_tasks()
        except (ApiError, httpx.HTTPError) as exc:
            logger.error("Failed to load tasks: %s", exc)
            tasks = []
        self.board.load(tasks)
        return self.board.tasks

    async def create(self, fields: dict) -> dict:
        """Create a task; errors propagate so the form can show them."""
        created = await self.client.create_task(fields)
        self.board.add(created)
        return created

    async def delete(self, task_id: int) -> None:
        await self.client.delete_task(task_id)
        self.board.remove(task_id)

    def start_drag(self, task_id: int) -> None:
        self.board.start_drag(task_id)

    def drag_over(self, over_id: DropTarget) -> bool:
        return self.board.drag_over(over_id)

    def end_drag(self, over_id: DropTarget) -> Optional[dict]:
        """Drop the card and queue its full field set for persistence."""
        task = self.board.drop(over_id)
        if task is not None:
            self.queue.submit(task)
        return task
