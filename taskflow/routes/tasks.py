"""CRUD endpoints for the caller's tasks."""

from fastapi import APIRouter, Depends

from taskflow.dependencies import current_user_id, get_storage
from taskflow.schemas import TaskOut, TaskWrite, format_task
from taskflow.storage import Storage

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("")
def list_tasks(
    user_id: int = Depends(current_user_id),
    storage: Storage = Depends(get_storage),
) -> list[TaskOut]:
    """List the caller's tasks in creation order."""
    return [format_task(t) for t in storage.list_tasks(user_id)]


@router.post("", status_code=201)
def create_task(
    body: TaskWrite,
    user_id: int = Depends(current_user_id),
    storage: Storage = Depends(get_storage),
) -> TaskOut:
    return format_task(storage.create_task(user_id, body))


@router.put("/{task_id}")
def update_task(
    task_id: int,
    body: TaskWrite,
    user_id: int = Depends(current_user_id),
    storage: Storage = Depends(get_storage),
) -> TaskOut:
    """Replace every field of a task. Fields left out reset to defaults."""
    return format_task(storage.update_task(user_id, task_id, body))


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    user_id: int = Depends(current_user_id),
    storage: Storage = Depends(get_storage),
) -> None:
    storage.delete_task(user_id, task_id)
