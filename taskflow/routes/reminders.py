"""On-demand trigger for the caller's daily reminder email."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from taskflow.dependencies import current_user_id, get_mailer, get_storage
from taskflow.errors import NotFound, Unavailable
from taskflow.reminders import Mailer, ReminderScheduler
from taskflow.storage import Storage

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post("/run")
def run_reminder(
    user_id: int = Depends(current_user_id),
    storage: Storage = Depends(get_storage),
    mailer: Optional[Mailer] = Depends(get_mailer),
) -> dict:
    """Send today's digest to the caller now, if anything is due."""
    if mailer is None:
        raise Unavailable("Mail transport not configured")
    user = storage.get_user(user_id)
    if user is None:
        raise NotFound("User not found")
    scheduler = ReminderScheduler(storage, mailer)
    digest = scheduler.send_for_user(user, date.today())
    return {"sent": digest is not None, "tasks": digest.task_count if digest else 0}
