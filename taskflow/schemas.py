"""Request and response bodies for the REST surface.

Field names on the wire are camelCase (``dueDate``), matching what the board
client sends and reads.
"""

import json
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from taskflow.models import Task, TaskPriority, TaskStatus, User


class SignupRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RenameRequest(BaseModel):
    name: Optional[str] = None


class UserOut(BaseModel):
    id: int
    email: str
    name: Optional[str] = None


class AuthOut(BaseModel):
    token: str
    user: UserOut


class TaskWrite(BaseModel):
    """Full field set for create and replace.

    Omitted optional fields fall back to their defaults, so a PUT that leaves
    out ``tags`` clears them.
    """
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.medium
    due_date: Optional[date] = Field(default=None, alias="dueDate")
    status: TaskStatus = TaskStatus.todo
    tags: list[str] = Field(default_factory=list)
    attachments: int = Field(default=0, ge=0)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title must not be blank")
        return v

    @field_validator("due_date", mode="before")
    @classmethod
    def _calendar_date(cls, v: Any) -> Any:
        # "2024-03-15T00:00:00.000Z" keeps the date the user picked
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            if len(v) > 10 and v[10] in "T ":
                return v[:10]
        return v

    @field_validator("priority", "status", "tags", "attachments", mode="before")
    @classmethod
    def _null_means_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v

    def to_row(self) -> dict:
        """Column values for a ``Task`` row."""
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "due_date": self.due_date,
            "status": self.status.value,
            "tags": list(self.tags),
            "attachments": self.attachments,
        }


class TaskOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    priority: str
    dueDate: Optional[str] = None
    status: str
    tags: list[str]
    attachments: int


def _format_due_date(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        return None


def _coerce_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, (list, tuple)):
        return []
    return [str(tag) for tag in value if tag is not None]


def _coerce_attachments(value: Any) -> int:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return 0
    if isinstance(value, bool) or value is None:
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


def format_task(task: Task) -> TaskOut:
    """Serialize a stored task into its client-facing shape.

    Storage may hand back JSON columns as encoded text or null; the client
    always sees a list of tags and a non-negative attachment count.
    """
    return TaskOut(
        id=task.id,
        title=task.title,
        description=task.description,
        priority=task.priority or TaskPriority.medium.value,
        dueDate=_format_due_date(task.due_date),
        status=task.status or TaskStatus.todo.value,
        tags=_coerce_tags(task.tags),
        attachments=_coerce_attachments(task.attachments),
    )


def format_user(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, name=user.name)
