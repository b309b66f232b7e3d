"""User and Task tables for the TaskFlow API."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in-progress"
    review = "review"
    done = "done"


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """Registered account. Only ``name`` changes after signup."""
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    name: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)


class Task(SQLModel, table=True):
    """Task row. ``status`` and ``priority`` hold the enum values as text."""
    __tablename__ = "tasks"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    title: str
    description: Optional[str] = Field(default=None)
    priority: str = Field(default=TaskPriority.medium.value)
    due_date: Optional[date] = Field(default=None)
    status: str = Field(default=TaskStatus.todo.value)
    tags: Optional[list[str]] = Field(default=None, sa_column=Column(JSON))
    attachments: Optional[int] = Field(default=0, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=_utcnow)
