"""Owner-scoped persistence for users and tasks.

Two interchangeable backends implement :class:`Storage`: ``SqlStorage`` over
the SQLModel tables and ``MemoryStorage`` for tests and for running without a
database. The app picks one at startup (see :func:`build_storage`).
"""

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date
from typing import Iterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from taskflow.config import Settings
from taskflow.database import build_engine, create_db_and_tables
from taskflow.errors import Conflict, NotFound, Unavailable
from taskflow.models import Task, TaskStatus, User
from taskflow.schemas import TaskWrite

logger = logging.getLogger(__name__)


class Storage(ABC):
    """Persistence interface. Every task operation takes the owner's id."""

    # -- users ---------------------------------------------------------------

    @abstractmethod
    def create_user(self, email: str, password_hash: str, name: Optional[str]) -> User:
        """Insert a user. Raises Conflict if the email is taken."""

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def list_users(self) -> list[User]: ...

    @abstractmethod
    def rename_user(self, user_id: int, name: Optional[str]) -> User: ...

    @abstractmethod
    def delete_user(self, user_id: int) -> None:
        """Remove a user together with all of their tasks."""

    # -- tasks ---------------------------------------------------------------

    @abstractmethod
    def list_tasks(self, owner_id: int) -> list[Task]:
        """Owner's tasks in ascending id order."""

    @abstractmethod
    def create_task(self, owner_id: int, fields: TaskWrite) -> Task:
        """Insert a task for an existing user. Raises NotFound otherwise."""

    @abstractmethod
    def update_task(self, owner_id: int, task_id: int, fields: TaskWrite) -> Task:
        """Replace every mutable field. Raises NotFound for foreign ids too."""

    @abstractmethod
    def delete_task(self, owner_id: int, task_id: int) -> None: ...

    @abstractmethod
    def due_on(self, owner_id: int, day: date) -> list[Task]:
        """Owner's tasks due on ``day`` that are not done."""

    @abstractmethod
    def ping(self) -> dict:
        """Backend description for health checks. Raises Unavailable."""


class SqlStorage(Storage):
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with Session(self.engine) as session:
                yield session
        except IntegrityError as exc:
            logger.warning("Rejected write: %s", exc.orig)
            raise Conflict("Conflicting write") from exc
        except SQLAlchemyError as exc:
            logger.error("Database operation failed: %s", exc)
            raise Unavailable("Database unavailable") from exc

    def _owned_task(self, session: Session, owner_id: int, task_id: int) -> Task:
        task = session.get(Task, task_id)
        if task is None or task.user_id != owner_id:
            raise NotFound("Task not found")
        return task

    def create_user(self, email: str, password_hash: str, name: Optional[str]) -> User:
        with self._session() as session:
            if session.exec(select(User).where(User.email == email)).first():
                raise Conflict("Email already registered")
            user = User(email=email, password_hash=password_hash, name=name)
            session.add(user)
            try:
                session.commit()
            except IntegrityError:
                # lost a race with a concurrent signup for the same email
                session.rollback()
                raise Conflict("Email already registered")
            session.refresh(user)
            return user

    def get_user(self, user_id: int) -> Optional[User]:
        with self._session() as session:
            return session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._session() as session:
            return session.exec(select(User).where(User.email == email)).first()

    def list_users(self) -> list[User]:
        with self._session() as session:
            return list(session.exec(select(User).order_by(User.id)).all())

    def rename_user(self, user_id: int, name: Optional[str]) -> User:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound("User not found")
            user.name = name
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def delete_user(self, user_id: int) -> None:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound("User not found")
            for task in session.exec(select(Task).where(Task.user_id == user_id)).all():
                session.delete(task)
            session.flush()
            session.delete(user)
            session.commit()

    def list_tasks(self, owner_id: int) -> list[Task]:
        with self._session() as session:
            statement = select(Task).where(Task.user_id == owner_id).order_by(Task.id)
            return list(session.exec(statement).all())

    def create_task(self, owner_id: int, fields: TaskWrite) -> Task:
        with self._session() as session:
            if session.get(User, owner_id) is None:
                raise NotFound("User not found")
            task = Task(user_id=owner_id, **fields.to_row())
            session.add(task)
            session.commit()
            session.refresh(task)
            return task

    def update_task(self, owner_id: int, task_id: int, fields: TaskWrite) -> Task:
        with self._session() as session:
            task = self._owned_task(session, owner_id, task_id)
            for key, value in fields.to_row().items():
                setattr(task, key, value)
            session.add(task)
            session.commit()
            session.refresh(task)
            return task

    def delete_task(self, owner_id: int, task_id: int) -> None:
        with self._session() as session:
            task = self._owned_task(session, owner_id, task_id)
            session.delete(task)
            session.commit()

    def due_on(self, owner_id: int, day: date) -> list[Task]:
        with self._session() as session:
            statement = (
                select(Task)
                .where(Task.user_id == owner_id)
                .where(Task.due_date == day)
                .where(Task.status != TaskStatus.done.value)
                .order_by(Task.id)
            )
            return list(session.exec(statement).all())

    def ping(self) -> dict:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise Unavailable("Database unavailable") from exc
        return {
            "backend": "sql",
            "dialect": self.engine.dialect.name,
            "database": self.engine.url.database,
        }


class MemoryStorage(Storage):
    """Process-local storage. Returned rows are copies of the stored ones."""

    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._tasks: dict[int, Task] = {}
        self._user_ids = itertools.count(1)
        self._task_ids = itertools.count(1)
        self._lock = threading.Lock()

    @staticmethod
    def _copy_user(user: User) -> User:
        return User(**user.model_dump())

    @staticmethod
    def _copy_task(task: Task) -> Task:
        return Task(**task.model_dump())

    def _owned_task(self, owner_id: int, task_id: int) -> Task:
        task = self._tasks.get(task_id)
        if task is None or task.user_id != owner_id:
            raise NotFound("Task not found")
        return task

    def create_user(self, email: str, password_hash: str, name: Optional[str]) -> User:
        with self._lock:
            if any(u.email == email for u in self._users.values()):
                raise Conflict("Email already registered")
            user = User(
                id=next(self._user_ids),
                email=email,
                password_hash=password_hash,
                name=name,
            )
            self._users[user.id] = user
            return self._copy_user(user)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return self._copy_user(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return self._copy_user(user)
            return None

    def list_users(self) -> list[User]:
        with self._lock:
            return [self._copy_user(u) for _, u in sorted(self._users.items())]

    def rename_user(self, user_id: int, name: Optional[str]) -> User:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFound("User not found")
            user.name = name
            return self._copy_user(user)

    def delete_user(self, user_id: int) -> None:
        with self._lock:
            if self._users.pop(user_id, None) is None:
                raise NotFound("User not found")
            self._tasks = {
                tid: t for tid, t in self._tasks.items() if t.user_id != user_id
            }

    def list_tasks(self, owner_id: int) -> list[Task]:
        with self._lock:
            return [
                self._copy_task(t)
                for _, t in sorted(self._tasks.items())
                if t.user_id == owner_id
            ]

    def create_task(self, owner_id: int, fields: TaskWrite) -> Task:
        with self._lock:
            if owner_id not in self._users:
                raise NotFound("User not found")
            task = Task(id=next(self._task_ids), user_id=owner_id, **fields.to_row())
            self._tasks[task.id] = task
            return self._copy_task(task)

    def update_task(self, owner_id: int, task_id: int, fields: TaskWrite) -> Task:
        with self._lock:
            task = self._owned_task(owner_id, task_id)
            for key, value in fields.to_row().items():
                setattr(task, key, value)
            return self._copy_task(task)

    def delete_task(self, owner_id: int, task_id: int) -> None:
        with self._lock:
            self._owned_task(owner_id, task_id)
            del self._tasks[task_id]

    def due_on(self, owner_id: int, day: date) -> list[Task]:
        with self._lock:
            return [
                self._copy_task(t)
                for _, t in sorted(self._tasks.items())
                if t.user_id == owner_id
                and t.due_date == day
                and t.status != TaskStatus.done.value
            ]

    def ping(self) -> dict:
        with self._lock:
            return {"backend": "memory", "users": len(self._users), "tasks": len(self._tasks)}


def build_storage(settings: Settings) -> Storage:
    """Create the storage backend named by ``settings.storage``.

    ``auto`` tries the database first and falls back to memory when it cannot
    be reached.
    """
    if settings.storage == "memory":
        logger.info("Using in-memory storage")
        return MemoryStorage()

    try:
        engine = build_engine(settings.database_url)
        create_db_and_tables(engine)
        storage = SqlStorage(engine)
        storage.ping()
    except (SQLAlchemyError, Unavailable) as exc:
        if settings.storage != "auto":
            raise Unavailable("Database unavailable") from exc
        logger.warning("Database unreachable (%s); falling back to in-memory storage", exc)
        return MemoryStorage()

    logger.info("Using %s storage", engine.dialect.name)
    return storage
