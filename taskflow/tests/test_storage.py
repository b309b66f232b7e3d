"""Tests for the storage backends, serialization, and schema bootstrap."""

from datetime import date, datetime

import pytest
from sqlalchemy import inspect, text
from sqlmodel import SQLModel

from taskflow.config import Settings
from taskflow.database import add_missing_columns, build_engine, create_db_and_tables
from taskflow.errors import Conflict, NotFound, Unavailable
from taskflow.models import Task
from taskflow.schemas import TaskWrite, format_task
from taskflow.storage import MemoryStorage, SqlStorage, build_storage


def _user(storage, email="owner@example.com"):
    return storage.create_user(email, "hash", None)


class TestStorageBackends:
    def test_create_and_list(self, storage):
        owner = _user(storage)
        storage.create_task(owner.id, TaskWrite(title="One", dueDate="2024-03-15"))
        storage.create_task(owner.id, TaskWrite(title="Two", tags=["a", "b"]))

        tasks = storage.list_tasks(owner.id)
        assert [t.title for t in tasks] == ["One", "Two"]
        assert tasks[0].due_date == date(2024, 3, 15)
        assert tasks[1].tags == ["a", "b"]

    def test_duplicate_email_conflicts(self, storage):
        _user(storage, "same@example.com")
        with pytest.raises(Conflict):
            _user(storage, "same@example.com")
        assert len(storage.list_users()) == 1

    def test_update_and_delete_are_owner_scoped(self, storage):
        alice = _user(storage, "alice@example.com")
        bob = _user(storage, "bob@example.com")
        task = storage.create_task(alice.id, TaskWrite(title="Private"))

        with pytest.raises(NotFound):
            storage.update_task(bob.id, task.id, TaskWrite(title="Mine now"))
        with pytest.raises(NotFound):
            storage.delete_task(bob.id, task.id)
        assert storage.list_tasks(alice.id)[0].title == "Private"

    def test_due_on_skips_done_and_other_days(self, storage):
        owner = _user(storage)
        day = date(2024, 3, 1)
        storage.create_task(owner.id, TaskWrite(title="Due", dueDate=day))
        storage.create_task(owner.id, TaskWrite(title="Finished", dueDate=day, status="done"))
        storage.create_task(owner.id, TaskWrite(title="Tomorrow", dueDate=date(2024, 3, 2)))
        storage.create_task(owner.id, TaskWrite(title="Undated"))

        assert [t.title for t in storage.due_on(owner.id, day)] == ["Due"]

    def test_delete_user_cascades(self, storage):
        owner = _user(storage)
        other = _user(storage, "other@example.com")
        storage.create_task(owner.id, TaskWrite(title="Gone"))
        kept = storage.create_task(other.id, TaskWrite(title="Kept"))

        storage.delete_user(owner.id)

        assert storage.get_user(owner.id) is None
        assert storage.list_tasks(owner.id) == []
        assert [t.id for t in storage.list_tasks(other.id)] == [kept.id]
        with pytest.raises(NotFound):
            storage.delete_user(owner.id)

    def test_create_task_for_unknown_owner(self, storage):
        owner = _user(storage)
        storage.delete_user(owner.id)

        with pytest.raises(NotFound):
            storage.create_task(owner.id, TaskWrite(title="Orphan"))
        with pytest.raises(NotFound):
            storage.create_task(999, TaskWrite(title="Orphan"))

    def test_rename_user(self, storage):
        owner = _user(storage)
        assert storage.rename_user(owner.id, "New Name").name == "New Name"
        assert storage.get_user_by_email(owner.email).name == "New Name"

    def test_returned_rows_are_detached_copies(self, storage):
        owner = _user(storage)
        task = storage.create_task(owner.id, TaskWrite(title="Original", tags=["x"]))
        task.tags.append("y")
        assert storage.list_tasks(owner.id)[0].tags == ["x"]


class TestFormatTask:
    def _task(self, **overrides) -> Task:
        fields = {"id": 1, "user_id": 1, "title": "T", "priority": "low", "status": "todo"}
        fields.update(overrides)
        return Task(**fields)

    def test_tags_from_json_text(self):
        assert format_task(self._task(tags='["a", "b"]')).tags == ["a", "b"]

    def test_bad_tags_become_empty_list(self):
        assert format_task(self._task(tags=None)).tags == []
        assert format_task(self._task(tags="not json")).tags == []
        assert format_task(self._task(tags='{"a": 1}')).tags == []

    def test_attachments_coerced(self):
        assert format_task(self._task(attachments="3")).attachments == 3
        assert format_task(self._task(attachments=None)).attachments == 0
        assert format_task(self._task(attachments="oops")).attachments == 0
        assert format_task(self._task(attachments=-4)).attachments == 0

    def test_due_date_shapes(self):
        assert format_task(self._task(due_date=date(2024, 3, 15))).dueDate == "2024-03-15"
        assert format_task(self._task(due_date=datetime(2024, 3, 15, 23, 0))).dueDate == "2024-03-15"
        assert format_task(self._task(due_date="2024-03-15 00:00:00")).dueDate == "2024-03-15"
        assert format_task(self._task(due_date=None)).dueDate is None


class TestSqlStorage:
    def test_raw_json_text_columns_are_normalized(self, sql_storage):
        owner = _user(sql_storage)
        task = sql_storage.create_task(owner.id, TaskWrite(title="Raw"))
        with sql_storage.engine.begin() as conn:
            conn.execute(
                text("UPDATE tasks SET tags = NULL, attachments = NULL WHERE id = :id"),
                {"id": task.id},
            )

        out = format_task(sql_storage.list_tasks(owner.id)[0])
        assert out.tags == []
        assert out.attachments == 0

    def test_closed_database_is_unavailable(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path}/tasks.db")
        create_db_and_tables(engine)
        storage = SqlStorage(engine)
        with engine.begin() as conn:
            conn.execute(text("DROP TABLE tasks"))

        with pytest.raises(Unavailable):
            storage.list_tasks(1)

    def test_constraint_violation_is_conflict_not_outage(self, sql_storage):
        with pytest.raises(Conflict):
            with sql_storage._session() as session:
                session.add(Task(user_id=999, title="No owner"))
                session.commit()
        assert sql_storage.ping()["dialect"] == "sqlite"

    def test_ping(self, sql_storage):
        assert sql_storage.ping()["dialect"] == "sqlite"


class TestSchemaBootstrap:
    def test_adds_missing_columns(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path}/old.db")
        with engine.begin() as conn:
            conn.execute(text(
                "CREATE TABLE tasks (id INTEGER PRIMARY KEY, user_id INTEGER NOT NULL, "
                "title VARCHAR NOT NULL)"
            ))
            conn.execute(text("INSERT INTO tasks (id, user_id, title) VALUES (1, 1, 'kept')"))

        create_db_and_tables(engine)

        columns = {c["name"] for c in inspect(engine).get_columns("tasks")}
        assert {"status", "priority", "tags", "attachments", "due_date"} <= columns
        with engine.connect() as conn:
            row = conn.execute(text(
                "SELECT title, status, priority, attachments, created_at FROM tasks WHERE id = 1"
            )).one()
        assert row.title == "kept"
        assert row.status == "todo"
        assert row.priority == "medium"
        assert row.attachments is None
        assert row.created_at == "1970-01-01 00:00:00"
        assert add_missing_columns(engine) == []

    def test_creates_both_tables(self, sql_storage):
        tables = set(inspect(sql_storage.engine).get_table_names())
        assert {"users", "tasks"} <= tables
        assert set(SQLModel.metadata.tables) >= {"users", "tasks"}


class TestBuildStorage:
    def test_memory(self):
        assert isinstance(build_storage(Settings(storage="memory")), MemoryStorage)

    def test_sql(self, tmp_path):
        storage = build_storage(Settings(storage="sql", database_url=f"sqlite:///{tmp_path}/a.db"))
        assert isinstance(storage, SqlStorage)

    def test_auto_falls_back_to_memory(self, tmp_path):
        url = f"sqlite:///{tmp_path}/missing-dir/a.db"
        assert isinstance(build_storage(Settings(storage="auto", database_url=url)), MemoryStorage)

    def test_sql_without_fallback_raises(self, tmp_path):
        url = f"sqlite:///{tmp_path}/missing-dir/a.db"
        with pytest.raises(Unavailable):
            build_storage(Settings(storage="sql", database_url=url))
