"""Engine construction and schema bootstrap using SQLModel."""

import logging

from sqlalchemy import Column, event, inspect, text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

# Registers the users/tasks tables on SQLModel.metadata
from taskflow import models  # noqa: F401

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def build_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``.

    In-memory SQLite shares one connection across threads so the tables
    outlive a single session.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=False, pool_pre_ping=True)

    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if _is_memory_sqlite(database_url):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=False, **kwargs)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def _sqlite_default(column: Column, column_type: str) -> str:
    """DEFAULT clause SQLite needs to add a NOT NULL column to a populated table."""
    if column.nullable:
        return ""
    if column.default is not None and column.default.is_scalar:
        return " DEFAULT '{}'".format(str(column.default.arg).replace("'", "''"))
    if "INT" in column_type:
        return " DEFAULT 0"
    if "DATETIME" in column_type:
        return " DEFAULT '1970-01-01 00:00:00'"
    return " DEFAULT ''"


def add_missing_columns(engine: Engine) -> list[str]:
    """Add model columns missing from existing SQLite tables.

    Only additive changes are applied; user data is never dropped. Returns
    the ``table.column`` names that were added.
    """
    if engine.dialect.name != "sqlite":
        return []

    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    added: list[str] = []

    for table_name, table in SQLModel.metadata.tables.items():
        if table_name not in existing_tables:
            continue
        db_columns = {col["name"] for col in inspector.get_columns(table_name)}
        missing = [col for col in table.columns if col.name not in db_columns]
        if not missing:
            continue

        logger.info("Adding columns to '%s': %s", table_name, [c.name for c in missing])
        with engine.begin() as conn:
            for col in missing:
                col_type = col.type.compile(dialect=engine.dialect)
                nullable = "" if col.nullable else " NOT NULL"
                default = _sqlite_default(col, col_type.upper())
                stmt = (
                    f'ALTER TABLE "{table_name}" '
                    f'ADD COLUMN "{col.name}" {col_type}{nullable}{default}'
                )
                logger.debug("  %s", stmt)
                conn.execute(text(stmt))
                added.append(f"{table_name}.{col.name}")
    return added


def create_db_and_tables(engine: Engine) -> None:
    """Create all tables from SQLModel metadata, then add any new columns."""
    SQLModel.metadata.create_all(engine)
    add_missing_columns(engine)
