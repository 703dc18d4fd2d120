"""
Startup schema migrations.

`migrate()` makes the active backend's table match a `Table` description
without destructive operations:

- SQLite: create the table if missing, then `ADD COLUMN` for every column
  that `PRAGMA table_info` does not report.
- PostgreSQL: `CREATE TABLE IF NOT EXISTS`, `ADD COLUMN IF NOT EXISTS` for
  columns introduced after the first schema version, a descending index on
  the primary key, and a sequence resync to `MAX(id)`.

Every step is best-effort: failures are logged and the next step runs.
Re-running the whole migration against an up-to-date schema is a no-op.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .dialects import Database, SqliteDatabase

logger = logging.getLogger(__name__)

TEXT = "text"
JSON = "json"


@dataclass(frozen=True)
class Column:
    name: str
    kind: str = TEXT
    default: str | None = None
    # Schema version that introduced the column (1 = first table layout).
    since: int = 1


@dataclass(frozen=True)
class Table:
    name: str
    columns: tuple[Column, ...]
    primary_key: str = "id"

    def column_names(self) -> list[str]:
        return [self.primary_key, *(c.name for c in self.columns)]

    def json_columns(self) -> set[str]:
        return {c.name for c in self.columns if c.kind == JSON}


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def column_ddl(database: Database, column: Column) -> str:
    ddl = f"{column.name} {database.column_type(column)}"
    if column.default is not None:
        ddl += f" DEFAULT {_quote_literal(column.default)}"
    return ddl


def create_table_sql(database: Database, table: Table) -> str:
    parts = [f"{table.primary_key} {database.primary_key_ddl}"]
    parts.extend(column_ddl(database, c) for c in table.columns)
    body = ",\n  ".join(parts)
    return f"CREATE TABLE IF NOT EXISTS {table.name} (\n  {body}\n)"


async def _step(database: Database, label: str, sql: str) -> bool:
    try:
        await database.execute(sql)
    except Exception:
        logger.exception("migration_step_failed step=%s dialect=%s", label, database.dialect)
        return False
    return True


async def _migrate_sqlite(database: SqliteDatabase, table: Table) -> list[str]:
    added: list[str] = []
    await _step(database, f"create:{table.name}", create_table_sql(database, table))

    try:
        existing = set(await database.table_columns(table.name))
    except Exception:
        logger.exception("migration_inspect_failed table=%s", table.name)
        return added

    for column in table.columns:
        if column.name in existing:
            continue
        sql = f"ALTER TABLE {table.name} ADD COLUMN {column_ddl(database, column)}"
        if await _step(database, f"add_column:{table.name}.{column.name}", sql):
            added.append(column.name)
    return added


async def _migrate_postgres(database: Database, table: Table) -> list[str]:
    added: list[str] = []
    await _step(database, f"create:{table.name}", create_table_sql(database, table))

    for column in table.columns:
        if column.since <= 1:
            continue
        sql = f"ALTER TABLE {table.name} ADD COLUMN IF NOT EXISTS {column_ddl(database, column)}"
        if await _step(database, f"add_column:{table.name}.{column.name}", sql):
            added.append(column.name)

    pk = table.primary_key
    await _step(
        database,
        f"index:{table.name}.{pk}_desc",
        f"CREATE INDEX IF NOT EXISTS idx_{table.name}_{pk}_desc ON {table.name} ({pk} DESC)",
    )

    # setval() rejects 0, so an empty table is reset with is_called=false:
    # the next nextval() then returns MAX(id) + 1 (1 when empty).
    await _step(
        database,
        f"resync_sequence:{table.name}.{pk}",
        f"""
        SELECT setval(
          pg_get_serial_sequence({_quote_literal(table.name)}, {_quote_literal(pk)}),
          COALESCE(MAX({pk}), 0) + 1,
          false
        )
        FROM {table.name}
        """,
    )
    return added


async def migrate(database: Database, table: Table) -> list[str]:
    """
    Bring `table` up to date on the active backend.

    Returns the names of columns this run attempted to add successfully
    (always every post-initial column on PostgreSQL, since the guarded
    ALTER does not report whether it did anything).
    """
    if database.dialect == "postgres":
        added = await _migrate_postgres(database, table)
    else:
        added = await _migrate_sqlite(database, table)

    logger.info(
        "migration_complete table=%s dialect=%s columns_added=%s",
        table.name,
        database.dialect,
        ",".join(added) or "-",
    )
    return added
