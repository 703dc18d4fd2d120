"""
Database backends behind one query interface.

Two implementations:
- `SqliteDatabase`: embedded single-file database via aiosqlite.
- `PostgresDatabase`: networked database via an asyncpg pool.

SQL parameter style:
- callers always write `?` placeholders; the PostgreSQL backend rewrites
  them to $1, $2, $3, ... before sending.

Rows come back as dicts keyed by the canonical column names of the tables
the backend was built with (PostgreSQL folds unquoted identifiers to lower
case). JSON columns always come back as Python structures.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import aiosqlite
import asyncpg

from .migrations import JSON, Column, Table

logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    pass


def translate_placeholders(sql: str) -> str:
    """
    Rewrite `?` markers to `$n`, leaving quoted literals/identifiers alone.
    """
    out: list[str] = []
    n = 0
    quote: str | None = None
    for ch in sql:
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "?":
            n += 1
            out.append(f"${n}")
            continue
        out.append(ch)
    return "".join(out)


def affected_rows(status: str) -> int:
    """
    Parse an asyncpg command tag ("UPDATE 3", "INSERT 0 1", "CREATE TABLE").
    """
    tail = (status or "").rsplit(" ", 1)[-1]
    return int(tail) if tail.isdigit() else 0


class Database(ABC):
    """
    Shared row normalization. Subclasses implement the I/O.
    """

    dialect = ""
    primary_key_ddl = ""

    def __init__(self, tables: Iterable[Table] = ()) -> None:
        self._key_map: dict[str, str] = {}
        self._json_columns: set[str] = set()
        for table in tables:
            self.register_table(table)

    def register_table(self, table: Table) -> None:
        for name in table.column_names():
            self._key_map[name.lower()] = name
        self._json_columns |= table.json_columns()

    def _decode_json(self, key: str, value: Any) -> Any:
        if not isinstance(value, (str, bytes)):
            return value
        try:
            return json.loads(value)
        except ValueError:
            logger.warning("invalid_json_column column=%s", key)
            return None

    def _row_to_dict(self, row: Any) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for key in row.keys():
            name = self._key_map.get(key.lower(), key)
            value = row[key]
            if name in self._json_columns:
                value = self._decode_json(name, value)
            data[name] = value
        return data

    @abstractmethod
    def column_type(self, column: Column) -> str:
        """DDL type for a logical column kind."""

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        ...

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        rows = await self.fetch_all(sql, *args)
        return rows[0] if rows else None

    @abstractmethod
    async def execute(self, sql: str, *args: Any) -> int:
        """
        Run a statement and return the number of affected rows.
        """

    @abstractmethod
    async def insert(self, table: str, values: dict[str, Any]) -> int:
        """
        Insert one row and return its new primary key.
        """


class SqliteDatabase(Database):
    dialect = "sqlite"
    primary_key_ddl = "INTEGER PRIMARY KEY AUTOINCREMENT"

    def __init__(self, path: str, tables: Iterable[Table] = ()) -> None:
        super().__init__(tables)
        self.path = path
        self._conn: aiosqlite.Connection | None = None

    def column_type(self, column: Column) -> str:
        # No native JSON type: stored as serialized text.
        return "TEXT"

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise DatabaseError("SQLite connection is not open. Call connect() on startup.")
        return self._conn

    @staticmethod
    def _encode_args(args: Sequence[Any]) -> list[Any]:
        return [
            json.dumps(a, ensure_ascii=False) if isinstance(a, (list, dict)) else a
            for a in args
        ]

    async def connect(self) -> None:
        if self._conn is not None:
            return None
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.path)
        self._conn.row_factory = aiosqlite.Row

    async def close(self) -> None:
        if self._conn is None:
            return None
        await self._conn.close()
        self._conn = None

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        async with self._connection().execute(sql, self._encode_args(args)) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_dict(r) for r in rows]

    async def execute(self, sql: str, *args: Any) -> int:
        conn = self._connection()
        async with conn.execute(sql, self._encode_args(args)) as cursor:
            count = cursor.rowcount
        await conn.commit()
        return max(count, 0)

    async def insert(self, table: str, values: dict[str, Any]) -> int:
        columns = list(values)
        marks = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({marks})"
        conn = self._connection()
        async with conn.execute(sql, self._encode_args(list(values.values()))) as cursor:
            new_id = cursor.lastrowid
        await conn.commit()
        if new_id is None:
            raise DatabaseError(f"Failed to insert into {table}.")
        return int(new_id)

    async def table_columns(self, table: str) -> list[str]:
        rows = await self.fetch_all(f"PRAGMA table_info({table})")
        return [str(r["name"]) for r in rows]


async def _init_connection(conn: asyncpg.Connection) -> None:
    # Let asyncpg encode/decode jsonb as Python structures.
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=lambda v: json.dumps(v, ensure_ascii=False),
            decoder=json.loads,
            schema="pg_catalog",
        )


class PostgresDatabase(Database):
    dialect = "postgres"
    primary_key_ddl = "SERIAL PRIMARY KEY"

    def __init__(
        self,
        dsn: str | None,
        tables: Iterable[Table] = (),
        *,
        ssl: str | None = None,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: float = 30,
    ) -> None:
        super().__init__(tables)
        self.dsn = dsn
        self.ssl = ssl
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    def column_type(self, column: Column) -> str:
        return "JSONB" if column.kind == JSON else "TEXT"

    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise DatabaseError("DB pool is not initialized. Call connect() on startup.")
        return self._pool

    async def connect(self) -> None:
        if self._pool is not None:
            return None
        # dsn=None lets asyncpg fall back to PGHOST/PGUSER/... env vars.
        self._pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
            ssl=self.ssl,
            init=_init_connection,
        )

    async def close(self) -> None:
        if self._pool is None:
            return None
        await self._pool.close()
        self._pool = None

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        rows = await self.pool().fetch(translate_placeholders(sql), *args)
        return [self._row_to_dict(r) for r in rows]

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        row = await self.pool().fetchrow(translate_placeholders(sql), *args)
        return self._row_to_dict(row) if row is not None else None

    async def execute(self, sql: str, *args: Any) -> int:
        status = await self.pool().execute(translate_placeholders(sql), *args)
        return affected_rows(status)

    async def insert(self, table: str, values: dict[str, Any]) -> int:
        columns = list(values)
        marks = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({marks}) RETURNING id"
        row = await self.pool().fetchrow(sql, *values.values())
        if row is None or "id" not in row:
            raise DatabaseError(f"Failed to insert into {table}.")
        return int(row["id"])
