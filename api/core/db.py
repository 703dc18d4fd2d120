"""
Process-scoped database handle.

This module picks the backend once at startup, owns the connection, and
hands it to request handlers through `get_database`. FastAPI initializes it
in the lifespan and closes it on shutdown (see `api/main.py`).

Backend selection:
- DATABASE_URL (or PGHOST) set -> PostgreSQL via asyncpg
- otherwise                    -> SQLite file at SQLITE_DIR/SQLITE_FILE
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import HTTPException, status

from .dialects import Database, PostgresDatabase, SqliteDatabase
from .migrations import Table

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_FILE = "database.db"

_database: Database | None = None
_ready = False


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _split_sslmode(url: str) -> tuple[str, str | None]:
    """
    asyncpg rejects some libpq query params; pull `sslmode` out of the URL
    and return it separately so it can be passed as `ssl=`.
    """
    parts = urlsplit(url)
    if not parts.query:
        return url, None

    pairs = parse_qsl(parts.query, keep_blank_values=True)
    sslmode = next((v for (k, v) in pairs if k == "sslmode"), None)
    params = [(k, v) for (k, v) in pairs if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment)), sslmode


def database_url() -> str:
    return os.environ.get("DATABASE_URL", "").strip()


def use_postgres() -> bool:
    return bool(database_url() or os.environ.get("PGHOST", "").strip())


def sqlite_path() -> Path:
    directory = os.environ.get("SQLITE_DIR", "").strip()
    filename = os.environ.get("SQLITE_FILE", "").strip() or DEFAULT_SQLITE_FILE
    base = Path(directory) if directory else Path(__file__).resolve().parent.parent
    return base / filename


def build_database(tables: Iterable[Table] = ()) -> Database:
    """
    Construct (but do not connect) the backend chosen by the environment.
    """
    if use_postgres():
        dsn, sslmode = _split_sslmode(database_url())
        return PostgresDatabase(
            dsn or None,
            tables,
            ssl=sslmode if sslmode and sslmode != "disable" else None,
            max_size=_env_int("DB_POOL_MAX_SIZE", 5),
            command_timeout=_env_int("DB_COMMAND_TIMEOUT", 30),
        )

    path = sqlite_path()
    return SqliteDatabase(str(path), tables)


async def init_database(tables: Iterable[Table] = ()) -> Database | None:
    """
    Create and connect the backend once per process.

    Connection failures are logged and leave the process running without a
    database; requests then get 503 from `get_database`.
    """
    global _database
    if _database is not None:
        return _database

    try:
        database = build_database(tables)
        await database.connect()
    except Exception:
        logger.exception("database_connect_failed postgres=%s", use_postgres())
        return None

    _database = database
    logger.info("database_connected dialect=%s", database.dialect)
    return _database


async def close_database() -> None:
    global _database, _ready
    _ready = False
    if _database is None:
        return None
    await _database.close()
    _database = None


def mark_ready() -> None:
    global _ready
    _ready = True


def is_ready() -> bool:
    return _ready and _database is not None


def current() -> Database | None:
    return _database


def get_database() -> Database:
    """
    FastAPI dependency: the connected backend, once migrations have run.
    """
    if not is_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Base de datos no disponible.",
        )
    return _database
