import pytest

from core import db
from core.dialects import (
    Database,
    DatabaseError,
    PostgresDatabase,
    SqliteDatabase,
    affected_rows,
    translate_placeholders,
)
from core.migrations import migrate
from vacantes.repository import VACANTES


def test_translate_placeholders_numbers_in_order():
    sql = "UPDATE vacantes SET folio = ? WHERE id = ? AND folio IS NULL"
    assert translate_placeholders(sql) == "UPDATE vacantes SET folio = $1 WHERE id = $2 AND folio IS NULL"


def test_translate_placeholders_skips_quoted_question_marks():
    sql = "SELECT '¿qué?' AS q, \"col?\" FROM t WHERE a = ? AND b = 'it''s?' AND c = ?"
    assert translate_placeholders(sql) == (
        "SELECT '¿qué?' AS q, \"col?\" FROM t WHERE a = $1 AND b = 'it''s?' AND c = $2"
    )


def test_affected_rows_parses_command_tags():
    assert affected_rows("UPDATE 3") == 3
    assert affected_rows("DELETE 0") == 0
    assert affected_rows("INSERT 0 1") == 1
    assert affected_rows("CREATE TABLE") == 0
    assert affected_rows("") == 0


def test_postgres_rows_are_mapped_to_canonical_names():
    database = PostgresDatabase(None, [VACANTES])
    row = database._row_to_dict(
        {
            "id": 7,
            "tipoproceso": "Nueva",
            "fechainicio": "2025-03-01",
            "habilidades": [{"tipo": "tecnica", "habilidad": "SQL"}],
            "terna": '[{"nombre": "Ana"}]',
        }
    )
    assert row == {
        "id": 7,
        "tipoProceso": "Nueva",
        "fechaInicio": "2025-03-01",
        "habilidades": [{"tipo": "tecnica", "habilidad": "SQL"}],
        "terna": [{"nombre": "Ana"}],
    }


def test_invalid_json_text_reads_as_none():
    database = SqliteDatabase(":memory:", [VACANTES])
    assert database._row_to_dict({"habilidades": "not json"}) == {"habilidades": None}


@pytest.mark.asyncio
async def test_sqlite_insert_returns_increasing_ids_and_json_round_trips(sqlite_db):
    await migrate(sqlite_db, VACANTES)
    skills = [{"type": "tecnica", "name": "SQL"}]

    first = await sqlite_db.insert("vacantes", {"nombre": "A", "habilidades": skills})
    second = await sqlite_db.insert("vacantes", {"nombre": "B"})
    row = await sqlite_db.fetch_one("SELECT * FROM vacantes WHERE id = ?", first)

    assert second > first
    assert row["habilidades"] == skills
    assert row["terna"] is None


@pytest.mark.asyncio
async def test_sqlite_execute_reports_affected_rows(sqlite_db):
    await migrate(sqlite_db, VACANTES)
    new_id = await sqlite_db.insert("vacantes", {"nombre": "A"})

    assert await sqlite_db.execute("UPDATE vacantes SET area = ? WHERE id = ?", "IT", new_id) == 1
    assert await sqlite_db.execute("DELETE FROM vacantes WHERE id = ?", new_id + 100) == 0


@pytest.mark.asyncio
async def test_sqlite_requires_connect(tmp_path):
    database = SqliteDatabase(str(tmp_path / "closed.db"))
    with pytest.raises(DatabaseError):
        await database.fetch_all("SELECT 1")


def test_backend_selection_from_environment(monkeypatch, tmp_path):
    monkeypatch.delenv("PGHOST", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("SQLITE_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("SQLITE_FILE", "custom.db")

    database = db.build_database([VACANTES])
    assert isinstance(database, SqliteDatabase)
    assert database.path == str(tmp_path / "data" / "custom.db")

    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@host:5432/app?sslmode=require&application_name=x")
    database = db.build_database([VACANTES])
    assert isinstance(database, PostgresDatabase)
    assert database.dsn == "postgres://u:p@host:5432/app?application_name=x"
    assert database.ssl == "require"

    monkeypatch.delenv("DATABASE_URL")
    monkeypatch.setenv("PGHOST", "db.internal")
    database = db.build_database([VACANTES])
    assert isinstance(database, PostgresDatabase)
    assert database.dsn is None


def test_get_database_refuses_before_ready():
    from fastapi import HTTPException

    assert not db.is_ready()
    with pytest.raises(HTTPException) as excinfo:
        db.get_database()
    assert excinfo.value.status_code == 503


class RecordingPool:
    """Stands in for an asyncpg pool; records every call."""

    def __init__(self, *, rows=(), row=None, status="UPDATE 1"):
        self.rows = list(rows)
        self.row = row
        self.status = status
        self.calls: list[tuple[str, str, tuple]] = []

    async def fetch(self, sql, *args):
        self.calls.append(("fetch", sql, args))
        return self.rows

    async def fetchrow(self, sql, *args):
        self.calls.append(("fetchrow", sql, args))
        return self.row

    async def execute(self, sql, *args):
        self.calls.append(("execute", sql, args))
        return self.status


def _postgres_with(pool: RecordingPool) -> PostgresDatabase:
    database = PostgresDatabase(None, [VACANTES])
    database._pool = pool
    return database


@pytest.mark.asyncio
async def test_postgres_insert_returns_id_from_returning_clause():
    pool = RecordingPool(row={"id": 11})
    database = _postgres_with(pool)
    skills = [{"type": "tecnica", "name": "SQL"}]

    new_id = await database.insert("vacantes", {"nombre": "Dev", "tipoProceso": "Nueva", "habilidades": skills})

    assert new_id == 11
    kind, sql, args = pool.calls[0]
    assert kind == "fetchrow"
    assert sql == (
        "INSERT INTO vacantes (nombre, tipoProceso, habilidades) VALUES ($1, $2, $3) RETURNING id"
    )
    # Structured values go to the jsonb codec untouched.
    assert args == ("Dev", "Nueva", skills)


@pytest.mark.asyncio
async def test_postgres_insert_without_id_raises():
    database = _postgres_with(RecordingPool(row=None))
    with pytest.raises(DatabaseError):
        await database.insert("vacantes", {"nombre": "Dev"})


@pytest.mark.asyncio
async def test_postgres_queries_use_numbered_placeholders_and_canonical_rows():
    pool = RecordingPool(
        rows=[{"id": 2, "fechainicio": "2025-01-02", "terna": None}],
        row={"id": 2, "tipoproceso": "Reemplazo", "habilidades": '[{"name": "Go"}]'},
    )
    database = _postgres_with(pool)

    rows = await database.fetch_all("SELECT * FROM vacantes WHERE area = ? AND tipo = ?", "IT", "Full-time")
    one = await database.fetch_one("SELECT * FROM vacantes WHERE id = ?", 2)

    assert pool.calls[0] == ("fetch", "SELECT * FROM vacantes WHERE area = $1 AND tipo = $2", ("IT", "Full-time"))
    assert pool.calls[1] == ("fetchrow", "SELECT * FROM vacantes WHERE id = $1", (2,))
    assert rows == [{"id": 2, "fechaInicio": "2025-01-02", "terna": None}]
    assert one == {"id": 2, "tipoProceso": "Reemplazo", "habilidades": [{"name": "Go"}]}


@pytest.mark.asyncio
async def test_postgres_fetch_one_missing_row_is_none():
    database = _postgres_with(RecordingPool(row=None))
    assert await database.fetch_one("SELECT * FROM vacantes WHERE id = ?", 99) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(("status", "expected"), [("UPDATE 1", 1), ("DELETE 0", 0), ("DELETE 4", 4)])
async def test_postgres_execute_reads_affected_rows_from_command_tag(status, expected):
    pool = RecordingPool(status=status)
    database = _postgres_with(pool)

    affected = await database.execute("DELETE FROM vacantes WHERE id = ?", 5)

    assert affected == expected
    assert pool.calls == [("execute", "DELETE FROM vacantes WHERE id = $1", (5,))]


def test_postgres_requires_connect():
    with pytest.raises(DatabaseError):
        PostgresDatabase(None, [VACANTES]).pool()


def test_database_interface_is_abstract():
    with pytest.raises(TypeError):
        Database()
