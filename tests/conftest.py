import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from core.dialects import SqliteDatabase
from vacantes.repository import VACANTES


@pytest.fixture
def sqlite_env(tmp_path, monkeypatch):
    # Force the embedded backend into a fresh file per test.
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("PGHOST", raising=False)
    monkeypatch.setenv("SQLITE_DIR", str(tmp_path))
    monkeypatch.setenv("SQLITE_FILE", "vacantes-test.db")
    return tmp_path / "vacantes-test.db"


@pytest.fixture
def client(sqlite_env):
    from main import app

    with TestClient(app) as c:
        yield c


@pytest_asyncio.fixture
async def sqlite_db(tmp_path):
    database = SqliteDatabase(str(tmp_path / "store.db"), [VACANTES])
    await database.connect()
    try:
        yield database
    finally:
        await database.close()
