import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from core import db, migrations
from notificaciones import router as notificaciones_router
from vacantes import repository as vacantes_repository
from vacantes import router as vacantes_router

logger = logging.getLogger(__name__)

TABLES = (vacantes_repository.VACANTES,)


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Connect and migrate once per process; requests are refused until ready.
    database = await db.init_database(TABLES)
    if database is not None:
        for table in TABLES:
            await migrations.migrate(database, table)
        db.mark_ready()
    try:
        yield
    finally:
        await db.close_database()


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "").strip()
    if not raw:
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


def frontend_dir() -> Path:
    raw = os.environ.get("FRONTEND_DIR", "").strip()
    if raw:
        return Path(raw)
    return Path(__file__).resolve().parent.parent / "Frontend"


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(vacantes_router.router, tags=["vacantes"])
app.include_router(notificaciones_router.router, tags=["notificaciones"])

if frontend_dir().is_dir():
    app.mount("/app", StaticFiles(directory=frontend_dir(), html=True), name="frontend")


@app.get("/health")
def health() -> dict:
    database = db.current()
    return {
        "status": "ok",
        "database": database.dialect if database is not None else None,
        "ready": db.is_ready(),
    }


@app.get("/")
def root() -> dict:
    return {"message": "Servidor PlayLearn Backend activo y funcionando"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.environ.get("PORT", "3000")))
