"""
Vacantes persistence.
This module is where vacancy-related SQL lives.

Queries use `?` placeholders; the backend rewrites them for its dialect.
"""

from __future__ import annotations

from typing import Any

from core.dialects import Database
from core.migrations import JSON, Column, Table

VACANTES = Table(
    name="vacantes",
    columns=(
        Column("nombre", default=""),
        Column("area", default=""),
        Column("requisitor", default=""),
        Column("tipoProceso", default=""),
        Column("tipo", default=""),
        Column("prioridad", default=""),
        Column("comentarios", default=""),
        Column("estatus", default=""),
        Column("folio", since=2),
        Column("fechaInicio", since=2),
        Column("habilidades", kind=JSON, since=2),
        Column("terna", kind=JSON, since=3),
    ),
)

# Replaced wholesale by PUT; id, folio and fechaInicio are never touched.
MUTABLE_FIELDS = (
    "nombre",
    "area",
    "requisitor",
    "tipoProceso",
    "tipo",
    "prioridad",
    "comentarios",
    "estatus",
)
JSON_FIELDS = ("habilidades", "terna")

_SELECT = "SELECT " + ", ".join(VACANTES.column_names()) + " FROM vacantes"


async def list_vacantes(database: Database) -> list[dict[str, Any]]:
    return await database.fetch_all(_SELECT + " ORDER BY id DESC")


async def get_vacante(database: Database, vacante_id: int) -> dict[str, Any] | None:
    return await database.fetch_one(_SELECT + " WHERE id = ?", vacante_id)


async def insert_vacante(database: Database, values: dict[str, Any]) -> int:
    """
    Insert a vacancy (folio still NULL) and return its id.
    """
    return await database.insert(VACANTES.name, values)


async def set_folio(database: Database, vacante_id: int, folio: str) -> int:
    # Only fills a NULL folio: once assigned it is never recomputed.
    return await database.execute(
        "UPDATE vacantes SET folio = ? WHERE id = ? AND folio IS NULL",
        folio,
        vacante_id,
    )


async def update_vacante(database: Database, vacante_id: int, values: dict[str, Any]) -> int:
    """
    Overwrite the given columns of one vacancy. Returns affected row count.
    """
    columns = [c for c in values if c in MUTABLE_FIELDS or c in JSON_FIELDS]
    if not columns:
        raise ValueError("update_vacante called without updatable columns.")
    assignments = ", ".join(f"{c} = ?" for c in columns)
    return await database.execute(
        f"UPDATE vacantes SET {assignments} WHERE id = ?",
        *(values[c] for c in columns),
        vacante_id,
    )


async def delete_vacante(database: Database, vacante_id: int) -> int:
    return await database.execute("DELETE FROM vacantes WHERE id = ?", vacante_id)
