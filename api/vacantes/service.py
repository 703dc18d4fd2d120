"""
Vacancy business logic.

Scope:
- derive `fechaInicio` and the human-readable folio
- two-phase create (insert, then assign folio from the new id)
- map storage failures to generic HTTP errors (details stay in the logs)
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any

from fastapi import HTTPException

from core.dialects import Database

from . import repository, schemas

logger = logging.getLogger(__name__)

DEFAULT_ESTATUS = "Por iniciar"
FOLIO_PREFIX = "PL"

NOT_FOUND = "Vacante no encontrada"

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


def make_folio(vacante_id: int, on: date) -> str:
    return f"{FOLIO_PREFIX}-{on:%Y%m%d}-{vacante_id:04d}"


def resolve_fecha_inicio(raw: str | None, today: date) -> str:
    """
    Use the caller's date when its first 10 chars are a valid YYYY-MM-DD date,
    else today.
    """
    candidate = (raw or "").strip()[:10]
    if not _ISO_DATE.fullmatch(candidate):
        return today.isoformat()
    try:
        return date.fromisoformat(candidate).isoformat()
    except ValueError:
        return today.isoformat()


def _server_error(detail: str) -> HTTPException:
    return HTTPException(status_code=500, detail=detail)


async def list_vacantes(database: Database) -> list[dict[str, Any]]:
    try:
        return await repository.list_vacantes(database)
    except Exception as exc:
        logger.exception("vacantes_list_failed")
        raise _server_error("Error al listar vacantes") from exc


async def get_vacante(database: Database, vacante_id: int) -> dict[str, Any]:
    try:
        row = await repository.get_vacante(database, vacante_id)
    except Exception as exc:
        logger.exception("vacante_get_failed id=%s", vacante_id)
        raise _server_error("Error al obtener la vacante") from exc

    if row is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return row


async def create_vacante(
    database: Database,
    payload: schemas.VacanteCreate,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    """
    Insert the row, then derive and store its folio.

    The two steps are not atomic: a reader may briefly see `folio = NULL`.
    If the folio update fails the insert is kept and the caller gets
    `folio: None` instead of an error.
    """
    today = today or date.today()
    fecha_inicio = resolve_fecha_inicio(payload.fechaIngreso, today)

    values: dict[str, Any] = payload.model_dump(include=set(repository.MUTABLE_FIELDS))
    values["estatus"] = payload.estatus or DEFAULT_ESTATUS
    values["fechaInicio"] = fecha_inicio
    values["folio"] = None

    try:
        vacante_id = await repository.insert_vacante(database, values)
    except Exception as exc:
        logger.exception("vacante_insert_failed")
        raise _server_error("Error al guardar la vacante") from exc

    folio: str | None = make_folio(vacante_id, today)
    try:
        if await repository.set_folio(database, vacante_id, folio) == 0:
            logger.warning("folio_not_assigned id=%s", vacante_id)
            folio = None
    except Exception:
        logger.exception("folio_update_failed id=%s", vacante_id)
        folio = None

    logger.info("vacante_created id=%s folio=%s", vacante_id, folio)
    return {"id": vacante_id, "folio": folio, "fechaInicio": fecha_inicio}


async def update_vacante(
    database: Database,
    vacante_id: int,
    payload: schemas.VacanteUpdate,
) -> dict[str, Any]:
    values: dict[str, Any] = payload.model_dump(include=set(repository.MUTABLE_FIELDS))
    # Structured columns are only replaced when the body carries them.
    for field in repository.JSON_FIELDS:
        if field in payload.model_fields_set:
            values[field] = getattr(payload, field)

    try:
        affected = await repository.update_vacante(database, vacante_id, values)
        row = await repository.get_vacante(database, vacante_id) if affected else None
    except Exception as exc:
        logger.exception("vacante_update_failed id=%s", vacante_id)
        raise _server_error("Error al actualizar la vacante") from exc

    if row is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    logger.info("vacante_updated id=%s", vacante_id)
    return row


async def delete_vacante(database: Database, vacante_id: int) -> dict[str, str]:
    try:
        affected = await repository.delete_vacante(database, vacante_id)
    except Exception as exc:
        logger.exception("vacante_delete_failed id=%s", vacante_id)
        raise _server_error("Error al eliminar la vacante") from exc

    if affected == 0:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    logger.info("vacante_deleted id=%s", vacante_id)
    return {"message": "Vacante eliminada correctamente"}
