"""
Vacancy API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core import db
from core.dialects import Database

from . import schemas, service

router = APIRouter(prefix="/api/vacantes")


@router.get("")
async def list_vacantes(database: Database = Depends(db.get_database)) -> list[dict]:
    """
    All vacancies, most recent first.
    """
    return await service.list_vacantes(database)


@router.get("/{vacante_id}")
async def get_vacante(
    vacante_id: int,
    database: Database = Depends(db.get_database),
) -> dict:
    return await service.get_vacante(database, vacante_id)


@router.post("")
async def create_vacante(
    request: schemas.VacanteCreate,
    database: Database = Depends(db.get_database),
) -> dict:
    """
    Create a vacancy and return `{id, folio, fechaInicio}`.

    `folio` is null when the row was stored but the folio could not be set.
    """
    return await service.create_vacante(database, request)


@router.put("/{vacante_id}")
async def update_vacante(
    vacante_id: int,
    request: schemas.VacanteUpdate,
    database: Database = Depends(db.get_database),
) -> dict:
    return await service.update_vacante(database, vacante_id, request)


@router.delete("/{vacante_id}")
async def delete_vacante(
    vacante_id: int,
    database: Database = Depends(db.get_database),
) -> dict:
    return await service.delete_vacante(database, vacante_id)
