"""
Pydantic schemas for vacancy endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class VacanteBase(BaseModel):
    nombre: str = ""
    area: str = ""
    requisitor: str = ""
    tipoProceso: str = ""
    tipo: str = ""
    prioridad: str = ""
    comentarios: str = ""


class VacanteCreate(VacanteBase):
    estatus: str | None = None
    # Optional start date from the form; anything that is not YYYY-MM-DD
    # (after truncation to 10 chars) falls back to today.
    fechaIngreso: str | None = None


class VacanteUpdate(VacanteBase):
    estatus: str = ""
    habilidades: list[Any] | None = None
    terna: list[Any] | None = None
