"""
Notification API endpoint.
"""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from . import service

logger = logging.getLogger(__name__)

router = APIRouter()


class NotificationRequest(BaseModel):
    to: str = Field(..., min_length=3, max_length=320)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)


@router.post("/api/notificar")
async def notify(request: NotificationRequest) -> dict:
    try:
        return await service.send_notification(
            to=request.to,
            subject=request.subject,
            message=request.message,
        )
    except (service.MailError, httpx.HTTPError) as exc:
        logger.exception("notification_failed to=%s", request.to)
        raise HTTPException(status_code=502, detail="No se pudo enviar la notificación.") from exc
