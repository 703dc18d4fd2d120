"""
Email notifications through the SendGrid v3 HTTP API.

Used endpoint:
- POST /v3/mail/send  -> 202 Accepted (empty body)

Without SENDGRID_API_KEY the send is simulated so local setups work.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

logger = logging.getLogger(__name__)

SENDGRID_BASE_URL = "https://api.sendgrid.com"
DEFAULT_MAIL_FROM = "no-reply@playlearn.local"


class MailError(RuntimeError):
    pass


def sendgrid_api_key() -> str:
    return os.environ.get("SENDGRID_API_KEY", "").strip()


def mail_from() -> str:
    return os.environ.get("MAIL_FROM", DEFAULT_MAIL_FROM).strip() or DEFAULT_MAIL_FROM


def build_payload(*, to: str, subject: str, message: str, sender: str) -> dict[str, Any]:
    return {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": sender},
        "subject": subject,
        "content": [{"type": "text/plain", "value": message}],
    }


async def _post_mail(payload: dict[str, Any], *, api_key: str, timeout_s: float = 15.0) -> None:
    async with httpx.AsyncClient(base_url=SENDGRID_BASE_URL, timeout=timeout_s) as client:
        resp = await client.post(
            "/v3/mail/send",
            json=payload,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    if resp.status_code not in (200, 202):
        # Keep the provider's answer out of the HTTP response; log a snippet.
        raise MailError(f"SendGrid request failed: {resp.status_code} {resp.text[:300]}")


async def send_notification(*, to: str, subject: str, message: str) -> dict[str, Any]:
    api_key = sendgrid_api_key()
    if not api_key:
        logger.info("notification_simulated to=%s subject=%s", to, subject)
        return {"ok": True, "simulated": True}

    payload = build_payload(to=to, subject=subject, message=message, sender=mail_from())
    await _post_mail(payload, api_key=api_key)
    logger.info("notification_sent to=%s", to)
    return {"ok": True, "simulated": False}
