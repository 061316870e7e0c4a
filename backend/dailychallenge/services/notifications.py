from __future__ import annotations
import httpx
import structlog
from dailychallenge.config import settings

log = structlog.get_logger()

SUBMISSION_CREATED = "submission.created"
WINNERS_ANNOUNCED = "winners.announced"


async def send(event: str, payload: dict) -> bool:
    """
    Fire-and-forget sink. Always logs the event; POSTs it to NOTIFICATION_WEBHOOK_URL
    when configured. Returns whether a webhook accepted it. Never raises on delivery problems.
    """
    log.info("notification", notification_event=event, **payload)
    url = settings.notification_webhook_url
    if not url:
        return False
    try:
        async with httpx.AsyncClient(timeout=settings.notification_timeout_seconds) as client:
            r = await client.post(url, json={"event": event, "payload": payload})
            r.raise_for_status()
    except httpx.HTTPError as e:
        log.warning("notification_failed", notification_event=event, error=str(e))
        return False
    return True
