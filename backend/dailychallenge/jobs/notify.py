from __future__ import annotations
import asyncio
from dailychallenge.services.notifications import send

def deliver(event: str, payload: dict):
    # RQ entry point (sync); delivery problems are logged inside send()
    asyncio.run(send(event, payload))
