"""
services/notification/notifier.py
Push-style ping to the operator's messaging endpoint when slots are sold.

The endpoint takes its arguments as query parameters:
    GET {NOTIFY_URL}?nickname=..&title=..&body=..&secretKey=..
"""

import logging
from typing import Optional

import httpx

from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.settings.NOTIFY_URL)

    async def notify(self, title: str, body: str) -> None:
        """Send one message. Raises on transport or HTTP errors; callers wrap it as non-critical."""
        if not self.enabled:
            logger.debug("NOTIFY_URL not set, skipping notification")
            return

        params = {
            "nickname": self.settings.NOTIFY_NICKNAME,
            "title": title,
            "body": body,
            "secretKey": self.settings.NOTIFY_SECRET_KEY,
        }
        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            response = await client.get(self.settings.NOTIFY_URL, params=params)
            response.raise_for_status()


def get_notifier() -> Notifier:
    """FastAPI dependency. Overridden in tests."""
    return Notifier(get_settings())
