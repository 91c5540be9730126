"""
Outbound notification sink.

Best-effort delivery of branch-arrival invoices to a Telegram chat.
``send`` never raises: any failure is reported as False so the caller can
leave the affected items unmarked and retry on the next run.
"""

import logging
from typing import Optional, Protocol
import httpx
from cargo_backend.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger("cargo.telegram")


class NotificationSink(Protocol):
    async def send(self, channel_id: str, text: str, thread_id: Optional[int] = None) -> bool:
        ...


class TelegramSendError(Exception):
    pass


class TelegramNotificationSink:
    """Posts HTML messages through the Telegram Bot API ``sendMessage`` method."""

    def __init__(
        self,
        bot_token: Optional[str],
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.breaker = breaker
        self.transport = transport

    async def send(self, channel_id: str, text: str, thread_id: Optional[int] = None) -> bool:
        if not self.bot_token:
            logger.warning("Telegram bot token is not configured, message not sent")
            return False

        payload = {
            "chat_id": channel_id,
            "text": text,
            "parse_mode": "HTML",
        }
        if thread_id:
            payload["message_thread_id"] = thread_id

        try:
            if self.breaker is not None:
                await self.breaker.call(self._post, payload)
            else:
                await self._post(payload)
        except CircuitOpenError as e:
            logger.warning("Telegram send skipped: %s", e)
            return False
        except (httpx.HTTPError, TelegramSendError, ValueError) as e:
            logger.error("Failed to send Telegram message: %s", e)
            return False
        return True

    async def _post(self, payload: dict):
        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(url, json=payload)
        data = response.json()
        if not data.get("ok"):
            raise TelegramSendError(f"Telegram API error: {data}")
