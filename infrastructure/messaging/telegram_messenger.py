"""Telegram Bot API messenger"""
import logging
from typing import Optional

import httpx

from domain.gateways import MessagingGateway

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramMessenger(MessagingGateway):
    def __init__(
        self,
        bot_token: str,
        timeout_seconds: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._bot_token = bot_token
        self._timeout = timeout_seconds
        self._http_client = http_client

    async def send(self, channel: str, text: str) -> None:
        """Post a message to a chat; raises httpx.HTTPError on failure"""
        url = f"{TELEGRAM_API_URL}/bot{self._bot_token}/sendMessage"
        client = self._http_client or httpx.AsyncClient()
        close_client = self._http_client is None
        try:
            response = await client.post(
                url,
                json={"chat_id": channel, "text": text},
                timeout=self._timeout,
            )
            response.raise_for_status()
        finally:
            if close_client:
                await client.aclose()
        logger.info("telegram_message_sent", extra={"count": len(text)})
