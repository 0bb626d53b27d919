"""Messenger used when no bot token is configured"""
import logging

from domain.gateways import MessagingGateway

logger = logging.getLogger(__name__)


class LoggingMessenger(MessagingGateway):
    async def send(self, channel: str, text: str) -> None:
        logger.info("staff_message channel=%s text=%s", channel, text)
