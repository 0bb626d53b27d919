"""Domain Gateway Interfaces - outbound collaborators"""
from abc import ABC, abstractmethod
from typing import List

from domain.value_objects import DailyForecast


class MessagingGateway(ABC):
    """Delivers plain-text staff notifications"""

    @abstractmethod
    async def send(self, channel: str, text: str) -> None:
        """Send a message; may raise on delivery failure"""
        pass


class WeatherFeed(ABC):
    """Daily forecast source"""

    @abstractmethod
    async def forecast(self, latitude: float, longitude: float, days: int) -> List[DailyForecast]:
        """Return one entry per day, starting today"""
        pass
