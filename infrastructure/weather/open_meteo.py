"""open-meteo.com daily forecast client"""
import logging
from datetime import date
from typing import List, Optional

import httpx

from domain.gateways import WeatherFeed
from domain.value_objects import DailyForecast

logger = logging.getLogger(__name__)


class WeatherFeedError(Exception):
    """The feed could not be reached or returned an unusable payload"""


class OpenMeteoWeatherFeed(WeatherFeed):
    def __init__(
        self,
        base_url: str = "https://api.open-meteo.com/v1/forecast",
        timezone_name: str = "Europe/Minsk",
        timeout_seconds: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url
        self._timezone = timezone_name
        self._timeout = timeout_seconds
        self._http_client = http_client

    async def forecast(self, latitude: float, longitude: float, days: int) -> List[DailyForecast]:
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "daily": "temperature_2m_min,temperature_2m_max,precipitation_sum",
            "timezone": self._timezone,
            "forecast_days": days,
        }
        client = self._http_client or httpx.AsyncClient()
        close_client = self._http_client is None
        try:
            response = await client.get(self._base_url, params=params, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise WeatherFeedError(f"forecast request failed: {type(exc).__name__}") from exc
        finally:
            if close_client:
                await client.aclose()
        return parse_daily(payload)


def parse_daily(payload: dict) -> List[DailyForecast]:
    """Turn open-meteo's column-oriented ``daily`` block into rows"""
    try:
        daily = payload["daily"]
        days = daily["time"]
        minimums = daily["temperature_2m_min"]
        maximums = daily["temperature_2m_max"]
        precipitation = daily.get("precipitation_sum") or [None] * len(days)
        if not (len(days) == len(minimums) == len(maximums)):
            raise WeatherFeedError("daily columns differ in length")
        return [
            DailyForecast(
                day=date.fromisoformat(days[i]),
                min_temp=minimums[i],
                max_temp=maximums[i],
                precipitation=precipitation[i] if i < len(precipitation) else None,
            )
            for i in range(len(days))
        ]
    except (KeyError, TypeError, ValueError) as exc:
        raise WeatherFeedError(f"malformed forecast payload: {exc}") from exc
