"""Application settings loaded from the environment and an optional .env file"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # auth
    SECRET_KEY: str = "change-me-venue-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # time
    VENUE_TIMEZONE: str = "Europe/Minsk"

    # cash shifts
    SHIFT_CLOSURE_HOUR: int = 23
    RUNAWAY_SHIFT_HOURS: int = 24

    # holds
    PENDING_CALL_HOLD_MINUTES: int = 120
    PREPAYMENT_HOLD_HOURS: int = 24
    HOLD_SWEEP_MINUTES: int = 15

    # quads
    QUAD_FLEET_SIZE: int = 4
    QUAD_PROXIMITY_DISCOUNT_PERCENT: int = 5
    QUAD_INSTRUCTOR_BUFFER_MINUTES: int = 15

    PREPARATION_LEAD_HOURS: int = 2
    CLOSE_HOUR: int = 22

    # weather
    WEATHER_LATITUDE: float = 51.87728
    WEATHER_LONGITUDE: float = 24.0249
    FROST_THRESHOLD_C: float = 2.0
    FORECAST_DAYS: int = 3
    WEATHER_BASE_URL: str = "https://api.open-meteo.com/v1/forecast"

    # messaging
    TELEGRAM_BOT_TOKEN: str | None = None
    STAFF_CHAT_ID: str | None = None

    HTTP_TIMEOUT_SECONDS: float = 10.0
    SCHEDULER_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
