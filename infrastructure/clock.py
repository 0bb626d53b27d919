"""Clocks. Everything time-dependent takes one of these instead of calling datetime.now()"""
from datetime import datetime, timedelta, timezone, date
from zoneinfo import ZoneInfo


class SystemClock:
    def __init__(self, tz: str = "Europe/Minsk"):
        self.tz = ZoneInfo(tz)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def local_now(self) -> datetime:
        return self.now().astimezone(self.tz)

    def today(self) -> date:
        return self.local_now().date()


class FrozenClock(SystemClock):
    """Clock pinned to a moment; tests move it explicitly"""

    def __init__(self, moment: datetime, tz: str = "Europe/Minsk"):
        super().__init__(tz)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self.tz)
        self._moment = moment.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._moment

    def advance(self, delta: timedelta) -> None:
        self._moment += delta

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self.tz)
        self._moment = moment.astimezone(timezone.utc)
