"""Venue Scheduler - shift reconciliation, mandated closure, recurring tasks and staff alerts

One ``VenueScheduler`` is built at startup and owns every collaborator it
touches. Each cadence runs as its own asyncio task; a failing job is logged
and the other cadences carry on.
"""
import asyncio
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, model_validator

from application.notifications import (
    StaffNotifier, shift_reminder_text, bookings_summary_text, climate_text, laundry_text,
    frost_alert_text, shifts_closed_text,
)
from application.services import BookingService, CashLedgerService, TaskService
from domain.entities import CashShift, ScheduledTaskDefinition, Task
from domain.enums import Cadence, CashBox, TaskType
from domain.gateways import WeatherFeed
from domain.repositories import CashShiftRepository
from infrastructure.clock import SystemClock
from infrastructure.settings import Settings

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


class CadenceSpec(BaseModel):
    """When a job fires: a local time of day (optionally limited to weekdays or
    days of the month), or a fixed interval."""
    name: str
    at: Optional[time] = None
    weekdays: Optional[FrozenSet[int]] = None
    month_days: Optional[FrozenSet[int]] = None
    every: Optional[timedelta] = None

    @model_validator(mode="after")
    def one_kind(self):
        if (self.at is None) == (self.every is None):
            raise ValueError("A cadence needs exactly one of 'at' or 'every'")
        return self

    def matches_day(self, day) -> bool:
        if self.weekdays is not None and day.weekday() not in self.weekdays:
            return False
        if self.month_days is not None and day.day not in self.month_days:
            return False
        return True

    def next_fire(self, after: datetime, tz) -> datetime:
        """First firing strictly after ``after``, returned in UTC"""
        if self.every is not None:
            return after + self.every
        local = after.astimezone(tz)
        day = local.date()
        for _ in range(400):
            candidate = datetime.combine(day, self.at, tzinfo=tz)
            if candidate > local and self.matches_day(day):
                return candidate.astimezone(timezone.utc)
            day += timedelta(days=1)
        raise ValueError(f"Cadence {self.name} never fires")

    class Config:
        frozen = True


def last_boundary(now: datetime, hour: int, tz) -> datetime:
    """Most recent occurrence of ``hour``:00 local time at or before ``now``"""
    local = now.astimezone(tz)
    boundary = datetime.combine(local.date(), time(hour, 0), tzinfo=tz)
    if boundary > local:
        boundary = datetime.combine(local.date() - timedelta(days=1), time(hour, 0), tzinfo=tz)
    return boundary


class VenueScheduler:
    def __init__(self,
                 shift_repo: CashShiftRepository,
                 ledger: CashLedgerService,
                 booking_service: BookingService,
                 task_service: TaskService,
                 notifier: StaffNotifier,
                 weather: WeatherFeed,
                 clock: SystemClock,
                 settings: Settings,
                 catalogue: List[ScheduledTaskDefinition]):
        self.shift_repo = shift_repo
        self.ledger = ledger
        self.booking_service = booking_service
        self.task_service = task_service
        self.notifier = notifier
        self.weather = weather
        self.clock = clock
        self.settings = settings
        self.catalogue = catalogue

        self._stop = asyncio.Event()
        self._tasks: List[asyncio.Task] = []
        self._jobs: Dict[str, Callable[[], Awaitable[object]]] = {
            "shift_closure": self.close_open_shifts,
            "daily_tasks": lambda: self.materialize_tasks(Cadence.DAILY),
            "weekly_tasks": lambda: self.materialize_tasks(Cadence.WEEKLY),
            "monthly_tasks": lambda: self.materialize_tasks(Cadence.MONTHLY),
            "shift_reminder": self.send_shift_reminder,
            "bookings_summary": self.send_bookings_summary,
            "climate_on": lambda: self.climate_control(True),
            "climate_off": lambda: self.climate_control(False),
            "laundry_checkin": self.send_laundry_reminder,
            "frost_check": self.check_frost,
            "hold_sweep": self.booking_service.expire_lapsed_holds,
        }

    def cadences(self) -> List[CadenceSpec]:
        s = self.settings
        return [
            CadenceSpec(name="shift_closure", at=time(s.SHIFT_CLOSURE_HOUR, 0)),
            CadenceSpec(name="daily_tasks", at=time(6, 0)),
            CadenceSpec(name="weekly_tasks", at=time(6, 0), weekdays=frozenset({0})),
            CadenceSpec(name="monthly_tasks", at=time(6, 0), month_days=frozenset({1})),
            CadenceSpec(name="shift_reminder", at=time(8, 30)),
            CadenceSpec(name="bookings_summary", at=time(9, 0)),
            CadenceSpec(name="climate_on", at=time(12, 0)),
            CadenceSpec(name="climate_off", at=time(14, 0)),
            CadenceSpec(name="laundry_checkin", at=time(15, 0)),
            CadenceSpec(name="frost_check", at=time(18, 0)),
            CadenceSpec(name="hold_sweep", every=timedelta(minutes=s.HOLD_SWEEP_MINUTES)),
        ]

    # ==================== LIFECYCLE ====================
    async def start(self) -> None:
        await self.run_job("startup_reconciliation", self.reconcile_shifts)
        self._stop.clear()
        for cadence in self.cadences():
            self._tasks.append(asyncio.create_task(self._loop(cadence), name=f"cadence:{cadence.name}"))
        logger.info("scheduler_started", extra={"count": len(self._tasks)})

    async def stop(self, grace_seconds: float = 30.0) -> None:
        """Let in-flight jobs finish, then cancel whatever is still running"""
        self._stop.set()
        if not self._tasks:
            return
        _, pending = await asyncio.wait(self._tasks, timeout=grace_seconds)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = []
        logger.info("scheduler_stopped")

    async def _loop(self, cadence: CadenceSpec) -> None:
        while not self._stop.is_set():
            now = self.clock.now()
            delay = (cadence.next_fire(now, self.clock.tz) - now).total_seconds()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=max(delay, 0))
                break
            except asyncio.TimeoutError:
                pass
            await self.run_job(cadence.name, self._jobs[cadence.name])

    async def run_job(self, name: str, job: Optional[Callable[[], Awaitable[object]]] = None) -> bool:
        """Run one job inside its own guard; returns whether it succeeded"""
        job = job or self._jobs[name]
        logger.info("job_started", extra={"job": name})
        try:
            result = await job()
        except Exception:  # noqa: BLE001
            logger.exception("job_failed", extra={"job": name})
            return False
        logger.info("job_complete", extra={"job": name, "count": _count(result)})
        return True

    # ==================== SHIFTS ====================
    async def reconcile_shifts(self) -> List[CashShift]:
        """Force-close runaway shifts and shifts that slept through a closure boundary"""
        now = self.clock.now()
        boundary = last_boundary(now, self.settings.SHIFT_CLOSURE_HOUR, self.clock.tz)
        runaway = self.settings.RUNAWAY_SHIFT_HOURS
        closed = []
        for shift in await self.shift_repo.find_all_open():
            if shift.open_hours(now) > runaway:
                reason = "runaway"
            elif shift.opened_at < boundary:
                reason = "missed_closure"
            else:
                continue
            closed_shift = await self.ledger.close_shift(shift.shift_id, SYSTEM_ACTOR)
            logger.warning(
                "shift_force_closed",
                extra={"shift_id": shift.shift_id, "cash_box": shift.cash_box.value, "reason": reason},
            )
            closed.append(closed_shift)
        if closed:
            await self.notifier.notify(shifts_closed_text(closed))
        return closed

    async def close_open_shifts(self) -> List[CashShift]:
        """Mandated daily closure of every open shift, whatever its balance"""
        closed = []
        for shift in await self.shift_repo.find_all_open():
            closed.append(await self.ledger.close_shift(shift.shift_id, SYSTEM_ACTOR))
        if closed:
            await self.notifier.notify(shifts_closed_text(closed))
        return closed

    # ==================== TASKS ====================
    async def materialize_tasks(self, cadence: Cadence) -> List[Task]:
        definitions = [d for d in self.catalogue if d.cadence == cadence]
        return await self.task_service.materialize(definitions, self.clock.today())

    async def climate_control(self, turn_on: bool) -> List[Task]:
        definition = ScheduledTaskDefinition(
            title="Climate control ON" if turn_on else "Climate control OFF",
            type=TaskType.CLIMATE_ON if turn_on else TaskType.CLIMATE_OFF,
            cadence=Cadence.DAILY,
        )
        created = await self.task_service.materialize([definition], self.clock.today())
        await self.notifier.notify(climate_text(turn_on))
        return created

    # ==================== NOTIFICATIONS ====================
    async def send_shift_reminder(self) -> bool:
        main_open = await self.shift_repo.find_open(CashBox.MAIN) is not None
        quads_open = await self.shift_repo.find_open(CashBox.QUADS) is not None
        return await self.notifier.notify(shift_reminder_text(main_open, quads_open))

    async def send_bookings_summary(self) -> bool:
        bookings = await self.booking_service.upcoming(self.clock.today())
        return await self.notifier.notify(bookings_summary_text(bookings))

    async def send_laundry_reminder(self) -> bool:
        return await self.notifier.notify(laundry_text())

    async def check_frost(self) -> bool:
        """Alert when any forecast minimum is below the threshold; feed trouble means no alert"""
        s = self.settings
        try:
            forecasts = await self.weather.forecast(s.WEATHER_LATITUDE, s.WEATHER_LONGITUDE, s.FORECAST_DAYS)
        except Exception as exc:  # noqa: BLE001
            logger.warning("weather_feed_failed", extra={"job": "frost_check", "reason": str(exc)})
            return False
        cold_days = [f for f in forecasts if f.min_temp < s.FROST_THRESHOLD_C]
        if not cold_days:
            return False
        await self.notifier.notify(frost_alert_text(cold_days, s.FROST_THRESHOLD_C))
        return True


def _count(result) -> Optional[int]:
    if isinstance(result, list):
        return len(result)
    if isinstance(result, int) and not isinstance(result, bool):
        return result
    return None
