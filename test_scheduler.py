#!/usr/bin/env python3
"""
Scheduler and outbound adapter tests
Cadence arithmetic, shift reconciliation, recurring tasks, staff alerts,
and the Telegram / open-meteo clients against a mocked transport
"""

import asyncio
import json
import logging
import pytest
import httpx
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from application.notifications import StaffNotifier
from application.scheduler import CadenceSpec, last_boundary, SYSTEM_ACTOR
from domain.enums import Cadence, CashBox, TaskType
from domain.value_objects import CustomerContact, DailyForecast
from infrastructure.clock import FrozenClock
from infrastructure.container import VenueContainer, build_messenger
from infrastructure.locks import KeyedLock
from infrastructure.logging_config import ContextFormatter
from infrastructure.messaging.logging_messenger import LoggingMessenger
from infrastructure.messaging.telegram_messenger import TelegramMessenger
from infrastructure.settings import Settings
from infrastructure.weather.open_meteo import OpenMeteoWeatherFeed, WeatherFeedError, parse_daily


MINSK = ZoneInfo("Europe/Minsk")


# ============================================================================
# FAKES
# ============================================================================

class RecordingMessenger:
    def __init__(self):
        self.sent = []

    async def send(self, channel, text):
        self.sent.append((channel, text))


class BrokenMessenger:
    async def send(self, channel, text):
        raise RuntimeError("bot is down")


class StubWeather:
    def __init__(self, forecasts=None, error=None):
        self.forecasts = forecasts or []
        self.error = error

    async def forecast(self, latitude, longitude, days):
        if self.error:
            raise self.error
        return self.forecasts


def _forecast(day, min_temp, max_temp=10.0):
    return DailyForecast(day=day, min_temp=min_temp, max_temp=max_temp)


OPEN_METEO_PAYLOAD = {
    "daily": {
        "time": ["2025-10-20", "2025-10-21", "2025-10-22"],
        "temperature_2m_min": [3.1, 1.4, -0.5],
        "temperature_2m_max": [11.0, 9.2, 6.8],
        "precipitation_sum": [0.0, 2.3, 0.4],
    }
}


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    return Settings(SCHEDULER_ENABLED=False, TELEGRAM_BOT_TOKEN=None, STAFF_CHAT_ID=None)


@pytest.fixture
def clock():
    """Saturday 2025-05-31 09:00 venue time"""
    return FrozenClock(datetime(2025, 5, 31, 9, 0))


@pytest.fixture
def messenger():
    return RecordingMessenger()


@pytest.fixture
def weather():
    return StubWeather([_forecast(date(2025, 5, 31), 8.0), _forecast(date(2025, 6, 1), 6.5)])


@pytest.fixture
def container(settings, clock, messenger, weather):
    return VenueContainer(settings, clock=clock, messenger=messenger, weather=weather)


@pytest.fixture
def scheduler(container):
    return container.scheduler


# ============================================================================
# CADENCE TESTS
# ============================================================================

class TestCadenceSpec:
    """Next firing time computation"""

    @pytest.mark.unit
    @pytest.mark.scheduler
    def test_daily_rolls_to_tomorrow(self):
        cadence = CadenceSpec(name="daily_tasks", at=time(6, 0))
        after = datetime(2025, 5, 31, 9, 0, tzinfo=MINSK)
        assert cadence.next_fire(after, MINSK).astimezone(MINSK) == datetime(2025, 6, 1, 6, 0, tzinfo=MINSK)

    @pytest.mark.unit
    @pytest.mark.scheduler
    def test_daily_later_today(self):
        cadence = CadenceSpec(name="frost_check", at=time(18, 0))
        after = datetime(2025, 5, 31, 9, 0, tzinfo=MINSK)
        assert cadence.next_fire(after, MINSK).astimezone(MINSK) == datetime(2025, 5, 31, 18, 0, tzinfo=MINSK)

    @pytest.mark.unit
    @pytest.mark.scheduler
    @pytest.mark.edge_case
    def test_fire_is_strictly_after(self):
        cadence = CadenceSpec(name="shift_closure", at=time(23, 0))
        after = datetime(2025, 5, 31, 23, 0, tzinfo=MINSK)
        assert cadence.next_fire(after, MINSK).astimezone(MINSK) == datetime(2025, 6, 1, 23, 0, tzinfo=MINSK)

    @pytest.mark.unit
    @pytest.mark.scheduler
    def test_weekly_on_monday(self):
        cadence = CadenceSpec(name="weekly_tasks", at=time(6, 0), weekdays=frozenset({0}))
        after = datetime(2025, 5, 31, 9, 0, tzinfo=MINSK)
        fire = cadence.next_fire(after, MINSK).astimezone(MINSK)
        assert fire == datetime(2025, 6, 2, 6, 0, tzinfo=MINSK)
        assert fire.weekday() == 0

    @pytest.mark.unit
    @pytest.mark.scheduler
    def test_monthly_on_first(self):
        cadence = CadenceSpec(name="monthly_tasks", at=time(6, 0), month_days=frozenset({1}))
        early = datetime(2025, 5, 31, 9, 0, tzinfo=MINSK)
        assert cadence.next_fire(early, MINSK).astimezone(MINSK) == datetime(2025, 6, 1, 6, 0, tzinfo=MINSK)
        late = datetime(2025, 6, 1, 7, 0, tzinfo=MINSK)
        assert cadence.next_fire(late, MINSK).astimezone(MINSK) == datetime(2025, 7, 1, 6, 0, tzinfo=MINSK)

    @pytest.mark.unit
    @pytest.mark.scheduler
    def test_interval(self):
        cadence = CadenceSpec(name="hold_sweep", every=timedelta(minutes=15))
        after = datetime(2025, 5, 31, 9, 0, tzinfo=MINSK)
        assert cadence.next_fire(after, MINSK) == after + timedelta(minutes=15)

    @pytest.mark.unit
    @pytest.mark.scheduler
    @pytest.mark.edge_case
    def test_needs_exactly_one_kind(self):
        with pytest.raises(ValueError):
            CadenceSpec(name="broken")
        with pytest.raises(ValueError):
            CadenceSpec(name="broken", at=time(6, 0), every=timedelta(minutes=5))

    @pytest.mark.unit
    @pytest.mark.scheduler
    def test_last_boundary(self):
        morning = datetime(2025, 5, 31, 9, 0, tzinfo=MINSK)
        assert last_boundary(morning, 23, MINSK) == datetime(2025, 5, 30, 23, 0, tzinfo=MINSK)
        late = datetime(2025, 5, 31, 23, 30, tzinfo=MINSK)
        assert last_boundary(late, 23, MINSK) == datetime(2025, 5, 31, 23, 0, tzinfo=MINSK)

    @pytest.mark.unit
    @pytest.mark.scheduler
    def test_every_job_has_a_cadence(self, scheduler):
        names = {cadence.name for cadence in scheduler.cadences()}
        assert names == set(scheduler._jobs)


# ============================================================================
# SHIFT RECONCILIATION TESTS
# ============================================================================

class TestShiftReconciliation:
    """Startup reconciliation and the mandated closure"""

    @pytest.mark.scheduler
    async def test_shift_that_missed_closure_is_closed(self, scheduler, container, clock, messenger):
        clock.set(datetime(2025, 5, 31, 22, 0))
        shift = await container.ledger.open_shift(CashBox.MAIN, "admin")
        clock.set(datetime(2025, 6, 1, 8, 0))

        closed = await scheduler.reconcile_shifts()
        assert [s.shift_id for s in closed] == [shift.shift_id]
        assert shift.is_open is False
        assert shift.closed_by == SYSTEM_ACTOR
        assert "main" in messenger.sent[-1][1]

    @pytest.mark.scheduler
    async def test_runaway_shift_is_closed(self, scheduler, container, clock):
        clock.set(datetime(2025, 5, 29, 10, 0))
        shift = await container.ledger.open_shift(CashBox.QUADS, "instructor")
        clock.set(datetime(2025, 5, 31, 9, 0))

        await scheduler.reconcile_shifts()
        assert shift.is_open is False
        assert shift.closed_by == SYSTEM_ACTOR

    @pytest.mark.scheduler
    async def test_fresh_shift_is_kept(self, scheduler, container, clock, messenger):
        clock.set(datetime(2025, 6, 1, 7, 0))
        shift = await container.ledger.open_shift(CashBox.MAIN, "admin")
        clock.set(datetime(2025, 6, 1, 8, 0))

        assert await scheduler.reconcile_shifts() == []
        assert shift.is_open
        assert messenger.sent == []

    @pytest.mark.scheduler
    async def test_reconciliation_is_idempotent(self, scheduler, container, clock):
        clock.set(datetime(2025, 5, 30, 12, 0))
        shift = await container.ledger.open_shift(CashBox.MAIN, "admin")
        clock.set(datetime(2025, 5, 31, 9, 0))
        await scheduler.reconcile_shifts()
        closed_at = shift.closed_at
        clock.advance(timedelta(minutes=10))
        assert await scheduler.reconcile_shifts() == []
        assert shift.closed_at == closed_at

    @pytest.mark.scheduler
    async def test_mandated_closure_closes_every_box(self, scheduler, container, messenger):
        await container.ledger.open_shift(CashBox.MAIN, "admin")
        await container.ledger.open_shift(CashBox.QUADS, "instructor")

        assert await scheduler.run_job("shift_closure") is True
        assert await container.ledger.current_shift(CashBox.MAIN) is None
        assert await container.ledger.current_shift(CashBox.QUADS) is None
        assert messenger.sent[-1][1] == "Cash shifts closed automatically: main, quads."

    @pytest.mark.scheduler
    async def test_closure_with_nothing_open_sends_nothing(self, scheduler, messenger):
        assert await scheduler.close_open_shifts() == []
        assert messenger.sent == []


# ============================================================================
# RECURRING TASK TESTS
# ============================================================================

class TestRecurringTasks:
    """Materialization of the task catalogue"""

    @pytest.mark.scheduler
    async def test_daily_tasks_materialize_once(self, scheduler, container, clock):
        assert await scheduler.run_job("daily_tasks")
        assert await scheduler.run_job("daily_tasks")
        tasks = await container.task_service.list_tasks(clock.today())
        assert len(tasks) == 3
        assert all(t.created_by_system for t in tasks)

    @pytest.mark.scheduler
    async def test_weekly_tasks(self, scheduler, container, clock):
        created = await scheduler.materialize_tasks(Cadence.WEEKLY)
        assert len(created) == 6
        assert {t.unit_code for t in created if t.type == TaskType.CLEANING} == {"C1", "C2", "C3", "C4"}
        assert await scheduler.materialize_tasks(Cadence.WEEKLY) == []

    @pytest.mark.scheduler
    async def test_monthly_tasks_carry_checklists(self, scheduler, container, clock):
        await scheduler.run_job("monthly_tasks")
        tasks = await container.task_service.list_tasks(clock.today())
        meters = [t for t in tasks if t.type == TaskType.METERS]
        assert len(meters) == 1
        assert meters[0].checklist == ["Electricity", "Water", "Gas"]

    @pytest.mark.scheduler
    async def test_climate_control_creates_task_and_notifies(self, scheduler, container, clock, messenger):
        await scheduler.climate_control(True)
        await scheduler.climate_control(True)
        tasks = await container.task_service.list_tasks(clock.today())
        assert [t.type for t in tasks] == [TaskType.CLIMATE_ON]
        assert len(messenger.sent) == 2
        assert "ON" in messenger.sent[0][1]

    @pytest.mark.scheduler
    async def test_completed_task_is_not_recreated(self, scheduler, container, clock):
        created = await scheduler.materialize_tasks(Cadence.DAILY)
        await container.task_service.complete_task(created[0].task_id)
        await scheduler.materialize_tasks(Cadence.DAILY)
        tasks = await container.task_service.list_tasks(clock.today())
        assert len(tasks) == 3
        assert tasks[-1].status.value == "done"


# ============================================================================
# NOTIFICATION TESTS
# ============================================================================

class TestStaffNotifications:
    """Reminders, summaries and frost alerts"""

    @pytest.mark.scheduler
    async def test_shift_reminder_names_closed_boxes(self, scheduler, container, messenger):
        await scheduler.send_shift_reminder()
        assert "main, quads" in messenger.sent[-1][1]
        await container.ledger.open_shift(CashBox.MAIN, "admin")
        await scheduler.send_shift_reminder()
        assert messenger.sent[-1][1].endswith("quads.")

    @pytest.mark.scheduler
    async def test_bookings_summary(self, scheduler, container, clock, messenger):
        await scheduler.send_bookings_summary()
        assert messenger.sent[-1][1] == "No bookings today."

        guest = CustomerContact(full_name="Olga S", phone="+375447654321")
        await container.booking_service.create_booking("B1", clock.today(), time(11), time(14), 3, guest)
        await scheduler.send_bookings_summary()
        summary = messenger.sent[-1][1]
        assert summary.startswith("Bookings today: 1")
        assert "11:00-14:00 B1" in summary

    @pytest.mark.scheduler
    async def test_laundry_reminder(self, scheduler, messenger):
        assert await scheduler.send_laundry_reminder() is True
        assert "Laundry" in messenger.sent[-1][1]

    @pytest.mark.scheduler
    async def test_frost_alert_when_below_threshold(self, scheduler, messenger):
        scheduler.weather = StubWeather([
            _forecast(date(2025, 10, 20), 3.1),
            _forecast(date(2025, 10, 21), 1.4),
        ])
        assert await scheduler.check_frost() is True
        text = messenger.sent[-1][1]
        assert "21.10" in text
        assert "20.10" not in text

    @pytest.mark.scheduler
    async def test_no_alert_when_warm(self, scheduler, messenger):
        assert await scheduler.check_frost() is False
        assert messenger.sent == []

    @pytest.mark.scheduler
    @pytest.mark.edge_case
    async def test_feed_failure_means_no_alert(self, scheduler, messenger):
        scheduler.weather = StubWeather(error=WeatherFeedError("timeout"))
        assert await scheduler.check_frost() is False
        assert await scheduler.run_job("frost_check") is True
        assert messenger.sent == []

    @pytest.mark.scheduler
    @pytest.mark.edge_case
    async def test_broken_messenger_never_propagates(self, scheduler):
        scheduler.notifier = StaffNotifier(BrokenMessenger())
        assert await scheduler.send_laundry_reminder() is False
        assert await scheduler.run_job("laundry_checkin") is True


# ============================================================================
# JOB RUNNER TESTS
# ============================================================================

class TestJobRunner:
    """Job isolation and scheduler lifecycle"""

    @pytest.mark.scheduler
    async def test_failing_job_is_isolated(self, scheduler, container, clock):
        async def explode():
            raise RuntimeError("boom")

        assert await scheduler.run_job("custom", explode) is False
        assert await scheduler.run_job("daily_tasks") is True
        assert len(await container.task_service.list_tasks(clock.today())) == 3

    @pytest.mark.scheduler
    async def test_hold_sweep_job(self, scheduler, container, clock):
        guest = CustomerContact(full_name="Olga S", phone="+375447654321")
        booking = await container.booking_service.create_booking(
            "B2", date(2025, 6, 1), time(10), time(13), 3, guest
        )
        clock.advance(timedelta(hours=2, minutes=1))
        assert await scheduler.run_job("hold_sweep") is True
        stored = await container.booking_service.get_booking(booking.booking_id)
        assert stored.status.value == "expired"

    @pytest.mark.scheduler
    async def test_start_reconciles_then_stop(self, scheduler, container, clock):
        clock.set(datetime(2025, 5, 30, 12, 0))
        shift = await container.ledger.open_shift(CashBox.MAIN, "admin")
        clock.set(datetime(2025, 5, 31, 9, 0))

        await scheduler.start()
        assert shift.is_open is False
        assert len(scheduler._tasks) == len(scheduler.cadences())

        await scheduler.stop(grace_seconds=1)
        assert scheduler._tasks == []


# ============================================================================
# ADAPTER TESTS
# ============================================================================

class TestOpenMeteoFeed:
    """Forecast parsing and the HTTP client"""

    @pytest.mark.unit
    def test_parse_daily(self):
        rows = parse_daily(OPEN_METEO_PAYLOAD)
        assert [r.day for r in rows] == [date(2025, 10, 20), date(2025, 10, 21), date(2025, 10, 22)]
        assert rows[2].min_temp == -0.5
        assert rows[1].precipitation == 2.3

    @pytest.mark.unit
    @pytest.mark.edge_case
    def test_parse_malformed(self):
        with pytest.raises(WeatherFeedError):
            parse_daily({"hourly": {}})
        with pytest.raises(WeatherFeedError):
            parse_daily({"daily": {"time": ["2025-10-20"], "temperature_2m_min": [], "temperature_2m_max": [1]}})

    @pytest.mark.unit
    async def test_forecast_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=OPEN_METEO_PAYLOAD)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            feed = OpenMeteoWeatherFeed(http_client=client)
            rows = await feed.forecast(51.87728, 24.0249, 3)

        assert len(rows) == 3
        assert seen["params"]["forecast_days"] == "3"
        assert seen["params"]["timezone"] == "Europe/Minsk"
        assert "temperature_2m_min" in seen["params"]["daily"]

    @pytest.mark.unit
    @pytest.mark.edge_case
    async def test_forecast_http_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            feed = OpenMeteoWeatherFeed(http_client=client)
            with pytest.raises(WeatherFeedError):
                await feed.forecast(51.87728, 24.0249, 3)


class TestMessengers:
    """Telegram client and messenger selection"""

    @pytest.mark.unit
    async def test_telegram_send(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            messenger = TelegramMessenger("123:abc", http_client=client)
            await messenger.send("-100500", "Frost warning")

        assert seen["path"] == "/bot123:abc/sendMessage"
        assert seen["body"] == {"chat_id": "-100500", "text": "Frost warning"}

    @pytest.mark.unit
    @pytest.mark.edge_case
    async def test_telegram_error_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"ok": False}))
        async with httpx.AsyncClient(transport=transport) as client:
            messenger = TelegramMessenger("123:abc", http_client=client)
            with pytest.raises(httpx.HTTPStatusError):
                await messenger.send("-100500", "hello")

    @pytest.mark.unit
    def test_messenger_selection(self):
        assert isinstance(build_messenger(Settings(TELEGRAM_BOT_TOKEN=None, STAFF_CHAT_ID=None)), LoggingMessenger)
        configured = Settings(TELEGRAM_BOT_TOKEN="123:abc", STAFF_CHAT_ID="-100500")
        assert isinstance(build_messenger(configured), TelegramMessenger)


class TestInfrastructureHelpers:
    """Log formatting and keyed locks"""

    @pytest.mark.unit
    def test_context_formatter_appends_extras(self):
        formatter = ContextFormatter("%(levelname)s:%(message)s")
        record = logging.LogRecord("venue", logging.INFO, __file__, 1, "job_complete", None, None)
        record.job = "daily_tasks"
        record.count = 3
        assert formatter.format(record) == "INFO:job_complete | job=daily_tasks count=3"

    @pytest.mark.unit
    def test_context_formatter_without_extras(self):
        formatter = ContextFormatter("%(message)s")
        record = logging.LogRecord("venue", logging.INFO, __file__, 1, "plain", None, None)
        assert formatter.format(record) == "plain"

    @pytest.mark.unit
    @pytest.mark.concurrency
    async def test_keyed_lock(self):
        locks = KeyedLock()
        async with locks.hold(("B1", date(2025, 6, 1))):
            assert locks.locked(("B1", date(2025, 6, 1)))
            assert not locks.locked(("B2", date(2025, 6, 1)))
        assert not locks.locked(("B1", date(2025, 6, 1)))

    @pytest.mark.unit
    @pytest.mark.concurrency
    async def test_keyed_lock_drops_idle_keys(self):
        locks = KeyedLock()
        for day in range(1, 31):
            async with locks.hold(("B1", date(2025, 6, day))):
                pass
        assert len(locks) == 0

    @pytest.mark.unit
    @pytest.mark.concurrency
    async def test_keyed_lock_kept_while_contended(self):
        locks = KeyedLock()
        key = ("cash", CashBox.MAIN)
        order = []

        async def worker(name):
            async with locks.hold(key):
                order.append(name)
                await asyncio.sleep(0)

        async with locks.hold(key):
            waiters = [asyncio.create_task(worker(n)) for n in ("first", "second")]
            await asyncio.sleep(0)
            assert len(locks) == 1
        await asyncio.gather(*waiters)
        assert order == ["first", "second"]
        assert len(locks) == 0
