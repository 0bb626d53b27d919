"""Wiring of repositories, services, adapters and the scheduler"""
import logging
from typing import Optional

from application.notifications import StaffNotifier
from application.pricing import PricingCalculator
from application.scheduler import VenueScheduler
from application.services import SlotAllocator, BookingService, CashLedgerService, TaskService
from domain.catalog import default_resources, default_tariffs, default_task_catalogue
from domain.gateways import MessagingGateway, WeatherFeed
from infrastructure.clock import SystemClock
from infrastructure.locks import KeyedLock
from infrastructure.messaging.logging_messenger import LoggingMessenger
from infrastructure.messaging.telegram_messenger import TelegramMessenger
from infrastructure.repositories.in_memory_repositories import (
    InMemoryResourceRepository, InMemoryTariffRepository, InMemoryBlockedPeriodRepository,
    InMemoryBookingRepository, InMemoryQuadSlotRepository, InMemoryCashShiftRepository,
    InMemoryCashTransactionRepository, InMemoryIncasationRepository, InMemoryTaskRepository,
)
from infrastructure.settings import Settings
from infrastructure.weather.open_meteo import OpenMeteoWeatherFeed

logger = logging.getLogger(__name__)


def build_messenger(settings: Settings) -> MessagingGateway:
    if settings.TELEGRAM_BOT_TOKEN and settings.STAFF_CHAT_ID:
        return TelegramMessenger(settings.TELEGRAM_BOT_TOKEN, timeout_seconds=settings.HTTP_TIMEOUT_SECONDS)
    logger.info("telegram_not_configured", extra={"reason": "staff messages go to the log"})
    return LoggingMessenger()


class VenueContainer:
    """Owns one instance of every collaborator for the lifetime of the app"""

    def __init__(self,
                 settings: Settings,
                 clock: Optional[SystemClock] = None,
                 messenger: Optional[MessagingGateway] = None,
                 weather: Optional[WeatherFeed] = None):
        self.settings = settings
        self.clock = clock or SystemClock(settings.VENUE_TIMEZONE)
        self.locks = KeyedLock()

        # Repositories
        self.resource_repo = InMemoryResourceRepository(default_resources(settings.QUAD_FLEET_SIZE))
        self.tariff_repo = InMemoryTariffRepository(default_tariffs())
        self.block_repo = InMemoryBlockedPeriodRepository()
        self.booking_repo = InMemoryBookingRepository()
        self.slot_repo = InMemoryQuadSlotRepository()
        self.shift_repo = InMemoryCashShiftRepository()
        self.transaction_repo = InMemoryCashTransactionRepository()
        self.incasation_repo = InMemoryIncasationRepository()
        self.task_repo = InMemoryTaskRepository()

        # Services
        self.pricing = PricingCalculator(self.tariff_repo)
        self.allocator = SlotAllocator(
            self.resource_repo, self.booking_repo, self.slot_repo, self.block_repo, self.clock, settings
        )
        self.ledger = CashLedgerService(
            self.shift_repo, self.transaction_repo, self.incasation_repo, self.booking_repo,
            self.clock, self.locks
        )
        self.booking_service = BookingService(
            self.booking_repo, self.slot_repo, self.allocator, self.pricing, self.clock, settings,
            ledger=self.ledger, locks=self.locks
        )
        self.task_service = TaskService(self.task_repo, self.clock)

        # Scheduler
        self.messenger = messenger or build_messenger(settings)
        self.notifier = StaffNotifier(self.messenger, settings.STAFF_CHAT_ID or "staff")
        self.weather = weather or OpenMeteoWeatherFeed(
            base_url=settings.WEATHER_BASE_URL,
            timezone_name=settings.VENUE_TIMEZONE,
            timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
        )
        self.scheduler = VenueScheduler(
            self.shift_repo, self.ledger, self.booking_service, self.task_service, self.notifier,
            self.weather, self.clock, settings, default_task_catalogue()
        )
