"""Application Service - Pricing"""
import logging
import math
from datetime import date
from typing import List, Optional

from domain.entities import Tariff
from domain.enums import BookingType
from domain.exceptions import NoTariffConfigured
from domain.repositories import TariffRepository
from domain.value_objects import PriceQuote

logger = logging.getLogger(__name__)


class PricingCalculator:
    """Quotes booking prices from stored tariffs"""

    def __init__(self, tariff_repo: TariffRepository):
        self.tariff_repo = tariff_repo

    async def resolve_tariff(self, booking_type: BookingType, day: date) -> Tariff:
        """A date override wins over the standing default"""
        tariff = await self.tariff_repo.find(booking_type, day)
        if tariff is None:
            tariff = await self.tariff_repo.find(booking_type, None)
        if tariff is None:
            raise NoTariffConfigured(f"No tariff configured for {booking_type.value} on {day.isoformat()}")
        return tariff

    async def price(
        self,
        booking_type: BookingType,
        guest_count: int,
        day: date,
        discount_percent: int = 0,
        duration_minutes: Optional[int] = None,
    ) -> PriceQuote:
        """Price a booking.

        For per-unit tariffs (quad routes) ``guest_count`` is the number of
        units. ``duration_minutes`` only matters for tariffs with included
        hours; every started hour beyond them is charged.
        """
        if guest_count < 1:
            raise ValueError("Guest count must be at least 1")
        if not 0 <= discount_percent <= 100:
            raise ValueError("Discount percent must be between 0 and 100")

        tariff = await self.resolve_tariff(booking_type, day)
        base = tariff.unit_price(guest_count)
        if tariff.per_unit:
            base *= guest_count
        base += self._duration_surcharge(tariff, duration_minutes)

        return PriceQuote.from_base(
            base,
            discount_percent,
            tariff_date=tariff.tariff_date,
        )

    @staticmethod
    def _duration_surcharge(tariff: Tariff, duration_minutes: Optional[int]) -> int:
        if tariff.included_hours is None or duration_minutes is None:
            return 0
        extra_minutes = duration_minutes - tariff.included_hours * 60
        if extra_minutes <= 0:
            return 0
        return math.ceil(extra_minutes / 60) * tariff.extra_hour_price

    # ==================== TARIFF ADMINISTRATION ====================
    async def set_tariff(
        self,
        booking_type: BookingType,
        price: int,
        tariff_date: Optional[date] = None,
        guest_threshold: Optional[int] = None,
        upper_price: Optional[int] = None,
        per_unit: Optional[bool] = None,
        included_hours: Optional[int] = None,
        extra_hour_price: int = 0,
        created_by: str = "SYSTEM",
    ) -> Tariff:
        """Create or replace the tariff for (booking_type, tariff_date)"""
        if (guest_threshold is None) != (upper_price is None):
            raise ValueError("guest_threshold and upper_price must be set together")
        if per_unit is None:
            per_unit = booking_type in (BookingType.QUAD_SHORT, BookingType.QUAD_LONG)
        tariff = Tariff(
            booking_type=booking_type,
            price=price,
            tariff_date=tariff_date,
            guest_threshold=guest_threshold,
            upper_price=upper_price,
            per_unit=per_unit,
            included_hours=included_hours,
            extra_hour_price=extra_hour_price,
            created_by=created_by,
        )
        logger.info(
            "tariff_set %s date=%s price=%s",
            booking_type.value, tariff_date, price,
        )
        return await self.tariff_repo.save(tariff)

    async def remove_tariff(self, booking_type: BookingType, tariff_date: Optional[date]) -> bool:
        return await self.tariff_repo.delete(booking_type, tariff_date)

    async def list_tariffs(self) -> List[Tariff]:
        tariffs = await self.tariff_repo.find_all()
        return sorted(tariffs, key=lambda t: (t.booking_type.value, t.tariff_date or date.min))
