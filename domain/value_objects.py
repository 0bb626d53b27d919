"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict

from domain.enums import PaymentMethod


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


class TimeWindow(BaseModel):
    """Value Object for a half-open [start, end) window on one date"""
    day: date
    start: time
    end: time

    @validator('end')
    def end_after_start(cls, v, values):
        if 'start' in values and v <= values['start']:
            raise ValueError('Window end must be after start')
        return v

    @property
    def start_minutes(self) -> int:
        return _minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return _minutes(self.end)

    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def overlaps(self, other: "TimeWindow", buffer_minutes: int = 0) -> bool:
        """Half-open overlap test; adjacent windows do not overlap.

        ``buffer_minutes`` extends both windows at their end, which models a
        turnaround gap that must stay free after each ride.
        """
        if self.day != other.day:
            return False
        return (
            self.start_minutes < other.end_minutes + buffer_minutes
            and other.start_minutes < self.end_minutes + buffer_minutes
        )

    def same_slot(self, other: "TimeWindow") -> bool:
        return self.day == other.day and self.start == other.start and self.end == other.end

    def starts_at(self, tz) -> datetime:
        return datetime.combine(self.day, self.start, tzinfo=tz)

    @staticmethod
    def from_start(day: date, start: time, minutes: int) -> "TimeWindow":
        end_dt = datetime.combine(day, start) + timedelta(minutes=minutes)
        return TimeWindow(day=day, start=start, end=end_dt.time())

    class Config:
        frozen = True


class CustomerContact(BaseModel):
    """Value Object for the guest's contact details"""
    full_name: str = Field(min_length=2)
    phone: str = Field(min_length=7)
    telegram_id: Optional[str] = None

    class Config:
        frozen = True


class PriceQuote(BaseModel):
    """Pricing snapshot frozen into a booking at creation"""
    base: int = Field(ge=0)
    discount_percent: int = Field(ge=0, le=100, default=0)
    discount_amount: int = Field(ge=0, default=0)
    total: int = Field(ge=0)
    tariff_date: Optional[date] = None

    @staticmethod
    def from_base(base: int, discount_percent: int = 0, tariff_date: Optional[date] = None) -> "PriceQuote":
        """Apply a percentage discount, rounding half up to whole currency units"""
        if not 0 <= discount_percent <= 100:
            raise ValueError("Discount percent must be between 0 and 100")
        discount_amount = int(
            (Decimal(base) * Decimal(discount_percent) / Decimal(100)).quantize(
                Decimal("1"), rounding=ROUND_HALF_UP
            )
        )
        return PriceQuote(
            base=base,
            discount_percent=discount_percent,
            discount_amount=discount_amount,
            total=base - discount_amount,
            tariff_date=tariff_date,
        )

    class Config:
        frozen = True


class Prepayment(BaseModel):
    amount: int = Field(gt=0)
    method: PaymentMethod

    class Config:
        frozen = True


class PaymentRecord(BaseModel):
    """Running payment totals on a booking"""
    prepayment: Optional[Prepayment] = None
    cash_paid: int = 0
    erip_paid: int = 0
    settled_at: Optional[datetime] = None

    @property
    def prepaid_amount(self) -> int:
        return self.prepayment.amount if self.prepayment else 0

    @property
    def total_paid(self) -> int:
        return self.prepaid_amount + self.cash_paid + self.erip_paid

    def electronic_amount(self) -> int:
        amount = self.erip_paid
        if self.prepayment and self.prepayment.method == PaymentMethod.ERIP:
            amount += self.prepayment.amount
        return amount

    class Config:
        from_attributes = True


class Money(BaseModel):
    """Value Object for cash amounts moving through a register"""
    amount: Decimal = Field(gt=0)
    currency: str = "BYN"

    class Config:
        frozen = True


class IncasationSummary(BaseModel):
    """What a cash pickup covered"""
    total_revenue: Decimal = Decimal("0")
    cash_revenue: Decimal = Decimal("0")
    erip_revenue: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    cash_out: Decimal = Decimal("0")
    cash_on_hand: Decimal = Decimal("0")
    expenses_by_category: Dict[str, Decimal] = {}

    class Config:
        frozen = True


class SlotAvailability(BaseModel):
    """One grid window as seen by the availability query"""
    resource_code: str
    day: date
    start: time
    end: time
    is_available: bool
    remaining_capacity: int = 0
    route_type: Optional[str] = None
    joinable: bool = False
    proximity_discount: bool = False
    reason: Optional[str] = None


class DailyForecast(BaseModel):
    day: date
    min_temp: float
    max_temp: float
    precipitation: Optional[float] = None

    class Config:
        frozen = True
