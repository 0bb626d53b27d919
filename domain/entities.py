"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date, time, timedelta, timezone
from typing import Optional, List, Dict, FrozenSet
from decimal import Decimal

from domain.enums import (
    ResourceKind, BookingType, RouteType, BookingStatus, PaymentMethod, CashBox,
    TransactionType, IncomeSource, TaskType, TaskStatus, Cadence,
)
from domain.exceptions import InvalidTransition, HoldExpired, Conflict, InvalidWindow
from domain.value_objects import (
    TimeWindow, CustomerContact, PriceQuote, PaymentRecord, Prepayment, Money, IncasationSummary,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Resource(BaseModel):
    """A bookable physical asset"""
    code: str
    kind: ResourceKind
    name: str
    capacity: int = Field(ge=1, default=1)
    active: bool = True

    @property
    def is_pooled(self) -> bool:
        return self.kind == ResourceKind.QUAD

    class Config:
        from_attributes = True


class Tariff(BaseModel):
    """Price record for a booking type, either standing or for one date"""
    tariff_id: UUID = Field(default_factory=uuid4)
    booking_type: BookingType
    price: int = Field(ge=0)
    guest_threshold: Optional[int] = Field(default=None, ge=1)
    upper_price: Optional[int] = Field(default=None, ge=0)
    per_unit: bool = False
    included_hours: Optional[int] = Field(default=None, ge=1)
    extra_hour_price: int = Field(default=0, ge=0)
    tariff_date: Optional[date] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    def unit_price(self, guest_count: int) -> int:
        """Lower tier applies while guests <= threshold"""
        if self.guest_threshold is None or self.upper_price is None:
            return self.price
        return self.price if guest_count <= self.guest_threshold else self.upper_price

    class Config:
        from_attributes = True


class BlockedPeriod(BaseModel):
    """Staff-declared unavailability; no start means the whole day"""
    block_id: UUID = Field(default_factory=uuid4)
    kind: ResourceKind
    day: date
    start: Optional[time] = None
    end: Optional[time] = None
    reason: Optional[str] = None
    created_by: str = "SYSTEM"

    def covers(self, window: TimeWindow) -> bool:
        if window.day != self.day:
            return False
        if self.start is None:
            return True
        block_end = self.end or time(23, 59)
        return window.start < block_end and self.start < window.end

    class Config:
        from_attributes = True


# pending_call -> expired only happens through hold lapse
BOOKING_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING_CALL: frozenset({
        BookingStatus.AWAITING_PREPAYMENT,
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    }),
    BookingStatus.AWAITING_PREPAYMENT: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    }),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    }),
}


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)

    # Resource and window
    resource_code: str
    kind: ResourceKind
    booking_type: BookingType
    window: TimeWindow
    guest_count: int = Field(ge=1)
    route_type: Optional[RouteType] = None
    slot_id: Optional[UUID] = None

    # Customer and money
    customer: CustomerContact
    pricing: PriceQuote
    payments: PaymentRecord = Field(default_factory=PaymentRecord)

    # Status
    status: BookingStatus = BookingStatus.PENDING_CALL
    hold_until: Optional[datetime] = None
    status_reason: Optional[str] = None
    comment: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)
    created_by: str = "SYSTEM"
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        resource: Resource,
        booking_type: BookingType,
        window: TimeWindow,
        guest_count: int,
        customer: CustomerContact,
        pricing: PriceQuote,
        now: datetime,
        hold: Optional[timedelta],
        route_type: Optional[RouteType] = None,
        slot_id: Optional[UUID] = None,
        confirmed: bool = False,
        comment: Optional[str] = None,
        created_by: str = "SYSTEM",
    ) -> "Booking":
        """Create a booking in pending_call (with a hold) or directly confirmed"""
        if confirmed:
            status, hold_until = BookingStatus.CONFIRMED, None
        else:
            status = BookingStatus.PENDING_CALL
            hold_until = now + hold if hold else None

        return Booking(
            resource_code=resource.code,
            kind=resource.kind,
            booking_type=booking_type,
            window=window,
            guest_count=guest_count,
            route_type=route_type,
            slot_id=slot_id,
            customer=customer,
            pricing=pricing,
            status=status,
            hold_until=hold_until,
            comment=comment,
            created_at=now,
            modified_at=now,
            created_by=created_by,
        )

    # ==================== STATE TRANSITION METHODS ====================
    def accept(self, now: datetime, prepayment_hold: timedelta) -> None:
        """Staff called the guest back; wait for a prepayment"""
        self._transition(BookingStatus.AWAITING_PREPAYMENT, now)
        self.hold_until = now + prepayment_hold

    def record_prepayment(self, amount: int, method: PaymentMethod, now: datetime) -> None:
        """Prepayment received; the booking becomes confirmed"""
        if amount > self.pricing.total:
            raise ValueError("Prepayment cannot exceed the booking total")
        prepayment = Prepayment(amount=amount, method=method)
        self._transition(BookingStatus.CONFIRMED, now)
        self.payments.prepayment = prepayment
        self.hold_until = None

    def confirm(self, now: datetime) -> None:
        self._transition(BookingStatus.CONFIRMED, now)
        self.hold_until = None

    def complete(self, method: PaymentMethod, now: datetime) -> int:
        """Settle the outstanding amount and close the booking; returns the amount settled"""
        self._transition(BookingStatus.COMPLETED, now)
        outstanding = max(self.pricing.total - self.payments.total_paid, 0)
        if method == PaymentMethod.ERIP:
            self.payments.erip_paid += outstanding
        else:
            self.payments.cash_paid += outstanding
        self.payments.settled_at = now
        return outstanding

    def cancel(self, reason: str, now: datetime) -> None:
        self._transition(BookingStatus.CANCELLED, now)
        self.status_reason = reason

    def mark_no_show(self, now: datetime) -> None:
        self._transition(BookingStatus.NO_SHOW, now)

    def expire(self, now: datetime) -> bool:
        """Lapse the hold; returns False when there is nothing to expire"""
        if not self.is_hold_lapsed(now):
            return False
        self._set_status(BookingStatus.EXPIRED, now)
        self.status_reason = "hold lapsed"
        return True

    # ==================== QUERY METHODS ====================
    def is_hold_lapsed(self, now: datetime) -> bool:
        return (
            self.status.carries_hold
            and self.hold_until is not None
            and now >= self.hold_until
        )

    def occupies(self, now: datetime) -> bool:
        """Whether this booking still takes capacity at ``now``"""
        return not self.status.is_terminal and not self.is_hold_lapsed(now)

    def can_transition_to(self, target: BookingStatus) -> bool:
        return target in BOOKING_TRANSITIONS.get(self.status, frozenset())

    # ==================== PRIVATE METHODS ====================
    def _transition(self, target: BookingStatus, now: datetime) -> None:
        if self.is_hold_lapsed(now):
            self.expire(now)
            raise HoldExpired(f"Hold on booking {self.booking_id} lapsed at {self.hold_until.isoformat()}")
        if not self.can_transition_to(target):
            raise InvalidTransition(
                f"Cannot move booking from {self.status.value} to {target.value}"
            )
        self._set_status(target, now)

    def _set_status(self, target: BookingStatus, now: datetime) -> None:
        self.status = target
        self.modified_at = now
        self.version += 1


class QuadSlot(BaseModel):
    """Shared ride window grouping quad bookings up to fleet capacity"""
    slot_id: UUID = Field(default_factory=uuid4)
    window: TimeWindow
    route_type: RouteType
    total_quads: int = Field(ge=1, default=4)
    booked_quads: int = Field(ge=0, default=0)
    base_price: int = Field(ge=0)
    has_discount: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    version: int = 1

    @property
    def remaining(self) -> int:
        return self.total_quads - self.booked_quads

    def matches(self, window: TimeWindow, route_type: RouteType) -> bool:
        return self.route_type == route_type and self.window.same_slot(window)

    def join(self, quads: int) -> None:
        if quads < 1:
            raise InvalidWindow("At least one quad must be booked")
        if self.booked_quads + quads > self.total_quads:
            raise Conflict(f"Only {self.remaining} quad(s) left at {self.window.start.strftime('%H:%M')}")
        if self.booked_quads > 0:
            self.has_discount = True
        self.booked_quads += quads
        self.version += 1

    def release(self, quads: int) -> None:
        self.booked_quads = max(self.booked_quads - quads, 0)
        self.version += 1

    class Config:
        from_attributes = True


class CashShift(BaseModel):
    """One register-open period on a cash box"""
    shift_id: UUID = Field(default_factory=uuid4)
    cash_box: CashBox = CashBox.MAIN
    opened_at: datetime
    opened_by: str
    is_open: bool = True
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None

    def close(self, at: datetime, by: str) -> bool:
        """Close the shift; closing twice is a no-op and returns False"""
        if not self.is_open:
            return False
        self.is_open = False
        self.closed_at = at
        self.closed_by = by
        return True

    def open_hours(self, now: datetime) -> float:
        return (now - self.opened_at).total_seconds() / 3600

    class Config:
        from_attributes = True


class CashTransaction(BaseModel):
    """Append-only register movement; the sign comes from the type"""
    tx_id: UUID = Field(default_factory=uuid4)
    shift_id: UUID
    cash_box: CashBox
    type: TransactionType
    amount: Money
    category: Optional[str] = None
    income_source: Optional[IncomeSource] = None
    comment: Optional[str] = None
    booking_id: Optional[UUID] = None
    created_at: datetime
    created_by: str
    sequence: int = 0

    @property
    def signed_amount(self) -> Decimal:
        if self.type == TransactionType.CASH_IN:
            return self.amount.amount
        return -self.amount.amount

    class Config:
        frozen = True


class Incasation(BaseModel):
    """Immutable record of a cash pickup"""
    incasation_id: UUID = Field(default_factory=uuid4)
    cash_box: CashBox
    performed_at: datetime
    performed_by: str
    period_start: datetime
    period_end: datetime
    summary: IncasationSummary
    shifts_included: List[UUID] = []
    through_sequence: int = 0

    class Config:
        frozen = True


class ScheduledTaskDefinition(BaseModel):
    """Template the scheduler turns into a dated task"""
    title: str
    type: TaskType = TaskType.OTHER
    cadence: Cadence
    unit_code: Optional[str] = None
    checklist: List[str] = []

    class Config:
        frozen = True


class Task(BaseModel):
    """Operational task for staff"""
    task_id: UUID = Field(default_factory=uuid4)
    day: date
    title: str
    type: TaskType = TaskType.OTHER
    unit_code: Optional[str] = None
    checklist: List[str] = []
    status: TaskStatus = TaskStatus.OPEN
    cadence: Optional[Cadence] = None
    created_by_system: bool = False
    assigned_to: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    @staticmethod
    def from_definition(definition: ScheduledTaskDefinition, day: date, now: datetime) -> "Task":
        return Task(
            day=day,
            title=definition.title,
            type=definition.type,
            unit_code=definition.unit_code,
            checklist=list(definition.checklist),
            cadence=definition.cadence,
            created_by_system=True,
            created_at=now,
        )

    def complete(self, now: datetime) -> None:
        if self.status == TaskStatus.DONE:
            return
        self.status = TaskStatus.DONE
        self.completed_at = now

    class Config:
        from_attributes = True
