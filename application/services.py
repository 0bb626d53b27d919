"""Application Services - Business use cases"""
import calendar
import logging
from uuid import UUID
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from application.pricing import PricingCalculator
from domain.catalog import (
    BATH_SPA_FIRST_START, BATH_SPA_WINDOW_MINUTES, BATH_SPA_STEP_MINUTES,
    QUAD_FIRST_START, QUAD_LAST_START, QUAD_STEP_MINUTES, QUAD_CLOSE,
)
from domain.entities import (
    Resource, Booking, QuadSlot, CashShift, CashTransaction, Incasation, Task,
    ScheduledTaskDefinition, BlockedPeriod,
)
from domain.enums import (
    ResourceKind, BookingType, RouteType, BookingStatus, PaymentMethod, CashBox, TransactionType,
    IncomeSource, StaffRole, ELEVATED_ROLES, TaskType, OccupancyLevel,
)
from domain.exceptions import (
    VenueError, Conflict, InvalidWindow, ResourceUnknown, HoldExpired, ShiftAlreadyOpen,
    ShiftNotOpen, NothingToCollect, InsufficientRole,
)
from domain.repositories import (
    ResourceRepository, BookingRepository, QuadSlotRepository, BlockedPeriodRepository,
    CashShiftRepository, CashTransactionRepository, IncasationRepository, TaskRepository,
)
from domain.value_objects import TimeWindow, CustomerContact, Money, IncasationSummary, SlotAvailability
from infrastructure.clock import SystemClock
from infrastructure.locks import KeyedLock
from infrastructure.settings import Settings

logger = logging.getLogger(__name__)

SPA_BOOKING_TYPES = frozenset({
    BookingType.SPA_BATH_ONLY,
    BookingType.SPA_TERRACE_ONLY,
    BookingType.SPA_TUB_ONLY,
    BookingType.SPA_BATH_WITH_TUB,
})

INCOME_SOURCE_BY_KIND = {
    ResourceKind.BATH: IncomeSource.BATH,
    ResourceKind.SPA: IncomeSource.SPA,
    ResourceKind.QUAD: IncomeSource.QUADS,
}


def cash_box_for(kind: ResourceKind) -> CashBox:
    """Quad rides are paid at the instructor register, everything else at the main one"""
    return CashBox.QUADS if kind == ResourceKind.QUAD else CashBox.MAIN


def _add_minutes(value: time, minutes: int) -> time:
    return (datetime.combine(date.min, value) + timedelta(minutes=minutes)).time()


class ReservationDraft(BaseModel):
    """Outcome of a successful allocation check"""
    resource: Resource
    window: TimeWindow
    party_size: int
    route_type: Optional[RouteType] = None
    slot: Optional[QuadSlot] = None
    proximity_discount: bool = False


class SlotAllocator:
    """Decides whether a window on a resource can be taken"""

    def __init__(self,
                 resource_repo: ResourceRepository,
                 booking_repo: BookingRepository,
                 slot_repo: QuadSlotRepository,
                 block_repo: BlockedPeriodRepository,
                 clock: SystemClock,
                 settings: Settings):
        self.resource_repo = resource_repo
        self.booking_repo = booking_repo
        self.slot_repo = slot_repo
        self.block_repo = block_repo
        self.clock = clock
        self.settings = settings

    async def get_resource(self, resource_code: str) -> Resource:
        resource = await self.resource_repo.find_by_code(resource_code)
        if resource is None or not resource.active:
            raise ResourceUnknown(f"Unknown resource: {resource_code}")
        return resource

    # ==================== GRID ====================
    def grid_windows(self, resource: Resource, day: date,
                     route_type: Optional[RouteType] = None) -> List[TimeWindow]:
        """Standard bookable windows for a resource on a date"""
        windows = []
        if resource.is_pooled:
            minutes = (route_type or RouteType.SHORT).duration_minutes
            start = QUAD_FIRST_START
            while start <= QUAD_LAST_START:
                if _add_minutes(start, minutes) <= QUAD_CLOSE:
                    windows.append(TimeWindow.from_start(day, start, minutes))
                start = _add_minutes(start, QUAD_STEP_MINUTES)
            return windows

        close = time(self.settings.CLOSE_HOUR, 0)
        start = BATH_SPA_FIRST_START
        while _add_minutes(start, BATH_SPA_WINDOW_MINUTES) <= close:
            windows.append(TimeWindow.from_start(day, start, BATH_SPA_WINDOW_MINUTES))
            start = _add_minutes(start, BATH_SPA_STEP_MINUTES)
        return windows

    def route_for(self, window: TimeWindow) -> RouteType:
        for route in RouteType:
            if window.duration_minutes() == route.duration_minutes:
                return route
        raise InvalidWindow(f"Quad rides last 30 or 60 minutes, got {window.duration_minutes()}")

    # ==================== VALIDATION ====================
    def _validate_hours(self, resource: Resource, window: TimeWindow) -> None:
        if resource.is_pooled:
            opens, closes = QUAD_FIRST_START, QUAD_CLOSE
        else:
            opens, closes = BATH_SPA_FIRST_START, time(self.settings.CLOSE_HOUR, 0)
        if window.start < opens or window.end > closes:
            raise InvalidWindow(
                f"{resource.code} operates {opens.strftime('%H:%M')}-{closes.strftime('%H:%M')}"
            )

    def _validate_timing(self, window: TimeWindow, now: datetime) -> None:
        starts_at = window.starts_at(self.clock.tz)
        if starts_at < now:
            raise InvalidWindow("Window is in the past")
        today = now.astimezone(self.clock.tz).date()
        lead = timedelta(hours=self.settings.PREPARATION_LEAD_HOURS)
        if window.day == today and starts_at < now + lead:
            raise InvalidWindow(
                f"Same-day bookings need {self.settings.PREPARATION_LEAD_HOURS}h to prepare"
            )

    @staticmethod
    def _check_blocks(window: TimeWindow, blocks: List[BlockedPeriod]) -> None:
        for block in blocks:
            if block.covers(window):
                raise Conflict(f"Blocked: {block.reason or 'unavailable'}")

    def _check_exclusive(self, window: TimeWindow, bookings: List[Booking], now: datetime) -> None:
        for booking in bookings:
            if booking.occupies(now) and booking.window.overlaps(window):
                raise Conflict(
                    f"{booking.resource_code} is taken "
                    f"{booking.window.start.strftime('%H:%M')}-{booking.window.end.strftime('%H:%M')}"
                )

    def _pool_usage(self, bookings: List[Booking], now: datetime) -> Dict[Tuple[time, time], int]:
        """Quads held by occupying bookings, per ride window"""
        usage: Dict[Tuple[time, time], int] = {}
        for booking in bookings:
            if booking.occupies(now):
                key = (booking.window.start, booking.window.end)
                usage[key] = usage.get(key, 0) + booking.guest_count
        return usage

    def _check_pool(self, resource: Resource, window: TimeWindow, party_size: int,
                    bookings: List[Booking], now: datetime) -> Tuple[int, int]:
        """Returns (quads already booked in the window, remaining after this party)"""
        if not 1 <= party_size <= resource.capacity:
            raise InvalidWindow(f"Party size must be between 1 and {resource.capacity}")
        usage = self._pool_usage(bookings, now)
        buffer = self.settings.QUAD_INSTRUCTOR_BUFFER_MINUTES
        for (start, end), quads in usage.items():
            ride = TimeWindow(day=window.day, start=start, end=end)
            if not ride.same_slot(window) and ride.overlaps(window, buffer_minutes=buffer):
                raise Conflict(
                    f"Instructor is out on a ride {start.strftime('%H:%M')}-{end.strftime('%H:%M')}"
                )
        booked = usage.get((window.start, window.end), 0)
        if booked + party_size > resource.capacity:
            raise Conflict(f"Only {resource.capacity - booked} quad(s) left for this window")
        return booked, resource.capacity - booked - party_size

    # ==================== OPERATIONS ====================
    async def try_reserve(self, resource_code: str, day: date, start: time, end: time,
                          party_size: int) -> ReservationDraft:
        """Validate a window and return a draft, or raise a typed failure"""
        if end <= start:
            raise InvalidWindow("Window end must be after start")
        resource = await self.get_resource(resource_code)
        window = TimeWindow(day=day, start=start, end=end)
        now = self.clock.now()

        self._validate_hours(resource, window)
        route_type = self.route_for(window) if resource.is_pooled else None
        self._validate_timing(window, now)
        self._check_blocks(window, await self.block_repo.find_by_kind_and_date(resource.kind, day))

        bookings = await self.booking_repo.find_by_resource_and_date(resource.code, day)
        if not resource.is_pooled:
            self._check_exclusive(window, bookings, now)
            return ReservationDraft(resource=resource, window=window, party_size=party_size)

        booked, _ = self._check_pool(resource, window, party_size, bookings, now)
        slot = await self.slot_repo.find_matching(window, route_type)
        return ReservationDraft(
            resource=resource,
            window=window,
            party_size=party_size,
            route_type=route_type,
            slot=slot,
            proximity_discount=booked > 0,
        )

    async def availability(self, resource_code: str, day: date,
                           route_type: Optional[RouteType] = None) -> List[SlotAvailability]:
        """Grid windows for a date, each marked available or not"""
        resource = await self.get_resource(resource_code)
        now = self.clock.now()
        blocks = await self.block_repo.find_by_kind_and_date(resource.kind, day)
        bookings = await self.booking_repo.find_by_resource_and_date(resource.code, day)

        routes = [None]
        if resource.is_pooled:
            routes = [route_type] if route_type else list(RouteType)

        result = []
        for route in routes:
            for window in self.grid_windows(resource, day, route):
                result.append(self._evaluate(resource, window, route, blocks, bookings, now))
        return result

    def _evaluate(self, resource: Resource, window: TimeWindow, route: Optional[RouteType],
                  blocks: List[BlockedPeriod], bookings: List[Booking], now: Optional[datetime]) -> SlotAvailability:
        """``now`` None skips the past and lead-time checks (calendar view)"""
        remaining = resource.capacity
        joinable = False
        reason = None
        try:
            if now is not None:
                self._validate_timing(window, now)
            self._check_blocks(window, blocks)
            if resource.is_pooled:
                booked, _ = self._check_pool(resource, window, 1, bookings, now or self.clock.now())
                remaining = resource.capacity - booked
                joinable = booked > 0
            else:
                self._check_exclusive(window, bookings, now or self.clock.now())
        except VenueError as e:
            reason = e.code
            remaining = 0

        return SlotAvailability(
            resource_code=resource.code,
            day=window.day,
            start=window.start,
            end=window.end,
            is_available=reason is None,
            remaining_capacity=remaining,
            route_type=route.value if route else None,
            joinable=joinable,
            proximity_discount=joinable,
            reason=reason,
        )

    async def month_calendar(self, kind: ResourceKind, year: int,
                             month: int) -> Dict[str, Dict[date, OccupancyLevel]]:
        """Per-resource none/partial/full occupancy for every day of a month"""
        resources = await self.resource_repo.find_by_kind(kind)
        _, days_in_month = calendar.monthrange(year, month)
        now = self.clock.now()
        result: Dict[str, Dict[date, OccupancyLevel]] = {}

        for resource in resources:
            per_day: Dict[date, OccupancyLevel] = {}
            for day_number in range(1, days_in_month + 1):
                day = date(year, month, day_number)
                bookings = await self.booking_repo.find_by_resource_and_date(resource.code, day)
                blocks = await self.block_repo.find_by_kind_and_date(kind, day)
                routes = list(RouteType) if resource.is_pooled else [None]
                windows = [
                    self._evaluate(resource, w, route, blocks, bookings, None)
                    for route in routes
                    for w in self.grid_windows(resource, day, route)
                ]
                if windows and not any(w.is_available for w in windows):
                    per_day[day] = OccupancyLevel.FULL
                elif any(b.occupies(now) for b in bookings):
                    per_day[day] = OccupancyLevel.PARTIAL
                else:
                    per_day[day] = OccupancyLevel.NONE
            result[resource.code] = per_day
        return result

    async def block(self, kind: ResourceKind, day: date, start: Optional[time] = None,
                    end: Optional[time] = None, reason: Optional[str] = None,
                    created_by: str = "SYSTEM") -> BlockedPeriod:
        if (start is None) != (end is None):
            raise InvalidWindow("A partial block needs both start and end")
        if start is not None and end <= start:
            raise InvalidWindow("Block end must be after start")
        block = BlockedPeriod(kind=kind, day=day, start=start, end=end, reason=reason, created_by=created_by)
        return await self.block_repo.save(block)

    async def unblock(self, block_id: UUID) -> bool:
        return await self.block_repo.delete(block_id)


class BookingService:
    """Service for Booking lifecycle use cases"""

    def __init__(self,
                 repository: BookingRepository,
                 slot_repo: QuadSlotRepository,
                 allocator: SlotAllocator,
                 pricing: PricingCalculator,
                 clock: SystemClock,
                 settings: Settings,
                 ledger: Optional["CashLedgerService"] = None,
                 locks: Optional[KeyedLock] = None):
        self.repository = repository
        self.slot_repo = slot_repo
        self.allocator = allocator
        self.pricing = pricing
        self.clock = clock
        self.settings = settings
        self.ledger = ledger
        self.locks = locks or KeyedLock()

    @staticmethod
    def _check_type(resource: Resource, booking_type: Optional[BookingType],
                    route_type: Optional[RouteType]) -> BookingType:
        if resource.kind == ResourceKind.QUAD:
            expected = route_type.booking_type
            if booking_type is not None and booking_type != expected:
                raise ValueError(f"{booking_type.value} does not match a {route_type.value} ride")
            return expected
        if resource.kind == ResourceKind.BATH:
            if booking_type not in (None, BookingType.BATH):
                raise ValueError(f"{booking_type.value} cannot be booked on a bath house")
            return BookingType.BATH
        if booking_type not in SPA_BOOKING_TYPES:
            raise ValueError("Spa bookings need one of bath_only, terrace_only, tub_only, bath_with_tub")
        return booking_type

    async def create_booking(
        self,
        resource_code: str,
        day: date,
        start: time,
        end: time,
        guest_count: int,
        customer: CustomerContact,
        booking_type: Optional[BookingType] = None,
        discount_percent: int = 0,
        confirmed: bool = False,
        comment: Optional[str] = None,
        created_by: str = "SYSTEM"
    ) -> Booking:
        """Check the window, price it and store the booking.

        The check and the write happen under one lock per (resource, date),
        so two requests for the same window cannot both pass the check.
        For quads ``guest_count`` is the number of quads.
        """
        async with self.locks.hold((resource_code, day)):
            draft = await self.allocator.try_reserve(resource_code, day, start, end, guest_count)
            booking_type = self._check_type(draft.resource, booking_type, draft.route_type)

            percent = discount_percent
            if draft.proximity_discount:
                percent = max(percent, self.settings.QUAD_PROXIMITY_DISCOUNT_PERCENT)
            quote = await self.pricing.price(
                booking_type,
                guest_count,
                day,
                discount_percent=percent,
                duration_minutes=draft.window.duration_minutes(),
            )

            now = self.clock.now()
            slot = None
            if draft.resource.is_pooled:
                slot = draft.slot
                if slot is None:
                    tariff = await self.pricing.resolve_tariff(booking_type, day)
                    slot = QuadSlot(
                        window=draft.window,
                        route_type=draft.route_type,
                        total_quads=draft.resource.capacity,
                        base_price=tariff.price,
                        created_at=now,
                    )
                await self._sync_slot(slot, draft.resource)
                slot.join(guest_count)
                await self.slot_repo.save(slot)

            booking = Booking.create(
                resource=draft.resource,
                booking_type=booking_type,
                window=draft.window,
                guest_count=guest_count,
                customer=customer,
                pricing=quote,
                now=now,
                hold=timedelta(minutes=self.settings.PENDING_CALL_HOLD_MINUTES),
                route_type=draft.route_type,
                slot_id=slot.slot_id if slot else None,
                confirmed=confirmed,
                comment=comment,
                created_by=created_by,
            )
            saved = await self.repository.save(booking)

        logger.info(
            "booking_created",
            extra={"booking_id": saved.booking_id, "resource": saved.resource_code, "status": saved.status.value},
        )
        return saved

    async def _sync_slot(self, slot: QuadSlot, resource: Resource) -> None:
        """Drop quads held by lapsed holds from the slot counter before joining"""
        now = self.clock.now()
        bookings = await self.repository.find_by_resource_and_date(resource.code, slot.window.day)
        slot.booked_quads = sum(
            b.guest_count for b in bookings if b.slot_id == slot.slot_id and b.occupies(now)
        )

    async def get_booking(self, booking_id: UUID) -> Optional[Booking]:
        """Get booking by ID"""
        return await self.repository.find_by_id(booking_id)

    async def list_bookings(self, day: Optional[date] = None,
                            status: Optional[BookingStatus] = None) -> List[Booking]:
        bookings = await self.repository.find_by_date(day) if day else await self.repository.find_all()
        if status is not None:
            bookings = [b for b in bookings if b.status == status]
        return sorted(bookings, key=lambda b: (b.window.day, b.window.start, b.resource_code))

    async def upcoming(self, day: date) -> List[Booking]:
        """Confirmed and pending bookings of a date"""
        return [b for b in await self.list_bookings(day) if not b.status.is_terminal]

    # ==================== TRANSITIONS ====================
    async def accept(self, booking_id: UUID) -> Optional[Booking]:
        """Guest reached by phone; wait for the prepayment"""
        hold = timedelta(hours=self.settings.PREPAYMENT_HOLD_HOURS)
        return await self._transition(booking_id, lambda b, now: b.accept(now, hold))

    async def record_prepayment(self, booking_id: UUID, amount: int,
                                method: PaymentMethod) -> Optional[Booking]:
        return await self._transition(booking_id, lambda b, now: b.record_prepayment(amount, method, now))

    async def confirm(self, booking_id: UUID) -> Optional[Booking]:
        return await self._transition(booking_id, lambda b, now: b.confirm(now))

    async def cancel(self, booking_id: UUID, reason: str = "cancelled by staff") -> Optional[Booking]:
        return await self._transition(booking_id, lambda b, now: b.cancel(reason, now))

    async def mark_no_show(self, booking_id: UUID) -> Optional[Booking]:
        return await self._transition(booking_id, lambda b, now: b.mark_no_show(now))

    async def complete(self, booking_id: UUID, method: PaymentMethod,
                       actor: str = "SYSTEM") -> Optional[Booking]:
        """Settle the balance and close the booking; cash goes to the box's open shift"""
        settled = {}

        def _complete(booking: Booking, now: datetime) -> None:
            settled["amount"] = booking.complete(method, now)

        booking = await self._transition(booking_id, _complete)
        if booking is None:
            return None
        amount = settled.get("amount", 0)
        if method == PaymentMethod.CASH and amount > 0 and self.ledger is not None:
            await self.ledger.record_booking_settlement(booking, amount, actor)
        return booking

    async def expire_lapsed_holds(self) -> int:
        """Eagerly expire every booking whose hold has lapsed"""
        now = self.clock.now()
        held = await self.repository.find_by_statuses(
            [BookingStatus.PENDING_CALL, BookingStatus.AWAITING_PREPAYMENT]
        )
        expired = 0
        for booking in held:
            if not booking.is_hold_lapsed(now):
                continue
            async with self.locks.hold((booking.resource_code, booking.window.day)):
                if booking.expire(now):
                    await self.repository.update(booking)
                    await self._release_slot(booking)
                    expired += 1
        if expired:
            logger.info("holds_expired", extra={"count": expired})
        return expired

    async def _transition(self, booking_id: UUID, action) -> Optional[Booking]:
        """Apply ``action`` to a copy; only a successful transition or a hold lapse is persisted"""
        stored = await self.repository.find_by_id(booking_id)
        if not stored:
            return None

        async with self.locks.hold((stored.resource_code, stored.window.day)):
            booking = stored.model_copy(deep=True)
            now = self.clock.now()
            try:
                action(booking, now)
            except HoldExpired:
                await self.repository.update(booking)
                await self._release_slot(booking)
                logger.info(
                    "booking_hold_expired",
                    extra={"booking_id": booking.booking_id, "status": booking.status.value},
                )
                raise
            updated = await self.repository.update(booking)
            if updated.status in (BookingStatus.CANCELLED, BookingStatus.EXPIRED):
                await self._release_slot(updated)

        logger.info(
            "booking_transition",
            extra={"booking_id": updated.booking_id, "status": updated.status.value},
        )
        return updated

    async def _release_slot(self, booking: Booking) -> None:
        if booking.slot_id is None:
            return
        slot = await self.slot_repo.find_by_id(booking.slot_id)
        if slot is not None:
            slot.release(booking.guest_count)
            await self.slot_repo.update(slot)


class CashLedgerService:
    """Service for cash shift and register use cases"""

    def __init__(self,
                 shift_repo: CashShiftRepository,
                 transaction_repo: CashTransactionRepository,
                 incasation_repo: IncasationRepository,
                 booking_repo: BookingRepository,
                 clock: SystemClock,
                 locks: Optional[KeyedLock] = None):
        self.shift_repo = shift_repo
        self.transaction_repo = transaction_repo
        self.incasation_repo = incasation_repo
        self.booking_repo = booking_repo
        self.clock = clock
        self.locks = locks or KeyedLock()

    async def open_shift(self, cash_box: CashBox, actor: str) -> CashShift:
        async with self.locks.hold(("cash", cash_box)):
            shift = CashShift(cash_box=cash_box, opened_at=self.clock.now(), opened_by=actor)
            if not await self.shift_repo.insert_if_none_open(shift):
                raise ShiftAlreadyOpen(f"The {cash_box.value} cash box already has an open shift")
        logger.info("shift_opened", extra={"shift_id": shift.shift_id, "cash_box": cash_box.value})
        return shift

    async def close_shift(self, shift_id: UUID, actor: str) -> Optional[CashShift]:
        """Close a shift. Closing an already closed shift returns it unchanged"""
        shift = await self.shift_repo.find_by_id(shift_id)
        if not shift:
            return None
        async with self.locks.hold(("cash", shift.cash_box)):
            if shift.close(self.clock.now(), actor):
                await self.shift_repo.update(shift)
                logger.info("shift_closed", extra={"shift_id": shift.shift_id, "cash_box": shift.cash_box.value})
        return shift

    async def current_shift(self, cash_box: CashBox) -> Optional[CashShift]:
        return await self.shift_repo.find_open(cash_box)

    async def get_shift(self, shift_id: UUID) -> Optional[CashShift]:
        return await self.shift_repo.find_by_id(shift_id)

    async def record_transaction(
        self,
        shift_id: UUID,
        type: TransactionType,
        amount: Decimal,
        actor: str,
        category: Optional[str] = None,
        income_source: Optional[IncomeSource] = None,
        comment: Optional[str] = None,
        booking_id: Optional[UUID] = None
    ) -> Optional[CashTransaction]:
        """Append a movement to an open shift"""
        if Decimal(amount) <= 0:
            raise ValueError("Amount must be positive")
        shift = await self.shift_repo.find_by_id(shift_id)
        if not shift:
            return None

        async with self.locks.hold(("cash", shift.cash_box)):
            if not shift.is_open:
                raise ShiftNotOpen(f"Shift {shift_id} is closed")
            transaction = CashTransaction(
                shift_id=shift.shift_id,
                cash_box=shift.cash_box,
                type=type,
                amount=Money(amount=Decimal(amount)),
                category=category,
                income_source=income_source,
                comment=comment,
                booking_id=booking_id,
                created_at=self.clock.now(),
                created_by=actor,
            )
            return await self.transaction_repo.append(transaction)

    async def record_booking_settlement(self, booking: Booking, amount: int,
                                        actor: str) -> Optional[CashTransaction]:
        """Book cash paid at completion into the open shift of the booking's box"""
        cash_box = cash_box_for(booking.kind)
        shift = await self.shift_repo.find_open(cash_box)
        if shift is None:
            logger.warning(
                "settlement_without_open_shift",
                extra={"booking_id": booking.booking_id, "cash_box": cash_box.value},
            )
            return None
        try:
            return await self.record_transaction(
                shift.shift_id,
                TransactionType.CASH_IN,
                Decimal(amount),
                actor,
                income_source=INCOME_SOURCE_BY_KIND[booking.kind],
                comment=f"{booking.booking_type.value} {booking.window.day.isoformat()} {booking.customer.full_name}",
                booking_id=booking.booking_id,
            )
        except ShiftNotOpen:
            # closed between the lookup and the append
            logger.warning(
                "settlement_without_open_shift",
                extra={"booking_id": booking.booking_id, "cash_box": cash_box.value},
            )
            return None

    async def list_transactions(self, shift_id: UUID) -> List[CashTransaction]:
        return await self.transaction_repo.find_by_shift(shift_id)

    async def _collected_through(self, cash_box: CashBox) -> int:
        last = await self.incasation_repo.find_latest(cash_box)
        return last.through_sequence if last else 0

    async def current_balance(self, shift_id: UUID) -> Optional[Decimal]:
        """Signed sum of a shift's movements since the box's last incasation"""
        shift = await self.shift_repo.find_by_id(shift_id)
        if not shift:
            return None
        after = await self._collected_through(shift.cash_box)
        transactions = await self.transaction_repo.find_by_shift(shift_id, after)
        return sum((t.signed_amount for t in transactions), Decimal("0"))

    async def box_balance(self, cash_box: CashBox) -> Decimal:
        after = await self._collected_through(cash_box)
        transactions = await self.transaction_repo.find_by_box(cash_box, after)
        return sum((t.signed_amount for t in transactions), Decimal("0"))

    async def _summarize(self, cash_box: CashBox, now: datetime):
        last = await self.incasation_repo.find_latest(cash_box)
        after = last.through_sequence if last else 0
        transactions = await self.transaction_repo.find_by_box(cash_box, after)

        if last is not None:
            period_start = last.performed_at
        else:
            shifts = await self.shift_repo.find_by_box(cash_box)
            period_start = shifts[0].opened_at if shifts else now

        cash_revenue = Decimal("0")
        cash_out = Decimal("0")
        total_expenses = Decimal("0")
        by_category: Dict[str, Decimal] = {}
        shift_ids: List[UUID] = []
        for t in transactions:
            if t.shift_id not in shift_ids:
                shift_ids.append(t.shift_id)
            if t.type == TransactionType.CASH_IN:
                cash_revenue += t.amount.amount
            elif t.type == TransactionType.CASH_OUT:
                cash_out += t.amount.amount
            else:
                total_expenses += t.amount.amount
                category = t.category or "other"
                by_category[category] = by_category.get(category, Decimal("0")) + t.amount.amount

        erip_revenue = Decimal("0")
        for booking in await self.booking_repo.find_settled_between(period_start, now):
            if cash_box_for(booking.kind) == cash_box:
                erip_revenue += Decimal(booking.payments.electronic_amount())

        summary = IncasationSummary(
            total_revenue=cash_revenue + erip_revenue,
            cash_revenue=cash_revenue,
            erip_revenue=erip_revenue,
            total_expenses=total_expenses,
            cash_out=cash_out,
            cash_on_hand=cash_revenue - total_expenses - cash_out,
            expenses_by_category=by_category,
        )
        through = max((t.sequence for t in transactions), default=after)
        return summary, shift_ids, through, period_start

    async def incasation_preview(self, cash_box: CashBox) -> IncasationSummary:
        """What an incasation would collect right now, without recording it"""
        summary, _, _, _ = await self._summarize(cash_box, self.clock.now())
        return summary

    async def incasate(self, cash_box: CashBox, performed_by: str, role: StaffRole) -> Incasation:
        """Collect the cash on hand; balances restart from zero afterwards"""
        if role not in ELEVATED_ROLES:
            raise InsufficientRole("Only the owner or a super admin can collect cash")

        async with self.locks.hold(("cash", cash_box)):
            now = self.clock.now()
            summary, shift_ids, through, period_start = await self._summarize(cash_box, now)
            if summary.cash_on_hand <= 0:
                raise NothingToCollect(f"No cash on hand in the {cash_box.value} box")
            incasation = Incasation(
                cash_box=cash_box,
                performed_at=now,
                performed_by=performed_by,
                period_start=period_start,
                period_end=now,
                summary=summary,
                shifts_included=shift_ids,
                through_sequence=through,
            )
            await self.incasation_repo.save(incasation)

        logger.info(
            "incasation_recorded",
            extra={"cash_box": cash_box.value, "count": len(shift_ids)},
        )
        return incasation

    async def list_incasations(self, cash_box: CashBox) -> List[Incasation]:
        return await self.incasation_repo.find_by_box(cash_box)


class TaskService:
    """Service for staff task use cases"""

    def __init__(self, repository: TaskRepository, clock: SystemClock):
        self.repository = repository
        self.clock = clock

    async def materialize(self, definitions: List[ScheduledTaskDefinition], day: date) -> List[Task]:
        """Create dated tasks from templates; tasks already present for the day are skipped"""
        created = []
        now = self.clock.now()
        for definition in definitions:
            task = Task.from_definition(definition, day, now)
            if await self.repository.insert_if_absent(task):
                created.append(task)
        return created

    async def create_task(self, day: date, title: str, type: TaskType = TaskType.OTHER,
                          unit_code: Optional[str] = None, checklist: Optional[List[str]] = None,
                          assigned_to: Optional[str] = None) -> Task:
        task = Task(
            day=day,
            title=title,
            type=type,
            unit_code=unit_code,
            checklist=checklist or [],
            assigned_to=assigned_to,
            created_at=self.clock.now(),
        )
        return await self.repository.save(task)

    async def list_tasks(self, day: date) -> List[Task]:
        tasks = await self.repository.find_by_date(day)
        return sorted(tasks, key=lambda t: (t.status.value != "open", t.title))

    async def complete_task(self, task_id: UUID) -> Optional[Task]:
        task = await self.repository.find_by_id(task_id)
        if not task:
            return None
        task.complete(self.clock.now())
        return await self.repository.update(task)
