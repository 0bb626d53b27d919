"""In-Memory Repository Implementations

Conditional writes (``insert_if_none_open``, ``insert_if_absent``, ``append``)
run without awaiting anything, so each is atomic with respect to other
coroutines on the same event loop.
"""
from typing import Optional, List, Dict, Tuple
from uuid import UUID
from datetime import date, datetime

from domain.repositories import (
    ResourceRepository, TariffRepository, BlockedPeriodRepository, BookingRepository,
    QuadSlotRepository, CashShiftRepository, CashTransactionRepository, IncasationRepository,
    TaskRepository,
)
from domain.entities import (
    Resource, Tariff, BlockedPeriod, Booking, QuadSlot, CashShift, CashTransaction, Incasation, Task,
)
from domain.enums import ResourceKind, BookingType, BookingStatus, CashBox, Cadence, RouteType
from domain.value_objects import TimeWindow


class InMemoryResourceRepository(ResourceRepository):
    """In-memory implementation of ResourceRepository"""

    def __init__(self, resources: Optional[List[Resource]] = None):
        self._storage: Dict[str, Resource] = {r.code: r for r in resources or []}

    async def save(self, resource: Resource) -> Resource:
        self._storage[resource.code] = resource
        return resource

    async def find_by_code(self, code: str) -> Optional[Resource]:
        return self._storage.get(code)

    async def find_by_kind(self, kind: ResourceKind) -> List[Resource]:
        return [r for r in self._storage.values() if r.kind == kind and r.active]

    async def find_all(self) -> List[Resource]:
        return list(self._storage.values())


class InMemoryTariffRepository(TariffRepository):
    """In-memory implementation of TariffRepository"""

    def __init__(self, tariffs: Optional[List[Tariff]] = None):
        self._storage: Dict[Tuple[BookingType, Optional[date]], Tariff] = {}
        for tariff in tariffs or []:
            self._storage[(tariff.booking_type, tariff.tariff_date)] = tariff

    async def save(self, tariff: Tariff) -> Tariff:
        self._storage[(tariff.booking_type, tariff.tariff_date)] = tariff
        return tariff

    async def find(self, booking_type: BookingType, tariff_date: Optional[date]) -> Optional[Tariff]:
        return self._storage.get((booking_type, tariff_date))

    async def find_all(self) -> List[Tariff]:
        return list(self._storage.values())

    async def delete(self, booking_type: BookingType, tariff_date: Optional[date]) -> bool:
        return self._storage.pop((booking_type, tariff_date), None) is not None


class InMemoryBlockedPeriodRepository(BlockedPeriodRepository):
    """In-memory implementation of BlockedPeriodRepository"""

    def __init__(self):
        self._storage: Dict[UUID, BlockedPeriod] = {}

    async def save(self, block: BlockedPeriod) -> BlockedPeriod:
        self._storage[block.block_id] = block
        return block

    async def find_by_kind_and_date(self, kind: ResourceKind, day: date) -> List[BlockedPeriod]:
        return [b for b in self._storage.values() if b.kind == kind and b.day == day]

    async def find_all(self) -> List[BlockedPeriod]:
        return list(self._storage.values())

    async def delete(self, block_id: UUID) -> bool:
        return self._storage.pop(block_id, None) is not None


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Booking] = {}

    async def save(self, booking: Booking) -> Booking:
        self._storage[booking.booking_id] = booking
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        return self._storage.get(booking_id)

    async def find_by_resource_and_date(self, resource_code: str, day: date) -> List[Booking]:
        return [
            b for b in self._storage.values()
            if b.resource_code == resource_code and b.window.day == day
        ]

    async def find_by_date(self, day: date) -> List[Booking]:
        return [b for b in self._storage.values() if b.window.day == day]

    async def find_by_statuses(self, statuses: List[BookingStatus]) -> List[Booking]:
        wanted = set(statuses)
        return [b for b in self._storage.values() if b.status in wanted]

    async def find_settled_between(self, start: datetime, end: datetime) -> List[Booking]:
        return [
            b for b in self._storage.values()
            if b.payments.settled_at is not None and start < b.payments.settled_at <= end
        ]

    async def find_all(self) -> List[Booking]:
        return list(self._storage.values())

    async def update(self, booking: Booking) -> Booking:
        if booking.booking_id in self._storage:
            self._storage[booking.booking_id] = booking
            return booking
        raise ValueError("Booking not found")


class InMemoryQuadSlotRepository(QuadSlotRepository):
    """In-memory implementation of QuadSlotRepository"""

    def __init__(self):
        self._storage: Dict[UUID, QuadSlot] = {}

    async def save(self, slot: QuadSlot) -> QuadSlot:
        self._storage[slot.slot_id] = slot
        return slot

    async def find_by_id(self, slot_id: UUID) -> Optional[QuadSlot]:
        return self._storage.get(slot_id)

    async def find_by_date(self, day: date) -> List[QuadSlot]:
        return [s for s in self._storage.values() if s.window.day == day]

    async def find_matching(self, window: TimeWindow, route_type: RouteType) -> Optional[QuadSlot]:
        for slot in self._storage.values():
            if slot.matches(window, route_type):
                return slot
        return None

    async def update(self, slot: QuadSlot) -> QuadSlot:
        if slot.slot_id in self._storage:
            self._storage[slot.slot_id] = slot
            return slot
        raise ValueError("Quad slot not found")


class InMemoryCashShiftRepository(CashShiftRepository):
    """In-memory implementation of CashShiftRepository"""

    def __init__(self):
        self._storage: Dict[UUID, CashShift] = {}

    async def insert_if_none_open(self, shift: CashShift) -> bool:
        if any(s.is_open and s.cash_box == shift.cash_box for s in self._storage.values()):
            return False
        self._storage[shift.shift_id] = shift
        return True

    async def find_by_id(self, shift_id: UUID) -> Optional[CashShift]:
        return self._storage.get(shift_id)

    async def find_open(self, cash_box: CashBox) -> Optional[CashShift]:
        for shift in self._storage.values():
            if shift.is_open and shift.cash_box == cash_box:
                return shift
        return None

    async def find_all_open(self) -> List[CashShift]:
        return [s for s in self._storage.values() if s.is_open]

    async def find_by_box(self, cash_box: CashBox) -> List[CashShift]:
        shifts = [s for s in self._storage.values() if s.cash_box == cash_box]
        return sorted(shifts, key=lambda s: s.opened_at)

    async def update(self, shift: CashShift) -> CashShift:
        if shift.shift_id in self._storage:
            self._storage[shift.shift_id] = shift
            return shift
        raise ValueError("Cash shift not found")


class InMemoryCashTransactionRepository(CashTransactionRepository):
    """In-memory append-only transaction log"""

    def __init__(self):
        self._log: List[CashTransaction] = []
        self._sequence = 0

    async def append(self, transaction: CashTransaction) -> CashTransaction:
        self._sequence += 1
        stored = transaction.model_copy(update={"sequence": self._sequence})
        self._log.append(stored)
        return stored

    async def find_by_shift(self, shift_id: UUID, after_sequence: int = 0) -> List[CashTransaction]:
        return [t for t in self._log if t.shift_id == shift_id and t.sequence > after_sequence]

    async def find_by_box(self, cash_box: CashBox, after_sequence: int = 0) -> List[CashTransaction]:
        return [t for t in self._log if t.cash_box == cash_box and t.sequence > after_sequence]


class InMemoryIncasationRepository(IncasationRepository):
    """In-memory implementation of IncasationRepository"""

    def __init__(self):
        self._storage: List[Incasation] = []

    async def save(self, incasation: Incasation) -> Incasation:
        self._storage.append(incasation)
        return incasation

    async def find_latest(self, cash_box: CashBox) -> Optional[Incasation]:
        for incasation in reversed(self._storage):
            if incasation.cash_box == cash_box:
                return incasation
        return None

    async def find_by_box(self, cash_box: CashBox) -> List[Incasation]:
        return [i for i in self._storage if i.cash_box == cash_box]


class InMemoryTaskRepository(TaskRepository):
    """In-memory implementation of TaskRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Task] = {}

    def _key_taken(self, day: date, title: str, cadence: Optional[Cadence]) -> bool:
        return any(
            t.day == day and t.title == title and t.cadence == cadence
            for t in self._storage.values()
        )

    async def insert_if_absent(self, task: Task) -> bool:
        if self._key_taken(task.day, task.title, task.cadence):
            return False
        self._storage[task.task_id] = task
        return True

    async def save(self, task: Task) -> Task:
        self._storage[task.task_id] = task
        return task

    async def find_by_id(self, task_id: UUID) -> Optional[Task]:
        return self._storage.get(task_id)

    async def find_by_date(self, day: date) -> List[Task]:
        return [t for t in self._storage.values() if t.day == day]

    async def update(self, task: Task) -> Task:
        if task.task_id in self._storage:
            self._storage[task.task_id] = task
            return task
        raise ValueError("Task not found")
