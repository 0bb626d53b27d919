"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from domain.entities import (
    Resource, Tariff, BlockedPeriod, Booking, QuadSlot, CashShift, CashTransaction, Incasation, Task,
)
from domain.enums import ResourceKind, BookingType, BookingStatus, CashBox, RouteType
from domain.value_objects import TimeWindow


class ResourceRepository(ABC):
    """Repository interface for bookable resources"""

    @abstractmethod
    async def save(self, resource: Resource) -> Resource:
        """Save resource"""
        pass

    @abstractmethod
    async def find_by_code(self, code: str) -> Optional[Resource]:
        """Find resource by its code"""
        pass

    @abstractmethod
    async def find_by_kind(self, kind: ResourceKind) -> List[Resource]:
        """Find active resources of a kind"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Resource]:
        """Find all resources"""
        pass


class TariffRepository(ABC):
    """Repository interface for tariffs, keyed by (booking_type, tariff_date)"""

    @abstractmethod
    async def save(self, tariff: Tariff) -> Tariff:
        """Save tariff, replacing the record with the same key"""
        pass

    @abstractmethod
    async def find(self, booking_type: BookingType, tariff_date: Optional[date]) -> Optional[Tariff]:
        """Find the tariff for an exact key; tariff_date None is the standing default"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Tariff]:
        """Find all tariffs"""
        pass

    @abstractmethod
    async def delete(self, booking_type: BookingType, tariff_date: Optional[date]) -> bool:
        """Delete tariff by key"""
        pass


class BlockedPeriodRepository(ABC):
    """Repository interface for staff-declared blocks"""

    @abstractmethod
    async def save(self, block: BlockedPeriod) -> BlockedPeriod:
        """Save block"""
        pass

    @abstractmethod
    async def find_by_kind_and_date(self, kind: ResourceKind, day: date) -> List[BlockedPeriod]:
        """Find blocks on a resource kind for a date"""
        pass

    @abstractmethod
    async def find_all(self) -> List[BlockedPeriod]:
        """Find all blocks"""
        pass

    @abstractmethod
    async def delete(self, block_id: UUID) -> bool:
        """Delete block"""
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        """Save booking"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_by_resource_and_date(self, resource_code: str, day: date) -> List[Booking]:
        """Find bookings on a resource for a date"""
        pass

    @abstractmethod
    async def find_by_date(self, day: date) -> List[Booking]:
        """Find bookings for a date across all resources"""
        pass

    @abstractmethod
    async def find_by_statuses(self, statuses: List[BookingStatus]) -> List[Booking]:
        """Find bookings in any of the given statuses"""
        pass

    @abstractmethod
    async def find_settled_between(self, start: datetime, end: datetime) -> List[Booking]:
        """Find bookings whose settlement falls in (start, end]"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Booking]:
        """Find all bookings"""
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        pass


class QuadSlotRepository(ABC):
    """Repository interface for shared quad ride slots"""

    @abstractmethod
    async def save(self, slot: QuadSlot) -> QuadSlot:
        """Save slot"""
        pass

    @abstractmethod
    async def find_by_id(self, slot_id: UUID) -> Optional[QuadSlot]:
        """Find slot by ID"""
        pass

    @abstractmethod
    async def find_by_date(self, day: date) -> List[QuadSlot]:
        """Find slots for a date"""
        pass

    @abstractmethod
    async def find_matching(self, window: TimeWindow, route_type: RouteType) -> Optional[QuadSlot]:
        """Find the slot for an identical window and route"""
        pass

    @abstractmethod
    async def update(self, slot: QuadSlot) -> QuadSlot:
        """Update slot"""
        pass


class CashShiftRepository(ABC):
    """Repository interface for cash shifts"""

    @abstractmethod
    async def insert_if_none_open(self, shift: CashShift) -> bool:
        """Insert the shift only when its box has no open shift; returns whether it was stored"""
        pass

    @abstractmethod
    async def find_by_id(self, shift_id: UUID) -> Optional[CashShift]:
        """Find shift by ID"""
        pass

    @abstractmethod
    async def find_open(self, cash_box: CashBox) -> Optional[CashShift]:
        """Find the open shift of a box"""
        pass

    @abstractmethod
    async def find_all_open(self) -> List[CashShift]:
        """Find open shifts across boxes"""
        pass

    @abstractmethod
    async def find_by_box(self, cash_box: CashBox) -> List[CashShift]:
        """Find all shifts of a box, oldest first"""
        pass

    @abstractmethod
    async def update(self, shift: CashShift) -> CashShift:
        """Update shift"""
        pass


class CashTransactionRepository(ABC):
    """Append-only repository for register movements"""

    @abstractmethod
    async def append(self, transaction: CashTransaction) -> CashTransaction:
        """Store the transaction and return it with its sequence number assigned"""
        pass

    @abstractmethod
    async def find_by_shift(self, shift_id: UUID, after_sequence: int = 0) -> List[CashTransaction]:
        """Find a shift's transactions with sequence above ``after_sequence``"""
        pass

    @abstractmethod
    async def find_by_box(self, cash_box: CashBox, after_sequence: int = 0) -> List[CashTransaction]:
        """Find a box's transactions with sequence above ``after_sequence``"""
        pass


class IncasationRepository(ABC):
    """Repository interface for incasation records"""

    @abstractmethod
    async def save(self, incasation: Incasation) -> Incasation:
        """Save incasation"""
        pass

    @abstractmethod
    async def find_latest(self, cash_box: CashBox) -> Optional[Incasation]:
        """Find the most recent incasation of a box"""
        pass

    @abstractmethod
    async def find_by_box(self, cash_box: CashBox) -> List[Incasation]:
        """Find all incasations of a box"""
        pass


class TaskRepository(ABC):
    """Repository interface for staff tasks"""

    @abstractmethod
    async def insert_if_absent(self, task: Task) -> bool:
        """Insert unless a task with the same (day, title, cadence) exists"""
        pass

    @abstractmethod
    async def save(self, task: Task) -> Task:
        """Save task"""
        pass

    @abstractmethod
    async def find_by_id(self, task_id: UUID) -> Optional[Task]:
        """Find task by ID"""
        pass

    @abstractmethod
    async def find_by_date(self, day: date) -> List[Task]:
        """Find tasks for a date"""
        pass

    @abstractmethod
    async def update(self, task: Task) -> Task:
        """Update task"""
        pass
