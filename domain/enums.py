"""Domain Enums"""
from enum import Enum


class ResourceKind(str, Enum):
    BATH = "bath"
    SPA = "spa"
    QUAD = "quad"


class BookingType(str, Enum):
    BATH = "bath"
    SPA_BATH_ONLY = "bath_only"
    SPA_TERRACE_ONLY = "terrace_only"
    SPA_TUB_ONLY = "tub_only"
    SPA_BATH_WITH_TUB = "bath_with_tub"
    QUAD_SHORT = "quad_short"
    QUAD_LONG = "quad_long"


class RouteType(str, Enum):
    SHORT = "short"
    LONG = "long"

    @property
    def duration_minutes(self) -> int:
        return 30 if self is RouteType.SHORT else 60

    @property
    def booking_type(self) -> "BookingType":
        return BookingType.QUAD_SHORT if self is RouteType.SHORT else BookingType.QUAD_LONG


class BookingStatus(str, Enum):
    PENDING_CALL = "pending_call"
    AWAITING_PREPAYMENT = "awaiting_prepayment"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def carries_hold(self) -> bool:
        return self in (BookingStatus.PENDING_CALL, BookingStatus.AWAITING_PREPAYMENT)


TERMINAL_STATUSES = frozenset({
    BookingStatus.CANCELLED,
    BookingStatus.EXPIRED,
    BookingStatus.COMPLETED,
    BookingStatus.NO_SHOW,
})


class PaymentMethod(str, Enum):
    CASH = "cash"
    ERIP = "erip"


class CashBox(str, Enum):
    MAIN = "main"
    QUADS = "quads"


class TransactionType(str, Enum):
    CASH_IN = "cash_in"
    CASH_OUT = "cash_out"
    EXPENSE = "expense"


class IncomeSource(str, Enum):
    BATH = "bath"
    SPA = "spa"
    QUADS = "quads"
    COTTAGE = "cottage"
    OTHER = "other"


class StaffRole(str, Enum):
    OWNER = "OWNER"
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    INSTRUCTOR = "INSTRUCTOR"


ELEVATED_ROLES = frozenset({StaffRole.OWNER, StaffRole.SUPER_ADMIN})


class TaskType(str, Enum):
    CLEANING = "cleaning"
    CLIMATE_ON = "climate_on"
    CLIMATE_OFF = "climate_off"
    TRASH_PREP = "trash_prep"
    METERS = "meters"
    CALL_GUEST = "call_guest"
    OTHER = "other"


class TaskStatus(str, Enum):
    OPEN = "open"
    DONE = "done"


class Cadence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class OccupancyLevel(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"
