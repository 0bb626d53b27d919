"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID
from typing import Dict, List, Optional

from domain.enums import (
    BookingType, PaymentMethod, CashBox, TransactionType, IncomeSource, ResourceKind, TaskType,
    OccupancyLevel,
)


# ============================================================================
# PRICING SCHEMAS
# ============================================================================

class QuoteRequest(BaseModel):
    """Price quote request DTO"""
    booking_type: BookingType
    guest_count: int = Field(ge=1)
    day: date
    discount_percent: int = Field(ge=0, le=100, default=0)
    duration_minutes: Optional[int] = Field(None, ge=1)


class PriceQuoteResponse(BaseModel):
    """Price quote response DTO"""
    base: int
    discount_percent: int
    discount_amount: int
    total: int
    tariff_date: Optional[date] = None


class SetTariffRequest(BaseModel):
    """Create or replace tariff request DTO"""
    booking_type: BookingType
    price: int = Field(ge=0)
    tariff_date: Optional[date] = None
    guest_threshold: Optional[int] = Field(None, ge=1)
    upper_price: Optional[int] = Field(None, ge=0)
    per_unit: Optional[bool] = None
    included_hours: Optional[int] = Field(None, ge=1)
    extra_hour_price: int = Field(ge=0, default=0)


class TariffResponse(BaseModel):
    """Tariff response DTO"""
    tariff_id: UUID
    booking_type: str
    price: int
    tariff_date: Optional[date] = None
    guest_threshold: Optional[int] = None
    upper_price: Optional[int] = None
    per_unit: bool
    included_hours: Optional[int] = None
    extra_hour_price: int


# ============================================================================
# AVAILABILITY SCHEMAS
# ============================================================================

class SlotResponse(BaseModel):
    """Grid window availability response DTO"""
    start: time
    end: time
    is_available: bool
    remaining_capacity: int
    route_type: Optional[str] = None
    joinable: bool = False
    proximity_discount: bool = False
    reason: Optional[str] = None


class AvailabilityResponse(BaseModel):
    """Availability of one resource for one date"""
    resource_code: str
    day: date
    slots: List[SlotResponse]


class CalendarResponse(BaseModel):
    """Monthly occupancy per resource"""
    kind: ResourceKind
    year: int
    month: int
    resources: Dict[str, Dict[date, OccupancyLevel]]


class BlockRequest(BaseModel):
    """Block a whole day or part of it"""
    kind: ResourceKind
    day: date
    start: Optional[time] = None
    end: Optional[time] = None
    reason: Optional[str] = None


class BlockResponse(BaseModel):
    """Blocked period response DTO"""
    block_id: UUID
    kind: str
    day: date
    start: Optional[time] = None
    end: Optional[time] = None
    reason: Optional[str] = None
    created_by: str


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CustomerRequest(BaseModel):
    """Guest contact DTO"""
    full_name: str = Field(min_length=2)
    phone: str = Field(min_length=7)
    telegram_id: Optional[str] = None


class CreateBookingRequest(BaseModel):
    """Create booking request DTO"""
    resource_code: str
    day: date
    start: time
    end: time
    guest_count: int = Field(ge=1, description="Guests, or quads for a ride")
    customer: CustomerRequest
    booking_type: Optional[BookingType] = None
    discount_percent: int = Field(ge=0, le=100, default=0)
    confirmed: bool = False
    comment: Optional[str] = None


class PrepaymentRequest(BaseModel):
    """Record prepayment request DTO"""
    amount: int = Field(gt=0)
    method: PaymentMethod = PaymentMethod.ERIP


class CompleteBookingRequest(BaseModel):
    """Complete booking request DTO"""
    method: PaymentMethod = PaymentMethod.CASH


class CancelBookingRequest(BaseModel):
    """Cancel booking request DTO"""
    reason: str = "Guest changed plans"


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    resource_code: str
    kind: str
    booking_type: str
    day: date
    start: time
    end: time
    guest_count: int
    route_type: Optional[str] = None
    customer_name: str
    customer_phone: str
    pricing: PriceQuoteResponse
    prepaid_amount: int
    cash_paid: int
    erip_paid: int
    status: str
    hold_until: Optional[datetime] = None
    status_reason: Optional[str] = None
    comment: Optional[str] = None
    created_at: datetime
    modified_at: datetime
    created_by: str
    version: int


# ============================================================================
# CASH SCHEMAS
# ============================================================================

class OpenShiftRequest(BaseModel):
    """Open shift request DTO"""
    cash_box: CashBox = CashBox.MAIN


class ShiftResponse(BaseModel):
    """Cash shift response DTO"""
    shift_id: UUID
    cash_box: str
    opened_at: datetime
    opened_by: str
    is_open: bool
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None


class TransactionRequest(BaseModel):
    """Record transaction request DTO"""
    type: TransactionType
    amount: Decimal = Field(gt=0)
    category: Optional[str] = None
    income_source: Optional[IncomeSource] = None
    comment: Optional[str] = None


class TransactionResponse(BaseModel):
    """Cash transaction response DTO"""
    tx_id: UUID
    shift_id: UUID
    cash_box: str
    type: str
    amount: Decimal
    signed_amount: Decimal
    currency: str
    category: Optional[str] = None
    income_source: Optional[str] = None
    comment: Optional[str] = None
    booking_id: Optional[UUID] = None
    created_at: datetime
    created_by: str
    sequence: int


class BalanceResponse(BaseModel):
    """Balance response DTO"""
    balance: Decimal
    shift_id: Optional[UUID] = None
    cash_box: Optional[str] = None


class IncasationSummaryResponse(BaseModel):
    """Incasation summary response DTO"""
    total_revenue: Decimal
    cash_revenue: Decimal
    erip_revenue: Decimal
    total_expenses: Decimal
    cash_out: Decimal
    cash_on_hand: Decimal
    expenses_by_category: Dict[str, Decimal]


class IncasationResponse(BaseModel):
    """Incasation response DTO"""
    incasation_id: UUID
    cash_box: str
    performed_at: datetime
    performed_by: str
    period_start: datetime
    period_end: datetime
    summary: IncasationSummaryResponse
    shifts_included: List[UUID]


# ============================================================================
# TASK SCHEMAS
# ============================================================================

class CreateTaskRequest(BaseModel):
    """Create task request DTO"""
    day: date
    title: str = Field(min_length=1)
    type: TaskType = TaskType.OTHER
    unit_code: Optional[str] = None
    checklist: List[str] = []
    assigned_to: Optional[str] = None


class TaskResponse(BaseModel):
    """Task response DTO"""
    task_id: UUID
    day: date
    title: str
    type: str
    unit_code: Optional[str] = None
    checklist: List[str]
    status: str
    cadence: Optional[str] = None
    created_by_system: bool
    assigned_to: Optional[str] = None
    completed_at: Optional[datetime] = None


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None
    role: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str
    disabled: bool
