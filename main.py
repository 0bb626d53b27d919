import logging
from contextlib import asynccontextmanager
from fastapi import APIRouter, FastAPI, HTTPException, Depends, Request
from uuid import UUID
from datetime import date, timedelta
from typing import List, Optional
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Pricing
    QuoteRequest, PriceQuoteResponse, SetTariffRequest, TariffResponse,
    # Availability
    SlotResponse, AvailabilityResponse, CalendarResponse, BlockRequest, BlockResponse,
    # Bookings
    CreateBookingRequest, PrepaymentRequest, CompleteBookingRequest, CancelBookingRequest,
    BookingResponse,
    # Cash
    OpenShiftRequest, ShiftResponse, TransactionRequest, TransactionResponse, BalanceResponse,
    IncasationSummaryResponse, IncasationResponse,
    # Tasks
    CreateTaskRequest, TaskResponse,
    # Auth
    Token, UserResponse
)

from api.dependencies import get_current_active_user, require_roles, fake_users_db, get_user
from infrastructure.security import verify_password, create_access_token, ACCESS_TOKEN_EXPIRE_MINUTES
from domain.auth import User

from application.pricing import PricingCalculator
from application.services import SlotAllocator, BookingService, CashLedgerService, TaskService
from domain.enums import (
    BookingStatus, BookingType, CashBox, ResourceKind, RouteType, StaffRole,
)
from domain.exceptions import (
    Conflict, InvalidWindow, InvalidTransition, HoldExpired, ShiftAlreadyOpen, ShiftNotOpen,
    NothingToCollect, ResourceUnknown, InsufficientRole, NoTariffConfigured,
)
from domain.value_objects import CustomerContact
from infrastructure.clock import SystemClock
from infrastructure.container import VenueContainer
from infrastructure.logging_config import configure_logging
from infrastructure.settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

ELEVATED = (StaffRole.OWNER, StaffRole.SUPER_ADMIN)

_ERROR_STATUS = (
    (Conflict, 409),
    (ShiftAlreadyOpen, 409),
    (ShiftNotOpen, 409),
    (NothingToCollect, 409),
    (ResourceUnknown, 404),
    (InsufficientRole, 403),
    (HoldExpired, 422),
    (InvalidTransition, 422),
    (InvalidWindow, 400),
)


def _http_error(e: ValueError) -> HTTPException:
    """Map a domain failure to an HTTP error; anything unrecognised is a 400"""
    if isinstance(e, NoTariffConfigured):
        logger.error("tariff_missing", extra={"reason": str(e)})
        return HTTPException(status_code=500, detail=str(e))
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(e, error_type):
            return HTTPException(status_code=status_code, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def create_app(settings: Optional[Settings] = None,
               clock: Optional[SystemClock] = None,
               messenger=None,
               weather=None) -> FastAPI:
    settings = settings or get_settings()
    container = VenueContainer(settings, clock=clock, messenger=messenger, weather=weather)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        if settings.SCHEDULER_ENABLED:
            await container.scheduler.start()
        yield
        if settings.SCHEDULER_ENABLED:
            await container.scheduler.stop()

    application = FastAPI(
        title="Venue Booking & Cash Shift API",
        description="Bath house, spa and quad bookings with cash shift accounting",
        version="1.0.0",
        lifespan=lifespan
    )
    application.state.container = container
    application.include_router(router)
    return application


# Dependency injection
def get_container(request: Request) -> VenueContainer:
    return request.app.state.container

def get_pricing(container: VenueContainer = Depends(get_container)) -> PricingCalculator:
    return container.pricing

def get_allocator(container: VenueContainer = Depends(get_container)) -> SlotAllocator:
    return container.allocator

def get_booking_service(container: VenueContainer = Depends(get_container)) -> BookingService:
    return container.booking_service

def get_ledger(container: VenueContainer = Depends(get_container)) -> CashLedgerService:
    return container.ledger

def get_task_service(container: VenueContainer = Depends(get_container)) -> TaskService:
    return container.task_service


# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@router.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@router.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {
        "values": [item.value for item in BookingStatus],
        "terminal": [item.value for item in BookingStatus if item.is_terminal],
    }

@router.get("/api/enums/booking-type", tags=["Enum Reference"])
async def get_booking_types():
    """Get all BookingType enum values"""
    return {"values": [item.value for item in BookingType]}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@router.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value}, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}

@router.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return _user_to_response(current_user)

# ============================================================================
# PRICING ENDPOINTS
# ============================================================================

@router.post("/api/pricing/quote", response_model=PriceQuoteResponse, tags=["Pricing"])
async def quote_price(
    request: QuoteRequest,
    pricing: PricingCalculator = Depends(get_pricing),
    current_user: User = Depends(get_current_active_user)
):
    """Quote a price without booking anything"""
    try:
        quote = await pricing.price(
            request.booking_type,
            request.guest_count,
            request.day,
            discount_percent=request.discount_percent,
            duration_minutes=request.duration_minutes,
        )
        return PriceQuoteResponse(**quote.model_dump())
    except ValueError as e:
        raise _http_error(e)

@router.get("/api/tariffs", response_model=List[TariffResponse], tags=["Pricing"])
async def list_tariffs(
    pricing: PricingCalculator = Depends(get_pricing),
    current_user: User = Depends(get_current_active_user)
):
    """List standing tariffs and date overrides"""
    return [_tariff_to_response(t) for t in await pricing.list_tariffs()]

@router.put("/api/tariffs", response_model=TariffResponse, tags=["Pricing"])
async def set_tariff(
    request: SetTariffRequest,
    pricing: PricingCalculator = Depends(get_pricing),
    current_user: User = Depends(require_roles(*ELEVATED))
):
    """Create or replace the tariff for a booking type and optional date"""
    try:
        tariff = await pricing.set_tariff(
            request.booking_type,
            request.price,
            tariff_date=request.tariff_date,
            guest_threshold=request.guest_threshold,
            upper_price=request.upper_price,
            per_unit=request.per_unit,
            included_hours=request.included_hours,
            extra_hour_price=request.extra_hour_price,
            created_by=current_user.username,
        )
        return _tariff_to_response(tariff)
    except ValueError as e:
        raise _http_error(e)

@router.delete("/api/tariffs/{booking_type}", status_code=204, tags=["Pricing"])
async def remove_tariff(
    booking_type: BookingType,
    tariff_date: Optional[date] = None,
    pricing: PricingCalculator = Depends(get_pricing),
    current_user: User = Depends(require_roles(*ELEVATED))
):
    """Delete a tariff"""
    if not await pricing.remove_tariff(booking_type, tariff_date):
        raise HTTPException(status_code=404, detail="Tariff not found")

# ============================================================================
# AVAILABILITY ENDPOINTS
# ============================================================================

@router.get("/api/resources", tags=["Availability"])
async def list_resources(
    container: VenueContainer = Depends(get_container),
    current_user: User = Depends(get_current_active_user)
):
    """List bookable resources"""
    resources = await container.resource_repo.find_all()
    return [
        {"code": r.code, "kind": r.kind.value, "name": r.name, "capacity": r.capacity, "active": r.active}
        for r in resources
    ]

@router.get("/api/resources/{resource_code}/availability", response_model=AvailabilityResponse, tags=["Availability"])
async def get_availability(
    resource_code: str,
    day: date,
    route_type: Optional[RouteType] = None,
    allocator: SlotAllocator = Depends(get_allocator),
    current_user: User = Depends(get_current_active_user)
):
    """Grid windows for a resource on a date"""
    try:
        slots = await allocator.availability(resource_code, day, route_type)
    except ValueError as e:
        raise _http_error(e)
    return AvailabilityResponse(
        resource_code=resource_code,
        day=day,
        slots=[
            SlotResponse(
                start=s.start,
                end=s.end,
                is_available=s.is_available,
                remaining_capacity=s.remaining_capacity,
                route_type=s.route_type,
                joinable=s.joinable,
                proximity_discount=s.proximity_discount,
                reason=s.reason,
            )
            for s in slots
        ],
    )

@router.get("/api/calendar/{kind}", response_model=CalendarResponse, tags=["Availability"])
async def get_month_calendar(
    kind: ResourceKind,
    year: int,
    month: int,
    allocator: SlotAllocator = Depends(get_allocator),
    current_user: User = Depends(get_current_active_user)
):
    """Per-day occupancy for every resource of a kind"""
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")
    resources = await allocator.month_calendar(kind, year, month)
    return CalendarResponse(kind=kind, year=year, month=month, resources=resources)

@router.post("/api/blocks", response_model=BlockResponse, status_code=201, tags=["Availability"])
async def create_block(
    request: BlockRequest,
    allocator: SlotAllocator = Depends(get_allocator),
    current_user: User = Depends(get_current_active_user)
):
    """Block a whole day or a time range for a resource kind"""
    try:
        block = await allocator.block(
            request.kind, request.day, request.start, request.end, request.reason,
            created_by=current_user.username,
        )
    except ValueError as e:
        raise _http_error(e)
    return BlockResponse(
        block_id=block.block_id,
        kind=block.kind.value,
        day=block.day,
        start=block.start,
        end=block.end,
        reason=block.reason,
        created_by=block.created_by,
    )

@router.delete("/api/blocks/{block_id}", status_code=204, tags=["Availability"])
async def delete_block(
    block_id: UUID,
    allocator: SlotAllocator = Depends(get_allocator),
    current_user: User = Depends(get_current_active_user)
):
    """Remove a block"""
    if not await allocator.unblock(block_id):
        raise HTTPException(status_code=404, detail="Block not found")

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@router.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Create new booking"""
    try:
        booking = await service.create_booking(
            resource_code=request.resource_code,
            day=request.day,
            start=request.start,
            end=request.end,
            guest_count=request.guest_count,
            customer=CustomerContact(**request.customer.model_dump()),
            booking_type=request.booking_type,
            discount_percent=request.discount_percent,
            confirmed=request.confirmed,
            comment=request.comment,
            created_by=current_user.username
        )
        return _booking_to_response(booking)
    except ValueError as e:
        raise _http_error(e)

@router.get("/api/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def list_bookings(
    day: Optional[date] = None,
    status: Optional[BookingStatus] = None,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """List bookings, optionally for one date or status"""
    bookings = await service.list_bookings(day, status)
    return [_booking_to_response(b) for b in bookings]

@router.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get booking by ID"""
    booking = await service.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _booking_to_response(booking)

@router.post("/api/bookings/{booking_id}/accept", response_model=BookingResponse, tags=["Bookings"])
async def accept_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Guest called back; wait for the prepayment"""
    try:
        booking = await service.accept(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return _booking_to_response(booking)
    except ValueError as e:
        raise _http_error(e)

@router.post("/api/bookings/{booking_id}/prepayment", response_model=BookingResponse, tags=["Bookings"])
async def record_prepayment(
    booking_id: UUID,
    request: PrepaymentRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Record the prepayment, which confirms the booking"""
    try:
        booking = await service.record_prepayment(booking_id, request.amount, request.method)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return _booking_to_response(booking)
    except ValueError as e:
        raise _http_error(e)

@router.post("/api/bookings/{booking_id}/confirm", response_model=BookingResponse, tags=["Bookings"])
async def confirm_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Confirm booking without a prepayment"""
    try:
        booking = await service.confirm(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return _booking_to_response(booking)
    except ValueError as e:
        raise _http_error(e)

@router.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    request: CancelBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel booking"""
    try:
        booking = await service.cancel(booking_id, request.reason)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return _booking_to_response(booking)
    except ValueError as e:
        raise _http_error(e)

@router.post("/api/bookings/{booking_id}/complete", response_model=BookingResponse, tags=["Bookings"])
async def complete_booking(
    booking_id: UUID,
    request: CompleteBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Settle the balance and complete the booking"""
    try:
        booking = await service.complete(booking_id, request.method, actor=current_user.username)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return _booking_to_response(booking)
    except ValueError as e:
        raise _http_error(e)

@router.post("/api/bookings/{booking_id}/no-show", response_model=BookingResponse, tags=["Bookings"])
async def mark_no_show(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Mark booking as no-show"""
    try:
        booking = await service.mark_no_show(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return _booking_to_response(booking)
    except ValueError as e:
        raise _http_error(e)

@router.post("/api/bookings/holds/expire", tags=["Bookings"])
async def expire_holds(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Expire every lapsed hold now"""
    return {"expired": await service.expire_lapsed_holds()}

# ============================================================================
# CASH SHIFT ENDPOINTS
# ============================================================================

@router.post("/api/shifts", response_model=ShiftResponse, status_code=201, tags=["Cash"])
async def open_shift(
    request: OpenShiftRequest,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Open a shift on a cash box"""
    try:
        shift = await ledger.open_shift(request.cash_box, current_user.username)
        return _shift_to_response(shift)
    except ValueError as e:
        raise _http_error(e)

@router.get("/api/shifts/current", response_model=Optional[ShiftResponse], tags=["Cash"])
async def get_current_shift(
    cash_box: CashBox = CashBox.MAIN,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """The open shift of a box, or null"""
    shift = await ledger.current_shift(cash_box)
    return _shift_to_response(shift) if shift else None

@router.get("/api/shifts/{shift_id}", response_model=ShiftResponse, tags=["Cash"])
async def get_shift(
    shift_id: UUID,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Get shift by ID"""
    shift = await ledger.get_shift(shift_id)
    if not shift:
        raise HTTPException(status_code=404, detail="Shift not found")
    return _shift_to_response(shift)

@router.post("/api/shifts/{shift_id}/close", response_model=ShiftResponse, tags=["Cash"])
async def close_shift(
    shift_id: UUID,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Close a shift; closing it again is a no-op"""
    shift = await ledger.close_shift(shift_id, current_user.username)
    if not shift:
        raise HTTPException(status_code=404, detail="Shift not found")
    return _shift_to_response(shift)

@router.post("/api/shifts/{shift_id}/transactions", response_model=TransactionResponse, status_code=201, tags=["Cash"])
async def record_transaction(
    shift_id: UUID,
    request: TransactionRequest,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Record cash in, cash out or an expense"""
    try:
        transaction = await ledger.record_transaction(
            shift_id,
            request.type,
            request.amount,
            current_user.username,
            category=request.category,
            income_source=request.income_source,
            comment=request.comment,
        )
        if not transaction:
            raise HTTPException(status_code=404, detail="Shift not found")
        return _transaction_to_response(transaction)
    except ValueError as e:
        raise _http_error(e)

@router.get("/api/shifts/{shift_id}/transactions", response_model=List[TransactionResponse], tags=["Cash"])
async def list_transactions(
    shift_id: UUID,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """All transactions of a shift"""
    return [_transaction_to_response(t) for t in await ledger.list_transactions(shift_id)]

@router.get("/api/shifts/{shift_id}/balance", response_model=BalanceResponse, tags=["Cash"])
async def get_shift_balance(
    shift_id: UUID,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Balance of a shift since the last incasation"""
    balance = await ledger.current_balance(shift_id)
    if balance is None:
        raise HTTPException(status_code=404, detail="Shift not found")
    return BalanceResponse(balance=balance, shift_id=shift_id)

@router.get("/api/cash/{cash_box}/balance", response_model=BalanceResponse, tags=["Cash"])
async def get_box_balance(
    cash_box: CashBox,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Balance of a box across shifts since the last incasation"""
    return BalanceResponse(balance=await ledger.box_balance(cash_box), cash_box=cash_box.value)

@router.get("/api/cash/{cash_box}/incasation-preview", response_model=IncasationSummaryResponse, tags=["Cash"])
async def preview_incasation(
    cash_box: CashBox,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """What an incasation would collect now"""
    summary = await ledger.incasation_preview(cash_box)
    return IncasationSummaryResponse(**summary.model_dump())

@router.post("/api/cash/{cash_box}/incasations", response_model=IncasationResponse, status_code=201, tags=["Cash"])
async def incasate(
    cash_box: CashBox,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Collect the cash on hand (owner or super admin)"""
    try:
        incasation = await ledger.incasate(cash_box, current_user.username, current_user.role)
        return _incasation_to_response(incasation)
    except ValueError as e:
        raise _http_error(e)

@router.get("/api/cash/{cash_box}/incasations", response_model=List[IncasationResponse], tags=["Cash"])
async def list_incasations(
    cash_box: CashBox,
    ledger: CashLedgerService = Depends(get_ledger),
    current_user: User = Depends(require_roles(*ELEVATED))
):
    """Past incasations of a box"""
    return [_incasation_to_response(i) for i in await ledger.list_incasations(cash_box)]

# ============================================================================
# TASK ENDPOINTS
# ============================================================================

@router.get("/api/tasks", response_model=List[TaskResponse], tags=["Tasks"])
async def list_tasks(
    day: date,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(get_current_active_user)
):
    """Tasks of a date, open first"""
    return [_task_to_response(t) for t in await service.list_tasks(day)]

@router.post("/api/tasks", response_model=TaskResponse, status_code=201, tags=["Tasks"])
async def create_task(
    request: CreateTaskRequest,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(get_current_active_user)
):
    """Create a manual task"""
    task = await service.create_task(
        request.day, request.title, request.type, request.unit_code, request.checklist, request.assigned_to
    )
    return _task_to_response(task)

@router.post("/api/tasks/{task_id}/complete", response_model=TaskResponse, tags=["Tasks"])
async def complete_task(
    task_id: UUID,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(get_current_active_user)
):
    """Mark a task done"""
    task = await service.complete_task(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return _task_to_response(task)

# ============================================================================
# SCHEDULER ENDPOINTS
# ============================================================================

@router.post("/api/scheduler/jobs/{job_name}/run", tags=["Scheduler"])
async def run_scheduler_job(
    job_name: str,
    container: VenueContainer = Depends(get_container),
    current_user: User = Depends(require_roles(*ELEVATED))
):
    """Run one scheduler job now"""
    scheduler = container.scheduler
    if job_name == "startup_reconciliation":
        ok = await scheduler.run_job(job_name, scheduler.reconcile_shifts)
    elif job_name in {cadence.name for cadence in scheduler.cadences()}:
        ok = await scheduler.run_job(job_name)
    else:
        raise HTTPException(status_code=404, detail="Unknown job")
    return {"job": job_name, "ok": ok}

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _user_to_response(user) -> UserResponse:
    """Convert User entity to UserResponse"""
    return UserResponse(
        user_id=user.user_id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        role=user.role.value,
        disabled=user.disabled
    )

def _tariff_to_response(tariff) -> TariffResponse:
    """Convert Tariff entity to TariffResponse"""
    return TariffResponse(
        tariff_id=tariff.tariff_id,
        booking_type=tariff.booking_type.value,
        price=tariff.price,
        tariff_date=tariff.tariff_date,
        guest_threshold=tariff.guest_threshold,
        upper_price=tariff.upper_price,
        per_unit=tariff.per_unit,
        included_hours=tariff.included_hours,
        extra_hour_price=tariff.extra_hour_price
    )

def _booking_to_response(booking) -> BookingResponse:
    """Convert Booking entity to BookingResponse"""
    return BookingResponse(
        booking_id=booking.booking_id,
        resource_code=booking.resource_code,
        kind=booking.kind.value,
        booking_type=booking.booking_type.value,
        day=booking.window.day,
        start=booking.window.start,
        end=booking.window.end,
        guest_count=booking.guest_count,
        route_type=booking.route_type.value if booking.route_type else None,
        customer_name=booking.customer.full_name,
        customer_phone=booking.customer.phone,
        pricing=PriceQuoteResponse(**booking.pricing.model_dump()),
        prepaid_amount=booking.payments.prepaid_amount,
        cash_paid=booking.payments.cash_paid,
        erip_paid=booking.payments.erip_paid,
        status=booking.status.value,
        hold_until=booking.hold_until,
        status_reason=booking.status_reason,
        comment=booking.comment,
        created_at=booking.created_at,
        modified_at=booking.modified_at,
        created_by=booking.created_by,
        version=booking.version
    )

def _shift_to_response(shift) -> ShiftResponse:
    """Convert CashShift entity to ShiftResponse"""
    return ShiftResponse(
        shift_id=shift.shift_id,
        cash_box=shift.cash_box.value,
        opened_at=shift.opened_at,
        opened_by=shift.opened_by,
        is_open=shift.is_open,
        closed_at=shift.closed_at,
        closed_by=shift.closed_by
    )

def _transaction_to_response(transaction) -> TransactionResponse:
    """Convert CashTransaction entity to TransactionResponse"""
    return TransactionResponse(
        tx_id=transaction.tx_id,
        shift_id=transaction.shift_id,
        cash_box=transaction.cash_box.value,
        type=transaction.type.value,
        amount=transaction.amount.amount,
        signed_amount=transaction.signed_amount,
        currency=transaction.amount.currency,
        category=transaction.category,
        income_source=transaction.income_source.value if transaction.income_source else None,
        comment=transaction.comment,
        booking_id=transaction.booking_id,
        created_at=transaction.created_at,
        created_by=transaction.created_by,
        sequence=transaction.sequence
    )

def _incasation_to_response(incasation) -> IncasationResponse:
    """Convert Incasation entity to IncasationResponse"""
    return IncasationResponse(
        incasation_id=incasation.incasation_id,
        cash_box=incasation.cash_box.value,
        performed_at=incasation.performed_at,
        performed_by=incasation.performed_by,
        period_start=incasation.period_start,
        period_end=incasation.period_end,
        summary=IncasationSummaryResponse(**incasation.summary.model_dump()),
        shifts_included=list(incasation.shifts_included)
    )

def _task_to_response(task) -> TaskResponse:
    """Convert Task entity to TaskResponse"""
    return TaskResponse(
        task_id=task.task_id,
        day=task.day,
        title=task.title,
        type=task.type.value,
        unit_code=task.unit_code,
        checklist=list(task.checklist),
        status=task.status.value,
        cadence=task.cadence.value if task.cadence else None,
        created_by_system=task.created_by_system,
        assigned_to=task.assigned_to,
        completed_at=task.completed_at
    )

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
