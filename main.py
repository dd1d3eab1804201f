import logging
from datetime import datetime
from typing import List
from uuid import UUID

from fastapi import FastAPI, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.schemas import (
    # Checkout
    CheckoutRequest, CheckoutResponse, ConfirmRequest, ConfirmResponse, ConfirmedReservation,
    # Reservation
    UpdateStatusRequest, DamageReportRequest, ReservationResponse, ReservationStatsResponse,
    # Availability
    AvailabilityResponse, BatchAvailabilityRequest, BatchAvailabilityResponse,
    BatchAvailabilityItem, WindowSchema,
    # Inventory / catalog
    SetInventoryRequest, InventoryResponse, CreateProductRequest, ProductResponse,
    # Discounts
    SetDiscountCodeRequest, DiscountCodeResponse, DiscountVerifyResponse,
    # Admin jobs
    ExpirePendingResponse, SettleRevenueResponse, SettledReservation
)
from api.dependencies import (
    get_checkout_orchestrator, get_state_machine, get_availability_checker,
    get_inventory_ledger, get_revenue_settlement, get_catalog_service
)
from application.checkout import CheckoutOrchestrator, CheckoutCommand
from application.services import (
    InventoryLedger, AvailabilityChecker, ReservationStateMachine,
    RevenueSettlement, CatalogService
)
from domain.entities import Product
from domain.enums import ReservationStatus, DisplayStatus, PricingType, ShareType
from domain.exceptions import DomainError, ValidationError
from domain.lifecycle import to_display_status, display_to_engine_status
from domain.pricing import DISCOUNT_PERCENT
from domain.value_objects import TimeWindow
from infrastructure.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Equipment Rental Reservation API",
    description="Availability and reservation lifecycle for hotel equipment rentals",
    version=settings.SERVICE_VERSION,
    debug=settings.DEBUG
)

# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message, **exc.extras()},
    )

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": ValidationError.code, "detail": jsonable_encoder(exc.errors())},
    )

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}

@app.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Get all ReservationStatus enum values"""
    return {
        "values": [item.value for item in ReservationStatus],
        "description": "Reservation status values: PENDING, CONFIRMED, COMPLETED, NO_SHOW, DAMAGED, CANCELLED"
    }

@app.get("/api/enums/display-status", tags=["Enum Reference"])
async def get_display_statuses():
    """Get all DisplayStatus enum values"""
    return {
        "values": [item.value for item in DisplayStatus],
        "description": "Display status values: RESERVED, IN_PROGRESS, COMPLETED, DAMAGED, STOLEN"
    }

@app.get("/api/enums/pricing-type", tags=["Enum Reference"])
async def get_pricing_types():
    """Get all PricingType enum values"""
    return {
        "values": [item.value for item in PricingType],
        "description": "HOURLY up to 24 started hours, DAILY beyond"
    }

@app.get("/api/enums/share-type", tags=["Enum Reference"])
async def get_share_types():
    """Get all ShareType enum values"""
    return {
        "values": [item.value for item in ShareType],
        "description": "Revenue share values: PLATFORM_70, HOTEL_70"
    }

# ============================================================================
# CHECKOUT ENDPOINTS
# ============================================================================

@app.post("/checkout", response_model=CheckoutResponse, status_code=201, tags=["Checkout"])
async def checkout(
    request: CheckoutRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator)
):
    """Reserve a unit and authorize the deposit; the reservation stays PENDING"""
    result = await orchestrator.checkout(CheckoutCommand(**request.model_dump()))
    return CheckoutResponse(**result.model_dump())

@app.post("/confirm", response_model=ConfirmResponse, tags=["Checkout"])
async def confirm(
    request: ConfirmRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator)
):
    """Confirm a PENDING reservation once its payment method is set up"""
    reservation = await orchestrator.confirm(
        request.reservation_id, request.payment_intent_id, request.setup_intent_id
    )
    return ConfirmResponse(reservation=ConfirmedReservation(
        id=reservation.reservation_id, code=reservation.code, status=reservation.status
    ))

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.get("/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_all_reservations(service: ReservationStateMachine = Depends(get_state_machine)):
    """Get all reservations, newest first"""
    reservations = await service.list_all()
    return [_reservation_to_response(r) for r in reservations]

@app.get("/reservations/code/{code}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation_by_code(code: str, service: ReservationStateMachine = Depends(get_state_machine)):
    """Get reservation by code"""
    return _reservation_to_response(await service.get_by_code(code.upper()))

@app.get("/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(reservation_id: UUID, service: ReservationStateMachine = Depends(get_state_machine)):
    """Get reservation by ID"""
    return _reservation_to_response(await service.get(reservation_id))

@app.patch("/reservations/{reservation_id}/status", response_model=ReservationResponse, tags=["Reservations"])
async def update_reservation_status(
    reservation_id: UUID,
    request: UpdateStatusRequest,
    service: ReservationStateMachine = Depends(get_state_machine)
):
    """Apply one transition of the reservation lifecycle"""
    reservation = await service.transition(
        reservation_id,
        request.status,
        damage_fee_cents=request.damage_fee_cents,
        note=request.note,
    )
    return _reservation_to_response(reservation)

# ============================================================================
# AVAILABILITY ENDPOINTS
# ============================================================================

@app.get("/availability", response_model=AvailabilityResponse, tags=["Availability"])
async def check_availability(
    hotel_id: str = Query(alias="hotelId"),
    product_id: str = Query(alias="productId"),
    start_at: datetime = Query(alias="startAt"),
    end_at: datetime = Query(alias="endAt"),
    service: AvailabilityChecker = Depends(get_availability_checker)
):
    """Check how many units are free at the pickup hotel over a window"""
    window = TimeWindow.between(start_at, end_at)
    return _availability_to_response(await service.check(hotel_id, product_id, window))

@app.post("/availability/batch", response_model=BatchAvailabilityResponse, tags=["Availability"])
async def check_availability_batch(
    request: BatchAvailabilityRequest,
    service: AvailabilityChecker = Depends(get_availability_checker)
):
    """Check many windows for one hotel and product"""
    windows = [TimeWindow.between(w.start_at, w.end_at) for w in request.windows]
    results = await service.check_batch(request.hotel_id, request.product_id, windows)
    return BatchAvailabilityResponse(
        hotel_id=request.hotel_id,
        product_id=request.product_id,
        results=[
            BatchAvailabilityItem(
                start_at=w.start_at,
                end_at=w.end_at,
                **_availability_to_response(r).model_dump()
            )
            for w, r in zip(windows, results)
        ],
    )

# ============================================================================
# DISCOUNT & CATALOG ENDPOINTS
# ============================================================================

@app.get("/discounts/verify", response_model=DiscountVerifyResponse, tags=["Discounts"])
async def verify_discount(code: str = Query(min_length=1), service: CatalogService = Depends(get_catalog_service)):
    """Check whether a discount code is usable"""
    discount_code = await service.verify_discount(code)
    if discount_code is None:
        return DiscountVerifyResponse(valid=False)
    return DiscountVerifyResponse(
        valid=True,
        hotel_id=discount_code.hotel_id,
        kind=discount_code.kind,
        discount_percent=DISCOUNT_PERCENT,
    )

@app.get("/products/{product_id}", response_model=ProductResponse, tags=["Catalog"])
async def get_product(product_id: str, service: CatalogService = Depends(get_catalog_service)):
    """Get product by ID"""
    product = await service.get_product(product_id)
    return ProductResponse(**product.model_dump())

# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================

@app.post("/admin/products", response_model=ProductResponse, status_code=201, tags=["Admin"])
async def create_product(request: CreateProductRequest, service: CatalogService = Depends(get_catalog_service)):
    """Create or replace a product"""
    product = await service.save_product(Product(**request.model_dump()))
    return ProductResponse(**product.model_dump())

@app.put("/admin/inventory/{hotel_id}/{product_id}", response_model=InventoryResponse, tags=["Admin"])
async def set_inventory(
    hotel_id: str,
    product_id: str,
    request: SetInventoryRequest,
    service: InventoryLedger = Depends(get_inventory_ledger)
):
    """Set the quantity ceiling (and optionally the active flag) for a hotel and product"""
    item = await service.set_quantity(hotel_id, product_id, request.quantity, request.active)
    return InventoryResponse(**item.model_dump())

@app.get("/admin/inventory/{hotel_id}/{product_id}", response_model=InventoryResponse, tags=["Admin"])
async def get_inventory(hotel_id: str, product_id: str, service: InventoryLedger = Depends(get_inventory_ledger)):
    """Get the inventory row for a hotel and product"""
    item = await service.get(hotel_id, product_id)
    return InventoryResponse(**item.model_dump())

@app.get("/admin/inventory/{hotel_id}", response_model=List[InventoryResponse], tags=["Admin"])
async def get_hotel_inventory(hotel_id: str, service: InventoryLedger = Depends(get_inventory_ledger)):
    """Get all inventory rows of a hotel"""
    items = await service.list_for_hotel(hotel_id)
    return [InventoryResponse(**i.model_dump()) for i in items]

@app.put("/admin/hotels/{hotel_id}/discount", response_model=DiscountCodeResponse, tags=["Admin"])
async def set_hotel_discount(
    hotel_id: str,
    request: SetDiscountCodeRequest,
    service: CatalogService = Depends(get_catalog_service)
):
    """Create or replace the hotel's discount code"""
    discount_code = await service.set_hotel_discount(hotel_id, request.code, request.kind, request.active)
    return DiscountCodeResponse(**discount_code.model_dump())

@app.post("/admin/reservations/{reservation_id}/damage", response_model=ReservationResponse, tags=["Admin"])
async def report_damage(
    reservation_id: UUID,
    request: DamageReportRequest,
    service: ReservationStateMachine = Depends(get_state_machine)
):
    """Report a rented unit as DAMAGED or STOLEN"""
    if request.status not in (DisplayStatus.DAMAGED, DisplayStatus.STOLEN):
        raise ValidationError("Status must be DAMAGED or STOLEN")

    current = await service.get(reservation_id)
    target = display_to_engine_status(request.status, current.status)
    reservation = await service.transition(
        reservation_id,
        target,
        damage_fee_cents=request.caution_deduction_cents,
        note=request.notes,
    )
    return _reservation_to_response(reservation)

@app.get("/admin/reservations/stats", response_model=ReservationStatsResponse, tags=["Admin"])
async def get_reservation_stats(service: ReservationStateMachine = Depends(get_state_machine)):
    """Count reservations per display status"""
    counts = await service.stats()
    return ReservationStatsResponse(total=sum(counts.values()), by_display_status=counts)

@app.post("/admin/cron/expire-pending", response_model=ExpirePendingResponse, tags=["Admin"])
async def expire_pending_reservations(service: ReservationStateMachine = Depends(get_state_machine)):
    """Cancel PENDING reservations older than the configured TTL"""
    expired = await service.expire_pending()
    return ExpirePendingResponse(expired=len(expired), codes=[r.code for r in expired])

@app.post("/admin/cron/settle-revenue", response_model=SettleRevenueResponse, tags=["Admin"])
async def settle_revenue(service: RevenueSettlement = Depends(get_revenue_settlement)):
    """Attribute revenue of COMPLETED reservations not yet settled"""
    settled = await service.settle()
    return SettleRevenueResponse(
        settled=len(settled),
        reservations=[
            SettledReservation(
                code=r.code,
                revenue_computed_cents=r.revenue_computed_cents,
                platform_share_cents=r.platform_share_cents,
                hotel_share_cents=r.hotel_share_cents,
            )
            for r in settled
        ],
    )

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _reservation_to_response(reservation) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        code=reservation.code,
        product_id=reservation.product_id,
        pickup_hotel_id=reservation.pickup_hotel_id,
        drop_hotel_id=reservation.drop_hotel_id,
        user_email=reservation.user_email,
        start_at=reservation.start_at,
        end_at=reservation.end_at,
        status=reservation.status,
        display_status=to_display_status(reservation.status, reservation.window),
        price_cents=reservation.price_cents,
        deposit_cents=reservation.deposit_cents,
        duration_hours=reservation.duration_hours,
        duration_days=reservation.duration_days,
        pricing_type=reservation.pricing_type,
        revenue_share_applied=reservation.revenue_share_applied,
        discount_code_id=reservation.discount_code_id,
        damage_fee_cents=reservation.damage_fee_cents,
        damage_notes=reservation.damage_notes,
        deposit_action=reservation.deposit_action,
        deposit_action_cents=reservation.deposit_action_cents,
        payment_intent_id=reservation.payment_intent_id,
        setup_intent_id=reservation.setup_intent_id,
        revenue_computed_cents=reservation.revenue_computed_cents,
        platform_share_cents=reservation.platform_share_cents,
        hotel_share_cents=reservation.hotel_share_cents,
        revenue_settled_at=reservation.revenue_settled_at,
        created_at=reservation.created_at,
        modified_at=reservation.modified_at,
        version=reservation.version
    )

def _availability_to_response(result) -> AvailabilityResponse:
    """Convert AvailabilityResult to AvailabilityResponse"""
    return AvailabilityResponse(
        available=result.available,
        total_quantity=result.total_quantity,
        available_quantity=result.available_quantity,
        alternatives=[WindowSchema(start_at=w.start_at, end_at=w.end_at) for w in result.alternatives]
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
