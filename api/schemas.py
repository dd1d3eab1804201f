"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from uuid import UUID
from typing import Dict, List, Optional

from domain.enums import (
    ReservationStatus, DisplayStatus, PricingType, ShareType, DepositAction
)


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case accepted on input"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================

class CheckoutRequest(CamelModel):
    """Checkout request DTO"""
    user_email: str
    product_id: str
    pickup_hotel_id: str
    drop_hotel_id: str
    start_at: datetime
    end_at: datetime
    discount_code: Optional[str] = None


class CheckoutResponse(CamelModel):
    """Checkout response DTO"""
    reservation_id: UUID
    code: str
    client_secret: str
    setup_intent_secret: str


class ConfirmRequest(CamelModel):
    """Confirm request DTO"""
    reservation_id: UUID
    payment_intent_id: str
    setup_intent_id: str


class ConfirmedReservation(CamelModel):
    id: UUID
    code: str
    status: ReservationStatus


class ConfirmResponse(CamelModel):
    reservation: ConfirmedReservation


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class UpdateStatusRequest(CamelModel):
    """Status change request DTO"""
    status: ReservationStatus
    damage_fee_cents: Optional[int] = None
    note: Optional[str] = None


class DamageReportRequest(CamelModel):
    """Admin damage/loss report; only DAMAGED and STOLEN are accepted"""
    status: DisplayStatus
    caution_deduction_cents: Optional[int] = None
    notes: Optional[str] = None


class ReservationResponse(CamelModel):
    """Reservation response DTO"""
    reservation_id: UUID
    code: str
    product_id: str
    pickup_hotel_id: str
    drop_hotel_id: str
    user_email: str
    start_at: datetime
    end_at: datetime
    status: ReservationStatus
    display_status: DisplayStatus
    price_cents: int
    deposit_cents: int
    duration_hours: int
    duration_days: int
    pricing_type: PricingType
    revenue_share_applied: ShareType
    discount_code_id: Optional[UUID] = None
    damage_fee_cents: Optional[int] = None
    damage_notes: Optional[str] = None
    deposit_action: Optional[DepositAction] = None
    deposit_action_cents: Optional[int] = None
    payment_intent_id: Optional[str] = None
    setup_intent_id: Optional[str] = None
    revenue_computed_cents: Optional[int] = None
    platform_share_cents: Optional[int] = None
    hotel_share_cents: Optional[int] = None
    revenue_settled_at: Optional[datetime] = None
    created_at: datetime
    modified_at: datetime
    version: int


class ReservationStatsResponse(CamelModel):
    total: int
    by_display_status: Dict[DisplayStatus, int]


# ============================================================================
# AVAILABILITY SCHEMAS
# ============================================================================

class WindowSchema(CamelModel):
    start_at: datetime
    end_at: datetime


class AvailabilityResponse(CamelModel):
    """Availability response DTO"""
    available: bool
    total_quantity: int
    available_quantity: int
    alternatives: List[WindowSchema] = []


class BatchAvailabilityRequest(CamelModel):
    hotel_id: str
    product_id: str
    windows: List[WindowSchema] = Field(min_length=1)


class BatchAvailabilityItem(AvailabilityResponse):
    start_at: datetime
    end_at: datetime


class BatchAvailabilityResponse(CamelModel):
    hotel_id: str
    product_id: str
    results: List[BatchAvailabilityItem]


# ============================================================================
# INVENTORY / CATALOG SCHEMAS
# ============================================================================

class SetInventoryRequest(CamelModel):
    """Inventory upsert request DTO"""
    quantity: int
    active: Optional[bool] = None


class InventoryResponse(CamelModel):
    hotel_id: str
    product_id: str
    quantity: int
    active: bool
    updated_at: datetime


class CreateProductRequest(CamelModel):
    product_id: str
    name: str = ""
    price_per_hour_cents: int = Field(ge=0)
    price_per_day_cents: int = Field(ge=0)
    deposit_cents: int = Field(ge=0)


class ProductResponse(CreateProductRequest):
    pass


# ============================================================================
# DISCOUNT SCHEMAS
# ============================================================================

class SetDiscountCodeRequest(CamelModel):
    """One code per hotel; setting it again replaces the previous one"""
    code: str = Field(min_length=1)
    kind: ShareType = ShareType.PLATFORM_70
    active: bool = True


class DiscountCodeResponse(CamelModel):
    discount_code_id: UUID
    code: str
    hotel_id: str
    kind: ShareType
    active: bool


class DiscountVerifyResponse(CamelModel):
    valid: bool
    hotel_id: Optional[str] = None
    kind: Optional[ShareType] = None
    discount_percent: Optional[int] = None


# ============================================================================
# ADMIN JOB SCHEMAS
# ============================================================================

class ExpirePendingResponse(CamelModel):
    expired: int
    codes: List[str]


class SettledReservation(CamelModel):
    code: str
    revenue_computed_cents: int
    platform_share_cents: int
    hotel_share_cents: int


class SettleRevenueResponse(CamelModel):
    settled: int
    reservations: List[SettledReservation]
