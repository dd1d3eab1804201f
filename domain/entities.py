"""Domain Entities - Aggregates"""
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID, uuid4
from datetime import datetime, timezone
from typing import Optional, Dict, Any
import random

from domain.enums import (
    ReservationStatus, PricingType, ShareType, DepositAction, AuditEvent
)
from domain.exceptions import InvalidQuantity, ValidationError
from domain.lifecycle import ensure_transition, is_blocking
from domain.value_objects import TimeWindow, PriceQuote, DiscountOutcome, RevenueSplit


CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(BaseModel):
    """Rentable product; prices are copied onto reservations by value"""
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    name: str = ""
    price_per_hour_cents: int = Field(ge=0)
    price_per_day_cents: int = Field(ge=0)
    deposit_cents: int = Field(ge=0)


class InventoryItem(BaseModel):
    """Ceiling of concurrently outstanding units for one hotel/product pair.

    Bookings never decrement quantity; usage is derived from reservations.
    """
    model_config = ConfigDict(from_attributes=True)

    hotel_id: str
    product_id: str
    quantity: int = Field(ge=0)
    active: bool = True
    updated_at: datetime = Field(default_factory=_utcnow)

    def set_quantity(self, quantity: int) -> None:
        if quantity < 0:
            raise InvalidQuantity(quantity)
        self.quantity = quantity
        self.updated_at = _utcnow()

    def set_active(self, active: bool) -> None:
        self.active = active
        self.updated_at = _utcnow()


class DiscountCode(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    discount_code_id: UUID = Field(default_factory=uuid4)
    code: str
    hotel_id: str
    kind: ShareType
    active: bool = True


class AuditEntry(BaseModel):
    """Append-only record of what happened to a reservation"""
    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID = Field(default_factory=uuid4)
    reservation_id: UUID
    event: AuditEvent
    data: Dict[str, Any] = {}
    created_at: datetime = Field(default_factory=_utcnow)


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""
    model_config = ConfigDict(from_attributes=True)

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)
    code: str

    # References to other contexts
    product_id: str
    pickup_hotel_id: str
    drop_hotel_id: str
    user_email: str

    # Value Objects
    window: TimeWindow

    # Status
    status: ReservationStatus = ReservationStatus.PENDING

    # Pricing, frozen at checkout
    price_cents: int = Field(ge=0)
    deposit_cents: int = Field(ge=0)
    duration_hours: int = Field(ge=1)
    duration_days: int = Field(ge=1)
    pricing_type: PricingType
    revenue_share_applied: ShareType = ShareType.PLATFORM_70
    discount_code_id: Optional[UUID] = None

    # Damage and deposit outcome
    damage_fee_cents: Optional[int] = None
    damage_notes: Optional[str] = None
    deposit_action: Optional[DepositAction] = None
    deposit_action_cents: Optional[int] = None

    # External payment references
    payment_intent_id: Optional[str] = None
    setup_intent_id: Optional[str] = None

    # Revenue settlement
    revenue_computed_cents: Optional[int] = None
    platform_share_cents: Optional[int] = None
    hotel_share_cents: Optional[int] = None
    revenue_settled_at: Optional[datetime] = None

    # Metadata
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)
    version: int = 1

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        product,
        pickup_hotel_id: str,
        drop_hotel_id: str,
        user_email: str,
        window: TimeWindow,
        quote: PriceQuote,
        discount: DiscountOutcome,
        code: Optional[str] = None,
        code_prefix: str = "EZB",
        now: Optional[datetime] = None
    ) -> "Reservation":
        """Create a PENDING reservation with price and share frozen by value"""
        if not user_email or "@" not in user_email:
            raise ValidationError("A valid user email is required")
        if not pickup_hotel_id or not drop_hotel_id:
            raise ValidationError("Pickup and drop hotels are required")

        now = now or _utcnow()
        return Reservation(
            code=code or Reservation.generate_code(code_prefix),
            product_id=product.product_id,
            pickup_hotel_id=pickup_hotel_id,
            drop_hotel_id=drop_hotel_id,
            user_email=user_email,
            window=window,
            status=ReservationStatus.PENDING,
            price_cents=discount.final_cents,
            deposit_cents=product.deposit_cents,
            duration_hours=quote.duration_hours,
            duration_days=quote.duration_days,
            pricing_type=quote.pricing_type,
            revenue_share_applied=discount.revenue_share,
            discount_code_id=discount.discount_code_id,
            created_at=now,
            modified_at=now,
        )

    @staticmethod
    def generate_code(prefix: str = "EZB") -> str:
        """Human-readable code without the ambiguous I, O, 0 and 1"""
        return f"{prefix}-" + "".join(random.choices(CODE_ALPHABET, k=CODE_LENGTH))

    # ==================== QUERY METHODS ====================
    @property
    def start_at(self) -> datetime:
        return self.window.start_at

    @property
    def end_at(self) -> datetime:
        return self.window.end_at

    @property
    def slot_key(self) -> tuple:
        return (self.pickup_hotel_id, self.product_id)

    def is_blocking(self) -> bool:
        return is_blocking(self.status)

    def is_settled(self) -> bool:
        return self.revenue_settled_at is not None

    # ==================== STATE TRANSITION METHODS ====================
    def transition_to(
        self,
        new_status: ReservationStatus,
        damage_fee_cents: Optional[int] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ReservationStatus:
        """Apply one transition from the allowed table; returns the old status.

        Every check runs before the first mutation so a rejected transition
        leaves the reservation untouched.
        """
        ensure_transition(self.status, new_status)

        if new_status == ReservationStatus.DAMAGED:
            fee = self.deposit_cents if damage_fee_cents is None else damage_fee_cents
            if fee < 0 or fee > self.deposit_cents:
                raise ValidationError(
                    f"Damage fee must be between 0 and the deposit ({self.deposit_cents}), got {fee}"
                )
        elif damage_fee_cents is not None:
            raise ValidationError("A damage fee only applies when marking a reservation DAMAGED")

        previous = self.status
        if new_status == ReservationStatus.DAMAGED:
            self.damage_fee_cents = fee
            self.damage_notes = notes
            self.deposit_action = DepositAction.CAPTURE
            self.deposit_action_cents = fee
        elif new_status in (ReservationStatus.CANCELLED, ReservationStatus.COMPLETED) \
                and previous != ReservationStatus.DAMAGED:
            self.deposit_action = DepositAction.RELEASE
            self.deposit_action_cents = 0
        elif new_status == ReservationStatus.CONFIRMED:
            # deposit is held again
            self.deposit_action = None
            self.deposit_action_cents = None

        self.status = new_status
        self._touch(now)
        return previous

    # ==================== MODIFICATION METHODS ====================
    def attach_payment_refs(self, payment_intent_id: str, setup_intent_id: str, now: Optional[datetime] = None) -> None:
        self.payment_intent_id = payment_intent_id
        self.setup_intent_id = setup_intent_id
        self._touch(now)

    def record_settlement(self, split: RevenueSplit, now: Optional[datetime] = None) -> None:
        """Attribute revenue once; a second call is rejected"""
        if self.is_settled():
            raise ValidationError(f"Reservation {self.code} revenue is already settled")
        if self.status != ReservationStatus.COMPLETED:
            raise ValidationError("Only COMPLETED reservations can be settled")

        now = now or _utcnow()
        self.revenue_computed_cents = split.total_cents
        self.platform_share_cents = split.platform_cents
        self.hotel_share_cents = split.hotel_cents
        self.revenue_settled_at = now
        self._touch(now)

    def _touch(self, now: Optional[datetime] = None) -> None:
        self.modified_at = now or _utcnow()
        self.version += 1
