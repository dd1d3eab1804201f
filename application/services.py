"""Application Services - Business use cases"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from uuid import UUID

from domain.availability import (
    AlternativesPolicy, count_overlapping, count_overlapping_many, evaluate
)
from domain.collaborators import Notifier
from domain.entities import Product, InventoryItem, DiscountCode, Reservation, AuditEntry
from domain.enums import ReservationStatus, DisplayStatus, ShareType, AuditEvent
from domain.exceptions import (
    NotFound, InsufficientInventory, InvalidQuantity, ConcurrentModification, ValidationError
)
from domain.lifecycle import ensure_transition, is_blocking, to_display_status
from domain.pricing import PricingEngine
from domain.repositories import (
    ProductRepository, InventoryRepository, DiscountCodeRepository,
    ReservationRepository, AuditRepository
)
from domain.value_objects import TimeWindow, AvailabilityResult, RevenueSplit
from infrastructure.locks import KeyedLocks

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryLedger:
    """Per-(hotel, product) quantity ceiling and active flag"""

    def __init__(self, repository: InventoryRepository):
        self.repository = repository

    async def find(self, hotel_id: str, product_id: str) -> Optional[InventoryItem]:
        return await self.repository.find(hotel_id, product_id)

    async def get(self, hotel_id: str, product_id: str) -> InventoryItem:
        item = await self.repository.find(hotel_id, product_id)
        if item is None:
            raise NotFound(f"No inventory for product {product_id} at hotel {hotel_id}")
        return item

    async def set_quantity(
        self,
        hotel_id: str,
        product_id: str,
        quantity: int,
        active: Optional[bool] = None
    ) -> InventoryItem:
        """Create or update the row; negative quantities are rejected"""
        item = await self.repository.find(hotel_id, product_id)
        if item is None:
            if quantity < 0:
                raise InvalidQuantity(quantity)
            item = InventoryItem(
                hotel_id=hotel_id,
                product_id=product_id,
                quantity=quantity,
                active=True if active is None else active,
            )
        else:
            item.set_quantity(quantity)
            if active is not None:
                item.set_active(active)

        logger.info("Inventory %s/%s set to %d (active=%s)", hotel_id, product_id, item.quantity, item.active)
        return await self.repository.save(item)

    async def set_active(self, hotel_id: str, product_id: str, active: bool) -> InventoryItem:
        item = await self.get(hotel_id, product_id)
        item.set_active(active)
        return await self.repository.save(item)

    async def list_for_hotel(self, hotel_id: str) -> List[InventoryItem]:
        return await self.repository.find_by_hotel(hotel_id)


class OverlapCounter:
    """Counts PENDING/CONFIRMED reservations intersecting a window"""

    def __init__(self, repository: ReservationRepository):
        self.repository = repository

    async def count_blocking(self, hotel_id: str, product_id: str, window: TimeWindow) -> int:
        snapshot = await self.repository.find_blocking(hotel_id, product_id, window)
        return count_overlapping(snapshot, window)

    async def count_blocking_batch(
        self,
        hotel_id: str,
        product_id: str,
        windows: List[TimeWindow]
    ) -> List[int]:
        """One snapshot query over the envelope, then one count per window"""
        if not windows:
            return []
        snapshot = await self.repository.find_blocking(hotel_id, product_id, TimeWindow.envelope(windows))
        return count_overlapping_many(snapshot, windows)


class AvailabilityChecker:
    """Sole gate in front of reservation inserts"""

    def __init__(
        self,
        ledger: InventoryLedger,
        counter: OverlapCounter,
        reservations: ReservationRepository,
        locks: KeyedLocks,
        alternatives_policy: Optional[AlternativesPolicy] = None
    ):
        self.ledger = ledger
        self.counter = counter
        self.reservations = reservations
        self.locks = locks
        self.alternatives_policy = alternatives_policy

    async def check(self, hotel_id: str, product_id: str, window: TimeWindow) -> AvailabilityResult:
        item = await self.ledger.find(hotel_id, product_id)
        if item is None:
            return evaluate(None, 0, window)
        blocking = await self.counter.count_blocking(hotel_id, product_id, window)
        return evaluate(item, blocking, window, self.alternatives_policy)

    async def check_batch(
        self,
        hotel_id: str,
        product_id: str,
        windows: List[TimeWindow]
    ) -> List[AvailabilityResult]:
        item = await self.ledger.find(hotel_id, product_id)
        if item is None:
            return [evaluate(None, 0, w) for w in windows]
        counts = await self.counter.count_blocking_batch(hotel_id, product_id, windows)
        return [evaluate(item, c, w, self.alternatives_policy) for w, c in zip(windows, counts)]

    async def ensure_available(
        self,
        hotel_id: str,
        product_id: str,
        window: TimeWindow,
        where: str = "pickup"
    ) -> AvailabilityResult:
        result = await self.check(hotel_id, product_id, window)
        if not result.available:
            logger.info(
                "No capacity for %s/%s in [%s, %s): %d of %d free",
                hotel_id, product_id, window.start_at.isoformat(), window.end_at.isoformat(),
                result.available_quantity, result.total_quantity,
            )
            raise InsufficientInventory(
                f"Product not available for the selected dates at the {where} hotel",
                alternatives=result.alternatives,
            )
        return result

    def slot(self, hotel_id: str, product_id: str):
        """Async context manager serializing capacity decisions for one slot"""
        return self.locks.hold(("slot", hotel_id, product_id))

    async def reserve_slot(
        self,
        hotel_id: str,
        product_id: str,
        window: TimeWindow,
        build: Callable[[], Reservation]
    ) -> Reservation:
        """Count and insert atomically with respect to other reserve_slot calls.

        Raises InsufficientInventory, carrying alternatives, when no unit is
        free at the moment of insertion.
        """
        async with self.slot(hotel_id, product_id):
            await self.ensure_available(hotel_id, product_id, window)
            reservation = build()
            return await self.reservations.save(reservation)


class ReservationStateMachine:
    """Only mutator of reservations after creation.

    Transitions are linearizable per reservation: a keyed lock orders callers
    in this process and the versioned update rejects anything that slipped by.
    """

    def __init__(
        self,
        repository: ReservationRepository,
        availability: AvailabilityChecker,
        audit: AuditRepository,
        locks: KeyedLocks,
        notifier: Optional[Notifier] = None,
        pending_ttl: timedelta = timedelta(minutes=10)
    ):
        self.repository = repository
        self.availability = availability
        self.audit = audit
        self.locks = locks
        self.notifier = notifier
        self.pending_ttl = pending_ttl

    async def get(self, reservation_id: UUID) -> Reservation:
        reservation = await self.repository.find_by_id(reservation_id)
        if reservation is None:
            raise NotFound("Reservation not found")
        return reservation

    async def get_by_code(self, code: str) -> Reservation:
        reservation = await self.repository.find_by_code(code)
        if reservation is None:
            raise NotFound("Reservation not found")
        return reservation

    async def list_all(self) -> List[Reservation]:
        return await self.repository.find_all()

    async def history(self, reservation_id: UUID) -> List[AuditEntry]:
        return await self.audit.find_by_reservation(reservation_id)

    async def stats(self, now: Optional[datetime] = None) -> Dict[DisplayStatus, int]:
        """Reservation count per display status"""
        now = now or _utcnow()
        counts = {status: 0 for status in DisplayStatus}
        for reservation in await self.repository.find_all():
            counts[to_display_status(reservation.status, reservation.window, now)] += 1
        return counts

    def _lock(self, reservation_id: UUID):
        return self.locks.hold(("reservation", reservation_id))

    # ==================== STATE TRANSITIONS ====================
    async def transition(
        self,
        reservation_id: UUID,
        new_status: ReservationStatus,
        damage_fee_cents: Optional[int] = None,
        note: Optional[str] = None,
        expected_from: Optional[ReservationStatus] = None,
        audit_event: AuditEvent = AuditEvent.STATUS_CHANGED,
        audit_data: Optional[dict] = None,
        now: Optional[datetime] = None
    ) -> Reservation:
        """Move a reservation to new_status.

        expected_from turns the call into a conditional update: if the
        reservation is no longer in that status, ConcurrentModification is
        raised and nothing changes.
        """
        now = now or _utcnow()
        async with self._lock(reservation_id):
            reservation = await self.get(reservation_id)
            if expected_from is not None and reservation.status != expected_from:
                raise ConcurrentModification(
                    f"Reservation {reservation.code} is {reservation.status.value}, "
                    f"expected {expected_from.value}"
                )
            expected_version = reservation.version

            if not reservation.is_blocking() and is_blocking(new_status):
                # re-entering a blocking state takes a unit again
                ensure_transition(reservation.status, new_status)
                hotel_id, product_id = reservation.slot_key
                async with self.availability.slot(hotel_id, product_id):
                    result = await self.availability.check(hotel_id, product_id, reservation.window)
                    if not result.available:
                        raise InsufficientInventory(
                            f"Cannot reinstate {reservation.code}: the unit is no longer free",
                            alternatives=result.alternatives,
                        )
                    previous = reservation.transition_to(new_status, damage_fee_cents, note, now)
                    await self.repository.update(reservation, expected_version)
            else:
                previous = reservation.transition_to(new_status, damage_fee_cents, note, now)
                await self.repository.update(reservation, expected_version)

        logger.info("Reservation %s: %s -> %s", reservation.code, previous.value, new_status.value)

        data = {"oldStatus": previous.value, "newStatus": new_status.value}
        if note:
            data["note"] = note
        if reservation.damage_fee_cents is not None and new_status == ReservationStatus.DAMAGED:
            data["damageFeeCents"] = reservation.damage_fee_cents
        data.update(audit_data or {})
        await self.audit.append(AuditEntry(
            reservation_id=reservation.reservation_id, event=audit_event, data=data, created_at=now
        ))

        if new_status == ReservationStatus.CONFIRMED:
            await self._notify_confirmed(reservation)
        return reservation

    async def _notify_confirmed(self, reservation: Reservation) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.reservation_confirmed(reservation)
        except Exception:
            # the reservation stays CONFIRMED whatever happens to the email
            logger.exception("Confirmation notification failed for reservation %s", reservation.code)

    # ==================== NON-STATUS MUTATIONS ====================
    async def attach_payment_refs(
        self,
        reservation_id: UUID,
        payment_intent_id: str,
        setup_intent_id: str
    ) -> Reservation:
        async with self._lock(reservation_id):
            reservation = await self.get(reservation_id)
            expected_version = reservation.version
            reservation.attach_payment_refs(payment_intent_id, setup_intent_id)
            return await self.repository.update(reservation, expected_version)

    async def record_settlement(
        self,
        reservation_id: UUID,
        split: RevenueSplit,
        now: Optional[datetime] = None
    ) -> Reservation:
        now = now or _utcnow()
        async with self._lock(reservation_id):
            reservation = await self.get(reservation_id)
            expected_version = reservation.version
            reservation.record_settlement(split, now)
            await self.repository.update(reservation, expected_version)

        await self.audit.append(AuditEntry(
            reservation_id=reservation.reservation_id,
            event=AuditEvent.REVENUE_SETTLED,
            data={
                "totalCents": split.total_cents,
                "platformCents": split.platform_cents,
                "hotelCents": split.hotel_cents,
                "share": reservation.revenue_share_applied.value,
            },
            created_at=now,
        ))
        return reservation

    # ==================== EXPIRY ====================
    async def expire_pending(self, now: Optional[datetime] = None) -> List[Reservation]:
        """Cancel PENDING reservations older than the TTL, releasing their unit"""
        now = now or _utcnow()
        cutoff = now - self.pending_ttl
        expired = []
        for reservation in await self.repository.find_pending_created_before(cutoff):
            try:
                expired.append(await self.transition(
                    reservation.reservation_id,
                    ReservationStatus.CANCELLED,
                    expected_from=ReservationStatus.PENDING,
                    audit_event=AuditEvent.RESERVATION_EXPIRED,
                    audit_data={
                        "expirationDate": cutoff.isoformat(),
                        "ttlMinutes": int(self.pending_ttl.total_seconds() // 60),
                    },
                    now=now,
                ))
            except ConcurrentModification:
                logger.info("Reservation %s left PENDING before it expired", reservation.code)

        if expired:
            logger.info("Expired %d pending reservations created before %s", len(expired), cutoff.isoformat())
        return expired


class RevenueSettlement:
    """Attributes revenue of COMPLETED reservations exactly once"""

    def __init__(
        self,
        repository: ReservationRepository,
        state_machine: ReservationStateMachine,
        pricing: PricingEngine
    ):
        self.repository = repository
        self.state_machine = state_machine
        self.pricing = pricing

    async def settle(self, now: Optional[datetime] = None) -> List[Reservation]:
        now = now or _utcnow()
        settled = []
        for reservation in await self.repository.find_completed_unsettled():
            split = self.pricing.split_revenue(reservation.price_cents, reservation.revenue_share_applied)
            try:
                settled.append(await self.state_machine.record_settlement(reservation.reservation_id, split, now))
            except ValidationError as e:
                logger.info("Skipping settlement of %s: %s", reservation.code, e)

        logger.info("Settled revenue for %d reservations", len(settled))
        return settled


class CatalogService:
    """Products and per-hotel discount codes"""

    def __init__(self, products: ProductRepository, discount_codes: DiscountCodeRepository):
        self.products = products
        self.discount_codes = discount_codes

    async def save_product(self, product: Product) -> Product:
        logger.info("Product %s saved (deposit %d cents)", product.product_id, product.deposit_cents)
        return await self.products.save(product)

    async def get_product(self, product_id: str) -> Product:
        product = await self.products.find_by_id(product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found")
        return product

    async def set_hotel_discount(
        self,
        hotel_id: str,
        code: str,
        kind: ShareType,
        active: bool = True
    ) -> DiscountCode:
        """A hotel has at most one code; setting it again replaces it in place"""
        code = code.strip().upper()
        if not code:
            raise ValidationError("Discount code must not be empty")

        existing = await self.discount_codes.find_by_hotel(hotel_id)
        if existing is None:
            discount_code = DiscountCode(code=code, hotel_id=hotel_id, kind=kind, active=active)
        else:
            discount_code = existing.model_copy(update={"code": code, "kind": kind, "active": active})
        return await self.discount_codes.save(discount_code)

    async def verify_discount(self, code: str) -> Optional[DiscountCode]:
        """Active code matching `code`, or None"""
        discount_code = await self.discount_codes.find_by_code(code.strip().upper())
        if discount_code is None or not discount_code.active:
            return None
        return discount_code
