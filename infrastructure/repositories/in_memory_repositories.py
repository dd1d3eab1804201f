"""In-Memory Repository Implementations

Stored aggregates are copied on the way in and out so that callers mutate
their own instance and only a successful update() publishes the change.
"""
from datetime import datetime
from typing import Optional, List, Dict, Tuple
from uuid import UUID

from domain.repositories import (
    ProductRepository, InventoryRepository, DiscountCodeRepository,
    ReservationRepository, AuditRepository
)
from domain.entities import Product, InventoryItem, DiscountCode, Reservation, AuditEntry
from domain.enums import ReservationStatus
from domain.exceptions import ConcurrentModification, DuplicateReservationCode, NotFound, ValidationError
from domain.lifecycle import is_blocking
from domain.value_objects import TimeWindow


def _copy(model):
    return model.model_copy(deep=True)


class InMemoryProductRepository(ProductRepository):
    """In-memory implementation of ProductRepository"""

    def __init__(self):
        self._storage: Dict[str, Product] = {}

    async def save(self, product: Product) -> Product:
        self._storage[product.product_id] = _copy(product)
        return product

    async def find_by_id(self, product_id: str) -> Optional[Product]:
        product = self._storage.get(product_id)
        return _copy(product) if product else None

    async def find_all(self) -> List[Product]:
        return [_copy(p) for p in self._storage.values()]


class InMemoryInventoryRepository(InventoryRepository):
    """In-memory implementation of InventoryRepository"""

    def __init__(self):
        self._storage: Dict[Tuple[str, str], InventoryItem] = {}

    async def save(self, item: InventoryItem) -> InventoryItem:
        self._storage[(item.hotel_id, item.product_id)] = _copy(item)
        return item

    async def find(self, hotel_id: str, product_id: str) -> Optional[InventoryItem]:
        item = self._storage.get((hotel_id, product_id))
        return _copy(item) if item else None

    async def find_by_hotel(self, hotel_id: str) -> List[InventoryItem]:
        return [_copy(i) for (h_id, _), i in self._storage.items() if h_id == hotel_id]


class InMemoryDiscountCodeRepository(DiscountCodeRepository):
    """In-memory implementation of DiscountCodeRepository"""

    def __init__(self):
        self._storage: Dict[UUID, DiscountCode] = {}

    async def save(self, discount_code: DiscountCode) -> DiscountCode:
        for existing in self._storage.values():
            if existing.code == discount_code.code \
                    and existing.discount_code_id != discount_code.discount_code_id:
                raise ValidationError(f"Discount code {discount_code.code} already exists")
        self._storage[discount_code.discount_code_id] = _copy(discount_code)
        return discount_code

    async def find_by_code(self, code: str) -> Optional[DiscountCode]:
        for discount_code in self._storage.values():
            if discount_code.code == code:
                return _copy(discount_code)
        return None

    async def find_by_hotel(self, hotel_id: str) -> Optional[DiscountCode]:
        for discount_code in self._storage.values():
            if discount_code.hotel_id == hotel_id:
                return _copy(discount_code)
        return None


class InMemoryReservationRepository(ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Reservation] = {}

    async def save(self, reservation: Reservation) -> Reservation:
        if reservation.reservation_id in self._storage:
            raise ValidationError("Reservation already exists")
        if await self.find_by_code(reservation.code) is not None:
            raise DuplicateReservationCode(reservation.code)
        self._storage[reservation.reservation_id] = _copy(reservation)
        return reservation

    async def update(self, reservation: Reservation, expected_version: int) -> Reservation:
        stored = self._storage.get(reservation.reservation_id)
        if stored is None:
            raise NotFound("Reservation not found")
        if stored.version != expected_version:
            raise ConcurrentModification(
                f"Reservation {reservation.code} changed concurrently "
                f"(expected version {expected_version}, found {stored.version})"
            )
        self._storage[reservation.reservation_id] = _copy(reservation)
        return reservation

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        reservation = self._storage.get(reservation_id)
        return _copy(reservation) if reservation else None

    async def find_by_code(self, code: str) -> Optional[Reservation]:
        for reservation in self._storage.values():
            if reservation.code == code:
                return _copy(reservation)
        return None

    async def find_all(self) -> List[Reservation]:
        reservations = sorted(self._storage.values(), key=lambda r: r.created_at, reverse=True)
        return [_copy(r) for r in reservations]

    async def find_blocking(self, hotel_id: str, product_id: str, window: TimeWindow) -> List[Reservation]:
        return [
            _copy(r) for r in self._storage.values()
            if r.pickup_hotel_id == hotel_id
            and r.product_id == product_id
            and is_blocking(r.status)
            and r.window.overlaps(window)
        ]

    async def find_pending_created_before(self, cutoff: datetime) -> List[Reservation]:
        return [
            _copy(r) for r in self._storage.values()
            if r.status == ReservationStatus.PENDING and r.created_at < cutoff
        ]

    async def find_completed_unsettled(self) -> List[Reservation]:
        return [
            _copy(r) for r in self._storage.values()
            if r.status == ReservationStatus.COMPLETED and r.revenue_settled_at is None
        ]


class InMemoryAuditRepository(AuditRepository):
    """In-memory implementation of AuditRepository"""

    def __init__(self):
        self._entries: List[AuditEntry] = []

    async def append(self, entry: AuditEntry) -> AuditEntry:
        self._entries.append(_copy(entry))
        return entry

    async def find_by_reservation(self, reservation_id: UUID) -> List[AuditEntry]:
        return [_copy(e) for e in self._entries if e.reservation_id == reservation_id]
