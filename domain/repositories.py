"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from domain.entities import Product, InventoryItem, DiscountCode, Reservation, AuditEntry
from domain.value_objects import TimeWindow


class ProductRepository(ABC):
    """Repository interface for Product"""

    @abstractmethod
    async def save(self, product: Product) -> Product:
        pass

    @abstractmethod
    async def find_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Product]:
        pass


class InventoryRepository(ABC):
    """Repository interface for InventoryItem rows keyed by (hotel, product)"""

    @abstractmethod
    async def save(self, item: InventoryItem) -> InventoryItem:
        """Insert or replace the row for item's (hotel_id, product_id)"""
        pass

    @abstractmethod
    async def find(self, hotel_id: str, product_id: str) -> Optional[InventoryItem]:
        pass

    @abstractmethod
    async def find_by_hotel(self, hotel_id: str) -> List[InventoryItem]:
        pass


class DiscountCodeRepository(ABC):
    """Repository interface for DiscountCode"""

    @abstractmethod
    async def save(self, discount_code: DiscountCode) -> DiscountCode:
        pass

    @abstractmethod
    async def find_by_code(self, code: str) -> Optional[DiscountCode]:
        pass

    @abstractmethod
    async def find_by_hotel(self, hotel_id: str) -> Optional[DiscountCode]:
        pass


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate

    Reservations are never deleted; status encodes end of life.
    """

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        """Insert a new reservation; codes are unique"""
        pass

    @abstractmethod
    async def update(self, reservation: Reservation, expected_version: int) -> Reservation:
        """Replace the stored reservation if its version is still expected_version"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def find_by_code(self, code: str) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Reservation]:
        pass

    @abstractmethod
    async def find_blocking(self, hotel_id: str, product_id: str, window: TimeWindow) -> List[Reservation]:
        """Snapshot of blocking reservations for a pickup hotel/product overlapping window"""
        pass

    @abstractmethod
    async def find_pending_created_before(self, cutoff: datetime) -> List[Reservation]:
        pass

    @abstractmethod
    async def find_completed_unsettled(self) -> List[Reservation]:
        pass


class AuditRepository(ABC):
    """Append-only audit trail"""

    @abstractmethod
    async def append(self, entry: AuditEntry) -> AuditEntry:
        pass

    @abstractmethod
    async def find_by_reservation(self, reservation_id: UUID) -> List[AuditEntry]:
        pass
