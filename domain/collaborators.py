"""External collaborators consumed by the engine"""
from abc import ABC, abstractmethod
from typing import Dict

from domain.enums import PaymentIntentStatus
from domain.value_objects import PaymentAuthorization


class PaymentAuthority(ABC):
    """Payment provider surface; implementations raise UpstreamPaymentError"""

    @abstractmethod
    async def authorize(self, amount_cents: int, metadata: Dict[str, str]) -> PaymentAuthorization:
        """Place a hold for amount_cents (manual capture)"""
        pass

    @abstractmethod
    async def create_setup(self, metadata: Dict[str, str]) -> PaymentAuthorization:
        """Save the customer's payment method for a later off-session charge"""
        pass

    @abstractmethod
    async def retrieve_status(self, ref: str) -> PaymentIntentStatus:
        pass


class Notifier(ABC):
    """Email/ICS side of the system, called once a reservation is CONFIRMED"""

    @abstractmethod
    async def reservation_confirmed(self, reservation) -> None:
        pass
