"""API Dependencies - Service wiring"""
from datetime import timedelta
from typing import Optional

from fastapi import Depends

from application.checkout import CheckoutOrchestrator, RetryPolicy
from application.services import (
    InventoryLedger, OverlapCounter, AvailabilityChecker,
    ReservationStateMachine, RevenueSettlement, CatalogService
)
from domain.collaborators import PaymentAuthority, Notifier
from domain.pricing import PricingEngine
from infrastructure.config import Settings, get_settings
from infrastructure.locks import KeyedLocks
from infrastructure.notifications import LoggingNotifier
from infrastructure.payments import InMemoryPaymentAuthority
from infrastructure.repositories.in_memory_repositories import (
    InMemoryProductRepository, InMemoryInventoryRepository, InMemoryDiscountCodeRepository,
    InMemoryReservationRepository, InMemoryAuditRepository
)


class Container:
    """Repositories, collaborators and services for one application instance"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        payments: Optional[PaymentAuthority] = None,
        notifier: Optional[Notifier] = None,
        retry_policy: Optional[RetryPolicy] = None,
        reservation_repo: Optional[InMemoryReservationRepository] = None
    ):
        self.settings = settings or get_settings()

        # Initialize repositories
        self.product_repo = InMemoryProductRepository()
        self.inventory_repo = InMemoryInventoryRepository()
        self.discount_repo = InMemoryDiscountCodeRepository()
        self.reservation_repo = reservation_repo or InMemoryReservationRepository()
        self.audit_repo = InMemoryAuditRepository()

        # Collaborators
        self.locks = KeyedLocks()
        self.payments = payments or InMemoryPaymentAuthority()
        self.notifier = notifier or LoggingNotifier()
        self.pricing = PricingEngine()

        # Services
        self.ledger = InventoryLedger(self.inventory_repo)
        self.counter = OverlapCounter(self.reservation_repo)
        self.availability = AvailabilityChecker(
            self.ledger, self.counter, self.reservation_repo, self.locks
        )
        self.state_machine = ReservationStateMachine(
            self.reservation_repo,
            self.availability,
            self.audit_repo,
            self.locks,
            notifier=self.notifier,
            pending_ttl=timedelta(minutes=self.settings.RESERVATION_PENDING_TTL_MIN),
        )
        self.checkout = CheckoutOrchestrator(
            self.product_repo,
            self.discount_repo,
            self.audit_repo,
            self.availability,
            self.pricing,
            self.state_machine,
            self.payments,
            retry_policy=retry_policy or RetryPolicy.from_settings(self.settings),
            code_prefix=self.settings.RESERVATION_CODE_PREFIX,
        )
        self.settlement = RevenueSettlement(self.reservation_repo, self.state_machine, self.pricing)
        self.catalog = CatalogService(self.product_repo, self.discount_repo)


_container: Optional[Container] = None


def get_container() -> Container:
    global _container
    if _container is None:
        _container = Container()
    return _container


# Dependency injection
def get_checkout_orchestrator(container: Container = Depends(get_container)) -> CheckoutOrchestrator:
    return container.checkout


def get_state_machine(container: Container = Depends(get_container)) -> ReservationStateMachine:
    return container.state_machine


def get_availability_checker(container: Container = Depends(get_container)) -> AvailabilityChecker:
    return container.availability


def get_inventory_ledger(container: Container = Depends(get_container)) -> InventoryLedger:
    return container.ledger


def get_revenue_settlement(container: Container = Depends(get_container)) -> RevenueSettlement:
    return container.settlement


def get_catalog_service(container: Container = Depends(get_container)) -> CatalogService:
    return container.catalog
