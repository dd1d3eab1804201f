"""Checkout orchestration

checkout() is a two-phase commit between the inventory/price decision and the
payment setup: the PENDING row is inserted first, then the payment authority is
called. Any failure after the insert cancels the reservation.
"""
import asyncio
import functools
import logging
import random
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from domain.collaborators import PaymentAuthority
from domain.entities import Reservation, AuditEntry
from domain.enums import ReservationStatus, AuditEvent, PaymentIntentStatus
from domain.exceptions import (
    NotFound, PaymentReferenceMismatch, PaymentStateError, UpstreamPaymentError,
    ConcurrentModification, DuplicateReservationCode, InvalidTransition
)
from domain.pricing import PricingEngine
from domain.repositories import ProductRepository, DiscountCodeRepository, AuditRepository
from domain.value_objects import TimeWindow

from application.services import AvailabilityChecker, ReservationStateMachine

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Exponential backoff with optional jitter for upstream payment calls.

    Only UpstreamPaymentError flagged retryable is retried; everything else,
    including a card decline, propagates on the first attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.2,
        max_delay: float = 2.0,
        jitter: float = 0.0
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.PAYMENT_MAX_ATTEMPTS,
            base_delay=settings.PAYMENT_BASE_DELAY_MS / 1000.0,
            max_delay=settings.PAYMENT_MAX_DELAY_MS / 1000.0,
        )

    def backoff(self, attempt: int) -> float:
        """Delay in seconds after the given failed attempt (1-based)"""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, UpstreamPaymentError) and error.retryable

    async def run(self, operation: Callable[[], Awaitable[T]], name: str = "operation") -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.is_retryable(e) or attempt == self.max_attempts:
                    if attempt > 1:
                        logger.error("%s failed after %d attempts: %s", name, attempt, e)
                    raise
                delay = self.backoff(attempt)
                logger.warning(
                    "%s failed on attempt %d/%d, retrying in %.3fs: %s",
                    name, attempt, self.max_attempts, delay, e,
                )
                await asyncio.sleep(delay)


class CheckoutCommand(BaseModel):
    user_email: str
    product_id: str
    pickup_hotel_id: str
    drop_hotel_id: str
    start_at: datetime
    end_at: datetime
    discount_code: Optional[str] = None


class CheckoutResult(BaseModel):
    reservation_id: UUID
    code: str
    client_secret: str
    setup_intent_secret: str


# Unique-code draws before giving up; 32^4 codes make a streak of collisions unlikely
CODE_ATTEMPTS = 10


class CheckoutOrchestrator:
    """Sequences availability, pricing, insert and payment authorization"""

    def __init__(
        self,
        products: ProductRepository,
        discount_codes: DiscountCodeRepository,
        audit: AuditRepository,
        availability: AvailabilityChecker,
        pricing: PricingEngine,
        state_machine: ReservationStateMachine,
        payments: PaymentAuthority,
        retry_policy: Optional[RetryPolicy] = None,
        code_prefix: str = "EZB"
    ):
        self.products = products
        self.discount_codes = discount_codes
        self.audit = audit
        self.availability = availability
        self.pricing = pricing
        self.state_machine = state_machine
        self.payments = payments
        self.retry_policy = retry_policy or RetryPolicy()
        self.code_prefix = code_prefix

    # ==================== CHECKOUT ====================
    async def checkout(self, command: CheckoutCommand) -> CheckoutResult:
        window = TimeWindow.between(command.start_at, command.end_at)

        product = await self.products.find_by_id(command.product_id)
        if product is None:
            raise NotFound(f"Product {command.product_id} not found")

        # early rejection; reserve_slot re-checks the pickup hotel under its lock
        await self.availability.ensure_available(command.pickup_hotel_id, command.product_id, window)
        if command.drop_hotel_id != command.pickup_hotel_id:
            await self.availability.ensure_available(
                command.drop_hotel_id, command.product_id, window, where="drop"
            )

        discount_code = None
        if command.discount_code:
            discount_code = await self.discount_codes.find_by_code(command.discount_code.strip().upper())

        # priced once; the payment retry below never re-enters pricing
        quote = self.pricing.price(product, window)
        discount = self.pricing.apply_discount(quote.base_cents, discount_code)

        def build(code: str) -> Reservation:
            return Reservation.create(
                product=product,
                pickup_hotel_id=command.pickup_hotel_id,
                drop_hotel_id=command.drop_hotel_id,
                user_email=command.user_email,
                window=window,
                quote=quote,
                discount=discount,
                code=code,
            )

        reservation = await self._insert_pending(command, window, build)
        logger.info(
            "Reservation %s created PENDING for %s/%s (%d cents, %s)",
            reservation.code, reservation.pickup_hotel_id, reservation.product_id,
            reservation.price_cents, reservation.pricing_type.value,
        )
        await self.audit.append(AuditEntry(
            reservation_id=reservation.reservation_id,
            event=AuditEvent.RESERVATION_CREATED,
            data={
                "priceCents": reservation.price_cents,
                "depositCents": reservation.deposit_cents,
                "revenueShare": reservation.revenue_share_applied.value,
            },
        ))

        metadata = {
            "reservationId": str(reservation.reservation_id),
            "reservationCode": reservation.code,
            "userEmail": reservation.user_email,
        }
        try:
            payment = await self.retry_policy.run(
                lambda: self.payments.authorize(reservation.deposit_cents, metadata), "Deposit authorization"
            )
            setup = await self.retry_policy.run(
                lambda: self.payments.create_setup(metadata), "Payment method setup"
            )
            await self.state_machine.attach_payment_refs(reservation.reservation_id, payment.ref, setup.ref)
        except Exception as e:
            await self._compensate(reservation, e)
            raise

        await self.audit.append(AuditEntry(
            reservation_id=reservation.reservation_id,
            event=AuditEvent.PAYMENT_AUTHORIZED,
            data={
                "paymentIntentId": payment.ref,
                "setupIntentId": setup.ref,
                "amountCents": reservation.deposit_cents,
            },
        ))

        return CheckoutResult(
            reservation_id=reservation.reservation_id,
            code=reservation.code,
            client_secret=payment.client_secret,
            setup_intent_secret=setup.client_secret,
        )

    async def _compensate(self, reservation: Reservation, error: Exception) -> None:
        """Cancel a reservation whose payment setup failed"""
        logger.warning("Payment setup failed for reservation %s, cancelling: %s", reservation.code, error)
        try:
            await self.state_machine.transition(
                reservation.reservation_id,
                ReservationStatus.CANCELLED,
                note="Payment authorization failed",
                expected_from=ReservationStatus.PENDING,
            )
        except (ConcurrentModification, InvalidTransition):
            logger.exception("Could not cancel reservation %s after payment failure", reservation.code)

        await self.audit.append(AuditEntry(
            reservation_id=reservation.reservation_id,
            event=AuditEvent.PAYMENT_FAILED,
            data={"error": str(error), "type": type(error).__name__},
        ))

    async def _insert_pending(
        self,
        command: CheckoutCommand,
        window: TimeWindow,
        build: Callable[[str], Reservation]
    ) -> Reservation:
        """Insert the PENDING row, drawing a fresh code whenever the insert collides"""
        for attempt in range(1, CODE_ATTEMPTS + 1):
            code = Reservation.generate_code(self.code_prefix)
            try:
                return await self.availability.reserve_slot(
                    command.pickup_hotel_id, command.product_id, window,
                    functools.partial(build, code),
                )
            except DuplicateReservationCode:
                logger.warning(
                    "Reservation code %s already taken (attempt %d/%d)", code, attempt, CODE_ATTEMPTS
                )
        raise ConcurrentModification("Could not allocate a unique reservation code")

    # ==================== CONFIRMATION ====================
    async def confirm(
        self,
        reservation_id: UUID,
        payment_intent_id: str,
        setup_intent_id: str
    ) -> Reservation:
        """Flip a PENDING reservation to CONFIRMED once payment is set up"""
        reservation = await self.state_machine.get(reservation_id)

        if reservation.payment_intent_id != payment_intent_id \
                or reservation.setup_intent_id != setup_intent_id:
            raise PaymentReferenceMismatch("Payment references do not match this reservation")

        payment_status = await self.payments.retrieve_status(payment_intent_id)
        setup_status = await self.payments.retrieve_status(setup_intent_id)
        if payment_status != PaymentIntentStatus.REQUIRES_CAPTURE \
                or setup_status != PaymentIntentStatus.SUCCEEDED:
            raise PaymentStateError(
                f"Payment is not ready for confirmation "
                f"(payment intent {payment_status.value}, setup intent {setup_status.value})"
            )

        return await self.state_machine.transition(
            reservation_id,
            ReservationStatus.CONFIRMED,
            audit_event=AuditEvent.PAYMENT_CONFIRMED,
            audit_data={
                "paymentIntentId": payment_intent_id,
                "setupIntentId": setup_intent_id,
                "paymentStatus": payment_status.value,
                "setupStatus": setup_status.value,
            },
        )
