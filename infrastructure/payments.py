"""In-memory payment authority

Mimics a card processor with manual-capture holds: authorize() creates an
intent already awaiting capture and create_setup() a succeeded setup intent,
as if the client had completed the card form.
"""
import logging
import secrets
from typing import Dict, List, Optional

from domain.collaborators import PaymentAuthority
from domain.enums import PaymentIntentStatus
from domain.exceptions import UpstreamPaymentError
from domain.value_objects import PaymentAuthorization

logger = logging.getLogger(__name__)


class InMemoryPaymentAuthority(PaymentAuthority):

    def __init__(self):
        self._statuses: Dict[str, PaymentIntentStatus] = {}
        self._amounts: Dict[str, int] = {}
        self._failures: List[UpstreamPaymentError] = []
        self.authorize_calls = 0

    # ==================== TEST HOOKS ====================
    def fail_next(self, error: Optional[UpstreamPaymentError] = None, times: int = 1) -> None:
        """Queue failures for the next calls to authorize/create_setup"""
        for _ in range(times):
            self._failures.append(error or UpstreamPaymentError("Card declined", retryable=False))

    def set_status(self, ref: str, status: PaymentIntentStatus) -> None:
        self._statuses[ref] = status

    def amount_for(self, ref: str) -> Optional[int]:
        return self._amounts.get(ref)

    # ==================== PAYMENT AUTHORITY ====================
    async def authorize(self, amount_cents: int, metadata: Dict[str, str]) -> PaymentAuthorization:
        self.authorize_calls += 1
        self._raise_queued_failure()
        ref = f"pi_{secrets.token_hex(12)}"
        self._statuses[ref] = PaymentIntentStatus.REQUIRES_CAPTURE
        self._amounts[ref] = amount_cents
        logger.debug("Authorized %d cents as %s for %s", amount_cents, ref, metadata.get("reservationCode"))
        return PaymentAuthorization(
            ref=ref,
            client_secret=f"{ref}_secret_{secrets.token_hex(8)}",
            status=PaymentIntentStatus.REQUIRES_CAPTURE,
        )

    async def create_setup(self, metadata: Dict[str, str]) -> PaymentAuthorization:
        self._raise_queued_failure()
        ref = f"seti_{secrets.token_hex(12)}"
        self._statuses[ref] = PaymentIntentStatus.SUCCEEDED
        return PaymentAuthorization(
            ref=ref,
            client_secret=f"{ref}_secret_{secrets.token_hex(8)}",
            status=PaymentIntentStatus.SUCCEEDED,
        )

    async def retrieve_status(self, ref: str) -> PaymentIntentStatus:
        status = self._statuses.get(ref)
        if status is None:
            raise UpstreamPaymentError(f"No such payment object: {ref}")
        return status

    def _raise_queued_failure(self) -> None:
        if self._failures:
            raise self._failures.pop(0)
