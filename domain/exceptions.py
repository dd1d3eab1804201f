"""Domain Exceptions

Every error the engine raises on purpose derives from DomainError and carries
the HTTP status and error code the API layer renders it with.
"""
from typing import List, Optional


class DomainError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extras(self) -> dict:
        """Additional fields for the error response body"""
        return {}


class ValidationError(DomainError, ValueError):
    """Client-fixable input problem (bad time range, bad fee, missing field)"""
    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidQuantity(ValidationError):
    code = "INVALID_QUANTITY"

    def __init__(self, quantity: int):
        super().__init__(f"Quantity must be >= 0, got {quantity}")
        self.quantity = quantity


class PaymentReferenceMismatch(ValidationError):
    code = "PAYMENT_REFERENCE_MISMATCH"


class DuplicateReservationCode(ValidationError):
    code = "DUPLICATE_RESERVATION_CODE"

    def __init__(self, reservation_code: str):
        super().__init__(f"Reservation code {reservation_code} already in use")
        self.reservation_code = reservation_code


class NotFound(DomainError):
    status_code = 404
    code = "NOT_FOUND"


class InsufficientInventory(DomainError):
    status_code = 409
    code = "INSUFFICIENT_INVENTORY"

    def __init__(self, message: str, alternatives: Optional[List] = None):
        super().__init__(message)
        self.alternatives = list(alternatives or [])

    def extras(self) -> dict:
        return {
            "alternatives": [
                {"startAt": w.start_at.isoformat(), "endAt": w.end_at.isoformat()}
                for w in self.alternatives
            ]
        }


class InvalidTransition(DomainError):
    status_code = 409
    code = "INVALID_TRANSITION"

    def __init__(self, from_status, to_status):
        super().__init__(
            f"Cannot transition reservation from {from_status.value} to {to_status.value}"
        )
        self.from_status = from_status
        self.to_status = to_status

    def extras(self) -> dict:
        return {"from": self.from_status.value, "to": self.to_status.value}


class PaymentStateError(DomainError):
    """Upstream payment objects are not in the expected pre-capture state"""
    status_code = 409
    code = "PAYMENT_STATE_ERROR"


class ConcurrentModification(DomainError):
    """Stored version moved between read and write"""
    status_code = 409
    code = "CONCURRENT_MODIFICATION"


class UpstreamPaymentError(DomainError):
    status_code = 502
    code = "PAYMENT_FAILED"

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable
