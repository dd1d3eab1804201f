"""Domain Enums"""
from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"
    DAMAGED = "DAMAGED"
    CANCELLED = "CANCELLED"


class DisplayStatus(str, Enum):
    """Simplified status shown on admin screens"""
    RESERVED = "RESERVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DAMAGED = "DAMAGED"
    STOLEN = "STOLEN"


class PricingType(str, Enum):
    HOURLY = "HOURLY"
    DAILY = "DAILY"


class ShareType(str, Enum):
    PLATFORM_70 = "PLATFORM_70"
    HOTEL_70 = "HOTEL_70"


class DepositAction(str, Enum):
    CAPTURE = "CAPTURE"
    RELEASE = "RELEASE"


class PaymentIntentStatus(str, Enum):
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    REQUIRES_CAPTURE = "requires_capture"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"


class AuditEvent(str, Enum):
    RESERVATION_CREATED = "reservation_created"
    PAYMENT_AUTHORIZED = "payment_authorized"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_CONFIRMED = "payment_confirmed"
    STATUS_CHANGED = "status_changed"
    RESERVATION_EXPIRED = "reservation_expired"
    REVENUE_SETTLED = "revenue_settled"
