"""Domain Value Objects"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional
from uuid import UUID

from domain.enums import PricingType, ShareType, PaymentIntentStatus
from domain.exceptions import ValidationError


class TimeWindow(BaseModel):
    """Half-open rental window [start_at, end_at)

    Naive datetimes are read as UTC so that every window is comparable.
    """
    model_config = ConfigDict(frozen=True)

    start_at: datetime
    end_at: datetime

    @field_validator('start_at', 'end_at')
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator('end_at')
    @classmethod
    def end_after_start(cls, v, info):
        start = info.data.get('start_at')
        if start is not None and v <= start:
            raise ValueError('end_at must be after start_at')
        return v

    @classmethod
    def between(cls, start_at: datetime, end_at: datetime) -> "TimeWindow":
        """Build a window, raising the domain ValidationError on a bad range"""
        if start_at is None or end_at is None:
            raise ValidationError("start_at and end_at are required")
        try:
            return cls(start_at=start_at, end_at=end_at)
        except ValueError:
            raise ValidationError("start_at must be before end_at")

    @property
    def duration(self) -> timedelta:
        return self.end_at - self.start_at

    def overlaps(self, other: "TimeWindow") -> bool:
        """Touching endpoints do not overlap"""
        return self.start_at < other.end_at and self.end_at > other.start_at

    def shifted(self, delta: timedelta) -> "TimeWindow":
        return TimeWindow(start_at=self.start_at + delta, end_at=self.end_at + delta)

    @staticmethod
    def envelope(windows: Iterable["TimeWindow"]) -> Optional["TimeWindow"]:
        """Smallest window covering all of the given windows"""
        windows = list(windows)
        if not windows:
            return None
        return TimeWindow(
            start_at=min(w.start_at for w in windows),
            end_at=max(w.end_at for w in windows),
        )


class PriceQuote(BaseModel):
    """Result of pricing a product over a window"""
    model_config = ConfigDict(frozen=True)

    duration_hours: int = Field(ge=1)
    duration_days: int = Field(ge=1)
    pricing_type: PricingType
    base_cents: int = Field(ge=0)


class DiscountOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    final_cents: int = Field(ge=0)
    revenue_share: ShareType
    discount_code_id: Optional[UUID] = None


class RevenueSplit(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_cents: int = Field(ge=0)
    platform_cents: int = Field(ge=0)
    hotel_cents: int = Field(ge=0)


class AvailabilityResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    available: bool
    total_quantity: int = Field(ge=0)
    available_quantity: int = Field(ge=0)
    alternatives: List[TimeWindow] = []


class PaymentAuthorization(BaseModel):
    """Reference handed back by the payment authority"""
    model_config = ConfigDict(frozen=True)

    ref: str
    client_secret: str
    status: PaymentIntentStatus
