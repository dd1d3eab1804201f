"""Pricing Engine

Pure computations: rental price from duration, discount-code effect on price
and revenue share, and the platform/hotel revenue split.
"""
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from domain.enums import PricingType, ShareType
from domain.value_objects import TimeWindow, PriceQuote, DiscountOutcome, RevenueSplit


HOUR = timedelta(hours=1)
HOURLY_THRESHOLD_HOURS = 24
HOURS_PER_DAY = 24
DISCOUNT_PERCENT = 10
MAJORITY_SHARE = Decimal("0.7")

_DISCOUNT_FACTOR = (Decimal(100) - DISCOUNT_PERCENT) / Decimal(100)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


class PricingEngine:
    """Duration pricing with a hard hourly/daily cutoff at 24 hours.

    The cutoff is not a best-of-both comparison: a 25 hour rental is billed as
    two days even when 25 hourly units would be cheaper.
    """

    @staticmethod
    def duration_hours(window: TimeWindow) -> int:
        """Started hours, rounded up"""
        hours, remainder = divmod(window.duration, HOUR)
        if remainder:
            hours += 1
        return hours

    def price(self, product, window: TimeWindow) -> PriceQuote:
        duration_hours = self.duration_hours(window)
        duration_days = _ceil_div(duration_hours, HOURS_PER_DAY)

        if duration_hours <= HOURLY_THRESHOLD_HOURS:
            pricing_type = PricingType.HOURLY
            base_cents = product.price_per_hour_cents * duration_hours
        else:
            pricing_type = PricingType.DAILY
            base_cents = product.price_per_day_cents * duration_days

        return PriceQuote(
            duration_hours=duration_hours,
            duration_days=duration_days,
            pricing_type=pricing_type,
            base_cents=base_cents,
        )

    def apply_discount(self, base_cents: int, code=None) -> DiscountOutcome:
        """Apply a discount code once.

        Must be evaluated a single time per checkout: rounding is not
        idempotent, so feeding final_cents back in would discount twice.
        """
        if code is None or not code.active:
            return DiscountOutcome(final_cents=base_cents, revenue_share=ShareType.PLATFORM_70)

        return DiscountOutcome(
            final_cents=_round_half_up(Decimal(base_cents) * _DISCOUNT_FACTOR),
            revenue_share=code.kind,
            discount_code_id=code.discount_code_id,
        )

    def split_revenue(self, price_cents: int, share: Optional[ShareType]) -> RevenueSplit:
        """70/30 split; the minority party receives the remainder"""
        majority = _round_half_up(Decimal(price_cents) * MAJORITY_SHARE)
        minority = price_cents - majority

        if share == ShareType.HOTEL_70:
            return RevenueSplit(total_cents=price_cents, platform_cents=minority, hotel_cents=majority)
        return RevenueSplit(total_cents=price_cents, platform_cents=majority, hotel_cents=minority)
