"""Pure availability arithmetic over a snapshot of reservations"""
from datetime import timedelta
from typing import Callable, Iterable, List, Optional

from domain.lifecycle import is_blocking
from domain.value_objects import TimeWindow, AvailabilityResult


AlternativesPolicy = Callable[[TimeWindow], List[TimeWindow]]


def count_overlapping(reservations: Iterable, window: TimeWindow) -> int:
    """Number of blocking reservations whose window overlaps `window`"""
    return sum(
        1 for r in reservations
        if is_blocking(r.status) and r.window.overlaps(window)
    )


def count_overlapping_many(reservations: Iterable, windows: List[TimeWindow]) -> List[int]:
    """Same half-open rule as count_overlapping, one count per window"""
    snapshot = [r for r in reservations if is_blocking(r.status)]
    return [count_overlapping(snapshot, w) for w in windows]


def next_day_alternatives(window: TimeWindow) -> List[TimeWindow]:
    """Same duration, shifted by one day"""
    return [window.shifted(timedelta(days=1))]


def evaluate(
    inventory_item,
    blocking_count: int,
    window: TimeWindow,
    alternatives_policy: Optional[AlternativesPolicy] = None
) -> AvailabilityResult:
    """Combine an inventory row and a live overlap count into an answer.

    A missing or inactive row means no stock is configured, which is reported
    as unavailable with no alternatives rather than as fully booked.
    """
    if inventory_item is None:
        return AvailabilityResult(available=False, total_quantity=0, available_quantity=0)

    available_quantity = max(0, inventory_item.quantity - blocking_count)
    available = inventory_item.active and available_quantity > 0

    alternatives: List[TimeWindow] = []
    if not available and inventory_item.active:
        policy = alternatives_policy or next_day_alternatives
        alternatives = policy(window)

    return AvailabilityResult(
        available=available,
        total_quantity=inventory_item.quantity,
        available_quantity=available_quantity,
        alternatives=alternatives,
    )
