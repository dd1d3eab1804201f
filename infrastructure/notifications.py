"""Notification collaborator

Email and calendar delivery live outside this service; this implementation
records what would be sent.
"""
import logging
from typing import List

from domain.collaborators import Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):

    def __init__(self):
        self.sent: List[str] = []

    async def reservation_confirmed(self, reservation) -> None:
        logger.info(
            "Confirmation for reservation %s to %s (pickup %s, %s -> %s)",
            reservation.code,
            reservation.user_email,
            reservation.pickup_hotel_id,
            reservation.start_at.isoformat(),
            reservation.end_at.isoformat(),
        )
        self.sent.append(reservation.code)
