"""
Notification sender that records customer notices in the application log.
"""

import logging
from typing import List, Tuple

from ..domain.models import Reservation

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """
    Stand-in for an email gateway.

    Each notice is logged and kept in ``sent`` as ``(kind, recipient)``.
    """

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []

    async def send_booking_confirmation(self, reservation: Reservation) -> None:
        self._record(
            "booking_confirmation",
            reservation,
            f"Your appointment on {reservation.date} at {reservation.start_time} is confirmed.",
        )

    async def send_booking_cancellation(self, reservation: Reservation) -> None:
        reason = f" Reason: {reservation.cancellation_reason}" if reservation.cancellation_reason else ""
        self._record(
            "booking_cancellation",
            reservation,
            f"Your appointment on {reservation.date} at {reservation.start_time} was cancelled.{reason}",
        )

    def _record(self, kind: str, reservation: Reservation, body: str) -> None:
        logger.info("Notification %s to %s: %s", kind, reservation.customer_email, body)
        self.sent.append((kind, reservation.customer_email))
