"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityService, BookingRules, system_clock
from .booking import BookingResult, BookingService, RejectionReason
from .locks import KeyedLock
from .repositories import BookingStore, Notifier

__all__ = [
    "AvailabilityService",
    "BookingResult",
    "BookingRules",
    "BookingService",
    "BookingStore",
    "KeyedLock",
    "Notifier",
    "RejectionReason",
    "system_clock",
]
