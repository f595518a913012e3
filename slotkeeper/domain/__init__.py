"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import ReservationStatus, Reservation, Slot, TimeOfDay, TimeRange, WorkingInterval
from .slot_calculator import SlotCalculator

__all__ = [
    "Reservation",
    "ReservationStatus",
    "Slot",
    "SlotCalculator",
    "TimeOfDay",
    "TimeRange",
    "WorkingInterval",
]
