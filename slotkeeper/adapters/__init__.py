"""
Adapters layer - Storage and notification implementations.
"""

from .memory_store import InMemoryBookingStore, load_reservations, save_reservations
from .notifier import LoggingNotifier

__all__ = ["InMemoryBookingStore", "LoggingNotifier", "load_reservations", "save_reservations"]
