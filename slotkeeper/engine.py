"""
Wiring of the store, services and clock into one object.
"""

from dataclasses import dataclass
from typing import Optional

from .adapters.memory_store import InMemoryBookingStore
from .adapters.notifier import LoggingNotifier
from .config import AppConfig
from .services.availability import AvailabilityService, Clock, system_clock
from .services.booking import BookingService
from .services.repositories import Notifier


@dataclass
class BookingEngine:
    store: InMemoryBookingStore
    availability: AvailabilityService
    booking: BookingService

    @classmethod
    def from_store(
        cls,
        store: InMemoryBookingStore,
        *,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
    ) -> "BookingEngine":
        availability = AvailabilityService(
            settings=store,
            catalog=store,
            staff=store,
            schedules=store,
            reservations=store,
            clock=clock or system_clock(store.config.timezone),
        )
        booking = BookingService(
            store=store,
            availability=availability,
            notifier=notifier if notifier is not None else LoggingNotifier(),
        )
        return cls(store=store, availability=availability, booking=booking)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        io_delay: float = 0.0,
    ) -> "BookingEngine":
        store = InMemoryBookingStore.from_config(config, io_delay=io_delay)
        return cls.from_store(store, clock=clock, notifier=notifier)
