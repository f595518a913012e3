"""
Protocols describing the storage collaborators the services depend on.

Every call is a coroutine: storage I/O is the only place where a booking
request may be suspended.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.inputs import ReservationFilter
from ..domain.models import (
    Reservation,
    ReservationStatus,
    ServiceSpec,
    StaffMember,
    TimeOfDay,
    WorkingInterval,
)


class BusinessSettingsRepository(Protocol):
    """Per-business booking rules."""

    async def get_booking_buffer(self, business_id: str) -> int:
        """Minutes required after a reservation before the next may start."""

    async def get_max_advance_days(self, business_id: str) -> int:
        """How many days ahead customers may book."""

    async def get_slot_granularity(self, business_id: str) -> int:
        """Spacing in minutes between offered start times."""

    async def get_cancellation_window_hours(self, business_id: str) -> int:
        """Hours before start after which customers may no longer cancel."""


class ServiceCatalog(Protocol):
    async def get_service(self, business_id: str, service_id: str) -> ServiceSpec:
        """Return the service or raise ``InvalidInputError`` if unknown."""


class StaffDirectory(Protocol):
    """Staff lookups and service qualifications."""

    async def get_qualified_staff(self, business_id: str, service_id: str) -> List[str]:
        """Ids of the business's staff members able to perform the service."""

    async def is_qualified(self, business_id: str, staff_id: str, service_id: str) -> bool:
        """Whether the staff member works for the business and performs the service."""

    async def get_active_staff(self, staff_ids: Sequence[str]) -> List[StaffMember]:
        """Active staff members among ``staff_ids``, in the given order."""


class ScheduleRepository(Protocol):
    async def get_working_interval(
        self,
        staff_id: str,
        weekday: int,
    ) -> Optional[WorkingInterval]:
        """Working hours for the weekday, or None when the staff member is off."""


class ReservationRepository(Protocol):
    """Read and write access to the shared reservation set."""

    async def get_confirmed_reservations(self, staff_id: str, day: date) -> List[Reservation]:
        """Confirmed reservations of a staff member on a date, by start time."""

    async def get_reservation(self, reservation_id: str) -> Reservation:
        """Return the reservation or raise ``ReservationNotFoundError``."""

    async def find_reservations(self, query: ReservationFilter) -> List[Reservation]:
        """Reservations matching the filter, ordered by date and start time."""

    async def try_commit_reservation(
        self,
        candidate: Reservation,
        buffer_minutes: int,
    ) -> Reservation:
        """
        Insert a confirmed reservation atomically.

        Raises ``SlotUnavailableError`` if it would overlap a confirmed
        reservation of the same staff member and date (buffer applied),
        ``RepositoryError`` if nothing could be stored.
        """

    async def try_reschedule_reservation(
        self,
        reservation_id: str,
        day: date,
        start_time: TimeOfDay,
        end_time: TimeOfDay,
        buffer_minutes: int,
    ) -> Reservation:
        """
        Move a confirmed reservation with the same guarantees as a commit.

        Raises ``InvalidTransitionError`` if the stored reservation is no
        longer confirmed.
        """

    async def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        *,
        at: Optional[DateTime] = None,
        reason: Optional[str] = None,
    ) -> Reservation:
        """
        Move a confirmed reservation to ``status``, checked against the stored row.

        Raises ``InvalidTransitionError`` if the stored reservation is no
        longer confirmed.
        """


class BookingStore(
    BusinessSettingsRepository,
    ServiceCatalog,
    StaffDirectory,
    ScheduleRepository,
    ReservationRepository,
    Protocol,
):
    """Convenience protocol for adapters implementing every repository."""


class Notifier(Protocol):
    async def send_booking_confirmation(self, reservation: Reservation) -> None:
        """Tell the customer a booking was confirmed."""

    async def send_booking_cancellation(self, reservation: Reservation) -> None:
        """Tell the customer a booking was cancelled."""


__all__ = [
    "BookingStore",
    "BusinessSettingsRepository",
    "Notifier",
    "ReservationRepository",
    "ScheduleRepository",
    "ServiceCatalog",
    "StaffDirectory",
]
