"""
Application service answering "when can this service be booked?".

The service coordinates the repository protocols and delegates the actual
slot arithmetic to the domain-level ``SlotCalculator``. Every collaborator
is a protocol, so tests plug in the in-memory store and a fixed clock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, List, Optional, Union

import pendulum
from pendulum import DateTime

from ..domain.models import ServiceSpec, Slot, StaffMember, TimeOfDay
from ..domain.slot_calculator import SlotCalculator
from ..domain.time_arithmetic import parse_date
from .repositories import (
    BusinessSettingsRepository,
    ReservationRepository,
    ScheduleRepository,
    ServiceCatalog,
    StaffDirectory,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], DateTime]


def system_clock(timezone: str) -> Clock:
    """Clock reading the current instant in the business timezone."""
    return lambda: pendulum.now(timezone)


@dataclass(frozen=True)
class BookingRules:
    """Business settings needed to compute slots, read once per request."""
    buffer_minutes: int
    granularity_minutes: int
    max_advance_days: int

    def allows_date(self, day: date, now: DateTime) -> bool:
        """Dates from today up to the advance booking horizon are bookable."""
        today = now.date()
        return today <= day <= today + timedelta(days=self.max_advance_days)


class AvailabilityService:
    """
    Read path: computes bookable start times across qualified staff.

    Pure with respect to stored state: calling it twice without writes in
    between yields the same result.
    """

    def __init__(
        self,
        *,
        settings: BusinessSettingsRepository,
        catalog: ServiceCatalog,
        staff: StaffDirectory,
        schedules: ScheduleRepository,
        reservations: ReservationRepository,
        clock: Clock,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._staff = staff
        self._schedules = schedules
        self._reservations = reservations
        self._clock = clock

    def now(self) -> DateTime:
        return self._clock()

    async def list_available_slots(
        self,
        *,
        business_id: str,
        service_id: str,
        day: Union[date, str],
        staff_id: Optional[str] = None,
    ) -> List[Slot]:
        """
        Bookable slots for a service on one date.

        Args:
            business_id: Business offering the service
            service_id: Requested service
            day: Target date (``date`` or ``YYYY-MM-DD``)
            staff_id: Restrict to one staff member; all qualified staff when None

        Returns:
            Slots sorted by time; staff members sharing a time are unordered

        Raises:
            InvalidInputError: If the date is malformed or the service unknown
        """
        target_date = parse_date(day)
        service = await self._catalog.get_service(business_id, service_id)
        rules = await self.load_rules(business_id)
        now = self._clock()

        if not rules.allows_date(target_date, now):
            logger.debug("Date %s outside booking horizon for %s", target_date, business_id)
            return []

        members = await self._resolve_staff(business_id, service_id, staff_id)
        if not members:
            return []

        per_member = await asyncio.gather(
            *(
                self._slots_for_member(member, service, target_date, rules, now)
                for member in members
            )
        )

        merged = [slot for slots in per_member for slot in slots]
        merged.sort(key=lambda slot: slot.time)
        return merged

    async def load_rules(self, business_id: str) -> BookingRules:
        buffer_minutes, granularity, max_days = await asyncio.gather(
            self._settings.get_booking_buffer(business_id),
            self._settings.get_slot_granularity(business_id),
            self._settings.get_max_advance_days(business_id),
        )
        return BookingRules(
            buffer_minutes=buffer_minutes,
            granularity_minutes=granularity,
            max_advance_days=max_days,
        )

    async def available_times_for_staff(
        self,
        *,
        staff_id: str,
        service: ServiceSpec,
        target_date: date,
        rules: BookingRules,
        now: DateTime,
        ignore_reservation_id: Optional[str] = None,
    ) -> List[TimeOfDay]:
        """
        Free start times of one staff member, read fresh from storage.

        ``ignore_reservation_id`` leaves one reservation out of the
        conflict check, which is how a reservation is moved onto a time
        overlapping its own current slot.
        """
        interval, existing = await asyncio.gather(
            self._schedules.get_working_interval(staff_id, target_date.weekday()),
            self._reservations.get_confirmed_reservations(staff_id, target_date),
        )
        if ignore_reservation_id is not None:
            existing = [r for r in existing if r.id != ignore_reservation_id]

        calculator = SlotCalculator(granularity_minutes=rules.granularity_minutes)
        return calculator.find_available_times(
            working_interval=interval,
            duration_minutes=service.duration_minutes,
            buffer_minutes=rules.buffer_minutes,
            target_date=target_date,
            reservations=existing,
            now=now,
        )

    async def _slots_for_member(
        self,
        member: StaffMember,
        service: ServiceSpec,
        target_date: date,
        rules: BookingRules,
        now: DateTime,
    ) -> List[Slot]:
        times = await self.available_times_for_staff(
            staff_id=member.id,
            service=service,
            target_date=target_date,
            rules=rules,
            now=now,
        )
        return [Slot(time=t, staff_id=member.id, staff_name=member.name) for t in times]

    async def _resolve_staff(
        self,
        business_id: str,
        service_id: str,
        staff_id: Optional[str],
    ) -> List[StaffMember]:
        """
        Active staff members qualified for the service.

        An unqualified explicit staff member resolves to nobody, so the
        caller just sees no availability.
        """
        if staff_id is not None:
            if not await self._staff.is_qualified(business_id, staff_id, service_id):
                logger.debug("Staff %s not qualified for service %s", staff_id, service_id)
                return []
            staff_ids = [staff_id]
        else:
            staff_ids = await self._staff.get_qualified_staff(business_id, service_id)

        if not staff_ids:
            return []

        return await self._staff.get_active_staff(staff_ids)
