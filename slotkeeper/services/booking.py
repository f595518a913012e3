"""
Application service admitting bookings and moving them through their lifecycle.

Admission runs in three steps: validate the request, re-check the slot
against storage inside a per-(staff_id, date) critical section, and commit
through the reservation repository, which refuses overlapping confirmed
rows on its own as well. A rejected attempt is final; callers re-query
availability and try a different slot.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import AsyncIterator, List, Mapping, Optional, Tuple, Union

from pendulum import DateTime

from ..domain.exceptions import (
    CancellationWindowError,
    InvalidInputError,
    InvalidTransitionError,
    NotificationError,
    NotQualifiedError,
    SlotUnavailableError,
)
from ..domain.inputs import CustomerInfo, ReservationFilter
from ..domain.models import Reservation, ReservationStatus, ServiceSpec, TimeOfDay
from ..domain.time_arithmetic import add_minutes, parse_date, parse_time_of_day
from .availability import AvailabilityService, BookingRules
from .locks import KeyedLock
from .repositories import BookingStore, Notifier

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    INVALID_INPUT = "invalid_input"
    SLOT_UNAVAILABLE = "slot_unavailable"


@dataclass(frozen=True)
class BookingResult:
    """Outcome of one admission attempt: committed or rejected, never both."""
    reservation: Optional[Reservation] = None
    reason: Optional[RejectionReason] = None
    detail: str = ""

    @property
    def committed(self) -> bool:
        return self.reservation is not None

    @property
    def reservation_id(self) -> Optional[str]:
        return self.reservation.id if self.reservation else None

    @classmethod
    def accepted(cls, reservation: Reservation) -> "BookingResult":
        return cls(reservation=reservation)

    @classmethod
    def rejected(cls, reason: RejectionReason, detail: str = "") -> "BookingResult":
        return cls(reason=reason, detail=detail)


@dataclass(frozen=True)
class _Admission:
    """A booking request that passed validation."""
    service: ServiceSpec
    rules: BookingRules
    target_date: date
    start_time: TimeOfDay
    end_time: TimeOfDay


class BookingService:
    """
    Write path for reservations.

    All commits for one (staff_id, date) run one at a time; commits for
    different keys proceed independently.
    """

    def __init__(
        self,
        *,
        store: BookingStore,
        availability: AvailabilityService,
        notifier: Optional[Notifier] = None,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self._store = store
        self._availability = availability
        self._notifier = notifier
        self._locks = locks or KeyedLock()

    async def request_booking(
        self,
        *,
        business_id: str,
        staff_id: str,
        service_id: str,
        day: Union[date, str],
        time: Union[TimeOfDay, str],
        customer: Union[CustomerInfo, Mapping[str, str]],
    ) -> BookingResult:
        """
        Admit a booking if the slot is still free.

        Returns:
            Committed result carrying the reservation, or a rejection with
            ``INVALID_INPUT`` or ``SLOT_UNAVAILABLE``

        Raises:
            RepositoryError: If storage fails; nothing is committed then
        """
        try:
            customer_info = CustomerInfo.parse(customer)
            admission = await self._prepare(business_id, staff_id, service_id, day, time)
        except InvalidInputError as exc:
            logger.debug("Booking request rejected: %s", exc)
            return BookingResult.rejected(RejectionReason.INVALID_INPUT, str(exc))
        except NotQualifiedError as exc:
            logger.debug("Booking request rejected: %s", exc)
            return BookingResult.rejected(RejectionReason.SLOT_UNAVAILABLE)

        candidate = Reservation(
            id=uuid.uuid4().hex,
            business_id=business_id,
            staff_id=staff_id,
            service_id=service_id,
            date=admission.target_date,
            start_time=admission.start_time,
            end_time=admission.end_time,
            status=ReservationStatus.CONFIRMED,
            created_at=self._availability.now(),
            customer_name=customer_info.name,
            customer_email=customer_info.email,
            customer_phone=customer_info.phone,
            customer_notes=customer_info.notes,
        )

        try:
            async with self._locks.hold((staff_id, admission.target_date)):
                await self._recheck(staff_id, admission)
                reservation = await self._store.try_commit_reservation(
                    candidate, admission.rules.buffer_minutes
                )
        except SlotUnavailableError as exc:
            logger.info(
                "Slot %s %s for staff %s no longer free", admission.target_date,
                admission.start_time, staff_id,
            )
            return BookingResult.rejected(RejectionReason.SLOT_UNAVAILABLE, str(exc))

        logger.info(
            "Committed reservation %s: staff %s on %s %s-%s", reservation.id, staff_id,
            reservation.date, reservation.start_time, reservation.end_time,
        )
        await self._notify_confirmation(reservation)
        return BookingResult.accepted(reservation)

    async def reschedule_booking(
        self,
        reservation_id: str,
        *,
        day: Union[date, str],
        time: Union[TimeOfDay, str],
    ) -> BookingResult:
        """
        Move a confirmed reservation to another date/time of the same staff member.

        The reservation's own current interval does not block the new one.
        Runs while holding the locks of both the old and the new date.

        Raises:
            ReservationNotFoundError: If the id is unknown
            InvalidTransitionError: If the reservation is no longer confirmed
            RepositoryError: If storage fails
        """
        current = await self._store.get_reservation(reservation_id)
        self._ensure_confirmed(current, "rescheduled")

        try:
            admission = await self._prepare(
                current.business_id, current.staff_id, current.service_id, day, time
            )
        except InvalidInputError as exc:
            return BookingResult.rejected(RejectionReason.INVALID_INPUT, str(exc))
        except NotQualifiedError:
            return BookingResult.rejected(RejectionReason.SLOT_UNAVAILABLE)

        try:
            async with self._hold_keys(
                (current.staff_id, current.date),
                (current.staff_id, admission.target_date),
            ):
                current = await self._store.get_reservation(reservation_id)
                self._ensure_confirmed(current, "rescheduled")
                await self._recheck(current.staff_id, admission, ignore_reservation_id=current.id)
                moved = await self._store.try_reschedule_reservation(
                    current.id,
                    admission.target_date,
                    admission.start_time,
                    admission.end_time,
                    admission.rules.buffer_minutes,
                )
        except SlotUnavailableError as exc:
            return BookingResult.rejected(RejectionReason.SLOT_UNAVAILABLE, str(exc))

        logger.info(
            "Rescheduled reservation %s to %s %s", moved.id, moved.date, moved.start_time
        )
        return BookingResult.accepted(moved)

    async def cancel_booking(
        self,
        reservation_id: str,
        *,
        reason: Optional[str] = None,
        enforce_window: bool = True,
    ) -> Reservation:
        """
        Cancel a confirmed reservation, releasing its interval.

        Raises:
            CancellationWindowError: If enforced and the start is too close
            InvalidTransitionError: If the reservation is not confirmed
            ReservationNotFoundError: If the id is unknown
        """
        async with self._hold_reservation(reservation_id) as reservation:
            self._ensure_confirmed(reservation, "cancelled")
            now = self._availability.now()
            if enforce_window:
                await self._check_cancellation_window(reservation, now)
            cancelled = await self._store.update_status(
                reservation_id, ReservationStatus.CANCELLED, at=now, reason=reason
            )

        logger.info("Cancelled reservation %s", reservation_id)
        await self._notify_cancellation(cancelled)
        return cancelled

    async def complete_booking(self, reservation_id: str) -> Reservation:
        return await self._transition(reservation_id, ReservationStatus.COMPLETED)

    async def mark_no_show(self, reservation_id: str) -> Reservation:
        return await self._transition(reservation_id, ReservationStatus.NO_SHOW)

    async def list_reservations(self, query: ReservationFilter) -> List[Reservation]:
        return await self._store.find_reservations(query)

    async def _transition(
        self,
        reservation_id: str,
        status: ReservationStatus,
    ) -> Reservation:
        async with self._hold_reservation(reservation_id) as reservation:
            self._ensure_confirmed(reservation, f"moved to {status.value}")
            updated = await self._store.update_status(reservation_id, status)
        logger.info("Reservation %s marked %s", reservation_id, status.value)
        return updated

    async def _check_cancellation_window(self, reservation: Reservation, now: DateTime) -> None:
        window_hours = await self._store.get_cancellation_window_hours(reservation.business_id)
        starts_at = now.set(
            year=reservation.date.year,
            month=reservation.date.month,
            day=reservation.date.day,
            hour=reservation.start_time.hour,
            minute=reservation.start_time.minute,
            second=0,
            microsecond=0,
        )
        if starts_at - now < timedelta(hours=window_hours):
            raise CancellationWindowError(
                f"Reservation {reservation.id} starts within {window_hours}h and can no "
                "longer be cancelled"
            )

    @asynccontextmanager
    async def _hold_keys(self, *keys: Tuple[str, date]) -> AsyncIterator[None]:
        # Fixed acquisition order so two multi-key holders cannot deadlock.
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self._locks.hold(key))
            yield

    @asynccontextmanager
    async def _hold_reservation(self, reservation_id: str) -> AsyncIterator[Reservation]:
        """
        Hold the lock of a reservation's (staff_id, date) and yield its stored state.

        Retries when a concurrent reschedule moved it to another date
        between the read and the lock.
        """
        while True:
            seen = await self._store.get_reservation(reservation_id)
            async with self._locks.hold((seen.staff_id, seen.date)):
                current = await self._store.get_reservation(reservation_id)
                if current.date == seen.date:
                    yield current
                    return

    @staticmethod
    def _ensure_confirmed(reservation: Reservation, action: str) -> None:
        if not reservation.is_confirmed:
            raise InvalidTransitionError(
                f"Reservation {reservation.id} is {reservation.status.value} and cannot "
                f"be {action}"
            )

    async def _prepare(
        self,
        business_id: str,
        staff_id: str,
        service_id: str,
        day: Union[date, str],
        time: Union[TimeOfDay, str],
    ) -> _Admission:
        """
        Validate a request before any shared state is touched.

        Raises:
            InvalidInputError: Malformed date/time or unknown service
            NotQualifiedError: Staff member cannot perform the service
        """
        target_date = parse_date(day)
        start_time = parse_time_of_day(time)

        service = await self._store.get_service(business_id, service_id)
        if not await self._store.is_qualified(business_id, staff_id, service_id):
            raise NotQualifiedError(f"Staff {staff_id} does not perform service {service_id}")
        if not await self._store.get_active_staff([staff_id]):
            raise NotQualifiedError(f"Staff {staff_id} is not taking bookings")

        try:
            end_time = add_minutes(start_time, service.duration_minutes)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc

        rules = await self._availability.load_rules(business_id)
        return _Admission(
            service=service,
            rules=rules,
            target_date=target_date,
            start_time=start_time,
            end_time=end_time,
        )

    async def _recheck(
        self,
        staff_id: str,
        admission: _Admission,
        ignore_reservation_id: Optional[str] = None,
    ) -> None:
        """
        Recompute the staff member's free times against current storage.

        Raises:
            SlotUnavailableError: If the requested start is not among them
        """
        now = self._availability.now()
        if not admission.rules.allows_date(admission.target_date, now):
            raise SlotUnavailableError(
                f"{admission.target_date} is outside the booking horizon"
            )

        free = await self._availability.available_times_for_staff(
            staff_id=staff_id,
            service=admission.service,
            target_date=admission.target_date,
            rules=admission.rules,
            now=now,
            ignore_reservation_id=ignore_reservation_id,
        )
        if admission.start_time not in free:
            raise SlotUnavailableError(
                f"{admission.target_date} {admission.start_time} is not available"
            )

    async def _notify_confirmation(self, reservation: Reservation) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.send_booking_confirmation(reservation)
        except NotificationError as exc:
            logger.warning("Could not send confirmation for %s: %s", reservation.id, exc)

    async def _notify_cancellation(self, reservation: Reservation) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.send_booking_cancellation(reservation)
        except NotificationError as exc:
            logger.warning("Could not send cancellation for %s: %s", reservation.id, exc)
