"""
In-memory booking store built from the application configuration.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pendulum
import yaml

from ..config import AppConfig, BusinessConfig
from ..domain.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    RepositoryError,
    ReservationNotFoundError,
    SlotUnavailableError,
)
from ..domain.inputs import ReservationFilter
from ..domain.models import (
    Reservation,
    ReservationStatus,
    ServiceSpec,
    StaffMember,
    TimeOfDay,
    WorkingInterval,
)
from ..domain.time_arithmetic import format_time_of_day, parse_date, parse_time_of_day

logger = logging.getLogger(__name__)


class InMemoryBookingStore:
    """
    Implements every repository protocol on top of plain dictionaries.

    Catalog, staff and schedules come from ``AppConfig``. Reservations live
    in memory and, when ``reservations_file`` is set, are mirrored to a
    YAML file after every write. A failed file write rolls the in-memory
    change back, so a write either lands in both places or in neither.

    Writes re-read the stored row and check for overlapping confirmed
    reservations while holding the store's own lock, playing the part of a
    database row lock plus exclusion constraint. The YAML file is written
    in a worker thread so the event loop keeps serving other requests.
    ``io_delay`` makes every call yield to the event loop first, the way a
    real storage round trip would.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        reservations: Iterable[Reservation] = (),
        reservations_file: Optional[Path] = None,
        io_delay: float = 0.0,
    ):
        self.config = config
        self.reservations_file = reservations_file
        self._io_delay = io_delay
        self._write_lock = asyncio.Lock()

        self._businesses: Dict[str, BusinessConfig] = {b.id: b for b in config.businesses}
        self._staff_business: Dict[str, str] = {}
        self._staff: Dict[str, StaffMember] = {}
        self._staff_services: Dict[str, List[str]] = {}
        self._schedules: Dict[str, Dict[int, WorkingInterval]] = {}

        for business in config.businesses:
            for member in business.staff:
                self._staff_business[member.id] = business.id
                self._staff[member.id] = member.to_member()
                self._staff_services[member.id] = list(member.services)
                self._schedules[member.id] = {
                    interval.weekday: interval for interval in member.working_intervals()
                }

        self._reservations: Dict[str, Reservation] = {r.id: r for r in reservations}

    @classmethod
    def from_config(cls, config: AppConfig, *, io_delay: float = 0.0) -> "InMemoryBookingStore":
        """Create a store, loading saved reservations when the config names a file."""
        path = config.reservations_file
        reservations: List[Reservation] = []
        if path is not None and path.exists():
            reservations = load_reservations(path)
            logger.info("Loaded %d reservation(s) from %s", len(reservations), path)
        return cls(config, reservations=reservations, reservations_file=path, io_delay=io_delay)

    # Business settings

    async def get_booking_buffer(self, business_id: str) -> int:
        await self._io()
        return self._business(business_id).booking_buffer_minutes

    async def get_max_advance_days(self, business_id: str) -> int:
        await self._io()
        return self._business(business_id).max_advance_booking_days

    async def get_slot_granularity(self, business_id: str) -> int:
        await self._io()
        return self._business(business_id).slot_granularity_minutes

    async def get_cancellation_window_hours(self, business_id: str) -> int:
        await self._io()
        return self._business(business_id).cancellation_window_hours

    # Catalog and staff

    async def get_service(self, business_id: str, service_id: str) -> ServiceSpec:
        await self._io()
        service = self._business(business_id).find_service(service_id)
        if service is None:
            raise InvalidInputError(f"Unknown service: {service_id}")
        return service.to_spec()

    async def get_qualified_staff(self, business_id: str, service_id: str) -> List[str]:
        await self._io()
        return [
            member.id
            for member in self._business(business_id).staff
            if service_id in member.services
        ]

    async def is_qualified(self, business_id: str, staff_id: str, service_id: str) -> bool:
        await self._io()
        return (
            self._staff_business.get(staff_id) == business_id
            and service_id in self._staff_services.get(staff_id, [])
        )

    async def get_active_staff(self, staff_ids: Sequence[str]) -> List[StaffMember]:
        await self._io()
        members = [self._staff.get(staff_id) for staff_id in staff_ids]
        return [member for member in members if member is not None and member.active]

    # Schedules

    async def get_working_interval(self, staff_id: str, weekday: int) -> Optional[WorkingInterval]:
        await self._io()
        return self._schedules.get(staff_id, {}).get(weekday)

    # Reservations

    async def get_confirmed_reservations(self, staff_id: str, day: date) -> List[Reservation]:
        await self._io()
        return self._confirmed_for(staff_id, day)

    async def get_reservation(self, reservation_id: str) -> Reservation:
        await self._io()
        return self._stored(reservation_id)

    async def find_reservations(self, query: ReservationFilter) -> List[Reservation]:
        await self._io()
        matches = [r for r in self._reservations.values() if query.matches(r)]
        return sorted(matches, key=lambda r: (r.date, r.start_time))

    async def try_commit_reservation(self, candidate: Reservation, buffer_minutes: int) -> Reservation:
        await self._io()
        async with self._write_lock:
            if candidate.id in self._reservations:
                raise RepositoryError(f"Duplicate reservation id: {candidate.id}")
            self._ensure_free(candidate, buffer_minutes)
            await self._apply(candidate.id, candidate)
        return candidate

    async def try_reschedule_reservation(
        self,
        reservation_id: str,
        day: date,
        start_time: TimeOfDay,
        end_time: TimeOfDay,
        buffer_minutes: int,
    ) -> Reservation:
        await self._io()
        async with self._write_lock:
            current = self._stored(reservation_id)
            _require_confirmed(current, "rescheduled")
            moved = replace(current, date=day, start_time=start_time, end_time=end_time)
            self._ensure_free(moved, buffer_minutes)
            await self._apply(reservation_id, moved)
        return moved

    async def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        *,
        at: Optional[pendulum.DateTime] = None,
        reason: Optional[str] = None,
    ) -> Reservation:
        await self._io()
        async with self._write_lock:
            current = self._stored(reservation_id)
            _require_confirmed(current, f"moved to {status.value}")
            updated = current.with_status(status, at=at, reason=reason)
            await self._apply(reservation_id, updated)
        return updated

    def snapshot(self) -> List[Reservation]:
        """All reservations, ordered by date and start time."""
        return sorted(self._reservations.values(), key=lambda r: (r.date, r.start_time))

    def _stored(self, reservation_id: str) -> Reservation:
        try:
            return self._reservations[reservation_id]
        except KeyError:
            raise ReservationNotFoundError(f"Reservation not found: {reservation_id}") from None

    def _ensure_free(self, candidate: Reservation, buffer_minutes: int) -> None:
        """
        Refuse a candidate overlapping another confirmed reservation.

        Same predicate as slot filtering: the buffer trails existing
        reservations only.
        """
        wanted = candidate.time_range()
        for existing in self._confirmed_for(candidate.staff_id, candidate.date):
            if existing.id == candidate.id:
                continue
            if wanted.overlaps(existing.blocked_range(buffer_minutes)):
                raise SlotUnavailableError(
                    f"{candidate.date} {candidate.start_time}-{candidate.end_time} overlaps "
                    f"reservation {existing.id}"
                )

    async def _apply(self, reservation_id: str, reservation: Reservation) -> None:
        """Store a change and mirror it to disk, undoing it if the write fails."""
        previous = self._reservations.get(reservation_id)
        self._reservations[reservation_id] = reservation
        try:
            await self._persist()
        except RepositoryError:
            if previous is None:
                del self._reservations[reservation_id]
            else:
                self._reservations[reservation_id] = previous
            raise

    async def _persist(self) -> None:
        if self.reservations_file is None:
            return
        await asyncio.to_thread(save_reservations, self.reservations_file, self.snapshot())

    def _confirmed_for(self, staff_id: str, day: date) -> List[Reservation]:
        found = [
            r for r in self._reservations.values()
            if r.staff_id == staff_id and r.date == day and r.is_confirmed
        ]
        return sorted(found, key=lambda r: r.start_time)

    def _business(self, business_id: str) -> BusinessConfig:
        business = self._businesses.get(business_id)
        if business is None:
            raise InvalidInputError(f"Unknown business: {business_id}")
        return business

    async def _io(self) -> None:
        await asyncio.sleep(self._io_delay)


def _require_confirmed(reservation: Reservation, action: str) -> None:
    if not reservation.is_confirmed:
        raise InvalidTransitionError(
            f"Reservation {reservation.id} is {reservation.status.value} and cannot be {action}"
        )


def reservation_to_dict(reservation: Reservation) -> Dict[str, Any]:
    return {
        "id": reservation.id,
        "business_id": reservation.business_id,
        "staff_id": reservation.staff_id,
        "service_id": reservation.service_id,
        "date": reservation.date.isoformat(),
        "start_time": format_time_of_day(reservation.start_time),
        "end_time": format_time_of_day(reservation.end_time),
        "status": reservation.status.value,
        "created_at": reservation.created_at.isoformat(),
        "customer_name": reservation.customer_name,
        "customer_email": reservation.customer_email,
        "customer_phone": reservation.customer_phone,
        "customer_notes": reservation.customer_notes,
        "cancelled_at": reservation.cancelled_at.isoformat() if reservation.cancelled_at else None,
        "cancellation_reason": reservation.cancellation_reason,
    }


def reservation_from_dict(data: Dict[str, Any]) -> Reservation:
    """
    Rebuild a reservation from its saved form.

    Raises:
        KeyError, ValueError: If the record is incomplete or malformed
    """
    cancelled_at = data.get("cancelled_at")
    return Reservation(
        id=str(data["id"]),
        business_id=str(data["business_id"]),
        staff_id=str(data["staff_id"]),
        service_id=str(data["service_id"]),
        date=parse_date(str(data["date"])),
        start_time=parse_time_of_day(str(data["start_time"])),
        end_time=parse_time_of_day(str(data["end_time"])),
        status=ReservationStatus(data["status"]),
        created_at=pendulum.parse(str(data["created_at"])),
        customer_name=data.get("customer_name", ""),
        customer_email=data.get("customer_email", ""),
        customer_phone=data.get("customer_phone", ""),
        customer_notes=data.get("customer_notes"),
        cancelled_at=pendulum.parse(str(cancelled_at)) if cancelled_at else None,
        cancellation_reason=data.get("cancellation_reason"),
    )


def load_reservations(path: Path) -> List[Reservation]:
    """
    Read reservations saved by ``save_reservations``.

    Raises:
        RepositoryError: If the file cannot be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RepositoryError(f"Could not read reservations from {path}: {exc}") from exc

    records = data.get("reservations", []) if isinstance(data, dict) else None
    if not isinstance(records, list):
        raise RepositoryError(f"Reservations file {path} must contain a 'reservations' list")

    try:
        return [reservation_from_dict(record) for record in records]
    except (KeyError, TypeError, ValueError) as exc:
        raise RepositoryError(f"Invalid reservation record in {path}: {exc}") from exc


def save_reservations(path: Path, reservations: Iterable[Reservation]) -> None:
    """
    Write reservations atomically (temp file, then rename).

    Raises:
        RepositoryError: If the file cannot be written
    """
    payload = {"reservations": [reservation_to_dict(r) for r in reservations]}
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(payload, f, sort_keys=False, allow_unicode=True)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise RepositoryError(f"Could not save reservations to {path}: {exc}") from exc
