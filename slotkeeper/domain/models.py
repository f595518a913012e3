"""
Domain models for schedules, reservations and bookable slots.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Optional

from pendulum import DateTime

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """
    Wall-clock time of day at one-minute resolution.

    Invariant: 0 <= minutes < 1440.
    """
    minutes: int

    def __post_init__(self):
        if not 0 <= self.minutes < MINUTES_PER_DAY:
            raise ValueError(f"Time of day out of range: {self.minutes} minutes")

    @classmethod
    def of(cls, hour: int, minute: int = 0) -> "TimeOfDay":
        return cls(hour * 60 + minute)

    @property
    def hour(self) -> int:
        return self.minutes // 60

    @property
    def minute(self) -> int:
        return self.minutes % 60

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class TimeRange:
    """
    Half-open range [start, end) of minutes since midnight.

    The end may pass midnight when a buffer is added to a late reservation.
    Invariant: start must be before end.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start {self.start} must be before end {self.end}")

    @classmethod
    def between(cls, start: TimeOfDay, end: TimeOfDay) -> "TimeRange":
        return cls(start=start.minutes, end=end.minutes)

    @classmethod
    def starting_at(cls, start: TimeOfDay, duration_minutes: int) -> "TimeRange":
        return cls(start=start.minutes, end=start.minutes + duration_minutes)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def extend_end(self, minutes: int) -> "TimeRange":
        """Return a copy whose end is pushed back by ``minutes``."""
        return TimeRange(start=self.start, end=self.end + minutes)


class ReservationStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class WorkingInterval:
    """
    Recurring weekly working window of one staff member.

    Weekdays follow ``date.weekday()``: 0=Monday, 6=Sunday.
    """
    staff_id: str
    weekday: int
    start_time: TimeOfDay
    end_time: TimeOfDay
    active: bool = True

    def __post_init__(self):
        if self.weekday not in range(7):
            raise ValueError(f"Weekday must be between 0 and 6, got {self.weekday}")
        if self.active and self.start_time >= self.end_time:
            raise ValueError(
                f"Working interval start {self.start_time} must be before end {self.end_time}"
            )


@dataclass(frozen=True)
class ServiceSpec:
    id: str
    name: str
    duration_minutes: int

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"Service duration must be positive, got {self.duration_minutes}")


@dataclass(frozen=True)
class StaffMember:
    id: str
    name: str
    active: bool = True


@dataclass(frozen=True)
class Reservation:
    """
    A booked appointment of one staff member.

    Only confirmed reservations block availability.
    """
    id: str
    business_id: str
    staff_id: str
    service_id: str
    date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    status: ReservationStatus
    created_at: DateTime
    customer_name: str
    customer_email: str
    customer_phone: str
    customer_notes: Optional[str] = None
    cancelled_at: Optional[DateTime] = None
    cancellation_reason: Optional[str] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Reservation start {self.start_time} must be before end {self.end_time}"
            )

    @property
    def is_confirmed(self) -> bool:
        return self.status is ReservationStatus.CONFIRMED

    def time_range(self) -> TimeRange:
        return TimeRange.between(self.start_time, self.end_time)

    def blocked_range(self, buffer_minutes: int) -> TimeRange:
        """Interval this reservation keeps other bookings out of."""
        return self.time_range().extend_end(buffer_minutes)

    def with_status(
        self,
        status: ReservationStatus,
        *,
        at: Optional[DateTime] = None,
        reason: Optional[str] = None,
    ) -> "Reservation":
        if status is ReservationStatus.CANCELLED:
            return replace(self, status=status, cancelled_at=at, cancellation_reason=reason)
        return replace(self, status=status)


@dataclass(frozen=True)
class Slot:
    """
    An offered booking start time for one staff member.

    Advisory only: nothing is held until admission succeeds.
    """
    time: TimeOfDay
    staff_id: str
    staff_name: str

    def format_display(self) -> str:
        return f"{self.time} | {self.staff_name}"
