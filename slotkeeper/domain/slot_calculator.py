"""
Core business logic for calculating bookable start times.

This is the heart of the application - pure domain logic without any
external dependencies (no storage access, no clock reads, no I/O).
"""

from datetime import date
from typing import Iterable, List, Optional

from pendulum import DateTime

from .models import Reservation, TimeOfDay, TimeRange, WorkingInterval
from .time_arithmetic import generate_candidates

DEFAULT_GRANULARITY_MINUTES = 15


class SlotCalculator:
    """
    Calculates the start times a staff member can still accept on one date.

    Algorithm:
    1. Take the staff member's working interval for the weekday
    2. Step through it at a fixed granularity, keeping starts where the
       service still fits before the end of the window
    3. Drop starts that overlap a confirmed reservation plus its buffer
    4. Drop starts that are not after "now" when the date is today
    """

    def __init__(self, granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES):
        if granularity_minutes <= 0:
            raise ValueError(f"Granularity must be positive, got {granularity_minutes}")
        self.granularity_minutes = granularity_minutes

    def find_available_times(
        self,
        *,
        working_interval: Optional[WorkingInterval],
        duration_minutes: int,
        buffer_minutes: int,
        target_date: date,
        reservations: Iterable[Reservation],
        now: DateTime,
    ) -> List[TimeOfDay]:
        """
        Candidate generation followed by conflict filtering.

        Args:
            working_interval: Schedule for the target weekday, or None
            duration_minutes: Length of the requested service
            buffer_minutes: Gap required after each existing reservation
            target_date: Date being booked
            reservations: Existing reservations of the staff member on that date
            now: Current instant in the business timezone

        Returns:
            Free start times, earliest first
        """
        candidates = self.generate_candidates(
            working_interval=working_interval,
            duration_minutes=duration_minutes,
            buffer_minutes=buffer_minutes,
        )
        return self.filter_conflicts(
            candidates=candidates,
            duration_minutes=duration_minutes,
            buffer_minutes=buffer_minutes,
            target_date=target_date,
            reservations=reservations,
            now=now,
        )

    def generate_candidates(
        self,
        *,
        working_interval: Optional[WorkingInterval],
        duration_minutes: int,
        buffer_minutes: int = 0,
    ) -> List[TimeOfDay]:
        """
        Produce every start time inside the working window.

        A missing or inactive interval means the staff member is off that
        day, which yields an empty list rather than an error.
        """
        if duration_minutes <= 0:
            raise ValueError(f"Service duration must be positive, got {duration_minutes}")
        if buffer_minutes < 0:
            raise ValueError(f"Buffer cannot be negative, got {buffer_minutes}")

        if working_interval is None or not working_interval.active:
            return []

        # The buffer trails existing reservations only; it never shortens
        # the window a new booking has to fit into.
        return list(
            generate_candidates(
                working_interval.start_time,
                working_interval.end_time,
                step_minutes=duration_minutes,
                interval_minutes=self.granularity_minutes,
            )
        )

    def filter_conflicts(
        self,
        *,
        candidates: Iterable[TimeOfDay],
        duration_minutes: int,
        buffer_minutes: int,
        target_date: date,
        reservations: Iterable[Reservation],
        now: DateTime,
    ) -> List[TimeOfDay]:
        """
        Remove candidates that clash with reservations or lie in the past.

        A candidate ``c`` clashes with reservation ``r`` when
        ``c < r.end + buffer and c + duration > r.start``. Non-confirmed
        reservations are ignored. Input order is preserved.
        """
        blocked = self._blocked_ranges(reservations, buffer_minutes)
        cutoff = self._past_cutoff(target_date, now)

        available: List[TimeOfDay] = []
        for candidate in candidates:
            if cutoff is not None and candidate.minutes <= cutoff:
                continue

            wanted = TimeRange.starting_at(candidate, duration_minutes)
            if any(wanted.overlaps(busy) for busy in blocked):
                continue

            available.append(candidate)

        return available

    @staticmethod
    def _blocked_ranges(
        reservations: Iterable[Reservation],
        buffer_minutes: int,
    ) -> List[TimeRange]:
        return [
            reservation.blocked_range(buffer_minutes)
            for reservation in reservations
            if reservation.is_confirmed
        ]

    @staticmethod
    def _past_cutoff(target_date: date, now: DateTime) -> Optional[int]:
        """
        Minute of day at or before which candidates are already gone.

        None when the target date is not today. Candidates are whole
        minutes, so flooring ``now`` keeps the "strictly after" rule exact.
        """
        if target_date != now.date():
            return None
        return now.hour * 60 + now.minute
