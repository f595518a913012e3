"""
Pure helpers for time-of-day parsing, arithmetic and candidate generation.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Iterator, Union

import pendulum

from .exceptions import InvalidInputError
from .models import MINUTES_PER_DAY, TimeOfDay

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_time_of_day(value: Union[str, TimeOfDay]) -> TimeOfDay:
    """
    Parse an ``HH:MM`` string in [00:00, 23:59].

    Raises:
        InvalidInputError: If the value is not a valid time of day
    """
    if isinstance(value, TimeOfDay):
        return value

    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise InvalidInputError(f"Invalid time of day: {value!r} (expected HH:MM)")

    return TimeOfDay.of(int(match.group(1)), int(match.group(2)))


def format_time_of_day(value: TimeOfDay) -> str:
    return str(value)


def parse_date(value: Union[str, date]) -> date:
    """
    Parse a ``YYYY-MM-DD`` calendar date.

    Raises:
        InvalidInputError: If the value is not a valid date
    """
    if isinstance(value, date):
        return value

    try:
        return pendulum.from_format(str(value).strip(), "YYYY-MM-DD").date()
    except ValueError as exc:
        raise InvalidInputError(f"Invalid date: {value!r} (expected YYYY-MM-DD)") from exc


def add_minutes(value: TimeOfDay, minutes: int) -> TimeOfDay:
    """
    Shift a time of day by ``minutes``.

    Raises:
        ValueError: If the result falls outside the same day
    """
    shifted = value.minutes + minutes
    if not 0 <= shifted < MINUTES_PER_DAY:
        raise ValueError(f"{value} + {minutes} min does not fall on the same day")
    return TimeOfDay(shifted)


class CandidateSequence:
    """
    Evenly spaced start times within a window.

    Each candidate leaves at least ``step_minutes`` before ``end``. The
    sequence is lazy and can be iterated any number of times.
    """

    def __init__(
        self,
        start: TimeOfDay,
        end: TimeOfDay,
        step_minutes: int,
        interval_minutes: int,
    ):
        if step_minutes <= 0:
            raise ValueError(f"step_minutes must be positive, got {step_minutes}")
        if interval_minutes <= 0:
            raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")

        self.start = start
        self.end = end
        self.step_minutes = step_minutes
        self.interval_minutes = interval_minutes
        # last start whose slot still fits; empty range when none fits
        last_start = end.minutes - step_minutes
        self._offsets = range(start.minutes, last_start + 1, interval_minutes)

    def __iter__(self) -> Iterator[TimeOfDay]:
        for minutes in self._offsets:
            yield TimeOfDay(minutes)

    def __len__(self) -> int:
        return len(self._offsets)

    def __repr__(self) -> str:
        return (
            f"CandidateSequence({self.start}-{self.end}, "
            f"step={self.step_minutes}, interval={self.interval_minutes})"
        )


def generate_candidates(
    start: TimeOfDay,
    end: TimeOfDay,
    step_minutes: int,
    interval_minutes: int,
) -> CandidateSequence:
    """Candidates ``start, start+interval, ...`` while ``candidate + step <= end``."""
    return CandidateSequence(start, end, step_minutes, interval_minutes)
