"""
Tests for slot calculator.
"""

import random
from datetime import date

import pendulum
import pytest

from slotkeeper.domain.models import Reservation, ReservationStatus, TimeOfDay, WorkingInterval
from slotkeeper.domain.slot_calculator import SlotCalculator

MONDAY = date(2024, 11, 25)
TZ = "Europe/Berlin"
BEFORE_MONDAY = pendulum.parse("2024-11-22 08:00", tz=TZ)


def t(value: str) -> TimeOfDay:
    hour, minute = value.split(":")
    return TimeOfDay.of(int(hour), int(minute))


def interval(start: str, end: str, active: bool = True) -> WorkingInterval:
    return WorkingInterval(staff_id="ana", weekday=0, start_time=t(start), end_time=t(end), active=active)


def reservation(start: str, end: str, status=ReservationStatus.CONFIRMED, rid: str = "r1") -> Reservation:
    return Reservation(
        id=rid,
        business_id="shop",
        staff_id="ana",
        service_id="haircut",
        date=MONDAY,
        start_time=t(start),
        end_time=t(end),
        status=status,
        created_at=BEFORE_MONDAY,
        customer_name="Max",
        customer_email="max@example.com",
        customer_phone="0170 1234567",
    )


class TestGenerateCandidates:
    """Tests for the slot generator step."""

    def test_full_morning_without_reservations(self):
        """Working 09:00-12:00, 30 min service, buffer 10: every c with c+30 <= 12:00."""
        calculator = SlotCalculator(granularity_minutes=15)

        candidates = calculator.generate_candidates(
            working_interval=interval("09:00", "12:00"),
            duration_minutes=30,
            buffer_minutes=10,
        )

        assert [str(c) for c in candidates] == [
            "09:00", "09:15", "09:30", "09:45", "10:00", "10:15",
            "10:30", "10:45", "11:00", "11:15", "11:30",
        ]

    def test_absent_interval_yields_nothing(self):
        """Test that a staff member who is off that day has no candidates."""
        calculator = SlotCalculator()

        assert calculator.generate_candidates(working_interval=None, duration_minutes=30) == []

    def test_inactive_interval_yields_nothing(self):
        calculator = SlotCalculator()

        candidates = calculator.generate_candidates(
            working_interval=interval("09:00", "12:00", active=False),
            duration_minutes=30,
        )

        assert candidates == []

    @pytest.mark.parametrize("granularity, expected_count", [(5, 31), (30, 6), (60, 3)])
    def test_granularity_is_configurable(self, granularity, expected_count):
        calculator = SlotCalculator(granularity_minutes=granularity)

        candidates = calculator.generate_candidates(
            working_interval=interval("09:00", "12:00"),
            duration_minutes=30,
        )

        assert len(candidates) == expected_count

    def test_slots_stay_inside_window(self):
        """Property: start <= slot and slot + D <= end for random windows and durations."""
        rng = random.Random(20241125)

        for _ in range(200):
            start = rng.randrange(0, 23 * 60)
            end = rng.randrange(start + 1, 24 * 60)
            duration = rng.randrange(1, 180)
            granularity = rng.choice([5, 10, 15, 20, 30])
            window = WorkingInterval("ana", 0, TimeOfDay(start), TimeOfDay(end))

            candidates = SlotCalculator(granularity).generate_candidates(
                working_interval=window, duration_minutes=duration
            )

            for candidate in candidates:
                assert candidate.minutes >= start
                assert candidate.minutes + duration <= end

    def test_invalid_granularity(self):
        with pytest.raises(ValueError):
            SlotCalculator(granularity_minutes=0)


class TestFilterConflicts:
    """Tests for the conflict filter step."""

    def _filter(self, candidates, reservations, *, duration=30, buffer=10, now=BEFORE_MONDAY):
        return SlotCalculator().filter_conflicts(
            candidates=[t(c) for c in candidates],
            duration_minutes=duration,
            buffer_minutes=buffer,
            target_date=MONDAY,
            reservations=reservations,
            now=now,
        )

    def test_reservation_blocks_its_interval_plus_buffer(self):
        """Reservation 10:00-10:30 with buffer 10 blocks [10:00, 10:40) for a 30 min service."""
        kept = self._filter(
            ["09:15", "09:30", "09:40", "10:00", "10:30", "10:39", "10:40", "10:45"],
            [reservation("10:00", "10:30")],
        )

        assert [str(c) for c in kept] == ["09:15", "09:30", "10:40", "10:45"]

    def test_ending_exactly_at_reservation_start_is_free_without_buffer(self):
        """Half-open boundary: c + D == r.start is not a conflict."""
        kept = self._filter(["09:30"], [reservation("10:00", "10:30")], buffer=0)

        assert [str(c) for c in kept] == ["09:30"]

    def test_buffer_only_trails_reservations(self):
        """Buffer is not applied before a reservation, only after it."""
        kept = self._filter(["09:30"], [reservation("10:00", "10:30")], buffer=30)

        assert [str(c) for c in kept] == ["09:30"]

    def test_starting_inside_buffer_is_a_conflict(self):
        kept = self._filter(["10:30", "10:35"], [reservation("10:00", "10:30")], buffer=10)

        assert kept == []

    def test_non_confirmed_reservations_are_ignored(self):
        reservations = [
            reservation("10:00", "10:30", ReservationStatus.CANCELLED, "r1"),
            reservation("11:00", "11:30", ReservationStatus.COMPLETED, "r2"),
            reservation("09:00", "09:30", ReservationStatus.NO_SHOW, "r3"),
        ]

        kept = self._filter(["09:00", "10:00", "11:00"], reservations)

        assert [str(c) for c in kept] == ["09:00", "10:00", "11:00"]

    def test_today_drops_times_not_after_now(self):
        """Slots at or before "now" never appear for today."""
        now = pendulum.parse("2024-11-25 10:00:30", tz=TZ)

        kept = self._filter(["09:45", "10:00", "10:01", "10:15"], [], now=now)

        assert [str(c) for c in kept] == ["10:01", "10:15"]

    def test_exactly_now_is_dropped(self):
        now = pendulum.parse("2024-11-25 10:00", tz=TZ)

        kept = self._filter(["10:00", "10:15"], [], now=now)

        assert [str(c) for c in kept] == ["10:15"]

    def test_other_days_ignore_clock(self):
        now = pendulum.parse("2024-11-24 23:59", tz=TZ)

        kept = self._filter(["00:00", "09:00"], [], now=now)

        assert [str(c) for c in kept] == ["00:00", "09:00"]

    def test_preserves_input_order(self):
        kept = self._filter(["11:00", "09:00", "10:45"], [reservation("10:00", "10:30")])

        assert [str(c) for c in kept] == ["11:00", "09:00", "10:45"]


class TestFindAvailableTimes:
    """Tests for the combined calculation."""

    def test_generation_then_filtering(self):
        calculator = SlotCalculator(granularity_minutes=15)

        times = calculator.find_available_times(
            working_interval=interval("09:00", "12:00"),
            duration_minutes=30,
            buffer_minutes=10,
            target_date=MONDAY,
            reservations=[reservation("10:00", "10:30")],
            now=BEFORE_MONDAY,
        )

        # 09:45 through 10:30 overlap [10:00, 10:40)
        assert [str(c) for c in times] == [
            "09:00", "09:15", "09:30", "10:45", "11:00", "11:15", "11:30",
        ]

    def test_repeated_calls_are_identical(self):
        calculator = SlotCalculator()
        kwargs = dict(
            working_interval=interval("09:00", "12:00"),
            duration_minutes=30,
            buffer_minutes=10,
            target_date=MONDAY,
            reservations=[reservation("10:00", "10:30")],
            now=BEFORE_MONDAY,
        )

        assert calculator.find_available_times(**kwargs) == calculator.find_available_times(**kwargs)
