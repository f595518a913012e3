"""
Tests for domain models.
"""

from datetime import date

import pendulum
import pytest

from slotkeeper.domain.models import (
    Reservation,
    ReservationStatus,
    ServiceSpec,
    TimeOfDay,
    TimeRange,
    WorkingInterval,
)


def _reservation(start: str, end: str, status=ReservationStatus.CONFIRMED) -> Reservation:
    return Reservation(
        id="r1",
        business_id="shop",
        staff_id="ana",
        service_id="haircut",
        date=date(2024, 11, 25),
        start_time=TimeOfDay.of(*map(int, start.split(":"))),
        end_time=TimeOfDay.of(*map(int, end.split(":"))),
        status=status,
        created_at=pendulum.parse("2024-11-20 10:00", tz="Europe/Berlin"),
        customer_name="Max",
        customer_email="max@example.com",
        customer_phone="0170 1234567",
    )


class TestTimeOfDay:
    """Tests for TimeOfDay."""

    def test_components(self):
        t = TimeOfDay.of(9, 5)
        assert t.hour == 9
        assert t.minute == 5
        assert t.minutes == 545

    def test_ordering(self):
        assert TimeOfDay.of(9, 0) < TimeOfDay.of(9, 15) < TimeOfDay.of(10, 0)

    @pytest.mark.parametrize("minutes", [-1, 1440])
    def test_out_of_range_raises(self, minutes):
        with pytest.raises(ValueError, match="out of range"):
            TimeOfDay(minutes)


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        tr = TimeRange.between(TimeOfDay.of(9, 0), TimeOfDay.of(17, 0))

        assert tr.start == 540
        assert tr.end == 1020
        assert tr.duration_minutes() == 480  # 8 hours

    def test_invalid_time_range_raises_error(self):
        """Test that creating an invalid time range raises ValueError."""
        with pytest.raises(ValueError, match="Start .* must be before end"):
            TimeRange.between(TimeOfDay.of(17, 0), TimeOfDay.of(9, 0))

    def test_overlaps(self):
        """Test overlap detection."""
        tr1 = TimeRange.between(TimeOfDay.of(9, 0), TimeOfDay.of(12, 0))
        tr2 = TimeRange.between(TimeOfDay.of(11, 0), TimeOfDay.of(14, 0))
        tr3 = TimeRange.between(TimeOfDay.of(14, 0), TimeOfDay.of(17, 0))

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert not tr1.overlaps(tr3)

    def test_touching_ranges_do_not_overlap(self):
        """Test half-open semantics: [9, 10) and [10, 11) are disjoint."""
        first = TimeRange.between(TimeOfDay.of(9, 0), TimeOfDay.of(10, 0))
        second = TimeRange.between(TimeOfDay.of(10, 0), TimeOfDay.of(11, 0))

        assert not first.overlaps(second)
        assert not second.overlaps(first)

    def test_extend_end_may_pass_midnight(self):
        late = TimeRange.between(TimeOfDay.of(23, 30), TimeOfDay.of(23, 55))

        assert late.extend_end(10).end == 24 * 60 + 5


class TestWorkingInterval:
    """Tests for WorkingInterval."""

    def test_active_interval_requires_order(self):
        with pytest.raises(ValueError, match="must be before end"):
            WorkingInterval("ana", 0, TimeOfDay.of(12, 0), TimeOfDay.of(9, 0))

    def test_inactive_interval_skips_order_check(self):
        interval = WorkingInterval("ana", 0, TimeOfDay.of(12, 0), TimeOfDay.of(9, 0), active=False)

        assert not interval.active

    def test_weekday_range(self):
        with pytest.raises(ValueError, match="Weekday"):
            WorkingInterval("ana", 7, TimeOfDay.of(9, 0), TimeOfDay.of(12, 0))


class TestReservation:
    """Tests for Reservation."""

    def test_blocked_range_adds_buffer_after_end(self):
        reservation = _reservation("10:00", "10:30")

        blocked = reservation.blocked_range(10)

        assert (blocked.start, blocked.end) == (600, 640)

    def test_cancel_records_reason_and_time(self):
        at = pendulum.parse("2024-11-21 09:00", tz="Europe/Berlin")

        cancelled = _reservation("10:00", "10:30").with_status(
            ReservationStatus.CANCELLED, at=at, reason="sick"
        )

        assert cancelled.status is ReservationStatus.CANCELLED
        assert not cancelled.is_confirmed
        assert cancelled.cancelled_at == at
        assert cancelled.cancellation_reason == "sick"

    def test_start_must_precede_end(self):
        with pytest.raises(ValueError):
            _reservation("10:30", "10:00")


class TestServiceSpec:
    def test_duration_must_be_positive(self):
        with pytest.raises(ValueError, match="positive"):
            ServiceSpec(id="x", name="X", duration_minutes=0)
