"""
Tests for domain models.
"""

import pendulum
import pytest

from slotfinder.domain.models import (
    AvailableSlot,
    BusinessHoursPolicy,
    EventDetails,
    SlotGenerationRequest,
    TimeInterval,
    parse_interval,
)


class TestTimeInterval:
    """Tests for TimeInterval model."""

    def test_create_valid_time_interval(self):
        """Test creating a valid time interval."""
        start = pendulum.parse("2024-11-25 09:00", tz="Asia/Kolkata")
        end = pendulum.parse("2024-11-25 17:00", tz="Asia/Kolkata")

        interval = TimeInterval(start=start, end=end)

        assert interval.start == start
        assert interval.end == end
        assert interval.duration_minutes() == 480  # 8 hours

    def test_invalid_time_interval_raises_error(self):
        """Test that an inverted interval raises ValueError."""
        start = pendulum.parse("2024-11-25 17:00", tz="Asia/Kolkata")
        end = pendulum.parse("2024-11-25 09:00", tz="Asia/Kolkata")

        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            TimeInterval(start=start, end=end)

    def test_empty_time_interval_raises_error(self):
        """Test that a zero-length interval raises ValueError."""
        moment = pendulum.parse("2024-11-25 09:00", tz="Asia/Kolkata")

        with pytest.raises(ValueError):
            TimeInterval(start=moment, end=moment)

    def test_overlaps(self):
        """Test overlap detection with half-open bounds."""
        first = parse_interval("2024-11-25 09:00", "2024-11-25 12:00")
        second = parse_interval("2024-11-25 11:00", "2024-11-25 14:00")
        touching = parse_interval("2024-11-25 14:00", "2024-11-25 17:00")

        assert first.overlaps(second)
        assert second.overlaps(first)
        assert not first.overlaps(touching)
        assert not second.overlaps(touching)
        assert not touching.overlaps(second)

    def test_overlaps_across_timezones(self):
        """Overlap compares instants, not wall clock times."""
        ist = parse_interval("2024-11-25 10:00", "2024-11-25 10:15", "Asia/Kolkata")
        utc = parse_interval("2024-11-25 04:40", "2024-11-25 05:00", "UTC")  # 10:10-10:30 IST

        assert ist.overlaps(utc)

    def test_in_timezone(self):
        interval = parse_interval("2024-11-25 04:30", "2024-11-25 05:00", "UTC")

        local = interval.in_timezone("Asia/Kolkata")

        assert local.start.hour == 10
        assert local == interval


class TestBusinessHoursPolicy:
    """Tests for BusinessHoursPolicy model."""

    def test_is_excluded_day(self):
        """Test weekend detection with the default policy."""
        policy = BusinessHoursPolicy()

        assert not policy.is_excluded_day(pendulum.parse("2024-11-25", tz="Asia/Kolkata"))  # Monday
        assert policy.is_excluded_day(pendulum.parse("2024-11-23", tz="Asia/Kolkata"))  # Saturday
        assert policy.is_excluded_day(pendulum.parse("2024-11-24", tz="Asia/Kolkata"))  # Sunday

    def test_excluded_day_uses_policy_timezone(self):
        """Saturday 20:00 UTC is already Sunday in India."""
        policy = BusinessHoursPolicy(excluded_weekdays={6})

        assert policy.is_excluded_day(pendulum.datetime(2024, 11, 23, 20, 0, tz="UTC"))

    def test_excluded_weekdays_are_frozen(self):
        policy = BusinessHoursPolicy(excluded_weekdays=[5, 6, 6])

        assert policy.excluded_weekdays == frozenset({5, 6})

    def test_opening_times(self):
        """Test opening on the same and on the next day."""
        policy = BusinessHoursPolicy(start_hour=9, end_hour=18)
        evening = pendulum.parse("2024-11-25 19:42", tz="Asia/Kolkata")

        assert policy.opening_on(evening) == pendulum.parse("2024-11-25 09:00", tz="Asia/Kolkata")
        assert policy.opening_after(evening) == pendulum.parse("2024-11-26 09:00", tz="Asia/Kolkata")


class TestSlotGenerationRequest:
    """Tests for SlotGenerationRequest."""

    def test_rolling_window(self):
        """The rolling window spans seven days from now by default."""
        now = pendulum.parse("2024-11-25 10:00", tz="Asia/Kolkata")

        request = SlotGenerationRequest.rolling(now)

        assert request.window_start == now
        assert request.window_end == now.add(days=7)
        assert request.duration_minutes == 15
        assert request.slots_needed == 3
        assert request.policy == BusinessHoursPolicy()


class TestAvailableSlot:
    """Tests for AvailableSlot."""

    def _slot(self) -> AvailableSlot:
        return AvailableSlot(
            interval=parse_interval("2024-11-25 10:00", "2024-11-25 10:15"),
            duration_minutes=15,
            timezone="Asia/Kolkata",
        )

    def test_defaults(self):
        """Slots are available and carry a unique identifier."""
        first = self._slot()
        second = self._slot()

        assert first.is_available
        assert first.slot_id
        assert first.slot_id != second.slot_id
        assert first.start.hour == 10
        assert first.end.minute == 15

    def test_to_dict(self):
        data = self._slot().to_dict()

        assert data["start_time"] == "2024-11-25T10:00:00+05:30"
        assert data["end_time"] == "2024-11-25T10:15:00+05:30"
        assert data["timezone"] == "Asia/Kolkata"
        assert data["duration_minutes"] == 15
        assert data["is_available"] is True
        assert set(data) == {
            "slot_id", "start_time", "end_time", "timezone", "duration_minutes", "is_available"
        }

    def test_format_display(self):
        """Test the one-line display format."""
        assert self._slot().format_display() == "Monday, 25.11.2024 | 10:00 - 10:15 (15 min)"


class TestEventDetails:
    def test_for_interval(self):
        interval = parse_interval("2024-11-25 10:00", "2024-11-25 10:15")

        details = EventDetails.for_interval(interval, subject="Intro call")

        assert details.interval == interval
        assert details.subject == "Intro call"
        assert details.reminder_minutes == 10
