"""
Domain models for time intervals, business hours and generated slots.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet

import pendulum
from pendulum import DateTime

DEFAULT_TIMEZONE = "Asia/Kolkata"


@dataclass(frozen=True)
class TimeInterval:
    """
    Represents an immutable half-open time interval ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeInterval") -> bool:
        """
        Check if this interval overlaps with another.

        Touching endpoints do not count as an overlap: ``[10:00, 10:15)``
        and ``[10:15, 10:30)`` can both be booked.
        """
        return self.start < other.end and self.end > other.start

    def in_timezone(self, timezone: str) -> "TimeInterval":
        """Return the same interval expressed in another timezone."""
        return TimeInterval(
            start=self.start.in_timezone(timezone),
            end=self.end.in_timezone(timezone),
        )

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


# Busy intervals and candidate slots carry no data beyond their bounds.
BusyInterval = TimeInterval
CandidateSlot = TimeInterval


@dataclass(frozen=True)
class BusinessHoursPolicy:
    """
    Configuration bounding which hours and weekdays are eligible for slots.

    Hours are interpreted in ``timezone``. Weekdays use ``datetime.weekday()``
    numbering (0=Monday, 6=Sunday).
    """
    start_hour: int = 9
    end_hour: int = 18
    excluded_weekdays: FrozenSet[int] = frozenset({5, 6})
    granularity_minutes: int = 15
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self):
        # Accept any iterable of weekdays but store an immutable set.
        object.__setattr__(self, "excluded_weekdays", frozenset(self.excluded_weekdays))

    def is_excluded_day(self, dt: DateTime) -> bool:
        """Check if a given datetime falls on an excluded weekday."""
        return dt.in_timezone(self.timezone).weekday() in self.excluded_weekdays

    def opening_on(self, dt: DateTime) -> DateTime:
        """Return the business-hours opening time on the calendar day of ``dt``."""
        return dt.in_timezone(self.timezone).set(
            hour=self.start_hour, minute=0, second=0, microsecond=0
        )

    def opening_after(self, dt: DateTime) -> DateTime:
        """Return the business-hours opening time on the day after ``dt``."""
        return self.opening_on(dt.in_timezone(self.timezone).add(days=1))


@dataclass(frozen=True)
class SlotGenerationRequest:
    """Parameters for one call to the slot generator."""
    duration_minutes: int
    slots_needed: int
    window_start: DateTime
    window_end: DateTime
    policy: BusinessHoursPolicy = field(default_factory=BusinessHoursPolicy)

    @classmethod
    def rolling(
        cls,
        now: DateTime,
        days: int = 7,
        duration_minutes: int = 15,
        slots_needed: int = 3,
        policy: BusinessHoursPolicy | None = None,
    ) -> "SlotGenerationRequest":
        """Build a request covering ``now`` to ``now + days``."""
        return cls(
            duration_minutes=duration_minutes,
            slots_needed=slots_needed,
            window_start=now,
            window_end=now.add(days=days),
            policy=policy or BusinessHoursPolicy(),
        )


@dataclass(frozen=True)
class AvailableSlot:
    """
    A candidate slot that passed the conflict test.

    Slots are hints, not reservations: the booking step re-checks the
    calendar before committing.
    """
    interval: TimeInterval
    duration_minutes: int
    timezone: str
    slot_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    is_available: bool = True

    @property
    def start(self) -> DateTime:
        return self.interval.start

    @property
    def end(self) -> DateTime:
        return self.interval.end

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the slot to plain JSON-friendly values."""
        return {
            "slot_id": self.slot_id,
            "start_time": self.start.to_iso8601_string(),
            "end_time": self.end.to_iso8601_string(),
            "timezone": self.timezone,
            "duration_minutes": self.duration_minutes,
            "is_available": self.is_available,
        }

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:mm - HH:mm (N min)
        """
        start = self.start.in_timezone(self.timezone)
        end = self.end.in_timezone(self.timezone)
        return (
            f"{start.format('dddd, DD.MM.YYYY')} | "
            f"{start.format('HH:mm')} - {end.format('HH:mm')} ({self.duration_minutes} min)"
        )


@dataclass
class EventDetails:
    """Calendar event to create for a booked slot."""
    start: DateTime
    end: DateTime
    subject: str = "Consultation"
    description: str = "Scheduled consultation"
    location: str = ""
    timezone: str = DEFAULT_TIMEZONE
    reminder_minutes: int = 10

    @classmethod
    def for_interval(cls, interval: TimeInterval, **kwargs: Any) -> "EventDetails":
        return cls(start=interval.start, end=interval.end, **kwargs)

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start=self.start, end=self.end)


@dataclass(frozen=True)
class CreatedEvent:
    """Identifiers returned by the calendar after creating an event."""
    event_id: str
    html_link: str = ""


def parse_interval(start: str, end: str, timezone: str = DEFAULT_TIMEZONE) -> TimeInterval:
    """Parse two ISO-8601 strings into a TimeInterval in ``timezone``."""
    return TimeInterval(
        start=pendulum.parse(start, tz=timezone).in_timezone(timezone),
        end=pendulum.parse(end, tz=timezone).in_timezone(timezone),
    )
