"""
Human-readable rendering of slots, dates and durations.
"""

from __future__ import annotations

from pendulum import DateTime

from .models import DEFAULT_TIMEZONE, BusinessHoursPolicy


def format_date_time(dt: DateTime, timezone: str = DEFAULT_TIMEZONE) -> str:
    """
    Format a datetime for display.
    Example: "Monday, November 25, 2024 at 2:30 PM"
    """
    return dt.in_timezone(timezone).format("dddd, MMMM D, YYYY [at] h:mm A")


def format_time(dt: DateTime, timezone: str = DEFAULT_TIMEZONE) -> str:
    """Example: "2:30 PM" """
    return dt.in_timezone(timezone).format("h:mm A")


def format_date(dt: DateTime, timezone: str = DEFAULT_TIMEZONE) -> str:
    """Example: "Monday, November 25, 2024" """
    return dt.in_timezone(timezone).format("dddd, MMMM D, YYYY")


def relative_day_label(dt: DateTime, now: DateTime, timezone: str = DEFAULT_TIMEZONE) -> str:
    """Return "Today", "Tomorrow", or the formatted date."""
    target_day = dt.in_timezone(timezone).date()
    today = now.in_timezone(timezone).date()
    diff_days = (target_day - today).days

    if diff_days == 0:
        return "Today"
    if diff_days == 1:
        return "Tomorrow"
    return format_date(dt, timezone)


def format_time_slot(
    start: DateTime,
    end: DateTime,
    now: DateTime,
    timezone: str = DEFAULT_TIMEZONE,
) -> str:
    """
    Format a slot relative to ``now``.
    Example: "Tomorrow at 2:30 PM - 3:00 PM"
    """
    day_label = relative_day_label(start, now, timezone)
    return f"{day_label} at {format_time(start, timezone)} - {format_time(end, timezone)}"


def calculate_duration(start: DateTime, end: DateTime) -> int:
    """Return whole minutes between two datetimes."""
    return int((end - start).total_seconds() // 60)


def format_duration(minutes: int) -> str:
    """
    Format a duration in minutes.
    Examples: "15 minutes", "1 hour", "1 hour 30 minutes"
    """
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"

    hours, mins = divmod(minutes, 60)
    hours_text = f"{hours} hour{'s' if hours != 1 else ''}"
    if mins == 0:
        return hours_text
    return f"{hours_text} {mins} minute{'s' if mins != 1 else ''}"


def is_within_business_hours(dt: DateTime, policy: BusinessHoursPolicy) -> bool:
    """Check if ``dt`` falls inside the policy's hours on a working day."""
    local = dt.in_timezone(policy.timezone)
    if policy.is_excluded_day(local):
        return False
    return policy.start_hour <= local.hour < policy.end_hour


def minutes_until(dt: DateTime, now: DateTime) -> int:
    """Minutes from ``now`` until ``dt`` (negative once it has passed)."""
    return int((dt - now).total_seconds() // 60)


def is_starting_soon(dt: DateTime, now: DateTime, threshold_minutes: int = 15) -> bool:
    """Check if ``dt`` is in the future but within ``threshold_minutes``."""
    remaining = minutes_until(dt, now)
    return 0 < remaining <= threshold_minutes
