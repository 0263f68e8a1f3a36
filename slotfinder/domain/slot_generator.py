"""
Core business logic for generating bookable appointment slots.

This is the heart of the application: the calendar is read once through a
``BusyIntervalSource`` and everything else is pure computation on that
snapshot.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Sequence

import pendulum
from pendulum import DateTime

from .exceptions import InvalidRequestError, NoAvailabilityError
from .models import AvailableSlot, CandidateSlot, SlotGenerationRequest, TimeInterval
from .sources import BusyIntervalSource

logger = logging.getLogger(__name__)


class SlotGenerator:
    """
    Finds the first N free slots of a given duration inside a time window.

    Algorithm:
    1. Validate the request (before touching the calendar)
    2. Fetch all busy intervals for the window once
    3. Walk the window in fixed granularity steps, skipping hours outside
       the business day and excluded weekdays
    4. Accept each candidate that overlaps no busy interval and starts
       strictly after "now"
    5. Stop when enough slots were found or the window is exhausted
    """

    def __init__(
        self,
        busy_source: BusyIntervalSource,
        clock: Callable[[], DateTime] = pendulum.now,
    ):
        self.busy_source = busy_source
        self.clock = clock

    def generate(
        self,
        request: SlotGenerationRequest,
        timeout: float | None = None,
    ) -> List[AvailableSlot]:
        """
        Generate available slots for a request.

        Args:
            request: Duration, slot count, window and business-hours policy
            timeout: Seconds the calendar lookup may take

        Returns:
            Chronologically ordered slots, at most ``request.slots_needed``

        Raises:
            InvalidRequestError: If the request is malformed
            GatewayError: If the busy intervals cannot be fetched
            NoAvailabilityError: If not a single slot is free
        """
        self.validate(request)

        now = self.clock()
        policy = request.policy

        logger.info(
            "Generating %d slot(s) of %d minutes between %s and %s",
            request.slots_needed,
            request.duration_minutes,
            request.window_start,
            request.window_end,
        )

        busy = list(
            self.busy_source.fetch_busy(
                request.window_start,
                request.window_end,
                timeout=timeout,
            )
        )
        logger.debug("Found %d busy interval(s) in calendar", len(busy))

        slots: List[AvailableSlot] = []
        duration = pendulum.duration(minutes=request.duration_minutes)
        step = pendulum.duration(minutes=policy.granularity_minutes)
        cursor = request.window_start.in_timezone(policy.timezone)

        while len(slots) < request.slots_needed and cursor < request.window_end:
            # Clamp to business hours
            if cursor.hour < policy.start_hour:
                cursor = policy.opening_on(cursor)
                continue
            if cursor.hour >= policy.end_hour:
                cursor = policy.opening_after(cursor)
                continue

            if policy.is_excluded_day(cursor):
                cursor = policy.opening_after(cursor)
                continue

            candidate = CandidateSlot(start=cursor, end=cursor + duration)

            if cursor > now and not self.has_conflict(candidate, busy):
                slot = AvailableSlot(
                    interval=candidate,
                    duration_minutes=request.duration_minutes,
                    timezone=policy.timezone,
                )
                slots.append(slot)
                logger.debug("Available slot found: %s", candidate)

            cursor = cursor + step

        if not slots:
            logger.warning(
                "No available time slots between %s and %s",
                request.window_start,
                request.window_end,
            )
            raise NoAvailabilityError(request.window_start, request.window_end)

        logger.info("Generated %d available time slot(s)", len(slots))
        return slots

    @staticmethod
    def has_conflict(candidate: TimeInterval, busy: Sequence[TimeInterval]) -> bool:
        """Check if a candidate overlaps any busy interval (half-open)."""
        return any(candidate.overlaps(interval) for interval in busy)

    @staticmethod
    def validate(request: SlotGenerationRequest) -> None:
        """Raise ``InvalidRequestError`` for the first invalid parameter."""
        policy = request.policy

        if request.duration_minutes <= 0:
            raise InvalidRequestError(
                "duration_minutes", "must be greater than zero", request.duration_minutes
            )
        if request.slots_needed <= 0:
            raise InvalidRequestError(
                "slots_needed", "must be greater than zero", request.slots_needed
            )
        if request.window_start >= request.window_end:
            raise InvalidRequestError(
                "window_end",
                f"must be later than window_start ({request.window_start})",
                request.window_end,
            )
        for name in ("start_hour", "end_hour"):
            hour = getattr(policy, name)
            if not 0 <= hour <= 23:
                raise InvalidRequestError(name, "must be between 0 and 23", hour)
        if policy.start_hour >= policy.end_hour:
            raise InvalidRequestError(
                "end_hour",
                f"must be later than start_hour ({policy.start_hour})",
                policy.end_hour,
            )
        if policy.granularity_minutes <= 0:
            raise InvalidRequestError(
                "granularity_minutes", "must be greater than zero", policy.granularity_minutes
            )
        invalid_days = sorted(day for day in policy.excluded_weekdays if day not in range(7))
        if invalid_days:
            raise InvalidRequestError(
                "excluded_weekdays", "weekdays must be between 0 and 6", invalid_days
            )
