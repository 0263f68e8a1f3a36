"""
Application services for offering and booking appointment slots.

The service coordinates the calendar gateway and the domain-level
``SlotGenerator``. Generated slots are only hints: two callers may be offered
the same slot, so booking re-reads the calendar for the slot's own bounds
right before the event is created.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

import pendulum
from pendulum import DateTime

from ..config import SlotDefaults
from ..domain.exceptions import SlotUnavailableError
from ..domain.models import (
    AvailableSlot,
    BusinessHoursPolicy,
    CreatedEvent,
    EventDetails,
    SlotGenerationRequest,
    TimeInterval,
)
from ..domain.slot_generator import SlotGenerator
from ..domain.sources import CalendarGateway

logger = logging.getLogger(__name__)


class BookingService:
    """
    Orchestrates slot discovery and booking against one calendar.

    The gateway is injected already constructed; the service never creates
    or initializes one on its own.
    """

    def __init__(
        self,
        gateway: CalendarGateway,
        policy: BusinessHoursPolicy,
        defaults: SlotDefaults | None = None,
        timeout: float | None = None,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._gateway = gateway
        self._policy = policy
        self._defaults = defaults or SlotDefaults()
        self._timeout = timeout
        self._clock = clock
        self._generator = SlotGenerator(busy_source=gateway, clock=clock)

    @property
    def policy(self) -> BusinessHoursPolicy:
        return self._policy

    def build_request(
        self,
        *,
        duration_minutes: int | None = None,
        slots_needed: int | None = None,
        window_days: int | None = None,
        window_start: DateTime | None = None,
    ) -> SlotGenerationRequest:
        """Build a rolling-window request, filling gaps from the defaults."""
        defaults = self._defaults
        return SlotGenerationRequest.rolling(
            window_start or self._clock(),
            days=window_days if window_days is not None else defaults.window_days,
            duration_minutes=(
                duration_minutes if duration_minutes is not None else defaults.duration_minutes
            ),
            slots_needed=slots_needed if slots_needed is not None else defaults.slots_needed,
            policy=self._policy,
        )

    def find_slots(
        self,
        *,
        duration_minutes: int | None = None,
        slots_needed: int | None = None,
        window_days: int | None = None,
        window_start: DateTime | None = None,
    ) -> List[AvailableSlot]:
        """
        Offer the earliest free slots in the rolling window.

        Raises the generator's errors unchanged.
        """
        request = self.build_request(
            duration_minutes=duration_minutes,
            slots_needed=slots_needed,
            window_days=window_days,
            window_start=window_start,
        )
        return self.generate(request)

    def generate(self, request: SlotGenerationRequest) -> List[AvailableSlot]:
        """Run the generator for a prepared request."""
        return self._generator.generate(request, timeout=self._timeout)

    def ensure_free(self, interval: TimeInterval) -> None:
        """
        Re-check an interval against a fresh busy lookup.

        Raises:
            SlotUnavailableError: If the interval is now (partly) busy or past
        """
        if interval.start <= self._clock():
            raise SlotUnavailableError(f"Slot {interval} has already started")

        busy = self._gateway.fetch_busy(interval.start, interval.end, timeout=self._timeout)
        if SlotGenerator.has_conflict(interval, busy):
            raise SlotUnavailableError(f"Slot {interval} is no longer available")

    def book_slot(
        self,
        slot: AvailableSlot | TimeInterval,
        **event_fields: Any,
    ) -> CreatedEvent:
        """
        Create a calendar event for a slot after confirming it is still free.

        Args:
            slot: An offered slot or any interval
            **event_fields: Extra ``EventDetails`` fields (subject, location, ...)
        """
        interval = slot.interval if isinstance(slot, AvailableSlot) else slot
        self.ensure_free(interval)

        event_fields.setdefault("timezone", self._policy.timezone)
        details = EventDetails.for_interval(interval, **event_fields)
        created = self._gateway.create_event(details, timeout=self._timeout)
        logger.info("Booked %s as event %s", interval, created.event_id)
        return created

    def reschedule(self, event_id: str, slot: AvailableSlot | TimeInterval) -> Dict[str, Any]:
        """Move an existing booking after confirming the new slot is free."""
        interval = slot.interval if isinstance(slot, AvailableSlot) else slot
        self.ensure_free(interval)

        result = self._gateway.move_event(event_id, interval, timeout=self._timeout)
        logger.info("Rescheduled event %s to %s", event_id, interval)
        return result

    def cancel(self, event_id: str) -> bool:
        """Cancel a booking."""
        return self._gateway.cancel_event(event_id, timeout=self._timeout)
