"""
Protocols describing what the domain needs from an external calendar.

The slot generator only ever reads busy intervals. The booking service also
creates, updates and cancels events, which are plain pass-through calls.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, Sequence

from pendulum import DateTime

from .models import BusyInterval, CreatedEvent, EventDetails, TimeInterval


class BusyIntervalSource(Protocol):
    """Answers "what is busy in [start, end)?" for a single calendar."""

    def fetch_busy(
        self,
        start: DateTime,
        end: DateTime,
        timeout: float | None = None,
    ) -> Sequence[BusyInterval]:
        """
        Return every busy interval intersecting ``[start, end)``.

        Ordering is unspecified. Raises ``GatewayError`` when the calendar is
        unreachable or answers with malformed data, and
        ``GatewayTimeoutError`` when ``timeout`` seconds elapse first.
        """


class CalendarGateway(BusyIntervalSource, Protocol):
    """Busy lookup plus the event operations used when booking."""

    @property
    def ready(self) -> bool:
        """Whether ``initialize()`` completed successfully."""

    def initialize(self) -> None:
        """Prepare the gateway for use (authenticate, check connectivity)."""

    def create_event(self, details: EventDetails, timeout: float | None = None) -> CreatedEvent:
        """Create an event and return its identifiers."""

    def update_event(
        self,
        event_id: str,
        updates: Dict[str, Any],
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """Merge ``updates`` into an existing event and return the result."""

    def move_event(
        self,
        event_id: str,
        interval: TimeInterval,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """Move an existing event to new start and end times."""

    def cancel_event(self, event_id: str, timeout: float | None = None) -> bool:
        """Delete an event."""

    def get_event(self, event_id: str, timeout: float | None = None) -> Dict[str, Any]:
        """Return the raw event resource."""
