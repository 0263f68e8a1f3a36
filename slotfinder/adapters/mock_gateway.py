"""
Mock calendar gateway for running without Microsoft authentication.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List

import pendulum
from pendulum import DateTime

from ..domain.exceptions import GatewayError, GatewayNotReadyError
from ..domain.models import DEFAULT_TIMEZONE, CreatedEvent, EventDetails, TimeInterval

logger = logging.getLogger(__name__)


class MockCalendarGateway:
    """
    Gateway that serves busy intervals from memory or a JSON file.

    The JSON file holds a list of events with ISO-8601 ``start`` and ``end``
    values. Events created through the gateway are kept in memory and show
    up as busy on the next lookup.
    """

    def __init__(
        self,
        busy: Iterable[TimeInterval] = (),
        data_file: Path | None = None,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        """
        Initialize the mock gateway.

        Args:
            busy: Busy intervals to serve
            data_file: Optional JSON file with additional busy events
            timezone: Timezone for events without an explicit offset
        """
        self.timezone = timezone
        self.data_file = data_file
        self.busy: List[TimeInterval] = list(busy)
        self.events: Dict[str, Dict[str, Any]] = {}
        self.fetch_calls: List[Dict[str, Any]] = []
        self._initialized = False

    @property
    def ready(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Load the JSON file, if one was given."""
        if self._initialized:
            return
        if self.data_file is not None:
            self.busy.extend(self._load_calendar_data(self.data_file))
        self._initialized = True

    def _load_calendar_data(self, data_file: Path) -> List[TimeInterval]:
        """Load busy events from a JSON file."""
        try:
            with open(data_file, "r", encoding="utf-8") as f:
                events = json.load(f)
        except (OSError, ValueError) as e:
            raise GatewayError(f"Could not read mock calendar data {data_file}: {e}") from e

        if not isinstance(events, list):
            raise GatewayError(f"Mock calendar data {data_file} must contain a list")

        intervals: List[TimeInterval] = []
        for event in events:
            try:
                intervals.append(
                    TimeInterval(
                        start=pendulum.parse(event["start"], tz=self.timezone),
                        end=pendulum.parse(event["end"], tz=self.timezone),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise GatewayError(f"Malformed mock event {event!r}: {e}") from e

        logger.debug("Loaded %d mock busy event(s) from %s", len(intervals), data_file)
        return intervals

    def _ensure_ready(self) -> None:
        if not self._initialized:
            raise GatewayNotReadyError("Calendar gateway used before initialize() completed")

    def fetch_busy(
        self,
        start: DateTime,
        end: DateTime,
        timeout: float | None = None,
    ) -> List[TimeInterval]:
        """Return stored busy intervals that overlap ``[start, end)``."""
        self._ensure_ready()
        self.fetch_calls.append({"start": start, "end": end, "timeout": timeout})

        window = TimeInterval(start=start, end=end)
        return [interval for interval in self.busy if interval.overlaps(window)]

    def create_event(self, details: EventDetails, timeout: float | None = None) -> CreatedEvent:
        self._ensure_ready()

        event_id = uuid.uuid4().hex
        self.events[event_id] = {
            "id": event_id,
            "subject": details.subject,
            "interval": details.interval,
        }
        self.busy.append(details.interval)
        logger.info("Mock event created: %s", event_id)
        return CreatedEvent(event_id=event_id, html_link=f"mock://events/{event_id}")

    def get_event(self, event_id: str, timeout: float | None = None) -> Dict[str, Any]:
        self._ensure_ready()
        try:
            return self.events[event_id]
        except KeyError as e:
            raise GatewayError(f"Event not found: {event_id}") from e

    def update_event(
        self,
        event_id: str,
        updates: Dict[str, Any],
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        event = self.get_event(event_id)
        event.update(updates)
        return event

    def move_event(
        self,
        event_id: str,
        interval: TimeInterval,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        event = self.get_event(event_id)
        self.busy.remove(event["interval"])
        self.busy.append(interval)
        return self.update_event(event_id, {"interval": interval})

    def cancel_event(self, event_id: str, timeout: float | None = None) -> bool:
        event = self.get_event(event_id)
        self.busy.remove(event["interval"])
        del self.events[event_id]
        logger.info("Mock event cancelled: %s", event_id)
        return True
