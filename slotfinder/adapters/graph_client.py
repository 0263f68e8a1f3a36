"""
Microsoft Graph API gateway for the booking calendar.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import (
    AuthenticationError,
    GatewayError,
    GatewayNotReadyError,
    GatewayTimeoutError,
)
from ..domain.models import DEFAULT_TIMEZONE, CreatedEvent, EventDetails, TimeInterval

logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    def get_access_token(self, force_refresh: bool = False) -> str:
        """Return a bearer token for Microsoft Graph."""


class GraphCalendarGateway:
    """
    Calendar gateway backed by Microsoft Graph.

    Busy intervals come from the ``calendar/getSchedule`` endpoint, which
    returns free/busy information for the calendar owner's mailbox. Events
    are created, updated and deleted on the same mailbox.

    The gateway is constructed once and must be initialized before use;
    nothing is authenticated lazily behind the caller's back.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    # Free/busy statuses that block a slot
    BUSY_STATUSES = {"busy", "tentative", "oof", "workingelsewhere"}

    def __init__(
        self,
        authenticator: TokenProvider,
        calendar_owner: str,
        timezone: str = DEFAULT_TIMEZONE,
        default_timeout: float = 30,
    ):
        """
        Initialize the gateway.

        Args:
            authenticator: Object handing out Graph access tokens
            calendar_owner: Mailbox (email) whose calendar is used
            timezone: IANA timezone identifier for requests and results
            default_timeout: Seconds per connect or read when the caller gives none
        """
        self.authenticator = authenticator
        self.calendar_owner = calendar_owner
        self.timezone = timezone
        self.default_timeout = default_timeout
        self.headers: Dict[str, str] = {}
        self.profile: Dict[str, Any] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def ready(self) -> bool:
        return self._initialized

    @property
    def base_url(self) -> str:
        return f"{self.GRAPH_API_ENDPOINT}/users/{self.calendar_owner}"

    def initialize(self) -> None:
        """
        Acquire a token and verify the calendar is reachable.

        Raises:
            GatewayError: If no token could be acquired or the connection
                test fails
        """
        if self._initialized:
            return

        self.profile = self.test_connection()
        self._initialized = True
        logger.info("Microsoft Graph calendar gateway initialized for %s", self.calendar_owner)

    def _refresh_headers(self) -> None:
        """
        Fetch a bearer token without user interaction.

        Raises:
            GatewayError: If the token cannot be acquired
        """
        try:
            access_token = self.authenticator.get_access_token()
        except AuthenticationError as e:
            raise GatewayError(f"Could not acquire a Microsoft Graph token: {e}") from e
        except requests.exceptions.RequestException as e:
            raise GatewayError(f"Microsoft sign-in service unreachable: {e}") from e
        if not access_token:
            raise GatewayError("Authenticator returned an empty access token")
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def _ensure_ready(self) -> None:
        if not self._initialized:
            raise GatewayNotReadyError(
                "Calendar gateway used before initialize() completed"
            )

    def _request(
        self,
        method: str,
        url: str,
        timeout: float | None,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Send a request, translating transport failures to gateway errors.

        ``timeout`` is handed to ``requests`` as is, so it bounds the connect
        and each read separately rather than the whole exchange. Token
        acquisition happens first and is bounded by MSAL's own settings.
        """
        effective_timeout = timeout if timeout is not None else self.default_timeout
        # MSAL serves cached tokens until they are about to expire
        self._refresh_headers()
        try:
            response = requests.request(
                method,
                url,
                headers=self.headers,
                timeout=effective_timeout,
                **kwargs,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise GatewayTimeoutError(
                f"Microsoft Graph did not answer within {effective_timeout} seconds"
            ) from e
        except requests.exceptions.RequestException as e:
            raise GatewayError(f"Microsoft Graph request failed: {e}") from e
        return response

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching the owner's profile.

        Raises:
            GatewayError: If connection test fails
        """
        response = self._request("GET", self.base_url, timeout=None)
        profile = self._json(response)
        logger.info(
            "Microsoft Graph connection test successful for %s",
            profile.get("mail") or profile.get("userPrincipalName", self.calendar_owner),
        )
        return profile

    def fetch_busy(
        self,
        start: DateTime,
        end: DateTime,
        timeout: float | None = None,
    ) -> List[TimeInterval]:
        """
        Get busy intervals intersecting ``[start, end)``.

        Args:
            start: Start of the time window
            end: End of the time window
            timeout: Seconds to wait for Graph per connect or read

        Returns:
            Busy intervals in the gateway timezone (unsorted)

        Raises:
            GatewayError: If the API call fails or the response is malformed
            GatewayTimeoutError: If the API does not answer in time
        """
        self._ensure_ready()

        url = f"{self.base_url}/calendar/getSchedule"
        payload = {
            "schedules": [self.calendar_owner],
            "startTime": self._date_time_time_zone(start),
            "endTime": self._date_time_time_zone(end),
            "availabilityViewInterval": 15,
        }

        response = self._request("POST", url, timeout=timeout, json=payload)
        busy = self._parse_schedule_response(self._json(response))
        logger.info("Found %d busy time block(s) in calendar", len(busy))
        return busy

    def _parse_schedule_response(self, response_data: Dict[str, Any]) -> List[TimeInterval]:
        """
        Parse the getSchedule API response into busy intervals.

        Response format:
        {
            "value": [
                {
                    "scheduleId": "user@example.com",
                    "scheduleItems": [
                        {
                            "status": "busy",
                            "start": {"dateTime": "...", "timeZone": "..."},
                            "end": {"dateTime": "...", "timeZone": "..."}
                        }
                    ]
                }
            ]
        }
        """
        schedules = response_data.get("value")
        if not isinstance(schedules, list):
            raise GatewayError("Malformed getSchedule response: missing 'value' list")

        busy: List[TimeInterval] = []

        for schedule in schedules:
            if "error" in schedule:
                message = schedule["error"].get("message", "unknown error")
                raise GatewayError(
                    f"Schedule for {schedule.get('scheduleId', self.calendar_owner)} "
                    f"unavailable: {message}"
                )

            for item in schedule.get("scheduleItems", []):
                status = str(item.get("status", "")).lower()
                if status not in self.BUSY_STATUSES:
                    continue

                try:
                    busy.append(
                        TimeInterval(
                            start=self._parse_datetime(item["start"]),
                            end=self._parse_datetime(item["end"]),
                        )
                    )
                except (KeyError, TypeError, ValueError) as e:
                    raise GatewayError(f"Malformed schedule item {item!r}: {e}") from e

        return busy

    def _parse_datetime(self, value: Dict[str, str]) -> DateTime:
        """
        Parse a Graph ``dateTimeTimeZone`` object to a pendulum DateTime.

        Graph reports up to seven fractional digits, which are dropped. Times
        come back in the requested timezone unless Graph says UTC.
        """
        raw = value["dateTime"].split(".")[0]
        tz = "UTC" if value.get("timeZone") == "UTC" else self.timezone
        dt = pendulum.parse(raw, tz=tz)

        if not isinstance(dt, DateTime):
            raise ValueError(f"Could not parse datetime: {value['dateTime']}")

        return dt.in_timezone(self.timezone)

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise GatewayError(f"Microsoft Graph returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise GatewayError("Microsoft Graph returned an unexpected payload")
        return data

    def create_event(self, details: EventDetails, timeout: float | None = None) -> CreatedEvent:
        """
        Create a calendar event without attendees or invitations.

        Returns:
            CreatedEvent with the Graph event id and web link
        """
        self._ensure_ready()

        timezone = details.timezone or self.timezone
        event = {
            "subject": details.subject,
            "body": {"contentType": "text", "content": details.description},
            "location": {"displayName": details.location},
            "start": self._date_time_time_zone(details.start, timezone),
            "end": self._date_time_time_zone(details.end, timezone),
            "attendees": [],
            "isReminderOn": True,
            "reminderMinutesBeforeStart": details.reminder_minutes,
        }

        logger.info("Creating calendar event %r at %s", details.subject, details.start)
        response = self._request("POST", f"{self.base_url}/events", timeout=timeout, json=event)
        data = self._json(response)

        if "id" not in data:
            raise GatewayError("Created event is missing its id")

        logger.info("Calendar event created: %s", data["id"])
        return CreatedEvent(event_id=data["id"], html_link=data.get("webLink", ""))

    def update_event(
        self,
        event_id: str,
        updates: Dict[str, Any],
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """Patch an existing event with the given Graph fields."""
        self._ensure_ready()

        logger.info("Updating calendar event: %s", event_id)
        response = self._request(
            "PATCH", f"{self.base_url}/events/{event_id}", timeout=timeout, json=updates
        )
        return self._json(response)

    def cancel_event(self, event_id: str, timeout: float | None = None) -> bool:
        """Delete an event from the calendar."""
        self._ensure_ready()

        logger.info("Cancelling calendar event: %s", event_id)
        self._request("DELETE", f"{self.base_url}/events/{event_id}", timeout=timeout)
        return True

    def get_event(self, event_id: str, timeout: float | None = None) -> Dict[str, Any]:
        """Fetch the raw event resource."""
        self._ensure_ready()

        response = self._request("GET", f"{self.base_url}/events/{event_id}", timeout=timeout)
        return self._json(response)

    def move_event(
        self,
        event_id: str,
        interval: TimeInterval,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """Move an existing event to new start and end times."""
        return self.update_event(
            event_id,
            {
                "start": self._date_time_time_zone(interval.start),
                "end": self._date_time_time_zone(interval.end),
            },
            timeout=timeout,
        )

    def _date_time_time_zone(self, dt: DateTime, timezone: str | None = None) -> Dict[str, str]:
        """Build a Graph ``dateTimeTimeZone`` object."""
        timezone = timezone or self.timezone
        return {
            "dateTime": dt.in_timezone(timezone).format("YYYY-MM-DDTHH:mm:ss"),
            "timeZone": timezone,
        }
