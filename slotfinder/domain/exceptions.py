"""
Domain-specific exception hierarchy for the slot finder.
"""

from __future__ import annotations

from typing import Any


class SlotFinderError(Exception):
    """Base class for all application-level errors."""


class InvalidRequestError(SlotFinderError):
    """Raised when a slot generation request is malformed."""

    def __init__(self, parameter: str, message: str, value: Any = None) -> None:
        super().__init__(f"Invalid {parameter}: {message}")
        self.parameter = parameter
        self.value = value


class GatewayError(SlotFinderError):
    """Raised when calendar data cannot be fetched or parsed."""


class GatewayTimeoutError(GatewayError):
    """Raised when the calendar gateway did not answer before the deadline."""


class GatewayNotReadyError(GatewayError):
    """Raised when a gateway is used before it was initialized."""


class NoAvailabilityError(SlotFinderError):
    """Raised when a scan of the whole window found no free slot."""

    def __init__(self, window_start: Any, window_end: Any) -> None:
        super().__init__(
            f"No available time slots between {window_start} and {window_end}. "
            "Try a wider window."
        )
        self.window_start = window_start
        self.window_end = window_end


class SlotUnavailableError(SlotFinderError):
    """Raised when a chosen slot was booked by someone else in the meantime."""


class AuthenticationError(SlotFinderError):
    """Raised when authentication or token handling fails."""


class InteractionRequiredError(AuthenticationError):
    """Raised when no cached sign-in exists and a user has to sign in first."""
