"""
Domain layer - Pure business logic for slot generation.
"""

from .models import AvailableSlot, BusinessHoursPolicy, SlotGenerationRequest, TimeInterval
from .slot_generator import SlotGenerator

__all__ = [
    "AvailableSlot",
    "BusinessHoursPolicy",
    "SlotGenerationRequest",
    "SlotGenerator",
    "TimeInterval",
]
