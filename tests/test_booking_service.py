"""
Tests for the BookingService orchestration layer.
"""

import json

import pendulum
import pytest

from slotfinder.adapters.mock_gateway import MockCalendarGateway
from slotfinder.config import SlotDefaults
from slotfinder.domain.exceptions import (
    GatewayError,
    GatewayNotReadyError,
    NoAvailabilityError,
    SlotUnavailableError,
)
from slotfinder.domain.models import BusinessHoursPolicy, TimeInterval, parse_interval
from slotfinder.services.booking import BookingService

TZ = "Asia/Kolkata"
NOW = pendulum.parse("2024-11-24 20:00", tz=TZ)  # Sunday evening


def _build_service(
    busy=(),
    defaults: SlotDefaults = None,
) -> tuple[BookingService, MockCalendarGateway]:
    gateway = MockCalendarGateway(busy=busy, timezone=TZ)
    gateway.initialize()
    service = BookingService(
        gateway=gateway,
        policy=BusinessHoursPolicy(timezone=TZ),
        defaults=defaults,
        timeout=5,
        clock=lambda: NOW,
    )
    return service, gateway


def test_find_slots_uses_rolling_defaults():
    """Without arguments the next seven days are searched for three 15 minute slots."""
    service, gateway = _build_service()

    slots = service.find_slots()

    assert len(slots) == 3
    assert slots[0].start == pendulum.parse("2024-11-25 09:00", tz=TZ)
    assert gateway.fetch_calls[0]["start"] == NOW
    assert gateway.fetch_calls[0]["end"] == NOW.add(days=7)
    assert gateway.fetch_calls[0]["timeout"] == 5


def test_find_slots_overrides_defaults():
    """Explicit arguments win over configured defaults."""
    service, _ = _build_service(defaults=SlotDefaults(duration_minutes=60, slots_needed=1))

    slots = service.find_slots(duration_minutes=30, slots_needed=2, window_days=1)

    assert len(slots) == 2
    assert all(slot.duration_minutes == 30 for slot in slots)


def test_find_slots_without_availability():
    """A window with no free time raises NoAvailabilityError."""
    busy = [parse_interval("2024-11-24 00:00", "2024-12-02 00:00", TZ)]
    service, _ = _build_service(busy=busy)

    with pytest.raises(NoAvailabilityError):
        service.find_slots()


def test_book_slot_creates_event_and_blocks_slot():
    """A booked slot is no longer offered."""
    service, gateway = _build_service()
    first = service.find_slots(slots_needed=1)[0]

    created = service.book_slot(first, subject="Intro call")

    assert created.event_id in gateway.events
    assert gateway.events[created.event_id]["subject"] == "Intro call"
    assert service.find_slots(slots_needed=1)[0].start == first.start.add(minutes=15)


def test_book_slot_rechecks_calendar():
    """Someone else booking the slot first makes the booking fail."""
    service, gateway = _build_service()
    slot = service.find_slots(slots_needed=1)[0]
    gateway.busy.append(parse_interval("2024-11-25 09:05", "2024-11-25 09:20", TZ))

    with pytest.raises(SlotUnavailableError):
        service.book_slot(slot)

    assert gateway.events == {}
    assert gateway.fetch_calls[-1]["start"] == slot.start
    assert gateway.fetch_calls[-1]["end"] == slot.end


def test_book_slot_in_the_past_fails():
    service, gateway = _build_service()
    interval = parse_interval("2024-11-24 10:00", "2024-11-24 10:15", TZ)

    with pytest.raises(SlotUnavailableError):
        service.book_slot(interval)

    assert gateway.events == {}


def test_reschedule_and_cancel():
    """Moving and cancelling keep the mock calendar's busy list in sync."""
    service, gateway = _build_service()
    original = parse_interval("2024-11-25 09:00", "2024-11-25 09:15", TZ)
    moved = parse_interval("2024-11-26 11:00", "2024-11-26 11:15", TZ)
    created = service.book_slot(original)

    service.reschedule(created.event_id, moved)

    assert gateway.busy == [moved]

    assert service.cancel(created.event_id)
    assert gateway.busy == []
    assert gateway.events == {}


def test_reschedule_into_busy_slot_fails():
    service, gateway = _build_service()
    first = service.book_slot(parse_interval("2024-11-25 09:00", "2024-11-25 09:15", TZ))
    second = parse_interval("2024-11-25 10:00", "2024-11-25 10:15", TZ)
    service.book_slot(second)

    with pytest.raises(SlotUnavailableError):
        service.reschedule(first.event_id, second)


class TestMockCalendarGateway:
    """Tests for the JSON-backed fixture gateway."""

    def test_requires_initialize(self):
        gateway = MockCalendarGateway(timezone=TZ)

        assert not gateway.ready
        with pytest.raises(GatewayNotReadyError):
            gateway.fetch_busy(NOW, NOW.add(days=1))

    def test_loads_json_and_filters_window(self, tmp_path):
        data_file = tmp_path / "busy.json"
        data_file.write_text(json.dumps([
            {"start": "2024-11-25T09:00:00", "end": "2024-11-25T10:00:00"},
            {"start": "2024-12-10T09:00:00+05:30", "end": "2024-12-10T10:00:00+05:30"},
        ]))
        gateway = MockCalendarGateway(data_file=data_file, timezone=TZ)
        gateway.initialize()

        busy = gateway.fetch_busy(NOW, NOW.add(days=7))

        assert gateway.ready
        assert busy == [
            TimeInterval(
                start=pendulum.parse("2024-11-25 09:00", tz=TZ),
                end=pendulum.parse("2024-11-25 10:00", tz=TZ),
            )
        ]

    def test_malformed_json_raises_gateway_error(self, tmp_path):
        data_file = tmp_path / "busy.json"
        data_file.write_text(json.dumps([{"start": "2024-11-25T09:00:00"}]))
        gateway = MockCalendarGateway(data_file=data_file, timezone=TZ)

        with pytest.raises(GatewayError):
            gateway.initialize()

        assert not gateway.ready

    def test_unknown_event(self):
        gateway = MockCalendarGateway(timezone=TZ)
        gateway.initialize()

        with pytest.raises(GatewayError, match="Event not found"):
            gateway.cancel_event("missing")
