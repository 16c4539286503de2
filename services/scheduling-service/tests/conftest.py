import json
from datetime import date, time

import pytest

from scheduling_service.coordinator import SeriesCoordinator
from scheduling_service.domain import Booking, BookingStatus, BookingType
from scheduling_service.store import InMemoryBookingStore


class RecordingPublisher:
    def __init__(self):
        self.messages = []

    async def publish(self, routing_key: str, body: str):
        self.messages.append((routing_key, json.loads(body)))

    @property
    def routing_keys(self):
        return [rk for rk, _ in self.messages]


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def coordinator(store, publisher):
    return SeriesCoordinator(store, publisher)


@pytest.fixture
def make_booking():
    def _make(**overrides) -> Booking:
        fields = {
            "resource_id": 1,
            "booking_date": date(2026, 1, 5),
            "start_time": time(18, 0),
            "end_time": time(20, 0),
            "team_ids": [3, 1],
            "booking_type": BookingType.PRACTICE,
            "status": BookingStatus.PLANNED,
            "description": "U13 practice",
        }
        fields.update(overrides)
        return Booking(**fields)

    return _make
