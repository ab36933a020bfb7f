"""Shared fixtures for the Shipwatch tests."""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Optional

from shipwatch.config import PollerConfig
from shipwatch.events.event_log import EventLog
from shipwatch.models import CarrierId, StatusResult
from shipwatch.scheduler import PollScheduler
from shipwatch.store.memory import MemoryEventStore, MemoryShipmentStore
from shipwatch.tracking.carrier_api import CarrierAPI
from shipwatch.tracking.tracking_manager import TrackingManager


NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeCarrierAPI(CarrierAPI):
    """Status provider answering from canned results."""

    def __init__(self, name: str = "fake", results: Optional[dict] = None, errors: Optional[dict] = None):
        super().__init__()
        self.name = name
        self.results = results or {}
        self.errors = errors or {}
        self.calls: list[str] = []

    def get_carrier_name(self) -> str:
        return self.name

    async def check_status(self, identifier: str) -> StatusResult:
        self.calls.append(identifier)
        if identifier in self.errors:
            raise self.errors[identifier]
        return self.results.get(identifier, StatusResult())


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


def canpar_doc(doc_id: str, **overrides) -> dict:
    """A courier shipment booked with Canpar, due for polling at NOW."""
    doc = {
        "id": doc_id,
        "shipmentID": f"IC-{doc_id}",
        "status": "in_transit",
        "shipmentType": "courier",
        "selectedRate": {"carrier": "Canpar"},
        "trackingNumber": f"D{doc_id}",
        "createdAt": NOW - timedelta(days=2),
        "lastStatusPoll": NOW - timedelta(minutes=11),
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return PollerConfig(store_backend="memory", batch_size=10, batch_pause_seconds=2.0)


@pytest.fixture
def shipment_store():
    return MemoryShipmentStore()


@pytest.fixture
def event_store():
    return MemoryEventStore()


@pytest.fixture
def adapter():
    return FakeCarrierAPI(name="canpar")


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_scheduler(config, shipment_store, event_store, adapter, clock, sleep):
    """Build a scheduler over the memory stores with the fake Canpar adapter."""

    def _make(documents=(), shipments=None, events=None, timer=None, **config_overrides):
        for key, value in config_overrides.items():
            setattr(config, key, value)

        shipments = shipments or shipment_store
        events = events or event_store
        for document in documents:
            shipments.put(document)

        kwargs = {"timer": timer} if timer else {}
        return PollScheduler(
            shipments=shipments,
            event_log=EventLog.from_config(events, config, clock=clock),
            tracking=TrackingManager(adapters={CarrierId.CANPAR: adapter}),
            config=config,
            clock=clock,
            sleep=sleep,
            **kwargs,
        )

    return _make
