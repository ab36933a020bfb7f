"""Tests for the shipment and event stores."""

import pytest
from datetime import timedelta

from shipwatch.config import PollerConfig
from shipwatch.errors import ConfigurationError, StoreError
from shipwatch.models import EventType, ShipmentEvent, StatusChange
from shipwatch.store import (
    HttpEventStore,
    HttpShipmentStore,
    JsonEventStore,
    JsonShipmentStore,
    MemoryEventStore,
    MemoryShipmentStore,
    create_stores,
)

from conftest import NOW, canpar_doc


def status_event(shipment_id, minutes_ago, to_status="delivered"):
    return ShipmentEvent(
        shipment_id=shipment_id,
        event_type=EventType.STATUS_UPDATE,
        timestamp=NOW - timedelta(minutes=minutes_ago),
        status_change=StatusChange(from_status="in_transit", to_status=to_status),
    )


class TestMemoryShipmentStore:
    """Tests for the in-memory shipment store."""

    @pytest.mark.asyncio
    async def test_query_by_status(self):
        store = MemoryShipmentStore([
            canpar_doc("s1"),
            canpar_doc("s2", status="booked"),
            canpar_doc("s3", status="delivered"),
        ])

        found = await store.query(["in_transit", "booked"])

        assert sorted(d["id"] for d in found) == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_query_matches_status_spellings(self):
        store = MemoryShipmentStore([
            canpar_doc("s1", status="In Transit"),
            canpar_doc("s2", status="OUT-FOR-DELIVERY"),
            canpar_doc("s3", status="Delivered"),
        ])

        found = await store.query(["in_transit", "out_for_delivery"])

        assert sorted(d["id"] for d in found) == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_update_merges_fields(self):
        store = MemoryShipmentStore([canpar_doc("s1")])

        await store.update("s1", {"status": "delivered", "lastPollError": None})

        document = await store.get("s1")
        assert document["status"] == "delivered"
        assert document["lastPollError"] is None
        assert document["trackingNumber"] == "Ds1"

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self):
        store = MemoryShipmentStore([canpar_doc("s1")])

        document = await store.get("s1")
        document["status"] = "void"

        assert (await store.get("s1"))["status"] == "in_transit"

    @pytest.mark.asyncio
    async def test_missing_shipment(self):
        store = MemoryShipmentStore()

        assert await store.get("nope") is None
        with pytest.raises(StoreError):
            await store.update("nope", {"status": "delivered"})

    def test_document_without_id(self):
        with pytest.raises(StoreError):
            MemoryShipmentStore([{"status": "booked"}])


class TestMemoryEventStore:
    """Tests for the in-memory event store."""

    @pytest.mark.asyncio
    async def test_query_recent_newest_first(self):
        store = MemoryEventStore()
        for minutes_ago in (30, 5, 50):
            await store.append("s1", status_event("s1", minutes_ago))

        recent = await store.query_recent("s1", EventType.STATUS_UPDATE.value, 2)

        assert [e.timestamp for e in recent] == [NOW - timedelta(minutes=5), NOW - timedelta(minutes=30)]

    @pytest.mark.asyncio
    async def test_query_recent_filters_type(self):
        store = MemoryEventStore()
        await store.append("s1", status_event("s1", 5))

        assert await store.query_recent("s1", EventType.TRACKING_UPDATE.value, 10) == []
        assert await store.query_recent("s2", EventType.STATUS_UPDATE.value, 10) == []

    @pytest.mark.asyncio
    async def test_list_events_oldest_first(self):
        store = MemoryEventStore()
        await store.append("s1", status_event("s1", 5))
        await store.append("s1", status_event("s1", 50))

        events = await store.list_events("s1")

        assert events[0].timestamp < events[1].timestamp


class TestJsonStores:
    """Tests for the file-backed stores."""

    @pytest.mark.asyncio
    async def test_shipments_persist(self, tmp_path):
        path = tmp_path / "shipments.json"
        store = JsonShipmentStore(path)
        await store.put(canpar_doc("s1"))
        await store.update("s1", {"status": "delivered", "lastStatusPoll": NOW})

        reopened = JsonShipmentStore(path)
        document = await reopened.get("s1")

        assert document["status"] == "delivered"
        assert document["lastStatusPoll"].startswith("2026-03-02T12:00:00")
        assert await reopened.query(["in_transit"]) == []
        assert [d["id"] for d in await reopened.query(["delivered"])] == ["s1"]

    @pytest.mark.asyncio
    async def test_query_matches_status_spellings(self, tmp_path):
        store = JsonShipmentStore(tmp_path / "shipments.json")
        await store.put(canpar_doc("s1", status="Out for Delivery"))
        await store.put(canpar_doc("s2", status="delivered"))

        found = await store.query(["out_for_delivery"])

        assert [d["id"] for d in found] == ["s1"]

    @pytest.mark.asyncio
    async def test_events_persist(self, tmp_path):
        path = tmp_path / "events.json"
        store = JsonEventStore(path)
        await store.append("s1", status_event("s1", 30, to_status="on_hold"))
        await store.append("s1", status_event("s1", 5))

        reopened = JsonEventStore(path)
        recent = await reopened.query_recent("s1", EventType.STATUS_UPDATE.value, 5)
        timeline = await reopened.list_events("s1")

        assert [e.status_change.to_status for e in recent] == ["delivered", "on_hold"]
        assert [e.status_change.to_status for e in timeline] == ["on_hold", "delivered"]
        assert recent[0].timestamp == NOW - timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path):
        path = tmp_path / "shipments.json"
        path.write_text("{not json")

        with pytest.raises(StoreError):
            await JsonShipmentStore(path).get("s1")

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        store = JsonShipmentStore(tmp_path / "missing.json")
        assert await store.query(["in_transit"]) == []


class TestCreateStores:
    """Tests for backend selection."""

    def test_memory(self):
        shipments, events = create_stores(PollerConfig(store_backend="memory"))
        assert isinstance(shipments, MemoryShipmentStore)
        assert isinstance(events, MemoryEventStore)

    def test_json(self, tmp_path):
        shipments, events = create_stores(PollerConfig(store_backend="json", data_dir=tmp_path))
        assert isinstance(shipments, JsonShipmentStore)
        assert shipments.path == tmp_path / "shipments.json"
        assert isinstance(events, JsonEventStore)

    def test_http(self):
        config = PollerConfig(store_backend="http", backend_api_url="https://backend.example.com/api/")
        shipments, events = create_stores(config)

        assert isinstance(shipments, HttpShipmentStore)
        assert isinstance(events, HttpEventStore)
        assert shipments.client.base_url == "https://backend.example.com/api"
        assert shipments.client._get_headers()["X-Poller-ID"] == config.poller_id

    def test_http_without_url(self):
        with pytest.raises(ConfigurationError):
            create_stores(PollerConfig(store_backend="http"))

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            create_stores(PollerConfig(store_backend="mongo"))
