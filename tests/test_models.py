"""Tests for data models."""

import pytest
from datetime import datetime, timezone

from shipwatch.errors import DataIntegrityWarning, UnsupportedCarrierError
from shipwatch.models import (
    CarrierId,
    CarrierResolution,
    EventType,
    Shipment,
    ShipmentEvent,
    StatusChange,
    StatusResult,
    canonical_status,
    fold_status,
    is_terminal_status,
    parse_datetime,
)


class TestStatusHelpers:
    """Tests for status normalization."""

    def test_fold_status(self):
        assert fold_status("In_Transit") == "in transit"
        assert fold_status("out-for-delivery") == "out for delivery"
        assert fold_status("  In   Transit ") == "in transit"
        assert fold_status(None) == ""

    def test_canonical_status(self):
        assert canonical_status("In Transit") == "in_transit"
        assert canonical_status("AWAITING-SHIPMENT") == "awaiting_shipment"

    @pytest.mark.parametrize("status", ["delivered", "Cancelled", "canceled", "VOID", "voided"])
    def test_terminal_statuses(self, status):
        assert is_terminal_status(status)

    def test_active_status_not_terminal(self):
        assert not is_terminal_status("in_transit")
        assert not is_terminal_status("")

    def test_parse_datetime(self):
        assert parse_datetime("2026-03-02T12:00:00Z") == datetime(2026, 3, 2, 12, tzinfo=timezone.utc)
        assert parse_datetime("2026-03-02T14:00:00+02:00") == datetime(2026, 3, 2, 12, tzinfo=timezone.utc)
        assert parse_datetime("not a date") is None
        assert parse_datetime("") is None

    def test_naive_datetime_is_utc(self):
        parsed = parse_datetime(datetime(2026, 3, 2, 12))
        assert parsed.tzinfo is not None
        assert parsed == datetime(2026, 3, 2, 12, tzinfo=timezone.utc)


class TestShipment:
    """Tests for Shipment ingestion."""

    def test_from_document(self):
        """camelCase documents map to snake_case attributes."""
        shipment = Shipment.from_document({
            "id": "doc-1",
            "shipmentID": "IC-100",
            "status": "in_transit",
            "shipmentType": "freight",
            "createdAt": "2026-03-01T10:00:00Z",
            "lastStatusPoll": "2026-03-02T11:00:00",
        })

        assert shipment.id == "doc-1"
        assert shipment.label == "IC-100"
        assert shipment.shipment_type == "freight"
        assert shipment.created_at == datetime(2026, 3, 1, 10, tzinfo=timezone.utc)
        assert shipment.last_status_poll == datetime(2026, 3, 2, 11, tzinfo=timezone.utc)

    def test_shipment_type_from_shipment_info(self):
        shipment = Shipment.from_document({"id": "d", "shipmentInfo": {"shipmentType": "LTL"}})
        assert shipment.shipment_type == "LTL"

    def test_carrier_name_fallback_order(self):
        """selectedRate.carrier wins over selectedRateRef and the top-level carrier."""
        shipment = Shipment.from_document({
            "id": "d",
            "carrier": "Top Level",
            "selectedRateRef": {"carrier": "Rate Ref"},
            "selectedRate": {"carrier": "Selected Rate"},
        })
        assert shipment.carrier_fields.carrier_name == "Selected Rate"

        shipment = Shipment.from_document({
            "id": "d",
            "carrier": "Top Level",
            "selectedRateRef": {"carrier": "Rate Ref"},
        })
        assert shipment.carrier_fields.carrier_name == "Rate Ref"

        shipment = Shipment.from_document({"id": "d", "carrier": "Top Level"})
        assert shipment.carrier_fields.carrier_name == "Top Level"

    def test_identifiers_collected(self):
        shipment = Shipment.from_document({
            "id": "d",
            "trackingNumber": "T1",
            "selectedRate": {"carrier": "Canpar", "Barcode": "B1", "displayCarrierId": "ESHIPPLUS"},
            "carrierBookingConfirmation": {"confirmationNumber": "C1", "proNumber": "P1"},
        })
        fields = shipment.carrier_fields

        assert fields.tracking_number == "T1"
        assert fields.barcode == "B1"
        assert fields.confirmation_number == "C1"
        assert fields.pro_number == "P1"
        assert fields.display_carrier_id == "ESHIPPLUS"

    def test_manual_override(self):
        locked = Shipment.from_document({
            "id": "d",
            "statusOverrideEnhanced": {"isManual": True, "preventAutoUpdates": True},
        })
        manual_only = Shipment.from_document({
            "id": "d",
            "statusOverrideEnhanced": {"isManual": True, "preventAutoUpdates": False},
        })

        assert locked.manual_override is True
        assert manual_only.manual_override is False


class TestShipmentEvent:
    """Tests for timeline events."""

    def test_event_creation(self):
        event = ShipmentEvent(
            shipment_id="doc-1",
            event_type=EventType.STATUS_UPDATE,
            status_change=StatusChange(from_status="in_transit", to_status="delivered"),
        )

        assert event.event_id.startswith("evt_")
        assert event.event_type == "status_update"
        assert event.source == "system"

    def test_to_document_uses_store_keys(self):
        event = ShipmentEvent(
            shipment_id="doc-1",
            event_type=EventType.STATUS_UPDATE,
            status_change=StatusChange(from_status="in_transit", to_status="delivered"),
        )
        document = event.to_document()

        assert document["shipmentId"] == "doc-1"
        assert document["eventType"] == "status_update"
        assert document["statusChange"]["from"] == "in_transit"
        assert document["statusChange"]["to"] == "delivered"

        restored = ShipmentEvent.model_validate(document)
        assert restored.status_change.to_status == "delivered"
        assert restored.timestamp == event.timestamp


class TestCarrierResolution:
    """Tests for CarrierResolution.ensure_pollable."""

    def test_unknown_carrier_raises(self):
        with pytest.raises(UnsupportedCarrierError):
            CarrierResolution(carrier_name="Purolator").ensure_pollable()

    def test_missing_identifier_raises(self):
        with pytest.raises(DataIntegrityWarning):
            CarrierResolution(carrier=CarrierId.CANPAR, carrier_name="Canpar").ensure_pollable()

    def test_pollable(self):
        resolution = CarrierResolution(
            carrier=CarrierId.CANPAR, carrier_name="Canpar", tracking_identifier="D1", can_poll=True
        )
        assert resolution.ensure_pollable() is resolution


class TestStatusResult:
    def test_unknown(self):
        assert StatusResult().is_unknown
        assert StatusResult(status="Unknown").is_unknown
        assert not StatusResult(status="delivered").is_unknown
