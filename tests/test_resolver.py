"""Tests for carrier resolution."""

import pytest

from shipwatch.errors import DataIntegrityWarning, UnsupportedCarrierError
from shipwatch.models import CarrierId, Shipment
from shipwatch.tracking.resolver import classify_carrier, detect_carrier, resolve


def shipment(**doc):
    return Shipment.from_document({"id": "doc-1", **doc})


class TestAggregator:
    """Shipments booked through eShipPlus."""

    def test_display_carrier_id_marker(self):
        s = shipment(
            selectedRate={"carrier": "Some Regional Carrier", "displayCarrierId": "ESHIPPLUS"},
            carrierBookingConfirmation={"confirmationNumber": "CONF1"},
        )
        resolution = resolve(s)

        assert resolution.carrier == CarrierId.ESHIPPLUS
        assert resolution.tracking_identifier == "CONF1"
        assert resolution.can_poll

    def test_source_markers(self):
        assert resolve(shipment(selectedRateRef={"sourceCarrierName": "eShipPlus"})).carrier == CarrierId.ESHIPPLUS
        assert resolve(shipment(selectedRate={"sourceCarrier": "ESHIPPLUS"})).carrier == CarrierId.ESHIPPLUS

    def test_marker_overrides_name(self):
        s = shipment(selectedRate={"carrier": "Canpar", "displayCarrierId": "ESHIPPLUS"})
        assert resolve(s).carrier == CarrierId.ESHIPPLUS

    @pytest.mark.parametrize("name", [
        "Estes Express Lines",
        "FedEx Freight Priority",
        "Road Runner Transportation",
        "XPO Logistics",
        "Old Dominion Freight Line",
        "SAIA",
        "YRC",
    ])
    def test_sub_carrier_brand_resolves_to_aggregator(self, name):
        s = shipment(
            selectedRate={"carrier": name},
            carrierBookingConfirmation={"bookingReferenceNumber": "BR-9"},
        )
        resolution = resolve(s)

        assert resolution.carrier == CarrierId.ESHIPPLUS
        assert resolution.tracking_identifier == "BR-9"
        assert resolution.identifier_kind == "booking_reference_number"

    def test_ward_scac(self):
        s = shipment(selectedRate={"carrier": "W.T.", "displayCarrierScac": "WARD"})
        assert resolve(s).carrier == CarrierId.ESHIPPLUS

    def test_identifier_preference(self):
        s = shipment(
            selectedRate={"carrier": "Estes"},
            carrierBookingConfirmation={
                "confirmationNumber": "CONF",
                "bookingReferenceNumber": "BR",
                "proNumber": "PRO",
            },
        )
        assert resolve(s).tracking_identifier == "CONF"

        s = shipment(selectedRate={"carrier": "Estes"}, carrierBookingConfirmation={"proNumber": "PRO"})
        assert resolve(s).tracking_identifier == "PRO"


class TestDirectCarriers:
    """Canpar, Polaris, FedEx and UPS."""

    def test_canpar_tracking_number(self):
        resolution = resolve(shipment(selectedRate={"carrier": "Canpar Express"}, trackingNumber="D1"))
        assert resolution.carrier == CarrierId.CANPAR
        assert resolution.tracking_identifier == "D1"

    def test_canpar_barcode_fallback(self):
        s = shipment(selectedRate={"carrier": "CANPAR", "Barcode": "BC42"})
        resolution = resolve(s)

        assert resolution.tracking_identifier == "BC42"
        assert resolution.identifier_kind == "barcode"

    def test_canpar_by_scac(self):
        s = shipment(carrier="Ground", selectedRate={"displayCarrierScac": "CANPAR"}, trackingNumber="D2")
        assert resolve(s).carrier == CarrierId.CANPAR

    def test_polaris(self):
        s = shipment(
            carrier="Polaris Transportation",
            trackingNumber="T9",
            carrierBookingConfirmation={"proNumber": "PRO7"},
        )
        resolution = resolve(s)

        assert resolution.carrier == CarrierId.POLARIS
        assert resolution.tracking_identifier == "PRO7"

    def test_fedex_and_ups_by_name(self):
        assert resolve(shipment(carrier="FedEx Ground", trackingNumber="1")).carrier == CarrierId.FEDEX
        assert resolve(shipment(carrier="UPS", trackingNumber="1")).carrier == CarrierId.UPS

    def test_carrier_inferred_from_tracking_format(self):
        assert resolve(shipment(trackingNumber="1Z999AA10123456784")).carrier == CarrierId.UPS
        assert resolve(shipment(trackingNumber="123456789012")).carrier == CarrierId.FEDEX


class TestCannotPoll:
    def test_unknown_carrier(self):
        resolution = resolve(shipment(carrier="Purolator", trackingNumber="P1"))

        assert resolution.carrier == CarrierId.UNKNOWN
        assert resolution.carrier_name == "Purolator"
        assert resolution.can_poll is False
        with pytest.raises(UnsupportedCarrierError):
            resolution.ensure_pollable()

    def test_no_carrier_at_all(self):
        resolution = resolve(shipment())
        assert resolution.carrier_name == "Unknown"
        assert resolution.can_poll is False

    def test_missing_identifier(self):
        resolution = resolve(shipment(selectedRate={"carrier": "Canpar"}))

        assert resolution.carrier == CarrierId.CANPAR
        assert resolution.can_poll is False
        with pytest.raises(DataIntegrityWarning):
            resolution.ensure_pollable()


class TestDetectCarrier:
    @pytest.mark.parametrize("tracking,expected", [
        ("1Z999AA10123456784", CarrierId.UPS),
        ("123456789012345678", CarrierId.UPS),
        ("123456789012", CarrierId.FEDEX),
        ("123456789012345", CarrierId.FEDEX),
        ("DT123456789012", CarrierId.FEDEX),
        ("ABC", CarrierId.UNKNOWN),
    ])
    def test_formats(self, tracking, expected):
        assert detect_carrier(tracking) == expected

    def test_classify_ignores_format_when_name_present(self):
        s = shipment(carrier="Purolator", trackingNumber="123456789012")
        assert classify_carrier(s.carrier_fields) == CarrierId.UNKNOWN
