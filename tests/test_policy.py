"""Tests for the eligibility policy."""

import pytest
from datetime import timedelta

from shipwatch.config import PollerConfig
from shipwatch.models import Shipment
from shipwatch.tracking.policy import EligibilityPolicy, should_poll

from conftest import NOW


def shipment(status="in_transit", shipment_type="courier", last_poll=None, **extra):
    doc = {"id": "doc-1", "status": status, "shipmentType": shipment_type, **extra}
    if last_poll is not None:
        doc["lastStatusPoll"] = NOW - last_poll
    return Shipment.from_document(doc)


class TestTerminal:
    """Terminal shipments are never polled."""

    @pytest.mark.parametrize("status", ["delivered", "Delivered", "cancelled", "canceled", "void", "voided"])
    def test_terminal_never_polls(self, status):
        assert should_poll(shipment(status=status), NOW) is False
        assert should_poll(shipment(status=status, last_poll=timedelta(days=30)), NOW) is False


class TestFreight:
    """Freight shipments poll every 12 hours."""

    def test_exactly_twelve_hours_is_not_due(self):
        assert should_poll(shipment(shipment_type="freight", last_poll=timedelta(hours=12)), NOW) is False

    def test_just_over_twelve_hours_is_due(self):
        s = shipment(shipment_type="freight", last_poll=timedelta(hours=12, seconds=1))
        assert should_poll(s, NOW) is True

    def test_ltl_counts_as_freight(self):
        s = shipment(shipment_type="LTL", last_poll=timedelta(hours=7))
        assert should_poll(s, NOW) is False

    def test_freight_in_transit_uses_freight_interval(self):
        s = shipment(status="in_transit", shipment_type="freight", last_poll=timedelta(hours=1))
        assert should_poll(s, NOW) is False

    def test_type_from_shipment_info(self):
        s = Shipment.from_document({
            "id": "doc-1",
            "status": "booked",
            "shipmentInfo": {"shipmentType": "freight"},
            "lastStatusPoll": NOW - timedelta(hours=8),
        })
        assert should_poll(s, NOW) is False


class TestCourier:
    """Moving couriers poll every 10 minutes, everything else every 6 hours."""

    @pytest.mark.parametrize("status", ["in_transit", "In Transit", "IN-TRANSIT", "out_for_delivery", "Out For Delivery"])
    def test_in_transit_tier(self, status):
        assert should_poll(shipment(status=status, last_poll=timedelta(minutes=11)), NOW) is True
        assert should_poll(shipment(status=status, last_poll=timedelta(minutes=9)), NOW) is False

    def test_in_transit_boundary(self):
        assert should_poll(shipment(last_poll=timedelta(minutes=10)), NOW) is False

    def test_default_tier(self):
        assert should_poll(shipment(status="booked", last_poll=timedelta(hours=5)), NOW) is False
        assert should_poll(shipment(status="booked", last_poll=timedelta(hours=6, seconds=1)), NOW) is True

    def test_never_polled(self):
        assert should_poll(shipment(status="booked"), NOW) is True
        assert should_poll(shipment(shipment_type="freight"), NOW) is True


class TestConfiguredPolicy:
    def test_intervals_from_config(self):
        config = PollerConfig(freight_interval_hours=1, in_transit_interval_minutes=30, default_interval_hours=2)
        policy = EligibilityPolicy.from_config(config)

        assert policy.should_poll(shipment(shipment_type="freight", last_poll=timedelta(hours=2)), NOW)
        assert not policy.should_poll(shipment(last_poll=timedelta(minutes=20)), NOW)
        assert policy.interval_for(shipment(status="booked")) == timedelta(hours=2)
        assert policy.interval_for(shipment(status="delivered")) is None
