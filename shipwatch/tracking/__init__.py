"""
Tracking integration module.
Eligibility, carrier resolution and carrier status providers.
"""

from shipwatch.tracking.carrier_api import CarrierAPI, EShipPlusAPI, CanparAPI, PolarisAPI, FedExAPI, UPSAPI
from shipwatch.tracking.policy import EligibilityPolicy, should_poll
from shipwatch.tracking.resolver import resolve
from shipwatch.tracking.tracking_manager import TrackingManager

__all__ = [
    "CarrierAPI",
    "EShipPlusAPI",
    "CanparAPI",
    "PolarisAPI",
    "FedExAPI",
    "UPSAPI",
    "EligibilityPolicy",
    "should_poll",
    "resolve",
    "TrackingManager",
]
