"""
Shipment timeline events.
"""

from shipwatch.events.event_log import EventLog, tracking_fingerprint

__all__ = ["EventLog", "tracking_fingerprint"]
