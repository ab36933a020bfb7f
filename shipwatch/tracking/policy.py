"""
Eligibility policy: decides whether a shipment is due for a status poll.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from shipwatch.models import Shipment, ensure_aware, fold_status, is_terminal_status


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

FREIGHT_TYPE_MARKERS = ("freight", "ltl")
ACTIVE_COURIER_STATUSES = ("in transit", "out for delivery")


@dataclass
class EligibilityPolicy:
    """
    Tiered polling intervals.

    Freight moves slowly and its carriers rate-limit aggressively, so it is
    polled the least often. Couriers that are actively moving are polled
    the most often.
    """

    freight_interval: timedelta = timedelta(hours=12)
    in_transit_interval: timedelta = timedelta(minutes=10)
    default_interval: timedelta = timedelta(hours=6)

    @classmethod
    def from_config(cls, config) -> "EligibilityPolicy":
        return cls(
            freight_interval=timedelta(hours=config.freight_interval_hours),
            in_transit_interval=timedelta(minutes=config.in_transit_interval_minutes),
            default_interval=timedelta(hours=config.default_interval_hours),
        )

    def interval_for(self, shipment: Shipment) -> Optional[timedelta]:
        """Minimum time between polls for this shipment, or None if it is never polled."""
        if is_terminal_status(shipment.status):
            return None

        shipment_type = (shipment.shipment_type or "").lower()
        if any(marker in shipment_type for marker in FREIGHT_TYPE_MARKERS):
            return self.freight_interval

        if fold_status(shipment.status) in ACTIVE_COURIER_STATUSES:
            return self.in_transit_interval

        return self.default_interval

    def should_poll(self, shipment: Shipment, now: datetime) -> bool:
        """True when the interval since the last poll has strictly elapsed."""
        interval = self.interval_for(shipment)
        if interval is None:
            return False

        last_poll = ensure_aware(shipment.last_status_poll) or EPOCH
        return ensure_aware(now) - last_poll > interval


_default_policy = EligibilityPolicy()


def should_poll(shipment: Shipment, now: datetime) -> bool:
    """Eligibility with the default intervals."""
    return _default_policy.should_poll(shipment, now)
