"""
Exception hierarchy for the Shipwatch poller.

Per-shipment errors never escalate past the scheduler; only SweepLevelError
aborts a sweep.
"""

from typing import Optional


class ShipwatchError(Exception):
    """Base exception for Shipwatch errors."""
    pass


class ConfigurationError(ShipwatchError):
    """Raised when the poller configuration is unusable."""
    pass


class ProviderError(ShipwatchError):
    """Raised when a carrier status provider rejects or fails a request."""

    def __init__(self, message: str, carrier: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.carrier = carrier
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Timeout, network failure or 5xx answer. Retried on the next sweep."""
    pass


class UnsupportedCarrierError(ShipwatchError):
    """The shipment's carrier has no status provider. Not a failure."""
    pass


class DataIntegrityWarning(ShipwatchError):
    """An eligible shipment lacks a usable tracking identifier."""
    pass


class EventLogWriteError(ShipwatchError):
    """
    A timeline event could not be written.

    Side-channel error: callers log it and carry on, the primary
    shipment update is never failed because of it.
    """

    def __init__(self, message: str, shipment_id: Optional[str] = None):
        super().__init__(message)
        self.shipment_id = shipment_id


class StoreError(ShipwatchError):
    """Raised by shipment/event store implementations."""
    pass


class SweepLevelError(ShipwatchError):
    """Raised when a sweep cannot run at all (e.g. candidate query failed)."""
    pass
