"""
Shipment and event stores.
"""

from shipwatch.config import PollerConfig
from shipwatch.errors import ConfigurationError
from shipwatch.store.base import EventStore, ShipmentStore
from shipwatch.store.http_store import BackendClient, HttpEventStore, HttpShipmentStore
from shipwatch.store.json_store import JsonEventStore, JsonShipmentStore
from shipwatch.store.memory import MemoryEventStore, MemoryShipmentStore


def create_stores(config: PollerConfig) -> tuple[ShipmentStore, EventStore]:
    """Build the configured store backend."""
    if config.store_backend == "memory":
        return MemoryShipmentStore(), MemoryEventStore()

    if config.store_backend == "json":
        return (
            JsonShipmentStore(config.data_dir / "shipments.json"),
            JsonEventStore(config.data_dir / "events.json"),
        )

    if config.store_backend == "http":
        if not config.backend_api_url:
            raise ConfigurationError("BACKEND_API_URL is required for the http store")
        client = BackendClient(config)
        return HttpShipmentStore(client), HttpEventStore(client)

    raise ConfigurationError(f"Unknown store backend: {config.store_backend}")


__all__ = [
    "ShipmentStore",
    "EventStore",
    "MemoryShipmentStore",
    "MemoryEventStore",
    "JsonShipmentStore",
    "JsonEventStore",
    "HttpShipmentStore",
    "HttpEventStore",
    "BackendClient",
    "create_stores",
]
