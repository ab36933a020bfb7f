"""
Storage interfaces used by the poller.
Shipment documents are camelCase dicts carrying their document id under "id".
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from shipwatch.models import ShipmentEvent


class ShipmentStore(ABC):
    """Document store holding shipments."""

    @abstractmethod
    async def get(self, shipment_id: str) -> Optional[dict[str, Any]]:
        """Fetch one shipment document, None if it does not exist."""
        pass

    @abstractmethod
    async def query(self, status_in: Sequence[str]) -> list[dict[str, Any]]:
        """All shipment documents whose status is one of ``status_in``, compared after
        ``canonical_status`` folding."""
        pass

    @abstractmethod
    async def update(self, shipment_id: str, fields: dict[str, Any]) -> None:
        """Merge ``fields`` into one document. Atomic per document."""
        pass

    async def close(self):
        pass


class EventStore(ABC):
    """Append-only per-shipment event timelines."""

    @abstractmethod
    async def append(self, shipment_id: str, event: ShipmentEvent) -> None:
        pass

    @abstractmethod
    async def query_recent(self, shipment_id: str, event_type: str, limit: int) -> list[ShipmentEvent]:
        """Most recent events of one type, newest first."""
        pass

    @abstractmethod
    async def list_events(self, shipment_id: str) -> list[ShipmentEvent]:
        """Full timeline, oldest first."""
        pass

    async def close(self):
        pass
