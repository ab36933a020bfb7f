"""
In-memory stores, for tests and dry runs.
"""

import copy
from collections import defaultdict
from typing import Any, Iterable, Optional, Sequence

from shipwatch.errors import StoreError
from shipwatch.models import ShipmentEvent, canonical_status
from shipwatch.store.base import EventStore, ShipmentStore


class MemoryShipmentStore(ShipmentStore):
    def __init__(self, documents: Optional[Iterable[dict[str, Any]]] = None):
        self._documents: dict[str, dict[str, Any]] = {}
        for document in documents or []:
            self.put(document)

    def put(self, document: dict[str, Any]):
        if "id" not in document:
            raise StoreError("Shipment document has no id")
        self._documents[document["id"]] = copy.deepcopy(document)

    async def get(self, shipment_id: str) -> Optional[dict[str, Any]]:
        document = self._documents.get(shipment_id)
        return copy.deepcopy(document) if document is not None else None

    async def query(self, status_in: Sequence[str]) -> list[dict[str, Any]]:
        wanted = {canonical_status(s) for s in status_in}
        return [copy.deepcopy(d) for d in self._documents.values() if canonical_status(d.get("status")) in wanted]

    async def update(self, shipment_id: str, fields: dict[str, Any]) -> None:
        if shipment_id not in self._documents:
            raise StoreError(f"Shipment {shipment_id} not found")
        self._documents[shipment_id].update(copy.deepcopy(fields))


class MemoryEventStore(EventStore):
    def __init__(self):
        self._events: dict[str, list[ShipmentEvent]] = defaultdict(list)

    async def append(self, shipment_id: str, event: ShipmentEvent) -> None:
        self._events[shipment_id].append(event.model_copy(deep=True))

    async def query_recent(self, shipment_id: str, event_type: str, limit: int) -> list[ShipmentEvent]:
        matching = [e for e in self._events.get(shipment_id, []) if e.event_type == event_type]
        matching.sort(key=lambda e: e.timestamp, reverse=True)
        return matching[:limit]

    async def list_events(self, shipment_id: str) -> list[ShipmentEvent]:
        return sorted(self._events.get(shipment_id, []), key=lambda e: e.timestamp)
