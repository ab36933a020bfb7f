"""
File-backed stores for single-host deployments.
Documents are kept in memory and written back to disk after every change.
"""

import asyncio
from pathlib import Path
from typing import Any, Optional, Sequence

import orjson
from loguru import logger

from shipwatch.errors import StoreError
from shipwatch.models import ShipmentEvent, canonical_status
from shipwatch.store.base import EventStore, ShipmentStore


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return orjson.loads(path.read_bytes())
    except (OSError, orjson.JSONDecodeError) as e:
        raise StoreError(f"Failed to load {path}: {e}") from e


def _write_json(path: Path, data: Any):
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_NAIVE_UTC))
        tmp_path.replace(path)
    except (OSError, TypeError) as e:
        raise StoreError(f"Failed to persist {path}: {e}") from e


class JsonShipmentStore(ShipmentStore):
    """Shipments persisted as one JSON object keyed by document id."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._documents: Optional[dict[str, dict[str, Any]]] = None
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, dict[str, Any]]:
        if self._documents is None:
            self._documents = _read_json(self.path, {})
            logger.debug(f"Loaded {len(self._documents)} shipments from {self.path}")
        return self._documents

    async def put(self, document: dict[str, Any]):
        if "id" not in document:
            raise StoreError("Shipment document has no id")
        async with self._lock:
            documents = self._load()
            documents[document["id"]] = orjson.loads(orjson.dumps(document, option=orjson.OPT_NAIVE_UTC))
            _write_json(self.path, documents)

    async def get(self, shipment_id: str) -> Optional[dict[str, Any]]:
        async with self._lock:
            document = self._load().get(shipment_id)
            return dict(document) if document is not None else None

    async def query(self, status_in: Sequence[str]) -> list[dict[str, Any]]:
        wanted = {canonical_status(s) for s in status_in}
        async with self._lock:
            return [dict(d) for d in self._load().values() if canonical_status(d.get("status")) in wanted]

    async def update(self, shipment_id: str, fields: dict[str, Any]) -> None:
        async with self._lock:
            documents = self._load()
            if shipment_id not in documents:
                raise StoreError(f"Shipment {shipment_id} not found")
            # Round-trip so datetimes are stored as ISO strings
            documents[shipment_id].update(orjson.loads(orjson.dumps(fields, option=orjson.OPT_NAIVE_UTC)))
            _write_json(self.path, documents)


class JsonEventStore(EventStore):
    """Event timelines persisted as {shipment id: [event, ...]}."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._events: Optional[dict[str, list[dict[str, Any]]]] = None
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, list[dict[str, Any]]]:
        if self._events is None:
            self._events = _read_json(self.path, {})
        return self._events

    async def append(self, shipment_id: str, event: ShipmentEvent) -> None:
        async with self._lock:
            events = self._load()
            events.setdefault(shipment_id, []).append(event.to_document())
            _write_json(self.path, events)

    async def query_recent(self, shipment_id: str, event_type: str, limit: int) -> list[ShipmentEvent]:
        async with self._lock:
            documents = [d for d in self._load().get(shipment_id, []) if d.get("eventType") == event_type]
        events = [ShipmentEvent.model_validate(d) for d in documents]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

    async def list_events(self, shipment_id: str) -> list[ShipmentEvent]:
        async with self._lock:
            documents = list(self._load().get(shipment_id, []))
        return sorted((ShipmentEvent.model_validate(d) for d in documents), key=lambda e: e.timestamp)
