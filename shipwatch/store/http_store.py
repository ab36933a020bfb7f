"""
REST-backed stores talking to the shipment backend.
"""

from typing import Any, Optional, Sequence

import aiohttp
import orjson
from loguru import logger

from shipwatch.config import PollerConfig
from shipwatch.errors import StoreError
from shipwatch.models import ShipmentEvent
from shipwatch.store.base import EventStore, ShipmentStore


class BackendClient:
    """
    HTTP client for the shipment backend API.

    Endpoints:
    - GET    /shipments?status=a,b
    - GET    /shipments/{id}
    - PATCH  /shipments/{id}
    - GET    /shipments/{id}/events?type=...&limit=...
    - POST   /shipments/{id}/events
    """

    def __init__(self, config: PollerConfig):
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def base_url(self) -> str:
        return self.config.backend_api_url.rstrip("/")

    def _get_headers(self) -> dict[str, str]:
        """Get HTTP headers for API requests."""
        return {
            "Authorization": f"Bearer {self.config.backend_api_key}",
            "X-Poller-ID": self.config.poller_id,
            "Content-Type": "application/json",
        }

    async def _ensure_session(self):
        """Ensure HTTP session is created."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._get_headers(),
                timeout=aiohttp.ClientTimeout(total=30),
            )

    async def close(self):
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def request(self, method: str, path: str, payload: Any = None, params: Optional[dict] = None) -> Any:
        """
        Call the backend and decode the JSON answer.

        Returns None for 404 and 204 answers.
        """
        await self._ensure_session()
        url = f"{self.base_url}{path}"
        data = orjson.dumps(payload, option=orjson.OPT_NAIVE_UTC) if payload is not None else None

        try:
            async with self._session.request(method, url, data=data, params=params) as response:
                if response.status in (204, 404):
                    return None
                body = await response.read()
                if response.status >= 400:
                    raise StoreError(f"{method} {path} failed: {response.status} - {body[:200]!r}")
                return orjson.loads(body) if body else None
        except aiohttp.ClientError as e:
            logger.error(f"Network error calling backend: {e}")
            raise StoreError(f"{method} {path} failed: {e}") from e
        except orjson.JSONDecodeError as e:
            raise StoreError(f"{method} {path} returned invalid JSON") from e


class HttpShipmentStore(ShipmentStore):
    def __init__(self, client: BackendClient):
        self.client = client

    async def get(self, shipment_id: str) -> Optional[dict[str, Any]]:
        return await self.client.request("GET", f"/shipments/{shipment_id}")

    async def query(self, status_in: Sequence[str]) -> list[dict[str, Any]]:
        data = await self.client.request("GET", "/shipments", params={"status": ",".join(status_in)})
        if data is None:
            return []
        return data.get("shipments", []) if isinstance(data, dict) else list(data)

    async def update(self, shipment_id: str, fields: dict[str, Any]) -> None:
        await self.client.request("PATCH", f"/shipments/{shipment_id}", payload=fields)

    async def close(self):
        await self.client.close()


class HttpEventStore(EventStore):
    def __init__(self, client: BackendClient):
        self.client = client

    async def append(self, shipment_id: str, event: ShipmentEvent) -> None:
        await self.client.request("POST", f"/shipments/{shipment_id}/events", payload=event.to_document())

    async def _fetch(self, shipment_id: str, params: dict) -> list[ShipmentEvent]:
        data = await self.client.request("GET", f"/shipments/{shipment_id}/events", params=params)
        if data is None:
            return []
        documents = data.get("events", []) if isinstance(data, dict) else data
        return [ShipmentEvent.model_validate(d) for d in documents]

    async def query_recent(self, shipment_id: str, event_type: str, limit: int) -> list[ShipmentEvent]:
        events = await self._fetch(shipment_id, {"type": str(getattr(event_type, "value", event_type)), "limit": str(limit)})
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

    async def list_events(self, shipment_id: str) -> list[ShipmentEvent]:
        events = await self._fetch(shipment_id, {})
        return sorted(events, key=lambda e: e.timestamp)

    async def close(self):
        await self.client.close()
