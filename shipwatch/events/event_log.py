"""
Shipment event log with duplicate suppression.

Two checks keep repeated polls from flooding a timeline:

- status changes: an identical (from, to) change from the same source
  within the trailing window (default 1 hour) is not written again;
- tracking updates: each carrier scan gets a fingerprint; a scan whose
  fingerprint (or whose status and description, within 60 seconds) matches
  a recent event is not written again.

The check-then-append is not transactional. Two sweeps overlapping on the
same shipment can both pass the check; the window limits the damage.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

import orjson
from loguru import logger

from shipwatch.errors import EventLogWriteError
from shipwatch.models import (
    EventSource,
    EventType,
    ShipmentEvent,
    StatusChange,
    TrackingUpdate,
    canonical_status,
    parse_datetime,
    status_display_name,
    utcnow,
)
from shipwatch.store.base import EventStore


POLLING_REASON = "Automatic status update from scheduled polling"
POLLING_METADATA = {"automated": True, "pollingGenerated": True}


def fingerprint_timestamp(value) -> str:
    """UTC ISO-8601 truncated to the minute, "" when absent or unparseable."""
    timestamp = parse_datetime(value)
    if timestamp is None:
        return ""
    return timestamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M")


def tracking_fingerprint(update: TrackingUpdate) -> str:
    """
    Identity of a carrier scan.

    MD5 hex digest of the compact JSON object
    ``{"status", "description", "location", "timestamp"}`` in that key
    order. Keys whose value is missing are left out, so digests match the
    ones already stored by the booking system. The timestamp is truncated
    to the minute so re-polls that report the same scan with drifting
    seconds collapse.
    """
    fields = {
        "status": update.status,
        "description": update.description,
        "location": update.location,
        "timestamp": fingerprint_timestamp(update.timestamp),
    }
    canonical = {key: value for key, value in fields.items() if value is not None}
    return hashlib.md5(orjson.dumps(canonical)).hexdigest()


class EventLog:
    """Append-only timeline writer with deduplication."""

    def __init__(
        self,
        events: EventStore,
        status_window: timedelta = timedelta(hours=1),
        status_lookback: int = 5,
        tracking_window: timedelta = timedelta(seconds=60),
        tracking_lookback: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.events = events
        self.status_window = status_window
        self.status_lookback = status_lookback
        self.tracking_window = tracking_window
        self.tracking_lookback = tracking_lookback
        self._clock = clock

    @classmethod
    def from_config(cls, events: EventStore, config, clock: Callable[[], datetime] = utcnow) -> "EventLog":
        return cls(
            events,
            status_window=timedelta(minutes=config.status_dedup_window_minutes),
            status_lookback=config.status_dedup_lookback,
            tracking_window=timedelta(seconds=config.tracking_dedup_window_seconds),
            tracking_lookback=config.tracking_dedup_lookback,
            clock=clock,
        )

    async def _append(self, shipment_id: str, event: ShipmentEvent):
        try:
            await self.events.append(shipment_id, event)
        except Exception as e:
            raise EventLogWriteError(f"Failed to append {event.event_type} event: {e}", shipment_id) from e

    # ===== Status changes =====

    def _is_duplicate_status_change(
        self,
        event: ShipmentEvent,
        from_status: str,
        to_status: str,
        source: str,
        now: datetime,
    ) -> bool:
        change = event.status_change
        if change is None or event.source != source:
            return False
        if now - event.timestamp >= self.status_window:
            return False
        return (
            canonical_status(change.from_status) == canonical_status(from_status)
            and canonical_status(change.to_status) == canonical_status(to_status)
        )

    async def append_status_change(
        self,
        shipment_id: str,
        from_status: str,
        to_status: str,
        reason: str = POLLING_REASON,
        source: EventSource = EventSource.SYSTEM_POLLING,
        carrier: Optional[str] = None,
    ) -> Optional[ShipmentEvent]:
        """
        Record a status transition unless the same one was recorded recently.

        Returns:
            The appended event, or None when it was suppressed as a duplicate.

        Raises:
            EventLogWriteError: the append itself failed
        """
        source = EventSource(source).value
        now = self._clock()

        try:
            recent = await self.events.query_recent(shipment_id, EventType.STATUS_UPDATE.value, self.status_lookback)
        except Exception as e:
            logger.warning(f"Status dedup lookup failed for {shipment_id}, appending anyway: {e}")
            recent = []

        for event in recent:
            if self._is_duplicate_status_change(event, from_status, to_status, source, now):
                logger.debug(f"Skipping duplicate status change for {shipment_id}: {from_status} -> {to_status}")
                return None

        event = ShipmentEvent(
            shipment_id=shipment_id,
            event_type=EventType.STATUS_UPDATE,
            timestamp=now,
            source=source,
            title="Status Updated",
            description=(
                f"Status changed from {status_display_name(from_status)} to {status_display_name(to_status)}"
            ),
            carrier=carrier,
            status_change=StatusChange(from_status=from_status, to_status=to_status, reason=reason),
            metadata=dict(POLLING_METADATA) if source == EventSource.SYSTEM_POLLING.value else {},
        )
        await self._append(shipment_id, event)
        logger.info(f"Recorded status change for {shipment_id}: {from_status} -> {to_status}")
        return event

    # ===== Tracking updates =====

    def _is_duplicate_tracking_update(
        self,
        fingerprint: str,
        update: TrackingUpdate,
        recent: Sequence[ShipmentEvent],
    ) -> bool:
        for event in recent:
            if event.tracking_update_hash == fingerprint:
                return True

            data = event.tracking_data or {}
            if data.get("status") != update.status or data.get("description") != update.description:
                continue

            event_time = parse_datetime(data.get("timestamp")) or event.timestamp
            if update.timestamp is not None and abs(event_time - update.timestamp) < self.tracking_window:
                return True
        return False

    async def append_tracking_updates(
        self,
        shipment_id: str,
        updates: Sequence[TrackingUpdate],
        carrier: Optional[str] = None,
    ) -> list[ShipmentEvent]:
        """
        Record the carrier scans that are not already on the timeline.

        Returns:
            The events that were appended.

        Raises:
            EventLogWriteError: an append failed (earlier appends are kept)
        """
        if not updates:
            return []

        try:
            # Carriers resend their whole scan history, look back at least that far
            recent = await self.events.query_recent(
                shipment_id, EventType.TRACKING_UPDATE.value, self.tracking_lookback + len(updates)
            )
        except Exception as e:
            logger.warning(f"Tracking dedup lookup failed for {shipment_id}, appending anyway: {e}")
            recent = []

        appended: list[ShipmentEvent] = []
        seen: set[str] = set()

        for update in updates:
            fingerprint = tracking_fingerprint(update)
            if fingerprint in seen or self._is_duplicate_tracking_update(fingerprint, update, recent):
                continue
            seen.add(fingerprint)

            event = ShipmentEvent(
                shipment_id=shipment_id,
                event_type=EventType.TRACKING_UPDATE,
                timestamp=update.timestamp or self._clock(),
                source=EventSource.SYSTEM_POLLING,
                title=update.status or "Tracking Update",
                description=update.description or "",
                carrier=carrier,
                tracking_data=update.model_dump(mode="json"),
                tracking_update_hash=fingerprint,
                metadata=dict(POLLING_METADATA),
            )
            await self._append(shipment_id, event)
            appended.append(event)

        if appended:
            logger.info(f"Recorded {len(appended)} new tracking update(s) for {shipment_id}")
        return appended
