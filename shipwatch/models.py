"""
Data models for the Shipwatch poller.
Defines shipments as ingested from the store, normalized carrier status
results, timeline events and sweep reports.

Stored documents use camelCase keys (shipmentType, lastStatusPoll, ...);
models expose snake_case attributes and accept either spelling.
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
import uuid

from shipwatch.errors import DataIntegrityWarning, UnsupportedCarrierError


UNKNOWN_STATUS = "unknown"

# Terminal lifecycle states, including spelling variants seen in stored data
TERMINAL_STATUSES = frozenset({"delivered", "cancelled", "canceled", "void", "voided"})

# Non-terminal statuses the sweep asks the store for. Stores match them after
# canonical_status folding, so "In Transit" and "in-transit" are included.
ACTIVE_STATUSES = (
    "pending",
    "booked",
    "scheduled",
    "awaiting_shipment",
    "in_transit",
    "out_for_delivery",
    "on_hold",
)

STATUS_DISPLAY_NAMES = {
    "draft": "Draft",
    "pending": "Pending",
    "scheduled": "Scheduled",
    "booked": "Booked",
    "awaiting_shipment": "Awaiting Shipment",
    "in_transit": "In Transit",
    "out_for_delivery": "Out For Delivery",
    "delivered": "Delivered",
    "on_hold": "On Hold",
    "canceled": "Canceled",
    "cancelled": "Cancelled",
    "void": "Void",
    "unknown": "Unknown",
}


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a carrier/store timestamp into an aware UTC datetime.

    Returns None for empty or unparseable values instead of raising;
    carrier payloads are too inconsistent to fail a poll over a date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value).astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        text = str(value).strip().replace("Z", "+00:00")
        return ensure_aware(datetime.fromisoformat(text)).astimezone(timezone.utc)
    except ValueError:
        return None


def fold_status(status: Optional[str]) -> str:
    """Lowercase a status and fold '_' / '-' to single spaces ("In_Transit" -> "in transit")."""
    if not status:
        return ""
    text = str(status).lower().replace("_", " ").replace("-", " ")
    return " ".join(text.split())


def canonical_status(status: Optional[str]) -> str:
    """Snake-case form used for comparisons ("In Transit" -> "in_transit")."""
    return fold_status(status).replace(" ", "_")


def is_terminal_status(status: Optional[str]) -> bool:
    return canonical_status(status) in TERMINAL_STATUSES


def status_display_name(status: Optional[str]) -> str:
    key = canonical_status(status)
    return STATUS_DISPLAY_NAMES.get(key, status or "Unknown")


def _first(*values: Any) -> Optional[str]:
    """First non-empty value, stripped, as a string."""
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


# ===== Carrier identity =====

class CarrierId(str, Enum):
    """Carriers with a status provider adapter."""
    ESHIPPLUS = "eshipplus"
    CANPAR = "canpar"
    POLARIS = "polaris"
    FEDEX = "fedex"
    UPS = "ups"
    UNKNOWN = "unknown"


CARRIER_DISPLAY_NAMES = {
    CarrierId.ESHIPPLUS: "eShipPlus",
    CarrierId.CANPAR: "Canpar",
    CarrierId.POLARIS: "Polaris Transportation",
    CarrierId.FEDEX: "FedEx",
    CarrierId.UPS: "UPS",
}


class CarrierFields(BaseModel):
    """
    Canonical carrier metadata for a shipment.

    Historical data sources stored the carrier name and identifiers under
    several different keys. They are read once, here, when a stored
    document becomes a Shipment; nothing downstream looks at the raw keys.
    """

    carrier_name: str = ""

    # Aggregator markers
    display_carrier_id: Optional[str] = None
    source_carrier_name: Optional[str] = None
    source_carrier: Optional[str] = None
    display_carrier_scac: Optional[str] = None

    # Candidate identifiers
    tracking_number: Optional[str] = None
    rate_tracking_number: Optional[str] = None
    barcode: Optional[str] = None
    confirmation_number: Optional[str] = None
    booking_reference_number: Optional[str] = None
    pro_number: Optional[str] = None
    confirmation_tracking_number: Optional[str] = None

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "CarrierFields":
        rate = document.get("selectedRate") or {}
        rate_ref = document.get("selectedRateRef") or {}
        confirmation = document.get("carrierBookingConfirmation") or {}

        return cls(
            carrier_name=_first(
                rate.get("carrier"),
                rate_ref.get("carrier"),
                document.get("carrier"),
                rate.get("CarrierName"),
                _dig(rate, "rawBookingAPIResponse", "BookedRate", "CarrierName"),
                _dig(document, "rawBookingAPIResponse", "BookedRate", "CarrierName"),
            ) or "",
            display_carrier_id=_first(rate.get("displayCarrierId"), rate_ref.get("displayCarrierId")),
            source_carrier_name=_first(rate.get("sourceCarrierName"), rate_ref.get("sourceCarrierName")),
            source_carrier=_first(
                rate.get("sourceCarrier"),
                rate_ref.get("sourceCarrier"),
                document.get("sourceCarrier"),
            ),
            display_carrier_scac=_first(
                rate.get("displayCarrierScac"),
                rate_ref.get("displayCarrierScac"),
                document.get("displayCarrierScac"),
            ),
            tracking_number=_first(document.get("trackingNumber")),
            rate_tracking_number=_first(rate.get("TrackingNumber")),
            barcode=_first(rate.get("Barcode")),
            confirmation_number=_first(confirmation.get("confirmationNumber")),
            booking_reference_number=_first(
                confirmation.get("bookingReferenceNumber"),
                rate.get("BookingReferenceNumber"),
                document.get("bookingReferenceNumber"),
            ),
            pro_number=_first(confirmation.get("proNumber")),
            confirmation_tracking_number=_first(confirmation.get("trackingNumber")),
        )


class CarrierResolution(BaseModel):
    """Carrier identity and tracking identifier resolved for one shipment."""

    carrier: CarrierId = CarrierId.UNKNOWN
    carrier_name: str = "Unknown"
    tracking_identifier: Optional[str] = None
    identifier_kind: Optional[str] = None  # confirmation_number, barcode, tracking_number, ...
    can_poll: bool = False
    reason: str = ""

    def ensure_pollable(self) -> "CarrierResolution":
        """Raise the matching "cannot poll" error, or return self."""
        if self.carrier == CarrierId.UNKNOWN:
            raise UnsupportedCarrierError(self.reason or f"Carrier {self.carrier_name} not supported")
        if not self.tracking_identifier:
            raise DataIntegrityWarning(self.reason or f"No tracking identifier for {self.carrier_name}")
        return self


# ===== Shipments =====

class Shipment(BaseModel):
    """A shipment as read from the shipment store."""

    id: str
    shipment_id: Optional[str] = Field(default=None, alias="shipmentID")
    status: str = ""
    shipment_type: str = Field(default="", alias="shipmentType")

    carrier_fields: CarrierFields = Field(default_factory=CarrierFields, alias="carrierFields")

    # Timestamps
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    last_status_poll: Optional[datetime] = Field(default=None, alias="lastStatusPoll")
    status_last_checked: Optional[datetime] = Field(default=None, alias="statusLastChecked")
    estimated_delivery: Optional[datetime] = Field(default=None, alias="estimatedDelivery")
    actual_delivery: Optional[datetime] = Field(default=None, alias="actualDelivery")

    last_poll_error: Optional[str] = Field(default=None, alias="lastPollError")
    carrier_tracking_data: Optional[dict[str, Any]] = Field(default=None, alias="carrierTrackingData")

    # Manual override with "prevent auto-updates" set
    manual_override: bool = Field(default=False, alias="manualOverride")

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def _normalize_document(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "carrierFields" in data or "carrier_fields" in data:
            return data

        document = dict(data)
        document["carrierFields"] = CarrierFields.from_document(data)

        if not document.get("shipmentType"):
            document["shipmentType"] = _dig(data, "shipmentInfo", "shipmentType") or ""

        override = data.get("statusOverrideEnhanced") or {}
        document["manualOverride"] = (
            override.get("isManual") is True and override.get("preventAutoUpdates") is True
        )
        return document

    @field_validator(
        "created_at",
        "last_status_poll",
        "status_last_checked",
        "estimated_delivery",
        "actual_delivery",
        mode="before",
    )
    @classmethod
    def _coerce_datetime(cls, value: Any) -> Optional[datetime]:
        return parse_datetime(value)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Shipment":
        """Ingest a raw store document."""
        return cls.model_validate(document)

    @property
    def label(self) -> str:
        """Human-readable reference for logs."""
        return self.shipment_id or self.id


# ===== Carrier status =====

class TrackingUpdate(BaseModel):
    """One carrier scan/check-call."""

    status: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    timestamp: Optional[datetime] = None
    status_code: Optional[str] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_datetime(value)


class StatusResult(BaseModel):
    """Normalized answer of a status provider adapter."""

    status: str = UNKNOWN_STATUS
    status_display: str = "Unknown"
    location: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    tracking_updates: list[TrackingUpdate] = Field(default_factory=list)
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None

    carrier: str = ""
    tracking_number: Optional[str] = None
    message: Optional[str] = None

    # Carrier-specific fragment kept for the shipment's tracking data
    raw: dict[str, Any] = Field(default_factory=dict)

    @field_validator("estimated_delivery", "actual_delivery", mode="before")
    @classmethod
    def _coerce_dates(cls, value: Any) -> Optional[datetime]:
        return parse_datetime(value)

    @property
    def is_unknown(self) -> bool:
        return canonical_status(self.status) in ("", UNKNOWN_STATUS)


# ===== Timeline events =====

class EventType(str, Enum):
    """Types of shipment timeline events."""
    CREATED = "created"
    STATUS_UPDATE = "status_update"
    TRACKING_UPDATE = "tracking_update"
    CARRIER_UPDATE = "carrier_update"
    USER_ACTION = "user_action"
    ERROR = "error"


class EventSource(str, Enum):
    """Who produced an event."""
    SYSTEM_POLLING = "system_polling"
    SYSTEM = "system"
    CARRIER = "carrier"
    USER = "user"
    API = "api"


class StatusChange(BaseModel):
    from_status: Optional[str] = Field(default=None, alias="from")
    to_status: Optional[str] = Field(default=None, alias="to")
    reason: str = ""

    class Config:
        populate_by_name = True


class ShipmentEvent(BaseModel):
    """Append-only entry on a shipment's timeline."""

    event_id: str = Field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:16]}", alias="eventId")
    shipment_id: str = Field(alias="shipmentId")
    event_type: EventType = Field(alias="eventType")
    timestamp: datetime = Field(default_factory=utcnow)
    source: EventSource = EventSource.SYSTEM

    title: str = ""
    description: str = ""
    carrier: Optional[str] = None

    status_change: Optional[StatusChange] = Field(default=None, alias="statusChange")
    tracking_data: Optional[dict[str, Any]] = Field(default=None, alias="trackingData")
    tracking_update_hash: Optional[str] = Field(default=None, alias="trackingUpdateHash")

    metadata: dict[str, Any] = Field(default_factory=dict)

    class Config:
        use_enum_values = True
        populate_by_name = True

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime:
        return parse_datetime(value) or utcnow()

    def to_document(self) -> dict[str, Any]:
        """Store representation (camelCase keys, JSON types)."""
        return self.model_dump(mode="json", by_alias=True)


# ===== Sweep reporting =====

class SweepReport(BaseModel):
    """Outcome of one sweep."""

    processed: int = 0
    updated: int = 0
    errored: int = 0
    skipped: int = 0

    candidates: int = 0
    truncated: bool = False

    timestamp: datetime = Field(default_factory=utcnow)
    duration_ms: Optional[int] = None

    # shipment label -> error message
    errors: dict[str, str] = Field(default_factory=dict)
