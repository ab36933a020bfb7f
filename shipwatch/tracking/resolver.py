"""
Carrier resolver.
Maps a shipment's carrier metadata to a carrier identity and the identifier
that carrier's status API expects.
"""

from typing import Optional

from shipwatch.models import (
    CARRIER_DISPLAY_NAMES,
    CarrierFields,
    CarrierId,
    CarrierResolution,
    Shipment,
)


# Unbranded sub-carriers booked through the eShipPlus aggregator
AGGREGATOR_CARRIER_KEYWORDS = (
    "freight",
    "ltl",
    "fedex freight",
    "road runner",
    "roadrunner",
    "estes",
    "yrc",
    "xpo",
    "old dominion",
    "odfl",
    "saia",
    "ward",
)
AGGREGATOR_SCACS = ("WARD",)

# Candidate identifiers per carrier, in order of preference
IDENTIFIER_PATHS: dict[CarrierId, tuple[str, ...]] = {
    CarrierId.ESHIPPLUS: ("confirmation_number", "booking_reference_number", "pro_number"),
    CarrierId.CANPAR: ("tracking_number", "rate_tracking_number", "barcode", "confirmation_tracking_number"),
    CarrierId.POLARIS: ("confirmation_number", "pro_number", "tracking_number"),
    CarrierId.FEDEX: ("tracking_number", "confirmation_tracking_number"),
    CarrierId.UPS: ("tracking_number", "confirmation_tracking_number"),
}


def detect_carrier(tracking_number: str) -> CarrierId:
    """
    Detect a parcel carrier from the tracking number format.

    - UPS: 1Z followed by 16 chars, or 18 digits
    - FedEx: 12, 15, 20 or 22 digits, or DT + 12 digits (door tag)
    """
    tracking = tracking_number.strip().upper()

    if tracking.startswith("1Z") and len(tracking) == 18:
        return CarrierId.UPS
    if len(tracking) == 18 and tracking.isdigit():
        return CarrierId.UPS

    if len(tracking) in [12, 15, 20, 22] and tracking.isdigit():
        return CarrierId.FEDEX
    if tracking.startswith("DT") and len(tracking) == 14 and tracking[2:].isdigit():
        return CarrierId.FEDEX

    return CarrierId.UNKNOWN


def _is_aggregator_marked(fields: CarrierFields) -> bool:
    return (
        (fields.display_carrier_id or "").upper() == "ESHIPPLUS"
        or (fields.source_carrier_name or "").lower() == "eshipplus"
        or (fields.source_carrier or "").upper() == "ESHIPPLUS"
    )


def classify_carrier(fields: CarrierFields) -> CarrierId:
    """Carrier identity from the canonical carrier fields."""
    if _is_aggregator_marked(fields):
        return CarrierId.ESHIPPLUS

    name = fields.carrier_name.lower()
    scac = (fields.display_carrier_scac or "").upper()

    if any(keyword in name for keyword in AGGREGATOR_CARRIER_KEYWORDS) or scac in AGGREGATOR_SCACS:
        return CarrierId.ESHIPPLUS

    if "eshipplus" in name:
        return CarrierId.ESHIPPLUS
    if "canpar" in name or scac == "CANPAR":
        return CarrierId.CANPAR
    if "polaris" in name:
        return CarrierId.POLARIS
    if "fedex" in name or "federal express" in name:
        return CarrierId.FEDEX
    if name == "ups" or "united parcel" in name or scac == "UPSN":
        return CarrierId.UPS

    if not name:
        tracking = fields.tracking_number or fields.confirmation_tracking_number
        if tracking:
            return detect_carrier(tracking)

    return CarrierId.UNKNOWN


def _find_identifier(fields: CarrierFields, carrier: CarrierId) -> tuple[Optional[str], Optional[str]]:
    for attr in IDENTIFIER_PATHS.get(carrier, ()):
        value = getattr(fields, attr)
        if value:
            return value, attr
    return None, None


def resolve(shipment: Shipment) -> CarrierResolution:
    """
    Resolve carrier identity and tracking identifier.

    Never raises; call ``ensure_pollable()`` on the result to turn the two
    "cannot poll" outcomes into exceptions.
    """
    fields = shipment.carrier_fields
    carrier = classify_carrier(fields)

    if carrier == CarrierId.UNKNOWN:
        carrier_name = fields.carrier_name or "Unknown"
        return CarrierResolution(
            carrier=carrier,
            carrier_name=carrier_name,
            can_poll=False,
            reason=f"Carrier {carrier_name} not supported for status polling",
        )

    carrier_name = CARRIER_DISPLAY_NAMES[carrier]
    identifier, kind = _find_identifier(fields, carrier)

    if not identifier:
        expected = " / ".join(IDENTIFIER_PATHS[carrier]).replace("_", " ")
        return CarrierResolution(
            carrier=carrier,
            carrier_name=carrier_name,
            can_poll=False,
            reason=f"{carrier_name} shipment has no {expected}",
        )

    return CarrierResolution(
        carrier=carrier,
        carrier_name=carrier_name,
        tracking_identifier=identifier,
        identifier_kind=kind,
        can_poll=True,
        reason=f"{carrier_name} {kind.replace('_', ' ')} {identifier}",
    )
