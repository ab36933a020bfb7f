"""
Carrier status provider integrations.
Supports eShipPlus, Canpar, Polaris Transportation, FedEx and UPS.

Every adapter answers ``check_status(identifier)`` with a normalized
StatusResult. Upstream failures raise ProviderError (or
TransientProviderError for timeouts, network failures and 5xx answers);
they are never reported as "no change".
"""

import asyncio
import base64
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from xml.sax.saxutils import escape

import aiohttp
import orjson
from loguru import logger

from shipwatch.errors import ProviderError, TransientProviderError
from shipwatch.models import (
    UNKNOWN_STATUS,
    StatusResult,
    TrackingUpdate,
    parse_datetime,
    status_display_name,
    utcnow,
)


DEFAULT_TIMEOUT_SECONDS = 30

_MIN_DATE = datetime.min.replace(tzinfo=timezone.utc)


class CarrierAPI(ABC):
    """Base class for carrier status providers."""

    def __init__(self, timeout: int = DEFAULT_TIMEOUT_SECONDS):
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @abstractmethod
    async def check_status(self, identifier: str) -> StatusResult:
        """Get the normalized status for a shipment."""
        pass

    @abstractmethod
    def get_carrier_name(self) -> str:
        """Get the carrier name."""
        pass

    async def _request(self, method: str, url: str, **kwargs) -> tuple[int, str, str]:
        """
        Perform one HTTP request.

        Returns:
            (status code, content type, body text)
        """
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.request(method, url, **kwargs) as resp:
                    body = await resp.text()
                    return resp.status, resp.headers.get("Content-Type", ""), body
        except asyncio.TimeoutError as e:
            raise TransientProviderError(
                f"{self.get_carrier_name()} request timed out", carrier=self.get_carrier_name()
            ) from e
        except aiohttp.ClientError as e:
            raise TransientProviderError(
                f"{self.get_carrier_name()} connection failed: {e}", carrier=self.get_carrier_name()
            ) from e

    def _raise_for_status(self, status: int, body: str) -> None:
        name = self.get_carrier_name()
        if status >= 500:
            raise TransientProviderError(f"{name} API unavailable - {status}", carrier=name, status_code=status)
        if status in (401, 403):
            raise ProviderError(f"{name} authentication failed - {status}", carrier=name, status_code=status)
        if status >= 400:
            raise ProviderError(f"{name} API request failed - {status}: {body[:200]}", carrier=name, status_code=status)

    def _load_json(self, body: str) -> Any:
        try:
            return orjson.loads(body)
        except orjson.JSONDecodeError as e:
            raise ProviderError(f"{self.get_carrier_name()} returned invalid JSON", carrier=self.get_carrier_name()) from e


def _build_result(status: str, carrier: str, **kwargs) -> StatusResult:
    return StatusResult(status=status, status_display=status_display_name(status), carrier=carrier, **kwargs)


# ===== eShipPlus =====

# Sentinel eShipPlus uses for "no date"
ESHIPPLUS_NO_DATE = "1753-01-01T00:00:00"

ESHIPPLUS_STATUS_MAP = {
    0: "scheduled",
    1: "in_transit",
    2: "delivered",
    3: "delivered",  # Invoiced
    4: "void",
}

# Check-call code -> (status, description)
CHECK_CALL_CODES = {
    # Pickup / loading
    "AF": ("in_transit", "Carrier departed pickup location with shipment"),
    "CP": ("in_transit", "Completed loading at pick-up location"),
    "X3": ("in_transit", "Arrived at pick-up location"),
    "X8": ("in_transit", "Arrived at pick-up location loading dock"),
    "BA": ("in_transit", "Connecting line or cartage pick-up"),
    "L1": ("in_transit", "Loading"),
    # Movement
    "AN": ("in_transit", "Diverted to air carrier"),
    "AM": ("in_transit", "Loaded on truck"),
    "P1": ("in_transit", "Departed terminal location"),
    "X6": ("in_transit", "En route to delivery location"),
    "X4": ("in_transit", "Arrived at terminal location"),
    "B6": ("in_transit", "Estimated to arrive at carrier terminal"),
    "C1": ("in_transit", "Estimated to depart terminal location"),
    "BC": ("in_transit", "Storage in transit"),
    "CD": ("in_transit", "Carrier departed delivery location"),
    "I1": ("in_transit", "In-gate"),
    "K1": ("in_transit", "Arrived at customs"),
    "OA": ("in_transit", "Out-gate"),
    "R1": ("in_transit", "Received from prior carrier"),
    "AR": ("in_transit", "Rail arrival at destination intermodal ramp"),
    "RL": ("in_transit", "Rail departure from origin intermodal ramp"),
    "CL": ("in_transit", "Trailer closed out"),
    # Delivery
    "AG": ("in_transit", "Estimated delivery"),
    "AH": ("in_transit", "Attempted delivery"),
    "AJ": ("in_transit", "Tendered for delivery"),
    "AV": ("awaiting_shipment", "Available for delivery"),
    "X1": ("in_transit", "Arrived at delivery location"),
    "X2": ("in_transit", "Estimated date and/or time of arrival at consignee's location"),
    "X5": ("in_transit", "Arrived at delivery location loading dock"),
    "S1": ("in_transit", "Trailer spotted at consignee's location"),
    "D1": ("delivered", "Completed unloading at delivery location"),
    "J1": ("delivered", "Delivered to connecting line"),
    # Exceptions / holds
    "A3": ("on_hold", "Shipment returned to shipper"),
    "A7": ("on_hold", "Refused by consignee"),
    "A9": ("on_hold", "Shipment damaged"),
    "AP": ("on_hold", "Delivery not completed"),
    "SD": ("on_hold", "Shipment delayed"),
    "CA": ("canceled", "Shipment cancelled"),
    "PR": ("on_hold", "U.S. customs hold at origin intermodal ramp"),
    "AI": ("on_hold", "Shipment has been reconsigned"),
    # Administrative
    "XB": ("scheduled", "Shipment acknowledged"),
    "OO": ("scheduled", "Paperwork received - did not receive shipment or equipment"),
    "AA": ("scheduled", "Shipment created"),
}


def _eshipplus_date(value: Any) -> Optional[datetime]:
    if not value or value == ESHIPPLUS_NO_DATE:
        return None
    return parse_datetime(value)


def check_call_description(code: Optional[str], notes: Optional[str] = None) -> str:
    """Human-readable check-call text, with the carrier's notes appended."""
    description = CHECK_CALL_CODES[code][1] if code in CHECK_CALL_CODES else f"Status code: {code}"
    return f"{description} - {notes}" if notes else description


def parse_eshipplus_status(data: dict[str, Any]) -> StatusResult:
    """Normalize an eShipPlus shipment status payload."""
    check_calls = data.get("CheckCalls") or []

    status = UNKNOWN_STATUS
    source = "default"

    if data.get("IsDelivered") and _eshipplus_date(data.get("ActualDeliveryDate")):
        status, source = "delivered", "actual_delivery_date"
    elif data.get("IsPickedUp") and _eshipplus_date(data.get("ActualPickupDate")):
        status, source = "in_transit", "actual_pickup_date"
    elif data.get("Status") in ESHIPPLUS_STATUS_MAP:
        status, source = ESHIPPLUS_STATUS_MAP[data["Status"]], "main_status"
    elif check_calls:
        latest = max(check_calls, key=lambda c: parse_datetime(c.get("CallDate")) or _MIN_DATE)
        if latest.get("StatusCode") in CHECK_CALL_CODES:
            status, source = CHECK_CALL_CODES[latest["StatusCode"]][0], "check_call"

    updates = []
    for call in check_calls:
        timestamp = parse_datetime(call.get("EventDate") or call.get("CallDate"))
        if not timestamp:
            continue
        code = call.get("StatusCode")
        updates.append(TrackingUpdate(
            status=CHECK_CALL_CODES[code][0] if code in CHECK_CALL_CODES else None,
            description=check_call_description(code, call.get("CallNotes")),
            location="",
            timestamp=timestamp,
            status_code=code,
        ))
    updates.sort(key=lambda u: u.timestamp, reverse=True)

    return _build_result(
        status,
        carrier="eshipplus",
        tracking_number=data.get("Pro") or data.get("ShipmentNumber"),
        tracking_updates=updates,
        estimated_delivery=_eshipplus_date(data.get("EstimateDeliveryDate")),
        actual_delivery=_eshipplus_date(data.get("ActualDeliveryDate")),
        raw={
            "carrier": "eshipplus",
            "statusSource": source,
            "originalStatus": data.get("Status"),
            "vendorName": data.get("VendorName"),
            "vendorScac": data.get("VendorScac"),
            "checkCallsCount": len(check_calls),
        },
    )


class EShipPlusAPI(CarrierAPI):
    """
    eShipPlus freight aggregator.

    The status endpoint takes the booking reference as a bare JSON string
    and authenticates with an ``eShipPlusAuth`` header.
    """

    def __init__(
        self,
        host: str,
        endpoint: str,
        username: str,
        password: str,
        access_key: str = "",
        access_code: str = "",
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ):
        super().__init__(timeout)
        self.url = f"{host.rstrip('/')}/{endpoint.lstrip('/')}"
        self.username = username
        self.password = password
        self.access_key = access_key
        self.access_code = access_code

    def get_carrier_name(self) -> str:
        return "eshipplus"

    def _auth_header(self) -> str:
        credentials = orjson.dumps({
            "UserName": self.username,
            "Password": self.password,
            "AccessKey": self.access_key,
            "AccessCode": self.access_code,
        })
        return base64.b64encode(credentials).decode()

    async def check_status(self, identifier: str) -> StatusResult:
        """Get shipment status from eShipPlus."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "eShipPlusAuth": self._auth_header(),
        }

        status, content_type, body = await self._request(
            "POST", self.url, data=orjson.dumps(identifier), headers=headers
        )

        # A login page instead of JSON means the credentials were rejected
        if "text/html" in content_type or "<!doctype html>" in body[:200].lower():
            raise ProviderError("eShipPlus authentication failed - received login page", carrier="eshipplus")
        self._raise_for_status(status, body)

        if not body.strip():
            logger.warning(f"Empty eShipPlus response for {identifier}")
            return _build_result(UNKNOWN_STATUS, carrier="eshipplus", tracking_number=identifier,
                                 message="Empty response from eShipPlus")

        data = self._load_json(body)
        if not isinstance(data, dict):
            raise ProviderError("Unexpected eShipPlus response format", carrier="eshipplus")

        if data.get("ContainsErrorMessage"):
            messages = [m.get("Value", "") for m in data.get("Messages") or [] if m.get("Type") == 0]
            raise ProviderError(f"eShipPlus API error: {', '.join(messages) or 'Unknown error'}", carrier="eshipplus")

        result = parse_eshipplus_status(data)
        result.tracking_number = result.tracking_number or identifier
        return result


# ===== Canpar =====

CANPAR_SOAP_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/"
                  xmlns:ws="http://ws.canparaddons.canpar.com"
                  xmlns:xsd="http://dto.canparaddons.canpar.com/xsd">
  <soapenv:Header/>
  <soapenv:Body>
    <ws:trackByBarcode>
      <ws:request>
        <xsd:user_id>{user_id}</xsd:user_id>
        <xsd:password>{password}</xsd:password>
        <xsd:barcode>{barcode}</xsd:barcode>
      </ws:request>
    </ws:trackByBarcode>
  </soapenv:Body>
</soapenv:Envelope>"""

XSI_NIL = "{http://www.w3.org/2001/XMLSchema-instance}nil"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _xml_fields(element: ET.Element) -> dict[str, Optional[str]]:
    """Direct children of an element as {local name: text}, nil elements as None."""
    fields = {}
    for child in element:
        if child.get(XSI_NIL) == "true":
            fields[_local_name(child.tag)] = None
        else:
            fields[_local_name(child.tag)] = (child.text or "").strip() or None
    return fields


def parse_canpar_response(xml_text: str) -> dict[str, Any]:
    """
    Extract the trackByBarcode result from a Canpar SOAP response.

    Raises:
        ProviderError: unparseable XML or an error reported by Canpar
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ProviderError(f"Failed to parse Canpar tracking response: {e}", carrier="canpar") from e

    returned = next((el for el in root.iter() if _local_name(el.tag) == "return"), None)
    if returned is None:
        raise ProviderError("Canpar response has no return element", carrier="canpar")

    error = next((el for el in returned if _local_name(el.tag) == "error"), None)
    if error is not None and error.get(XSI_NIL) != "true" and (error.text or "").strip():
        raise ProviderError(f"Canpar API error: {error.text.strip()}", carrier="canpar")

    result = next((el for el in returned if _local_name(el.tag) == "result"), None)
    if result is None:
        raise ProviderError("Canpar response has no result element", carrier="canpar")

    fields = _xml_fields(result)
    fields["delivered"] = (fields.get("delivered") or "").lower() == "true"
    return fields


def map_canpar_status(fields: dict[str, Any], now: Optional[datetime] = None) -> StatusResult:
    """Infer a normalized status from Canpar's flags; Canpar has no status codes."""
    now = now or utcnow()

    status = UNKNOWN_STATUS
    source = "default"
    if fields.get("delivered"):
        status, source = "delivered", "delivered_flag"
    elif fields.get("shipping_date"):
        status, source = "in_transit", "shipping_date"
    elif fields.get("barcode"):
        status, source = "scheduled", "barcode_exists"

    updates = []
    if fields.get("shipping_date"):
        updates.append(TrackingUpdate(
            status="in_transit",
            description="Shipment picked up by Canpar",
            location="",
            timestamp=fields["shipping_date"],
            status_code="PICKUP",
        ))

    actual_delivery = None
    if fields.get("delivered"):
        # Canpar does not report a delivery time
        actual_delivery = now
        signed_by = fields.get("signed_by")
        updates.append(TrackingUpdate(
            status="delivered",
            description=f"Delivered - Signed by: {signed_by}" if signed_by else "Delivered",
            location=fields.get("consignee_address") or "",
            timestamp=now,
            status_code="DELIVERED",
        ))
    updates.sort(key=lambda u: u.timestamp or now, reverse=True)

    return _build_result(
        status,
        carrier="canpar",
        tracking_number=fields.get("barcode"),
        location=(fields.get("consignee_address") or "") if fields.get("delivered") else "",
        tracking_updates=updates,
        estimated_delivery=fields.get("estimated_delivery_date"),
        actual_delivery=actual_delivery,
        raw={
            "carrier": "canpar",
            "statusSource": source,
            "barcode": fields.get("barcode"),
            "delivered": fields.get("delivered"),
            "signedBy": fields.get("signed_by"),
            "serviceType": fields.get("service_description_en"),
            "trackingUrl": fields.get("tracking_url_en"),
        },
    )


class CanparAPI(CarrierAPI):
    """Canpar SOAP tracking (trackByBarcode)."""

    def __init__(
        self,
        username: str,
        password: str,
        host: str = "https://ws.canpar.com",
        endpoint: str = "/CanparAddonsService/trackByBarcode",
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ):
        super().__init__(timeout)
        self.username = username
        self.password = password
        self.url = f"{host.rstrip('/')}/{endpoint.lstrip('/')}"

    def get_carrier_name(self) -> str:
        return "canpar"

    def build_request(self, barcode: str) -> str:
        return CANPAR_SOAP_TEMPLATE.format(
            user_id=escape(self.username),
            password=escape(self.password),
            barcode=escape(barcode),
        )

    async def check_status(self, identifier: str) -> StatusResult:
        """Get shipment status from Canpar."""
        headers = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": "trackByBarcode",
        }

        status, _, body = await self._request(
            "POST", self.url, data=self.build_request(identifier).encode("utf-8"), headers=headers
        )
        self._raise_for_status(status, body)

        result = map_canpar_status(parse_canpar_response(body))
        result.tracking_number = result.tracking_number or identifier
        return result


# ===== Polaris Transportation =====

POLARIS_STATUS_MAP = {
    "BOOKED": "booked",
    "SCHEDULED": "scheduled",
    "PICKUP_SCHEDULED": "scheduled",
    "READY_FOR_PICKUP": "scheduled",
    "PICKED_UP": "in_transit",
    "IN_TRANSIT": "in_transit",
    "OUT_FOR_DELIVERY": "in_transit",
    "ON_TRUCK": "in_transit",
    "AT_TERMINAL": "in_transit",
    "CUSTOMS_CLEARED": "in_transit",
    "CUSTOMS_PROCESSING": "in_transit",
    "DELIVERED": "delivered",
    "COMPLETED": "delivered",
    "POD_RECEIVED": "delivered",
    "CANCELLED": "canceled",
    "CANCELED": "canceled",
    "ON_HOLD": "on_hold",
    "DELAYED": "on_hold",
    "EXCEPTION": "on_hold",
    "DAMAGED": "on_hold",
    "REFUSED": "on_hold",
    "CUSTOMS_HELD": "on_hold",
}

# Markers of the carrier's broken test environment
POLARIS_TEST_ENV_MARKERS = ("javax.jms.ConnectionFactory", "TRACEREST")


def _polaris_unknown(identifier: str, display: str, message: str) -> StatusResult:
    return StatusResult(
        status=UNKNOWN_STATUS,
        status_display=display,
        carrier="polaris",
        tracking_number=identifier,
        message=message,
    )


def parse_polaris_trace(data: dict[str, Any], identifier: str) -> StatusResult:
    """
    Normalize a Polaris ``TRACE_API_Response`` payload.

    "Not found" answers and the test environment's all-null answers map to
    an unknown status instead of an error.
    """
    if data.get("Error"):
        raise ProviderError(f"Polaris API error: {data['Error']}", carrier="polaris")

    trace = data.get("TRACE_API_Response")
    if not isinstance(trace, dict):
        raise ProviderError("Invalid Polaris response - missing TRACE_API_Response", carrier="polaris")
    if trace.get("Error"):
        raise ProviderError(f"Polaris API error: {trace['Error']}", carrier="polaris")

    message = trace.get("Message") or ""
    if "could not be found" in message:
        return _polaris_unknown(identifier, "Not Found", message)
    if not trace.get("Current_Status") and not trace.get("Probill_Number") and not trace.get("Origin"):
        return _polaris_unknown(identifier, "No Data", message or "No tracking data available")

    status = UNKNOWN_STATUS
    current = (trace.get("Current_Status") or "").strip().upper().replace(" ", "_")
    if current in POLARIS_STATUS_MAP:
        status = POLARIS_STATUS_MAP[current]
    elif current:
        logger.warning(f"Unknown Polaris status: {trace.get('Current_Status')}")

    # Delivery / pickup evidence overrides the reported status
    if trace.get("Actual_Delivery") or trace.get("POD_signed_date"):
        status = "delivered"
    elif trace.get("Actual_Pickup") and status == UNKNOWN_STATUS:
        status = "in_transit"

    return _build_result(
        status,
        carrier="polaris",
        tracking_number=trace.get("Probill_Number") or identifier,
        location=trace.get("Current_Location") or "",
        estimated_delivery=trace.get("Deliver_by"),
        actual_delivery=trace.get("Actual_Delivery") or trace.get("POD_signed_date"),
        raw={
            "carrier": "polaris",
            "rawStatus": trace.get("Current_Status"),
            "origin": trace.get("Origin") or "",
            "destination": trace.get("Destination") or "",
            "podSignedBy": trace.get("POD_signed_by"),
            "actualPickup": trace.get("Actual_Pickup"),
        },
    )


class PolarisAPI(CarrierAPI):
    """Polaris Transportation trace API (GET with APIKey and Probill)."""

    def __init__(self, host: str, endpoint: str, api_key: str, timeout: int = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(timeout)
        self.url = f"{host.rstrip('/')}/{endpoint.lstrip('/')}"
        self.api_key = api_key

    def get_carrier_name(self) -> str:
        return "polaris"

    async def check_status(self, identifier: str) -> StatusResult:
        """Get shipment status from Polaris Transportation."""
        status, _, body = await self._request(
            "GET", self.url, params={"APIKey": self.api_key, "Probill": identifier}
        )

        if any(marker in body for marker in POLARIS_TEST_ENV_MARKERS):
            logger.warning(f"Polaris test API unavailable ({status})")
            return _polaris_unknown(identifier, "Test API Unavailable",
                                    "Test API unavailable - status checking works in production")
        self._raise_for_status(status, body)

        if not body.strip():
            return _polaris_unknown(identifier, "No Response", "No tracking data available")

        data = self._load_json(body)
        if not isinstance(data, dict):
            raise ProviderError("Unexpected Polaris response format", carrier="polaris")
        return parse_polaris_trace(data, identifier)


# ===== FedEx / UPS =====

class _OAuthCarrierAPI(CarrierAPI):
    """Client-credentials OAuth token handling shared by FedEx and UPS."""

    AUTH_URL = ""

    def __init__(self, client_id: str, client_secret: str, timeout: int = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(timeout)
        self.client_id = client_id
        self.client_secret = client_secret
        self._access_token: Optional[str] = None
        self._token_expires: Optional[datetime] = None

    def _token_request(self) -> tuple[dict, dict]:
        """Form data and headers for the token request."""
        raise NotImplementedError

    async def _get_access_token(self) -> str:
        """Get or refresh OAuth access token."""
        if self._access_token and self._token_expires and utcnow() < self._token_expires:
            return self._access_token

        data, headers = self._token_request()
        status, _, body = await self._request("POST", self.AUTH_URL, data=data, headers=headers)
        self._raise_for_status(status, body)
        if status != 200:
            raise ProviderError(f"{self.get_carrier_name()} auth failed - {status}", carrier=self.get_carrier_name())

        result = self._load_json(body)
        self._access_token = result["access_token"]
        # Refresh a minute before the token expires
        self._token_expires = utcnow() + timedelta(seconds=int(result.get("expires_in", 3600)) - 60)
        return self._access_token


FEDEX_STATUS_MAP = {
    "DE": "delivered",
    "IT": "in_transit",
    "PU": "in_transit",
    "OD": "out_for_delivery",
    "EX": "on_hold",
}


def parse_fedex_response(tracking_number: str, data: dict) -> StatusResult:
    """Parse a FedEx Track API response."""
    results = data.get("output", {}).get("completeTrackResults", [])
    if not results:
        return _build_result(UNKNOWN_STATUS, carrier="fedex", tracking_number=tracking_number,
                             message="No FedEx tracking results")

    track_result = (results[0].get("trackResults") or [{}])[0]
    latest = track_result.get("latestStatusDetail", {})
    status = FEDEX_STATUS_MAP.get(latest.get("code", ""), UNKNOWN_STATUS)

    actual_delivery = None
    estimated_delivery = None
    for dt in track_result.get("dateAndTimes", []):
        if dt.get("type") == "ACTUAL_DELIVERY":
            actual_delivery = dt.get("dateTime")
        elif dt.get("type") == "ESTIMATED_DELIVERY":
            estimated_delivery = dt.get("dateTime")

    updates = []
    for scan in track_result.get("scanEvents", []):
        location = scan.get("scanLocation", {})
        updates.append(TrackingUpdate(
            status=FEDEX_STATUS_MAP.get(scan.get("derivedStatusCode", "")),
            description=scan.get("eventDescription"),
            location=", ".join(p for p in (location.get("city"), location.get("stateOrProvinceCode")) if p),
            timestamp=scan.get("date"),
            status_code=scan.get("eventType"),
        ))

    scan_location = latest.get("scanLocation", {})
    return _build_result(
        status,
        carrier="fedex",
        tracking_number=tracking_number,
        location=", ".join(p for p in (scan_location.get("city"), scan_location.get("stateOrProvinceCode")) if p),
        tracking_updates=updates,
        estimated_delivery=estimated_delivery,
        actual_delivery=actual_delivery,
        message=latest.get("description"),
        raw={"carrier": "fedex", "statusCode": latest.get("code")},
    )


class FedExAPI(_OAuthCarrierAPI):
    """
    FedEx Track API integration.

    Requires FedEx Developer credentials:
    - Client ID
    - Client Secret
    """

    AUTH_URL = "https://apis.fedex.com/oauth/token"
    TRACK_URL = "https://apis.fedex.com/track/v1/trackingnumbers"

    def __init__(self, client_id: str, client_secret: str, account_number: str = "",
                 timeout: int = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(client_id, client_secret, timeout)
        self.account_number = account_number

    def get_carrier_name(self) -> str:
        return "fedex"

    def _token_request(self) -> tuple[dict, dict]:
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        return data, {"Content-Type": "application/x-www-form-urlencoded"}

    async def check_status(self, identifier: str) -> StatusResult:
        """Get tracking information from FedEx."""
        token = await self._get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "X-locale": "en_US",
        }
        payload = {
            "includeDetailedScans": True,
            "trackingInfo": [{"trackingNumberInfo": {"trackingNumber": identifier}}],
        }

        status, _, body = await self._request("POST", self.TRACK_URL, data=orjson.dumps(payload), headers=headers)
        self._raise_for_status(status, body)
        return parse_fedex_response(identifier, self._load_json(body))


UPS_STATUS_MAP = {
    "D": "delivered",
    "I": "in_transit",
    "P": "in_transit",
    "M": "booked",
    "X": "on_hold",
}


def parse_ups_response(tracking_number: str, data: dict) -> StatusResult:
    """Parse a UPS Tracking API response."""
    shipment = (data.get("trackResponse", {}).get("shipment") or [{}])[0]
    package = (shipment.get("package") or [{}])[0]
    activities = package.get("activity") or []
    if not activities:
        return _build_result(UNKNOWN_STATUS, carrier="ups", tracking_number=tracking_number,
                             message="No UPS tracking activity")

    def _when(activity: dict) -> Optional[str]:
        date, time = activity.get("date"), activity.get("time") or "000000"
        if not date:
            return None
        return f"{date[:4]}-{date[4:6]}-{date[6:8]}T{time[:2]}:{time[2:4]}:{time[4:6]}"

    def _where(activity: dict) -> str:
        address = activity.get("location", {}).get("address", {})
        return ", ".join(p for p in (address.get("city"), address.get("stateProvince")) if p)

    updates = [
        TrackingUpdate(
            status=UPS_STATUS_MAP.get(a.get("status", {}).get("type", "")),
            description=a.get("status", {}).get("description"),
            location=_where(a),
            timestamp=_when(a),
            status_code=a.get("status", {}).get("code"),
        )
        for a in activities
    ]

    latest = activities[0]
    status = UPS_STATUS_MAP.get(latest.get("status", {}).get("type", ""), UNKNOWN_STATUS)
    return _build_result(
        status,
        carrier="ups",
        tracking_number=tracking_number,
        location=_where(latest),
        tracking_updates=updates,
        actual_delivery=_when(latest) if status == "delivered" else None,
        message=latest.get("status", {}).get("description"),
        raw={"carrier": "ups", "statusType": latest.get("status", {}).get("type")},
    )


class UPSAPI(_OAuthCarrierAPI):
    """
    UPS Tracking API integration.

    Requires UPS Developer credentials:
    - Client ID
    - Client Secret
    """

    AUTH_URL = "https://onlinetools.ups.com/security/v1/oauth/token"
    TRACK_URL = "https://onlinetools.ups.com/api/track/v1/details"

    def get_carrier_name(self) -> str:
        return "ups"

    def _token_request(self) -> tuple[dict, dict]:
        credentials = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        headers = {
            "Authorization": f"Basic {credentials}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        return {"grant_type": "client_credentials"}, headers

    async def check_status(self, identifier: str) -> StatusResult:
        """Get tracking information from UPS."""
        token = await self._get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "transId": f"track-{identifier}",
            "transactionSrc": "Shipwatch",
        }

        status, _, body = await self._request("GET", f"{self.TRACK_URL}/{identifier}", headers=headers)
        self._raise_for_status(status, body)
        return parse_ups_response(identifier, self._load_json(body))


class StubCarrierAPI(CarrierAPI):
    """
    Carrier without configured credentials.
    Answers every check with an unknown status and an explanation.
    """

    def __init__(self, carrier_name: str):
        super().__init__()
        self._carrier_name = carrier_name

    def get_carrier_name(self) -> str:
        return self._carrier_name

    async def check_status(self, identifier: str) -> StatusResult:
        return StatusResult(
            status="Unknown",
            status_display="Unknown",
            carrier=self._carrier_name,
            tracking_number=identifier,
            message=f"No API configured for {self._carrier_name}",
        )
