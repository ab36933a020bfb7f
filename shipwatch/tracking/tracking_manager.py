"""
Tracking Manager.
Routes status checks to the provider adapter registered for a carrier.
"""

from typing import Optional
from loguru import logger

from shipwatch.config import PollerConfig
from shipwatch.models import CARRIER_DISPLAY_NAMES, CarrierId, CarrierResolution, StatusResult
from shipwatch.tracking.carrier_api import (
    CanparAPI,
    CarrierAPI,
    EShipPlusAPI,
    FedExAPI,
    PolarisAPI,
    StubCarrierAPI,
    UPSAPI,
)


class TrackingManager:
    """
    Adapter registry keyed by carrier identity.

    Carriers without credentials get a stub adapter that reports an
    unknown status, so a poll of such a shipment is a completed attempt
    rather than an error.
    """

    def __init__(self, config: Optional[PollerConfig] = None, adapters: Optional[dict[CarrierId, CarrierAPI]] = None):
        self.config = config
        self._carriers: dict[CarrierId, CarrierAPI] = {}

        if config is not None:
            self._initialize_carriers()
        for carrier, adapter in (adapters or {}).items():
            self.register(carrier, adapter)

    def _initialize_carriers(self):
        """Initialize carrier APIs from config."""
        config = self.config
        timeout = config.provider_timeout_seconds

        # eShipPlus
        if config.eshipplus_host and config.eshipplus_username:
            self._carriers[CarrierId.ESHIPPLUS] = EShipPlusAPI(
                host=config.eshipplus_host,
                endpoint=config.eshipplus_status_endpoint,
                username=config.eshipplus_username,
                password=config.eshipplus_password,
                access_key=config.eshipplus_access_key,
                access_code=config.eshipplus_access_code,
                timeout=timeout,
            )
            logger.info("eShipPlus API configured")

        # Canpar
        if config.canpar_username and config.canpar_password:
            self._carriers[CarrierId.CANPAR] = CanparAPI(
                username=config.canpar_username,
                password=config.canpar_password,
                host=config.canpar_host,
                endpoint=config.canpar_tracking_endpoint,
                timeout=timeout,
            )
            logger.info("Canpar API configured")

        # Polaris
        if config.polaris_host and config.polaris_api_key:
            self._carriers[CarrierId.POLARIS] = PolarisAPI(
                host=config.polaris_host,
                endpoint=config.polaris_tracking_endpoint,
                api_key=config.polaris_api_key,
                timeout=timeout,
            )
            logger.info("Polaris Transportation API configured")

        # FedEx
        if config.fedex_client_id and config.fedex_client_secret:
            self._carriers[CarrierId.FEDEX] = FedExAPI(
                client_id=config.fedex_client_id,
                client_secret=config.fedex_client_secret,
                account_number=config.fedex_account_number,
                timeout=timeout,
            )
            logger.info("FedEx API configured")

        # UPS
        if config.ups_client_id and config.ups_client_secret:
            self._carriers[CarrierId.UPS] = UPSAPI(
                client_id=config.ups_client_id,
                client_secret=config.ups_client_secret,
                timeout=timeout,
            )
            logger.info("UPS API configured")

    def register(self, carrier: CarrierId, adapter: CarrierAPI):
        self._carriers[CarrierId(carrier)] = adapter

    def is_configured(self, carrier: CarrierId) -> bool:
        return CarrierId(carrier) in self._carriers

    def configured_carriers(self) -> list[CarrierId]:
        return list(self._carriers)

    def adapter_for(self, carrier: CarrierId) -> CarrierAPI:
        """Adapter for a carrier, or a stub when none is configured."""
        carrier = CarrierId(carrier)
        adapter = self._carriers.get(carrier)
        if adapter is None:
            adapter = StubCarrierAPI(CARRIER_DISPLAY_NAMES.get(carrier, carrier.value))
        return adapter

    async def check_status(self, resolution: CarrierResolution) -> StatusResult:
        """Query the carrier's status provider for a resolved shipment."""
        resolution.ensure_pollable()
        adapter = self.adapter_for(resolution.carrier)

        logger.debug(f"Checking {adapter.get_carrier_name()} status for {resolution.tracking_identifier}")
        result = await adapter.check_status(resolution.tracking_identifier)

        if not result.carrier:
            result.carrier = adapter.get_carrier_name()
        return result
