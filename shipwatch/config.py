"""
Configuration management for the Shipwatch poller.
Handles loading settings from environment variables and config files.
"""

import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

from shipwatch.models import ACTIVE_STATUSES


STORE_BACKENDS = ("memory", "json", "http")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class PollerConfig:
    """Main configuration class for the Shipwatch poller."""

    # Identity
    poller_id: str = "shipwatch-poller-001"

    # Sweep cadence
    poll_interval_minutes: int = 5
    batch_size: int = 10
    batch_pause_seconds: float = 2.0
    sweep_budget_seconds: int = 540  # 9 minutes
    active_statuses: list[str] = field(default_factory=lambda: list(ACTIVE_STATUSES))

    # Eligibility
    creation_grace_minutes: int = 5
    freight_interval_hours: float = 12
    in_transit_interval_minutes: float = 10
    default_interval_hours: float = 6
    poll_floor_minutes: float = 15

    # Event dedup
    status_dedup_window_minutes: int = 60
    status_dedup_lookback: int = 5
    tracking_dedup_window_seconds: int = 60
    tracking_dedup_lookback: int = 10

    # Providers
    provider_timeout_seconds: int = 30

    # Store backend: memory | json | http
    store_backend: str = "json"
    backend_api_url: str = ""
    backend_api_key: str = ""

    # === Carrier API Credentials ===
    # eShipPlus
    eshipplus_host: str = ""
    eshipplus_status_endpoint: str = "/api/shipment/status"
    eshipplus_username: str = ""
    eshipplus_password: str = ""
    eshipplus_access_key: str = ""
    eshipplus_access_code: str = ""

    # Canpar
    canpar_host: str = "https://ws.canpar.com"
    canpar_tracking_endpoint: str = "/CanparAddonsService/trackByBarcode"
    canpar_username: str = ""
    canpar_password: str = ""

    # Polaris Transportation
    polaris_host: str = ""
    polaris_tracking_endpoint: str = "/api/trace"
    polaris_api_key: str = ""

    # FedEx
    fedex_client_id: str = ""
    fedex_client_secret: str = ""
    fedex_account_number: str = ""

    # UPS
    ups_client_id: str = ""
    ups_client_secret: str = ""

    # Logging
    log_level: str = "INFO"
    log_file: str = "logs/shipwatch.log"

    # Runtime paths
    data_dir: Path = field(default_factory=lambda: Path("data"))

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "PollerConfig":
        """Load configuration from environment variables."""

        # Try to load from .env file
        if env_file:
            load_dotenv(env_file)
        else:
            # Try common locations
            for env_path in ["config.env", ".env", "../config.env"]:
                if Path(env_path).exists():
                    load_dotenv(env_path)
                    break

        statuses_str = os.getenv("POLL_ACTIVE_STATUSES", "")
        statuses = [s.strip() for s in statuses_str.split(",") if s.strip()] or list(ACTIVE_STATUSES)

        return cls(
            poller_id=os.getenv("POLLER_ID", "shipwatch-poller-001"),

            # Cadence
            poll_interval_minutes=int(os.getenv("POLL_INTERVAL_MINUTES", "5")),
            batch_size=int(os.getenv("POLL_BATCH_SIZE", "10")),
            batch_pause_seconds=float(os.getenv("POLL_BATCH_PAUSE_SECONDS", "2")),
            sweep_budget_seconds=int(os.getenv("POLL_SWEEP_BUDGET_SECONDS", "540")),
            active_statuses=statuses,

            # Eligibility
            creation_grace_minutes=int(os.getenv("POLL_CREATION_GRACE_MINUTES", "5")),
            freight_interval_hours=float(os.getenv("POLL_FREIGHT_INTERVAL_HOURS", "12")),
            in_transit_interval_minutes=float(os.getenv("POLL_IN_TRANSIT_INTERVAL_MINUTES", "10")),
            default_interval_hours=float(os.getenv("POLL_DEFAULT_INTERVAL_HOURS", "6")),
            poll_floor_minutes=float(os.getenv("POLL_FLOOR_MINUTES", "15")),

            # Dedup
            status_dedup_window_minutes=int(os.getenv("STATUS_DEDUP_WINDOW_MINUTES", "60")),
            status_dedup_lookback=int(os.getenv("STATUS_DEDUP_LOOKBACK", "5")),
            tracking_dedup_window_seconds=int(os.getenv("TRACKING_DEDUP_WINDOW_SECONDS", "60")),
            tracking_dedup_lookback=int(os.getenv("TRACKING_DEDUP_LOOKBACK", "10")),

            provider_timeout_seconds=int(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30")),

            # Store
            store_backend=os.getenv("STORE_BACKEND", "json").lower(),
            backend_api_url=os.getenv("BACKEND_API_URL", ""),
            backend_api_key=os.getenv("BACKEND_API_KEY", ""),

            # eShipPlus
            eshipplus_host=os.getenv("ESHIPPLUS_HOST", ""),
            eshipplus_status_endpoint=os.getenv("ESHIPPLUS_STATUS_ENDPOINT", "/api/shipment/status"),
            eshipplus_username=os.getenv("ESHIPPLUS_USERNAME", ""),
            eshipplus_password=os.getenv("ESHIPPLUS_PASSWORD", ""),
            eshipplus_access_key=os.getenv("ESHIPPLUS_ACCESS_KEY", ""),
            eshipplus_access_code=os.getenv("ESHIPPLUS_ACCESS_CODE", ""),

            # Canpar
            canpar_host=os.getenv("CANPAR_HOST", "https://ws.canpar.com"),
            canpar_tracking_endpoint=os.getenv("CANPAR_TRACKING_ENDPOINT", "/CanparAddonsService/trackByBarcode"),
            canpar_username=os.getenv("CANPAR_USERNAME", ""),
            canpar_password=os.getenv("CANPAR_PASSWORD", ""),

            # Polaris
            polaris_host=os.getenv("POLARIS_HOST", ""),
            polaris_tracking_endpoint=os.getenv("POLARIS_TRACKING_ENDPOINT", "/api/trace"),
            polaris_api_key=os.getenv("POLARIS_API_KEY", ""),

            # FedEx
            fedex_client_id=os.getenv("FEDEX_CLIENT_ID", ""),
            fedex_client_secret=os.getenv("FEDEX_CLIENT_SECRET", ""),
            fedex_account_number=os.getenv("FEDEX_ACCOUNT_NUMBER", ""),

            # UPS
            ups_client_id=os.getenv("UPS_CLIENT_ID", ""),
            ups_client_secret=os.getenv("UPS_CLIENT_SECRET", ""),

            # Logging
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", "logs/shipwatch.log"),

            data_dir=Path(os.getenv("DATA_DIR", "data")),
        )

    def ensure_directories(self):
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.store_backend not in STORE_BACKENDS:
            errors.append(f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}")
        if self.store_backend == "http" and not self.backend_api_url:
            errors.append("BACKEND_API_URL is required for the http store")

        if self.batch_size < 1:
            errors.append("POLL_BATCH_SIZE must be at least 1")
        if self.poll_interval_minutes < 1:
            errors.append("POLL_INTERVAL_MINUTES must be at least 1")
        if self.sweep_budget_seconds <= 0:
            errors.append("POLL_SWEEP_BUDGET_SECONDS must be positive")

        # Carriers - warnings only, unconfigured carriers fall back to stubs
        if not self.eshipplus_host:
            errors.append("Warning: ESHIPPLUS_HOST not configured - eShipPlus polling disabled")
        if not self.polaris_host:
            errors.append("Warning: POLARIS_HOST not configured - Polaris polling disabled")

        return errors


# Global config instance
_config: Optional[PollerConfig] = None


def get_config() -> PollerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = PollerConfig.from_env()
    return _config


def init_config(env_file: Optional[str] = None) -> PollerConfig:
    """Initialize configuration from environment."""
    global _config
    _config = PollerConfig.from_env(env_file)
    _config.ensure_directories()
    return _config
