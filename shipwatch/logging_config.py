"""
Logging configuration for the Shipwatch poller.
Uses loguru; every poll record carries the shipment and carrier it concerns.
"""

import sys
from pathlib import Path
from loguru import logger

from shipwatch.config import PollerConfig


# Values shown for records logged outside a shipment's poll
NO_SHIPMENT = "-"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[shipment_id]}</magenta> <dim>{extra[carrier]}</dim> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "shipment={extra[shipment_id]} carrier={extra[carrier]} | "
    "{name}:{function}:{line} | {message}"
)


def _is_poll_record(record) -> bool:
    return record["extra"].get("shipment_id", NO_SHIPMENT) != NO_SHIPMENT


def setup_logging(config: PollerConfig, console: bool = True) -> None:
    """
    Configure logging for the poller.

    Sinks:
    - console (optional, colored)
    - ``log_file``: everything at ``log_level``
    - ``error.log``: errors only
    - ``polls.jsonl``: one JSON record per poll message, for replaying a
      shipment's poll history

    Args:
        config: Poller configuration
        console: Whether to output to console (disable when run by a supervisor)
    """
    logger.remove()
    logger.configure(extra={"shipment_id": NO_SHIPMENT, "carrier": NO_SHIPMENT})

    if console:
        logger.add(sys.stdout, format=CONSOLE_FORMAT, level=config.log_level, colorize=True)

    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.add(
        str(log_path),
        format=FILE_FORMAT,
        level=config.log_level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        enqueue=True,
    )

    logger.add(
        str(log_path.parent / "error.log"),
        format=FILE_FORMAT,
        level="ERROR",
        rotation="10 MB",
        retention="60 days",
        compression="zip",
        enqueue=True,
    )

    logger.add(
        str(log_path.parent / "polls.jsonl"),
        level=config.log_level,
        filter=_is_poll_record,
        serialize=True,
        rotation="1 day",
        retention="14 days",
        enqueue=True,
    )

    logger.info(f"Logging initialized - Level: {config.log_level}, File: {log_path}")


class ShipmentLogger:
    """Logger bound to one shipment's poll."""

    def __init__(self, shipment_id: str, carrier: str = ""):
        self.shipment_id = shipment_id
        self.carrier = carrier
        self._logger = logger.bind(shipment_id=shipment_id, carrier=carrier or NO_SHIPMENT)

    def with_carrier(self, carrier: str) -> "ShipmentLogger":
        """Same shipment, once its carrier is resolved."""
        return ShipmentLogger(self.shipment_id, carrier)

    def info(self, message: str, **kwargs):
        self._logger.info(message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._logger.debug(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self._logger.error(message, **kwargs)

    def exception(self, message: str, **kwargs):
        self._logger.exception(message, **kwargs)
