"""
Core poller service that wires the stores, carriers and sweep scheduler together.
This is the main entry point for the long-running poller.
"""

import asyncio
import signal
import sys
from datetime import datetime
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from shipwatch import __version__
from shipwatch.config import PollerConfig, init_config
from shipwatch.errors import ConfigurationError, SweepLevelError
from shipwatch.events.event_log import EventLog
from shipwatch.logging_config import setup_logging
from shipwatch.models import SweepReport, utcnow
from shipwatch.scheduler import PollScheduler
from shipwatch.store import EventStore, ShipmentStore, create_stores
from shipwatch.tracking.tracking_manager import TrackingManager


class ShipwatchService:
    """
    Main poller service class.

    Runs one sweep every ``poll_interval_minutes``. APScheduler never starts
    a sweep while the previous one is still running, and a sweep that
    overruns its wall-clock budget is cancelled.
    """

    def __init__(
        self,
        config: Optional[PollerConfig] = None,
        shipments: Optional[ShipmentStore] = None,
        events: Optional[EventStore] = None,
        tracking: Optional[TrackingManager] = None,
    ):
        self.config = config or init_config()

        if shipments is None or events is None:
            shipments, events = create_stores(self.config)
        self.shipments = shipments
        self.events = events
        self.tracking = tracking or TrackingManager(self.config)

        self.scheduler = PollScheduler(
            shipments=self.shipments,
            event_log=EventLog.from_config(self.events, self.config),
            tracking=self.tracking,
            config=self.config,
        )

        # State
        self._running = False
        self._started_at: Optional[datetime] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._job_scheduler: Optional[AsyncIOScheduler] = None
        self.sweeps_run = 0
        self.sweeps_failed = 0
        self.last_report: Optional[SweepReport] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def _validate_config(self):
        problems = self.config.validate()
        errors = [p for p in problems if not p.startswith("Warning:")]
        for problem in problems:
            if problem in errors:
                logger.error(f"Config error: {problem}")
            else:
                logger.warning(problem)
        if errors:
            raise ConfigurationError("Invalid configuration")

    async def run_sweep(self) -> Optional[SweepReport]:
        """Run one sweep within its wall-clock budget."""
        try:
            report = await asyncio.wait_for(self.scheduler.sweep(), timeout=self.config.sweep_budget_seconds)
        except asyncio.TimeoutError:
            self.sweeps_failed += 1
            logger.error(f"Sweep exceeded its {self.config.sweep_budget_seconds}s budget and was cancelled")
            return None
        except SweepLevelError as e:
            self.sweeps_failed += 1
            logger.error(f"Sweep aborted: {e}")
            return None

        self.sweeps_run += 1
        self.last_report = report
        return report

    async def start(self):
        """Start the poller service."""
        logger.info(f"Starting Shipwatch poller v{__version__}")
        logger.info(f"Poller ID: {self.config.poller_id}")

        self._validate_config()

        configured = ", ".join(c.value for c in self.tracking.configured_carriers()) or "none"
        logger.info(f"Carrier APIs configured: {configured}")

        self._running = True
        self._started_at = utcnow()
        self._stop_event = asyncio.Event()

        self._job_scheduler = AsyncIOScheduler(timezone="UTC")
        self._job_scheduler.add_job(
            self.run_sweep,
            "interval",
            minutes=self.config.poll_interval_minutes,
            id="shipment-sweep",
            max_instances=1,
            coalesce=True,
            next_run_time=utcnow(),
        )
        self._job_scheduler.start()

        logger.info(f"Poller started, sweeping every {self.config.poll_interval_minutes} minute(s)")
        await self._stop_event.wait()

    async def stop(self):
        """Stop the poller service."""
        logger.info("Stopping poller...")
        self._running = False

        if self._job_scheduler and self._job_scheduler.running:
            self._job_scheduler.shutdown(wait=False)

        await self.shipments.close()
        await self.events.close()

        if self._stop_event:
            self._stop_event.set()

        logger.info("Poller stopped")

    def run(self):
        """Run the poller (blocking)."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        def signal_handler():
            logger.info("Received shutdown signal")
            loop.create_task(self.stop())

        try:
            if sys.platform != "win32":
                loop.add_signal_handler(signal.SIGTERM, signal_handler)
                loop.add_signal_handler(signal.SIGINT, signal_handler)
        except NotImplementedError:
            pass

        try:
            loop.run_until_complete(self.start())
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")
            loop.run_until_complete(self.stop())
        finally:
            loop.close()


async def sweep_once(config: PollerConfig) -> Optional[SweepReport]:
    """Run a single sweep and release the stores."""
    service = ShipwatchService(config)
    try:
        return await service.run_sweep()
    finally:
        await service.shipments.close()
        await service.events.close()


def run_service(config_file: Optional[str] = None):
    """
    Run the Shipwatch poller.

    Args:
        config_file: Path to configuration file
    """
    config = init_config(config_file)
    setup_logging(config, console=True)

    service = ShipwatchService(config)
    service.run()
