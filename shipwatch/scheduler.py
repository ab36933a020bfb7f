"""
Poll scheduler.
One sweep selects the active shipments that are due, checks each with its
carrier and records what changed.
"""

import asyncio
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from loguru import logger
from pydantic import ValidationError

from shipwatch.config import PollerConfig
from shipwatch.errors import (
    DataIntegrityWarning,
    EventLogWriteError,
    ProviderError,
    StoreError,
    SweepLevelError,
    TransientProviderError,
    UnsupportedCarrierError,
)
from shipwatch.events.event_log import POLLING_REASON, EventLog
from shipwatch.logging_config import ShipmentLogger
from shipwatch.models import (
    CarrierResolution,
    Shipment,
    StatusResult,
    SweepReport,
    canonical_status,
    ensure_aware,
    is_terminal_status,
    parse_datetime,
    utcnow,
)
from shipwatch.store.base import ShipmentStore
from shipwatch.tracking.policy import EligibilityPolicy
from shipwatch.tracking.resolver import resolve
from shipwatch.tracking.tracking_manager import TrackingManager


class PollOutcome(str, Enum):
    """Result of one shipment's poll."""
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    ERRORED = "errored"


class PollScheduler:
    """
    Sweep engine.

    Batches run one after another; members of a batch run concurrently.
    Every shipment's writes are committed on their own, so a sweep that is
    cut short leaves consistent state behind.
    """

    def __init__(
        self,
        shipments: ShipmentStore,
        event_log: EventLog,
        tracking: TrackingManager,
        config: Optional[PollerConfig] = None,
        policy: Optional[EligibilityPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
        timer: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or PollerConfig()
        self.shipments = shipments
        self.event_log = event_log
        self.tracking = tracking
        self.policy = policy or EligibilityPolicy.from_config(self.config)

        self.batch_size = max(1, self.config.batch_size)
        self.batch_pause = self.config.batch_pause_seconds
        self.budget_seconds = self.config.sweep_budget_seconds
        self.creation_grace = timedelta(minutes=self.config.creation_grace_minutes)
        self.poll_floor = timedelta(minutes=self.config.poll_floor_minutes)
        self.active_statuses = list(self.config.active_statuses)

        self._clock = clock
        self._timer = timer
        self._sleep = sleep

    # ===== Sweep =====

    async def _query_candidates(self, now: datetime) -> list[dict[str, Any]]:
        try:
            documents = await self.shipments.query(self.active_statuses)
        except Exception as e:
            raise SweepLevelError(f"Candidate query failed: {e}") from e

        # Shipments created moments ago are still being booked
        cutoff = now - self.creation_grace
        candidates = []
        for document in documents:
            if is_terminal_status(document.get("status")):
                continue
            created_at = parse_datetime(document.get("createdAt")) or now
            if created_at < cutoff:
                candidates.append(document)
        return candidates

    async def sweep(self) -> SweepReport:
        """
        Run one sweep over all active shipments.

        Raises:
            SweepLevelError: the candidate query failed
        """
        now = ensure_aware(self._clock())
        started = self._timer()
        report = SweepReport(timestamp=now)

        candidates = await self._query_candidates(now)
        report.candidates = len(candidates)
        logger.info(f"Sweep started: {len(candidates)} candidate shipment(s)")

        for i in range(0, len(candidates), self.batch_size):
            if i > 0:
                if self._timer() - started >= self.budget_seconds:
                    report.truncated = True
                    logger.warning(
                        f"Sweep budget of {self.budget_seconds}s spent, "
                        f"{len(candidates) - i} candidate(s) left for the next sweep"
                    )
                    break
                if self.batch_pause > 0:
                    await self._sleep(self.batch_pause)

            batch = candidates[i:i + self.batch_size]
            results = await asyncio.gather(
                *(self._poll_document(document, now, report) for document in batch),
                return_exceptions=True,
            )

            for document, result in zip(batch, results):
                report.processed += 1
                if isinstance(result, Exception):
                    logger.error(f"Unhandled error polling {document.get('id')}: {result}")
                    report.errored += 1
                    report.errors[str(document.get("id"))] = str(result)
                elif result == PollOutcome.UPDATED:
                    report.updated += 1
                elif result == PollOutcome.SKIPPED:
                    report.skipped += 1
                elif result == PollOutcome.ERRORED:
                    report.errored += 1

        report.duration_ms = int((self._timer() - started) * 1000)
        logger.info(
            f"Sweep complete: processed {report.processed}, updated {report.updated}, "
            f"errors {report.errored}, skipped {report.skipped} ({report.duration_ms} ms)"
        )
        return report

    # ===== Per-shipment =====

    def _floor_blocks(self, shipment: Shipment, now: datetime) -> bool:
        """After a failed attempt, wait at least the floor interval before retrying."""
        if not shipment.last_poll_error or shipment.last_status_poll is None:
            return False
        return now - ensure_aware(shipment.last_status_poll) < self.poll_floor

    async def _poll_document(self, document: dict[str, Any], now: datetime, report: SweepReport) -> PollOutcome:
        try:
            shipment = Shipment.from_document(document)
        except ValidationError as e:
            # Same retry floor as a failed poll
            last_poll = parse_datetime(document.get("lastStatusPoll"))
            if document.get("lastPollError") and last_poll and now - last_poll < self.poll_floor:
                return PollOutcome.SKIPPED
            logger.error(f"Shipment {document.get('id')} has an invalid document: {e}")
            report.errors[str(document.get("id"))] = "invalid shipment document"
            await self._record_document_error(document, e, now)
            return PollOutcome.ERRORED

        outcome, error = await self.poll_shipment(shipment, now)
        if error:
            report.errors[shipment.label] = error
        return outcome

    async def poll_shipment(
        self,
        shipment: Shipment,
        now: Optional[datetime] = None,
        force: bool = False,
    ) -> tuple[PollOutcome, Optional[str]]:
        """
        Poll one shipment and commit the result.

        Args:
            shipment: The shipment to check
            now: Sweep time (defaults to the clock)
            force: Ignore the polling intervals (manual overrides still apply)

        Returns:
            (outcome, error message)
        """
        now = ensure_aware(now or self._clock())
        log = ShipmentLogger(shipment.label)

        if shipment.manual_override:
            log.debug("Manual status override set, not polling")
            return PollOutcome.SKIPPED, None

        if not force and (not self.policy.should_poll(shipment, now) or self._floor_blocks(shipment, now)):
            return PollOutcome.SKIPPED, None

        resolution = resolve(shipment)
        log = log.with_carrier(resolution.carrier_name)
        try:
            resolution.ensure_pollable()
        except UnsupportedCarrierError as e:
            log.debug(str(e))
            return PollOutcome.SKIPPED, None
        except DataIntegrityWarning as e:
            log.warning(f"Cannot poll: {e}")
            return PollOutcome.SKIPPED, None

        try:
            result = await self.tracking.check_status(resolution)
            changed = await self._apply_result(shipment, resolution, result, now, log)
        except TransientProviderError as e:
            log.warning(f"{resolution.carrier_name} temporarily unavailable: {e}")
            await self._record_error(shipment, e, now, log)
            return PollOutcome.ERRORED, str(e)
        except (ProviderError, StoreError) as e:
            log.error(f"Poll failed: {e}")
            await self._record_error(shipment, e, now, log)
            return PollOutcome.ERRORED, str(e)
        except Exception as e:
            log.exception(f"Unexpected error while polling: {e}")
            await self._record_error(shipment, e, now, log)
            return PollOutcome.ERRORED, str(e)

        return (PollOutcome.UPDATED if changed else PollOutcome.UNCHANGED), None

    async def _apply_result(
        self,
        shipment: Shipment,
        resolution: CarrierResolution,
        result: StatusResult,
        now: datetime,
        log: ShipmentLogger,
    ) -> bool:
        """Commit a provider answer. Returns True when the status changed."""
        new_status = canonical_status(result.status)

        if result.is_unknown or new_status == canonical_status(shipment.status):
            if result.is_unknown and result.message:
                log.debug(f"No status from {resolution.carrier_name}: {result.message}")
            await self.shipments.update(shipment.id, {
                "lastStatusPoll": now,
                "statusLastChecked": now,
                "lastPollError": None,
            })
            return False

        await self.shipments.update(shipment.id, {
            "status": new_status,
            "statusLastChecked": now,
            "lastStatusPoll": now,
            "carrierTrackingData": self._tracking_data(resolution, result, now),
            "estimatedDelivery": result.estimated_delivery or shipment.estimated_delivery,
            "actualDelivery": result.actual_delivery or shipment.actual_delivery,
            "lastPollError": None,
        })
        log.info(f"Status changed: {shipment.status} -> {new_status}")

        # Timeline writes are best-effort, the status update above stands
        try:
            await self.event_log.append_status_change(
                shipment.id,
                shipment.status,
                new_status,
                reason=POLLING_REASON,
                carrier=resolution.carrier_name,
            )
            await self.event_log.append_tracking_updates(
                shipment.id,
                result.tracking_updates,
                carrier=resolution.carrier_name,
            )
        except EventLogWriteError as e:
            log.error(f"Event log write failed: {e}")

        return True

    @staticmethod
    def _tracking_data(resolution: CarrierResolution, result: StatusResult, now: datetime) -> dict[str, Any]:
        return {
            "carrier": resolution.carrier_name,
            "trackingNumber": result.tracking_number or resolution.tracking_identifier,
            "status": canonical_status(result.status),
            "statusDisplay": result.status_display,
            "location": result.location,
            "message": result.message,
            "lastChecked": now.isoformat(),
            "trackingUpdates": [u.model_dump(mode="json") for u in result.tracking_updates],
            "raw": result.raw,
        }

    async def _record_error(self, shipment: Shipment, error: Exception, now: datetime, log: ShipmentLogger):
        try:
            await self.shipments.update(shipment.id, {
                "lastStatusPoll": now,
                "lastPollError": str(error) or error.__class__.__name__,
            })
        except Exception as e:
            log.error(f"Failed to record poll error: {e}")

    async def _record_document_error(self, document: dict[str, Any], error: ValidationError, now: datetime):
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in error.errors()) or "document"
        try:
            await self.shipments.update(document["id"], {
                "lastStatusPoll": now,
                "lastPollError": f"Invalid shipment document: {fields}",
            })
        except Exception as e:
            logger.error(f"Failed to record poll error for {document.get('id')}: {e}")
