"""
Nudge Refresh Job for periodic reconciliation of reserved reminders.
Runs as a background job so reminders keep rolling forward even when no
client trigger (app foregrounded, contact edited) arrives.
"""

import asyncio
from datetime import UTC, datetime, timedelta

from app.config import settings
from app.features.nudges.services.refresh_service import (
    NudgeRefreshError,
    NudgeRefreshService,
    nudge_refresh_service,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

RETRY_DELAY_SECONDS = 60


class NudgeRefreshJob:
    """
    Background job that runs a full refresh on a fixed interval.

    The full refresh is idempotent for unchanged inputs, so a missed or
    overlapping cycle is harmless; overlapping cycles are skipped.
    """

    def __init__(self, service: NudgeRefreshService | None = None, interval_minutes: int | None = None):
        self.service = service or nudge_refresh_service
        self.interval_minutes = interval_minutes or settings.NUDGE_REFRESH_INTERVAL_MINUTES
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.last_result: dict | None = None
        self._validate_config()

    def _validate_config(self) -> None:
        if self.interval_minutes < 5:
            logger.warning("Nudge refresh interval is very short", interval_minutes=self.interval_minutes)

        if self.interval_minutes > settings.NUDGE_HORIZON_HOURS * 60:
            logger.warning(
                "Nudge refresh interval exceeds the scheduling horizon; reminders may run dry",
                interval_minutes=self.interval_minutes,
                horizon_hours=settings.NUDGE_HORIZON_HOURS,
            )

        logger.info(
            "Nudge refresh job configured",
            interval_minutes=self.interval_minutes,
            capacity=self.service.capacity,
        )

    async def run_once(self, now: datetime | None = None) -> dict:
        """
        Run a single full refresh.

        Returns:
            Dict: Pass report merged with pass metrics

        Raises:
            NudgeRefreshError: If the pass could not run
        """
        if self.is_running:
            logger.warning("Nudge refresh job already running, skipping this iteration")
            return {"skipped": True, "reason": "already_running"}

        try:
            self.is_running = True
            report = await self.service.full_refresh(now)
            self.last_run_time = datetime.now(UTC)
            self.last_result = {**report.to_dict(), **self.service.metrics.to_dict()}
            return self.last_result
        finally:
            self.is_running = False

    def get_job_status(self) -> dict:
        return {
            "job_name": "nudge_refresh",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_minutes": self.interval_minutes,
            "last_run_metrics": self.last_result,
        }

    def health_check(self) -> dict:
        """
        Health check for the nudge refresh job.

        Returns:
            Dict: Health status and configuration
        """
        now = datetime.now(UTC)

        # Overdue if it hasn't run in 2x the interval
        overdue_threshold = timedelta(minutes=self.interval_minutes * 2)
        is_overdue = self.last_run_time is not None and (now - self.last_run_time) > overdue_threshold

        health_status = {
            "healthy": not is_overdue,
            "service": "nudge_refresh_job",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "is_overdue": is_overdue,
            "configuration": {
                "interval_minutes": self.interval_minutes,
                "capacity": self.service.capacity,
                "horizon_hours": settings.NUDGE_HORIZON_HOURS,
            },
        }

        if is_overdue:
            health_status["warning"] = (
                f"Job overdue by {(now - self.last_run_time).total_seconds() / 60:.1f} minutes"
            )

        return health_status


# Singleton instance for application use
nudge_refresh_job = NudgeRefreshJob()


async def run_nudge_refresh_job() -> dict:
    """Run a single iteration of the nudge refresh job."""
    return await nudge_refresh_job.run_once()


def nudge_refresh_job_health() -> dict:
    """Check nudge refresh job health."""
    return nudge_refresh_job.health_check()


async def start_nudge_refresh_scheduler():
    """
    Start the nudge refresh job scheduler.

    Runs forever in the worker process; a failed cycle is logged and
    retried after a short delay.
    """
    logger.info("Starting nudge refresh scheduler", interval_minutes=nudge_refresh_job.interval_minutes)

    while True:
        try:
            metrics = await run_nudge_refresh_job()

            if not metrics.get("skipped", False):
                logger.info(
                    "Nudge refresh cycle completed",
                    **{k: v for k, v in metrics.items() if not k.endswith("_identifiers")},
                )

            await asyncio.sleep(nudge_refresh_job.interval_minutes * 60)

        except NudgeRefreshError as e:
            logger.error(
                "Nudge refresh cycle failed",
                operation=e.operation,
                recoverable=e.recoverable,
                error=str(e),
            )
            await asyncio.sleep(RETRY_DELAY_SECONDS)
        except Exception as e:
            logger.error(
                "Error in nudge refresh scheduler", error=str(e), error_type=type(e).__name__
            )
            await asyncio.sleep(RETRY_DELAY_SECONDS)
