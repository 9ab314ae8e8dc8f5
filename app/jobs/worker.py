"""
Background worker for the nudge scheduler.

Jobs:
- nudge_refresh: periodic full refresh, runs forever (default)
- nudge_refresh_once: a single full refresh, then exit; for cron-style hosts
- nudge_status: log the refresh service status and job health, then exit

The job name comes from the CLI or the WORKER_JOB environment variable.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from app.config import settings
from app.features.nudges.services.refresh_service import nudge_refresh_service
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.jobs.nudge_refresh_job import (
    nudge_refresh_job_health,
    run_nudge_refresh_job,
    start_nudge_refresh_scheduler,
)

logger = get_logger(__name__)

DEFAULT_JOB = "nudge_refresh"

JobCoroutine = Callable[[], Awaitable[dict | None]]


async def report_nudge_status() -> dict:
    """Snapshot of the refresh service and the periodic job."""
    return {
        "service": nudge_refresh_service.get_status(),
        "pending": await nudge_refresh_service.pending_count(),
        "job": nudge_refresh_job_health(),
    }


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "nudge_refresh": start_nudge_refresh_scheduler,
    "nudge_refresh_once": run_nudge_refresh_job,
    "nudge_status": report_nudge_status,
}


def _resolve_job_name(argv: list[str] | None = None) -> str:
    argv = sys.argv[1:] if argv is None else argv
    if argv:
        return argv[0].strip().lower()
    return os.getenv("WORKER_JOB", DEFAULT_JOB).strip().lower()


async def run_worker(job_name: str | None = None) -> dict | None:
    """
    Run the requested job and return whatever it reports.

    One-shot jobs return a summary dict, which is logged without the
    per-identifier lists. The periodic scheduler never returns.

    Raises:
        ValueError: If the job name is not registered
    """
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting nudge worker", job=name, capacity=settings.NUDGE_CAPACITY)
    result = await JOB_REGISTRY[name]()

    if isinstance(result, dict):
        summary = {k: v for k, v in result.items() if not k.endswith("_identifiers")}
        logger.info("Nudge worker job finished", job=name, result=summary)
    return result


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint (``nudge-worker [job]``)."""
    setup_logging(log_level=settings.LOG_LEVEL)
    asyncio.run(run_worker(_resolve_job_name(argv)))


if __name__ == "__main__":
    main()
