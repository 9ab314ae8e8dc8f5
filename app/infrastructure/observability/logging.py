"""
Structured logging setup for the nudge scheduler.
Provides JSON-formatted logs with consistent fields for production monitoring.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_service_context,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_service_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag every entry with the service name."""
    event_dict.setdefault("service", "nudge-scheduler")
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_refresh_pass(
    mode: str,
    reserved: int,
    failed: int,
    capacity: int,
    duration_ms: float,
    permission_granted: bool = True,
):
    """Log a refresh pass summary with consistent fields."""
    logger = get_logger("nudges.refresh")

    log_data = {
        "mode": mode,
        "reserved": reserved,
        "failed": failed,
        "capacity": capacity,
        "duration_ms": duration_ms,
        "permission_granted": permission_granted,
        "log_type": "refresh_pass",
    }

    if failed or not permission_granted:
        logger.warning("Refresh pass completed with skips", **log_data)
    else:
        logger.info("Refresh pass completed", **log_data)
