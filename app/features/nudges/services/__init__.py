"""
Service layer for the nudge budget feature.
"""

from .publisher import LocalNotificationPublisher, NotificationPublisher
from .refresh_service import (
    ContactNotFoundError,
    NudgeRefreshError,
    NudgeRefreshService,
    get_nudge_refresh_service,
    nudge_refresh_service,
)

__all__ = [
    "ContactNotFoundError",
    "LocalNotificationPublisher",
    "NotificationPublisher",
    "NudgeRefreshError",
    "NudgeRefreshService",
    "get_nudge_refresh_service",
    "nudge_refresh_service",
]
