"""
Notification publisher - the reservation store reminders are booked into.

``NotificationPublisher`` is the interface the refresh service needs from
whatever actually delivers reminders (OS notifications, a push service, a
timer queue). ``LocalNotificationPublisher`` is the in-process
implementation used by default and in tests; it enforces the same pending
ceiling the real platforms impose.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from app.config import settings
from app.features.nudges.domain.models import PendingReminder
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class NotificationPublisher(Protocol):
    async def request_permission(self) -> bool: ...

    async def reserve(
        self, identifier: str, contact_id: str, display_text: str, instant: datetime
    ) -> bool: ...

    async def cancel_all(self) -> None: ...

    async def cancel_for_contact(self, contact_id: str) -> None: ...

    async def list_pending(self) -> list[PendingReminder]: ...


def contact_prefix(contact_id: str) -> str:
    """Identifier prefix shared by every reservation of one contact."""
    return f"{contact_id}-"


def belongs_to_contact(identifier: str, contact_id: str) -> bool:
    # "a-b-0" belongs to "a-b", not to "a".
    prefix = contact_prefix(contact_id)
    return identifier.startswith(prefix) and identifier[len(prefix):].isdigit()


class LocalNotificationPublisher:
    """
    In-memory reservation store keyed by reminder identifier.

    A reminder whose instant has passed has been delivered: it is dropped
    before every read and before the ceiling is checked.
    """

    def __init__(
        self,
        capacity: int | None = None,
        permission_granted: bool = True,
        title: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.capacity = settings.NUDGE_CAPACITY if capacity is None else capacity
        self.permission_granted = permission_granted
        self.title = title or settings.NUDGE_TITLE
        self._clock = clock or (lambda: datetime.now(UTC))
        self._pending: dict[str, PendingReminder] = {}

    async def request_permission(self) -> bool:
        return self.permission_granted

    async def reserve(
        self, identifier: str, contact_id: str, display_text: str, instant: datetime
    ) -> bool:
        self._drop_delivered()
        # Re-reserving an existing identifier replaces it and needs no headroom.
        if identifier not in self._pending and len(self._pending) >= self.capacity:
            logger.warning(
                "Reservation rejected, pending ceiling reached",
                identifier=identifier,
                capacity=self.capacity,
            )
            return False

        self._pending[identifier] = PendingReminder(
            identifier=identifier,
            instant=instant,
            contact_id=contact_id,
            title=self.title,
            display_text=display_text,
        )
        return True

    async def cancel_all(self) -> None:
        cancelled = len(self._pending)
        self._pending.clear()
        logger.debug("Cancelled all pending reminders", cancelled=cancelled)

    async def cancel_for_contact(self, contact_id: str) -> None:
        doomed = [key for key in self._pending if belongs_to_contact(key, contact_id)]
        for key in doomed:
            del self._pending[key]
        logger.debug("Cancelled contact reminders", contact_id=contact_id, cancelled=len(doomed))

    async def list_pending(self) -> list[PendingReminder]:
        self._drop_delivered()
        return list(self._pending.values())

    def _drop_delivered(self) -> None:
        now = self._clock()
        delivered = [key for key, p in self._pending.items() if p.instant <= now]
        for key in delivered:
            del self._pending[key]
        if delivered:
            logger.debug("Dropped delivered reminders", delivered=len(delivered))

    def health_check(self) -> dict:
        self._drop_delivered()
        pending = len(self._pending)
        return {
            "healthy": pending <= self.capacity,
            "service": "local_notification_publisher",
            "pending": pending,
            "capacity": self.capacity,
            "permission_granted": self.permission_granted,
        }
