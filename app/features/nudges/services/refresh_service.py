"""
Nudge refresh service - runs allocation passes and commits them to the publisher.

Two entry points share the allocator:
- full_refresh: cancels every pending reminder, re-ranks all contacts and
  reserves the admitted set. This is the authoritative reconciliation pass.
- incremental_refresh: cancels and re-reserves a single contact's reminders
  without global re-ranking, bounded by the headroom left under the ceiling.

All passes (and forget_contact) run under one asyncio.Lock, so two passes
never interleave their cancel and reserve phases.
"""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime, timedelta

from app.config import settings
from app.features.nudges.domain.models import (
    AllocationResult,
    Candidate,
    Contact,
    PendingReminder,
    RefreshReport,
)
from app.features.nudges.pipeline.allocator import BudgetAllocator, number_per_contact
from app.features.nudges.repository.contact_repository import (
    ContactRepository,
    InMemoryContactRepository,
)
from app.features.nudges.services.publisher import (
    LocalNotificationPublisher,
    NotificationPublisher,
    belongs_to_contact,
)
from app.infrastructure.observability.logging import get_logger, log_refresh_pass

logger = get_logger(__name__)


class NudgeRefreshError(Exception):
    """Raised when a refresh pass cannot continue safely."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class ContactNotFoundError(NudgeRefreshError):
    """Incremental refresh requested for a contact the store does not know."""


class RefreshMetrics:
    """Counters for the most recent refresh pass."""

    def __init__(self):
        self.reset()

    def reset(self, mode: str = "full"):
        """Reset all metrics for a new pass."""
        self.mode = mode
        self.start_time = datetime.now(UTC)
        self.contacts_considered = 0
        self.admitted = 0
        self.reserved = 0
        self.reservation_failures = 0
        self.contacts_reminded = 0
        self.total_duration_seconds = 0.0
        self.errors: list[dict] = []

    def record_reserved(self):
        self.reserved += 1

    def record_failure(self, identifier: str, error: str):
        """Record a reservation that the publisher refused or errored on."""
        self.reservation_failures += 1
        self.errors.append(
            {
                "identifier": identifier,
                "error": error,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )
        logger.warning("Reservation failed", identifier=identifier, error=error, mode=self.mode)

    def finalize(self):
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 3),
            "contacts_considered": self.contacts_considered,
            "admitted": self.admitted,
            "reserved": self.reserved,
            "reservation_failures": self.reservation_failures,
            "contacts_reminded": self.contacts_reminded,
            "errors_count": len(self.errors),
        }


class NudgeRefreshService:
    def __init__(
        self,
        contact_repository: ContactRepository,
        publisher: NotificationPublisher,
        allocator: BudgetAllocator | None = None,
        capacity: int | None = None,
        horizon: timedelta | None = None,
        max_concurrent: int | None = None,
    ):
        self.contacts = contact_repository
        self.publisher = publisher
        self.allocator = allocator or BudgetAllocator()
        self.capacity = settings.NUDGE_CAPACITY if capacity is None else capacity
        self.horizon = settings.nudge_horizon() if horizon is None else horizon
        self.max_concurrent = max_concurrent or settings.NUDGE_MAX_CONCURRENT_RESERVATIONS
        self.metrics = RefreshMetrics()
        self.last_full_refresh: datetime | None = None
        self._permission_granted: bool | None = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def ensure_permission(self) -> bool:
        """
        Ask the publisher for permission until it is granted.

        A grant is cached. A denial is remembered for status reporting but
        asked again on the next pass, and a failed request leaves the answer
        unknown so the next pass retries.
        """
        if self._permission_granted:
            return True

        try:
            granted = bool(await self.publisher.request_permission())
        except Exception as e:
            logger.error("Permission request failed", error=str(e), error_type=type(e).__name__)
            self._permission_granted = None
            return False

        self._permission_granted = granted
        if not granted:
            logger.warning("Reminder permission not granted; reservations will be skipped")
        return granted

    async def full_refresh(self, now: datetime | None = None) -> RefreshReport:
        """
        Re-rank every contact and replace all pending reminders.

        Raises:
            NudgeRefreshError: If contacts cannot be listed or pending
                reminders cannot be cancelled. Nothing is reserved then.
        """
        now = now or datetime.now(UTC)

        async with self._lock:
            started = time.time()
            self.metrics.reset("full")

            contacts = await self._list_contacts()
            self.metrics.contacts_considered = len(contacts)

            allocation = self.allocator.allocate(contacts, now, self.horizon, self.capacity)
            self.metrics.admitted = len(allocation.admitted)

            granted = await self.ensure_permission()
            report = RefreshReport(
                mode="full", now=now, permission_granted=granted, allocation=allocation
            )

            if granted:
                await self._cancel(self.publisher.cancel_all(), operation="cancel_all")
                contacts_by_id = {c.contact_id: c for c in contacts}
                await self._reserve_batch(allocation.admitted, contacts_by_id, report)
                await self._commit_reminded(contacts_by_id, report, now)

            self.last_full_refresh = now
            self._finish(report, started)
            return report

    async def incremental_refresh(self, contact_id: str, now: datetime | None = None) -> RefreshReport:
        """
        Re-reserve one contact's reminders after it was created or edited.

        Raises:
            ContactNotFoundError: If the store has no such contact.
            NudgeRefreshError: If the contact's old reminders cannot be cancelled.
        """
        now = now or datetime.now(UTC)

        async with self._lock:
            started = time.time()
            self.metrics.reset("incremental")

            contact = await self._get_contact(contact_id)
            self.metrics.contacts_considered = 1
            candidates = self.allocator.candidates_for(contact, now, self.horizon)

            granted = await self.ensure_permission()
            if not granted:
                report = RefreshReport(
                    mode="incremental",
                    now=now,
                    permission_granted=False,
                    allocation=_single_contact_allocation(candidates),
                )
                self._finish(report, started)
                return report

            await self._cancel(
                self.publisher.cancel_for_contact(contact_id), operation="cancel_for_contact"
            )

            # Reminders that already fired no longer count against the ceiling.
            pending = [p for p in await self.publisher.list_pending() if p.instant > now]
            headroom = max(0, self.capacity - len(pending))
            best = sorted(candidates, key=lambda c: c.score, reverse=True)[:headroom]
            allocation = _single_contact_allocation(best)
            self.metrics.admitted = len(allocation.admitted)

            if len(best) < len(candidates):
                logger.info(
                    "Incremental refresh trimmed to remaining headroom",
                    contact_id=contact_id,
                    candidates=len(candidates),
                    headroom=headroom,
                )

            report = RefreshReport(
                mode="incremental", now=now, permission_granted=True, allocation=allocation
            )
            await self._reserve_batch(allocation.admitted, {contact_id: contact}, report)
            await self._commit_reminded({contact_id: contact}, report, now)

            self._finish(report, started)
            return report

    async def forget_contact(self, contact_id: str) -> None:
        """Drop every pending reminder of a contact that was deleted."""
        async with self._lock:
            await self._cancel(
                self.publisher.cancel_for_contact(contact_id), operation="cancel_for_contact"
            )
            logger.info("Contact reminders cancelled", contact_id=contact_id)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def pending_reminders(self) -> list[PendingReminder]:
        pending = await self.publisher.list_pending()
        return sorted(pending, key=lambda p: (p.instant, p.identifier))

    async def pending_count(self) -> int:
        return len(await self.publisher.list_pending())

    async def reminders_for_contact(self, contact_id: str) -> list[PendingReminder]:
        return [
            p for p in await self.pending_reminders() if belongs_to_contact(p.identifier, contact_id)
        ]

    async def upcoming_for_contact(
        self, contact_id: str, now: datetime | None = None
    ) -> list[PendingReminder]:
        """Future reminders of one contact, soonest first."""
        now = now or datetime.now(UTC)
        return [p for p in await self.reminders_for_contact(contact_id) if p.instant > now]

    def get_status(self) -> dict:
        return {
            "service": "nudge_refresh",
            "is_running": self.is_running,
            "permission_granted": self._permission_granted,
            "last_full_refresh": (
                self.last_full_refresh.isoformat() if self.last_full_refresh else None
            ),
            "capacity": self.capacity,
            "horizon_hours": round(self.horizon.total_seconds() / 3600, 2),
            "last_pass_metrics": self.metrics.to_dict(),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _list_contacts(self) -> list[Contact]:
        try:
            return list(await self.contacts.list_contacts())
        except Exception as e:
            logger.error("Failed to list contacts", error=str(e), error_type=type(e).__name__)
            raise NudgeRefreshError(
                f"Failed to list contacts: {e}", operation="list_contacts"
            ) from e

    async def _get_contact(self, contact_id: str) -> Contact:
        try:
            contact = await self.contacts.get_contact(contact_id)
        except Exception as e:
            logger.error("Failed to load contact", contact_id=contact_id, error=str(e))
            raise NudgeRefreshError(
                f"Failed to load contact {contact_id}: {e}", operation="get_contact"
            ) from e

        if contact is None:
            raise ContactNotFoundError(
                f"Unknown contact {contact_id}", operation="get_contact", recoverable=False
            )
        return contact

    async def _cancel(self, cancellation, operation: str) -> None:
        try:
            await cancellation
        except Exception as e:
            logger.error(
                "Cancelling pending reminders failed; nothing reserved",
                operation=operation,
                error=str(e),
            )
            raise NudgeRefreshError(f"{operation} failed: {e}", operation=operation) from e

    async def _reserve_batch(
        self,
        admitted: tuple[Candidate, ...],
        contacts_by_id: dict[str, Contact],
        report: RefreshReport,
    ) -> None:
        if not admitted:
            return

        semaphore = asyncio.Semaphore(self.max_concurrent)
        outcomes = await asyncio.gather(
            *(
                self._reserve_with_semaphore(semaphore, c, contacts_by_id[c.contact_id])
                for c in admitted
            )
        )

        for candidate, ok in zip(admitted, outcomes):
            if ok:
                report.reserved_identifiers.append(candidate.identifier)
            else:
                report.failed_identifiers.append(candidate.identifier)

    async def _reserve_with_semaphore(
        self, semaphore: asyncio.Semaphore, candidate: Candidate, contact: Contact
    ) -> bool:
        async with semaphore:
            return await self._reserve_one(candidate, contact)

    async def _reserve_one(self, candidate: Candidate, contact: Contact) -> bool:
        try:
            ok = await self.publisher.reserve(
                candidate.identifier,
                candidate.contact_id,
                contact.reminder_text(),
                candidate.instant,
            )
        except Exception as e:
            self.metrics.record_failure(candidate.identifier, f"{type(e).__name__}: {e}")
            return False

        if not ok:
            self.metrics.record_failure(candidate.identifier, "publisher refused reservation")
            return False

        self.metrics.record_reserved()
        return True

    async def _commit_reminded(
        self, contacts_by_id: dict[str, Contact], report: RefreshReport, now: datetime
    ) -> None:
        """
        Record each contact's schedule after the publisher was rewritten.

        Contacts with at least one reservation that stuck get last_reminded
        advanced and their reserved instants recorded. Contacts whose earlier
        reservations were cancelled and not replaced keep only the ones that
        already fired.
        """
        reserved = set(report.reserved_identifiers)
        for contact_id, contact in contacts_by_id.items():
            anchor = contact.due_anchor(now)
            instants = [
                c.instant
                for c in report.allocation.for_contact(contact_id)
                if c.identifier in reserved
            ]

            if not instants:
                if contact.scheduled_instants:
                    contact.record_schedule(anchor, ())
                    await self._save_contact(contact)
                continue

            if not contact.advance_last_reminded(now):
                logger.warning(
                    "Skipped moving last_reminded backwards",
                    contact_id=contact_id,
                    last_reminded=contact.last_reminded.isoformat(),
                    now=now.isoformat(),
                )
                continue

            contact.record_schedule(anchor, instants)
            if await self._save_contact(contact):
                report.reminded_contact_ids.append(contact_id)

        # Keep the allocator's rank order
        rank = {cid: i for i, cid in enumerate(report.allocation.reminded_contact_ids)}
        report.reminded_contact_ids.sort(key=lambda cid: rank.get(cid, len(rank)))
        self.metrics.contacts_reminded = len(report.reminded_contact_ids)

    async def _save_contact(self, contact: Contact) -> bool:
        try:
            await self.contacts.save_contact(contact)
        except Exception as e:
            logger.error(
                "Failed to persist contact schedule", contact_id=contact.contact_id, error=str(e)
            )
            return False
        return True

    def _finish(self, report: RefreshReport, started: float) -> None:
        self.metrics.finalize()
        log_refresh_pass(
            mode=report.mode,
            reserved=len(report.reserved_identifiers),
            failed=len(report.failed_identifiers),
            capacity=self.capacity,
            duration_ms=round((time.time() - started) * 1000, 2),
            permission_granted=report.permission_granted,
        )


def _single_contact_allocation(candidates: list[Candidate]) -> AllocationResult:
    admitted = tuple(number_per_contact(candidates))
    reminded = (admitted[0].contact_id,) if admitted else ()
    return AllocationResult(admitted=admitted, reminded_contact_ids=reminded)


# Default wiring for application use
nudge_refresh_service = NudgeRefreshService(
    contact_repository=InMemoryContactRepository(),
    publisher=LocalNotificationPublisher(),
)


def get_nudge_refresh_service() -> NudgeRefreshService:
    """FastAPI dependency returning the application refresh service."""
    return nudge_refresh_service
