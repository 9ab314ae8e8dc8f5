"""
Domain models for the nudge budget feature.

Contacts are owned by the record store; the refresh service is the only
code that mutates them: it advances ``last_reminded`` and records the
schedule each pass reserved. Candidates
and allocation results are rebuilt on every pass and never persisted.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class RelationshipClass(str, Enum):
    ROMANTIC = "romantic"
    SPOUSE = "spouse"
    PARENT = "parent"
    CHILD = "child"
    SIBLING = "sibling"
    FRIEND = "friend"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _RELATIONSHIP_LABELS[self]


class CadenceClass(str, Enum):
    FEW_PER_DAY = "few_per_day"
    DAILY = "daily"
    ALTERNATE_DAYS = "alternate_days"
    FEW_PER_WEEK = "few_per_week"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"

    @property
    def display_name(self) -> str:
        return _CADENCE_LABELS[self]


_RELATIONSHIP_LABELS = {
    RelationshipClass.ROMANTIC: "Romantic Partner",
    RelationshipClass.SPOUSE: "Spouse",
    RelationshipClass.PARENT: "Parent",
    RelationshipClass.CHILD: "Child",
    RelationshipClass.SIBLING: "Sibling",
    RelationshipClass.FRIEND: "Friend",
    RelationshipClass.OTHER: "Other",
}

_CADENCE_LABELS = {
    CadenceClass.FEW_PER_DAY: "A Few Times a Day",
    CadenceClass.DAILY: "Daily",
    CadenceClass.ALTERNATE_DAYS: "Every Other Day",
    CadenceClass.FEW_PER_WEEK: "A Few Times a Week",
    CadenceClass.WEEKLY: "Weekly",
    CadenceClass.MONTHLY: "Monthly",
    CadenceClass.QUARTERLY: "Quarterly",
}


@dataclass(slots=True)
class Contact:
    """
    A tracked person the user wants to be nudged about.

    ``last_reminded`` moves to the pass time whenever a reservation sticks,
    but due dates are computed from ``due_anchor``: while the reminders a
    pass reserved are still ahead, the anchor that produced them is kept,
    so the next pass re-derives the same instants. Once one of them fires,
    it becomes the anchor. ``scheduled_instants`` is None until the refresh
    service has recorded a schedule for the contact.
    """

    contact_id: str
    name: str
    relationship: RelationshipClass
    cadence: CadenceClass
    last_reminded: datetime | None = None
    schedule_anchor: datetime | None = None
    scheduled_instants: tuple[datetime, ...] | None = None

    @property
    def never_reminded(self) -> bool:
        return self.last_reminded is None

    def due_anchor(self, now: datetime) -> datetime | None:
        """Instant the cadence interval is counted from at ``now``. None means new."""
        if self.scheduled_instants is None:
            return self.last_reminded
        fired = [i for i in self.scheduled_instants if i <= now]
        if fired:
            return max(fired)
        return self.schedule_anchor

    def is_new(self, now: datetime) -> bool:
        return self.due_anchor(now) is None

    def record_schedule(self, anchor: datetime | None, instants: Iterable[datetime]) -> None:
        """Remember the anchor a pass used and the instants it actually reserved."""
        self.schedule_anchor = anchor
        self.scheduled_instants = tuple(sorted(instants))

    def advance_last_reminded(self, instant: datetime) -> bool:
        """
        Move ``last_reminded`` forward to ``instant``.

        Returns False (and leaves the field alone) when that would move it
        backwards.
        """
        if self.last_reminded is not None and instant < self.last_reminded:
            return False
        self.last_reminded = instant
        return True

    def reminder_text(self) -> str:
        return f"Time to reach out to {self.name}"


@dataclass(frozen=True, slots=True)
class Candidate:
    """A proposed reminder instant for one contact."""

    contact_id: str
    instant: datetime
    score: float
    ordinal: int = 0  # position within the contact's own candidates for this pass

    @property
    def identifier(self) -> str:
        return f"{self.contact_id}-{self.ordinal}"


@dataclass(frozen=True, slots=True)
class AllocationResult:
    """Admitted candidates in rank order plus the contacts they cover."""

    admitted: tuple[Candidate, ...] = ()
    reminded_contact_ids: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.admitted

    def for_contact(self, contact_id: str) -> list[Candidate]:
        return [c for c in self.admitted if c.contact_id == contact_id]


@dataclass(frozen=True, slots=True)
class PendingReminder:
    """A reservation as reported back by the publisher."""

    identifier: str
    instant: datetime
    contact_id: str | None = None
    title: str = ""
    display_text: str = ""


@dataclass(slots=True)
class RefreshReport:
    """Outcome of one full or incremental refresh pass."""

    mode: str
    now: datetime
    permission_granted: bool
    allocation: AllocationResult
    reserved_identifiers: list[str] = field(default_factory=list)
    failed_identifiers: list[str] = field(default_factory=list)
    reminded_contact_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "now": self.now.isoformat(),
            "permission_granted": self.permission_granted,
            "admitted": len(self.allocation.admitted),
            "reserved": len(self.reserved_identifiers),
            "failed": len(self.failed_identifiers),
            "reserved_identifiers": list(self.reserved_identifiers),
            "failed_identifiers": list(self.failed_identifiers),
            "reminded_contact_ids": list(self.reminded_contact_ids),
        }
