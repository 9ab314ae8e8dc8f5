# app/models/api/nudge_response.py
"""
Nudge API response models.
Used by the nudges router for output formatting.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from app.features.nudges.domain.models import PendingReminder, RefreshReport


class RefreshResponse(BaseModel):
    """Result of a full or incremental refresh pass."""

    mode: str = Field(..., description="full or incremental")
    now: datetime = Field(..., description="Instant the pass was computed for")
    permission_granted: bool = Field(..., description="Whether reminders may be reserved")
    admitted: int = Field(..., description="Candidates admitted by the allocator")
    reserved: int = Field(..., description="Reservations the publisher accepted")
    failed: int = Field(..., description="Reservations the publisher refused")
    reserved_identifiers: list[str] = Field(default_factory=list)
    failed_identifiers: list[str] = Field(default_factory=list)
    reminded_contact_ids: list[str] = Field(
        default_factory=list, description="Contacts whose last_reminded advanced"
    )

    @classmethod
    def from_report(cls, report: RefreshReport) -> "RefreshResponse":
        return cls(**report.to_dict())


class PendingReminderResponse(BaseModel):
    """A single reserved reminder."""

    identifier: str = Field(..., description="Reservation identifier, {contact_id}-{ordinal}")
    instant: datetime = Field(..., description="When the reminder fires")
    contact_id: str | None = Field(None, description="Contact the reminder is about")
    title: str = Field(default="", description="Reminder title")
    display_text: str = Field(default="", description="Reminder body")

    @classmethod
    def from_pending(cls, pending: PendingReminder) -> "PendingReminderResponse":
        return cls(
            identifier=pending.identifier,
            instant=pending.instant,
            contact_id=pending.contact_id,
            title=pending.title,
            display_text=pending.display_text,
        )


class PendingListResponse(BaseModel):
    """Pending reminders plus the ceiling they count against."""

    count: int = Field(..., description="Number of pending reminders")
    capacity: int = Field(..., description="Maximum pending reminders allowed")
    reminders: list[PendingReminderResponse] = Field(default_factory=list)
