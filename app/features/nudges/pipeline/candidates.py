"""
Candidate generation - proposes reminder instants for one contact.

Every instant is placed at the configured local hour (few-per-day slots
are 8 hours apart, anchored on that hour) and clipped to the open-closed
window ``(now, now + horizon]``. A contact that has never been reminded
and gets nothing from its cadence rule is given a single instant a short,
seeded-random offset from now, so new contacts are never starved.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

from app.config import settings
from app.features.nudges.domain.models import CadenceClass, Contact
from app.features.nudges.pipeline.due_dates import next_due
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

FEW_PER_DAY_STEP = timedelta(hours=8)
FEW_PER_DAY_MAX_SLOTS = 6
ALTERNATE_DAYS_REACH = timedelta(days=1)

Placement = Callable[[datetime, datetime], Iterable[datetime]]


class CandidateGenerator:
    def __init__(
        self,
        hour: int | None = None,
        tz: ZoneInfo | None = None,
        few_per_week_days: Iterable[int] | None = None,
        new_contact_offsets: tuple[timedelta, timedelta] | None = None,
    ):
        self.hour = settings.NUDGE_HOUR if hour is None else hour
        self.tz = tz or settings.nudge_tz()
        self.few_per_week_days = frozenset(
            settings.NUDGE_FEW_PER_WEEK_DAYS if few_per_week_days is None else few_per_week_days
        )
        self.new_contact_offsets = new_contact_offsets or settings.get_new_contact_offset_window()
        self._placements: dict[CadenceClass, Placement] = {
            CadenceClass.FEW_PER_DAY: self._few_per_day,
            CadenceClass.DAILY: self._daily,
            CadenceClass.ALTERNATE_DAYS: self._alternate_days,
            CadenceClass.FEW_PER_WEEK: self._few_per_week,
            CadenceClass.WEEKLY: self._single,
            CadenceClass.MONTHLY: self._single,
            CadenceClass.QUARTERLY: self._single,
        }

    def generate(
        self, contact: Contact, now: datetime, horizon: timedelta | None = None
    ) -> list[datetime]:
        """
        Feasible reminder instants for ``contact`` inside the horizon, ascending.

        Returns an empty list when the contact is not actionable this pass.
        """
        horizon = settings.nudge_horizon() if horizon is None else horizon
        window_end = now + horizon
        due = next_due(contact.cadence, contact.due_anchor(now), now)

        instants: list[datetime] = []
        if due <= window_end:
            start = max(due, now)
            placed = self._placements[contact.cadence](start, now)
            instants = sorted({i.astimezone(UTC) for i in placed if now < i <= window_end})

        if not instants and contact.is_new(now):
            instants = self._new_contact_slot(contact, now, window_end)
            if instants:
                logger.debug(
                    "New contact given starvation-guard candidate",
                    contact_id=contact.contact_id,
                    instant=instants[0].isoformat(),
                )

        return instants

    # ------------------------------------------------------------------
    # Placement rules
    # ------------------------------------------------------------------

    def _few_per_day(self, start: datetime, now: datetime) -> list[datetime]:
        slot = self._at_hour(start, day_offset=-1)
        while slot < start or slot <= now:
            slot += FEW_PER_DAY_STEP
        return [slot + FEW_PER_DAY_STEP * k for k in range(FEW_PER_DAY_MAX_SLOTS)]

    def _daily(self, start: datetime, now: datetime) -> list[datetime]:
        first = self._first_slot(start, now)
        return [first, self._at_hour(first, day_offset=1)]

    def _alternate_days(self, start: datetime, now: datetime) -> list[datetime]:
        if start - now > ALTERNATE_DAYS_REACH:
            return []
        return [self._first_slot(start, now)]

    def _few_per_week(self, start: datetime, now: datetime) -> list[datetime]:
        slot = self._first_slot(start, now)
        if slot.astimezone(self.tz).isoweekday() not in self.few_per_week_days:
            return []
        return [slot]

    def _single(self, start: datetime, now: datetime) -> list[datetime]:
        return [self._first_slot(start, now)]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _at_hour(self, moment: datetime, day_offset: int = 0) -> datetime:
        """The fixed local hour on ``moment``'s local day, shifted by whole days."""
        local_day = moment.astimezone(self.tz).date() + timedelta(days=day_offset)
        return datetime.combine(local_day, time(hour=self.hour), tzinfo=self.tz)

    def _first_slot(self, start: datetime, now: datetime) -> datetime:
        # Today's hour has already passed for an overdue contact: use tomorrow's.
        slot = self._at_hour(start)
        if slot <= now:
            slot = self._at_hour(start, day_offset=1)
        return slot

    def _new_contact_slot(
        self, contact: Contact, now: datetime, window_end: datetime
    ) -> list[datetime]:
        # A slot an earlier pass already reserved is kept until it fires.
        kept = [i for i in contact.scheduled_instants or () if now < i <= window_end]
        if kept:
            return kept[:1]

        instant = (now + self._new_contact_offset(contact, now)).astimezone(UTC)
        return [instant] if instant <= window_end else []

    def _new_contact_offset(self, contact: Contact, now: datetime) -> timedelta:
        # Seeded per contact and minute so repeated passes agree.
        minute = now.astimezone(UTC).replace(second=0, microsecond=0)
        rng = random.Random(f"{contact.contact_id}|{minute.isoformat()}")
        low, high = self.new_contact_offsets
        span_minutes = int((high - low).total_seconds() // 60)
        return low + timedelta(minutes=rng.randint(0, span_minutes))
