import asyncio
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from app.features.nudges.domain.models import (
    CadenceClass,
    Contact,
    PendingReminder,
    RelationshipClass,
)
from app.features.nudges.pipeline.allocator import BudgetAllocator
from app.features.nudges.pipeline.candidates import CandidateGenerator
from app.features.nudges.services.publisher import belongs_to_contact

# Wednesday morning, before the 10:00 placement hour.
NOW = datetime(2025, 7, 9, 8, 0, tzinfo=UTC)
HORIZON = timedelta(days=2)


def make_contact(
    contact_id: str,
    relationship: RelationshipClass = RelationshipClass.FRIEND,
    cadence: CadenceClass = CadenceClass.WEEKLY,
    last_reminded: datetime | None = None,
    name: str | None = None,
) -> Contact:
    return Contact(
        contact_id=contact_id,
        name=name or contact_id.title(),
        relationship=relationship,
        cadence=cadence,
        last_reminded=last_reminded,
    )


class FakePublisher:
    def __init__(
        self,
        permission: bool = True,
        fail_identifiers: set[str] | None = None,
        raise_identifiers: set[str] | None = None,
        capacity: int = 64,
        fail_cancel: bool = False,
    ):
        self.permission = permission
        self.fail_identifiers = fail_identifiers or set()
        self.raise_identifiers = raise_identifiers or set()
        self.capacity = capacity
        self.fail_cancel = fail_cancel
        self.pending: dict[str, PendingReminder] = {}
        self.events: list[str] = []
        self.permission_requests = 0
        self.interleaved = False
        self._cancel_generation = 0

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.permission

    async def reserve(self, identifier, contact_id, display_text, instant) -> bool:
        generation = self._cancel_generation
        self.events.append(f"reserve:{identifier}")
        await asyncio.sleep(0)
        if generation != self._cancel_generation:
            self.interleaved = True

        if identifier in self.raise_identifiers:
            raise RuntimeError("delivery backend unavailable")
        if identifier in self.fail_identifiers:
            return False
        if identifier not in self.pending and len(self.pending) >= self.capacity:
            return False

        self.pending[identifier] = PendingReminder(
            identifier=identifier,
            instant=instant,
            contact_id=contact_id,
            display_text=display_text,
        )
        return True

    async def cancel_all(self) -> None:
        if self.fail_cancel:
            raise RuntimeError("cancel failed")
        self._cancel_generation += 1
        self.events.append("cancel_all")
        self.pending.clear()

    async def cancel_for_contact(self, contact_id: str) -> None:
        if self.fail_cancel:
            raise RuntimeError("cancel failed")
        self.events.append(f"cancel:{contact_id}")
        for key in [k for k in self.pending if belongs_to_contact(k, contact_id)]:
            del self.pending[key]

    async def list_pending(self) -> list[PendingReminder]:
        return list(self.pending.values())


@pytest.fixture
def fake_publisher():
    return FakePublisher()


@pytest.fixture
def generator():
    return CandidateGenerator(
        hour=10,
        tz=ZoneInfo("UTC"),
        few_per_week_days={1, 3, 5},
        new_contact_offsets=(timedelta(hours=2), timedelta(hours=4)),
    )


@pytest.fixture
def allocator(generator):
    return BudgetAllocator(generator=generator)
