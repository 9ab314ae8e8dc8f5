"""
Budget allocator - chooses which reminder instants to reserve under a global cap.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta

from app.config import settings
from app.features.nudges.domain.models import AllocationResult, Candidate, Contact
from app.features.nudges.pipeline.candidates import CandidateGenerator
from app.features.nudges.pipeline.scoring import PriorityScorer
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class BudgetAllocator:
    """
    Greedy-by-score admission of candidates across all contacts.

    Candidates do not interact, so taking the top ``capacity`` scores
    maximizes the admitted total. Ties keep generation order (contact
    order, then instant order) because ``sorted`` is stable.
    """

    def __init__(
        self,
        generator: CandidateGenerator | None = None,
        scorer: PriorityScorer | None = None,
    ):
        self.generator = generator or CandidateGenerator()
        self.scorer = scorer or PriorityScorer()

    def candidates_for(
        self, contact: Contact, now: datetime, horizon: timedelta | None = None
    ) -> list[Candidate]:
        """Scored candidates for a single contact, in chronological order."""
        instants = self.generator.generate(contact, now, horizon)
        return [
            Candidate(
                contact_id=contact.contact_id,
                instant=instant,
                score=self.scorer.score(contact, instant, now),
                ordinal=ordinal,
            )
            for ordinal, instant in enumerate(instants)
        ]

    def allocate(
        self,
        contacts: Iterable[Contact],
        now: datetime,
        horizon: timedelta | None = None,
        capacity: int | None = None,
    ) -> AllocationResult:
        capacity = settings.NUDGE_CAPACITY if capacity is None else max(0, capacity)

        pool: list[Candidate] = []
        for contact in contacts:
            pool.extend(self.candidates_for(contact, now, horizon))

        if not pool or capacity == 0:
            logger.debug("Nothing to admit", pool_size=len(pool), capacity=capacity)
            return AllocationResult()

        ranked = sorted(pool, key=lambda c: c.score, reverse=True)
        admitted = number_per_contact(ranked[:capacity])

        reminded: list[str] = []
        for candidate in admitted:
            if candidate.contact_id not in reminded:
                reminded.append(candidate.contact_id)

        logger.debug(
            "Allocation computed",
            pool_size=len(pool),
            capacity=capacity,
            admitted=len(admitted),
            contacts=len(reminded),
        )
        return AllocationResult(admitted=tuple(admitted), reminded_contact_ids=tuple(reminded))


def number_per_contact(candidates: list[Candidate]) -> list[Candidate]:
    """
    Re-number ordinals within each contact's admitted subset, earliest first.

    The input order is preserved; only ``ordinal`` changes. Identifiers are
    therefore stable for unchanged inputs and independent of global rank.
    """
    by_contact: dict[str, list[Candidate]] = {}
    for candidate in candidates:
        by_contact.setdefault(candidate.contact_id, []).append(candidate)

    ordinals: dict[tuple[str, datetime], int] = {}
    for contact_id, items in by_contact.items():
        for ordinal, candidate in enumerate(sorted(items, key=lambda c: c.instant)):
            ordinals[(contact_id, candidate.instant)] = ordinal

    return [replace(c, ordinal=ordinals[(c.contact_id, c.instant)]) for c in candidates]
