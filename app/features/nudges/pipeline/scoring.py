"""
Priority scoring for candidate reminder instants.

A score is the product of four independent factors:
relationship weight x cadence frequency multiplier x new-contact boost x urgency.
"""

from datetime import datetime, timedelta

from app.features.nudges.domain.models import CadenceClass, Contact, RelationshipClass

RELATIONSHIP_WEIGHTS: dict[RelationshipClass, float] = {
    RelationshipClass.ROMANTIC: 1.0,
    RelationshipClass.SPOUSE: 1.0,
    RelationshipClass.PARENT: 0.9,
    RelationshipClass.CHILD: 0.9,
    RelationshipClass.SIBLING: 0.7,
    RelationshipClass.FRIEND: 0.5,
    RelationshipClass.OTHER: 0.3,
}

# Decreases as the cadence gets rarer.
FREQUENCY_MULTIPLIERS: dict[CadenceClass, float] = {
    CadenceClass.FEW_PER_DAY: 1.0,
    CadenceClass.DAILY: 0.9,
    CadenceClass.ALTERNATE_DAYS: 0.7,
    CadenceClass.FEW_PER_WEEK: 0.6,
    CadenceClass.WEEKLY: 0.5,
    CadenceClass.MONTHLY: 0.3,
    CadenceClass.QUARTERLY: 0.1,
}

NEW_CONTACT_BOOST = 2.0

URGENCY_STEPS: tuple[tuple[timedelta, float], ...] = (
    (timedelta(hours=1), 1.0),
    (timedelta(hours=6), 0.9),
    (timedelta(hours=24), 0.7),
)
URGENCY_FLOOR = 0.5


def relationship_weight(relationship: RelationshipClass) -> float:
    return RELATIONSHIP_WEIGHTS[relationship]


def frequency_multiplier(cadence: CadenceClass) -> float:
    return FREQUENCY_MULTIPLIERS[cadence]


def new_contact_boost(contact: Contact, now: datetime) -> float:
    return NEW_CONTACT_BOOST if contact.is_new(now) else 1.0


def urgency_factor(instant: datetime, now: datetime) -> float:
    lead = instant - now
    for limit, factor in URGENCY_STEPS:
        if lead <= limit:
            return factor
    return URGENCY_FLOOR


class PriorityScorer:
    """Scores a candidate instant for a contact. Always returns a value > 0."""

    def score(self, contact: Contact, instant: datetime, now: datetime) -> float:
        return (
            relationship_weight(contact.relationship)
            * frequency_multiplier(contact.cadence)
            * new_contact_boost(contact, now)
            * urgency_factor(instant, now)
        )

    def breakdown(self, contact: Contact, instant: datetime, now: datetime) -> dict[str, float]:
        """Per-factor view of a score, for logs and debugging."""
        return {
            "relationship_weight": relationship_weight(contact.relationship),
            "frequency_multiplier": frequency_multiplier(contact.cadence),
            "new_contact_boost": new_contact_boost(contact, now),
            "urgency_factor": urgency_factor(instant, now),
            "score": self.score(contact, instant, now),
        }
