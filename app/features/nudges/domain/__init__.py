"""
Domain models for the nudge budget feature.
"""

from .models import (
    AllocationResult,
    CadenceClass,
    Candidate,
    Contact,
    PendingReminder,
    RefreshReport,
    RelationshipClass,
)

__all__ = [
    "AllocationResult",
    "CadenceClass",
    "Candidate",
    "Contact",
    "PendingReminder",
    "RefreshReport",
    "RelationshipClass",
]
