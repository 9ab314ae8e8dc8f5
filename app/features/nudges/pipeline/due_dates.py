"""
Next-due computation for a contact's cadence.
"""

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from app.features.nudges.domain.models import CadenceClass

# Month-based cadences use relativedelta so Jan 31 + 1 month clamps to Feb 28/29.
CADENCE_INTERVALS: dict[CadenceClass, timedelta | relativedelta] = {
    CadenceClass.FEW_PER_DAY: timedelta(hours=6),
    CadenceClass.DAILY: timedelta(days=1),
    CadenceClass.ALTERNATE_DAYS: timedelta(days=2),
    CadenceClass.FEW_PER_WEEK: timedelta(days=3),
    CadenceClass.WEEKLY: timedelta(weeks=1),
    CadenceClass.MONTHLY: relativedelta(months=1),
    CadenceClass.QUARTERLY: relativedelta(months=3),
}


def cadence_interval(cadence: CadenceClass) -> timedelta | relativedelta:
    return CADENCE_INTERVALS[cadence]


def next_due(cadence: CadenceClass, last_reminded: datetime | None, now: datetime) -> datetime:
    """
    Earliest instant the contact is eligible for another reminder.

    A contact that has never been reminded is due immediately.
    """
    if last_reminded is None:
        return now
    return last_reminded + cadence_interval(cadence)
