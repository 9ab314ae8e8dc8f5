"""
Nudge allocation pipeline.

Pure, synchronous components: due dates -> candidates -> scores -> admission.
"""

from .allocator import BudgetAllocator
from .candidates import CandidateGenerator
from .due_dates import next_due
from .scoring import PriorityScorer

__all__ = ["BudgetAllocator", "CandidateGenerator", "PriorityScorer", "next_due"]
