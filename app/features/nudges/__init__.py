"""
Nudge budget feature package.

Keeps every layer of reminder allocation together: domain models, the
pure allocation pipeline, the publisher and contact-store seams, the
refresh service, and the HTTP router.
"""

# Re-export the primary building blocks for easy access.
from .api.router import router as nudges_router  # noqa: F401
from .domain.models import AllocationResult, Candidate, Contact  # noqa: F401
from .pipeline.allocator import BudgetAllocator  # noqa: F401
from .services.refresh_service import NudgeRefreshService, nudge_refresh_service  # noqa: F401
