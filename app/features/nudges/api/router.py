"""
Nudge routes.

HTTP triggers for refresh passes (app foregrounded, contact edited or
deleted) and read-only views of what is currently reserved.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.features.nudges.services.refresh_service import (
    ContactNotFoundError,
    NudgeRefreshError,
    NudgeRefreshService,
    get_nudge_refresh_service,
)
from app.infrastructure.observability.logging import get_logger
from app.models.api.nudge_response import (
    PendingListResponse,
    PendingReminderResponse,
    RefreshResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/nudges", tags=["nudges"])


@router.post("/refresh", response_model=RefreshResponse)
async def run_full_refresh(service: NudgeRefreshService = Depends(get_nudge_refresh_service)):
    """Re-rank every contact and replace all pending reminders."""
    try:
        report = await service.full_refresh()
    except NudgeRefreshError as e:
        logger.error("Full refresh failed", operation=e.operation, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Full refresh failed",
        )
    return RefreshResponse.from_report(report)


@router.post("/contacts/{contact_id}/refresh", response_model=RefreshResponse)
async def run_contact_refresh(
    contact_id: str, service: NudgeRefreshService = Depends(get_nudge_refresh_service)
):
    """Re-reserve one contact's reminders after it was created or edited."""
    try:
        report = await service.incremental_refresh(contact_id)
    except ContactNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    except NudgeRefreshError as e:
        logger.error(
            "Incremental refresh failed",
            contact_id=contact_id,
            operation=e.operation,
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Contact refresh failed",
        )
    return RefreshResponse.from_report(report)


@router.delete("/contacts/{contact_id}/reminders", status_code=status.HTTP_204_NO_CONTENT)
async def forget_contact_reminders(
    contact_id: str, service: NudgeRefreshService = Depends(get_nudge_refresh_service)
):
    """Cancel a deleted contact's pending reminders."""
    try:
        await service.forget_contact(contact_id)
    except NudgeRefreshError as e:
        logger.error("Cancelling contact reminders failed", contact_id=contact_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to cancel reminders",
        )


@router.get("/pending", response_model=PendingListResponse)
async def list_pending_reminders(
    service: NudgeRefreshService = Depends(get_nudge_refresh_service),
):
    """Everything currently reserved, soonest first."""
    pending = await service.pending_reminders()
    return PendingListResponse(
        count=len(pending),
        capacity=service.capacity,
        reminders=[PendingReminderResponse.from_pending(p) for p in pending],
    )


@router.get("/contacts/{contact_id}/upcoming", response_model=list[PendingReminderResponse])
async def list_upcoming_for_contact(
    contact_id: str, service: NudgeRefreshService = Depends(get_nudge_refresh_service)
):
    """Future reminders of one contact, soonest first."""
    upcoming = await service.upcoming_for_contact(contact_id)
    return [PendingReminderResponse.from_pending(p) for p in upcoming]
