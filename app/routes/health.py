# app/routes/health.py
"""
Health check endpoints.
"""

import time

from fastapi import APIRouter

from app.features.nudges.services.refresh_service import nudge_refresh_service
from app.jobs.nudge_refresh_job import nudge_refresh_job_health

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "nudge-scheduler"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check covering the reservation store and the refresh job.
    """
    checks = {}
    overall_ok = True

    # 1) Reservation store headroom
    t0 = time.time()
    try:
        pending = await nudge_refresh_service.pending_count()
        capacity = nudge_refresh_service.capacity
        store_ok = pending <= capacity
        checks["publisher"] = {
            "ok": store_ok,
            "pending": pending,
            "capacity": capacity,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = overall_ok and store_ok
    except Exception as e:
        checks["publisher"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    # 2) Background refresh job
    job_health = nudge_refresh_job_health()
    checks["refresh_job"] = {
        "ok": job_health.get("healthy", False),
        "is_overdue": job_health.get("is_overdue", False),
        "last_run_time": job_health.get("last_run_time"),
    }
    overall_ok = overall_ok and checks["refresh_job"]["ok"]

    # 3) Permission state (informational, unresolved until first request)
    checks["permission"] = {"granted": nudge_refresh_service.get_status()["permission_granted"]}

    return {"overall_ok": overall_ok, "checks": checks}
