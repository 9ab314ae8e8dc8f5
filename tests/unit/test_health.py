"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)

HEALTHY_JOB = {"healthy": True, "is_overdue": False, "last_run_time": None}


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "nudge-scheduler"


def test_readyz_endpoint_all_checks_healthy():
    """Test readiness endpoint when store and job are healthy."""
    with (
        patch("app.routes.health.nudge_refresh_job_health", return_value=HEALTHY_JOB),
        patch(
            "app.routes.health.nudge_refresh_service.pending_count",
            new=AsyncMock(return_value=3),
        ),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True

    checks = data["checks"]
    assert checks["publisher"]["ok"] is True
    assert checks["publisher"]["pending"] == 3
    assert isinstance(checks["publisher"]["latency_ms"], (int, float))
    assert checks["refresh_job"]["ok"] is True
    assert "granted" in checks["permission"]


def test_readyz_endpoint_job_overdue():
    """Overdue refresh job makes the service not ready."""
    overdue = {"healthy": False, "is_overdue": True, "last_run_time": "2025-07-09T08:00:00+00:00"}
    with (
        patch("app.routes.health.nudge_refresh_job_health", return_value=overdue),
        patch(
            "app.routes.health.nudge_refresh_service.pending_count",
            new=AsyncMock(return_value=0),
        ),
    ):
        response = client.get("/readyz")

    # Still 200, but overall_ok is False
    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["refresh_job"]["is_overdue"] is True


def test_readyz_endpoint_publisher_unavailable():
    """Test readiness endpoint when the reservation store errors."""
    with (
        patch("app.routes.health.nudge_refresh_job_health", return_value=HEALTHY_JOB),
        patch(
            "app.routes.health.nudge_refresh_service.pending_count",
            new=AsyncMock(side_effect=ConnectionError("store offline")),
        ),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["publisher"]["ok"] is False
    assert "store offline" in data["checks"]["publisher"]["error"]


def test_readyz_endpoint_over_capacity():
    """More pending reminders than the ceiling is reported as unhealthy."""
    with (
        patch("app.routes.health.nudge_refresh_job_health", return_value=HEALTHY_JOB),
        patch(
            "app.routes.health.nudge_refresh_service.pending_count",
            new=AsyncMock(return_value=10_000),
        ),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["publisher"]["ok"] is False
