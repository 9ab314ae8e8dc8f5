import pytest

from app.jobs import worker


@pytest.mark.asyncio
async def test_run_worker_runs_registered_job(monkeypatch):
    calls = []

    async def dummy_job():
        calls.append("ran")

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    result = await worker.run_worker("  DUMMY ")

    assert calls == ["ran"]
    assert result is None


@pytest.mark.asyncio
async def test_run_worker_returns_one_shot_summary(monkeypatch):
    async def one_shot():
        return {"mode": "full", "reserved": 2, "reserved_identifiers": ["a-0", "b-0"]}

    monkeypatch.setitem(worker.JOB_REGISTRY, "nudge_refresh_once", one_shot)

    result = await worker.run_worker("nudge_refresh_once")

    assert result["reserved"] == 2


@pytest.mark.asyncio
async def test_run_worker_unknown_job():
    with pytest.raises(ValueError, match="nudge_refresh"):
        await worker.run_worker("missing")


@pytest.mark.asyncio
async def test_status_job_reports_service_and_job():
    status = await worker.report_nudge_status()

    assert status["service"]["service"] == "nudge_refresh"
    assert status["pending"] >= 0
    assert status["job"]["service"] == "nudge_refresh_job"


def test_job_name_from_argv_or_env(monkeypatch):
    monkeypatch.setenv("WORKER_JOB", "Nudge_Status")

    assert worker._resolve_job_name(["nudge_refresh_once"]) == "nudge_refresh_once"
    assert worker._resolve_job_name([]) == "nudge_status"


def test_registry_exposes_nudge_jobs():
    assert worker.JOB_REGISTRY["nudge_refresh"] is worker.start_nudge_refresh_scheduler
    assert worker.JOB_REGISTRY["nudge_refresh_once"] is worker.run_nudge_refresh_job
    assert worker.JOB_REGISTRY["nudge_status"] is worker.report_nudge_status
