"""
Tests for the nudge HTTP routes, run against an in-memory service.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.features.nudges.domain.models import CadenceClass, RelationshipClass
from app.features.nudges.repository.contact_repository import InMemoryContactRepository
from app.features.nudges.services.publisher import LocalNotificationPublisher
from app.features.nudges.services.refresh_service import (
    NudgeRefreshService,
    get_nudge_refresh_service,
)
from app.main import app
from tests.conftest import FakePublisher, make_contact


def _service(publisher):
    contacts = [
        make_contact("spouse", RelationshipClass.SPOUSE, CadenceClass.DAILY),
        make_contact("pal", RelationshipClass.FRIEND, CadenceClass.WEEKLY),
    ]
    return NudgeRefreshService(
        contact_repository=InMemoryContactRepository(contacts),
        publisher=publisher,
        capacity=64,
        horizon=timedelta(hours=48),
    )


@pytest.fixture
def service():
    return _service(LocalNotificationPublisher(capacity=64))


@pytest.fixture
def client(service):
    app.dependency_overrides[get_nudge_refresh_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_full_refresh_returns_report(client):
    response = client.post("/nudges/refresh")

    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "full"
    assert data["permission_granted"] is True
    assert data["reserved"] == data["admitted"] > 0
    assert data["failed"] == 0
    assert set(data["reminded_contact_ids"]) == {"spouse", "pal"}


def test_pending_lists_reserved_reminders(client):
    client.post("/nudges/refresh")

    response = client.get("/nudges/pending")

    assert response.status_code == 200
    data = response.json()
    assert data["capacity"] == 64
    assert data["count"] == len(data["reminders"]) > 0
    first = data["reminders"][0]
    assert first["title"] == "Time to reach out"
    assert first["display_text"].startswith("Time to reach out to ")
    instants = [r["instant"] for r in data["reminders"]]
    assert instants == sorted(instants)


def test_contact_refresh(client):
    response = client.post("/nudges/contacts/spouse/refresh")

    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "incremental"
    assert all(i.startswith("spouse-") for i in data["reserved_identifiers"])


def test_contact_refresh_unknown_contact(client):
    response = client.post("/nudges/contacts/ghost/refresh")

    assert response.status_code == 404
    assert response.json()["detail"] == "Contact not found"


def test_forget_contact(client, service):
    client.post("/nudges/refresh")

    response = client.delete("/nudges/contacts/spouse/reminders")

    assert response.status_code == 204
    pending = client.get("/nudges/pending").json()["reminders"]
    assert all(r["contact_id"] != "spouse" for r in pending)


def test_upcoming_for_contact(client):
    client.post("/nudges/refresh")

    response = client.get("/nudges/contacts/spouse/upcoming")

    assert response.status_code == 200
    identifiers = [r["identifier"] for r in response.json()]
    assert identifiers
    assert all(i.startswith("spouse-") for i in identifiers)


def test_refresh_failure_maps_to_503():
    broken = _service(FakePublisher(fail_cancel=True))
    app.dependency_overrides[get_nudge_refresh_service] = lambda: broken
    try:
        client = TestClient(app)
        assert client.post("/nudges/refresh").status_code == 503
        assert client.post("/nudges/contacts/spouse/refresh").status_code == 503
        assert client.delete("/nudges/contacts/spouse/reminders").status_code == 503
    finally:
        app.dependency_overrides.clear()
