from datetime import timedelta

from app.features.nudges.domain.models import (
    AllocationResult,
    CadenceClass,
    Candidate,
    RefreshReport,
    RelationshipClass,
)
from tests.conftest import NOW, make_contact


def test_last_reminded_only_moves_forward():
    contact = make_contact("a", last_reminded=NOW)

    assert contact.advance_last_reminded(NOW - timedelta(hours=1)) is False
    assert contact.last_reminded == NOW

    assert contact.advance_last_reminded(NOW + timedelta(hours=1)) is True
    assert contact.last_reminded == NOW + timedelta(hours=1)


def test_first_advance_clears_never_reminded():
    contact = make_contact("a")
    assert contact.never_reminded

    contact.advance_last_reminded(NOW)

    assert not contact.never_reminded


def test_reminder_text_uses_name():
    assert make_contact("a", name="Ada").reminder_text() == "Time to reach out to Ada"


def test_display_names():
    assert RelationshipClass.ROMANTIC.display_name == "Romantic Partner"
    assert CadenceClass.ALTERNATE_DAYS.display_name == "Every Other Day"
    assert all(c.display_name for c in CadenceClass)


def test_candidate_identifier():
    assert Candidate(contact_id="abc", instant=NOW, score=1.0, ordinal=3).identifier == "abc-3"


def test_report_to_dict():
    candidate = Candidate(contact_id="a", instant=NOW, score=1.0)
    report = RefreshReport(
        mode="full",
        now=NOW,
        permission_granted=True,
        allocation=AllocationResult(admitted=(candidate,), reminded_contact_ids=("a",)),
        reserved_identifiers=["a-0"],
        reminded_contact_ids=["a"],
    )

    data = report.to_dict()

    assert data["admitted"] == 1
    assert data["reserved"] == 1
    assert data["failed"] == 0
    assert data["now"] == NOW.isoformat()


def test_due_anchor_defaults_to_last_reminded():
    contact = make_contact("a", last_reminded=NOW - timedelta(days=3))

    assert contact.due_anchor(NOW) == NOW - timedelta(days=3)
    assert make_contact("b").is_new(NOW)


def test_due_anchor_follows_recorded_schedule():
    contact = make_contact("a", last_reminded=NOW)
    first, second = NOW + timedelta(hours=2), NOW + timedelta(days=1)
    contact.record_schedule(None, [second, first])

    assert contact.scheduled_instants == (first, second)
    assert contact.is_new(NOW)
    assert contact.due_anchor(first) == first
    assert contact.due_anchor(second + timedelta(hours=1)) == second


def test_empty_recorded_schedule_keeps_its_anchor():
    contact = make_contact("a", last_reminded=NOW)
    contact.record_schedule(NOW - timedelta(days=8), ())

    assert contact.due_anchor(NOW + timedelta(days=30)) == NOW - timedelta(days=8)
