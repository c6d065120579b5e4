from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from hssedb.apps.certifications import models as certification_models
from hssedb.apps.inspections import models as inspection_models
from hssedb.apps.security import models as security_models
from hssedb.apps.training import models as training_models
from hssedb.apps.work_permits import models as permit_models
from hssedb.apps.workflow import (
    WORKFLOWS,
    DomainValidationError,
    InvalidOperationError,
    TransitionError,
    allowed_sources,
    can_transition,
    check_transition,
    require_state,
)
from hssedb.apps.workflow import validation
from hssedb.utils.dates import add_months, as_utc, elapsed_minutes
from hssedb.utils.identifiers import generate_business_number, generate_uuid7

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_declared_edges_are_the_only_legal_ones():
    assert can_transition("training", from_state="DRAFT", to_state="SCHEDULED")
    assert can_transition("training", from_state=training_models.TrainingStatus.SCHEDULED, to_state="IN_PROGRESS")
    assert not can_transition("training", from_state="DRAFT", to_state="COMPLETED")
    assert not can_transition("training", from_state="COMPLETED", to_state="CANCELLED")


def test_rejected_transition_names_required_state():
    with pytest.raises(TransitionError) as excinfo:
        check_transition(
            "security_incident",
            obj=None,
            from_state="INVESTIGATING",
            to_state="ERADICATING",
        )

    assert str(excinfo.value) == "Incident must be contained before eradication"
    assert excinfo.value.code == "invalid_transition"
    assert excinfo.value.detail == [{"field": "status", "reason": "Incident must be contained before eradication"}]


def test_guard_failures_are_reported_as_missing_requirements():
    incident = {"responses": [{"response_type": "CONTAINMENT"}]}

    with pytest.raises(TransitionError) as excinfo:
        check_transition("security_incident", obj=incident, from_state="RESOLVED", to_state="CLOSED")

    assert excinfo.value.code == "missing_requirements"
    assert excinfo.value.detail[0]["field"] == "responses"


def test_guards_see_proposed_changes():
    participant = {"is_present": False, "attendance_marked_at": None}

    check_transition(
        "training_participant",
        obj=participant,
        from_state="ATTENDED",
        to_state="COMPLETED",
        changes={"is_present": True, "attendance_marked_at": NOW},
    )
    assert participant["is_present"] is False


def test_allowed_sources_lists_every_origin():
    assert allowed_sources("inspection", "CANCELLED") == ["DRAFT", "SCHEDULED", "IN_PROGRESS"]
    assert allowed_sources("inspection", "ARCHIVED") == ["COMPLETED", "CANCELLED"]
    assert allowed_sources("work_permit", "REJECTED") == ["PENDING_APPROVAL"]


def test_unknown_workflow_is_rejected():
    with pytest.raises(TransitionError):
        can_transition("spaceship", from_state="DOCKED", to_state="LAUNCHED")


def test_require_state_gate():
    require_state("training", "IN_PROGRESS", ["IN_PROGRESS"], reason="Training must be in progress")

    with pytest.raises(InvalidOperationError) as excinfo:
        require_state("training", "SCHEDULED", ["IN_PROGRESS"], reason="Training must be in progress")
    assert excinfo.value.code == "invalid_state"
    assert excinfo.value.message == "Training must be in progress"


@pytest.mark.parametrize(
    "workflow, status_enum, stored_only",
    [
        ("training", training_models.TrainingStatus, None),
        ("training_participant", training_models.ParticipantStatus, None),
        ("training_requirement", training_models.RequirementStatus, None),
        ("certification", certification_models.CertificationStatus, {"EXPIRED"}),
        ("security_incident", security_models.SecurityIncidentStatus, None),
        ("security_control", security_models.ControlImplementationStatus, None),
        ("threat_indicator", security_models.ThreatIndicatorStatus, None),
        ("inspection", inspection_models.InspectionStatus, None),
        ("inspection_finding", inspection_models.FindingStatus, None),
        ("work_permit", permit_models.WorkPermitStatus, None),
    ],
)
def test_registry_covers_every_stored_status(workflow, status_enum, stored_only):
    transitions = WORKFLOWS[workflow]["transitions"]
    expected = {member.value for member in status_enum} - (stored_only or set())

    assert set(transitions) == expected
    for targets in transitions.values():
        assert set(targets) <= expected


def test_validation_helpers():
    assert validation.require_text("  Fire drill ", "title") == "Fire drill"
    assert validation.optional_text("   ") is None
    with pytest.raises(DomainValidationError) as excinfo:
        validation.require_text(" ", "reason", label="Cancellation reason")
    assert excinfo.value.message == "Cancellation reason is required"

    assert validation.require_range(0, "score", minimum=0, maximum=100) == 0
    assert validation.require_range(100, "score", minimum=0, maximum=100) == 100
    with pytest.raises(DomainValidationError):
        validation.require_range(100.5, "score", minimum=0, maximum=100)

    with pytest.raises(DomainValidationError):
        validation.require_future(NOW, "scheduled_date", now=NOW)
    naive = (NOW + timedelta(days=1)).replace(tzinfo=None)
    assert validation.require_future(naive, "scheduled_date", now=NOW).tzinfo == timezone.utc

    with pytest.raises(DomainValidationError):
        validation.require_enum(training_models.TrainingType, "UNDERWATER_BASKETS", "training_type")


def test_date_helpers():
    assert add_months(datetime(2026, 1, 31, tzinfo=timezone.utc), 1) == datetime(2026, 2, 28, tzinfo=timezone.utc)
    assert add_months(datetime(2024, 1, 31, tzinfo=timezone.utc), 1).day == 29
    assert add_months(NOW, 12) == datetime(2027, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert elapsed_minutes(NOW, NOW) == 1
    assert elapsed_minutes(NOW, NOW + timedelta(minutes=90, seconds=1)) == 91
    assert as_utc(datetime(2026, 1, 1)).tzinfo == timezone.utc


def test_business_numbers_and_event_ids():
    number = generate_business_number("SEC", stamp_format="%m%d%H%M%S", now=NOW, year_segment=True)
    assert re.fullmatch(r"SEC-2026-0301090000-[0-9A-HJKMNP-TV-Z]{4}", number)

    first, second = generate_uuid7(), generate_uuid7()
    assert first != second
    assert first[14] == "7"
