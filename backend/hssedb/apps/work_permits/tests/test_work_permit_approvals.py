from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from hssedb.apps.notifications.models import NotificationLog
from hssedb.apps.work_permits import models, services
from hssedb.apps.workflow.errors import (
    DomainValidationError,
    DuplicateEntryError,
    InvalidOperationError,
    TransitionError,
)

NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
START = NOW + timedelta(days=1)
END = START + timedelta(hours=8)


def _request(**overrides) -> models.WorkPermit:
    fields = dict(
        title="Replace pump flange",
        description="Cut and re-weld flange on cooling water pump P-104",
        permit_type=models.WorkPermitType.GENERAL,
        work_location="Pump house 2",
        work_scope="Mechanical isolation, flange replacement, leak test",
        planned_start_date=START,
        planned_end_date=END,
        number_of_workers=3,
        requested_by="maint-sup",
        requested_by_name="D. Ouma",
        now=NOW,
    )
    fields.update(overrides)
    return models.WorkPermit.create(**fields)


def _approve(permit, *levels):
    for level in levels:
        permit.approve(level=level, approved_by=f"approver-{level.value.lower()}", now=NOW)


def _actions(permit):
    return [event.action for event in permit.pending_events]


def test_hot_work_permit_defaults():
    permit = _request(permit_type=models.WorkPermitType.HOT_WORK)

    assert permit.status == models.WorkPermitStatus.DRAFT
    assert re.fullmatch(r"HW-202603-[0-9A-Z]{4}", permit.permit_number)
    assert permit.priority == models.WorkPermitPriority.HIGH
    assert permit.requires_hot_work is True
    assert permit.risk_level == models.PermitRiskLevel.MEDIUM
    assert permit.required_approvals == [
        models.ApprovalLevel.SAFETY_OFFICER,
        models.ApprovalLevel.DEPARTMENT_HEAD,
        models.ApprovalLevel.HOT_WORK_SPECIALIST,
    ]


def test_general_permit_needs_two_approvals():
    permit = _request()
    assert permit.priority == models.WorkPermitPriority.MEDIUM
    assert permit.risk_level == models.PermitRiskLevel.LOW
    assert models.required_approvals_for("GENERAL") == [
        models.ApprovalLevel.SAFETY_OFFICER,
        models.ApprovalLevel.DEPARTMENT_HEAD,
    ]


@pytest.mark.parametrize(
    "overrides",
    [
        {"planned_start_date": NOW - timedelta(hours=1)},
        {"planned_end_date": START},
        {"number_of_workers": 0},
        {"work_scope": ""},
        {"permit_type": "DEMOLITION"},
    ],
)
def test_request_rejects_invalid_input(overrides):
    with pytest.raises(DomainValidationError):
        _request(**overrides)


def test_permit_is_approved_when_last_required_level_signs():
    permit = _request()
    permit.submit_for_approval(submitted_by="maint-sup", now=NOW)
    assert permit.submitted_at == NOW

    _approve(permit, models.ApprovalLevel.SAFETY_OFFICER)
    assert permit.status == models.WorkPermitStatus.PENDING_APPROVAL
    assert not permit.has_all_required_approvals()
    assert permit.pending_events[-1].payload["remaining_levels"] == ["DEPARTMENT_HEAD"]

    with pytest.raises(DuplicateEntryError):
        _approve(permit, models.ApprovalLevel.SAFETY_OFFICER)
    assert len(permit.approvals) == 1

    _approve(permit, models.ApprovalLevel.DEPARTMENT_HEAD)
    assert permit.status == models.WorkPermitStatus.APPROVED
    assert permit.approved_at == NOW
    assert permit.has_all_required_approvals()
    assert _actions(permit)[-2:] == ["approval_recorded", "approved"]


def test_special_permit_waits_for_every_specialist():
    permit = _request(permit_type=models.WorkPermitType.SPECIAL)
    permit.submit_for_approval(submitted_by="maint-sup", now=NOW)
    _approve(
        permit,
        models.ApprovalLevel.HSE_MANAGER,
        models.ApprovalLevel.SAFETY_OFFICER,
        models.ApprovalLevel.DEPARTMENT_HEAD,
    )
    assert permit.status == models.WorkPermitStatus.PENDING_APPROVAL

    _approve(permit, models.ApprovalLevel.SPECIAL_WORK_SPECIALIST)
    assert permit.status == models.WorkPermitStatus.APPROVED


def test_approval_requires_pending_permit():
    permit = _request()
    with pytest.raises(InvalidOperationError) as excinfo:
        _approve(permit, models.ApprovalLevel.SAFETY_OFFICER)
    assert str(excinfo.value) == "Only permits pending approval can be approved"
    assert permit.approvals == []


def test_rejection_is_terminal():
    permit = _request()
    with pytest.raises(TransitionError) as excinfo:
        permit.reject(reason="Incomplete method statement", rejected_by="safety-officer", now=NOW)
    assert str(excinfo.value) == "Only permits pending approval can be rejected"

    permit.submit_for_approval(submitted_by="maint-sup", now=NOW)
    permit.reject(reason="Incomplete method statement", rejected_by="safety-officer", now=NOW)

    assert permit.status == models.WorkPermitStatus.REJECTED
    assert permit.rejection_reason == "Incomplete method statement"
    assert permit.approvals[-1].is_approved is False
    assert permit.granted_levels() == []
    with pytest.raises(TransitionError):
        permit.cancel(reason="Withdrawn", cancelled_by="maint-sup", now=NOW)
    with pytest.raises(TransitionError):
        permit.submit_for_approval(submitted_by="maint-sup", now=NOW)


def test_required_precautions_block_start():
    permit = _request(permit_type=models.WorkPermitType.HOT_WORK)
    fire_watch = permit.add_precaution(
        description="Fire watch posted for 60 minutes after work",
        category=models.PrecautionCategory.FIRE_PREVENTION,
        added_by="maint-sup",
        now=NOW,
    )
    permit.add_precaution(
        description="Notify control room",
        category=models.PrecautionCategory.COMMUNICATION,
        is_required=False,
        added_by="maint-sup",
        now=NOW,
    )
    permit.submit_for_approval(submitted_by="maint-sup", now=NOW)
    _approve(permit, *permit.required_approvals)

    with pytest.raises(TransitionError) as excinfo:
        permit.start_work(started_by="welder", now=START)
    assert excinfo.value.code == "missing_requirements"
    assert excinfo.value.detail == [
        {
            "field": "precautions",
            "reason": "Required precaution not completed: Fire watch posted for 60 minutes after work",
        }
    ]
    assert permit.status == models.WorkPermitStatus.APPROVED
    assert permit.actual_start_date is None
    assert permit.outstanding_precautions() == [fire_watch]

    permit.complete_precaution(precaution=fire_watch, completed_by="fire-watch", now=START)
    with pytest.raises(DuplicateEntryError):
        permit.complete_precaution(precaution=fire_watch, completed_by="fire-watch", now=START)

    permit.start_work(started_by="welder", now=START)
    assert permit.status == models.WorkPermitStatus.IN_PROGRESS
    assert permit.actual_start_date == START


def test_hazards_and_precautions_are_draft_only():
    permit = _request()
    permit.submit_for_approval(submitted_by="maint-sup", now=NOW)

    with pytest.raises(InvalidOperationError) as excinfo:
        permit.add_hazard(
            description="Hot surfaces",
            risk_level=models.PermitRiskLevel.MEDIUM,
            control_measures="Gloves",
            added_by="maint-sup",
            now=NOW,
        )
    assert str(excinfo.value) == "Hazards and precautions can only be changed while the permit is a draft"
    with pytest.raises(InvalidOperationError):
        permit.add_precaution(
            description="Barrier tape",
            category=models.PrecautionCategory.TRAFFIC_CONTROL,
            added_by="maint-sup",
            now=NOW,
        )
    with pytest.raises(InvalidOperationError):
        permit.set_safety_requirements(updated_by="maint-sup", requires_fire_watch=True, now=NOW)


def test_risk_level_counts_flags_and_high_hazards():
    permit = _request()
    permit.set_safety_requirements(updated_by="maint-sup", requires_height_work=True, requires_excavation=True, now=NOW)
    assert permit.risk_level == models.PermitRiskLevel.HIGH

    permit.add_hazard(
        description="Dropped objects",
        risk_level=models.PermitRiskLevel.LOW,
        control_measures="Tool lanyards",
        added_by="maint-sup",
        now=NOW,
    )
    assert permit.risk_level == models.PermitRiskLevel.HIGH

    trench = permit.add_hazard(
        description="Trench collapse",
        risk_level=models.PermitRiskLevel.CRITICAL,
        control_measures="Shoring",
        added_by="maint-sup",
        now=NOW,
    )
    assert permit.risk_level == models.PermitRiskLevel.CRITICAL
    assert permit.pending_events[-1].payload["permit_risk_level"] == "CRITICAL"

    permit.remove_hazard(hazard=trench, removed_by="maint-sup", now=NOW)
    assert permit.risk_level == models.PermitRiskLevel.HIGH

    with pytest.raises(DomainValidationError):
        permit.set_safety_requirements(updated_by="maint-sup", requires_jetpack=True, now=NOW)


def test_completion_needs_work_in_progress_and_notes():
    permit = _request()
    permit.submit_for_approval(submitted_by="maint-sup", now=NOW)
    _approve(permit, *permit.required_approvals)

    with pytest.raises(TransitionError) as excinfo:
        permit.complete_work(completed_by="maint-sup", completion_notes="Done", completed_safely=True, now=START)
    assert str(excinfo.value) == "Only in-progress permits can be completed"

    permit.start_work(started_by="fitter", now=START)
    with pytest.raises(DomainValidationError):
        permit.complete_work(completed_by="maint-sup", completion_notes=" ", completed_safely=True, now=END)

    permit.complete_work(
        completed_by="maint-sup",
        completion_notes="Flange replaced, leak test passed",
        completed_safely=True,
        lessons_learned="Stage spare gaskets in advance",
        now=END,
    )
    assert permit.status == models.WorkPermitStatus.COMPLETED
    assert permit.actual_end_date == END
    with pytest.raises(InvalidOperationError):
        permit.add_attachment(
            file_name="handover.pdf",
            file_path="permits/handover.pdf",
            file_size=100,
            content_type="application/pdf",
            uploaded_by="maint-sup",
            now=END,
        )


def test_permit_services_round_trip(db_session):
    permit = services.request_permit(db_session, **_fields())
    other = services.request_permit(db_session, **_fields(title="Paint handrails"))
    services.submit_permit(db_session, permit.id, submitted_by="maint-sup", now=NOW)

    assert services.list_pending_approval(db_session) == [permit]
    requested = (
        db_session.query(NotificationLog)
        .filter(NotificationLog.template_key == "work_permit_approval_requested")
        .all()
    )
    assert len(requested) == 2
    assert "SAFETY_OFFICER" in requested[0].body

    services.approve_permit(
        db_session, permit.id, level=models.ApprovalLevel.SAFETY_OFFICER, approved_by="so-1", now=NOW
    )
    services.approve_permit(
        db_session, permit.id, level=models.ApprovalLevel.DEPARTMENT_HEAD, approved_by="dh-1", now=NOW
    )
    services.start_work(db_session, permit.id, started_by="fitter", now=START)
    services.complete_work(
        db_session,
        permit.id,
        completed_by="maint-sup",
        completion_notes="Closed out",
        completed_safely=True,
        now=END,
    )

    assert permit.status == models.WorkPermitStatus.COMPLETED
    assert [approval.level for approval in permit.approvals] == [
        models.ApprovalLevel.SAFETY_OFFICER,
        models.ApprovalLevel.DEPARTMENT_HEAD,
    ]
    assert services.list_pending_approval(db_session) == []

    services.submit_permit(db_session, other.id, submitted_by="maint-sup", now=NOW)
    services.reject_permit(db_session, other.id, reason="Wrong location", rejected_by="so-1", now=NOW)
    rejected = db_session.query(NotificationLog).filter(NotificationLog.template_key == "work_permit_rejected").one()
    assert "Wrong location" in rejected.body


def _fields(**overrides):
    fields = dict(
        title="Replace valve",
        description="Swap isolation valve V-12",
        permit_type=models.WorkPermitType.GENERAL,
        work_location="Boiler room",
        work_scope="Isolate, drain, replace, test",
        planned_start_date=START,
        planned_end_date=END,
        number_of_workers=2,
        requested_by="maint-sup",
        now=NOW,
    )
    fields.update(overrides)
    return fields
