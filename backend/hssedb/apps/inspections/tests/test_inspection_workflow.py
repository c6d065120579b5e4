from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from hssedb.apps.inspections import models, services
from hssedb.apps.notifications.models import NotificationLog
from hssedb.apps.workflow.errors import (
    DomainValidationError,
    InvalidOperationError,
    SubEntityNotFoundError,
    TransitionError,
)

NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
VISIT = NOW + timedelta(days=3)


def _create(**overrides) -> models.Inspection:
    fields = dict(
        title="Quarterly scaffold inspection",
        description="Tagging, base plates and guard rails on block C",
        inspection_type=models.InspectionType.SAFETY,
        category=models.InspectionCategory.ROUTINE,
        priority=models.InspectionPriority.HIGH,
        scheduled_date=VISIT,
        inspector_id=12,
        inspector_name="Z. Hassan",
        created_by="hse-officer",
        now=NOW,
    )
    fields.update(overrides)
    return models.Inspection.create(**fields)


def _in_progress() -> models.Inspection:
    inspection = _create()
    inspection.schedule(scheduled_date=VISIT, scheduled_by="hse-officer", now=NOW)
    inspection.start(started_by="inspector", now=VISIT)
    return inspection


def _finding(inspection, severity=models.FindingSeverity.MAJOR, **overrides):
    fields = dict(
        description="Missing toe board on level 3",
        finding_type=models.FindingType.NON_COMPLIANCE,
        severity=severity,
        raised_by="inspector",
        now=VISIT,
    )
    fields.update(overrides)
    return inspection.add_finding(**fields)


def test_create_is_draft_with_number():
    inspection = _create()

    assert inspection.status == models.InspectionStatus.DRAFT
    assert re.fullmatch(r"INS-20260302-[0-9A-Z]{6}", inspection.inspection_number)
    assert inspection.inspector_id == "12"
    assert inspection.risk_level == models.RiskLevel.LOW
    assert inspection.pending_events[0].event_type == "inspection.created"


def test_create_requires_future_date():
    with pytest.raises(DomainValidationError):
        _create(scheduled_date=NOW)


def test_full_chain_to_archive():
    inspection = _in_progress()
    finished = VISIT + timedelta(minutes=95)
    inspection.complete(completed_by="inspector", summary="Two gaps found", now=finished)

    assert inspection.status == models.InspectionStatus.COMPLETED
    assert inspection.actual_duration_minutes == 95
    assert inspection.summary == "Two gaps found"

    inspection.archive(archived_by="hse-manager", now=finished)
    assert inspection.status == models.InspectionStatus.ARCHIVED
    assert [event.action for event in inspection.pending_events] == [
        "created",
        "scheduled",
        "started",
        "completed",
        "archived",
    ]


def test_out_of_order_commands_are_rejected():
    inspection = _create()
    with pytest.raises(TransitionError) as excinfo:
        inspection.start(started_by="inspector", now=NOW)
    assert str(excinfo.value) == "Inspection must be scheduled before it can be started"

    with pytest.raises(TransitionError) as excinfo:
        inspection.archive(archived_by="hse-manager", now=NOW)
    assert str(excinfo.value) == "Inspection must be completed or cancelled before archiving"

    inspection = _in_progress()
    inspection.complete(completed_by="inspector", now=VISIT)
    with pytest.raises(TransitionError) as excinfo:
        inspection.cancel(reason="Too late", cancelled_by="hse-officer", now=VISIT)
    assert str(excinfo.value) == "Completed or archived inspections cannot be cancelled"
    assert inspection.cancellation_reason is None


def test_cancelled_inspection_can_be_archived_but_not_changed():
    inspection = _create()
    inspection.cancel(reason="Site shut down", cancelled_by="hse-officer", now=NOW)
    inspection.archive(archived_by="hse-manager", now=NOW)

    with pytest.raises(InvalidOperationError) as excinfo:
        inspection.add_attachment(
            file_name="photo.jpg",
            file_path="inspections/photo.jpg",
            file_size=10,
            content_type="image/jpeg",
            uploaded_by="inspector",
            now=NOW,
        )
    assert str(excinfo.value) == "Archived inspections cannot be changed"
    with pytest.raises(InvalidOperationError):
        inspection.update_basic_info(updated_by="hse-officer", title="New", now=NOW)


def test_update_basic_info_before_start_only():
    inspection = _create()
    inspection.update_basic_info(updated_by="hse-officer", location="Block C", priority="CRITICAL", now=NOW)

    assert inspection.location == "Block C"
    assert inspection.priority == models.InspectionPriority.CRITICAL
    assert inspection.pending_events[-1].payload["changed_fields"] == ["location", "priority"]

    inspection.schedule(scheduled_date=VISIT, scheduled_by="hse-officer", now=NOW)
    inspection.start(started_by="inspector", now=VISIT)
    with pytest.raises(InvalidOperationError):
        inspection.update_basic_info(updated_by="hse-officer", location="Block D", now=VISIT)
    assert inspection.location == "Block C"


def test_findings_only_while_in_progress_or_completed():
    inspection = _create()
    with pytest.raises(InvalidOperationError):
        _finding(inspection, now=NOW)
    assert inspection.findings == []

    inspection = _in_progress()
    _finding(inspection)
    inspection.complete(completed_by="inspector", now=VISIT)
    _finding(inspection, severity=models.FindingSeverity.MINOR)
    assert inspection.open_findings_count() == 2


def test_risk_level_follows_highest_open_finding():
    inspection = _in_progress()
    minor = _finding(inspection, severity=models.FindingSeverity.MINOR)
    assert inspection.risk_level == models.RiskLevel.LOW

    critical = _finding(inspection, severity=models.FindingSeverity.CRITICAL)
    assert inspection.risk_level == models.RiskLevel.CRITICAL
    assert inspection.pending_events[-1].payload["risk_level"] == "CRITICAL"

    inspection.set_corrective_action(
        finding=critical, corrective_action="Fit toe boards", assigned_by="supervisor", now=VISIT
    )
    inspection.resolve_finding(finding=critical, resolved_by="supervisor", now=VISIT)
    inspection.verify_finding(finding=critical, verified_by="inspector", now=VISIT)
    inspection.close_finding(finding=critical, closure_notes="Checked on site", closed_by="inspector", now=VISIT)

    assert critical.status == models.FindingStatus.CLOSED
    assert inspection.risk_level == models.RiskLevel.LOW
    assert minor.risk_level == models.RiskLevel.LOW


def test_finding_chain_order_and_reopen():
    inspection = _in_progress()
    finding = _finding(inspection)

    with pytest.raises(TransitionError) as excinfo:
        inspection.close_finding(finding=finding, closure_notes="Done", closed_by="inspector", now=VISIT)
    assert str(excinfo.value) == "Only verified findings can be closed"

    with pytest.raises(DomainValidationError):
        inspection.set_corrective_action(
            finding=finding,
            corrective_action="Replace boards",
            due_date=VISIT - timedelta(days=1),
            assigned_by="supervisor",
            now=VISIT,
        )
    assert finding.status == models.FindingStatus.OPEN

    due = VISIT + timedelta(days=14)
    inspection.set_corrective_action(
        finding=finding,
        corrective_action="Replace boards",
        due_date=due,
        responsible_person_id=88,
        assigned_by="supervisor",
        now=VISIT,
    )
    assert finding.has_corrective_action
    assert finding.responsible_person_id == "88"
    assert not finding.is_overdue(VISIT)
    assert finding.is_overdue(due + timedelta(days=1))

    with pytest.raises(TransitionError):
        inspection.verify_finding(finding=finding, verified_by="inspector", now=VISIT)

    inspection.resolve_finding(finding=finding, resolved_by="supervisor", now=VISIT)
    inspection.verify_finding(finding=finding, verified_by="inspector", now=VISIT)
    inspection.close_finding(finding=finding, closure_notes="Verified", closed_by="inspector", now=VISIT)
    assert not finding.is_overdue(due + timedelta(days=1))

    inspection.reopen_finding(finding=finding, reason="Boards removed again", reopened_by="inspector", now=VISIT)
    assert finding.status == models.FindingStatus.OPEN
    assert finding.closed_at is None
    assert finding.verified_by is None
    assert finding.reopen_reason == "Boards removed again"


def test_unknown_finding_is_reported():
    inspection = _in_progress()
    with pytest.raises(SubEntityNotFoundError):
        inspection.resolve_finding(finding=999, resolved_by="supervisor", now=VISIT)


def test_overdue_flag():
    inspection = _create()
    inspection.schedule(scheduled_date=VISIT, scheduled_by="hse-officer", now=NOW)
    assert not inspection.is_overdue(NOW)
    assert inspection.is_overdue(VISIT + timedelta(hours=1))


def test_services_persist_findings_and_list_overdue(db_session):
    inspection = services.create_inspection(db_session, **_fields())
    services.schedule_inspection(db_session, inspection.id, scheduled_date=VISIT, scheduled_by="hse-officer", now=NOW)
    services.start_inspection(db_session, inspection.id, started_by="inspector", now=VISIT)
    finding = services.raise_finding(
        db_session,
        inspection.id,
        description="Fire extinguisher out of date",
        finding_type=models.FindingType.HAZARD,
        severity=models.FindingSeverity.MODERATE,
        raised_by="inspector",
        now=VISIT,
    )
    services.complete_inspection(db_session, inspection.id, completed_by="inspector", now=VISIT + timedelta(hours=1))

    assert finding.id is not None
    assert inspection.status == models.InspectionStatus.COMPLETED
    raised = db_session.query(NotificationLog).filter(NotificationLog.template_key == "inspection_finding_raised").one()
    assert finding.finding_number in raised.subject
    assert "MEDIUM" in raised.body

    waiting = services.create_inspection(db_session, **_fields(title="Fire door audit"))
    services.schedule_inspection(db_session, waiting.id, scheduled_date=VISIT, scheduled_by="hse-officer", now=NOW)

    assert services.list_overdue_inspections(db_session, now=NOW) == []
    assert services.list_overdue_inspections(db_session, now=VISIT + timedelta(days=1)) == [waiting]


def test_close_finding_by_id_through_services(db_session):
    inspection = services.create_inspection(db_session, **_fields())
    services.schedule_inspection(db_session, inspection.id, scheduled_date=VISIT, scheduled_by="hse-officer", now=NOW)
    services.start_inspection(db_session, inspection.id, started_by="inspector", now=VISIT)
    finding = services.raise_finding(
        db_session,
        inspection.id,
        description="Blocked exit",
        finding_type=models.FindingType.HAZARD,
        severity=models.FindingSeverity.CRITICAL,
        raised_by="inspector",
        now=VISIT,
    )

    with pytest.raises(TransitionError):
        services.close_finding(
            db_session, inspection.id, finding_id=finding.id, closure_notes="Cleared", closed_by="inspector", now=VISIT
        )
    assert finding.status == models.FindingStatus.OPEN


def _fields(**overrides):
    fields = dict(
        title="Workshop housekeeping",
        description="Walkways, storage and extinguishers",
        inspection_type=models.InspectionType.FIRE,
        category=models.InspectionCategory.PLANNED,
        priority=models.InspectionPriority.MEDIUM,
        scheduled_date=VISIT,
        inspector_id="insp-4",
        created_by="hse-officer",
        now=NOW,
    )
    fields.update(overrides)
    return fields
