from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from hssedb.apps.events.unit_of_work import commit
from hssedb.apps.notifications.models import NotificationLog
from hssedb.apps.security import models, services
from hssedb.apps.workflow.errors import (
    DomainValidationError,
    DuplicateEntryError,
    InvalidOperationError,
    TransitionError,
)

NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
OCCURRED = NOW - timedelta(hours=2)


def _report(**overrides) -> models.SecurityIncident:
    fields = dict(
        title="Tailgating at gate 3",
        description="Visitor followed a contractor through the turnstile",
        incident_type=models.SecurityIncidentType.PHYSICAL_SECURITY,
        category=models.SecurityIncidentCategory.UNAUTHORIZED_ACCESS,
        severity=models.SecuritySeverity.MEDIUM,
        incident_datetime=OCCURRED,
        location="Gate 3",
        reported_by="guard-17",
        reporter_name="K. Mwangi",
        now=NOW,
    )
    fields.update(overrides)
    return models.SecurityIncident.create(**fields)


def _actions(incident):
    return [event.action for event in incident.pending_events]


def _investigating(**overrides) -> models.SecurityIncident:
    incident = _report(**overrides)
    incident.assign_to(assignee_id="sec-lead", assigned_by="duty-manager", now=NOW)
    incident.assign_investigator(investigator_id="inv-2", investigator_name="R. Achieng", assigned_by="sec-lead", now=NOW)
    return incident


def _resolved() -> models.SecurityIncident:
    incident = _investigating()
    incident.record_containment(actions="Badge revoked, gate re-keyed", recorded_by="inv-2", now=NOW)
    incident.start_eradication(started_by="inv-2", now=NOW)
    incident.start_recovery(started_by="inv-2", now=NOW)
    incident.resolve_incident(root_cause="Turnstile sensor fault", resolved_by="inv-2", now=NOW)
    return incident


def test_report_opens_incident_with_defaults():
    incident = _report()

    assert incident.status == models.SecurityIncidentStatus.OPEN
    assert re.fullmatch(r"SEC-2026-0302080000-[0-9A-Z]{4}", incident.incident_number)
    assert incident.threat_level == models.ThreatLevel.LOW
    assert incident.impact == models.SecurityImpact.NONE
    assert incident.reporter_id == "guard-17"
    assert incident.data_breach_occurred is False
    assert _actions(incident) == ["created"]


def test_critical_incident_is_escalated_on_report():
    incident = _report(severity=models.SecuritySeverity.CRITICAL)

    assert _actions(incident) == ["created", "escalated"]
    assert incident.pending_events[1].payload["reason"] == "critical_severity"


@pytest.mark.parametrize(
    "overrides",
    [
        {"incident_datetime": NOW + timedelta(minutes=5)},
        {"detection_datetime": OCCURRED - timedelta(minutes=1)},
        {"location": ""},
        {"severity": "EXTREME"},
    ],
)
def test_report_rejects_invalid_input(overrides):
    with pytest.raises(DomainValidationError):
        _report(**overrides)


def test_response_chain_runs_in_order():
    incident = _resolved()

    assert incident.status == models.SecurityIncidentStatus.RESOLVED
    assert incident.assigned_to_id == "sec-lead"
    assert incident.investigator_name == "R. Achieng"
    assert incident.response_time_minutes() == 120
    assert incident.root_cause == "Turnstile sensor fault"
    assert _actions(incident)[1:] == [
        "assigned",
        "investigation_started",
        "contained",
        "eradication_started",
        "recovery_started",
        "resolved",
    ]


def test_stages_cannot_be_skipped():
    incident = _report()
    incident.assign_to(assignee_id="sec-lead", assigned_by="duty-manager", now=NOW)

    with pytest.raises(TransitionError) as excinfo:
        incident.record_containment(actions="Door locked", recorded_by="sec-lead", now=NOW)
    assert str(excinfo.value) == "Incident must be under investigation before containment"
    assert incident.containment_actions is None

    incident.assign_investigator(investigator_id="inv-2", assigned_by="sec-lead", now=NOW)
    incident.record_containment(actions="Door locked", recorded_by="inv-2", now=NOW)
    with pytest.raises(TransitionError) as excinfo:
        incident.start_recovery(started_by="inv-2", now=NOW)
    assert str(excinfo.value) == "Incident must be in eradication phase before recovery"
    assert incident.status == models.SecurityIncidentStatus.CONTAINED


def test_reassignment_keeps_status():
    incident = _report()
    incident.assign_to(assignee_id="sec-lead", assigned_by="duty-manager", now=NOW)
    incident.assign_to(assignee_id="sec-deputy", assignee_name="P. Kamau", assigned_by="duty-manager", now=NOW)

    assert incident.status == models.SecurityIncidentStatus.ASSIGNED
    assert incident.assigned_to_id == "sec-deputy"


def test_containment_cannot_predate_incident():
    incident = _investigating()
    with pytest.raises(DomainValidationError):
        incident.record_containment(
            actions="Door locked",
            recorded_by="inv-2",
            containment_time=OCCURRED - timedelta(minutes=1),
            now=NOW,
        )
    assert incident.status == models.SecurityIncidentStatus.INVESTIGATING


def test_close_requires_lessons_learned():
    incident = _resolved()

    with pytest.raises(TransitionError) as excinfo:
        incident.close_incident(closed_by="sec-manager", now=NOW)
    assert excinfo.value.code == "missing_requirements"
    assert excinfo.value.detail == [
        {"field": "responses", "reason": "Lessons learned must be documented before closing"}
    ]
    assert not incident.can_close()
    assert incident.closed_at is None

    incident.add_response(
        response_type=models.SecurityResponseType.LESSONS_LEARNED,
        action_taken="Briefed all gate staff on tailgating",
        responder_id="inv-2",
        now=NOW,
    )
    assert incident.can_close()
    incident.close_incident(closed_by="sec-manager", now=NOW)

    assert incident.status == models.SecurityIncidentStatus.CLOSED
    assert incident.closed_by == "sec-manager"
    assert not incident.is_open()


def test_closed_incident_rejects_changes():
    incident = _resolved()
    incident.add_response(
        response_type=models.SecurityResponseType.LESSONS_LEARNED,
        action_taken="Lessons shared",
        responder_id="inv-2",
        now=NOW,
    )
    incident.close_incident(closed_by="sec-manager", now=NOW)

    with pytest.raises(InvalidOperationError) as excinfo:
        incident.update_threat_assessment(threat_level=models.ThreatLevel.HIGH, assessed_by="inv-2", now=NOW)
    assert str(excinfo.value) == "Closed incidents cannot be modified"
    with pytest.raises(InvalidOperationError):
        incident.add_involved_person(person_id="p-1", person_name="Visitor", added_by="inv-2", now=NOW)
    with pytest.raises(InvalidOperationError):
        incident.add_response(
            response_type=models.SecurityResponseType.COMMUNICATION,
            action_taken="Late note",
            responder_id="inv-2",
            now=NOW,
        )
    assert incident.threat_level == models.ThreatLevel.LOW


def test_threat_escalation_only_when_level_rises():
    incident = _report()

    incident.update_threat_assessment(threat_level=models.ThreatLevel.LOW, assessed_by="inv-2", now=NOW)
    assert _actions(incident)[-1] == "threat_assessed"

    incident.update_threat_assessment(
        threat_level=models.ThreatLevel.HIGH,
        threat_actor_type=models.ThreatActorType.INTERNAL,
        is_internal_threat=True,
        assessed_by="inv-2",
        now=NOW,
    )
    assert _actions(incident)[-2:] == ["threat_assessed", "escalated"]
    assert incident.pending_events[-1].payload["reason"] == "threat_level_increased"
    assert incident.is_internal_threat is True

    incident.update_threat_assessment(threat_level=models.ThreatLevel.MINIMAL, assessed_by="inv-2", now=NOW)
    assert _actions(incident)[-1] == "threat_assessed"
    assert _actions(incident).count("escalated") == 1


def test_severity_increase_escalates():
    incident = _report(severity=models.SecuritySeverity.LOW)
    incident.reassess_severity(severity=models.SecuritySeverity.HIGH, assessed_by="inv-2", now=NOW)
    incident.reassess_severity(severity=models.SecuritySeverity.MEDIUM, assessed_by="inv-2", now=NOW)

    assert _actions(incident) == ["created", "severity_reassessed", "escalated", "severity_reassessed"]
    assert incident.severity == models.SecuritySeverity.MEDIUM


def test_data_breach_event_raised_once():
    incident = _report(category=models.SecurityIncidentCategory.DATA_BREACH)

    incident.update_impact_assessment(
        impact=models.SecurityImpact.MAJOR,
        affected_persons_count=250,
        data_breach_occurred=True,
        assessed_by="dpo",
        now=NOW,
    )
    incident.update_impact_assessment(
        impact=models.SecurityImpact.SEVERE,
        affected_persons_count=400,
        data_breach_occurred=True,
        assessed_by="dpo",
        now=NOW,
    )
    incident.update_impact_assessment(impact=models.SecurityImpact.SEVERE, assessed_by="dpo", now=NOW)

    assert _actions(incident).count("data_breach_detected") == 1
    assert incident.data_breach_occurred is True
    assert incident.impact == models.SecurityImpact.SEVERE

    with pytest.raises(DomainValidationError):
        incident.update_impact_assessment(
            impact=models.SecurityImpact.MINOR, affected_persons_count=-1, assessed_by="dpo", now=NOW
        )


def test_responses_need_an_active_investigation():
    incident = _report()
    with pytest.raises(InvalidOperationError):
        incident.add_response(
            response_type=models.SecurityResponseType.INITIAL_RESPONSE,
            action_taken="Guard dispatched",
            responder_id="guard-17",
            now=NOW,
        )

    incident = _investigating()
    with pytest.raises(DomainValidationError):
        incident.add_response(
            response_type=models.SecurityResponseType.INITIAL_RESPONSE,
            action_taken="Guard dispatched",
            responder_id="guard-17",
            follow_up_required=True,
            now=NOW,
        )
    response = incident.add_response(
        response_type=models.SecurityResponseType.INITIAL_RESPONSE,
        action_taken="Guard dispatched",
        responder_id="guard-17",
        follow_up_required=True,
        follow_up_details="Review CCTV",
        now=NOW,
    )
    assert incident.responses == [response]


def test_involved_people_are_unique():
    incident = _report()
    incident.add_involved_person(person_id=41, person_name="Unknown visitor", is_suspect=True, added_by="guard-17", now=NOW)

    with pytest.raises(DuplicateEntryError):
        incident.add_involved_person(person_id="41", person_name="Visitor", added_by="guard-17", now=NOW)

    incident.remove_involved_person(person_id=41, removed_by="guard-17", now=NOW)
    assert incident.involved_persons == []


def test_control_lifecycle():
    incident = _report()
    with pytest.raises(InvalidOperationError):
        incident.add_security_control(
            control_name="Anti-tailgating turnstile",
            control_description="Single-passage turnstile at gate 3",
            control_type=models.SecurityControlType.PREVENTIVE,
            category=models.SecurityControlCategory.PHYSICAL,
            added_by="sec-lead",
            now=NOW,
        )

    incident = _investigating()
    control = incident.add_security_control(
        control_name="Anti-tailgating turnstile",
        control_description="Single-passage turnstile at gate 3",
        control_type=models.SecurityControlType.PREVENTIVE,
        category=models.SecurityControlCategory.PHYSICAL,
        added_by="sec-lead",
        now=NOW,
    )
    assert control.status == models.ControlImplementationStatus.PLANNED

    with pytest.raises(InvalidOperationError) as excinfo:
        incident.review_security_control(control=control, effectiveness_score=7, reviewed_by="sec-lead", now=NOW)
    assert str(excinfo.value) == "Only active controls can be reviewed"

    with pytest.raises(TransitionError):
        incident.complete_control_implementation(control=control, completed_by="facilities", now=NOW)

    incident.start_control_implementation(control=control, started_by="facilities", now=NOW)
    incident.complete_control_implementation(
        control=control, completed_by="facilities", review_date=NOW + timedelta(days=90), now=NOW
    )
    assert control.status == models.ControlImplementationStatus.ACTIVE
    assert not control.is_review_overdue(NOW)
    assert control.is_review_overdue(NOW + timedelta(days=91))

    with pytest.raises(DomainValidationError):
        incident.review_security_control(control=control, effectiveness_score=11, reviewed_by="sec-lead", now=NOW)
    incident.review_security_control(control=control, effectiveness_score=8, reviewed_by="sec-lead", now=NOW)
    assert control.effectiveness_score == 8
    assert control.review_date is None

    incident.retire_security_control(control=control, reason="Gate demolished", retired_by="sec-lead", now=NOW)
    with pytest.raises(TransitionError) as excinfo:
        incident.retire_security_control(control=control, reason="Again", retired_by="sec-lead", now=NOW)
    assert str(excinfo.value) == "Control is already retired"


def test_incident_services_persist_and_notify(db_session):
    incident = services.report_incident(db_session, **_fields(severity=models.SecuritySeverity.CRITICAL))
    services.assign_incident(
        db_session, incident.id, assignee_id="sec-lead", assignee_name="J. Wanjiru", assigned_by="duty-manager", now=NOW
    )
    services.assign_investigator(db_session, incident.id, investigator_id="inv-2", assigned_by="sec-lead", now=NOW)
    services.update_impact_assessment(
        db_session,
        incident.id,
        impact=models.SecurityImpact.MODERATE,
        data_breach_occurred=True,
        affected_persons_count=12,
        assessed_by="dpo",
        now=NOW,
    )

    templates = {row.template_key for row in db_session.query(NotificationLog)}
    assert {
        "security_incident_reported",
        "security_incident_escalated",
        "security_incident_assigned",
        "security_data_breach",
    } <= templates
    assigned = db_session.query(NotificationLog).filter(NotificationLog.template_key == "security_incident_assigned").first()
    assert "J. Wanjiru" in assigned.body

    closed = services.report_incident(db_session, **_fields(title="Old theft"))
    services.assign_incident(db_session, closed.id, assignee_id="sec-lead", assigned_by="duty-manager", now=NOW)
    assert {item.id for item in services.list_open_incidents(db_session)} == {incident.id, closed.id}


def test_closing_through_services(db_session):
    incident = services.report_incident(db_session, **_fields())
    services.assign_incident(db_session, incident.id, assignee_id="sec-lead", assigned_by="duty-manager", now=NOW)
    services.assign_investigator(db_session, incident.id, investigator_id="inv-2", assigned_by="sec-lead", now=NOW)
    services.record_containment(db_session, incident.id, actions="Area cordoned", recorded_by="inv-2", now=NOW)
    incident.start_eradication(started_by="inv-2", now=NOW)
    incident.start_recovery(started_by="inv-2", now=NOW)
    commit(db_session, incident)
    services.resolve_incident(db_session, incident.id, root_cause="Lock failure", resolved_by="inv-2", now=NOW)

    with pytest.raises(TransitionError):
        services.close_incident(db_session, incident.id, closed_by="sec-manager", now=NOW)

    incident.add_response(
        response_type=models.SecurityResponseType.LESSONS_LEARNED,
        action_taken="Lock maintenance added to weekly rounds",
        responder_id="inv-2",
        now=NOW,
    )
    commit(db_session, incident)
    services.close_incident(db_session, incident.id, closed_by="sec-manager", now=NOW)

    assert incident.status == models.SecurityIncidentStatus.CLOSED
    assert services.list_open_incidents(db_session) == []


def test_controls_due_for_review(db_session):
    incident = services.report_incident(db_session, **_fields())
    services.assign_incident(db_session, incident.id, assignee_id="sec-lead", assigned_by="duty-manager", now=NOW)
    services.assign_investigator(db_session, incident.id, investigator_id="inv-2", assigned_by="sec-lead", now=NOW)
    due = incident.add_security_control(
        control_name="Visitor escort policy",
        control_description="Visitors escorted at all times",
        control_type=models.SecurityControlType.PREVENTIVE,
        category=models.SecurityControlCategory.ADMINISTRATIVE,
        added_by="sec-lead",
        now=NOW,
    )
    later = incident.add_security_control(
        control_name="CCTV analytics",
        control_description="Tailgating detection on gate cameras",
        control_type=models.SecurityControlType.DETECTIVE,
        category=models.SecurityControlCategory.TECHNICAL,
        added_by="sec-lead",
        now=NOW,
    )
    for control, days in ((due, 10), (later, 60)):
        incident.start_control_implementation(control=control, started_by="facilities", now=NOW)
        incident.complete_control_implementation(
            control=control, completed_by="facilities", review_date=NOW + timedelta(days=days), now=NOW
        )
    commit(db_session, incident)

    overdue = services.list_controls_due_for_review(db_session, now=NOW + timedelta(days=30))

    assert overdue == [due]


def _fields(**overrides):
    fields = dict(
        title="Forced entry at store",
        description="Padlock cut on the chemical store",
        incident_type=models.SecurityIncidentType.PHYSICAL_SECURITY,
        category=models.SecurityIncidentCategory.THEFT,
        severity=models.SecuritySeverity.HIGH,
        incident_datetime=OCCURRED,
        location="Chemical store",
        reported_by="guard-17",
        now=NOW,
    )
    fields.update(overrides)
    return fields
