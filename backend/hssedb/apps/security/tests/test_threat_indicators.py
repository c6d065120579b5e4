from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from hssedb.apps.events.models import DomainEventOutbox
from hssedb.apps.security import models, services
from hssedb.apps.workflow.errors import (
    DomainValidationError,
    DuplicateEntryError,
    InvalidOperationError,
    SubEntityNotFoundError,
    TransitionError,
)

NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
OCCURRED = NOW - timedelta(hours=2)


def _indicator(**overrides) -> models.ThreatIndicator:
    fields = dict(
        indicator_type="ip",
        indicator_value="203.0.113.77",
        threat_type="Credential phishing",
        confidence=85,
        source="National CERT feed",
        created_by="soc-analyst",
        now=NOW,
    )
    fields.update(overrides)
    return models.ThreatIndicator.create(**fields)


def _incident_fields(**overrides):
    fields = dict(
        title="Phishing wave against site staff",
        description="Fake payroll portal harvesting badge numbers",
        incident_type=models.SecurityIncidentType.CYBERSECURITY,
        category=models.SecurityIncidentCategory.PHISHING,
        severity=models.SecuritySeverity.HIGH,
        incident_datetime=OCCURRED,
        location="Head office",
        reported_by="soc-analyst",
        now=NOW,
    )
    fields.update(overrides)
    return fields


def _actions(aggregate):
    return [event.action for event in aggregate.pending_events]


def test_create_normalises_type_and_records_event():
    indicator = _indicator(tags=[" Phishing", "phishing", "APT"])

    assert indicator.status == models.ThreatIndicatorStatus.ACTIVE
    assert indicator.indicator_type == "IP"
    assert re.fullmatch(r"TI-20260302-[0-9A-Z]{4}", indicator.indicator_number)
    assert indicator.first_seen == indicator.last_seen == NOW
    assert indicator.tags == ["phishing", "apt"]
    assert indicator.is_active
    assert indicator.is_high_confidence
    assert indicator.confidence_level == models.ConfidenceLevel.HIGH
    event = indicator.pending_events[0]
    assert event.event_type == "threat_indicator.recorded"
    assert event.aggregate_ref == indicator.indicator_number
    assert event.payload["confidence"] == 85


@pytest.mark.parametrize(
    "overrides",
    [
        {"confidence": 0},
        {"confidence": 101},
        {"indicator_value": " "},
        {"threat_type": ""},
        {"source": None},
        {"created_by": ""},
    ],
)
def test_create_rejects_invalid_input(overrides):
    with pytest.raises(DomainValidationError):
        _indicator(**overrides)


@pytest.mark.parametrize(
    "confidence, level",
    [
        (100, models.ConfidenceLevel.VERY_HIGH),
        (90, models.ConfidenceLevel.VERY_HIGH),
        (80, models.ConfidenceLevel.HIGH),
        (79, models.ConfidenceLevel.MEDIUM),
        (60, models.ConfidenceLevel.MEDIUM),
        (40, models.ConfidenceLevel.LOW),
        (1, models.ConfidenceLevel.VERY_LOW),
    ],
)
def test_confidence_levels(confidence, level):
    assert _indicator(confidence=confidence).confidence_level == level


def test_update_confidence_keeps_bounds_and_notes_reason():
    indicator = _indicator(confidence=50)

    with pytest.raises(DomainValidationError):
        indicator.update_confidence(confidence=0, updated_by="soc-analyst", now=NOW)
    assert indicator.confidence == 50

    indicator.update_confidence(
        confidence=92,
        updated_by="soc-lead",
        reason="Corroborated by mail gateway logs",
        now=NOW + timedelta(hours=1),
    )

    assert indicator.confidence == 92
    assert indicator.is_high_confidence
    assert indicator.description == "2026-03-02 09:00: Confidence updated to 92% - Corroborated by mail gateway logs"
    payload = indicator.pending_events[-1].payload
    assert payload["previous_confidence"] == 50
    assert payload["confidence"] == 92


def test_deactivate_and_reactivate():
    indicator = _indicator()

    indicator.deactivate(deactivated_by="soc-lead", reason="Address reassigned by ISP", now=NOW)
    assert indicator.status == models.ThreatIndicatorStatus.INACTIVE
    assert not indicator.is_active

    with pytest.raises(TransitionError) as excinfo:
        indicator.deactivate(deactivated_by="soc-lead", now=NOW)
    assert str(excinfo.value) == "Threat indicator is already inactive"

    seen_again = NOW + timedelta(days=3)
    indicator.reactivate(reactivated_by="soc-lead", reason="Seen in new campaign", now=seen_again)
    assert indicator.is_active
    assert indicator.last_seen == seen_again
    assert indicator.description.endswith("Reactivated - Seen in new campaign")

    with pytest.raises(TransitionError) as excinfo:
        indicator.reactivate(reactivated_by="soc-lead", now=seen_again)
    assert str(excinfo.value) == "Threat indicator is already active"
    assert _actions(indicator) == ["recorded", "deactivated", "reactivated"]


def test_staleness_follows_last_sighting():
    indicator = _indicator()

    assert not indicator.is_stale(NOW + timedelta(days=30))
    assert indicator.is_stale(NOW + timedelta(days=31))

    indicator.record_sighting(seen_by="soc-analyst", now=NOW + timedelta(days=20))
    assert not indicator.is_stale(NOW + timedelta(days=31))
    assert _actions(indicator)[-1] == "sighted"


def test_tags_are_normalised():
    indicator = _indicator(tags=["phishing"])

    indicator.add_tags(" Ransomware", "PHISHING", "", updated_by="soc-analyst", now=NOW)
    assert indicator.tags == ["phishing", "ransomware"]

    indicator.remove_tags("Phishing", updated_by="soc-analyst", now=NOW)
    assert indicator.tags == ["ransomware"]


@pytest.mark.parametrize(
    "indicator_type, value, valid",
    [
        ("IP", "203.0.113.77", True),
        ("ip", "2001:db8::1", True),
        ("IP", "999.1.1.1", False),
        ("DOMAIN", "payroll-portal.example.com", True),
        ("DOMAIN", "not a domain", False),
        ("EMAIL", "hr-update@example.org", True),
        ("EMAIL", "hr-update.example.org", False),
        ("HASH", "d41d8cd98f00b204e9800998ecf8427e", True),
        ("HASH", "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855", True),
        ("HASH", "d41d8cd98f00b204e9800998ecf8427", False),
        ("HASH", "z" * 32, False),
        ("URL", "https://payroll-portal.example.com/login", True),
        ("URL", "payroll-portal.example.com/login", False),
        ("USER_AGENT", "curl/8.4.0", True),
    ],
)
def test_indicator_value_format(indicator_type, value, valid):
    indicator = _indicator(indicator_type=indicator_type, indicator_value=value)
    assert indicator.is_valid_indicator() is valid


def test_link_indicator_to_incident():
    incident = models.SecurityIncident.create(**_incident_fields())
    indicator = _indicator()

    incident.link_threat_indicator(indicator=indicator, linked_by="soc-analyst", now=NOW)

    assert incident.threat_indicators == [indicator]
    assert indicator.incidents == [incident]
    event = incident.pending_events[-1]
    assert event.event_type == "security_incident.threat_indicator_linked"
    assert event.payload["indicator_value"] == "203.0.113.77"
    assert event.payload["high_confidence"] is True

    with pytest.raises(DuplicateEntryError):
        incident.link_threat_indicator(indicator=indicator, linked_by="soc-analyst", now=NOW)
    assert len(incident.threat_indicators) == 1

    incident.unlink_threat_indicator(indicator=indicator, unlinked_by="soc-lead", now=NOW)
    assert incident.threat_indicators == []
    assert _actions(incident)[-1] == "threat_indicator_unlinked"

    with pytest.raises(SubEntityNotFoundError):
        incident.unlink_threat_indicator(indicator=indicator, unlinked_by="soc-lead", now=NOW)


def test_inactive_indicator_cannot_be_linked():
    incident = models.SecurityIncident.create(**_incident_fields())
    indicator = _indicator()
    indicator.deactivate(deactivated_by="soc-lead", now=NOW)

    with pytest.raises(InvalidOperationError) as excinfo:
        incident.link_threat_indicator(indicator=indicator, linked_by="soc-analyst", now=NOW)
    assert str(excinfo.value) == "Inactive threat indicators cannot be linked"
    assert incident.threat_indicators == []

    with pytest.raises(DomainValidationError):
        incident.link_threat_indicator(indicator=None, linked_by="soc-analyst", now=NOW)


def test_closed_incident_rejects_indicator_links():
    incident = models.SecurityIncident.create(**_incident_fields())
    incident.assign_to(assignee_id="sec-lead", assigned_by="duty-manager", now=NOW)
    incident.assign_investigator(investigator_id="inv-2", assigned_by="sec-lead", now=NOW)
    incident.record_containment(actions="Portal taken down", recorded_by="inv-2", now=NOW)
    incident.start_eradication(started_by="inv-2", now=NOW)
    incident.start_recovery(started_by="inv-2", now=NOW)
    incident.resolve_incident(root_cause="Lookalike domain registered", resolved_by="inv-2", now=NOW)
    incident.add_response(
        response_type=models.SecurityResponseType.LESSONS_LEARNED,
        action_taken="Awareness bulletin issued",
        responder_id="inv-2",
        now=NOW,
    )
    incident.close_incident(closed_by="sec-manager", now=NOW)

    with pytest.raises(InvalidOperationError) as excinfo:
        incident.link_threat_indicator(indicator=_indicator(), linked_by="soc-analyst", now=NOW)
    assert str(excinfo.value) == "Closed incidents cannot be modified"


def test_recording_a_known_indicator_logs_a_sighting(db_session):
    first = services.record_threat_indicator(
        db_session,
        indicator_type="domain",
        indicator_value="payroll-portal.example.com",
        threat_type="Credential phishing",
        confidence=70,
        source="Mail gateway",
        created_by="soc-analyst",
        now=NOW,
    )
    again = services.record_threat_indicator(
        db_session,
        indicator_type="DOMAIN",
        indicator_value=" payroll-portal.example.com",
        threat_type="Credential phishing",
        confidence=90,
        source="Partner feed",
        created_by="soc-lead",
        now=NOW + timedelta(days=2),
    )

    assert again.id == first.id
    assert db_session.query(models.ThreatIndicator).count() == 1
    assert again.confidence == 70
    event_types = [row.event_type for row in db_session.query(DomainEventOutbox).order_by(DomainEventOutbox.id)]
    assert event_types == ["threat_indicator.recorded", "threat_indicator.sighted"]


def test_link_service_records_sighting_and_persists_link(db_session):
    incident = services.report_incident(db_session, **_incident_fields())
    indicator = services.record_threat_indicator(
        db_session,
        indicator_type="IP",
        indicator_value="198.51.100.23",
        threat_type="Command and control",
        confidence=88,
        source="Firewall logs",
        created_by="soc-analyst",
        now=NOW,
    )
    linked_at = NOW + timedelta(hours=3)

    services.link_threat_indicator(
        db_session, incident.id, indicator_id=indicator.id, actor="soc-lead", expected_version=1, now=linked_at
    )

    db_session.expire_all()
    stored = db_session.get(models.SecurityIncident, incident.id)
    assert [item.id for item in stored.threat_indicators] == [indicator.id]
    assert stored.version_id == 2
    stored_indicator = db_session.get(models.ThreatIndicator, indicator.id)
    assert [item.id for item in stored_indicator.incidents] == [incident.id]
    event_types = {row.event_type for row in db_session.query(DomainEventOutbox)}
    assert {"security_incident.threat_indicator_linked", "threat_indicator.sighted"} <= event_types

    services.deactivate_threat_indicator(db_session, indicator.id, deactivated_by="soc-lead", now=linked_at)
    assert services.list_active_indicators(db_session) == []
    other = services.report_incident(db_session, **_incident_fields(title="Second phishing wave"))
    with pytest.raises(InvalidOperationError):
        services.link_threat_indicator(db_session, other.id, indicator_id=indicator.id, actor="soc-lead", now=linked_at)

    services.reactivate_threat_indicator(db_session, indicator.id, reactivated_by="soc-lead", now=linked_at)
    assert [item.id for item in services.list_active_indicators(db_session, minimum_confidence=80)] == [indicator.id]
    assert services.list_active_indicators(db_session, minimum_confidence=90) == []
