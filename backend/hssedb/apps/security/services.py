from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ...utils.dates import utcnow
from ..events.dispatcher import dispatch_committed
from ..events.unit_of_work import Dispatch, commit, load_aggregate, run_command
from . import models


def _apply(
    db: Session,
    incident_id: int,
    command: Callable[[models.SecurityIncident], object],
    *,
    expected_version: Optional[int],
    dispatch: Optional[Dispatch],
) -> models.SecurityIncident:
    return run_command(
        db,
        models.SecurityIncident,
        incident_id,
        command,
        expected_version=expected_version,
        dispatch=dispatch,
    )


def report_incident(
    db: Session,
    *,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **fields,
) -> models.SecurityIncident:
    incident = models.SecurityIncident.create(**fields)
    commit(db, incident, dispatch=dispatch)
    return incident


def assign_incident(
    db: Session,
    incident_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.SecurityIncident:
    return _apply(
        db,
        incident_id,
        lambda incident: incident.assign_to(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def assign_investigator(
    db: Session,
    incident_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.SecurityIncident:
    return _apply(
        db,
        incident_id,
        lambda incident: incident.assign_investigator(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def record_containment(
    db: Session,
    incident_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.SecurityIncident:
    return _apply(
        db,
        incident_id,
        lambda incident: incident.record_containment(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def resolve_incident(
    db: Session,
    incident_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.SecurityIncident:
    return _apply(
        db,
        incident_id,
        lambda incident: incident.resolve_incident(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def close_incident(
    db: Session,
    incident_id: int,
    *,
    closed_by: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.SecurityIncident:
    return _apply(
        db,
        incident_id,
        lambda incident: incident.close_incident(closed_by=closed_by, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def update_threat_assessment(
    db: Session,
    incident_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.SecurityIncident:
    return _apply(
        db,
        incident_id,
        lambda incident: incident.update_threat_assessment(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def update_impact_assessment(
    db: Session,
    incident_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.SecurityIncident:
    return _apply(
        db,
        incident_id,
        lambda incident: incident.update_impact_assessment(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def list_open_incidents(db: Session) -> List[models.SecurityIncident]:
    return (
        db.query(models.SecurityIncident)
        .filter(models.SecurityIncident.status != models.SecurityIncidentStatus.CLOSED)
        .order_by(models.SecurityIncident.incident_datetime.desc())
        .all()
    )


def list_controls_due_for_review(
    db: Session,
    *,
    now: Optional[datetime] = None,
) -> List[models.SecurityControl]:
    now = now or utcnow()
    controls = (
        db.query(models.SecurityControl)
        .filter(
            models.SecurityControl.status == models.ControlImplementationStatus.ACTIVE,
            models.SecurityControl.review_date.isnot(None),
        )
        .order_by(models.SecurityControl.review_date.asc())
        .all()
    )
    return [control for control in controls if control.is_review_overdue(now)]


def record_threat_indicator(
    db: Session,
    *,
    indicator_type: str,
    indicator_value: str,
    created_by: str,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **fields,
) -> models.ThreatIndicator:
    """
    Record an indicator, or log a fresh sighting when the same type/value
    pair is already on file.
    """
    existing = (
        db.query(models.ThreatIndicator)
        .filter(
            models.ThreatIndicator.indicator_type == (indicator_type or "").strip().upper(),
            models.ThreatIndicator.indicator_value == (indicator_value or "").strip(),
        )
        .one_or_none()
    )
    if existing is not None:
        existing.record_sighting(seen_by=created_by, now=now)
        commit(db, existing, dispatch=dispatch)
        return existing

    indicator = models.ThreatIndicator.create(
        indicator_type=indicator_type,
        indicator_value=indicator_value,
        created_by=created_by,
        now=now,
        **fields,
    )
    commit(db, indicator, dispatch=dispatch)
    return indicator


def link_threat_indicator(
    db: Session,
    incident_id: int,
    *,
    indicator_id: int,
    actor: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.SecurityIncident:
    """Link an indicator to an incident; the link counts as a sighting."""
    incident = load_aggregate(db, models.SecurityIncident, incident_id, expected_version=expected_version)
    indicator = load_aggregate(db, models.ThreatIndicator, indicator_id)
    now = now or utcnow()
    incident.link_threat_indicator(indicator=indicator, linked_by=actor, now=now)
    indicator.record_sighting(seen_by=actor, now=now)
    commit(db, incident, indicator, dispatch=dispatch)
    return incident


def deactivate_threat_indicator(
    db: Session,
    indicator_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.ThreatIndicator:
    return run_command(
        db,
        models.ThreatIndicator,
        indicator_id,
        lambda indicator: indicator.deactivate(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def reactivate_threat_indicator(
    db: Session,
    indicator_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.ThreatIndicator:
    return run_command(
        db,
        models.ThreatIndicator,
        indicator_id,
        lambda indicator: indicator.reactivate(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def list_active_indicators(db: Session, *, minimum_confidence: int = 0) -> List[models.ThreatIndicator]:
    return (
        db.query(models.ThreatIndicator)
        .filter(
            models.ThreatIndicator.status == models.ThreatIndicatorStatus.ACTIVE,
            models.ThreatIndicator.confidence >= minimum_confidence,
        )
        .order_by(models.ThreatIndicator.confidence.desc(), models.ThreatIndicator.id.asc())
        .all()
    )
