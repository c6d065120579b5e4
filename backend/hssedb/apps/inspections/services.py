from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ...utils.dates import utcnow
from ..events.dispatcher import dispatch_committed
from ..events.unit_of_work import Dispatch, commit, run_command
from . import models


def _apply(
    db: Session,
    inspection_id: int,
    command: Callable[[models.Inspection], object],
    *,
    expected_version: Optional[int],
    dispatch: Optional[Dispatch],
) -> models.Inspection:
    return run_command(
        db,
        models.Inspection,
        inspection_id,
        command,
        expected_version=expected_version,
        dispatch=dispatch,
    )


def create_inspection(
    db: Session,
    *,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **fields,
) -> models.Inspection:
    inspection = models.Inspection.create(**fields)
    commit(db, inspection, dispatch=dispatch)
    return inspection


def schedule_inspection(
    db: Session,
    inspection_id: int,
    *,
    scheduled_date: datetime,
    scheduled_by: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Inspection:
    return _apply(
        db,
        inspection_id,
        lambda inspection: inspection.schedule(scheduled_date=scheduled_date, scheduled_by=scheduled_by, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def start_inspection(
    db: Session,
    inspection_id: int,
    *,
    started_by: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Inspection:
    return _apply(
        db,
        inspection_id,
        lambda inspection: inspection.start(started_by=started_by, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def complete_inspection(
    db: Session,
    inspection_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.Inspection:
    return _apply(
        db,
        inspection_id,
        lambda inspection: inspection.complete(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def raise_finding(
    db: Session,
    inspection_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.InspectionFinding:
    found: List[models.InspectionFinding] = []
    _apply(
        db,
        inspection_id,
        lambda inspection: found.append(inspection.add_finding(**kwargs)),
        expected_version=expected_version,
        dispatch=dispatch,
    )
    return found[0]


def close_finding(
    db: Session,
    inspection_id: int,
    *,
    finding_id: int,
    closure_notes: str,
    closed_by: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Inspection:
    return _apply(
        db,
        inspection_id,
        lambda inspection: inspection.close_finding(
            finding=finding_id,
            closure_notes=closure_notes,
            closed_by=closed_by,
            now=now,
        ),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def list_overdue_inspections(db: Session, *, now: Optional[datetime] = None) -> List[models.Inspection]:
    now = now or utcnow()
    return (
        db.query(models.Inspection)
        .filter(
            models.Inspection.status == models.InspectionStatus.SCHEDULED,
            models.Inspection.scheduled_date < now,
        )
        .order_by(models.Inspection.scheduled_date.asc())
        .all()
    )
