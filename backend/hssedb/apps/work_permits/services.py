from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..events.dispatcher import dispatch_committed
from ..events.unit_of_work import Dispatch, commit, run_command
from . import models


def _apply(
    db: Session,
    permit_id: int,
    command: Callable[[models.WorkPermit], object],
    *,
    expected_version: Optional[int],
    dispatch: Optional[Dispatch],
) -> models.WorkPermit:
    return run_command(
        db,
        models.WorkPermit,
        permit_id,
        command,
        expected_version=expected_version,
        dispatch=dispatch,
    )


def request_permit(
    db: Session,
    *,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **fields,
) -> models.WorkPermit:
    permit = models.WorkPermit.create(**fields)
    commit(db, permit, dispatch=dispatch)
    return permit


def submit_permit(
    db: Session,
    permit_id: int,
    *,
    submitted_by: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.WorkPermit:
    return _apply(
        db,
        permit_id,
        lambda permit: permit.submit_for_approval(submitted_by=submitted_by, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def approve_permit(
    db: Session,
    permit_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.WorkPermit:
    return _apply(
        db,
        permit_id,
        lambda permit: permit.approve(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def reject_permit(
    db: Session,
    permit_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.WorkPermit:
    return _apply(
        db,
        permit_id,
        lambda permit: permit.reject(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def start_work(
    db: Session,
    permit_id: int,
    *,
    started_by: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.WorkPermit:
    return _apply(
        db,
        permit_id,
        lambda permit: permit.start_work(started_by=started_by, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def complete_work(
    db: Session,
    permit_id: int,
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **kwargs,
) -> models.WorkPermit:
    return _apply(
        db,
        permit_id,
        lambda permit: permit.complete_work(**kwargs),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def list_pending_approval(db: Session) -> List[models.WorkPermit]:
    return (
        db.query(models.WorkPermit)
        .filter(models.WorkPermit.status == models.WorkPermitStatus.PENDING_APPROVAL)
        .order_by(models.WorkPermit.submitted_at.asc())
        .all()
    )
