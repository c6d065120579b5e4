from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ...utils.dates import utcnow
from ..events.dispatcher import dispatch_committed
from ..events.unit_of_work import Dispatch, commit, run_command
from . import models


def issue_certification(
    db: Session,
    *,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **fields,
) -> models.Certification:
    certification = models.Certification.create(**fields)
    commit(db, certification, dispatch=dispatch)
    return certification


def renew_certification(
    db: Session,
    certification_id: int,
    *,
    new_validity_months: int,
    actor: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Certification:
    return run_command(
        db,
        models.Certification,
        certification_id,
        lambda cert: cert.renew(renewed_by=actor, new_validity_months=new_validity_months, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def revoke_certification(
    db: Session,
    certification_id: int,
    *,
    reason: str,
    actor: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Certification:
    return run_command(
        db,
        models.Certification,
        certification_id,
        lambda cert: cert.revoke(revoked_by=actor, reason=reason, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def suspend_certification(
    db: Session,
    certification_id: int,
    *,
    reason: str,
    suspension_end_date: datetime,
    actor: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Certification:
    return run_command(
        db,
        models.Certification,
        certification_id,
        lambda cert: cert.suspend(
            suspended_by=actor,
            reason=reason,
            suspension_end_date=suspension_end_date,
            now=now,
        ),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def reinstate_certification(
    db: Session,
    certification_id: int,
    *,
    actor: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Certification:
    return run_command(
        db,
        models.Certification,
        certification_id,
        lambda cert: cert.reinstate(reinstated_by=actor, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def list_expiring(
    db: Session,
    *,
    within_days: int = models.EXPIRING_WINDOW_DAYS,
    now: Optional[datetime] = None,
) -> List[models.Certification]:
    """Valid, non-permanent certifications whose expiry falls inside the window."""
    now = now or utcnow()
    horizon = now + timedelta(days=within_days)
    rows = (
        db.query(models.Certification)
        .filter(
            models.Certification.status == models.CertificationStatus.VALID,
            models.Certification.expiry_date.isnot(None),
            models.Certification.expiry_date >= now,
            models.Certification.expiry_date <= horizon,
        )
        .order_by(models.Certification.expiry_date.asc())
        .all()
    )
    return [row for row in rows if row.is_expiring(now, within_days=within_days)]


def list_for_participant(db: Session, participant_id: int) -> List[models.Certification]:
    return (
        db.query(models.Certification)
        .filter(models.Certification.participant_id == participant_id)
        .order_by(models.Certification.issued_date.desc())
        .all()
    )
