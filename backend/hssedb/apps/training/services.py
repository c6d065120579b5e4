from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ...utils.dates import utcnow
from ..certifications.models import Certification, CertificationType
from ..events.dispatcher import dispatch_committed
from ..events.unit_of_work import Dispatch, commit, load_aggregate, run_command
from . import models

logger = logging.getLogger(__name__)


def create_training(
    db: Session,
    *,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **fields,
) -> models.Training:
    training = models.Training.create(**fields)
    commit(db, training, dispatch=dispatch)
    return training


def get_training(db: Session, training_id: int) -> models.Training:
    return load_aggregate(db, models.Training, training_id)


def schedule_training(
    db: Session,
    training_id: int,
    *,
    scheduled_date: datetime,
    duration_minutes: int,
    actor: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Training:
    return run_command(
        db,
        models.Training,
        training_id,
        lambda training: training.schedule(
            scheduled_date=scheduled_date,
            duration_minutes=duration_minutes,
            scheduled_by=actor,
            now=now,
        ),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def start_training(
    db: Session,
    training_id: int,
    *,
    actor: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Training:
    return run_command(
        db,
        models.Training,
        training_id,
        lambda training: training.start_training(started_by=actor, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def cancel_training(
    db: Session,
    training_id: int,
    *,
    reason: str,
    actor: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Training:
    return run_command(
        db,
        models.Training,
        training_id,
        lambda training: training.cancel(reason=reason, cancelled_by=actor, now=now),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def enrol_participant(
    db: Session,
    training_id: int,
    *,
    user_id,
    user_name: str,
    actor: str,
    email: Optional[str] = None,
    waitlisted: bool = False,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Training:
    return run_command(
        db,
        models.Training,
        training_id,
        lambda training: training.add_participant(
            user_id=user_id,
            user_name=user_name,
            enrolled_by=actor,
            email=email,
            waitlisted=waitlisted,
            now=now,
        ),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def mark_attendance(
    db: Session,
    training_id: int,
    *,
    user_id,
    is_present: bool,
    actor: str,
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Training:
    return run_command(
        db,
        models.Training,
        training_id,
        lambda training: training.mark_attendance(
            user_id=user_id,
            is_present=is_present,
            marked_by=actor,
            notes=notes,
            now=now,
        ),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def record_results(
    db: Session,
    training_id: int,
    *,
    user_id,
    score: float,
    passed: bool,
    actor: str,
    feedback: Optional[str] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Training:
    return run_command(
        db,
        models.Training,
        training_id,
        lambda training: training.record_results(
            user_id=user_id,
            score=score,
            passed=passed,
            assessed_by=actor,
            feedback=feedback,
            now=now,
        ),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def complete_training(
    db: Session,
    training_id: int,
    *,
    actor: str,
    summary: Optional[str] = None,
    effectiveness_score: Optional[float] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> Tuple[models.Training, List[Certification]]:
    """
    Complete the training and, when it issues certificates, certify every
    eligible participant in the same transaction.
    """
    training = load_aggregate(db, models.Training, training_id, expected_version=expected_version)
    training.complete_training(
        completed_by=actor,
        summary=summary,
        effectiveness_score=effectiveness_score,
        now=now,
    )

    certifications: List[Certification] = []
    if training.issues_certificate:
        for participant in training.eligible_for_certification():
            certifications.append(
                Certification.create(
                    training_id=training.id,
                    participant_id=participant.id,
                    issued_by=actor,
                    validity_months=training.certificate_validity_months,
                    competency_achieved=training.title,
                    holder_name=participant.user_name,
                    final_score=participant.score,
                    certification_type=CertificationType.COMPLETION,
                    now=now,
                )
            )
        logger.info(
            "Issuing certifications on training completion",
            extra={"training_code": training.training_code, "count": len(certifications)},
        )

    commit(db, training, *certifications, dispatch=dispatch)
    return training, certifications


def add_requirement(
    db: Session,
    training_id: int,
    *,
    actor: str,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
    **fields,
) -> models.TrainingRequirement:
    added: List[models.TrainingRequirement] = []
    run_command(
        db,
        models.Training,
        training_id,
        lambda training: added.append(training.add_requirement(added_by=actor, **fields)),
        expected_version=expected_version,
        dispatch=dispatch,
    )
    return added[0]


def complete_requirement(
    db: Session,
    training_id: int,
    *,
    requirement_id: int,
    actor: str,
    notes: Optional[str] = None,
    evidence: Optional[str] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Training:
    return run_command(
        db,
        models.Training,
        training_id,
        lambda training: training.complete_requirement(
            requirement=requirement_id,
            completed_by=actor,
            notes=notes,
            evidence=evidence,
            now=now,
        ),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def verify_requirement(
    db: Session,
    training_id: int,
    *,
    requirement_id: int,
    actor: str,
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> models.Training:
    return run_command(
        db,
        models.Training,
        training_id,
        lambda training: training.verify_requirement(
            requirement=requirement_id,
            verified_by=actor,
            notes=notes,
            now=now,
        ),
        expected_version=expected_version,
        dispatch=dispatch,
    )


def flag_overdue_requirements(
    db: Session,
    *,
    actor: str = "system",
    now: Optional[datetime] = None,
    dispatch: Optional[Dispatch] = dispatch_committed,
) -> List[models.TrainingRequirement]:
    """
    Sweep open requirements past their due date. Each training is committed
    separately so one conflicting write does not hold back the rest.
    """
    now = now or utcnow()
    training_ids = [
        training_id
        for (training_id,) in db.query(models.TrainingRequirement.training_id)
        .join(models.Training, models.Training.id == models.TrainingRequirement.training_id)
        .filter(
            models.TrainingRequirement.status.in_(
                [models.RequirementStatus.PENDING, models.RequirementStatus.IN_PROGRESS]
            ),
            models.TrainingRequirement.due_date.isnot(None),
            models.TrainingRequirement.due_date < now,
            models.Training.status != models.TrainingStatus.CANCELLED,
        )
        .distinct()
        .order_by(models.TrainingRequirement.training_id)
        .all()
    ]

    flagged: List[models.TrainingRequirement] = []
    for training_id in training_ids:
        training = load_aggregate(db, models.Training, training_id)
        overdue = training.flag_overdue_requirements(flagged_by=actor, now=now)
        if overdue:
            commit(db, training, dispatch=dispatch)
            flagged.extend(overdue)
    logger.info("Flagged overdue training requirements", extra={"count": len(flagged)})
    return flagged
