# backend/hssedb/apps/certifications/models.py

from __future__ import annotations

import enum
import logging
import math
import os
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import Column, DateTime, Enum as SAEnum, Float, ForeignKey, Index, Integer, String, Text

from ...database import Base
from ...utils.dates import add_months, as_utc
from ...utils.identifiers import generate_business_number
from ..workflow import validation
from ..workflow.aggregate import WorkflowAggregate
from ..workflow.errors import DomainValidationError

logger = logging.getLogger(__name__)

EXPIRING_WINDOW_DAYS = int(os.getenv("CERTIFICATION_EXPIRING_WINDOW_DAYS", "30"))


class CertificationStatus(str, enum.Enum):
    VALID = "VALID"
    SUSPENDED = "SUSPENDED"
    REVOKED = "REVOKED"
    # Never stored: reported by `effective_status` once the expiry date passes.
    EXPIRED = "EXPIRED"


class CertificationType(str, enum.Enum):
    COMPLETION = "COMPLETION"
    COMPETENCY = "COMPETENCY"
    COMPLIANCE = "COMPLIANCE"
    PROFESSIONAL = "PROFESSIONAL"


class CertificationGrade(str, enum.Enum):
    A = "A"
    B = "B"
    C = "C"
    PASS = "PASS"
    FAIL = "FAIL"


_NUMBER_PREFIXES = {
    CertificationType.COMPLETION: "CERT",
    CertificationType.COMPETENCY: "COMP",
    CertificationType.COMPLIANCE: "CMPL",
    CertificationType.PROFESSIONAL: "PROF",
}


def grade_for_score(score: Optional[float]) -> Optional[CertificationGrade]:
    if score is None:
        return None
    if score >= 90:
        return CertificationGrade.A
    if score >= 80:
        return CertificationGrade.B
    if score >= 70:
        return CertificationGrade.C
    if score >= 60:
        return CertificationGrade.PASS
    return CertificationGrade.FAIL


def _expiry_from(start: datetime, validity_months: int) -> Optional[datetime]:
    if validity_months == 0:
        return None
    return add_months(start, validity_months)


class Certification(WorkflowAggregate, Base):
    """
    Competency credential issued to a training participant.

    A validity of zero months marks the certification as permanent: it has no
    expiry date and never reports as expired or expiring. Expiry is derived
    from the clock on every read; only VALID, SUSPENDED and REVOKED are stored.
    """

    __tablename__ = "certifications"
    __workflow__ = "certification"
    __event_prefix__ = "certification"
    __reference_field__ = "certificate_number"
    __table_args__ = (
        Index("ix_certifications_status_expiry", "status", "expiry_date"),
        Index("ix_certifications_training_participant", "training_id", "participant_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    certificate_number = Column(String(40), nullable=False, unique=True, index=True)
    training_id = Column(Integer, ForeignKey("trainings.id", ondelete="RESTRICT"), nullable=False, index=True)
    participant_id = Column(
        Integer,
        ForeignKey("training_participants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    holder_name = Column(String(255), nullable=True)
    certification_type = Column(
        SAEnum(CertificationType, name="certification_type_enum", native_enum=False),
        nullable=False,
    )
    status = Column(
        SAEnum(CertificationStatus, name="certification_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    competency_achieved = Column(Text, nullable=False)
    final_score = Column(Float, nullable=True)

    issued_by = Column(String(64), nullable=False)
    issued_date = Column(DateTime(timezone=True), nullable=False)
    validity_months = Column(Integer, nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=True)

    renewal_count = Column(Integer, nullable=False, default=0)
    renewed_at = Column(DateTime(timezone=True), nullable=True)
    renewed_by = Column(String(64), nullable=True)

    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by = Column(String(64), nullable=True)
    revocation_reason = Column(Text, nullable=True)

    suspended_at = Column(DateTime(timezone=True), nullable=True)
    suspended_by = Column(String(64), nullable=True)
    suspension_reason = Column(Text, nullable=True)
    suspension_end_date = Column(DateTime(timezone=True), nullable=True)

    reinstated_at = Column(DateTime(timezone=True), nullable=True)
    reinstated_by = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    updated_by = Column(String(64), nullable=False)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    @classmethod
    def create(
        cls,
        *,
        training_id: int,
        participant_id: int,
        issued_by: str,
        validity_months: int,
        competency_achieved: str,
        holder_name: Optional[str] = None,
        final_score: Optional[float] = None,
        certification_type: CertificationType = CertificationType.COMPLETION,
        now: Optional[datetime] = None,
    ) -> "Certification":
        now = cls._now(now)
        actor = validation.require_actor(issued_by, "issued_by")
        if training_id is None:
            raise DomainValidationError("Training is required", field="training_id")
        if participant_id is None:
            raise DomainValidationError("Participant is required", field="participant_id")
        validation.require_range(validity_months, "validity_months", minimum=0)
        competency = validation.require_text(competency_achieved, "competency_achieved", label="Competency achieved")
        if final_score is not None:
            validation.require_range(final_score, "final_score", minimum=0, maximum=100)
        certification_type = validation.require_enum(CertificationType, certification_type, "certification_type")

        certification = cls(
            certificate_number=generate_business_number(
                _NUMBER_PREFIXES[certification_type],
                stamp_format="%Y%m",
                now=now,
                suffix_length=6,
            ),
            training_id=training_id,
            participant_id=participant_id,
            holder_name=validation.optional_text(holder_name),
            certification_type=certification_type,
            status=CertificationStatus.VALID,
            competency_achieved=competency,
            final_score=final_score,
            issued_by=actor,
            issued_date=now,
            validity_months=validity_months,
            expiry_date=_expiry_from(now, validity_months),
            renewal_count=0,
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        )
        certification._raise_event(
            "issued",
            actor=actor,
            occurred_at=now,
            certificate_number=certification.certificate_number,
            training_id=training_id,
            participant_id=participant_id,
            holder_name=certification.holder_name,
            issued_date=now,
            expiry_date=certification.expiry_date,
            is_permanent=certification.is_permanent,
        )
        return certification

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def renew(self, *, renewed_by: str, new_validity_months: int, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(renewed_by, "renewed_by")
        validation.require_range(new_validity_months, "new_validity_months", minimum=0)

        previous = self._transition(CertificationStatus.VALID)
        if previous == CertificationStatus.REVOKED:
            logger.warning(
                "Renewing a revoked certification",
                extra={"certificate_number": self.certificate_number, "actor": actor},
            )
        previous_expiry = self.expiry_date
        self.validity_months = new_validity_months
        self.expiry_date = _expiry_from(now, new_validity_months)
        self.suspension_end_date = None
        self.renewed_at = now
        self.renewed_by = actor
        self.renewal_count = (self.renewal_count or 0) + 1
        self.touch(actor, now)
        self._raise_event(
            "renewed",
            actor=actor,
            occurred_at=now,
            certificate_number=self.certificate_number,
            previous_status=previous,
            previous_expiry_date=previous_expiry,
            expiry_date=self.expiry_date,
            validity_months=new_validity_months,
        )

    def revoke(self, *, revoked_by: str, reason: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(revoked_by, "revoked_by")
        reason = validation.require_text(reason, "reason", label="Revocation reason")

        previous = self._transition(CertificationStatus.REVOKED)
        self.revoked_at = now
        self.revoked_by = actor
        self.revocation_reason = reason
        self.touch(actor, now)
        self._raise_event(
            "revoked",
            actor=actor,
            occurred_at=now,
            certificate_number=self.certificate_number,
            previous_status=previous,
            reason=reason,
        )

    def suspend(
        self,
        *,
        suspended_by: str,
        reason: str,
        suspension_end_date: datetime,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(suspended_by, "suspended_by")
        reason = validation.require_text(reason, "reason", label="Suspension reason")
        end_date = validation.require_future(suspension_end_date, "suspension_end_date", now=now)

        previous = self._transition(CertificationStatus.SUSPENDED)
        self.suspended_at = now
        self.suspended_by = actor
        self.suspension_reason = reason
        self.suspension_end_date = end_date
        self.touch(actor, now)
        self._raise_event(
            "suspended",
            actor=actor,
            occurred_at=now,
            certificate_number=self.certificate_number,
            previous_status=previous,
            reason=reason,
            suspension_end_date=end_date,
        )

    def reinstate(self, *, reinstated_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(reinstated_by, "reinstated_by")
        self._require_state(
            [CertificationStatus.SUSPENDED],
            reason="Certification must be suspended to be reinstated",
        )

        self._transition(CertificationStatus.VALID)
        self.reinstated_at = now
        self.reinstated_by = actor
        self.suspension_end_date = None
        self.touch(actor, now)
        self._raise_event(
            "reinstated",
            actor=actor,
            occurred_at=now,
            certificate_number=self.certificate_number,
        )

    def update_competency(self, competency_achieved: str, *, updated_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(updated_by, "updated_by")
        previous = self.competency_achieved
        self.competency_achieved = competency_achieved or ""
        self.touch(actor, now)
        self._raise_event(
            "competency_updated",
            actor=actor,
            occurred_at=now,
            certificate_number=self.certificate_number,
            previous_competency=previous,
            competency_achieved=self.competency_achieved,
        )

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def is_permanent(self) -> bool:
        return self.expiry_date is None

    @property
    def grade(self) -> Optional[CertificationGrade]:
        return grade_for_score(self.final_score)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiry_date is None:
            return False
        return as_utc(self.expiry_date) < self._now(now)

    def is_expiring(self, now: Optional[datetime] = None, *, within_days: int = EXPIRING_WINDOW_DAYS) -> bool:
        if self.expiry_date is None:
            return False
        now = self._now(now)
        expiry = as_utc(self.expiry_date)
        return now <= expiry <= now + timedelta(days=within_days)

    def days_until_expiry(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.expiry_date is None:
            return None
        remaining = (as_utc(self.expiry_date) - self._now(now)).total_seconds()
        return max(math.floor(remaining / 86400), 0)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return self.status == CertificationStatus.VALID and not self.is_expired(now)

    def effective_status(self, now: Optional[datetime] = None) -> CertificationStatus:
        if self.status == CertificationStatus.VALID and self.is_expired(now):
            return CertificationStatus.EXPIRED
        return self.status

    def __repr__(self) -> str:
        return f"<Certification id={self.id} number={self.certificate_number} status={self.status}>"
