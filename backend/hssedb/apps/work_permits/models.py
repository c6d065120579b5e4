# backend/hssedb/apps/work_permits/models.py

from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.identifiers import generate_business_number
from ..workflow import validation
from ..workflow.aggregate import WorkflowAggregate, find_owned
from ..workflow.errors import DomainValidationError, DuplicateEntryError


class WorkPermitStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WorkPermitType(str, enum.Enum):
    GENERAL = "GENERAL"
    HOT_WORK = "HOT_WORK"
    COLD_WORK = "COLD_WORK"
    CONFINED_SPACE = "CONFINED_SPACE"
    ELECTRICAL_WORK = "ELECTRICAL_WORK"
    SPECIAL = "SPECIAL"


class WorkPermitPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class PermitRiskLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ApprovalLevel(str, enum.Enum):
    SAFETY_OFFICER = "SAFETY_OFFICER"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    HOT_WORK_SPECIALIST = "HOT_WORK_SPECIALIST"
    CONFINED_SPACE_SPECIALIST = "CONFINED_SPACE_SPECIALIST"
    ELECTRICAL_SUPERVISOR = "ELECTRICAL_SUPERVISOR"
    SPECIAL_WORK_SPECIALIST = "SPECIAL_WORK_SPECIALIST"
    HSE_MANAGER = "HSE_MANAGER"


class PrecautionCategory(str, enum.Enum):
    PERSONAL_PROTECTIVE_EQUIPMENT = "PERSONAL_PROTECTIVE_EQUIPMENT"
    ISOLATION = "ISOLATION"
    FIRE_PREVENTION = "FIRE_PREVENTION"
    GAS_TESTING = "GAS_TESTING"
    COMMUNICATION = "COMMUNICATION"
    EMERGENCY_PROCEDURES = "EMERGENCY_PROCEDURES"
    ENVIRONMENTAL_PROTECTION = "ENVIRONMENTAL_PROTECTION"
    TRAFFIC_CONTROL = "TRAFFIC_CONTROL"
    ELECTRICAL_SAFETY = "ELECTRICAL_SAFETY"
    OTHER = "OTHER"


class WorkPermitAttachmentType(str, enum.Enum):
    RISK_ASSESSMENT = "RISK_ASSESSMENT"
    METHOD_STATEMENT = "METHOD_STATEMENT"
    DRAWING = "DRAWING"
    CERTIFICATE = "CERTIFICATE"
    PHOTO = "PHOTO"
    OTHER = "OTHER"


PERMIT_PREFIXES = {
    WorkPermitType.HOT_WORK: "HW",
    WorkPermitType.COLD_WORK: "CW",
    WorkPermitType.CONFINED_SPACE: "CS",
    WorkPermitType.ELECTRICAL_WORK: "EW",
    WorkPermitType.SPECIAL: "SP",
    WorkPermitType.GENERAL: "GP",
}

PERMIT_PRIORITIES = {
    WorkPermitType.HOT_WORK: WorkPermitPriority.HIGH,
    WorkPermitType.CONFINED_SPACE: WorkPermitPriority.CRITICAL,
    WorkPermitType.ELECTRICAL_WORK: WorkPermitPriority.HIGH,
    WorkPermitType.SPECIAL: WorkPermitPriority.CRITICAL,
}

_BASE_APPROVALS = (ApprovalLevel.SAFETY_OFFICER, ApprovalLevel.DEPARTMENT_HEAD)

REQUIRED_APPROVALS = {
    WorkPermitType.HOT_WORK: _BASE_APPROVALS + (ApprovalLevel.HOT_WORK_SPECIALIST,),
    WorkPermitType.CONFINED_SPACE: _BASE_APPROVALS + (ApprovalLevel.CONFINED_SPACE_SPECIALIST,),
    WorkPermitType.ELECTRICAL_WORK: _BASE_APPROVALS + (ApprovalLevel.ELECTRICAL_SUPERVISOR,),
    WorkPermitType.SPECIAL: _BASE_APPROVALS + (ApprovalLevel.SPECIAL_WORK_SPECIALIST, ApprovalLevel.HSE_MANAGER),
}

_SAFETY_FLAGS = (
    "requires_hot_work",
    "requires_confined_space_entry",
    "requires_electrical_isolation",
    "requires_height_work",
    "requires_radiation_work",
    "requires_excavation",
)

_HIGH_RISK = (PermitRiskLevel.HIGH, PermitRiskLevel.CRITICAL)

_DRAFT_ONLY = "Hazards and precautions can only be changed while the permit is a draft"
_CLOSED_STATES = (WorkPermitStatus.COMPLETED, WorkPermitStatus.CANCELLED)


def required_approvals_for(permit_type: WorkPermitType) -> List[ApprovalLevel]:
    return list(REQUIRED_APPROVALS.get(WorkPermitType(permit_type), _BASE_APPROVALS))


class WorkPermit(WorkflowAggregate, Base):
    """
    Permit-to-work for hazardous activities.

    Draft permits collect hazards and precautions, then go through one
    approval per level required by the permit type. Work may only start once
    every required precaution has been completed.
    """

    __tablename__ = "work_permits"
    __workflow__ = "work_permit"
    __event_prefix__ = "work_permit"
    __reference_field__ = "permit_number"
    __table_args__ = (
        Index("ix_work_permits_status_start", "status", "planned_start_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    permit_number = Column(String(40), nullable=False, unique=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    permit_type = Column(SAEnum(WorkPermitType, name="work_permit_type_enum", native_enum=False), nullable=False)
    status = Column(
        SAEnum(WorkPermitStatus, name="work_permit_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    priority = Column(SAEnum(WorkPermitPriority, name="work_permit_priority_enum", native_enum=False), nullable=False)

    work_location = Column(String(255), nullable=False)
    work_scope = Column(Text, nullable=False)
    number_of_workers = Column(Integer, nullable=False)
    contractor_company = Column(String(255), nullable=True)
    planned_start_date = Column(DateTime(timezone=True), nullable=False)
    planned_end_date = Column(DateTime(timezone=True), nullable=False)
    actual_start_date = Column(DateTime(timezone=True), nullable=True)
    actual_end_date = Column(DateTime(timezone=True), nullable=True)

    requested_by_id = Column(String(64), nullable=False, index=True)
    requested_by_name = Column(String(255), nullable=True)
    work_supervisor = Column(String(255), nullable=True)
    safety_officer = Column(String(255), nullable=True)

    requires_hot_work = Column(Boolean, nullable=False, default=False)
    requires_confined_space_entry = Column(Boolean, nullable=False, default=False)
    requires_electrical_isolation = Column(Boolean, nullable=False, default=False)
    requires_height_work = Column(Boolean, nullable=False, default=False)
    requires_radiation_work = Column(Boolean, nullable=False, default=False)
    requires_excavation = Column(Boolean, nullable=False, default=False)
    requires_fire_watch = Column(Boolean, nullable=False, default=False)
    requires_gas_monitoring = Column(Boolean, nullable=False, default=False)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    completion_notes = Column(Text, nullable=True)
    completed_safely = Column(Boolean, nullable=True)
    lessons_learned = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    updated_by = Column(String(64), nullable=False)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    approvals = relationship(
        "WorkPermitApproval",
        back_populates="permit",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WorkPermitApproval.id",
    )
    hazards = relationship(
        "WorkPermitHazard",
        back_populates="permit",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WorkPermitHazard.id",
    )
    precautions = relationship(
        "WorkPermitPrecaution",
        back_populates="permit",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WorkPermitPrecaution.id",
    )
    attachments = relationship(
        "WorkPermitAttachment",
        back_populates="permit",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WorkPermitAttachment.id",
    )

    @classmethod
    def create(
        cls,
        *,
        title: str,
        description: str,
        permit_type: WorkPermitType,
        work_location: str,
        work_scope: str,
        planned_start_date: datetime,
        planned_end_date: datetime,
        number_of_workers: int,
        requested_by: str,
        requested_by_name: Optional[str] = None,
        contractor_company: Optional[str] = None,
        work_supervisor: Optional[str] = None,
        safety_officer: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "WorkPermit":
        now = cls._now(now)
        actor = validation.require_actor(requested_by, "requested_by")
        title = validation.require_text(title, "title")
        description = validation.require_text(description, "description")
        permit_type = validation.require_enum(WorkPermitType, permit_type, "permit_type")
        work_location = validation.require_text(work_location, "work_location")
        work_scope = validation.require_text(work_scope, "work_scope")
        validation.require_range(number_of_workers, "number_of_workers", minimum=1)
        planned_start_date = validation.require_future(planned_start_date, "planned_start_date", now=now)
        planned_end_date = validation.require_future(planned_end_date, "planned_end_date", now=now)
        if planned_end_date <= planned_start_date:
            raise DomainValidationError(
                "Planned end date must be after the planned start date",
                field="planned_end_date",
            )

        permit = cls(
            permit_number=generate_business_number(
                PERMIT_PREFIXES.get(permit_type, "WP"),
                stamp_format="%Y%m",
                now=now,
            ),
            title=title,
            description=description,
            permit_type=permit_type,
            status=WorkPermitStatus.DRAFT,
            priority=PERMIT_PRIORITIES.get(permit_type, WorkPermitPriority.MEDIUM),
            work_location=work_location,
            work_scope=work_scope,
            number_of_workers=number_of_workers,
            contractor_company=validation.optional_text(contractor_company),
            planned_start_date=planned_start_date,
            planned_end_date=planned_end_date,
            requested_by_id=actor,
            requested_by_name=validation.optional_text(requested_by_name),
            work_supervisor=validation.optional_text(work_supervisor),
            safety_officer=validation.optional_text(safety_officer),
            requires_hot_work=permit_type == WorkPermitType.HOT_WORK,
            requires_confined_space_entry=permit_type == WorkPermitType.CONFINED_SPACE,
            requires_electrical_isolation=permit_type == WorkPermitType.ELECTRICAL_WORK,
            requires_height_work=False,
            requires_radiation_work=False,
            requires_excavation=False,
            requires_fire_watch=False,
            requires_gas_monitoring=False,
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        )
        permit._raise_event(
            "created",
            actor=actor,
            occurred_at=now,
            permit_number=permit.permit_number,
            title=title,
            permit_type=permit_type,
            priority=permit.priority,
            work_location=work_location,
            planned_start_date=planned_start_date,
        )
        return permit

    def set_safety_requirements(
        self,
        *,
        updated_by: str,
        now: Optional[datetime] = None,
        **flags: bool,
    ) -> None:
        """Toggle the `requires_*` flags; only legal on drafts."""
        now = self._now(now)
        actor = validation.require_actor(updated_by, "updated_by")
        allowed = set(_SAFETY_FLAGS) | {"requires_fire_watch", "requires_gas_monitoring"}
        unknown = sorted(set(flags) - allowed)
        if unknown:
            raise DomainValidationError(f"Unknown safety requirement: {', '.join(unknown)}", field=unknown[0])
        self._require_state([WorkPermitStatus.DRAFT], reason=_DRAFT_ONLY)

        for key, value in flags.items():
            setattr(self, key, bool(value))
        self.touch(actor, now)
        self._raise_event(
            "safety_requirements_updated",
            actor=actor,
            occurred_at=now,
            requirements={key: bool(getattr(self, key)) for key in sorted(allowed)},
            risk_level=self.risk_level,
        )

    # ------------------------------------------------------------------
    # Approval workflow
    # ------------------------------------------------------------------

    def submit_for_approval(self, *, submitted_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(submitted_by, "submitted_by")

        previous = self._transition(WorkPermitStatus.PENDING_APPROVAL)
        self.submitted_at = now
        self.touch(actor, now)
        self._raise_event(
            "submitted",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            title=self.title,
            permit_type=self.permit_type,
            required_approvals=self.required_approvals,
        )

    def approve(
        self,
        *,
        level: ApprovalLevel,
        approved_by: str,
        approver_name: Optional[str] = None,
        comments: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "WorkPermitApproval":
        """
        Record one approval. The permit becomes APPROVED when the last
        required level is in; until then it stays PENDING_APPROVAL.
        """
        now = self._now(now)
        actor = validation.require_actor(approved_by, "approved_by")
        level = validation.require_enum(ApprovalLevel, level, "level")
        self._require_state(
            [WorkPermitStatus.PENDING_APPROVAL],
            reason="Only permits pending approval can be approved",
        )
        if level in self.granted_levels():
            raise DuplicateEntryError(f"Approval level {level.value} has already been granted", field="level")

        approval = WorkPermitApproval.create(
            level=level,
            approved_by=actor,
            approver_name=approver_name,
            comments=comments,
            is_approved=True,
            now=now,
        )
        remaining = [item for item in self.required_approvals if item != level and item not in self.granted_levels()]
        target = WorkPermitStatus.APPROVED if not remaining else WorkPermitStatus.PENDING_APPROVAL
        previous = self._transition(target)

        self.approvals.append(approval)
        self.touch(actor, now)
        self._raise_event(
            "approval_recorded",
            actor=actor,
            occurred_at=now,
            level=level,
            approver_name=approval.approver_name,
            remaining_levels=remaining,
        )
        if target == WorkPermitStatus.APPROVED:
            self.approved_at = now
            self._raise_event(
                "approved",
                actor=actor,
                occurred_at=now,
                previous_status=previous,
                title=self.title,
                approver_name=approval.approver_name,
            )
        return approval

    def reject(
        self,
        *,
        reason: str,
        rejected_by: str,
        rejector_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(rejected_by, "rejected_by")
        reason = validation.require_text(reason, "reason", label="Rejection reason")

        previous = self._transition(WorkPermitStatus.REJECTED)
        self.approvals.append(
            WorkPermitApproval.create(
                level=None,
                approved_by=actor,
                approver_name=rejector_name,
                comments=reason,
                is_approved=False,
                now=now,
            )
        )
        self.rejected_at = now
        self.rejection_reason = reason
        self.touch(actor, now)
        self._raise_event(
            "rejected",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            title=self.title,
            reason=reason,
        )

    def start_work(self, *, started_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(started_by, "started_by")

        previous = self._transition(WorkPermitStatus.IN_PROGRESS)
        self.actual_start_date = now
        self.touch(actor, now)
        self._raise_event("work_started", actor=actor, occurred_at=now, previous_status=previous, started_at=now)

    def complete_work(
        self,
        *,
        completed_by: str,
        completion_notes: str,
        completed_safely: bool,
        lessons_learned: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(completed_by, "completed_by")
        completion_notes = validation.require_text(completion_notes, "completion_notes", label="Completion notes")

        previous = self._transition(WorkPermitStatus.COMPLETED)
        self.actual_end_date = now
        self.completion_notes = completion_notes
        self.completed_safely = bool(completed_safely)
        self.lessons_learned = validation.optional_text(lessons_learned)
        self.touch(actor, now)
        self._raise_event(
            "work_completed",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            completed_safely=self.completed_safely,
            completed_at=now,
        )

    def cancel(self, *, reason: str, cancelled_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(cancelled_by, "cancelled_by")
        reason = validation.require_text(reason, "reason", label="Cancellation reason")

        previous = self._transition(WorkPermitStatus.CANCELLED)
        self.cancelled_at = now
        self.cancellation_reason = reason
        self.touch(actor, now)
        self._raise_event("cancelled", actor=actor, occurred_at=now, previous_status=previous, reason=reason)

    # ------------------------------------------------------------------
    # Hazards and precautions
    # ------------------------------------------------------------------

    def add_hazard(
        self,
        *,
        description: str,
        risk_level: PermitRiskLevel,
        control_measures: str,
        added_by: str,
        responsible_person: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "WorkPermitHazard":
        now = self._now(now)
        actor = validation.require_actor(added_by, "added_by")
        hazard = WorkPermitHazard.create(
            description=description,
            risk_level=risk_level,
            control_measures=control_measures,
            responsible_person=responsible_person,
        )
        self._require_state([WorkPermitStatus.DRAFT], reason=_DRAFT_ONLY)

        self.hazards.append(hazard)
        self.touch(actor, now)
        self._raise_event(
            "hazard_added",
            actor=actor,
            occurred_at=now,
            description=hazard.description,
            risk_level=hazard.risk_level,
            permit_risk_level=self.risk_level,
        )
        return hazard

    def remove_hazard(self, *, hazard, removed_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(removed_by, "removed_by")
        self._require_state([WorkPermitStatus.DRAFT], reason=_DRAFT_ONLY)
        hazard = find_owned(self.hazards, hazard, label="Hazard")

        self.hazards.remove(hazard)
        self.touch(actor, now)
        self._raise_event("hazard_removed", actor=actor, occurred_at=now, hazard_id=hazard.id)

    def add_precaution(
        self,
        *,
        description: str,
        category: PrecautionCategory,
        added_by: str,
        is_required: bool = True,
        priority: int = 1,
        responsible_person: Optional[str] = None,
        verification_method: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "WorkPermitPrecaution":
        now = self._now(now)
        actor = validation.require_actor(added_by, "added_by")
        precaution = WorkPermitPrecaution.create(
            description=description,
            category=category,
            is_required=is_required,
            priority=priority,
            responsible_person=responsible_person,
            verification_method=verification_method,
        )
        self._require_state([WorkPermitStatus.DRAFT], reason=_DRAFT_ONLY)

        self.precautions.append(precaution)
        self.touch(actor, now)
        self._raise_event(
            "precaution_added",
            actor=actor,
            occurred_at=now,
            description=precaution.description,
            category=precaution.category,
            is_required=precaution.is_required,
        )
        return precaution

    def complete_precaution(
        self,
        *,
        precaution,
        completed_by: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(completed_by, "completed_by")
        self._require_state(
            [WorkPermitStatus.APPROVED, WorkPermitStatus.IN_PROGRESS],
            reason="Precautions can only be completed on approved or in-progress permits",
        )
        precaution = find_owned(self.precautions, precaution, label="Precaution")

        precaution.complete(completed_by=actor, notes=notes, now=now)
        self.touch(actor, now)
        self._raise_event(
            "precaution_completed",
            actor=actor,
            occurred_at=now,
            precaution_id=precaution.id,
            description=precaution.description,
        )

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def add_attachment(
        self,
        *,
        file_name: str,
        file_path: str,
        file_size: int,
        content_type: str,
        uploaded_by: str,
        attachment_type: WorkPermitAttachmentType = WorkPermitAttachmentType.OTHER,
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "WorkPermitAttachment":
        now = self._now(now)
        actor = validation.require_actor(uploaded_by, "uploaded_by")
        attachment = WorkPermitAttachment.create(
            file_name=file_name,
            file_path=file_path,
            file_size=file_size,
            content_type=content_type,
            attachment_type=attachment_type,
            description=description,
            uploaded_by=actor,
            now=now,
        )
        self._require_state(
            [status for status in WorkPermitStatus if status not in _CLOSED_STATES],
            reason="Completed or cancelled permits cannot be changed",
        )

        self.attachments.append(attachment)
        self.touch(actor, now)
        self._raise_event(
            "attachment_added",
            actor=actor,
            occurred_at=now,
            file_name=attachment.file_name,
            file_path=attachment.file_path,
            attachment_type=attachment.attachment_type,
        )
        return attachment

    def remove_attachment(self, *, attachment, removed_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(removed_by, "removed_by")
        self._require_state(
            [status for status in WorkPermitStatus if status not in _CLOSED_STATES],
            reason="Completed or cancelled permits cannot be changed",
        )
        attachment = find_owned(self.attachments, attachment, label="Attachment")

        self.attachments.remove(attachment)
        self.touch(actor, now)
        self._raise_event(
            "attachment_removed",
            actor=actor,
            occurred_at=now,
            attachment_id=attachment.id,
            file_path=attachment.file_path,
        )

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def required_approvals(self) -> List[ApprovalLevel]:
        return required_approvals_for(self.permit_type)

    def granted_levels(self) -> List[ApprovalLevel]:
        return [ApprovalLevel(item.level) for item in self.approvals if item.is_approved and item.level]

    def has_all_required_approvals(self) -> bool:
        granted = set(self.granted_levels())
        return all(level in granted for level in self.required_approvals)

    def outstanding_precautions(self) -> List["WorkPermitPrecaution"]:
        return [item for item in self.precautions if item.is_required and not item.is_completed]

    @property
    def risk_level(self) -> PermitRiskLevel:
        """One point per high-risk activity flag and per high or critical hazard."""
        factors = sum(1 for flag in _SAFETY_FLAGS if getattr(self, flag))
        factors += sum(1 for hazard in self.hazards if hazard.risk_level in _HIGH_RISK)
        if factors >= 3:
            return PermitRiskLevel.CRITICAL
        if factors == 2:
            return PermitRiskLevel.HIGH
        if factors == 1:
            return PermitRiskLevel.MEDIUM
        return PermitRiskLevel.LOW

    def __repr__(self) -> str:
        return f"<WorkPermit id={self.id} number={self.permit_number} status={self.status}>"


class WorkPermitApproval(Base):
    __tablename__ = "work_permit_approvals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    permit_id = Column(Integer, ForeignKey("work_permits.id", ondelete="CASCADE"), nullable=False, index=True)
    level = Column(SAEnum(ApprovalLevel, name="work_permit_approval_level_enum", native_enum=False), nullable=True)
    is_approved = Column(Boolean, nullable=False)
    approved_by = Column(String(64), nullable=False)
    approver_name = Column(String(255), nullable=True)
    comments = Column(Text, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=False)

    permit = relationship("WorkPermit", back_populates="approvals")

    @classmethod
    def create(
        cls,
        *,
        level: Optional[ApprovalLevel],
        approved_by: str,
        is_approved: bool,
        now: datetime,
        approver_name: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> "WorkPermitApproval":
        return cls(
            level=level,
            is_approved=is_approved,
            approved_by=approved_by,
            approver_name=validation.optional_text(approver_name),
            comments=validation.optional_text(comments),
            decided_at=now,
        )


class WorkPermitHazard(Base):
    __tablename__ = "work_permit_hazards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    permit_id = Column(Integer, ForeignKey("work_permits.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    risk_level = Column(SAEnum(PermitRiskLevel, name="work_permit_hazard_risk_enum", native_enum=False), nullable=False)
    control_measures = Column(Text, nullable=False)
    responsible_person = Column(String(255), nullable=True)

    permit = relationship("WorkPermit", back_populates="hazards")

    @classmethod
    def create(
        cls,
        *,
        description: str,
        risk_level: PermitRiskLevel,
        control_measures: str,
        responsible_person: Optional[str] = None,
    ) -> "WorkPermitHazard":
        return cls(
            description=validation.require_text(description, "description"),
            risk_level=validation.require_enum(PermitRiskLevel, risk_level, "risk_level"),
            control_measures=validation.require_text(control_measures, "control_measures"),
            responsible_person=validation.optional_text(responsible_person),
        )


class WorkPermitPrecaution(Base):
    __tablename__ = "work_permit_precautions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    permit_id = Column(Integer, ForeignKey("work_permits.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    category = Column(
        SAEnum(PrecautionCategory, name="work_permit_precaution_category_enum", native_enum=False),
        nullable=False,
    )
    is_required = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=False, default=1)
    responsible_person = Column(String(255), nullable=True)
    verification_method = Column(String(255), nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by = Column(String(64), nullable=True)
    completion_notes = Column(Text, nullable=True)

    permit = relationship("WorkPermit", back_populates="precautions")

    @classmethod
    def create(
        cls,
        *,
        description: str,
        category: PrecautionCategory,
        is_required: bool = True,
        priority: int = 1,
        responsible_person: Optional[str] = None,
        verification_method: Optional[str] = None,
    ) -> "WorkPermitPrecaution":
        validation.require_range(priority, "priority", minimum=1, maximum=5)
        return cls(
            description=validation.require_text(description, "description"),
            category=validation.require_enum(PrecautionCategory, category, "category"),
            is_required=bool(is_required),
            priority=priority,
            responsible_person=validation.optional_text(responsible_person),
            verification_method=validation.optional_text(verification_method),
            is_completed=False,
        )

    def complete(self, *, completed_by: str, notes: Optional[str] = None, now: datetime) -> None:
        if self.is_completed:
            raise DuplicateEntryError("Precaution has already been completed", field="precaution_id")
        self.is_completed = True
        self.completed_at = now
        self.completed_by = completed_by
        self.completion_notes = validation.optional_text(notes)


class WorkPermitAttachment(Base):
    __tablename__ = "work_permit_attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    permit_id = Column(Integer, ForeignKey("work_permits.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String(128), nullable=False)
    attachment_type = Column(
        SAEnum(WorkPermitAttachmentType, name="work_permit_attachment_type_enum", native_enum=False),
        nullable=False,
    )
    description = Column(Text, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False)
    uploaded_by = Column(String(64), nullable=False)

    permit = relationship("WorkPermit", back_populates="attachments")

    @classmethod
    def create(
        cls,
        *,
        file_name: str,
        file_path: str,
        file_size: int,
        content_type: str,
        uploaded_by: str,
        now: datetime,
        attachment_type: WorkPermitAttachmentType = WorkPermitAttachmentType.OTHER,
        description: Optional[str] = None,
    ) -> "WorkPermitAttachment":
        validation.require_range(file_size, "file_size", minimum=0)
        return cls(
            file_name=validation.require_text(file_name, "file_name"),
            file_path=validation.require_text(file_path, "file_path"),
            file_size=file_size,
            content_type=validation.require_text(content_type, "content_type"),
            attachment_type=validation.require_enum(WorkPermitAttachmentType, attachment_type, "attachment_type"),
            description=validation.optional_text(description),
            uploaded_at=now,
            uploaded_by=uploaded_by,
        )
