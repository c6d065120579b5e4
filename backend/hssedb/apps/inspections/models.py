# backend/hssedb/apps/inspections/models.py

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

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
from ...utils.dates import as_utc, elapsed_minutes
from ...utils.identifiers import generate_business_number
from ..workflow import validation
from ..workflow.aggregate import StatefulEntity, WorkflowAggregate, find_owned


class InspectionStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ARCHIVED = "ARCHIVED"


class InspectionType(str, enum.Enum):
    SAFETY = "SAFETY"
    HEALTH = "HEALTH"
    ENVIRONMENTAL = "ENVIRONMENTAL"
    SECURITY = "SECURITY"
    EQUIPMENT = "EQUIPMENT"
    FIRE = "FIRE"
    COMPLIANCE = "COMPLIANCE"


class InspectionCategory(str, enum.Enum):
    ROUTINE = "ROUTINE"
    PLANNED = "PLANNED"
    UNPLANNED = "UNPLANNED"
    REGULATORY = "REGULATORY"
    FOLLOW_UP = "FOLLOW_UP"
    INCIDENT = "INCIDENT"


class InspectionPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class FindingType(str, enum.Enum):
    NON_COMPLIANCE = "NON_COMPLIANCE"
    OBSERVATION = "OBSERVATION"
    BEST_PRACTICE = "BEST_PRACTICE"
    IMPROVEMENT = "IMPROVEMENT"
    HAZARD = "HAZARD"


class FindingSeverity(str, enum.Enum):
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    MAJOR = "MAJOR"
    CRITICAL = "CRITICAL"


class FindingStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    VERIFIED = "VERIFIED"
    CLOSED = "CLOSED"


_FINDING_RISK = {
    FindingSeverity.MINOR: RiskLevel.LOW,
    FindingSeverity.MODERATE: RiskLevel.MEDIUM,
    FindingSeverity.MAJOR: RiskLevel.HIGH,
    FindingSeverity.CRITICAL: RiskLevel.CRITICAL,
}

_RISK_RANK = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}

_INACTIVE_STATES = (InspectionStatus.CANCELLED, InspectionStatus.ARCHIVED)
_ACTIVE_STATES = tuple(status for status in InspectionStatus if status not in _INACTIVE_STATES)


def risk_for_severity(severity: FindingSeverity) -> RiskLevel:
    return _FINDING_RISK[FindingSeverity(severity)]


class Inspection(WorkflowAggregate, Base):
    """
    Planned site/equipment inspection.

    DRAFT -> SCHEDULED -> IN_PROGRESS -> COMPLETED -> ARCHIVED, with CANCELLED
    reachable before completion. Findings are raised while IN_PROGRESS or
    after COMPLETED and then worked through their own corrective-action chain.
    """

    __tablename__ = "inspections"
    __workflow__ = "inspection"
    __event_prefix__ = "inspection"
    __reference_field__ = "inspection_number"
    __table_args__ = (
        Index("ix_inspections_status_scheduled", "status", "scheduled_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspection_number = Column(String(40), nullable=False, unique=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    inspection_type = Column(SAEnum(InspectionType, name="inspection_type_enum", native_enum=False), nullable=False)
    category = Column(SAEnum(InspectionCategory, name="inspection_category_enum", native_enum=False), nullable=False)
    priority = Column(SAEnum(InspectionPriority, name="inspection_priority_enum", native_enum=False), nullable=False)
    status = Column(
        SAEnum(InspectionStatus, name="inspection_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )

    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    estimated_duration_minutes = Column(Integer, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    actual_duration_minutes = Column(Integer, nullable=True)

    inspector_id = Column(String(64), nullable=False, index=True)
    inspector_name = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    department = Column(String(128), nullable=True)
    facility = Column(String(128), nullable=True)

    summary = Column(Text, nullable=True)
    recommendations = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    updated_by = Column(String(64), nullable=False)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    findings = relationship(
        "InspectionFinding",
        back_populates="inspection",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InspectionFinding.id",
    )
    attachments = relationship(
        "InspectionAttachment",
        back_populates="inspection",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InspectionAttachment.id",
    )

    @classmethod
    def create(
        cls,
        *,
        title: str,
        description: str,
        inspection_type: InspectionType,
        category: InspectionCategory,
        priority: InspectionPriority,
        scheduled_date: datetime,
        inspector_id,
        created_by: str,
        inspector_name: Optional[str] = None,
        location: Optional[str] = None,
        department: Optional[str] = None,
        facility: Optional[str] = None,
        estimated_duration_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> "Inspection":
        now = cls._now(now)
        actor = validation.require_actor(created_by, "created_by")
        title = validation.require_text(title, "title")
        description = validation.require_text(description, "description")
        inspection_type = validation.require_enum(InspectionType, inspection_type, "inspection_type")
        category = validation.require_enum(InspectionCategory, category, "category")
        priority = validation.require_enum(InspectionPriority, priority, "priority")
        scheduled_date = validation.require_future(scheduled_date, "scheduled_date", now=now)
        inspector = validation.require_text(None if inspector_id is None else str(inspector_id), "inspector_id")
        if estimated_duration_minutes is not None:
            validation.require_range(estimated_duration_minutes, "estimated_duration_minutes", minimum=1)

        inspection = cls(
            inspection_number=generate_business_number("INS", stamp_format="%Y%m%d", now=now, suffix_length=6),
            title=title,
            description=description,
            inspection_type=inspection_type,
            category=category,
            priority=priority,
            status=InspectionStatus.DRAFT,
            scheduled_date=scheduled_date,
            estimated_duration_minutes=estimated_duration_minutes,
            inspector_id=inspector,
            inspector_name=validation.optional_text(inspector_name),
            location=validation.optional_text(location),
            department=validation.optional_text(department),
            facility=validation.optional_text(facility),
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        )
        inspection._raise_event(
            "created",
            actor=actor,
            occurred_at=now,
            inspection_number=inspection.inspection_number,
            title=title,
            inspection_type=inspection_type,
            scheduled_date=scheduled_date,
            inspector_id=inspector,
        )
        return inspection

    def update_basic_info(
        self,
        *,
        updated_by: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[InspectionPriority] = None,
        location: Optional[str] = None,
        department: Optional[str] = None,
        facility: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(updated_by, "updated_by")
        changes = {}
        if title is not None:
            changes["title"] = validation.require_text(title, "title")
        if description is not None:
            changes["description"] = validation.require_text(description, "description")
        if priority is not None:
            changes["priority"] = validation.require_enum(InspectionPriority, priority, "priority")
        for key, value in (("location", location), ("department", department), ("facility", facility)):
            if value is not None:
                changes[key] = validation.optional_text(value)
        self._require_state(
            [InspectionStatus.DRAFT, InspectionStatus.SCHEDULED],
            reason="Only draft or scheduled inspections can be edited",
        )

        for key, value in changes.items():
            setattr(self, key, value)
        self.touch(actor, now)
        self._raise_event("updated", actor=actor, occurred_at=now, changed_fields=sorted(changes))

    def schedule(
        self,
        *,
        scheduled_date: datetime,
        scheduled_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(scheduled_by, "scheduled_by")
        scheduled_date = validation.require_future(scheduled_date, "scheduled_date", now=now)

        previous = self._transition(InspectionStatus.SCHEDULED)
        self.scheduled_date = scheduled_date
        self.touch(actor, now)
        self._raise_event(
            "scheduled",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            scheduled_date=scheduled_date,
            title=self.title,
            inspector_id=self.inspector_id,
        )

    def start(self, *, started_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(started_by, "started_by")

        previous = self._transition(InspectionStatus.IN_PROGRESS)
        self.started_at = now
        self.touch(actor, now)
        self._raise_event("started", actor=actor, occurred_at=now, previous_status=previous, started_at=now)

    def complete(
        self,
        *,
        completed_by: str,
        summary: Optional[str] = None,
        recommendations: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(completed_by, "completed_by")

        previous = self._transition(InspectionStatus.COMPLETED)
        self.completed_at = now
        self.actual_duration_minutes = elapsed_minutes(self.started_at, now) if self.started_at else None
        self.summary = validation.optional_text(summary)
        self.recommendations = validation.optional_text(recommendations)
        self.touch(actor, now)
        self._raise_event(
            "completed",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            completed_at=now,
            actual_duration_minutes=self.actual_duration_minutes,
            findings_count=len(self.findings),
            risk_level=self.risk_level,
        )

    def cancel(self, *, reason: str, cancelled_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(cancelled_by, "cancelled_by")
        reason = validation.require_text(reason, "reason", label="Cancellation reason")

        previous = self._transition(InspectionStatus.CANCELLED)
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.touch(actor, now)
        self._raise_event("cancelled", actor=actor, occurred_at=now, previous_status=previous, reason=reason)

    def archive(self, *, archived_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(archived_by, "archived_by")

        previous = self._transition(InspectionStatus.ARCHIVED)
        self.archived_at = now
        self.touch(actor, now)
        self._raise_event("archived", actor=actor, occurred_at=now, previous_status=previous)

    # ------------------------------------------------------------------
    # Findings
    # ------------------------------------------------------------------

    def add_finding(
        self,
        *,
        description: str,
        finding_type: FindingType,
        severity: FindingSeverity,
        raised_by: str,
        location: Optional[str] = None,
        equipment: Optional[str] = None,
        regulation: Optional[str] = None,
        immediate_action: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "InspectionFinding":
        now = self._now(now)
        actor = validation.require_actor(raised_by, "raised_by")
        finding = InspectionFinding.create(
            description=description,
            finding_type=finding_type,
            severity=severity,
            location=location,
            equipment=equipment,
            regulation=regulation,
            immediate_action=immediate_action,
            created_by=actor,
            now=now,
        )
        self._require_state(
            [InspectionStatus.IN_PROGRESS, InspectionStatus.COMPLETED],
            reason="Findings can only be added to in-progress or completed inspections",
        )

        self.findings.append(finding)
        self.touch(actor, now)
        self._raise_event(
            "finding_added",
            actor=actor,
            occurred_at=now,
            finding_number=finding.finding_number,
            finding_type=finding.finding_type,
            severity=finding.severity,
            risk_level=self.risk_level,
        )
        return finding

    def _finding_for_update(self, finding):
        self._require_state(
            _ACTIVE_STATES,
            reason="Findings of cancelled or archived inspections cannot be changed",
        )
        return find_owned(self.findings, finding, label="Finding")

    def set_corrective_action(
        self,
        *,
        finding,
        corrective_action: str,
        assigned_by: str,
        due_date: Optional[datetime] = None,
        responsible_person_id=None,
        root_cause: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(assigned_by, "assigned_by")
        finding = self._finding_for_update(finding)

        finding.set_corrective_action(
            corrective_action,
            due_date=due_date,
            responsible_person_id=responsible_person_id,
            root_cause=root_cause,
            now=now,
        )
        self.touch(actor, now)
        self._raise_event(
            "finding_action_assigned",
            actor=actor,
            occurred_at=now,
            finding_number=finding.finding_number,
            corrective_action=finding.corrective_action,
            due_date=finding.due_date,
            responsible_person_id=finding.responsible_person_id,
        )

    def resolve_finding(self, *, finding, resolved_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(resolved_by, "resolved_by")
        finding = self._finding_for_update(finding)

        finding.resolve(now=now)
        self.touch(actor, now)
        self._raise_event("finding_resolved", actor=actor, occurred_at=now, finding_number=finding.finding_number)

    def verify_finding(self, *, finding, verified_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(verified_by, "verified_by")
        finding = self._finding_for_update(finding)

        finding.verify(verified_by=actor, now=now)
        self.touch(actor, now)
        self._raise_event("finding_verified", actor=actor, occurred_at=now, finding_number=finding.finding_number)

    def close_finding(self, *, finding, closure_notes: str, closed_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(closed_by, "closed_by")
        finding = self._finding_for_update(finding)

        finding.close(closure_notes, now=now)
        self.touch(actor, now)
        self._raise_event(
            "finding_closed",
            actor=actor,
            occurred_at=now,
            finding_number=finding.finding_number,
            closure_notes=finding.closure_notes,
        )

    def reopen_finding(self, *, finding, reason: str, reopened_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(reopened_by, "reopened_by")
        finding = self._finding_for_update(finding)

        finding.reopen(reason, now=now)
        self.touch(actor, now)
        self._raise_event(
            "finding_reopened",
            actor=actor,
            occurred_at=now,
            finding_number=finding.finding_number,
            reason=finding.reopen_reason,
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
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "InspectionAttachment":
        now = self._now(now)
        actor = validation.require_actor(uploaded_by, "uploaded_by")
        attachment = InspectionAttachment.create(
            file_name=file_name,
            file_path=file_path,
            file_size=file_size,
            content_type=content_type,
            description=description,
            uploaded_by=actor,
            now=now,
        )
        self._require_state(
            [status for status in InspectionStatus if status != InspectionStatus.ARCHIVED],
            reason="Archived inspections cannot be changed",
        )

        self.attachments.append(attachment)
        self.touch(actor, now)
        self._raise_event(
            "attachment_added",
            actor=actor,
            occurred_at=now,
            file_name=attachment.file_name,
            file_path=attachment.file_path,
        )
        return attachment

    def remove_attachment(self, *, attachment, removed_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(removed_by, "removed_by")
        self._require_state(
            [status for status in InspectionStatus if status != InspectionStatus.ARCHIVED],
            reason="Archived inspections cannot be changed",
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
    def risk_level(self) -> RiskLevel:
        """Highest risk among findings that are not yet closed."""
        levels = [risk_for_severity(item.severity) for item in self.findings if item.status != FindingStatus.CLOSED]
        if not levels:
            return RiskLevel.LOW
        return max(levels, key=_RISK_RANK.__getitem__)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        return self.status == InspectionStatus.SCHEDULED and as_utc(self.scheduled_date) < self._now(now)

    def open_findings_count(self) -> int:
        return sum(1 for item in self.findings if item.status != FindingStatus.CLOSED)

    def __repr__(self) -> str:
        return f"<Inspection id={self.id} number={self.inspection_number} status={self.status}>"


class InspectionFinding(StatefulEntity, Base):
    __tablename__ = "inspection_findings"
    __workflow__ = "inspection_finding"

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspection_id = Column(Integer, ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True)
    finding_number = Column(String(40), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False)
    finding_type = Column(SAEnum(FindingType, name="inspection_finding_type_enum", native_enum=False), nullable=False)
    severity = Column(
        SAEnum(FindingSeverity, name="inspection_finding_severity_enum", native_enum=False),
        nullable=False,
    )
    status = Column(
        SAEnum(FindingStatus, name="inspection_finding_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    location = Column(String(255), nullable=True)
    equipment = Column(String(255), nullable=True)
    regulation = Column(String(255), nullable=True)
    immediate_action = Column(Text, nullable=True)
    root_cause = Column(Text, nullable=True)
    corrective_action = Column(Text, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    responsible_person_id = Column(String(64), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    verified_by = Column(String(64), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closure_notes = Column(Text, nullable=True)
    reopen_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    inspection = relationship("Inspection", back_populates="findings")

    @classmethod
    def create(
        cls,
        *,
        description: str,
        finding_type: FindingType,
        severity: FindingSeverity,
        created_by: str,
        now: datetime,
        location: Optional[str] = None,
        equipment: Optional[str] = None,
        regulation: Optional[str] = None,
        immediate_action: Optional[str] = None,
    ) -> "InspectionFinding":
        return cls(
            finding_number=generate_business_number("FND", stamp_format="%Y%m%d", now=now, suffix_length=6),
            description=validation.require_text(description, "description"),
            finding_type=validation.require_enum(FindingType, finding_type, "finding_type"),
            severity=validation.require_enum(FindingSeverity, severity, "severity"),
            status=FindingStatus.OPEN,
            location=validation.optional_text(location),
            equipment=validation.optional_text(equipment),
            regulation=validation.optional_text(regulation),
            immediate_action=validation.optional_text(immediate_action),
            created_at=now,
            created_by=created_by,
            updated_at=now,
        )

    @property
    def risk_level(self) -> RiskLevel:
        return risk_for_severity(self.severity)

    @property
    def has_corrective_action(self) -> bool:
        return bool(self.corrective_action)

    def set_corrective_action(
        self,
        corrective_action: str,
        *,
        due_date: Optional[datetime] = None,
        responsible_person_id=None,
        root_cause: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        corrective_action = validation.require_text(corrective_action, "corrective_action", label="Corrective action")
        if due_date is not None:
            due_date = validation.require_future(due_date, "due_date", now=now)
        self._transition(FindingStatus.IN_PROGRESS)
        self.corrective_action = corrective_action
        self.due_date = due_date
        self.responsible_person_id = None if responsible_person_id is None else str(responsible_person_id)
        if root_cause is not None:
            self.root_cause = validation.optional_text(root_cause)
        self.updated_at = now

    def resolve(self, *, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        self._transition(FindingStatus.RESOLVED)
        self.resolved_at = now
        self.updated_at = now

    def verify(self, *, verified_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        self._transition(FindingStatus.VERIFIED)
        self.verified_at = now
        self.verified_by = verified_by
        self.updated_at = now

    def close(self, closure_notes: str, *, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        closure_notes = validation.require_text(closure_notes, "closure_notes", label="Closure notes")
        self._transition(FindingStatus.CLOSED)
        self.closed_at = now
        self.closure_notes = closure_notes
        self.updated_at = now

    def reopen(self, reason: str, *, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        reason = validation.require_text(reason, "reason", label="Reopen reason")
        self._transition(FindingStatus.OPEN)
        self.closed_at = None
        self.closure_notes = None
        self.resolved_at = None
        self.verified_at = None
        self.verified_by = None
        self.reopen_reason = reason
        self.updated_at = now

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.due_date is None or self.status == FindingStatus.CLOSED:
            return False
        return as_utc(self.due_date) < self._now(now)


class InspectionAttachment(Base):
    __tablename__ = "inspection_attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspection_id = Column(Integer, ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    is_photo = Column(Boolean, nullable=False, default=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False)
    uploaded_by = Column(String(64), nullable=False)

    inspection = relationship("Inspection", back_populates="attachments")

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
        description: Optional[str] = None,
    ) -> "InspectionAttachment":
        validation.require_range(file_size, "file_size", minimum=0)
        content_type = validation.require_text(content_type, "content_type")
        return cls(
            file_name=validation.require_text(file_name, "file_name"),
            file_path=validation.require_text(file_path, "file_path"),
            file_size=file_size,
            content_type=content_type,
            description=validation.optional_text(description),
            is_photo=content_type.lower().startswith("image/"),
            uploaded_at=now,
            uploaded_by=uploaded_by,
        )
