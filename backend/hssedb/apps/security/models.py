# backend/hssedb/apps/security/models.py

from __future__ import annotations

import enum
import ipaddress
import re
from datetime import datetime, timedelta
from typing import List, Optional
from urllib.parse import urlparse

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.dates import as_utc
from ...utils.identifiers import generate_business_number
from ..workflow import validation
from ..workflow.aggregate import StatefulEntity, WorkflowAggregate, find_owned
from ..workflow.errors import DomainValidationError, DuplicateEntryError, InvalidOperationError


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class SecurityIncidentStatus(str, enum.Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    INVESTIGATING = "INVESTIGATING"
    CONTAINED = "CONTAINED"
    ERADICATING = "ERADICATING"
    RECOVERING = "RECOVERING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class SecurityIncidentType(str, enum.Enum):
    PHYSICAL_SECURITY = "PHYSICAL_SECURITY"
    CYBERSECURITY = "CYBERSECURITY"
    PERSONNEL_SECURITY = "PERSONNEL_SECURITY"
    INFORMATION_SECURITY = "INFORMATION_SECURITY"


class SecurityIncidentCategory(str, enum.Enum):
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    THEFT = "THEFT"
    VANDALISM = "VANDALISM"
    MALWARE = "MALWARE"
    PHISHING = "PHISHING"
    DATA_BREACH = "DATA_BREACH"
    SOCIAL_ENGINEERING = "SOCIAL_ENGINEERING"
    INSIDER_THREAT = "INSIDER_THREAT"
    OTHER = "OTHER"


class SecuritySeverity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ThreatLevel(str, enum.Enum):
    MINIMAL = "MINIMAL"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    SEVERE = "SEVERE"


class SecurityImpact(str, enum.Enum):
    NONE = "NONE"
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    MAJOR = "MAJOR"
    SEVERE = "SEVERE"


class ThreatActorType(str, enum.Enum):
    EXTERNAL = "EXTERNAL"
    INTERNAL = "INTERNAL"
    PARTNER = "PARTNER"
    UNKNOWN = "UNKNOWN"


class SecurityResponseType(str, enum.Enum):
    INITIAL_RESPONSE = "INITIAL_RESPONSE"
    CONTAINMENT = "CONTAINMENT"
    ERADICATION = "ERADICATION"
    RECOVERY = "RECOVERY"
    COMMUNICATION = "COMMUNICATION"
    LESSONS_LEARNED = "LESSONS_LEARNED"


class SecurityAttachmentType(str, enum.Enum):
    EVIDENCE = "EVIDENCE"
    CCTV_FOOTAGE = "CCTV_FOOTAGE"
    SCREENSHOT = "SCREENSHOT"
    LOG_FILE = "LOG_FILE"
    REPORT = "REPORT"
    PHOTO = "PHOTO"
    OTHER = "OTHER"


class SecurityControlType(str, enum.Enum):
    PREVENTIVE = "PREVENTIVE"
    DETECTIVE = "DETECTIVE"
    CORRECTIVE = "CORRECTIVE"
    COMPENSATING = "COMPENSATING"


class SecurityControlCategory(str, enum.Enum):
    TECHNICAL = "TECHNICAL"
    ADMINISTRATIVE = "ADMINISTRATIVE"
    PHYSICAL = "PHYSICAL"


class ControlImplementationStatus(str, enum.Enum):
    PLANNED = "PLANNED"
    IMPLEMENTING = "IMPLEMENTING"
    ACTIVE = "ACTIVE"
    RETIRED = "RETIRED"


class ThreatIndicatorStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ConfidenceLevel(str, enum.Enum):
    VERY_HIGH = "VERY_HIGH"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    VERY_LOW = "VERY_LOW"


_SEVERITY_RANK = {
    SecuritySeverity.LOW: 1,
    SecuritySeverity.MEDIUM: 2,
    SecuritySeverity.HIGH: 3,
    SecuritySeverity.CRITICAL: 4,
}

_THREAT_RANK = {
    ThreatLevel.MINIMAL: 0,
    ThreatLevel.LOW: 1,
    ThreatLevel.MEDIUM: 2,
    ThreatLevel.HIGH: 3,
    ThreatLevel.SEVERE: 4,
}

_RESPONSE_STAGES = (
    SecurityIncidentStatus.INVESTIGATING,
    SecurityIncidentStatus.CONTAINED,
    SecurityIncidentStatus.ERADICATING,
    SecurityIncidentStatus.RECOVERING,
    SecurityIncidentStatus.RESOLVED,
)

_OPEN_STAGES = (
    SecurityIncidentStatus.OPEN,
    SecurityIncidentStatus.ASSIGNED,
) + _RESPONSE_STAGES

_CLOSED_REASON = "Closed incidents cannot be modified"

HIGH_CONFIDENCE = 80
STALE_AFTER_DAYS = 30

security_incident_threat_indicators = Table(
    "security_incident_threat_indicators",
    Base.metadata,
    Column("incident_id", Integer, ForeignKey("security_incidents.id", ondelete="CASCADE"), primary_key=True),
    Column("indicator_id", Integer, ForeignKey("threat_indicators.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------------------------------------------------------
# SECURITY INCIDENT (aggregate root)
# ---------------------------------------------------------------------------


class SecurityIncident(WorkflowAggregate, Base):
    """
    Security incident handled through the response chain
    OPEN -> ASSIGNED -> INVESTIGATING -> CONTAINED -> ERADICATING ->
    RECOVERING -> RESOLVED -> CLOSED.

    Threat, severity and impact assessments sit beside the chain; raising
    either level emits an `escalated` event. Closing needs a documented
    lessons-learned response.
    """

    __tablename__ = "security_incidents"
    __workflow__ = "security_incident"
    __event_prefix__ = "security_incident"
    __reference_field__ = "incident_number"
    __table_args__ = (
        Index("ix_security_incidents_status_severity", "status", "severity"),
        Index("ix_security_incidents_incident_datetime", "incident_datetime"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    incident_number = Column(String(40), nullable=False, unique=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    incident_type = Column(
        SAEnum(SecurityIncidentType, name="security_incident_type_enum", native_enum=False),
        nullable=False,
    )
    category = Column(
        SAEnum(SecurityIncidentCategory, name="security_incident_category_enum", native_enum=False),
        nullable=False,
    )
    severity = Column(SAEnum(SecuritySeverity, name="security_severity_enum", native_enum=False), nullable=False)
    status = Column(
        SAEnum(SecurityIncidentStatus, name="security_incident_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    threat_level = Column(SAEnum(ThreatLevel, name="security_threat_level_enum", native_enum=False), nullable=False)
    impact = Column(SAEnum(SecurityImpact, name="security_impact_enum", native_enum=False), nullable=False)

    incident_datetime = Column(DateTime(timezone=True), nullable=False)
    detection_datetime = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(255), nullable=False)
    reporter_id = Column(String(64), nullable=False)
    reporter_name = Column(String(255), nullable=True)

    assigned_to_id = Column(String(64), nullable=True)
    assigned_to_name = Column(String(255), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    investigator_id = Column(String(64), nullable=True)
    investigator_name = Column(String(255), nullable=True)
    investigation_started_at = Column(DateTime(timezone=True), nullable=True)

    threat_actor_type = Column(
        SAEnum(ThreatActorType, name="security_threat_actor_type_enum", native_enum=False),
        nullable=True,
    )
    threat_actor_description = Column(Text, nullable=True)
    is_internal_threat = Column(Boolean, nullable=False, default=False)
    affected_persons_count = Column(Integer, nullable=True)
    estimated_loss = Column(Float, nullable=True)
    data_breach_occurred = Column(Boolean, nullable=False, default=False)

    containment_actions = Column(Text, nullable=True)
    containment_datetime = Column(DateTime(timezone=True), nullable=True)
    eradication_started_at = Column(DateTime(timezone=True), nullable=True)
    recovery_started_at = Column(DateTime(timezone=True), nullable=True)
    root_cause = Column(Text, nullable=True)
    resolution_datetime = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_by = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    updated_by = Column(String(64), nullable=False)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    responses = relationship(
        "SecurityIncidentResponse",
        back_populates="incident",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SecurityIncidentResponse.id",
    )
    involved_persons = relationship(
        "SecurityIncidentInvolvedPerson",
        back_populates="incident",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SecurityIncidentInvolvedPerson.id",
    )
    attachments = relationship(
        "SecurityIncidentAttachment",
        back_populates="incident",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SecurityIncidentAttachment.id",
    )
    controls = relationship(
        "SecurityControl",
        back_populates="incident",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SecurityControl.id",
    )
    threat_indicators = relationship(
        "ThreatIndicator",
        secondary=security_incident_threat_indicators,
        back_populates="incidents",
        lazy="selectin",
        order_by="ThreatIndicator.id",
    )

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        *,
        title: str,
        description: str,
        incident_type: SecurityIncidentType,
        category: SecurityIncidentCategory,
        severity: SecuritySeverity,
        incident_datetime: datetime,
        location: str,
        reported_by: str,
        reporter_name: Optional[str] = None,
        detection_datetime: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> "SecurityIncident":
        now = cls._now(now)
        actor = validation.require_actor(reported_by, "reported_by")
        title = validation.require_text(title, "title")
        description = validation.require_text(description, "description")
        location = validation.require_text(location, "location")
        incident_type = validation.require_enum(SecurityIncidentType, incident_type, "incident_type")
        category = validation.require_enum(SecurityIncidentCategory, category, "category")
        severity = validation.require_enum(SecuritySeverity, severity, "severity")
        incident_datetime = validation.require_not_future(incident_datetime, "incident_datetime", now=now)
        if detection_datetime is not None:
            detection_datetime = validation.require_not_future(detection_datetime, "detection_datetime", now=now)
            if detection_datetime < incident_datetime:
                raise DomainValidationError(
                    "Detection time cannot be before the incident time",
                    field="detection_datetime",
                )

        incident = cls(
            incident_number=generate_business_number(
                "SEC",
                year_segment=True,
                stamp_format="%m%d%H%M%S",
                now=now,
            ),
            title=title,
            description=description,
            incident_type=incident_type,
            category=category,
            severity=severity,
            status=SecurityIncidentStatus.OPEN,
            threat_level=ThreatLevel.LOW,
            impact=SecurityImpact.NONE,
            incident_datetime=incident_datetime,
            detection_datetime=detection_datetime,
            location=location,
            reporter_id=actor,
            reporter_name=validation.optional_text(reporter_name),
            is_internal_threat=False,
            data_breach_occurred=False,
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        )
        incident._raise_event(
            "created",
            actor=actor,
            occurred_at=now,
            incident_number=incident.incident_number,
            title=title,
            incident_type=incident_type,
            severity=severity,
            location=location,
            incident_datetime=incident_datetime,
        )
        if severity == SecuritySeverity.CRITICAL:
            incident._raise_event(
                "escalated",
                actor=actor,
                occurred_at=now,
                reason="critical_severity",
                incident_number=incident.incident_number,
                title=title,
                severity=severity,
                location=location,
            )
        return incident

    # ------------------------------------------------------------------
    # Response chain
    # ------------------------------------------------------------------

    def assign_to(
        self,
        *,
        assignee_id,
        assigned_by: str,
        assignee_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(assigned_by, "assigned_by")
        assignee = validation.require_text(None if assignee_id is None else str(assignee_id), "assignee_id")

        previous = self._transition(SecurityIncidentStatus.ASSIGNED)
        self.assigned_to_id = assignee
        self.assigned_to_name = validation.optional_text(assignee_name)
        self.assigned_at = now
        self.touch(actor, now)
        self._raise_event(
            "assigned",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            assignee_id=assignee,
            assignee_name=self.assigned_to_name,
            title=self.title,
        )

    def assign_investigator(
        self,
        *,
        investigator_id,
        assigned_by: str,
        investigator_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(assigned_by, "assigned_by")
        investigator = validation.require_text(
            None if investigator_id is None else str(investigator_id), "investigator_id"
        )

        previous = self._transition(SecurityIncidentStatus.INVESTIGATING)
        self.investigator_id = investigator
        self.investigator_name = validation.optional_text(investigator_name)
        if previous != SecurityIncidentStatus.INVESTIGATING:
            self.investigation_started_at = now
        self.touch(actor, now)
        self._raise_event(
            "investigation_started",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            investigator_id=investigator,
            investigator_name=self.investigator_name,
        )

    def record_containment(
        self,
        *,
        actions: str,
        recorded_by: str,
        containment_time: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(recorded_by, "recorded_by")
        actions = validation.require_text(actions, "containment_actions", label="Containment actions")
        containment_time = validation.require_not_future(containment_time or now, "containment_time", now=now)
        if containment_time < as_utc(self.incident_datetime):
            raise DomainValidationError(
                "Containment time cannot be before the incident time",
                field="containment_time",
            )

        previous = self._transition(SecurityIncidentStatus.CONTAINED)
        self.containment_actions = actions
        self.containment_datetime = containment_time
        self.touch(actor, now)
        self._raise_event(
            "contained",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            containment_time=containment_time,
            containment_actions=actions,
        )

    def start_eradication(self, *, started_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(started_by, "started_by")

        previous = self._transition(SecurityIncidentStatus.ERADICATING)
        self.eradication_started_at = now
        self.touch(actor, now)
        self._raise_event("eradication_started", actor=actor, occurred_at=now, previous_status=previous)

    def start_recovery(self, *, started_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(started_by, "started_by")

        previous = self._transition(SecurityIncidentStatus.RECOVERING)
        self.recovery_started_at = now
        self.touch(actor, now)
        self._raise_event("recovery_started", actor=actor, occurred_at=now, previous_status=previous)

    def resolve_incident(
        self,
        *,
        root_cause: str,
        resolved_by: str,
        resolution_time: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(resolved_by, "resolved_by")
        root_cause = validation.require_text(root_cause, "root_cause", label="Root cause")
        resolution_time = validation.require_not_future(resolution_time or now, "resolution_time", now=now)
        containment_time = as_utc(self.containment_datetime)
        if containment_time is not None and resolution_time < containment_time:
            raise DomainValidationError(
                "Resolution time cannot be before the containment time",
                field="resolution_time",
            )

        previous = self._transition(SecurityIncidentStatus.RESOLVED)
        self.root_cause = root_cause
        self.resolution_datetime = resolution_time
        self.touch(actor, now)
        self._raise_event(
            "resolved",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            root_cause=root_cause,
            resolution_time=resolution_time,
        )

    def close_incident(self, *, closed_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(closed_by, "closed_by")

        previous = self._transition(SecurityIncidentStatus.CLOSED)
        self.closed_at = now
        self.closed_by = actor
        self.touch(actor, now)
        self._raise_event(
            "closed",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            incident_number=self.incident_number,
            title=self.title,
        )

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    def update_threat_assessment(
        self,
        *,
        threat_level: ThreatLevel,
        assessed_by: str,
        threat_actor_type: Optional[ThreatActorType] = None,
        threat_actor_description: Optional[str] = None,
        is_internal_threat: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(assessed_by, "assessed_by")
        threat_level = validation.require_enum(ThreatLevel, threat_level, "threat_level")
        if threat_actor_type is not None:
            threat_actor_type = validation.require_enum(ThreatActorType, threat_actor_type, "threat_actor_type")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)

        previous = self.threat_level
        self.threat_level = threat_level
        if threat_actor_type is not None:
            self.threat_actor_type = threat_actor_type
        if threat_actor_description is not None:
            self.threat_actor_description = validation.optional_text(threat_actor_description)
        if is_internal_threat is not None:
            self.is_internal_threat = bool(is_internal_threat)
        self.touch(actor, now)
        self._raise_event(
            "threat_assessed",
            actor=actor,
            occurred_at=now,
            previous_threat_level=previous,
            threat_level=threat_level,
            threat_actor_type=self.threat_actor_type,
            is_internal_threat=self.is_internal_threat,
        )
        if _THREAT_RANK[threat_level] > _THREAT_RANK[ThreatLevel(previous)]:
            self._raise_event(
                "escalated",
                actor=actor,
                occurred_at=now,
                reason="threat_level_increased",
                incident_number=self.incident_number,
                title=self.title,
                previous_threat_level=previous,
                threat_level=threat_level,
                severity=self.severity,
            )

    def reassess_severity(
        self,
        *,
        severity: SecuritySeverity,
        assessed_by: str,
        justification: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(assessed_by, "assessed_by")
        severity = validation.require_enum(SecuritySeverity, severity, "severity")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)

        previous = self.severity
        self.severity = severity
        self.touch(actor, now)
        self._raise_event(
            "severity_reassessed",
            actor=actor,
            occurred_at=now,
            previous_severity=previous,
            severity=severity,
            justification=validation.optional_text(justification),
        )
        if _SEVERITY_RANK[severity] > _SEVERITY_RANK[SecuritySeverity(previous)]:
            self._raise_event(
                "escalated",
                actor=actor,
                occurred_at=now,
                reason="severity_increased",
                incident_number=self.incident_number,
                title=self.title,
                previous_severity=previous,
                severity=severity,
            )

    def update_impact_assessment(
        self,
        *,
        impact: SecurityImpact,
        assessed_by: str,
        affected_persons_count: Optional[int] = None,
        estimated_loss: Optional[float] = None,
        data_breach_occurred: bool = False,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(assessed_by, "assessed_by")
        impact = validation.require_enum(SecurityImpact, impact, "impact")
        if affected_persons_count is not None:
            validation.require_range(affected_persons_count, "affected_persons_count", minimum=0)
        if estimated_loss is not None:
            validation.require_range(estimated_loss, "estimated_loss", minimum=0)
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)

        breach_detected = bool(data_breach_occurred) and not self.data_breach_occurred
        previous = self.impact
        self.impact = impact
        self.affected_persons_count = affected_persons_count
        self.estimated_loss = estimated_loss
        self.data_breach_occurred = bool(self.data_breach_occurred or data_breach_occurred)
        self.touch(actor, now)
        self._raise_event(
            "impact_assessed",
            actor=actor,
            occurred_at=now,
            previous_impact=previous,
            impact=impact,
            affected_persons_count=affected_persons_count,
            estimated_loss=estimated_loss,
            data_breach_occurred=self.data_breach_occurred,
        )
        if breach_detected:
            self._raise_event(
                "data_breach_detected",
                actor=actor,
                occurred_at=now,
                incident_number=self.incident_number,
                title=self.title,
                affected_persons_count=affected_persons_count,
            )

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def add_response(
        self,
        *,
        response_type: SecurityResponseType,
        action_taken: str,
        responder_id: str,
        responder_name: Optional[str] = None,
        action_datetime: Optional[datetime] = None,
        was_successful: bool = True,
        follow_up_required: bool = False,
        follow_up_details: Optional[str] = None,
        cost: Optional[float] = None,
        effort_hours: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> "SecurityIncidentResponse":
        now = self._now(now)
        actor = validation.require_actor(responder_id, "responder_id")
        response = SecurityIncidentResponse.create(
            response_type=response_type,
            action_taken=action_taken,
            responder_id=actor,
            responder_name=responder_name,
            action_datetime=action_datetime or now,
            was_successful=was_successful,
            follow_up_required=follow_up_required,
            follow_up_details=follow_up_details,
            cost=cost,
            effort_hours=effort_hours,
            now=now,
        )
        self._require_state(
            _RESPONSE_STAGES,
            reason="Responses can only be added once the incident is under investigation and before it is closed",
        )

        self.responses.append(response)
        self.touch(actor, now)
        self._raise_event(
            "response_added",
            actor=actor,
            occurred_at=now,
            response_type=response.response_type,
            action_taken=response.action_taken,
            was_successful=response.was_successful,
            follow_up_required=response.follow_up_required,
        )
        return response

    # ------------------------------------------------------------------
    # Involved persons
    # ------------------------------------------------------------------

    def add_involved_person(
        self,
        *,
        person_id,
        person_name: str,
        added_by: str,
        role: Optional[str] = None,
        is_witness: bool = False,
        is_victim: bool = False,
        is_suspect: bool = False,
        contact_info: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "SecurityIncidentInvolvedPerson":
        now = self._now(now)
        actor = validation.require_actor(added_by, "added_by")
        person = SecurityIncidentInvolvedPerson.create(
            person_id=person_id,
            person_name=person_name,
            role=role,
            is_witness=is_witness,
            is_victim=is_victim,
            is_suspect=is_suspect,
            contact_info=contact_info,
            notes=notes,
            added_by=actor,
            now=now,
        )
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)
        if any(existing.person_id == person.person_id for existing in self.involved_persons):
            raise DuplicateEntryError(
                f"Person {person.person_id} is already recorded on this incident",
                field="person_id",
            )

        self.involved_persons.append(person)
        self.touch(actor, now)
        self._raise_event(
            "person_involved",
            actor=actor,
            occurred_at=now,
            person_id=person.person_id,
            person_name=person.person_name,
            is_witness=person.is_witness,
            is_victim=person.is_victim,
            is_suspect=person.is_suspect,
        )
        return person

    def remove_involved_person(self, *, person_id, removed_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(removed_by, "removed_by")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)
        key = None if person_id is None else str(person_id)
        person = next((item for item in self.involved_persons if item.person_id == key), None)
        if person is None:
            person = find_owned(self.involved_persons, person_id, label="Involved person")

        self.involved_persons.remove(person)
        self.touch(actor, now)
        self._raise_event("person_removed", actor=actor, occurred_at=now, person_id=person.person_id)

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
        attachment_type: SecurityAttachmentType = SecurityAttachmentType.EVIDENCE,
        description: Optional[str] = None,
        is_confidential: bool = False,
        content_hash: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "SecurityIncidentAttachment":
        now = self._now(now)
        actor = validation.require_actor(uploaded_by, "uploaded_by")
        attachment = SecurityIncidentAttachment.create(
            file_name=file_name,
            file_path=file_path,
            file_size=file_size,
            content_type=content_type,
            attachment_type=attachment_type,
            description=description,
            is_confidential=is_confidential,
            content_hash=content_hash,
            uploaded_by=actor,
            now=now,
        )
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)

        self.attachments.append(attachment)
        self.touch(actor, now)
        self._raise_event(
            "attachment_added",
            actor=actor,
            occurred_at=now,
            file_name=attachment.file_name,
            file_path=attachment.file_path,
            attachment_type=attachment.attachment_type,
            is_confidential=attachment.is_confidential,
        )
        return attachment

    def remove_attachment(self, *, attachment, removed_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(removed_by, "removed_by")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)
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
    # Security controls
    # ------------------------------------------------------------------

    def add_security_control(
        self,
        *,
        control_name: str,
        control_description: str,
        control_type: SecurityControlType,
        category: SecurityControlCategory,
        added_by: str,
        now: Optional[datetime] = None,
    ) -> "SecurityControl":
        now = self._now(now)
        actor = validation.require_actor(added_by, "added_by")
        control = SecurityControl.create(
            control_name=control_name,
            control_description=control_description,
            control_type=control_type,
            category=category,
            created_by=actor,
            now=now,
        )
        self._require_state(
            _RESPONSE_STAGES,
            reason="Security controls can only be added once the incident is under investigation",
        )

        self.controls.append(control)
        self.touch(actor, now)
        self._raise_event(
            "control_added",
            actor=actor,
            occurred_at=now,
            control_name=control.control_name,
            control_type=control.control_type,
            category=control.category,
        )
        return control

    def start_control_implementation(self, *, control, started_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(started_by, "started_by")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)
        control = find_owned(self.controls, control, label="Control")

        control.start_implementation(implemented_by=actor, now=now)
        self.touch(actor, now)
        self._raise_event(
            "control_implementation_started",
            actor=actor,
            occurred_at=now,
            control_id=control.id,
            control_name=control.control_name,
        )

    def complete_control_implementation(
        self,
        *,
        control,
        completed_by: str,
        review_date: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(completed_by, "completed_by")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)
        control = find_owned(self.controls, control, label="Control")

        control.complete_implementation(review_date=review_date, now=now)
        self.touch(actor, now)
        self._raise_event(
            "control_implemented",
            actor=actor,
            occurred_at=now,
            control_id=control.id,
            control_name=control.control_name,
            review_date=control.review_date,
        )

    def review_security_control(
        self,
        *,
        control,
        effectiveness_score: int,
        reviewed_by: str,
        notes: Optional[str] = None,
        next_review_date: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(reviewed_by, "reviewed_by")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)
        control = find_owned(self.controls, control, label="Control")

        control.review(effectiveness_score, notes=notes, next_review_date=next_review_date, now=now)
        self.touch(actor, now)
        self._raise_event(
            "control_reviewed",
            actor=actor,
            occurred_at=now,
            control_id=control.id,
            effectiveness_score=control.effectiveness_score,
        )

    def retire_security_control(self, *, control, reason: str, retired_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(retired_by, "retired_by")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)
        control = find_owned(self.controls, control, label="Control")

        control.retire(reason, now=now)
        self.touch(actor, now)
        self._raise_event(
            "control_retired",
            actor=actor,
            occurred_at=now,
            control_id=control.id,
            reason=control.retirement_reason,
        )

    # ------------------------------------------------------------------
    # Threat intelligence
    # ------------------------------------------------------------------

    def link_threat_indicator(
        self,
        *,
        indicator: "ThreatIndicator",
        linked_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(linked_by, "linked_by")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)
        if indicator is None:
            raise DomainValidationError("Threat indicator is required", field="indicator_id")
        if not indicator.is_active:
            raise InvalidOperationError("Inactive threat indicators cannot be linked", field="indicator_id")
        for linked in self.threat_indicators:
            if linked is indicator or (indicator.id is not None and linked.id == indicator.id):
                raise DuplicateEntryError(
                    f"Threat indicator {indicator.indicator_value} is already linked to this incident",
                    field="indicator_id",
                )

        self.threat_indicators.append(indicator)
        self.touch(actor, now)
        self._raise_event(
            "threat_indicator_linked",
            actor=actor,
            occurred_at=now,
            indicator_id=indicator.id,
            indicator_number=indicator.indicator_number,
            indicator_type=indicator.indicator_type,
            indicator_value=indicator.indicator_value,
            threat_type=indicator.threat_type,
            confidence=indicator.confidence,
            high_confidence=indicator.is_high_confidence,
        )

    def unlink_threat_indicator(self, *, indicator, unlinked_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(unlinked_by, "unlinked_by")
        self._require_state(_OPEN_STAGES, reason=_CLOSED_REASON)
        indicator = find_owned(self.threat_indicators, indicator, label="Threat indicator")

        self.threat_indicators.remove(indicator)
        self.touch(actor, now)
        self._raise_event(
            "threat_indicator_unlinked",
            actor=actor,
            occurred_at=now,
            indicator_id=indicator.id,
            indicator_number=indicator.indicator_number,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_lessons_learned(self) -> bool:
        return any(
            response.response_type == SecurityResponseType.LESSONS_LEARNED for response in self.responses
        )

    def can_close(self) -> bool:
        return self.status == SecurityIncidentStatus.RESOLVED and self.has_lessons_learned()

    def is_open(self) -> bool:
        return self.status != SecurityIncidentStatus.CLOSED

    def response_time_minutes(self) -> Optional[int]:
        """Minutes from occurrence to containment, when contained."""
        if self.containment_datetime is None:
            return None
        delta = as_utc(self.containment_datetime) - as_utc(self.incident_datetime)
        return int(delta.total_seconds() // 60)

    def __repr__(self) -> str:
        return f"<SecurityIncident id={self.id} number={self.incident_number} status={self.status}>"


# ---------------------------------------------------------------------------
# OWNED SUB-ENTITIES
# ---------------------------------------------------------------------------


class SecurityIncidentResponse(Base):
    __tablename__ = "security_incident_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(Integer, ForeignKey("security_incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    response_type = Column(
        SAEnum(SecurityResponseType, name="security_response_type_enum", native_enum=False),
        nullable=False,
    )
    action_taken = Column(Text, nullable=False)
    action_datetime = Column(DateTime(timezone=True), nullable=False)
    responder_id = Column(String(64), nullable=False)
    responder_name = Column(String(255), nullable=True)
    was_successful = Column(Boolean, nullable=False, default=True)
    follow_up_required = Column(Boolean, nullable=False, default=False)
    follow_up_details = Column(Text, nullable=True)
    cost = Column(Float, nullable=True)
    effort_hours = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    incident = relationship("SecurityIncident", back_populates="responses")

    @classmethod
    def create(
        cls,
        *,
        response_type: SecurityResponseType,
        action_taken: str,
        responder_id: str,
        action_datetime: datetime,
        now: datetime,
        responder_name: Optional[str] = None,
        was_successful: bool = True,
        follow_up_required: bool = False,
        follow_up_details: Optional[str] = None,
        cost: Optional[float] = None,
        effort_hours: Optional[int] = None,
    ) -> "SecurityIncidentResponse":
        if cost is not None:
            validation.require_range(cost, "cost", minimum=0)
        if effort_hours is not None:
            validation.require_range(effort_hours, "effort_hours", minimum=0)
        if follow_up_required and not (follow_up_details or "").strip():
            raise DomainValidationError("Follow-up details are required", field="follow_up_details")
        return cls(
            response_type=validation.require_enum(SecurityResponseType, response_type, "response_type"),
            action_taken=validation.require_text(action_taken, "action_taken", label="Action taken"),
            action_datetime=validation.require_not_future(action_datetime, "action_datetime", now=now),
            responder_id=responder_id,
            responder_name=validation.optional_text(responder_name),
            was_successful=bool(was_successful),
            follow_up_required=bool(follow_up_required),
            follow_up_details=validation.optional_text(follow_up_details),
            cost=cost,
            effort_hours=effort_hours,
            created_at=now,
        )


class SecurityIncidentInvolvedPerson(Base):
    __tablename__ = "security_incident_involved_persons"
    __table_args__ = (
        UniqueConstraint("incident_id", "person_id", name="uq_security_incident_involved_person"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(Integer, ForeignKey("security_incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    person_id = Column(String(64), nullable=False)
    person_name = Column(String(255), nullable=False)
    role = Column(String(128), nullable=True)
    is_witness = Column(Boolean, nullable=False, default=False)
    is_victim = Column(Boolean, nullable=False, default=False)
    is_suspect = Column(Boolean, nullable=False, default=False)
    contact_info = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    added_at = Column(DateTime(timezone=True), nullable=False)
    added_by = Column(String(64), nullable=False)

    incident = relationship("SecurityIncident", back_populates="involved_persons")

    @classmethod
    def create(
        cls,
        *,
        person_id,
        person_name: str,
        added_by: str,
        now: datetime,
        role: Optional[str] = None,
        is_witness: bool = False,
        is_victim: bool = False,
        is_suspect: bool = False,
        contact_info: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> "SecurityIncidentInvolvedPerson":
        return cls(
            person_id=validation.require_text(None if person_id is None else str(person_id), "person_id"),
            person_name=validation.require_text(person_name, "person_name"),
            role=validation.optional_text(role),
            is_witness=bool(is_witness),
            is_victim=bool(is_victim),
            is_suspect=bool(is_suspect),
            contact_info=validation.optional_text(contact_info),
            notes=validation.optional_text(notes),
            added_at=now,
            added_by=added_by,
        )


class SecurityIncidentAttachment(Base):
    __tablename__ = "security_incident_attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(Integer, ForeignKey("security_incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String(128), nullable=False)
    attachment_type = Column(
        SAEnum(SecurityAttachmentType, name="security_attachment_type_enum", native_enum=False),
        nullable=False,
    )
    description = Column(Text, nullable=True)
    is_confidential = Column(Boolean, nullable=False, default=False)
    content_hash = Column(String(128), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False)
    uploaded_by = Column(String(64), nullable=False)

    incident = relationship("SecurityIncident", back_populates="attachments")

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
        attachment_type: SecurityAttachmentType = SecurityAttachmentType.EVIDENCE,
        description: Optional[str] = None,
        is_confidential: bool = False,
        content_hash: Optional[str] = None,
    ) -> "SecurityIncidentAttachment":
        validation.require_range(file_size, "file_size", minimum=0)
        return cls(
            file_name=validation.require_text(file_name, "file_name"),
            file_path=validation.require_text(file_path, "file_path"),
            file_size=file_size,
            content_type=validation.require_text(content_type, "content_type"),
            attachment_type=validation.require_enum(SecurityAttachmentType, attachment_type, "attachment_type"),
            description=validation.optional_text(description),
            is_confidential=bool(is_confidential),
            content_hash=validation.optional_text(content_hash),
            uploaded_at=now,
            uploaded_by=uploaded_by,
        )


class SecurityControl(StatefulEntity, Base):
    """
    Control put in place in response to an incident.

    PLANNED -> IMPLEMENTING -> ACTIVE, RETIRED from any other state. Reviews
    score effectiveness from 1 to 10 and are only taken on ACTIVE controls.
    """

    __tablename__ = "security_controls"
    __workflow__ = "security_control"

    id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(Integer, ForeignKey("security_incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    control_name = Column(String(255), nullable=False)
    control_description = Column(Text, nullable=False)
    control_type = Column(
        SAEnum(SecurityControlType, name="security_control_type_enum", native_enum=False),
        nullable=False,
    )
    category = Column(
        SAEnum(SecurityControlCategory, name="security_control_category_enum", native_enum=False),
        nullable=False,
    )
    status = Column(
        SAEnum(ControlImplementationStatus, name="security_control_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=False)
    implemented_by = Column(String(64), nullable=True)
    implementation_started_at = Column(DateTime(timezone=True), nullable=True)
    implementation_date = Column(DateTime(timezone=True), nullable=True)
    review_date = Column(DateTime(timezone=True), nullable=True)
    last_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    effectiveness_score = Column(Integer, nullable=True)
    review_notes = Column(Text, nullable=True)
    retired_at = Column(DateTime(timezone=True), nullable=True)
    retirement_reason = Column(Text, nullable=True)

    incident = relationship("SecurityIncident", back_populates="controls")

    @classmethod
    def create(
        cls,
        *,
        control_name: str,
        control_description: str,
        control_type: SecurityControlType,
        category: SecurityControlCategory,
        created_by: str,
        now: datetime,
    ) -> "SecurityControl":
        return cls(
            control_name=validation.require_text(control_name, "control_name"),
            control_description=validation.require_text(control_description, "control_description"),
            control_type=validation.require_enum(SecurityControlType, control_type, "control_type"),
            category=validation.require_enum(SecurityControlCategory, category, "category"),
            status=ControlImplementationStatus.PLANNED,
            created_at=now,
            created_by=created_by,
        )

    def start_implementation(self, *, implemented_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        self._transition(ControlImplementationStatus.IMPLEMENTING)
        self.implemented_by = implemented_by
        self.implementation_started_at = now

    def complete_implementation(self, *, review_date: Optional[datetime] = None, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        if review_date is not None:
            review_date = validation.require_future(review_date, "review_date", now=now)
        self._transition(ControlImplementationStatus.ACTIVE)
        self.implementation_date = now
        self.review_date = review_date

    def review(
        self,
        effectiveness_score: int,
        *,
        notes: Optional[str] = None,
        next_review_date: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        validation.require_range(effectiveness_score, "effectiveness_score", minimum=1, maximum=10)
        if next_review_date is not None:
            next_review_date = validation.require_future(next_review_date, "next_review_date", now=now)
        self._require_state(
            [ControlImplementationStatus.ACTIVE],
            reason="Only active controls can be reviewed",
        )
        self.effectiveness_score = effectiveness_score
        self.review_notes = validation.optional_text(notes)
        self.last_reviewed_at = now
        self.review_date = next_review_date

    def retire(self, reason: str, *, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        reason = validation.require_text(reason, "reason", label="Retirement reason")
        self._transition(ControlImplementationStatus.RETIRED)
        self.retired_at = now
        self.retirement_reason = reason

    def is_review_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.review_date is None or self.status != ControlImplementationStatus.ACTIVE:
            return False
        return as_utc(self.review_date) < self._now(now)


# ---------------------------------------------------------------------------
# THREAT INDICATOR (aggregate root, shared across incidents)
# ---------------------------------------------------------------------------

_HASH_LENGTHS = (32, 40, 64, 128)
_HEX = re.compile(r"^[0-9a-fA-F]+$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_DOMAIN = re.compile(r"^(?=.{1,253}$)([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,63}$")


def _valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def _valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


_VALUE_CHECKS = {
    "IP": _valid_ip,
    "DOMAIN": lambda value: bool(_DOMAIN.match(value)),
    "EMAIL": lambda value: bool(_EMAIL.match(value)),
    "HASH": lambda value: len(value) in _HASH_LENGTHS and bool(_HEX.match(value)),
    "URL": _valid_url,
}


def _confidence_level_for(confidence: int) -> ConfidenceLevel:
    if confidence >= 90:
        return ConfidenceLevel.VERY_HIGH
    if confidence >= 80:
        return ConfidenceLevel.HIGH
    if confidence >= 60:
        return ConfidenceLevel.MEDIUM
    if confidence >= 40:
        return ConfidenceLevel.LOW
    return ConfidenceLevel.VERY_LOW


class ThreatIndicator(WorkflowAggregate, Base):
    """
    Observable (IP, domain, file hash, e-mail, URL...) tied to a threat.

    Indicators live on their own so one sighting can be linked to many
    incidents. ACTIVE <-> INACTIVE; only active indicators can be linked.
    Confidence is scored 1-100.
    """

    __tablename__ = "threat_indicators"
    __workflow__ = "threat_indicator"
    __event_prefix__ = "threat_indicator"
    __reference_field__ = "indicator_number"
    __table_args__ = (
        UniqueConstraint("indicator_type", "indicator_value", name="uq_threat_indicators_type_value"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    indicator_number = Column(String(40), nullable=False, unique=True, index=True)
    indicator_type = Column(String(32), nullable=False, index=True)
    indicator_value = Column(String(512), nullable=False)
    threat_type = Column(String(128), nullable=False)
    confidence = Column(Integer, nullable=False)
    source = Column(String(255), nullable=False)
    status = Column(
        SAEnum(ThreatIndicatorStatus, name="threat_indicator_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    first_seen = Column(DateTime(timezone=True), nullable=False)
    last_seen = Column(DateTime(timezone=True), nullable=False)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    updated_by = Column(String(64), nullable=False)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    incidents = relationship(
        "SecurityIncident",
        secondary=security_incident_threat_indicators,
        back_populates="threat_indicators",
        lazy="selectin",
    )

    @classmethod
    def create(
        cls,
        *,
        indicator_type: str,
        indicator_value: str,
        threat_type: str,
        confidence: int,
        source: str,
        created_by: str,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
        now: Optional[datetime] = None,
    ) -> "ThreatIndicator":
        now = cls._now(now)
        actor = validation.require_actor(created_by, "created_by")
        indicator_type = validation.require_text(indicator_type, "indicator_type").upper()
        indicator_value = validation.require_text(indicator_value, "indicator_value")
        threat_type = validation.require_text(threat_type, "threat_type")
        validation.require_range(confidence, "confidence", minimum=1, maximum=100)
        source = validation.require_text(source, "source")

        indicator = cls(
            indicator_number=generate_business_number("TI", stamp_format="%Y%m%d", now=now),
            indicator_type=indicator_type,
            indicator_value=indicator_value,
            threat_type=threat_type,
            confidence=confidence,
            source=source,
            status=ThreatIndicatorStatus.ACTIVE,
            first_seen=now,
            last_seen=now,
            description=validation.optional_text(description),
            tags=_normalise_tags(tags or []),
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        )
        indicator._raise_event(
            "recorded",
            actor=actor,
            occurred_at=now,
            indicator_number=indicator.indicator_number,
            indicator_type=indicator_type,
            indicator_value=indicator_value,
            threat_type=threat_type,
            confidence=confidence,
            source=source,
        )
        return indicator

    def _append_note(self, text: str, now: datetime) -> None:
        note = f"{now:%Y-%m-%d %H:%M}: {text}"
        self.description = f"{self.description}\n{note}" if self.description else note

    def record_sighting(self, *, seen_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(seen_by, "seen_by")
        self.last_seen = now
        self.touch(actor, now)
        self._raise_event("sighted", actor=actor, occurred_at=now, last_seen=now)

    def update_confidence(
        self,
        *,
        confidence: int,
        updated_by: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(updated_by, "updated_by")
        validation.require_range(confidence, "confidence", minimum=1, maximum=100)

        previous = self.confidence
        self.confidence = confidence
        reason = validation.optional_text(reason)
        if reason:
            self._append_note(f"Confidence updated to {confidence}% - {reason}", now)
        self.touch(actor, now)
        self._raise_event(
            "confidence_updated",
            actor=actor,
            occurred_at=now,
            previous_confidence=previous,
            confidence=confidence,
            reason=reason,
        )

    def deactivate(self, *, deactivated_by: str, reason: Optional[str] = None, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(deactivated_by, "deactivated_by")

        self._transition(ThreatIndicatorStatus.INACTIVE)
        reason = validation.optional_text(reason)
        if reason:
            self._append_note(f"Deactivated - {reason}", now)
        self.touch(actor, now)
        self._raise_event("deactivated", actor=actor, occurred_at=now, reason=reason)

    def reactivate(self, *, reactivated_by: str, reason: Optional[str] = None, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(reactivated_by, "reactivated_by")

        self._transition(ThreatIndicatorStatus.ACTIVE)
        self.last_seen = now
        reason = validation.optional_text(reason)
        if reason:
            self._append_note(f"Reactivated - {reason}", now)
        self.touch(actor, now)
        self._raise_event("reactivated", actor=actor, occurred_at=now, reason=reason)

    def add_tags(self, *tags: str, updated_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(updated_by, "updated_by")
        self.tags = _normalise_tags(list(self.tags or []) + list(tags))
        self.touch(actor, now)

    def remove_tags(self, *tags: str, updated_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(updated_by, "updated_by")
        dropped = set(_normalise_tags(list(tags)))
        self.tags = [tag for tag in (self.tags or []) if tag not in dropped]
        self.touch(actor, now)

    @property
    def is_active(self) -> bool:
        return self.status == ThreatIndicatorStatus.ACTIVE

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= HIGH_CONFIDENCE

    @property
    def confidence_level(self) -> ConfidenceLevel:
        return _confidence_level_for(self.confidence)

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        return self._now(now) - as_utc(self.last_seen) > timedelta(days=STALE_AFTER_DAYS)

    def is_valid_indicator(self) -> bool:
        """Format check for the well-known types; other types are accepted as-is."""
        check = _VALUE_CHECKS.get(self.indicator_type)
        return check(self.indicator_value) if check else True

    def __repr__(self) -> str:
        return f"<ThreatIndicator id={self.id} {self.indicator_type}={self.indicator_value} status={self.status}>"


def _normalise_tags(tags: List[str]) -> List[str]:
    seen: List[str] = []
    for tag in tags:
        clean = (tag or "").strip().lower()
        if clean and clean not in seen:
            seen.append(clean)
    return seen
