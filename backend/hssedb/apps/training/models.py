# backend/hssedb/apps/training/models.py

from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.dates import as_utc, elapsed_minutes
from ...utils.identifiers import generate_business_number
from ..workflow import validation
from ..workflow.aggregate import StatefulEntity, WorkflowAggregate, find_owned
from ..workflow.errors import (
    CapacityExceededError,
    DomainValidationError,
    DuplicateEntryError,
    InvalidOperationError,
    SubEntityNotFoundError,
)


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class TrainingStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TrainingType(str, enum.Enum):
    SAFETY_ORIENTATION = "SAFETY_ORIENTATION"
    HSE_TRAINING = "HSE_TRAINING"
    PERMIT_TO_WORK = "PERMIT_TO_WORK"
    CONFINED_SPACE_ENTRY = "CONFINED_SPACE_ENTRY"
    HOT_WORK_SAFETY = "HOT_WORK_SAFETY"
    ELECTRICAL_SAFETY = "ELECTRICAL_SAFETY"
    FIRE_SAFETY = "FIRE_SAFETY"
    EMERGENCY_RESPONSE = "EMERGENCY_RESPONSE"
    FIRST_AID = "FIRST_AID"
    SECURITY_AWARENESS = "SECURITY_AWARENESS"
    TECHNICAL_SKILLS = "TECHNICAL_SKILLS"
    LEADERSHIP_DEVELOPMENT = "LEADERSHIP_DEVELOPMENT"
    OTHER = "OTHER"


class TrainingCategory(str, enum.Enum):
    MANDATORY_COMPLIANCE = "MANDATORY_COMPLIANCE"
    SAFETY_TRAINING = "SAFETY_TRAINING"
    INDUCTION_TRAINING = "INDUCTION_TRAINING"
    REFRESHER_TRAINING = "REFRESHER_TRAINING"
    SKILL_DEVELOPMENT = "SKILL_DEVELOPMENT"
    OTHER = "OTHER"


class TrainingPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    MANDATORY = "MANDATORY"


class TrainingDeliveryMethod(str, enum.Enum):
    CLASSROOM = "CLASSROOM"
    ONLINE = "ONLINE"
    ON_THE_JOB = "ON_THE_JOB"
    BLENDED = "BLENDED"
    OTHER = "OTHER"


class EffectivenessRating(str, enum.Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    SATISFACTORY = "SATISFACTORY"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
    UNSATISFACTORY = "UNSATISFACTORY"


class ParticipantStatus(str, enum.Enum):
    ENROLLED = "ENROLLED"
    WAITLISTED = "WAITLISTED"
    ATTENDED = "ATTENDED"
    ABSENT = "ABSENT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class RequirementStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    VERIFIED = "VERIFIED"
    OVERDUE = "OVERDUE"
    WAIVED = "WAIVED"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class RequirementRiskLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TrainingAttachmentType(str, enum.Enum):
    COURSE_MATERIAL = "COURSE_MATERIAL"
    ATTENDANCE_SHEET = "ATTENDANCE_SHEET"
    ASSESSMENT = "ASSESSMENT"
    CERTIFICATE_TEMPLATE = "CERTIFICATE_TEMPLATE"
    PHOTO = "PHOTO"
    OTHER = "OTHER"


DEFAULT_PASSING_SCORE = 70.0

_TYPE_PREFIXES = {
    TrainingType.SAFETY_ORIENTATION: "SO",
    TrainingType.HSE_TRAINING: "HSE",
    TrainingType.PERMIT_TO_WORK: "PTW",
    TrainingType.CONFINED_SPACE_ENTRY: "CSE",
    TrainingType.HOT_WORK_SAFETY: "HWS",
    TrainingType.ELECTRICAL_SAFETY: "ES",
    TrainingType.FIRE_SAFETY: "FS",
    TrainingType.EMERGENCY_RESPONSE: "ER",
    TrainingType.FIRST_AID: "FA",
    TrainingType.SECURITY_AWARENESS: "SA",
    TrainingType.TECHNICAL_SKILLS: "TS",
    TrainingType.LEADERSHIP_DEVELOPMENT: "LD",
}

_CATEGORY_PREFIXES = {
    TrainingCategory.MANDATORY_COMPLIANCE: "MC",
    TrainingCategory.SAFETY_TRAINING: "ST",
    TrainingCategory.INDUCTION_TRAINING: "IN",
    TrainingCategory.REFRESHER_TRAINING: "RF",
    TrainingCategory.SKILL_DEVELOPMENT: "SD",
}

_TYPE_PRIORITIES = {
    TrainingType.SAFETY_ORIENTATION: TrainingPriority.MANDATORY,
    TrainingType.CONFINED_SPACE_ENTRY: TrainingPriority.CRITICAL,
    TrainingType.HOT_WORK_SAFETY: TrainingPriority.CRITICAL,
    TrainingType.ELECTRICAL_SAFETY: TrainingPriority.HIGH,
    TrainingType.FIRE_SAFETY: TrainingPriority.HIGH,
    TrainingType.EMERGENCY_RESPONSE: TrainingPriority.HIGH,
    TrainingType.HSE_TRAINING: TrainingPriority.HIGH,
}

_ACTIVE_PARTICIPANT_STATUSES = (
    ParticipantStatus.ENROLLED,
    ParticipantStatus.WAITLISTED,
    ParticipantStatus.ATTENDED,
    ParticipantStatus.ABSENT,
    ParticipantStatus.IN_PROGRESS,
)

_OPEN_REQUIREMENT_STATUSES = (
    RequirementStatus.PENDING,
    RequirementStatus.IN_PROGRESS,
    RequirementStatus.OVERDUE,
)

_REQUIREMENT_STAGES = (
    TrainingStatus.DRAFT,
    TrainingStatus.SCHEDULED,
    TrainingStatus.IN_PROGRESS,
    TrainingStatus.COMPLETED,
)

_CANCELLED_REQUIREMENT_REASON = "Requirements of a cancelled training cannot be changed"


def rate_effectiveness(score: Optional[float]) -> Optional[EffectivenessRating]:
    if score is None:
        return None
    if score >= 90:
        return EffectivenessRating.EXCELLENT
    if score >= 80:
        return EffectivenessRating.GOOD
    if score >= 70:
        return EffectivenessRating.SATISFACTORY
    if score >= 60:
        return EffectivenessRating.NEEDS_IMPROVEMENT
    return EffectivenessRating.UNSATISFACTORY


def _requirement_risk(is_mandatory: bool) -> RequirementRiskLevel:
    return RequirementRiskLevel.HIGH if is_mandatory else RequirementRiskLevel.MEDIUM


def derive_priority(training_type: TrainingType, category: TrainingCategory) -> TrainingPriority:
    if category == TrainingCategory.MANDATORY_COMPLIANCE:
        return TrainingPriority.MANDATORY
    return _TYPE_PRIORITIES.get(training_type, TrainingPriority.MEDIUM)


def _training_code(training_type: TrainingType, category: TrainingCategory, now: datetime) -> str:
    return generate_business_number(
        _TYPE_PREFIXES.get(training_type, "TRN"),
        infix=_CATEGORY_PREFIXES.get(category, "GN"),
        stamp_format="%Y%m",
        now=now,
        suffix_length=6,
    )


# ---------------------------------------------------------------------------
# TRAINING (aggregate root)
# ---------------------------------------------------------------------------


class Training(WorkflowAggregate, Base):
    """
    A scheduled training session with its participant roster, requirements
    and files.

    Lifecycle: DRAFT -> SCHEDULED -> IN_PROGRESS -> COMPLETED, with
    CANCELLED reachable from any non-terminal state. Attendance and results
    can only be recorded while the session is IN_PROGRESS.
    """

    __tablename__ = "trainings"
    __workflow__ = "training"
    __event_prefix__ = "training"
    __reference_field__ = "training_code"
    __table_args__ = (
        Index("ix_trainings_status_scheduled", "status", "scheduled_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    training_code = Column(String(40), nullable=False, unique=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    training_type = Column(SAEnum(TrainingType, name="training_type_enum", native_enum=False), nullable=False)
    category = Column(SAEnum(TrainingCategory, name="training_category_enum", native_enum=False), nullable=False)
    priority = Column(SAEnum(TrainingPriority, name="training_priority_enum", native_enum=False), nullable=False)
    delivery_method = Column(
        SAEnum(TrainingDeliveryMethod, name="training_delivery_method_enum", native_enum=False),
        nullable=False,
    )
    status = Column(
        SAEnum(TrainingStatus, name="training_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )

    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    venue = Column(String(255), nullable=True)
    instructor_name = Column(String(255), nullable=True)

    max_participants = Column(Integer, nullable=False)
    min_participants = Column(Integer, nullable=False)
    passing_score = Column(Float, nullable=False)
    issues_certificate = Column(Boolean, nullable=False)
    certificate_validity_months = Column(Integer, nullable=False)

    start_time = Column(DateTime(timezone=True), nullable=True)
    completed_date = Column(DateTime(timezone=True), nullable=True)
    actual_duration_minutes = Column(Integer, nullable=True)
    completion_summary = Column(Text, nullable=True)
    effectiveness_score = Column(Float, nullable=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    updated_by = Column(String(64), nullable=False)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    participants = relationship(
        "TrainingParticipant",
        back_populates="training",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TrainingParticipant.id",
    )
    attachments = relationship(
        "TrainingAttachment",
        back_populates="training",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TrainingAttachment.id",
    )
    requirements = relationship(
        "TrainingRequirement",
        back_populates="training",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TrainingRequirement.id",
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
        training_type: TrainingType,
        category: TrainingCategory,
        scheduled_date: datetime,
        max_participants: int,
        min_participants: int,
        created_by: str,
        duration_minutes: int = 60,
        delivery_method: TrainingDeliveryMethod = TrainingDeliveryMethod.CLASSROOM,
        venue: Optional[str] = None,
        instructor_name: Optional[str] = None,
        passing_score: float = DEFAULT_PASSING_SCORE,
        issues_certificate: bool = False,
        certificate_validity_months: int = 12,
        now: Optional[datetime] = None,
    ) -> "Training":
        now = cls._now(now)
        actor = validation.require_actor(created_by, "created_by")
        title = validation.require_text(title, "title")
        description = validation.require_text(description, "description")
        training_type = validation.require_enum(TrainingType, training_type, "training_type")
        category = validation.require_enum(TrainingCategory, category, "category")
        delivery_method = validation.require_enum(TrainingDeliveryMethod, delivery_method, "delivery_method")
        scheduled_date = validation.require_future(scheduled_date, "scheduled_date", now=now)
        validation.require_range(duration_minutes, "duration_minutes", minimum=1)
        validation.require_range(min_participants, "min_participants", minimum=0)
        validation.require_range(max_participants, "max_participants", minimum=1)
        if max_participants < min_participants:
            raise DomainValidationError(
                "Maximum participants must be greater than or equal to minimum participants",
                field="max_participants",
            )
        validation.require_range(passing_score, "passing_score", minimum=0, maximum=100)
        validation.require_range(certificate_validity_months, "certificate_validity_months", minimum=0)

        training = cls(
            training_code=_training_code(training_type, category, now),
            title=title,
            description=description,
            training_type=training_type,
            category=category,
            priority=derive_priority(training_type, category),
            delivery_method=delivery_method,
            status=TrainingStatus.DRAFT,
            scheduled_date=scheduled_date,
            duration_minutes=duration_minutes,
            venue=validation.optional_text(venue),
            instructor_name=validation.optional_text(instructor_name),
            max_participants=max_participants,
            min_participants=min_participants,
            passing_score=float(passing_score),
            issues_certificate=bool(issues_certificate),
            certificate_validity_months=certificate_validity_months,
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        )
        training._raise_event(
            "created",
            actor=actor,
            occurred_at=now,
            title=training.title,
            training_code=training.training_code,
            training_type=training.training_type,
            category=training.category,
            priority=training.priority,
            scheduled_date=training.scheduled_date,
        )
        return training

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def update_details(
        self,
        *,
        updated_by: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        venue: Optional[str] = None,
        instructor_name: Optional[str] = None,
        delivery_method: Optional[TrainingDeliveryMethod] = None,
        max_participants: Optional[int] = None,
        min_participants: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(updated_by, "updated_by")
        changes = {}
        if title is not None:
            changes["title"] = validation.require_text(title, "title")
        if description is not None:
            changes["description"] = validation.require_text(description, "description")
        if venue is not None:
            changes["venue"] = validation.optional_text(venue)
        if instructor_name is not None:
            changes["instructor_name"] = validation.optional_text(instructor_name)
        if delivery_method is not None:
            changes["delivery_method"] = validation.require_enum(
                TrainingDeliveryMethod, delivery_method, "delivery_method"
            )
        new_max = self.max_participants if max_participants is None else max_participants
        new_min = self.min_participants if min_participants is None else min_participants
        if max_participants is not None or min_participants is not None:
            validation.require_range(new_min, "min_participants", minimum=0)
            validation.require_range(new_max, "max_participants", minimum=1)
            if new_max < new_min:
                raise DomainValidationError(
                    "Maximum participants must be greater than or equal to minimum participants",
                    field="max_participants",
                )
            if new_max < self.enrolled_count:
                raise DomainValidationError(
                    f"Maximum participants cannot be lower than the {self.enrolled_count} already enrolled",
                    field="max_participants",
                )
            changes["max_participants"] = new_max
            changes["min_participants"] = new_min
        self._require_state(
            [TrainingStatus.DRAFT, TrainingStatus.SCHEDULED],
            reason="Training details can only be changed while draft or scheduled",
        )

        for key, value in changes.items():
            setattr(self, key, value)
        self.touch(actor, now)
        self._raise_event("updated", actor=actor, occurred_at=now, changes=changes)

    def schedule(
        self,
        *,
        scheduled_date: datetime,
        duration_minutes: int,
        scheduled_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(scheduled_by, "scheduled_by")
        scheduled_date = validation.require_future(scheduled_date, "scheduled_date", now=now)
        validation.require_range(duration_minutes, "duration_minutes", minimum=1)

        previous = self._transition(TrainingStatus.SCHEDULED)
        self.scheduled_date = scheduled_date
        self.duration_minutes = duration_minutes
        self.touch(actor, now)
        self._raise_event(
            "scheduled",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            scheduled_date=scheduled_date,
            duration_minutes=duration_minutes,
        )

    def start_training(self, *, started_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(started_by, "started_by")

        self._transition(TrainingStatus.IN_PROGRESS)
        self.start_time = now
        self.touch(actor, now)
        self._raise_event(
            "started",
            actor=actor,
            occurred_at=now,
            start_time=now,
            enrolled_count=self.enrolled_count,
        )

    def complete_training(
        self,
        *,
        completed_by: str,
        summary: Optional[str] = None,
        effectiveness_score: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(completed_by, "completed_by")
        if effectiveness_score is not None:
            validation.require_range(effectiveness_score, "effectiveness_score", minimum=0, maximum=100)
        self._check_transition(TrainingStatus.COMPLETED)
        start_time = as_utc(self.start_time) or now
        if now < start_time:
            raise DomainValidationError("Completion time cannot be before the start time", field="completed_date")

        score = effectiveness_score if effectiveness_score is not None else self.average_participant_score
        self._transition(TrainingStatus.COMPLETED)
        self.completed_date = now
        self.actual_duration_minutes = elapsed_minutes(start_time, now)
        self.completion_summary = validation.optional_text(summary)
        self.effectiveness_score = score
        self.touch(actor, now)
        self._raise_event(
            "completed",
            actor=actor,
            occurred_at=now,
            completed_date=now,
            actual_duration_minutes=self.actual_duration_minutes,
            effectiveness_score=score,
            effectiveness_rating=self.effectiveness_rating,
            completed_count=self._count(ParticipantStatus.COMPLETED),
            failed_count=self._count(ParticipantStatus.FAILED),
        )

    def cancel(self, *, reason: str, cancelled_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(cancelled_by, "cancelled_by")
        reason = validation.require_text(reason, "reason", label="Cancellation reason")

        previous = self._transition(TrainingStatus.CANCELLED)
        self.cancelled_at = now
        self.cancellation_reason = reason
        cancelled_participants = 0
        for participant in self.participants:
            if participant.status in _ACTIVE_PARTICIPANT_STATUSES:
                participant.cancel(f"Training cancelled: {reason}", now=now)
                cancelled_participants += 1
        self.touch(actor, now)
        self._raise_event(
            "cancelled",
            actor=actor,
            occurred_at=now,
            previous_status=previous,
            reason=reason,
            cancelled_participants=cancelled_participants,
        )

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def add_participant(
        self,
        *,
        user_id,
        user_name: str,
        enrolled_by: str,
        email: Optional[str] = None,
        department: Optional[str] = None,
        position: Optional[str] = None,
        waitlisted: bool = False,
        now: Optional[datetime] = None,
    ) -> "TrainingParticipant":
        now = self._now(now)
        actor = validation.require_actor(enrolled_by, "enrolled_by")
        self._require_state(
            [TrainingStatus.DRAFT, TrainingStatus.SCHEDULED, TrainingStatus.IN_PROGRESS],
            reason="Participants can only be added to draft, scheduled or in-progress trainings",
        )
        if not waitlisted and self.enrolled_count >= self.max_participants:
            raise CapacityExceededError(
                f"Training has reached its maximum capacity of {self.max_participants} participants",
                field="max_participants",
            )
        key = validation.require_text(None if user_id is None else str(user_id), "user_id")
        if any(participant.user_id == key for participant in self.participants):
            raise DuplicateEntryError(f"Participant {key} is already enrolled in this training", field="user_id")

        participant = TrainingParticipant.create(
            user_id=key,
            user_name=user_name,
            enrolled_by=actor,
            email=email,
            department=department,
            position=position,
            waitlisted=waitlisted,
            now=now,
        )
        self.participants.append(participant)
        self.touch(actor, now)
        self._raise_event(
            "participant_enrolled",
            actor=actor,
            occurred_at=now,
            user_id=participant.user_id,
            user_name=participant.user_name,
            email=participant.email,
            waitlisted=participant.is_waitlisted,
            title=self.title,
            scheduled_date=self.scheduled_date,
        )
        return participant

    def remove_participant(
        self,
        *,
        user_id,
        reason: str,
        removed_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(removed_by, "removed_by")
        self._require_state(
            [TrainingStatus.DRAFT, TrainingStatus.SCHEDULED, TrainingStatus.IN_PROGRESS],
            reason="Participants can only be removed from draft, scheduled or in-progress trainings",
        )
        participant = self.get_participant(user_id)
        if participant.status == ParticipantStatus.COMPLETED:
            raise InvalidOperationError("Completed participants cannot be removed", field="status")

        participant.cancel(reason, now=now)
        self.touch(actor, now)
        self._raise_event(
            "participant_removed",
            actor=actor,
            occurred_at=now,
            user_id=participant.user_id,
            user_name=participant.user_name,
            reason=participant.cancellation_reason,
        )

    def move_participant_from_waitlist(
        self,
        *,
        user_id,
        moved_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(moved_by, "moved_by")
        self._require_state(
            [TrainingStatus.DRAFT, TrainingStatus.SCHEDULED, TrainingStatus.IN_PROGRESS],
            reason="Waitlist can only be processed for draft, scheduled or in-progress trainings",
        )
        participant = self.get_participant(user_id)
        if participant.is_waitlisted and self.enrolled_count >= self.max_participants:
            raise CapacityExceededError(
                f"Training has reached its maximum capacity of {self.max_participants} participants",
                field="max_participants",
            )

        participant.move_from_waitlist(now=now)
        self.touch(actor, now)
        self._raise_event(
            "participant_moved_from_waitlist",
            actor=actor,
            occurred_at=now,
            user_id=participant.user_id,
            user_name=participant.user_name,
        )

    def mark_attendance(
        self,
        *,
        user_id,
        is_present: bool,
        marked_by: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(marked_by, "marked_by")
        self._require_state(
            [TrainingStatus.IN_PROGRESS],
            reason="Training must be in progress to mark attendance",
        )
        participant = self.get_participant(user_id)

        participant.mark_attendance(is_present, marked_by=actor, notes=notes, now=now)
        self.touch(actor, now)
        self._raise_event(
            "participant_attendance_marked",
            actor=actor,
            occurred_at=now,
            user_id=participant.user_id,
            is_present=participant.is_present,
            status=participant.status,
        )

    def start_participant(self, *, user_id, started_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(started_by, "started_by")
        self._require_state(
            [TrainingStatus.IN_PROGRESS],
            reason="Training must be in progress to start a participant",
        )
        participant = self.get_participant(user_id)

        participant.start_in_progress(now=now)
        self.touch(actor, now)
        self._raise_event("participant_started", actor=actor, occurred_at=now, user_id=participant.user_id)

    def record_results(
        self,
        *,
        user_id,
        score: float,
        passed: bool,
        assessed_by: str,
        feedback: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(assessed_by, "assessed_by")
        self._require_state(
            [TrainingStatus.IN_PROGRESS],
            reason="Training must be in progress to record results",
        )
        participant = self.get_participant(user_id)

        participant.record_results(score, passed, assessed_by=actor, feedback=feedback, now=now)
        self.touch(actor, now)
        self._raise_event(
            "participant_results_recorded",
            actor=actor,
            occurred_at=now,
            user_id=participant.user_id,
            user_name=participant.user_name,
            score=participant.score,
            passed=participant.passed,
            status=participant.status,
        )

    def retake_assessment(self, *, user_id, requested_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        actor = validation.require_actor(requested_by, "requested_by")
        self._require_state(
            [TrainingStatus.IN_PROGRESS],
            reason="Training must be in progress to retake an assessment",
        )
        participant = self.get_participant(user_id)
        previous_score = participant.score

        participant.reset_for_retake(now=now)
        self.touch(actor, now)
        self._raise_event(
            "participant_retake_started",
            actor=actor,
            occurred_at=now,
            user_id=participant.user_id,
            previous_score=previous_score,
            retake_count=participant.retake_count,
        )

    # ------------------------------------------------------------------
    # Requirements
    # ------------------------------------------------------------------

    def add_requirement(
        self,
        *,
        description: str,
        is_mandatory: bool,
        added_by: str,
        due_date: Optional[datetime] = None,
        assigned_to: Optional[str] = None,
        priority: int = 1,
        verification_method: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "TrainingRequirement":
        now = self._now(now)
        actor = validation.require_actor(added_by, "added_by")
        requirement = TrainingRequirement.create(
            description=description,
            is_mandatory=is_mandatory,
            created_by=actor,
            due_date=due_date,
            assigned_to=assigned_to,
            priority=priority,
            verification_method=verification_method,
            now=now,
        )
        self._require_state(
            [TrainingStatus.DRAFT, TrainingStatus.SCHEDULED, TrainingStatus.IN_PROGRESS],
            reason="Requirements can only be added to draft, scheduled or in-progress trainings",
        )
        key = requirement.description.casefold()
        if any(existing.description.casefold() == key for existing in self.requirements):
            raise DuplicateEntryError("This training already has that requirement", field="description")

        self.requirements.append(requirement)
        self.touch(actor, now)
        self._raise_event(
            "requirement_added",
            actor=actor,
            occurred_at=now,
            description=requirement.description,
            is_mandatory=requirement.is_mandatory,
            due_date=requirement.due_date,
            assigned_to=requirement.assigned_to,
        )
        return requirement

    def _owned_requirement(self, requirement) -> "TrainingRequirement":
        self._require_state(_REQUIREMENT_STAGES, reason=_CANCELLED_REQUIREMENT_REASON)
        return find_owned(self.requirements, requirement, label="Requirement")

    def update_requirement(
        self,
        *,
        requirement,
        updated_by: str,
        description: Optional[str] = None,
        is_mandatory: Optional[bool] = None,
        due_date: Optional[datetime] = None,
        priority: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(updated_by, "updated_by")
        requirement = self._owned_requirement(requirement)
        if description is not None:
            key = validation.require_text(description, "description").casefold()
            if any(
                other is not requirement and other.description.casefold() == key for other in self.requirements
            ):
                raise DuplicateEntryError("This training already has that requirement", field="description")

        requirement.update_details(
            description=description,
            is_mandatory=is_mandatory,
            due_date=due_date,
            priority=priority,
            now=now,
        )
        self.touch(actor, now)
        self._raise_event(
            "requirement_updated",
            actor=actor,
            occurred_at=now,
            requirement_id=requirement.id,
            description=requirement.description,
            is_mandatory=requirement.is_mandatory,
            due_date=requirement.due_date,
        )

    def assign_requirement(
        self,
        *,
        requirement,
        assigned_to: str,
        assigned_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(assigned_by, "assigned_by")
        requirement = self._owned_requirement(requirement)

        requirement.assign(assigned_to, assigned_by=actor, now=now)
        self.touch(actor, now)
        self._raise_event(
            "requirement_assigned",
            actor=actor,
            occurred_at=now,
            requirement_id=requirement.id,
            description=requirement.description,
            assigned_to=requirement.assigned_to,
            status=requirement.status,
        )

    def start_requirement(
        self,
        *,
        requirement,
        started_by: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(started_by, "started_by")
        requirement = self._owned_requirement(requirement)

        requirement.start(started_by=actor, notes=notes)
        self.touch(actor, now)
        self._raise_event("requirement_started", actor=actor, occurred_at=now, requirement_id=requirement.id)

    def complete_requirement(
        self,
        *,
        requirement,
        completed_by: str,
        notes: Optional[str] = None,
        evidence: Optional[str] = None,
        attachment_path: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(completed_by, "completed_by")
        requirement = self._owned_requirement(requirement)

        requirement.complete(
            completed_by=actor,
            notes=notes,
            evidence=evidence,
            attachment_path=attachment_path,
            now=now,
        )
        self.touch(actor, now)
        self._raise_event(
            "requirement_completed",
            actor=actor,
            occurred_at=now,
            requirement_id=requirement.id,
            description=requirement.description,
            is_verified=requirement.is_verified,
            completed_late=requirement.completed_late,
        )

    def verify_requirement(
        self,
        *,
        requirement,
        verified_by: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(verified_by, "verified_by")
        requirement = self._owned_requirement(requirement)

        requirement.verify(verified_by=actor, notes=notes, now=now)
        self.touch(actor, now)
        self._raise_event(
            "requirement_verified",
            actor=actor,
            occurred_at=now,
            requirement_id=requirement.id,
            description=requirement.description,
        )

    def reject_requirement_verification(
        self,
        *,
        requirement,
        reason: str,
        rejected_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(rejected_by, "rejected_by")
        requirement = self._owned_requirement(requirement)

        requirement.reject_verification(reason, rejected_by=actor)
        self.touch(actor, now)
        self._raise_event(
            "requirement_verification_rejected",
            actor=actor,
            occurred_at=now,
            requirement_id=requirement.id,
            description=requirement.description,
            reason=reason,
        )

    def waive_requirement(
        self,
        *,
        requirement,
        reason: str,
        waived_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(waived_by, "waived_by")
        requirement = self._owned_requirement(requirement)

        requirement.waive(reason, waived_by=actor, now=now)
        self.touch(actor, now)
        self._raise_event(
            "requirement_waived",
            actor=actor,
            occurred_at=now,
            requirement_id=requirement.id,
            description=requirement.description,
            is_mandatory=requirement.is_mandatory,
            reason=reason,
        )

    def mark_requirement_not_applicable(
        self,
        *,
        requirement,
        reason: str,
        determined_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(determined_by, "determined_by")
        requirement = self._owned_requirement(requirement)

        requirement.mark_not_applicable(reason, determined_by=actor, now=now)
        self.touch(actor, now)
        self._raise_event(
            "requirement_not_applicable",
            actor=actor,
            occurred_at=now,
            requirement_id=requirement.id,
            description=requirement.description,
            reason=reason,
        )

    def extend_requirement_due_date(
        self,
        *,
        requirement,
        new_due_date: datetime,
        reason: str,
        extended_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        actor = validation.require_actor(extended_by, "extended_by")
        requirement = self._owned_requirement(requirement)
        previous_due = requirement.due_date

        requirement.extend_due_date(new_due_date, reason=reason, extended_by=actor, now=now)
        self.touch(actor, now)
        self._raise_event(
            "requirement_due_date_extended",
            actor=actor,
            occurred_at=now,
            requirement_id=requirement.id,
            previous_due_date=previous_due,
            due_date=requirement.due_date,
            reason=reason,
        )

    def flag_overdue_requirements(self, *, flagged_by: str, now: Optional[datetime] = None) -> List["TrainingRequirement"]:
        """Move every open requirement past its due date to OVERDUE; one event each."""
        now = self._now(now)
        actor = validation.require_actor(flagged_by, "flagged_by")
        self._require_state(_REQUIREMENT_STAGES, reason=_CANCELLED_REQUIREMENT_REASON)

        flagged = [requirement for requirement in self.requirements if requirement.mark_overdue(now=now)]
        if not flagged:
            return flagged
        self.touch(actor, now)
        for requirement in flagged:
            self._raise_event(
                "requirement_overdue",
                actor=actor,
                occurred_at=now,
                requirement_id=requirement.id,
                description=requirement.description,
                due_date=requirement.due_date,
                is_mandatory=requirement.is_mandatory,
                title=self.title,
            )
        return flagged

    def outstanding_mandatory_requirements(self) -> List["TrainingRequirement"]:
        return [
            requirement
            for requirement in self.requirements
            if requirement.is_mandatory and not requirement.is_satisfied
        ]

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
        attachment_type: TrainingAttachmentType = TrainingAttachmentType.OTHER,
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "TrainingAttachment":
        now = self._now(now)
        actor = validation.require_actor(uploaded_by, "uploaded_by")
        attachment = TrainingAttachment.create(
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
            [
                TrainingStatus.DRAFT,
                TrainingStatus.SCHEDULED,
                TrainingStatus.IN_PROGRESS,
                TrainingStatus.COMPLETED,
            ],
            reason="Attachments cannot be added to a cancelled training",
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
            [
                TrainingStatus.DRAFT,
                TrainingStatus.SCHEDULED,
                TrainingStatus.IN_PROGRESS,
                TrainingStatus.COMPLETED,
            ],
            reason="Attachments cannot be removed from a cancelled training",
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
    # Queries
    # ------------------------------------------------------------------

    def get_participant(self, user_id) -> "TrainingParticipant":
        key = None if user_id is None else str(user_id)
        for participant in self.participants:
            if participant.user_id == key:
                return participant
        raise SubEntityNotFoundError(f"Participant {user_id} is not enrolled in this training", field="user_id")

    def _count(self, status: ParticipantStatus) -> int:
        return sum(1 for participant in self.participants if participant.status == status)

    @property
    def enrolled_count(self) -> int:
        return sum(
            1
            for participant in self.participants
            if not participant.is_waitlisted and participant.status != ParticipantStatus.CANCELLED
        )

    @property
    def waitlisted_count(self) -> int:
        return self._count(ParticipantStatus.WAITLISTED)

    @property
    def available_spots(self) -> int:
        return max(self.max_participants - self.enrolled_count, 0)

    @property
    def is_full(self) -> bool:
        return self.available_spots == 0

    @property
    def average_participant_score(self) -> Optional[float]:
        scores = [participant.score for participant in self.participants if participant.score is not None]
        if not scores:
            return None
        return round(sum(scores) / len(scores), 2)

    @property
    def effectiveness_rating(self) -> Optional[EffectivenessRating]:
        return rate_effectiveness(self.effectiveness_score)

    def eligible_for_certification(self) -> List["TrainingParticipant"]:
        return [participant for participant in self.participants if participant.is_eligible_for_certification()]

    def can_start(self) -> bool:
        return self.status == TrainingStatus.SCHEDULED

    def can_complete(self) -> bool:
        return self.status == TrainingStatus.IN_PROGRESS

    def __repr__(self) -> str:
        return f"<Training id={self.id} code={self.training_code} status={self.status}>"


# ---------------------------------------------------------------------------
# PARTICIPANT (owned sub-entity)
# ---------------------------------------------------------------------------


class TrainingParticipant(StatefulEntity, Base):
    """
    One person's enrolment in a training.

    The participant's own transitions live here; whether the training is at
    a stage that allows them is decided by `Training`.
    """

    __tablename__ = "training_participants"
    __workflow__ = "training_participant"
    __table_args__ = (
        UniqueConstraint("training_id", "user_id", name="uq_training_participants_training_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    training_id = Column(Integer, ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    user_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    department = Column(String(128), nullable=True)
    position = Column(String(128), nullable=True)

    status = Column(
        SAEnum(ParticipantStatus, name="training_participant_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    is_waitlisted = Column(Boolean, nullable=False)
    enrolled_at = Column(DateTime(timezone=True), nullable=False)
    enrolled_by = Column(String(64), nullable=False)

    is_present = Column(Boolean, nullable=True)
    attendance_marked_at = Column(DateTime(timezone=True), nullable=True)
    attendance_marked_by = Column(String(64), nullable=True)
    attendance_notes = Column(Text, nullable=True)

    score = Column(Float, nullable=True)
    passed = Column(Boolean, nullable=True)
    feedback = Column(Text, nullable=True)
    assessed_by = Column(String(64), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    retake_count = Column(Integer, nullable=False, default=0)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    training = relationship("Training", back_populates="participants")

    @classmethod
    def create(
        cls,
        *,
        user_id: str,
        user_name: str,
        enrolled_by: str,
        email: Optional[str] = None,
        department: Optional[str] = None,
        position: Optional[str] = None,
        waitlisted: bool = False,
        now: Optional[datetime] = None,
    ) -> "TrainingParticipant":
        now = cls._now(now)
        return cls(
            user_id=validation.require_text(None if user_id is None else str(user_id), "user_id"),
            user_name=validation.require_text(user_name, "user_name"),
            email=validation.optional_text(email),
            department=validation.optional_text(department),
            position=validation.optional_text(position),
            status=ParticipantStatus.WAITLISTED if waitlisted else ParticipantStatus.ENROLLED,
            is_waitlisted=bool(waitlisted),
            enrolled_at=now,
            enrolled_by=validation.require_actor(enrolled_by, "enrolled_by"),
            retake_count=0,
        )

    def mark_attendance(
        self,
        is_present: bool,
        *,
        marked_by: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        if is_present is None:
            raise DomainValidationError("Attendance flag is required", field="is_present")
        if not self.can_mark_attendance():
            raise InvalidOperationError(
                "Attendance can only be marked for enrolled, attended or in-progress participants",
                field="status",
            )

        self._transition(ParticipantStatus.ATTENDED if is_present else ParticipantStatus.ABSENT)
        self.is_present = bool(is_present)
        self.attendance_marked_at = now
        self.attendance_marked_by = marked_by
        self.attendance_notes = validation.optional_text(notes)

    def start_in_progress(self, *, now: Optional[datetime] = None) -> None:
        self._transition(ParticipantStatus.IN_PROGRESS)

    def record_results(
        self,
        score: float,
        passed: bool,
        *,
        assessed_by: str,
        feedback: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        validation.require_range(score, "score", minimum=0, maximum=100)
        if passed is None:
            raise DomainValidationError("Pass/fail outcome is required", field="passed")
        if not self.can_record_results():
            raise InvalidOperationError("Participant must be attended first", field="is_present")

        self._transition(ParticipantStatus.COMPLETED if passed else ParticipantStatus.FAILED)
        self.score = float(score)
        self.passed = bool(passed)
        self.feedback = validation.optional_text(feedback)
        self.assessed_by = assessed_by
        self.completed_at = now

    def reset_for_retake(self, *, now: Optional[datetime] = None) -> None:
        self._require_state(
            [ParticipantStatus.FAILED],
            reason="Only failed participants can retake the assessment",
        )
        self._transition(ParticipantStatus.ATTENDED)
        self.score = None
        self.passed = None
        self.feedback = None
        self.completed_at = None
        self.retake_count = (self.retake_count or 0) + 1

    def cancel(self, reason: str, *, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        reason = validation.require_text(reason, "reason", label="Cancellation reason")

        self._transition(ParticipantStatus.CANCELLED)
        self.cancelled_at = now
        self.cancellation_reason = reason

    def move_from_waitlist(self, *, now: Optional[datetime] = None) -> None:
        if not self.is_waitlisted:
            raise InvalidOperationError("Participant is not on the waitlist", field="is_waitlisted")

        self._transition(ParticipantStatus.ENROLLED)
        self.is_waitlisted = False

    def can_mark_attendance(self) -> bool:
        return not self.is_waitlisted and self.status in (
            ParticipantStatus.ENROLLED,
            ParticipantStatus.ATTENDED,
            ParticipantStatus.IN_PROGRESS,
        )

    def can_record_results(self) -> bool:
        return self.is_present is True and self.status in (
            ParticipantStatus.ATTENDED,
            ParticipantStatus.IN_PROGRESS,
        )

    def is_eligible_for_certification(self) -> bool:
        return self.passed is True and self.is_present is True

    def __repr__(self) -> str:
        return f"<TrainingParticipant id={self.id} user={self.user_id} status={self.status}>"


# ---------------------------------------------------------------------------
# REQUIREMENT (owned sub-entity)
# ---------------------------------------------------------------------------


class TrainingRequirement(StatefulEntity, Base):
    """
    Something that must be done or evidenced for a training, such as a
    medical clearance, a signed method statement or a regulatory filing.

    PENDING -> IN_PROGRESS -> COMPLETED -> VERIFIED. Open requirements
    (PENDING, IN_PROGRESS, OVERDUE) can also be waived or marked not
    applicable. A rejected verification sends the requirement back to
    IN_PROGRESS, and extending the due date of an OVERDUE one reopens it.
    Mandatory requirements, and any with a verification method, must be
    verified by someone after completion. The others count as verified
    as soon as they are completed.
    """

    __tablename__ = "training_requirements"
    __workflow__ = "training_requirement"

    id = Column(Integer, primary_key=True, autoincrement=True)
    training_id = Column(Integer, ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    status = Column(
        SAEnum(RequirementStatus, name="training_requirement_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    is_mandatory = Column(Boolean, nullable=False)
    priority = Column(Integer, nullable=False)
    risk_level_if_not_completed = Column(
        SAEnum(RequirementRiskLevel, name="training_requirement_risk_enum", native_enum=False),
        nullable=False,
    )

    due_date = Column(DateTime(timezone=True), nullable=True)
    is_overdue = Column(Boolean, nullable=False, default=False)

    assigned_to = Column(String(255), nullable=True)
    assigned_by = Column(String(64), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by = Column(String(64), nullable=True)
    completion_notes = Column(Text, nullable=True)
    evidence_provided = Column(Text, nullable=True)
    attachment_path = Column(String(512), nullable=True)

    verification_method = Column(String(255), nullable=True)
    requires_verification = Column(Boolean, nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    verified_by = Column(String(64), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    compliance_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(64), nullable=False)

    training = relationship("Training", back_populates="requirements")

    @classmethod
    def create(
        cls,
        *,
        description: str,
        is_mandatory: bool,
        created_by: str,
        due_date: Optional[datetime] = None,
        assigned_to: Optional[str] = None,
        priority: int = 1,
        verification_method: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "TrainingRequirement":
        now = cls._now(now)
        validation.require_range(priority, "priority", minimum=1, maximum=5)
        if due_date is not None:
            due_date = validation.require_future(due_date, "due_date", now=now)
        method = validation.optional_text(verification_method)
        assignee = validation.optional_text(assigned_to)
        return cls(
            description=validation.require_text(description, "description"),
            status=RequirementStatus.PENDING,
            is_mandatory=bool(is_mandatory),
            priority=priority,
            risk_level_if_not_completed=_requirement_risk(bool(is_mandatory)),
            due_date=due_date,
            is_overdue=False,
            assigned_to=assignee,
            assigned_by=created_by if assignee else None,
            assigned_at=now if assignee else None,
            verification_method=method,
            requires_verification=bool(is_mandatory) or method is not None,
            is_verified=False,
            created_at=now,
            created_by=created_by,
        )

    def _require_open(self, reason: str) -> None:
        self._require_state(_OPEN_REQUIREMENT_STATUSES, reason=reason)

    def update_details(
        self,
        *,
        description: Optional[str] = None,
        is_mandatory: Optional[bool] = None,
        due_date: Optional[datetime] = None,
        priority: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        if priority is not None:
            validation.require_range(priority, "priority", minimum=1, maximum=5)
        if due_date is not None:
            due_date = validation.require_future(due_date, "due_date", now=now)
        self._require_open("Cannot update completed or closed requirements")

        if description is not None:
            self.description = validation.require_text(description, "description")
        if is_mandatory is not None:
            self.is_mandatory = bool(is_mandatory)
            self.requires_verification = self.is_mandatory or self.verification_method is not None
            self.risk_level_if_not_completed = _requirement_risk(self.is_mandatory)
        if priority is not None:
            self.priority = priority
        if due_date is not None:
            self.due_date = due_date
            if self.status == RequirementStatus.OVERDUE:
                self._transition(RequirementStatus.IN_PROGRESS)
            self.is_overdue = False

    def assign(self, assigned_to: str, *, assigned_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        assignee = validation.require_text(assigned_to, "assigned_to")
        self._require_open("Cannot reassign completed or closed requirements")

        if self.status == RequirementStatus.PENDING:
            self._transition(RequirementStatus.IN_PROGRESS)
        self.assigned_to = assignee
        self.assigned_by = assigned_by
        self.assigned_at = now

    def start(self, *, started_by: str, notes: Optional[str] = None) -> None:
        self._require_state(
            [RequirementStatus.PENDING],
            reason="Only pending requirements can be marked as in progress",
        )
        self._transition(RequirementStatus.IN_PROGRESS)
        note = validation.optional_text(notes)
        self.completion_notes = f"Started by {started_by}. {note}" if note else f"Started by {started_by}."

    def complete(
        self,
        *,
        completed_by: str,
        notes: Optional[str] = None,
        evidence: Optional[str] = None,
        attachment_path: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        self._transition(RequirementStatus.COMPLETED)
        self.completed_at = now
        self.completed_by = completed_by
        self.completion_notes = validation.optional_text(notes)
        self.evidence_provided = validation.optional_text(evidence)
        self.attachment_path = validation.optional_text(attachment_path)
        self.is_overdue = False
        if not self.requires_verification:
            self.is_verified = True
            self.verified_by = completed_by
            self.verified_at = now

    def verify(self, *, verified_by: str, notes: Optional[str] = None, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        self._transition(RequirementStatus.VERIFIED)
        self.is_verified = True
        self.verified_by = verified_by
        self.verified_at = now
        self.compliance_notes = validation.optional_text(notes)

    def reject_verification(self, reason: str, *, rejected_by: str) -> None:
        reason = validation.require_text(reason, "reason", label="Rejection reason")
        self._require_state(
            [RequirementStatus.COMPLETED, RequirementStatus.VERIFIED],
            reason="Only completed requirements can have verification rejected",
        )
        self._transition(RequirementStatus.IN_PROGRESS)
        self.is_verified = False
        self.verified_by = None
        self.verified_at = None
        self.completed_at = None
        self.completed_by = None
        self.compliance_notes = f"Verification rejected by {rejected_by}: {reason}"

    def waive(self, reason: str, *, waived_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        reason = validation.require_text(reason, "reason", label="Waiver reason")
        self._transition(RequirementStatus.WAIVED)
        self._close_without_completion(f"Requirement waived: {reason}", actor=waived_by, now=now)
        self.completed_by = waived_by
        self.completed_at = now

    def mark_not_applicable(self, reason: str, *, determined_by: str, now: Optional[datetime] = None) -> None:
        now = self._now(now)
        reason = validation.require_text(reason, "reason", label="Reason")
        self._transition(RequirementStatus.NOT_APPLICABLE)
        self._close_without_completion(
            f"Marked as not applicable by {determined_by}: {reason}",
            actor=determined_by,
            now=now,
        )

    def _close_without_completion(self, note: str, *, actor: str, now: datetime) -> None:
        # Waived and not-applicable requirements need no further verification.
        self.completion_notes = note
        self.is_overdue = False
        self.is_verified = True
        self.verified_by = actor
        self.verified_at = now

    def mark_overdue(self, *, now: Optional[datetime] = None) -> bool:
        now = self._now(now)
        if self.status not in (RequirementStatus.PENDING, RequirementStatus.IN_PROGRESS):
            return False
        if self.due_date is None or now <= as_utc(self.due_date):
            return False
        self._transition(RequirementStatus.OVERDUE)
        self.is_overdue = True
        return True

    def extend_due_date(
        self,
        new_due_date: datetime,
        *,
        reason: str,
        extended_by: str,
        now: Optional[datetime] = None,
    ) -> None:
        now = self._now(now)
        reason = validation.require_text(reason, "reason", label="Extension reason")
        self._require_open("Cannot extend due date for completed or closed requirements")
        new_due_date = validation.require_future(new_due_date, "due_date", now=now)

        self.due_date = new_due_date
        note = f"Due date extended by {extended_by} to {new_due_date:%Y-%m-%d}. Reason: {reason}"
        self.compliance_notes = f"{self.compliance_notes}\n{note}" if self.compliance_notes else note
        if self.status == RequirementStatus.OVERDUE:
            self._transition(RequirementStatus.IN_PROGRESS)
        self.is_overdue = False

    @property
    def is_satisfied(self) -> bool:
        if self.status in (RequirementStatus.VERIFIED, RequirementStatus.WAIVED, RequirementStatus.NOT_APPLICABLE):
            return True
        return self.status == RequirementStatus.COMPLETED and bool(self.is_verified)

    @property
    def completed_late(self) -> bool:
        if self.completed_at is None or self.due_date is None:
            return False
        return as_utc(self.completed_at) > as_utc(self.due_date)

    def is_high_priority(self) -> bool:
        return self.priority <= 2 or bool(self.is_mandatory)

    def days_until_due(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.due_date is None:
            return None
        return (as_utc(self.due_date) - self._now(now)).days

    def __repr__(self) -> str:
        return f"<TrainingRequirement id={self.id} status={self.status}>"


# ---------------------------------------------------------------------------
# ATTACHMENT (owned sub-entity)
# ---------------------------------------------------------------------------


class TrainingAttachment(Base):
    __tablename__ = "training_attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    training_id = Column(Integer, ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String(128), nullable=False)
    attachment_type = Column(
        SAEnum(TrainingAttachmentType, name="training_attachment_type_enum", native_enum=False),
        nullable=False,
    )
    description = Column(Text, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False)
    uploaded_by = Column(String(64), nullable=False)

    training = relationship("Training", back_populates="attachments")

    @classmethod
    def create(
        cls,
        *,
        file_name: str,
        file_path: str,
        file_size: int,
        content_type: str,
        uploaded_by: str,
        attachment_type: TrainingAttachmentType = TrainingAttachmentType.OTHER,
        description: Optional[str] = None,
        now: datetime,
    ) -> "TrainingAttachment":
        validation.require_range(file_size, "file_size", minimum=0)
        return cls(
            file_name=validation.require_text(file_name, "file_name"),
            file_path=validation.require_text(file_path, "file_path"),
            file_size=file_size,
            content_type=validation.require_text(content_type, "content_type"),
            attachment_type=validation.require_enum(TrainingAttachmentType, attachment_type, "attachment_type"),
            description=validation.optional_text(description),
            uploaded_at=now,
            uploaded_by=uploaded_by,
        )
