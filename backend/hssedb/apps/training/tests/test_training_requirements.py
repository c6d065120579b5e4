from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from hssedb.apps.events.models import DomainEventOutbox
from hssedb.apps.notifications.models import NotificationLog
from hssedb.apps.training import models, services
from hssedb.apps.workflow.errors import (
    DomainValidationError,
    DuplicateEntryError,
    InvalidOperationError,
    SubEntityNotFoundError,
    TransitionError,
)

NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
SESSION_DAY = NOW + timedelta(days=7)
DUE = NOW + timedelta(days=3)

Status = models.RequirementStatus


def _create_training(**overrides) -> models.Training:
    fields = dict(
        title="Working at height",
        description="Harness inspection, anchor points and rescue plans",
        training_type=models.TrainingType.HSE_TRAINING,
        category=models.TrainingCategory.SAFETY_TRAINING,
        scheduled_date=SESSION_DAY,
        max_participants=10,
        min_participants=1,
        created_by="hse-coordinator",
        now=NOW,
    )
    fields.update(overrides)
    return models.Training.create(**fields)


def _add(training: models.Training, **overrides) -> models.TrainingRequirement:
    fields = dict(
        description="Medical fitness clearance",
        is_mandatory=True,
        added_by="hse-coordinator",
        due_date=DUE,
        now=NOW,
    )
    fields.update(overrides)
    return training.add_requirement(**fields)


def _actions(training: models.Training):
    return [event.action for event in training.pending_events]


def test_add_requirement_starts_pending_and_records_event():
    training = _create_training()
    requirement = _add(training, assigned_to="site-nurse")

    assert requirement.status == Status.PENDING
    assert requirement.requires_verification
    assert requirement.risk_level_if_not_completed == models.RequirementRiskLevel.HIGH
    assert requirement.assigned_by == "hse-coordinator"
    assert requirement.is_high_priority()
    assert requirement.days_until_due(NOW) == 3
    assert training.requirements == [requirement]
    assert _actions(training)[-1] == "requirement_added"
    assert training.pending_events[-1].payload["assigned_to"] == "site-nurse"


def test_optional_requirement_without_method_needs_no_verification():
    training = _create_training()
    requirement = _add(training, description="Read the rescue plan", is_mandatory=False, priority=4, due_date=None)

    assert not requirement.requires_verification
    assert requirement.risk_level_if_not_completed == models.RequirementRiskLevel.MEDIUM
    assert not requirement.is_high_priority()
    assert requirement.days_until_due(NOW) is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"description": "  "},
        {"priority": 0},
        {"priority": 6},
        {"due_date": NOW - timedelta(hours=1)},
        {"added_by": ""},
    ],
)
def test_add_requirement_rejects_invalid_input(overrides):
    training = _create_training()
    with pytest.raises(DomainValidationError):
        _add(training, **overrides)
    assert training.requirements == []


def test_duplicate_description_is_rejected_case_insensitively():
    training = _create_training()
    _add(training)
    with pytest.raises(DuplicateEntryError):
        _add(training, description="MEDICAL fitness clearance ")
    assert len(training.requirements) == 1


def test_cancelled_training_freezes_its_requirements():
    training = _create_training()
    requirement = _add(training)
    training.cancel(reason="Contractor withdrew", cancelled_by="hse-coordinator", now=NOW)

    with pytest.raises(InvalidOperationError) as excinfo:
        _add(training, description="Signed method statement")
    assert excinfo.value.code == "invalid_state"

    with pytest.raises(InvalidOperationError) as excinfo:
        training.complete_requirement(requirement=requirement, completed_by="site-nurse", now=NOW)
    assert excinfo.value.message == "Requirements of a cancelled training cannot be changed"
    assert requirement.status == Status.PENDING


def test_unknown_requirement_is_not_found():
    training = _create_training()
    _add(training)
    with pytest.raises(SubEntityNotFoundError):
        training.start_requirement(requirement=999, started_by="site-nurse", now=NOW)


def test_full_chain_pending_to_verified():
    training = _create_training()
    requirement = _add(training)

    training.start_requirement(requirement=requirement, started_by="site-nurse", notes="Booked clinic", now=NOW)
    assert requirement.status == Status.IN_PROGRESS
    assert requirement.completion_notes == "Started by site-nurse. Booked clinic"

    completed_at = NOW + timedelta(days=1)
    training.complete_requirement(
        requirement=requirement,
        completed_by="site-nurse",
        evidence="Clearance certificate 4471",
        now=completed_at,
    )
    assert requirement.status == Status.COMPLETED
    assert not requirement.is_verified
    assert not requirement.is_satisfied
    assert training.outstanding_mandatory_requirements() == [requirement]

    training.verify_requirement(requirement=requirement, verified_by="hse-manager", notes="Checked", now=completed_at)
    assert requirement.status == Status.VERIFIED
    assert requirement.is_verified
    assert requirement.verified_by == "hse-manager"
    assert requirement.is_satisfied
    assert training.outstanding_mandatory_requirements() == []
    assert _actions(training)[-3:] == ["requirement_started", "requirement_completed", "requirement_verified"]


def test_start_only_from_pending():
    training = _create_training()
    requirement = _add(training)
    training.assign_requirement(requirement=requirement, assigned_to="site-nurse", assigned_by="hse-coordinator", now=NOW)
    assert requirement.status == Status.IN_PROGRESS

    with pytest.raises(InvalidOperationError) as excinfo:
        training.start_requirement(requirement=requirement, started_by="site-nurse", now=NOW)
    assert excinfo.value.message == "Only pending requirements can be marked as in progress"


def test_optional_requirement_is_verified_on_completion_and_cannot_be_verified_again():
    training = _create_training()
    requirement = _add(training, description="Read the rescue plan", is_mandatory=False)

    training.complete_requirement(requirement=requirement, completed_by="operative", now=NOW)

    assert requirement.status == Status.COMPLETED
    assert requirement.is_verified
    assert requirement.verified_by == "operative"
    assert requirement.is_satisfied
    assert training.pending_events[-1].payload["is_verified"] is True

    with pytest.raises(TransitionError) as excinfo:
        training.verify_requirement(requirement=requirement, verified_by="hse-manager", now=NOW)
    assert excinfo.value.code == "missing_requirements"
    assert requirement.status == Status.COMPLETED


def test_verification_needs_a_completed_requirement():
    training = _create_training()
    requirement = _add(training)
    with pytest.raises(TransitionError) as excinfo:
        training.verify_requirement(requirement=requirement, verified_by="hse-manager", now=NOW)
    assert str(excinfo.value) == "Only completed requirements can be verified"


def test_rejected_verification_reopens_and_clears_completion():
    training = _create_training()
    requirement = _add(training)
    training.complete_requirement(requirement=requirement, completed_by="site-nurse", now=NOW)
    training.verify_requirement(requirement=requirement, verified_by="hse-manager", now=NOW)

    training.reject_requirement_verification(
        requirement=requirement,
        reason="Certificate expired",
        rejected_by="hse-manager",
        now=NOW,
    )

    assert requirement.status == Status.IN_PROGRESS
    assert not requirement.is_verified
    assert requirement.verified_at is None
    assert requirement.completed_at is None
    assert requirement.completed_by is None
    assert requirement.compliance_notes == "Verification rejected by hse-manager: Certificate expired"
    assert _actions(training)[-1] == "requirement_verification_rejected"

    training.complete_requirement(requirement=requirement, completed_by="site-nurse", now=NOW + timedelta(hours=2))
    assert requirement.status == Status.COMPLETED


def test_reject_verification_needs_reason_and_completed_requirement():
    training = _create_training()
    requirement = _add(training)

    with pytest.raises(InvalidOperationError) as excinfo:
        training.reject_requirement_verification(
            requirement=requirement, reason="Not yet", rejected_by="hse-manager", now=NOW
        )
    assert excinfo.value.message == "Only completed requirements can have verification rejected"

    training.complete_requirement(requirement=requirement, completed_by="site-nurse", now=NOW)
    with pytest.raises(DomainValidationError):
        training.reject_requirement_verification(requirement=requirement, reason=" ", rejected_by="hse-manager", now=NOW)
    assert requirement.status == Status.COMPLETED


def test_waive_closes_requirement_and_blocks_reopening():
    training = _create_training()
    requirement = _add(training)

    training.waive_requirement(requirement=requirement, reason="Covered by site induction", waived_by="hse-manager", now=NOW)

    assert requirement.status == Status.WAIVED
    assert requirement.is_satisfied
    assert requirement.completion_notes == "Requirement waived: Covered by site induction"
    assert training.pending_events[-1].payload["is_mandatory"] is True

    with pytest.raises(TransitionError):
        training.complete_requirement(requirement=requirement, completed_by="site-nurse", now=NOW)
    with pytest.raises(InvalidOperationError):
        training.extend_requirement_due_date(
            requirement=requirement,
            new_due_date=DUE + timedelta(days=7),
            reason="More time",
            extended_by="hse-manager",
            now=NOW,
        )


def test_completed_requirement_cannot_be_waived_or_marked_not_applicable():
    training = _create_training()
    requirement = _add(training)
    training.complete_requirement(requirement=requirement, completed_by="site-nurse", now=NOW)

    with pytest.raises(TransitionError) as excinfo:
        training.waive_requirement(requirement=requirement, reason="No longer needed", waived_by="hse-manager", now=NOW)
    assert str(excinfo.value) == "Cannot waive completed or closed requirements"

    with pytest.raises(TransitionError):
        training.mark_requirement_not_applicable(
            requirement=requirement, reason="Scope change", determined_by="hse-manager", now=NOW
        )


def test_not_applicable_is_final_and_satisfied():
    training = _create_training()
    requirement = _add(training)

    training.mark_requirement_not_applicable(
        requirement=requirement,
        reason="Work moved to ground level",
        determined_by="hse-manager",
        now=NOW,
    )

    assert requirement.status == Status.NOT_APPLICABLE
    assert requirement.is_satisfied
    assert requirement.completion_notes == "Marked as not applicable by hse-manager: Work moved to ground level"
    with pytest.raises(InvalidOperationError) as excinfo:
        training.assign_requirement(
            requirement=requirement, assigned_to="site-nurse", assigned_by="hse-manager", now=NOW
        )
    assert excinfo.value.code == "invalid_state"


def test_flag_overdue_only_moves_open_requirements_past_due():
    training = _create_training()
    late = _add(training)
    undated = _add(training, description="Signed method statement", due_date=None)
    later = _add(training, description="Rescue drill", due_date=NOW + timedelta(days=10))
    done = _add(training, description="Harness inspection", due_date=NOW + timedelta(days=1))
    training.complete_requirement(requirement=done, completed_by="supervisor", now=NOW)

    checked_at = NOW + timedelta(days=4)
    flagged = training.flag_overdue_requirements(flagged_by="system", now=checked_at)

    assert flagged == [late]
    assert late.status == Status.OVERDUE
    assert late.is_overdue
    assert undated.status == Status.PENDING
    assert later.status == Status.PENDING
    assert done.status == Status.COMPLETED
    event = training.pending_events[-1]
    assert event.action == "requirement_overdue"
    assert event.payload["title"] == "Working at height"

    events_before = len(training.pending_events)
    assert training.flag_overdue_requirements(flagged_by="system", now=checked_at) == []
    assert len(training.pending_events) == events_before


def test_overdue_requirement_can_still_be_completed_late():
    training = _create_training()
    requirement = _add(training)
    training.flag_overdue_requirements(flagged_by="system", now=DUE + timedelta(days=1))

    training.complete_requirement(requirement=requirement, completed_by="site-nurse", now=DUE + timedelta(days=2))

    assert requirement.status == Status.COMPLETED
    assert not requirement.is_overdue
    assert requirement.completed_late
    assert training.pending_events[-1].payload["completed_late"] is True


def test_extend_due_date_reopens_overdue_requirement():
    training = _create_training()
    requirement = _add(training)
    checked_at = DUE + timedelta(days=1)
    training.flag_overdue_requirements(flagged_by="system", now=checked_at)

    new_due = checked_at + timedelta(days=14)
    training.extend_requirement_due_date(
        requirement=requirement,
        new_due_date=new_due,
        reason="Clinic fully booked",
        extended_by="hse-manager",
        now=checked_at,
    )

    assert requirement.status == Status.IN_PROGRESS
    assert not requirement.is_overdue
    assert requirement.due_date == new_due
    assert requirement.compliance_notes == (
        f"Due date extended by hse-manager to {new_due:%Y-%m-%d}. Reason: Clinic fully booked"
    )
    payload = training.pending_events[-1].payload
    assert payload["previous_due_date"] == DUE.isoformat()


@pytest.mark.parametrize(
    "new_due_date, reason",
    [
        (NOW - timedelta(days=1), "Clinic fully booked"),
        (NOW, "Clinic fully booked"),
        (NOW + timedelta(days=5), "  "),
    ],
)
def test_extend_due_date_needs_future_date_and_reason(new_due_date, reason):
    training = _create_training()
    requirement = _add(training)

    with pytest.raises(DomainValidationError):
        training.extend_requirement_due_date(
            requirement=requirement,
            new_due_date=new_due_date,
            reason=reason,
            extended_by="hse-manager",
            now=NOW,
        )
    assert requirement.due_date == DUE


def test_update_requirement_recomputes_verification_and_checks_duplicates():
    training = _create_training()
    requirement = _add(training)
    _add(training, description="Rescue drill")

    with pytest.raises(DuplicateEntryError):
        training.update_requirement(requirement=requirement, description="rescue drill", updated_by="hse-manager", now=NOW)

    training.update_requirement(requirement=requirement, is_mandatory=False, priority=3, updated_by="hse-manager", now=NOW)

    assert not requirement.requires_verification
    assert requirement.risk_level_if_not_completed == models.RequirementRiskLevel.MEDIUM
    assert requirement.priority == 3
    assert _actions(training)[-1] == "requirement_updated"


def _create_persisted_training(db) -> models.Training:
    return services.create_training(
        db,
        title="Scaffold inspection",
        description="Tagging, ties and load classes",
        training_type=models.TrainingType.HSE_TRAINING,
        category=models.TrainingCategory.SAFETY_TRAINING,
        scheduled_date=SESSION_DAY,
        max_participants=5,
        min_participants=1,
        created_by="coordinator",
        now=NOW,
    )


def test_services_persist_requirement_lifecycle(db_session):
    training = _create_persisted_training(db_session)
    requirement = services.add_requirement(
        db_session,
        training.id,
        actor="coordinator",
        description="Scaffolder card on file",
        is_mandatory=True,
        due_date=DUE,
        now=NOW,
    )
    assert requirement.id is not None

    services.complete_requirement(
        db_session, training.id, requirement_id=requirement.id, actor="supervisor", evidence="CISRS 8812", now=NOW
    )
    services.verify_requirement(db_session, training.id, requirement_id=requirement.id, actor="hse-manager", now=NOW)

    db_session.expire_all()
    stored = db_session.get(models.TrainingRequirement, requirement.id)
    assert stored.status == Status.VERIFIED
    assert stored.evidence_provided == "CISRS 8812"
    event_types = [row.event_type for row in db_session.query(DomainEventOutbox).order_by(DomainEventOutbox.id)]
    assert event_types[-3:] == [
        "training.requirement_added",
        "training.requirement_completed",
        "training.requirement_verified",
    ]


def test_overdue_sweep_flags_each_training_and_notifies(db_session):
    first = _create_persisted_training(db_session)
    second = _create_persisted_training(db_session)
    cancelled = _create_persisted_training(db_session)
    for training in (first, second, cancelled):
        services.add_requirement(
            db_session, training.id, actor="coordinator", description="Site induction", is_mandatory=True, due_date=DUE, now=NOW
        )
    services.add_requirement(
        db_session,
        second.id,
        actor="coordinator",
        description="Rescue drill",
        is_mandatory=False,
        due_date=DUE + timedelta(days=30),
        now=NOW,
    )
    services.cancel_training(db_session, cancelled.id, reason="Client postponed", actor="coordinator", now=NOW)

    flagged = services.flag_overdue_requirements(db_session, now=DUE + timedelta(days=1))

    assert sorted(requirement.training_id for requirement in flagged) == [first.id, second.id]
    assert all(requirement.status == Status.OVERDUE for requirement in flagged)
    assert cancelled.requirements[0].status == Status.PENDING
    templates = [row.template_key for row in db_session.query(NotificationLog)]
    assert templates.count("training_requirement_overdue") == 2

    assert services.flag_overdue_requirements(db_session, now=DUE + timedelta(days=2)) == []
