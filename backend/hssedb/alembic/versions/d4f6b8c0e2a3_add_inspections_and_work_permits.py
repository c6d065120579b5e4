"""add inspections, findings, work permits and their sub-tables

Revision ID: d4f6b8c0e2a3
Revises: c3e5a7b9d1f2
Create Date: 2026-10-02 14:40:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "d4f6b8c0e2a3"
down_revision = "c3e5a7b9d1f2"
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(length=64), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
    ]


def _file_columns():
    return [
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.String(length=512), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("content_type", sa.String(length=128), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "inspections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("inspection_number", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "inspection_type",
            _enum(
                "inspection_type_enum",
                "SAFETY",
                "HEALTH",
                "ENVIRONMENTAL",
                "SECURITY",
                "EQUIPMENT",
                "FIRE",
                "COMPLIANCE",
            ),
            nullable=False,
        ),
        sa.Column(
            "category",
            _enum(
                "inspection_category_enum",
                "ROUTINE",
                "PLANNED",
                "UNPLANNED",
                "REGULATORY",
                "FOLLOW_UP",
                "INCIDENT",
            ),
            nullable=False,
        ),
        sa.Column("priority", _enum("inspection_priority_enum", "LOW", "MEDIUM", "HIGH", "CRITICAL"), nullable=False),
        sa.Column(
            "status",
            _enum(
                "inspection_status_enum",
                "DRAFT",
                "SCHEDULED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                "ARCHIVED",
            ),
            nullable=False,
        ),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("inspector_id", sa.String(length=64), nullable=False),
        sa.Column("inspector_name", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=128), nullable=True),
        sa.Column("facility", sa.String(length=128), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("recommendations", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_inspections_inspection_number", "inspections", ["inspection_number"], unique=True)
    op.create_index("ix_inspections_status", "inspections", ["status"])
    op.create_index("ix_inspections_inspector_id", "inspections", ["inspector_id"])
    op.create_index("ix_inspections_status_scheduled", "inspections", ["status", "scheduled_date"])

    op.create_table(
        "inspection_findings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("finding_number", sa.String(length=40), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "finding_type",
            _enum(
                "inspection_finding_type_enum",
                "NON_COMPLIANCE",
                "OBSERVATION",
                "BEST_PRACTICE",
                "IMPROVEMENT",
                "HAZARD",
            ),
            nullable=False,
        ),
        sa.Column(
            "severity",
            _enum("inspection_finding_severity_enum", "MINOR", "MODERATE", "MAJOR", "CRITICAL"),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("inspection_finding_status_enum", "OPEN", "IN_PROGRESS", "RESOLVED", "VERIFIED", "CLOSED"),
            nullable=False,
        ),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("equipment", sa.String(length=255), nullable=True),
        sa.Column("regulation", sa.String(length=255), nullable=True),
        sa.Column("immediate_action", sa.Text(), nullable=True),
        sa.Column("root_cause", sa.Text(), nullable=True),
        sa.Column("corrective_action", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responsible_person_id", sa.String(length=64), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by", sa.String(length=64), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closure_notes", sa.Text(), nullable=True),
        sa.Column("reopen_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_inspection_findings_inspection_id", "inspection_findings", ["inspection_id"])
    op.create_index("ix_inspection_findings_finding_number", "inspection_findings", ["finding_number"], unique=True)
    op.create_index("ix_inspection_findings_status", "inspection_findings", ["status"])

    op.create_table(
        "inspection_attachments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False),
        *_file_columns(),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_photo", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("uploaded_by", sa.String(length=64), nullable=False),
    )
    op.create_index("ix_inspection_attachments_inspection_id", "inspection_attachments", ["inspection_id"])

    op.create_table(
        "work_permits",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("permit_number", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "permit_type",
            _enum(
                "work_permit_type_enum",
                "GENERAL",
                "HOT_WORK",
                "COLD_WORK",
                "CONFINED_SPACE",
                "ELECTRICAL_WORK",
                "SPECIAL",
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum(
                "work_permit_status_enum",
                "DRAFT",
                "PENDING_APPROVAL",
                "APPROVED",
                "REJECTED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
            ),
            nullable=False,
        ),
        sa.Column("priority", _enum("work_permit_priority_enum", "LOW", "MEDIUM", "HIGH", "CRITICAL"), nullable=False),
        sa.Column("work_location", sa.String(length=255), nullable=False),
        sa.Column("work_scope", sa.Text(), nullable=False),
        sa.Column("number_of_workers", sa.Integer(), nullable=False),
        sa.Column("contractor_company", sa.String(length=255), nullable=True),
        sa.Column("planned_start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("planned_end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("requested_by_id", sa.String(length=64), nullable=False),
        sa.Column("requested_by_name", sa.String(length=255), nullable=True),
        sa.Column("work_supervisor", sa.String(length=255), nullable=True),
        sa.Column("safety_officer", sa.String(length=255), nullable=True),
        sa.Column("requires_hot_work", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_confined_space_entry", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_electrical_isolation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_height_work", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_radiation_work", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_excavation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_fire_watch", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_gas_monitoring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        sa.Column("completed_safely", sa.Boolean(), nullable=True),
        sa.Column("lessons_learned", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_work_permits_permit_number", "work_permits", ["permit_number"], unique=True)
    op.create_index("ix_work_permits_status", "work_permits", ["status"])
    op.create_index("ix_work_permits_requested_by_id", "work_permits", ["requested_by_id"])
    op.create_index("ix_work_permits_status_start", "work_permits", ["status", "planned_start_date"])

    op.create_table(
        "work_permit_approvals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("permit_id", sa.Integer(), sa.ForeignKey("work_permits.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "level",
            _enum(
                "work_permit_approval_level_enum",
                "SAFETY_OFFICER",
                "DEPARTMENT_HEAD",
                "HOT_WORK_SPECIALIST",
                "CONFINED_SPACE_SPECIALIST",
                "ELECTRICAL_SUPERVISOR",
                "SPECIAL_WORK_SPECIALIST",
                "HSE_MANAGER",
            ),
            nullable=True,
        ),
        sa.Column("is_approved", sa.Boolean(), nullable=False),
        sa.Column("approved_by", sa.String(length=64), nullable=False),
        sa.Column("approver_name", sa.String(length=255), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_work_permit_approvals_permit_id", "work_permit_approvals", ["permit_id"])

    op.create_table(
        "work_permit_hazards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("permit_id", sa.Integer(), sa.ForeignKey("work_permits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "risk_level",
            _enum("work_permit_hazard_risk_enum", "LOW", "MEDIUM", "HIGH", "CRITICAL"),
            nullable=False,
        ),
        sa.Column("control_measures", sa.Text(), nullable=False),
        sa.Column("responsible_person", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_work_permit_hazards_permit_id", "work_permit_hazards", ["permit_id"])

    op.create_table(
        "work_permit_precautions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("permit_id", sa.Integer(), sa.ForeignKey("work_permits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "category",
            _enum(
                "work_permit_precaution_category_enum",
                "PERSONAL_PROTECTIVE_EQUIPMENT",
                "ISOLATION",
                "FIRE_PREVENTION",
                "GAS_TESTING",
                "COMMUNICATION",
                "EMERGENCY_PROCEDURES",
                "ENVIRONMENTAL_PROTECTION",
                "TRAFFIC_CONTROL",
                "ELECTRICAL_SAFETY",
                "OTHER",
            ),
            nullable=False,
        ),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("responsible_person", sa.String(length=255), nullable=True),
        sa.Column("verification_method", sa.String(length=255), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(length=64), nullable=True),
        sa.Column("completion_notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_work_permit_precautions_permit_id", "work_permit_precautions", ["permit_id"])

    op.create_table(
        "work_permit_attachments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("permit_id", sa.Integer(), sa.ForeignKey("work_permits.id", ondelete="CASCADE"), nullable=False),
        *_file_columns(),
        sa.Column(
            "attachment_type",
            _enum(
                "work_permit_attachment_type_enum",
                "RISK_ASSESSMENT",
                "METHOD_STATEMENT",
                "DRAWING",
                "CERTIFICATE",
                "PHOTO",
                "OTHER",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("uploaded_by", sa.String(length=64), nullable=False),
    )
    op.create_index("ix_work_permit_attachments_permit_id", "work_permit_attachments", ["permit_id"])


def downgrade() -> None:
    op.drop_table("work_permit_attachments")
    op.drop_table("work_permit_precautions")
    op.drop_table("work_permit_hazards")
    op.drop_table("work_permit_approvals")
    op.drop_table("work_permits")
    op.drop_table("inspection_attachments")
    op.drop_table("inspection_findings")
    op.drop_table("inspections")
