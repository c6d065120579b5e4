"""add training, participants, attachments and certifications

Revision ID: b2d4f6a8c0e1
Revises: a1c0e7d2b3f4
Create Date: 2026-09-28 09:30:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "b2d4f6a8c0e1"
down_revision = "a1c0e7d2b3f4"
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


def upgrade() -> None:
    op.create_table(
        "trainings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("training_code", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "training_type",
            _enum(
                "training_type_enum",
                "SAFETY_ORIENTATION",
                "HSE_TRAINING",
                "PERMIT_TO_WORK",
                "CONFINED_SPACE_ENTRY",
                "HOT_WORK_SAFETY",
                "ELECTRICAL_SAFETY",
                "FIRE_SAFETY",
                "EMERGENCY_RESPONSE",
                "FIRST_AID",
                "SECURITY_AWARENESS",
                "TECHNICAL_SKILLS",
                "LEADERSHIP_DEVELOPMENT",
                "OTHER",
            ),
            nullable=False,
        ),
        sa.Column(
            "category",
            _enum(
                "training_category_enum",
                "MANDATORY_COMPLIANCE",
                "SAFETY_TRAINING",
                "INDUCTION_TRAINING",
                "REFRESHER_TRAINING",
                "SKILL_DEVELOPMENT",
                "OTHER",
            ),
            nullable=False,
        ),
        sa.Column(
            "priority",
            _enum("training_priority_enum", "LOW", "MEDIUM", "HIGH", "CRITICAL", "MANDATORY"),
            nullable=False,
        ),
        sa.Column(
            "delivery_method",
            _enum("training_delivery_method_enum", "CLASSROOM", "ONLINE", "ON_THE_JOB", "BLENDED", "OTHER"),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("training_status_enum", "DRAFT", "SCHEDULED", "IN_PROGRESS", "COMPLETED", "CANCELLED"),
            nullable=False,
        ),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("venue", sa.String(length=255), nullable=True),
        sa.Column("instructor_name", sa.String(length=255), nullable=True),
        sa.Column("max_participants", sa.Integer(), nullable=False),
        sa.Column("min_participants", sa.Integer(), nullable=False),
        sa.Column("passing_score", sa.Float(), nullable=False),
        sa.Column("issues_certificate", sa.Boolean(), nullable=False),
        sa.Column("certificate_validity_months", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("completion_summary", sa.Text(), nullable=True),
        sa.Column("effectiveness_score", sa.Float(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_trainings_training_code", "trainings", ["training_code"], unique=True)
    op.create_index("ix_trainings_status", "trainings", ["status"])
    op.create_index("ix_trainings_status_scheduled", "trainings", ["status", "scheduled_date"])

    op.create_table(
        "training_participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("training_id", sa.Integer(), sa.ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("user_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=128), nullable=True),
        sa.Column("position", sa.String(length=128), nullable=True),
        sa.Column(
            "status",
            _enum(
                "training_participant_status_enum",
                "ENROLLED",
                "WAITLISTED",
                "ATTENDED",
                "ABSENT",
                "IN_PROGRESS",
                "COMPLETED",
                "FAILED",
                "CANCELLED",
            ),
            nullable=False,
        ),
        sa.Column("is_waitlisted", sa.Boolean(), nullable=False),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("enrolled_by", sa.String(length=64), nullable=False),
        sa.Column("is_present", sa.Boolean(), nullable=True),
        sa.Column("attendance_marked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("attendance_marked_by", sa.String(length=64), nullable=True),
        sa.Column("attendance_notes", sa.Text(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("passed", sa.Boolean(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("assessed_by", sa.String(length=64), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retake_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.UniqueConstraint("training_id", "user_id", name="uq_training_participants_training_user"),
    )
    op.create_index("ix_training_participants_training_id", "training_participants", ["training_id"])
    op.create_index("ix_training_participants_user_id", "training_participants", ["user_id"])
    op.create_index("ix_training_participants_status", "training_participants", ["status"])

    op.create_table(
        "training_attachments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("training_id", sa.Integer(), sa.ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.String(length=512), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("content_type", sa.String(length=128), nullable=False),
        sa.Column(
            "attachment_type",
            _enum(
                "training_attachment_type_enum",
                "COURSE_MATERIAL",
                "ATTENDANCE_SHEET",
                "ASSESSMENT",
                "CERTIFICATE_TEMPLATE",
                "PHOTO",
                "OTHER",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("uploaded_by", sa.String(length=64), nullable=False),
    )
    op.create_index("ix_training_attachments_training_id", "training_attachments", ["training_id"])

    op.create_table(
        "certifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("certificate_number", sa.String(length=40), nullable=False),
        sa.Column("training_id", sa.Integer(), sa.ForeignKey("trainings.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "participant_id",
            sa.Integer(),
            sa.ForeignKey("training_participants.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("holder_name", sa.String(length=255), nullable=True),
        sa.Column(
            "certification_type",
            _enum("certification_type_enum", "COMPLETION", "COMPETENCY", "COMPLIANCE", "PROFESSIONAL"),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("certification_status_enum", "VALID", "SUSPENDED", "REVOKED", "EXPIRED"),
            nullable=False,
        ),
        sa.Column("competency_achieved", sa.Text(), nullable=False),
        sa.Column("final_score", sa.Float(), nullable=True),
        sa.Column("issued_by", sa.String(length=64), nullable=False),
        sa.Column("issued_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("validity_months", sa.Integer(), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("renewal_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("renewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("renewed_by", sa.String(length=64), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_by", sa.String(length=64), nullable=True),
        sa.Column("revocation_reason", sa.Text(), nullable=True),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspended_by", sa.String(length=64), nullable=True),
        sa.Column("suspension_reason", sa.Text(), nullable=True),
        sa.Column("suspension_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reinstated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reinstated_by", sa.String(length=64), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_certifications_certificate_number", "certifications", ["certificate_number"], unique=True)
    op.create_index("ix_certifications_training_id", "certifications", ["training_id"])
    op.create_index("ix_certifications_participant_id", "certifications", ["participant_id"])
    op.create_index("ix_certifications_status", "certifications", ["status"])
    op.create_index("ix_certifications_status_expiry", "certifications", ["status", "expiry_date"])
    op.create_index("ix_certifications_training_participant", "certifications", ["training_id", "participant_id"])


def downgrade() -> None:
    op.drop_table("certifications")
    op.drop_table("training_attachments")
    op.drop_table("training_participants")
    op.drop_table("trainings")
