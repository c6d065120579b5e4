"""add training requirements, threat indicators and the incident link table

Revision ID: e5a7c9d1f3b4
Revises: d4f6b8c0e2a3
Create Date: 2026-10-19 09:15:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "e5a7c9d1f3b4"
down_revision = "d4f6b8c0e2a3"
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
        "training_requirements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("training_id", sa.Integer(), sa.ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "status",
            _enum(
                "training_requirement_status_enum",
                "PENDING",
                "IN_PROGRESS",
                "COMPLETED",
                "VERIFIED",
                "OVERDUE",
                "WAIVED",
                "NOT_APPLICABLE",
            ),
            nullable=False,
        ),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column(
            "risk_level_if_not_completed",
            _enum("training_requirement_risk_enum", "LOW", "MEDIUM", "HIGH", "CRITICAL"),
            nullable=False,
        ),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_overdue", sa.Boolean(), nullable=False),
        sa.Column("assigned_to", sa.String(length=255), nullable=True),
        sa.Column("assigned_by", sa.String(length=64), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(length=64), nullable=True),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        sa.Column("evidence_provided", sa.Text(), nullable=True),
        sa.Column("attachment_path", sa.String(length=512), nullable=True),
        sa.Column("verification_method", sa.String(length=255), nullable=True),
        sa.Column("requires_verification", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("verified_by", sa.String(length=64), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("compliance_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
    )
    op.create_index("ix_training_requirements_training_id", "training_requirements", ["training_id"])
    op.create_index("ix_training_requirements_status", "training_requirements", ["status"])

    op.create_table(
        "threat_indicators",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("indicator_number", sa.String(length=40), nullable=False),
        sa.Column("indicator_type", sa.String(length=32), nullable=False),
        sa.Column("indicator_value", sa.String(length=512), nullable=False),
        sa.Column("threat_type", sa.String(length=128), nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=255), nullable=False),
        sa.Column("status", _enum("threat_indicator_status_enum", "ACTIVE", "INACTIVE"), nullable=False),
        sa.Column("first_seen", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint("indicator_type", "indicator_value", name="uq_threat_indicators_type_value"),
    )
    op.create_index("ix_threat_indicators_indicator_number", "threat_indicators", ["indicator_number"], unique=True)
    op.create_index("ix_threat_indicators_indicator_type", "threat_indicators", ["indicator_type"])
    op.create_index("ix_threat_indicators_status", "threat_indicators", ["status"])

    op.create_table(
        "security_incident_threat_indicators",
        sa.Column(
            "incident_id",
            sa.Integer(),
            sa.ForeignKey("security_incidents.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "indicator_id",
            sa.Integer(),
            sa.ForeignKey("threat_indicators.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )


def downgrade() -> None:
    op.drop_table("security_incident_threat_indicators")
    op.drop_table("threat_indicators")
    op.drop_table("training_requirements")
