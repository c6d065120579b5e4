"""add security incidents and their responses, people, attachments and controls

Revision ID: c3e5a7b9d1f2
Revises: b2d4f6a8c0e1
Create Date: 2026-09-29 10:15:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "c3e5a7b9d1f2"
down_revision = "b2d4f6a8c0e1"
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def _incident_fk() -> sa.Column:
    return sa.Column(
        "incident_id",
        sa.Integer(),
        sa.ForeignKey("security_incidents.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "security_incidents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("incident_number", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "incident_type",
            _enum(
                "security_incident_type_enum",
                "PHYSICAL_SECURITY",
                "CYBERSECURITY",
                "PERSONNEL_SECURITY",
                "INFORMATION_SECURITY",
            ),
            nullable=False,
        ),
        sa.Column(
            "category",
            _enum(
                "security_incident_category_enum",
                "UNAUTHORIZED_ACCESS",
                "THEFT",
                "VANDALISM",
                "MALWARE",
                "PHISHING",
                "DATA_BREACH",
                "SOCIAL_ENGINEERING",
                "INSIDER_THREAT",
                "OTHER",
            ),
            nullable=False,
        ),
        sa.Column("severity", _enum("security_severity_enum", "LOW", "MEDIUM", "HIGH", "CRITICAL"), nullable=False),
        sa.Column(
            "status",
            _enum(
                "security_incident_status_enum",
                "OPEN",
                "ASSIGNED",
                "INVESTIGATING",
                "CONTAINED",
                "ERADICATING",
                "RECOVERING",
                "RESOLVED",
                "CLOSED",
            ),
            nullable=False,
        ),
        sa.Column(
            "threat_level",
            _enum("security_threat_level_enum", "MINIMAL", "LOW", "MEDIUM", "HIGH", "SEVERE"),
            nullable=False,
        ),
        sa.Column(
            "impact",
            _enum("security_impact_enum", "NONE", "MINOR", "MODERATE", "MAJOR", "SEVERE"),
            nullable=False,
        ),
        sa.Column("incident_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("detection_datetime", sa.DateTime(timezone=True), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("reporter_id", sa.String(length=64), nullable=False),
        sa.Column("reporter_name", sa.String(length=255), nullable=True),
        sa.Column("assigned_to_id", sa.String(length=64), nullable=True),
        sa.Column("assigned_to_name", sa.String(length=255), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("investigator_id", sa.String(length=64), nullable=True),
        sa.Column("investigator_name", sa.String(length=255), nullable=True),
        sa.Column("investigation_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "threat_actor_type",
            _enum("security_threat_actor_type_enum", "EXTERNAL", "INTERNAL", "PARTNER", "UNKNOWN"),
            nullable=True,
        ),
        sa.Column("threat_actor_description", sa.Text(), nullable=True),
        sa.Column("is_internal_threat", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("affected_persons_count", sa.Integer(), nullable=True),
        sa.Column("estimated_loss", sa.Float(), nullable=True),
        sa.Column("data_breach_occurred", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("containment_actions", sa.Text(), nullable=True),
        sa.Column("containment_datetime", sa.DateTime(timezone=True), nullable=True),
        sa.Column("eradication_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recovery_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("root_cause", sa.Text(), nullable=True),
        sa.Column("resolution_datetime", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(length=64), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
    )
    op.create_index("ix_security_incidents_incident_number", "security_incidents", ["incident_number"], unique=True)
    op.create_index("ix_security_incidents_status", "security_incidents", ["status"])
    op.create_index("ix_security_incidents_status_severity", "security_incidents", ["status", "severity"])
    op.create_index("ix_security_incidents_incident_datetime", "security_incidents", ["incident_datetime"])

    op.create_table(
        "security_incident_responses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _incident_fk(),
        sa.Column(
            "response_type",
            _enum(
                "security_response_type_enum",
                "INITIAL_RESPONSE",
                "CONTAINMENT",
                "ERADICATION",
                "RECOVERY",
                "COMMUNICATION",
                "LESSONS_LEARNED",
            ),
            nullable=False,
        ),
        sa.Column("action_taken", sa.Text(), nullable=False),
        sa.Column("action_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responder_id", sa.String(length=64), nullable=False),
        sa.Column("responder_name", sa.String(length=255), nullable=True),
        sa.Column("was_successful", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("follow_up_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("follow_up_details", sa.Text(), nullable=True),
        sa.Column("cost", sa.Float(), nullable=True),
        sa.Column("effort_hours", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_security_incident_responses_incident_id", "security_incident_responses", ["incident_id"])

    op.create_table(
        "security_incident_involved_persons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _incident_fk(),
        sa.Column("person_id", sa.String(length=64), nullable=False),
        sa.Column("person_name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=128), nullable=True),
        sa.Column("is_witness", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_victim", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_suspect", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("contact_info", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("added_by", sa.String(length=64), nullable=False),
        sa.UniqueConstraint("incident_id", "person_id", name="uq_security_incident_involved_person"),
    )
    op.create_index(
        "ix_security_incident_involved_persons_incident_id",
        "security_incident_involved_persons",
        ["incident_id"],
    )

    op.create_table(
        "security_incident_attachments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _incident_fk(),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.String(length=512), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("content_type", sa.String(length=128), nullable=False),
        sa.Column(
            "attachment_type",
            _enum(
                "security_attachment_type_enum",
                "EVIDENCE",
                "CCTV_FOOTAGE",
                "SCREENSHOT",
                "LOG_FILE",
                "REPORT",
                "PHOTO",
                "OTHER",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_confidential", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("content_hash", sa.String(length=128), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("uploaded_by", sa.String(length=64), nullable=False),
    )
    op.create_index("ix_security_incident_attachments_incident_id", "security_incident_attachments", ["incident_id"])

    op.create_table(
        "security_controls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _incident_fk(),
        sa.Column("control_name", sa.String(length=255), nullable=False),
        sa.Column("control_description", sa.Text(), nullable=False),
        sa.Column(
            "control_type",
            _enum("security_control_type_enum", "PREVENTIVE", "DETECTIVE", "CORRECTIVE", "COMPENSATING"),
            nullable=False,
        ),
        sa.Column(
            "category",
            _enum("security_control_category_enum", "TECHNICAL", "ADMINISTRATIVE", "PHYSICAL"),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("security_control_status_enum", "PLANNED", "IMPLEMENTING", "ACTIVE", "RETIRED"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("implemented_by", sa.String(length=64), nullable=True),
        sa.Column("implementation_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("implementation_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("effectiveness_score", sa.Integer(), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retirement_reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_security_controls_incident_id", "security_controls", ["incident_id"])
    op.create_index("ix_security_controls_status", "security_controls", ["status"])


def downgrade() -> None:
    op.drop_table("security_controls")
    op.drop_table("security_incident_attachments")
    op.drop_table("security_incident_involved_persons")
    op.drop_table("security_incident_responses")
    op.drop_table("security_incidents")
