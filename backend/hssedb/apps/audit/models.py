from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, desc
from sqlalchemy.orm import synonym

from ...database import Base
from ...utils.dates import utcnow
from ...utils.identifiers import generate_uuid7


class AuditEvent(Base):
    """
    Append-only audit trail of domain events and manual audit entries.

    `event_id` is the domain event id; the unique constraint on it makes
    redelivery of the same event a no-op.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_entity", "entity_type", "entity_id"),
        Index("ix_audit_events_entity_action", "entity_type", "action"),
        Index("ix_audit_events_time_desc", desc("occurred_at")),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), nullable=False, unique=True, index=True, default=generate_uuid7)
    entity_type = Column(String(64), nullable=False, index=True)
    entity_id = Column(String(64), nullable=False, index=True)
    entity_ref = Column(String(64), nullable=True, index=True)
    action = Column(String(64), nullable=False, index=True)
    actor_user_id = Column(String(64), nullable=True, index=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    correlation_id = Column(String(64), nullable=True, index=True)
    metadata_json = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    before_json = synonym("before")
    after_json = synonym("after")

    def __repr__(self) -> str:
        return f"<AuditEvent id={self.id} entity={self.entity_type}:{self.entity_id} action={self.action}>"
