from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    JSON,
    String,
    Text,
)

from ...database import Base
from ...utils.dates import utcnow


class OutboxStatus(str, enum.Enum):
    PENDING = "PENDING"
    DISPATCHED = "DISPATCHED"
    FAILED = "FAILED"
    DEAD_LETTER = "DEAD_LETTER"


class DomainEventOutbox(Base):
    """
    Domain events written in the same transaction as the aggregate change.

    `id` is the delivery sequence: rows are dispatched in ascending id, so
    events of one aggregate reach subscribers in the order they were raised.
    """

    __tablename__ = "domain_event_outbox"
    __table_args__ = (
        Index("ix_domain_event_outbox_status_next", "status", "next_attempt_at"),
        Index("ix_domain_event_outbox_aggregate", "aggregate_type", "aggregate_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), nullable=False, unique=True, index=True)
    event_type = Column(String(128), nullable=False, index=True)
    aggregate_type = Column(String(64), nullable=False)
    aggregate_id = Column(Integer, nullable=True)
    aggregate_ref = Column(String(64), nullable=True)
    actor_id = Column(String(64), nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    payload_json = Column(JSON, nullable=False, default=dict)

    status = Column(
        SAEnum(OutboxStatus, name="domain_event_outbox_status", native_enum=False),
        nullable=False,
        default=OutboxStatus.PENDING,
        index=True,
    )
    attempt_count = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def aggregate_key(self) -> tuple:
        return (self.aggregate_type, self.aggregate_id)

    def __repr__(self) -> str:
        return f"<DomainEventOutbox id={self.id} type={self.event_type} status={self.status}>"
