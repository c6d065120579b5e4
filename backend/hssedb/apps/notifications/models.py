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
    UniqueConstraint,
)

from ...database import Base
from ...utils.dates import utcnow


class NotificationStatus(str, enum.Enum):
    QUEUED = "QUEUED"
    SENT = "SENT"
    FAILED = "FAILED"
    SKIPPED_NO_PROVIDER = "SKIPPED_NO_PROVIDER"


class NotificationChannel(str, enum.Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    WHATSAPP = "WHATSAPP"
    PUSH = "PUSH"


class NotificationLog(Base):
    """One rendered notification per (domain event, channel, audience)."""

    __tablename__ = "notification_logs"
    __table_args__ = (
        UniqueConstraint("event_id", "channel", "audience", name="uq_notification_logs_event_channel_audience"),
        Index("ix_notification_logs_status_created", "status", "created_at"),
        Index("ix_notification_logs_template", "template_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), nullable=False, index=True)
    event_type = Column(String(128), nullable=False, index=True)
    aggregate_ref = Column(String(64), nullable=True)
    template_key = Column(String(128), nullable=False)
    language = Column(String(8), nullable=False)
    channel = Column(
        SAEnum(NotificationChannel, name="notification_channel_enum", native_enum=False),
        nullable=False,
    )
    audience = Column(String(64), nullable=False)
    recipient = Column(String(255), nullable=True)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    status = Column(
        SAEnum(NotificationStatus, name="notification_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    error = Column(Text, nullable=True)
    context_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<NotificationLog id={self.id} template={self.template_key} channel={self.channel} status={self.status}>"
