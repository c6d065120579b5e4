from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ...utils.dates import utcnow
from ..events.broker import EventEnvelope, publish_after_commit
from ..events.domain import DomainEvent
from . import models, schemas

logger = logging.getLogger(__name__)


def create_audit_event(db: Session, *, data: schemas.AuditEventCreate) -> models.AuditEvent:
    event = models.AuditEvent(
        entity_type=data.entity_type,
        entity_id=data.entity_id,
        entity_ref=data.entity_ref,
        action=data.action,
        actor_user_id=data.actor_user_id,
        before=data.before,
        after=data.after,
        correlation_id=data.correlation_id,
        metadata_json=data.metadata,
        occurred_at=data.occurred_at or utcnow(),
        created_at=utcnow(),
    )
    if data.event_id:
        event.event_id = data.event_id
    db.add(event)
    db.flush()
    return event


def record_domain_event(db: Session, event: DomainEvent) -> Optional[models.AuditEvent]:
    """
    Outbox subscriber: one audit row per domain event id.

    A redelivered event finds its row already present and is skipped. The SSE
    envelope is only handed to the broker when the caller commits, so a
    delivery that rolls back never reaches browser clients.
    """
    existing = db.query(models.AuditEvent).filter(models.AuditEvent.event_id == event.event_id).first()
    if existing is not None:
        logger.debug("Audit row already present", extra={"event_id": event.event_id})
        return None

    row = create_audit_event(
        db,
        data=schemas.AuditEventCreate(
            event_id=event.event_id,
            entity_type=event.aggregate_type,
            entity_id=str(event.aggregate_id) if event.aggregate_id is not None else "",
            entity_ref=event.aggregate_ref,
            action=event.action,
            actor_user_id=event.actor_id,
            occurred_at=event.occurred_at,
            after=event.payload,
            metadata={"eventType": event.event_type},
        ),
    )
    publish_after_commit(db, EventEnvelope.from_audit_event(row))
    return row


def log_event(
    db: Session,
    *,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    action: str,
    entity_ref: Optional[str] = None,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    correlation_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    critical: bool = False,
) -> Optional[models.AuditEvent]:
    """
    Best-effort audit event logger for actions that are not domain events.
    - For critical actions, raise on failure.
    - For non-critical actions, log warning and continue.
    """
    try:
        event = create_audit_event(
            db,
            data=schemas.AuditEventCreate(
                entity_type=entity_type,
                entity_id=entity_id,
                entity_ref=entity_ref,
                action=action,
                actor_user_id=actor_user_id,
                before=before,
                after=after,
                correlation_id=correlation_id,
                metadata=metadata,
            ),
        )
        publish_after_commit(db, EventEnvelope.from_audit_event(event))
        return event
    except Exception:
        logger.warning(
            "Failed to log audit event",
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "critical": critical,
            },
        )
        if critical:
            raise
        return None


def list_audit_events(
    db: Session,
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Sequence[models.AuditEvent]:
    query = db.query(models.AuditEvent)
    if entity_type:
        query = query.filter(models.AuditEvent.entity_type == entity_type)
    if entity_id:
        query = query.filter(models.AuditEvent.entity_id == entity_id)
    if action:
        query = query.filter(models.AuditEvent.action == action)
    if start:
        query = query.filter(models.AuditEvent.occurred_at >= start)
    if end:
        query = query.filter(models.AuditEvent.occurred_at <= end)
    return query.order_by(models.AuditEvent.occurred_at.desc(), models.AuditEvent.id.desc()).all()
