from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ...utils.dates import utcnow
from ..events.domain import DomainEvent
from . import models, providers
from .templates import NotificationTemplate, render, templates_for

logger = logging.getLogger(__name__)

# Payload key holding a direct address for audiences that are one person.
_RECIPIENT_KEYS = {
    "participant": "email",
}


def _recipient(template: NotificationTemplate, context: dict) -> Optional[str]:
    key = _RECIPIENT_KEYS.get(template.audience)
    if not key:
        return None
    value = context.get(key)
    return str(value) if value else None


def send_notification(
    db: Session,
    *,
    event: DomainEvent,
    template: NotificationTemplate,
    channel: models.NotificationChannel,
    critical: bool = False,
) -> models.NotificationLog:
    context = {**event.payload, "ref": event.aggregate_ref or "", "event_type": event.event_type}
    log = models.NotificationLog(
        event_id=event.event_id,
        event_type=event.event_type,
        aggregate_ref=event.aggregate_ref,
        template_key=template.key,
        language=template.language,
        channel=channel,
        audience=template.audience,
        recipient=_recipient(template, context),
        subject=render(template.subject, context)[:255],
        body=render(template.body, context),
        status=models.NotificationStatus.QUEUED,
        context_json=context,
        created_at=utcnow(),
    )
    db.add(log)
    db.flush()

    provider, configured = providers.get_notification_provider()
    if not configured:
        log.status = models.NotificationStatus.SKIPPED_NO_PROVIDER
        log.error = "No provider configured"
        return log

    try:
        provider.send(
            channel=channel.value,
            template_key=template.key,
            audience=template.audience,
            recipient=log.recipient,
            subject=log.subject,
            body=log.body,
            context=context,
            correlation_id=event.event_id,
        )
        log.status = models.NotificationStatus.SENT
        log.sent_at = utcnow()
    except Exception as exc:
        log.status = models.NotificationStatus.FAILED
        log.error = str(exc)
        logger.warning(
            "Notification delivery failed",
            extra={"event_id": event.event_id, "template_key": template.key, "channel": channel.value},
        )
        if critical:
            raise
    return log


def handle_domain_event(db: Session, event: DomainEvent) -> List[models.NotificationLog]:
    """
    Outbox subscriber: render and record notifications for `event`.

    (event, channel, audience) combinations that already have a log row are
    skipped, so a redelivered event does not notify twice.
    """
    templates = templates_for(event.event_type)
    if not templates:
        return []

    existing = {
        (row.channel, row.audience)
        for row in db.query(models.NotificationLog).filter(models.NotificationLog.event_id == event.event_id)
    }
    logs: List[models.NotificationLog] = []
    for template in templates:
        for channel in template.channels:
            if (channel, template.audience) in existing:
                continue
            logs.append(send_notification(db, event=event, template=template, channel=channel))
    return logs


def list_notifications(
    db: Session,
    *,
    event_id: Optional[str] = None,
    status: Optional[models.NotificationStatus] = None,
) -> List[models.NotificationLog]:
    query = db.query(models.NotificationLog)
    if event_id:
        query = query.filter(models.NotificationLog.event_id == event_id)
    if status:
        query = query.filter(models.NotificationLog.status == status)
    return query.order_by(models.NotificationLog.id.asc()).all()
