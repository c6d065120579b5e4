from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from ...database import WriteSessionLocal
from ...utils.dates import as_utc, utcnow
from ..workflow.errors import AggregateNotFoundError, InvalidOperationError
from . import models
from .domain import DomainEvent

logger = logging.getLogger(__name__)

BATCH_SIZE = int(os.getenv("EVENT_DISPATCH_BATCH_SIZE", "100"))
MAX_ATTEMPTS = int(os.getenv("EVENT_DISPATCH_MAX_ATTEMPTS", "5"))
BASE_BACKOFF_SEC = int(os.getenv("EVENT_DISPATCH_BACKOFF_SECONDS", "5"))
INTERVAL_SEC = int(os.getenv("EVENT_DISPATCH_INTERVAL_SECONDS", "5"))

Subscriber = Callable[[Session, DomainEvent], None]

_UNDELIVERED = (models.OutboxStatus.PENDING, models.OutboxStatus.FAILED)


def default_subscribers() -> List[Subscriber]:
    from ..audit.services import record_domain_event
    from ..notifications.service import handle_domain_event

    return [record_domain_event, handle_domain_event]


def compute_next_attempt(now: datetime, attempt: int) -> datetime:
    backoff = BASE_BACKOFF_SEC * (2 ** max(attempt - 1, 0))
    return now + timedelta(seconds=backoff)


def row_to_event(row: models.DomainEventOutbox) -> DomainEvent:
    return DomainEvent(
        event_type=row.event_type,
        aggregate_type=row.aggregate_type,
        aggregate_id=row.aggregate_id,
        aggregate_ref=row.aggregate_ref,
        actor_id=row.actor_id,
        payload=dict(row.payload_json or {}),
        occurred_at=as_utc(row.occurred_at),
        event_id=row.event_id,
    )


def _has_earlier_undelivered(db: Session, row: models.DomainEventOutbox) -> bool:
    if row.aggregate_id is None:
        return False
    earlier = (
        db.query(models.DomainEventOutbox.id)
        .filter(
            models.DomainEventOutbox.aggregate_type == row.aggregate_type,
            models.DomainEventOutbox.aggregate_id == row.aggregate_id,
            models.DomainEventOutbox.id < row.id,
            models.DomainEventOutbox.status.in_(_UNDELIVERED),
        )
        .first()
    )
    return earlier is not None


def _record_failure(db: Session, row_id: int, error: str, now: datetime) -> models.DomainEventOutbox:
    row = db.get(models.DomainEventOutbox, row_id)
    attempt = row.attempt_count + 1
    row.attempt_count = attempt
    row.last_error = error[:500]
    if attempt >= MAX_ATTEMPTS:
        row.status = models.OutboxStatus.DEAD_LETTER
        row.next_attempt_at = None
    else:
        row.status = models.OutboxStatus.FAILED
        row.next_attempt_at = compute_next_attempt(now, attempt)
    db.commit()
    return row


def dispatch_pending(
    db: Session,
    *,
    now: Optional[datetime] = None,
    limit: int = BATCH_SIZE,
    subscribers: Optional[Sequence[Subscriber]] = None,
    event_ids: Optional[Iterable[str]] = None,
) -> int:
    """
    Deliver due outbox rows to every subscriber, oldest first.

    Each row is committed on its own. When a subscriber raises, the row is
    marked FAILED (or DEAD_LETTER after MAX_ATTEMPTS) and later rows of the
    same aggregate are held back until it goes through.
    """
    now = as_utc(now) if now else utcnow()
    handlers = list(subscribers) if subscribers is not None else default_subscribers()

    query = db.query(models.DomainEventOutbox).filter(
        models.DomainEventOutbox.status.in_(_UNDELIVERED),
        models.DomainEventOutbox.next_attempt_at <= now,
    )
    if event_ids is not None:
        query = query.filter(models.DomainEventOutbox.event_id.in_(list(event_ids)))
    if db.get_bind().dialect.name != "sqlite":
        query = query.with_for_update(skip_locked=True)
    rows = query.order_by(models.DomainEventOutbox.id.asc()).limit(limit).all()
    if not rows:
        return 0

    blocked: Set[Tuple[str, Optional[int]]] = set()
    delivered = 0
    for row in rows:
        key = row.aggregate_key
        if key in blocked or _has_earlier_undelivered(db, row):
            blocked.add(key)
            continue

        row_id = row.id
        event = row_to_event(row)
        try:
            for handler in handlers:
                handler(db, event)
            row.status = models.OutboxStatus.DISPATCHED
            row.attempt_count = row.attempt_count + 1
            row.dispatched_at = now
            row.next_attempt_at = None
            row.last_error = None
            db.commit()
            delivered += 1
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            failed = _record_failure(db, row_id, f"{type(exc).__name__}: {exc}", now)
            blocked.add(key)
            logger.warning(
                "Domain event delivery failed",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type,
                    "aggregate_ref": event.aggregate_ref,
                    "attempt": failed.attempt_count,
                    "status": failed.status.value,
                },
            )
    return delivered


def dispatch_committed(db: Session, events: Sequence[DomainEvent]) -> int:
    """Immediate delivery of the events a unit of work has just committed."""
    return dispatch_pending(db, event_ids=[event.event_id for event in events], limit=max(len(events), 1))


def requeue(db: Session, event_id: str, *, now: Optional[datetime] = None) -> models.DomainEventOutbox:
    """Give a FAILED or DEAD_LETTER row a fresh set of attempts, due immediately."""
    row = db.query(models.DomainEventOutbox).filter(models.DomainEventOutbox.event_id == event_id).first()
    if row is None:
        raise AggregateNotFoundError(f"Outbox event {event_id} not found", field="event_id")
    if row.status not in (models.OutboxStatus.FAILED, models.OutboxStatus.DEAD_LETTER):
        raise InvalidOperationError(
            "Only failed or dead-lettered events can be re-queued",
            field="status",
        )
    previous = row.status
    row.status = models.OutboxStatus.PENDING
    row.attempt_count = 0
    row.next_attempt_at = as_utc(now) if now else utcnow()
    db.commit()
    logger.info(
        "Outbox event re-queued",
        extra={"event_id": event_id, "event_type": row.event_type, "previous_status": previous.value},
    )
    return row


def run_dispatch_loop(*, once: bool = False) -> None:
    while True:
        db = WriteSessionLocal()
        try:
            dispatched = dispatch_pending(db)
        except Exception:
            logger.exception("Outbox dispatch pass failed")
            db.rollback()
            dispatched = 0
        finally:
            db.close()
        if once:
            return
        time.sleep(INTERVAL_SEC if dispatched == 0 else 0)


if __name__ == "__main__":
    run_dispatch_loop()
