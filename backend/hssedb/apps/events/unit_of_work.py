from __future__ import annotations

import logging
from typing import Callable, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...utils.dates import as_utc, utcnow
from ..workflow.errors import AggregateNotFoundError, ConcurrencyConflictError
from . import models
from .domain import DomainEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

Dispatch = Callable[[Session, List[DomainEvent]], None]


def load_aggregate(
    db: Session,
    model: Type[T],
    aggregate_id: int,
    *,
    expected_version: Optional[int] = None,
) -> T:
    """
    Load an aggregate root with its owned collections.

    `expected_version` is the version the caller last read; a mismatch means
    someone else has written since, and the command is refused up front.
    """
    aggregate = db.get(model, aggregate_id)
    if aggregate is None:
        raise AggregateNotFoundError(
            f"{model.__name__} {aggregate_id} not found",
            field="id",
        )
    if expected_version is not None and aggregate.version_id != expected_version:
        raise ConcurrencyConflictError(
            f"{model.__name__} {aggregate_id} was modified by another request "
            f"(expected version {expected_version}, found {aggregate.version_id})",
            field="version",
        )
    return aggregate


def _outbox_row(event: DomainEvent) -> models.DomainEventOutbox:
    return models.DomainEventOutbox(
        event_id=event.event_id,
        event_type=event.event_type,
        aggregate_type=event.aggregate_type,
        aggregate_id=event.aggregate_id,
        aggregate_ref=event.aggregate_ref,
        actor_id=event.actor_id,
        occurred_at=as_utc(event.occurred_at),
        payload_json=event.payload,
        status=models.OutboxStatus.PENDING,
        attempt_count=0,
        next_attempt_at=utcnow(),
        created_at=utcnow(),
    )


def collect_events(*aggregates) -> List[DomainEvent]:
    """Pending events of every aggregate, with ids assigned at flush stamped on."""
    events: List[DomainEvent] = []
    for aggregate in aggregates:
        for event in aggregate.pending_events:
            events.append(event.with_aggregate_id(aggregate.id))
    return events


def commit(db: Session, *aggregates, dispatch: Optional[Dispatch] = None) -> List[DomainEvent]:
    """
    Persist aggregates and their pending events in one transaction.

    Events land in the outbox before commit; the aggregates' buffers are only
    cleared after the commit succeeds. `dispatch` (normally
    `dispatcher.dispatch_committed`) runs after commit and must not raise into
    the caller: the outbox row is the durable record either way.
    """
    for aggregate in aggregates:
        db.add(aggregate)
    try:
        db.flush()
        events = collect_events(*aggregates)
        for event in events:
            db.add(_outbox_row(event))
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.info("Concurrent write rejected", extra={"error": str(exc)})
        raise ConcurrencyConflictError(
            "The record was modified by another request; reload and retry",
            field="version",
        ) from exc
    except Exception:
        db.rollback()
        raise

    for aggregate in aggregates:
        aggregate.clear_events()

    logger.debug(
        "Committed unit of work",
        extra={"event_count": len(events), "event_types": [event.event_type for event in events]},
    )
    if dispatch is not None and events:
        try:
            dispatch(db, events)
        except Exception:
            logger.exception("Post-commit dispatch failed; events remain in the outbox")
    return events


def run_command(
    db: Session,
    model: Type[T],
    aggregate_id: int,
    command: Callable[[T], object],
    *,
    expected_version: Optional[int] = None,
    dispatch: Optional[Dispatch] = None,
) -> T:
    """Load, apply `command`, commit. Domain errors propagate before any write."""
    aggregate = load_aggregate(db, model, aggregate_id, expected_version=expected_version)
    command(aggregate)
    commit(db, aggregate, dispatch=dispatch)
    return aggregate
