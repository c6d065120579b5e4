from __future__ import annotations

import asyncio
import json
import os
import queue
from datetime import datetime, timedelta
from typing import AsyncGenerator, List, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy import and_, or_
from sqlalchemy.orm import Query as OrmQuery
from sqlalchemy.orm import Session

from ...database import get_read_db, get_write_db
from ...utils.dates import as_utc, utcnow
from ..audit import models as audit_models
from . import dispatcher, models
from .broker import EventEnvelope, broker, format_sse, keepalive_message

router = APIRouter(prefix="/api", tags=["events"])

REPLAY_RETENTION_DAYS = int(os.getenv("EVENT_REPLAY_RETENTION_DAYS", "7"))
REPLAY_MAX_EVENTS = 500
KEEPALIVE_SEC = 15

AuditEvent = audit_models.AuditEvent


class ActivityEventRead(BaseModel):
    id: str
    type: str
    entityType: str
    entityId: str
    entityRef: Optional[str] = None
    action: str
    timestamp: str
    actor: Optional[dict] = None
    metadata: dict = {}


class ActivityHistoryResponse(BaseModel):
    items: List[ActivityEventRead]
    next_cursor: Optional[str] = None


class OutboxRowRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: str
    event_type: str
    aggregate_type: str
    aggregate_id: Optional[int] = None
    aggregate_ref: Optional[str] = None
    status: models.OutboxStatus
    attempt_count: int
    next_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None
    dispatched_at: Optional[datetime] = None
    created_at: datetime


def _encode_cursor(row: AuditEvent) -> str:
    return f"{as_utc(row.occurred_at or row.created_at).isoformat()}|{row.id}"


def _decode_cursor(cursor: str) -> Optional[Tuple[datetime, int]]:
    ts_raw, _, row_id = cursor.partition("|")
    if not ts_raw or not row_id.isdigit():
        return None
    try:
        return datetime.fromisoformat(ts_raw), int(row_id)
    except ValueError:
        return None


def _newer_than(query: OrmQuery, occurred_at: datetime, row_id: int) -> OrmQuery:
    return query.filter(
        or_(
            AuditEvent.occurred_at > occurred_at,
            and_(AuditEvent.occurred_at == occurred_at, AuditEvent.id > row_id),
        )
    )


def _older_than(query: OrmQuery, occurred_at: datetime, row_id: int) -> OrmQuery:
    return query.filter(
        or_(
            AuditEvent.occurred_at < occurred_at,
            and_(AuditEvent.occurred_at == occurred_at, AuditEvent.id < row_id),
        )
    )


def _replay_events_since(
    db: Session,
    *,
    last_event_id: str,
    entity_type: Optional[str] = None,
) -> Tuple[List[EventEnvelope], bool]:
    """
    Events stored after `last_event_id`, oldest first. The flag asks the
    client to reset: the anchor is older than the retention window, or it is
    neither stored nor in the broker's in-memory history.
    """
    anchor = db.query(AuditEvent).filter(AuditEvent.event_id == last_event_id).first()
    if anchor is None:
        return broker.replay_since(last_event_id=last_event_id, entity_type=entity_type)

    if as_utc(anchor.occurred_at or anchor.created_at) < utcnow() - timedelta(days=REPLAY_RETENTION_DAYS):
        return [], True

    query = _newer_than(db.query(AuditEvent), anchor.occurred_at, anchor.id)
    if entity_type:
        query = query.filter(AuditEvent.entity_type == entity_type)
    rows = query.order_by(AuditEvent.occurred_at.asc(), AuditEvent.id.asc()).limit(REPLAY_MAX_EVENTS).all()
    return [EventEnvelope.from_audit_event(row) for row in rows], False


async def _event_generator(
    request: Request,
    db: Session,
    entity_type: Optional[str],
) -> AsyncGenerator[str, None]:
    q = broker.subscribe(entity_type)
    try:
        last_event_id = request.headers.get("last-event-id") or request.query_params.get("lastEventId")
        if last_event_id:
            replay, requires_reset = _replay_events_since(db, last_event_id=last_event_id, entity_type=entity_type)
            if requires_reset:
                reset = {"type": "reset", "reason": "last_event_id_out_of_window", "lastEventId": last_event_id}
                yield format_sse(json.dumps(reset), event="reset")
            for event in replay:
                yield format_sse(event.to_json(), event=event.type, event_id=event.id)
        while not await request.is_disconnected():
            try:
                event = await asyncio.to_thread(q.get, True, KEEPALIVE_SEC)
            except queue.Empty:
                yield keepalive_message()
                continue
            yield format_sse(event.to_json(), event=event.type, event_id=event.id)
    finally:
        broker.unsubscribe(q)


@router.get("/events")
async def stream_events(
    request: Request,
    entityType: Optional[str] = None,
    db: Session = Depends(get_read_db),
) -> StreamingResponse:
    return StreamingResponse(
        _event_generator(request, db, entityType),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/events/history", response_model=ActivityHistoryResponse)
def list_event_history(
    cursor: Optional[str] = Query(default=None, description="Opaque cursor as '<iso_ts>|<id>'"),
    limit: int = Query(default=100, ge=1, le=500),
    entityType: Optional[str] = None,
    entityId: Optional[str] = None,
    timeStart: Optional[datetime] = None,
    timeEnd: Optional[datetime] = None,
    db: Session = Depends(get_read_db),
) -> ActivityHistoryResponse:
    query = db.query(AuditEvent)
    if entityType:
        query = query.filter(AuditEvent.entity_type == entityType)
    if entityId:
        query = query.filter(AuditEvent.entity_id == entityId)
    if timeStart:
        query = query.filter(AuditEvent.occurred_at >= timeStart)
    if timeEnd:
        query = query.filter(AuditEvent.occurred_at <= timeEnd)
    position = _decode_cursor(cursor) if cursor else None
    if position:
        query = _older_than(query, *position)

    rows = query.order_by(AuditEvent.occurred_at.desc(), AuditEvent.id.desc()).limit(limit + 1).all()
    page = rows[:limit]
    return ActivityHistoryResponse(
        items=[ActivityEventRead(**EventEnvelope.from_audit_event(row).as_dict()) for row in page],
        next_cursor=_encode_cursor(page[-1]) if len(rows) > limit else None,
    )


@router.get("/events/outbox", response_model=List[OutboxRowRead])
def list_outbox(
    status: Optional[models.OutboxStatus] = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_read_db),
):
    query = db.query(models.DomainEventOutbox)
    if status:
        query = query.filter(models.DomainEventOutbox.status == status)
    return query.order_by(models.DomainEventOutbox.id.desc()).limit(limit).all()


@router.post("/events/outbox/{event_id}/requeue", response_model=OutboxRowRead)
def requeue_outbox_event(event_id: str, db: Session = Depends(get_write_db)):
    return dispatcher.requeue(db, event_id)
