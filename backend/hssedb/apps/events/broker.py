from __future__ import annotations

import dataclasses
import json
import logging
import os
import queue
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Tuple

from sqlalchemy import event as sa_event
from sqlalchemy.orm import Session

from ...utils.dates import as_utc

logger = logging.getLogger(__name__)

HISTORY_SIZE = int(os.getenv("EVENT_HISTORY_SIZE", "2000"))
SUBSCRIBER_QUEUE_SIZE = int(os.getenv("EVENT_SUBSCRIBER_QUEUE_SIZE", "400"))


@dataclass(frozen=True)
class EventEnvelope:
    """Wire shape pushed to browser clients over SSE (camelCase keys)."""

    id: str
    type: str
    entityType: str
    entityId: str
    entityRef: Optional[str]
    action: str
    timestamp: str
    actor: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_audit_event(cls, row) -> "EventEnvelope":
        occurred = as_utc(row.occurred_at or row.created_at)
        return cls(
            id=row.event_id,
            type=f"{row.entity_type}.{row.action}".lower(),
            entityType=row.entity_type,
            entityId=row.entity_id,
            entityRef=row.entity_ref,
            action=row.action,
            timestamp=occurred.isoformat(),
            actor={"userId": row.actor_user_id} if row.actor_user_id else None,
            metadata=dict(row.metadata_json or {}),
        )

    def as_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), default=str)


class EventBroker:
    """
    In-process fan-out of audit envelopes to SSE subscribers.

    Each subscriber owns a bounded queue, optionally narrowed to one entity
    type. A slow subscriber loses its oldest message rather than blocking the
    publisher. The last `replay_size` envelopes are kept for reconnects.
    """

    def __init__(self, replay_size: int = HISTORY_SIZE, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: Dict[queue.Queue, Optional[str]] = {}
        self._history: Deque[EventEnvelope] = deque(maxlen=replay_size)
        self._lock = threading.Lock()

    def subscribe(self, entity_type: Optional[str] = None) -> queue.Queue:
        q: queue.Queue = queue.Queue(maxsize=self._queue_size)
        with self._lock:
            self._subscribers[q] = entity_type
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            self._subscribers.pop(q, None)

    def publish(self, event: EventEnvelope) -> None:
        with self._lock:
            self._history.append(event)
            targets = [q for q, wanted in self._subscribers.items() if wanted in (None, event.entityType)]
        for q in targets:
            self._offer(q, event)

    @staticmethod
    def _offer(q: queue.Queue, event: EventEnvelope) -> None:
        try:
            q.put_nowait(event)
            return
        except queue.Full:
            pass
        try:
            dropped = q.get_nowait()
        except queue.Empty:
            dropped = None
        logger.debug(
            "Subscriber queue full; dropping oldest event",
            extra={"dropped_event_id": getattr(dropped, "id", None), "event_id": event.id},
        )
        try:
            q.put_nowait(event)
        except queue.Full:
            pass

    def replay_since(
        self,
        *,
        last_event_id: str,
        entity_type: Optional[str] = None,
    ) -> Tuple[List[EventEnvelope], bool]:
        """
        Envelopes published after `last_event_id`. The flag is True when the
        id has already fallen out of the in-memory history.
        """
        history = self.history()
        if not history:
            return [], False
        for index, event in enumerate(history):
            if event.id == last_event_id:
                tail = history[index + 1:]
                if entity_type:
                    tail = [item for item in tail if item.entityType == entity_type]
                return tail, False
        return [], True

    def history(self) -> List[EventEnvelope]:
        with self._lock:
            return list(self._history)


broker = EventBroker()


def publish_event(event: EventEnvelope) -> None:
    broker.publish(event)


_PENDING_KEY = "pending_envelopes"


def publish_after_commit(db: Session, event: EventEnvelope) -> None:
    """Hand `event` to the broker once `db` commits. A rollback drops it."""
    db.info.setdefault(_PENDING_KEY, []).append(event)


@sa_event.listens_for(Session, "after_commit")
def _publish_committed(session: Session) -> None:
    for envelope in session.info.pop(_PENDING_KEY, ()):
        publish_event(envelope)


@sa_event.listens_for(Session, "after_soft_rollback")
def _discard_rolled_back(session: Session, previous_transaction) -> None:
    dropped = session.info.pop(_PENDING_KEY, None)
    if dropped:
        logger.debug("Dropped unpublished events on rollback", extra={"count": len(dropped)})


def format_sse(data: str, event: Optional[str] = None, event_id: Optional[str] = None) -> str:
    fields: List[Tuple[str, str]] = []
    if event_id:
        fields.append(("id", event_id))
    if event:
        fields.append(("event", event))
    fields.extend(("data", line) for line in (data.splitlines() or [""]))
    return "".join(f"{name}: {value}\n" for name, value in fields) + "\n"


def keepalive_message() -> str:
    return format_sse(json.dumps({"type": "heartbeat", "ts": time.time()}), event="heartbeat")
