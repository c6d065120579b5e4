from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ...utils.dates import as_utc, utcnow
from ...utils.identifiers import generate_uuid7


def to_payload(value: Any) -> Any:
    """Normalise a payload value so it survives a JSON column round trip."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {str(key): to_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_payload(item) for item in value]
    return value


@dataclass(frozen=True)
class DomainEvent:
    event_type: str
    aggregate_type: str
    aggregate_id: Optional[int]
    aggregate_ref: Optional[str]
    actor_id: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)
    event_id: str = field(default_factory=generate_uuid7)

    @classmethod
    def create(
        cls,
        *,
        event_type: str,
        aggregate_type: str,
        aggregate_id: Optional[int],
        aggregate_ref: Optional[str],
        actor_id: Optional[str],
        occurred_at: Optional[datetime] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> "DomainEvent":
        return cls(
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            aggregate_ref=aggregate_ref,
            actor_id=actor_id,
            payload=to_payload(payload or {}),
            occurred_at=as_utc(occurred_at) if occurred_at else utcnow(),
        )

    @property
    def action(self) -> str:
        return self.event_type.rsplit(".", 1)[-1]

    def with_aggregate_id(self, aggregate_id: Optional[int]) -> "DomainEvent":
        if self.aggregate_id is not None or aggregate_id is None:
            return self
        return dataclasses.replace(self, aggregate_id=aggregate_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "aggregate_type": self.aggregate_type,
            "aggregate_id": self.aggregate_id,
            "aggregate_ref": self.aggregate_ref,
            "actor_id": self.actor_id,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": self.payload,
        }


class EventRecorder:
    """
    Ordered, append-only list of events raised by an aggregate since it was
    last persisted. The unit of work reads `pending_events` and calls
    `clear_events()` once the transaction commits.
    """

    def _event_buffer(self) -> List[DomainEvent]:
        buffer = self.__dict__.get("_pending_events")
        if buffer is None:
            buffer = []
            self.__dict__["_pending_events"] = buffer
        return buffer

    @property
    def pending_events(self) -> Tuple[DomainEvent, ...]:
        return tuple(self._event_buffer())

    def record_event(self, event: DomainEvent) -> None:
        self._event_buffer().append(event)

    def clear_events(self) -> List[DomainEvent]:
        buffer = self._event_buffer()
        drained = list(buffer)
        buffer.clear()
        return drained
