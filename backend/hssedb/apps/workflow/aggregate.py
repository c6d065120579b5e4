from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from ...utils.dates import as_utc, utcnow
from ..events.domain import DomainEvent, EventRecorder
from .engine import check_transition, require_state
from .errors import SubEntityNotFoundError


class StatefulEntity:
    """
    Status handling shared by aggregates and their owned sub-entities.

    `status` is only ever assigned through `_transition`, which consults the
    workflow registry entry named by `__workflow__`.
    """

    __workflow__: str = ""

    @staticmethod
    def _now(now: Optional[datetime] = None) -> datetime:
        return as_utc(now) if now is not None else utcnow()

    def _check_transition(
        self,
        to_state: Any,
        *,
        changes: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> None:
        check_transition(
            self.__workflow__,
            obj=self,
            from_state=self.status,
            to_state=to_state,
            changes=changes,
            reason=reason,
        )

    def _transition(
        self,
        to_state: Any,
        *,
        changes: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> Any:
        self._check_transition(to_state, changes=changes, reason=reason)
        previous = self.status
        self.status = to_state
        return previous

    def _require_state(self, allowed: Iterable[Any], *, reason: str) -> None:
        require_state(self.__workflow__, self.status, allowed, reason=reason)


class WorkflowAggregate(StatefulEntity, EventRecorder):
    """
    Aggregate root behaviour: audit stamping, optimistic version and events.

    Subclasses declare `__event_prefix__` (event type namespace) and
    `__reference_field__` (the business number column).
    """

    __event_prefix__: str = ""
    __reference_field__: str = ""

    @property
    def version(self) -> Optional[int]:
        return self.version_id

    @property
    def reference(self) -> Optional[str]:
        return getattr(self, self.__reference_field__, None)

    def touch(self, actor: str, now: Optional[datetime] = None) -> None:
        self.updated_at = self._now(now)
        self.updated_by = actor

    def _raise_event(
        self,
        action: str,
        *,
        actor: Optional[str],
        occurred_at: Optional[datetime] = None,
        **payload: Any,
    ) -> DomainEvent:
        event = DomainEvent.create(
            event_type=f"{self.__event_prefix__}.{action}",
            aggregate_type=self.__event_prefix__,
            aggregate_id=self.id,
            aggregate_ref=self.reference,
            actor_id=actor,
            occurred_at=occurred_at,
            payload=payload,
        )
        self.record_event(event)
        return event


def find_owned(collection, key: Any, *, label: str):
    """
    Locate a sub-entity in an owned collection by primary key, or by the
    instance itself (sub-entities of an unsaved aggregate have no id yet).
    """
    for item in collection:
        if item is key:
            return item
        if key is not None and not isinstance(key, type(item)) and item.id == key:
            return item
    raise SubEntityNotFoundError(
        f"{label} {getattr(key, 'id', key)} not found",
        field=f"{label.lower().replace(' ', '_')}_id",
    )
