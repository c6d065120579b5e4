from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .errors import InvalidOperationError, TransitionError
from .registry import WORKFLOWS

logger = logging.getLogger(__name__)


def _state(value: Any) -> str:
    return getattr(value, "value", value)


class ProposedState:
    """
    Read-only view of an entity with pending field changes laid over it.

    Guards receive this as `after_obj` so they can judge the state a
    transition would produce before anything on the entity is modified.
    """

    def __init__(self, obj: Any, changes: Optional[Dict[str, Any]] = None) -> None:
        self._obj = obj
        self._changes = dict(changes or {})

    def __getattr__(self, key: str) -> Any:
        if key in self._changes:
            return self._changes[key]
        if isinstance(self._obj, dict):
            return self._obj.get(key)
        return getattr(self._obj, key, None)


def get_workflow(entity_type: str) -> Dict[str, Any]:
    workflow = WORKFLOWS.get(entity_type)
    if not workflow:
        raise TransitionError(
            f"No workflow registered for {entity_type}",
            field="entity_type",
        )
    return workflow


def allowed_sources(entity_type: str, to_state: Any) -> List[str]:
    """States from which `to_state` can be reached."""
    target = _state(to_state)
    transitions = get_workflow(entity_type).get("transitions", {})
    return [source for source, targets in transitions.items() if target in targets]


def can_transition(entity_type: str, *, from_state: Any, to_state: Any) -> bool:
    transitions = get_workflow(entity_type).get("transitions", {})
    return _state(to_state) in transitions.get(_state(from_state), {})


def _rejection_message(workflow: Dict[str, Any], entity_type: str, from_state: str, to_state: str) -> str:
    message = workflow.get("requirements", {}).get(to_state)
    if message:
        return message
    label = workflow.get("label", entity_type)
    sources = allowed_sources(entity_type, to_state)
    if not sources:
        return f"{label} cannot move to {to_state}"
    return f"{label} must be {' or '.join(sources)} to move to {to_state} (currently {from_state})"


def check_transition(
    entity_type: str,
    *,
    obj: Any,
    from_state: Any,
    to_state: Any,
    changes: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
) -> None:
    """
    Validate FROM -> TO for `entity_type` without touching `obj`.

    Raises TransitionError with code `invalid_transition` when the edge is not
    declared, or `missing_requirements` when one of its guards objects.
    """
    workflow = get_workflow(entity_type)
    source = _state(from_state)
    target = _state(to_state)

    guards = workflow.get("transitions", {}).get(source, {}).get(target)
    if guards is None:
        message = reason or _rejection_message(workflow, entity_type, source, target)
        logger.debug(
            "Transition rejected",
            extra={"entity_type": entity_type, "from_state": source, "to_state": target},
        )
        raise TransitionError(message, field="status", code="invalid_transition")

    after_obj = ProposedState(obj, changes)
    failures: List[Dict[str, str]] = []
    for guard in guards:
        failures.extend(
            guard(
                before_obj=obj,
                after_obj=after_obj,
                from_state=source,
                to_state=target,
            )
        )

    if failures:
        raise TransitionError(
            "; ".join(item["reason"] for item in failures),
            code="missing_requirements",
            detail=failures,
        )


def require_state(
    entity_type: str,
    current: Any,
    allowed: Iterable[Any],
    *,
    reason: str,
) -> None:
    """Stage gate for operations that do not themselves change status."""
    allowed_states = {_state(item) for item in allowed}
    if _state(current) not in allowed_states:
        logger.debug(
            "Operation rejected by state gate",
            extra={"entity_type": entity_type, "state": _state(current), "allowed": sorted(allowed_states)},
        )
        raise InvalidOperationError(reason, field="status", code="invalid_state")
